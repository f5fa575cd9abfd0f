"""
Tests for the HTTP API
"""

import os
import sys
import json
import threading
import unittest
import urllib.error
import urllib.request
from http.server import HTTPServer

# Add parent to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from game_fixtures import A, OPENING, admission_signature, admit, make_config, make_engine, solve
from fogmine.config import BlockType
from fogmine.server import GameRequestHandler, parse_hash


class TestParseHash(unittest.TestCase):

    def test_parse_hash(self):
        self.assertEqual(parse_hash("0x101"), 0x101)
        self.assertEqual(parse_hash("ff"), 255)
        self.assertEqual(parse_hash(7), 7)


class TestGameServer(unittest.TestCase):
    """Run the API against a live engine on an ephemeral port."""

    def setUp(self):
        self.engine = make_engine(game_config=make_config(size=4), pool=1000)
        admit(self.engine, "alice")
        GameRequestHandler.engine = self.engine
        self.server = HTTPServer(('127.0.0.1', 0), GameRequestHandler)
        self.thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        self.thread.start()
        self.base_url = f"http://127.0.0.1:{self.server.server_address[1]}"

    def tearDown(self):
        self.server.shutdown()
        self.server.server_close()

    def _request(self, path, payload=None):
        data = json.dumps(payload).encode() if payload is not None else None
        req = urllib.request.Request(self.base_url + path, data=data,
                                     headers={'Content-Type': 'application/json'})
        try:
            with urllib.request.urlopen(req, timeout=10) as response:
                return response.status, json.loads(response.read().decode())
        except urllib.error.HTTPError as e:
            return e.code, json.loads(e.read().decode())

    def test_status(self):
        status, body = self._request("/")
        self.assertEqual(status, 200)
        self.assertEqual(body['game_id'], "test-game")
        self.assertEqual(body['user_count'], 1)
        self.assertEqual(body['remaining_reward'], 1000)

    def test_user(self):
        status, body = self._request("/user/alice")
        self.assertEqual(status, 200)
        self.assertEqual(body['depth'], 0)
        self.assertEqual(body['remaining_energy'], 10)
        self.assertEqual(body['depth_opening_block'], hex(OPENING))

        status, body = self._request("/user/bob")
        self.assertEqual(status, 400)
        self.assertEqual(body['type'], "NotAdmittedError")

    def test_mined_and_pow(self):
        self.assertEqual(self._request(f"/mined/alice/{OPENING:x}")[1], {'mined': True})
        self.assertEqual(self._request(f"/mined/alice/{A:x}")[1], {'mined': False})

        status, body = self._request("/pow/alice/1")
        self.assertEqual(status, 200)
        self.assertEqual(body['difficulty'], 0)
        self.assertEqual(int(body['seed'], 16), self.engine.user_info("alice").pow_seed)

        status, body = self._request("/pow/alice/4")
        self.assertEqual(status, 400)
        self.assertEqual(body['type'], "BadBlockTypeError")

    def test_admit(self):
        payload = {
            'user': 'bob',
            'opening_block': hex(OPENING),
            'signature': admission_signature(self.engine.config, 'bob'),
            'nonce': 1,
        }
        status, body = self._request("/admit", payload)
        self.assertEqual(status, 200)
        self.assertTrue(body['success'])

        status, body = self._request("/admit", payload)
        self.assertEqual(status, 400)
        self.assertEqual(body['type'], "AlreadyAdmittedError")

    def test_mine_and_claim(self):
        defog_nonces, pow_nonces = solve(self.engine, "alice", [A], [BlockType.STONE])
        status, body = self._request("/mine", {
            'user': 'alice',
            'blocks': [hex(A)],
            'neighbours': [hex(OPENING)],
            'types': [int(BlockType.STONE)],
            'defog_nonces': defog_nonces,
            'pow_nonces': pow_nonces,
        })
        self.assertEqual(status, 200)
        self.assertEqual(body['rewards'], [50])
        self.assertEqual(body['energy_left'], 9)

        status, body = self._request("/claim", {'user': 'alice'})
        self.assertEqual((status, body['amount']), (200, 50))

        status, body = self._request("/claim", {'user': 'alice'})
        self.assertEqual(status, 400)
        self.assertEqual(body['type'], "NothingToClaimError")

    def test_bad_requests(self):
        status, body = self._request("/claim", {})
        self.assertEqual(status, 400)
        status, body = self._request("/mine", {'user': 'alice'})
        self.assertEqual(status, 400)
        status, body = self._request("/nowhere")
        self.assertEqual(status, 404)

    def test_health_and_events(self):
        self.assertEqual(self._request("/health"), (200, {'healthy': True}))
        status, body = self._request("/events?since=1")
        self.assertEqual(status, 200)
        self.assertEqual([e['name'] for e in body['events']], ['user_admitted', 'depth_unlocked'])


if __name__ == '__main__':
    unittest.main()
