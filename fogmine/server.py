"""
FogMine Game Server

JSON-over-HTTP front end for one GameEngine. The caller identity is
taken from the request body; authenticating it is the job of whatever
sits in front of this server.

Endpoints:
    GET  /                         - Game status
    GET  /health                   - Health check (ledger invariants)
    GET  /user/<id>                - User state and current energy
    GET  /mined/<id>/<block_hex>   - Mined flag
    GET  /pow/<id>/<block_type>    - PoW seed and difficulty
    GET  /events?since=<seq>       - Event log
    POST /admit                    - Admit the caller
    POST /mine                     - Mine a batch
    POST /mine-and-unlock          - Mine a depth-completing batch and unlock
    POST /claim                    - Claim rewards
"""

import os
import json
import logging
import argparse
from http.server import HTTPServer, BaseHTTPRequestHandler
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse, parse_qs

from . import config
from .access import AccessControl
from .engine import GameEngine, ProofBatch
from .errors import GameError, LedgerConsistencyError
from .events import EventLog
from .store import GameStore
from .verifier import GameVerifier


def setup_logging(log_file: Optional[str] = None) -> logging.Logger:
    """Setup logging configuration."""
    logger = logging.getLogger('fogmine')
    logger.setLevel(logging.INFO)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
        ))
        logger.addHandler(file_handler)

    return logger


def parse_hash(value: Any) -> int:
    """Block hashes travel as hex strings; plain integers are accepted too."""
    if isinstance(value, str):
        return int(value, 16)
    return int(value)


def _hashes(values: List[Any]) -> List[int]:
    return [parse_hash(v) for v in values]


def _proof_batch(data: Optional[Dict[str, Any]]) -> Optional[ProofBatch]:
    return ProofBatch.from_dict(data) if data else None


class GameRequestHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the game API."""

    engine: GameEngine = None
    logger: logging.Logger = logging.getLogger('fogmine.server')

    def log_message(self, format, *args):
        """Override to use our logger."""
        self.logger.debug(f"API: {args[0] if args else format}")

    def _send_json(self, data: Dict[str, Any], status: int = 200):
        """Send JSON response."""
        self.send_response(status)
        self.send_header('Content-Type', 'application/json')
        self.send_header('Access-Control-Allow-Origin', '*')
        self.end_headers()
        self.wfile.write(json.dumps(data, indent=2).encode())

    def _send_error(self, message: str, status: int = 400, kind: str = "error"):
        self._send_json({'error': message, 'type': kind}, status)

    def _read_json(self) -> Dict[str, Any]:
        content_length = int(self.headers.get('Content-Length', 0))
        body = self.rfile.read(content_length).decode() if content_length > 0 else ''
        return json.loads(body) if body else {}

    def do_GET(self):
        """Handle GET requests."""
        parsed = urlparse(self.path)
        parts = [p for p in parsed.path.split('/') if p]
        query = parse_qs(parsed.query)
        try:
            if not parts or parts == ['status']:
                self._send_json(self.engine.game_status())
            elif parts == ['health']:
                self._handle_health()
            elif len(parts) == 2 and parts[0] == 'user':
                self._handle_user(parts[1])
            elif len(parts) == 3 and parts[0] == 'mined':
                self._send_json({'mined': self.engine.is_mined(parts[1], parse_hash(parts[2]))})
            elif len(parts) == 3 and parts[0] == 'pow':
                seed, difficulty = self.engine.pow_challenge(parts[1], int(parts[2]))
                self._send_json({'seed': hex(seed), 'difficulty': difficulty})
            elif parts == ['events']:
                since = int(query.get('since', [0])[0])
                self._send_json({'events': [e.to_dict() for e in self.engine.events.entries(since)]})
            else:
                self._send_error('Not found', 404)
        except GameError as e:
            self._send_error(str(e), 400, type(e).__name__)
        except ValueError as e:
            self._send_error(f'Bad request: {e}')

    def do_POST(self):
        """Handle POST requests."""
        path = urlparse(self.path).path
        try:
            data = self._read_json()
            user = data.get('user')
            if not user:
                self._send_error('Missing caller identity')
                return

            if path == '/admit':
                state = self.engine.admit(
                    user,
                    parse_hash(data['opening_block']),
                    data['signature'],
                    int(data['nonce']),
                    _proof_batch(data.get('unlock_proof')),
                )
                self._send_json({'success': True, 'user': state.to_dict()})
            elif path in ('/mine', '/mine-and-unlock'):
                self._handle_mine(user, data, path == '/mine-and-unlock')
            elif path == '/claim':
                amount = self.engine.claim_reward(user)
                self._send_json({'success': True, 'amount': amount})
            else:
                self._send_error('Not found', 404)

        except LedgerConsistencyError as e:
            self.logger.error(f"Ledger consistency fault: {e}")
            self._send_error(str(e), 500, type(e).__name__)
        except GameError as e:
            self._send_error(str(e), 400, type(e).__name__)
        except (KeyError, ValueError, TypeError) as e:
            self._send_error(f'Bad request: {e}')

    def _handle_mine(self, user: str, data: Dict[str, Any], unlock: bool):
        args = dict(
            blocks=_hashes(data['blocks']),
            neighbours=_hashes(data['neighbours']),
            types=[int(t) for t in data['types']],
            defog_nonces=[int(n) for n in data.get('defog_nonces', [])],
            pow_nonces=[int(n) for n in data.get('pow_nonces', [])],
            proof_batch=_proof_batch(data.get('proof_batch')),
        )
        if unlock:
            result = self.engine.mine_batch_and_unlock(
                user,
                next_opening_block=parse_hash(data['next_opening_block']),
                unlock_proof=_proof_batch(data.get('unlock_proof')),
                **args
            )
        else:
            result = self.engine.mine_batch(user, **args)
        self._send_json({
            'success': True,
            'blocks_mined': result.blocks_mined,
            'rewards': result.rewards,
            'difficulty_offset': result.difficulty_offset,
            'energy_left': result.energy_left,
            'depth': result.depth,
            'unlocked': result.unlocked,
        })

    def _handle_user(self, user_id: str):
        state = self.engine.user_info(user_id)
        payload = state.to_dict()
        payload['pow_seed'] = hex(state.pow_seed)
        payload['depth_opening_block'] = hex(state.depth_opening_block)
        payload['remaining_energy'] = self.engine.remaining_energy(user_id)
        self._send_json(payload)

    def _handle_health(self):
        try:
            self.engine.check_invariants()
            self._send_json({'healthy': True})
        except LedgerConsistencyError as e:
            self._send_json({'healthy': False, 'error': str(e)}, 503)


def run_server(engine: GameEngine, host: str = "0.0.0.0", port: int = config.DEFAULT_PORT,
               logger: Optional[logging.Logger] = None):
    """Serve the engine until interrupted."""
    logger = logger or logging.getLogger('fogmine.server')
    GameRequestHandler.engine = engine
    GameRequestHandler.logger = logger

    server = HTTPServer((host, port), GameRequestHandler)
    status = engine.game_status()
    logger.info("=" * 60)
    logger.info(f"FogMine game server: {status['game_id']}")
    logger.info(f"Listening on http://{host}:{port}/")
    logger.info(f"Users: {status['user_count']}, pool remaining: {status['remaining_reward']}")
    logger.info("=" * 60)

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down server...")
    finally:
        server.server_close()


def build_engine(state_path: str, verifier_path: Optional[str] = None,
                 admin: Optional[str] = None, events_path: Optional[str] = None) -> GameEngine:
    """Load a saved game and wire an engine around it."""
    store = GameStore.load(state_path)
    verifier = None
    if verifier_path:
        with open(verifier_path, 'r') as f:
            verifier = GameVerifier.from_dict(json.load(f))
    return GameEngine(
        store,
        verifier=verifier,
        access=AccessControl(admin=admin),
        events=EventLog(events_path),
        autosave_path=state_path,
    )


def main():
    """Entry point for fogmine-server."""
    parser = argparse.ArgumentParser(description='FogMine game server')
    parser.add_argument('--state', default=os.path.join(os.path.expanduser(config.DEFAULT_DATA_DIR), 'game.json'),
                        help='Game state file (created with `fogmine init`)')
    parser.add_argument('--host', default='0.0.0.0', help='Host to bind to (default: 0.0.0.0)')
    parser.add_argument('--port', type=int, default=config.DEFAULT_PORT,
                        help=f'Port (default: {config.DEFAULT_PORT})')
    parser.add_argument('--verifier', type=str, help='Verifying keys JSON file')
    parser.add_argument('--admin', type=str, help='Identity granted every operator capability')
    parser.add_argument('--events', type=str, help='Event log file (JSON lines)')
    parser.add_argument('--log-file', type=str, help='Log file path')
    args = parser.parse_args()

    logger = setup_logging(args.log_file)
    engine = build_engine(args.state, args.verifier, args.admin, args.events)
    run_server(engine, args.host, args.port, logger)
    return 0


if __name__ == '__main__':
    main()
