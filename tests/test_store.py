"""
Tests for configuration, the game store, the event log, the capability
layer and the in-memory token ledger
"""

import os
import sys
import shutil
import tempfile
import unittest

# Add parent to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fogmine import events as ev
from fogmine.access import AccessControl, Capability
from fogmine.config import GameConfig, RewardLevel
from fogmine.errors import (
    AccessDeniedError, ConfigError, GamePausedError, InsufficientPoolError,
)
from fogmine.events import EventLog
from fogmine.state import UserState
from fogmine.store import GameStore
from fogmine.treasury import InMemoryTokenLedger


class TestGameConfig(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def test_defaults_are_valid(self):
        cfg = GameConfig()
        cfg.validate()
        self.assertEqual(cfg.depth_quota, 256)
        self.assertEqual(cfg.end_time, cfg.general.start_time + cfg.general.duration)

    def test_invalid_configs(self):
        mutations = [
            lambda c: setattr(c.general, 'size_x', 0),
            lambda c: (setattr(c.general, 'size_x', 1), setattr(c.general, 'size_y', 1)),
            lambda c: setattr(c.general, 'max_energy', 0),
            lambda c: setattr(c.defog, 'repeat_rounds', c.defog.max_rounds),
            lambda c: setattr(c.defog, 'gold_threshold', c.defog.stone_threshold - 1),
            lambda c: setattr(c.defog, 'diamond_threshold', 10001),
            lambda c: c.mining.base_difficulty.pop(),
            lambda c: c.reward.levels.pop(),
            lambda c: c.reward.levels.__setitem__(0, RewardLevel(10001, 0, 0)),
            lambda c: c.reward.levels.__setitem__(0, RewardLevel(100, 20, 10)),
            lambda c: setattr(c.reward, 'daily_cap', -1),
        ]
        for mutate in mutations:
            cfg = GameConfig()
            mutate(cfg)
            with self.assertRaises(ConfigError):
                cfg.validate()

    def test_save_and_load(self):
        cfg = GameConfig()
        cfg.general.game_id = "season-1"
        cfg.reward.levels[2] = RewardLevel(300, 5, 50)
        path = os.path.join(self.test_dir, "config.json")
        cfg.save(path)

        loaded = GameConfig.load(path)
        self.assertEqual(loaded, cfg)
        self.assertIsInstance(loaded.reward.levels[2], RewardLevel)


class TestGameStore(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def test_create_fixes_site_key(self):
        first = GameStore.create(GameConfig(), entropy=5)
        second = GameStore.create(GameConfig(), entropy=5)
        third = GameStore.create(GameConfig(), entropy=6)
        self.assertEqual(first.state.site_hash_key, second.state.site_hash_key)
        self.assertNotEqual(first.state.site_hash_key, third.state.site_hash_key)

    def test_create_validates(self):
        cfg = GameConfig()
        cfg.general.size_y = 0
        with self.assertRaises(ConfigError):
            GameStore.create(cfg, entropy=1)

    def test_save_and_load(self):
        store = GameStore.create(GameConfig(), entropy=5)
        store.users["alice"] = UserState(depth=2, pow_seed=2 ** 200)
        store.mined.add("alice", 0xabc)
        store.mined.add("bob", 0xabc)
        store.pow_bypass = True
        path = os.path.join(self.test_dir, "game.json")
        store.save(path)

        loaded = GameStore.load(path)
        self.assertEqual(loaded.state, store.state)
        self.assertEqual(loaded.users, store.users)
        self.assertEqual(len(loaded.mined), 2)
        self.assertTrue(loaded.is_mined("bob", 0xabc))
        self.assertFalse(loaded.is_mined("bob", 0xabd))
        self.assertTrue(loaded.pow_bypass)


class TestEventLog(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def test_append_and_query(self):
        log = EventLog()
        seen = []
        log.subscribe(seen.append)
        log.append(ev.USER_ADMITTED, {'user': 'alice'})
        log.append(ev.BLOCK_MINED, {'user': 'alice'})
        log.append(ev.BLOCK_MINED, {'user': 'bob'})

        self.assertEqual(len(log), 3)
        self.assertEqual([e.seq for e in log.entries()], [0, 1, 2])
        self.assertEqual([e.data['user'] for e in log.entries(since=1)], ['alice', 'bob'])
        self.assertEqual(len(log.entries(name=ev.BLOCK_MINED)), 2)
        self.assertEqual([e.name for e in seen], [ev.USER_ADMITTED, ev.BLOCK_MINED, ev.BLOCK_MINED])

    def test_replay_from_file(self):
        path = os.path.join(self.test_dir, "events.jsonl")
        log = EventLog(path)
        log.append(ev.POOL_DEPOSITED, {'amount': 10})
        log.append(ev.PAUSED, {'by': 'operator'})

        replayed = EventLog(path)
        self.assertEqual(len(replayed), 2)
        self.assertEqual(replayed.entries()[0].data, {'amount': 10})
        self.assertEqual(replayed.append(ev.UNPAUSED).seq, 2)


class TestAccessControl(unittest.TestCase):

    def test_admin_holds_everything(self):
        access = AccessControl(admin="root")
        for capability in Capability:
            self.assertTrue(access.has("root", capability))
            access.require("root", capability)
        self.assertFalse(access.has("guest", Capability.PAUSE))

    def test_grant_and_revoke(self):
        access = AccessControl()
        access.grant("ops", Capability.TREASURY, Capability.PAUSE)
        access.require("ops", Capability.TREASURY)
        access.revoke("ops", Capability.TREASURY)
        with self.assertRaises(AccessDeniedError):
            access.require("ops", Capability.TREASURY)
        self.assertEqual(access.holders(), {"ops": ["pause"]})

    def test_pause_switch(self):
        access = AccessControl()
        access.ensure_not_paused()
        access.paused = True
        with self.assertRaises(GamePausedError):
            access.ensure_not_paused()


class TestTokenLedger(unittest.TestCase):

    def test_transfers(self):
        ledger = InMemoryTokenLedger({"ops": 100})
        ledger.transfer_in("ops", 60)
        self.assertEqual((ledger.balance_of("ops"), ledger.custody), (40, 60))
        ledger.transfer_out("alice", 25)
        self.assertEqual((ledger.balance_of("alice"), ledger.custody), (25, 35))

        with self.assertRaises(InsufficientPoolError):
            ledger.transfer_in("ops", 41)
        with self.assertRaises(InsufficientPoolError):
            ledger.transfer_out("alice", 36)


if __name__ == '__main__':
    unittest.main()
