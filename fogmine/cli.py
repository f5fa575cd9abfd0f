#!/usr/bin/env python3
"""
FogMine Command Line Interface

Usage:
    fogmine init [--config=<file>] [--state=<file>]
    fogmine config template <filepath>
    fogmine status [--state=<file>]
    fogmine user <user_id> [--state=<file>]
    fogmine keygen
    fogmine sign-admission <user_id> <nonce> --key=<hex> [--state=<file>]
    fogmine solve <user_id> <block_hash> <block_type> [--state=<file>]
    fogmine serve [--state=<file>] [--port=<port>] [--admin=<id>] [--verifier=<file>]

`solve` is the client side of the PoW bypass path: it searches the
defog nonce and the PoW nonce for one block against a saved game.
"""

import os
import sys
import argparse

from fogmine import config
from fogmine.config import BlockType, GameConfig
from fogmine.crypto_utils import admission_message, generate_keypair, sign_message
from fogmine.defog import find_defog_nonce
from fogmine.difficulty import find_pow_nonce, pow_difficulty
from fogmine.errors import ConfigError
from fogmine.randomness import SystemEntropy
from fogmine.server import build_engine, parse_hash, run_server, setup_logging
from fogmine.store import GameStore

DEFAULT_STATE_PATH = os.path.join(config.DEFAULT_DATA_DIR, "game.json")


def print_header():
    """Print the FogMine header."""
    print("""
+-----------------------------------------------------------+
|                         FogMine                           |
|          Reveal the map. Mine the blocks. Earn.           |
+-----------------------------------------------------------+
    """)


def _state_path(args) -> str:
    return os.path.expanduser(args.state or DEFAULT_STATE_PATH)


def _load_store(args):
    path = _state_path(args)
    if not os.path.exists(path):
        print(f"No game at {path}. Create one with: fogmine init")
        return None
    return GameStore.load(path)


def cmd_init(args):
    """Create a new game from a config file (or the defaults)."""
    path = _state_path(args)
    if os.path.exists(path):
        print(f"A game already exists at {path}!")
        return 1

    game_config = GameConfig.load(args.config) if args.config else GameConfig()
    try:
        store = GameStore.create(game_config, SystemEntropy().entropy())
    except ConfigError as e:
        print(f"Invalid configuration: {e}")
        return 1

    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    store.save(path)

    print(f"\nGame '{game_config.general.game_id}' created at {path}")
    print(f"  Map: {game_config.general.size_x} x {game_config.general.size_y}")
    print(f"  Runs until: {game_config.end_time}")
    if not game_config.general.admission_pubkey:
        print("\nWARNING: no admission_pubkey configured; nobody can be admitted.")
    return 0


def cmd_config_template(args):
    """Write a default config file to edit."""
    GameConfig().save(args.filepath)
    print(f"Default configuration written to {args.filepath}")
    return 0


def cmd_status(args):
    """Show global game state."""
    store = _load_store(args)
    if store is None:
        return 1
    state = store.state

    print(f"\nGame {store.config.general.game_id}:")
    print("-" * 40)
    print(f"  Users: {state.user_count}")
    print(f"  PoW bypass: {store.pow_bypass}")
    for block_type in config.MINEABLE_TYPES:
        print(f"  {block_type.name.title()} mined: {state.total_mined[block_type]}")
    print(f"\nReward pool ({store.config.reward.token}):")
    print("-" * 40)
    print(f"  Total: {state.total_reward}")
    print(f"  Remaining: {state.remaining_reward}")
    print(f"  Pending: {state.total_pending}")
    print(f"  Claimed: {state.total_claimed}")
    return 0


def cmd_user(args):
    """Show one user's progress."""
    store = _load_store(args)
    if store is None:
        return 1
    user = store.users.get(args.user_id)
    if user is None:
        print(f"User '{args.user_id}' has not been admitted")
        return 1

    print(f"\nUser {args.user_id}:")
    print("-" * 40)
    print(f"  Depth: {user.depth} ({user.mined_in_depth}/{store.config.depth_quota} blocks)")
    print(f"  Energy: {user.energy}")
    print(f"  Difficulty offset: {user.difficulty_offset}")
    print(f"  Blocks mined: {user.total_blocks}")
    print(f"  Balance: {user.balance}")
    print(f"  Earned: {user.earned_reward}")
    print(f"  Claimed: {user.claimed_reward}")
    return 0


def cmd_keygen(args):
    """Generate an admission signer keypair."""
    private_key, public_key = generate_keypair()
    print(f"Private key: {private_key}")
    print(f"Public key:  {public_key}")
    print("\nPut the public key in general.admission_pubkey. Keep the private key secret.")
    return 0


def cmd_sign_admission(args):
    """Sign an admission ticket for a user."""
    store = _load_store(args)
    if store is None:
        return 1
    message = admission_message(store.config.general.game_id, args.user_id, args.nonce)
    print(sign_message(args.key, message))
    return 0


def cmd_solve(args):
    """Find the defog and PoW nonces for one block."""
    store = _load_store(args)
    if store is None:
        return 1
    user = store.users.get(args.user_id)
    if user is None:
        print(f"User '{args.user_id}' has not been admitted")
        return 1

    block_hash = parse_hash(args.block_hash)
    block_type = BlockType[args.block_type.upper()]
    cfg = store.config

    defog_nonce = find_defog_nonce(cfg.defog, store.state.site_hash_key, block_hash, block_type)
    if defog_nonce is None:
        print(f"Block {block_hash:#x} never reveals as {block_type.name}")
        return 1

    difficulty = pow_difficulty(cfg.mining, block_type, user.difficulty_offset)
    print(f"Searching PoW nonce at difficulty {difficulty}...")
    pow_nonce = find_pow_nonce(cfg.mining, user.pow_seed, block_hash, difficulty)
    print(f"defog_nonce={defog_nonce} pow_nonce={pow_nonce}")
    return 0


def cmd_serve(args):
    """Start the game server."""
    print_header()
    logger = setup_logging(args.log_file)
    engine = build_engine(_state_path(args), args.verifier, args.admin, args.events)
    run_server(engine, args.host, args.port, logger)
    return 0


def main():
    parser = argparse.ArgumentParser(description='FogMine game rules engine')
    subparsers = parser.add_subparsers(dest='command', help='Commands')

    init_parser = subparsers.add_parser('init', help='Create a new game')
    init_parser.add_argument('--config', type=str, help='Config JSON file (default config if omitted)')
    init_parser.add_argument('--state', type=str, help='Game state file')

    config_parser = subparsers.add_parser('config', help='Configuration commands')
    config_sub = config_parser.add_subparsers(dest='config_cmd')
    template_parser = config_sub.add_parser('template', help='Write the default config')
    template_parser.add_argument('filepath', help='Output file')

    status_parser = subparsers.add_parser('status', help='Show game status')
    status_parser.add_argument('--state', type=str, help='Game state file')

    user_parser = subparsers.add_parser('user', help='Show user progress')
    user_parser.add_argument('user_id', help='User identity')
    user_parser.add_argument('--state', type=str, help='Game state file')

    subparsers.add_parser('keygen', help='Generate an admission signer keypair')

    sign_parser = subparsers.add_parser('sign-admission', help='Sign an admission ticket')
    sign_parser.add_argument('user_id', help='User identity')
    sign_parser.add_argument('nonce', type=int, help='Admission nonce')
    sign_parser.add_argument('--key', type=str, required=True, help='Signer private key (hex)')
    sign_parser.add_argument('--state', type=str, help='Game state file')

    solve_parser = subparsers.add_parser('solve', help='Find defog and PoW nonces for a block')
    solve_parser.add_argument('user_id', help='User identity')
    solve_parser.add_argument('block_hash', help='Block hash (hex)')
    solve_parser.add_argument('block_type', choices=[t.name.lower() for t in config.MINEABLE_TYPES])
    solve_parser.add_argument('--state', type=str, help='Game state file')

    serve_parser = subparsers.add_parser('serve', help='Start the game server')
    serve_parser.add_argument('--state', type=str, help='Game state file')
    serve_parser.add_argument('--port', type=int, default=config.DEFAULT_PORT, help='Port')
    serve_parser.add_argument('--host', type=str, default='0.0.0.0', help='Host')
    serve_parser.add_argument('--admin', type=str, help='Operator identity')
    serve_parser.add_argument('--verifier', type=str, help='Verifying keys JSON file')
    serve_parser.add_argument('--events', type=str, help='Event log file')
    serve_parser.add_argument('--log-file', type=str, help='Log file path')

    args = parser.parse_args()

    if args.command == 'init':
        return cmd_init(args)
    elif args.command == 'config':
        if args.config_cmd == 'template':
            return cmd_config_template(args)
        else:
            config_parser.print_help()
    elif args.command == 'status':
        return cmd_status(args)
    elif args.command == 'user':
        return cmd_user(args)
    elif args.command == 'keygen':
        return cmd_keygen(args)
    elif args.command == 'sign-admission':
        return cmd_sign_admission(args)
    elif args.command == 'solve':
        return cmd_solve(args)
    elif args.command == 'serve':
        return cmd_serve(args)
    else:
        print_header()
        parser.print_help()

    return 0


if __name__ == '__main__':
    sys.exit(main())
