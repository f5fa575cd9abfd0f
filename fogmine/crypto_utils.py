"""
Cryptographic utilities for FogMine

- H(): the hash oracle every subsystem derives its pseudo-randomness from
- pow_hash(): Argon2id memory-hard digest for the proof-of-work fallback
- ECDSA admission signatures over (game, user, nonce)
"""

import hashlib
from typing import Tuple, Union

from argon2.low_level import Type, hash_secret_raw
from ecdsa import SECP256k1, BadSignatureError, MalformedPointError, SigningKey, VerifyingKey

from . import config

HashPart = Union[int, str, bytes]


def sha256(data: Union[str, bytes]) -> str:
    """Compute SHA-256 hash of data."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest()


def pack(*parts: HashPart) -> bytes:
    """
    Packed encoding of hash inputs.

    Integers become 32-byte big-endian words (negative values are
    rejected), strings are UTF-8, bytes are taken as is.
    """
    out = bytearray()
    for part in parts:
        if isinstance(part, bool):
            part = int(part)
        if isinstance(part, int):
            if part < 0:
                raise ValueError("Cannot pack a negative integer")
            out += (part % (1 << 256)).to_bytes(32, 'big')
        elif isinstance(part, str):
            out += part.encode('utf-8')
        elif isinstance(part, (bytes, bytearray)):
            out += part
        else:
            raise TypeError(f"Cannot pack {type(part).__name__}")
    return bytes(out)


def H(*parts: HashPart) -> int:
    """Hash oracle: SHA-256 of the packed parts as a 256-bit integer."""
    return int.from_bytes(hashlib.sha256(pack(*parts)).digest(), 'big')


def pow_hash(seed: int, block_hash: int, nonce: int,
             mining: 'config.MiningConfig') -> int:
    """
    Compute the proof-of-work digest for one block.

    Argon2id over (seed, block_hash, nonce) salted with the seed, then
    SHA-256 for distribution, like the coin miner's two-pass hash.

    Args:
        seed: The user's rolling PoW seed
        block_hash: Block being mined
        nonce: Candidate nonce
        mining: Mining config carrying the Argon2 cost parameters

    Returns:
        256-bit digest as an integer
    """
    data = pack(seed, block_hash, nonce)
    salt = pack(seed)[:16]
    raw = hash_secret_raw(
        data,
        salt,
        time_cost=mining.argon2_time_cost,
        memory_cost=mining.argon2_memory_cost,
        parallelism=mining.argon2_parallelism,
        hash_len=config.ARGON2_HASH_LEN,
        type=Type.ID
    )
    return int.from_bytes(hashlib.sha256(raw).digest(), 'big')


def low_bits_zero(value: int, bits: int) -> bool:
    """True if the lowest `bits` bits of value are all zero."""
    if bits <= 0:
        return True
    return value & ((1 << bits) - 1) == 0


# =============================================================================
# Admission signatures
# =============================================================================

def admission_message(game_id: str, user: str, nonce: int) -> str:
    """Message the admission signer attests to."""
    return f"{game_id}:{user}:{nonce}"


def generate_keypair() -> Tuple[str, str]:
    """
    Generate a new ECDSA keypair.

    Returns:
        Tuple of (private_key_hex, public_key_hex)
    """
    sk = SigningKey.generate(curve=SECP256k1)
    vk = sk.get_verifying_key()
    return sk.to_string().hex(), vk.to_string().hex()


def sign_message(private_key_hex: str, message: str) -> str:
    """Sign the SHA-256 of a message, returning the signature as hex."""
    sk = SigningKey.from_string(bytes.fromhex(private_key_hex), curve=SECP256k1)
    signature = sk.sign(sha256(message).encode())
    return signature.hex()


def verify_signature(public_key_hex: str, message: str, signature_hex: str) -> bool:
    """
    Verify a signature.

    Args:
        public_key_hex: Public key as hex string
        message: Original message
        signature_hex: Signature to verify

    Returns:
        True if signature is valid
    """
    try:
        vk = VerifyingKey.from_string(bytes.fromhex(public_key_hex), curve=SECP256k1)
        return vk.verify(bytes.fromhex(signature_hex), sha256(message).encode())
    except (BadSignatureError, MalformedPointError, ValueError):
        return False
