# -*- encoding: utf-8 -*-
"""
Body digest - the value guardians actually sign.

    digest = keccak256(keccak256(body))

Only the body is hashed. Version, guardian set index and signatures never
enter the digest, so the same body re-signed by a newer guardian set has
the same digest (this is what makes the rotation grace window work).
"""

from eth_utils import keccak

DIGEST_LEN = 32


def body_hash(body_bytes: bytes) -> bytes:
    """Single Keccak-256 of the serialized body (the "VAA hash")."""
    return keccak(bytes(body_bytes))


def body_digest(body_bytes: bytes) -> bytes:
    """Double Keccak-256 of the serialized body. This is the signed message."""
    return keccak(body_hash(body_bytes))
