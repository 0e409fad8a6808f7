# -*- encoding: utf-8 -*-
"""
Wire Codec - VAA binary format.

Layout (big-endian throughout):

    version:u8 | guardian_set_index:u32 | sig_count:u8
    sig_count x (position:u8 | r:32 | s:32 | recovery_id:u8)
    ---------------------------------------------------- body (signed)
    timestamp:u32 | nonce:u32 | emitter_chain:u16 | emitter_address:32
    sequence:u64 | consistency_level:u8 | payload:rest

Decoding is all-or-nothing: any truncation, inconsistent signature count
or unknown version raises MalformedVAA. Decoded objects are frozen.

Usage:
    from vaa_core.vaa import decode_vaa, encode_vaa

    vaa = decode_vaa(raw)
    vaa.body.sequence
    vaa.digest()
"""

import struct
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

from ..codes import (
    ADDRESS_LEN,
    BODY_FIXED_LEN,
    HEADER_LEN,
    MIN_VAA_LEN,
    SIGNATURE_LEN,
    SUPPORTED_VAA_VERSION,
)
from ..errors import MalformedVAA
from .digest import body_digest, body_hash

_HEADER = struct.Struct(">BIB")
_SIGNATURE = struct.Struct(">B32s32sB")
_BODY = struct.Struct(">IIH32sQB")

assert _HEADER.size == HEADER_LEN
assert _SIGNATURE.size == SIGNATURE_LEN
assert _BODY.size == BODY_FIXED_LEN


def left_pad(data: bytes, length: int = ADDRESS_LEN) -> bytes:
    """Zero-left-pad an identity to a fixed-width wire address."""
    data = bytes(data)
    if len(data) > length:
        raise ValueError(f"Value of {len(data)} bytes does not fit in {length}")
    return data.rjust(length, b"\x00")


@dataclass(frozen=True)
class Signature:
    """One guardian signature. `position` indexes the guardian set."""
    position: int
    r: bytes
    s: bytes
    recovery_id: int

    @property
    def signature(self) -> bytes:
        """65-byte recoverable signature (r | s | recovery_id)."""
        return self.r + self.s + bytes([self.recovery_id])

    @classmethod
    def from_signature(cls, position: int, signature: bytes) -> "Signature":
        """Build from a 65-byte r|s|v signature."""
        if len(signature) != 65:
            raise ValueError(f"Signature must be 65 bytes, got {len(signature)}")
        return cls(
            position=position,
            r=bytes(signature[:32]),
            s=bytes(signature[32:64]),
            recovery_id=signature[64],
        )

    def to_bytes(self) -> bytes:
        return _SIGNATURE.pack(self.position, self.r, self.s, self.recovery_id)


@dataclass(frozen=True)
class Body:
    """The signed portion of a VAA."""
    timestamp: int
    nonce: int
    emitter_chain: int
    emitter_address: bytes
    sequence: int
    consistency_level: int = 0
    payload: bytes = b""

    def __post_init__(self):
        if len(self.emitter_address) != ADDRESS_LEN:
            raise ValueError(
                f"emitter_address must be {ADDRESS_LEN} bytes, got {len(self.emitter_address)}"
            )

    def to_bytes(self) -> bytes:
        return encode_body(self)

    def digest(self) -> bytes:
        return body_digest(self.to_bytes())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "nonce": self.nonce,
            "emitter_chain": self.emitter_chain,
            "emitter_address": self.emitter_address.hex(),
            "sequence": self.sequence,
            "consistency_level": self.consistency_level,
            "payload": self.payload.hex(),
        }


@dataclass(frozen=True)
class VAA:
    """A decoded attestation: header plus signed body."""
    guardian_set_index: int
    signatures: Tuple[Signature, ...]
    body: Body
    version: int = SUPPORTED_VAA_VERSION

    # Raw body bytes as received; the digest is taken over these
    _body_bytes: bytes = field(default=b"", repr=False, compare=False)

    def __post_init__(self):
        # Signatures cover _body_bytes while consumers read body
        if self._body_bytes and self._body_bytes != encode_body(self.body):
            raise ValueError("Raw body bytes do not encode the given body")

    def body_bytes(self) -> bytes:
        return self._body_bytes or encode_body(self.body)

    def digest(self) -> bytes:
        return body_digest(self.body_bytes())

    def hash(self) -> bytes:
        return body_hash(self.body_bytes())

    # Body shortcuts
    @property
    def emitter_chain(self) -> int:
        return self.body.emitter_chain

    @property
    def emitter_address(self) -> bytes:
        return self.body.emitter_address

    @property
    def sequence(self) -> int:
        return self.body.sequence

    @property
    def payload(self) -> bytes:
        return self.body.payload

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "guardian_set_index": self.guardian_set_index,
            "signatures": [
                {"position": s.position, "signature": s.signature.hex()}
                for s in self.signatures
            ],
            "body": self.body.to_dict(),
            "hash": self.hash().hex(),
        }


def encode_body(body: Body) -> bytes:
    """Serialize a body. The digest is computed over exactly these bytes."""
    try:
        fixed = _BODY.pack(
            body.timestamp,
            body.nonce,
            body.emitter_chain,
            body.emitter_address,
            body.sequence,
            body.consistency_level,
        )
    except struct.error as e:
        raise ValueError(f"Body field out of range: {e}") from e
    return fixed + bytes(body.payload)


def decode_body(data: bytes) -> Body:
    """Deserialize a body; the payload is everything after the fixed fields."""
    data = bytes(data)
    if len(data) < BODY_FIXED_LEN:
        raise MalformedVAA(f"Body too short: {len(data)} < {BODY_FIXED_LEN} bytes")
    timestamp, nonce, chain, address, sequence, consistency = _BODY.unpack_from(data, 0)
    return Body(
        timestamp=timestamp,
        nonce=nonce,
        emitter_chain=chain,
        emitter_address=address,
        sequence=sequence,
        consistency_level=consistency,
        payload=data[BODY_FIXED_LEN:],
    )


def decode_vaa(data: bytes) -> VAA:
    """
    Decode untrusted VAA bytes.

    Args:
        data: Raw attestation bytes

    Returns:
        Frozen VAA

    Raises:
        MalformedVAA: truncated input, signature count inconsistent with
            the remaining length, or unsupported version
    """
    data = bytes(data)
    if len(data) < MIN_VAA_LEN:
        raise MalformedVAA(f"VAA too short: {len(data)} < {MIN_VAA_LEN} bytes")

    version, guardian_set_index, sig_count = _HEADER.unpack_from(data, 0)
    if version != SUPPORTED_VAA_VERSION:
        raise MalformedVAA(f"Unsupported VAA version: {version}")

    body_offset = HEADER_LEN + sig_count * SIGNATURE_LEN
    if len(data) < body_offset + BODY_FIXED_LEN:
        raise MalformedVAA(
            f"Signature count {sig_count} inconsistent with length {len(data)}"
        )

    signatures = []
    for i in range(sig_count):
        position, r, s, recovery_id = _SIGNATURE.unpack_from(data, HEADER_LEN + i * SIGNATURE_LEN)
        signatures.append(Signature(position=position, r=r, s=s, recovery_id=recovery_id))

    body_bytes = data[body_offset:]
    return VAA(
        version=version,
        guardian_set_index=guardian_set_index,
        signatures=tuple(signatures),
        body=decode_body(body_bytes),
        _body_bytes=body_bytes,
    )


def encode_vaa(vaa: VAA) -> bytes:
    """Serialize a VAA (header, signatures, body)."""
    if len(vaa.signatures) > 255:
        raise ValueError(f"Too many signatures: {len(vaa.signatures)}")
    try:
        header = _HEADER.pack(vaa.version, vaa.guardian_set_index, len(vaa.signatures))
    except struct.error as e:
        raise ValueError(f"Header field out of range: {e}") from e
    sigs = b"".join(s.to_bytes() for s in vaa.signatures)
    return header + sigs + vaa.body_bytes()
