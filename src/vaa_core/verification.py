# -*- encoding: utf-8 -*-
"""
Quorum Verifier - threshold signature verification of VAAs.

Algorithm (strict, linear, single pass):
1. Reject version != 1
2. Look up the guardian set; reject unknown or expired sets
3. digest = keccak256(keccak256(body))
4. Walk signatures in array order. Positions must be strictly increasing
   (this both prevents counting one guardian twice and makes the signature
   order canonical). Recover each public key from the digest and compare
   its address to the guardian at that position.
5. Require at least quorum(set) matched signatures
6. Return the verified body and the guardian set index used

A failing VAA fails deterministically and is never partially applied.

Usage:
    from vaa_core.verification import QuorumVerifier

    verifier = QuorumVerifier(registry)
    verified = verifier.verify_bytes(raw, now=now)
    verified.body.payload
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Tuple

from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError

from .codes import SUPPORTED_VAA_VERSION
from .errors import (
    GuardianSetExpired,
    InvalidSignature,
    InvalidSignatureKey,
    MalformedVAA,
    QuorumNotMet,
    UnsortedOrDuplicateSignature,
)
from .guardians import GuardianSetRegistry
from .vaa import VAA, Body, Signature, decode_vaa

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerifiedVAA:
    """A VAA whose signatures met quorum against `guardian_set_index`."""
    vaa: VAA
    guardian_set_index: int
    digest: bytes
    signers: Tuple[int, ...]

    @property
    def body(self) -> Body:
        return self.vaa.body

    @property
    def emitter_chain(self) -> int:
        return self.vaa.body.emitter_chain

    @property
    def emitter_address(self) -> bytes:
        return self.vaa.body.emitter_address

    @property
    def sequence(self) -> int:
        return self.vaa.body.sequence

    @property
    def payload(self) -> bytes:
        return self.vaa.body.payload

    def to_dict(self) -> Dict[str, Any]:
        return {
            "guardian_set_index": self.guardian_set_index,
            "digest": self.digest.hex(),
            "signers": list(self.signers),
            "body": self.body.to_dict(),
        }


def guardian_address(public_key: keys.PublicKey) -> bytes:
    """20-byte guardian address: last 20 bytes of keccak256(pubkey)."""
    return public_key.to_canonical_address()


def recover_guardian_address(digest: bytes, signature: Signature) -> bytes:
    """
    Recover the signer's guardian address from a digest and signature.

    Raises:
        InvalidSignature: bad recovery id or unrecoverable signature
    """
    if signature.recovery_id not in (0, 1):
        raise InvalidSignature(
            f"Invalid recovery id {signature.recovery_id} at position {signature.position}"
        )
    try:
        sig = keys.Signature(vrs=(
            signature.recovery_id,
            int.from_bytes(signature.r, "big"),
            int.from_bytes(signature.s, "big"),
        ))
        public_key = sig.recover_public_key_from_msg_hash(digest)
    except (BadSignature, ValidationError, ValueError) as e:
        raise InvalidSignature(
            f"Signature recovery failed at position {signature.position}: {e}"
        ) from e
    return guardian_address(public_key)


def verify_vaa(vaa: VAA, registry: GuardianSetRegistry, now: int) -> VerifiedVAA:
    """
    Verify a decoded VAA against the guardian set registry.

    Args:
        vaa: Decoded attestation
        registry: Guardian set registry snapshot
        now: Host clock (same unit as guardian set expiration times)

    Returns:
        VerifiedVAA

    Raises:
        MalformedVAA, InvalidGuardianSetIndex, GuardianSetExpired,
        UnsortedOrDuplicateSignature, InvalidSignature, InvalidSignatureKey,
        QuorumNotMet
    """
    if vaa.version != SUPPORTED_VAA_VERSION:
        raise MalformedVAA(f"Unsupported VAA version: {vaa.version}")

    guardian_set = registry.get(vaa.guardian_set_index)
    if guardian_set.is_expired(now):
        raise GuardianSetExpired(
            f"Guardian set {guardian_set.index} expired at {guardian_set.expiration_time} (now={now})"
        )

    digest = vaa.digest()

    last_position = -1
    signers = []
    for sig in vaa.signatures:
        if sig.position <= last_position:
            raise UnsortedOrDuplicateSignature(
                f"Signature position {sig.position} does not follow {last_position}"
            )
        last_position = sig.position

        recovered = recover_guardian_address(digest, sig)
        expected = guardian_set.address_at(sig.position)
        if expected is None:
            raise InvalidSignature(
                f"Signature position {sig.position} out of range for "
                f"guardian set {guardian_set.index} ({len(guardian_set.addresses)} guardians)"
            )
        if recovered != expected:
            raise InvalidSignatureKey(
                f"Signature at position {sig.position} recovered {recovered.hex()}, "
                f"expected {expected.hex()}"
            )
        logger.debug(f"Guardian {sig.position} signature valid for {digest.hex()[:16]}...")
        signers.append(sig.position)

    required = guardian_set.quorum
    if len(signers) < required:
        raise QuorumNotMet(
            f"{len(signers)} valid signatures, quorum for guardian set "
            f"{guardian_set.index} is {required}"
        )

    return VerifiedVAA(
        vaa=vaa,
        guardian_set_index=guardian_set.index,
        digest=digest,
        signers=tuple(signers),
    )


class QuorumVerifier:
    """Verifier bound to a guardian set registry."""

    def __init__(self, registry: GuardianSetRegistry):
        self._registry = registry

    @property
    def registry(self) -> GuardianSetRegistry:
        return self._registry

    def verify(self, vaa: VAA, now: int) -> VerifiedVAA:
        return verify_vaa(vaa, self._registry, now)

    def verify_bytes(self, data: bytes, now: int) -> VerifiedVAA:
        """Decode then verify raw VAA bytes."""
        return verify_vaa(decode_vaa(data), self._registry, now)
