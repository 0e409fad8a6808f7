# -*- encoding: utf-8 -*-
"""
Replay Guard - each (emitter_chain, emitter_address, sequence) is consumed once.

Replay protection keys purely on emitter identity and sequence, never on
payload contents: a second claim for the same key fails even when the
payload bytes differ.

Claims must be committed together with the effect of the attestation.
Use the StateStore transaction (vaa_core.state) to get that guarantee;
the guard alone only provides the at-most-once check.

Usage:
    guard = ReplayGuard()
    key = ClaimKey.for_body(verified.body)
    guard.claim(key, now=now)      # ok
    guard.claim(key, now=now)      # AlreadyClaimed
"""

import logging
import struct
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .accounts import DeriveFn, ResourceHandle, derive, derived_from, mutable, validate
from .errors import AlreadyClaimed
from .journal import Journal
from .vaa import Body

logger = logging.getLogger(__name__)

_KEY = struct.Struct(">H32sQ")

CLAIM_SEED = b"claim"


@dataclass(frozen=True)
class ClaimKey:
    """Replay protection key."""
    emitter_chain: int
    emitter_address: bytes
    sequence: int

    @classmethod
    def for_body(cls, body: Body) -> "ClaimKey":
        return cls(
            emitter_chain=body.emitter_chain,
            emitter_address=body.emitter_address,
            sequence=body.sequence,
        )

    def to_bytes(self) -> bytes:
        return _KEY.pack(self.emitter_chain, self.emitter_address, self.sequence)

    def __str__(self) -> str:
        """Canonical message id: chain/emitter/sequence."""
        return f"{self.emitter_chain}/{self.emitter_address.hex()}/{self.sequence}"

    @classmethod
    def parse(cls, message_id: str) -> "ClaimKey":
        """Parse a chain/emitter/sequence message id."""
        try:
            chain, emitter, sequence = message_id.split("/")
            return cls(int(chain), bytes.fromhex(emitter), int(sequence))
        except ValueError as e:
            raise ValueError(f"Invalid message id: {message_id}") from e


@dataclass
class ClaimRecord:
    """A consumed key."""
    key: ClaimKey
    claimed_at: int
    digest: bytes = b""


class ReplayGuard:
    """
    Set of consumed claim keys.

    When a host supplies a resource handle for the claim (its own storage
    slot for the marker), the handle must be writable and derived from the
    claim key; the identity is checked with derive().
    """

    def __init__(self, program: bytes = b"", derive_fn: DeriveFn = derive):
        self._claims: Dict[ClaimKey, ClaimRecord] = {}
        self._lock = threading.Lock()
        self._program = program
        self._derive = derive_fn
        self.journal: Optional[Journal] = None

    def claim_identity(self, key: ClaimKey) -> bytes:
        """Derived resource identity holding the claim marker for `key`."""
        return self._derive([CLAIM_SEED, key.to_bytes()], self._program)

    def is_claimed(self, key: ClaimKey) -> bool:
        with self._lock:
            return key in self._claims

    def get(self, key: ClaimKey) -> Optional[ClaimRecord]:
        with self._lock:
            return self._claims.get(key)

    def claim(
        self,
        key: ClaimKey,
        now: int,
        handle: Optional[ResourceHandle] = None,
        digest: bytes = b"",
    ) -> ClaimRecord:
        """
        Mark `key` consumed.

        Raises:
            AlreadyClaimed: key was consumed before
            ResourceValidationError: handle is not the writable claim resource
        """
        if handle is not None:
            validate(
                handle,
                mutable(),
                derived_from([CLAIM_SEED, key.to_bytes()], self._program, self._derive),
            )

        with self._lock:
            if key in self._claims:
                logger.warning(f"Replay rejected: {key} already claimed")
                raise AlreadyClaimed(f"Message {key} already consumed")
            record = ClaimRecord(key=key, claimed_at=now, digest=digest)
            self._claims[key] = record
        if self.journal is not None:
            self.journal.record(lambda: self._unclaim(key))

        logger.debug(f"Claimed {key}")
        return record

    def _unclaim(self, key: ClaimKey) -> None:
        with self._lock:
            self._claims.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._claims)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def clone(self) -> "ReplayGuard":
        other = ReplayGuard(program=self._program, derive_fn=self._derive)
        with self._lock:
            other._claims = dict(self._claims)
        return other

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            records = list(self._claims.values())
        return {
            "program": self._program.hex(),
            "claims": [
                {"id": str(r.key), "claimed_at": r.claimed_at, "digest": r.digest.hex()}
                for r in records
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], derive_fn: DeriveFn = derive) -> "ReplayGuard":
        guard = cls(program=bytes.fromhex(data.get("program", "")), derive_fn=derive_fn)
        for item in data.get("claims", []):
            key = ClaimKey.parse(item["id"])
            guard._claims[key] = ClaimRecord(
                key=key,
                claimed_at=item.get("claimed_at", 0),
                digest=bytes.fromhex(item.get("digest", "")),
            )
        return guard
