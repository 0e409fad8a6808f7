# -*- encoding: utf-8 -*-
"""
Guardian Set Registry - versioned, append-only guardian sets.

Provides:
- Thread-safe storage of every guardian set ever installed, keyed by index
- Genesis installation (exactly once)
- Rotation to index current+1, expiring the previous set after a grace period
- Quorum arithmetic

Invariants:
- Indexes are allocated strictly sequentially (no gaps, no reuse).
- At most one set has expiration_time == 0 (the active set).
- Superseded sets stay verifiable until `expiration_time`; sets are never
  deleted.

Usage:
    registry = GuardianSetRegistry()
    registry.initialize(0, [addr0, addr1, addr2], now=now)

    # Only ever called from a verified governance action
    registry.rotate(1, new_addresses, now=now)

    registry.get(0).is_expired(now + registry.grace_period)  # True
"""

import dataclasses
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..codes import DEFAULT_GUARDIAN_SET_GRACE_PERIOD, GUARDIAN_ADDRESS_LEN
from ..errors import (
    InvalidGovernanceSetIndex,
    InvalidGuardianSet,
    InvalidGuardianSetIndex,
    RegistryAlreadyInitialized,
)
from ..journal import Journal

logger = logging.getLogger(__name__)

MAX_GUARDIANS = 255


def quorum(num_guardians: int) -> int:
    """Minimum distinct valid signatures: floor(2n/3) + 1."""
    return num_guardians * 2 // 3 + 1


@dataclass(frozen=True)
class GuardianSet:
    """
    An indexed, ordered list of 20-byte guardian addresses.

    A guardian's position in `addresses` is the position referenced by its
    signatures. expiration_time == 0 means active (never expires). Sets are
    immutable; rotation replaces the superseded set with an expired copy.
    """
    index: int
    addresses: Tuple[bytes, ...]
    expiration_time: int = 0
    creation_time: int = 0

    @property
    def is_active(self) -> bool:
        return self.expiration_time == 0

    @property
    def quorum(self) -> int:
        return quorum(len(self.addresses))

    def is_expired(self, now: int) -> bool:
        return self.expiration_time != 0 and self.expiration_time <= now

    def address_at(self, position: int) -> Optional[bytes]:
        if 0 <= position < len(self.addresses):
            return self.addresses[position]
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "addresses": [a.hex() for a in self.addresses],
            "expiration_time": self.expiration_time,
            "creation_time": self.creation_time,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GuardianSet":
        return cls(
            index=data["index"],
            addresses=tuple(bytes.fromhex(a) for a in data["addresses"]),
            expiration_time=data.get("expiration_time", 0),
            creation_time=data.get("creation_time", 0),
        )


def _validate_addresses(addresses: Sequence[bytes]) -> Tuple[bytes, ...]:
    if not addresses:
        raise InvalidGuardianSet("Guardian set is empty")
    if len(addresses) > MAX_GUARDIANS:
        raise InvalidGuardianSet(f"Guardian set too large: {len(addresses)} > {MAX_GUARDIANS}")
    for i, addr in enumerate(addresses):
        if len(addr) != GUARDIAN_ADDRESS_LEN:
            raise InvalidGuardianSet(
                f"Guardian {i} address must be {GUARDIAN_ADDRESS_LEN} bytes, got {len(addr)}"
            )
    return tuple(bytes(a) for a in addresses)


class GuardianSetRegistry:
    """
    Ordered registry of guardian sets.

    `rotate()` is the only mutator after genesis. Hosts must reach it
    exclusively through a verified, claimed governance action.

    When `journal` is set (CoreState wires its own), genesis and rotation
    record their inverse so an enclosing transaction can undo them.
    """

    def __init__(self, grace_period: int = DEFAULT_GUARDIAN_SET_GRACE_PERIOD):
        self._sets: Dict[int, GuardianSet] = {}
        self._current_index: Optional[int] = None
        self._lock = threading.Lock()
        self.grace_period = grace_period
        self.journal: Optional[Journal] = None

    # ------------------------------------------------------------------
    # Genesis
    # ------------------------------------------------------------------

    def initialize(self, index: int, addresses: Sequence[bytes], now: int = 0) -> GuardianSet:
        """Install the first guardian set. Allowed exactly once."""
        addresses = _validate_addresses(addresses)
        with self._lock:
            if self._current_index is not None:
                raise RegistryAlreadyInitialized(
                    f"Guardian set registry already initialized at index {self._current_index}"
                )
            gs = GuardianSet(index=index, addresses=addresses, creation_time=now)
            self._sets[index] = gs
            self._current_index = index
        self._record(lambda: self._restore(None, {index: None}))

        logger.info(f"Initialized guardian set {index} with {len(addresses)} guardians")
        return gs

    @property
    def initialized(self) -> bool:
        with self._lock:
            return self._current_index is not None

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    @property
    def current_index(self) -> int:
        with self._lock:
            if self._current_index is None:
                raise InvalidGuardianSetIndex("Guardian set registry not initialized")
            return self._current_index

    def get(self, index: int) -> GuardianSet:
        """Get a guardian set by index (raises InvalidGuardianSetIndex)."""
        with self._lock:
            gs = self._sets.get(index)
        if gs is None:
            raise InvalidGuardianSetIndex(f"Unknown guardian set index: {index}")
        return gs

    def active(self) -> GuardianSet:
        return self.get(self.current_index)

    def list_all(self) -> List[GuardianSet]:
        with self._lock:
            return [self._sets[i] for i in sorted(self._sets)]

    def active_sets(self) -> List[GuardianSet]:
        """Sets with expiration_time == 0. Never more than one."""
        return [gs for gs in self.list_all() if gs.is_active]

    # ------------------------------------------------------------------
    # Rotation
    # ------------------------------------------------------------------

    def rotate(self, new_index: int, new_addresses: Sequence[bytes], now: int) -> GuardianSet:
        """
        Install guardian set `new_index`, superseding the active set.

        The previous set expires at `now + grace_period`. Expiry, insertion
        and index advance are committed together under the lock.

        Raises:
            InvalidGovernanceSetIndex: new_index != current + 1
            InvalidGuardianSet: empty or malformed address list
        """
        addresses = _validate_addresses(new_addresses)
        with self._lock:
            if self._current_index is None:
                raise InvalidGuardianSetIndex("Guardian set registry not initialized")
            if new_index != self._current_index + 1:
                raise InvalidGovernanceSetIndex(
                    f"Guardian set rotation must go {self._current_index} -> "
                    f"{self._current_index + 1}, got {new_index}"
                )
            previous = self._sets[self._current_index]
            expires_at = now + self.grace_period
            new_set = GuardianSet(index=new_index, addresses=addresses, creation_time=now)

            self._sets[previous.index] = dataclasses.replace(previous, expiration_time=expires_at)
            self._sets[new_index] = new_set
            self._current_index = new_index
        self._record(lambda: self._restore(previous.index, {previous.index: previous, new_index: None}))

        logger.info(
            f"Rotated guardian set {previous.index} -> {new_index} "
            f"({len(addresses)} guardians); set {previous.index} expires at {expires_at}"
        )
        return new_set

    def _record(self, undo) -> None:
        if self.journal is not None:
            self.journal.record(undo)

    def _restore(self, current_index: Optional[int], sets: Dict[int, Optional[GuardianSet]]) -> None:
        """Put back `sets` (None removes the index) and the current index."""
        with self._lock:
            for index, gs in sets.items():
                if gs is None:
                    self._sets.pop(index, None)
                else:
                    self._sets[index] = gs
            self._current_index = current_index

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def clone(self) -> "GuardianSetRegistry":
        other = GuardianSetRegistry(grace_period=self.grace_period)
        with self._lock:
            # GuardianSet is frozen, so the entries can be shared
            other._sets = dict(self._sets)
            other._current_index = self._current_index
        return other

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            current_index = self._current_index
            sets = [self._sets[i] for i in sorted(self._sets)]
        return {
            "grace_period": self.grace_period,
            "current_index": current_index,
            "sets": [gs.to_dict() for gs in sets],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GuardianSetRegistry":
        registry = cls(grace_period=data.get("grace_period", DEFAULT_GUARDIAN_SET_GRACE_PERIOD))
        for item in data.get("sets", []):
            gs = GuardianSet.from_dict(item)
            registry._sets[gs.index] = gs
        registry._current_index = data.get("current_index")
        return registry
