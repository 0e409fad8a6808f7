# -*- encoding: utf-8 -*-
"""
Core state and transactional store.

All mutable protocol state lives in one CoreState value owned by a
StateStore. Nothing is process-global: verification logic receives the
state it needs, so it can be tested against injected snapshots.

Atomicity:
    StateStore.transaction() holds the store lock and yields the live
    state. Every mutator records its inverse in the state's Journal; if the
    block raises, the recorded changes are undone newest-first. A
    verify-then-claim for one attestation is therefore atomic with respect
    to any other attestation racing on the same replay key, and a claim is
    never committed without its effect (or vice versa).

    Transactions nest. A consumer that delivers another attestation from
    inside receive_message opens an inner savepoint: its claim survives the
    inner commit and is undone only if the outer transaction fails.

    Mutate state only through the methods below (or the registry, replay
    guard and sequencer). Direct attribute assignment is not journaled.

Usage:
    store = StateStore(CoreState.empty())

    with store.transaction() as state:
        verified = verify_vaa(vaa, state.registry, now)
        state.replay.claim(ClaimKey.for_body(verified.body), now)
        apply_effect(state, verified)      # raising here rolls back the claim

    save_state(store, Path("state.json"))
"""

import json
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .accounts import DeriveFn, derive
from .codes import DEFAULT_GUARDIAN_SET_GRACE_PERIOD
from .guardians import GuardianSetRegistry
from .journal import Journal
from .replay import ReplayGuard
from .sequencer import EmitterSequencer

logger = logging.getLogger(__name__)


@dataclass
class FeeTransfer:
    """A governance-approved payout from the fee bank, executed by the host."""
    amount: int
    recipient: bytes
    message_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "amount": self.amount,
            "recipient": self.recipient.hex(),
            "message_id": self.message_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeeTransfer":
        return cls(
            amount=int(data["amount"]),
            recipient=bytes.fromhex(data["recipient"]),
            message_id=data.get("message_id", ""),
        )


@dataclass
class CoreState:
    """Everything the core mutates."""
    registry: GuardianSetRegistry
    replay: ReplayGuard
    sequencer: EmitterSequencer
    message_fee: int = 0
    bank: int = 0
    # module name -> 32-byte code target recorded by ContractUpgrade
    upgrade_targets: Dict[str, bytes] = field(default_factory=dict)
    # (chain, emitter address) -> registration time
    registered_emitters: Dict[Tuple[int, bytes], int] = field(default_factory=dict)
    fee_transfers: List[FeeTransfer] = field(default_factory=list)
    journal: Journal = field(default_factory=Journal, repr=False, compare=False)

    def __post_init__(self):
        self.registry.journal = self.journal
        self.replay.journal = self.journal
        self.sequencer.journal = self.journal

    @classmethod
    def empty(
        cls,
        grace_period: int = DEFAULT_GUARDIAN_SET_GRACE_PERIOD,
        message_fee: int = 0,
        program: bytes = b"",
        derive_fn: DeriveFn = derive,
    ) -> "CoreState":
        return cls(
            registry=GuardianSetRegistry(grace_period=grace_period),
            replay=ReplayGuard(program=program, derive_fn=derive_fn),
            sequencer=EmitterSequencer(),
            message_fee=message_fee,
        )

    def is_registered_emitter(self, chain: int, address: bytes) -> bool:
        return (chain, bytes(address)) in self.registered_emitters

    def registered_chains(self) -> List[int]:
        return sorted({chain for chain, _ in self.registered_emitters})

    # ------------------------------------------------------------------
    # Journaled mutators
    # ------------------------------------------------------------------

    def set_message_fee(self, fee: int) -> None:
        previous = self.message_fee
        self.message_fee = fee
        self.journal.record(lambda: setattr(self, "message_fee", previous))

    def credit(self, amount: int) -> None:
        """Add collected fees to the bank."""
        self.bank += amount
        self.journal.record(lambda: setattr(self, "bank", self.bank - amount))

    def debit(self, amount: int) -> None:
        """Remove `amount` from the bank. Callers check the balance first."""
        self.bank -= amount
        self.journal.record(lambda: setattr(self, "bank", self.bank + amount))

    def set_upgrade_target(self, module: str, target: bytes) -> None:
        previous = self.upgrade_targets.get(module)
        self.upgrade_targets[module] = target
        self.journal.record(lambda: _restore_item(self.upgrade_targets, module, previous))

    def register_emitter(self, chain: int, address: bytes, now: int) -> None:
        key = (chain, bytes(address))
        previous = self.registered_emitters.get(key)
        self.registered_emitters[key] = now
        self.journal.record(lambda: _restore_item(self.registered_emitters, key, previous))

    def record_fee_transfer(self, transfer: FeeTransfer) -> None:
        self.fee_transfers.append(transfer)
        self.journal.record(self.fee_transfers.pop)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def clone(self) -> "CoreState":
        return CoreState(
            registry=self.registry.clone(),
            replay=self.replay.clone(),
            sequencer=self.sequencer.clone(),
            message_fee=self.message_fee,
            bank=self.bank,
            upgrade_targets=dict(self.upgrade_targets),
            registered_emitters=dict(self.registered_emitters),
            fee_transfers=list(self.fee_transfers),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "registry": self.registry.to_dict(),
            "replay": self.replay.to_dict(),
            "sequencer": self.sequencer.to_dict(),
            "message_fee": self.message_fee,
            "bank": self.bank,
            "upgrade_targets": {m: t.hex() for m, t in self.upgrade_targets.items()},
            "registered_emitters": [
                {"chain": chain, "emitter": emitter.hex(), "registered_at": at}
                for (chain, emitter), at in sorted(self.registered_emitters.items())
            ],
            "fee_transfers": [t.to_dict() for t in self.fee_transfers],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], derive_fn: DeriveFn = derive) -> "CoreState":
        return cls(
            registry=GuardianSetRegistry.from_dict(data.get("registry", {})),
            replay=ReplayGuard.from_dict(data.get("replay", {}), derive_fn=derive_fn),
            sequencer=EmitterSequencer.from_dict(data.get("sequencer", {})),
            message_fee=int(data.get("message_fee", 0)),
            bank=int(data.get("bank", 0)),
            upgrade_targets={
                m: bytes.fromhex(t) for m, t in data.get("upgrade_targets", {}).items()
            },
            registered_emitters={
                (int(r["chain"]), bytes.fromhex(r["emitter"])): int(r.get("registered_at", 0))
                for r in data.get("registered_emitters", [])
            },
            fee_transfers=[FeeTransfer.from_dict(t) for t in data.get("fee_transfers", [])],
        )


class StateStore:
    """
    Single owner of CoreState with transactional commit.

    The lock is reentrant so a consumer running inside a transaction may
    read state or open a nested transaction. Reads inside a transaction see
    its uncommitted changes.
    """

    def __init__(self, state: Optional[CoreState] = None):
        self._state = state if state is not None else CoreState.empty()
        self._lock = threading.RLock()

    @contextmanager
    def read(self) -> Iterator[CoreState]:
        """Read state under the lock. Do not mutate."""
        with self._lock:
            yield self._state

    def snapshot(self) -> CoreState:
        """Detached copy of the current state."""
        with self._lock:
            return self._state.clone()

    @contextmanager
    def transaction(self) -> Iterator[CoreState]:
        """
        Yield the live state; undo its journaled changes if the block raises.

        Nested transactions are savepoints within the enclosing one.
        """
        with self._lock:
            journal = self._state.journal
            mark = journal.begin()
            try:
                yield self._state
            except BaseException:
                journal.rollback(mark)
                raise
            finally:
                journal.end()

    def replace(self, state: CoreState) -> None:
        with self._lock:
            if self._state.journal.active:
                raise RuntimeError("Cannot replace state inside a transaction")
            self._state = state


def _restore_item(mapping: Dict[Any, Any], key: Any, previous: Any) -> None:
    """Put back `previous` under `key`, or remove `key` when it was absent."""
    if previous is None:
        mapping.pop(key, None)
    else:
        mapping[key] = previous


def save_state(store: StateStore, path: Path) -> None:
    """Persist committed state to JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with store.read() as state:
        data = state.to_dict()
    path.write_text(json.dumps(data, indent=2, sort_keys=True))
    logger.debug(f"Saved core state to {path}")


def load_state(path: Path, derive_fn: DeriveFn = derive) -> Optional[StateStore]:
    """
    Load a store from JSON. Returns None if the file does not exist;
    corrupt files raise.
    """
    path = Path(path)
    if not path.exists():
        return None
    data = json.loads(path.read_text())
    return StateStore(CoreState.from_dict(data, derive_fn=derive_fn))
