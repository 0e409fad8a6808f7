# -*- encoding: utf-8 -*-
"""
VAACore - host-facing entry points.

Inbound:
    bytes -> decode -> quorum verify (guardian set registry)
          -> replay claim -> payload consumer | governance processor

Outbound:
    publish_message -> fee check -> sequence -> body bytes + digest
    (the host emits these for the guardian network to observe and sign)

Every inbound operation runs in one StateStore transaction: if any step
raises, including the payload consumer, nothing is committed.

Usage:
    from vaa_core import VAACore, CoreConfig

    core = VAACore(CoreConfig(chain_id=2))
    core.initialize(0, guardian_addresses, now=now)

    core.submit_governance_vaa(raw_governance_vaa, now=now)

    delivered = core.receive_message(raw_vaa, now=now, consumer=token_bridge.complete_transfer)

    published = core.publish_message(b"my-contract", payload, nonce=7, now=now)
"""

import dataclasses
import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from .accounts import ResourceHandle
from .codes import ADDRESS_LEN, GovernanceModule
from .config import CoreConfig, get_config
from .errors import EmitterNotRegistered, InsufficientFee, ReservedEmitter
from .governance import GovernanceProcessor, GovernanceResult, verify_upgrade
from .guardians import GuardianSet
from .replay import ClaimKey
from .state import CoreState, FeeTransfer, StateStore
from .vaa import Body, body_digest, decode_vaa, encode_body
from .verification import VerifiedVAA, verify_vaa

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveredMessage:
    """Verified payload plus metadata handed to a payload consumer."""
    payload: bytes
    emitter_chain: int
    emitter_address: bytes
    sequence: int
    guardian_set_index: int
    message_id: str
    digest: bytes
    result: Any = None


@dataclass(frozen=True)
class PublishedMessage:
    """An outbound message ready for the host's event log."""
    emitter: bytes
    emitter_address: bytes
    sequence: int
    nonce: int
    body: Body
    body_bytes: bytes
    digest: bytes
    fee_paid: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "emitter": self.emitter.hex(),
            "emitter_address": self.emitter_address.hex(),
            "sequence": self.sequence,
            "nonce": self.nonce,
            "body": self.body_bytes.hex(),
            "digest": self.digest.hex(),
            "fee_paid": self.fee_paid,
        }


PayloadConsumer = Callable[[DeliveredMessage], Any]


def emitter_address_for(emitter: bytes) -> bytes:
    """32-byte emitter address: identity as-is if 32 bytes, else its SHA-256."""
    emitter = bytes(emitter)
    if len(emitter) == ADDRESS_LEN:
        return emitter
    return hashlib.sha256(emitter).digest()


class VAACore:
    """Attestation verification, replay protection, governance and publishing."""

    def __init__(self, config: Optional[CoreConfig] = None, store: Optional[StateStore] = None):
        self._config = config or get_config()
        if store is None:
            store = StateStore(CoreState.empty(
                grace_period=self._config.guardian_set_grace_period,
                message_fee=self._config.message_fee,
                program=self._config.program_id,
            ))
        self._store = store
        self._governance = GovernanceProcessor(self._config)

    @property
    def config(self) -> CoreConfig:
        return self._config

    @property
    def store(self) -> StateStore:
        return self._store

    # ------------------------------------------------------------------
    # Genesis
    # ------------------------------------------------------------------

    def initialize(self, index: int, addresses: Sequence[bytes], now: int = 0) -> GuardianSet:
        """Install the genesis guardian set (once)."""
        with self._store.transaction() as state:
            return state.registry.initialize(index, addresses, now)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def parse_and_verify_vaa(self, data: bytes, now: int) -> VerifiedVAA:
        """Decode and verify without consuming anything."""
        vaa = decode_vaa(data)
        with self._store.read() as state:
            return verify_vaa(vaa, state.registry, now)

    def submit_governance_vaa(
        self,
        data: bytes,
        now: int,
        module: Optional[GovernanceModule] = None,
    ) -> GovernanceResult:
        """Verify, claim and apply a governance VAA atomically."""
        vaa = decode_vaa(data)
        with self._store.transaction() as state:
            verified = verify_vaa(vaa, state.registry, now)
            return self._governance.process(verified, state, now, module=module)

    def receive_message(
        self,
        data: bytes,
        now: int,
        consumer: Optional[PayloadConsumer] = None,
        require_registered_emitter: bool = False,
        claim_handle: Optional[ResourceHandle] = None,
    ) -> DeliveredMessage:
        """
        Verify a VAA, claim it, and hand its payload to `consumer`.

        The claim and the consumer's effect commit together: if the
        consumer raises, the claim is rolled back and the error propagates.
        Attestations from the governance emitter are refused here; they
        share the replay key space and are only consumed by
        submit_governance_vaa.

        Args:
            data: Raw VAA bytes
            now: Host clock
            consumer: Payload interpreter; its return value lands in `result`
            require_registered_emitter: Only accept emitters bound by RegisterChain
            claim_handle: Host resource holding the claim marker, if any

        Raises:
            Any verification error, ReservedEmitter, EmitterNotRegistered, AlreadyClaimed,
            ResourceValidationError, or whatever the consumer raises
        """
        vaa = decode_vaa(data)
        with self._store.transaction() as state:
            verified = verify_vaa(vaa, state.registry, now)
            if self._config.is_governance_emitter(
                verified.emitter_chain, verified.emitter_address
            ):
                raise ReservedEmitter(
                    "Governance VAAs must be submitted via submit_governance_vaa"
                )
            if require_registered_emitter and not state.is_registered_emitter(
                verified.emitter_chain, verified.emitter_address
            ):
                raise EmitterNotRegistered(
                    f"Emitter {verified.emitter_chain}/{verified.emitter_address.hex()} "
                    f"is not registered"
                )

            key = ClaimKey.for_body(verified.body)
            state.replay.claim(key, now, handle=claim_handle, digest=verified.digest)

            message = DeliveredMessage(
                payload=verified.payload,
                emitter_chain=verified.emitter_chain,
                emitter_address=verified.emitter_address,
                sequence=verified.sequence,
                guardian_set_index=verified.guardian_set_index,
                message_id=str(key),
                digest=verified.digest,
            )
            if consumer is not None:
                message = dataclasses.replace(message, result=consumer(message))

        logger.info(f"Delivered {message.message_id} (guardian set {message.guardian_set_index})")
        return message

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def publish_message(
        self,
        emitter: bytes,
        payload: bytes,
        nonce: int,
        now: int,
        fee_paid: int = 0,
        consistency_level: int = 0,
    ) -> PublishedMessage:
        """
        Sequence an outbound message and build its body.

        Raises:
            InsufficientFee: fee_paid below the current message fee
        """
        emitter = bytes(emitter)
        with self._store.transaction() as state:
            if fee_paid < state.message_fee:
                raise InsufficientFee(
                    f"Message fee is {state.message_fee}, {fee_paid} provided"
                )
            state.credit(fee_paid)
            sequence = state.sequencer.next_sequence(emitter)

            body = Body(
                timestamp=now,
                nonce=nonce,
                emitter_chain=self._config.chain_id,
                emitter_address=emitter_address_for(emitter),
                sequence=sequence,
                consistency_level=consistency_level,
                payload=bytes(payload),
            )
            body_bytes = encode_body(body)

        published = PublishedMessage(
            emitter=emitter,
            emitter_address=body.emitter_address,
            sequence=sequence,
            nonce=nonce,
            body=body,
            body_bytes=body_bytes,
            digest=body_digest(body_bytes),
            fee_paid=fee_paid,
        )
        logger.info(f"Published {self._config.chain_id}/{body.emitter_address.hex()}/{sequence}")
        return published

    # ------------------------------------------------------------------
    # Upgrades
    # ------------------------------------------------------------------

    def verify_upgrade(self, code: bytes, module: GovernanceModule = GovernanceModule.CORE) -> bytes:
        """Check replacement code against the governance-approved hash."""
        with self._store.read() as state:
            return verify_upgrade(state, code, module)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def guardian_set_index(self) -> int:
        with self._store.read() as state:
            return state.registry.current_index

    def guardian_set(self, index: Optional[int] = None) -> GuardianSet:
        with self._store.read() as state:
            if index is None:
                return state.registry.active()
            return state.registry.get(index)

    @property
    def message_fee(self) -> int:
        with self._store.read() as state:
            return state.message_fee

    @property
    def fee_balance(self) -> int:
        with self._store.read() as state:
            return state.bank

    def fee_transfers(self) -> List[FeeTransfer]:
        with self._store.read() as state:
            return list(state.fee_transfers)

    def upgrade_target(self, module: GovernanceModule = GovernanceModule.CORE) -> Optional[bytes]:
        with self._store.read() as state:
            return state.upgrade_targets.get(module.value)

    def is_claimed(self, emitter_chain: int, emitter_address: bytes, sequence: int) -> bool:
        with self._store.read() as state:
            return state.replay.is_claimed(ClaimKey(emitter_chain, bytes(emitter_address), sequence))

    def is_registered_emitter(self, chain: int, address: bytes) -> bool:
        with self._store.read() as state:
            return state.is_registered_emitter(chain, address)

    def next_sequence(self, emitter: bytes) -> int:
        """Sequence the next publish from `emitter` would receive."""
        with self._store.read() as state:
            return state.sequencer.peek(emitter)
