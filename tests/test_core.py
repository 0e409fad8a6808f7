# -*- encoding: utf-8 -*-
"""
End-to-end tests for VAACore.

Verifies:
- Publish: fee check, per-emitter sequencing, body construction
- Receive: verify, claim and consume atomically
- A consumer failure rolls back the claim
- Replay rejection regardless of payload
- Optional registered-emitter enforcement
- Governance attestations are refused on the ordinary delivery path
- A consumer may deliver another attestation inside its own delivery
"""

import hashlib

import pytest

from vaa_core import (
    AlreadyClaimed,
    Chain,
    CoreConfig,
    EmitterNotRegistered,
    InsufficientFee,
    QuorumNotMet,
    RegisterChain,
    RegistryAlreadyInitialized,
    ReservedEmitter,
    ResourceValidationError,
    SetMessageFee,
    VAACore,
    body_digest,
)
from vaa_core.accounts import ResourceHandle, derive
from vaa_core.core import emitter_address_for
from vaa_core.mock import MockGuardians
from vaa_core.replay import ClaimKey
from vaa_core.state import StateStore, load_state, save_state
from vaa_core.vaa import Body, decode_vaa, left_pad

NOW = 1_700_000_000
REMOTE = left_pad(b"\x77" * 20)


def remote_body(sequence=1, payload=b"mint 100") -> Body:
    return Body(
        timestamp=NOW,
        nonce=0,
        emitter_chain=Chain.NEAR,
        emitter_address=REMOTE,
        sequence=sequence,
        consistency_level=1,
        payload=payload,
    )


class CoreTestBase:

    def setup_method(self):
        self.config = CoreConfig(chain_id=Chain.ETHEREUM)
        self.guardians = MockGuardians(4)
        self.core = VAACore(self.config)
        self.core.initialize(0, self.guardians.addresses, now=NOW)
        self.governance_sequence = 0

    def govern(self, action):
        self.governance_sequence += 1
        raw = self.guardians.governance_vaa(
            action, sequence=self.governance_sequence, now=NOW, config=self.config,
        )
        return self.core.submit_governance_vaa(raw, now=NOW)


class TestInitialize(CoreTestBase):

    def test_genesis_once(self):
        assert self.core.guardian_set_index == 0
        with pytest.raises(RegistryAlreadyInitialized):
            self.core.initialize(1, self.guardians.addresses, now=NOW)


class TestPublish(CoreTestBase):

    def test_emitter_address(self):
        assert emitter_address_for(b"token-bridge") == hashlib.sha256(b"token-bridge").digest()
        assert emitter_address_for(b"\x01" * 32) == b"\x01" * 32

    def test_publish(self):
        published = self.core.publish_message(b"app", b"payload", nonce=7, now=NOW)

        assert published.sequence == 1
        assert published.nonce == 7
        assert published.emitter_address == hashlib.sha256(b"app").digest()
        assert published.body.emitter_chain == Chain.ETHEREUM
        assert published.body.payload == b"payload"
        assert published.body_bytes == published.body.to_bytes()
        assert published.digest == body_digest(published.body_bytes)

    def test_sequences_per_emitter(self):
        assert self.core.publish_message(b"a", b"", nonce=0, now=NOW).sequence == 1
        assert self.core.publish_message(b"a", b"", nonce=0, now=NOW).sequence == 2
        assert self.core.publish_message(b"b", b"", nonce=0, now=NOW).sequence == 1
        assert self.core.next_sequence(b"a") == 3

    def test_insufficient_fee(self):
        self.govern(SetMessageFee(fee=10))

        with pytest.raises(InsufficientFee):
            self.core.publish_message(b"app", b"x", nonce=0, now=NOW, fee_paid=9)

        assert self.core.next_sequence(b"app") == 1
        assert self.core.fee_balance == 0

        self.core.publish_message(b"app", b"x", nonce=0, now=NOW, fee_paid=10)
        assert self.core.fee_balance == 10

    def test_invalid_field_rolls_back(self):
        with pytest.raises(ValueError):
            self.core.publish_message(b"app", b"x", nonce=2 ** 32, now=NOW)
        assert self.core.next_sequence(b"app") == 1

    def test_published_body_verifies_elsewhere(self):
        """Guardians sign the published body; another chain accepts it."""
        published = self.core.publish_message(b"app", b"hello", nonce=1, now=NOW)
        raw = self.guardians.sign(published.body_bytes)

        destination = VAACore(CoreConfig(chain_id=Chain.NEAR))
        destination.initialize(0, self.guardians.addresses, now=NOW)
        delivered = destination.receive_message(raw, now=NOW)

        assert delivered.payload == b"hello"
        assert delivered.emitter_chain == Chain.ETHEREUM
        assert delivered.emitter_address == published.emitter_address
        assert delivered.digest == published.digest

    def test_to_dict(self):
        published = self.core.publish_message(b"app", b"hi", nonce=1, now=NOW)
        data = published.to_dict()
        assert data["sequence"] == 1
        assert data["digest"] == published.digest.hex()


class TestReceive(CoreTestBase):

    def test_receive(self):
        delivered = self.core.receive_message(self.guardians.sign(remote_body()), now=NOW)

        assert delivered.payload == b"mint 100"
        assert delivered.sequence == 1
        assert delivered.guardian_set_index == 0
        assert delivered.message_id == f"15/{REMOTE.hex()}/1"
        assert self.core.is_claimed(Chain.NEAR, REMOTE, 1)

    def test_consumer_result(self):
        seen = []

        def consumer(message):
            seen.append(message.payload)
            return len(message.payload)

        delivered = self.core.receive_message(
            self.guardians.sign(remote_body()), now=NOW, consumer=consumer,
        )
        assert seen == [b"mint 100"]
        assert delivered.result == 8

    def test_replay_rejected(self):
        raw = self.guardians.sign(remote_body())
        self.core.receive_message(raw, now=NOW)
        with pytest.raises(AlreadyClaimed):
            self.core.receive_message(raw, now=NOW)

    def test_replay_with_different_payload(self):
        """Replay protection keys on emitter and sequence, not payload."""
        self.core.receive_message(self.guardians.sign(remote_body(payload=b"mint 100")), now=NOW)
        with pytest.raises(AlreadyClaimed):
            self.core.receive_message(
                self.guardians.sign(remote_body(payload=b"mint 999")), now=NOW,
            )

    def test_consumer_failure_rolls_back_claim(self):
        raw = self.guardians.sign(remote_body())

        def failing(message):
            raise RuntimeError("insufficient liquidity")

        with pytest.raises(RuntimeError):
            self.core.receive_message(raw, now=NOW, consumer=failing)
        assert not self.core.is_claimed(Chain.NEAR, REMOTE, 1)

        self.core.receive_message(raw, now=NOW)
        assert self.core.is_claimed(Chain.NEAR, REMOTE, 1)

    def test_failed_verification_not_claimed(self):
        raw = self.guardians.sign(remote_body(), positions=[0, 1])
        with pytest.raises(QuorumNotMet):
            self.core.receive_message(raw, now=NOW)
        assert not self.core.is_claimed(Chain.NEAR, REMOTE, 1)

    def test_parse_and_verify_does_not_claim(self):
        raw = self.guardians.sign(remote_body())
        verified = self.core.parse_and_verify_vaa(raw, now=NOW)

        assert verified.vaa == decode_vaa(raw)
        assert not self.core.is_claimed(Chain.NEAR, REMOTE, 1)

    def test_registered_emitter_required(self):
        raw = self.guardians.sign(remote_body())
        with pytest.raises(EmitterNotRegistered):
            self.core.receive_message(raw, now=NOW, require_registered_emitter=True)

        self.govern(RegisterChain(emitter_chain=Chain.NEAR, emitter_address=REMOTE))
        delivered = self.core.receive_message(raw, now=NOW, require_registered_emitter=True)
        assert delivered.emitter_chain == Chain.NEAR

    def test_claim_handle(self):
        program = b"\x09" * 32
        core = VAACore(CoreConfig(program_id=program))
        core.initialize(0, self.guardians.addresses, now=NOW)
        key = ClaimKey(Chain.NEAR, REMOTE, 1)
        identity = derive([b"claim", key.to_bytes()], program)
        raw = self.guardians.sign(remote_body())

        with pytest.raises(ResourceValidationError):
            core.receive_message(
                raw, now=NOW, claim_handle=ResourceHandle(identity=b"\x00" * 32, is_writable=True),
            )
        assert not core.is_claimed(Chain.NEAR, REMOTE, 1)

        core.receive_message(
            raw, now=NOW, claim_handle=ResourceHandle(identity=identity, is_writable=True),
        )
        assert core.is_claimed(Chain.NEAR, REMOTE, 1)


class TestPersistentCore(CoreTestBase):

    def test_restart_keeps_claims(self, tmp_path):
        raw = self.guardians.sign(remote_body())
        self.core.receive_message(raw, now=NOW)
        path = tmp_path / "core.json"
        save_state(self.core.store, path)

        restarted = VAACore(self.config, store=load_state(path))

        assert restarted.guardian_set_index == 0
        with pytest.raises(AlreadyClaimed):
            restarted.receive_message(raw, now=NOW)

    def test_shared_store(self):
        store = StateStore()
        first = VAACore(self.config, store=store)
        first.initialize(0, self.guardians.addresses, now=NOW)
        second = VAACore(self.config, store=store)

        raw = self.guardians.sign(remote_body())
        first.receive_message(raw, now=NOW)
        with pytest.raises(AlreadyClaimed):
            second.receive_message(raw, now=NOW)


class TestGovernanceEmitterReserved(CoreTestBase):

    def test_receive_refuses_governance_vaa(self):
        raw = self.guardians.governance_vaa(
            SetMessageFee(fee=10), sequence=1, now=NOW, config=self.config,
        )

        with pytest.raises(ReservedEmitter):
            self.core.receive_message(raw, now=NOW)
        assert not self.core.is_claimed(
            self.config.governance_chain, self.config.governance_emitter, 1,
        )

        self.core.submit_governance_vaa(raw, now=NOW)
        assert self.core.message_fee == 10


class TestNestedDelivery(CoreTestBase):

    def test_inner_delivery_committed(self):
        inner_raw = self.guardians.sign(remote_body(sequence=2, payload=b"inner"))

        def relay(message):
            return self.core.receive_message(inner_raw, now=NOW).payload

        delivered = self.core.receive_message(
            self.guardians.sign(remote_body(sequence=1)), now=NOW, consumer=relay,
        )

        assert delivered.result == b"inner"
        assert self.core.is_claimed(Chain.NEAR, REMOTE, 1)
        assert self.core.is_claimed(Chain.NEAR, REMOTE, 2)
        with pytest.raises(AlreadyClaimed):
            self.core.receive_message(inner_raw, now=NOW)

    def test_outer_failure_rolls_back_inner_delivery(self):
        inner_raw = self.guardians.sign(remote_body(sequence=2, payload=b"inner"))

        def relay_then_fail(message):
            self.core.receive_message(inner_raw, now=NOW)
            raise RuntimeError("outer effect failed")

        with pytest.raises(RuntimeError):
            self.core.receive_message(
                self.guardians.sign(remote_body(sequence=1)), now=NOW, consumer=relay_then_fail,
            )

        assert not self.core.is_claimed(Chain.NEAR, REMOTE, 1)
        assert not self.core.is_claimed(Chain.NEAR, REMOTE, 2)
        assert self.core.receive_message(inner_raw, now=NOW).payload == b"inner"
