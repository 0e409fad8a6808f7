# -*- encoding: utf-8 -*-
"""
Tests for the body digest.

Guardians sign keccak256(keccak256(body)); header fields never enter it.
"""

from eth_utils import keccak

from vaa_core.mock import MockGuardians
from vaa_core.vaa import DIGEST_LEN, Body, body_digest, body_hash, decode_vaa, left_pad

EMPTY_KECCAK = bytes.fromhex(
    "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
)


def make_body(payload=b"payload") -> Body:
    return Body(
        timestamp=1,
        nonce=2,
        emitter_chain=1,
        emitter_address=left_pad(b"\x04"),
        sequence=3,
        payload=payload,
    )


class TestDigest:

    def test_keccak_vector(self):
        assert body_hash(b"") == EMPTY_KECCAK

    def test_double_keccak(self):
        raw = make_body().to_bytes()
        assert body_digest(raw) == keccak(keccak(raw))
        assert body_digest(raw) == keccak(body_hash(raw))
        assert len(body_digest(raw)) == DIGEST_LEN

    def test_deterministic(self):
        assert make_body().digest() == make_body().digest()

    def test_payload_changes_digest(self):
        assert make_body(b"a").digest() != make_body(b"b").digest()

    def test_independent_of_header(self):
        """The same body signed by different guardian sets has one digest."""
        body = make_body()
        old = decode_vaa(MockGuardians(3, set_index=0).sign(body))
        new = decode_vaa(MockGuardians(5, set_index=1, seed=b"other").sign(body))

        assert old.guardian_set_index != new.guardian_set_index
        assert old.digest() == new.digest() == body.digest()
        assert old.hash() == body_hash(body.to_bytes())
