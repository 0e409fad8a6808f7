# -*- encoding: utf-8 -*-
"""
Tests for the VAA wire codec.

Verifies:
- Encode/decode preserves header, signatures and body
- Decoding is all-or-nothing on truncated or inconsistent input
- Unsupported versions are rejected
- Out-of-range fields fail at encode time
- Raw body bytes always encode the decoded body
"""

import dataclasses

import pytest

from vaa_core.codes import BODY_FIXED_LEN, HEADER_LEN, SIGNATURE_LEN
from vaa_core.errors import MalformedVAA
from vaa_core.mock import MockGuardians
from vaa_core.vaa import (
    VAA,
    Body,
    Signature,
    decode_body,
    decode_vaa,
    encode_body,
    encode_vaa,
    left_pad,
)

EMITTER = left_pad(bytes.fromhex("0290fb167208af455bb137780163b7b7a9a10c16"))


def make_body(payload=b"hello", sequence=1) -> Body:
    return Body(
        timestamp=1_700_000_000,
        nonce=42,
        emitter_chain=2,
        emitter_address=EMITTER,
        sequence=sequence,
        consistency_level=15,
        payload=payload,
    )


class TestBodyCodec:
    """Body serialization."""

    def test_fixed_layout(self):
        """Fixed fields are big-endian, payload follows."""
        raw = encode_body(make_body(payload=b"\xaa\xbb"))

        assert len(raw) == BODY_FIXED_LEN + 2
        assert raw[0:4] == (1_700_000_000).to_bytes(4, "big")
        assert raw[4:8] == (42).to_bytes(4, "big")
        assert raw[8:10] == b"\x00\x02"
        assert raw[10:42] == EMITTER
        assert raw[42:50] == (1).to_bytes(8, "big")
        assert raw[50] == 15
        assert raw[51:] == b"\xaa\xbb"

    def test_decode_body(self):
        body = make_body(payload=b"xyz", sequence=2 ** 64 - 1)
        assert decode_body(encode_body(body)) == body

    def test_empty_payload(self):
        body = make_body(payload=b"")
        raw = encode_body(body)
        assert len(raw) == BODY_FIXED_LEN
        assert decode_body(raw).payload == b""

    def test_short_body_rejected(self):
        with pytest.raises(MalformedVAA):
            decode_body(b"\x00" * (BODY_FIXED_LEN - 1))

    def test_emitter_address_must_be_32_bytes(self):
        with pytest.raises(ValueError):
            Body(timestamp=0, nonce=0, emitter_chain=2, emitter_address=b"\x01" * 20, sequence=0)

    def test_out_of_range_field(self):
        """A timestamp beyond u32 cannot be encoded."""
        body = Body(
            timestamp=2 ** 32,
            nonce=0,
            emitter_chain=2,
            emitter_address=EMITTER,
            sequence=0,
        )
        with pytest.raises(ValueError):
            encode_body(body)

    def test_left_pad(self):
        assert left_pad(b"\x04") == b"\x00" * 31 + b"\x04"
        with pytest.raises(ValueError):
            left_pad(b"\x01" * 33)


class TestVAACodec:
    """Full VAA encode/decode."""

    def setup_method(self):
        self.guardians = MockGuardians(3, set_index=7)

    def test_round_trip(self):
        body = make_body()
        vaa = self.guardians.sign_vaa(body)
        raw = encode_vaa(vaa)

        decoded = decode_vaa(raw)

        assert decoded.version == 1
        assert decoded.guardian_set_index == 7
        assert decoded.signatures == vaa.signatures
        assert decoded.body == body
        assert decoded.body_bytes() == encode_body(body)
        assert encode_vaa(decoded) == raw

    def test_header_layout(self):
        raw = self.guardians.sign(make_body())

        assert raw[0] == 1
        assert raw[1:5] == (7).to_bytes(4, "big")
        assert raw[5] == 3
        assert len(raw) == HEADER_LEN + 3 * SIGNATURE_LEN + BODY_FIXED_LEN + len(b"hello")

    def test_signature_layout(self):
        vaa = self.guardians.sign_vaa(make_body(), positions=[2])
        sig = vaa.signatures[0]
        raw = sig.to_bytes()

        assert len(raw) == SIGNATURE_LEN
        assert raw[0] == 2
        assert raw[1:33] == sig.r
        assert raw[33:65] == sig.s
        assert raw[65] == sig.recovery_id
        assert sig.recovery_id in (0, 1)

    def test_zero_signatures_decode(self):
        """Decoding does not judge quorum."""
        raw = encode_vaa(VAA(guardian_set_index=0, signatures=(), body=make_body()))
        assert decode_vaa(raw).signatures == ()

    def test_shortest_vaa(self):
        raw = encode_vaa(VAA(guardian_set_index=0, signatures=(), body=make_body(payload=b"")))
        assert len(raw) == HEADER_LEN + BODY_FIXED_LEN
        decode_vaa(raw)

    def test_empty_input(self):
        with pytest.raises(MalformedVAA):
            decode_vaa(b"")

    def test_truncated_into_fixed_body(self):
        raw = self.guardians.sign(make_body(payload=b""))
        for cut in (1, 10, BODY_FIXED_LEN):
            with pytest.raises(MalformedVAA):
                decode_vaa(raw[:-cut])

    def test_truncated_into_signatures(self):
        raw = self.guardians.sign(make_body())
        with pytest.raises(MalformedVAA):
            decode_vaa(raw[:HEADER_LEN + SIGNATURE_LEN + 10])

    def test_signature_count_exceeds_length(self):
        """A count claiming more signatures than the bytes hold is rejected."""
        raw = bytearray(self.guardians.sign(make_body(payload=b"short")))
        raw[5] += 1
        with pytest.raises(MalformedVAA):
            decode_vaa(bytes(raw))

    def test_unsupported_version(self):
        raw = bytearray(self.guardians.sign(make_body()))
        raw[0] = 2
        with pytest.raises(MalformedVAA) as exc_info:
            decode_vaa(bytes(raw))
        assert "version" in str(exc_info.value)

    def test_decoded_is_frozen(self):
        vaa = decode_vaa(self.guardians.sign(make_body()))
        with pytest.raises(AttributeError):
            vaa.guardian_set_index = 1
        with pytest.raises(AttributeError):
            vaa.body.sequence = 99

    def test_digest_uses_received_bytes(self):
        """The digest is computed over the body bytes exactly as received."""
        raw = self.guardians.sign(make_body())
        decoded = decode_vaa(raw)
        body_offset = HEADER_LEN + 3 * SIGNATURE_LEN
        assert decoded.body_bytes() == raw[body_offset:]

    def test_body_must_match_signed_bytes(self):
        """A body cannot be swapped under bytes that were signed for another."""
        signed = decode_vaa(self.guardians.sign(make_body(payload=b"mint 1")))
        forged = make_body(payload=b"mint 1000000")

        with pytest.raises(ValueError):
            VAA(
                guardian_set_index=signed.guardian_set_index,
                signatures=signed.signatures,
                body=forged,
                _body_bytes=signed.body_bytes(),
            )
        with pytest.raises(ValueError):
            dataclasses.replace(signed, body=forged)

        # Without raw bytes the body is re-encoded, so the digest follows it
        unsigned = VAA(guardian_set_index=0, signatures=signed.signatures, body=forged)
        assert unsigned.digest() != signed.digest()

    def test_signature_from_65_bytes(self):
        sig = Signature.from_signature(4, b"\x01" * 32 + b"\x02" * 32 + b"\x01")
        assert sig.position == 4
        assert sig.signature == b"\x01" * 32 + b"\x02" * 32 + b"\x01"
        with pytest.raises(ValueError):
            Signature.from_signature(0, b"\x00" * 64)

    def test_to_dict(self):
        vaa = decode_vaa(self.guardians.sign(make_body()))
        data = vaa.to_dict()
        assert data["guardian_set_index"] == 7
        assert [s["position"] for s in data["signatures"]] == [0, 1, 2]
        assert data["body"]["emitter_address"] == EMITTER.hex()
        assert data["hash"] == vaa.hash().hex()
