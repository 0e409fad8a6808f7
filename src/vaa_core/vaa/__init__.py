# -*- encoding: utf-8 -*-
"""
VAA wire format and body digest.

Usage:
    from vaa_core.vaa import decode_vaa, body_digest

    vaa = decode_vaa(raw)
    assert vaa.digest() == body_digest(vaa.body_bytes())
"""

from .codec import (
    VAA,
    Body,
    Signature,
    decode_body,
    decode_vaa,
    encode_body,
    encode_vaa,
    left_pad,
)
from .digest import DIGEST_LEN, body_digest, body_hash

__all__ = [
    "VAA",
    "Body",
    "Signature",
    "decode_body",
    "decode_vaa",
    "encode_body",
    "encode_vaa",
    "left_pad",
    "DIGEST_LEN",
    "body_digest",
    "body_hash",
]
