# -*- encoding: utf-8 -*-
"""
Mock guardian network for devnets and tests.

Deterministic secp256k1 keys derived from a seed sign VAA bodies exactly as
real guardians do (recoverable signature over keccak256(keccak256(body))).
Never use these keys outside a devnet.

Usage:
    guardians = MockGuardians(count=7)
    core.initialize(0, guardians.addresses)

    raw = guardians.sign(body)                        # all guardians
    raw = guardians.sign(body, positions=[0, 1, 2])   # a subset, in this order
    raw = guardians.governance_vaa(SetMessageFee(fee=10), sequence=1, now=now)
"""

from typing import Iterable, List, Optional, Sequence, Tuple, Union

from eth_keys import keys
from eth_utils import keccak

from .config import CoreConfig
from .governance import GovernanceAction
from .vaa import VAA, Body, Signature, body_digest, decode_body, encode_body, encode_vaa
from .verification import guardian_address

BodyLike = Union[Body, bytes]


def devnet_private_key(seed: bytes, index: int) -> keys.PrivateKey:
    return keys.PrivateKey(keccak(bytes(seed) + index.to_bytes(4, "big")))


def sign_digest(private_key: keys.PrivateKey, digest: bytes, position: int) -> Signature:
    sig = private_key.sign_msg_hash(digest)
    return Signature.from_signature(position, sig.to_bytes())


class MockGuardians:
    """A deterministic guardian set that can sign bodies."""

    def __init__(self, count: int, set_index: int = 0, seed: bytes = b"devnet-guardian"):
        self.set_index = set_index
        self.private_keys: List[keys.PrivateKey] = [
            devnet_private_key(seed, i) for i in range(count)
        ]

    @property
    def addresses(self) -> List[bytes]:
        return [guardian_address(k.public_key) for k in self.private_keys]

    def __len__(self) -> int:
        return len(self.private_keys)

    def sign_vaa(
        self,
        body: BodyLike,
        positions: Optional[Iterable[int]] = None,
        set_index: Optional[int] = None,
    ) -> VAA:
        """Sign with the guardians at `positions` (all, ascending, when None)."""
        if positions is None:
            positions = range(len(self.private_keys))
        return self.sign_with(
            body,
            [(p, self.private_keys[p]) for p in positions],
            set_index=set_index,
        )

    def sign(
        self,
        body: BodyLike,
        positions: Optional[Iterable[int]] = None,
        set_index: Optional[int] = None,
    ) -> bytes:
        return encode_vaa(self.sign_vaa(body, positions=positions, set_index=set_index))

    def sign_with(
        self,
        body: BodyLike,
        signers: Sequence[Tuple[int, keys.PrivateKey]],
        set_index: Optional[int] = None,
    ) -> VAA:
        """Sign with arbitrary (position, key) pairs, kept in the given order."""
        body_bytes = encode_body(body) if isinstance(body, Body) else bytes(body)
        digest = body_digest(body_bytes)
        signatures = tuple(sign_digest(key, digest, position) for position, key in signers)
        decoded_body = body if isinstance(body, Body) else decode_body(body_bytes)
        return VAA(
            guardian_set_index=self.set_index if set_index is None else set_index,
            signatures=signatures,
            body=decoded_body,
            _body_bytes=body_bytes,
        )

    def governance_vaa(
        self,
        action: GovernanceAction,
        sequence: int,
        now: int = 0,
        config: Optional[CoreConfig] = None,
        emitter_chain: Optional[int] = None,
        emitter_address: Optional[bytes] = None,
        positions: Optional[Iterable[int]] = None,
        set_index: Optional[int] = None,
    ) -> bytes:
        """Signed governance VAA from the configured governance emitter."""
        config = config or CoreConfig()
        body = Body(
            timestamp=now,
            nonce=0,
            emitter_chain=config.governance_chain if emitter_chain is None else emitter_chain,
            emitter_address=(
                config.governance_emitter if emitter_address is None else emitter_address
            ),
            sequence=sequence,
            consistency_level=32,
            payload=action.to_bytes(),
        )
        return self.sign(body, positions=positions, set_index=set_index)
