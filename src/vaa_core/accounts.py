# -*- encoding: utf-8 -*-
"""
Resource validation pipeline and deterministic resource addressing.

Hosts hand the core opaque "resource handles" (accounts, storage slots,
objects) alongside an operation. Before the core trusts a handle it runs
a short list of named rules over it:

    owned_by(program)        handle is owned by the expected program
    mutable()                handle may be written
    signer()                 handle signed the enclosing transaction
    derived_from(seeds, ...) handle identity is derive(seeds, program)

Rules are plain callables, composed with validate(). New rules need no
changes here: any callable(handle) -> Optional[str] works, returning an
error message on failure.

Usage:
    from vaa_core.accounts import ResourceHandle, validate, mutable, derived_from

    validate(
        handle,
        mutable(),
        derived_from([b"claim", key_bytes], program=PROGRAM_ID),
    )
"""

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from eth_utils import keccak

from .errors import ResourceValidationError

# A rule returns None on success or an error message on failure.
Rule = Callable[["ResourceHandle"], Optional[str]]
DeriveFn = Callable[[Sequence[bytes], bytes], bytes]


@dataclass(frozen=True)
class ResourceHandle:
    """A host resource presented to the core."""
    identity: bytes
    owner: bytes = b""
    is_signer: bool = False
    is_writable: bool = False
    data: bytes = b""


def derive(seeds: Sequence[bytes], program: bytes = b"") -> bytes:
    """
    Deterministic 32-byte resource identity from seed components.

    Each seed is length-prefixed so that (b"ab", b"c") and (b"a", b"bc")
    derive different identities.
    """
    parts = []
    for seed in seeds:
        seed = bytes(seed)
        parts.append(len(seed).to_bytes(2, "big"))
        parts.append(seed)
    return keccak(b"".join(parts) + bytes(program))


def _named(name: str, check: Callable[[ResourceHandle], Optional[str]]) -> Rule:
    check.__name__ = name
    return check


def owned_by(owner: bytes) -> Rule:
    def check(handle: ResourceHandle) -> Optional[str]:
        if handle.owner != owner:
            return f"owned by {handle.owner.hex()}, expected {owner.hex()}"
        return None
    return _named("owned_by", check)


def mutable() -> Rule:
    def check(handle: ResourceHandle) -> Optional[str]:
        if not handle.is_writable:
            return "resource is not writable"
        return None
    return _named("mutable", check)


def signer() -> Rule:
    def check(handle: ResourceHandle) -> Optional[str]:
        if not handle.is_signer:
            return "resource did not sign"
        return None
    return _named("signer", check)


def derived_from(
    seeds: Sequence[bytes],
    program: bytes = b"",
    derive_fn: DeriveFn = derive,
) -> Rule:
    def check(handle: ResourceHandle) -> Optional[str]:
        expected = derive_fn(seeds, program)
        if handle.identity != expected:
            return f"identity {handle.identity.hex()} is not derived resource {expected.hex()}"
        return None
    return _named("derived_from", check)


def validate(handle: ResourceHandle, *rules: Rule) -> ResourceHandle:
    """
    Apply rules in order; the first failure raises.

    Raises:
        ResourceValidationError: with the failing rule's name
    """
    for rule in rules:
        problem = rule(handle)
        if problem is not None:
            name = getattr(rule, "__name__", "rule")
            raise ResourceValidationError(
                rule=name,
                identity=handle.identity,
                message=f"Resource {handle.identity.hex()} failed '{name}': {problem}",
            )
    return handle
