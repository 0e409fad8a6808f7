# -*- encoding: utf-8 -*-
"""
Error taxonomy for attestation processing.

Every error is terminal for the attestation being processed: there is no
retry or local recovery inside the core. Hosts surface the error to their
own caller (typically by aborting the enclosing transaction).

Usage:
    from vaa_core.errors import VAAError, ErrorKind, QuorumNotMet

    try:
        core.receive_message(data, now=now, consumer=handle)
    except QuorumNotMet:
        ...
    except VAAError as e:
        log(e.kind.value)
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Stable identifiers for each failure mode."""
    MALFORMED = "Malformed"
    INVALID_GUARDIAN_SET_INDEX = "InvalidGuardianSetIndex"
    GUARDIAN_SET_EXPIRED = "GuardianSetExpired"
    UNSORTED_OR_DUPLICATE_SIGNATURE = "UnsortedOrDuplicateSignature"
    INVALID_SIGNATURE = "InvalidSignature"
    INVALID_SIGNATURE_KEY = "InvalidSignatureKey"
    QUORUM_NOT_MET = "QuorumNotMet"
    ALREADY_CLAIMED = "AlreadyClaimed"
    NOT_GOVERNANCE = "NotGovernance"
    INVALID_GOVERNANCE_KEY = "InvalidGovernanceKey"
    INVALID_GOVERNANCE_CHAIN = "InvalidGovernanceChain"
    INVALID_GOVERNANCE_MODULE = "InvalidGovernanceModule"
    INVALID_GOVERNANCE_ACTION = "InvalidGovernanceAction"
    INVALID_GOVERNANCE_SET_INDEX = "InvalidGovernanceSetIndex"
    INVALID_GOVERNANCE_SET = "InvalidGovernanceSet"
    INVALID_GUARDIAN_SET = "InvalidGuardianSet"
    BANK_UNDERFLOW = "BankUnderflow"
    CHAIN_ALREADY_REGISTERED = "ChainAlreadyRegistered"
    EMITTER_NOT_REGISTERED = "EmitterNotRegistered"
    RESERVED_EMITTER = "ReservedEmitter"
    INSUFFICIENT_FEE = "InsufficientFee"
    INVALID_CONTRACT_UPGRADE = "InvalidContractUpgrade"
    REGISTRY_ALREADY_INITIALIZED = "RegistryAlreadyInitialized"
    INVALID_RESOURCE = "InvalidResource"


class VAAError(Exception):
    """
    Base class for all attestation processing failures.

    Carries the ErrorKind so hosts can map failures to their own error
    codes without matching on exception classes.
    """

    kind: ErrorKind = ErrorKind.MALFORMED

    def __init__(self, message: str = "", kind: Optional[ErrorKind] = None):
        if kind is not None:
            self.kind = kind
        self.message = message or self.kind.value
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.kind.value}: {self.message})"


# -- Wire -------------------------------------------------------------------

class MalformedVAA(VAAError):
    kind = ErrorKind.MALFORMED


# -- Verification -----------------------------------------------------------

class InvalidGuardianSetIndex(VAAError):
    kind = ErrorKind.INVALID_GUARDIAN_SET_INDEX


class GuardianSetExpired(VAAError):
    kind = ErrorKind.GUARDIAN_SET_EXPIRED


class UnsortedOrDuplicateSignature(VAAError):
    kind = ErrorKind.UNSORTED_OR_DUPLICATE_SIGNATURE


class InvalidSignature(VAAError):
    kind = ErrorKind.INVALID_SIGNATURE


class InvalidSignatureKey(VAAError):
    kind = ErrorKind.INVALID_SIGNATURE_KEY


class QuorumNotMet(VAAError):
    kind = ErrorKind.QUORUM_NOT_MET


# -- Replay -----------------------------------------------------------------

class AlreadyClaimed(VAAError):
    kind = ErrorKind.ALREADY_CLAIMED


# -- Governance -------------------------------------------------------------

class NotGovernance(VAAError):
    kind = ErrorKind.NOT_GOVERNANCE


class InvalidGovernanceKey(VAAError):
    kind = ErrorKind.INVALID_GOVERNANCE_KEY


class InvalidGovernanceChain(VAAError):
    kind = ErrorKind.INVALID_GOVERNANCE_CHAIN


class InvalidGovernanceModule(VAAError):
    kind = ErrorKind.INVALID_GOVERNANCE_MODULE


class InvalidGovernanceAction(VAAError):
    kind = ErrorKind.INVALID_GOVERNANCE_ACTION


class InvalidGovernanceSetIndex(VAAError):
    kind = ErrorKind.INVALID_GOVERNANCE_SET_INDEX


class InvalidGovernanceSet(VAAError):
    """Governance attestation not signed by the active guardian set."""
    kind = ErrorKind.INVALID_GOVERNANCE_SET


class InvalidGuardianSet(VAAError):
    kind = ErrorKind.INVALID_GUARDIAN_SET


class BankUnderflow(VAAError):
    kind = ErrorKind.BANK_UNDERFLOW


class ChainAlreadyRegistered(VAAError):
    kind = ErrorKind.CHAIN_ALREADY_REGISTERED


class EmitterNotRegistered(VAAError):
    kind = ErrorKind.EMITTER_NOT_REGISTERED


class ReservedEmitter(VAAError):
    """Governance attestations are only accepted through the governance path."""
    kind = ErrorKind.RESERVED_EMITTER


class InvalidContractUpgrade(VAAError):
    kind = ErrorKind.INVALID_CONTRACT_UPGRADE


# -- Publishing / lifecycle -------------------------------------------------

class InsufficientFee(VAAError):
    kind = ErrorKind.INSUFFICIENT_FEE


class RegistryAlreadyInitialized(VAAError):
    kind = ErrorKind.REGISTRY_ALREADY_INITIALIZED


class ResourceValidationError(VAAError):
    """A host resource handle failed a named validation rule."""

    kind = ErrorKind.INVALID_RESOURCE

    def __init__(self, rule: str, identity: bytes, message: str = ""):
        self.rule = rule
        self.identity = identity
        super().__init__(message or f"Resource {identity.hex()} failed rule '{rule}'")
