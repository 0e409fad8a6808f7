# -*- encoding: utf-8 -*-
"""
vaa-core - Guardian-attested cross-chain message verification

A chain-agnostic core for Verifiable Action Approvals (VAAs): messages
observed on one chain, signed by a quorum of guardians, and verified and
consumed exactly once on another.

Key Insight:
    The core never trusts a relayer. It answers only:
      - WHO signed this? (a quorum of the guardian set named in the header)
      - WAS it consumed before? (emitter chain, emitter address, sequence)
      - IS it governance? (fixed emitter, active guardian set)

Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                   Wire Codec                            │
    │  bytes <-> VAA (header, signatures, body)               │
    └──────────────────────┬──────────────────────────────────┘
                           │
                           ▼
    ┌─────────────────────────────────────────────────────────┐
    │             Quorum Verifier                             │
    │  - keccak256(keccak256(body)) digest                    │
    │  - Sorted, deduplicated signature positions             │
    │  - floor(2n/3)+1 against the Guardian Set Registry      │
    └──────────────────────┬──────────────────────────────────┘
                           │
                           ▼
    ┌─────────────────────────────────────────────────────────┐
    │       Replay Guard  +  Governance / Payload consumer    │
    │  Claim and effect committed in one StateStore txn       │
    └─────────────────────────────────────────────────────────┘

Usage:
    from vaa_core import VAACore, CoreConfig, Chain

    core = VAACore(CoreConfig(chain_id=Chain.ETHEREUM))
    core.initialize(0, guardian_addresses, now=now)

    # Governance (guardian rotation, fees, upgrades, chain registration)
    core.submit_governance_vaa(raw, now=now)

    # Application messages
    delivered = core.receive_message(raw, now=now, consumer=handle_payload)

    # Outbound
    published = core.publish_message(b"my-contract", payload, nonce=1, now=now)
"""

__version__ = "0.1.0"

from vaa_core.codes import (
    Chain,
    CoreAction,
    GovernanceModule,
    TokenBridgeAction,
)

from vaa_core.errors import (
    ErrorKind,
    VAAError,
    MalformedVAA,
    InvalidGuardianSetIndex,
    GuardianSetExpired,
    UnsortedOrDuplicateSignature,
    InvalidSignature,
    InvalidSignatureKey,
    QuorumNotMet,
    AlreadyClaimed,
    NotGovernance,
    InvalidGovernanceKey,
    InvalidGovernanceChain,
    InvalidGovernanceModule,
    InvalidGovernanceAction,
    InvalidGovernanceSetIndex,
    InvalidGovernanceSet,
    InvalidGuardianSet,
    BankUnderflow,
    ChainAlreadyRegistered,
    EmitterNotRegistered,
    ReservedEmitter,
    InvalidContractUpgrade,
    InsufficientFee,
    RegistryAlreadyInitialized,
    ResourceValidationError,
)

# Wire format
from vaa_core.vaa import (
    VAA,
    Body,
    Signature,
    body_digest,
    body_hash,
    decode_vaa,
    encode_vaa,
)

# Guardians and verification
from vaa_core.guardians import (
    GuardianSet,
    GuardianSetRegistry,
    quorum,
)
from vaa_core.verification import (
    QuorumVerifier,
    VerifiedVAA,
    verify_vaa,
)

# Replay, sequencing, resources
from vaa_core.replay import ClaimKey, ReplayGuard
from vaa_core.sequencer import EmitterSequencer
from vaa_core.accounts import ResourceHandle, derive, validate

# Governance
from vaa_core.governance import (
    ContractUpgrade,
    GovernanceAction,
    GovernanceProcessor,
    GovernanceResult,
    GuardianSetChange,
    RegisterChain,
    SetMessageFee,
    TransferFees,
    decode_governance,
)

# State and configuration
from vaa_core.config import (
    CoreConfig,
    get_config,
    load_config,
    reset_config,
    set_config,
)
from vaa_core.state import CoreState, StateStore, load_state, save_state

# Facade
from vaa_core.core import (
    DeliveredMessage,
    PublishedMessage,
    VAACore,
)

__all__ = [
    "__version__",
    # Codes
    "Chain",
    "CoreAction",
    "GovernanceModule",
    "TokenBridgeAction",
    # Errors
    "ErrorKind",
    "VAAError",
    "MalformedVAA",
    "InvalidGuardianSetIndex",
    "GuardianSetExpired",
    "UnsortedOrDuplicateSignature",
    "InvalidSignature",
    "InvalidSignatureKey",
    "QuorumNotMet",
    "AlreadyClaimed",
    "NotGovernance",
    "InvalidGovernanceKey",
    "InvalidGovernanceChain",
    "InvalidGovernanceModule",
    "InvalidGovernanceAction",
    "InvalidGovernanceSetIndex",
    "InvalidGovernanceSet",
    "InvalidGuardianSet",
    "BankUnderflow",
    "ChainAlreadyRegistered",
    "EmitterNotRegistered",
    "ReservedEmitter",
    "InvalidContractUpgrade",
    "InsufficientFee",
    "RegistryAlreadyInitialized",
    "ResourceValidationError",
    # Wire
    "VAA",
    "Body",
    "Signature",
    "body_digest",
    "body_hash",
    "decode_vaa",
    "encode_vaa",
    # Guardians
    "GuardianSet",
    "GuardianSetRegistry",
    "quorum",
    "QuorumVerifier",
    "VerifiedVAA",
    "verify_vaa",
    # Replay / sequencing / resources
    "ClaimKey",
    "ReplayGuard",
    "EmitterSequencer",
    "ResourceHandle",
    "derive",
    "validate",
    # Governance
    "ContractUpgrade",
    "GovernanceAction",
    "GovernanceProcessor",
    "GovernanceResult",
    "GuardianSetChange",
    "RegisterChain",
    "SetMessageFee",
    "TransferFees",
    "decode_governance",
    # State / config
    "CoreConfig",
    "get_config",
    "load_config",
    "reset_config",
    "set_config",
    "CoreState",
    "StateStore",
    "load_state",
    "save_state",
    # Facade
    "DeliveredMessage",
    "PublishedMessage",
    "VAACore",
]
