# -*- encoding: utf-8 -*-
"""
Governance - protocol self-management through VAAs from a designated emitter.

Usage:
    from vaa_core.governance import (
        GovernanceProcessor,
        GuardianSetChange,
        decode_governance,
    )

    payload = GuardianSetChange(new_index=1, new_addresses=addrs).to_bytes()
    action = decode_governance(payload, chain_id=2)
"""

from .actions import (
    ACTIONS,
    ContractUpgrade,
    GovernanceAction,
    GovernanceHeader,
    GuardianSetChange,
    RegisterChain,
    SetMessageFee,
    TransferFees,
    decode_governance,
    decode_header,
    encode_governance,
)
from .processor import (
    GovernanceProcessor,
    GovernanceResult,
    verify_upgrade,
)

__all__ = [
    # Actions
    "ACTIONS",
    "ContractUpgrade",
    "GovernanceAction",
    "GovernanceHeader",
    "GuardianSetChange",
    "RegisterChain",
    "SetMessageFee",
    "TransferFees",
    "decode_governance",
    "decode_header",
    "encode_governance",
    # Processor
    "GovernanceProcessor",
    "GovernanceResult",
    "verify_upgrade",
]
