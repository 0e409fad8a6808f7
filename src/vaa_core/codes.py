# -*- encoding: utf-8 -*-
"""
Protocol Codes - chain ids, governance modules and action codes.

Every value here is fixed by the wire protocol and shared by all
verifying chains. Changing one breaks cross-chain compatibility.

Governance payload header:

    module:32 (zero left-padded ASCII) | action:u8 | chain:u16

    "Core"         1 ContractUpgrade
                   2 GuardianSetChange
                   3 SetMessageFee
                   4 TransferFees
    "TokenBridge"  1 RegisterChain
                   2 ContractUpgrade
"""

from enum import Enum, IntEnum
from typing import Dict, Tuple


SUPPORTED_VAA_VERSION = 1

# Wire sizes (bytes)
HEADER_LEN = 6          # version:u8 | guardian_set_index:u32 | sig_count:u8
SIGNATURE_LEN = 66      # position:u8 | r:32 | s:32 | recovery_id:u8
BODY_FIXED_LEN = 51     # timestamp..consistency_level, payload excluded
MIN_VAA_LEN = HEADER_LEN + BODY_FIXED_LEN

ADDRESS_LEN = 32
GUARDIAN_ADDRESS_LEN = 20
MODULE_LEN = 32
GOVERNANCE_HEADER_LEN = MODULE_LEN + 1 + 2

# 24 hours
DEFAULT_GUARDIAN_SET_GRACE_PERIOD = 24 * 60 * 60


class Chain(IntEnum):
    """u16 chain identifiers, universal across all deployments."""
    ANY = 0
    SOLANA = 1
    ETHEREUM = 2
    TERRA_CLASSIC = 3
    BINANCE = 4
    POLYGON = 5
    AVALANCHE = 6
    OASIS = 7
    ALGORAND = 8
    AURORA = 9
    FANTOM = 10
    KARURA = 11
    ACALA = 12
    KLAYTN = 13
    CELO = 14
    NEAR = 15
    TERRA = 18


class GovernanceModule(str, Enum):
    """Module names carried in the governance header."""
    CORE = "Core"
    TOKEN_BRIDGE = "TokenBridge"

    @property
    def padded(self) -> bytes:
        """32-byte zero-left-padded wire form."""
        return module_bytes(self.value)


class CoreAction(IntEnum):
    CONTRACT_UPGRADE = 1
    GUARDIAN_SET_CHANGE = 2
    SET_MESSAGE_FEE = 3
    TRANSFER_FEES = 4


class TokenBridgeAction(IntEnum):
    REGISTER_CHAIN = 1
    CONTRACT_UPGRADE = 2


# (module, action code) -> human-readable action name
ACTION_NAMES: Dict[Tuple[GovernanceModule, int], str] = {
    (GovernanceModule.CORE, CoreAction.CONTRACT_UPGRADE): "ContractUpgrade",
    (GovernanceModule.CORE, CoreAction.GUARDIAN_SET_CHANGE): "GuardianSetChange",
    (GovernanceModule.CORE, CoreAction.SET_MESSAGE_FEE): "SetMessageFee",
    (GovernanceModule.CORE, CoreAction.TRANSFER_FEES): "TransferFees",
    (GovernanceModule.TOKEN_BRIDGE, TokenBridgeAction.REGISTER_CHAIN): "RegisterChain",
    (GovernanceModule.TOKEN_BRIDGE, TokenBridgeAction.CONTRACT_UPGRADE): "ContractUpgrade",
}


def module_bytes(name: str) -> bytes:
    """
    Encode a module name as the 32-byte governance header field.

    Examples:
        module_bytes("Core") -> b"\\x00" * 28 + b"Core"
    """
    raw = name.encode("ascii")
    if len(raw) > MODULE_LEN:
        raise ValueError(f"Module name too long: {name}")
    return raw.rjust(MODULE_LEN, b"\x00")


def module_from_bytes(raw: bytes) -> str:
    """Strip the zero padding from a 32-byte module field."""
    return raw.lstrip(b"\x00").decode("ascii", errors="replace")


def chain_name(chain_id: int) -> str:
    """Name for a chain id, or the numeric id when unknown."""
    try:
        return Chain(chain_id).name.lower()
    except ValueError:
        return str(chain_id)
