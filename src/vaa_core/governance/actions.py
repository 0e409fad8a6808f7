# -*- encoding: utf-8 -*-
"""
Governance Actions - self-describing directives carried in VAA payloads.

Payload layout:

    module:32 (zero left-padded) | action:u8 | chain:u16 | action fields

chain == 0 is the wildcard ("applies to every chain").

Action fields:
    Core/1         ContractUpgrade    new_contract:32
    Core/2         GuardianSetChange  new_index:u32 | n:u8 | n x address:20
    Core/3         SetMessageFee      fee:u256
    Core/4         TransferFees       amount:u256 | recipient:32
    TokenBridge/1  RegisterChain      emitter_chain:u16 | emitter_address:32
    TokenBridge/2  ContractUpgrade    new_contract:32

Usage:
    from vaa_core.governance import decode_governance, SetMessageFee

    action = decode_governance(vaa.payload, chain_id=Chain.ETHEREUM)
    if isinstance(action, SetMessageFee):
        ...

    payload = SetMessageFee(fee=1000).to_bytes()
"""

import struct
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Type

from ..codes import (
    ADDRESS_LEN,
    GOVERNANCE_HEADER_LEN,
    GUARDIAN_ADDRESS_LEN,
    MODULE_LEN,
    CoreAction,
    GovernanceModule,
    TokenBridgeAction,
)
from ..errors import (
    InvalidGovernanceAction,
    InvalidGovernanceChain,
    InvalidGovernanceModule,
    MalformedVAA,
    NotGovernance,
)

_U16 = struct.Struct(">H")
_U32 = struct.Struct(">I")

U256_MAX = 2 ** 256 - 1


def _u256(value: int) -> bytes:
    if not 0 <= value <= U256_MAX:
        raise ValueError(f"Value out of u256 range: {value}")
    return value.to_bytes(32, "big")


def _require_len(data: bytes, expected: int, name: str) -> None:
    if len(data) != expected:
        raise MalformedVAA(f"{name} body must be {expected} bytes, got {len(data)}")


@dataclass(frozen=True)
class GovernanceHeader:
    module: GovernanceModule
    action: int
    chain: int

    def to_bytes(self) -> bytes:
        return self.module.padded + bytes([self.action]) + _U16.pack(self.chain)


class GovernanceAction:
    """Base for decoded governance actions. `chain` is the target chain."""

    module: GovernanceModule
    action_code: int
    chain: int

    @property
    def name(self) -> str:
        return type(self).__name__

    @property
    def header(self) -> GovernanceHeader:
        return GovernanceHeader(module=self.module, action=self.action_code, chain=self.chain)

    def encode_fields(self) -> bytes:
        raise NotImplementedError

    @classmethod
    def decode_fields(cls, data: bytes, chain: int, module: GovernanceModule) -> "GovernanceAction":
        raise NotImplementedError

    def to_bytes(self) -> bytes:
        """Full governance payload (header + fields)."""
        return self.header.to_bytes() + self.encode_fields()

    def to_dict(self) -> Dict[str, Any]:
        return {"module": self.module.value, "action": self.name, "chain": self.chain}


@dataclass(frozen=True)
class ContractUpgrade(GovernanceAction):
    """Record a new code target; replacing code is the host's job."""
    new_contract: bytes
    chain: int = 0
    module: GovernanceModule = GovernanceModule.CORE

    @property
    def action_code(self) -> int:
        if self.module == GovernanceModule.TOKEN_BRIDGE:
            return TokenBridgeAction.CONTRACT_UPGRADE
        return CoreAction.CONTRACT_UPGRADE

    def encode_fields(self) -> bytes:
        if len(self.new_contract) != ADDRESS_LEN:
            raise ValueError(f"new_contract must be {ADDRESS_LEN} bytes")
        return bytes(self.new_contract)

    @classmethod
    def decode_fields(cls, data, chain, module):
        _require_len(data, ADDRESS_LEN, "ContractUpgrade")
        return cls(new_contract=bytes(data), chain=chain, module=module)

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "new_contract": self.new_contract.hex()}


@dataclass(frozen=True)
class GuardianSetChange(GovernanceAction):
    new_index: int
    new_addresses: Tuple[bytes, ...]
    chain: int = 0

    module = GovernanceModule.CORE
    action_code = CoreAction.GUARDIAN_SET_CHANGE

    def encode_fields(self) -> bytes:
        if len(self.new_addresses) > 255:
            raise ValueError(f"Too many guardians: {len(self.new_addresses)}")
        for addr in self.new_addresses:
            if len(addr) != GUARDIAN_ADDRESS_LEN:
                raise ValueError(f"Guardian address must be {GUARDIAN_ADDRESS_LEN} bytes")
        return (
            _U32.pack(self.new_index)
            + bytes([len(self.new_addresses)])
            + b"".join(self.new_addresses)
        )

    @classmethod
    def decode_fields(cls, data, chain, module):
        if len(data) < 5:
            raise MalformedVAA(f"GuardianSetChange body too short: {len(data)} bytes")
        (new_index,) = _U32.unpack_from(data, 0)
        count = data[4]
        _require_len(data, 5 + count * GUARDIAN_ADDRESS_LEN, "GuardianSetChange")
        addresses = tuple(
            bytes(data[5 + i * GUARDIAN_ADDRESS_LEN:5 + (i + 1) * GUARDIAN_ADDRESS_LEN])
            for i in range(count)
        )
        return cls(new_index=new_index, new_addresses=addresses, chain=chain)

    def to_dict(self) -> Dict[str, Any]:
        return {
            **super().to_dict(),
            "new_index": self.new_index,
            "new_addresses": [a.hex() for a in self.new_addresses],
        }


@dataclass(frozen=True)
class SetMessageFee(GovernanceAction):
    fee: int
    chain: int = 0

    module = GovernanceModule.CORE
    action_code = CoreAction.SET_MESSAGE_FEE

    def encode_fields(self) -> bytes:
        return _u256(self.fee)

    @classmethod
    def decode_fields(cls, data, chain, module):
        _require_len(data, 32, "SetMessageFee")
        return cls(fee=int.from_bytes(data, "big"), chain=chain)

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "fee": self.fee}


@dataclass(frozen=True)
class TransferFees(GovernanceAction):
    amount: int
    recipient: bytes
    chain: int = 0

    module = GovernanceModule.CORE
    action_code = CoreAction.TRANSFER_FEES

    def encode_fields(self) -> bytes:
        if len(self.recipient) != ADDRESS_LEN:
            raise ValueError(f"recipient must be {ADDRESS_LEN} bytes")
        return _u256(self.amount) + bytes(self.recipient)

    @classmethod
    def decode_fields(cls, data, chain, module):
        _require_len(data, 32 + ADDRESS_LEN, "TransferFees")
        return cls(
            amount=int.from_bytes(data[:32], "big"),
            recipient=bytes(data[32:]),
            chain=chain,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "amount": self.amount, "recipient": self.recipient.hex()}


@dataclass(frozen=True)
class RegisterChain(GovernanceAction):
    """Bind a foreign emitter (e.g. a remote token bridge) to its chain id."""
    emitter_chain: int
    emitter_address: bytes
    chain: int = 0

    module = GovernanceModule.TOKEN_BRIDGE
    action_code = TokenBridgeAction.REGISTER_CHAIN

    def encode_fields(self) -> bytes:
        if len(self.emitter_address) != ADDRESS_LEN:
            raise ValueError(f"emitter_address must be {ADDRESS_LEN} bytes")
        return _U16.pack(self.emitter_chain) + bytes(self.emitter_address)

    @classmethod
    def decode_fields(cls, data, chain, module):
        _require_len(data, 2 + ADDRESS_LEN, "RegisterChain")
        (emitter_chain,) = _U16.unpack_from(data, 0)
        return cls(emitter_chain=emitter_chain, emitter_address=bytes(data[2:]), chain=chain)

    def to_dict(self) -> Dict[str, Any]:
        return {
            **super().to_dict(),
            "emitter_chain": self.emitter_chain,
            "emitter_address": self.emitter_address.hex(),
        }


ACTIONS: Dict[Tuple[GovernanceModule, int], Type[GovernanceAction]] = {
    (GovernanceModule.CORE, CoreAction.CONTRACT_UPGRADE): ContractUpgrade,
    (GovernanceModule.CORE, CoreAction.GUARDIAN_SET_CHANGE): GuardianSetChange,
    (GovernanceModule.CORE, CoreAction.SET_MESSAGE_FEE): SetMessageFee,
    (GovernanceModule.CORE, CoreAction.TRANSFER_FEES): TransferFees,
    (GovernanceModule.TOKEN_BRIDGE, TokenBridgeAction.REGISTER_CHAIN): RegisterChain,
    (GovernanceModule.TOKEN_BRIDGE, TokenBridgeAction.CONTRACT_UPGRADE): ContractUpgrade,
}


def decode_header(payload: bytes) -> GovernanceHeader:
    """
    Parse the 35-byte governance header.

    Raises:
        NotGovernance: payload too short to carry a header
        InvalidGovernanceModule: unknown module name
    """
    payload = bytes(payload)
    if len(payload) < GOVERNANCE_HEADER_LEN:
        raise NotGovernance(
            f"Payload of {len(payload)} bytes is shorter than a governance header"
        )
    raw_module = payload[:MODULE_LEN]
    module = next((m for m in GovernanceModule if m.padded == raw_module), None)
    if module is None:
        raise InvalidGovernanceModule(f"Unknown governance module: {raw_module.hex()}")
    action = payload[MODULE_LEN]
    (chain,) = _U16.unpack_from(payload, MODULE_LEN + 1)
    return GovernanceHeader(module=module, action=action, chain=chain)


def decode_governance(
    payload: bytes,
    chain_id: int,
    module: Optional[GovernanceModule] = None,
) -> GovernanceAction:
    """
    Decode and validate a governance payload.

    Args:
        payload: VAA payload bytes
        chain_id: This chain's id; the target must be 0 or equal to it
        module: Expected module family (any known module when None)

    Returns:
        Decoded GovernanceAction

    Raises:
        NotGovernance, InvalidGovernanceModule, InvalidGovernanceAction,
        InvalidGovernanceChain, MalformedVAA
    """
    header = decode_header(payload)
    if module is not None and header.module != module:
        raise InvalidGovernanceModule(
            f"Expected module {module.value}, got {header.module.value}"
        )

    action_cls = ACTIONS.get((header.module, header.action))
    if action_cls is None:
        raise InvalidGovernanceAction(
            f"Unknown action {header.action} for module {header.module.value}"
        )

    if header.chain not in (0, chain_id):
        raise InvalidGovernanceChain(
            f"Governance action targets chain {header.chain}, this chain is {chain_id}"
        )

    return action_cls.decode_fields(
        bytes(payload[GOVERNANCE_HEADER_LEN:]), header.chain, header.module,
    )


def encode_governance(action: GovernanceAction) -> bytes:
    return action.to_bytes()
