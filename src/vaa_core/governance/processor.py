# -*- encoding: utf-8 -*-
"""
GovernanceProcessor - fail-closed execution of governance actions.

Governance actions ride inside ordinary VAAs, so they have already passed
quorum verification. Before any state changes the processor enforces:

1. Emitter: the VAA's (emitter_chain, emitter_address) is the configured
   governance emitter (InvalidGovernanceKey otherwise)
2. Guardian set: the VAA was signed by the *active* guardian set; a set
   inside its rotation grace window cannot govern (InvalidGovernanceSet)
3. Payload: module, action and target chain decode cleanly
   (InvalidGovernanceModule / InvalidGovernanceAction / InvalidGovernanceChain)
4. Replay: the VAA is claimed exactly once (AlreadyClaimed)

Then the action is applied to the CoreState through its journaled
mutators. Run it inside a StateStore transaction: a failure anywhere undoes
the claim and every partial effect.

Usage:
    processor = GovernanceProcessor(config)

    with store.transaction() as state:
        verified = verify_vaa(vaa, state.registry, now)
        result = processor.process(verified, state, now=now)
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Type

from ..config import CoreConfig
from ..errors import (
    BankUnderflow,
    ChainAlreadyRegistered,
    InvalidContractUpgrade,
    InvalidGovernanceKey,
    InvalidGovernanceSet,
)
from ..codes import GovernanceModule, chain_name
from ..replay import ClaimKey
from ..state import CoreState, FeeTransfer
from ..verification import VerifiedVAA
from .actions import (
    ContractUpgrade,
    GovernanceAction,
    GuardianSetChange,
    RegisterChain,
    SetMessageFee,
    TransferFees,
    decode_governance,
)

logger = logging.getLogger(__name__)


@dataclass
class GovernanceResult:
    """Outcome of an applied governance action."""
    action: GovernanceAction
    message_id: str
    guardian_set_index: int
    fee_transfer: Optional[FeeTransfer] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.to_dict(),
            "message_id": self.message_id,
            "guardian_set_index": self.guardian_set_index,
            "fee_transfer": self.fee_transfer.to_dict() if self.fee_transfer else None,
        }


class GovernanceProcessor:
    """Validates governance VAAs and applies their actions to CoreState."""

    def __init__(self, config: CoreConfig):
        self._config = config
        self._handlers: Dict[Type[GovernanceAction], Callable[..., Optional[FeeTransfer]]] = {
            GuardianSetChange: self._apply_guardian_set_change,
            SetMessageFee: self._apply_set_message_fee,
            TransferFees: self._apply_transfer_fees,
            ContractUpgrade: self._apply_contract_upgrade,
            RegisterChain: self._apply_register_chain,
        }

    @property
    def config(self) -> CoreConfig:
        return self._config

    # ------------------------------------------------------------------
    # Preconditions
    # ------------------------------------------------------------------

    def check_emitter(self, verified: VerifiedVAA) -> None:
        if not self._config.is_governance_emitter(verified.emitter_chain, verified.emitter_address):
            logger.warning(
                f"Governance rejected: emitter {chain_name(verified.emitter_chain)}/"
                f"{verified.emitter_address.hex()} is not the governance emitter"
            )
            raise InvalidGovernanceKey(
                f"Emitter {verified.emitter_chain}/{verified.emitter_address.hex()} "
                f"is not the governance emitter"
            )

    def check_guardian_set(self, verified: VerifiedVAA, state: CoreState) -> None:
        current = state.registry.current_index
        if verified.guardian_set_index != current:
            logger.warning(
                f"Governance rejected: signed by guardian set {verified.guardian_set_index}, "
                f"active set is {current}"
            )
            raise InvalidGovernanceSet(
                f"Governance must be signed by the active guardian set {current}, "
                f"got {verified.guardian_set_index}"
            )

    def decode(
        self,
        verified: VerifiedVAA,
        module: Optional[GovernanceModule] = None,
    ) -> GovernanceAction:
        return decode_governance(verified.payload, self._config.chain_id, module=module)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def process(
        self,
        verified: VerifiedVAA,
        state: CoreState,
        now: int,
        module: Optional[GovernanceModule] = None,
    ) -> GovernanceResult:
        """
        Validate, claim and apply a governance VAA against `state`.

        Args:
            verified: Quorum-verified VAA
            state: State yielded by a StateStore transaction
            now: Host clock
            module: Restrict to one module family (any known module when None)

        Returns:
            GovernanceResult

        Raises:
            InvalidGovernanceKey, InvalidGovernanceSet, NotGovernance,
            InvalidGovernanceModule, InvalidGovernanceAction,
            InvalidGovernanceChain, AlreadyClaimed, InvalidGovernanceSetIndex,
            InvalidGuardianSet, BankUnderflow, ChainAlreadyRegistered
        """
        self.check_emitter(verified)
        self.check_guardian_set(verified, state)
        action = self.decode(verified, module=module)

        key = ClaimKey.for_body(verified.body)
        state.replay.claim(key, now, digest=verified.digest)

        fee_transfer = self._handlers[type(action)](action, state, now, str(key))
        logger.info(f"Applied governance {action.module.value}/{action.name} from {key}")

        return GovernanceResult(
            action=action,
            message_id=str(key),
            guardian_set_index=verified.guardian_set_index,
            fee_transfer=fee_transfer,
        )

    # ------------------------------------------------------------------
    # Action handlers
    # ------------------------------------------------------------------

    def _apply_guardian_set_change(self, action: GuardianSetChange, state, now, message_id):
        state.registry.rotate(action.new_index, action.new_addresses, now)
        return None

    def _apply_set_message_fee(self, action: SetMessageFee, state, now, message_id):
        logger.info(f"Message fee {state.message_fee} -> {action.fee}")
        state.set_message_fee(action.fee)
        return None

    def _apply_transfer_fees(self, action: TransferFees, state, now, message_id):
        if action.amount > state.bank:
            raise BankUnderflow(
                f"Transfer of {action.amount} exceeds fee balance {state.bank}"
            )
        state.debit(action.amount)
        transfer = FeeTransfer(
            amount=action.amount,
            recipient=action.recipient,
            message_id=message_id,
        )
        state.record_fee_transfer(transfer)
        logger.info(f"Fee transfer of {action.amount} to {action.recipient.hex()}")
        return transfer

    def _apply_contract_upgrade(self, action: ContractUpgrade, state, now, message_id):
        state.set_upgrade_target(action.module.value, action.new_contract)
        logger.info(f"Upgrade target for {action.module.value}: {action.new_contract.hex()}")
        return None

    def _apply_register_chain(self, action: RegisterChain, state, now, message_id):
        key = (action.emitter_chain, action.emitter_address)
        if key in state.registered_emitters:
            raise ChainAlreadyRegistered(
                f"Emitter {action.emitter_address.hex()} already registered "
                f"for chain {action.emitter_chain}"
            )
        state.register_emitter(action.emitter_chain, action.emitter_address, now)
        logger.info(
            f"Registered emitter {action.emitter_address.hex()} "
            f"for chain {chain_name(action.emitter_chain)}"
        )
        return None


def verify_upgrade(
    state: CoreState,
    code: bytes,
    module: GovernanceModule = GovernanceModule.CORE,
) -> bytes:
    """
    Check replacement code against the governance-approved target.

    The target recorded by ContractUpgrade is the SHA-256 of the new code.

    Returns:
        The matching code hash

    Raises:
        InvalidContractUpgrade: no target recorded or hash mismatch
    """
    target = state.upgrade_targets.get(module.value)
    code_hash = hashlib.sha256(bytes(code)).digest()
    if target is None:
        raise InvalidContractUpgrade(f"No upgrade approved for module {module.value}")
    if code_hash != target:
        raise InvalidContractUpgrade(
            f"Code hash {code_hash.hex()} does not match approved {target.hex()}"
        )
    return code_hash
