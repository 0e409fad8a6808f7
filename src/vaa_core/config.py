# -*- encoding: utf-8 -*-
"""
Deployment configuration.

The governance emitter and this chain's id are fixed at deployment time by
the host; they are never discovered at runtime.

Usage:
    from vaa_core.config import CoreConfig, load_config

    config = load_config(Path("deploy/ethereum.json"))
    config = CoreConfig(chain_id=Chain.NEAR)

Config file (JSON, every key optional):
    {
        "chain_id": 2,
        "governance_chain": 1,
        "governance_emitter": "0000...0004",
        "guardian_set_grace_period": 86400,
        "message_fee": 0,
        "program_id": ""
    }
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from .codes import ADDRESS_LEN, DEFAULT_GUARDIAN_SET_GRACE_PERIOD, Chain

logger = logging.getLogger(__name__)

DEFAULT_GOVERNANCE_EMITTER = (4).to_bytes(ADDRESS_LEN, "big")


@dataclass
class CoreConfig:
    """
    Fixed deployment parameters.

    Attributes:
        chain_id: This chain's u16 id (governance target check)
        governance_chain: Chain id of the governance emitter
        governance_emitter: 32-byte governance emitter address
        guardian_set_grace_period: Seconds a superseded guardian set stays valid
        message_fee: Initial fee charged per published message
        program_id: Host program identity used as derivation salt
    """
    chain_id: int = Chain.ETHEREUM
    governance_chain: int = Chain.SOLANA
    governance_emitter: bytes = DEFAULT_GOVERNANCE_EMITTER
    guardian_set_grace_period: int = DEFAULT_GUARDIAN_SET_GRACE_PERIOD
    message_fee: int = 0
    program_id: bytes = field(default=b"")

    def __post_init__(self):
        if len(self.governance_emitter) != ADDRESS_LEN:
            raise ValueError(
                f"governance_emitter must be {ADDRESS_LEN} bytes, got {len(self.governance_emitter)}"
            )
        if not 0 < self.chain_id <= 0xFFFF:
            raise ValueError(f"chain_id must be a non-zero u16, got {self.chain_id}")
        if self.guardian_set_grace_period < 0:
            raise ValueError("guardian_set_grace_period must be >= 0")
        if self.message_fee < 0:
            raise ValueError("message_fee must be >= 0")

    def is_governance_emitter(self, chain: int, address: bytes) -> bool:
        return chain == self.governance_chain and address == self.governance_emitter

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chain_id": int(self.chain_id),
            "governance_chain": int(self.governance_chain),
            "governance_emitter": self.governance_emitter.hex(),
            "guardian_set_grace_period": self.guardian_set_grace_period,
            "message_fee": self.message_fee,
            "program_id": self.program_id.hex(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CoreConfig":
        defaults = cls()
        emitter = data.get("governance_emitter")
        program = data.get("program_id")
        return cls(
            chain_id=int(data.get("chain_id", defaults.chain_id)),
            governance_chain=int(data.get("governance_chain", defaults.governance_chain)),
            governance_emitter=(
                bytes.fromhex(emitter.removeprefix("0x")) if emitter else defaults.governance_emitter
            ),
            guardian_set_grace_period=int(
                data.get("guardian_set_grace_period", defaults.guardian_set_grace_period)
            ),
            message_fee=int(data.get("message_fee", defaults.message_fee)),
            program_id=bytes.fromhex(program.removeprefix("0x")) if program else b"",
        )


def load_config(path: Path) -> CoreConfig:
    """Load configuration from a JSON file."""
    data = json.loads(Path(path).read_text())
    config = CoreConfig.from_dict(data)
    logger.info(f"Loaded config from {path}: chain {config.chain_id}")
    return config


# Module-level singleton
_config: Optional[CoreConfig] = None
_config_lock = threading.Lock()


def get_config() -> CoreConfig:
    """Get the process-wide configuration (defaults until set_config)."""
    global _config
    with _config_lock:
        if _config is None:
            _config = CoreConfig()
        return _config


def set_config(config: CoreConfig) -> None:
    global _config
    with _config_lock:
        _config = config


def reset_config():
    """Reset the configuration (for testing)."""
    global _config
    with _config_lock:
        _config = None
