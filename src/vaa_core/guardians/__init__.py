# -*- encoding: utf-8 -*-
"""
Guardian sets - versioned guardian address lists with rotation and expiry.

Usage:
    from vaa_core.guardians import GuardianSetRegistry, quorum

    registry = GuardianSetRegistry(grace_period=86400)
    registry.initialize(0, addresses, now=now)
    quorum(19)  # 13
"""

from .registry import (
    MAX_GUARDIANS,
    GuardianSet,
    GuardianSetRegistry,
    quorum,
)

__all__ = [
    "MAX_GUARDIANS",
    "GuardianSet",
    "GuardianSetRegistry",
    "quorum",
]
