"""
TokenForge 代币发行工具 — 发行状态机

可恢复的多步骤发行流程：状态定义、转换、持久化与状态机。
"""

from .machine import ProvisioningOutcome, ProvisioningStateMachine
from .states import (
    ACTION_RESULTS,
    STEP_METADATA,
    VALID_TRANSITIONS,
    StepMetadata,
    get_step_metadata,
    is_terminal,
    is_valid_transition,
    next_action,
)
from .storage import StateStore
from .transitions import StateTransition, TransitionRecord

__all__ = [
    # States
    "StepMetadata",
    "STEP_METADATA",
    "VALID_TRANSITIONS",
    "ACTION_RESULTS",
    "get_step_metadata",
    "is_terminal",
    "is_valid_transition",
    "next_action",
    # Transitions
    "StateTransition",
    "TransitionRecord",
    # Machine
    "ProvisioningOutcome",
    "ProvisioningStateMachine",
    # Storage
    "StateStore",
]
