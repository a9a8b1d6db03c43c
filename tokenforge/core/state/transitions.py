"""
TokenForge 代币发行工具 — 状态转换记录

校验转换合法性并记录本次运行的转换历史。
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from tokenforge.common.enums import ProvisioningStep, StepAction
from tokenforge.common.exceptions import InvalidStateTransitionError
from tokenforge.common.logging import get_logger
from tokenforge.common.utils import utc_now

from .states import ACTION_RESULTS, get_step_metadata, is_valid_transition

logger = get_logger(__name__)


@dataclass
class TransitionRecord:
    """状态转换记录"""
    from_step: ProvisioningStep
    to_step: ProvisioningStep
    action: StepAction
    handle: str | None = None
    timestamp: datetime = field(default_factory=utc_now)
    metadata: dict[str, Any] = field(default_factory=dict)


class StateTransition:
    """
    状态转换器

    只允许沿 VALID_TRANSITIONS 前进一步，拒绝回退和跳步。
    """

    def __init__(self):
        self._history: list[TransitionRecord] = []

    def check(
        self,
        from_step: ProvisioningStep,
        to_step: ProvisioningStep,
        action: StepAction | None = None,
    ) -> None:
        """
        校验转换

        给出 action 时还要求目标状态与该动作的结果一致。

        Raises:
            InvalidStateTransitionError: 转换不合法
        """
        if not is_valid_transition(from_step, to_step):
            raise InvalidStateTransitionError(
                f"不允许从 {from_step.value} 转换到 {to_step.value}",
                details={"from": from_step.value, "to": to_step.value},
            )
        if action is not None and ACTION_RESULTS[action] != to_step:
            raise InvalidStateTransitionError(
                f"动作 {action.value} 应到达 {ACTION_RESULTS[action].value}，实际为 {to_step.value}",
                details={"action": action.value, "to": to_step.value},
            )

    def record(
        self,
        from_step: ProvisioningStep,
        to_step: ProvisioningStep,
        action: StepAction,
        handle: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> TransitionRecord:
        """记录一次已持久化的转换"""
        self.check(from_step, to_step, action)
        record = TransitionRecord(
            from_step=from_step,
            to_step=to_step,
            action=action,
            handle=handle,
            metadata=metadata or {},
        )
        self._history.append(record)

        logger.info(
            f"状态转换: {from_step.value} -> {to_step.value} "
            f"({get_step_metadata(to_step).name})",
            extra={"from": from_step.value, "to": to_step.value, "handle": handle},
        )
        return record

    def get_history(self, limit: int = 100) -> list[TransitionRecord]:
        """获取转换历史"""
        return self._history[-limit:]

    def get_last_transition(self) -> TransitionRecord | None:
        """获取最后一次转换"""
        return self._history[-1] if self._history else None
