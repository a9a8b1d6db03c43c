"""
TokenForge 代币发行工具 — 发行状态机

按 创建铸币 → 创建持币账户 → 发行初始供应量 的顺序推进。
每一步成功后立即持久化，再尝试下一步；进程中断后从最后完成的步骤恢复。
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from tokenforge.common.config import ProvisioningConfig
from tokenforge.common.enums import ProvisioningStep, StepAction
from tokenforge.common.exceptions import (
    DataValidationError,
    InsufficientResourcesError,
    LedgerError,
    StateStoreError,
    StepFailedError,
)
from tokenforge.common.logging import LoggerAdapter, get_logger
from tokenforge.common.models import NetworkTarget, ProvisioningParams, ProvisioningState
from tokenforge.common.utils import format_sol
from tokenforge.core.ledger.base import LedgerClient
from tokenforge.wallet.keypair import Identity

from .states import is_terminal, next_action
from .storage import StateStore
from .transitions import StateTransition, TransitionRecord

logger = get_logger(__name__)

StepHandler = Callable[
    [ProvisioningState, ProvisioningParams],
    Awaitable[tuple[ProvisioningState, str]],
]


@dataclass
class ProvisioningOutcome:
    """一次运行的结果"""
    state: ProvisioningState
    executed_steps: list[StepAction] = field(default_factory=list)
    transitions: list[TransitionRecord] = field(default_factory=list)
    already_complete: bool = False

    @property
    def is_complete(self) -> bool:
        return self.state.step == ProvisioningStep.ISSUED


class ProvisioningStateMachine:
    """
    发行状态机

    只接受完全解析的参数，从不交互。
    一次只有一个远端调用在进行；步骤失败时不推进已持久化的状态。
    """

    def __init__(
        self,
        ledger: LedgerClient,
        store: StateStore,
        identity: Identity,
        target: NetworkTarget,
        config: ProvisioningConfig | None = None,
    ):
        self.ledger = ledger
        self.store = store
        self.identity = identity
        self.target = target
        self.config = config or ProvisioningConfig()
        self._transition = StateTransition()
        self._log = LoggerAdapter(
            logger,
            {"identity": identity.public_key, "network": str(target)},
        )
        self._handlers: dict[StepAction, StepHandler] = {
            StepAction.CREATE_MINT: self._create_mint,
            StepAction.CREATE_HOLDING_ACCOUNT: self._create_holding_account,
            StepAction.ISSUE_SUPPLY: self._issue_supply,
        }

    def get_transition_history(self, limit: int = 100) -> list[TransitionRecord]:
        """获取本次运行的状态转换历史"""
        return self._transition.get_history(limit)

    async def run(
        self,
        state: ProvisioningState | None,
        params: ProvisioningParams,
    ) -> ProvisioningOutcome:
        """
        从给定状态推进到终态

        Args:
            state: 已加载的状态记录，None 表示全新开始
            params: 本次提供的参数（铸币已存在时以记录值为准）

        Returns:
            运行结果

        Raises:
            InsufficientResourcesError: 余额不足，未执行变更
            StepFailedError: 某一步远端调用失败
            StateStoreError: 远端成功但本地保存失败
        """
        state = state or ProvisioningState.fresh(self.target)
        if state.target != self.target:
            raise DataValidationError(
                f"状态记录属于 {state.target}，当前网络为 {self.target}"
            )

        if is_terminal(state.step):
            self._log.info(f"代币已发行完成，无需操作: {state.mint_handle}")
            return ProvisioningOutcome(state=state, already_complete=True)

        if state.step != ProvisioningStep.FRESH:
            self._log.info(f"从已保存的进度恢复: {state.step.value}")
        self._warn_divergence(state, params)

        executed: list[StepAction] = []
        while (action := next_action(state.step)) is not None:
            await self._check_resources(action)
            state = await self._perform(action, state, params)
            executed.append(action)

        return ProvisioningOutcome(
            state=state,
            executed_steps=executed,
            transitions=self._transition.get_history(),
        )

    def _warn_divergence(self, state: ProvisioningState, params: ProvisioningParams) -> None:
        diverging = state.diverging_fields(params)
        for name, (recorded, supplied) in diverging.items():
            self._log.warning(
                f"参数 {name} 与已记录值不同，将使用记录值: 记录={recorded}, 本次={supplied}"
            )

    async def _check_resources(self, action: StepAction) -> None:
        """余额前置检查（建议性，远端仍可能拒绝）"""
        try:
            balance = await self.ledger.get_balance(self.identity)
        except LedgerError as e:
            raise StepFailedError(action, e) from e

        required = self.config.min_balance_lamports
        if balance < required:
            raise InsufficientResourcesError(
                f"余额不足: 当前 {format_sol(balance)}，{action.value} 至少需要 {format_sol(required)}",
                details={"step": action.value, "balance": balance, "required": required},
            )

    async def _perform(
        self,
        action: StepAction,
        state: ProvisioningState,
        params: ProvisioningParams,
    ) -> ProvisioningState:
        """执行一步：远端调用 → 校验转换 → 持久化 → 记录"""
        handler = self._handlers[action]
        try:
            next_state, handle = await handler(state, params)
        except LedgerError as e:
            self._log.error(f"步骤 {action.value} 失败: {e.message}")
            raise StepFailedError(action, e) from e

        self._transition.check(state.step, next_state.step, action)

        try:
            self.store.save(self.identity, self.target, next_state)
        except StateStoreError:
            self._log.error(
                f"步骤 {action.value} 已在远端完成但本地保存失败，请手动记录: {handle}"
            )
            raise

        self._transition.record(state.step, next_state.step, action, handle=handle)
        return next_state

    # ========================================
    # 步骤实现
    # ========================================

    async def _create_mint(
        self, state: ProvisioningState, params: ProvisioningParams
    ) -> tuple[ProvisioningState, str]:
        self._log.info(f"创建铸币: symbol={params.symbol}, decimals={params.decimals}")
        mint = await self.ledger.create_mint(self.identity, params.decimals)
        self._log.info(f"铸币已创建: {mint}")
        return state.with_mint(mint, params), mint

    async def _create_holding_account(
        self, state: ProvisioningState, params: ProvisioningParams
    ) -> tuple[ProvisioningState, str]:
        self._log.info(f"创建关联持币账户: mint={state.mint_handle}")
        account = await self.ledger.create_or_get_holding_account(
            state.mint_handle, self.identity
        )
        self._log.info(f"持币账户: {account}")
        return state.with_holding_account(account), account

    async def _issue_supply(
        self, state: ProvisioningState, params: ProvisioningParams
    ) -> tuple[ProvisioningState, str]:
        # 使用记录的 decimals/supply，保证恢复时发行量与最初一致
        quantity = state.issuance_quantity
        self._log.info(f"发行 {state.requested_supply} 枚代币（{quantity} 最小单位）")
        signature = await self.ledger.issue(
            state.mint_handle,
            state.holding_account_handle,
            quantity,
            self.identity,
        )
        self._log.info(f"发行完成: {signature}")
        return state.with_issuance(), signature
