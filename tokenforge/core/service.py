"""
TokenForge 代币发行工具 — 发行服务

整合状态存储、资金检查和状态机，对外提供一次完整的发行流程。
交互确认通过回调注入，服务本身不读取终端输入。
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from decimal import Decimal

from tokenforge.common.config import Settings
from tokenforge.common.enums import ConfirmPrompt, ProvisioningStep, StepAction
from tokenforge.common.exceptions import (
    CorruptStateError,
    FundingDeclinedError,
    NetworkError,
    RateLimitedError,
    RemoteRejectedError,
)
from tokenforge.common.logging import get_logger
from tokenforge.common.models import NetworkTarget, ProvisioningParams, ProvisioningState
from tokenforge.common.utils import format_sol
from tokenforge.core.ledger.base import LedgerClient
from tokenforge.core.ledger.endpoints import explorer_url
from tokenforge.core.state.machine import ProvisioningOutcome, ProvisioningStateMachine
from tokenforge.core.state.storage import StateStore
from tokenforge.wallet.keypair import Identity

logger = get_logger(__name__)

# (问题类型, 提示文本) -> 是否同意
ConfirmCallback = Callable[[ConfirmPrompt, str], bool]


def _decline(prompt: ConfirmPrompt, message: str) -> bool:
    return False


@dataclass
class ProvisioningSummary:
    """发行结果摘要（取自已持久化的记录）"""
    name: str | None
    symbol: str | None
    decimals: int | None
    supply: Decimal | None
    mint: str | None
    holding_account: str | None
    owner: str
    target: NetworkTarget
    explorer_url: str | None
    executed_steps: list[StepAction] = field(default_factory=list)
    already_complete: bool = False


class ProvisioningService:
    """
    发行服务

    加锁 → 加载状态 → 资金检查 → 运行状态机 → 摘要。
    """

    def __init__(
        self,
        ledger: LedgerClient,
        identity: Identity,
        target: NetworkTarget,
        settings: Settings | None = None,
        store: StateStore | None = None,
    ):
        self.settings = settings or Settings()
        self.ledger = ledger
        self.identity = identity
        self.target = target
        self.store = store or StateStore(self.settings.storage.state_dir)
        self.machine = ProvisioningStateMachine(
            ledger=ledger,
            store=self.store,
            identity=identity,
            target=target,
            config=self.settings.provisioning,
        )

    # ========================================
    # 状态加载
    # ========================================

    def load_state(self) -> ProvisioningState | None:
        """
        加载状态记录

        记录损坏时发出警告、隔离原文件并按全新记录处理。
        """
        try:
            return self.store.load(self.identity, self.target)
        except CorruptStateError as e:
            logger.warning(f"{e.message}，将按全新记录处理", extra={"details": e.details})
            self.store.quarantine(self.identity, self.target)
            return None

    # ========================================
    # 资金
    # ========================================

    async def ensure_funded(self, confirm: ConfirmCallback = _decline) -> int:
        """
        余额低于阈值时按操作员确认申请空投

        Returns:
            最新余额（lamports）

        Raises:
            FundingDeclinedError: 空投失败且操作员选择不继续
        """
        config = self.settings.provisioning
        balance = await self.ledger.get_balance(self.identity)
        logger.info(f"当前钱包余额: {format_sol(balance)}")

        if balance >= config.funding_threshold_lamports:
            return balance

        if not self.target.supports_funding:
            logger.warning(
                f"{self.target} 不支持空投，钱包需要已有 SOL（当前 {format_sol(balance)}）"
            )
            return balance

        question = (
            f"钱包余额低于 {format_sol(config.funding_threshold_lamports)}，"
            f"是否申请 {format_sol(config.funding_amount_lamports)} 空投?"
        )
        if not confirm(ConfirmPrompt.REQUEST_FUNDING, question):
            return balance

        try:
            await self.ledger.request_funding(self.identity, config.funding_amount_lamports)
        except (RateLimitedError, NetworkError, RemoteRejectedError) as e:
            logger.warning(f"空投失败（常见原因：限流或网络问题）: {e.message}")
            if not confirm(ConfirmPrompt.PROCEED_WITHOUT_FUNDING, "是否在没有空投的情况下继续?"):
                raise FundingDeclinedError(
                    "空投失败，操作员选择退出",
                    details={"address": self.identity.public_key},
                ) from e
            logger.info("在没有空投的情况下继续")
            return balance

        balance = await self.ledger.get_balance(self.identity)
        logger.info(f"空投到账，当前余额: {format_sol(balance)}")
        return balance

    # ========================================
    # 发行
    # ========================================

    async def provision(
        self,
        params: ProvisioningParams,
        confirm: ConfirmCallback = _decline,
    ) -> ProvisioningSummary:
        """
        执行完整发行流程

        已发行的记录不触发任何账本调用。
        """
        with self.store.lock(self.identity, self.target):
            state = self.load_state()

            if state is None or state.step != ProvisioningStep.ISSUED:
                await self.ensure_funded(confirm)

            outcome = await self.machine.run(state, params)

        return self.summarize(outcome)

    def summarize(self, outcome: ProvisioningOutcome) -> ProvisioningSummary:
        state = outcome.state
        return ProvisioningSummary(
            name=state.requested_name,
            symbol=state.requested_symbol,
            decimals=state.requested_decimals,
            supply=state.requested_supply,
            mint=state.mint_handle,
            holding_account=state.holding_account_handle,
            owner=self.identity.public_key,
            target=self.target,
            explorer_url=explorer_url(state.mint_handle, self.target) if state.mint_handle else None,
            executed_steps=list(outcome.executed_steps),
            already_complete=outcome.already_complete,
        )
