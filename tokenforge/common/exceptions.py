"""
TokenForge 代币发行工具 — 自定义异常

异常层级：
- TokenForgeError: 基础异常
  - ConfigurationError: 配置异常
  - IdentityError: 钱包身份异常
  - DataError: 数据层异常
  - StateStoreError: 状态存储异常
  - LedgerError: 账本客户端异常
  - ProvisioningError: 发行流程异常
"""

from typing import Any


class TokenForgeError(Exception):
    """代币发行工具基础异常"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(TokenForgeError):
    """配置异常"""
    pass


class IdentityError(TokenForgeError):
    """钱包身份异常（密钥文件缺失或格式错误）"""
    pass


# ============================================================
# 数据层异常
# ============================================================

class DataError(TokenForgeError):
    """数据层异常"""
    pass


class DataValidationError(DataError):
    """数据验证失败"""
    pass


# ============================================================
# 状态存储异常
# ============================================================

class StateStoreError(TokenForgeError):
    """状态存储异常"""
    pass


class CorruptStateError(StateStoreError):
    """
    状态记录无法解析

    调用方应视为记录不存在并发出警告，不得静默覆盖。
    """
    pass


class StateLockedError(StateStoreError):
    """状态记录已被其他进程锁定"""
    pass


# ============================================================
# 账本客户端异常
# ============================================================

class LedgerError(TokenForgeError):
    """账本客户端异常"""

    retryable: bool = False


class NetworkError(LedgerError):
    """网络连接异常（可稍后重试）"""

    retryable = True


class LedgerTimeoutError(NetworkError):
    """请求或确认超时"""
    pass


class RateLimitedError(LedgerError):
    """请求被限流（可稍后重试）"""

    retryable = True


class RemoteRejectedError(LedgerError):
    """远端拒绝了变更操作"""

    retryable = True


class UnsupportedOnNetworkError(LedgerError):
    """当前网络不支持该操作（例如主网申请空投）"""
    pass


# ============================================================
# 发行流程异常
# ============================================================

class ProvisioningError(TokenForgeError):
    """发行流程异常"""
    pass


class InsufficientResourcesError(ProvisioningError):
    """余额不足，未执行任何远端变更"""
    pass


class InvalidStateTransitionError(ProvisioningError):
    """非法状态转换"""
    pass


class FundingDeclinedError(ProvisioningError):
    """资金申请失败且操作员选择不继续"""
    pass


class StepFailedError(ProvisioningError):
    """
    发行步骤失败

    携带失败的步骤与底层账本异常，已持久化的状态保持不变。
    """

    def __init__(
        self,
        step: Any,
        cause: LedgerError,
        details: dict[str, Any] | None = None,
    ):
        step_name = getattr(step, "value", str(step))
        super().__init__(
            f"步骤 {step_name} 失败: {cause.message}",
            details={
                "step": step_name,
                "error_kind": type(cause).__name__,
                **cause.details,
                **(details or {}),
            },
        )
        self.step = step
        self.cause = cause

    @property
    def retryable(self) -> bool:
        """下次调用是否可以安全重试"""
        return self.cause.retryable
