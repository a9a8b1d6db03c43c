"""
TokenForge 代币发行工具 — JSON-RPC 账本客户端

通过 Solana JSON-RPC 查询余额、申请空投、提交并确认交易。
交易的指令编码和签名由 TransactionBuilder 提供。
"""

import asyncio
from typing import Any

import httpx

from tokenforge.common.config import LedgerConfig
from tokenforge.common.exceptions import (
    ConfigurationError,
    DataValidationError,
    LedgerTimeoutError,
    NetworkError,
    RateLimitedError,
    RemoteRejectedError,
    UnsupportedOnNetworkError,
)
from tokenforge.common.logging import get_logger
from tokenforge.common.models import NetworkTarget
from tokenforge.common.retry import retry_with_backoff
from tokenforge.wallet.keypair import Identity

from .base import BuiltTransaction, LedgerClient, TransactionBuilder
from .endpoints import resolve_endpoint

logger = get_logger(__name__)

# SPL 铸币账户大小（字节）
MINT_ACCOUNT_SIZE = 82

_COMMITMENT_LEVELS = {"processed": 0, "confirmed": 1, "finalized": 2}


def _reached(status: str | None, required: str) -> bool:
    if status is None:
        return False
    return _COMMITMENT_LEVELS.get(status, -1) >= _COMMITMENT_LEVELS[required]


class RpcLedgerClient(LedgerClient):
    """
    JSON-RPC 账本客户端

    网络错误按配置自动重试；限流和远端拒绝直接抛出。
    空投请求不重试（非幂等）。
    """

    def __init__(
        self,
        target: NetworkTarget,
        config: LedgerConfig | None = None,
        builder: TransactionBuilder | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._target = target
        self.config = config or LedgerConfig()
        self.endpoint = resolve_endpoint(target, self.config.endpoints)
        self.builder = builder
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._request_id = 0

        self._call = retry_with_backoff(
            max_retries=self.config.max_retries,
            base_delay=self.config.retry_base_delay,
            exceptions=(NetworkError,),
        )(self._post)

    @property
    def name(self) -> str:
        return "solana-rpc"

    @property
    def target(self) -> NetworkTarget:
        return self._target

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    # ========================================
    # 连接管理
    # ========================================

    async def connect(self) -> None:
        """建立 HTTP 连接"""
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            timeout=self.config.request_timeout,
            transport=self._transport,
        )
        logger.info(f"已连接账本 {self._target}: {self.endpoint}")

    async def disconnect(self) -> None:
        """断开连接"""
        if self._client:
            await self._client.aclose()
            self._client = None
        logger.info("账本客户端已断开")

    # ========================================
    # JSON-RPC
    # ========================================

    async def _post(self, method: str, params: list[Any]) -> Any:
        """发送一次 JSON-RPC 请求"""
        if not self._client:
            raise RuntimeError("客户端未连接")

        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }

        try:
            response = await self._client.post(self.endpoint, json=payload)
        except httpx.TimeoutException as e:
            raise LedgerTimeoutError(f"{method} 请求超时", details={"method": method}) from e
        except httpx.TransportError as e:
            raise NetworkError(
                f"{method} 连接失败: {e}",
                details={"method": method, "endpoint": self.endpoint},
            ) from e

        if response.status_code == 429:
            raise RateLimitedError(
                f"{method} 被限流",
                details={"method": method, "retry_after": response.headers.get("Retry-After")},
            )
        if response.status_code >= 500:
            raise NetworkError(
                f"{method} 服务端错误: HTTP {response.status_code}",
                details={"method": method, "status": response.status_code},
            )
        if response.is_error:
            raise RemoteRejectedError(
                f"{method} 请求被拒绝: HTTP {response.status_code}",
                details={"method": method, "status": response.status_code},
            )

        try:
            body = response.json()
        except ValueError as e:
            raise NetworkError(f"{method} 响应不是合法 JSON", details={"method": method}) from e

        error = body.get("error")
        if error:
            code = error.get("code")
            message = error.get("message", "")
            if code == 429:
                raise RateLimitedError(f"{method} 被限流: {message}", details={"method": method})
            raise RemoteRejectedError(
                f"{method} 被拒绝: {message}",
                details={"method": method, "code": code, "message": message, "data": error.get("data")},
            )

        return body.get("result")

    async def _latest_blockhash(self) -> str:
        result = await self._call("getLatestBlockhash", [{"commitment": self.config.commitment}])
        return result["value"]["blockhash"]

    async def _account_exists(self, address: str) -> bool:
        result = await self._call(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": self.config.commitment}],
        )
        return bool(result) and result.get("value") is not None

    async def _confirm(self, signature: str) -> None:
        """轮询签名状态直到达到配置的确认级别"""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.confirm_timeout

        while True:
            result = await self._call(
                "getSignatureStatuses",
                [[signature], {"searchTransactionHistory": True}],
            )
            statuses = (result or {}).get("value") or [None]
            status = statuses[0]

            if status:
                if status.get("err"):
                    raise RemoteRejectedError(
                        f"交易执行失败: {signature}",
                        details={"signature": signature, "err": status["err"]},
                    )
                if _reached(status.get("confirmationStatus"), self.config.commitment):
                    return

            if loop.time() >= deadline:
                raise LedgerTimeoutError(
                    f"交易确认超时: {signature}",
                    details={"signature": signature, "timeout": self.config.confirm_timeout},
                )
            await asyncio.sleep(self.config.confirm_poll_interval)

    async def _send(self, built: BuiltTransaction) -> str:
        """提交已签名交易并等待确认，重发同一交易由远端按签名去重"""
        signature = await self._call(
            "sendTransaction",
            [
                built.transaction,
                {"encoding": "base64", "preflightCommitment": self.config.commitment},
            ],
        )
        logger.info(f"交易已提交: {signature}")
        await self._confirm(signature)
        return signature

    def _require_builder(self) -> TransactionBuilder:
        if self.builder is None:
            raise ConfigurationError("未配置交易构建组件，无法执行变更操作")
        return self.builder

    # ========================================
    # 接口实现
    # ========================================

    async def get_balance(self, identity: Identity) -> int:
        """查询余额（lamports）"""
        result = await self._call(
            "getBalance",
            [identity.public_key, {"commitment": self.config.commitment}],
        )
        return int(result["value"])

    async def request_funding(self, identity: Identity, amount: int) -> str:
        """申请空投"""
        if not self._target.supports_funding:
            raise UnsupportedOnNetworkError(
                f"{self._target} 不支持空投",
                details={"network": self._target.network.value},
            )

        signature = await self._post("requestAirdrop", [identity.public_key, amount])
        logger.info(f"空投已申请: {signature}")
        await self._confirm(signature)
        return signature

    async def create_mint(self, authority: Identity, decimals: int) -> str:
        """创建铸币"""
        builder = self._require_builder()
        rent = int(await self._call("getMinimumBalanceForRentExemption", [MINT_ACCOUNT_SIZE]))
        blockhash = await self._latest_blockhash()

        built = builder.build_create_mint(authority, decimals, rent, blockhash)
        if not built.address:
            raise DataValidationError("创建铸币交易缺少铸币地址")

        await self._send(built)
        return built.address

    async def create_or_get_holding_account(self, mint: str, owner: Identity) -> str:
        """创建或获取关联持币账户"""
        builder = self._require_builder()
        address = builder.derive_holding_account(mint, owner.public_key)

        if await self._account_exists(address):
            logger.info(f"持币账户已存在: {address}")
            return address

        blockhash = await self._latest_blockhash()
        built = builder.build_create_holding_account(mint, owner, blockhash)
        try:
            await self._send(built)
        except RemoteRejectedError:
            # 之前的提交可能已经创建了账户
            if await self._account_exists(address):
                logger.info(f"持币账户已由先前的提交创建: {address}")
                return address
            raise
        return address

    async def issue(self, mint: str, account: str, quantity: int, authority: Identity) -> str:
        """发行代币"""
        builder = self._require_builder()
        blockhash = await self._latest_blockhash()
        built = builder.build_issue(mint, account, quantity, authority, blockhash)
        return await self._send(built)
