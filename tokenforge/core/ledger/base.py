"""
TokenForge 代币发行工具 — 账本客户端基类

定义状态机依赖的账本客户端接口，以及外部签名组件接口。
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from tokenforge.common.models import NetworkTarget
from tokenforge.wallet.keypair import Identity


@dataclass(frozen=True)
class BuiltTransaction:
    """已签名、已序列化的交易"""
    transaction: str             # base64
    address: str | None = None   # 交易创建的新账户地址


class LedgerClient(ABC):
    """
    账本客户端抽象基类

    所有数量均为整数最小单位（lamports / 代币最小单位）。
    变更操作失败时抛出 LedgerError 子类，不返回错误码。
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """客户端名称"""
        pass

    @property
    @abstractmethod
    def target(self) -> NetworkTarget:
        """目标网络"""
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """是否已连接"""
        pass

    @abstractmethod
    async def connect(self) -> None:
        """建立连接"""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """断开连接"""
        pass

    @abstractmethod
    async def get_balance(self, identity: Identity) -> int:
        """
        查询余额

        Raises:
            NetworkError: 连接失败
        """
        pass

    @abstractmethod
    async def request_funding(self, identity: Identity, amount: int) -> str:
        """
        申请测试资金（空投），仅非生产网络可用

        Returns:
            交易签名

        Raises:
            RateLimitedError: 被限流
            UnsupportedOnNetworkError: 当前网络不支持
        """
        pass

    @abstractmethod
    async def create_mint(self, authority: Identity, decimals: int) -> str:
        """
        创建铸币

        Returns:
            铸币地址

        Raises:
            RemoteRejectedError: 远端拒绝
        """
        pass

    @abstractmethod
    async def create_or_get_holding_account(self, mint: str, owner: Identity) -> str:
        """
        创建或获取关联持币账户

        账户已存在时直接返回其地址，不报错。

        Returns:
            持币账户地址
        """
        pass

    @abstractmethod
    async def issue(self, mint: str, account: str, quantity: int, authority: Identity) -> str:
        """
        向持币账户发行代币

        Returns:
            交易签名

        Raises:
            RemoteRejectedError: 远端拒绝
        """
        pass

    async def __aenter__(self) -> "LedgerClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.disconnect()


class TransactionBuilder(ABC):
    """
    交易构建与签名组件（外部协作方）

    负责指令编码和签名，账本客户端只负责提交与确认。
    """

    @abstractmethod
    def derive_holding_account(self, mint: str, owner: str) -> str:
        """推导 (铸币, 所有者) 的关联持币账户地址"""
        pass

    @abstractmethod
    def build_create_mint(
        self,
        authority: Identity,
        decimals: int,
        rent_lamports: int,
        recent_blockhash: str,
    ) -> BuiltTransaction:
        """构建创建铸币交易，address 为新铸币地址"""
        pass

    @abstractmethod
    def build_create_holding_account(
        self,
        mint: str,
        owner: Identity,
        recent_blockhash: str,
    ) -> BuiltTransaction:
        """构建创建关联持币账户交易，address 为账户地址"""
        pass

    @abstractmethod
    def build_issue(
        self,
        mint: str,
        account: str,
        quantity: int,
        authority: Identity,
        recent_blockhash: str,
    ) -> BuiltTransaction:
        """构建发行交易"""
        pass
