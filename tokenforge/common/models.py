"""
TokenForge 代币发行工具 — 数据模型

使用 Pydantic v2，所有模型不可变（frozen=True）。
每一次成功步骤都生成一份新的 ProvisioningState 快照。
"""

import hashlib
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from .constants import FUNDING_NETWORKS, U64_MAX, TokenBounds
from .enums import Network, ProvisioningStep
from .exceptions import DataValidationError
from .utils import utc_now

_bounds = TokenBounds()


def compute_issuance_quantity(supply: Decimal | int | str, decimals: int) -> int:
    """
    计算发行数量（最小单位）

    quantity = supply × 10^decimals，必须是 u64 范围内的正整数。

    Args:
        supply: 发行总量（代币单位）
        decimals: 小数位数

    Returns:
        最小单位的整数数量
    """
    try:
        scaled = Decimal(supply).scaleb(decimals)
    except (InvalidOperation, ValueError) as e:
        raise DataValidationError(f"无效的发行量: {supply}") from e

    if scaled != scaled.to_integral_value():
        raise DataValidationError(
            f"发行量 {supply} 在 {decimals} 位小数下不是整数",
            details={"supply": str(supply), "decimals": decimals},
        )

    quantity = int(scaled)
    if quantity <= 0 or quantity > U64_MAX:
        raise DataValidationError(
            f"发行数量超出范围: {quantity}",
            details={"supply": str(supply), "decimals": decimals},
        )
    return quantity


# ============================================================
# 网络
# ============================================================

class NetworkTarget(BaseModel):
    """目标网络（状态记录键的一部分）"""
    model_config = ConfigDict(frozen=True)

    network: Network
    custom_url: str | None = None

    @model_validator(mode="after")
    def validate_custom_url(self) -> "NetworkTarget":
        if self.network == Network.CUSTOM and not self.custom_url:
            raise ValueError("custom 网络必须提供 custom_url")
        if self.network != Network.CUSTOM and self.custom_url:
            raise ValueError("只有 custom 网络可以指定 custom_url")
        return self

    @classmethod
    def from_options(cls, cluster: str | Network, url: str | None = None) -> "NetworkTarget":
        """自定义 URL 优先于 cluster 选项"""
        if url:
            return cls(network=Network.CUSTOM, custom_url=url)
        return cls(network=Network(cluster))

    @property
    def key_suffix(self) -> str:
        """状态文件名中的网络标识"""
        if self.network == Network.CUSTOM:
            digest = hashlib.sha256(self.custom_url.encode("utf-8")).hexdigest()[:8]
            return f"custom-{digest}"
        return self.network.value

    @property
    def supports_funding(self) -> bool:
        """是否可以申请空投"""
        return self.network in FUNDING_NETWORKS

    def __str__(self) -> str:
        if self.network == Network.CUSTOM:
            return f"custom({self.custom_url})"
        return self.network.value


# ============================================================
# 发行参数
# ============================================================

class ProvisioningParams(BaseModel):
    """操作员提供的发行参数（已完全解析，不再交互）"""
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    symbol: str = Field(min_length=1, max_length=_bounds.max_symbol_length)
    decimals: int = Field(
        default=_bounds.default_decimals,
        ge=_bounds.min_decimals,
        le=_bounds.max_decimals,
    )
    supply: Decimal = Field(default=Decimal(_bounds.default_supply), gt=0)

    @field_validator("name", "symbol")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("不能为空")
        return v

    @model_validator(mode="after")
    def validate_quantity(self) -> "ProvisioningParams":
        try:
            compute_issuance_quantity(self.supply, self.decimals)
        except DataValidationError as e:
            raise ValueError(e.message) from e
        return self


# ============================================================
# 发行状态记录
# ============================================================

class ProvisioningState(BaseModel):
    """
    发行状态记录，每个 (身份, 网络) 一份

    序列化字段名与旧版状态文件兼容（mintAddress、tokenAccountAddress 等）。
    requested_* 在铸币创建时记录，恢复时以此为准，不再重新校验。
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    network: Network = Field(alias="cluster")
    custom_url: str | None = Field(default=None, alias="customUrl")
    mint_handle: str | None = Field(default=None, alias="mintAddress")
    holding_account_handle: str | None = Field(default=None, alias="tokenAccountAddress")
    issuance_complete: bool = Field(default=False, alias="initialSupplyMinted")
    requested_name: str | None = Field(default=None, alias="name")
    requested_symbol: str | None = Field(default=None, alias="symbol")
    requested_decimals: int | None = Field(
        default=None,
        ge=_bounds.min_decimals,
        le=_bounds.max_decimals,
        alias="decimals",
    )
    requested_supply: Decimal | None = Field(default=None, gt=0, alias="supply")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    @model_validator(mode="before")
    @classmethod
    def normalize_legacy(cls, data: Any) -> Any:
        # 旧版文件在使用自定义 URL 时仍记录 cluster 选项
        if isinstance(data, dict) and data.get("customUrl") and data.get("cluster") != Network.CUSTOM.value:
            data = {**data, "cluster": Network.CUSTOM.value}
        return data

    @model_validator(mode="after")
    def validate_step_order(self) -> "ProvisioningState":
        if self.holding_account_handle and not self.mint_handle:
            raise ValueError("持币账户存在但铸币地址缺失")
        if self.issuance_complete and not self.holding_account_handle:
            raise ValueError("已发行但持币账户缺失")
        if self.mint_handle and (self.requested_decimals is None or self.requested_supply is None):
            raise ValueError("铸币已创建但未记录 decimals/supply")
        if self.requested_decimals is not None and self.requested_supply is not None:
            try:
                compute_issuance_quantity(self.requested_supply, self.requested_decimals)
            except DataValidationError as e:
                raise ValueError(e.message) from e
        if self.network == Network.CUSTOM and not self.custom_url:
            raise ValueError("custom 网络缺少 customUrl")
        return self

    @computed_field(alias="tokenAccountCreated")  # type: ignore[misc]
    @property
    def token_account_created(self) -> bool:
        return self.holding_account_handle is not None

    @classmethod
    def fresh(cls, target: NetworkTarget) -> "ProvisioningState":
        """尚未执行任何步骤的空记录"""
        return cls(network=target.network, custom_url=target.custom_url)

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> "ProvisioningState":
        return cls.model_validate(data)

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    @property
    def target(self) -> NetworkTarget:
        return NetworkTarget(network=self.network, custom_url=self.custom_url)

    @property
    def step(self) -> ProvisioningStep:
        """由已填充字段推导出的当前进度"""
        if self.issuance_complete:
            return ProvisioningStep.ISSUED
        if self.holding_account_handle:
            return ProvisioningStep.ACCOUNT_CREATED
        if self.mint_handle:
            return ProvisioningStep.MINT_CREATED
        return ProvisioningStep.FRESH

    @property
    def issuance_quantity(self) -> int:
        """按记录的 decimals/supply 计算发行数量"""
        if self.requested_decimals is None or self.requested_supply is None:
            raise DataValidationError("状态记录缺少 decimals/supply")
        return compute_issuance_quantity(self.requested_supply, self.requested_decimals)

    def diverging_fields(self, params: ProvisioningParams) -> dict[str, tuple[Any, Any]]:
        """
        本次参数与记录参数的差异

        Returns:
            {字段: (记录值, 本次值)}
        """
        if not self.mint_handle:
            return {}
        pairs = {
            "name": (self.requested_name, params.name),
            "symbol": (self.requested_symbol, params.symbol),
            "decimals": (self.requested_decimals, params.decimals),
            "supply": (self.requested_supply, params.supply),
        }
        return {k: v for k, v in pairs.items() if v[0] is not None and v[0] != v[1]}

    def _evolve(self, **updates: Any) -> "ProvisioningState":
        data = self.model_dump(exclude={"token_account_created"})
        data.update(updates)
        data["updated_at"] = utc_now()
        try:
            return ProvisioningState(**data)
        except ValueError as e:
            raise DataValidationError(f"非法状态快照: {e}") from e

    def with_mint(self, mint_handle: str, params: ProvisioningParams) -> "ProvisioningState":
        """铸币创建成功后的快照（同时记录发行参数）"""
        return self._evolve(
            mint_handle=mint_handle,
            requested_name=params.name,
            requested_symbol=params.symbol,
            requested_decimals=params.decimals,
            requested_supply=params.supply,
        )

    def with_holding_account(self, account_handle: str) -> "ProvisioningState":
        """持币账户创建成功后的快照"""
        return self._evolve(holding_account_handle=account_handle)

    def with_issuance(self) -> "ProvisioningState":
        """发行成功后的快照"""
        return self._evolve(issuance_complete=True)
