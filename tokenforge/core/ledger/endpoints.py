"""
TokenForge 代币发行工具 — 网络端点

RPC 端点解析与区块浏览器链接。
"""

from tokenforge.common.constants import (
    DEFAULT_ENDPOINTS,
    EXPLORER_BASE_URL,
    EXPLORER_CLUSTER_PARAMS,
)
from tokenforge.common.enums import Network
from tokenforge.common.exceptions import ConfigurationError
from tokenforge.common.models import NetworkTarget


def resolve_endpoint(
    target: NetworkTarget,
    overrides: dict[Network, str] | None = None,
) -> str:
    """
    解析 RPC 端点

    Args:
        target: 目标网络
        overrides: 配置文件中的端点覆盖

    Returns:
        RPC URL
    """
    if target.network == Network.CUSTOM:
        return target.custom_url  # type: ignore[return-value]

    url = (overrides or {}).get(target.network) or DEFAULT_ENDPOINTS.get(target.network)
    if not url:
        raise ConfigurationError(f"未知网络: {target.network.value}")
    return url


def explorer_url(address: str, target: NetworkTarget) -> str:
    """区块浏览器地址链接"""
    return f"{EXPLORER_BASE_URL}{address}{EXPLORER_CLUSTER_PARAMS.get(target.network, '')}"
