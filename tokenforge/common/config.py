"""
TokenForge 代币发行工具 — 配置加载

支持 YAML 配置文件和环境变量替换。
配置以 Settings 实例显式传入服务、状态机和账本客户端，不使用全局单例。
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from .constants import DEFAULT_TRANSACTION_BUILDER, FundingDefaults
from .enums import Network
from .exceptions import ConfigurationError
from .logging import get_logger

logger = get_logger(__name__)

_funding = FundingDefaults()


class ProvisioningConfig(BaseModel):
    """发行流程配置（lamports）"""

    min_balance_lamports: int = Field(default=_funding.min_balance, ge=0)
    funding_threshold_lamports: int = Field(default=_funding.funding_threshold, ge=0)
    funding_amount_lamports: int = Field(default=_funding.funding_amount, gt=0)


class LedgerConfig(BaseModel):
    """账本客户端配置"""

    commitment: str = Field(default="confirmed", pattern="^(processed|confirmed|finalized)$")
    request_timeout: float = Field(default=30.0, gt=0)
    confirm_timeout: float = Field(default=60.0, gt=0)
    confirm_poll_interval: float = Field(default=1.0, gt=0)
    max_retries: int = Field(default=3, ge=0, le=10)
    retry_base_delay: float = Field(default=0.5, ge=0)
    # 交易构建/签名组件的导入路径，格式 module:attribute
    builder: str | None = Field(default=DEFAULT_TRANSACTION_BUILDER)
    endpoints: dict[Network, str] = Field(default_factory=dict)


class StorageConfig(BaseModel):
    """状态存储配置"""

    # 为空时状态文件与密钥文件放在同一目录
    state_dir: str | None = Field(default=None)


class Settings(BaseModel):
    """系统配置"""

    log_format: str = Field(default="json", pattern="^(json|text)$")

    provisioning: ProvisioningConfig = Field(default_factory=ProvisioningConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


def _substitute_env_vars(value: Any) -> Any:
    """替换环境变量占位符 ${VAR_NAME}"""
    if isinstance(value, str):
        pattern = r"\$\{([^}]+)\}"

        def replacer(match: re.Match[str]) -> str:
            var_name = match.group(1)
            return os.environ.get(var_name, match.group(0))

        return re.sub(pattern, replacer, value)

    if isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]

    return value


def load_yaml_config(path: str | Path) -> dict[str, Any]:
    """
    加载 YAML 配置文件

    Args:
        path: 配置文件路径

    Returns:
        配置字典（文件不存在时为空）
    """
    path = Path(path)

    if not path.exists():
        logger.warning(f"配置文件不存在: {path}")
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"配置文件解析失败: {path}", details={"error": str(e)}) from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"配置文件顶层必须是映射: {path}")

    return _substitute_env_vars(data)


def load_settings(
    config_dir: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """
    加载系统配置

    优先级：overrides（命令行）> config/config.yaml > 默认值

    Args:
        config_dir: 配置目录路径
        overrides: 按节覆盖的配置，例如 {"storage": {"state_dir": "..."}}

    Returns:
        Settings 实例
    """
    config_data: dict[str, Any] = {}

    if config_dir:
        main_config = Path(config_dir) / "config.yaml"
        if main_config.exists():
            config_data.update(load_yaml_config(main_config))

    for key, value in (overrides or {}).items():
        if isinstance(value, dict):
            config_data[key] = {**(config_data.get(key) or {}), **value}
        else:
            config_data[key] = value

    # 只写了节名的空节按默认值处理
    config_data = {k: v for k, v in config_data.items() if v is not None}

    try:
        return Settings(**config_data)
    except ValidationError as e:
        raise ConfigurationError("配置校验失败", details={"errors": e.errors()}) from e
