"""
TokenForge 代币发行工具 — 钱包身份

读取或生成 solana-keygen 格式的密钥文件：64 字节的 JSON 数组，
前 32 字节为私钥种子，后 32 字节为公钥。
"""

import json
from dataclasses import dataclass, field
from pathlib import Path

import base58
from solders.keypair import Keypair

from tokenforge.common.exceptions import IdentityError
from tokenforge.common.logging import get_logger

logger = get_logger(__name__)

KEYPAIR_LENGTH = 64
PUBLIC_KEY_OFFSET = 32


@dataclass(frozen=True)
class Identity:
    """签名身份（钱包）"""
    public_key: str
    keypair_path: Path
    secret_key: bytes = field(repr=False, compare=False)

    @property
    def storage_name(self) -> str:
        """状态文件名前缀（密钥文件名去掉扩展名）"""
        return self.keypair_path.stem

    @property
    def storage_dir(self) -> Path:
        """密钥文件所在目录"""
        return self.keypair_path.parent


def identity_from_bytes(secret_key: bytes, keypair_path: str | Path) -> Identity:
    """
    由 64 字节密钥构建身份

    Args:
        secret_key: 私钥种子 + 公钥
        keypair_path: 密钥文件路径（用于定位状态文件）

    Returns:
        Identity 实例
    """
    if len(secret_key) != KEYPAIR_LENGTH:
        raise IdentityError(
            f"密钥长度应为 {KEYPAIR_LENGTH} 字节，实际 {len(secret_key)}",
            details={"path": str(keypair_path)},
        )
    public_key = base58.b58encode(secret_key[PUBLIC_KEY_OFFSET:]).decode("ascii")
    return Identity(
        public_key=public_key,
        keypair_path=Path(keypair_path),
        secret_key=bytes(secret_key),
    )


def load_identity(path: str | Path) -> Identity:
    """
    从密钥文件加载身份

    Args:
        path: 密钥文件路径

    Returns:
        Identity 实例
    """
    path = Path(path).expanduser()

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise IdentityError(f"密钥文件不存在: {path}", details={"path": str(path)}) from e
    except (OSError, json.JSONDecodeError) as e:
        raise IdentityError(f"无法读取密钥文件: {path}", details={"error": str(e)}) from e

    if not isinstance(data, list) or not all(
        isinstance(b, int) and not isinstance(b, bool) and 0 <= b <= 255 for b in data
    ):
        raise IdentityError(f"密钥文件格式错误，应为字节数组: {path}")

    identity = identity_from_bytes(bytes(data), path)
    logger.info(f"已加载钱包: {identity.public_key}")
    return identity


def generate_identity(output_dir: str | Path, name: str) -> Identity:
    """
    生成新钱包并写入 <output_dir>/<name>.json

    同名文件已存在时直接加载，不会覆盖已有密钥。

    Args:
        output_dir: 输出目录
        name: 钱包名（不含扩展名）

    Returns:
        Identity 实例
    """
    name = name.strip()
    if not name or Path(name).name != name or name in (".", ".."):
        raise IdentityError(f"无效的钱包名: {name!r}")

    path = Path(output_dir).expanduser() / f"{name}.json"
    if path.exists():
        logger.info(f"钱包文件已存在，直接使用: {path}")
        return load_identity(path)

    secret_key = bytes(Keypair())
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "x", encoding="utf-8") as f:
            json.dump(list(secret_key), f)
    except OSError as e:
        raise IdentityError(f"无法写入钱包文件: {path}", details={"error": str(e)}) from e

    identity = identity_from_bytes(secret_key, path)
    logger.info(f"已生成新钱包: {identity.public_key} -> {path}")
    return identity
