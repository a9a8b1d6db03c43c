"""
TokenForge 代币发行工具 — 状态持久化

每个 (身份, 网络) 一个 JSON 状态文件：
    <目录>/<钱包名>-token-state-<网络标识>.json

写入先落临时文件再原子替换，崩溃不会留下半写的记录。
"""

import json
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO

from pydantic import ValidationError

from tokenforge.common.constants import STATE_FILE_MARKER
from tokenforge.common.enums import Network
from tokenforge.common.exceptions import (
    CorruptStateError,
    StateLockedError,
    StateStoreError,
)
from tokenforge.common.logging import get_logger
from tokenforge.common.models import NetworkTarget, ProvisioningState
from tokenforge.common.utils import utc_stamp
from tokenforge.wallet.keypair import Identity

logger = get_logger(__name__)


def _acquire(fd: IO[str]) -> None:
    if sys.platform == "win32":
        import msvcrt
        msvcrt.locking(fd.fileno(), msvcrt.LK_NBLCK, 1)
    else:
        import fcntl
        fcntl.flock(fd.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)


def _release(fd: IO[str]) -> None:
    if sys.platform == "win32":
        import msvcrt
        msvcrt.locking(fd.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        import fcntl
        fcntl.flock(fd.fileno(), fcntl.LOCK_UN)


class StateStore:
    """
    状态存储

    当前实现：JSON 文件存储
    记录缺失是正常情况（返回 None），无法解析的记录抛出 CorruptStateError。
    """

    def __init__(self, state_dir: str | Path | None = None):
        # None 表示状态文件与密钥文件同目录
        self.state_dir = Path(state_dir).expanduser() if state_dir else None

    def path_for(self, identity: Identity, target: NetworkTarget) -> Path:
        """状态文件路径，由身份和网络唯一确定"""
        directory = self.state_dir or identity.storage_dir
        filename = f"{identity.storage_name}{STATE_FILE_MARKER}{target.key_suffix}.json"
        return directory / filename

    def legacy_path_for(self, identity: Identity, target: NetworkTarget) -> Path | None:
        """旧版自定义 URL 状态文件路径（所有自定义端点共用一个文件）"""
        if target.network != Network.CUSTOM:
            return None
        directory = self.state_dir or identity.storage_dir
        return directory / f"{identity.storage_name}{STATE_FILE_MARKER}custom.json"

    # ========================================
    # 读写
    # ========================================

    def load(self, identity: Identity, target: NetworkTarget) -> ProvisioningState | None:
        """
        加载状态记录

        自定义 URL 的新记录不存在时，回退到旧版共用的 -custom.json，
        其 customUrl 与目标一致才迁移到新键。

        Returns:
            状态快照，记录不存在时返回 None
        """
        path = self.path_for(identity, target)
        if not path.exists():
            return self._migrate_legacy(identity, target)

        state = self._read(path)
        if state.target != target:
            raise CorruptStateError(
                f"状态文件网络不匹配: 记录为 {state.target}，期望 {target}",
                details={"path": str(path)},
            )

        logger.info(f"已加载状态: {path} ({state.step.value})")
        return state

    def _read(self, path: Path) -> ProvisioningState:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CorruptStateError(
                f"无法读取状态文件: {path}",
                details={"path": str(path), "error": str(e)},
            ) from e

        if not isinstance(data, dict):
            raise CorruptStateError(
                f"状态文件结构错误: {path}",
                details={"path": str(path)},
            )

        try:
            return ProvisioningState.from_record(data)
        except ValidationError as e:
            raise CorruptStateError(
                f"状态文件校验失败: {path}",
                details={"path": str(path), "error": str(e)},
            ) from e

    def _migrate_legacy(
        self,
        identity: Identity,
        target: NetworkTarget,
    ) -> ProvisioningState | None:
        legacy_path = self.legacy_path_for(identity, target)
        if legacy_path is None or not legacy_path.exists():
            return None

        # 旧文件由所有自定义端点共用，解析失败时不隔离
        try:
            state = self._read(legacy_path)
        except CorruptStateError as e:
            logger.warning(f"忽略无法解析的旧版状态文件: {legacy_path} ({e.message})")
            return None

        if state.target != target:
            logger.info(f"旧版状态文件属于其他端点 {state.target}，不迁移: {legacy_path}")
            return None

        new_path = self.save(identity, target, state)
        migrated = legacy_path.with_name(f"{legacy_path.name}.migrated-{utc_stamp()}")
        try:
            os.replace(legacy_path, migrated)
        except OSError as e:
            raise StateStoreError(
                f"旧版状态文件改名失败: {legacy_path}",
                details={"error": str(e)},
            ) from e

        logger.warning(f"旧版状态文件已迁移: {legacy_path} -> {new_path} ({state.step.value})")
        return state

    def save(
        self,
        identity: Identity,
        target: NetworkTarget,
        state: ProvisioningState,
    ) -> Path:
        """
        原子写入完整快照，覆盖同键的旧快照

        Returns:
            状态文件路径
        """
        if state.target != target:
            raise StateStoreError(
                f"快照网络 {state.target} 与存储键 {target} 不一致"
            )

        path = self.path_for(identity, target)
        tmp_path = path.with_name(path.name + ".tmp")

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(state.to_record(), f, ensure_ascii=False, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StateStoreError(
                f"状态保存失败: {path}",
                details={"path": str(path), "error": str(e)},
            ) from e

        logger.info(f"状态已保存: {path} ({state.step.value})")
        return path

    def quarantine(self, identity: Identity, target: NetworkTarget) -> Path | None:
        """
        将无法解析的记录改名保留，避免后续保存覆盖

        Returns:
            新路径，记录不存在时返回 None
        """
        path = self.path_for(identity, target)
        if not path.exists():
            return None

        quarantined = path.with_name(f"{path.name}.corrupt-{utc_stamp()}")
        try:
            os.replace(path, quarantined)
        except OSError as e:
            raise StateStoreError(
                f"无法隔离损坏的状态文件: {path}",
                details={"error": str(e)},
            ) from e

        logger.warning(f"损坏的状态文件已隔离: {quarantined}")
        return quarantined

    # ========================================
    # 进程锁
    # ========================================

    @contextmanager
    def lock(self, identity: Identity, target: NetworkTarget) -> Iterator[Path]:
        """
        对 (身份, 网络) 加建议性排他锁，覆盖整个 加载-修改-保存 周期

        Raises:
            StateLockedError: 另一个进程正在处理同一记录
        """
        path = self.path_for(identity, target)
        lock_path = path.with_name(path.name + ".lock")
        lock_path.parent.mkdir(parents=True, exist_ok=True)

        fd = open(lock_path, "a+", encoding="utf-8")
        try:
            try:
                _acquire(fd)
            except OSError as e:
                raise StateLockedError(
                    f"状态记录正被其他进程使用: {path}",
                    details={"lock": str(lock_path)},
                ) from e
            try:
                yield lock_path
            finally:
                _release(fd)
        finally:
            fd.close()
