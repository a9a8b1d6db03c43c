"""
TokenForge 代币发行工具 — 工具函数

提供 UTC 时间处理和金额格式化。
"""

from datetime import datetime, timezone

from .constants import LAMPORTS_PER_SOL


def utc_now() -> datetime:
    """
    获取当前 UTC 时间

    Returns:
        带时区信息的 UTC datetime
    """
    return datetime.now(timezone.utc)


def utc_stamp(dt: datetime | None = None) -> str:
    """
    生成可用于文件名的 UTC 时间戳

    Args:
        dt: 指定时间，默认当前时间

    Returns:
        形如 20260101T120000Z 的字符串
    """
    dt = dt or utc_now()
    if dt.tzinfo is None:
        # 假设无时区的时间为 UTC
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def lamports_to_sol(lamports: int) -> float:
    """lamports 转 SOL"""
    return lamports / LAMPORTS_PER_SOL


def format_sol(lamports: int) -> str:
    """格式化余额，保留四位小数"""
    return f"{lamports_to_sol(lamports):.4f} SOL"
