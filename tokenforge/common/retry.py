"""
TokenForge 代币发行工具 — 重试装饰器

账本请求的指数退避重试。只重试幂等的请求：
只读查询，以及重发同一笔已签名交易（远端按签名去重）。
"""

import asyncio
import functools
import random
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

from .logging import get_logger

logger = get_logger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential: bool = True,
    jitter: bool = True,
    exceptions: tuple[type[Exception], ...] = (Exception,),
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """
    异步重试装饰器

    Args:
        max_retries: 最大重试次数
        base_delay: 基础延迟（秒）
        max_delay: 最大延迟（秒）
        exponential: 是否使用指数退避
        jitter: 是否添加随机抖动
        exceptions: 需要重试的异常类型

    Returns:
        装饰器函数
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= max_retries:
                        logger.warning(
                            f"重试耗尽: {func.__name__}, 共尝试 {attempt + 1} 次",
                            extra={"error": str(e)},
                        )
                        raise

                    delay = _calculate_delay(
                        attempt, base_delay, max_delay, exponential, jitter
                    )
                    logger.info(
                        f"重试: {func.__name__}, 第 {attempt + 1}/{max_retries} 次, "
                        f"延迟 {delay:.2f}s",
                        extra={"error": str(e)},
                    )
                    attempt += 1
                    await asyncio.sleep(delay)

        return wrapper

    return decorator


def _calculate_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    exponential: bool,
    jitter: bool,
) -> float:
    """计算重试延迟"""
    delay = base_delay * (2 ** attempt) if exponential else base_delay
    delay = min(delay, max_delay)

    if jitter:
        delay = delay * (0.5 + random.random())

    return delay
