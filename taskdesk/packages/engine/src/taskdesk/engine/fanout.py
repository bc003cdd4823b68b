"""有界并发扇出

每个 key 一个工作单元，Semaphore 限制并发，gather(return_exceptions=True)
收集结果：单元失败被转换为 UnitOutcome(ok=False)，不影响同批次其他单元。
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import structlog

log = structlog.get_logger()

K = TypeVar("K")


@dataclass
class UnitOutcome(Generic[K]):
    """单个工作单元的结果"""

    key: K
    ok: bool
    value: Any = None
    error: Exception | None = None


async def fan_out(
    keys: Sequence[K],
    worker: Callable[[K], Awaitable[Any]],
    max_concurrency: int,
    *,
    unit: str = "unit",
) -> list[UnitOutcome[K]]:
    """并发执行 worker(key)，按 keys 顺序返回结果

    Args:
        keys: 工作单元键（租户 ID、任务 ID 等）
        worker: 单元处理协程
        max_concurrency: 并发上限
        unit: 日志中的单元名称

    Returns:
        与 keys 一一对应的 UnitOutcome 列表
    """
    if not keys:
        return []

    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def _run_with_limit(key: K) -> Any:
        async with semaphore:
            return await worker(key)

    results = await asyncio.gather(
        *[_run_with_limit(key) for key in keys],
        return_exceptions=True,
    )

    outcomes: list[UnitOutcome[K]] = []
    for key, result in zip(keys, results, strict=True):
        if isinstance(result, Exception):
            log.error(
                "fan_out_unit_failed",
                unit=unit,
                key=key,
                error_type=type(result).__name__,
                error=str(result),
            )
            outcomes.append(UnitOutcome(key=key, ok=False, error=result))
        elif isinstance(result, BaseException):
            # 取消等非 Exception 不属于单元失败
            raise result
        else:
            outcomes.append(UnitOutcome(key=key, ok=True, value=result))

    failed = sum(1 for o in outcomes if not o.ok)
    log.debug("fan_out_complete", unit=unit, total=len(outcomes), failed=failed)
    return outcomes
