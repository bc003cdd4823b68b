"""时钟抽象 -- 引擎所有时间判断都基于注入的 now"""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """默认时钟：当前 UTC 时间"""
    return datetime.now(UTC)


def elapsed_hours(since: datetime, now: datetime) -> float:
    """since 到 now 经过的小时数（可为负）"""
    return (now - since).total_seconds() / 3600


def fixed_clock(at: datetime) -> Clock:
    """返回固定时间的时钟（测试与回放使用）"""
    return lambda: at
