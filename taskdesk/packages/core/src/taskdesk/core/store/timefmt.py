"""时间戳序列化

所有时间统一以 UTC、微秒精度的 ISO 8601 字符串落库，
保证字符串比较与时间比较一致（锁过期判断依赖这一点）。
"""

from datetime import UTC, datetime


def to_db_ts(value: datetime | None) -> str | None:
    """datetime -> 落库字符串（naive 视为 UTC）"""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def from_db_ts(value: str | None) -> datetime | None:
    """落库字符串 -> aware datetime"""
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
