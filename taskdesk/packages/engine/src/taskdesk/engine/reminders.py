"""提醒判定 -- 纯函数

按顺序判定，先命中者生效：
1. 已逾期 -> overdue
2. 距截止 23~25h 且 22h 内未发过 24h 提醒 -> 24h
3. 截止当天 UTC 07~09 点且 12h 内未发过当日提醒 -> due_today
冷却一律从 reminder_sent 事件重建。
"""

from collections.abc import Iterable
from datetime import UTC, datetime

from taskdesk.core.event_log import latest_event
from taskdesk.core.models import ReminderKind, Task, TaskEvent, TaskEventType, TaskStatus

from .clock import elapsed_hours
from .config import (
    MORNING_WINDOW_END_HOUR,
    MORNING_WINDOW_START_HOUR,
    REMINDER_24H_COOLDOWN_HOURS,
    REMINDER_DUE_TODAY_COOLDOWN_HOURS,
    REMINDER_WINDOW_LOWER_HOURS,
    REMINDER_WINDOW_UPPER_HOURS,
)


def _sent_within(
    events: list[TaskEvent],
    task_id: str,
    kind: ReminderKind,
    hours: float,
    now: datetime,
) -> bool:
    last = latest_event(
        events,
        task_id=task_id,
        event_type=TaskEventType.REMINDER_SENT,
        new_value=kind.value,
    )
    return last is not None and elapsed_hours(last.ts, now) < hours


def should_send_reminder(
    task: Task,
    events: Iterable[TaskEvent],
    now: datetime,
    *,
    window_lower_hours: float = REMINDER_WINDOW_LOWER_HOURS,
    window_upper_hours: float = REMINDER_WINDOW_UPPER_HOURS,
) -> ReminderKind | None:
    """判定任务当前应发送的提醒

    Args:
        task: 任务（completed 或无截止时间时不提醒）
        events: 该任务的事件（至少包含全部 reminder_sent 事件）
        now: 判定时间
        window_lower_hours: 24h 提醒窗口下界
        window_upper_hours: 24h 提醒窗口上界

    Returns:
        提醒类型；无需提醒时返回 None
    """
    if task.status == TaskStatus.COMPLETED or task.due_date is None:
        return None

    due = task.due_date
    if now > due:
        return ReminderKind.OVERDUE

    events = list(events)
    hours_to_due = elapsed_hours(now, due)

    if window_lower_hours <= hours_to_due <= window_upper_hours and not _sent_within(
        events, task.task_id, ReminderKind.REMINDER_24H, REMINDER_24H_COOLDOWN_HOURS, now
    ):
        return ReminderKind.REMINDER_24H

    utc_now = now.astimezone(UTC)
    if (
        utc_now.date() == due.astimezone(UTC).date()
        and MORNING_WINDOW_START_HOUR <= utc_now.hour <= MORNING_WINDOW_END_HOUR
        and not _sent_within(
            events,
            task.task_id,
            ReminderKind.REMINDER_DUE_TODAY,
            REMINDER_DUE_TODAY_COOLDOWN_HOURS,
            now,
        )
    ):
        return ReminderKind.REMINDER_DUE_TODAY

    return None


def reminder_message(kind: ReminderKind, task: Task, campaign_name: str, now: datetime) -> str:
    """各提醒类型的通知正文"""
    if kind == ReminderKind.OVERDUE:
        overdue_hours = int(elapsed_hours(task.due_date, now)) if task.due_date else 0
        return f"OVERDUE: {task.title} - overdue by {overdue_hours}h. Update your status now."
    if kind == ReminderKind.REMINDER_24H:
        return f"Due tomorrow: {task.title} in {campaign_name}"
    return f"Due today: {task.title} - please update your status"
