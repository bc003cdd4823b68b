"""提醒判定测试"""

from datetime import timedelta

import pytest
from taskdesk.core.models import ReminderKind, TaskEventType, TaskStatus
from taskdesk.engine import should_send_reminder
from taskdesk.engine.reminders import reminder_message


class TestShouldSendReminder:
    def test_no_due_date(self, make_task, base_time):
        assert should_send_reminder(make_task(), [], base_time) is None

    def test_completed(self, make_task, base_time):
        task = make_task(status=TaskStatus.COMPLETED, due_date=base_time - timedelta(hours=1))
        assert should_send_reminder(task, [], base_time) is None

    def test_overdue(self, make_task, base_time):
        task = make_task(due_date=base_time - timedelta(minutes=1))
        assert should_send_reminder(task, [], base_time) == ReminderKind.OVERDUE

    @pytest.mark.parametrize("hours_to_due", [23.0, 24.0, 25.0])
    def test_24h_window(self, make_task, base_time, hours_to_due):
        task = make_task(due_date=base_time + timedelta(hours=hours_to_due))
        assert should_send_reminder(task, [], base_time) == ReminderKind.REMINDER_24H

    def test_outside_24h_window(self, make_task, base_time):
        task = make_task(due_date=base_time + timedelta(hours=26))
        assert should_send_reminder(task, [], base_time) is None

    def test_24h_cooldown(self, make_task, make_event, base_time):
        task = make_task(due_date=base_time + timedelta(hours=24))
        events = [
            make_event(
                "task-1", TaskEventType.REMINDER_SENT, base_time - timedelta(hours=1), "24h"
            )
        ]
        assert should_send_reminder(task, events, base_time) is None

    def test_24h_cooldown_expired(self, make_task, make_event, base_time):
        task = make_task(due_date=base_time + timedelta(hours=24))
        events = [
            make_event(
                "task-1", TaskEventType.REMINDER_SENT, base_time - timedelta(hours=23), "24h"
            )
        ]
        assert should_send_reminder(task, events, base_time) == ReminderKind.REMINDER_24H

    def test_due_today_in_morning_window(self, make_task, base_time):
        # base_time 为 08:00 UTC，截止当天 18:00
        task = make_task(due_date=base_time + timedelta(hours=10))
        assert should_send_reminder(task, [], base_time) == ReminderKind.REMINDER_DUE_TODAY

    def test_due_today_window_end_inclusive(self, make_task, base_time):
        now = base_time + timedelta(hours=1, minutes=45)  # 09:45
        task = make_task(due_date=base_time + timedelta(hours=10))
        assert should_send_reminder(task, [], now) == ReminderKind.REMINDER_DUE_TODAY

    def test_due_today_outside_morning(self, make_task, base_time):
        now = base_time + timedelta(hours=2)  # 10:00
        task = make_task(due_date=base_time + timedelta(hours=10))
        assert should_send_reminder(task, [], now) is None

    def test_due_today_cooldown(self, make_task, make_event, base_time):
        task = make_task(due_date=base_time + timedelta(hours=10))
        events = [
            make_event(
                "task-1",
                TaskEventType.REMINDER_SENT,
                base_time - timedelta(hours=1),
                "due_today",
            )
        ]
        assert should_send_reminder(task, events, base_time) is None

    def test_other_kind_does_not_cool_down(self, make_task, make_event, base_time):
        task = make_task(due_date=base_time + timedelta(hours=10))
        events = [
            make_event(
                "task-1", TaskEventType.REMINDER_SENT, base_time - timedelta(hours=1), "24h"
            )
        ]
        assert should_send_reminder(task, events, base_time) == ReminderKind.REMINDER_DUE_TODAY

    def test_configurable_window(self, make_task, base_time):
        task = make_task(due_date=base_time + timedelta(hours=30))
        assert (
            should_send_reminder(
                task, [], base_time, window_lower_hours=29, window_upper_hours=31
            )
            == ReminderKind.REMINDER_24H
        )


class TestReminderMessage:
    def test_overdue_hours(self, make_task, base_time):
        task = make_task(title="Copy", due_date=base_time - timedelta(hours=5, minutes=30))
        message = reminder_message(ReminderKind.OVERDUE, task, "C", base_time)
        assert message == "OVERDUE: Copy - overdue by 5h. Update your status now."

    def test_due_tomorrow_names_campaign(self, make_task, base_time):
        task = make_task(title="Copy")
        message = reminder_message(ReminderKind.REMINDER_24H, task, "Spring Launch", base_time)
        assert message == "Due tomorrow: Copy in Spring Launch"
