"""Taskdesk Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .campaign import Campaign
from .coordination import DEFAULT_PAGE_SIZE, CursorRecord, LockRecord
from .enums import (
    ESCALATION_EVENT_TYPES,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    CampaignRisk,
    EscalationStage,
    MemberRole,
    NotificationType,
    ReminderKind,
    RiskFlag,
    TaskEventType,
    TaskStatus,
    max_flag,
    validate_transition,
)
from .event import TaskEvent
from .notification import Notification
from .organization import Member, Organization
from .payloads import (
    EscalationPayload,
    ReminderPayload,
    RiskFlagSetPayload,
    RiskPropagatedPayload,
)
from .task import Task

__all__ = [
    # 枚举
    "TaskStatus",
    "RiskFlag",
    "CampaignRisk",
    "TaskEventType",
    "EscalationStage",
    "ReminderKind",
    "MemberRole",
    "NotificationType",
    "ESCALATION_EVENT_TYPES",
    "max_flag",
    # 状态机
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "validate_transition",
    # 实体
    "Task",
    "Campaign",
    "TaskEvent",
    "Notification",
    "Organization",
    "Member",
    # 协调
    "LockRecord",
    "CursorRecord",
    "DEFAULT_PAGE_SIZE",
    # Payloads
    "RiskFlagSetPayload",
    "RiskPropagatedPayload",
    "EscalationPayload",
    "ReminderPayload",
]
