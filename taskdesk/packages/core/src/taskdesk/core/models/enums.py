"""枚举定义

包含 TaskStatus 状态机、RiskFlag、CampaignRisk、TaskEventType、ReminderKind、
EscalationStage、MemberRole、NotificationType 枚举，
以及 VALID_TRANSITIONS 合法流转映射和 TERMINAL_STATES 终态集合。
"""

from enum import IntEnum, StrEnum


class TaskStatus(StrEnum):
    """Task 状态机"""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


# 合法状态流转
VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.NOT_STARTED: {TaskStatus.IN_PROGRESS},
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.BLOCKED},
    TaskStatus.BLOCKED: {TaskStatus.IN_PROGRESS},
    # 终态不可再流转
    TaskStatus.COMPLETED: set(),
}

TERMINAL_STATES: set[TaskStatus] = {TaskStatus.COMPLETED}


class RiskFlag(StrEnum):
    """任务风险标记 -- 只升不降（sticky-upward）"""

    NONE = "none"
    SOFT = "soft"
    HARD = "hard"

    @property
    def rank(self) -> int:
        """严重程度：none < soft < hard"""
        return _RISK_FLAG_RANK[self]


_RISK_FLAG_RANK: dict[RiskFlag, int] = {
    RiskFlag.NONE: 0,
    RiskFlag.SOFT: 1,
    RiskFlag.HARD: 2,
}


class CampaignRisk(StrEnum):
    """Campaign 风险状态"""

    NORMAL = "normal"
    AT_RISK = "at_risk"
    HIGH_RISK = "high_risk"


class TaskEventType(StrEnum):
    """任务事件类型"""

    STATUS_CHANGED = "status_changed"
    RISK_FLAG_SET = "risk_flag_set"
    RISK_PROPAGATED = "risk_propagated"
    ESCALATION_STAGE_1 = "escalation_stage_1"
    ESCALATION_STAGE_2 = "escalation_stage_2"
    ESCALATION_STAGE_3 = "escalation_stage_3"
    REMINDER_SENT = "reminder_sent"


ESCALATION_EVENT_TYPES: frozenset[TaskEventType] = frozenset(
    {
        TaskEventType.ESCALATION_STAGE_1,
        TaskEventType.ESCALATION_STAGE_2,
        TaskEventType.ESCALATION_STAGE_3,
    }
)


class EscalationStage(IntEnum):
    """升级阶段：1 负责人 / 2 经理 / 3 创始人"""

    OWNER = 1
    MANAGER = 2
    FOUNDER = 3

    @property
    def event_type(self) -> TaskEventType:
        """该阶段对应的事件类型"""
        return TaskEventType(f"escalation_stage_{self.value}")


class ReminderKind(StrEnum):
    """提醒类型（取值即 reminder_sent 事件的 new_value）"""

    OVERDUE = "overdue"
    REMINDER_24H = "24h"
    REMINDER_DUE_TODAY = "due_today"


class MemberRole(StrEnum):
    """组织成员角色"""

    FOUNDER = "founder"
    MANAGER = "manager"
    MEMBER = "member"


class NotificationType(StrEnum):
    """通知类型"""

    ESCALATION = "escalation"
    REMINDER = "reminder"


def validate_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """验证状态流转是否合法

    Args:
        from_status: 当前状态
        to_status: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(from_status, set())
    return to_status in allowed


def max_flag(*flags: RiskFlag) -> RiskFlag:
    """返回最严重的风险标记"""
    return max(flags, key=lambda f: f.rank, default=RiskFlag.NONE)
