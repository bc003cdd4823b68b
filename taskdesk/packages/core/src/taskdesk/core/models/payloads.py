"""Event Payload 子类型

引擎写入事件的结构化 payload 定义。
"""

from pydantic import BaseModel, Field

from .enums import ReminderKind, RiskFlag


class RiskFlagSetPayload(BaseModel):
    """risk_flag_set 事件 payload"""

    source: str = Field(description="触发来源：risk_engine / reminders")


class RiskPropagatedPayload(BaseModel):
    """risk_propagated 事件 payload"""

    origin_task_id: str = Field(description="上游 hard 风险的源头任务")
    depth: int = Field(ge=1, description="距源头的依赖层数")
    origin_flag: RiskFlag = Field(default=RiskFlag.HARD)


class EscalationPayload(BaseModel):
    """escalation_stage_N 事件 payload"""

    stage: int = Field(ge=1, le=3)
    recipient_count: int = Field(default=0, description="通知接收人数")
    message: str = Field(description="通知正文")


class ReminderPayload(BaseModel):
    """reminder_sent 事件 payload"""

    kind: ReminderKind
    message: str = Field(description="通知正文")
