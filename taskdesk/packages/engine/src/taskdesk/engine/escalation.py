"""升级阶段判定 -- 纯函数

从升级事件历史中重建"上次何时触发"，按 3 -> 2 -> 1 的优先级返回当前
应触发的最高阶段。Stage 2/3 的阈值同时约束距上次 Stage 1 的时间和
距同阶段上次触发的时间。
"""

from collections.abc import Iterable
from datetime import datetime

from taskdesk.core.event_log import latest_event
from taskdesk.core.models import (
    EscalationStage,
    MemberRole,
    RiskFlag,
    Task,
    TaskEvent,
    TaskStatus,
)

from .clock import elapsed_hours
from .config import STAGE1_COOLDOWN_HOURS, STAGE2_THRESHOLD_HOURS, STAGE3_THRESHOLD_HOURS

# 各阶段受众（Stage 1 为任务负责人）
STAGE_AUDIENCE_ROLE: dict[EscalationStage, MemberRole | None] = {
    EscalationStage.OWNER: None,
    EscalationStage.MANAGER: MemberRole.MANAGER,
    EscalationStage.FOUNDER: MemberRole.FOUNDER,
}


def determine_escalation_stage(
    task: Task,
    events: Iterable[TaskEvent],
    now: datetime,
) -> EscalationStage | None:
    """判定任务当前应触发的升级阶段

    Args:
        task: 任务（risk_flag 为 none 或已完成时不触发）
        events: 该任务的事件（至少包含全部升级事件）
        now: 判定时间

    Returns:
        应触发的阶段；无需触发时返回 None
    """
    if task.risk_flag == RiskFlag.NONE or task.status == TaskStatus.COMPLETED:
        return None

    events = list(events)

    def _last(stage: EscalationStage) -> TaskEvent | None:
        return latest_event(events, task_id=task.task_id, event_type=stage.event_type)

    last_stage1 = _last(EscalationStage.OWNER)

    if last_stage1 is not None:
        since_stage1 = elapsed_hours(last_stage1.ts, now)

        if since_stage1 > STAGE3_THRESHOLD_HOURS:
            last_stage3 = _last(EscalationStage.FOUNDER)
            if last_stage3 is None or elapsed_hours(last_stage3.ts, now) > STAGE3_THRESHOLD_HOURS:
                return EscalationStage.FOUNDER

        if since_stage1 > STAGE2_THRESHOLD_HOURS:
            last_stage2 = _last(EscalationStage.MANAGER)
            if last_stage2 is None or elapsed_hours(last_stage2.ts, now) > STAGE2_THRESHOLD_HOURS:
                return EscalationStage.MANAGER

        if since_stage1 <= STAGE1_COOLDOWN_HOURS:
            return None

    return EscalationStage.OWNER


def escalation_message(
    stage: EscalationStage,
    task: Task,
    campaign_name: str,
    owner_name: str = "",
) -> str:
    """各阶段通知正文"""
    if stage == EscalationStage.OWNER:
        return f"Action needed: {task.title} has been flagged at-risk in {campaign_name}"
    if stage == EscalationStage.MANAGER:
        return f"{campaign_name} - {task.title} is stalled. Owner has not resolved."
    return (
        f"Founder alert: {task.title} in {campaign_name} has been at risk for 48h. "
        f"Owner: {owner_name or task.owner_id}."
    )
