"""任务风险评估 + Campaign 风险聚合 -- 纯函数

evaluate_task_risk() 以任务当前 risk_flag 为起点，按规则顺序只升不降：
1. 指派后长期未开工（>24h，not_started）-> soft（仅当当前为 none）
2. 上游完成后迟迟未开工（>12h，not_started）-> soft（当前非 hard）
3. 已逾期 -> hard
4. 阻塞时长：>24h -> hard（当前非 hard）；任意正时长且当前为 none -> soft

calculate_campaign_risk() 把任务风险汇总为 Campaign 风险状态。
两个函数都不访问存储、不读系统时钟，对同一输入总是返回同一结果。
"""

from collections.abc import Iterable
from datetime import datetime

from taskdesk.core.event_log import latest_event
from taskdesk.core.models import (
    Campaign,
    CampaignRisk,
    RiskFlag,
    Task,
    TaskEvent,
    TaskEventType,
    TaskStatus,
    max_flag,
)

from .clock import elapsed_hours
from .config import (
    BLOCKED_HARD_HOURS,
    CAMPAIGN_FLAGGED_AT_RISK_COUNT,
    CAMPAIGN_HARD_HIGH_RISK_COUNT,
    CAMPAIGN_LAUNCH_WINDOW_HOURS,
    DEPENDENCY_GAP_HOURS,
    STALE_ASSIGNMENT_HOURS,
)


def evaluate_task_risk(
    task: Task,
    events: Iterable[TaskEvent],
    now: datetime,
) -> RiskFlag:
    """评估单个任务的风险标记

    Args:
        task: 待评估任务
        events: 该任务及其上游依赖任务的事件（顺序不限）
        now: 评估时间

    Returns:
        新的风险标记，严重程度不低于 task.risk_flag（completed 任务恒为 none）
    """
    if task.status == TaskStatus.COMPLETED:
        return RiskFlag.NONE

    events = list(events)
    flag = task.risk_flag

    # 规则 1：指派后长期未开工
    if (
        task.status == TaskStatus.NOT_STARTED
        and task.assigned_at is not None
        and elapsed_hours(task.assigned_at, now) > STALE_ASSIGNMENT_HOURS
        and flag == RiskFlag.NONE
    ):
        flag = RiskFlag.SOFT

    # 规则 2：上游已完成但本任务未开工
    if task.dependency_id and task.status == TaskStatus.NOT_STARTED:
        completed = latest_event(
            events,
            task_id=task.dependency_id,
            event_type=TaskEventType.STATUS_CHANGED,
            new_value=TaskStatus.COMPLETED.value,
        )
        if (
            completed is not None
            and elapsed_hours(completed.ts, now) > DEPENDENCY_GAP_HOURS
            and flag != RiskFlag.HARD
        ):
            flag = RiskFlag.SOFT

    # 规则 3：逾期
    if task.due_date is not None and task.due_date < now:
        flag = RiskFlag.HARD

    # 规则 4：阻塞时长
    if task.status == TaskStatus.BLOCKED:
        blocked = latest_event(
            events,
            task_id=task.task_id,
            event_type=TaskEventType.STATUS_CHANGED,
            new_value=TaskStatus.BLOCKED.value,
        )
        if blocked is not None:
            blocked_hours = elapsed_hours(blocked.ts, now)
            if blocked_hours > BLOCKED_HARD_HOURS and flag != RiskFlag.HARD:
                flag = RiskFlag.HARD
            elif blocked_hours > 0 and flag == RiskFlag.NONE:
                flag = RiskFlag.SOFT

    # 只升不降
    return max_flag(flag, task.risk_flag)


def calculate_campaign_risk(
    campaign: Campaign,
    tasks: Iterable[Task],
    now: datetime,
) -> CampaignRisk:
    """汇总 Campaign 风险状态

    Args:
        campaign: Campaign
        tasks: 该 Campaign 的全部任务（已应用本轮评估结果）
        now: 评估时间

    Returns:
        high_risk / at_risk / normal
    """
    hard = soft = pending = 0
    for task in tasks:
        # completed 任务的有效风险恒为 none，残留标记不计入
        if task.status == TaskStatus.COMPLETED:
            continue
        pending += 1
        if task.risk_flag == RiskFlag.HARD:
            hard += 1
        elif task.risk_flag == RiskFlag.SOFT:
            soft += 1

    hours_to_launch = elapsed_hours(now, campaign.launch_date)

    if now > campaign.launch_date or hard >= CAMPAIGN_HARD_HIGH_RISK_COUNT:
        return CampaignRisk.HIGH_RISK
    if hard + soft >= CAMPAIGN_FLAGGED_AT_RISK_COUNT or (
        hours_to_launch <= CAMPAIGN_LAUNCH_WINDOW_HOURS and pending > 0
    ):
        return CampaignRisk.AT_RISK
    return CampaignRisk.NORMAL
