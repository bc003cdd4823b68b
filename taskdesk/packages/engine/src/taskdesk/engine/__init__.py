"""Taskdesk Engine -- 风险与升级引擎

对外导出纯评估函数、协调器、编排器与调度器。
"""

from .clock import Clock, elapsed_hours, fixed_clock, utc_now
from .config import EngineConfig, load_engine_config
from .coordinator import (
    Coordinator,
    CursorState,
    InMemoryCoordinator,
    StoreCoordinator,
    advance_after_page,
    next_tenant_page,
)
from .escalation import determine_escalation_stage
from .exceptions import EngineError, InvalidScheduleError, TenantProcessingError
from .fanout import UnitOutcome, fan_out
from .invalidation import InvalidationHub
from .notifier import NotificationSink, StoreNotificationSink
from .orchestrator import BaseEngine, ReminderEngine, RiskEngine, RunResult
from .propagation import Propagation, PropagationResult, propagate_dependency_risk
from .reminders import should_send_reminder
from .risk import calculate_campaign_risk, evaluate_task_risk
from .scheduler import EngineScheduler, ScheduledJob, next_fire_time

__all__ = [
    # 纯评估
    "evaluate_task_risk",
    "calculate_campaign_risk",
    "propagate_dependency_risk",
    "Propagation",
    "PropagationResult",
    "determine_escalation_stage",
    "should_send_reminder",
    # 协调
    "Coordinator",
    "CursorState",
    "StoreCoordinator",
    "InMemoryCoordinator",
    "next_tenant_page",
    "advance_after_page",
    # 编排
    "BaseEngine",
    "RiskEngine",
    "ReminderEngine",
    "RunResult",
    "fan_out",
    "UnitOutcome",
    "NotificationSink",
    "StoreNotificationSink",
    "InvalidationHub",
    # 调度
    "EngineScheduler",
    "ScheduledJob",
    "next_fire_time",
    # 配置 / 时钟 / 异常
    "EngineConfig",
    "load_engine_config",
    "Clock",
    "utc_now",
    "fixed_clock",
    "elapsed_hours",
    "EngineError",
    "TenantProcessingError",
    "InvalidScheduleError",
]
