"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store 与引擎实例

实例通过 app.state 管理，在 lifespan（或测试中的 init_app_state）中初始化。
"""

from fastapi import Request
from taskdesk.core.store import StoreGroup
from taskdesk.engine import EngineConfig, InvalidationHub, ReminderEngine, RiskEngine

from .services.dashboard_service import DashboardCache, DashboardService
from .services.escalation_service import EscalationService
from .services.task_service import TaskService


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_engine_config(request: Request) -> EngineConfig:
    return request.app.state.engine_config


def get_invalidation_hub(request: Request) -> InvalidationHub:
    return request.app.state.invalidation_hub


def get_risk_engine(request: Request) -> RiskEngine:
    return request.app.state.risk_engine


def get_reminder_engine(request: Request) -> ReminderEngine:
    return request.app.state.reminder_engine


def get_task_service(request: Request) -> TaskService:
    state = request.app.state
    return TaskService(
        state.store_group,
        state.invalidation_hub,
        state.risk_engine,
        state.background_tasks,
        clock=state.clock,
    )


def get_dashboard_service(request: Request) -> DashboardService:
    state = request.app.state
    cache: DashboardCache = state.dashboard_cache
    return DashboardService(state.store_group, cache, state.invalidation_hub, clock=state.clock)


def get_escalation_service(request: Request) -> EscalationService:
    return EscalationService(request.app.state.store_group)
