"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭 + 引擎组件装配 + 可选进程内调度 + 路由注册。
"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from taskdesk.core.config import get_db_path
from taskdesk.core.logging_config import setup_logging
from taskdesk.core.store import StoreGroup, create_store_group
from taskdesk.engine import (
    Clock,
    EngineConfig,
    EngineScheduler,
    InvalidationHub,
    ReminderEngine,
    RiskEngine,
    ScheduledJob,
    StoreCoordinator,
    StoreNotificationSink,
    load_engine_config,
    utc_now,
)

from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import cron, dashboard, escalations, health, tasks
from .services.dashboard_service import DashboardCache

log = structlog.get_logger()


def init_app_state(
    app: FastAPI,
    store_group: StoreGroup,
    *,
    config: EngineConfig | None = None,
    clock: Clock = utc_now,
) -> None:
    """装配引擎组件到 app.state（lifespan 与测试共用）"""
    config = config or load_engine_config()
    hub = InvalidationHub()
    coordinator = StoreCoordinator(
        store_group.coordination_store,
        clock=clock,
        default_page_size=config.page_size,
    )
    sink = StoreNotificationSink(store_group, clock=clock)

    app.state.store_group = store_group
    app.state.engine_config = config
    app.state.clock = clock
    app.state.invalidation_hub = hub
    app.state.coordinator = coordinator
    app.state.risk_engine = RiskEngine(
        store_group, coordinator, sink, config=config, hub=hub, clock=clock
    )
    app.state.reminder_engine = ReminderEngine(
        store_group, coordinator, sink, config=config, hub=hub, clock=clock
    )
    app.state.dashboard_cache = DashboardCache(hub, clock=clock)
    app.state.background_tasks = set()
    app.state.scheduler = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 DB 与引擎，关闭时停止调度并清理连接"""
    store_group = await create_store_group(get_db_path())
    init_app_state(app, store_group)

    config: EngineConfig = app.state.engine_config
    if config.scheduler_enabled:
        scheduler = EngineScheduler(
            [
                ScheduledJob("risk_engine", config.risk_cron, app.state.risk_engine.run),
                ScheduledJob("reminders", config.reminder_cron, app.state.reminder_engine.run),
            ]
        )
        scheduler.start()
        app.state.scheduler = scheduler

    log.info(
        "gateway_started",
        scheduler_enabled=config.scheduler_enabled,
        page_size=config.page_size,
        max_concurrency=config.max_concurrency,
    )

    yield

    if app.state.scheduler is not None:
        await app.state.scheduler.stop()

    # 等待事件触发的后台运行结束，再关闭连接
    pending = list(app.state.background_tasks)
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)

    await store_group.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="Taskdesk Risk Gateway",
        version="0.1.0",
        description="风险与升级引擎的触发端点和只读视图",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    # 初始化日志
    setup_logging()

    # 注册路由
    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(cron.router, tags=["cron"])
    app.include_router(escalations.router, tags=["escalations"])
    app.include_router(dashboard.router, tags=["dashboard"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
