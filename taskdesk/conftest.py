"""全局 pytest 配置 -- 临时 SQLite 数据库 + 领域对象工厂 fixture"""

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite
import pytest
import pytest_asyncio
from taskdesk.core.models import (
    Campaign,
    RiskFlag,
    Task,
    TaskEvent,
    TaskEventType,
    TaskStatus,
)
from ulid import ULID

# 测试统一基准时间（周三 08:00 UTC）
BASE_TIME = datetime(2026, 3, 4, 8, 0, tzinfo=UTC)


@pytest.fixture
def base_time() -> datetime:
    return BASE_TIME


@pytest_asyncio.fixture
async def tmp_db_path(tmp_path: Path) -> Path:
    """提供临时 SQLite 数据库路径"""
    return tmp_path / "test.db"


@pytest_asyncio.fixture
async def db_conn(tmp_db_path: Path) -> AsyncGenerator[aiosqlite.Connection, None]:
    """提供已初始化的临时 SQLite 数据库连接"""
    from taskdesk.core.store.sqlite_init import init_db

    conn = await aiosqlite.connect(str(tmp_db_path))
    await init_db(conn)
    yield conn
    await conn.close()


@pytest.fixture
def make_task() -> Callable[..., Task]:
    """任务工厂：未指定的字段取测试默认值"""

    def _make(task_id: str = "task-1", **overrides: Any) -> Task:
        fields: dict[str, Any] = {
            "task_id": task_id,
            "org_id": "org-1",
            "campaign_id": "camp-1",
            "title": f"Task {task_id}",
            "owner_id": "user-owner",
            "status": TaskStatus.NOT_STARTED,
            "risk_flag": RiskFlag.NONE,
            "created_at": BASE_TIME,
            "updated_at": BASE_TIME,
        }
        fields.update(overrides)
        return Task(**fields)

    return _make


@pytest.fixture
def make_event() -> Callable[..., TaskEvent]:
    """事件工厂"""

    def _make(
        task_id: str,
        event_type: TaskEventType,
        ts: datetime,
        new_value: str | None = None,
        **overrides: Any,
    ) -> TaskEvent:
        fields: dict[str, Any] = {
            "event_id": str(ULID()),
            "task_id": task_id,
            "org_id": "org-1",
            "actor_id": "user-owner",
            "event_type": event_type,
            "new_value": new_value,
            "ts": ts,
        }
        fields.update(overrides)
        return TaskEvent(**fields)

    return _make


@pytest.fixture
def make_campaign() -> Callable[..., Campaign]:
    """Campaign 工厂"""

    def _make(campaign_id: str = "camp-1", **overrides: Any) -> Campaign:
        fields: dict[str, Any] = {
            "campaign_id": campaign_id,
            "org_id": "org-1",
            "name": "Spring Launch",
            "launch_date": datetime(2026, 4, 1, tzinfo=UTC),
            "created_at": BASE_TIME,
            "updated_at": BASE_TIME,
        }
        fields.update(overrides)
        return Campaign(**fields)

    return _make
