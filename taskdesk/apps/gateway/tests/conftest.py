"""apps/gateway 测试配置 -- 手动装配 app.state（绕过 lifespan）+ httpx AsyncClient"""

import asyncio
import os
from collections.abc import AsyncGenerator, Awaitable, Callable, Iterable
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from taskdesk.core.models import Campaign, Member, Organization, Task, TaskEvent
from taskdesk.core.store import create_store_group
from taskdesk.engine import EngineConfig, fixed_clock

CRON_SECRET = "test-cron-secret"


@pytest_asyncio.fixture
async def test_app(tmp_path: Path, base_time):
    os.environ["TASKDESK_DB_PATH"] = str(tmp_path / "test.db")

    from taskdesk.gateway.main import create_app, init_app_state

    app = create_app()

    # 手动初始化（绕过 lifespan）
    store_group = await create_store_group(str(tmp_path / "test.db"))
    init_app_state(
        app,
        store_group,
        config=EngineConfig(cron_secret=SecretStr(CRON_SECRET)),
        clock=fixed_clock(base_time),
    )

    yield app

    pending = list(app.state.background_tasks)
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
    await store_group.close()
    os.environ.pop("TASKDESK_DB_PATH", None)


@pytest_asyncio.fixture
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def cron_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {CRON_SECRET}"}


@pytest.fixture
def seed(test_app, base_time) -> Callable[..., Awaitable[None]]:
    """写入一个租户的数据（模拟外部 CRUD 层）"""

    async def _seed(
        org_id: str = "org-1",
        *,
        campaigns: Iterable[Campaign] = (),
        tasks: Iterable[Task] = (),
        events: Iterable[TaskEvent] = (),
        members: Iterable[Member] = (),
    ) -> None:
        stores = test_app.state.store_group
        await stores.org_store.create_organization(
            Organization(org_id=org_id, name=org_id, created_at=base_time)
        )
        for member in members:
            await stores.org_store.add_member(member)
        for campaign in campaigns:
            await stores.campaign_store.create_campaign(campaign)
        for task in tasks:
            await stores.task_store.create_task(task)
        for event in events:
            await stores.event_store.append_event(event)
        await stores.commit()

    return _seed


async def drain_background(app) -> None:
    """等待事件触发的后台运行结束"""
    pending = list(app.state.background_tasks)
    if pending:
        await asyncio.gather(*pending)


@pytest.fixture
def wait_background(test_app) -> Callable[[], Awaitable[None]]:
    return lambda: drain_background(test_app)
