"""packages/engine 测试配置 -- 临时 StoreGroup、可推进时钟、数据准备助手"""

from collections.abc import AsyncGenerator, Awaitable, Callable, Iterable
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from taskdesk.core.models import Campaign, Member, Organization, Task, TaskEvent
from taskdesk.core.store import StoreGroup, create_store_group
from taskdesk.engine import EngineConfig, InMemoryCoordinator, InvalidationHub


class SteppingClock:
    """可手动推进的测试时钟"""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, hours: float) -> datetime:
        self.now = self.now + timedelta(hours=hours)
        return self.now


@pytest.fixture
def clock(base_time) -> SteppingClock:
    return SteppingClock(base_time)


@pytest_asyncio.fixture
async def stores(tmp_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """引擎测试用 StoreGroup（文件库，WAL 模式）"""
    store_group = await create_store_group(str(tmp_path / "engine.db"))
    yield store_group
    await store_group.close()


@pytest.fixture
def coordinator(clock) -> InMemoryCoordinator:
    return InMemoryCoordinator(clock=clock)


@pytest.fixture
def sink() -> AsyncMock:
    """记录 notify 调用的通知出口"""
    return AsyncMock()


@pytest.fixture
def hub() -> InvalidationHub:
    return InvalidationHub()


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig(max_concurrency=4)


@pytest.fixture
def seed(stores, base_time) -> Callable[..., Awaitable[None]]:
    """写入一个租户的完整数据（父行先于子行）"""

    async def _seed(
        org_id: str = "org-1",
        *,
        campaigns: Iterable[Campaign] = (),
        tasks: Iterable[Task] = (),
        events: Iterable[TaskEvent] = (),
        members: Iterable[Member] = (),
    ) -> None:
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


@pytest.fixture
def seed_tenant(seed, make_campaign, make_task) -> Callable[..., Awaitable[None]]:
    """写入只含一个 Campaign 与一个无风险任务的租户"""

    async def _seed_tenant(org_id: str) -> None:
        await seed(
            org_id,
            campaigns=[make_campaign(f"camp-{org_id}", org_id=org_id)],
            tasks=[make_task(f"task-{org_id}", org_id=org_id, campaign_id=f"camp-{org_id}")],
        )

    return _seed_tenant
