"""集成测试共享 fixture -- 完整 app + 可推进时钟"""

import asyncio
import os
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from taskdesk.core.store import create_store_group
from taskdesk.engine import EngineConfig

CRON_SECRET = "integration-secret"


class ManualClock:
    """集成场景时钟：引擎、服务、缓存共用同一个实例"""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, hours: float) -> None:
        self.now = self.now + timedelta(hours=hours)


@pytest.fixture
def clock(base_time) -> ManualClock:
    return ManualClock(base_time)


@pytest_asyncio.fixture
async def integration_app(tmp_path: Path, clock):
    """集成测试用 FastAPI app"""
    os.environ["TASKDESK_DB_PATH"] = str(tmp_path / "test.db")

    from taskdesk.gateway.main import create_app, init_app_state

    app = create_app()

    store_group = await create_store_group(str(tmp_path / "test.db"))
    init_app_state(
        app,
        store_group,
        config=EngineConfig(cron_secret=SecretStr(CRON_SECRET), page_size=2),
        clock=clock,
    )

    yield app

    pending = list(app.state.background_tasks)
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
    await store_group.close()
    os.environ.pop("TASKDESK_DB_PATH", None)


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
        headers={"Authorization": f"Bearer {CRON_SECRET}"},
    ) as ac:
        yield ac
