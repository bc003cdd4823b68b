"""packages/core 测试配置 -- 核心层 fixture"""

from collections.abc import AsyncGenerator

import aiosqlite
import pytest_asyncio
from taskdesk.core.models import Campaign, Organization
from taskdesk.core.store import StoreGroup


@pytest_asyncio.fixture
async def store_group(db_conn: aiosqlite.Connection) -> AsyncGenerator[StoreGroup, None]:
    """共享临时连接的 StoreGroup（连接由 db_conn 负责关闭）"""
    yield StoreGroup(db_conn)


@pytest_asyncio.fixture
async def seeded(store_group: StoreGroup, base_time, make_campaign) -> StoreGroup:
    """已写入 org-1 与 camp-1 的 StoreGroup（外键要求先建父行）"""
    await store_group.org_store.create_organization(
        Organization(org_id="org-1", name="Acme", created_at=base_time)
    )
    campaign: Campaign = make_campaign()
    await store_group.campaign_store.create_campaign(campaign)
    await store_group.commit()
    return store_group
