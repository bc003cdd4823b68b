"""Taskdesk Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
"""

import asyncio
from pathlib import Path

import aiosqlite

from .campaign_store import SqliteCampaignStore
from .coordination_store import SqliteCoordinationStore
from .event_store import SqliteEventStore
from .notification_store import SqliteNotificationStore
from .org_store import SqliteOrgStore
from .sqlite_init import init_db, verify_wal_mode
from .task_store import SqliteTaskStore
from .transaction import (
    append_event_and_update_risk,
    append_event_and_update_status,
    append_event_only,
    insert_notification,
    update_campaign_risk,
)


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接与写锁"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self.conn = conn
        # 共享连接上的事务必须串行：一次持有覆盖一个完整工作单元
        self.write_lock = asyncio.Lock()
        self.task_store = SqliteTaskStore(conn)
        self.campaign_store = SqliteCampaignStore(conn)
        self.event_store = SqliteEventStore(conn)
        self.org_store = SqliteOrgStore(conn)
        self.notification_store = SqliteNotificationStore(conn)
        self.coordination_store = SqliteCoordinationStore(conn, self.write_lock)

    async def commit(self) -> None:
        """在写锁内提交（外部 CRUD 写入与测试数据准备使用）"""
        async with self.write_lock:
            await self.conn.commit()

    async def close(self) -> None:
        await self.conn.close()


async def create_store_group(db_path: str) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径

    Returns:
        StoreGroup 实例
    """
    # 确保数据库目录存在
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return StoreGroup(conn=conn)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "SqliteTaskStore",
    "SqliteCampaignStore",
    "SqliteEventStore",
    "SqliteOrgStore",
    "SqliteNotificationStore",
    "SqliteCoordinationStore",
    "init_db",
    "verify_wal_mode",
    "append_event_only",
    "append_event_and_update_risk",
    "append_event_and_update_status",
    "update_campaign_risk",
    "insert_notification",
]
