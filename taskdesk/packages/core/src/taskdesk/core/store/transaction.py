"""事件 + 行更新原子事务封装

在同一 SQLite 事务内原子提交事件与 tasks / campaigns 行更新。
所有写入都在 StoreGroup.write_lock 内完成：共享连接上的并发租户
不会交错各自的事务。compare-and-set 未命中时回滚且不写事件。
"""

import asyncio
from datetime import datetime

import aiosqlite

from ..models.enums import CampaignRisk, RiskFlag, TaskStatus
from ..models.event import TaskEvent
from ..models.notification import Notification
from .campaign_store import SqliteCampaignStore
from .event_store import SqliteEventStore
from .notification_store import SqliteNotificationStore
from .task_store import SqliteTaskStore


async def append_event_only(
    conn: aiosqlite.Connection,
    write_lock: asyncio.Lock,
    event_store: SqliteEventStore,
    event: TaskEvent,
) -> None:
    """仅写入事件（升级 / 提醒留痕）"""
    async with write_lock:
        try:
            await event_store.append_event(event)
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise


async def append_event_and_update_risk(
    conn: aiosqlite.Connection,
    write_lock: asyncio.Lock,
    event_store: SqliteEventStore,
    task_store: SqliteTaskStore,
    event: TaskEvent,
    new_flag: RiskFlag,
    expected: RiskFlag,
) -> bool:
    """compare-and-set 风险标记并写入对应事件

    Args:
        conn: 数据库连接（需在同一连接上操作以保证事务性）
        write_lock: 连接级写锁
        event_store: EventStore 实例
        task_store: TaskStore 实例
        event: risk_flag_set / risk_propagated 事件
        new_flag: 新风险标记
        expected: 评估时读到的旧值

    Returns:
        True 如果写入成功；False 表示行已被并发修改或不存在（已回滚）
    """
    async with write_lock:
        try:
            updated = await task_store.update_risk_flag(
                task_id=event.task_id,
                risk_flag=new_flag,
                updated_at=event.ts,
                expected=expected,
            )
            if not updated:
                await conn.rollback()
                return False
            await event_store.append_event(event)
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise
    return True


async def append_event_and_update_status(
    conn: aiosqlite.Connection,
    write_lock: asyncio.Lock,
    event_store: SqliteEventStore,
    task_store: SqliteTaskStore,
    event: TaskEvent,
    new_status: TaskStatus,
    expected_status: TaskStatus,
) -> bool:
    """compare-and-set 任务状态并写入 status_changed 事件"""
    async with write_lock:
        try:
            updated = await task_store.update_task_status(
                task_id=event.task_id,
                status=new_status,
                updated_at=event.ts,
                expected_status=expected_status,
            )
            if not updated:
                await conn.rollback()
                return False
            await event_store.append_event(event)
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise
    return True


async def update_campaign_risk(
    conn: aiosqlite.Connection,
    write_lock: asyncio.Lock,
    campaign_store: SqliteCampaignStore,
    campaign_id: str,
    risk_status: CampaignRisk,
    updated_at: datetime,
) -> bool:
    """更新 Campaign 风险状态；返回 False 表示 0 行命中"""
    async with write_lock:
        try:
            updated = await campaign_store.update_risk_status(
                campaign_id=campaign_id,
                risk_status=risk_status,
                updated_at=updated_at,
            )
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise
    return updated


async def insert_notification(
    conn: aiosqlite.Connection,
    write_lock: asyncio.Lock,
    notification_store: SqliteNotificationStore,
    notification: Notification,
) -> None:
    """写入单条通知"""
    async with write_lock:
        try:
            await notification_store.create_notification(notification)
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise
