"""NotificationStore SQLite 实现

引擎只写入通知行；读取仅供外部通知子系统与测试使用。
"""

import aiosqlite

from ..models.enums import NotificationType
from ..models.notification import Notification
from .timefmt import from_db_ts, to_db_ts

_COLUMNS = "notification_id, org_id, user_id, task_id, campaign_id, type, message, read, created_at"


class SqliteNotificationStore:
    """NotificationStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_notification(self, notification: Notification) -> None:
        """写入通知（不自动提交）"""
        await self._conn.execute(
            f"INSERT INTO notifications ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                notification.notification_id,
                notification.org_id,
                notification.user_id,
                notification.task_id,
                notification.campaign_id,
                notification.type.value,
                notification.message,
                int(notification.read),
                to_db_ts(notification.created_at),
            ),
        )

    async def list_for_user(self, org_id: str, user_id: str) -> list[Notification]:
        """某用户的通知，按 created_at 倒序"""
        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM notifications
            WHERE org_id = ? AND user_id = ?
            ORDER BY created_at DESC, notification_id DESC
            """,
            (org_id, user_id),
        )
        rows = await cursor.fetchall()
        return [
            Notification(
                notification_id=row[0],
                org_id=row[1],
                user_id=row[2],
                task_id=row[3],
                campaign_id=row[4],
                type=NotificationType(row[5]),
                message=row[6],
                read=bool(row[7]),
                created_at=from_db_ts(row[8]),
            )
            for row in rows
        ]
