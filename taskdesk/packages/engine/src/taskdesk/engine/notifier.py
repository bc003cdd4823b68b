"""通知出口 -- 引擎只负责写入，投递由外部通知子系统完成"""

from datetime import datetime
from typing import Protocol

import structlog
from ulid import ULID

from taskdesk.core.models import Notification, NotificationType
from taskdesk.core.store import StoreGroup, insert_notification

from .clock import Clock, utc_now

log = structlog.get_logger()


class NotificationSink(Protocol):
    """通知写入接口"""

    async def notify(
        self,
        org_id: str,
        user_id: str,
        type: NotificationType,
        message: str,
        task_id: str | None = None,
        campaign_id: str | None = None,
    ) -> None: ...


class StoreNotificationSink:
    """写入 notifications 表"""

    def __init__(self, store_group: StoreGroup, *, clock: Clock = utc_now) -> None:
        self._stores = store_group
        self._clock = clock

    async def notify(
        self,
        org_id: str,
        user_id: str,
        type: NotificationType,
        message: str,
        task_id: str | None = None,
        campaign_id: str | None = None,
    ) -> None:
        created_at: datetime = self._clock()
        notification = Notification(
            notification_id=str(ULID()),
            org_id=org_id,
            user_id=user_id,
            task_id=task_id,
            campaign_id=campaign_id,
            type=type,
            message=message,
            created_at=created_at,
        )
        await insert_notification(
            self._stores.conn,
            self._stores.write_lock,
            self._stores.notification_store,
            notification,
        )
        log.debug(
            "notification_created",
            org_id=org_id,
            user_id=user_id,
            task_id=task_id,
            type=type.value,
        )
