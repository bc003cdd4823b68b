"""Notification Domain Model -- 引擎只写不读，由外部通知子系统消费"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import NotificationType


class Notification(BaseModel):
    """Notification 数据模型"""

    notification_id: str = Field(description="唯一标识，ULID 格式")
    org_id: str = Field(description="所属租户")
    user_id: str = Field(description="接收者")
    task_id: str | None = Field(default=None, description="关联任务")
    campaign_id: str | None = Field(default=None, description="关联 Campaign")
    type: NotificationType = Field(description="通知类型")
    message: str = Field(description="通知正文")
    read: bool = Field(default=False, description="是否已读")
    created_at: datetime = Field(description="创建时间")
