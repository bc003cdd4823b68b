"""TaskEvent Domain Model

事件表 append-only，不允许更新或删除。
event_id 使用 ULID 格式，时间有序。
"上次何时发生"一律通过扫描事件得到，不存储 last_fired_at 之类的列。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import TaskEventType


class TaskEvent(BaseModel):
    """TaskEvent 数据模型"""

    event_id: str = Field(description="唯一标识，ULID 格式，时间有序")
    task_id: str = Field(description="关联的 Task ID")
    org_id: str = Field(description="所属租户")
    actor_id: str = Field(description="操作者 user_id，引擎写入时为系统 actor")
    event_type: TaskEventType = Field(description="事件类型")
    old_value: str | None = Field(default=None, description="旧值")
    new_value: str | None = Field(default=None, description="新值")
    payload: dict[str, Any] = Field(default_factory=dict, description="结构化 payload")
    ts: datetime = Field(description="事件时间戳")
