"""Store Protocol 接口定义

定义 TaskStore、CampaignStore、EventStore、OrgStore、NotificationStore、
CoordinationStore 的抽象接口，使用 Python Protocol 实现结构化子类型（duck typing）。
引擎只依赖这些接口，不依赖具体 SQL 方言。
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Protocol

from ..models.campaign import Campaign
from ..models.coordination import CursorRecord, LockRecord
from ..models.enums import CampaignRisk, MemberRole, RiskFlag, TaskEventType, TaskStatus
from ..models.event import TaskEvent
from ..models.notification import Notification
from ..models.organization import Member, Organization
from ..models.task import Task


class TaskStore(Protocol):
    """Task 存储接口"""

    async def create_task(self, task: Task) -> None:
        """创建任务记录"""
        ...

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        ...

    async def list_tasks(self, org_id: str, status: TaskStatus | None = None) -> list[Task]:
        """查询租户的任务列表，支持按状态筛选"""
        ...

    async def update_risk_flag(
        self,
        task_id: str,
        risk_flag: RiskFlag,
        updated_at: datetime,
        expected: RiskFlag,
    ) -> bool:
        """compare-and-set 更新风险标记，返回是否命中"""
        ...

    async def update_task_status(
        self,
        task_id: str,
        status: TaskStatus,
        updated_at: datetime,
        expected_status: TaskStatus,
    ) -> bool:
        """compare-and-set 更新任务状态，返回是否命中"""
        ...


class CampaignStore(Protocol):
    """Campaign 存储接口"""

    async def create_campaign(self, campaign: Campaign) -> None: ...

    async def get_campaign(self, campaign_id: str) -> Campaign | None: ...

    async def list_campaigns(self, org_id: str) -> list[Campaign]: ...

    async def update_risk_status(
        self,
        campaign_id: str,
        risk_status: CampaignRisk,
        updated_at: datetime,
    ) -> bool:
        """更新 Campaign 风险状态，返回是否命中（0 行视为数据不一致）"""
        ...


class EventStore(Protocol):
    """TaskEvent 存储接口

    事件表 append-only：只允许插入，不允许更新或删除。
    """

    async def append_event(self, event: TaskEvent) -> None:
        """追加事件（append-only）"""
        ...

    async def get_events_for_task(self, task_id: str) -> list[TaskEvent]:
        """查询指定任务的所有事件（按 ts 正序）"""
        ...

    async def get_events_for_tasks(
        self,
        task_ids: Iterable[str],
        event_types: Iterable[TaskEventType] | None = None,
    ) -> list[TaskEvent]:
        """批量查询一组任务的事件（单租户一次加载）"""
        ...

    async def latest_event(
        self,
        task_id: str,
        event_type: TaskEventType,
        new_value: str | None = None,
    ) -> TaskEvent | None:
        """某任务最近一次匹配的事件"""
        ...

    async def list_org_events(
        self,
        org_id: str,
        event_types: Iterable[TaskEventType],
        limit: int = 50,
    ) -> list[TaskEvent]:
        """租户内指定类型的最近事件（按 ts 倒序）"""
        ...


class OrgStore(Protocol):
    """Organization / Member 存储接口"""

    async def create_organization(self, org: Organization) -> None: ...

    async def list_org_ids_after(self, after_org_id: str | None, limit: int) -> list[str]:
        """按 org_id 升序返回 after_org_id 之后的至多 limit 个租户"""
        ...

    async def add_member(self, member: Member) -> None: ...

    async def get_member(self, user_id: str) -> Member | None: ...

    async def list_members(self, org_id: str, role: MemberRole | None = None) -> list[Member]: ...


class NotificationStore(Protocol):
    """Notification 存储接口"""

    async def create_notification(self, notification: Notification) -> None: ...

    async def list_for_user(self, org_id: str, user_id: str) -> list[Notification]: ...


class CoordinationStore(Protocol):
    """分布式锁 + 游标存储接口"""

    async def try_insert_lock(self, lock: LockRecord, now: datetime) -> bool:
        """清理过期锁后条件插入，返回是否获得锁"""
        ...

    async def delete_lock(self, name: str, holder: str) -> bool:
        """仅删除 holder 匹配的锁"""
        ...

    async def get_lock(self, name: str) -> LockRecord | None: ...

    async def get_cursor(self, name: str) -> CursorRecord | None: ...

    async def upsert_cursor(self, cursor: CursorRecord) -> None: ...
