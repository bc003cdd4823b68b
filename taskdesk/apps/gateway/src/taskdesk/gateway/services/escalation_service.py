"""EscalationService -- 升级事件只读视图"""

from datetime import datetime

from pydantic import BaseModel
from taskdesk.core.models import (
    ESCALATION_EVENT_TYPES,
    CampaignRisk,
    EscalationStage,
    RiskFlag,
    TaskEvent,
    TaskStatus,
)
from taskdesk.core.store import StoreGroup

# 租户视图最多返回条数
ESCALATION_LIST_LIMIT = 50


class EscalationTaskRef(BaseModel):
    task_id: str
    title: str
    status: TaskStatus
    risk_flag: RiskFlag
    owner_id: str
    due_date: datetime | None = None


class EscalationCampaignRef(BaseModel):
    campaign_id: str
    name: str
    risk_status: CampaignRisk
    launch_date: datetime


class EscalationItem(BaseModel):
    """一次升级触发 + 关联任务 / Campaign 摘要"""

    event_id: str
    stage: int
    message: str | None
    ts: datetime
    task: EscalationTaskRef | None = None
    campaign: EscalationCampaignRef | None = None


class EscalationService:
    """升级事件查询"""

    def __init__(self, store_group: StoreGroup) -> None:
        self._stores = store_group

    async def list_for_org(
        self,
        org_id: str,
        stage: EscalationStage | None = None,
        limit: int = ESCALATION_LIST_LIMIT,
    ) -> list[EscalationItem]:
        """租户内最近的升级事件，可按阶段筛选，按时间倒序"""
        event_types = [stage.event_type] if stage is not None else list(ESCALATION_EVENT_TYPES)
        events = await self._stores.event_store.list_org_events(org_id, event_types, limit)
        return await self._attach_refs(events)

    async def list_for_task(self, task_id: str) -> list[EscalationItem]:
        """单个任务的全部升级事件，按时间倒序"""
        events = await self._stores.event_store.get_events_for_tasks(
            [task_id], ESCALATION_EVENT_TYPES
        )
        return await self._attach_refs(list(reversed(events)))

    async def _attach_refs(self, events: list[TaskEvent]) -> list[EscalationItem]:
        task_refs: dict[str, EscalationTaskRef | None] = {}
        campaign_refs: dict[str, EscalationCampaignRef | None] = {}
        task_campaign: dict[str, str] = {}

        for task_id in dict.fromkeys(e.task_id for e in events):
            task = await self._stores.task_store.get_task(task_id)
            if task is None:
                task_refs[task_id] = None
                continue
            task_refs[task_id] = EscalationTaskRef(
                task_id=task.task_id,
                title=task.title,
                status=task.status,
                risk_flag=task.risk_flag,
                owner_id=task.owner_id,
                due_date=task.due_date,
            )
            task_campaign[task_id] = task.campaign_id

        for campaign_id in dict.fromkeys(task_campaign.values()):
            campaign = await self._stores.campaign_store.get_campaign(campaign_id)
            campaign_refs[campaign_id] = (
                EscalationCampaignRef(
                    campaign_id=campaign.campaign_id,
                    name=campaign.name,
                    risk_status=campaign.risk_status,
                    launch_date=campaign.launch_date,
                )
                if campaign is not None
                else None
            )

        return [
            EscalationItem(
                event_id=e.event_id,
                stage=int(e.event_type.value.rsplit("_", 1)[1]),
                message=e.new_value,
                ts=e.ts,
                task=task_refs.get(e.task_id),
                campaign=campaign_refs.get(task_campaign.get(e.task_id, "")),
            )
            for e in events
        ]
