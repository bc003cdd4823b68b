"""DashboardService -- 按租户缓存的风险仪表盘聚合

缓存条目记录生成时的租户版本号（InvalidationHub.version）：
版本号变化或超过 TTL 即视为过期，下次读取重新聚合。
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog
from pydantic import BaseModel, Field
from taskdesk.core.config import DASHBOARD_CACHE_MAX_ENTRIES, DASHBOARD_CACHE_TTL_S
from taskdesk.core.event_log import EventLog
from taskdesk.core.models import CampaignRisk, Task, TaskEventType, TaskStatus
from taskdesk.core.store import StoreGroup
from taskdesk.engine import Clock, InvalidationHub, elapsed_hours, utc_now
from taskdesk.engine.config import DEPENDENCY_GAP_HOURS

log = structlog.get_logger()

# 依赖告警最多展示条数
MAX_DEPENDENCY_ALERTS = 8


class RiskMetrics(BaseModel):
    """Campaign 风险计数 + 停滞任务数"""

    active_count: int = Field(default=0, description="normal 状态 Campaign 数")
    at_risk_count: int = Field(default=0)
    high_risk_count: int = Field(default=0)
    stalled_tasks_count: int = Field(default=0, description="阻塞或逾期的未完成任务数")


class TaskCounts(BaseModel):
    total: int = 0
    overdue: int = 0
    blocked: int = 0


class CampaignSummary(BaseModel):
    campaign_id: str
    name: str
    risk_status: CampaignRisk
    launch_date: datetime
    task_counts: TaskCounts


class DependencyAlert(BaseModel):
    """上游已完成超过阈值但本任务仍未开工"""

    task_id: str
    title: str
    campaign_id: str
    dependency_id: str
    dependency_completed_at: datetime
    dependency_gap_hours: float


class RiskDashboard(BaseModel):
    org_id: str
    metrics: RiskMetrics
    campaigns: list[CampaignSummary]
    dependency_alerts: list[DependencyAlert]
    generated_at: datetime
    version: int = Field(description="生成时的租户数据版本号")


@dataclass
class _CacheEntry:
    version: int
    expires_at: datetime
    value: RiskDashboard


class DashboardCache:
    """租户级 TTL + 版本号缓存

    put 时清理已过期或版本落后的条目；仍超过 max_entries 时淘汰最早到期的条目。
    """

    def __init__(
        self,
        hub: InvalidationHub,
        *,
        ttl_s: int = DASHBOARD_CACHE_TTL_S,
        max_entries: int = DASHBOARD_CACHE_MAX_ENTRIES,
        clock: Clock = utc_now,
    ) -> None:
        self._hub = hub
        self._ttl = timedelta(seconds=ttl_s)
        self._max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _is_stale(self, org_id: str, entry: _CacheEntry, now: datetime) -> bool:
        return entry.version != self._hub.version(org_id) or now >= entry.expires_at

    def get(self, org_id: str) -> RiskDashboard | None:
        entry = self._entries.get(org_id)
        if entry is None:
            return None
        if self._is_stale(org_id, entry, self._clock()):
            del self._entries[org_id]
            return None
        return entry.value

    def put(self, org_id: str, value: RiskDashboard) -> None:
        now = self._clock()
        self._prune(now)
        self._entries[org_id] = _CacheEntry(
            version=value.version,
            expires_at=now + self._ttl,
            value=value,
        )
        while len(self._entries) > self._max_entries:
            oldest = min(self._entries, key=lambda key: self._entries[key].expires_at)
            del self._entries[oldest]

    def _prune(self, now: datetime) -> None:
        stale = [
            org_id
            for org_id, entry in self._entries.items()
            if self._is_stale(org_id, entry, now)
        ]
        for org_id in stale:
            del self._entries[org_id]


class DashboardService:
    """风险仪表盘聚合"""

    def __init__(
        self,
        store_group: StoreGroup,
        cache: DashboardCache,
        hub: InvalidationHub,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._stores = store_group
        self._cache = cache
        self._hub = hub
        self._clock = clock

    async def get_dashboard(self, org_id: str) -> tuple[RiskDashboard, bool]:
        """返回 (仪表盘, 是否命中缓存)"""
        cached = self._cache.get(org_id)
        if cached is not None:
            return cached, True

        # 先取版本号：聚合期间发生的失效会让本条目立即过期
        version = self._hub.version(org_id)
        dashboard = await self._build(org_id, version)
        self._cache.put(org_id, dashboard)
        log.debug("dashboard_rebuilt", org_id=org_id, version=version)
        return dashboard, False

    async def _build(self, org_id: str, version: int) -> RiskDashboard:
        now = self._clock()
        campaigns = await self._stores.campaign_store.list_campaigns(org_id)
        tasks = await self._stores.task_store.list_tasks(org_id)

        metrics = RiskMetrics()
        for campaign in campaigns:
            if campaign.risk_status == CampaignRisk.NORMAL:
                metrics.active_count += 1
            elif campaign.risk_status == CampaignRisk.AT_RISK:
                metrics.at_risk_count += 1
            else:
                metrics.high_risk_count += 1

        counts: dict[str, TaskCounts] = {c.campaign_id: TaskCounts() for c in campaigns}
        for task in tasks:
            stalled = False
            entry = counts.setdefault(task.campaign_id, TaskCounts())
            entry.total += 1
            if task.status == TaskStatus.BLOCKED:
                entry.blocked += 1
                stalled = True
            if _is_overdue(task, now):
                entry.overdue += 1
                stalled = True
            if stalled:
                metrics.stalled_tasks_count += 1

        return RiskDashboard(
            org_id=org_id,
            metrics=metrics,
            campaigns=[
                CampaignSummary(
                    campaign_id=c.campaign_id,
                    name=c.name,
                    risk_status=c.risk_status,
                    launch_date=c.launch_date,
                    task_counts=counts[c.campaign_id],
                )
                for c in campaigns
            ],
            dependency_alerts=await self._dependency_alerts(tasks, now),
            generated_at=now,
            version=version,
        )

    async def _dependency_alerts(self, tasks: list[Task], now: datetime) -> list[DependencyAlert]:
        waiting = [
            t for t in tasks if t.status == TaskStatus.NOT_STARTED and t.dependency_id
        ]
        if not waiting:
            return []

        events = EventLog(
            await self._stores.event_store.get_events_for_tasks(
                [t.dependency_id for t in waiting],
                [TaskEventType.STATUS_CHANGED],
            )
        )
        alerts: list[DependencyAlert] = []
        for task in waiting:
            completed = events.latest(
                task.dependency_id, TaskEventType.STATUS_CHANGED, TaskStatus.COMPLETED.value
            )
            if completed is None:
                continue
            gap = elapsed_hours(completed.ts, now)
            if gap <= DEPENDENCY_GAP_HOURS:
                continue
            alerts.append(
                DependencyAlert(
                    task_id=task.task_id,
                    title=task.title,
                    campaign_id=task.campaign_id,
                    dependency_id=task.dependency_id,
                    dependency_completed_at=completed.ts,
                    dependency_gap_hours=round(gap, 1),
                )
            )
        alerts.sort(key=lambda a: a.dependency_gap_hours, reverse=True)
        return alerts[:MAX_DEPENDENCY_ALERTS]


def _is_overdue(task: Task, now: datetime) -> bool:
    return task.is_active and task.due_date is not None and task.due_date < now
