"""运行编排 -- RiskEngine / ReminderEngine

一次运行：
1. 获取命名锁（被占用则跳过，不是错误）
2. 解析租户页：cron 模式按游标分页，事件模式只处理触发租户
3. 租户级有界并发扇出，单租户失败不影响同批次
4. cron 模式推进游标（不足一页回绕）
5. finally 中释放锁

租户内处理顺序（风险引擎）：加载 -> 逐任务评估 -> 依赖传播 -> 写入标记
-> 聚合 Campaign -> 发出缓存失效 -> 升级判定。
"""

from collections import Counter
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any, Literal

import structlog
from pydantic import BaseModel, Field
from ulid import ULID

from taskdesk.core.config import EVENT_VALUE_MAX_LENGTH, SYSTEM_ACTOR_ID
from taskdesk.core.event_log import EventLog
from taskdesk.core.models import (
    ESCALATION_EVENT_TYPES,
    Campaign,
    EscalationPayload,
    EscalationStage,
    Member,
    NotificationType,
    ReminderKind,
    ReminderPayload,
    RiskFlag,
    RiskFlagSetPayload,
    RiskPropagatedPayload,
    Task,
    TaskEvent,
    TaskEventType,
)
from taskdesk.core.store import (
    StoreGroup,
    append_event_and_update_risk,
    append_event_only,
    update_campaign_risk,
)

from .clock import Clock, utc_now
from .config import REMINDERS_LOCK, RISK_ENGINE_LOCK, EngineConfig
from .coordinator import Coordinator, advance_after_page, next_tenant_page
from .escalation import STAGE_AUDIENCE_ROLE, determine_escalation_stage, escalation_message
from .exceptions import TenantProcessingError
from .fanout import fan_out
from .invalidation import InvalidationHub
from .notifier import NotificationSink
from .propagation import propagate_dependency_risk
from .reminders import reminder_message, should_send_reminder
from .risk import calculate_campaign_risk, evaluate_task_risk

log = structlog.get_logger()

RunMode = Literal["cron", "event"]


class RunResult(BaseModel):
    """单次运行结果"""

    engine: str = Field(description="引擎名（即锁名）")
    mode: RunMode = Field(description="cron 全量分页 / event 单租户")
    skipped: bool = Field(default=False, description="锁被占用而跳过")
    org_ids: list[str] = Field(default_factory=list, description="本次处理的租户页")
    processed_orgs: int = Field(default=0, description="成功处理的租户数")
    failed_orgs: int = Field(default=0, description="处理失败的租户数")
    stats: dict[str, int] = Field(default_factory=dict, description="各租户统计之和")
    cursor_before: str | None = Field(default=None, description="运行前游标")
    cursor_after: str | None = Field(default=None, description="运行后游标")
    page_size: int | None = Field(default=None, description="cron 模式页大小")
    error: str | None = Field(default=None, description="运行级失败（游标读写），租户级失败不计入")


class BaseEngine:
    """锁 + 分页 + 扇出的公共骨架，子类实现 _process_tenant()"""

    lock_name: str = ""

    def __init__(
        self,
        store_group: StoreGroup,
        coordinator: Coordinator,
        sink: NotificationSink,
        *,
        config: EngineConfig | None = None,
        hub: InvalidationHub | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._stores = store_group
        self._coordinator = coordinator
        self._sink = sink
        self._config = config or EngineConfig()
        self._hub = hub
        self._clock = clock

    @property
    def lock_ttl(self) -> timedelta:
        raise NotImplementedError

    async def run(self, org_id: str | None = None) -> RunResult:
        """执行一次运行

        Args:
            org_id: 指定时为事件模式（只处理该租户，不读写游标）

        Returns:
            RunResult
        """
        mode: RunMode = "event" if org_id else "cron"
        with structlog.contextvars.bound_contextvars(engine=self.lock_name, mode=mode):
            return await self._run_locked(mode, org_id)

    async def _run_locked(self, mode: RunMode, org_id: str | None) -> RunResult:
        result = RunResult(engine=self.lock_name, mode=mode)

        holder = await self._coordinator.try_acquire(self.lock_name, self.lock_ttl)
        if holder is None:
            await log.ainfo(f"{self.lock_name}_lock_busy", org_id=org_id)
            result.skipped = True
            return result

        try:
            now = self._clock()
            await log.ainfo(f"{self.lock_name}_start", org_id=org_id, now=now.isoformat())

            if org_id is not None:
                page = [org_id]
            else:
                try:
                    cursor = await self._coordinator.read_cursor(self.lock_name)
                    page = await next_tenant_page(self._stores.org_store, cursor)
                except Exception as e:
                    log.error(
                        "tenant_page_failed",
                        operation="read_cursor",
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                    result.error = f"read_cursor: {type(e).__name__}"
                    return result
                result.cursor_before = cursor.last_processed_org_id
                result.cursor_after = cursor.last_processed_org_id
                result.page_size = cursor.page_size

            result.org_ids = page

            async def _worker(tenant_id: str) -> Counter:
                return await self._process_tenant(tenant_id, now)

            outcomes = await fan_out(
                page,
                _worker,
                self._config.max_concurrency,
                unit="tenant",
            )

            totals: Counter = Counter()
            succeeded: set[str] = set()
            for outcome in outcomes:
                if outcome.ok:
                    succeeded.add(outcome.key)
                    totals.update(outcome.value)
            result.processed_orgs = len(succeeded)
            result.failed_orgs = len(outcomes) - len(succeeded)
            result.stats = dict(totals)

            if mode == "cron" and result.page_size is not None:
                await self._advance_cursor(result, page, succeeded)
        finally:
            await self._coordinator.release(self.lock_name, holder)

        await log.ainfo(
            f"{self.lock_name}_end",
            processed_orgs=result.processed_orgs,
            failed_orgs=result.failed_orgs,
            **result.stats,
        )
        return result

    async def _advance_cursor(
        self,
        result: RunResult,
        page: list[str],
        succeeded: set[str],
    ) -> None:
        should_advance, next_cursor = advance_after_page(page, result.page_size, succeeded)
        if not should_advance:
            log.warning("cursor_not_advanced", page=page)
            return
        try:
            await self._coordinator.advance_cursor(self.lock_name, next_cursor)
        except Exception as e:
            # 租户已处理完成；游标停留原处，下次运行重新处理本页
            log.error(
                "cursor_advance_failed",
                operation="advance_cursor",
                cursor=next_cursor,
                error_type=type(e).__name__,
                error=str(e),
            )
            result.error = f"advance_cursor: {type(e).__name__}"
            return
        result.cursor_after = next_cursor

    async def _process_tenant(self, org_id: str, now: datetime) -> Counter:
        raise NotImplementedError

    async def _load(self, org_id: str, operation: str, coro: Any) -> Any:
        """租户级读取：失败包装为 TenantProcessingError"""
        try:
            return await coro
        except Exception as e:
            raise TenantProcessingError(org_id, operation, e) from e

    def _system_event(
        self,
        task: Task,
        event_type: TaskEventType,
        now: datetime,
        *,
        old_value: str | None = None,
        new_value: str | None = None,
        payload: BaseModel | None = None,
    ) -> TaskEvent:
        if new_value is not None:
            new_value = new_value[:EVENT_VALUE_MAX_LENGTH]
        return TaskEvent(
            event_id=str(ULID()),
            task_id=task.task_id,
            org_id=task.org_id,
            actor_id=SYSTEM_ACTOR_ID,
            event_type=event_type,
            old_value=old_value,
            new_value=new_value,
            payload=payload.model_dump(mode="json") if payload is not None else {},
            ts=now,
        )

    async def _set_risk_flag(
        self,
        task: Task,
        new_flag: RiskFlag,
        event: TaskEvent,
        stats: Counter,
    ) -> bool:
        """compare-and-set 写入标记；未命中或出错都跳过该任务"""
        try:
            written = await append_event_and_update_risk(
                self._stores.conn,
                self._stores.write_lock,
                self._stores.event_store,
                self._stores.task_store,
                event,
                new_flag=new_flag,
                expected=task.risk_flag,
            )
        except Exception as e:
            log.error(
                "risk_flag_write_failed",
                org_id=task.org_id,
                task_id=task.task_id,
                operation="write_risk_flag",
                error_type=type(e).__name__,
                error=str(e),
            )
            stats["write_failures"] += 1
            return False
        if not written:
            log.warning(
                "risk_flag_conflict",
                org_id=task.org_id,
                task_id=task.task_id,
                expected=task.risk_flag.value,
            )
            stats["conflicts"] += 1
        return written

    async def _invalidate(self, org_id: str, reason: str) -> None:
        if self._hub is not None:
            await self._hub.invalidate(org_id, reason)


class RiskEngine(BaseEngine):
    """风险评估 + Campaign 聚合 + 升级"""

    lock_name = RISK_ENGINE_LOCK

    @property
    def lock_ttl(self) -> timedelta:
        return timedelta(minutes=self._config.risk_lock_ttl_min)

    async def _process_tenant(self, org_id: str, now: datetime) -> Counter:
        stats: Counter = Counter()
        stores = self._stores

        tasks: list[Task] = await self._load(
            org_id, "load_tasks", stores.task_store.list_tasks(org_id)
        )
        campaigns: list[Campaign] = await self._load(
            org_id, "load_campaigns", stores.campaign_store.list_campaigns(org_id)
        )
        members: list[Member] = await self._load(
            org_id, "load_members", stores.org_store.list_members(org_id)
        )
        events = EventLog(
            await self._load(
                org_id,
                "load_events",
                stores.event_store.get_events_for_tasks(
                    [t.task_id for t in tasks],
                    [TaskEventType.STATUS_CHANGED, *ESCALATION_EVENT_TYPES],
                ),
            )
        )

        # 1. 逐任务评估（单任务失败隔离）
        active = [t for t in tasks if t.is_active]
        flags: dict[str, RiskFlag] = {}
        for task in active:
            stats["tasks_evaluated"] += 1
            try:
                flags[task.task_id] = evaluate_task_risk(
                    task, events.for_tasks(task.task_id, task.dependency_id), now
                )
            except Exception as e:
                log.error(
                    "task_evaluation_failed",
                    org_id=org_id,
                    task_id=task.task_id,
                    operation="evaluate_task_risk",
                    error_type=type(e).__name__,
                    error=str(e),
                )
                stats["task_failures"] += 1
                flags[task.task_id] = task.risk_flag

        # 2. 依赖传播（基于合并后的评估结果）
        propagation = propagate_dependency_risk(tasks, flags)
        propagated = {p.task_id: p for p in propagation.propagated}

        # 3. 写入标记变化
        by_id = {t.task_id: t for t in tasks}
        for task in active:
            new_flag = propagation.flags.get(task.task_id, task.risk_flag)
            if new_flag == task.risk_flag:
                continue
            origin = propagated.get(task.task_id)
            if origin is not None:
                event = self._system_event(
                    task,
                    TaskEventType.RISK_PROPAGATED,
                    now,
                    old_value=task.risk_flag.value,
                    new_value=new_flag.value,
                    payload=RiskPropagatedPayload(
                        origin_task_id=origin.origin_task_id,
                        depth=origin.depth,
                    ),
                )
            else:
                event = self._system_event(
                    task,
                    TaskEventType.RISK_FLAG_SET,
                    now,
                    old_value=task.risk_flag.value,
                    new_value=new_flag.value,
                    payload=RiskFlagSetPayload(source=self.lock_name),
                )
            if await self._set_risk_flag(task, new_flag, event, stats):
                by_id[task.task_id] = task.model_copy(
                    update={"risk_flag": new_flag, "updated_at": now}
                )
                stats["risk_changes"] += 1
                if origin is not None:
                    stats["propagated"] += 1

        tasks = [by_id[t.task_id] for t in tasks]

        # 4. Campaign 聚合
        await self._aggregate_campaigns(org_id, campaigns, tasks, now, stats)

        if stats["risk_changes"] or stats["campaign_changes"]:
            await self._invalidate(org_id, "risk_changed")

        # 5. 升级
        await self._process_escalations(org_id, tasks, campaigns, members, events, now, stats)
        return stats

    async def _aggregate_campaigns(
        self,
        org_id: str,
        campaigns: list[Campaign],
        tasks: list[Task],
        now: datetime,
        stats: Counter,
    ) -> None:
        tasks_by_campaign: dict[str, list[Task]] = {}
        for task in tasks:
            tasks_by_campaign.setdefault(task.campaign_id, []).append(task)

        for campaign in campaigns:
            risk = calculate_campaign_risk(
                campaign, tasks_by_campaign.get(campaign.campaign_id, []), now
            )
            if risk == campaign.risk_status:
                continue
            try:
                updated = await update_campaign_risk(
                    self._stores.conn,
                    self._stores.write_lock,
                    self._stores.campaign_store,
                    campaign.campaign_id,
                    risk,
                    now,
                )
            except Exception as e:
                log.error(
                    "campaign_update_failed",
                    org_id=org_id,
                    campaign_id=campaign.campaign_id,
                    operation="aggregate_campaigns",
                    error_type=type(e).__name__,
                    error=str(e),
                )
                stats["write_failures"] += 1
                continue
            if not updated:
                # 读取后被删除
                log.warning(
                    "campaign_update_missed",
                    org_id=org_id,
                    campaign_id=campaign.campaign_id,
                )
                stats["conflicts"] += 1
                continue
            await log.ainfo(
                "campaign_risk_changed",
                org_id=org_id,
                campaign_id=campaign.campaign_id,
                old=campaign.risk_status.value,
                new=risk.value,
            )
            stats["campaign_changes"] += 1

    async def _process_escalations(
        self,
        org_id: str,
        tasks: list[Task],
        campaigns: list[Campaign],
        members: list[Member],
        events: EventLog,
        now: datetime,
        stats: Counter,
    ) -> None:
        campaign_names = {c.campaign_id: c.name for c in campaigns}
        member_names = {m.user_id: m.name for m in members}

        for task in tasks:
            if not task.is_active or task.risk_flag == RiskFlag.NONE:
                continue
            stage = determine_escalation_stage(task, events.for_tasks(task.task_id), now)
            if stage is None:
                continue
            try:
                await self._fire_escalation(
                    task,
                    stage,
                    campaign_names.get(task.campaign_id, ""),
                    member_names.get(task.owner_id, ""),
                    members,
                    now,
                    stats,
                )
            except Exception as e:
                log.error(
                    "escalation_failed",
                    org_id=org_id,
                    task_id=task.task_id,
                    stage=int(stage),
                    operation="fire_escalation",
                    error_type=type(e).__name__,
                    error=str(e),
                )
                stats["write_failures"] += 1

    async def _fire_escalation(
        self,
        task: Task,
        stage: EscalationStage,
        campaign_name: str,
        owner_name: str,
        members: Iterable[Member],
        now: datetime,
        stats: Counter,
    ) -> None:
        role = STAGE_AUDIENCE_ROLE[stage]
        if role is None:
            recipients = [task.owner_id]
        else:
            recipients = [m.user_id for m in members if m.role == role]

        message = escalation_message(stage, task, campaign_name, owner_name)
        event = self._system_event(
            task,
            stage.event_type,
            now,
            new_value=message,
            payload=EscalationPayload(
                stage=int(stage),
                recipient_count=len(recipients),
                message=message,
            ),
        )
        # 先留痕再通知：下一次判定必然看到本次触发
        await append_event_only(
            self._stores.conn,
            self._stores.write_lock,
            self._stores.event_store,
            event,
        )
        stats[f"escalation_stage_{int(stage)}"] += 1

        if not recipients:
            log.warning(
                "escalation_no_recipients",
                org_id=task.org_id,
                task_id=task.task_id,
                stage=int(stage),
                role=role.value if role else None,
            )
            return

        for user_id in recipients:
            await self._sink.notify(
                org_id=task.org_id,
                user_id=user_id,
                type=NotificationType.ESCALATION,
                message=message,
                task_id=task.task_id,
                campaign_id=task.campaign_id,
            )
            stats["notifications"] += 1


class ReminderEngine(BaseEngine):
    """截止提醒 + 逾期强制 hard"""

    lock_name = REMINDERS_LOCK

    @property
    def lock_ttl(self) -> timedelta:
        return timedelta(minutes=self._config.reminder_lock_ttl_min)

    async def _process_tenant(self, org_id: str, now: datetime) -> Counter:
        stats: Counter = Counter()
        stores = self._stores

        tasks: list[Task] = await self._load(
            org_id, "load_tasks", stores.task_store.list_tasks(org_id)
        )
        candidates = [t for t in tasks if t.is_active and t.due_date is not None]
        campaigns: list[Campaign] = await self._load(
            org_id, "load_campaigns", stores.campaign_store.list_campaigns(org_id)
        )
        campaign_names = {c.campaign_id: c.name for c in campaigns}
        events = EventLog(
            await self._load(
                org_id,
                "load_events",
                stores.event_store.get_events_for_tasks(
                    [t.task_id for t in candidates],
                    [TaskEventType.REMINDER_SENT],
                ),
            )
        )

        for task in candidates:
            stats["tasks_checked"] += 1
            kind = should_send_reminder(
                task,
                events.for_tasks(task.task_id),
                now,
                window_lower_hours=self._config.reminder_window_lower_h,
                window_upper_hours=self._config.reminder_window_upper_h,
            )
            if kind is None:
                continue
            try:
                await self._fire_reminder(
                    task, kind, campaign_names.get(task.campaign_id, ""), events, now, stats
                )
            except Exception as e:
                log.error(
                    "reminder_failed",
                    org_id=org_id,
                    task_id=task.task_id,
                    kind=kind.value,
                    operation="fire_reminder",
                    error_type=type(e).__name__,
                    error=str(e),
                )
                stats["write_failures"] += 1

        if stats["risk_changes"]:
            await self._invalidate(org_id, "risk_changed")
        return stats

    async def _fire_reminder(
        self,
        task: Task,
        kind: ReminderKind,
        campaign_name: str,
        events: EventLog,
        now: datetime,
        stats: Counter,
    ) -> None:
        if kind == ReminderKind.OVERDUE:
            if task.risk_flag != RiskFlag.HARD:
                event = self._system_event(
                    task,
                    TaskEventType.RISK_FLAG_SET,
                    now,
                    old_value=task.risk_flag.value,
                    new_value=RiskFlag.HARD.value,
                    payload=RiskFlagSetPayload(source=self.lock_name),
                )
                if await self._set_risk_flag(task, RiskFlag.HARD, event, stats):
                    stats["risk_changes"] += 1
            # 逾期通知每个任务只发一次
            if events.latest(task.task_id, TaskEventType.REMINDER_SENT, kind.value):
                return

        message = reminder_message(kind, task, campaign_name, now)
        event = self._system_event(
            task,
            TaskEventType.REMINDER_SENT,
            now,
            new_value=kind.value,
            payload=ReminderPayload(kind=kind, message=message),
        )
        await append_event_only(
            self._stores.conn,
            self._stores.write_lock,
            self._stores.event_store,
            event,
        )
        stats[f"reminder_{kind.value}"] += 1

        await self._sink.notify(
            org_id=task.org_id,
            user_id=task.owner_id,
            type=NotificationType.REMINDER,
            message=message,
            task_id=task.task_id,
            campaign_id=task.campaign_id,
        )
        stats["notifications"] += 1
