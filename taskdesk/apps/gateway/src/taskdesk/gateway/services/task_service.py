"""TaskService -- 任务状态变更（事件触发模式入口）

流程：
1. 校验任务存在、操作者为负责人
2. 校验状态流转合法；进入 in_progress 需上游任务已完成
3. 同一事务写入新状态 + status_changed 事件
4. 发出租户缓存失效信号
5. 后台启动单租户风险引擎运行（fire-and-forget）
"""

import asyncio
from datetime import datetime

import structlog
from taskdesk.core.models import (
    TERMINAL_STATES,
    Task,
    TaskEvent,
    TaskEventType,
    TaskStatus,
    validate_transition,
)
from taskdesk.core.store import StoreGroup, append_event_and_update_status
from taskdesk.engine import Clock, InvalidationHub, RiskEngine, utc_now
from ulid import ULID

log = structlog.get_logger()


class TaskMutationError(Exception):
    """状态变更被拒绝 -- 路由层映射为 {"error": {"code", "message"}}"""

    def __init__(self, code: str, message: str, status_code: int) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code


class TaskService:
    """任务状态变更服务"""

    def __init__(
        self,
        store_group: StoreGroup,
        invalidation_hub: InvalidationHub | None = None,
        risk_engine: RiskEngine | None = None,
        background_tasks: set[asyncio.Task] | None = None,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._stores = store_group
        self._hub = invalidation_hub
        self._risk_engine = risk_engine
        # 后台任务引用需保留到完成，否则可能被 GC 回收
        self._background_tasks = background_tasks if background_tasks is not None else set()
        self._clock = clock

    async def get_task(self, task_id: str) -> Task | None:
        return await self._stores.task_store.get_task(task_id)

    async def change_status(
        self,
        task_id: str,
        new_status: TaskStatus,
        actor_id: str,
    ) -> Task:
        """变更任务状态

        Returns:
            更新后的 Task

        Raises:
            TaskMutationError: 任务不存在 / 无权限 / 非法流转 / 上游未完成 / 并发冲突
        """
        task = await self._stores.task_store.get_task(task_id)
        if task is None:
            raise TaskMutationError(
                "TASK_NOT_FOUND",
                f"Task with id {task_id} does not exist",
                404,
            )

        if task.owner_id != actor_id:
            raise TaskMutationError(
                "INSUFFICIENT_PERMISSIONS",
                "Only the task owner can update its status",
                403,
            )

        if task.status in TERMINAL_STATES or not validate_transition(task.status, new_status):
            raise TaskMutationError(
                "INVALID_TRANSITION",
                f"Cannot move task from {task.status.value} to {new_status.value}",
                409,
            )

        if new_status == TaskStatus.IN_PROGRESS and task.dependency_id:
            dependency = await self._stores.task_store.get_task(task.dependency_id)
            if dependency is None or dependency.status != TaskStatus.COMPLETED:
                raise TaskMutationError(
                    "DEPENDENCY_NOT_MET",
                    "Upstream dependency must be completed first",
                    409,
                )

        now: datetime = self._clock()
        event = TaskEvent(
            event_id=str(ULID()),
            task_id=task.task_id,
            org_id=task.org_id,
            actor_id=actor_id,
            event_type=TaskEventType.STATUS_CHANGED,
            old_value=task.status.value,
            new_value=new_status.value,
            ts=now,
        )
        written = await append_event_and_update_status(
            self._stores.conn,
            self._stores.write_lock,
            self._stores.event_store,
            self._stores.task_store,
            event,
            new_status=new_status,
            expected_status=task.status,
        )
        if not written:
            raise TaskMutationError(
                "TASK_STATUS_CONFLICT",
                "Task status was changed concurrently, please retry",
                409,
            )

        await log.ainfo(
            "task_status_changed",
            task_id=task.task_id,
            org_id=task.org_id,
            old=task.status.value,
            new=new_status.value,
        )

        if self._hub is not None:
            await self._hub.invalidate(task.org_id, "status_changed")

        self._trigger_risk_engine(task.org_id)
        return task.model_copy(update={"status": new_status, "updated_at": now})

    def _trigger_risk_engine(self, org_id: str) -> None:
        """后台启动单租户风险评估，不阻塞响应"""
        if self._risk_engine is None:
            return
        bg_task = asyncio.create_task(self._run_risk_engine(org_id))
        self._background_tasks.add(bg_task)
        bg_task.add_done_callback(self._background_tasks.discard)

    async def _run_risk_engine(self, org_id: str) -> None:
        try:
            result = await self._risk_engine.run(org_id)
        except Exception as e:
            log.error(
                "event_triggered_run_failed",
                org_id=org_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            return
        if result.skipped:
            # 锁被 cron 运行占用，下一次定时运行会覆盖该租户
            log.info("event_triggered_run_skipped", org_id=org_id)
