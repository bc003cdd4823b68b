"""进程内 cron 调度器

为每个引擎启动一个后台循环：按 croniter 计算下一次触发时间，睡眠到点后
调用 engine.run()。运行异常只记录日志，循环继续；锁保证与外部 cron
触发不会并发执行同一引擎。
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime

import structlog
from croniter import croniter

from .clock import Clock, utc_now
from .exceptions import InvalidScheduleError

log = structlog.get_logger()

Sleeper = Callable[[float], Awaitable[None]]


def validate_cron(expression: str) -> None:
    """校验 cron 表达式，非法时抛出 InvalidScheduleError"""
    if not croniter.is_valid(expression):
        raise InvalidScheduleError(expression)


def next_fire_time(expression: str, base: datetime) -> datetime:
    """计算 base 之后的下一次触发时间"""
    validate_cron(expression)
    return croniter(expression, base).get_next(datetime)


@dataclass
class ScheduledJob:
    """一个定时任务：名称 + 表达式 + 运行入口"""

    name: str
    expression: str
    run: Callable[[], Awaitable[object]]


class EngineScheduler:
    """基于 asyncio 的 cron 调度器"""

    def __init__(
        self,
        jobs: list[ScheduledJob],
        *,
        clock: Clock = utc_now,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        for job in jobs:
            validate_cron(job.expression)
        self._jobs = jobs
        self._clock = clock
        self._sleep = sleep
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks.values())

    def start(self) -> None:
        """为每个 job 启动后台循环（重复调用无副作用）"""
        for job in self._jobs:
            if job.name in self._tasks and not self._tasks[job.name].done():
                continue
            self._tasks[job.name] = asyncio.create_task(
                self._loop(job), name=f"scheduler:{job.name}"
            )
        log.info("scheduler_started", jobs=[j.name for j in self._jobs])

    async def stop(self) -> None:
        """取消所有后台循环并等待退出"""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        log.info("scheduler_stopped")

    async def _loop(self, job: ScheduledJob) -> None:
        while True:
            now = self._clock()
            fire_at = next_fire_time(job.expression, now)
            delay = max(0.0, (fire_at - now).total_seconds())
            log.debug("scheduler_next_fire", job=job.name, fire_at=fire_at.isoformat())
            await self._sleep(delay)
            try:
                await job.run()
            except Exception as e:
                log.error(
                    "scheduled_run_failed",
                    job=job.name,
                    error_type=type(e).__name__,
                    error=str(e),
                )
