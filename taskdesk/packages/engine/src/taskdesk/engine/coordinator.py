"""分布式锁 + 游标协调器

Coordinator 协议把"单实例运行"与"分页游标"从具体存储中抽离：
- StoreCoordinator：基于 worker_locks / worker_cursors 表，跨进程生效
- InMemoryCoordinator：单进程内存实现，供测试与本地调试

锁 TTL 短于调度间隔，崩溃的持有者不会永久饿死后续运行。
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol

import structlog
from ulid import ULID

from taskdesk.core.models import DEFAULT_PAGE_SIZE, CursorRecord, LockRecord
from taskdesk.core.store.protocols import CoordinationStore, OrgStore

from .clock import Clock, utc_now

log = structlog.get_logger()


@dataclass(frozen=True)
class CursorState:
    """游标快照"""

    last_processed_org_id: str | None
    page_size: int = DEFAULT_PAGE_SIZE


class Coordinator(Protocol):
    """锁与游标的抽象接口

    每次 try_acquire 成功都生成新的持有者令牌；release 必须带回该令牌，
    过期后被接管的锁不会被原持有者误删。
    """

    async def try_acquire(self, name: str, ttl: timedelta) -> str | None:
        """尝试获取命名锁，成功返回持有者令牌，被未过期的持有者占用时返回 None"""
        ...

    async def release(self, name: str, holder: str) -> None:
        """释放 holder 持有的命名锁"""
        ...

    async def read_cursor(self, name: str) -> CursorState:
        """读取游标，不存在时返回从头开始的默认游标"""
        ...

    async def advance_cursor(self, name: str, org_id: str | None) -> None:
        """推进游标；None 表示回绕到开头"""
        ...


class StoreCoordinator:
    """基于 CoordinationStore 的协调器"""

    def __init__(
        self,
        store: CoordinationStore,
        *,
        clock: Clock = utc_now,
        default_page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._store = store
        self._clock = clock
        self._default_page_size = default_page_size

    async def try_acquire(self, name: str, ttl: timedelta) -> str | None:
        now = self._clock()
        holder = str(ULID())
        lock = LockRecord(name=name, holder=holder, expires_at=now + ttl)
        if await self._store.try_insert_lock(lock, now):
            return holder
        return None

    async def release(self, name: str, holder: str) -> None:
        released = await self._store.delete_lock(name, holder)
        if not released:
            # 锁已过期并被其他运行接管，或已被清理
            log.warning("lock_release_noop", lock_name=name, holder=holder)

    async def read_cursor(self, name: str) -> CursorState:
        record = await self._store.get_cursor(name)
        if record is None:
            return CursorState(last_processed_org_id=None, page_size=self._default_page_size)
        return CursorState(
            last_processed_org_id=record.last_processed_org_id,
            page_size=record.page_size,
        )

    async def advance_cursor(self, name: str, org_id: str | None) -> None:
        await self._store.upsert_cursor(
            CursorRecord(
                name=name,
                last_processed_org_id=org_id,
                page_size=self._default_page_size,
            )
        )


class InMemoryCoordinator:
    """单进程内存协调器"""

    def __init__(
        self,
        *,
        clock: Clock = utc_now,
        default_page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._clock = clock
        self._default_page_size = default_page_size
        self.locks: dict[str, LockRecord] = {}
        self.cursors: dict[str, CursorState] = {}

    async def try_acquire(self, name: str, ttl: timedelta) -> str | None:
        now = self._clock()
        current = self.locks.get(name)
        if current is not None and current.expires_at > now:
            return None
        holder = str(ULID())
        self.locks[name] = LockRecord(name=name, holder=holder, expires_at=now + ttl)
        return holder

    async def release(self, name: str, holder: str) -> None:
        current = self.locks.get(name)
        if current is not None and current.holder == holder:
            del self.locks[name]

    async def read_cursor(self, name: str) -> CursorState:
        return self.cursors.get(
            name,
            CursorState(last_processed_org_id=None, page_size=self._default_page_size),
        )

    async def advance_cursor(self, name: str, org_id: str | None) -> None:
        current = await self.read_cursor(name)
        self.cursors[name] = CursorState(last_processed_org_id=org_id, page_size=current.page_size)


async def next_tenant_page(org_store: OrgStore, cursor: CursorState) -> list[str]:
    """读取游标之后的下一页租户 ID（按 org_id 升序）"""
    return await org_store.list_org_ids_after(cursor.last_processed_org_id, cursor.page_size)


def advance_after_page(
    page: list[str],
    page_size: int,
    succeeded: set[str],
) -> tuple[bool, str | None]:
    """计算一页处理完成后的游标去向

    Args:
        page: 本页租户 ID（升序）
        page_size: 页大小
        succeeded: 处理成功的租户

    Returns:
        (是否推进, 新游标)；不足一页时回绕为 None，整页失败时不推进
    """
    if len(page) < page_size:
        return True, None
    last_ok = next((org_id for org_id in reversed(page) if org_id in succeeded), None)
    if last_ok is None:
        return False, None
    return True, last_ok
