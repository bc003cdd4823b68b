"""锁 + 游标协调器测试"""

from datetime import timedelta

import pytest
from taskdesk.core.models import Organization
from taskdesk.engine import (
    CursorState,
    InMemoryCoordinator,
    StoreCoordinator,
    advance_after_page,
    next_tenant_page,
)


class TestInMemoryCoordinator:
    async def test_lock_exclusive_until_expiry(self, clock):
        coordinator = InMemoryCoordinator(clock=clock)
        ttl = timedelta(minutes=55)

        assert await coordinator.try_acquire("risk_engine", ttl) is not None
        assert await coordinator.try_acquire("risk_engine", ttl) is None
        clock.advance(1)
        assert await coordinator.try_acquire("risk_engine", ttl) is not None

    async def test_release(self, clock):
        coordinator = InMemoryCoordinator(clock=clock)
        holder = await coordinator.try_acquire("reminders", timedelta(minutes=25))
        await coordinator.release("reminders", holder)
        assert "reminders" not in coordinator.locks

    async def test_each_acquisition_gets_new_holder(self, clock):
        coordinator = InMemoryCoordinator(clock=clock)
        ttl = timedelta(minutes=25)

        first = await coordinator.try_acquire("reminders", ttl)
        clock.advance(0.5)
        second = await coordinator.try_acquire("reminders", ttl)

        assert first != second
        # 过期运行的 finally 不会删掉接管者的锁
        await coordinator.release("reminders", first)
        assert coordinator.locks["reminders"].holder == second
        assert await coordinator.try_acquire("reminders", ttl) is None

    async def test_cursor_defaults_and_advance(self, clock):
        coordinator = InMemoryCoordinator(clock=clock, default_page_size=3)
        assert await coordinator.read_cursor("risk_engine") == CursorState(None, 3)

        await coordinator.advance_cursor("risk_engine", "org-c")
        assert await coordinator.read_cursor("risk_engine") == CursorState("org-c", 3)


class TestStoreCoordinator:
    async def test_two_instances_share_lock(self, stores, clock):
        a = StoreCoordinator(stores.coordination_store, clock=clock)
        b = StoreCoordinator(stores.coordination_store, clock=clock)
        ttl = timedelta(minutes=55)

        holder_a = await a.try_acquire("risk_engine", ttl)
        assert holder_a is not None
        assert await b.try_acquire("risk_engine", ttl) is None

        # 令牌不匹配的释放不生效
        await b.release("risk_engine", "not-the-holder")
        assert await b.try_acquire("risk_engine", ttl) is None

        await a.release("risk_engine", holder_a)
        assert await b.try_acquire("risk_engine", ttl) is not None

    async def test_expired_lock_taken_over(self, stores, clock):
        a = StoreCoordinator(stores.coordination_store, clock=clock)
        b = StoreCoordinator(stores.coordination_store, clock=clock)
        holder_a = await a.try_acquire("reminders", timedelta(minutes=25))

        clock.advance(0.5)
        holder_b = await b.try_acquire("reminders", timedelta(minutes=25))
        assert holder_b is not None
        # a 的锁已被接管，释放只记录日志
        await a.release("reminders", holder_a)
        lock = await stores.coordination_store.get_lock("reminders")
        assert lock.holder == holder_b

    async def test_overrun_release_keeps_successor_lock(self, stores, clock):
        # 同一协调器实例被 cron、调度器与事件运行共用
        coordinator = StoreCoordinator(stores.coordination_store, clock=clock)
        ttl = timedelta(minutes=55)

        run_a = await coordinator.try_acquire("risk_engine", ttl)
        clock.advance(1)
        run_b = await coordinator.try_acquire("risk_engine", ttl)
        assert run_a is not None and run_b is not None
        assert run_a != run_b

        # run A 超时后才走到 finally
        await coordinator.release("risk_engine", run_a)

        assert await coordinator.try_acquire("risk_engine", ttl) is None
        lock = await stores.coordination_store.get_lock("risk_engine")
        assert lock.holder == run_b

        await coordinator.release("risk_engine", run_b)
        assert await coordinator.try_acquire("risk_engine", ttl) is not None

    async def test_cursor_persisted(self, stores, clock):
        coordinator = StoreCoordinator(stores.coordination_store, clock=clock, default_page_size=2)
        assert await coordinator.read_cursor("risk_engine") == CursorState(None, 2)

        await coordinator.advance_cursor("risk_engine", "org-b")
        reopened = StoreCoordinator(stores.coordination_store, clock=clock)
        assert (await reopened.read_cursor("risk_engine")).last_processed_org_id == "org-b"


class TestPaging:
    async def test_next_tenant_page(self, stores, base_time):
        for org_id in ["org-a", "org-b", "org-c"]:
            await stores.org_store.create_organization(
                Organization(org_id=org_id, created_at=base_time)
            )
        await stores.commit()

        page = await next_tenant_page(stores.org_store, CursorState("org-a", 10))
        assert page == ["org-b", "org-c"]

    @pytest.mark.parametrize(
        "page,page_size,succeeded,expected",
        [
            (["a", "b"], 2, {"a", "b"}, (True, "b")),
            (["a", "b"], 2, {"a"}, (True, "a")),
            (["a", "b"], 2, set(), (False, None)),
            (["a"], 2, set(), (True, None)),
            ([], 2, set(), (True, None)),
        ],
    )
    def test_advance_after_page(self, page, page_size, succeeded, expected):
        assert advance_after_page(page, page_size, succeeded) == expected
