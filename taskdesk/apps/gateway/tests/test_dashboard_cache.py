"""DashboardCache 测试

测试内容：
1. 版本号变化 / TTL 到期后条目失效
2. put 时清理其他租户的过期条目
3. 条目数上限
"""

from datetime import timedelta

from taskdesk.engine import InvalidationHub
from taskdesk.gateway.services.dashboard_service import (
    DashboardCache,
    RiskDashboard,
    RiskMetrics,
)


def _dashboard(org_id: str, version: int, generated_at) -> RiskDashboard:
    return RiskDashboard(
        org_id=org_id,
        metrics=RiskMetrics(),
        campaigns=[],
        dependency_alerts=[],
        generated_at=generated_at,
        version=version,
    )


class TestDashboardCache:
    async def test_invalidated_entry_misses(self, base_time):
        hub = InvalidationHub()
        cache = DashboardCache(hub, clock=lambda: base_time)
        cache.put("org-1", _dashboard("org-1", 0, base_time))

        assert cache.get("org-1") is not None

        await hub.invalidate("org-1", "risk_changed")
        assert cache.get("org-1") is None
        assert len(cache) == 0

    async def test_put_prunes_expired_entries_of_other_tenants(self, base_time):
        now = [base_time]
        cache = DashboardCache(InvalidationHub(), ttl_s=60, clock=lambda: now[0])
        for org_id in ["org-a", "org-b", "org-c"]:
            cache.put(org_id, _dashboard(org_id, 0, now[0]))
        assert len(cache) == 3

        now[0] = base_time + timedelta(seconds=61)
        cache.put("org-d", _dashboard("org-d", 0, now[0]))

        assert len(cache) == 1
        assert cache.get("org-a") is None
        assert cache.get("org-d") is not None

    async def test_put_prunes_invalidated_entries(self, base_time):
        hub = InvalidationHub()
        cache = DashboardCache(hub, clock=lambda: base_time)
        cache.put("org-a", _dashboard("org-a", 0, base_time))

        await hub.invalidate("org-a", "status_changed")
        cache.put("org-b", _dashboard("org-b", 0, base_time))

        assert len(cache) == 1

    async def test_bounded_entries(self, base_time):
        now = [base_time]
        cache = DashboardCache(InvalidationHub(), max_entries=2, clock=lambda: now[0])

        for minute, org_id in enumerate(["org-a", "org-b", "org-c"]):
            now[0] = base_time + timedelta(minutes=minute)
            cache.put(org_id, _dashboard(org_id, 0, now[0]))

        assert len(cache) == 2
        assert cache.get("org-a") is None
        assert cache.get("org-b") is not None
        assert cache.get("org-c") is not None
