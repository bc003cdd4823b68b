"""InvalidationHub 测试"""

from taskdesk.engine import InvalidationHub


class TestInvalidationHub:
    async def test_version_increments_per_org(self):
        hub = InvalidationHub()
        assert hub.version("org-1") == 0

        version = await hub.invalidate("org-1", "risk_changed")

        assert version == 1
        assert hub.version("org-1") == 1
        assert hub.version("org-2") == 0

    async def test_repeated_invalidation(self):
        hub = InvalidationHub()

        await hub.invalidate("org-1", "status_changed")
        await hub.invalidate("org-2", "status_changed")
        await hub.invalidate("org-1", "risk_changed")

        assert hub.version("org-1") == 2
        assert hub.version("org-2") == 1
        assert hub.version("org-3") == 0
