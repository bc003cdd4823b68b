"""健康检查端点 + 请求日志中间件测试"""

import pytest
from httpx import AsyncClient
from taskdesk.gateway.middleware.logging_mw import request_trigger


class TestHealth:
    async def test_liveness(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    async def test_readiness(self, client: AsyncClient):
        resp = await client.get("/ready")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ready"
        assert data["checks"]["sqlite"] == "ok"
        assert data["checks"]["wal_mode"] == "ok"
        assert data["checks"]["disk_space_mb"] > 0


class TestRequestLogging:
    async def test_request_id_echoed(self, client: AsyncClient):
        resp = await client.get("/health", headers={"X-Request-ID": "req-123"})
        assert resp.headers["X-Request-ID"] == "req-123"

    async def test_request_id_generated(self, client: AsyncClient):
        first = await client.get("/health")
        second = await client.get("/health")

        assert len(first.headers["X-Request-ID"]) == 26
        assert first.headers["X-Request-ID"] != second.headers["X-Request-ID"]

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("/health", "probe"),
            ("/ready", "probe"),
            ("/api/cron/risk-engine", "cron"),
            ("/api/cron/reminders", "cron"),
            ("/api/tasks/t1/status", "api"),
            ("/api/dashboard/risk", "api"),
        ],
    )
    def test_request_trigger(self, path, expected):
        assert request_trigger(path) == expected
