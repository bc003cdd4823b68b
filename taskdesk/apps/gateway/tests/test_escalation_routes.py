"""升级中心端点测试"""

from datetime import timedelta

from httpx import AsyncClient
from taskdesk.core.models import RiskFlag, TaskEventType


class TestListEscalations:
    async def test_invalid_stage(self, client: AsyncClient):
        for stage in ["4", "0", "abc"]:
            resp = await client.get("/api/escalations", params={"org_id": "org-1", "stage": stage})
            assert resp.status_code == 400
            assert resp.json()["error"]["code"] == "INVALID_STAGE"

    async def test_org_id_required(self, client: AsyncClient):
        resp = await client.get("/api/escalations")
        assert resp.status_code == 422

    async def test_list_and_filter(self, client, seed, make_campaign, make_task, make_event, base_time):
        await seed(
            campaigns=[make_campaign()],
            tasks=[make_task("t1", title="Landing page", risk_flag=RiskFlag.HARD)],
            events=[
                make_event(
                    "t1", TaskEventType.ESCALATION_STAGE_1, base_time - timedelta(hours=30), "s1"
                ),
                make_event(
                    "t1", TaskEventType.ESCALATION_STAGE_2, base_time - timedelta(hours=5), "s2"
                ),
            ],
        )

        all_resp = await client.get("/api/escalations", params={"org_id": "org-1"})
        stage1_resp = await client.get(
            "/api/escalations", params={"org_id": "org-1", "stage": "1"}
        )
        other_resp = await client.get("/api/escalations", params={"org_id": "org-2"})

        data = all_resp.json()
        assert all_resp.status_code == 200
        assert data["stage"] is None
        assert [e["stage"] for e in data["escalations"]] == [2, 1]
        first = data["escalations"][0]
        assert first["task"]["title"] == "Landing page"
        assert first["task"]["risk_flag"] == "hard"
        assert first["campaign"]["campaign_id"] == "camp-1"

        assert stage1_resp.json()["stage"] == 1
        assert [e["message"] for e in stage1_resp.json()["escalations"]] == ["s1"]
        assert other_resp.json()["escalations"] == []
