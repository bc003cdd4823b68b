"""SQLite Store 单元测试

测试内容：
1. Task / Campaign / Organization / Member 读写
2. 事件批量查询与排序
3. compare-and-set 风险标记
4. 通知写入
"""

from datetime import timedelta

from taskdesk.core.models import (
    CampaignRisk,
    Member,
    MemberRole,
    Notification,
    NotificationType,
    Organization,
    RiskFlag,
    TaskEventType,
    TaskStatus,
)


class TestTaskStore:
    async def test_create_and_get_roundtrip(self, seeded, make_task, base_time):
        task = make_task(
            "t1",
            due_date=base_time + timedelta(days=1),
            assigned_at=base_time - timedelta(hours=2),
            dependency_id=None,
        )
        await seeded.task_store.create_task(task)
        await seeded.commit()

        loaded = await seeded.task_store.get_task("t1")
        assert loaded == task

    async def test_get_missing(self, seeded):
        assert await seeded.task_store.get_task("nope") is None

    async def test_list_by_status(self, seeded, make_task):
        await seeded.task_store.create_task(make_task("t1"))
        await seeded.task_store.create_task(make_task("t2", status=TaskStatus.BLOCKED))
        await seeded.commit()

        assert {t.task_id for t in await seeded.task_store.list_tasks("org-1")} == {"t1", "t2"}
        blocked = await seeded.task_store.list_tasks("org-1", TaskStatus.BLOCKED)
        assert [t.task_id for t in blocked] == ["t2"]
        assert await seeded.task_store.list_tasks("org-2") == []

    async def test_update_risk_flag_compare_and_set(self, seeded, make_task, base_time):
        await seeded.task_store.create_task(make_task("t1"))
        await seeded.commit()

        later = base_time + timedelta(hours=1)
        assert await seeded.task_store.update_risk_flag("t1", RiskFlag.SOFT, later, RiskFlag.NONE)
        # 旧值已变化，CAS 未命中
        assert not await seeded.task_store.update_risk_flag(
            "t1", RiskFlag.HARD, later, RiskFlag.NONE
        )
        await seeded.commit()

        loaded = await seeded.task_store.get_task("t1")
        assert loaded.risk_flag == RiskFlag.SOFT
        assert loaded.updated_at == later

    async def test_update_status_compare_and_set(self, seeded, make_task, base_time):
        await seeded.task_store.create_task(make_task("t1"))
        await seeded.commit()

        assert await seeded.task_store.update_task_status(
            "t1", TaskStatus.IN_PROGRESS, base_time, TaskStatus.NOT_STARTED
        )
        assert not await seeded.task_store.update_task_status(
            "t1", TaskStatus.COMPLETED, base_time, TaskStatus.NOT_STARTED
        )


class TestCampaignStore:
    async def test_update_risk_status(self, seeded, base_time):
        assert await seeded.campaign_store.update_risk_status(
            "camp-1", CampaignRisk.AT_RISK, base_time
        )
        await seeded.commit()
        campaign = await seeded.campaign_store.get_campaign("camp-1")
        assert campaign.risk_status == CampaignRisk.AT_RISK

    async def test_update_missing_campaign(self, seeded, base_time):
        assert not await seeded.campaign_store.update_risk_status(
            "gone", CampaignRisk.HIGH_RISK, base_time
        )

    async def test_list_campaigns_scoped_to_org(self, seeded):
        campaigns = await seeded.campaign_store.list_campaigns("org-1")
        assert [c.campaign_id for c in campaigns] == ["camp-1"]
        assert await seeded.campaign_store.list_campaigns("org-2") == []


class TestEventStore:
    async def test_batch_query_filters_and_orders(
        self, seeded, make_task, make_event, base_time
    ):
        await seeded.task_store.create_task(make_task("t1"))
        await seeded.task_store.create_task(make_task("t2"))
        await seeded.event_store.append_event(
            make_event("t2", TaskEventType.STATUS_CHANGED, base_time + timedelta(hours=2))
        )
        await seeded.event_store.append_event(
            make_event("t1", TaskEventType.STATUS_CHANGED, base_time)
        )
        await seeded.event_store.append_event(
            make_event("t1", TaskEventType.REMINDER_SENT, base_time, "24h")
        )
        await seeded.commit()

        events = await seeded.event_store.get_events_for_tasks(
            ["t1", "t2"], [TaskEventType.STATUS_CHANGED]
        )
        assert [e.task_id for e in events] == ["t1", "t2"]
        assert await seeded.event_store.get_events_for_tasks([]) == []
        assert await seeded.event_store.get_events_for_tasks(["t1"], []) == []
        assert len(await seeded.event_store.get_events_for_tasks(["t1"])) == 2

    async def test_latest_event_and_payload(self, seeded, make_task, make_event, base_time):
        await seeded.task_store.create_task(make_task("t1"))
        await seeded.event_store.append_event(
            make_event(
                "t1",
                TaskEventType.REMINDER_SENT,
                base_time,
                "24h",
                payload={"kind": "24h", "message": "Due tomorrow"},
            )
        )
        await seeded.event_store.append_event(
            make_event("t1", TaskEventType.REMINDER_SENT, base_time + timedelta(hours=1), "overdue")
        )
        await seeded.commit()

        latest = await seeded.event_store.latest_event("t1", TaskEventType.REMINDER_SENT)
        assert latest.new_value == "overdue"
        first = await seeded.event_store.latest_event("t1", TaskEventType.REMINDER_SENT, "24h")
        assert first.payload == {"kind": "24h", "message": "Due tomorrow"}
        assert first.ts == base_time

    async def test_list_org_events_newest_first(self, seeded, make_task, make_event, base_time):
        await seeded.task_store.create_task(make_task("t1"))
        for hours in range(3):
            await seeded.event_store.append_event(
                make_event(
                    "t1", TaskEventType.ESCALATION_STAGE_1, base_time + timedelta(hours=hours)
                )
            )
        await seeded.commit()

        events = await seeded.event_store.list_org_events(
            "org-1", [TaskEventType.ESCALATION_STAGE_1], limit=2
        )
        assert [e.ts for e in events] == [
            base_time + timedelta(hours=2),
            base_time + timedelta(hours=1),
        ]


class TestOrgStore:
    async def test_paging_is_ordered(self, store_group, base_time):
        for org_id in ["org-c", "org-a", "org-b"]:
            await store_group.org_store.create_organization(
                Organization(org_id=org_id, created_at=base_time)
            )
        await store_group.commit()

        assert await store_group.org_store.list_org_ids_after(None, 2) == ["org-a", "org-b"]
        assert await store_group.org_store.list_org_ids_after("org-b", 2) == ["org-c"]
        assert await store_group.org_store.list_org_ids_after("org-c", 2) == []

    async def test_members_by_role(self, seeded):
        await seeded.org_store.add_member(
            Member(user_id="u1", org_id="org-1", name="Ann", role=MemberRole.MANAGER)
        )
        await seeded.org_store.add_member(
            Member(user_id="u2", org_id="org-1", name="Bo", role=MemberRole.FOUNDER)
        )
        await seeded.commit()

        managers = await seeded.org_store.list_members("org-1", MemberRole.MANAGER)
        assert [m.user_id for m in managers] == ["u1"]
        assert len(await seeded.org_store.list_members("org-1")) == 2
        assert (await seeded.org_store.get_member("u2")).name == "Bo"


class TestNotificationStore:
    async def test_list_for_user_newest_first(self, seeded, base_time):
        for i in range(2):
            await seeded.notification_store.create_notification(
                Notification(
                    notification_id=f"n{i}",
                    org_id="org-1",
                    user_id="u1",
                    type=NotificationType.REMINDER,
                    message=f"m{i}",
                    created_at=base_time + timedelta(minutes=i),
                )
            )
        await seeded.commit()

        notifications = await seeded.notification_store.list_for_user("org-1", "u1")
        assert [n.notification_id for n in notifications] == ["n1", "n0"]
        assert notifications[0].read is False
        assert await seeded.notification_store.list_for_user("org-1", "u2") == []
