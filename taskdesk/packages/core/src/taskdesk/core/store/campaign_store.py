"""CampaignStore SQLite 实现"""

from datetime import datetime

import aiosqlite

from ..models.campaign import Campaign
from ..models.enums import CampaignRisk
from .timefmt import from_db_ts, to_db_ts

_COLUMNS = "campaign_id, org_id, name, launch_date, risk_status, created_at, updated_at"


class SqliteCampaignStore:
    """CampaignStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_campaign(self, campaign: Campaign) -> None:
        await self._conn.execute(
            f"INSERT INTO campaigns ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                campaign.campaign_id,
                campaign.org_id,
                campaign.name,
                to_db_ts(campaign.launch_date),
                campaign.risk_status.value,
                to_db_ts(campaign.created_at),
                to_db_ts(campaign.updated_at),
            ),
        )

    async def get_campaign(self, campaign_id: str) -> Campaign | None:
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM campaigns WHERE campaign_id = ?",
            (campaign_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_campaign(row)

    async def list_campaigns(self, org_id: str) -> list[Campaign]:
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM campaigns WHERE org_id = ? ORDER BY launch_date, campaign_id",
            (org_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_campaign(row) for row in rows]

    async def update_risk_status(
        self,
        campaign_id: str,
        risk_status: CampaignRisk,
        updated_at: datetime,
    ) -> bool:
        """更新风险状态；返回 False 表示行已不存在"""
        cursor = await self._conn.execute(
            "UPDATE campaigns SET risk_status = ?, updated_at = ? WHERE campaign_id = ?",
            (risk_status.value, to_db_ts(updated_at), campaign_id),
        )
        return cursor.rowcount == 1

    @staticmethod
    def _row_to_campaign(row: aiosqlite.Row) -> Campaign:
        return Campaign(
            campaign_id=row[0],
            org_id=row[1],
            name=row[2],
            launch_date=from_db_ts(row[3]),
            risk_status=CampaignRisk(row[4]),
            created_at=from_db_ts(row[5]),
            updated_at=from_db_ts(row[6]),
        )
