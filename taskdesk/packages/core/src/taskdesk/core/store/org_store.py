"""OrgStore SQLite 实现 -- 租户列表 + 成员角色"""

import aiosqlite

from ..models.enums import MemberRole
from ..models.organization import Member, Organization
from .timefmt import from_db_ts, to_db_ts


class SqliteOrgStore:
    """OrgStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_organization(self, org: Organization) -> None:
        await self._conn.execute(
            "INSERT INTO organizations (org_id, name, created_at) VALUES (?, ?, ?)",
            (org.org_id, org.name, to_db_ts(org.created_at)),
        )

    async def get_organization(self, org_id: str) -> Organization | None:
        cursor = await self._conn.execute(
            "SELECT org_id, name, created_at FROM organizations WHERE org_id = ?",
            (org_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return Organization(org_id=row[0], name=row[1], created_at=from_db_ts(row[2]))

    async def list_org_ids_after(self, after_org_id: str | None, limit: int) -> list[str]:
        """按 org_id 升序分页，after_org_id 为 None 时从头开始"""
        if after_org_id is None:
            cursor = await self._conn.execute(
                "SELECT org_id FROM organizations ORDER BY org_id LIMIT ?",
                (limit,),
            )
        else:
            cursor = await self._conn.execute(
                "SELECT org_id FROM organizations WHERE org_id > ? ORDER BY org_id LIMIT ?",
                (after_org_id, limit),
            )
        rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def add_member(self, member: Member) -> None:
        await self._conn.execute(
            "INSERT INTO members (user_id, org_id, name, role) VALUES (?, ?, ?, ?)",
            (member.user_id, member.org_id, member.name, member.role.value),
        )

    async def get_member(self, user_id: str) -> Member | None:
        cursor = await self._conn.execute(
            "SELECT user_id, org_id, name, role FROM members WHERE user_id = ?",
            (user_id,),
        )
        row = await cursor.fetchone()
        return self._row_to_member(row) if row else None

    async def list_members(self, org_id: str, role: MemberRole | None = None) -> list[Member]:
        """查询租户成员，可按角色筛选（升级通知受众解析）"""
        if role is None:
            cursor = await self._conn.execute(
                "SELECT user_id, org_id, name, role FROM members WHERE org_id = ? ORDER BY user_id",
                (org_id,),
            )
        else:
            cursor = await self._conn.execute(
                "SELECT user_id, org_id, name, role FROM members "
                "WHERE org_id = ? AND role = ? ORDER BY user_id",
                (org_id, role.value),
            )
        rows = await cursor.fetchall()
        return [self._row_to_member(row) for row in rows]

    @staticmethod
    def _row_to_member(row: aiosqlite.Row) -> Member:
        return Member(user_id=row[0], org_id=row[1], name=row[2], role=MemberRole(row[3]))
