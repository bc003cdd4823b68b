"""TaskStore SQLite 实现

tasks 行由外部 CRUD 层维护，引擎只通过 compare-and-set 修改
risk_flag；状态变更走 TaskService，并在同一事务内写 status_changed 事件。
"""

from datetime import datetime

import aiosqlite

from ..models.enums import RiskFlag, TaskStatus
from ..models.task import Task
from .timefmt import from_db_ts, to_db_ts

_COLUMNS = (
    "task_id, org_id, campaign_id, title, owner_id, dependency_id, status, "
    "risk_flag, due_date, assigned_at, created_at, updated_at"
)


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_task(self, task: Task) -> None:
        """创建任务记录"""
        await self._conn.execute(
            f"INSERT INTO tasks ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                task.task_id,
                task.org_id,
                task.campaign_id,
                task.title,
                task.owner_id,
                task.dependency_id,
                task.status.value,
                task.risk_flag.value,
                to_db_ts(task.due_date),
                to_db_ts(task.assigned_at),
                to_db_ts(task.created_at),
                to_db_ts(task.updated_at),
            ),
        )

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM tasks WHERE task_id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def list_tasks(self, org_id: str, status: TaskStatus | None = None) -> list[Task]:
        """查询租户的任务列表，按 created_at 正序"""
        if status:
            cursor = await self._conn.execute(
                f"SELECT {_COLUMNS} FROM tasks WHERE org_id = ? AND status = ? "
                "ORDER BY created_at, task_id",
                (org_id, status.value),
            )
        else:
            cursor = await self._conn.execute(
                f"SELECT {_COLUMNS} FROM tasks WHERE org_id = ? ORDER BY created_at, task_id",
                (org_id,),
            )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def update_risk_flag(
        self,
        task_id: str,
        risk_flag: RiskFlag,
        updated_at: datetime,
        expected: RiskFlag,
    ) -> bool:
        """compare-and-set：仅当当前值等于 expected 时写入"""
        cursor = await self._conn.execute(
            """
            UPDATE tasks
            SET risk_flag = ?, updated_at = ?
            WHERE task_id = ? AND risk_flag = ?
            """,
            (risk_flag.value, to_db_ts(updated_at), task_id, expected.value),
        )
        return cursor.rowcount == 1

    async def update_task_status(
        self,
        task_id: str,
        status: TaskStatus,
        updated_at: datetime,
        expected_status: TaskStatus,
    ) -> bool:
        """compare-and-set：防止并发状态变更互相覆盖"""
        cursor = await self._conn.execute(
            """
            UPDATE tasks
            SET status = ?, updated_at = ?
            WHERE task_id = ? AND status = ?
            """,
            (status.value, to_db_ts(updated_at), task_id, expected_status.value),
        )
        return cursor.rowcount == 1

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> Task:
        """将数据库行转换为 Task 模型"""
        return Task(
            task_id=row[0],
            org_id=row[1],
            campaign_id=row[2],
            title=row[3],
            owner_id=row[4],
            dependency_id=row[5],
            status=TaskStatus(row[6]),
            risk_flag=RiskFlag(row[7]),
            due_date=from_db_ts(row[8]),
            assigned_at=from_db_ts(row[9]),
            created_at=from_db_ts(row[10]),
            updated_at=from_db_ts(row[11]),
        )
