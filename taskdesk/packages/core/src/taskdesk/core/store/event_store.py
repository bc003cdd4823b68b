"""EventStore SQLite 实现

task_events 表 append-only：只允许插入，不允许更新或删除。
"上次何时发生"查询依赖 (task_id, event_type, ts) 索引。
"""

import json
from collections.abc import Iterable

import aiosqlite

from ..models.enums import TaskEventType
from ..models.event import TaskEvent
from .timefmt import from_db_ts, to_db_ts

_COLUMNS = "event_id, task_id, org_id, actor_id, event_type, old_value, new_value, payload, ts"

# SQLite 单条语句绑定参数上限（旧版本为 999）
_IN_CHUNK_SIZE = 500


class SqliteEventStore:
    """EventStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def append_event(self, event: TaskEvent) -> None:
        """追加事件（append-only）

        注意：此方法不自动提交事务，需由调用方管理事务。
        """
        await self._conn.execute(
            f"INSERT INTO task_events ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                event.event_id,
                event.task_id,
                event.org_id,
                event.actor_id,
                event.event_type.value,
                event.old_value,
                event.new_value,
                json.dumps(event.payload, ensure_ascii=False),
                to_db_ts(event.ts),
            ),
        )

    async def get_events_for_task(self, task_id: str) -> list[TaskEvent]:
        """查询指定任务的所有事件，按 ts 正序"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM task_events WHERE task_id = ? ORDER BY ts, event_id",
            (task_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def get_events_for_tasks(
        self,
        task_ids: Iterable[str],
        event_types: Iterable[TaskEventType] | None = None,
    ) -> list[TaskEvent]:
        """批量查询一组任务的事件，可按事件类型过滤"""
        ids = list(dict.fromkeys(task_ids))
        types = [t.value for t in event_types] if event_types is not None else None
        if not ids or types == []:
            return []

        events: list[TaskEvent] = []
        for start in range(0, len(ids), _IN_CHUNK_SIZE):
            chunk = ids[start : start + _IN_CHUNK_SIZE]
            sql = (
                f"SELECT {_COLUMNS} FROM task_events "
                f"WHERE task_id IN ({', '.join('?' * len(chunk))})"
            )
            params: list[str] = list(chunk)
            if types is not None:
                sql += f" AND event_type IN ({', '.join('?' * len(types))})"
                params.extend(types)
            sql += " ORDER BY ts, event_id"
            cursor = await self._conn.execute(sql, params)
            rows = await cursor.fetchall()
            events.extend(self._row_to_event(row) for row in rows)
        return events

    async def latest_event(
        self,
        task_id: str,
        event_type: TaskEventType,
        new_value: str | None = None,
    ) -> TaskEvent | None:
        """某任务最近一次匹配的事件"""
        if new_value is None:
            cursor = await self._conn.execute(
                f"""
                SELECT {_COLUMNS} FROM task_events
                WHERE task_id = ? AND event_type = ?
                ORDER BY ts DESC, event_id DESC LIMIT 1
                """,
                (task_id, event_type.value),
            )
        else:
            cursor = await self._conn.execute(
                f"""
                SELECT {_COLUMNS} FROM task_events
                WHERE task_id = ? AND event_type = ? AND new_value = ?
                ORDER BY ts DESC, event_id DESC LIMIT 1
                """,
                (task_id, event_type.value, new_value),
            )
        row = await cursor.fetchone()
        return self._row_to_event(row) if row else None

    async def list_org_events(
        self,
        org_id: str,
        event_types: Iterable[TaskEventType],
        limit: int = 50,
    ) -> list[TaskEvent]:
        """租户内指定类型的最近事件，按 ts 倒序"""
        types = [t.value for t in event_types]
        if not types:
            return []
        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM task_events
            WHERE org_id = ? AND event_type IN ({', '.join('?' * len(types))})
            ORDER BY ts DESC, event_id DESC LIMIT ?
            """,
            (org_id, *types, limit),
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    @staticmethod
    def _row_to_event(row: aiosqlite.Row) -> TaskEvent:
        """将数据库行转换为 TaskEvent 模型"""
        payload = json.loads(row[7]) if row[7] else {}
        return TaskEvent(
            event_id=row[0],
            task_id=row[1],
            org_id=row[2],
            actor_id=row[3],
            event_type=TaskEventType(row[4]),
            old_value=row[5],
            new_value=row[6],
            payload=payload,
            ts=from_db_ts(row[8]),
        )
