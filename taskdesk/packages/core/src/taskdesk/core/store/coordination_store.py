"""CoordinationStore SQLite 实现 -- 命名锁 + 分页游标

锁获取 = 先清理已过期的行，再条件插入；插入未生效即视为锁被占用。
每个操作自成一个事务，在 write_lock 内提交，不与业务事务交错。
"""

import asyncio
from datetime import datetime

import aiosqlite

from ..models.coordination import DEFAULT_PAGE_SIZE, CursorRecord, LockRecord
from .timefmt import from_db_ts, to_db_ts


class SqliteCoordinationStore:
    """CoordinationStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection, write_lock: asyncio.Lock) -> None:
        self._conn = conn
        self._write_lock = write_lock

    async def try_insert_lock(self, lock: LockRecord, now: datetime) -> bool:
        """清理过期锁后条件插入，返回是否获得锁"""
        async with self._write_lock:
            try:
                await self._conn.execute(
                    "DELETE FROM worker_locks WHERE name = ? AND expires_at <= ?",
                    (lock.name, to_db_ts(now)),
                )
                cursor = await self._conn.execute(
                    """
                    INSERT OR IGNORE INTO worker_locks (name, holder, expires_at)
                    VALUES (?, ?, ?)
                    """,
                    (lock.name, lock.holder, to_db_ts(lock.expires_at)),
                )
                acquired = cursor.rowcount == 1
                await self._conn.commit()
            except Exception:
                await self._conn.rollback()
                raise
        return acquired

    async def delete_lock(self, name: str, holder: str) -> bool:
        """仅删除 holder 匹配的锁（过期后被他人接管的锁不受影响）"""
        async with self._write_lock:
            try:
                cursor = await self._conn.execute(
                    "DELETE FROM worker_locks WHERE name = ? AND holder = ?",
                    (name, holder),
                )
                deleted = cursor.rowcount == 1
                await self._conn.commit()
            except Exception:
                await self._conn.rollback()
                raise
        return deleted

    async def get_lock(self, name: str) -> LockRecord | None:
        cursor = await self._conn.execute(
            "SELECT name, holder, expires_at FROM worker_locks WHERE name = ?",
            (name,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return LockRecord(name=row[0], holder=row[1], expires_at=from_db_ts(row[2]))

    async def get_cursor(self, name: str) -> CursorRecord | None:
        cursor = await self._conn.execute(
            "SELECT name, last_processed_org_id, page_size FROM worker_cursors WHERE name = ?",
            (name,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return CursorRecord(
            name=row[0],
            last_processed_org_id=row[1],
            page_size=row[2] or DEFAULT_PAGE_SIZE,
        )

    async def upsert_cursor(self, cursor: CursorRecord) -> None:
        """写入游标，page_size 保留已有值"""
        async with self._write_lock:
            try:
                await self._conn.execute(
                    """
                    INSERT INTO worker_cursors (name, last_processed_org_id, page_size)
                    VALUES (?, ?, ?)
                    ON CONFLICT(name) DO UPDATE
                    SET last_processed_org_id = excluded.last_processed_org_id
                    """,
                    (cursor.name, cursor.last_processed_org_id, cursor.page_size),
                )
                await self._conn.commit()
            except Exception:
                await self._conn.rollback()
                raise
