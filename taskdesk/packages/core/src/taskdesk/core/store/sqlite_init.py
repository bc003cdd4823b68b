"""SQLite 数据库初始化

PRAGMA 配置 + 表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

_ORGANIZATIONS_DDL = """
CREATE TABLE IF NOT EXISTS organizations (
    org_id      TEXT PRIMARY KEY,
    name        TEXT NOT NULL DEFAULT '',
    created_at  TEXT NOT NULL
);
"""

_MEMBERS_DDL = """
CREATE TABLE IF NOT EXISTS members (
    user_id  TEXT PRIMARY KEY,
    org_id   TEXT NOT NULL,
    name     TEXT NOT NULL DEFAULT '',
    role     TEXT NOT NULL DEFAULT 'member',

    FOREIGN KEY (org_id) REFERENCES organizations(org_id)
);
"""

_CAMPAIGNS_DDL = """
CREATE TABLE IF NOT EXISTS campaigns (
    campaign_id  TEXT PRIMARY KEY,
    org_id       TEXT NOT NULL,
    name         TEXT NOT NULL DEFAULT '',
    launch_date  TEXT NOT NULL,
    risk_status  TEXT NOT NULL DEFAULT 'normal',
    created_at   TEXT NOT NULL,
    updated_at   TEXT NOT NULL,

    FOREIGN KEY (org_id) REFERENCES organizations(org_id)
);
"""

_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    task_id        TEXT PRIMARY KEY,
    org_id         TEXT NOT NULL,
    campaign_id    TEXT NOT NULL,
    title          TEXT NOT NULL DEFAULT '',
    owner_id       TEXT NOT NULL,
    dependency_id  TEXT,
    status         TEXT NOT NULL DEFAULT 'not_started',
    risk_flag      TEXT NOT NULL DEFAULT 'none',
    due_date       TEXT,
    assigned_at    TEXT,
    created_at     TEXT NOT NULL,
    updated_at     TEXT NOT NULL,

    FOREIGN KEY (campaign_id) REFERENCES campaigns(campaign_id)
);
"""

# task_events 表 DDL（append-only）
_TASK_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS task_events (
    event_id    TEXT PRIMARY KEY,
    task_id     TEXT NOT NULL,
    org_id      TEXT NOT NULL,
    actor_id    TEXT NOT NULL,
    event_type  TEXT NOT NULL,
    old_value   TEXT,
    new_value   TEXT,
    payload     TEXT NOT NULL DEFAULT '{}',
    ts          TEXT NOT NULL,

    FOREIGN KEY (task_id) REFERENCES tasks(task_id)
);
"""

_NOTIFICATIONS_DDL = """
CREATE TABLE IF NOT EXISTS notifications (
    notification_id  TEXT PRIMARY KEY,
    org_id           TEXT NOT NULL,
    user_id          TEXT NOT NULL,
    task_id          TEXT,
    campaign_id      TEXT,
    type             TEXT NOT NULL,
    message          TEXT NOT NULL,
    read             INTEGER NOT NULL DEFAULT 0,
    created_at       TEXT NOT NULL
);
"""

# 每个命名锁一行，释放即删除
_WORKER_LOCKS_DDL = """
CREATE TABLE IF NOT EXISTS worker_locks (
    name        TEXT PRIMARY KEY,
    holder      TEXT NOT NULL,
    expires_at  TEXT NOT NULL
);
"""

# 游标与锁分表存放，锁释放不影响游标
_WORKER_CURSORS_DDL = """
CREATE TABLE IF NOT EXISTS worker_cursors (
    name                   TEXT PRIMARY KEY,
    last_processed_org_id  TEXT,
    page_size              INTEGER NOT NULL DEFAULT 10
);
"""

_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_members_org_role ON members(org_id, role);",
    "CREATE INDEX IF NOT EXISTS idx_campaigns_org ON campaigns(org_id);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_org_status ON tasks(org_id, status);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_campaign ON tasks(campaign_id);",
    # "某任务最近一次 X 类型事件" 查询索引
    (
        "CREATE INDEX IF NOT EXISTS idx_task_events_task_type_ts "
        "ON task_events(task_id, event_type, ts DESC);"
    ),
    (
        "CREATE INDEX IF NOT EXISTS idx_task_events_org_type_ts "
        "ON task_events(org_id, event_type, ts DESC);"
    ),
    (
        "CREATE INDEX IF NOT EXISTS idx_notifications_user "
        "ON notifications(org_id, user_id, created_at DESC);"
    ),
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表（按外键依赖顺序）
    for ddl in (
        _ORGANIZATIONS_DDL,
        _MEMBERS_DDL,
        _CAMPAIGNS_DDL,
        _TASKS_DDL,
        _TASK_EVENTS_DDL,
        _NOTIFICATIONS_DDL,
        _WORKER_LOCKS_DDL,
        _WORKER_CURSORS_DDL,
    ):
        await conn.execute(ddl)

    for idx_sql in _INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
