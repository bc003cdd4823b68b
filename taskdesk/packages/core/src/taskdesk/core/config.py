"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、系统 actor、仪表盘缓存 TTL 等可配置常量。
"""

import os
from pathlib import Path


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("TASKDESK_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "TASKDESK_DB_PATH",
        str(_get_base_dir() / "sqlite" / "taskdesk.db"),
    )


# 后台引擎写入 task_events 时使用的系统 actor（区别于真实成员操作）
SYSTEM_ACTOR_ID: str = "00000000-0000-0000-0000-000000000001"

# 仪表盘聚合缓存 TTL（秒），风险变化时按租户主动失效
DASHBOARD_CACHE_TTL_S: int = int(
    os.environ.get("TASKDESK_DASHBOARD_CACHE_TTL_S", "300")
)

# 仪表盘缓存最多保留的租户条目数
DASHBOARD_CACHE_MAX_ENTRIES: int = int(
    os.environ.get("TASKDESK_DASHBOARD_CACHE_MAX_ENTRIES", "1000")
)

# 事件 new_value 最大长度（与外部 CRUD 层列宽一致）
EVENT_VALUE_MAX_LENGTH: int = 255
