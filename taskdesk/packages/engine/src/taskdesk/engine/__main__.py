"""CLI 入口模块 -- python -m taskdesk.engine <command>

支持的命令：
  run-risk-engine [org_id]  运行风险引擎（指定 org_id 时为单租户事件模式）
  run-reminders [org_id]    运行提醒引擎
  init-db                   初始化数据库表结构
"""

import asyncio
import sys

from taskdesk.core.config import get_db_path
from taskdesk.core.logging_config import setup_logging

_USAGE = """用法: python -m taskdesk.engine <command> [org_id]
命令:
  run-risk-engine [org_id]  运行风险引擎
  run-reminders [org_id]    运行提醒引擎
  init-db                   初始化数据库表结构"""


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print(_USAGE)
        sys.exit(1)

    command = sys.argv[1]
    org_id = sys.argv[2] if len(sys.argv) > 2 else None

    setup_logging()

    if command == "run-risk-engine":
        asyncio.run(run_engine("risk", org_id))
    elif command == "run-reminders":
        asyncio.run(run_engine("reminders", org_id))
    elif command == "init-db":
        asyncio.run(init_database())
    else:
        print(f"未知命令: {command}")
        print("可用命令: run-risk-engine, run-reminders, init-db")
        sys.exit(1)


async def init_database() -> None:
    """创建数据库文件与表结构"""
    from taskdesk.core.store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")
    store_group = await create_store_group(db_path)
    await store_group.close()
    print("初始化完成")


async def run_engine(kind: str, org_id: str | None) -> None:
    """执行一次引擎运行并打印结果"""
    from taskdesk.core.store import create_store_group

    from .config import load_engine_config
    from .coordinator import StoreCoordinator
    from .notifier import StoreNotificationSink
    from .orchestrator import ReminderEngine, RiskEngine

    config = load_engine_config()
    store_group = await create_store_group(get_db_path())

    try:
        coordinator = StoreCoordinator(
            store_group.coordination_store,
            default_page_size=config.page_size,
        )
        sink = StoreNotificationSink(store_group)
        engine_cls = RiskEngine if kind == "risk" else ReminderEngine
        engine = engine_cls(store_group, coordinator, sink, config=config)
        result = await engine.run(org_id)
        print(result.model_dump_json(indent=2))
        if result.error is not None:
            sys.exit(1)
    finally:
        await store_group.close()


if __name__ == "__main__":
    main()
