"""协调状态模型 -- 分布式锁与分页游标"""

from datetime import datetime

from pydantic import BaseModel, Field

DEFAULT_PAGE_SIZE = 10


class LockRecord(BaseModel):
    """命名锁记录，每个逻辑引擎一行"""

    name: str = Field(description="锁名，如 risk_engine / reminders")
    holder: str = Field(description="持有者令牌")
    expires_at: datetime = Field(description="过期时间")


class CursorRecord(BaseModel):
    """游标记录 -- 仅 cron 全量扫描模式使用"""

    name: str = Field(description="锁名")
    last_processed_org_id: str | None = Field(
        default=None,
        description="上一页最后处理的租户 ID，None 表示从头开始",
    )
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, description="每页租户数")
