"""引擎配置

规则阈值以模块常量给出（各评估函数共用）；运行参数由 EngineConfig
从环境变量加载，非法整数记录 warning 并回退默认值，不阻塞启动。
"""

import os

import structlog
from pydantic import BaseModel, Field, SecretStr

from taskdesk.core.models.coordination import DEFAULT_PAGE_SIZE

log = structlog.get_logger()

# ---- 任务风险规则 ----
STALE_ASSIGNMENT_HOURS = 24
DEPENDENCY_GAP_HOURS = 12
BLOCKED_HARD_HOURS = 24

# ---- Campaign 聚合规则 ----
CAMPAIGN_HARD_HIGH_RISK_COUNT = 3
CAMPAIGN_FLAGGED_AT_RISK_COUNT = 2
CAMPAIGN_LAUNCH_WINDOW_HOURS = 48

# ---- 升级规则 ----
# STAGE2/STAGE3 阈值同时约束"距上次 Stage 1"与"距同阶段上次触发"
STAGE1_COOLDOWN_HOURS = 12
STAGE2_THRESHOLD_HOURS = 24
STAGE3_THRESHOLD_HOURS = 48

# ---- 提醒规则 ----
REMINDER_WINDOW_LOWER_HOURS = 23.0
REMINDER_WINDOW_UPPER_HOURS = 25.0
REMINDER_24H_COOLDOWN_HOURS = 22
REMINDER_DUE_TODAY_COOLDOWN_HOURS = 12
# 当日提醒的 UTC 早间窗口（含两端整点小时）
MORNING_WINDOW_START_HOUR = 7
MORNING_WINDOW_END_HOUR = 9

# ---- 锁 ----
RISK_ENGINE_LOCK = "risk_engine"
REMINDERS_LOCK = "reminders"


class EngineConfig(BaseModel):
    """引擎运行配置 -- 从环境变量加载

    环境变量:
        TASKDESK_RISK_LOCK_TTL_MIN: 风险引擎锁 TTL（分钟，默认 55）
        TASKDESK_REMINDER_LOCK_TTL_MIN: 提醒引擎锁 TTL（分钟，默认 25）
        TASKDESK_PAGE_SIZE: 每次运行处理的租户数（默认 10）
        TASKDESK_MAX_CONCURRENCY: 租户级并发上限（默认 8）
        TASKDESK_REMINDER_WINDOW_LOWER_H / _UPPER_H: 24h 提醒窗口（默认 23 / 25）
        TASKDESK_RISK_CRON / TASKDESK_REMINDER_CRON: 进程内调度表达式
        TASKDESK_SCHEDULER_ENABLED: 是否启动进程内调度器
        TASKDESK_CRON_SECRET: cron 触发端点的 Bearer 密钥
    """

    risk_lock_ttl_min: int = Field(default=55, ge=1, description="风险引擎锁 TTL（分钟）")
    reminder_lock_ttl_min: int = Field(default=25, ge=1, description="提醒引擎锁 TTL（分钟）")
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, description="每页租户数")
    max_concurrency: int = Field(default=8, ge=1, description="租户级并发上限")
    reminder_window_lower_h: float = Field(
        default=REMINDER_WINDOW_LOWER_HOURS,
        ge=0,
        description="24h 提醒窗口下界（小时）",
    )
    reminder_window_upper_h: float = Field(
        default=REMINDER_WINDOW_UPPER_HOURS,
        ge=0,
        description="24h 提醒窗口上界（小时）",
    )
    risk_cron: str = Field(default="0 * * * *", description="风险引擎调度表达式")
    reminder_cron: str = Field(default="*/30 * * * *", description="提醒引擎调度表达式")
    scheduler_enabled: bool = Field(default=False, description="是否启动进程内调度器")
    cron_secret: SecretStr = Field(
        default=SecretStr(""),
        description="cron 端点 Bearer 密钥，为空时拒绝所有请求",
    )


_INT_ENV_VARS: dict[str, tuple[str, int]] = {
    "TASKDESK_RISK_LOCK_TTL_MIN": ("risk_lock_ttl_min", 55),
    "TASKDESK_REMINDER_LOCK_TTL_MIN": ("reminder_lock_ttl_min", 25),
    "TASKDESK_PAGE_SIZE": ("page_size", DEFAULT_PAGE_SIZE),
    "TASKDESK_MAX_CONCURRENCY": ("max_concurrency", 8),
}


def load_engine_config() -> EngineConfig:
    """从环境变量加载引擎配置

    Returns:
        EngineConfig 实例
    """
    kwargs: dict = {}

    for env_var, (field_name, fallback) in _INT_ENV_VARS.items():
        val = os.environ.get(env_var)
        if not val:
            continue
        try:
            kwargs[field_name] = int(val)
        except ValueError:
            log.warning(
                "invalid_engine_config",
                env_var=env_var,
                value=val,
                fallback=fallback,
            )
            # 使用默认值，不阻塞启动

    for env_var, field_name, fallback in (
        (
            "TASKDESK_REMINDER_WINDOW_LOWER_H",
            "reminder_window_lower_h",
            REMINDER_WINDOW_LOWER_HOURS,
        ),
        (
            "TASKDESK_REMINDER_WINDOW_UPPER_H",
            "reminder_window_upper_h",
            REMINDER_WINDOW_UPPER_HOURS,
        ),
    ):
        val = os.environ.get(env_var)
        if not val:
            continue
        try:
            kwargs[field_name] = float(val)
        except ValueError:
            log.warning(
                "invalid_engine_config",
                env_var=env_var,
                value=val,
                fallback=fallback,
            )

    if val := os.environ.get("TASKDESK_RISK_CRON"):
        kwargs["risk_cron"] = val

    if val := os.environ.get("TASKDESK_REMINDER_CRON"):
        kwargs["reminder_cron"] = val

    if val := os.environ.get("TASKDESK_SCHEDULER_ENABLED"):
        kwargs["scheduler_enabled"] = val.strip().lower() in ("1", "true", "yes", "on")

    if val := os.environ.get("TASKDESK_CRON_SECRET"):
        kwargs["cron_secret"] = SecretStr(val)

    return EngineConfig(**kwargs)
