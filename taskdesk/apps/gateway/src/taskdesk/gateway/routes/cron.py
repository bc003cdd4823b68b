"""Cron 触发路由

GET /api/cron/risk-engine: 运行一页风险引擎（cron 模式）
GET /api/cron/reminders:   运行一页提醒引擎（cron 模式）
- 401: Authorization 不是 Bearer <TASKDESK_CRON_SECRET>
- 500: 服务端未配置密钥 / 游标读写失败
"""

import secrets

import structlog
from fastapi import APIRouter, Depends, Header
from starlette.responses import JSONResponse
from taskdesk.engine import BaseEngine, EngineConfig, RunResult

from ..deps import get_engine_config, get_reminder_engine, get_risk_engine

log = structlog.get_logger()

router = APIRouter()


def _check_cron_auth(config: EngineConfig, authorization: str | None) -> JSONResponse | None:
    """校验 Bearer 密钥，失败时返回错误响应"""
    secret = config.cron_secret.get_secret_value()
    if not secret:
        log.error("cron_secret_missing")
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": "CRON_SECRET_MISSING",
                    "message": "Service misconfiguration",
                }
            },
        )
    if authorization is None or not secrets.compare_digest(
        authorization, f"Bearer {secret}"
    ):
        return JSONResponse(
            status_code=401,
            content={"error": {"code": "UNAUTHORIZED", "message": "Unauthorized"}},
        )
    return None


def _run_response(result: RunResult) -> dict:
    return {
        "success": True,
        "skipped": result.skipped,
        "stats": {
            "processed_orgs": result.processed_orgs,
            "failed_orgs": result.failed_orgs,
            **result.stats,
        },
        "pagination": {
            "batch_size": len(result.org_ids),
            "page_size": result.page_size,
            "previous_cursor": result.cursor_before,
            "next_cursor": result.cursor_after,
        },
    }


async def _trigger(engine: BaseEngine) -> dict | JSONResponse:
    result = await engine.run()
    if result.error is not None:
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": "ENGINE_RUN_FAILED",
                    "message": f"{result.engine} run failed ({result.error})",
                }
            },
        )
    return _run_response(result)


@router.get("/api/cron/risk-engine")
async def run_risk_engine(
    authorization: str | None = Header(default=None),
    config: EngineConfig = Depends(get_engine_config),
    engine: BaseEngine = Depends(get_risk_engine),
):
    """cron 模式运行风险引擎"""
    if (denied := _check_cron_auth(config, authorization)) is not None:
        return denied
    return await _trigger(engine)


@router.get("/api/cron/reminders")
async def run_reminders(
    authorization: str | None = Header(default=None),
    config: EngineConfig = Depends(get_engine_config),
    engine: BaseEngine = Depends(get_reminder_engine),
):
    """cron 模式运行提醒引擎"""
    if (denied := _check_cron_auth(config, authorization)) is not None:
        return denied
    return await _trigger(engine)
