"""LoggingMiddleware

为每个 HTTP 请求绑定 request_id（沿用上游 X-Request-ID，否则生成 ULID）
与请求来源 trigger 到 structlog contextvars：
- /api/cron/...        -> trigger=cron（外部调度触发的引擎运行）
- /health, /ready      -> trigger=probe，只记 debug
- 其他                 -> trigger=api

请求结束记录状态码与耗时；5xx 记 warning，未处理异常记 error 后继续抛出。
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

_PROBE_PATHS = frozenset({"/health", "/ready"})


def request_trigger(path: str) -> str:
    """按路径划分请求来源"""
    if path in _PROBE_PATHS:
        return "probe"
    if path.startswith("/api/cron/"):
        return "cron"
    return "api"


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求级日志中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(ULID())
        path = request.url.path
        trigger = request_trigger(path)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=path,
            trigger=trigger,
        )

        log = structlog.get_logger()
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            await log.aerror(
                "request_failed",
                error_type=type(e).__name__,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
            raise

        duration_ms = round((time.perf_counter() - started) * 1000, 1)
        if response.status_code >= 500:
            await log.awarning(
                "request_completed", status_code=response.status_code, duration_ms=duration_ms
            )
        elif trigger == "probe":
            await log.adebug(
                "request_completed", status_code=response.status_code, duration_ms=duration_ms
            )
        else:
            await log.ainfo(
                "request_completed", status_code=response.status_code, duration_ms=duration_ms
            )

        response.headers["X-Request-ID"] = request_id
        return response
