"""TraceMiddleware

为任务与租户操作绑定 trace_id / org_id，贯穿同一请求内的引擎日志。
- /api/tasks/{task_id}/... -> trace_id = trace-{task_id}
- ?org_id=... -> org_id
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response


class TraceMiddleware(BaseHTTPMiddleware):
    """任务级追踪中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        parts = [p for p in request.url.path.split("/") if p]

        # /api/tasks/{task_id}/status
        if len(parts) >= 3 and parts[0] == "api" and parts[1] == "tasks":
            structlog.contextvars.bind_contextvars(trace_id=f"trace-{parts[2]}")

        org_id = request.query_params.get("org_id")
        if org_id:
            structlog.contextvars.bind_contextvars(org_id=org_id)

        return await call_next(request)
