"""风险仪表盘路由

GET /api/dashboard/risk?org_id=...: Campaign 风险计数 + 停滞任务 + 依赖告警
结果按租户缓存，风险或状态变化时失效；响应头 X-Cache 标明是否命中。
"""

from fastapi import APIRouter, Depends, Query
from starlette.responses import JSONResponse

from ..deps import get_dashboard_service
from ..services.dashboard_service import DashboardService

router = APIRouter()


@router.get("/api/dashboard/risk")
async def get_risk_dashboard(
    org_id: str = Query(min_length=1, description="租户 ID"),
    service: DashboardService = Depends(get_dashboard_service),
):
    """租户风险仪表盘"""
    dashboard, cached = await service.get_dashboard(org_id)
    return JSONResponse(
        status_code=200,
        content=dashboard.model_dump(mode="json"),
        headers={"X-Cache": "hit" if cached else "miss"},
    )
