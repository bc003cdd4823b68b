"""升级中心路由

GET /api/escalations?org_id=...&stage=1|2|3: 租户最近 50 条升级事件
- 400: stage 不是 1/2/3
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from starlette.responses import JSONResponse
from taskdesk.core.models import EscalationStage

from ..deps import get_escalation_service
from ..services.escalation_service import EscalationItem, EscalationService

router = APIRouter()

_VALID_STAGES = {str(s.value) for s in EscalationStage}


class EscalationListResponse(BaseModel):
    org_id: str
    stage: int | None
    escalations: list[EscalationItem]


@router.get("/api/escalations")
async def list_escalations(
    org_id: str = Query(min_length=1, description="租户 ID"),
    stage: str | None = Query(default=None, description="升级阶段 1/2/3"),
    service: EscalationService = Depends(get_escalation_service),
):
    """按租户列出升级事件，可按阶段筛选"""
    if stage is not None and stage not in _VALID_STAGES:
        return JSONResponse(
            status_code=400,
            content={
                "error": {
                    "code": "INVALID_STAGE",
                    "message": "Invalid stage parameter. Must be 1, 2, or 3.",
                }
            },
        )

    parsed = EscalationStage(int(stage)) if stage is not None else None
    items = await service.list_for_org(org_id, parsed)
    return EscalationListResponse(
        org_id=org_id,
        stage=int(parsed) if parsed is not None else None,
        escalations=items,
    )
