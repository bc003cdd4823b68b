"""任务路由

PATCH /api/tasks/{task_id}/status: 变更任务状态（触发单租户风险评估）
- 200: 变更成功
- 403: 操作者不是负责人
- 404: 任务不存在
- 409: 非法流转 / 上游未完成 / 并发冲突
GET /api/tasks/{task_id}/escalations: 该任务的升级历史
"""

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse
from taskdesk.core.models import RiskFlag, TaskStatus

from ..deps import get_escalation_service, get_task_service
from ..services.escalation_service import EscalationItem, EscalationService
from ..services.task_service import TaskMutationError, TaskService

router = APIRouter()


class StatusChangeRequest(BaseModel):
    """状态变更请求"""

    status: TaskStatus = Field(description="目标状态")
    actor_id: str = Field(min_length=1, description="操作者 user_id")


class StatusChangeResponse(BaseModel):
    task_id: str
    status: TaskStatus
    risk_flag: RiskFlag
    updated_at: datetime


class TaskEscalationsResponse(BaseModel):
    task_id: str
    escalations: list[EscalationItem]


@router.patch("/api/tasks/{task_id}/status")
async def change_task_status(
    task_id: str,
    body: StatusChangeRequest,
    service: TaskService = Depends(get_task_service),
):
    """变更任务状态"""
    try:
        task = await service.change_status(task_id, body.status, body.actor_id)
    except TaskMutationError as e:
        return JSONResponse(
            status_code=e.status_code,
            content={"error": {"code": e.code, "message": e.message}},
        )

    return JSONResponse(
        status_code=200,
        content=StatusChangeResponse(
            task_id=task.task_id,
            status=task.status,
            risk_flag=task.risk_flag,
            updated_at=task.updated_at,
        ).model_dump(mode="json"),
    )


@router.get("/api/tasks/{task_id}/escalations")
async def get_task_escalations(
    task_id: str,
    service: TaskService = Depends(get_task_service),
    escalation_service: EscalationService = Depends(get_escalation_service),
):
    """查询任务升级历史（按时间倒序）"""
    if await service.get_task(task_id) is None:
        return JSONResponse(
            status_code=404,
            content={
                "error": {
                    "code": "TASK_NOT_FOUND",
                    "message": f"Task with id {task_id} does not exist",
                }
            },
        )
    items = await escalation_service.list_for_task(task_id)
    return TaskEscalationsResponse(task_id=task_id, escalations=items)
