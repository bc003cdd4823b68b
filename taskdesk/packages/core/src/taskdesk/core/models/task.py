"""Task Domain Model

tasks 表由外部 CRUD 层创建，风险引擎只修改 risk_flag，
状态变更通过 status_changed 事件留痕。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import RiskFlag, TaskStatus


class Task(BaseModel):
    """Task 数据模型

    依赖关系为森林：每个任务至多一个上游任务（dependency_id），
    且上游任务必须属于同一个 Campaign。
    """

    task_id: str = Field(description="唯一标识")
    org_id: str = Field(description="所属租户（组织）")
    campaign_id: str = Field(description="所属 Campaign")
    title: str = Field(default="", description="任务标题")
    owner_id: str = Field(description="负责人 user_id")
    dependency_id: str | None = Field(default=None, description="上游依赖任务 ID")
    status: TaskStatus = Field(default=TaskStatus.NOT_STARTED, description="当前状态")
    risk_flag: RiskFlag = Field(default=RiskFlag.NONE, description="风险标记")
    due_date: datetime | None = Field(default=None, description="截止时间")
    assigned_at: datetime | None = Field(default=None, description="指派时间（只写一次）")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")

    @property
    def is_active(self) -> bool:
        """未完成的任务才参与风险评估"""
        return self.status != TaskStatus.COMPLETED
