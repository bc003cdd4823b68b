"""Campaign Domain Model"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import CampaignRisk


class Campaign(BaseModel):
    """Campaign 数据模型 -- risk_status 仅由风险聚合器修改"""

    campaign_id: str = Field(description="唯一标识")
    org_id: str = Field(description="所属租户")
    name: str = Field(default="", description="Campaign 名称")
    launch_date: datetime = Field(description="上线时间")
    risk_status: CampaignRisk = Field(default=CampaignRisk.NORMAL, description="风险状态")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")
