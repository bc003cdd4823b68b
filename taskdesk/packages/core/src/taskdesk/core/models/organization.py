"""Organization / Member Domain Model"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import MemberRole


class Organization(BaseModel):
    """租户（组织）"""

    org_id: str = Field(description="唯一标识，按字典序稳定分页")
    name: str = Field(default="", description="组织名称")
    created_at: datetime = Field(description="创建时间")


class Member(BaseModel):
    """组织成员 -- 用于解析升级通知的接收人"""

    user_id: str = Field(description="唯一标识")
    org_id: str = Field(description="所属租户")
    name: str = Field(default="", description="显示名")
    role: MemberRole = Field(default=MemberRole.MEMBER, description="角色")
