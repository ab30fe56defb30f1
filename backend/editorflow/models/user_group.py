from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from editorflow.models.workflow import RoleId, WorkflowStage


class UserGroup(BaseModel):
    """
    用户组（按期刊 context 划分的角色包）

    中文注释:
    - role_id 取自封闭集合 RoleId；
    - stages 在期刊配置时确定，本核心只读。
    """

    id: str
    context_id: str
    role_id: RoleId
    name: str = ""
    recommend_only: bool = False
    stages: frozenset[WorkflowStage] = Field(default_factory=frozenset)

    model_config = ConfigDict(from_attributes=True, frozen=True)

    def permits(self, stage: WorkflowStage) -> bool:
        return stage in self.stages


class StageAssignment(BaseModel):
    """
    参与者登记：(submission, user_group, user) 三元组唯一。
    """

    id: Optional[str] = None
    submission_id: str
    user_group_id: str
    user_id: str
    recommend_only: bool = False
    date_assigned: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.submission_id, self.user_group_id, self.user_id)
