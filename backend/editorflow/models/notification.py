from __future__ import annotations

from enum import Enum, IntEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from editorflow.models.workflow import WorkflowStage


class NotificationType(str, Enum):
    SUBMISSION_SUBMITTED = "submission_submitted"
    EDITOR_ASSIGNMENT_REQUIRED = "editor_assignment_required"
    APPROVE_SUBMISSION = "approve_submission"
    DECISION_PENDING_SUBMISSION = "decision_pending_submission"
    DECISION_PENDING_INTERNAL_REVIEW = "decision_pending_internal_review"
    DECISION_PENDING_EXTERNAL_REVIEW = "decision_pending_external_review"
    DECISION_PENDING_EDITING = "decision_pending_editing"
    DECISION_PENDING_PRODUCTION = "decision_pending_production"


class NotificationLevel(IntEnum):
    TRIVIAL = 1
    NORMAL = 2
    TASK = 3


class TargetType(str, Enum):
    SUBMISSION = "submission"


# 中文注释：每个编辑阶段各有一条“待决策”通知；投稿定稿后需要统一刷新。
STAGE_DECISION_NOTIFICATIONS: dict[WorkflowStage, NotificationType] = {
    WorkflowStage.SUBMISSION: NotificationType.DECISION_PENDING_SUBMISSION,
    WorkflowStage.INTERNAL_REVIEW: NotificationType.DECISION_PENDING_INTERNAL_REVIEW,
    WorkflowStage.EXTERNAL_REVIEW: NotificationType.DECISION_PENDING_EXTERNAL_REVIEW,
    WorkflowStage.EDITING: NotificationType.DECISION_PENDING_EDITING,
    WorkflowStage.PRODUCTION: NotificationType.DECISION_PENDING_PRODUCTION,
}


class NotificationRequest(BaseModel):
    """
    通知意图（一次性值对象）

    中文注释:
    - 由工作流核心生成，交给外部投递方（站内信/邮件）处理。
    - 本身不落库；落库与否由 NotificationGateway 决定。
    """

    user_id: str
    type: NotificationType
    context_id: Optional[str] = None
    target_type: TargetType = TargetType.SUBMISSION
    target_id: str
    level: NotificationLevel = NotificationLevel.NORMAL

    model_config = ConfigDict(frozen=True)
