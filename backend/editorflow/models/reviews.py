from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from editorflow.models.workflow import WorkflowStage


class ReviewAssignmentStatus(str, Enum):
    """
    审稿邀请的派生状态（不落库，由时间戳与标记推导）
    """

    AWAITING_RESPONSE = "awaiting_response"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CANCELLED = "cancelled"
    RESPONSE_OVERDUE = "response_overdue"
    REVIEW_OVERDUE = "review_overdue"
    RECEIVED = "received"
    COMPLETE = "complete"
    THANKED = "thanked"


class ReviewRecommendation(str, Enum):
    ACCEPT = "accept"
    PENDING_REVISIONS = "pending_revisions"
    RESUBMIT_HERE = "resubmit_here"
    RESUBMIT_ELSEWHERE = "resubmit_elsewhere"
    DECLINE = "decline"
    SEE_COMMENTS = "see_comments"

    @property
    def label(self) -> str:
        return _RECOMMENDATION_LABELS[self]


_RECOMMENDATION_LABELS: dict[ReviewRecommendation, str] = {
    ReviewRecommendation.ACCEPT: "Accept Submission",
    ReviewRecommendation.PENDING_REVISIONS: "Revisions Required",
    ReviewRecommendation.RESUBMIT_HERE: "Resubmit for Review",
    ReviewRecommendation.RESUBMIT_ELSEWHERE: "Resubmit Elsewhere",
    ReviewRecommendation.DECLINE: "Decline Submission",
    ReviewRecommendation.SEE_COMMENTS: "See Comments",
}


class ReviewAction(str, Enum):
    READ_REVIEW_NOTES = "read_review_notes"


class ReviewAssignment(BaseModel):
    """审稿邀请快照（一位审稿人 × 一篇稿件 × 一个审稿阶段）"""

    id: str
    submission_id: str
    stage_id: WorkflowStage = WorkflowStage.EXTERNAL_REVIEW
    reviewer_id: str
    recommendation: Optional[str] = None

    date_response_due: Optional[datetime] = None
    date_due: Optional[datetime] = None
    date_confirmed: Optional[datetime] = None
    date_received: Optional[datetime] = None
    date_completed: Optional[datetime] = None
    date_acknowledged: Optional[datetime] = Field(None, description="审稿人被致谢的时间")

    cancelled: bool = False
    declined: bool = False

    model_config = ConfigDict(from_attributes=True)

    def recommendation_label(self) -> Optional[str]:
        raw = str(self.recommendation or "").strip()
        if not raw:
            return None
        try:
            return ReviewRecommendation(raw.lower()).label
        except ValueError:
            return raw


class ReviewStatusView(BaseModel):
    status: ReviewAssignmentStatus
    state_label: str
    details: Optional[str] = None
    state_class: Optional[str] = None
    actions: list[ReviewAction] = Field(default_factory=list)
