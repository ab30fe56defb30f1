from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, Optional

from editorflow.core.config import WorkflowConfig
from editorflow.models.reviews import (
    ReviewAction,
    ReviewAssignment,
    ReviewAssignmentStatus,
    ReviewStatusView,
)

logger = logging.getLogger("editorflow.review_status")

Status = ReviewAssignmentStatus

_NOTES_VISIBLE: frozenset[ReviewAssignmentStatus] = frozenset(
    {Status.COMPLETE, Status.THANKED, Status.RECEIVED}
)

_STATE_LABELS: dict[ReviewAssignmentStatus, str] = {
    Status.AWAITING_RESPONSE: "Request Sent",
    Status.ACCEPTED: "Request Accepted",
    Status.DECLINED: "Declined",
    Status.CANCELLED: "Cancelled",
    Status.RESPONSE_OVERDUE: "Overdue",
    Status.REVIEW_OVERDUE: "Overdue",
    Status.RECEIVED: "Review Submitted",
    Status.COMPLETE: "Complete",
    Status.THANKED: "Reviewer Thanked",
}

_STATE_CLASSES: dict[ReviewAssignmentStatus, str] = {
    Status.RESPONSE_OVERDUE: "overdue",
    Status.REVIEW_OVERDUE: "overdue",
    Status.DECLINED: "declined",
    Status.CANCELLED: "cancelled",
}


def format_due_date(value: datetime | date | None) -> Optional[str]:
    """截断到日历日（YYYY-MM-DD）；时区换算由调用方（ReviewStatusEngine）先完成。"""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    return value.isoformat()


class ReviewStatusEngine:
    """
    审稿邀请状态推导（纯函数，无共享可变状态）

    中文注释:
    1) 状态不落库，由 cancelled/declined 标记与各时间戳推导；
    2) 判定顺序固定，先命中者生效（取消 > 拒绝 > 致谢 > 完成 > 已收到 > 逾期 > 已接受 > 等待回复）；
    3) 逾期只比较日历日：due 日期严格早于“今天”才算逾期。
    """

    def __init__(
        self,
        *,
        config: WorkflowConfig | None = None,
        today: Callable[[], date] | None = None,
        date_formatter: Callable[[datetime | date | None], Optional[str]] = format_due_date,
    ) -> None:
        self.config = config or WorkflowConfig.from_env()
        self._today = today or self._default_today
        self._format = date_formatter

    def _default_today(self) -> date:
        return datetime.now(self.config.timezone).date()

    def _in_zone(self, value: datetime | date | None) -> datetime | date | None:
        # 带时区的时间先换算到配置时区；逾期判断与展示文案用同一个日历日
        if isinstance(value, datetime) and value.tzinfo is not None:
            return value.astimezone(self.config.timezone)
        return value

    def _calendar_date(self, value: datetime | date) -> date:
        value = self._in_zone(value)
        if isinstance(value, datetime):
            return value.date()
        return value

    def _is_past(self, value: datetime | date | None, today: date) -> bool:
        if value is None:
            return False
        return self._calendar_date(value) < today

    def derive_status(self, assignment: ReviewAssignment, *, today: date | None = None) -> ReviewAssignmentStatus:
        if assignment.cancelled:
            if assignment.declined or assignment.date_received or assignment.date_completed:
                logger.debug(
                    "[ReviewStatus] conflicting flags on assignment %s, cancellation wins",
                    assignment.id,
                )
            return Status.CANCELLED
        if assignment.declined:
            return Status.DECLINED
        if assignment.date_acknowledged is not None:
            return Status.THANKED
        if assignment.date_completed is not None:
            return Status.COMPLETE
        if assignment.date_received is not None:
            return Status.RECEIVED

        current = today or self._today()
        if assignment.date_confirmed is None:
            if self._is_past(assignment.date_response_due, current):
                return Status.RESPONSE_OVERDUE
            return Status.AWAITING_RESPONSE

        if self._is_past(assignment.date_due, current):
            return Status.REVIEW_OVERDUE
        return Status.ACCEPTED

    def available_actions(self, status: ReviewAssignmentStatus) -> list[ReviewAction]:
        if status in _NOTES_VISIBLE:
            return [ReviewAction.READ_REVIEW_NOTES]
        return []

    def _details(self, status: ReviewAssignmentStatus, assignment: ReviewAssignment) -> Optional[str]:
        if status in (Status.AWAITING_RESPONSE, Status.RESPONSE_OVERDUE):
            due = self._format(self._in_zone(assignment.date_response_due))
            return f"Response due: {due}" if due else None
        if status in (Status.ACCEPTED, Status.REVIEW_OVERDUE):
            due = self._format(self._in_zone(assignment.date_due))
            return f"Review due: {due}" if due else None
        if status in _NOTES_VISIBLE:
            label = assignment.recommendation_label()
            return f"Recommendation: {label}" if label else None
        return None

    def present(self, assignment: ReviewAssignment, *, today: date | None = None) -> ReviewStatusView:
        status = self.derive_status(assignment, today=today)
        return ReviewStatusView(
            status=status,
            state_label=_STATE_LABELS[status],
            details=self._details(status, assignment),
            state_class=_STATE_CLASSES.get(status),
            actions=self.available_actions(status),
        )
