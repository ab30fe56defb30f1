from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from pydantic import BaseModel

from editorflow.lib.api_client import supabase_admin
from editorflow.models.submission import FINAL_AUTHORING_STEP, Submission
from editorflow.models.submission_log import SubmissionEventType
from editorflow.services.stage_assignment_service import AssignmentOutcome, StageAssignmentEngine
from editorflow.services.workflow_ports import SubmissionEventLog

logger = logging.getLogger("editorflow.submission_finalize")

SUBMISSIONS_TABLE = "submissions"


class FinalizeResult(BaseModel):
    submission: Submission
    outcome: AssignmentOutcome
    newly_submitted: bool


class SubmissionFinalizeService:
    """
    投稿最后一步（确认并提交）

    中文注释:
    1) 仅当 submission_progress 仍停留在作者步骤内时，才写 date_submitted 并把进度归零；
    2) 已定稿的稿件再次调用不会改动日期，但仍会跑一遍参与者登记（幂等，可安全重试）；
       进度超出作者步骤却未定稿的稿件不登记参与者，返回空结果；
    3) 先落库再登记；登记或通知失败时异常上抛，已写入的部分不回滚。
    """

    def __init__(
        self,
        *,
        engine: StageAssignmentEngine,
        client: Any = None,
        event_log: SubmissionEventLog | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.engine = engine
        self.client = client or supabase_admin
        self.event_log = event_log
        self._now = now or (lambda: datetime.now(timezone.utc))

    def _persist(self, submission: Submission) -> None:
        patch = {
            "submission_progress": submission.submission_progress,
            "date_submitted": submission.date_submitted.isoformat() if submission.date_submitted else None,
            "date_last_activity": submission.date_last_activity.isoformat() if submission.date_last_activity else None,
            "last_modified": submission.last_modified.isoformat() if submission.last_modified else None,
        }
        self.client.table(SUBMISSIONS_TABLE).update(patch).eq("id", submission.id).execute()

    def finalize(self, submission: Submission, submitter_id: Optional[str]) -> FinalizeResult:
        newly_submitted = not submission.is_finalized and submission.submission_progress <= FINAL_AUTHORING_STEP
        if newly_submitted:
            now = self._now()
            submission = submission.model_copy(
                update={
                    "date_submitted": now,
                    "date_last_activity": now,
                    "last_modified": now,
                    "submission_progress": 0,
                }
            )
            self._persist(submission)
            if self.event_log is not None:
                self.event_log.log_event(
                    submission_id=submission.id,
                    event_type=SubmissionEventType.SUBMISSION_SUBMITTED,
                    message_key="submission.event.submissionSubmitted",
                    user_id=submitter_id,
                )
        elif not submission.is_finalized:
            logger.warning(
                "[SubmissionFinalize] submission %s is past the authoring steps (progress=%s), skip assignment",
                submission.id,
                submission.submission_progress,
            )
            return FinalizeResult(submission=submission, outcome=AssignmentOutcome(), newly_submitted=False)
        else:
            logger.info("[SubmissionFinalize] submission %s already finalized", submission.id)

        outcome = self.engine.run(submission, submitter_id)
        return FinalizeResult(submission=submission, outcome=outcome, newly_submitted=newly_submitted)
