from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from editorflow.lib.api_client import supabase_admin
from editorflow.models.submission_log import SubmissionEventType, SubmissionLogEntry

logger = logging.getLogger("editorflow.submission_log")

EVENT_LOG_TABLE = "submission_event_logs"
SUBMISSIONS_TABLE = "submissions"


class SubmissionLogService:
    """
    稿件事件日志

    中文注释:
    - 每条事件写入 submission_event_logs，并顺带刷新 submissions.date_last_activity；
    - message_key 是前端 i18n key，params 原样存 JSON。
    """

    def __init__(self, *, client: Any = None) -> None:
        self.client = client or supabase_admin

    def log_event(
        self,
        *,
        submission_id: str,
        event_type: SubmissionEventType,
        message_key: str,
        params: Optional[dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> SubmissionLogEntry:
        now_iso = datetime.now(timezone.utc).isoformat()
        payload = {
            "submission_id": submission_id,
            "user_id": user_id,
            "event_type": event_type.value,
            "message_key": message_key,
            "params": params or {},
            "date_logged": now_iso,
        }
        res = self.client.table(EVENT_LOG_TABLE).insert(payload).execute()
        self.client.table(SUBMISSIONS_TABLE).update({"date_last_activity": now_iso}).eq(
            "id", submission_id
        ).execute()
        logger.debug("[SubmissionLog] %s on %s", event_type.value, submission_id)
        rows = getattr(res, "data", None) or []
        row_id = rows[0].get("id") if rows else None
        return SubmissionLogEntry(
            id=str(row_id) if row_id is not None else None,
            submission_id=submission_id,
            user_id=user_id,
            event_type=event_type,
            message_key=message_key,
            params=params or {},
            date_logged=now_iso,
        )
