from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence

from postgrest.exceptions import APIError

from editorflow.lib.api_client import supabase_admin
from editorflow.models.notification import NotificationLevel, NotificationType, TargetType

logger = logging.getLogger("editorflow.notifications")

NOTIFICATIONS_TABLE = "notifications"

_TITLES: dict[NotificationType, str] = {
    NotificationType.SUBMISSION_SUBMITTED: "A new submission has been assigned to you",
    NotificationType.EDITOR_ASSIGNMENT_REQUIRED: "An editor needs to be assigned to this submission",
    NotificationType.APPROVE_SUBMISSION: "This submission is awaiting approval",
    NotificationType.DECISION_PENDING_SUBMISSION: "A decision is pending in the submission stage",
    NotificationType.DECISION_PENDING_INTERNAL_REVIEW: "A decision is pending in internal review",
    NotificationType.DECISION_PENDING_EXTERNAL_REVIEW: "A decision is pending in review",
    NotificationType.DECISION_PENDING_EDITING: "A decision is pending in copyediting",
    NotificationType.DECISION_PENDING_PRODUCTION: "A decision is pending in production",
}


def _is_orphan_user_error(error: APIError) -> bool:
    code = str(getattr(error, "code", "") or "").lower()
    text = f"{getattr(error, 'message', '') or ''} {error}".lower()
    if "23503" in code or "23503" in text:
        return "notifications_user_id_fkey" in text or "foreign key" in text
    return False


class NotificationService:
    """
    通知服务：封装 notifications 表的写入与清理

    中文注释:
    1) 写入使用 supabase_admin（service_role），避免 RLS 导致写入失败。
    2) 仅展示用途的 mock 用户（不对应 auth.users）会触发外键错误 23503，这类情况静默忽略；
       其余数据库异常原样上抛，由调用方决定是否重试。
    """

    def __init__(self, *, client: Any = None) -> None:
        self.client = client or supabase_admin

    @staticmethod
    def _action_url(target_type: TargetType, target_id: str, notification_type: NotificationType) -> str:
        if notification_type == NotificationType.EDITOR_ASSIGNMENT_REQUIRED:
            return f"/workflow/{target_type.value}/{target_id}?tab=participants"
        return f"/workflow/{target_type.value}/{target_id}"

    def emit_notification(
        self,
        *,
        user_id: str,
        notification_type: NotificationType,
        context_id: Optional[str],
        target_type: TargetType,
        target_id: str,
        level: NotificationLevel = NotificationLevel.NORMAL,
    ) -> Optional[Dict[str, Any]]:
        payload = {
            "user_id": user_id,
            "context_id": context_id,
            "type": notification_type.value,
            "level": int(level),
            "assoc_type": target_type.value,
            "assoc_id": target_id,
            "title": _TITLES[notification_type],
            "action_url": self._action_url(target_type, target_id, notification_type),
            "is_read": False,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            res = self.client.table(NOTIFICATIONS_TABLE).insert(payload).execute()
        except APIError as e:
            if _is_orphan_user_error(e):
                logger.debug("[Notifications] skip orphan user %s", user_id)
                return None
            logger.error("[Notifications] 创建失败: %s", e)
            raise
        rows = getattr(res, "data", None) or []
        return rows[0] if rows else None

    def clear_notifications(
        self,
        types: Sequence[NotificationType],
        *,
        target_type: TargetType,
        target_id: str,
    ) -> int:
        """
        删除某个对象上指定类型的通知，返回删除条数；没有匹配时返回 0。
        """
        if not types:
            return 0
        res = (
            self.client.table(NOTIFICATIONS_TABLE)
            .delete()
            .in_("type", [t.value for t in types])
            .eq("assoc_type", target_type.value)
            .eq("assoc_id", target_id)
            .execute()
        )
        rows = getattr(res, "data", None) or []
        return len(rows)
