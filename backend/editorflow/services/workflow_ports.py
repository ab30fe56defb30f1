from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence

from editorflow.models.notification import NotificationLevel, NotificationType, TargetType
from editorflow.models.submission_log import SubmissionEventType, SubmissionLogEntry
from editorflow.models.user_group import StageAssignment, UserGroup
from editorflow.models.workflow import GroupingType, WorkflowStage

# 中文注释：
# - 工作流核心只依赖这里的协议（显式注入），不通过全局注册表按名字查找 DAO。
# - Supabase 实现在 supabase_workflow_store / notification_service / submission_log_service。


class UserDirectory(Protocol):
    def resolve_user_groups_for_stage(self, context_id: str, stage: WorkflowStage) -> list[UserGroup]: ...

    def resolve_user_groups_for_user(self, user_id: str, context_id: str) -> list[UserGroup]: ...

    def get_user_group(self, user_group_id: str) -> Optional[UserGroup]: ...

    def resolve_group_members(self, user_group_id: str, context_id: str) -> list[str]: ...

    def resolve_sub_editors(self, grouping_id: str, grouping_type: GroupingType, context_id: str) -> list[str]: ...

    def resolve_managers(self, context_id: str) -> list[str]: ...


class StageAssignmentRepository(Protocol):
    def resolve_stage_assignments(
        self,
        submission_id: str,
        *,
        stage: Optional[WorkflowStage] = None,
        user_group_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> list[StageAssignment]: ...

    def create_stage_assignment(
        self,
        submission_id: str,
        user_group_id: str,
        user_id: str,
        recommend_only: bool = False,
    ) -> Optional[StageAssignment]:
        """Insert-if-absent; returns None when the triple already exists."""
        ...


class NotificationGateway(Protocol):
    def emit_notification(
        self,
        *,
        user_id: str,
        notification_type: NotificationType,
        context_id: Optional[str],
        target_type: TargetType,
        target_id: str,
        level: NotificationLevel = NotificationLevel.NORMAL,
    ) -> Optional[dict[str, Any]]: ...

    def clear_notifications(
        self,
        types: Sequence[NotificationType],
        *,
        target_type: TargetType,
        target_id: str,
    ) -> int: ...


class SubmissionEventLog(Protocol):
    def log_event(
        self,
        *,
        submission_id: str,
        event_type: SubmissionEventType,
        message_key: str,
        params: Optional[dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> SubmissionLogEntry: ...
