from __future__ import annotations

import logging
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from editorflow.core.config import WorkflowConfig
from editorflow.models.notification import (
    STAGE_DECISION_NOTIFICATIONS,
    NotificationLevel,
    NotificationRequest,
    NotificationType,
    TargetType,
)
from editorflow.models.submission import Submission
from editorflow.models.submission_log import SubmissionEventType
from editorflow.models.user_group import StageAssignment, UserGroup
from editorflow.models.workflow import INTAKE_SINGLETON_ROLES, GroupingType, RoleId, WorkflowStage
from editorflow.services.workflow_ports import (
    NotificationGateway,
    StageAssignmentRepository,
    SubmissionEventLog,
    UserDirectory,
)

logger = logging.getLogger("editorflow.stage_assignment")

INTAKE_STAGE = WorkflowStage.SUBMISSION


class AssignmentOutcome(BaseModel):
    created: list[StageAssignment] = Field(default_factory=list)
    notify_user_ids: list[str] = Field(default_factory=list)
    notifications: list[NotificationRequest] = Field(default_factory=list)
    escalated: bool = False


class _RunState:
    """单次运行内的累积状态（三元组去重 + 通知名单）。"""

    def __init__(self) -> None:
        self.seen: set[tuple[str, str, str]] = set()
        self.created: list[StageAssignment] = []
        self.notify: dict[str, None] = {}

    def note_notify(self, user_id: str) -> None:
        self.notify.setdefault(user_id, None)


class StageAssignmentEngine:
    """
    投稿定稿后的参与者自动登记 + 通知路由

    中文注释:
    1) manager/assistant 组：只有“组内恰好一人”才自动登记，0 人或多人一律跳过，留给人工分配；
    2) 投稿人：沿用其已有的第一个 author 角色组，只登记一次；
    3) 栏目/分类 sub-editor：先展开成 (user_group, user) 候选列表，再按三元组去重后登记；
    4) 通知名单非空 -> 逐人发“已分配”通知；为空 -> 给所有 manager 发“需要分配编辑”任务通知；
    5) 无论走哪条分支，都要刷新“待决策”与“待审批”通知（幂等）。

    重复登记由存储层唯一约束吸收；基础设施异常原样上抛，不做吞掉。
    """

    def __init__(
        self,
        *,
        directory: UserDirectory,
        assignments: StageAssignmentRepository,
        notifications: NotificationGateway,
        event_log: SubmissionEventLog | None = None,
        config: WorkflowConfig | None = None,
    ) -> None:
        self.directory = directory
        self.assignments = assignments
        self.notifications = notifications
        self.event_log = event_log
        self.config = config or WorkflowConfig.from_env()

    def _enroll(
        self,
        state: _RunState,
        submission: Submission,
        user_group: UserGroup,
        user_id: str,
        *,
        recommend_only: bool,
    ) -> None:
        triple = (submission.id, user_group.id, user_id)
        if triple in state.seen:
            return
        state.seen.add(triple)

        row = self.assignments.create_stage_assignment(
            submission.id, user_group.id, user_id, recommend_only
        )
        if row is None:
            logger.debug(
                "[StageAssignment] already enrolled (submission=%s, group=%s, user=%s)",
                submission.id,
                user_group.id,
                user_id,
            )
            return

        state.created.append(row)
        if self.event_log is not None and self.config.log_events:
            self.event_log.log_event(
                submission_id=submission.id,
                event_type=SubmissionEventType.PARTICIPANT_ASSIGNED,
                message_key="submission.event.participantAdded",
                params={
                    "user_group_id": user_group.id,
                    "user_group_name": user_group.name,
                    "user_id": user_id,
                },
            )

    def _assign_singleton_managers(self, state: _RunState, submission: Submission) -> None:
        groups = self.directory.resolve_user_groups_for_stage(submission.context_id, INTAKE_STAGE)
        for group in groups:
            if group.role_id not in INTAKE_SINGLETON_ROLES:
                continue
            members = self.directory.resolve_group_members(group.id, submission.context_id)
            if len(members) != 1:
                logger.info(
                    "[StageAssignment] skip group %s (%s): %d members, manual assignment required",
                    group.id,
                    group.role_id.name,
                    len(members),
                )
                continue
            user_id = members[0]
            self._enroll(state, submission, group, user_id, recommend_only=group.recommend_only)
            state.note_notify(user_id)

    def _carry_forward_submitter(self, state: _RunState, submission: Submission, submitter_id: Optional[str]) -> None:
        if not submitter_id:
            return
        existing = self.assignments.resolve_stage_assignments(submission.id, user_id=submitter_id)
        for assignment in existing:
            group = self.directory.get_user_group(assignment.user_group_id)
            if group is None or group.role_id != RoleId.AUTHOR:
                continue
            # 只登记一次：作者只要有一个 author 组就能访问稿件。
            self._enroll(state, submission, group, assignment.user_id, recommend_only=False)
            return

    def _groupings(self, submission: Submission) -> list[tuple[str, GroupingType]]:
        groupings: list[tuple[str, GroupingType]] = []
        if submission.section_id:
            groupings.append((submission.section_id, GroupingType.SECTION))
        groupings.extend((category_id, GroupingType.CATEGORY) for category_id in submission.category_ids)
        return groupings

    def sub_editor_candidates(self, submission: Submission) -> list[tuple[UserGroup, str]]:
        """
        Flatten section and category sub-editor bindings into (user_group, user)
        pairs, sections first, duplicates dropped.
        """
        candidates: list[tuple[UserGroup, str]] = []
        seen: set[tuple[str, str]] = set()
        for grouping_id, grouping_type in self._groupings(submission):
            sub_editors = self.directory.resolve_sub_editors(grouping_id, grouping_type, submission.context_id)
            if not sub_editors:
                logger.debug(
                    "[StageAssignment] no sub-editors bound to %s %s",
                    grouping_type.value,
                    grouping_id,
                )
            for user_id in sub_editors:
                groups = self.directory.resolve_user_groups_for_user(user_id, submission.context_id)
                for group in groups:
                    if group.role_id != RoleId.SUB_EDITOR:
                        continue
                    pair = (group.id, user_id)
                    if pair in seen:
                        continue
                    seen.add(pair)
                    candidates.append((group, user_id))
        return candidates

    def _assign_sub_editors(self, state: _RunState, submission: Submission) -> None:
        for group, user_id in self.sub_editor_candidates(submission):
            self._enroll(state, submission, group, user_id, recommend_only=group.recommend_only)
            if group.permits(INTAKE_STAGE):
                state.note_notify(user_id)

    def _emit(
        self,
        submission: Submission,
        user_ids: Iterable[str],
        notification_type: NotificationType,
        level: NotificationLevel,
    ) -> list[NotificationRequest]:
        emitted: list[NotificationRequest] = []
        for user_id in user_ids:
            request = NotificationRequest(
                user_id=user_id,
                type=notification_type,
                context_id=submission.context_id,
                target_type=TargetType.SUBMISSION,
                target_id=submission.id,
                level=level,
            )
            self.notifications.emit_notification(
                user_id=request.user_id,
                notification_type=request.type,
                context_id=request.context_id,
                target_type=request.target_type,
                target_id=request.target_id,
                level=request.level,
            )
            emitted.append(request)
        return emitted

    def _route_notifications(self, state: _RunState, submission: Submission, outcome: AssignmentOutcome) -> None:
        self.notifications.clear_notifications(
            list(STAGE_DECISION_NOTIFICATIONS.values()),
            target_type=TargetType.SUBMISSION,
            target_id=submission.id,
        )

        if state.notify:
            outcome.notifications = self._emit(
                submission,
                state.notify,
                NotificationType.SUBMISSION_SUBMITTED,
                NotificationLevel.NORMAL,
            )
        else:
            managers = list(dict.fromkeys(self.directory.resolve_managers(submission.context_id)))
            logger.info(
                "[StageAssignment] submission %s has no automatic editor, escalating to %d managers",
                submission.id,
                len(managers),
            )
            outcome.escalated = True
            outcome.notifications = self._emit(
                submission,
                managers,
                NotificationType.EDITOR_ASSIGNMENT_REQUIRED,
                NotificationLevel.TASK,
            )

        self.notifications.clear_notifications(
            [NotificationType.APPROVE_SUBMISSION],
            target_type=TargetType.SUBMISSION,
            target_id=submission.id,
        )

    def run(self, submission: Submission, submitter_id: Optional[str]) -> AssignmentOutcome:
        state = _RunState()
        self._assign_singleton_managers(state, submission)
        self._carry_forward_submitter(state, submission, submitter_id)
        self._assign_sub_editors(state, submission)

        outcome = AssignmentOutcome(created=state.created, notify_user_ids=list(state.notify))
        self._route_notifications(state, submission, outcome)
        logger.info(
            "[StageAssignment] submission %s: %d enrolled, %d notified, escalated=%s",
            submission.id,
            len(outcome.created),
            len(outcome.notifications),
            outcome.escalated,
        )
        return outcome
