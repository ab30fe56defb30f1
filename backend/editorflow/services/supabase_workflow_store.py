from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from postgrest.exceptions import APIError

from editorflow.lib.api_client import supabase_admin
from editorflow.models.user_group import StageAssignment, UserGroup
from editorflow.models.workflow import GroupingType, RoleId, WorkflowStage, normalize_stage

logger = logging.getLogger("editorflow.store")

USER_GROUPS_TABLE = "user_groups"
USER_GROUP_STAGES_TABLE = "user_group_stages"
USER_USER_GROUPS_TABLE = "user_user_groups"
STAGE_ASSIGNMENTS_TABLE = "stage_assignments"
SUB_EDITORS_TABLE = "subeditor_submission_groups"

# user_user_groups must be matched before user_groups.
_KNOWN_TABLES = (
    USER_USER_GROUPS_TABLE,
    USER_GROUP_STAGES_TABLE,
    USER_GROUPS_TABLE,
    STAGE_ASSIGNMENTS_TABLE,
    SUB_EDITORS_TABLE,
)

UNIQUE_VIOLATION = "23505"


@dataclass
class WorkflowStoreError(Exception):
    table: str

    def __str__(self) -> str:
        return f"workflow table missing: {self.table}"


def _extract_rows(resp: Any) -> list[dict[str, Any]]:
    return getattr(resp, "data", None) or []


def _error_text(error: Exception | str | None) -> str:
    parts = [str(getattr(error, "code", "") or ""), str(getattr(error, "message", "") or ""), str(error or "")]
    return " ".join(parts).lower()


def _missing_table_from_error(error: Exception | str | None) -> str | None:
    text = _error_text(error)
    if "pgrst205" not in text and "does not exist" not in text:
        return None
    for table in _KNOWN_TABLES:
        if table in text:
            return table
    return None


def _is_unique_violation(error: APIError) -> bool:
    return UNIQUE_VIOLATION in _error_text(error)


def _dedupe(values: list[str]) -> list[str]:
    return list(dict.fromkeys(v for v in values if v))


class SupabaseWorkflowStore:
    """
    用户组 / 参与者登记 / sub-editor 绑定的 Supabase 读写

    中文注释:
    1) stage_assignments 表上有 (submission_id, user_group_id, user_id) 唯一约束，
       重复插入（23505）视为“已存在”，返回 None；
    2) 其它 APIError 原样上抛，缺表时包装成 WorkflowStoreError，便于上层识别迁移未跑。
    """

    def __init__(self, *, client: Any = None) -> None:
        self.client = client or supabase_admin

    def _now(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    def _execute(self, query: Any) -> list[dict[str, Any]]:
        try:
            return _extract_rows(query.execute())
        except APIError as e:
            table = _missing_table_from_error(e)
            if table:
                raise WorkflowStoreError(table=table) from e
            raise

    def _load_stages(self, user_group_ids: list[str]) -> dict[str, set[WorkflowStage]]:
        if not user_group_ids:
            return {}
        rows = self._execute(
            self.client.table(USER_GROUP_STAGES_TABLE)
            .select("user_group_id,stage_id")
            .in_("user_group_id", user_group_ids)
        )
        stages: dict[str, set[WorkflowStage]] = {gid: set() for gid in user_group_ids}
        for row in rows:
            stage = normalize_stage(row.get("stage_id"))
            gid = str(row.get("user_group_id") or "")
            if stage is not None and gid in stages:
                stages[gid].add(stage)
        return stages

    def _load_groups(self, user_group_ids: list[str], *, context_id: str | None = None) -> list[UserGroup]:
        ids = sorted(set(user_group_ids))
        if not ids:
            return []
        query = self.client.table(USER_GROUPS_TABLE).select("id,context_id,role_id,name,recommend_only").in_("id", ids)
        if context_id is not None:
            query = query.eq("context_id", context_id)
        rows = self._execute(query.order("id"))
        stages = self._load_stages([str(row["id"]) for row in rows if row.get("id")])
        return [self._to_group(row, stages.get(str(row.get("id")), set())) for row in rows if row.get("id")]

    @staticmethod
    def _to_group(row: dict[str, Any], stages: set[WorkflowStage]) -> UserGroup:
        return UserGroup(
            id=str(row["id"]),
            context_id=str(row.get("context_id") or ""),
            role_id=RoleId(int(row["role_id"])),
            name=str(row.get("name") or ""),
            recommend_only=bool(row.get("recommend_only")),
            stages=frozenset(stages),
        )

    @staticmethod
    def _to_assignment(row: dict[str, Any]) -> StageAssignment:
        return StageAssignment(
            id=str(row["id"]) if row.get("id") is not None else None,
            submission_id=str(row["submission_id"]),
            user_group_id=str(row["user_group_id"]),
            user_id=str(row["user_id"]),
            recommend_only=bool(row.get("recommend_only")),
            date_assigned=row.get("date_assigned"),
        )

    def resolve_user_groups_for_stage(self, context_id: str, stage: WorkflowStage) -> list[UserGroup]:
        rows = self._execute(
            self.client.table(USER_GROUP_STAGES_TABLE)
            .select("user_group_id")
            .eq("context_id", context_id)
            .eq("stage_id", int(stage))
        )
        return self._load_groups([str(r["user_group_id"]) for r in rows if r.get("user_group_id")], context_id=context_id)

    def resolve_user_groups_for_user(self, user_id: str, context_id: str) -> list[UserGroup]:
        rows = self._execute(
            self.client.table(USER_USER_GROUPS_TABLE).select("user_group_id").eq("user_id", user_id)
        )
        return self._load_groups([str(r["user_group_id"]) for r in rows if r.get("user_group_id")], context_id=context_id)

    def get_user_group(self, user_group_id: str) -> Optional[UserGroup]:
        groups = self._load_groups([user_group_id])
        return groups[0] if groups else None

    def resolve_group_members(self, user_group_id: str, context_id: str) -> list[str]:
        group = self.get_user_group(user_group_id)
        if group is None or group.context_id != str(context_id):
            return []
        rows = self._execute(
            self.client.table(USER_USER_GROUPS_TABLE)
            .select("user_id")
            .eq("user_group_id", user_group_id)
            .order("user_id")
        )
        return _dedupe([str(r.get("user_id") or "") for r in rows])

    def resolve_sub_editors(self, grouping_id: str, grouping_type: GroupingType, context_id: str) -> list[str]:
        rows = self._execute(
            self.client.table(SUB_EDITORS_TABLE)
            .select("user_id")
            .eq("context_id", context_id)
            .eq("assoc_type", grouping_type.value)
            .eq("assoc_id", grouping_id)
            .order("user_id")
        )
        return _dedupe([str(r.get("user_id") or "") for r in rows])

    def resolve_managers(self, context_id: str) -> list[str]:
        group_rows = self._execute(
            self.client.table(USER_GROUPS_TABLE)
            .select("id")
            .eq("context_id", context_id)
            .eq("role_id", int(RoleId.MANAGER))
        )
        group_ids = sorted({str(r["id"]) for r in group_rows if r.get("id")})
        if not group_ids:
            return []
        rows = self._execute(
            self.client.table(USER_USER_GROUPS_TABLE)
            .select("user_id")
            .in_("user_group_id", group_ids)
            .order("user_id")
        )
        return _dedupe([str(r.get("user_id") or "") for r in rows])

    def resolve_stage_assignments(
        self,
        submission_id: str,
        *,
        stage: Optional[WorkflowStage] = None,
        user_group_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> list[StageAssignment]:
        query = (
            self.client.table(STAGE_ASSIGNMENTS_TABLE)
            .select("id,submission_id,user_group_id,user_id,recommend_only,date_assigned")
            .eq("submission_id", submission_id)
        )
        if user_group_id is not None:
            query = query.eq("user_group_id", user_group_id)
        if user_id is not None:
            query = query.eq("user_id", user_id)
        if stage is not None:
            stage_rows = self._execute(
                self.client.table(USER_GROUP_STAGES_TABLE).select("user_group_id").eq("stage_id", int(stage))
            )
            stage_group_ids = sorted({str(r["user_group_id"]) for r in stage_rows if r.get("user_group_id")})
            if not stage_group_ids:
                return []
            query = query.in_("user_group_id", stage_group_ids)
        # 最早登记的在前；同一时刻按 id 兜底
        rows = self._execute(query.order("date_assigned").order("id"))
        return [self._to_assignment(row) for row in rows]

    def create_stage_assignment(
        self,
        submission_id: str,
        user_group_id: str,
        user_id: str,
        recommend_only: bool = False,
    ) -> Optional[StageAssignment]:
        payload = {
            "submission_id": submission_id,
            "user_group_id": user_group_id,
            "user_id": user_id,
            "recommend_only": bool(recommend_only),
            "date_assigned": self._now(),
        }
        try:
            resp = self.client.table(STAGE_ASSIGNMENTS_TABLE).insert(payload).execute()
        except APIError as e:
            if _is_unique_violation(e):
                logger.debug(
                    "[WorkflowStore] duplicate stage assignment ignored (submission=%s, group=%s, user=%s)",
                    submission_id,
                    user_group_id,
                    user_id,
                )
                return None
            table = _missing_table_from_error(e)
            if table:
                raise WorkflowStoreError(table=table) from e
            logger.error("[WorkflowStore] failed to create stage assignment: %s", e)
            raise
        rows = _extract_rows(resp)
        return self._to_assignment(rows[0] if rows else payload)
