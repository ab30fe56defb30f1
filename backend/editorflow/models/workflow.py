from __future__ import annotations

from enum import Enum, IntEnum


class WorkflowStage(IntEnum):
    """
    编辑流程阶段（封闭枚举）

    中文注释:
    - 数值与历史数据保持一致（1..5），数据库里存的是整数 stage_id。
    - 阶段集合在运行时不可增删。
    """

    SUBMISSION = 1
    INTERNAL_REVIEW = 2
    EXTERNAL_REVIEW = 3
    EDITING = 4
    PRODUCTION = 5


class RoleId(IntEnum):
    SITE_ADMIN = 1
    MANAGER = 16
    SUB_EDITOR = 17
    ASSISTANT = 4097
    REVIEWER = 4096
    AUTHOR = 65536
    READER = 1048576


# Roles eligible for the single-member auto-assignment at intake.
INTAKE_SINGLETON_ROLES: frozenset[RoleId] = frozenset({RoleId.MANAGER, RoleId.ASSISTANT})


class GroupingType(str, Enum):
    """Submission classification used to route sub-editor assignment."""

    SECTION = "section"
    CATEGORY = "category"


def normalize_stage(value: int | str | None) -> WorkflowStage | None:
    if value is None:
        return None
    try:
        return WorkflowStage(int(str(value).strip()))
    except (TypeError, ValueError):
        return None
