from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class SubmissionEventType(str, Enum):
    SUBMISSION_SUBMITTED = "submission_submitted"
    PARTICIPANT_ASSIGNED = "participant_assigned"


class SubmissionLogEntry(BaseModel):
    id: Optional[str] = None
    submission_id: str
    user_id: Optional[str] = None
    event_type: SubmissionEventType
    message_key: str
    params: dict[str, Any] = Field(default_factory=dict)
    date_logged: datetime

    model_config = ConfigDict(from_attributes=True)
