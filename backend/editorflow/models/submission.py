from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# Authoring steps run 1..4; progress 0 means the submission has been finalized.
FINAL_AUTHORING_STEP = 4


class Publication(BaseModel):
    id: str
    category_ids: list[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class Submission(BaseModel):
    id: str
    context_id: str
    section_id: Optional[str] = None
    current_publication: Optional[Publication] = None
    submission_progress: int = 1
    date_submitted: Optional[datetime] = None
    date_last_activity: Optional[datetime] = None
    last_modified: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def category_ids(self) -> list[str]:
        if self.current_publication is None:
            return []
        return list(self.current_publication.category_ids)

    @property
    def is_finalized(self) -> bool:
        return self.submission_progress == 0
