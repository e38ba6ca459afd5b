"""In-memory records produced while transferring one deal."""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


@dataclass
class TransferRecord:
    """Maps one source task to its copy. Lives only for one transfer."""

    source_id: str
    new_id: str
    original_status: int | None
    copied_status: int | None
    changed_at: datetime | None = None
    checklist_copied: int = 0
    comments_copied: int = 0


class TransferResult(BaseModel):
    """Outcome of transferring one deal."""

    source_deal_id: str
    new_deal_id: Optional[str] = None
    status: Literal["transferred", "already_exists"] = "transferred"
    target_category_id: Optional[int] = None
    tasks_copied: int = 0
    tasks_failed: int = 0
    activities_copied: int = 0
    activities_failed: int = 0
    reopened_task_id: Optional[str] = None
    follow_up_task_id: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)
