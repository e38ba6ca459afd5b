"""Task entity models: tasks and their checklist items and comments."""

from datetime import datetime
from enum import IntEnum
from typing import Any, Optional

from pydantic import AliasChoices, Field, field_validator

from deal_transfer.domain.entities.base import BitrixEntity, parse_bitrix_datetime


class TaskStatus(IntEnum):
    """Bitrix24 task status codes."""

    NEW = 1
    PENDING = 2
    IN_PROGRESS = 3
    SUPPOSEDLY_COMPLETED = 4
    COMPLETED = 5
    DEFERRED = 6


# Status a task is put into when it is (re)opened
OPEN_STATUS = TaskStatus.PENDING


def _alias(upper: str, camel: str) -> AliasChoices:
    return AliasChoices(upper, camel)


class Task(BitrixEntity):
    """Bitrix24 Task as returned by tasks.task.list."""

    title: Optional[str] = Field(None, validation_alias=_alias("TITLE", "title"))
    description: Optional[str] = Field(
        None, validation_alias=_alias("DESCRIPTION", "description")
    )
    responsible_id: Optional[Any] = Field(
        None, validation_alias=_alias("RESPONSIBLE_ID", "responsibleId")
    )
    created_by: Optional[Any] = Field(
        None, validation_alias=_alias("CREATED_BY", "createdBy")
    )
    priority: Optional[str] = Field(None, validation_alias=_alias("PRIORITY", "priority"))
    status: Optional[int] = Field(None, validation_alias=_alias("STATUS", "status"))

    deadline: Optional[str] = Field(None, validation_alias=_alias("DEADLINE", "deadline"))
    start_date_plan: Optional[str] = Field(
        None, validation_alias=_alias("START_DATE_PLAN", "startDatePlan")
    )
    end_date_plan: Optional[str] = Field(
        None, validation_alias=_alias("END_DATE_PLAN", "endDatePlan")
    )
    changed_date: Optional[str] = Field(
        None, validation_alias=_alias("CHANGED_DATE", "changedDate")
    )

    # CRM binding, e.g. ["D_123", "C_45"]
    uf_crm_task: Optional[Any] = Field(
        None, validation_alias=_alias("UF_CRM_TASK", "ufCrmTask")
    )

    @field_validator("priority", "deadline", "start_date_plan", "end_date_plan",
                     "changed_date", mode="before")
    @classmethod
    def convert_scalar_to_string(cls, v):
        if v is None or v == "":
            return None
        return str(v)

    @field_validator("status", mode="before")
    @classmethod
    def convert_status(cls, v):
        try:
            return int(v)
        except (TypeError, ValueError):
            return None

    @property
    def changed_at(self) -> datetime | None:
        return parse_bitrix_datetime(self.changed_date)

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED


class ChecklistItem(BitrixEntity):
    """Item of a task checklist (task.checklistitem.getlist)."""

    title: Optional[str] = Field(None, validation_alias=_alias("TITLE", "title"))
    is_complete: Optional[str] = Field(
        None, validation_alias=_alias("IS_COMPLETE", "isComplete")
    )
    parent_id: Optional[Any] = Field(
        None, validation_alias=_alias("PARENT_ID", "parentId")
    )

    @field_validator("is_complete", mode="before")
    @classmethod
    def convert_flag(cls, v):
        if isinstance(v, bool):
            return "Y" if v else "N"
        if v is None or v == "":
            return None
        return str(v)


class Comment(BitrixEntity):
    """Task comment (task.commentitem.getlist)."""

    post_message: Optional[str] = Field(
        None, validation_alias=_alias("POST_MESSAGE", "postMessage")
    )
    author_id: Optional[Any] = Field(None, validation_alias=_alias("AUTHOR_ID", "authorId"))
