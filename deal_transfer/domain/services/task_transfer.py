"""Copy the tasks of a deal, with their checklists and comments."""

import asyncio
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from deal_transfer.config import Settings, get_settings
from deal_transfer.core.exceptions import BitrixAPIError
from deal_transfer.core.logging import get_logger
from deal_transfer.domain.entities import (
    OPEN_STATUS,
    ChecklistItem,
    Comment,
    Task,
    TransferRecord,
)
from deal_transfer.domain.services.field_policy import deal_tag, resolve_responsible
from deal_transfer.infrastructure.bitrix.client import BitrixClient

TASK_SELECT = [
    "ID",
    "TITLE",
    "DESCRIPTION",
    "RESPONSIBLE_ID",
    "CREATED_BY",
    "DEADLINE",
    "PRIORITY",
    "START_DATE_PLAN",
    "END_DATE_PLAN",
    "STATUS",
    "CHANGED_DATE",
    "UF_CRM_TASK",
]

# Copied as-is when present
_TASK_PASSTHROUGH = (
    ("DEADLINE", "deadline"),
    ("PRIORITY", "priority"),
    ("START_DATE_PLAN", "start_date_plan"),
    ("END_DATE_PLAN", "end_date_plan"),
)


@dataclass
class TaskTransferReport:
    """Counts and source→copy mapping of one task transfer."""

    copied: int = 0
    failed: int = 0
    records: dict[str, TransferRecord] = field(default_factory=dict)


def build_task_fields(
    task: Task,
    new_deal_id: Any,
    default_responsible_id: int,
    completed_task_policy: str = "preserve",
) -> dict[str, Any]:
    """Fields for tasks.task.add that recreate ``task`` on another deal.

    A blank title becomes ``Task #<id>`` and a missing responsible falls
    back to the default user, since Bitrix rejects both.
    """
    fields: dict[str, Any] = {
        "TITLE": task.title or f"Task #{task.id}",
        "RESPONSIBLE_ID": resolve_responsible(task.responsible_id, default_responsible_id),
        "DESCRIPTION": task.description or "",
        "UF_CRM_TASK": [deal_tag(new_deal_id)],
    }

    for bitrix_name, attr in _TASK_PASSTHROUGH:
        value = getattr(task, attr)
        if value:
            fields[bitrix_name] = value

    if completed_task_policy == "reopen":
        fields["STATUS"] = int(OPEN_STATUS)
    elif task.status:
        fields["STATUS"] = task.status

    return fields


class TaskTransferEngine:
    """Recreates every task bound to a source deal on a new deal.

    Tasks are created in batches of ``transfer_batch_size``: all creations
    of a batch run concurrently and the next batch starts once every one of
    them has finished. A failing task is logged and counted, never fatal.
    """

    def __init__(
        self,
        bitrix_client: BitrixClient,
        settings: Settings | None = None,
        logger=None,
    ):
        self._bitrix = bitrix_client
        self._settings = settings or get_settings()
        self._logger = logger or get_logger(__name__)

    async def fetch_tasks(self, source_deal_id: Any) -> list[Task]:
        """Get tasks whose UF_CRM_TASK points at the source deal."""
        raw_tasks = await self._bitrix.list_tasks(
            {"UF_CRM_TASK": deal_tag(source_deal_id)},
            select=TASK_SELECT,
        )

        tasks: list[Task] = []
        for raw in raw_tasks:
            try:
                task = Task.model_validate(raw)
            except ValidationError as e:
                self._logger.warning("Malformed task skipped", error=str(e))
                continue
            if not task.id:
                self._logger.warning("Task without id skipped", task=raw)
                continue
            tasks.append(task)
        return tasks

    async def transfer_tasks(self, source_deal_id: Any, new_deal_id: Any) -> TaskTransferReport:
        """Copy all tasks of ``source_deal_id`` onto ``new_deal_id``."""
        report = TaskTransferReport()
        self._logger.info(
            "Transferring tasks",
            source_tag=deal_tag(source_deal_id),
            target_tag=deal_tag(new_deal_id),
        )

        tasks = await self.fetch_tasks(source_deal_id)
        if not tasks:
            self._logger.warning("No tasks found for deal", deal_id=source_deal_id)
            return report

        batch_size = self._settings.transfer_batch_size
        for offset in range(0, len(tasks), batch_size):
            batch = tasks[offset:offset + batch_size]
            outcomes = await asyncio.gather(
                *(self._copy_task(task, new_deal_id) for task in batch),
                return_exceptions=True,
            )

            for task, outcome in zip(batch, outcomes):
                if isinstance(outcome, (BitrixAPIError, ValueError)):
                    report.failed += 1
                    self._logger.error(
                        "Task copy failed", task_id=task.id, error=str(outcome)
                    )
                elif isinstance(outcome, BaseException):
                    raise outcome
                else:
                    report.copied += 1
                    report.records[task.id] = outcome

        self._logger.info(
            "Tasks transferred",
            found=len(tasks),
            copied=report.copied,
            failed=report.failed,
        )
        return report

    async def _copy_task(self, task: Task, new_deal_id: Any) -> TransferRecord:
        fields = build_task_fields(
            task,
            new_deal_id,
            self._settings.default_responsible_id,
            self._settings.completed_task_policy,
        )
        new_id = await self._bitrix.add_task(fields)
        if not new_id:
            raise BitrixAPIError(
                f"tasks.task.add returned no id for task {task.id}", method="tasks.task.add"
            )
        self._logger.info("Task copied", task_id=task.id, new_task_id=new_id)

        record = TransferRecord(
            source_id=task.id,
            new_id=new_id,
            original_status=task.status,
            copied_status=fields.get("STATUS"),
            changed_at=task.changed_at,
        )
        if self._settings.copy_checklists:
            record.checklist_copied = await self._copy_checklist(task.id, new_id)
        if self._settings.copy_comments:
            record.comments_copied = await self._copy_comments(task.id, new_id)
        return record

    async def _copy_checklist(self, source_task_id: str, new_task_id: str) -> int:
        try:
            raw_items = await self._bitrix.list_checklist_items(source_task_id)
        except BitrixAPIError as e:
            self._logger.warning(
                "Could not read checklist", task_id=source_task_id, error=str(e)
            )
            return 0

        copied = 0
        for raw in raw_items:
            try:
                item = ChecklistItem.model_validate(raw)
                if not item.title:
                    continue
                await self._bitrix.add_checklist_item(
                    new_task_id,
                    {"TITLE": item.title, "IS_COMPLETE": item.is_complete or "N"},
                )
                copied += 1
            except (BitrixAPIError, ValidationError) as e:
                self._logger.warning(
                    "Checklist item copy failed",
                    task_id=source_task_id,
                    item=raw.get("ID") if isinstance(raw, dict) else None,
                    error=str(e),
                )
        return copied

    async def _copy_comments(self, source_task_id: str, new_task_id: str) -> int:
        try:
            raw_comments = await self._bitrix.list_comments(source_task_id)
        except BitrixAPIError as e:
            self._logger.warning(
                "Could not read comments", task_id=source_task_id, error=str(e)
            )
            return 0

        copied = 0
        for raw in raw_comments:
            try:
                comment = Comment.model_validate(raw)
                if not comment.post_message:
                    continue
                await self._bitrix.add_comment(
                    new_task_id, {"POST_MESSAGE": comment.post_message}
                )
                copied += 1
            except (BitrixAPIError, ValidationError) as e:
                self._logger.warning(
                    "Comment copy failed",
                    task_id=source_task_id,
                    comment=raw.get("ID") if isinstance(raw, dict) else None,
                    error=str(e),
                )
        return copied
