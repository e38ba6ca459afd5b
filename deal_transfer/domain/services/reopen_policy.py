"""Make sure a transferred deal has an actionable open task.

If some copied task was not completed in the source, the most recently
changed of them is forced open. If every task was completed (or there were
none), a follow-up task is created from the latest activity of the source
deal instead.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from pydantic import ValidationError

from deal_transfer.config import Settings, get_settings
from deal_transfer.core.exceptions import BitrixAPIError
from deal_transfer.core.logging import get_logger
from deal_transfer.domain.entities import (
    OPEN_STATUS,
    OWNER_TYPE_DEAL,
    Activity,
    TaskStatus,
    TransferRecord,
)
from deal_transfer.domain.services.activity_transfer import activity_subject
from deal_transfer.domain.services.field_policy import deal_tag, resolve_responsible
from deal_transfer.infrastructure.bitrix.client import BitrixClient

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class ReopenOutcome:
    reopened_task_id: str | None = None
    follow_up_task_id: str | None = None
    error: str | None = None


def select_reopen_target(records: Iterable[TransferRecord]) -> TransferRecord | None:
    """Most recently changed record whose source task was not completed.

    Ties are broken by whichever comes first; records without a changed
    date rank oldest.
    """
    candidates = [r for r in records if r.original_status != TaskStatus.COMPLETED]
    if not candidates:
        return None
    return max(candidates, key=lambda r: r.changed_at or _OLDEST)


def build_follow_up_fields(
    new_deal_id: Any,
    default_responsible_id: int,
    activity: Activity | None = None,
    deal_title: str | None = None,
) -> dict[str, Any]:
    """Fields of the follow-up task created when nothing is left open."""
    fields: dict[str, Any] = {
        "STATUS": int(OPEN_STATUS),
        "UF_CRM_TASK": [deal_tag(new_deal_id)],
    }

    if activity is None:
        fields["TITLE"] = f"Follow-up: {deal_title or f'deal #{new_deal_id}'}"
        fields["RESPONSIBLE_ID"] = default_responsible_id
        return fields

    fields["TITLE"] = f"Follow-up: {activity_subject(activity)}"
    fields["RESPONSIBLE_ID"] = resolve_responsible(
        activity.responsible_id, default_responsible_id
    )
    fields["DESCRIPTION"] = activity.description or ""
    if activity.start_time:
        fields["START_DATE_PLAN"] = activity.start_time
    if activity.end_time:
        fields["END_DATE_PLAN"] = activity.end_time
    deadline = activity.deadline or activity.end_time
    if deadline:
        fields["DEADLINE"] = deadline
    return fields


class ReopenPolicy:
    """Applies the reopen / follow-up rule after tasks were transferred.

    Guarantees that exactly one task is reopened (or found already open),
    or that exactly one follow-up task is created. Under the default
    ``preserve`` status policy other copies that were not completed in the
    source keep their status, so a deal with several open source tasks
    ends with several open copies; only the most recently changed one is
    touched here.
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

    async def apply(
        self,
        source_deal_id: Any,
        new_deal_id: Any,
        records: Iterable[TransferRecord],
        deal_title: str | None = None,
    ) -> ReopenOutcome:
        target = select_reopen_target(records)
        if target is not None:
            return await self._reopen(target)
        return await self._create_follow_up(source_deal_id, new_deal_id, deal_title)

    async def _reopen(self, record: TransferRecord) -> ReopenOutcome:
        if record.copied_status == OPEN_STATUS:
            self._logger.info("Latest task already open", task_id=record.new_id)
            return ReopenOutcome(reopened_task_id=record.new_id)

        try:
            await self._bitrix.update_task(record.new_id, {"STATUS": int(OPEN_STATUS)})
        except BitrixAPIError as e:
            self._logger.error("Could not reopen task", task_id=record.new_id, error=str(e))
            return ReopenOutcome(error=str(e))

        record.copied_status = int(OPEN_STATUS)
        self._logger.info(
            "Task reopened",
            task_id=record.new_id,
            source_task_id=record.source_id,
            original_status=record.original_status,
        )
        return ReopenOutcome(reopened_task_id=record.new_id)

    async def _latest_activity(self, source_deal_id: Any) -> Activity | None:
        try:
            activities = await self._bitrix.list_activities(
                {"OWNER_TYPE_ID": OWNER_TYPE_DEAL, "OWNER_ID": source_deal_id},
                order={"DEADLINE": "DESC"},
                first_page_only=True,
            )
        except BitrixAPIError as e:
            self._logger.warning(
                "Could not read activities for follow-up",
                deal_id=source_deal_id,
                error=str(e),
            )
            return None

        for raw in activities:
            try:
                return Activity.model_validate(raw)
            except ValidationError as e:
                self._logger.warning("Malformed activity skipped", error=str(e))
        return None

    async def _create_follow_up(
        self,
        source_deal_id: Any,
        new_deal_id: Any,
        deal_title: str | None,
    ) -> ReopenOutcome:
        activity = await self._latest_activity(source_deal_id)
        fields = build_follow_up_fields(
            new_deal_id,
            self._settings.default_responsible_id,
            activity=activity,
            deal_title=deal_title,
        )

        try:
            new_task_id = await self._bitrix.add_task(fields)
        except BitrixAPIError as e:
            self._logger.error(
                "Could not create follow-up task", deal_id=new_deal_id, error=str(e)
            )
            return ReopenOutcome(error=str(e))

        self._logger.info(
            "Follow-up task created",
            task_id=new_task_id,
            deal_id=new_deal_id,
            activity_id=activity.id if activity else None,
        )
        return ReopenOutcome(follow_up_task_id=new_task_id)
