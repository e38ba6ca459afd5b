"""Copy CRM activities (calls, meetings, e-mails) of a deal."""

from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from deal_transfer.config import Settings, get_settings
from deal_transfer.core.exceptions import BitrixAPIError
from deal_transfer.core.logging import get_logger
from deal_transfer.domain.entities import OWNER_TYPE_DEAL, Activity
from deal_transfer.domain.services.field_policy import resolve_responsible
from deal_transfer.infrastructure.bitrix.client import BitrixClient

ACTIVITY_SELECT = ["*", "COMMUNICATIONS"]


@dataclass
class ActivityTransferReport:
    copied: int = 0
    failed: int = 0


def activity_subject(activity: Activity) -> str:
    return activity.subject or f"Activity #{activity.id}"


def build_activity_fields(
    activity: Activity,
    new_deal_id: Any,
    default_responsible_id: int,
    reset_completion: bool = True,
) -> dict[str, Any]:
    """Fields for crm.activity.add that recreate ``activity`` on another deal."""
    fields: dict[str, Any] = {
        "SUBJECT": activity_subject(activity),
        "TYPE_ID": activity.type_id,
        "DIRECTION": activity.direction,
        "START_TIME": activity.start_time,
        "END_TIME": activity.end_time,
        "DEADLINE": activity.deadline,
        "PRIORITY": activity.priority,
        "DESCRIPTION": activity.description or "",
        "DESCRIPTION_TYPE": activity.description_type,
        "RESPONSIBLE_ID": resolve_responsible(activity.responsible_id, default_responsible_id),
        "COMMUNICATIONS": activity.communications,
        "COMPLETED": "N" if reset_completion else (activity.completed or "N"),
        "OWNER_ID": new_deal_id,
        "OWNER_TYPE_ID": OWNER_TYPE_DEAL,
    }
    return {k: v for k, v in fields.items() if v is not None}


class ActivityTransferEngine:
    """Recreates the activities of a source deal on a new deal, one by one."""

    def __init__(
        self,
        bitrix_client: BitrixClient,
        settings: Settings | None = None,
        logger=None,
    ):
        self._bitrix = bitrix_client
        self._settings = settings or get_settings()
        self._logger = logger or get_logger(__name__)

    async def transfer_activities(
        self, source_deal_id: Any, new_deal_id: Any
    ) -> ActivityTransferReport:
        """Copy all activities of ``source_deal_id`` onto ``new_deal_id``."""
        report = ActivityTransferReport()
        self._logger.info(
            "Transferring activities",
            source_deal_id=source_deal_id,
            new_deal_id=new_deal_id,
        )

        raw_activities = await self._bitrix.list_activities(
            {"OWNER_TYPE_ID": OWNER_TYPE_DEAL, "OWNER_ID": source_deal_id},
            select=ACTIVITY_SELECT,
        )

        for raw in raw_activities:
            try:
                activity = Activity.model_validate(raw)
                fields = build_activity_fields(
                    activity,
                    new_deal_id,
                    self._settings.default_responsible_id,
                    self._settings.reset_activity_completion,
                )
                new_id = await self._bitrix.add_activity(fields)
            except (BitrixAPIError, ValidationError) as e:
                report.failed += 1
                self._logger.warning(
                    "Activity copy failed",
                    activity_id=raw.get("ID") if isinstance(raw, dict) else None,
                    error=str(e),
                )
                continue

            report.copied += 1
            self._logger.info(
                "Activity copied",
                activity_id=activity.id,
                new_activity_id=new_id,
                subject=fields["SUBJECT"],
            )

        self._logger.info(
            "Activities transferred", copied=report.copied, failed=report.failed
        )
        return report
