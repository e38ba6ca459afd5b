"""Deal transfer orchestration: clone, copy children, leave one open task."""

from typing import Any

from deal_transfer.config import Settings, get_settings
from deal_transfer.core.exceptions import TransferError
from deal_transfer.core.logging import get_logger
from deal_transfer.domain.entities import Deal, TransferResult
from deal_transfer.domain.services.activity_transfer import (
    ActivityTransferEngine,
    ActivityTransferReport,
)
from deal_transfer.domain.services.deal_cloner import DealCloner
from deal_transfer.domain.services.field_policy import clone_title
from deal_transfer.domain.services.reopen_policy import ReopenPolicy
from deal_transfer.domain.services.task_transfer import TaskTransferEngine
from deal_transfer.infrastructure.bitrix.client import BitrixClient


class TransferService:
    """Service for transferring Bitrix24 deals between pipelines."""

    def __init__(
        self,
        bitrix_client: BitrixClient | None = None,
        settings: Settings | None = None,
        logger=None,
    ):
        self._settings = settings or get_settings()
        self._bitrix = bitrix_client or BitrixClient(settings=self._settings)
        self._logger = logger or get_logger(__name__)

        self._cloner = DealCloner(self._bitrix, self._settings, self._logger)
        self._tasks = TaskTransferEngine(self._bitrix, self._settings, self._logger)
        self._activities = ActivityTransferEngine(self._bitrix, self._settings, self._logger)
        self._reopen = ReopenPolicy(self._bitrix, self._settings, self._logger)

    def resolve_target_category(self, target_category_id: int | None) -> int:
        """Explicit target category, or the configured default.

        Raises:
            TransferError: Neither is set
        """
        if target_category_id is not None:
            return int(target_category_id)
        if self._settings.target_category_id:
            return self._settings.target_category_id
        raise TransferError("Target category is not set (TARGET_CATEGORY_ID)")

    async def transfer_deal(
        self,
        source_deal_id: Any,
        target_category_id: int | None = None,
    ) -> TransferResult:
        """Copy a deal with its tasks and activities into another pipeline.

        Raises:
            DealNotFoundError: Source deal does not exist
            BitrixAPIError: Fetching or creating the deal, or listing its
                tasks or activities, failed
            TransferError: No target category
        """
        target = self.resolve_target_category(target_category_id)
        log = self._logger.bind(deal_id=str(source_deal_id))
        log.info("Starting deal transfer", target_category_id=target)

        source = await self._cloner.fetch_deal(source_deal_id)
        new_deal_id = await self._cloner.create_clone(source, target)

        tasks_report = await self._tasks.transfer_tasks(source_deal_id, new_deal_id)

        if self._settings.copy_activities:
            activities_report = await self._activities.transfer_activities(
                source_deal_id, new_deal_id
            )
        else:
            activities_report = ActivityTransferReport()

        outcome = await self._reopen.apply(
            source_deal_id,
            new_deal_id,
            tasks_report.records.values(),
            deal_title=source.get("TITLE"),
        )

        result = TransferResult(
            source_deal_id=str(source_deal_id),
            new_deal_id=new_deal_id,
            target_category_id=target,
            tasks_copied=tasks_report.copied,
            tasks_failed=tasks_report.failed,
            activities_copied=activities_report.copied,
            activities_failed=activities_report.failed,
            reopened_task_id=outcome.reopened_task_id,
            follow_up_task_id=outcome.follow_up_task_id,
        )
        if outcome.error:
            result.warnings.append(f"No open task left on deal {new_deal_id}: {outcome.error}")

        log.info(
            "Deal transfer completed",
            new_deal_id=new_deal_id,
            tasks_copied=result.tasks_copied,
            tasks_failed=result.tasks_failed,
            activities_copied=result.activities_copied,
            activities_failed=result.activities_failed,
        )
        return result

    # === Poll mode ===

    async def find_latest_deal(self, category_id: int) -> Deal | None:
        """Most recently created deal of a category."""
        select = sorted({"ID", "TITLE", "CATEGORY_ID", *self._settings.duplicate_match_fields})
        deals = await self._bitrix.list_deals(
            {"CATEGORY_ID": category_id},
            order={"ID": "DESC"},
            select=select,
            first_page_only=True,
        )
        if not deals:
            return None
        return Deal.model_validate(deals[0])

    async def find_duplicate(self, deal: Deal, target_category_id: int) -> Deal | None:
        """A deal in the target category that already looks like a copy of ``deal``.

        Every field of ``duplicate_match_fields`` must be equal. The title is
        compared with the configured clone suffix applied.
        """
        source = deal.model_dump(by_alias=True)
        expected: dict[str, Any] = {}
        for field_name in self._settings.duplicate_match_fields:
            if field_name.upper() == "TITLE":
                expected["TITLE"] = clone_title(deal.title, self._settings.deal_title_suffix)
            else:
                expected[field_name] = source.get(field_name)

        candidates = await self._bitrix.list_deals(
            {"CATEGORY_ID": target_category_id, **expected},
            select=sorted({"ID", *expected}),
        )

        for raw in candidates:
            candidate = Deal.model_validate(raw)
            if candidate.id == deal.id:
                continue
            values = candidate.model_dump(by_alias=True)
            if all(_same(values.get(k), v) for k, v in expected.items()):
                return candidate
        return None

    async def transfer_latest(
        self,
        source_category_id: int | None = None,
        target_category_id: int | None = None,
    ) -> TransferResult | None:
        """Transfer the newest deal of the source category unless already copied.

        Returns:
            Result of the transfer, an ``already_exists`` result when a
            matching deal is found in the target category, or None when the
            source category is empty
        """
        source_category = (
            source_category_id
            if source_category_id is not None
            else self._settings.poll_source_category_id
        )
        if source_category is None:
            raise TransferError("Source category for polling is not set (POLL_SOURCE_CATEGORY_ID)")
        target = self.resolve_target_category(target_category_id)

        latest = await self.find_latest_deal(source_category)
        if latest is None:
            self._logger.info("No deals in source category", category_id=source_category)
            return None

        if self._settings.duplicate_check_enabled:
            duplicate = await self.find_duplicate(latest, target)
            if duplicate is not None:
                self._logger.info(
                    "Deal already exists in target category",
                    deal_id=latest.id,
                    existing_deal_id=duplicate.id,
                    target_category_id=target,
                )
                return TransferResult(
                    source_deal_id=str(latest.id),
                    new_deal_id=duplicate.id,
                    status="already_exists",
                    target_category_id=target,
                )

        return await self.transfer_deal(latest.id, target)


def _same(left: Any, right: Any) -> bool:
    return str(left if left is not None else "").strip() == str(right if right is not None else "").strip()
