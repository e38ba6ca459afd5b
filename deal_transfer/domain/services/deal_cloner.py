"""Create a copy of a deal in another pipeline."""

from typing import Any

from deal_transfer.config import Settings, get_settings
from deal_transfer.core.exceptions import BitrixAPIError, DealNotFoundError
from deal_transfer.core.logging import get_logger
from deal_transfer.domain.services.field_policy import build_clone_fields
from deal_transfer.infrastructure.bitrix.client import BitrixClient


class DealCloner:
    """Fetches a source deal and creates its clone in a target category."""

    def __init__(
        self,
        bitrix_client: BitrixClient,
        settings: Settings | None = None,
        logger=None,
    ):
        self._bitrix = bitrix_client
        self._settings = settings or get_settings()
        self._logger = logger or get_logger(__name__)

    async def fetch_deal(self, deal_id: Any) -> dict[str, Any]:
        """Get the source deal.

        Raises:
            DealNotFoundError: Bitrix returned nothing for this id
        """
        deal = await self._bitrix.get_deal(deal_id)
        if not deal:
            raise DealNotFoundError(deal_id)
        return deal

    async def create_clone(self, source: dict[str, Any], target_category_id: int) -> str:
        """Create a new deal from an already fetched source deal.

        Returns:
            New deal id
        """
        fields = build_clone_fields(
            source,
            target_category_id,
            strict=self._settings.strict_deal_exclusion,
            initial_stage=self._settings.initial_stage,
            title_suffix=self._settings.deal_title_suffix,
            default_responsible_id=self._settings.default_responsible_id,
        )

        new_id = await self._bitrix.add_deal(fields)
        if isinstance(new_id, dict):
            new_id = new_id.get("result") or new_id.get("id")
        if not new_id:
            raise BitrixAPIError("crm.deal.add returned no deal id", method="crm.deal.add")

        self._logger.info(
            "Deal cloned",
            source_deal_id=source.get("ID"),
            new_deal_id=new_id,
            target_category_id=target_category_id,
            fields_copied=len(fields),
        )
        return str(new_id)

    async def clone_deal(self, source_id: Any, target_category_id: int) -> str:
        """Copy deal ``source_id`` into ``target_category_id``.

        Raises:
            DealNotFoundError: Source deal does not exist
            BitrixAPIError: Fetch or creation failed
        """
        self._logger.info(
            "Cloning deal", source_deal_id=source_id, target_category_id=target_category_id
        )
        source = await self.fetch_deal(source_id)
        return await self.create_clone(source, target_category_id)
