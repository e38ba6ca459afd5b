"""Deal entity model."""

from typing import Any, Optional

from pydantic import Field, field_validator

from deal_transfer.domain.entities.base import BitrixEntity


class Deal(BitrixEntity):
    """Bitrix24 Deal (CRM Deal) entity.

    Only the fields the transfer reads are declared; every other standard
    field and all UF_* user fields stay in model_extra.
    """

    title: Optional[str] = Field(None, alias="TITLE")
    category_id: Optional[str] = Field(None, alias="CATEGORY_ID")
    stage_id: Optional[str] = Field(None, alias="STAGE_ID")
    assigned_by_id: Optional[Any] = Field(None, alias="ASSIGNED_BY_ID")

    @field_validator("category_id", mode="before")
    @classmethod
    def convert_category(cls, v):
        if v is None or v == "":
            return None
        return str(v)
