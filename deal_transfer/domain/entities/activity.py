"""Activity entity model (calls, meetings, e-mails logged on a deal)."""

from typing import Any, Optional

from pydantic import Field, field_validator

from deal_transfer.domain.entities.base import BitrixEntity

# crm.enum.ownertype
OWNER_TYPE_DEAL = 2


class Activity(BitrixEntity):
    """Bitrix24 CRM activity (crm.activity.list)."""

    subject: Optional[str] = Field(None, alias="SUBJECT")
    type_id: Optional[str] = Field(None, alias="TYPE_ID")
    direction: Optional[str] = Field(None, alias="DIRECTION")
    description: Optional[str] = Field(None, alias="DESCRIPTION")
    description_type: Optional[str] = Field(None, alias="DESCRIPTION_TYPE")
    priority: Optional[str] = Field(None, alias="PRIORITY")
    completed: Optional[str] = Field(None, alias="COMPLETED")
    responsible_id: Optional[Any] = Field(None, alias="RESPONSIBLE_ID")

    start_time: Optional[str] = Field(None, alias="START_TIME")
    end_time: Optional[str] = Field(None, alias="END_TIME")
    deadline: Optional[str] = Field(None, alias="DEADLINE")

    owner_id: Optional[str] = Field(None, alias="OWNER_ID")
    owner_type_id: Optional[str] = Field(None, alias="OWNER_TYPE_ID")
    communications: list[dict[str, Any]] = Field(default_factory=list, alias="COMMUNICATIONS")

    @field_validator("type_id", "direction", "description_type", "priority", "owner_id",
                     "owner_type_id", "start_time", "end_time", "deadline", mode="before")
    @classmethod
    def convert_scalar_to_string(cls, v):
        if v is None or v == "":
            return None
        return str(v)

    @field_validator("communications", mode="before")
    @classmethod
    def convert_communications(cls, v):
        if not v:
            return []
        if isinstance(v, dict):
            return list(v.values())
        return v
