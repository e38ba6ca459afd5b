"""Base entity classes for Bitrix24 records."""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def parse_bitrix_datetime(value: Any) -> datetime | None:
    """Parse a Bitrix24 timestamp (ISO 8601, usually with offset).

    Naive values are taken as UTC so that results are always comparable.
    """
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def positive_id(value: Any) -> int | None:
    """Return value as an int if it is a positive identifier, else None."""
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


class BitrixEntity(BaseModel):
    """Base class for Bitrix24 records.

    Accepts both the UPPER_CASE keys of crm.* methods and the camelCase keys
    returned by tasks.task.list. Unknown keys (UF_* user fields) are kept.
    """

    model_config = ConfigDict(
        extra="allow",
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    id: Optional[str] = Field(None, validation_alias=AliasChoices("ID", "id"))

    @field_validator("id", mode="before")
    @classmethod
    def convert_id_to_string(cls, v):
        """Bitrix returns ids as strings or ints depending on the method."""
        if v is None:
            return None
        v = str(v).strip()
        return v or None
