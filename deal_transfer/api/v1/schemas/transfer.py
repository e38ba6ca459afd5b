"""Pydantic schemas for the transfer receiver."""

from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator

DealId = Union[int, str]


class TransferRequest(BaseModel):
    """Body of POST / and POST /webhook."""

    deal_id: Union[DealId, list[DealId]] = Field(
        ..., description="Source deal id, or a list of ids processed one by one"
    )
    target_category_id: Optional[int] = Field(
        None, description="Target pipeline; TARGET_CATEGORY_ID when omitted"
    )

    @field_validator("target_category_id", mode="before")
    @classmethod
    def empty_category_is_none(cls, v):
        if v == "":
            return None
        return v

    @property
    def deal_ids(self) -> list[str]:
        """Normalized list of non-blank deal ids."""
        values = self.deal_id if isinstance(self.deal_id, list) else [self.deal_id]
        return [str(v).strip() for v in values if str(v).strip()]

    @property
    def is_list(self) -> bool:
        return isinstance(self.deal_id, list)


class TransferItemResult(BaseModel):
    """Outcome for one deal id."""

    deal_id: str
    ok: bool
    error: Optional[str] = None
    result: Optional[dict[str, Any]] = None


class TransferResponse(BaseModel):
    """Response of the transfer receiver."""

    ok: bool
    results: list[TransferItemResult] = Field(default_factory=list)
    error: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field("ok")
