"""API v1 Pydantic schemas."""

from deal_transfer.api.v1.schemas.transfer import (
    HealthResponse,
    TransferItemResult,
    TransferRequest,
    TransferResponse,
)

__all__ = [
    "HealthResponse",
    "TransferItemResult",
    "TransferRequest",
    "TransferResponse",
]
