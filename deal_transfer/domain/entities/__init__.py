"""Domain entities for Bitrix24 CRM."""

from deal_transfer.domain.entities.activity import OWNER_TYPE_DEAL, Activity
from deal_transfer.domain.entities.base import BitrixEntity, parse_bitrix_datetime, positive_id
from deal_transfer.domain.entities.deal import Deal
from deal_transfer.domain.entities.task import (
    OPEN_STATUS,
    ChecklistItem,
    Comment,
    Task,
    TaskStatus,
)
from deal_transfer.domain.entities.transfer import TransferRecord, TransferResult

__all__ = [
    "BitrixEntity",
    "Deal",
    "Task",
    "TaskStatus",
    "OPEN_STATUS",
    "ChecklistItem",
    "Comment",
    "Activity",
    "OWNER_TYPE_DEAL",
    "TransferRecord",
    "TransferResult",
    "parse_bitrix_datetime",
    "positive_id",
]
