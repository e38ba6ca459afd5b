"""Service status endpoints."""

from fastapi import APIRouter

from deal_transfer.infrastructure.scheduler import get_scheduler_status

router = APIRouter()


@router.get("/scheduler")
async def get_scheduler_info() -> dict:
    """Get scheduler status and poll job information."""
    return get_scheduler_status()
