"""API v1 router."""

from fastapi import APIRouter

from deal_transfer.api.v1.endpoints import status, transfer

router = APIRouter()

router.include_router(transfer.router, tags=["transfer"])
router.include_router(status.router, prefix="/status", tags=["status"])
