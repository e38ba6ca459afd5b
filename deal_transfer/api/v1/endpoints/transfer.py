"""Deal transfer receiver endpoints."""

import json
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from deal_transfer.api.v1.schemas.transfer import (
    TransferItemResult,
    TransferRequest,
    TransferResponse,
)
from deal_transfer.core.exceptions import DealNotFoundError
from deal_transfer.core.logging import get_logger
from deal_transfer.core.webhooks import extract_deal_ids, parse_nested_query
from deal_transfer.domain.services.transfer_service import TransferService

router = APIRouter()
logger = get_logger(__name__)


def get_transfer_service() -> TransferService:
    """Get TransferService instance for dependency injection."""
    return TransferService()


async def read_payload(request: Request) -> dict[str, Any]:
    """Merge query string and body into one payload.

    JSON bodies are used as they are. Anything else is parsed as
    URL-encoded form data, which is what Bitrix24 business process
    webhooks and event handlers send.
    """
    payload: dict[str, Any] = parse_nested_query(request.url.query)

    body = await request.body()
    if not body:
        return payload

    content_type = request.headers.get("content-type", "")
    if "json" in content_type:
        try:
            data = json.loads(body)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid JSON body")
        if not isinstance(data, dict):
            raise HTTPException(status_code=400, detail="JSON body must be an object")
    else:
        try:
            data = parse_nested_query(body.decode("utf-8"))
        except UnicodeDecodeError:
            raise HTTPException(status_code=400, detail="Body is not valid UTF-8")

    payload.update(data)
    return payload


def _error_response(status_code: int, error: str, results=None) -> JSONResponse:
    response = TransferResponse(ok=False, error=error, results=results or [])
    return JSONResponse(status_code=status_code, content=response.model_dump())


async def _handle_transfer(request: Request, service: TransferService) -> JSONResponse:
    payload = await read_payload(request)

    raw_deal_id = extract_deal_ids(payload)
    if raw_deal_id in (None, "", []):
        logger.warning("Transfer request without deal_id")
        return _error_response(400, "deal_id is required")

    try:
        transfer_request = TransferRequest(
            deal_id=raw_deal_id,
            target_category_id=payload.get("target_category_id"),
        )
    except ValidationError as e:
        return _error_response(400, f"Invalid request: {e.errors()[0]['msg']}")

    deal_ids = transfer_request.deal_ids
    if not deal_ids:
        return _error_response(400, "deal_id is required")

    logger.info(
        "Transfer request received",
        deal_ids=deal_ids,
        target_category_id=transfer_request.target_category_id,
    )

    # One id at a time; failures are recorded per id
    results: list[TransferItemResult] = []
    not_found = False
    for deal_id in deal_ids:
        try:
            result = await service.transfer_deal(deal_id, transfer_request.target_category_id)
        except DealNotFoundError as e:
            not_found = True
            logger.warning("Deal not found", deal_id=deal_id)
            results.append(TransferItemResult(deal_id=deal_id, ok=False, error=e.message))
        except Exception as e:
            logger.error("Deal transfer failed", deal_id=deal_id, error=str(e), exc_info=True)
            results.append(TransferItemResult(deal_id=deal_id, ok=False, error=str(e)))
        else:
            results.append(
                TransferItemResult(deal_id=deal_id, ok=True, result=result.model_dump())
            )

    failures = [r for r in results if not r.ok]
    if not failures:
        return JSONResponse(
            status_code=200,
            content=TransferResponse(ok=True, results=results).model_dump(),
        )

    if len(failures) == 1:
        error = failures[0].error or "Transfer failed"
    else:
        error = f"{len(failures)} of {len(results)} transfers failed"

    status_code = 404 if not_found and not transfer_request.is_list else 500
    return _error_response(status_code, error, results)


@router.post("/")
async def transfer_deal(
    request: Request,
    service: TransferService = Depends(get_transfer_service),
) -> JSONResponse:
    """Transfer one or more deals into the target pipeline.

    Body: ``{"deal_id": 123 | [123, 456], "target_category_id": 5}``.
    """
    return await _handle_transfer(request, service)


@router.post("/webhook")
async def transfer_deal_webhook(
    request: Request,
    service: TransferService = Depends(get_transfer_service),
) -> JSONResponse:
    """Same as ``POST /``, for Bitrix24 outbound webhooks and robots."""
    return await _handle_transfer(request, service)
