"""Bitrix24 API client: single-call gateway and cursor paginator."""

import time
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from deal_transfer.config import Settings, get_settings
from deal_transfer.core.exceptions import (
    BitrixAPIError,
    BitrixAuthError,
    BitrixRateLimitError,
    PaginationLimitError,
)
from deal_transfer.core.logging import get_logger
from deal_transfer.core.webhooks import build_nested_query

logger = get_logger(__name__)


class BitrixClient:
    """Async client for Bitrix24 REST API.

    Every remote operation is one HTTP POST to ``<webhook>/<method>``.
    Parameters travel either in the URL query string (``as_query=True``,
    Bitrix bracket notation) or as a JSON body. Bitrix answers errors with
    4xx/5xx statuses and an ``error`` envelope; the envelope is read
    whatever the status code.

    Calls are attempted ``bitrix_max_attempts`` times, and only rate limit
    errors are ever retried. With the default of 1 every call is made
    exactly once: the transport itself never retries.
    """

    def __init__(
        self,
        webhook_url: str | None = None,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize Bitrix client.

        Args:
            webhook_url: Bitrix24 webhook URL. If not provided, uses settings.
            settings: Settings to read limits from. Defaults to get_settings().
            transport: httpx transport override (tests use httpx.MockTransport)
        """
        settings = settings or get_settings()
        self._webhook_url = webhook_url.rstrip("/") if webhook_url else settings.webhook_base
        self._transport = transport
        self._max_attempts = settings.bitrix_max_attempts
        self._max_pages = settings.pagination_max_pages

    # === Gateway ===

    async def call(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        as_query: bool = False,
    ) -> Any:
        """Call a REST method and return the unwrapped ``result`` payload.

        Raises:
            BitrixAPIError: The response carried an error or the call failed
            BitrixRateLimitError: QUERY_LIMIT_EXCEEDED
            BitrixAuthError: expired or invalid token
        """
        response = await self.call_raw(method, params, as_query=as_query)
        return response.get("result")

    async def call_raw(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        as_query: bool = False,
    ) -> dict[str, Any]:
        """Call a REST method and return the whole response envelope."""
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(BitrixRateLimitError),
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=1, min=4, max=60),
            reraise=True,
        ):
            with attempt:
                return await self._send(method, params or {}, as_query)

    async def _send(
        self,
        method: str,
        params: dict[str, Any],
        as_query: bool,
    ) -> dict[str, Any]:
        started = time.monotonic()
        try:
            response = await self._post(method, params, as_query)
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Bitrix API call failed", method=method, error=str(e))
            raise BitrixAPIError(f"API call failed: {method}: {e}", method=method) from e
        finally:
            logger.debug(
                "Bitrix API call",
                method=method,
                as_query=as_query,
                elapsed_ms=round((time.monotonic() - started) * 1000, 1),
            )

        if not isinstance(response, dict):
            raise BitrixAPIError(
                f"Unexpected response from {method}: {response!r}", method=method
            )
        self._check_envelope(method, response)
        return response

    async def _post(self, method: str, params: dict[str, Any], as_query: bool) -> Any:
        url = f"{self._webhook_url}/{method}"
        async with httpx.AsyncClient(transport=self._transport, verify=False) as http:
            if as_query:
                response = await http.post(url, params=build_nested_query(params))
            else:
                response = await http.post(url, json=params)
        # Error envelopes come with 4xx/5xx statuses
        try:
            return response.json()
        except ValueError:
            response.raise_for_status()
            raise

    @staticmethod
    def _check_envelope(method: str, response: dict[str, Any]) -> None:
        if "error" not in response:
            return

        error_code = str(response.get("error") or "")
        error_msg = response.get("error_description") or error_code or str(response)

        if "QUERY_LIMIT_EXCEEDED" in error_code:
            logger.warning("Rate limit hit", method=method)
            raise BitrixRateLimitError(
                f"Rate limit exceeded: {error_msg}", method, error_code, error_msg
            )
        if "expired_token" in error_code or "invalid_token" in error_code:
            logger.error("Authentication failed", method=method)
            raise BitrixAuthError(
                f"Authentication error: {error_msg}", method, error_code, error_msg
            )
        raise BitrixAPIError(
            f"Bitrix API error in {method}: {error_msg}", method, error_code, error_msg
        )

    # === Paginator ===

    async def list_all(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        result_key: str | None = None,
    ) -> list[dict[str, Any]]:
        """Collect every page of a list method.

        Follows the ``next`` cursor until the response omits it.

        Args:
            method: Bitrix24 list method (e.g., tasks.task.list)
            params: Request parameters (filter, select, order)
            result_key: Key of the item list inside ``result`` ("tasks"),
                or None when ``result`` is the list itself

        Raises:
            PaginationLimitError: More than ``pagination_max_pages`` pages
        """
        items: list[dict[str, Any]] = []
        start = 0
        pages = 0

        while True:
            response = await self.call_raw(
                method, {**(params or {}), "start": start}, as_query=True
            )
            pages += 1
            items.extend(self._page_items(response, result_key))

            next_start = response.get("next")
            if not next_start:
                break
            if pages >= self._max_pages:
                raise PaginationLimitError(
                    f"{method} exceeded {self._max_pages} pages",
                    method=method,
                )
            start = next_start

        logger.debug("Fetched records", method=method, pages=pages, count=len(items))
        return items

    async def list_first(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        result_key: str | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch only the first page of a list method."""
        response = await self.call_raw(method, {**(params or {}), "start": 0}, as_query=True)
        return self._page_items(response, result_key)

    @staticmethod
    def _page_items(response: dict[str, Any], result_key: str | None) -> list[dict[str, Any]]:
        chunk = response.get("result")
        if result_key:
            chunk = chunk.get(result_key) if isinstance(chunk, dict) else None
        if isinstance(chunk, dict):
            chunk = list(chunk.values())
        return list(chunk or [])

    # === Deals ===

    async def get_deal(self, deal_id: Any) -> dict[str, Any] | None:
        """Get a deal with all fields, or None when it does not exist."""
        try:
            deal = await self.call("crm.deal.get", {"id": deal_id}, as_query=True)
        except BitrixAPIError as e:
            if "not found" in (e.description or "").lower():
                return None
            raise
        return deal or None

    async def add_deal(self, fields: dict[str, Any]) -> Any:
        """Create a deal. Returns the new deal id."""
        return await self.call("crm.deal.add", {"fields": fields})

    async def list_deals(
        self,
        filter_params: dict[str, Any],
        order: dict[str, str] | None = None,
        select: list[str] | None = None,
        first_page_only: bool = False,
    ) -> list[dict[str, Any]]:
        """List deals matching a filter."""
        params: dict[str, Any] = {"filter": filter_params}
        if order:
            params["order"] = order
        if select:
            params["select"] = select
        if first_page_only:
            return await self.list_first("crm.deal.list", params)
        return await self.list_all("crm.deal.list", params)

    # === Tasks ===

    async def list_tasks(
        self,
        filter_params: dict[str, Any],
        select: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        """List tasks matching a filter across all pages."""
        params: dict[str, Any] = {"filter": filter_params}
        if select:
            params["select"] = select
        return await self.list_all("tasks.task.list", params, result_key="tasks")

    async def add_task(self, fields: dict[str, Any]) -> str | None:
        """Create a task. Returns the new task id."""
        result = await self.call("tasks.task.add", {"fields": fields})
        if isinstance(result, dict):
            task = result.get("task") or {}
            new_id = task.get("id") or task.get("ID")
        else:
            new_id = result
        return str(new_id) if new_id else None

    async def update_task(self, task_id: Any, fields: dict[str, Any]) -> Any:
        """Update fields of an existing task."""
        return await self.call("tasks.task.update", {"taskId": task_id, "fields": fields})

    async def list_checklist_items(self, task_id: Any) -> list[dict[str, Any]]:
        """Get checklist items of a task."""
        result = await self.call(
            "task.checklistitem.getlist", {"TASKID": task_id}, as_query=True
        )
        return self._page_items({"result": result}, None)

    async def add_checklist_item(self, task_id: Any, fields: dict[str, Any]) -> Any:
        """Add a checklist item to a task."""
        return await self.call(
            "task.checklistitem.add", {"TASKID": task_id, "FIELDS": fields}
        )

    async def list_comments(self, task_id: Any) -> list[dict[str, Any]]:
        """Get comments of a task."""
        result = await self.call(
            "task.commentitem.getlist", {"TASKID": task_id}, as_query=True
        )
        return self._page_items({"result": result}, None)

    async def add_comment(self, task_id: Any, fields: dict[str, Any]) -> Any:
        """Add a comment to a task."""
        return await self.call("task.commentitem.add", {"TASKID": task_id, "FIELDS": fields})

    # === Activities ===

    async def list_activities(
        self,
        filter_params: dict[str, Any],
        order: dict[str, str] | None = None,
        select: list[str] | None = None,
        first_page_only: bool = False,
    ) -> list[dict[str, Any]]:
        """List CRM activities matching a filter."""
        params: dict[str, Any] = {"filter": filter_params}
        if order:
            params["order"] = order
        if select:
            params["select"] = select
        if first_page_only:
            return await self.list_first("crm.activity.list", params)
        return await self.list_all("crm.activity.list", params)

    async def add_activity(self, fields: dict[str, Any]) -> Any:
        """Create a CRM activity. Returns the new activity id."""
        return await self.call("crm.activity.add", {"fields": fields})
