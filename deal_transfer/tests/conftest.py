"""Pytest configuration and fixtures."""

import itertools
import os
from unittest.mock import AsyncMock

import pytest

# Set test environment variables before importing app
os.environ.setdefault("BITRIX_WEBHOOK_URL", "https://test.bitrix24.ru/rest/1/test/")


@pytest.fixture
def settings():
    """Settings with explicit test values, ignoring any local .env file."""
    from deal_transfer.config import Settings

    return Settings(
        _env_file=None,
        bitrix_webhook_url="https://test.bitrix24.ru/rest/1/test/",
        target_category_id=7,
        default_responsible_id=1,
        transfer_batch_size=3,
        pagination_max_pages=10,
        poll_source_category_id=3,
    )


@pytest.fixture
def sample_deal_data():
    """Sample Bitrix deal data as returned by crm.deal.get."""
    return {
        "ID": "123",
        "TITLE": "Test Deal",
        "TYPE_ID": "SALE",
        "CATEGORY_ID": "3",
        "STAGE_ID": "C3:PREPARATION",
        "STAGE_SEMANTIC_ID": "P",
        "OPPORTUNITY": "1000.00",
        "CURRENCY_ID": "RUB",
        "CONTACT_ID": "456",
        "COMPANY_ID": "789",
        "ASSIGNED_BY_ID": "5",
        "CREATED_BY_ID": "1",
        "DATE_CREATE": "2024-01-15T10:00:00+03:00",
        "DATE_MODIFY": "2024-01-16T15:30:00+03:00",
        "BEGINDATE": "2024-01-15T00:00:00+03:00",
        "CLOSEDATE": "2024-02-15T00:00:00+03:00",
        "LEAD_ID": "12",
        "COMMENTS": "Important client",
        "UF_CRM_CUSTOM": "custom_value",
        "UF_CRM_PRODUCTION_DATE": "2024-03-01",
    }


@pytest.fixture
def make_task():
    """Factory for tasks in tasks.task.list (camelCase) format."""
    def _make(task_id, status="2", changed="2024-01-10T10:00:00+03:00", **extra):
        task = {
            "id": str(task_id),
            "title": f"Task {task_id}",
            "description": "",
            "responsibleId": "5",
            "status": status,
            "changedDate": changed,
            "deadline": "2024-02-01T18:00:00+03:00",
            "priority": "1",
            "ufCrmTask": ["D_123"],
        }
        task.update(extra)
        return task
    return _make


@pytest.fixture
def sample_activity_data():
    """Sample Bitrix activity (a completed outgoing call)."""
    return {
        "ID": "900",
        "OWNER_ID": "123",
        "OWNER_TYPE_ID": "2",
        "TYPE_ID": "2",
        "SUBJECT": "Call the client",
        "DIRECTION": "2",
        "START_TIME": "2024-01-20T10:00:00+03:00",
        "END_TIME": "2024-01-20T10:30:00+03:00",
        "DEADLINE": "2024-01-20T10:30:00+03:00",
        "COMPLETED": "Y",
        "RESPONSIBLE_ID": "8",
        "PRIORITY": "2",
        "DESCRIPTION": "Discuss the contract",
        "DESCRIPTION_TYPE": "1",
        "COMMUNICATIONS": [
            {"ENTITY_ID": "456", "ENTITY_TYPE_ID": "3", "TYPE": "PHONE", "VALUE": "+79001234567"}
        ],
    }


@pytest.fixture
def mock_bitrix_client(sample_deal_data):
    """Mock BitrixClient for testing.

    New tasks get ids 1000, 1001, ... in creation order.
    """
    task_ids = itertools.count(1000)

    async def _add_task(fields):
        return str(next(task_ids))

    client = AsyncMock()
    client.get_deal = AsyncMock(return_value=sample_deal_data)
    client.add_deal = AsyncMock(return_value=200)
    client.list_deals = AsyncMock(return_value=[])
    client.list_tasks = AsyncMock(return_value=[])
    client.add_task = AsyncMock(side_effect=_add_task)
    client.update_task = AsyncMock(return_value={"task": {}})
    client.list_checklist_items = AsyncMock(return_value=[])
    client.add_checklist_item = AsyncMock(return_value=1)
    client.list_comments = AsyncMock(return_value=[])
    client.add_comment = AsyncMock(return_value=1)
    client.list_activities = AsyncMock(return_value=[])
    client.add_activity = AsyncMock(return_value=1)
    return client
