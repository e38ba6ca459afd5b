"""Integration tests for API endpoints."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from deal_transfer.api.v1.endpoints.transfer import get_transfer_service
from deal_transfer.core.exceptions import BitrixAPIError, DealNotFoundError
from deal_transfer.domain.entities import TransferResult


@pytest.fixture
def mock_all_dependencies():
    """Mock scheduler startup for API testing."""
    with patch("deal_transfer.main.schedule_poll_job", return_value=False), \
         patch("deal_transfer.main.start_scheduler"), \
         patch("deal_transfer.main.stop_scheduler"):
        yield


@pytest.fixture
def transfer_service():
    """TransferService double: every deal is copied to <id>00."""
    async def transfer_deal(deal_id, target_category_id=None):
        return TransferResult(
            source_deal_id=str(deal_id),
            new_deal_id=f"{deal_id}00",
            target_category_id=target_category_id or 7,
        )

    service = MagicMock()
    service.transfer_deal = AsyncMock(side_effect=transfer_deal)
    return service


@pytest.fixture
def app(mock_all_dependencies, transfer_service) -> FastAPI:
    """Create test application."""
    from deal_transfer.main import create_app

    app = create_app()
    app.dependency_overrides[get_transfer_service] = lambda: transfer_service
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create synchronous test client."""
    return TestClient(app)


@pytest.fixture
async def async_test_client(app: FastAPI):
    """Create async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client


class TestHealthEndpoint:
    """Test suite for health check endpoint."""

    def test_health_returns_200(self, client):
        response = client.get("/healthcheck")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    async def test_health_async(self, async_test_client):
        response = await async_test_client.get("/healthcheck")

        assert response.status_code == 200


class TestTransferEndpoint:
    """Test suite for POST / and POST /webhook."""

    def test_single_deal(self, client, transfer_service):
        response = client.post("/", json={"deal_id": 123, "target_category_id": 5})

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["results"][0]["deal_id"] == "123"
        assert data["results"][0]["result"]["new_deal_id"] == "12300"
        transfer_service.transfer_deal.assert_awaited_once_with("123", 5)

    def test_default_target_category(self, client, transfer_service):
        response = client.post("/", json={"deal_id": "123"})

        assert response.status_code == 200
        transfer_service.transfer_deal.assert_awaited_once_with("123", None)

    def test_list_processed_in_order(self, client, transfer_service):
        response = client.post("/webhook", json={"deal_id": [1, 2, 3]})

        assert response.status_code == 200
        assert [r["deal_id"] for r in response.json()["results"]] == ["1", "2", "3"]
        called = [c.args[0] for c in transfer_service.transfer_deal.await_args_list]
        assert called == ["1", "2", "3"]

    def test_missing_deal_id(self, client, transfer_service):
        response = client.post("/", json={"target_category_id": 5})

        assert response.status_code == 400
        assert response.json()["ok"] is False
        transfer_service.transfer_deal.assert_not_called()

    def test_empty_body(self, client):
        response = client.post("/")

        assert response.status_code == 400

    def test_invalid_json(self, client):
        response = client.post(
            "/", content=b"{not json", headers={"content-type": "application/json"}
        )

        assert response.status_code == 400

    def test_not_found(self, client, transfer_service):
        transfer_service.transfer_deal.side_effect = DealNotFoundError("999")

        response = client.post("/", json={"deal_id": 999})

        assert response.status_code == 404
        data = response.json()
        assert data["ok"] is False
        assert data["error"] == "Deal 999 not found"

    def test_transfer_failure(self, client, transfer_service):
        transfer_service.transfer_deal.side_effect = BitrixAPIError(
            "Bitrix API error in crm.deal.add: bad field"
        )

        response = client.post("/", json={"deal_id": 123})

        assert response.status_code == 500
        assert "bad field" in response.json()["error"]

    def test_list_with_one_failure(self, client, transfer_service):
        async def transfer_deal(deal_id, target_category_id=None):
            if deal_id == "2":
                raise DealNotFoundError(deal_id)
            return TransferResult(source_deal_id=deal_id, new_deal_id="300")

        transfer_service.transfer_deal.side_effect = transfer_deal

        response = client.post("/", json={"deal_id": [1, 2, 3]})

        assert response.status_code == 500
        results = response.json()["results"]
        assert [r["ok"] for r in results] == [True, False, True]
        assert transfer_service.transfer_deal.await_count == 3

    def test_form_encoded_body(self, client, transfer_service):
        response = client.post(
            "/webhook", data={"deal_id": "77", "target_category_id": "5"}
        )

        assert response.status_code == 200
        transfer_service.transfer_deal.assert_awaited_once_with("77", 5)

    def test_business_process_webhook(self, client, transfer_service):
        response = client.post(
            "/webhook",
            content=b"document_id[0]=crm&document_id[1]=CCrmDocumentDeal&document_id[2]=DEAL_15",
            headers={"content-type": "application/x-www-form-urlencoded"},
        )

        assert response.status_code == 200
        transfer_service.transfer_deal.assert_awaited_once_with("15", None)

    def test_non_utf8_form_body(self, client, transfer_service):
        response = client.post(
            "/webhook",
            content=b"deal_id=\xff\xfe",
            headers={"content-type": "application/x-www-form-urlencoded"},
        )

        assert response.status_code == 400
        transfer_service.transfer_deal.assert_not_called()

    def test_query_string(self, client, transfer_service):
        response = client.post("/webhook?deal_id=9&target_category_id=4")

        assert response.status_code == 200
        transfer_service.transfer_deal.assert_awaited_once_with("9", 4)

    async def test_async_client(self, async_test_client, transfer_service):
        response = await async_test_client.post("/", json={"deal_id": 5})

        assert response.status_code == 200
        assert response.json()["results"][0]["result"]["new_deal_id"] == "500"


class TestStatusEndpoint:
    """Test suite for the scheduler status endpoint."""

    def test_scheduler_status(self, client):
        status = {"running": False, "jobs": [], "job_count": 0}
        with patch(
            "deal_transfer.api.v1.endpoints.status.get_scheduler_status",
            return_value=status,
        ):
            response = client.get("/status/scheduler")

        assert response.status_code == 200
        assert response.json() == status
