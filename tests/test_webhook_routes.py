"""
Tests for the order webhook endpoint.
"""
import json
import pytest
from unittest.mock import AsyncMock, Mock, patch
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient
from sqlmodel import select
from order_sync.database import get_db
from order_sync.helpers.order_sync import OrderSynchronizer
from order_sync.models.import_log import ImportLogEntry, ImportOrigin
from order_sync.models.ledger import SalesDocument
from order_sync.models.webhook_log import WebhookLogEntry
from order_sync.routes import webhook
from order_sync.routes.webhook import (
    extract_order_id, get_synchronizer_factory, handle_order_webhook, receive_order_webhook
)


def create_test_app(db, shop):
    app = FastAPI(title="Test App")
    app.include_router(webhook.router)
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_synchronizer_factory] = \
        lambda: (lambda settings, session: OrderSynchronizer(settings, session, connector=shop))
    return app


@pytest.fixture
def client(provisioned, shop):
    return TestClient(create_test_app(provisioned, shop))


def _webhook_entries(db):
    db.expire_all()
    return db.exec(select(WebhookLogEntry).order_by(WebhookLogEntry.id)).all()


class TestWebhookStatusPage:

    def test_page_reports_configuration(self, client, sync_config):
        response = client.get("/webhooks/orders")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "enabled" in response.text
        assert "http://testserver/webhooks/orders" in response.text

    def test_page_without_configuration(self, client):
        response = client.get("/webhooks/orders")

        assert response.status_code == 200
        assert "not configured" in response.text


class TestWebhookRejections:

    def test_not_configured(self, client):
        response = client.post("/webhooks/orders?token=x", json={"id_order": 1})

        assert response.status_code == 500
        assert response.json()["success"] is False

    def test_disabled(self, client, sync_config, provisioned):
        sync_config.webhook_enabled = False
        provisioned.add(sync_config)
        provisioned.commit()

        response = client.post("/webhooks/orders?token=secret-token", json={"id_order": 1})

        assert response.status_code == 403
        entries = _webhook_entries(provisioned)
        assert len(entries) == 1
        assert entries[0].token_valid is False
        assert entries[0].message == "Webhooks disabled"

    @pytest.mark.parametrize("query", ["", "?token=wrong"])
    def test_bad_token(self, client, sync_config, provisioned, query):
        response = client.post(f"/webhooks/orders{query}", json={"id_order": 1})

        assert response.status_code == 403
        assert response.json()["error"] == "Invalid token"
        entry = _webhook_entries(provisioned)[0]
        assert entry.token_valid is False
        assert "id_order" in entry.payload
        assert provisioned.exec(select(ImportLogEntry)).all() == []

    def test_missing_order_id(self, client, sync_config, provisioned):
        response = client.post("/webhooks/orders?token=secret-token", json={"foo": "bar"})

        assert response.status_code == 400
        entry = _webhook_entries(provisioned)[0]
        assert entry.token_valid is True
        assert entry.order_id is None
        assert entry.result == "error"


class TestWebhookImports:

    def test_successful_import(self, client, sync_config, shop, make_order, provisioned):
        shop.add_order(make_order(321))

        response = client.post("/webhooks/orders?token=secret-token", json={"id_order": 321})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["outcome"] == "imported"
        assert data["total"] == 24.20

        document = provisioned.exec(select(SalesDocument)).one()
        assert data["document_id"] == document.id
        log = provisioned.exec(select(ImportLogEntry)).one()
        assert log.origin == ImportOrigin.WEBHOOK
        entry = _webhook_entries(provisioned)[0]
        assert entry.processed is True
        assert entry.result == "success"
        assert entry.order_id == 321

    def test_repeated_delivery_is_idempotent(self, client, sync_config, shop, make_order, provisioned):
        shop.add_order(make_order(322))

        client.post("/webhooks/orders?token=secret-token", json={"id_order": 322})
        response = client.post("/webhooks/orders?token=secret-token", json={"id_order": 322})

        assert response.status_code == 200
        assert response.json()["outcome"] == "already_exists"
        assert len(provisioned.exec(select(SalesDocument)).all()) == 1

    def test_ineligible_status_is_reported_not_imported(self, client, sync_config, shop, make_order, provisioned):
        shop.add_order(make_order(323, status=6))

        response = client.post("/webhooks/orders?token=secret-token", json={"order_id": 323})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["current_state"] == 6
        assert data["eligible_statuses"] == [2, 3]
        assert provisioned.exec(select(SalesDocument)).all() == []
        entry = _webhook_entries(provisioned)[0]
        assert entry.processed is True
        assert entry.result == "skipped"
        assert "not eligible" in entry.message

    def test_form_payload(self, client, sync_config, shop, make_order):
        shop.add_order(make_order(324))

        response = client.post("/webhooks/orders?token=secret-token", data={"id_order": "324"})

        assert response.status_code == 200
        assert response.json()["order_id"] == 324

    def test_bare_numeric_payload(self, client, sync_config, shop, make_order):
        shop.add_order(make_order(325))

        response = client.post("/webhooks/orders?token=secret-token", content=b"325")

        assert response.status_code == 200
        assert response.json()["outcome"] == "imported"

    def test_failed_import_returns_500(self, client, sync_config, shop, make_order, provisioned):
        shop.add_order(make_order(326, customer_id=999))

        response = client.post("/webhooks/orders?token=secret-token", json={"id_order": 326})

        assert response.status_code == 500
        assert "999" in response.json()["error"]
        entry = _webhook_entries(provisioned)[0]
        assert entry.processed is True
        assert entry.result == "error"

    def test_unknown_order_returns_500(self, client, sync_config):
        response = client.post("/webhooks/orders?token=secret-token", json={"id_order": 4040})

        assert response.status_code == 500
        assert response.json()["order_id"] == 4040


class TestWebhookOffload:

    @pytest.mark.asyncio
    async def test_blocking_work_runs_in_threadpool(self, provisioned):
        """The handler only reads the body on the event loop and hands the rest to a worker thread."""
        request = Mock()
        request.client.host = "203.0.113.5"
        request.headers = {"content-type": "application/json"}
        request.body = AsyncMock(return_value=b'{"id_order": 12}')
        factory = Mock()
        expected = JSONResponse(content={"success": True})

        with patch('order_sync.routes.webhook.run_in_threadpool', new=AsyncMock(return_value=expected)) as mock_pool:
            result = await receive_order_webhook(request, token="secret-token", db=provisioned,
                                                 synchronizer_factory=factory)

        assert result is expected
        mock_pool.assert_awaited_once_with(
            handle_order_webhook, provisioned, factory, "203.0.113.5", "secret-token",
            '{"id_order": 12}', {"id_order": 12}
        )
        factory.assert_not_called()

    def test_handler_rejects_bad_token_synchronously(self, sync_config, provisioned):
        factory = Mock()

        result = handle_order_webhook(provisioned, factory, "203.0.113.5", "wrong", '{"id_order": 12}', {"id_order": 12})

        assert result.status_code == 403
        assert json.loads(result.body)["error"] == "Invalid token"
        assert _webhook_entries(provisioned)[0].ip == "203.0.113.5"
        factory.assert_not_called()


class TestExtractOrderId:

    @pytest.mark.parametrize("payload, expected", [
        ({"id_order": 5}, 5),
        ({"order_id": "6"}, 6),
        ({"orderId": 7}, 7),
        ({"id": 8}, 8),
        ({"id_order": 9, "id": 1}, 9),
        (10, 10),
        ("11", 11),
    ])
    def test_accepted_shapes(self, payload, expected):
        assert extract_order_id(payload) == expected

    @pytest.mark.parametrize("payload", [{}, {"id_order": "abc"}, {"id_order": 0}, "", "-3", None, True, []])
    def test_rejected_shapes(self, payload):
        assert extract_order_id(payload) is None
