"""
HTTP API tests with FastAPI's TestClient.
"""

import logging

import pytest
from fastapi.testclient import TestClient

from confidential_marketplace.app import HealthcheckLogFilter, create_marketplace_app
from confidential_marketplace.runtime.session import Session
from confidential_marketplace.storage.preferences import MemoryPreferenceStore

from fakes import BUYER, FHE_ADDRESS, PRICE, PROVIDER, FakeGateway


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def session(fhe_settings, fhe_ledger, gateway, encryptors):
    return Session(
        fhe_settings,
        rpc=fhe_ledger,
        gateway=gateway,
        preferences=MemoryPreferenceStore(),
        encryptor_factory=encryptors,
    )


@pytest.fixture
def client(session):
    with TestClient(create_marketplace_app(session)) as test_client:
        yield test_client


class TestModeEndpoints:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "mode": "mock"}

    def test_get_and_put_mode(self, client):
        assert client.get("/mode").json()["mode"] == "mock"

        response = client.put("/mode", json={"mode": "fhe"})

        assert response.status_code == 200
        body = response.json()
        assert body["mode"] == "fhe"
        assert body["preferred"] == "fhe"
        assert body["is_auto_fallback"] is False

    def test_invalid_mode(self, client):
        assert client.put("/mode", json={"mode": "turbo"}).status_code == 422

    def test_gateway_outage(self, client, gateway):
        """Test a failed probe in FHE mode reports the fallback"""
        client.put("/mode", json={"mode": "fhe"})
        gateway.healthy = False

        body = client.get("/gateway/health").json()

        assert body["healthy"] is False
        assert body["mode"] == "mock"
        assert body["is_auto_fallback"] is True
        assert body["preferred"] == "fhe"


class TestDatasetEndpoints:

    def test_upload_and_list(self, client):
        response = client.post("/datasets", json={
            "name": "Ages", "data": "100, 200, 150, 300, 250", "price_eth": "0.01",
        })
        assert response.status_code == 201
        assert response.json()["dataset_id"] == 1
        assert response.json()["mode"] == "mock"

        datasets = client.get("/datasets").json()
        assert [d["name"] for d in datasets] == ["Ages"]
        assert datasets[0]["price_per_query"] == PRICE

        assert client.get("/datasets/1").json()["size"] == 5

    def test_upload_too_large(self, client, fhe_ledger):
        """Test validation errors map to their status code without a transaction"""
        response = client.post("/datasets", json={"name": "Big", "values": [1] * 1001, "price_wei": PRICE})
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "InvalidInputSize"
        assert fhe_ledger.sent == []

    def test_upload_requires_price(self, client):
        response = client.post("/datasets", json={"name": "Ages", "values": [1]})
        assert response.status_code == 400

    def test_unknown_dataset(self, client):
        response = client.get("/datasets/42")
        assert response.status_code == 404
        assert response.json()["detail"]["message"] == "Dataset does not exist"


class TestQueryEndpoints:

    def test_run_query_with_wait(self, client, fhe_ledger):
        dataset_id = fhe_ledger.add_dataset()
        response = client.post("/queries", json={
            "dataset_id": dataset_id, "query_type": "count_above", "parameter": 200, "wait": True,
        })
        assert response.status_code == 200
        body = response.json()
        assert body["result"] == 2
        assert body["settlement"]["platform_share"] == PRICE * 5 // 100

    def test_submit_then_wait(self, client, fhe_ledger):
        dataset_id = fhe_ledger.add_dataset()
        submission = client.post("/queries", json={"dataset_id": dataset_id, "query_type": 0}).json()
        assert submission["query_id"] == 1

        assert client.get("/queries/1").json()["status"] == 2
        assert client.post("/queries/1/wait").json()["result"] == 200

        queries = client.get(f"/buyers/{BUYER}/queries").json()
        assert [q["id"] for q in queries] == [1]

    def test_fhe_query(self, client, fhe_ledger):
        """Test an FHE query is tracked until decryption completes"""
        client.put("/mode", json={"mode": "fhe"})
        dataset_id = fhe_ledger.add_dataset(FHE_ADDRESS)
        body = client.post("/queries", json={"dataset_id": dataset_id, "query_type": "mean", "wait": True}).json()
        assert body["result"] == 200
        assert body["attempts"] == 3

    def test_missing_threshold(self, client, fhe_ledger):
        dataset_id = fhe_ledger.add_dataset()
        response = client.post("/queries", json={"dataset_id": dataset_id, "query_type": "count_below"})
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "MissingQueryParameter"

    def test_unknown_query_type(self, client):
        response = client.post("/queries", json={"dataset_id": 1, "query_type": "median"})
        assert response.status_code == 400


class TestStatsEndpoints:

    def test_settlement(self, client):
        assert client.get("/settlement", params={"price": 1000}).json() == {
            "price": 1000, "provider_share": 950, "platform_share": 50, "platform_fee_percent": 5,
        }

    def test_stats_and_provider_summary(self, client, fhe_ledger):
        dataset_id = fhe_ledger.add_dataset(owner=PROVIDER)
        client.post("/queries", json={"dataset_id": dataset_id, "query_type": "mean", "wait": True})

        stats = client.get("/stats").json()
        assert stats["total_datasets"] == 1
        assert stats["total_queries"] == 1

        summary = client.get(f"/providers/{PROVIDER}/summary").json()
        assert summary["total_queries"] == 1
        assert summary["total_revenue"] == PRICE - PRICE * 5 // 100


class TestHealthcheckLogFilter:

    def test_filters_health_requests(self):
        log_filter = HealthcheckLogFilter()
        health = logging.LogRecord("uvicorn.access", logging.INFO, "", 0, '"GET /health HTTP/1.1" 200', None, None)
        other = logging.LogRecord("uvicorn.access", logging.INFO, "", 0, '"GET /datasets HTTP/1.1" 200', None, None)
        assert log_filter.filter(health) is False
        assert log_filter.filter(other) is True
