"""Tests for the FastAPI application with a fake-backed orchestrator."""

import pytest
from fastapi.testclient import TestClient

from catalog_migration.api.dependencies import _build_orchestrator, get_orchestrator
from catalog_migration.api.main import app

from conftest import FakeMagentoTarget, build_orchestrator, magento_instance


@pytest.fixture()
def target():
    return FakeMagentoTarget()


@pytest.fixture()
def client(source, target):
    orchestrator = build_orchestrator(source, {"store-a": target}, [magento_instance("store-a")])
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_connections(self, client):
        body = client.get("/api/connections").json()
        assert body == {"status": "healthy", "source": True, "targets": {"store-a": True}}


class TestMigrateProduct:
    def test_success(self, client, target):
        response = client.post("/api/migrations/product", json={"sku": " P-100 "})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["instances"]["store-a"]["mode"] == "full-creation"
        assert "P-100" in target.products

    def test_failure_is_multi_status(self, client):
        response = client.post("/api/migrations/product", json={"sku": "MISSING"})

        assert response.status_code == 207
        assert response.json()["success"] is False

    def test_unknown_target(self, client):
        response = client.post(
            "/api/migrations/product",
            json={"sku": "P-100", "options": {"target_instances": ["store-z"]}},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Unknown target instances: store-z"

    def test_empty_sku_rejected(self, client):
        assert client.post("/api/migrations/product", json={"sku": ""}).status_code == 422

    def test_whitespace_sku_rejected(self, client, target):
        response = client.post("/api/migrations/product", json={"sku": "   "})

        assert response.status_code == 422
        assert "SKU must not be blank" in response.text
        assert target.calls == []


class TestMigrateBatch:
    def test_batch_totals(self, client):
        response = client.post("/api/migrations/products/batch", json={"skus": ["P-100", "MISSING"]})

        assert response.status_code == 207
        body = response.json()
        assert (body["total"], body["succeeded"], body["failed"]) == (2, 1, 1)

    def test_blank_skus(self, client):
        response = client.post("/api/migrations/products/batch", json={"skus": [" "]})
        assert response.status_code == 400


class TestSyncPrices:
    def test_prices_synced_after_migration(self, client, target, source):
        client.post("/api/migrations/product", json={"sku": "P-100"})
        source.resources["products/P-100-RED"]["price"] = 17.5

        response = client.post("/api/sync/prices", json={"sku": "P-100"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["instances"]["store-a"]["mode"] == "price-sync"
        assert target.products["P-100-RED"]["price"] == 17.5

    def test_not_migrated_is_multi_status(self, client, target):
        response = client.post("/api/sync/prices", json={"sku": "P-100"})

        assert response.status_code == 207
        assert response.json()["success"] is False
        assert target.writes == []

    def test_unknown_target(self, client):
        response = client.post(
            "/api/sync/prices",
            json={"sku": "P-100", "options": {"target_instances": ["store-z"]}},
        )
        assert response.status_code == 400

    def test_whitespace_sku_rejected(self, client):
        assert client.post("/api/sync/prices", json={"sku": " \t "}).status_code == 422


class TestConfiguration:
    def test_invalid_configuration_is_unavailable(self, monkeypatch):
        monkeypatch.delenv("SOURCE_BASE_URL", raising=False)
        _build_orchestrator.cache_clear()
        try:
            response = TestClient(app).get("/api/connections")
        finally:
            _build_orchestrator.cache_clear()

        assert response.status_code == 503
        assert "Source base URL is not configured" in response.json()["detail"]
