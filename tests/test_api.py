"""
API Tests for the Identification Service

Tests the main API endpoints with various scenarios. The engine dependency
is replaced with one backed by static providers.
"""

import base64

import pytest
from fastapi.testclient import TestClient

from drahms_vision.core.dependencies import get_identification_engine
from drahms_vision.engine.base import Provider
from drahms_vision.engine.registry import ProviderRegistry
from drahms_vision.main import app
from drahms_vision.models.enums import Category
from drahms_vision.providers.static_provider import StaticProvider
from drahms_vision.services.identification_service import IdentificationEngine


def static(provider_id, category, priority, weight, label, confidence):
    return Provider(
        id=provider_id,
        category=category,
        priority=priority,
        weight=weight,
        timeout=1.0,
        client=StaticProvider(provider_id, label=label, confidence=confidence),
    )


@pytest.fixture
def engine():
    registry = ProviderRegistry([
        static("ebird", Category.BIRDS, 1, 0.6, "American Robin", 0.8),
        static("birdnet", Category.BIRDS, 2, 0.4, "Turdus migratorius", 0.7),
        static("googlelens", Category.GENERAL, 1, 0.6, "Moon", 0.9),
    ])
    return IdentificationEngine(registry)


@pytest.fixture
def client(engine):
    """Create test client with the engine dependency overridden."""
    app.dependency_overrides[get_identification_engine] = lambda: engine
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class TestHealthEndpoints:
    """Test health check endpoints."""

    def test_health_check(self, client):
        """Test basic health check."""
        response = client.get("/api/v1/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data
        assert "version" in data

    def test_liveness_check(self, client):
        """Test liveness probe."""
        response = client.get("/api/v1/health/live")
        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    def test_readiness_check(self, client):
        """Test detailed readiness check."""
        response = client.get("/api/v1/health/ready")
        assert response.status_code == 200

        data = response.json()
        assert data["components"]["providers"]["general_selectable"] == 1
        assert data["components"]["cache"]["backend"] == "memory"

    def test_not_ready_without_general_providers(self):
        registry = ProviderRegistry([static("ebird", Category.BIRDS, 1, 0.6, "Robin", 0.8)])
        app.dependency_overrides[get_identification_engine] = lambda: IdentificationEngine(registry)
        try:
            with TestClient(app) as client:
                response = client.get("/api/v1/health/ready")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 503


class TestIdentifyEndpoint:
    """Test the identification endpoint."""

    def test_identify_bird(self, client, jpeg_base64):
        response = client.post(
            "/api/v1/identify",
            json={
                "image": jpeg_base64,
                "category": "birds",
                "context": {"latitude": 40.7, "longitude": -74.0, "timestamp": "2026-07-15T13:00:00Z"},
            },
        )
        assert response.status_code == 200

        data = response.json()
        assert data["label"] == "American Robin"
        assert data["unidentified"] is False
        assert data["category"] == "birds"
        assert data["merged_confidence"] == pytest.approx(0.38)
        assert data["confidence_level"] == "low"
        assert [c["provider_id"] for c in data["contributing_providers"]] == ["ebird", "birdnet"]
        assert len(data["diagnostics"]) == 2

    def test_data_url_prefix_accepted(self, client, jpeg_base64):
        response = client.post(
            "/api/v1/identify",
            json={"image": f"data:image/jpeg;base64,{jpeg_base64}"},
        )
        assert response.status_code == 200
        assert response.json()["label"] == "Moon"

    def test_auto_category_uses_general(self, client, jpeg_base64):
        response = client.post("/api/v1/identify", json={"image": jpeg_base64, "category": "auto"})

        data = response.json()
        assert data["category"] == "general"
        assert data["merged_confidence"] == pytest.approx(0.54)

    def test_below_threshold_unidentified(self, client, jpeg_base64):
        response = client.post(
            "/api/v1/identify",
            json={"image": jpeg_base64, "category": "general", "confidence_threshold": 0.9},
        )
        assert response.status_code == 200

        data = response.json()
        assert data["unidentified"] is True
        assert data["label"] == ""
        assert data["reason"] == "below_threshold"
        assert data["alternatives"][0]["label"] == "Moon"

    def test_non_image_payload(self, client):
        payload = base64.b64encode(b"definitely not an image").decode("utf-8")

        response = client.post("/api/v1/identify", json={"image": payload})

        assert response.status_code == 400

    def test_invalid_base64(self, client):
        response = client.post("/api/v1/identify", json={"image": "not base64 !!!"})
        assert response.status_code == 422

    def test_threshold_out_of_range(self, client, jpeg_base64):
        response = client.post(
            "/api/v1/identify",
            json={"image": jpeg_base64, "confidence_threshold": 1.5},
        )
        assert response.status_code == 422

    def test_missing_image(self, client):
        response = client.post("/api/v1/identify", json={"category": "birds"})
        assert response.status_code == 422


class TestEngineEndpoints:
    """Test provider, metrics and cache endpoints."""

    def test_list_providers(self, client):
        response = client.get("/api/v1/identify/providers")
        assert response.status_code == 200

        data = response.json()
        assert data["total"] == 3
        assert data["available"] == 3
        assert {p["id"] for p in data["providers"]} == {"ebird", "birdnet", "googlelens"}
        assert all(p["circuit"] == "closed" for p in data["providers"])

    def test_metrics(self, client, jpeg_base64):
        client.post("/api/v1/identify", json={"image": jpeg_base64})
        client.post("/api/v1/identify", json={"image": jpeg_base64})

        response = client.get("/api/v1/identify/metrics")
        assert response.status_code == 200

        overall = response.json()["overall"]
        assert overall["total_requests"] == 2
        assert overall["cache_hits"] == 1

    def test_cache_stats_and_clear(self, client, jpeg_base64):
        client.post("/api/v1/identify", json={"image": jpeg_base64})

        stats = client.get("/api/v1/identify/cache").json()
        assert stats["size"] == 1

        response = client.delete("/api/v1/identify/cache")
        assert response.status_code == 200
        assert client.get("/api/v1/identify/cache").json()["size"] == 0


class TestRootEndpoint:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["identification_endpoint"] == "/api/v1/identify"
