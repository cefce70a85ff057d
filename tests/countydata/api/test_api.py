"""
Tests for the FastAPI application
"""
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[3]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from src.countydata.api.main import create_app
from src.countydata.models.property import EnrichedProperty
from src.countydata.models.results import (
    AreaAnalyticsResponse,
    CoverageStats,
    ExportResponse,
    IntegrationResult,
    IntegrationStatus,
    PropertyDetailResponse,
    SearchResponse,
)


class StubOrchestrator:
    """Records calls and returns canned consumer payloads."""

    def __init__(self, record):
        self.record = record
        self.is_running = False
        self.started = 0
        self.last_filters = None
        self.cleaned = False

    async def get_status(self):
        return IntegrationStatus(progress=42.0, is_running=self.is_running)

    def reserve_start(self):
        if self.is_running:
            return False
        self.is_running = True
        return True

    async def start_integration(self):
        self.started += 1
        return IntegrationResult(success=True)

    def stop_integration(self):
        return self.is_running

    async def search_properties(self, filters):
        self.last_filters = filters
        return SearchResponse(success=True, properties=[self.record], total=1)

    async def get_property_details(self, property_id):
        if property_id == self.record.id:
            return PropertyDetailResponse(success=True, property=self.record)
        return PropertyDetailResponse(success=False, errors=[f"Property {property_id} not found"])

    async def get_area_analytics(self, area):
        if area.type == "circle" and area.radius_miles is None:
            return AreaAnalyticsResponse(success=False, area=area, errors=["circle requires radius_miles"])
        return AreaAnalyticsResponse(success=True, area=area, property_count=1)

    async def export_data(self, filters, export_format):
        if export_format.lower() not in ("csv", "json", "geojson"):
            return ExportResponse(success=False, format=export_format,
                                  errors=[f"Unsupported export format: {export_format}"])
        return ExportResponse(success=True, format=export_format, content="address\n", record_count=1)

    async def get_coverage_stats(self):
        return CoverageStats(total_counties=3143, counties_with_sources=12, total_properties=1)

    async def cleanup(self):
        self.cleaned = True


@pytest.fixture
def stub(make_property):
    return StubOrchestrator(EnrichedProperty.from_processed(make_property()))


@pytest.fixture
def client(stub):
    return TestClient(create_app(stub))


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["integration_running"] is False


class TestPropertiesEndpoints:

    def test_search_passes_filters(self, client, stub):
        response = client.get("/api/v1/properties/search", params={"state": "FL", "valid_only": "false", "limit": 5})

        assert response.status_code == 200
        assert response.json()["total"] == 1
        assert stub.last_filters.state == "FL"
        assert stub.last_filters.valid_only is False
        assert stub.last_filters.limit == 5

    def test_detail_found(self, client, stub):
        response = client.get(f"/api/v1/properties/{stub.record.id}")

        assert response.status_code == 200
        assert response.json()["address"] == "123 MAIN ST"

    def test_detail_missing(self, client):
        assert client.get("/api/v1/properties/property_missing").status_code == 404


class TestAnalyticsEndpoints:

    def test_area(self, client):
        response = client.post("/api/v1/analytics/area", json={
            "type": "circle", "coordinates": [-81.38, 28.54], "radius_miles": 5,
        })

        assert response.status_code == 200
        assert response.json()["property_count"] == 1

    def test_malformed_area(self, client):
        response = client.post("/api/v1/analytics/area", json={"type": "circle", "coordinates": [-81.38, 28.54]})
        assert response.status_code == 400

    def test_unknown_area_type(self, client):
        response = client.post("/api/v1/analytics/area", json={"type": "hexagon", "coordinates": []})
        assert response.status_code == 422

    def test_coverage(self, client):
        response = client.get("/api/v1/coverage")

        assert response.status_code == 200
        assert response.json()["total_counties"] == 3143


class TestExportEndpoint:

    def test_csv_export(self, client):
        response = client.get("/api/v1/export", params={"format": "csv"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.headers["x-record-count"] == "1"
        assert "properties.csv" in response.headers["content-disposition"]

    def test_unsupported_format(self, client):
        response = client.get("/api/v1/export", params={"format": "xml"})

        assert response.status_code == 400
        assert response.json()["detail"] == ["Unsupported export format: xml"]


class TestIntegrationEndpoints:

    def test_status(self, client):
        response = client.get("/api/v1/integration/status")

        assert response.status_code == 200
        assert response.json()["progress"] == 42.0

    def test_start_schedules_run(self, client, stub):
        response = client.post("/api/v1/integration/start")

        assert response.status_code == 202
        assert response.json()["accepted"] is True
        assert stub.started == 1

    def test_start_while_running_conflicts(self, client, stub):
        stub.is_running = True

        response = client.post("/api/v1/integration/start")

        assert response.status_code == 409
        assert stub.started == 0

    def test_second_start_before_run_begins_conflicts(self, client, stub):
        """A start reserved but not yet running blocks a second request"""
        first = client.post("/api/v1/integration/start")
        second = client.post("/api/v1/integration/start")

        assert first.status_code == 202
        assert second.status_code == 409
        assert stub.started == 1
        assert stub.is_running

    def test_stop(self, client, stub):
        assert client.post("/api/v1/integration/stop").json() == {
            "stopped": False, "message": "No integration is running",
        }

        stub.is_running = True
        assert client.post("/api/v1/integration/stop").json()["stopped"] is True
