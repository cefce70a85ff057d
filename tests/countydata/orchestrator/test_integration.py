"""
Tests for IntegrationOrchestrator
"""
import asyncio
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[3]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from src.countydata.errors import IntegrationAlreadyRunning
from src.countydata.models.data_source import CountyData, DiscoveryResult, Priority
from src.countydata.models.policy import BatchPolicy
from src.countydata.models.property import FederalData, FloodZoneData, ProcessedProperty
from src.countydata.models.results import (
    AreaQuery,
    IntegrationPhase,
    ScrapingResult,
    SearchFilters,
)
from src.countydata.orchestrator.integration import (
    NO_DATA_MESSAGE,
    STOPPED_MESSAGE,
    IntegrationOrchestrator,
    parse_args,
    write_exports,
)
from src.countydata.pipelines.processing import DataProcessingPipeline


class FakeDiscovery:
    """Returns a fixed discovery result, optionally holding until released."""

    def __init__(self, counties, block=False):
        self.counties = counties
        self.entered = asyncio.Event()
        self.release = asyncio.Event()
        if not block:
            self.release.set()

    async def discover_all_counties(self, jurisdictions=None, on_batch_complete=None, should_continue=None):
        self.entered.set()
        await self.release.wait()

        result = DiscoveryResult(total_counties=len(self.counties))
        for index, county in enumerate(self.counties, start=1):
            result.counties.append(county)
            if county.active_sources():
                result.discovered_counties += 1
                result.active_sources += len(county.active_sources())
            result.progress = index / len(self.counties) * 100
            if on_batch_complete:
                on_batch_complete(result)
        return result


class FakeScraper:
    def __init__(self, records_by_url, observer=None):
        self.records_by_url = records_by_url
        self.observer = observer
        self.cleaned = False

    async def scrape_county_data(self, source):
        if self.observer:
            await self.observer()
        records = self.records_by_url.get(source.url)
        if records is None:
            return ScrapingResult(success=False, source=source.url, errors=[f"{source.url}: HTTP 500"])
        return ScrapingResult(success=True, source=source.url, data=records, record_count=len(records))

    async def cleanup(self):
        self.cleaned = True


class DisabledGeocoder:
    enabled = False

    async def geocode(self, address):
        raise AssertionError("geocoder should not be called")


class FakeFederal:
    async def get_federal_data_for_property(self, address, lat, lng):
        if lat is None:
            return FederalData()
        return FederalData(flood_zone=FloodZoneData(
            flood_zone="AE", risk_level="HIGH", latitude=lat, longitude=lng,
        ))

    async def get_flood_zone_data(self, lat, lng):
        return None


def county_with_source(make_source, name="Orange County", url="https://assessor.orange.gov"):
    return CountyData(
        name=name,
        state="Florida",
        state_code="12",
        county_code="095",
        data_sources=[make_source(url=url)],
        priority=Priority.MEDIUM,
    )


def scraped_records(make_property):
    return [
        make_property(address="123 MAIN ST", latitude=28.54, longitude=-81.38, assessed_value=200000.0),
        make_property(address="456 OAK AVE", owner_name="ACME LLC", latitude=28.60, longitude=-81.20,
                      assessed_value=400000.0, zip="32801"),
        make_property(address="789 PINE DR", confidence_score=30),
    ]


def build(discovery, scraper, http_client):
    federal = FakeFederal()
    pipeline = DataProcessingPipeline(
        geocoder=DisabledGeocoder(),
        federal_integrator=federal,
        geocode_policy=BatchPolicy(batch_size=10, delay_seconds=0),
        min_confidence=50,
    )
    return IntegrationOrchestrator(
        discovery_engine=discovery,
        scraper=scraper,
        pipeline=pipeline,
        federal_integrator=federal,
        http_client=http_client,
    )


class TestStartIntegration:
    """Tests for the run driver"""

    def test_successful_run(self, make_source, make_property, http_client_factory):
        async def scenario():
            discovery = FakeDiscovery([county_with_source(make_source)])
            scraper = FakeScraper({"https://assessor.orange.gov": scraped_records(make_property)})
            orchestrator = build(discovery, scraper, http_client_factory())
            result = await orchestrator.start_integration()
            return orchestrator, result, await orchestrator.get_status()

        orchestrator, result, status = asyncio.run(scenario())

        assert result.success is True
        assert result.total_properties == 3
        assert result.valid_properties == 2
        assert result.enriched_properties == 2
        assert result.data_quality.coverage_percentage == pytest.approx(66.67)
        assert "123 MAIN ST" in result.export_data.csv
        assert "789 PINE DR" not in result.export_data.csv
        assert '"FeatureCollection"' in result.export_data.geojson

        assert status.phase == IntegrationPhase.COMPLETE
        assert status.progress == 100.0
        assert status.is_running is False
        assert status.scraped_counties == 1
        assert status.success is True
        assert len(orchestrator.store) == 3

    def test_no_scraped_data_fails(self, make_source, http_client_factory):
        async def scenario():
            discovery = FakeDiscovery([county_with_source(make_source)])
            orchestrator = build(discovery, FakeScraper({}), http_client_factory())
            result = await orchestrator.start_integration()
            return result, await orchestrator.get_status()

        result, status = asyncio.run(scenario())

        assert result.success is False
        assert result.total_properties == 0
        assert NO_DATA_MESSAGE in result.errors
        assert status.failed is True
        assert status.success is False
        assert NO_DATA_MESSAGE in status.errors

    def test_second_start_rejected_without_touching_status(self, make_source, make_property, http_client_factory):
        async def scenario():
            discovery = FakeDiscovery([county_with_source(make_source)], block=True)
            scraper = FakeScraper({"https://assessor.orange.gov": scraped_records(make_property)})
            orchestrator = build(discovery, scraper, http_client_factory())

            first = asyncio.create_task(orchestrator.start_integration())
            await discovery.entered.wait()

            before = await orchestrator.get_status()
            with pytest.raises(IntegrationAlreadyRunning):
                await orchestrator.start_integration()
            after = await orchestrator.get_status()

            discovery.release.set()
            result = await first
            return before, after, result

        before, after, result = asyncio.run(scenario())

        assert before.is_running is True
        assert after == before
        assert result.success is True

    def test_stop_request_fails_run(self, make_source, make_property, http_client_factory):
        async def scenario():
            discovery = FakeDiscovery([county_with_source(make_source)], block=True)
            scraper = FakeScraper({"https://assessor.orange.gov": scraped_records(make_property)})
            orchestrator = build(discovery, scraper, http_client_factory())

            assert orchestrator.stop_integration() is False
            task = asyncio.create_task(orchestrator.start_integration())
            await discovery.entered.wait()
            assert orchestrator.stop_integration() is True
            discovery.release.set()
            return orchestrator, await task

        orchestrator, result = asyncio.run(scenario())

        assert result.success is False
        assert result.errors == [STOPPED_MESSAGE]
        assert orchestrator.is_running is False
        assert len(orchestrator.store) == 0

    def test_progress_never_decreases(self, make_source, make_property, http_client_factory):
        seen = []

        async def scenario():
            counties = [
                county_with_source(make_source, name=f"County {i}", url=f"https://assessor.c{i}.gov")
                for i in range(4)
            ]
            records = {f"https://assessor.c{i}.gov": [make_property(address=f"{i + 1} MAIN ST")] for i in range(4)}
            discovery = FakeDiscovery(counties)
            scraper = FakeScraper(records)
            orchestrator = build(discovery, scraper, http_client_factory())

            async def observe():
                seen.append((await orchestrator.get_status()).progress)

            scraper.observer = observe
            await orchestrator.start_integration()
            seen.append((await orchestrator.get_status()).progress)

        asyncio.run(scenario())

        assert seen == sorted(seen)
        assert seen[0] >= 25.0
        assert seen[-1] == 100.0


    def test_reserved_start_blocks_until_run_finishes(self, make_source, make_property, http_client_factory):
        async def scenario():
            discovery = FakeDiscovery([county_with_source(make_source)])
            scraper = FakeScraper({"https://assessor.orange.gov": scraped_records(make_property)})
            orchestrator = build(discovery, scraper, http_client_factory())

            first = orchestrator.reserve_start()
            second = orchestrator.reserve_start()
            reserved_running = orchestrator.is_running
            result = await orchestrator.start_integration()
            return orchestrator, first, second, reserved_running, result

        orchestrator, first, second, reserved_running, result = asyncio.run(scenario())

        assert first is True
        assert second is False
        assert reserved_running is True
        assert result.success is True
        assert orchestrator.is_running is False
        assert orchestrator.reserve_start() is True

class TestConsumerApi:
    """Tests for search, details, analytics, export and coverage"""

    @pytest.fixture
    def completed(self, make_source, make_property, http_client_factory):
        async def scenario():
            discovery = FakeDiscovery([county_with_source(make_source)])
            scraper = FakeScraper({"https://assessor.orange.gov": scraped_records(make_property)})
            orchestrator = build(discovery, scraper, http_client_factory())
            await orchestrator.start_integration()
            return orchestrator

        return asyncio.run(scenario())

    def test_search_defaults_to_valid_records(self, completed):
        response = asyncio.run(completed.search_properties())

        assert response.success is True
        assert response.total == 2
        assert response.coverage == {"states": 1, "counties": 1, "properties": 2}

    def test_search_with_filters(self, completed):
        response = asyncio.run(completed.search_properties(SearchFilters(owner_name="acme", state="FL")))
        assert [p.address for p in response.properties] == ["456 OAK AVE"]

        everything = asyncio.run(completed.search_properties(SearchFilters(valid_only=False)))
        assert everything.total == 3

    def test_property_details(self, completed):
        record = completed.store.all()[0]

        found = asyncio.run(completed.get_property_details(record.id))
        missing = asyncio.run(completed.get_property_details("property_missing"))

        assert found.success is True
        assert found.property.id == record.id
        assert missing.success is False
        assert missing.errors == ["Property property_missing not found"]

    def test_circle_analytics(self, completed):
        area = AreaQuery(type="circle", coordinates=[-81.38, 28.54], radius_miles=5)

        response = asyncio.run(completed.get_area_analytics(area))

        assert response.success is True
        assert response.property_count == 1
        assert response.average_value == 200000.0
        assert response.flood_risk == {"HIGH": 1}

    def test_polygon_analytics(self, completed):
        ring = [[-82.0, 28.0], [-81.0, 28.0], [-81.0, 29.0], [-82.0, 29.0], [-82.0, 28.0]]

        response = asyncio.run(completed.get_area_analytics(AreaQuery(type="polygon", coordinates=[ring])))

        assert response.property_count == 2
        assert response.median_value == 300000.0

    def test_malformed_area(self, completed):
        response = asyncio.run(completed.get_area_analytics(AreaQuery(type="circle", coordinates=[-81.38])))

        assert response.success is False
        assert response.errors

    def test_export(self, completed):
        ok = asyncio.run(completed.export_data(export_format="json"))
        bad = asyncio.run(completed.export_data(export_format="xml"))

        assert ok.success is True
        assert ok.record_count == 2
        assert bad.success is False
        assert bad.errors == ["Unsupported export format: xml"]

    def test_coverage_stats(self, completed):
        stats = asyncio.run(completed.get_coverage_stats())

        assert stats.total_counties == 1
        assert stats.counties_with_sources == 1
        assert stats.total_properties == 3
        assert stats.last_updated is not None


def test_write_exports(tmp_path):
    from src.countydata.models.results import ExportBundle

    paths = write_exports(ExportBundle(csv="a", json_data="[]", geojson="{}"), tmp_path / "out")

    assert [p.name for p in paths] == ["properties.csv", "properties.json", "properties.geojson"]
    assert (tmp_path / "out" / "properties.json").read_text() == "[]"


def test_parse_args_default_output():
    assert parse_args([]).output == Path("data/exports")
    assert parse_args(["--output", "/tmp/x"]).output == Path("/tmp/x")


class TestFederalPassthroughs:
    """Federal lookups through the orchestrator with every service down"""

    @pytest.fixture
    def orchestrator(self, http_client_factory):
        return IntegrationOrchestrator(http_client=http_client_factory())

    def test_census_unavailable_returns_empty(self, orchestrator):
        assert asyncio.run(orchestrator.get_all_census_data()) == []

    def test_point_lookups_unavailable_return_none(self, orchestrator):
        assert asyncio.run(orchestrator.get_flood_zone_data(28.54, -81.38)) is None
        assert asyncio.run(orchestrator.get_environmental_data(28.54, -81.38)) is None

    def test_property_lookup_unavailable_is_empty(self, orchestrator):
        data = asyncio.run(orchestrator.get_federal_data_for_property("1 MAIN ST", 28.54, -81.38))

        assert isinstance(data, FederalData)
        assert data.is_empty()
