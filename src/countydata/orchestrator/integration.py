"""
Integration Orchestrator

Drives discovery -> scraping -> processing across every county, reports
live status, and serves the consumer search/analytics/export operations
over the properties from the last successful run.
"""
from __future__ import annotations

import argparse
import asyncio
import sys
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional

import pandas as pd

from src.countydata.discovery.county_discovery import CountyDiscoveryEngine
from src.countydata.enrichers.federal_data import FederalDataIntegrator
from src.countydata.enrichers.geocoder import MapboxGeocoder
from src.countydata.errors import CountyDataError, IntegrationAlreadyRunning, PipelineStageFailure
from src.countydata.models.data_source import DiscoveryResult
from src.countydata.models.property import (
    CensusData,
    EnvironmentalData,
    FederalData,
    FloodZoneData,
    ProcessedProperty,
)
from src.countydata.models.results import (
    AreaAnalyticsResponse,
    AreaQuery,
    CoverageStats,
    DataQualitySummary,
    ExportBundle,
    ExportResponse,
    IntegrationPhase,
    IntegrationResult,
    IntegrationStatus,
    PropertyDetailResponse,
    SearchFilters,
    SearchResponse,
)
from src.countydata.monitoring.data_quality import compute_coverage
from src.countydata.orchestrator.store import PropertyStore
from src.countydata.pipelines.processing import DataProcessingPipeline
from src.countydata.scrapers.intelligent_scraper import IntelligentScraper
from src.countydata.utils.http_client import AsyncHttpClient
from src.countydata.utils.logger import bind_run_context, clear_run_context, get_logger, setup_logging

logger = get_logger(__name__)

STOPPED_MESSAGE = "Integration stopped by user"
NO_DATA_MESSAGE = "No scraped data available for processing"

# Phase weights on the 0-100 progress scale
DISCOVERY_SPAN = (0.0, 25.0)
SCRAPING_SPAN = (25.0, 75.0)
PROCESSING_START = 75.0


class IntegrationOrchestrator:
    """
    Single-flight coordinator for a full integration run.

    Only the run driver writes IntegrationStatus, and only between join
    points; workers return values. stop_integration() is cooperative and is
    honoured between phases, discovery batches and jurisdictions.
    """

    def __init__(
        self,
        discovery_engine: Optional[CountyDiscoveryEngine] = None,
        scraper: Optional[IntelligentScraper] = None,
        pipeline: Optional[DataProcessingPipeline] = None,
        federal_integrator: Optional[FederalDataIntegrator] = None,
        store: Optional[PropertyStore] = None,
        http_client: Optional[AsyncHttpClient] = None,
    ):
        self.http_client = http_client or AsyncHttpClient()
        self.federal_integrator = federal_integrator or FederalDataIntegrator(http_client=self.http_client)
        self.discovery_engine = discovery_engine or CountyDiscoveryEngine(http_client=self.http_client)
        self.scraper = scraper or IntelligentScraper(http_client=self.http_client)
        self.pipeline = pipeline or DataProcessingPipeline(
            geocoder=MapboxGeocoder(http_client=self.http_client),
            federal_integrator=self.federal_integrator,
        )
        self.store = store or PropertyStore(min_confidence=self.pipeline.min_confidence)

        self._status = IntegrationStatus()
        self._running = False
        self._start_reserved = False
        self._stop_requested = False
        self._last_discovery: Optional[DiscoveryResult] = None

        logger.info("integration_orchestrator_initialized")

    @property
    def is_running(self) -> bool:
        """True while a run is active or a start has been reserved for one."""
        return self._running or self._start_reserved

    def reserve_start(self) -> bool:
        """
        Claim the next run for a caller that starts it later (a background task).

        Returns:
            False if a run is active or already reserved
        """
        if self.is_running:
            return False
        self._start_reserved = True
        return True

    # ------------------------------------------------------------------
    # Run driver
    # ------------------------------------------------------------------

    async def start_integration(self) -> IntegrationResult:
        """
        Run discovery, scraping and processing.

        Returns:
            IntegrationResult; on any phase failure (or a stop request) a
            zero-valued result with success=False and the error messages

        Raises:
            IntegrationAlreadyRunning: If a run is already in progress
        """
        if self._running:
            logger.warning("integration_rejected", reason="already_running")
            raise IntegrationAlreadyRunning()

        # No await between the check above and this assignment
        self._start_reserved = False
        self._running = True
        self._stop_requested = False
        started = time.monotonic()
        self._status = IntegrationStatus(
            phase=IntegrationPhase.DISCOVERY,
            is_running=True,
            start_time=datetime.utcnow(),
        )
        bind_run_context()

        logger.info("integration_started")

        try:
            discovery = await self._run_discovery()
            self._check_stop()

            scraped = await self._run_scraping(discovery)
            self._check_stop()

            result = await self._run_processing(scraped, started)
            logger.info(
                "integration_complete",
                total_properties=result.total_properties,
                valid_properties=result.valid_properties,
                processing_time=round(result.processing_time, 2)
            )
            return result

        except Exception as e:
            self._status.failed = True
            self._status.success = False
            self._status.errors.append(str(e))
            logger.error(
                "integration_failed",
                phase=self._status.phase.value,
                error=str(e),
                error_type=type(e).__name__
            )
            return IntegrationResult(
                success=False,
                processing_time=time.monotonic() - started,
                errors=list(self._status.errors),
            )

        finally:
            self._running = False
            self._status.is_running = False
            clear_run_context()

    def stop_integration(self) -> bool:
        """
        Ask the active run to stop at its next checkpoint.

        Returns:
            True if a run was active
        """
        if not self._running:
            return False
        self._stop_requested = True
        logger.info("integration_stop_requested", phase=self._status.phase.value)
        return True

    def _check_stop(self) -> None:
        if self._stop_requested:
            raise PipelineStageFailure(STOPPED_MESSAGE)

    def _set_progress(self, value: float) -> None:
        """Raise progress (never lower it) and refresh the completion estimate."""
        status = self._status
        status.progress = max(status.progress, min(round(value, 2), 100.0))

        if status.start_time is None or status.progress <= 0:
            return
        if status.progress >= 100:
            status.estimated_completion = datetime.utcnow()
            return

        elapsed = (datetime.utcnow() - status.start_time).total_seconds()
        total = elapsed * 100.0 / status.progress
        status.estimated_completion = status.start_time + timedelta(seconds=total)

    async def _run_discovery(self) -> DiscoveryResult:
        self._status.phase = IntegrationPhase.DISCOVERY
        low, high = DISCOVERY_SPAN

        def on_batch_complete(partial: DiscoveryResult) -> None:
            self._status.total_counties = partial.total_counties
            self._status.discovered_counties = partial.discovered_counties
            self._set_progress(low + (high - low) * partial.progress / 100.0)

        discovery = await self.discovery_engine.discover_all_counties(
            on_batch_complete=on_batch_complete,
            should_continue=lambda: not self._stop_requested,
        )

        self._last_discovery = discovery
        self._status.total_counties = discovery.total_counties
        self._status.discovered_counties = discovery.discovered_counties
        self._status.errors.extend(discovery.errors)
        self._set_progress(high)

        logger.info(
            "discovery_phase_complete",
            discovered_counties=discovery.discovered_counties,
            active_sources=discovery.active_sources
        )
        return discovery

    async def _run_scraping(self, discovery: DiscoveryResult) -> List[ProcessedProperty]:
        self._status.phase = IntegrationPhase.SCRAPING
        low, high = SCRAPING_SPAN

        counties = [c for c in discovery.counties if c.active_sources()]
        scraped: List[ProcessedProperty] = []

        for index, county in enumerate(counties, start=1):
            self._check_stop()

            county_scraped = False
            try:
                for source in county.active_sources():
                    result = await self.scraper.scrape_county_data(source)
                    if result.success:
                        scraped.extend(result.data)
                        county_scraped = True
            except Exception as e:
                self._status.errors.append(f"Scraping failed for {county.name}: {e}")
                logger.warning(
                    "county_scrape_failed",
                    county=county.name,
                    state=county.state,
                    error=str(e),
                    error_type=type(e).__name__
                )

            if county_scraped:
                self._status.scraped_counties += 1
            self._status.total_properties = len(scraped)
            self._set_progress(low + (high - low) * index / len(counties))

        self._set_progress(high)
        logger.info(
            "scraping_phase_complete",
            scraped_counties=self._status.scraped_counties,
            properties=len(scraped)
        )
        return scraped

    async def _run_processing(self, scraped: List[ProcessedProperty], started: float) -> IntegrationResult:
        self._status.phase = IntegrationPhase.PROCESSING
        self._set_progress(PROCESSING_START)

        if not scraped:
            raise PipelineStageFailure(NO_DATA_MESSAGE)

        processing = await self.pipeline.process_property_batch(scraped)
        if not processing.success:
            raise PipelineStageFailure(f"Data processing failed: {', '.join(processing.errors)}")

        quality = self.pipeline.calculate_data_quality(processing.properties)
        valid = [p for p in processing.properties if self.store.is_valid(p)]
        exports = self._export_bundle(valid)

        self.store.replace_all(processing.properties)

        self._status.processed_counties = self._status.scraped_counties
        self._status.total_properties = processing.processed_records
        self._status.valid_properties = processing.valid_records
        self._status.errors.extend(processing.errors)
        self._status.phase = IntegrationPhase.COMPLETE
        self._set_progress(100.0)

        coverage = (
            processing.valid_records / processing.processed_records * 100
            if processing.processed_records else 0.0
        )

        return IntegrationResult(
            success=True,
            total_properties=processing.processed_records,
            valid_properties=processing.valid_records,
            geocoded_properties=processing.geocoded_records,
            enriched_properties=processing.enriched_records,
            data_quality=DataQualitySummary(
                average_confidence=quality.average_confidence,
                quality_score=quality.quality_score,
                coverage_percentage=round(coverage, 2),
            ),
            processing_time=time.monotonic() - started,
            errors=processing.errors,
            export_data=exports,
        )

    def _export_bundle(self, records: List[ProcessedProperty]) -> ExportBundle:
        try:
            return ExportBundle(
                csv=self.pipeline.export_data(records, 'csv'),
                json_data=self.pipeline.export_data(records, 'json'),
                geojson=self.pipeline.export_data(records, 'geojson'),
            )
        except (ValueError, TypeError) as e:
            logger.error("export_failed", error=str(e), error_type=type(e).__name__)
            return ExportBundle()

    # ------------------------------------------------------------------
    # Consumer API
    # ------------------------------------------------------------------

    async def get_status(self) -> IntegrationStatus:
        """Snapshot of the current (or last) run's status."""
        return self._status.model_copy(deep=True)

    async def search_properties(self, filters: Optional[SearchFilters] = None) -> SearchResponse:
        filters = filters or SearchFilters()
        try:
            matches = self.store.search(filters)
        except Exception as e:
            logger.error("property_search_failed", error=str(e), error_type=type(e).__name__)
            return SearchResponse(success=False, errors=[str(e)])

        logger.info("property_search", matches=len(matches), valid_only=filters.valid_only)
        return SearchResponse(
            success=True,
            properties=matches,
            total=len(matches),
            coverage=compute_coverage(matches),
        )

    async def get_property_details(self, property_id: str) -> PropertyDetailResponse:
        record = self.store.get(property_id)
        if record is None:
            return PropertyDetailResponse(success=False, errors=[f"Property {property_id} not found"])
        return PropertyDetailResponse(success=True, property=record)

    async def get_area_analytics(self, area: AreaQuery) -> AreaAnalyticsResponse:
        """
        Value, confidence and flood-risk statistics for an area.

        Circles use center [lng, lat] and radius_miles (haversine distance);
        polygons use a ring of [lng, lat] vertices (ray casting).
        """
        try:
            if area.type == 'circle':
                if area.radius_miles is None or len(area.coordinates) < 2:
                    raise ValueError("circle requires center [lng, lat] and radius_miles")
                lng, lat = float(area.coordinates[0]), float(area.coordinates[1])
                records = self.store.within_radius(lat, lng, area.radius_miles)
            else:
                ring = area.coordinates
                # Accept GeoJSON polygon nesting [[ring]]
                if ring and isinstance(ring[0], list) and ring[0] and isinstance(ring[0][0], list):
                    ring = ring[0]
                if len(ring) < 3:
                    raise ValueError("polygon requires at least 3 vertices")
                records = self.store.within_polygon(ring)
        except (ValueError, TypeError, IndexError) as e:
            return AreaAnalyticsResponse(success=False, area=area, errors=[str(e)])

        response = AreaAnalyticsResponse(success=True, area=area, property_count=len(records))
        if not records:
            return response

        df = pd.DataFrame({
            'value': [r.assessed_value for r in records],
            'confidence': [r.confidence_score for r in records],
            'flood_risk': [
                r.federal_data.flood_zone.risk_level if r.federal_data.flood_zone else None
                for r in records
            ],
        })

        values = df['value'].dropna()
        if not values.empty:
            response.average_value = round(float(values.mean()), 2)
            response.median_value = round(float(values.median()), 2)
        response.average_confidence = round(float(df['confidence'].mean()), 2)
        response.flood_risk = {k: int(v) for k, v in df['flood_risk'].dropna().value_counts().items()}
        return response

    async def export_data(self, filters: Optional[SearchFilters] = None, export_format: str = 'csv') -> ExportResponse:
        filters = filters or SearchFilters()
        records = self.store.search(filters)
        try:
            content = self.pipeline.export_data(records, export_format)
        except ValueError as e:
            return ExportResponse(success=False, format=export_format, errors=[str(e)])
        return ExportResponse(success=True, format=export_format, content=content, record_count=len(records))

    async def get_coverage_stats(self) -> CoverageStats:
        discovery = self._last_discovery
        stored = compute_coverage(self.store.all())

        return CoverageStats(
            total_states=len({c.state for c in discovery.counties}) if discovery else 0,
            total_counties=discovery.total_counties if discovery else 0,
            covered_states=stored['states'],
            covered_counties=stored['counties'],
            counties_with_sources=discovery.discovered_counties if discovery else 0,
            total_properties=stored['properties'],
            last_updated=self.store.last_updated,
        )

    # Federal passthroughs; an unavailable service yields an empty value

    async def get_federal_data_for_property(self, address: str, lat: float, lng: float) -> FederalData:
        try:
            return await self.federal_integrator.get_federal_data_for_property(address, lat, lng)
        except CountyDataError as e:
            logger.warning("federal_lookup_unavailable", lookup="property", error=str(e))
            return FederalData()

    async def get_all_census_data(self) -> List[CensusData]:
        try:
            return await self.federal_integrator.get_all_census_data()
        except CountyDataError as e:
            logger.warning("federal_lookup_unavailable", lookup="census", error=str(e))
            return []

    async def get_flood_zone_data(self, lat: float, lng: float) -> Optional[FloodZoneData]:
        try:
            return await self.federal_integrator.get_flood_zone_data(lat, lng)
        except CountyDataError as e:
            logger.warning("federal_lookup_unavailable", lookup="flood_zone", error=str(e))
            return None

    async def get_environmental_data(self, lat: float, lng: float) -> Optional[EnvironmentalData]:
        try:
            return await self.federal_integrator.get_environmental_data(lat, lng)
        except CountyDataError as e:
            logger.warning("federal_lookup_unavailable", lookup="environmental", error=str(e))
            return None

    async def cleanup(self) -> None:
        """Close shared HTTP sessions."""
        await self.scraper.cleanup()
        await self.http_client.close()


def write_exports(bundle: ExportBundle, output_dir: Path) -> List[Path]:
    output_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for name, content in (
        ('properties.csv', bundle.csv),
        ('properties.json', bundle.json_data),
        ('properties.geojson', bundle.geojson),
    ):
        path = output_dir / name
        path.write_text(content)
        written.append(path)
    return written


async def run_integration(output_dir: Path) -> IntegrationResult:
    orchestrator = IntegrationOrchestrator()
    try:
        result = await orchestrator.start_integration()
    finally:
        await orchestrator.cleanup()

    if result.success and result.export_data:
        paths = write_exports(result.export_data, output_dir)
        logger.info("exports_written", files=[str(p) for p in paths])
    return result


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a full county property data integration")
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("data/exports"),
        help="Directory for the CSV, JSON and GeoJSON exports",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging()
    result = asyncio.run(run_integration(args.output))
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
