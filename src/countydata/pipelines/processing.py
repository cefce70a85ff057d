"""
Data Processing Pipeline

standardize -> geocode -> deduplicate -> enrich -> validate over a batch of
scraped properties. A failing stage is recorded in the result's errors and
its input passes through to the next stage unchanged.
"""
import asyncio
import time
from typing import Awaitable, Callable, List, Optional, Tuple

from pydantic import ValidationError

from src.countydata.enrichers.federal_data import FederalDataIntegrator
from src.countydata.enrichers.geocoder import MapboxGeocoder
from src.countydata.models.policy import BatchPolicy
from src.countydata.models.property import EnrichedProperty, FederalData, ProcessedProperty
from src.countydata.models.results import ProcessingResult, QualityMetrics
from src.countydata.monitoring.data_quality import calculate_data_quality
from src.countydata.pipelines.deduplication import PropertyDeduplicator
from src.countydata.pipelines.export import export_records
from src.countydata.pipelines.validation import is_valid_property
from src.countydata.transformers.address_standardizer import AddressStandardizer
from src.countydata.utils.logger import get_logger

logger = get_logger(__name__)

Stage = Callable[[List[ProcessedProperty]], Awaitable[List[ProcessedProperty]]]


class DataProcessingPipeline:
    """
    Turns scraped ProcessedProperty records into validated EnrichedProperty records.

    Geocoding and enrichment fan out in bounded batches joined with an
    all-settled barrier; a failure for one address only affects that record.
    """

    def __init__(
        self,
        standardizer: Optional[AddressStandardizer] = None,
        geocoder: Optional[MapboxGeocoder] = None,
        federal_integrator: Optional[FederalDataIntegrator] = None,
        deduplicator: Optional[PropertyDeduplicator] = None,
        geocode_policy: Optional[BatchPolicy] = None,
        enrichment_policy: Optional[BatchPolicy] = None,
        min_confidence: Optional[int] = None,
    ):
        self.standardizer = standardizer or AddressStandardizer()
        self.geocoder = geocoder or MapboxGeocoder()
        self.federal_integrator = federal_integrator or FederalDataIntegrator()
        self.deduplicator = deduplicator or PropertyDeduplicator(self.standardizer)
        self.geocode_policy = geocode_policy or BatchPolicy.for_geocoding()
        self.enrichment_policy = enrichment_policy or self.geocode_policy
        self.min_confidence = min_confidence

        logger.info(
            "processing_pipeline_initialized",
            geocoding_enabled=self.geocoder.enabled,
            geocode_batch_size=self.geocode_policy.batch_size
        )

    async def process_property_batch(self, properties: List[ProcessedProperty]) -> ProcessingResult:
        """
        Run every stage over a batch.

        Args:
            properties: Scraped records

        Returns:
            ProcessingResult with per-stage counts and all enriched records
        """
        start = time.monotonic()
        errors: List[str] = []

        logger.info("processing_started", records=len(properties))

        records, ok = await self._run_stage("standardization", self._standardize, list(properties), errors)
        standardized = len(records) if ok else 0

        records, _ = await self._run_stage("geocoding", self._geocode, records, errors)
        geocoded = sum(1 for r in records if r.has_coordinates())

        records, _ = await self._run_stage("deduplication", self._deduplicate, records, errors)
        deduplicated = len(records)

        records, _ = await self._run_stage("enrichment", self._enrich, records, errors)
        enriched = [
            r if isinstance(r, EnrichedProperty) else self._to_enriched(r)
            for r in records
        ]
        enriched = [r for r in enriched if r is not None]

        valid = sum(1 for r in enriched if is_valid_property(r, self.min_confidence))

        result = ProcessingResult(
            success=True,
            processed_records=len(properties),
            standardized_records=standardized,
            geocoded_records=geocoded,
            deduplicated_records=deduplicated,
            enriched_records=sum(1 for r in enriched if r.is_enriched()),
            valid_records=valid,
            properties=enriched,
            errors=errors,
            processing_time=time.monotonic() - start,
        )

        logger.info(
            "processing_complete",
            processed=result.processed_records,
            geocoded=result.geocoded_records,
            deduplicated=result.deduplicated_records,
            enriched=result.enriched_records,
            valid=result.valid_records,
            errors=len(errors)
        )
        return result

    async def _run_stage(
        self,
        name: str,
        stage: Stage,
        records: List[ProcessedProperty],
        errors: List[str],
    ) -> Tuple[List[ProcessedProperty], bool]:
        try:
            return await stage(records), True
        except Exception as e:
            errors.append(f"{name.capitalize()} failed: {e}")
            logger.error(
                "processing_stage_failed",
                stage=name,
                error=str(e),
                error_type=type(e).__name__
            )
            return records, False

    async def _standardize(self, records: List[ProcessedProperty]) -> List[ProcessedProperty]:
        standardized = []
        for record in records:
            standardized.append(record.model_copy(update={
                'address': self.standardizer.standardize(record.address) or record.address,
                'owner_name': self.standardizer.standardize_name(record.owner_name),
                'zip': self.standardizer.normalize_zip(record.zip),
            }))
        return standardized

    async def _geocode(self, records: List[ProcessedProperty]) -> List[ProcessedProperty]:
        if not self.geocoder.enabled:
            logger.info("geocoding_skipped", reason="no_api_key")
            return records

        output: List[ProcessedProperty] = []
        batches = self.geocode_policy.batches(records)
        failures = 0

        for index, batch in enumerate(batches, start=1):
            outcomes = await asyncio.gather(
                *(self.geocoder.geocode(r.address) for r in batch),
                return_exceptions=True,
            )
            for record, outcome in zip(batch, outcomes):
                if isinstance(outcome, Exception):
                    failures += 1
                    logger.warning(
                        "geocode_failed",
                        property_id=record.id,
                        error=str(outcome),
                        error_type=type(outcome).__name__
                    )
                    output.append(record)
                elif outcome is None:
                    output.append(record)
                else:
                    output.append(record.model_copy(update={
                        'latitude': outcome.latitude,
                        'longitude': outcome.longitude,
                        'zip': outcome.zip or record.zip,
                        'state': outcome.state or record.state,
                        'county': outcome.county or record.county,
                    }))

            if index < len(batches) and self.geocode_policy.delay_seconds:
                await asyncio.sleep(self.geocode_policy.delay_seconds)

        logger.info("geocoding_complete", records=len(records), failures=failures)
        return output

    async def _deduplicate(self, records: List[ProcessedProperty]) -> List[ProcessedProperty]:
        return self.deduplicator.deduplicate(records)

    async def _enrich(self, records: List[ProcessedProperty]) -> List[EnrichedProperty]:
        output: List[EnrichedProperty] = []
        batches = self.enrichment_policy.batches(records)

        for index, batch in enumerate(batches, start=1):
            outcomes = await asyncio.gather(
                *(
                    self.federal_integrator.get_federal_data_for_property(r.address, r.latitude, r.longitude)
                    for r in batch
                ),
                return_exceptions=True,
            )
            for record, outcome in zip(batch, outcomes):
                if isinstance(outcome, Exception):
                    logger.warning(
                        "enrichment_failed",
                        property_id=record.id,
                        error=str(outcome),
                        error_type=type(outcome).__name__
                    )
                    outcome = FederalData()
                enriched = self._to_enriched(record, outcome)
                if enriched is not None:
                    output.append(enriched)

            if index < len(batches) and self.enrichment_policy.delay_seconds and any(
                r.has_coordinates() for r in batch
            ):
                await asyncio.sleep(self.enrichment_policy.delay_seconds)

        return output

    @staticmethod
    def _to_enriched(
        record: ProcessedProperty,
        federal_data: Optional[FederalData] = None,
    ) -> Optional[EnrichedProperty]:
        """EnrichedProperty for one record, or None (logged) if it no longer validates."""
        if federal_data is None:
            federal_data = FederalData()
        try:
            return EnrichedProperty.from_processed(
                record, federal_data=federal_data, census_tract=federal_data.census_tract
            )
        except ValidationError as e:
            logger.warning(
                "record_dropped",
                property_id=record.id,
                error_count=e.error_count(),
                error=str(e).splitlines()[0]
            )
            return None

    def calculate_data_quality(self, records: List[ProcessedProperty]) -> QualityMetrics:
        return calculate_data_quality(records, self.min_confidence)

    def export_data(self, records: List[ProcessedProperty], export_format: str) -> str:
        """
        Serialize records as csv, json or geojson.

        Raises:
            ValueError: For an unsupported format
        """
        return export_records(records, export_format)
