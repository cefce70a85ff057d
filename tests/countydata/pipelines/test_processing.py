"""
Unit tests for DataProcessingPipeline
"""
import asyncio
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[3]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from src.countydata.enrichers.geocoder import GeocodeResult
from src.countydata.errors import SourceUnreachable
from src.countydata.models.property import EnrichedProperty, FederalData, FloodZoneData
from src.countydata.pipelines.processing import DataProcessingPipeline


class FakeGeocoder:
    def __init__(self, failing=(), enabled=True, context=None):
        self.failing = set(failing)
        self.enabled = enabled
        self.context = context or {}
        self.calls = []

    async def geocode(self, address):
        self.calls.append(address)
        if address in self.failing:
            raise SourceUnreachable("https://api.mapbox.com", "timeout")
        return GeocodeResult(latitude=28.5, longitude=-81.4, **self.context)


class FakeFederalIntegrator:
    def __init__(self, fail=False):
        self.fail = fail

    async def get_federal_data_for_property(self, address, lat, lng):
        if self.fail:
            raise RuntimeError("federal services down")
        if lat is None:
            return FederalData()
        flood = FloodZoneData(flood_zone="AE", risk_level="HIGH", latitude=lat, longitude=lng)
        return FederalData(flood_zone=flood, census_tract="012345")


class ExplodingDeduplicator:
    def deduplicate(self, records):
        raise RuntimeError("boom")


def build_pipeline(geocoder=None, federal=None, **kwargs):
    from src.countydata.models.policy import BatchPolicy
    policy = BatchPolicy(batch_size=10, delay_seconds=0)
    return DataProcessingPipeline(
        geocoder=geocoder or FakeGeocoder(),
        federal_integrator=federal or FakeFederalIntegrator(),
        geocode_policy=policy,
        min_confidence=50,
        **kwargs,
    )


class TestProcessPropertyBatch:
    """Tests for process_property_batch"""

    def test_one_geocode_timeout_leaves_record_ungeocoded(self, make_property):
        """10 records, one geocode times out: 10 processed, 9 geocoded"""
        records = [make_property(address=f"{i} MAIN ST") for i in range(1, 11)]
        pipeline = build_pipeline(geocoder=FakeGeocoder(failing={"5 MAIN ST"}))

        result = asyncio.run(pipeline.process_property_batch(records))

        assert result.processed_records == 10
        assert result.geocoded_records == 9
        assert result.deduplicated_records == 10
        ungeocoded = [p for p in result.properties if not p.has_coordinates()]
        assert [p.address for p in ungeocoded] == ["5 MAIN ST"]

    def test_standardizes_before_deduplicating(self, make_property):
        records = [
            make_property(address="123 Main Street", confidence_score=40),
            make_property(address="123 main st.", confidence_score=75),
        ]
        pipeline = build_pipeline()

        result = asyncio.run(pipeline.process_property_batch(records))

        assert result.standardized_records == 2
        assert result.deduplicated_records == 1
        assert result.properties[0].address == "123 MAIN ST"
        assert result.properties[0].confidence_score == 75

    def test_enrichment_counts_non_empty_federal_data(self, make_property):
        records = [make_property(address="1 MAIN ST"), make_property(address="2 MAIN ST")]
        pipeline = build_pipeline(geocoder=FakeGeocoder(failing={"2 MAIN ST"}))

        result = asyncio.run(pipeline.process_property_batch(records))

        assert result.enriched_records == 1
        assert all(isinstance(p, EnrichedProperty) for p in result.properties)
        enriched = result.properties[0]
        assert enriched.federal_data.flood_zone.risk_level == "HIGH"
        assert enriched.census_tract == "012345"
        assert result.properties[1].federal_data.is_empty()

    def test_enrichment_failure_leaves_federal_data_empty(self, make_property):
        pipeline = build_pipeline(federal=FakeFederalIntegrator(fail=True))

        result = asyncio.run(pipeline.process_property_batch([make_property()]))

        assert result.enriched_records == 0
        assert result.properties[0].federal_data.is_empty()
        assert result.errors == []

    def test_stage_failure_passes_input_through(self, make_property):
        records = [make_property(address="1 MAIN ST"), make_property(address="2 MAIN ST")]
        pipeline = build_pipeline(deduplicator=ExplodingDeduplicator())

        result = asyncio.run(pipeline.process_property_batch(records))

        assert result.success
        assert any("Deduplication failed" in e for e in result.errors)
        assert result.deduplicated_records == 2
        assert len(result.properties) == 2

    def test_punctuation_only_address_keeps_original(self, make_property):
        """An address that standardizes to nothing passes through unchanged"""
        records = [make_property(address="1 MAIN ST"), make_property(address=".")]
        pipeline = build_pipeline()

        result = asyncio.run(pipeline.process_property_batch(records))

        assert result.processed_records == 2
        assert result.errors == []
        assert [p.address for p in result.properties] == ["1 MAIN ST", "."]
        assert result.enriched_records == 2
        assert result.valid_records == 1

    def test_unconvertible_record_only_drops_itself(self, make_property):
        broken = make_property(address="2 MAIN ST").model_copy(update={"address": ""})
        records = [make_property(address="1 MAIN ST"), broken]
        pipeline = build_pipeline()

        result = asyncio.run(pipeline.process_property_batch(records))

        assert result.processed_records == 2
        assert result.errors == []
        assert [p.address for p in result.properties] == ["1 MAIN ST"]

    def test_unconvertible_record_dropped_when_enrichment_stage_fails(self, make_property):
        broken = make_property(address="2 MAIN ST").model_copy(update={"address": ""})
        pipeline = build_pipeline()

        async def failing_enrich(records):
            raise RuntimeError("boom")

        pipeline._enrich = failing_enrich

        result = asyncio.run(pipeline.process_property_batch([make_property(address="1 MAIN ST"), broken]))

        assert any("Enrichment failed" in e for e in result.errors)
        assert [p.address for p in result.properties] == ["1 MAIN ST"]

    def test_geocoding_skipped_without_api_key(self, make_property):
        geocoder = FakeGeocoder(enabled=False)
        pipeline = build_pipeline(geocoder=geocoder)

        result = asyncio.run(pipeline.process_property_batch([make_property()]))

        assert result.geocoded_records == 0
        assert geocoder.calls == []

    def test_geocoder_context_overrides_location(self, make_property):
        geocoder = FakeGeocoder(context={"zip": "32801", "state": "Florida", "county": "Orlando"})
        pipeline = build_pipeline(geocoder=geocoder)

        result = asyncio.run(pipeline.process_property_batch([make_property(county="Orange", zip=None)]))

        prop = result.properties[0]
        assert prop.zip == "32801"
        assert prop.county == "Orlando"
        assert prop.latitude == 28.5

    def test_valid_records_counted(self, make_property):
        records = [
            make_property(address="1 MAIN ST", confidence_score=90),
            make_property(address="NOT AN ADDRESS", confidence_score=90),
            make_property(address="3 MAIN ST", confidence_score=20),
        ]
        pipeline = build_pipeline()

        result = asyncio.run(pipeline.process_property_batch(records))

        assert result.processed_records == 3
        assert result.valid_records == 1

    def test_empty_batch(self):
        pipeline = build_pipeline()

        result = asyncio.run(pipeline.process_property_batch([]))

        assert result.processed_records == 0
        assert result.properties == []


class TestQualityAndExport:
    """Tests for calculate_data_quality and export_data on the pipeline"""

    def test_calculate_data_quality(self, make_property):
        pipeline = build_pipeline()
        records = [make_property(confidence_score=90), make_property(address="BAD", confidence_score=30)]

        metrics = pipeline.calculate_data_quality(records)

        assert metrics.total_records == 2
        assert metrics.valid_records == 1
        assert metrics.quality_score == 50.0
        assert metrics.average_confidence == 60.0

    def test_export_data_delegates(self, make_property):
        pipeline = build_pipeline()

        assert pipeline.export_data([make_property()], "csv").startswith('"id"')
