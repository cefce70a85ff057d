"""
Result and Status Models

Structured payloads returned by the scraper, the processing pipeline, the
orchestrator and the consumer-facing API. Every payload carries an explicit
success flag and an errors list.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.countydata.models.property import EnrichedProperty, ProcessedProperty


class ScrapingResult(BaseModel):
    """Outcome of scraping one data source."""

    success: bool
    data: List[ProcessedProperty] = Field(default_factory=list)
    source: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    record_count: int = 0
    raw_count: int = 0
    attempts: int = 0
    errors: List[str] = Field(default_factory=list)
    processing_time: float = 0.0
    classifier: Optional[str] = None
    success_rate: float = 0.0


class ProcessingResult(BaseModel):
    """Per-stage counts for one processing batch."""

    success: bool = True
    processed_records: int = 0
    standardized_records: int = 0
    geocoded_records: int = 0
    deduplicated_records: int = 0
    enriched_records: int = 0
    valid_records: int = 0
    properties: List[EnrichedProperty] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    processing_time: float = 0.0


class QualityMetrics(BaseModel):
    total_records: int = 0
    valid_records: int = 0
    geocoded_records: int = 0
    enriched_records: int = 0
    average_confidence: float = 0.0
    quality_score: float = Field(0.0, ge=0.0, le=100.0)


class IntegrationPhase(str, Enum):
    DISCOVERY = "discovery"
    SCRAPING = "scraping"
    PROCESSING = "processing"
    COMPLETE = "complete"


class IntegrationStatus(BaseModel):
    """Live status of the orchestrator's current (or last) run."""

    phase: IntegrationPhase = IntegrationPhase.DISCOVERY
    progress: float = Field(0.0, ge=0.0, le=100.0)
    total_counties: int = 0
    discovered_counties: int = 0
    scraped_counties: int = 0
    processed_counties: int = 0
    total_properties: int = 0
    valid_properties: int = 0
    errors: List[str] = Field(default_factory=list)
    start_time: Optional[datetime] = None
    estimated_completion: Optional[datetime] = None
    is_running: bool = False
    failed: bool = False
    success: bool = True


class DataQualitySummary(BaseModel):
    average_confidence: float = 0.0
    quality_score: float = 0.0
    coverage_percentage: float = 0.0


class ExportBundle(BaseModel):
    csv: str = ""
    json_data: str = Field("", alias="json")
    geojson: str = ""

    model_config = ConfigDict(populate_by_name=True)


class IntegrationResult(BaseModel):
    """Outcome of a full discovery -> scraping -> processing run."""

    success: bool
    total_properties: int = 0
    valid_properties: int = 0
    geocoded_properties: int = 0
    enriched_properties: int = 0
    data_quality: DataQualitySummary = Field(default_factory=DataQualitySummary)
    processing_time: float = 0.0
    errors: List[str] = Field(default_factory=list)
    export_data: Optional[ExportBundle] = None


class SearchFilters(BaseModel):
    """Consumer search filters; unset fields do not constrain."""

    search_text: Optional[str] = None
    state: Optional[str] = None
    county: Optional[str] = None
    zip_code: Optional[str] = None
    owner_name: Optional[str] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    min_confidence: Optional[int] = Field(None, ge=0, le=100)
    valid_only: bool = True
    limit: Optional[int] = Field(None, ge=1)


class AreaQuery(BaseModel):
    """
    Area for analytics.

    A circle uses center [lng, lat] plus radius_miles; a polygon uses a ring
    of [lng, lat] vertices.
    """

    type: Literal["circle", "polygon"]
    coordinates: List[Any]
    radius_miles: Optional[float] = Field(None, gt=0)


class SearchResponse(BaseModel):
    success: bool
    properties: List[EnrichedProperty] = Field(default_factory=list)
    total: int = 0
    coverage: Dict[str, int] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)


class PropertyDetailResponse(BaseModel):
    success: bool
    property: Optional[EnrichedProperty] = None
    errors: List[str] = Field(default_factory=list)


class AreaAnalyticsResponse(BaseModel):
    success: bool
    area: Optional[AreaQuery] = None
    property_count: int = 0
    average_value: Optional[float] = None
    median_value: Optional[float] = None
    average_confidence: Optional[float] = None
    flood_risk: Dict[str, int] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)


class ExportResponse(BaseModel):
    success: bool
    format: str
    content: str = ""
    record_count: int = 0
    errors: List[str] = Field(default_factory=list)


class CoverageStats(BaseModel):
    success: bool = True
    total_states: int = 0
    total_counties: int = 0
    covered_states: int = 0
    covered_counties: int = 0
    counties_with_sources: int = 0
    total_properties: int = 0
    last_updated: Optional[datetime] = None
    errors: List[str] = Field(default_factory=list)
