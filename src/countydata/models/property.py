"""
Property Data Models

Pydantic models for scraped candidates, normalized properties and their
federal reference enrichment.
"""
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Set, Union
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


class RawCandidate(BaseModel):
    """
    Unstructured fields pulled from one fetched page.

    Ephemeral: consumed by normalization immediately and never persisted.
    """

    address: Optional[str] = None
    owner: Optional[str] = None
    value: Optional[float] = None
    state: Optional[str] = None
    county: Optional[str] = None
    zip: Optional[str] = None
    raw_text: Optional[str] = None
    source_url: str
    fetched_at: datetime = Field(default_factory=datetime.utcnow)

    def has_signal(self) -> bool:
        """True if at least one property field was recognised."""
        return bool(self.address or self.owner or self.value)


def new_property_id() -> str:
    return f"property_{uuid4().hex[:16]}"


class ProcessedProperty(BaseModel):
    """
    Normalized property record.

    Attributes:
        id: Record identifier
        address: Street address (standardized by the processing pipeline)
        owner_name: Owner name
        assessed_value: Assessed value in dollars
        state: State name or abbreviation
        county: County name
        zip: 5-digit ZIP code
        latitude: WGS84 latitude (set by geocoding)
        longitude: WGS84 longitude (set by geocoding)
        confidence_score: Completeness heuristic, 0-100
        data_source: URL of the originating source
        created_at: Normalization time
    """

    id: str = Field(default_factory=new_property_id)
    address: str = Field(..., min_length=1)
    owner_name: str
    assessed_value: Optional[float] = Field(None, ge=0)
    state: str
    county: str
    zip: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    confidence_score: int = Field(0, ge=0, le=100)
    data_source: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("address", "owner_name")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip() if isinstance(v, str) else v

    def has_coordinates(self) -> bool:
        """Check if property has coordinates."""
        return self.latitude is not None and self.longitude is not None


class CensusData(BaseModel):
    """County-level census figures."""

    kind: Literal["census"] = "census"
    name: str
    state_code: str
    county_code: str
    population: int = 0
    households: int = 0
    housing_units: int = 0


class FloodZoneData(BaseModel):
    """FEMA flood hazard designation at a point."""

    kind: Literal["flood_zone"] = "flood_zone"
    flood_zone: str
    risk_level: Literal["LOW", "MODERATE", "HIGH"]
    latitude: float
    longitude: float
    last_updated: datetime = Field(default_factory=datetime.utcnow)


class EnvironmentalData(BaseModel):
    """Environmental hazards reported near a point."""

    kind: Literal["environmental"] = "environmental"
    hazards: List[str] = Field(default_factory=list)
    risk_score: int = Field(0, ge=0, le=100)
    latitude: float
    longitude: float
    last_assessment: datetime = Field(default_factory=datetime.utcnow)


FederalRecord = Annotated[
    Union[CensusData, FloodZoneData, EnvironmentalData],
    Field(discriminator="kind"),
]


class FederalData(BaseModel):
    """
    Federal reference data attached to a property, at most one record per kind.

    census_tract comes from the reverse-geocode lookup and is not a record.
    """

    census: Optional[CensusData] = None
    flood_zone: Optional[FloodZoneData] = None
    environmental: Optional[EnvironmentalData] = None
    census_tract: Optional[str] = None

    @classmethod
    def from_records(cls, records: List[FederalRecord], census_tract: Optional[str] = None) -> "FederalData":
        bag: Dict[str, Any] = {}
        for record in records:
            bag[record.kind] = record
        return cls(census_tract=census_tract, **bag)

    def records(self) -> List[FederalRecord]:
        return [r for r in (self.census, self.flood_zone, self.environmental) if r is not None]

    def is_empty(self) -> bool:
        return not self.records()


class EnrichedProperty(ProcessedProperty):
    """ProcessedProperty with federal enrichment and provenance."""

    census_tract: Optional[str] = None
    federal_data: FederalData = Field(default_factory=FederalData)
    data_sources: Set[str] = Field(default_factory=set)
    last_updated: datetime = Field(default_factory=datetime.utcnow)

    @classmethod
    def from_processed(
        cls,
        prop: ProcessedProperty,
        federal_data: Optional[FederalData] = None,
        census_tract: Optional[str] = None,
    ) -> "EnrichedProperty":
        return cls(
            **prop.model_dump(include=set(ProcessedProperty.model_fields)),
            census_tract=census_tract,
            federal_data=federal_data or FederalData(),
            data_sources={prop.data_source},
            last_updated=datetime.utcnow(),
        )

    def is_enriched(self) -> bool:
        return not self.federal_data.is_empty()
