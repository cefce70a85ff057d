"""
Data Source Models

Pydantic models for discovered jurisdictions and their data sources.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SourceMethod(str, Enum):
    """How a source is consumed; selects the content classifier."""
    SCRAPER = "scraper"
    API = "api"
    CSV = "csv"


class SourceStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ERROR = "error"


class Priority(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class Jurisdiction(BaseModel):
    """
    County-level jurisdiction from the reference geography service.

    Attributes:
        name: County name as published (e.g. 'Autauga County')
        state: State name
        state_code: Two-digit state FIPS code
        county_code: Three-digit county FIPS code
    """

    name: str
    state: str
    state_code: str
    county_code: str

    @property
    def fips(self) -> str:
        return f"{self.state_code}{self.county_code}"


class DataSource(BaseModel):
    """
    A validated, per-jurisdiction public data source.

    Created by discovery. Scrape outcomes update status, success_rate and
    last_checked; sources are deactivated, never removed.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str
    name: str
    url: str
    method: SourceMethod = SourceMethod.SCRAPER
    data_type: str = "property-records"
    status: SourceStatus = SourceStatus.ACTIVE
    last_checked: datetime = Field(default_factory=datetime.utcnow)
    success_rate: float = Field(0.0, ge=0.0, le=1.0)
    selectors: Optional[Dict[str, str]] = None

    state: Optional[str] = Field(None, description="Owning jurisdiction state")
    state_code: Optional[str] = None
    county: Optional[str] = Field(None, description="Owning jurisdiction county")
    county_code: Optional[str] = None

    def is_active(self) -> bool:
        return self.status == SourceStatus.ACTIVE

    def deactivate(self) -> None:
        """Take the source out of rotation without discarding it."""
        self.status = SourceStatus.INACTIVE
        self.last_checked = datetime.utcnow()


class CountyData(BaseModel):
    """Discovery outcome for one jurisdiction."""

    name: str
    state: str
    state_code: str
    county_code: str
    data_sources: List[DataSource] = Field(default_factory=list)
    priority: Priority = Priority.LOW
    probed_urls: int = 0
    failed_probes: int = 0
    last_updated: datetime = Field(default_factory=datetime.utcnow)

    def active_sources(self) -> List[DataSource]:
        return [s for s in self.data_sources if s.is_active()]


class DiscoveryResult(BaseModel):
    """Aggregate result of a discovery run."""

    total_counties: int = 0
    discovered_counties: int = 0
    active_sources: int = 0
    failed_probes: int = 0
    errors: List[str] = Field(default_factory=list)
    progress: float = 0.0
    counties: List[CountyData] = Field(default_factory=list)
