"""
Property Store

In-memory index of the enriched properties from the last successful
integration run. Backs the consumer search, detail, analytics and export
operations.
"""
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from src.countydata.models.property import EnrichedProperty
from src.countydata.models.results import SearchFilters
from src.countydata.pipelines.validation import is_valid_property
from src.countydata.utils.fips import STATE_FIPS
from src.countydata.utils.geo_utils import haversine_distance, point_in_polygon
from src.countydata.utils.logger import get_logger

logger = get_logger(__name__)

STATE_NAME_TO_ABBR = {name.upper(): abbr for name, abbr in STATE_FIPS.values()}


def _state_key(value: Optional[str]) -> str:
    """Compare states by postal abbreviation so 'FL' matches 'Florida'."""
    if not value:
        return ''
    upper = value.strip().upper()
    return STATE_NAME_TO_ABBR.get(upper, upper)


def _county_key(value: Optional[str]) -> str:
    if not value:
        return ''
    upper = value.strip().upper()
    for suffix in (' COUNTY', ' PARISH', ' BOROUGH'):
        if upper.endswith(suffix):
            return upper[:-len(suffix)]
    return upper


class PropertyStore:
    """Insertion-ordered property index keyed by id."""

    def __init__(self, min_confidence: Optional[int] = None):
        self._records: Dict[str, EnrichedProperty] = {}
        self.min_confidence = min_confidence
        self.last_updated: Optional[datetime] = None

    def __len__(self) -> int:
        return len(self._records)

    def replace_all(self, records: List[EnrichedProperty]) -> None:
        """Swap in the records of a completed run."""
        self._records = {r.id: r for r in records}
        self.last_updated = datetime.utcnow()
        logger.info("property_store_replaced", records=len(self._records))

    def all(self) -> List[EnrichedProperty]:
        return list(self._records.values())

    def get(self, property_id: str) -> Optional[EnrichedProperty]:
        return self._records.get(property_id)

    def is_valid(self, record: EnrichedProperty) -> bool:
        return is_valid_property(record, self.min_confidence)

    def search(self, filters: SearchFilters) -> List[EnrichedProperty]:
        """
        Filter stored records.

        Args:
            filters: Unset fields do not constrain; text filters are
                case-insensitive

        Returns:
            Matching records in insertion order, truncated to filters.limit
        """
        text = filters.search_text.strip().upper() if filters.search_text else None
        owner = filters.owner_name.strip().upper() if filters.owner_name else None
        state = _state_key(filters.state) if filters.state else None
        county = _county_key(filters.county) if filters.county else None

        matches = []
        for record in self._records.values():
            if filters.valid_only and not self.is_valid(record):
                continue
            if state and _state_key(record.state) != state:
                continue
            if county and _county_key(record.county) != county:
                continue
            if filters.zip_code and not (record.zip or '').startswith(filters.zip_code.strip()):
                continue
            if owner and owner not in record.owner_name.upper():
                continue
            if filters.min_value is not None and (
                record.assessed_value is None or record.assessed_value < filters.min_value
            ):
                continue
            if filters.max_value is not None and (
                record.assessed_value is None or record.assessed_value > filters.max_value
            ):
                continue
            if filters.min_confidence is not None and record.confidence_score < filters.min_confidence:
                continue
            if text:
                haystack = ' '.join(
                    filter(None, [record.address, record.owner_name, record.county, record.state, record.zip])
                ).upper()
                if text not in haystack:
                    continue

            matches.append(record)
            if filters.limit and len(matches) >= filters.limit:
                break

        return matches

    def within_radius(self, latitude: float, longitude: float, radius_miles: float) -> List[EnrichedProperty]:
        return [
            r for r in self._records.values()
            if r.has_coordinates()
            and haversine_distance(latitude, longitude, r.latitude, r.longitude) <= radius_miles
        ]

    def within_polygon(self, ring: Sequence[Sequence[float]]) -> List[EnrichedProperty]:
        return [
            r for r in self._records.values()
            if r.has_coordinates() and point_in_polygon(r.latitude, r.longitude, ring)
        ]
