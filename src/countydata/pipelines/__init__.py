"""
Pipelines Package

Data transformation pipelines:
- Processing: standardize, geocode, deduplicate, enrich, validate
- Deduplication: address/owner record merging
- Export: CSV, JSON and GeoJSON serialization
"""
from src.countydata.pipelines.deduplication import PropertyDeduplicator

__all__ = ["PropertyDeduplicator"]
