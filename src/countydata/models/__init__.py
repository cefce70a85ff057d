"""
Models Package

Pydantic models for sources, properties, policies and result payloads.
"""

from .data_source import (
    CountyData,
    DataSource,
    DiscoveryResult,
    Jurisdiction,
    Priority,
    SourceMethod,
    SourceStatus,
)
from .policy import BatchPolicy, RetryPolicy
from .property import (
    CensusData,
    EnrichedProperty,
    EnvironmentalData,
    FederalData,
    FloodZoneData,
    ProcessedProperty,
    RawCandidate,
)

__all__ = [
    "BatchPolicy",
    "CensusData",
    "CountyData",
    "DataSource",
    "DiscoveryResult",
    "EnrichedProperty",
    "EnvironmentalData",
    "FederalData",
    "FloodZoneData",
    "Jurisdiction",
    "Priority",
    "ProcessedProperty",
    "RawCandidate",
    "RetryPolicy",
    "SourceMethod",
    "SourceStatus",
]
