"""
Helpers for computing data-quality metrics over processed properties.
"""
from __future__ import annotations

from typing import Dict, List, Optional

import pandas as pd

from src.countydata.models.property import EnrichedProperty, ProcessedProperty
from src.countydata.models.results import QualityMetrics
from src.countydata.pipelines.validation import is_valid_property


def calculate_data_quality(
    records: List[ProcessedProperty],
    min_confidence: Optional[int] = None,
) -> QualityMetrics:
    """
    Aggregate quality metrics.

    Args:
        records: Processed or enriched properties
        min_confidence: Validation threshold override

    Returns:
        QualityMetrics; quality_score is valid/total*100 and everything is
        zero for an empty input
    """
    if not records:
        return QualityMetrics()

    df = pd.DataFrame({
        "valid": [is_valid_property(r, min_confidence) for r in records],
        "geocoded": [r.has_coordinates() for r in records],
        "enriched": [isinstance(r, EnrichedProperty) and r.is_enriched() for r in records],
        "confidence": [r.confidence_score for r in records],
    })

    total = len(df)
    valid = int(df["valid"].sum())

    return QualityMetrics(
        total_records=total,
        valid_records=valid,
        geocoded_records=int(df["geocoded"].sum()),
        enriched_records=int(df["enriched"].sum()),
        average_confidence=round(float(df["confidence"].mean()), 2),
        quality_score=round(valid / total * 100, 2),
    )


def compute_coverage(records: List[ProcessedProperty]) -> Dict[str, int]:
    """Distinct states, distinct state/county pairs and record count."""
    if not records:
        return {"states": 0, "counties": 0, "properties": 0}

    df = pd.DataFrame([{"state": r.state, "county": r.county} for r in records])
    return {
        "states": int(df["state"].nunique()),
        "counties": int(df.drop_duplicates(["state", "county"]).shape[0]),
        "properties": len(records),
    }
