"""
Property Export

Serializes property records to CSV, JSON or GeoJSON text.
"""
import csv
import json
from typing import List

import pandas as pd

from src.countydata.models.property import ProcessedProperty

EXPORT_FORMATS = ('csv', 'json', 'geojson')

CSV_COLUMNS = [
    'id', 'address', 'owner_name', 'assessed_value', 'state', 'county', 'zip',
    'latitude', 'longitude', 'confidence_score', 'data_source', 'created_at',
]

GEOJSON_PROPERTIES = [
    'id', 'address', 'owner_name', 'assessed_value', 'state', 'county', 'confidence_score',
]


def to_csv(records: List[ProcessedProperty]) -> str:
    """Fixed header row; string fields quoted, numbers bare."""
    rows = [r.model_dump(mode='json', include=set(CSV_COLUMNS)) for r in records]
    df = pd.DataFrame(rows, columns=CSV_COLUMNS)
    # Keep integer scores integral when the column has no gaps
    if not df.empty:
        df['confidence_score'] = df['confidence_score'].astype(int)
    return df.to_csv(index=False, quoting=csv.QUOTE_NONNUMERIC, lineterminator='\n')


def to_json(records: List[ProcessedProperty]) -> str:
    return json.dumps([r.model_dump(mode='json') for r in records], indent=2)


def to_geojson(records: List[ProcessedProperty]) -> str:
    """FeatureCollection of Point features; records without coordinates are omitted."""
    features = []
    for record in records:
        if not record.has_coordinates():
            continue
        features.append({
            'type': 'Feature',
            'geometry': {
                'type': 'Point',
                'coordinates': [record.longitude, record.latitude],
            },
            'properties': record.model_dump(mode='json', include=set(GEOJSON_PROPERTIES)),
        })
    return json.dumps({'type': 'FeatureCollection', 'features': features}, indent=2)


def export_records(records: List[ProcessedProperty], export_format: str) -> str:
    """
    Serialize records.

    Args:
        records: Records to export
        export_format: 'csv', 'json' or 'geojson'

    Returns:
        Serialized text

    Raises:
        ValueError: For any other format
    """
    fmt = (export_format or '').lower()
    if fmt == 'csv':
        return to_csv(records)
    if fmt == 'json':
        return to_json(records)
    if fmt == 'geojson':
        return to_geojson(records)
    raise ValueError(f"Unsupported export format: {export_format}")
