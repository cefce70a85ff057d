"""
Unit tests for CSV / JSON / GeoJSON export
"""
import csv
import io
import json
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[3]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from src.countydata.pipelines.export import CSV_COLUMNS, export_records


def test_csv_has_fixed_header_and_quoted_strings(make_property):
    records = [make_property(id="property_a", confidence_score=90)]

    content = export_records(records, "csv")

    lines = content.strip().split("\n")
    assert lines[0] == ",".join(f'"{c}"' for c in CSV_COLUMNS)
    assert '"123 MAIN ST"' in lines[1]
    assert ",90," in lines[1]

    rows = list(csv.reader(io.StringIO(content)))
    assert rows[1][0] == "property_a"
    assert rows[1][1] == "123 MAIN ST"
    assert rows[1][2] == "JOHN DOE"


def test_csv_empty_has_header_only():
    content = export_records([], "csv")

    assert content.strip().split("\n") == [",".join(f'"{c}"' for c in CSV_COLUMNS)]


def test_json_is_indented_array(make_property):
    records = [make_property(), make_property(address="9 ELM CT")]

    content = export_records(records, "json")

    payload = json.loads(content)
    assert isinstance(payload, list)
    assert [p["address"] for p in payload] == ["123 MAIN ST", "9 ELM CT"]
    assert "\n  " in content


def test_geojson_only_includes_geocoded(make_property):
    records = [
        make_property(id="with_coords", latitude=28.54, longitude=-81.38),
        make_property(id="no_coords"),
    ]

    payload = json.loads(export_records(records, "geojson"))

    assert payload["type"] == "FeatureCollection"
    assert len(payload["features"]) == 1
    feature = payload["features"][0]
    assert feature["geometry"] == {"type": "Point", "coordinates": [-81.38, 28.54]}
    assert feature["properties"]["id"] == "with_coords"
    assert set(feature["properties"]) == {
        "id", "address", "owner_name", "assessed_value", "state", "county", "confidence_score"
    }


def test_format_is_case_insensitive(make_property):
    assert json.loads(export_records([make_property()], "JSON"))


def test_unsupported_format_raises(make_property):
    with pytest.raises(ValueError, match="Unsupported export format"):
        export_records([make_property()], "xml")
