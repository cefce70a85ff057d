"""
Unit tests for the Mapbox geocoder
"""
import asyncio
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[3]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from src.countydata.enrichers.geocoder import MapboxGeocoder
from src.countydata.errors import SourceUnreachable

BASE = "https://geo.test/places"
ADDRESS = "123 MAIN ST ORLANDO FL"
URL = f"{BASE}/123%20MAIN%20ST%20ORLANDO%20FL.json"


def feature(lng, lat, context=None):
    return {"features": [{"center": [lng, lat], "context": context or []}]}


class TestMapboxGeocoder:
    """Tests for MapboxGeocoder.geocode"""

    def test_disabled_without_api_key(self, http_client_factory):
        geocoder = MapboxGeocoder(api_key="", base_url=BASE, http_client=http_client_factory())
        assert geocoder.enabled is False

    def test_match_with_context(self, http_client_factory, as_json):
        payload = feature(-81.38, 28.54, [
            {"id": "postcode.1", "text": "32801"},
            {"id": "place.2", "text": "Orlando"},
            {"id": "district.3", "text": "Orange County"},
            {"id": "region.4", "text": "Florida"},
        ])
        client = http_client_factory({URL: as_json(URL, payload)})
        geocoder = MapboxGeocoder(api_key="token", base_url=BASE, http_client=client)

        result = asyncio.run(geocoder.geocode(ADDRESS))

        assert result.latitude == pytest.approx(28.54)
        assert result.longitude == pytest.approx(-81.38)
        assert result.zip == "32801"
        assert result.state == "Florida"
        assert result.county == "Orange County"

        _, _, _, params = client.calls[0]
        assert params["access_token"] == "token"
        assert params["country"] == "US"
        assert params["limit"] == 1

    def test_place_used_when_no_district(self, http_client_factory, as_json):
        payload = feature(-81.38, 28.54, [{"id": "place.2", "text": "Orlando"}])
        client = http_client_factory({URL: as_json(URL, payload)})
        geocoder = MapboxGeocoder(api_key="token", base_url=BASE, http_client=client)

        assert asyncio.run(geocoder.geocode(ADDRESS)).county == "Orlando"

    def test_no_match_returns_none(self, http_client_factory, as_json):
        client = http_client_factory({URL: as_json(URL, {"features": []})})
        geocoder = MapboxGeocoder(api_key="token", base_url=BASE, http_client=client)

        assert asyncio.run(geocoder.geocode(ADDRESS)) is None

    def test_out_of_bounds_discarded(self, http_client_factory, as_json):
        # Somewhere in Europe
        client = http_client_factory({URL: as_json(URL, feature(2.35, 48.85))})
        geocoder = MapboxGeocoder(api_key="token", base_url=BASE, http_client=client)

        assert asyncio.run(geocoder.geocode(ADDRESS)) is None

    def test_transport_error_propagates(self, http_client_factory):
        client = http_client_factory({URL: SourceUnreachable(URL, "timeout")})
        geocoder = MapboxGeocoder(api_key="token", base_url=BASE, http_client=client)

        with pytest.raises(SourceUnreachable):
            asyncio.run(geocoder.geocode(ADDRESS))
