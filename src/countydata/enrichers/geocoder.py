"""
Mapbox Geocoder

Forward geocoding of standardized street addresses. Coordinates outside the
United States are discarded.
"""
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from config.settings import settings
from src.countydata.utils.geo_utils import within_us_bounds
from src.countydata.utils.http_client import AsyncHttpClient
from src.countydata.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class GeocodeResult:
    """Best match for an address plus any administrative context returned."""
    latitude: float
    longitude: float
    zip: Optional[str] = None
    state: Optional[str] = None
    county: Optional[str] = None


class MapboxGeocoder:
    """
    Geocoder backed by the Mapbox places endpoint.

    Without an API key the geocoder is disabled and the processing pipeline
    skips the geocoding stage.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        http_client: Optional[AsyncHttpClient] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.mapbox_api_key
        self.base_url = (base_url or settings.mapbox_geocoding_url).rstrip('/')
        self.http_client = http_client or AsyncHttpClient()
        self.timeout = timeout if timeout is not None else settings.geocode_timeout_seconds

        logger.info("mapbox_geocoder_initialized", enabled=self.enabled)

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def geocode(self, address: str) -> Optional[GeocodeResult]:
        """
        Geocode one address.

        Args:
            address: Standardized street address

        Returns:
            GeocodeResult, or None when there is no match or the match lies
            outside US bounds

        Raises:
            SourceUnreachable: On network error, timeout or non-2xx status
        """
        url = f"{self.base_url}/{quote(address, safe='')}.json"
        params = {
            'access_token': self.api_key,
            'country': 'US',
            'types': 'address',
            'limit': 1,
        }

        payload = await self.http_client.get_json(url, timeout=self.timeout, params=params)

        features = (payload.get('features') or []) if isinstance(payload, dict) else []
        if not features:
            logger.debug("geocode_no_match", address=address[:50])
            return None

        feature = features[0]
        center = feature.get('center') or []
        if len(center) < 2:
            return None

        longitude, latitude = float(center[0]), float(center[1])
        if not within_us_bounds(latitude, longitude):
            logger.warning(
                "geocode_out_of_bounds",
                address=address[:50],
                latitude=latitude,
                longitude=longitude
            )
            return None

        result = GeocodeResult(latitude=latitude, longitude=longitude)
        place = None
        for item in feature.get('context', []):
            item_id = item.get('id', '')
            if item_id.startswith('postcode'):
                result.zip = item.get('text')
            elif item_id.startswith('region'):
                result.state = item.get('text')
            elif item_id.startswith('district'):
                result.county = item.get('text')
            elif item_id.startswith('place'):
                place = item.get('text')

        # Mapbox only returns a district for some counties
        if result.county is None:
            result.county = place

        return result
