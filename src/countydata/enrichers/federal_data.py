"""
Federal Data Integration

Reference data from federal services: Census county figures, Census
reverse geocoding (state/county/tract), FEMA flood zones and EPA
environmental hazard flags.
"""
import asyncio
from typing import Any, Dict, List, Optional

from config.settings import settings
from src.countydata.errors import CountyDataError, EnrichmentFailure
from src.countydata.models.property import CensusData, EnvironmentalData, FederalData, FloodZoneData
from src.countydata.utils.http_client import AsyncHttpClient
from src.countydata.utils.logger import get_logger

logger = get_logger(__name__)

# 2020 redistricting file: total population, occupied units, housing units
CENSUS_VARIABLES = {
    'population': 'P1_001N',
    'households': 'H1_002N',
    'housing_units': 'H1_001N',
}

HIGH_RISK_FLOOD_ZONES = {'A', 'AE', 'AH', 'AO', 'AR', 'A99', 'V', 'VE'}
MODERATE_RISK_FLOOD_ZONES = {'B', 'BE', 'BH', 'BO', 'BS'}

ENVIRONMENTAL_FACTORS = [
    # (payload flag, hazard label, risk points)
    ('superfund', 'Superfund Site', 50),
    ('brownfields', 'Brownfield Site', 30),
    ('airQuality', 'Air Quality Issues', 20),
    ('waterQuality', 'Water Quality Issues', 20),
]


def map_flood_zone_to_risk(zone: Optional[str]) -> str:
    if not zone:
        return 'LOW'
    zone = zone.strip().upper()
    if zone in HIGH_RISK_FLOOD_ZONES:
        return 'HIGH'
    if zone in MODERATE_RISK_FLOOD_ZONES:
        return 'MODERATE'
    return 'LOW'


def parse_environmental_hazards(data: Dict[str, Any]) -> List[str]:
    return [label for flag, label, _ in ENVIRONMENTAL_FACTORS if data.get(flag)]


def calculate_environmental_risk(data: Dict[str, Any]) -> int:
    """Sum of points for each flagged factor, capped at 100."""
    score = sum(points for flag, _, points in ENVIRONMENTAL_FACTORS if data.get(flag))
    return min(score, 100)


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


class FederalDataIntegrator:
    """
    Client for the federal reference services.

    Per-property lookups never raise: a failed service leaves its slot empty
    in the returned FederalData.
    """

    def __init__(
        self,
        http_client: Optional[AsyncHttpClient] = None,
        census_url: Optional[str] = None,
        census_api_key: Optional[str] = None,
        census_geocoder_url: Optional[str] = None,
        fema_url: Optional[str] = None,
        epa_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.http_client = http_client or AsyncHttpClient()
        self.census_url = census_url or settings.census_api_base
        self.census_api_key = census_api_key or settings.census_api_key
        self.census_geocoder_url = census_geocoder_url or settings.census_geocoder_url
        self.fema_url = (fema_url or settings.fema_nfhl_url).rstrip('/')
        self.epa_url = epa_url or settings.epa_envirofacts_url
        self.timeout = timeout if timeout is not None else settings.federal_timeout_seconds

        logger.info("federal_data_integrator_initialized", census_url=self.census_url)

    def _census_params(self, county: str, state: str) -> Dict[str, str]:
        params = {
            'get': ','.join(['NAME', *CENSUS_VARIABLES.values()]),
            'for': f'county:{county}',
            'in': f'state:{state}',
        }
        if self.census_api_key:
            params['key'] = self.census_api_key
        return params

    @staticmethod
    def _parse_census_rows(rows: Any) -> List[CensusData]:
        """Header-row JSON array -> CensusData, columns located by header name."""
        if not isinstance(rows, list) or len(rows) < 2:
            return []

        header = rows[0]
        records = []
        for row in rows[1:]:
            values = dict(zip(header, row))
            records.append(CensusData(
                name=values.get('NAME', ''),
                state_code=values.get('state', ''),
                county_code=values.get('county', ''),
                population=_to_int(values.get(CENSUS_VARIABLES['population'])),
                households=_to_int(values.get(CENSUS_VARIABLES['households'])),
                housing_units=_to_int(values.get(CENSUS_VARIABLES['housing_units'])),
            ))
        return records

    async def get_all_census_data(self) -> List[CensusData]:
        """
        Census figures for every county.

        Raises:
            EnrichmentFailure: If the Census API cannot be read
        """
        try:
            rows = await self.http_client.get_json(
                self.census_url, timeout=self.timeout, params=self._census_params('*', '*')
            )
        except CountyDataError as e:
            logger.error("census_fetch_failed", error=str(e))
            raise EnrichmentFailure(f"Failed to fetch census data: {e}") from e

        records = self._parse_census_rows(rows)
        logger.info("census_data_fetched", counties=len(records))
        return records

    async def get_census_data(self, state_code: str, county_code: str) -> Optional[CensusData]:
        """Census figures for one county, or None."""
        try:
            rows = await self.http_client.get_json(
                self.census_url, timeout=self.timeout,
                params=self._census_params(county_code, state_code)
            )
        except CountyDataError as e:
            logger.warning(
                "census_county_fetch_failed",
                state_code=state_code,
                county_code=county_code,
                error=str(e)
            )
            return None

        records = self._parse_census_rows(rows)
        return records[0] if records else None

    async def get_flood_zone_data(self, lat: float, lng: float) -> Optional[FloodZoneData]:
        """FEMA flood zone at a point, or None when unavailable."""
        params = {
            'geometry': f'{lng},{lat}',
            'geometryType': 'esriGeometryPoint',
            'sr': 4326,
            'layers': 'all',
            'tolerance': 0,
            'mapExtent': '-180,-90,180,90',
            'imageDisplay': '1024,768,96',
            'returnGeometry': 'false',
            'f': 'json',
        }
        try:
            payload = await self.http_client.get_json(
                f"{self.fema_url}/identify", timeout=self.timeout, params=params
            )
        except CountyDataError as e:
            logger.warning("flood_zone_fetch_failed", latitude=lat, longitude=lng, error=str(e))
            return None

        results = payload.get('results') if isinstance(payload, dict) else None
        if not isinstance(results, list) or not results or not isinstance(results[0], dict):
            return None

        attributes = results[0].get('attributes')
        if not isinstance(attributes, dict):
            attributes = {}
        zone = str(attributes.get('FLD_ZONE') or 'X')
        return FloodZoneData(
            flood_zone=zone,
            risk_level=map_flood_zone_to_risk(zone),
            latitude=lat,
            longitude=lng,
        )

    async def get_environmental_data(self, lat: float, lng: float) -> Optional[EnvironmentalData]:
        """EPA hazard flags near a point, or None when unavailable."""
        params = {'output': 'json', 'pGeometry': f'POINT({lng} {lat})'}
        try:
            payload = await self.http_client.get_json(self.epa_url, timeout=self.timeout, params=params)
        except CountyDataError as e:
            logger.warning("environmental_fetch_failed", latitude=lat, longitude=lng, error=str(e))
            return None

        if not isinstance(payload, dict):
            return None

        return EnvironmentalData(
            hazards=parse_environmental_hazards(payload),
            risk_score=calculate_environmental_risk(payload),
            latitude=lat,
            longitude=lng,
        )

    async def get_state_county_from_coordinates(self, lat: float, lng: float) -> Optional[Dict[str, str]]:
        """
        Reverse geocode a point to Census geographies.

        Returns:
            {'state': FIPS, 'county': FIPS, 'tract': tract or None}, or None
        """
        params = {
            'x': lng,
            'y': lat,
            'benchmark': 'Public_AR_Current',
            'vintage': 'Current_Current',
            'format': 'json',
        }
        try:
            payload = await self.http_client.get_json(
                self.census_geocoder_url, timeout=self.timeout, params=params
            )
        except CountyDataError as e:
            logger.warning("reverse_geocode_failed", latitude=lat, longitude=lng, error=str(e))
            return None

        result = payload.get('result') if isinstance(payload, dict) else None
        if not isinstance(result, dict):
            logger.debug("reverse_geocode_unrecognised", latitude=lat, longitude=lng)
            return None

        geographies = result.get('geographies')
        matches = result.get('addressMatches')
        if not geographies and isinstance(matches, list) and matches and isinstance(matches[0], dict):
            geographies = matches[0].get('geographies')
        if not isinstance(geographies, dict):
            return None

        try:
            state = geographies['States'][0]['STATE']
            county = geographies['Counties'][0]['COUNTY']
            tracts = geographies.get('Census Tracts') or []
            tract = tracts[0].get('TRACT') if tracts else None
        except (KeyError, IndexError, TypeError, AttributeError):
            return None

        return {'state': state, 'county': county, 'tract': tract}

    async def get_federal_data_for_property(
        self,
        address: Optional[str],
        lat: Optional[float],
        lng: Optional[float],
    ) -> FederalData:
        """
        All federal reference data for one property.

        Args:
            address: Street address (logged only)
            lat: Latitude
            lng: Longitude

        Returns:
            FederalData; empty when the property has no coordinates or every
            service failed
        """
        if lat is None or lng is None:
            return FederalData()

        location = await self.get_state_county_from_coordinates(lat, lng)

        async def census_lookup():
            if not location:
                return None
            return await self.get_census_data(location['state'], location['county'])

        outcomes = await asyncio.gather(
            census_lookup(),
            self.get_flood_zone_data(lat, lng),
            self.get_environmental_data(lat, lng),
            return_exceptions=True,
        )

        records = []
        for outcome in outcomes:
            if isinstance(outcome, Exception):
                logger.warning(
                    "federal_lookup_failed",
                    address=(address or '')[:50],
                    error=str(outcome),
                    error_type=type(outcome).__name__
                )
            elif outcome is not None:
                records.append(outcome)

        return FederalData.from_records(records, census_tract=location['tract'] if location else None)
