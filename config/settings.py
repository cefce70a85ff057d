"""
Configuration Settings

Centralized configuration management using Pydantic and environment variables.
"""
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All sensitive values should be stored in .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Reference geography / census
    census_api_base: str = "https://api.census.gov/data/2020/dec/pl"
    census_api_key: Optional[str] = None
    census_geocoder_url: str = "https://geocoding.geo.census.gov/geocoder/geographies/coordinates"

    # FEMA National Flood Hazard Layer
    fema_nfhl_url: str = "https://hazards.fema.gov/gis/nfhl/rest/services/public/NFHL/MapServer"

    # EPA environmental lookup
    epa_envirofacts_url: str = "https://www.epa.gov/enviro/ef_metadata"

    # Geocoding (Mapbox)
    mapbox_api_key: Optional[str] = None
    mapbox_geocoding_url: str = "https://api.mapbox.com/geocoding/v5/mapbox.places"

    # Discovery settings
    discovery_batch_size: int = 50
    discovery_batch_delay_seconds: float = 2.0
    discovery_head_timeout_seconds: float = 5.0
    discovery_get_timeout_seconds: float = 10.0
    discovery_keyword_threshold: int = 3
    discovery_max_candidate_urls: int = 20

    # Scraper settings
    scraper_max_attempts: int = 3
    scraper_retry_delay_seconds: float = 2.0
    scraper_backoff_factor: float = 1.0
    scraper_timeout_seconds: float = 30.0

    # Geocoding stage settings
    geocode_batch_size: int = 10
    geocode_batch_delay_seconds: float = 1.0
    geocode_timeout_seconds: float = 10.0

    # Enrichment settings
    federal_timeout_seconds: float = 15.0

    # Validation settings
    min_valid_confidence: int = 50

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "json"

    # Application settings
    environment: str = "development"
    debug: bool = False


# Singleton instance
settings = Settings()
