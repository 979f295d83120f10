"""Configuration for the georeferencing engine.

Settings are read from (highest priority first):
  1. environment variables prefixed with GEOREF_ (e.g. GEOREF_DECLINATION_API_KEY)
  2. a .env file in the working directory
  3. the defaults below
"""

import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Runtime settings, validated by pydantic."""

    model_config = SettingsConfigDict(
        env_prefix="GEOREF_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    declination_service_url: str = Field(
        default="https://www.ngdc.noaa.gov/geomag-web/calculators/calculateDeclination",
        description="NOAA geomagnetic calculator endpoint used for declination lookups.",
    )
    declination_api_key: str = Field(
        default="",
        description="API key for the declination service. Sent as 'key' when not empty.",
    )
    declination_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Timeout in seconds for a declination request.",
    )
    geographic_crs: str = Field(
        default="EPSG:4326",
        description="Geographic CRS in which reference point latitude/longitude are expressed.",
    )


_settings_instance = None


def get_settings() -> Settings:
    """Return the process-wide Settings, loading them on first use."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
        logger.debug("Settings loaded: geographic CRS %s", _settings_instance.geographic_crs)
    return _settings_instance


def reset_settings():
    """Forget the loaded settings so the next get_settings() reloads them."""
    global _settings_instance
    _settings_instance = None
