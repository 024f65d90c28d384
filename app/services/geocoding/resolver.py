import logging
from typing import Optional

from app.core.settings import settings
from .base import GeocodingProvider
from .nominatim_provider import NominatimProvider
from .google_provider import GoogleMapsProvider

logger = logging.getLogger(__name__)

_provider_instance: Optional[GeocodingProvider] = None


def get_geocoding_provider() -> GeocodingProvider:
    """
    Resolve the active geocoding provider based on settings.

    Rules:
    - Default: Nominatim (no API key required).
    - GEOCODING_PROVIDER='google' with GOOGLE_MAPS_API_KEY set: Google.
    - 'google' without a key falls back to Nominatim with a warning.
    """
    global _provider_instance
    if _provider_instance is not None:
        return _provider_instance

    provider_name = (settings.GEOCODING_PROVIDER or "nominatim").lower()
    timeout = settings.GEOCODING_TIMEOUT_SECONDS

    if provider_name == "google":
        if settings.GOOGLE_MAPS_API_KEY:
            _provider_instance = GoogleMapsProvider(api_key=settings.GOOGLE_MAPS_API_KEY, timeout=timeout)
            logger.info("Geocoding provider initialized: google")
            return _provider_instance
        logger.warning("GEOCODING_PROVIDER=google but GOOGLE_MAPS_API_KEY is not set. Falling back to Nominatim.")
    elif provider_name != "nominatim":
        logger.warning(f"Unknown GEOCODING_PROVIDER {provider_name!r}. Falling back to Nominatim.")

    _provider_instance = NominatimProvider(timeout=timeout)
    logger.info("Geocoding provider initialized: nominatim")
    return _provider_instance
