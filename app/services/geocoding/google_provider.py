import logging
from typing import Dict, Any, Optional

import requests

from app.core.errors import GeocodeError
from .base import GEOCODE_FAILED_MESSAGE, Coordinates, GeocodingProvider

logger = logging.getLogger(__name__)


class GoogleMapsProvider(GeocodingProvider):
    """
    Google Maps Geocoding API provider.

    - Used when GEOCODING_PROVIDER=google.
    - Requires GOOGLE_MAPS_API_KEY; without it every call fails with GeocodeError.
    """

    BASE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
    name = "google"

    def __init__(self, api_key: Optional[str], timeout: float = 5.0):
        self.api_key = api_key
        self.timeout = timeout

    def geocode(self, address: str) -> Coordinates:
        if not self.api_key:
            logger.error("GoogleMapsProvider called without API key")
            raise GeocodeError("Geocoding is not configured: missing Google Maps API key")

        try:
            params = {"address": address, "key": self.api_key}
            resp = requests.get(self.BASE_URL, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"Google Maps geocode request error for {address!r}: {e}")
            raise GeocodeError(GEOCODE_FAILED_MESSAGE)

        if resp.status_code != 200:
            logger.warning(f"Google Maps geocode failed with status {resp.status_code} for {address!r}")
            raise GeocodeError(GEOCODE_FAILED_MESSAGE)

        data: Dict[str, Any] = resp.json()
        if data.get("status") != "OK" or not data.get("results"):
            logger.warning(
                f"Google Maps geocode returned {data.get('status')} for {address!r}: "
                f"{data.get('error_message', '')}"
            )
            raise GeocodeError(GEOCODE_FAILED_MESSAGE)

        location = data["results"][0]["geometry"]["location"]
        return Coordinates(latitude=float(location["lat"]), longitude=float(location["lng"]))
