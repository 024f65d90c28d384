import logging
from typing import Any, List

import requests

from app.core.errors import GeocodeError
from .base import GEOCODE_FAILED_MESSAGE, Coordinates, GeocodingProvider

logger = logging.getLogger(__name__)


class NominatimProvider(GeocodingProvider):
    """
    OpenStreetMap Nominatim search provider.

    - No API key required.
    - Includes a User-Agent header as required by Nominatim usage policy.
    """

    BASE_URL = "https://nominatim.openstreetmap.org/search"
    name = "nominatim"

    def __init__(self, user_agent: str = "crime-report-hub/1.0", timeout: float = 5.0):
        self.user_agent = user_agent
        self.timeout = timeout

    def geocode(self, address: str) -> Coordinates:
        params = {"q": address, "format": "json", "limit": 1}
        headers = {"User-Agent": self.user_agent}
        try:
            resp = requests.get(self.BASE_URL, params=params, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"Nominatim geocode request error for {address!r}: {e}")
            raise GeocodeError(GEOCODE_FAILED_MESSAGE)

        if resp.status_code != 200:
            logger.warning(f"Nominatim geocode failed with status {resp.status_code} for {address!r}")
            raise GeocodeError(GEOCODE_FAILED_MESSAGE)

        results: List[Any] = resp.json() or []
        if not results:
            logger.warning(f"Nominatim found no match for {address!r}")
            raise GeocodeError(GEOCODE_FAILED_MESSAGE)

        first = results[0]
        try:
            return Coordinates(latitude=float(first["lat"]), longitude=float(first["lon"]))
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Nominatim returned an unusable result for {address!r}: {first!r}")
            raise GeocodeError(GEOCODE_FAILED_MESSAGE)
