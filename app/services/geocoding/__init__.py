from .base import GEOCODE_FAILED_MESSAGE, Coordinates, GeocodingProvider
from .resolver import get_geocoding_provider

__all__ = ["GEOCODE_FAILED_MESSAGE", "Coordinates", "GeocodingProvider", "get_geocoding_provider"]
