from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging

logger = logging.getLogger(__name__)

# Client-facing text; the address itself is only logged
GEOCODE_FAILED_MESSAGE = "Failed to geocode the provided address. Please check the address details."


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float


class GeocodingProvider(ABC):
    """
    Abstract forward-geocoding provider.

    Contract:
    - Input: free-text address (str)
    - Output: Coordinates for the best match
    - Raises GeocodeError when the address cannot be resolved, the provider
      rejects the request, or the network call fails/times out.
    - Implementations should enforce a network timeout.
    """

    name = "base"

    @abstractmethod
    def geocode(self, address: str) -> Coordinates:
        raise NotImplementedError
