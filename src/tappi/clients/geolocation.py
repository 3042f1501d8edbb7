"""Location lookup used to key maps grounding requests."""

from dataclasses import dataclass
from typing import Optional, Protocol

from tappi.config.settings import settings
from tappi.utils.logger import logger


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float

    def to_retrieval_config(self) -> dict:
        """Tool config keying maps retrieval on these coordinates."""
        return {
            "retrieval_config": {
                "lat_lng": {"latitude": self.latitude, "longitude": self.longitude}
            }
        }


class LocationProvider(Protocol):
    """One-shot source of the user's location."""

    async def locate(self) -> Optional[Coordinates]:
        """Return the current coordinates, or None when unknown."""
        ...


class StaticLocationProvider:
    """Location fixed by configuration (TAPPI_LATITUDE / TAPPI_LONGITUDE)."""

    def __init__(
        self,
        latitude: Optional[float] = settings.LATITUDE,
        longitude: Optional[float] = settings.LONGITUDE,
    ):
        self.latitude = latitude
        self.longitude = longitude

    async def locate(self) -> Optional[Coordinates]:
        if self.latitude is None or self.longitude is None:
            logger.debug("No static location configured")
            return None
        return Coordinates(latitude=self.latitude, longitude=self.longitude)
