import math
from dataclasses import dataclass
from typing import Sequence, Tuple

from .errors import InvalidGuessError

EARTH_RADIUS_MILES = 3959
FEET_PER_MILE = 5280


@dataclass(frozen=True)
class GeoPoint:
    """A (latitude, longitude) pair in decimal degrees."""

    lat: float
    lng: float

    @classmethod
    def from_pair(cls, pair: Sequence[float]) -> 'GeoPoint':
        lat, lng = pair
        return cls(float(lat), float(lng))

    @classmethod
    def validated(cls, lat, lng) -> 'GeoPoint':
        """Build a point from untrusted input, rejecting anything off the globe."""
        try:
            lat_f = float(lat)
            lng_f = float(lng)
        except (TypeError, ValueError):
            raise InvalidGuessError('lat and lng must be numbers')
        if math.isnan(lat_f) or math.isnan(lng_f):
            raise InvalidGuessError('lat and lng must be numbers')
        if not -90 <= lat_f <= 90:
            raise InvalidGuessError(f'latitude {lat_f} out of range [-90, 90]')
        if not -180 <= lng_f <= 180:
            raise InvalidGuessError(f'longitude {lng_f} out of range [-180, 180]')
        return cls(lat_f, lng_f)

    def to_pair(self) -> Tuple[float, float]:
        return (self.lat, self.lng)


def distance_feet(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two points in feet (haversine)."""
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    d_phi = math.radians(b.lat - a.lat)
    d_lambda = math.radians(b.lng - a.lng)

    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_MILES * c * FEET_PER_MILE
