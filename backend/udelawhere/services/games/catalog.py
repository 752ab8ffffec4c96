"""Location catalog: the read-only set of panoramas a session draws from."""

import json
import logging
import os
import random
from concurrent.futures import Future, InvalidStateError
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from .geo import GeoPoint
from .scoring import DEFAULT_RECOGNIZABILITY, normalize_recognizability

logger = logging.getLogger(__name__)

DEFAULT_LOCATIONS_FILE = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), 'data', 'locations.json')


@dataclass(frozen=True)
class Location:
    id: str
    image: str
    point: GeoPoint
    name: str
    recognizability: Future = field(default_factory=Future, compare=False, repr=False)

    def recognizability_factor(self) -> int:
        """Current difficulty factor; the default until the classifier has answered."""
        fut = self.recognizability
        if not fut.done() or fut.cancelled() or fut.exception() is not None:
            return DEFAULT_RECOGNIZABILITY
        return normalize_recognizability(fut.result())

    def is_rated(self) -> bool:
        return self.recognizability.done()

    def resolve_recognizability(self, factor: Optional[int]) -> bool:
        """Settle the factor once; later answers are ignored."""
        if self.recognizability.done():
            return False
        try:
            self.recognizability.set_result(normalize_recognizability(factor))
        except InvalidStateError:
            # another worker settled it first
            return False
        return True

    @classmethod
    def from_dict(cls, data: dict) -> 'Location':
        coords = data['coordinates']
        location = cls(
            id=str(data['id']),
            image=data['image'],
            point=GeoPoint.from_pair(coords),
            name=data.get('name') or str(data['id']),
        )
        if data.get('recognizability') is not None:
            location.resolve_recognizability(data['recognizability'])
        return location

    def to_dict(self) -> dict:
        payload = {
            'id': self.id,
            'image': self.image,
            'coordinates': list(self.point.to_pair()),
            'name': self.name,
        }
        if self.is_rated():
            payload['recognizability'] = self.recognizability_factor()
        return payload


class LocationCatalog:
    """Immutable in-memory list of locations, loaded once at startup."""

    def __init__(self, locations: Optional[Iterable[Location]] = None):
        self._locations: List[Location] = list(locations or [])
        self._by_id: Dict[str, Location] = {loc.id: loc for loc in self._locations}
        self.source: Optional[str] = None

    def init_app(self, app) -> None:
        path = app.config.get('LOCATIONS_FILE') or DEFAULT_LOCATIONS_FILE
        self.load(path)
        app.logger.info(f"[catalog] loaded {len(self._locations)} locations from {path}")

    def load(self, path: str) -> None:
        with open(path, encoding='utf-8') as fh:
            raw = json.load(fh)
        locations = []
        for entry in raw:
            try:
                locations.append(Location.from_dict(entry))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(f"[catalog] skipping malformed entry {entry!r}: {exc}")
        self._locations = locations
        self._by_id = {loc.id: loc for loc in locations}
        self.source = path

    def __len__(self) -> int:
        return len(self._locations)

    def __iter__(self):
        return iter(self._locations)

    def get(self, location_id: str) -> Optional[Location]:
        return self._by_id.get(location_id)

    def sample(self, count: int, rng: Optional[random.Random] = None) -> List[Location]:
        """Draw ``count`` distinct locations; a short catalog yields a short session."""
        rng = rng or random
        if len(self._locations) < count:
            logger.warning(
                f"[catalog] not enough locations: requested {count}, have {len(self._locations)}"
            )
            picked = list(self._locations)
            rng.shuffle(picked)
            return picked
        return rng.sample(self._locations, count)

    def to_list(self) -> List[dict]:
        return [loc.to_dict() for loc in self._locations]
