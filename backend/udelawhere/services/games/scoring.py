import math
from typing import Optional, Tuple

from .geo import GeoPoint, distance_feet

MAX_POINTS = 5000
DEFAULT_RECOGNIZABILITY = 5
MIN_RECOGNIZABILITY = 1
MAX_RECOGNIZABILITY = 10


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def normalize_recognizability(factor: Optional[int]) -> int:
    if factor is None:
        return DEFAULT_RECOGNIZABILITY
    return min(max(int(factor), MIN_RECOGNIZABILITY), MAX_RECOGNIZABILITY)


def max_distance_for_points(factor: Optional[int]) -> int:
    """Farthest distance (feet) that still earns points: 2000 ft at R=1 down to 650 ft at R=10."""
    return 2000 - (normalize_recognizability(factor) - 1) * 150


def min_distance_for_perfect(factor: Optional[int]) -> int:
    """Distance (feet) at or under which a guess is perfect: 55 ft at R=1 up to 100 ft at R=10."""
    return 50 + normalize_recognizability(factor) * 5


def points_for_distance(distance: float, factor: Optional[int] = None) -> int:
    """Convert a guess distance in feet into a point award in [0, 5000].

    Easily recognised locations (high factor) shrink the scoring radius, so a
    guess has to be closer to earn the same points. Between the perfect radius
    and the cutoff the award decays linearly, then snaps to a multiple of 10.
    """
    max_distance = max_distance_for_points(factor)
    min_distance = min_distance_for_perfect(factor)

    if distance > max_distance:
        return 0
    if distance <= min_distance:
        return MAX_POINTS

    ratio = 1 - (distance - min_distance) / (max_distance - min_distance)
    points = _round_half_up(MAX_POINTS * max(0.0, ratio))
    return _round_half_up(points / 10) * 10


def score_guess(guess: GeoPoint, location) -> Tuple[float, int]:
    """Score a guess against a location; returns (distance_feet, points)."""
    distance = distance_feet(guess, location.point)
    return distance, points_for_distance(distance, location.recognizability_factor())
