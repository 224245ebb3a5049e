"""Geographic calculations and proximity ranking - Pure functions.

This module provides the Haversine distance between coordinate pairs and
the read-side filter that ranks geolocated entities (requests, shelters,
donations) by distance from an observer.
All functions are pure with no side effects.
"""

import math
from dataclasses import dataclass
from typing import Generic, Iterable, TypeVar

from reliefengine.core.models import (
    Location,
    Request,
    RequestStatus,
    Shelter,
)
from reliefengine.core.shelter import has_capacity


# Earth's radius in kilometers
EARTH_RADIUS_KM = 6371.0

# Distances are reported to one decimal place
DEFAULT_DISTANCE_DECIMALS = 1

# Default search radius for volunteers looking for requests
DEFAULT_REQUEST_RADIUS_KM = 50.0

# Default search radius for people looking for a shelter
DEFAULT_SHELTER_RADIUS_KM = 10.0


T = TypeVar("T")


@dataclass(frozen=True)
class Ranked(Generic[T]):
    """An entity annotated with its distance from the observer.

    Attributes:
        entity: The ranked entity (unchanged)
        distance_km: Rounded distance from the observer in kilometers
    """
    entity: T
    distance_km: float


def calculate_distance(
    lat1: float,
    lng1: float,
    lat2: float,
    lng2: float,
) -> float:
    """Calculate distance between two points using Haversine formula.

    Pure function.

    Args:
        lat1: Latitude of first point
        lng1: Longitude of first point
        lat2: Latitude of second point
        lng2: Longitude of second point

    Returns:
        Distance in kilometers
    """
    # Convert to radians
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lng = math.radians(lng2 - lng1)

    # Haversine formula
    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lng / 2) ** 2
    )

    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_between(a: Location, b: Location) -> float:
    """Haversine distance between two locations in kilometers."""
    return calculate_distance(a.lat, a.lng, b.lat, b.lng)


def round_distance(distance_km: float, decimals: int = DEFAULT_DISTANCE_DECIMALS) -> float:
    """Round a distance for display and radius comparison.

    Pure function.
    """
    return round(distance_km, decimals)


def filter_within_radius(
    observer: Location,
    candidates: Iterable[T],
    radius_km: float,
    decimals: int = DEFAULT_DISTANCE_DECIMALS,
) -> list[Ranked[T]]:
    """Rank candidates within a radius of the observer, nearest first.

    Pure function. Candidates must expose a ``location`` attribute;
    candidates without a location are excluded, never treated as being
    at distance 0. Ties keep their input order.

    Args:
        observer: Observer location
        candidates: Geolocated entities
        radius_km: Inclusive search radius in kilometers
        decimals: Decimal places the distance is rounded to

    Returns:
        Candidates within the radius, annotated with their distance
    """
    ranked = []

    for candidate in candidates:
        location = getattr(candidate, "location", None)
        if location is None:
            continue

        distance = round_distance(distance_between(observer, location), decimals)
        if distance <= radius_km:
            ranked.append(Ranked(entity=candidate, distance_km=distance))

    return sorted(ranked, key=lambda r: r.distance_km)


def nearby_pending_requests(
    observer: Location,
    requests: Iterable[Request],
    radius_km: float = DEFAULT_REQUEST_RADIUS_KM,
    decimals: int = DEFAULT_DISTANCE_DECIMALS,
) -> list[Ranked[Request]]:
    """Pending requests a volunteer at ``observer`` could pick up.

    Pure function.
    """
    pending = [r for r in requests if r.status is RequestStatus.PENDING]
    return filter_within_radius(observer, pending, radius_km, decimals)


def nearby_available_shelters(
    observer: Location,
    shelters: Iterable[Shelter],
    radius_km: float = DEFAULT_SHELTER_RADIUS_KM,
    decimals: int = DEFAULT_DISTANCE_DECIMALS,
) -> list[Ranked[Shelter]]:
    """Shelters near ``observer`` that still have room.

    Pure function. Room is judged from occupied/capacity, not from the
    stored status.
    """
    available = [s for s in shelters if has_capacity(s)]
    return filter_within_radius(observer, available, radius_km, decimals)
