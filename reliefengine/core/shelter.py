"""Shelter occupancy model - Pure functions.

Occupancy is a saturating counter: changes are clamped to
[0, capacity] instead of being rejected, so concurrent bookings and
releases can never drive the counter negative or past capacity.
Status is always derived from the clamped counter.
"""

from dataclasses import replace

from reliefengine.core.models import Shelter, ShelterStatus


# A shelter above this share of its capacity is reported as limited
DEFAULT_LIMITED_THRESHOLD = 0.8


def clamp_occupancy(occupied: int, capacity: int) -> int:
    """Clamp an occupancy count to [0, capacity].

    Pure function.
    """
    return max(0, min(capacity, occupied))


def derive_status(
    occupied: int,
    capacity: int,
    limited_threshold: float = DEFAULT_LIMITED_THRESHOLD,
) -> ShelterStatus:
    """Derive shelter status from its occupancy.

    Pure function.

    Args:
        occupied: Current occupants
        capacity: Maximum occupants
        limited_threshold: Share of capacity above which the shelter is limited

    Returns:
        FULL at capacity, LIMITED above the threshold, otherwise OPEN
    """
    if occupied >= capacity:
        return ShelterStatus.FULL
    if occupied > limited_threshold * capacity:
        return ShelterStatus.LIMITED
    return ShelterStatus.OPEN


def normalize_shelter(
    shelter: Shelter,
    limited_threshold: float = DEFAULT_LIMITED_THRESHOLD,
) -> Shelter:
    """Clamp occupancy and re-derive status for a stored snapshot.

    Pure function. Idempotent: normalizing a normalized shelter returns
    an equal shelter.
    """
    occupied = clamp_occupancy(shelter.occupied, shelter.capacity)
    return replace(
        shelter,
        occupied=occupied,
        status=derive_status(occupied, shelter.capacity, limited_threshold),
    )


def apply_occupancy_change(
    shelter: Shelter,
    delta: int,
    limited_threshold: float = DEFAULT_LIMITED_THRESHOLD,
) -> Shelter:
    """Apply an occupancy change and re-derive status.

    Pure function. Never fails: out-of-range deltas saturate at the
    bounds.

    Args:
        shelter: Current shelter snapshot
        delta: Occupants arriving (positive) or leaving (negative)
        limited_threshold: Share of capacity above which the shelter is limited

    Returns:
        New shelter snapshot
    """
    occupied = clamp_occupancy(shelter.occupied + delta, shelter.capacity)
    return replace(
        shelter,
        occupied=occupied,
        status=derive_status(occupied, shelter.capacity, limited_threshold),
    )


def has_capacity(shelter: Shelter) -> bool:
    """Check whether a shelter can take at least one more occupant."""
    return shelter.occupied < shelter.capacity
