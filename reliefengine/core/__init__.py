"""Functional Core - Pure functions with no side effects.

This module contains all decision logic as pure functions:
- Entity models and document parsing
- Request lifecycle state machine
- Geo/distance calculations and proximity ranking
- Donation-to-ask matching policies
- Shelter occupancy and status derivation
- Shelter booking lifecycle
- Snapshot projection and link re-validation

All functions here are deterministic and have no I/O.
"""

from reliefengine.core.booking import (
    approve_booking,
    cancel_booking,
    complete_booking,
    reject_booking,
)
from reliefengine.core.errors import EngineError, ErrorKind, TransitionResult
from reliefengine.core.geo import Ranked, calculate_distance, filter_within_radius
from reliefengine.core.lifecycle import assign_volunteer, transition, unassign
from reliefengine.core.matching import (
    MatchPolicy,
    build_match_decision,
    claim_donation,
    get_policy,
    match,
)
from reliefengine.core.models import (
    AskedDonation,
    Donation,
    Location,
    Request,
    Shelter,
    ShelterBooking,
)
from reliefengine.core.projection import DonationStats, Projection, Snapshot
from reliefengine.core.shelter import apply_occupancy_change, derive_status

__all__ = [
    # Errors
    "EngineError",
    "ErrorKind",
    "TransitionResult",
    # Models
    "AskedDonation",
    "Donation",
    "Location",
    "Request",
    "Shelter",
    "ShelterBooking",
    # Geo
    "Ranked",
    "calculate_distance",
    "filter_within_radius",
    # Lifecycle
    "assign_volunteer",
    "transition",
    "unassign",
    # Matching
    "MatchPolicy",
    "build_match_decision",
    "claim_donation",
    "get_policy",
    "match",
    # Shelter
    "apply_occupancy_change",
    "derive_status",
    # Bookings
    "approve_booking",
    "cancel_booking",
    "complete_booking",
    "reject_booking",
    # Projection
    "DonationStats",
    "Projection",
    "Snapshot",
]
