"""Snapshot projection - In-memory derived state.

The external store pushes the complete current set of a monitored
collection on every change. The projection replaces its working set for
that collection with each batch (it never merges) and recomputes derived
views from scratch on every read.

Collections arrive independently and in no particular order relative to
each other, so cross-entity links (donation <-> ask) are only eventually
consistent. ``find_link_inconsistencies`` re-validates them on demand.
"""

import threading
from dataclasses import dataclass, field
from typing import Any

from reliefengine.core.geo import (
    DEFAULT_DISTANCE_DECIMALS,
    DEFAULT_REQUEST_RADIUS_KM,
    DEFAULT_SHELTER_RADIUS_KM,
    Ranked,
    nearby_available_shelters,
    nearby_pending_requests,
)
from reliefengine.core.models import (
    AskStatus,
    AskedDonation,
    BookingStatus,
    Category,
    Donation,
    DonationStatus,
    Location,
    Request,
    Shelter,
    ShelterBooking,
)


REQUESTS = "requests"
DONATIONS = "donations"
ASKS = "asked_donations"
SHELTERS = "shelters"
BOOKINGS = "shelter_requests"


@dataclass(frozen=True)
class Snapshot:
    """Full current state of one monitored collection.

    Attributes:
        collection: Logical collection name
        entities: Every entity currently in the monitored set
        sequence: Comparable stamp of when the set was read (a store
            revision or a read time); later reads compare greater
    """
    collection: str
    entities: tuple[Any, ...]
    sequence: Any


@dataclass(frozen=True)
class LinkInconsistency:
    """A donation/ask pair whose links disagree.

    Attributes:
        donation_id: Donation involved (None if only the ask is known)
        ask_id: Ask involved (None if only the donation is known)
        message: Human-readable description
    """
    donation_id: str | None
    ask_id: str | None
    message: str


@dataclass(frozen=True)
class DonationStats:
    """Donation counts for the admin dashboard.

    Attributes:
        total: Number of donations
        total_quantity: Sum of donated quantities
        by_status: Count per status value
        by_category: Count per category value
    """
    total: int
    total_quantity: float
    by_status: dict[str, int]
    by_category: dict[str, int]


def donation_stats(donations: list[Donation]) -> DonationStats:
    """Count donations by status and category.

    Pure function.
    """
    by_status: dict[str, int] = {}
    by_category: dict[str, int] = {}
    for donation in donations:
        by_status[donation.status.value] = by_status.get(donation.status.value, 0) + 1
        by_category[donation.category.value] = by_category.get(donation.category.value, 0) + 1
    return DonationStats(
        total=len(donations),
        total_quantity=sum(d.quantity for d in donations),
        by_status=by_status,
        by_category=by_category,
    )


def find_link_inconsistencies(
    donations: list[Donation],
    asks: list[AskedDonation],
) -> list[LinkInconsistency]:
    """Re-validate donation <-> ask links.

    Pure function.

    A matched donation must point at an existing, matched ask that points
    back at it, and vice versa.

    Args:
        donations: Current donations
        asks: Current asks

    Returns:
        Every inconsistency found (empty if consistent)
    """
    asks_by_id = {a.id: a for a in asks}
    donations_by_id = {d.id: d for d in donations}
    problems = []

    for donation in donations:
        if donation.status is not DonationStatus.MATCHED:
            continue
        ask = asks_by_id.get(donation.linked_ask_id)
        if ask is None:
            problems.append(LinkInconsistency(
                donation_id=donation.id,
                ask_id=donation.linked_ask_id,
                message=f"Donation {donation.id} links to missing ask {donation.linked_ask_id}",
            ))
        elif ask.status is not AskStatus.MATCHED or ask.matched_donation_id != donation.id:
            problems.append(LinkInconsistency(
                donation_id=donation.id,
                ask_id=ask.id,
                message=f"Ask {ask.id} does not link back to donation {donation.id}",
            ))

    for ask in asks:
        if ask.status is not AskStatus.MATCHED:
            continue
        donation = donations_by_id.get(ask.matched_donation_id)
        if donation is None:
            problems.append(LinkInconsistency(
                donation_id=ask.matched_donation_id,
                ask_id=ask.id,
                message=f"Ask {ask.id} links to missing donation {ask.matched_donation_id}",
            ))
        elif donation.status is not DonationStatus.MATCHED or donation.linked_ask_id != ask.id:
            problems.append(LinkInconsistency(
                donation_id=donation.id,
                ask_id=ask.id,
                message=f"Donation {donation.id} does not link back to ask {ask.id}",
            ))

    return problems


@dataclass
class Projection:
    """Working sets rebuilt from full snapshots.

    Snapshot callbacks for different collections may arrive on different
    threads, so every read and write holds the lock.

    Attributes:
        decimals: Decimal places for reported distances
    """
    decimals: int = DEFAULT_DISTANCE_DECIMALS
    _sets: dict[str, tuple[Any, ...]] = field(default_factory=dict)
    _sequences: dict[str, Any] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def apply(self, snapshot: Snapshot) -> bool:
        """Replace a collection's working set with a snapshot.

        Batches that are not newer than the last applied batch for the
        same collection are dropped.

        Returns:
            True if the snapshot was applied
        """
        with self._lock:
            last = self._sequences.get(snapshot.collection)
            if last is not None and snapshot.sequence <= last:
                return False
            self._sets[snapshot.collection] = tuple(snapshot.entities)
            self._sequences[snapshot.collection] = snapshot.sequence
            return True

    def entities(self, collection: str) -> list[Any]:
        """Current working set of a collection (empty if never received)."""
        with self._lock:
            return list(self._sets.get(collection, ()))

    def last_sequence(self, collection: str) -> Any:
        with self._lock:
            return self._sequences.get(collection)

    def pending_requests_near(
        self,
        observer: Location,
        radius_km: float = DEFAULT_REQUEST_RADIUS_KM,
    ) -> list[Ranked[Request]]:
        return nearby_pending_requests(
            observer, self.entities(REQUESTS), radius_km, self.decimals
        )

    def open_shelters_near(
        self,
        observer: Location,
        radius_km: float = DEFAULT_SHELTER_RADIUS_KM,
    ) -> list[Ranked[Shelter]]:
        return nearby_available_shelters(
            observer, self.entities(SHELTERS), radius_km, self.decimals
        )

    def available_donations(self, category: Category | None = None) -> list[Donation]:
        return [
            d for d in self.entities(DONATIONS)
            if d.status is DonationStatus.AVAILABLE
            and (category is None or d.category == category)
        ]

    def pending_asks(self, category: Category | None = None) -> list[AskedDonation]:
        return [
            a for a in self.entities(ASKS)
            if a.status is AskStatus.PENDING
            and (category is None or a.category == category)
        ]

    def link_inconsistencies(self) -> list[LinkInconsistency]:
        """Re-validate links across the current donation and ask sets."""
        with self._lock:
            donations = list(self._sets.get(DONATIONS, ()))
            asks = list(self._sets.get(ASKS, ()))
        return find_link_inconsistencies(donations, asks)

    def donation_stats(self) -> DonationStats:
        return donation_stats(self.entities(DONATIONS))

    def pending_bookings(self, shelter_id: str | None = None) -> list[ShelterBooking]:
        """Bookings awaiting a volunteer's decision, optionally for one shelter."""
        return [
            b for b in self.entities(BOOKINGS)
            if b.status is BookingStatus.PENDING
            and (shelter_id is None or b.shelter_id == shelter_id)
        ]
