"""Entity models and document parsing - Pure functions.

This module defines the immutable entities the engine reasons about
(requests, donations, asked donations, shelters, shelter bookings) and
converts raw document dicts from the store of record into typed objects
and back.
All functions are pure with no side effects.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class Category(str, Enum):
    """Aid category shared by requests, donations and asks."""
    MEDICAL = "medical"
    FOOD = "food"
    SHELTER = "shelter"
    TRANSPORT = "transport"
    CLOTHING = "clothing"
    OTHER = "other"


class Urgency(str, Enum):
    """Urgency level of an aid request."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RequestStatus(str, Enum):
    """Lifecycle status of an aid request.

    ASSIGNED is only ever read from legacy documents. The engine writes
    IN_PROGRESS for an assigned request.
    """
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


class DonationStatus(str, Enum):
    """Status of an offered donation."""
    AVAILABLE = "available"
    CLAIMED = "claimed"
    MATCHED = "matched"


class AskStatus(str, Enum):
    """Status of a requester's ask for a donation."""
    PENDING = "pending"
    MATCHED = "matched"
    CANCELLED = "cancelled"


class ShelterStatus(str, Enum):
    """Occupancy-derived shelter status."""
    OPEN = "open"
    LIMITED = "limited"
    FULL = "full"


class BookingStatus(str, Enum):
    """Status of a request for a place in a shelter."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Location:
    """A latitude/longitude pair in decimal degrees."""
    lat: float
    lng: float


@dataclass(frozen=True)
class Request:
    """Immutable aid request.

    Attributes:
        id: Opaque document ID
        category: Aid category
        urgency: Urgency level
        status: Lifecycle status
        location: Where help is needed (optional)
        created_at: Opaque, comparable creation timestamp
        assigned_volunteer_id: Volunteer handling the request
        assigned_at: When the volunteer was assigned
        panic: Whether the request came from the panic button
        requester_id: User who created the request
        title: Human-readable title
    """
    id: str
    category: Category
    urgency: Urgency
    status: RequestStatus = RequestStatus.PENDING
    location: Location | None = None
    created_at: Any = None
    assigned_volunteer_id: str | None = None
    assigned_at: Any = None
    panic: bool = False
    requester_id: str | None = None
    title: str = ""


@dataclass(frozen=True)
class Donation:
    """Immutable donation offered by a donor.

    Attributes:
        id: Opaque document ID
        category: Aid category
        quantity: Amount offered (units depend on category)
        status: Availability status
        linked_ask_id: Ask this donation was matched to
        created_at: Opaque, comparable creation timestamp
        claimed_by: Requester who claimed the donation directly
        claimed_at: When the donation was claimed
    """
    id: str
    category: Category
    quantity: float = 1
    status: DonationStatus = DonationStatus.AVAILABLE
    linked_ask_id: str | None = None
    created_at: Any = None
    claimed_by: str | None = None
    claimed_at: Any = None


@dataclass(frozen=True)
class AskedDonation:
    """Immutable ask for a donation of a given category."""
    id: str
    category: Category
    status: AskStatus = AskStatus.PENDING
    matched_donation_id: str | None = None
    created_at: Any = None
    requester_id: str | None = None


@dataclass(frozen=True)
class Shelter:
    """Immutable capacity-bounded shelter.

    Attributes:
        id: Opaque document ID
        capacity: Maximum number of occupants (> 0)
        occupied: Current number of occupants, within [0, capacity]
        status: Status derived from occupied/capacity
        location: Shelter location (optional)
        name: Human-readable name
    """
    id: str
    capacity: int
    occupied: int = 0
    status: ShelterStatus = ShelterStatus.OPEN
    location: Location | None = None
    name: str = ""


@dataclass(frozen=True)
class ShelterBooking:
    """Immutable request for a place in a shelter.

    Attributes:
        id: Opaque document ID
        shelter_id: Shelter being asked for
        requester_id: User asking for the place
        number_of_people: Party size (>= 1 for a valid booking)
        estimated_duration_days: Planned stay in days
        urgency: Urgency level
        status: Booking status
        assigned_volunteer_id: Volunteer who approved or rejected it
        assigned_at: When the volunteer decided
        response_notes: Volunteer's notes to the requester
        created_at: Opaque, comparable creation timestamp
    """
    id: str
    shelter_id: str
    requester_id: str | None = None
    number_of_people: int = 1
    estimated_duration_days: int = 1
    urgency: Urgency = Urgency.MEDIUM
    status: BookingStatus = BookingStatus.PENDING
    assigned_volunteer_id: str | None = None
    assigned_at: Any = None
    response_notes: str | None = None
    created_at: Any = None


def parse_location(data: dict[str, Any]) -> Location | None:
    """Extract a location from a document.

    Pure function.

    Accepts a ``location`` map with ``lat``/``lng``, a GeoPoint-like
    ``location`` object with ``latitude``/``longitude`` attributes, or
    top-level ``latitude``/``longitude`` fields.

    Args:
        data: Raw document dict

    Returns:
        Location, or None if the document has no usable coordinates
    """
    raw = data.get("location")
    lat = lng = None

    if isinstance(raw, dict):
        lat, lng = raw.get("lat"), raw.get("lng")
    elif raw is not None and hasattr(raw, "latitude"):
        lat, lng = raw.latitude, getattr(raw, "longitude", None)

    if lat is None or lng is None:
        lat, lng = data.get("latitude"), data.get("longitude")

    if lat is None or lng is None:
        return None

    try:
        return Location(lat=float(lat), lng=float(lng))
    except (TypeError, ValueError):
        return None


def _category(value: Any) -> Category:
    # Unknown categories from free-form forms fall back to OTHER
    try:
        return Category(value)
    except ValueError:
        return Category.OTHER


def parse_request(doc_id: str, data: dict[str, Any]) -> Request | None:
    """Parse a request document into a Request.

    Pure function: returns None if the document is unusable.

    Args:
        doc_id: Document ID
        data: Raw document dict

    Returns:
        Request or None if parsing fails
    """
    try:
        volunteer = data.get("assignedVolunteerId") or data.get("assignedVolunteer")
        return Request(
            id=doc_id,
            category=_category(data.get("category", "other")),
            urgency=Urgency(data.get("urgency", "medium")),
            status=RequestStatus(data.get("status", "pending")),
            location=parse_location(data),
            created_at=data.get("createdAt", data.get("timestamp")),
            assigned_volunteer_id=volunteer or None,
            assigned_at=data.get("assignedAt"),
            panic=bool(data.get("panic", False)),
            requester_id=data.get("requesterId"),
            title=data.get("title", ""),
        )
    except (TypeError, ValueError):
        return None


def parse_donation(doc_id: str, data: dict[str, Any]) -> Donation | None:
    """Parse a donation document into a Donation.

    Pure function: returns None for statuses outside the matching
    lifecycle (e.g. legacy approval-flow donations).
    """
    try:
        return Donation(
            id=doc_id,
            category=_category(data.get("category", "other")),
            quantity=float(data.get("quantity", data.get("amount")) or 1),
            status=DonationStatus(data.get("status", "available")),
            linked_ask_id=data.get("linkedAskId"),
            created_at=data.get("createdAt"),
            claimed_by=data.get("claimedBy"),
            claimed_at=data.get("claimedAt"),
        )
    except (TypeError, ValueError):
        return None


def parse_ask(doc_id: str, data: dict[str, Any]) -> AskedDonation | None:
    """Parse an asked-donation document into an AskedDonation."""
    try:
        return AskedDonation(
            id=doc_id,
            category=_category(data.get("category", "other")),
            status=AskStatus(data.get("status", "pending")),
            matched_donation_id=data.get("matchedDonationId"),
            created_at=data.get("createdAt"),
            requester_id=data.get("requesterId"),
        )
    except (TypeError, ValueError):
        return None


def parse_shelter(doc_id: str, data: dict[str, Any]) -> Shelter | None:
    """Parse a shelter document into a Shelter.

    Pure function. Shelters with a non-positive capacity are rejected.
    The stored status is read as-is; use ``normalize_shelter`` to
    re-derive it.
    """
    try:
        capacity = int(data["capacity"])
        if capacity <= 0:
            return None
        return Shelter(
            id=doc_id,
            capacity=capacity,
            occupied=int(data.get("occupied", 0)),
            status=ShelterStatus(data.get("status", "open")),
            location=parse_location(data),
            name=data.get("name", ""),
        )
    except (KeyError, TypeError, ValueError):
        return None


def parse_booking(doc_id: str, data: dict[str, Any]) -> ShelterBooking | None:
    """Parse a shelter-request document into a ShelterBooking.

    Pure function. Documents without a shelter are unusable. Party size
    and duration are read as-is; ``validate_booking`` checks their range.
    """
    try:
        shelter_id = data["shelterId"]
        if not shelter_id:
            return None
        return ShelterBooking(
            id=doc_id,
            shelter_id=shelter_id,
            requester_id=data.get("requesterId"),
            number_of_people=int(data.get("numberOfPeople", 1)),
            estimated_duration_days=int(data.get("estimatedDuration", 1)),
            urgency=Urgency(data.get("urgency", "medium")),
            status=BookingStatus(data.get("status", "pending")),
            assigned_volunteer_id=data.get("assignedVolunteerId"),
            assigned_at=data.get("assignedAt"),
            response_notes=data.get("responseNotes"),
            created_at=data.get("createdAt"),
        )
    except (KeyError, TypeError, ValueError):
        return None


def request_to_dict(request: Request) -> dict[str, Any]:
    """Serialize the engine-owned fields of a request.

    Only the lifecycle fields are returned; descriptive fields written by
    the portal (contact, description) are left untouched in the store.
    """
    return {
        "status": request.status.value,
        "assignedVolunteerId": request.assigned_volunteer_id,
        "assignedAt": request.assigned_at,
    }


def donation_to_dict(donation: Donation) -> dict[str, Any]:
    """Serialize the matching and claim fields of a donation."""
    return {
        "status": donation.status.value,
        "linkedAskId": donation.linked_ask_id,
        "claimedBy": donation.claimed_by,
        "claimedAt": donation.claimed_at,
    }


def ask_to_dict(ask: AskedDonation) -> dict[str, Any]:
    """Serialize the matching fields of an ask."""
    return {
        "status": ask.status.value,
        "matchedDonationId": ask.matched_donation_id,
    }


def shelter_to_dict(shelter: Shelter) -> dict[str, Any]:
    """Serialize the occupancy fields of a shelter."""
    return {
        "occupied": shelter.occupied,
        "status": shelter.status.value,
    }


def booking_to_dict(booking: ShelterBooking) -> dict[str, Any]:
    """Serialize the decision fields of a shelter booking."""
    return {
        "status": booking.status.value,
        "assignedVolunteerId": booking.assigned_volunteer_id,
        "assignedAt": booking.assigned_at,
        "responseNotes": booking.response_notes,
    }
