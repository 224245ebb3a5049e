"""Shelter booking lifecycle - Pure functions.

Transitions:

    pending --approve--> approved --complete--> completed
       |  \                 |
       |   +--reject--> rejected
       +----> cancelled <---+

Approving or rejecting records the deciding volunteer. Rejected,
cancelled and completed bookings are terminal. A booking is only
approved if its party size and planned stay are in range.
"""

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from reliefengine.core.errors import (
    TransitionResult,
    invalid_transition,
    terminal_state_violation,
)
from reliefengine.core.models import BookingStatus, ShelterBooking


MIN_PEOPLE = 1
MIN_DURATION_DAYS = 1
MAX_DURATION_DAYS = 30

TERMINAL_BOOKING_STATUSES = frozenset({
    BookingStatus.REJECTED,
    BookingStatus.CANCELLED,
    BookingStatus.COMPLETED,
})

BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({
        BookingStatus.APPROVED,
        BookingStatus.REJECTED,
        BookingStatus.CANCELLED,
    }),
    BookingStatus.APPROVED: frozenset({
        BookingStatus.COMPLETED,
        BookingStatus.CANCELLED,
    }),
}


def validate_booking(booking: ShelterBooking) -> list[str]:
    """Check party size and planned stay.

    Pure function.

    Returns:
        Problems found (empty if the booking is valid)
    """
    problems = []
    if booking.number_of_people < MIN_PEOPLE:
        problems.append(
            f"Number of people must be at least {MIN_PEOPLE}, "
            f"got {booking.number_of_people}"
        )
    if not MIN_DURATION_DAYS <= booking.estimated_duration_days <= MAX_DURATION_DAYS:
        problems.append(
            f"Duration must be between {MIN_DURATION_DAYS} and "
            f"{MAX_DURATION_DAYS} days, got {booking.estimated_duration_days}"
        )
    return problems


def _guard(booking: ShelterBooking, target: BookingStatus) -> TransitionResult[ShelterBooking] | None:
    if booking.status in TERMINAL_BOOKING_STATUSES:
        return TransitionResult(
            entity=booking,
            error=terminal_state_violation(
                f"Booking {booking.id} is {booking.status.value} and cannot change"
            ),
        )
    if target not in BOOKING_TRANSITIONS.get(booking.status, frozenset()):
        return TransitionResult(
            entity=booking,
            error=invalid_transition(
                f"Cannot move booking {booking.id} from "
                f"{booking.status.value} to {target.value}"
            ),
        )
    return None


def _decide(
    booking: ShelterBooking,
    target: BookingStatus,
    volunteer_id: str,
    notes: str | None,
    decided_at: Any,
) -> TransitionResult[ShelterBooking]:
    rejected = _guard(booking, target)
    if rejected is not None:
        return rejected

    if not volunteer_id:
        return TransitionResult(
            entity=booking,
            error=invalid_transition("Volunteer ID is required to decide a booking"),
        )

    return TransitionResult(entity=replace(
        booking,
        status=target,
        assigned_volunteer_id=volunteer_id,
        assigned_at=decided_at if decided_at is not None else datetime.now(timezone.utc),
        response_notes=notes,
    ))


def approve_booking(
    booking: ShelterBooking,
    volunteer_id: str,
    notes: str | None = None,
    decided_at: Any = None,
) -> TransitionResult[ShelterBooking]:
    """Approve a pending booking.

    Pure function (apart from defaulting ``decided_at`` to now).

    Args:
        booking: Booking to approve
        volunteer_id: Volunteer approving it
        notes: Response notes for the requester
        decided_at: Timestamp to stamp; current UTC time if None

    Returns:
        TransitionResult with the approved booking, or an
        INVALID_TRANSITION / TERMINAL_STATE_VIOLATION error. Bookings
        with an out-of-range party size or stay are INVALID_TRANSITION.
    """
    problems = validate_booking(booking)
    if problems and booking.status not in TERMINAL_BOOKING_STATUSES:
        return TransitionResult(
            entity=booking,
            error=invalid_transition(f"Booking {booking.id}: {'; '.join(problems)}"),
        )
    return _decide(booking, BookingStatus.APPROVED, volunteer_id, notes, decided_at)


def reject_booking(
    booking: ShelterBooking,
    volunteer_id: str,
    notes: str | None = None,
    decided_at: Any = None,
) -> TransitionResult[ShelterBooking]:
    """Reject a pending booking, recording who decided."""
    return _decide(booking, BookingStatus.REJECTED, volunteer_id, notes, decided_at)


def complete_booking(booking: ShelterBooking) -> TransitionResult[ShelterBooking]:
    """Mark an approved booking as completed."""
    rejected = _guard(booking, BookingStatus.COMPLETED)
    if rejected is not None:
        return rejected
    return TransitionResult(entity=replace(booking, status=BookingStatus.COMPLETED))


def cancel_booking(booking: ShelterBooking) -> TransitionResult[ShelterBooking]:
    """Cancel a pending or approved booking.

    The deciding volunteer, if any, is kept for the record.
    """
    rejected = _guard(booking, BookingStatus.CANCELLED)
    if rejected is not None:
        return rejected
    return TransitionResult(entity=replace(booking, status=BookingStatus.CANCELLED))
