"""Request lifecycle state machine - Pure functions.

Transitions:

    pending --assign--> in-progress --resolve--> resolved
       |                    |
       +----> cancelled <---+

``assigned`` is a legacy alias of ``in-progress``; every guard treats
the two identically and the engine only ever writes ``in-progress``.
All functions are pure and return a TransitionResult. A rejected
transition carries the original request unchanged.
"""

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from reliefengine.core.errors import (
    TransitionResult,
    invalid_transition,
    terminal_state_violation,
)
from reliefengine.core.models import Request, RequestStatus


TERMINAL_STATUSES = frozenset({RequestStatus.RESOLVED, RequestStatus.CANCELLED})

ASSIGNED_STATUSES = frozenset({
    RequestStatus.ASSIGNED,
    RequestStatus.IN_PROGRESS,
    RequestStatus.RESOLVED,
})

ALLOWED_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.PENDING: frozenset({
        RequestStatus.IN_PROGRESS,
        RequestStatus.CANCELLED,
    }),
    RequestStatus.IN_PROGRESS: frozenset({
        RequestStatus.RESOLVED,
        RequestStatus.CANCELLED,
    }),
}


def canonical_status(status: RequestStatus) -> RequestStatus:
    """Collapse the ``assigned`` alias onto ``in-progress``.

    Pure function.
    """
    if status is RequestStatus.ASSIGNED:
        return RequestStatus.IN_PROGRESS
    return status


def is_terminal(request: Request) -> bool:
    """Check whether a request can no longer change state."""
    return request.status in TERMINAL_STATUSES


def has_valid_assignment(request: Request) -> bool:
    """Check the assignment invariant.

    Pure function.

    A volunteer is assigned if and only if the request is assigned,
    in progress or resolved.

    Args:
        request: Request to check

    Returns:
        True if the invariant holds
    """
    assigned = request.assigned_volunteer_id is not None
    return assigned == (request.status in ASSIGNED_STATUSES)


def _terminal_error(request: Request) -> TransitionResult[Request]:
    return TransitionResult(
        entity=request,
        error=terminal_state_violation(
            f"Request {request.id} is {request.status.value} and cannot change"
        ),
    )


def assign_volunteer(
    request: Request,
    volunteer_id: str,
    assigned_at: Any = None,
) -> TransitionResult[Request]:
    """Assign a volunteer to a pending request.

    Pure function (apart from defaulting ``assigned_at`` to now).

    Args:
        request: Request to assign
        volunteer_id: Volunteer taking the request
        assigned_at: Timestamp to stamp; current UTC time if None

    Returns:
        TransitionResult with the in-progress request, or an
        INVALID_TRANSITION / TERMINAL_STATE_VIOLATION error
    """
    if is_terminal(request):
        return _terminal_error(request)

    if request.status is not RequestStatus.PENDING:
        return TransitionResult(
            entity=request,
            error=invalid_transition(
                f"Request {request.id} is {request.status.value}; "
                "only pending requests can be assigned"
            ),
        )

    if not volunteer_id:
        return TransitionResult(
            entity=request,
            error=invalid_transition("Volunteer ID is required for assignment"),
        )

    return TransitionResult(entity=replace(
        request,
        status=RequestStatus.IN_PROGRESS,
        assigned_volunteer_id=volunteer_id,
        assigned_at=assigned_at if assigned_at is not None else datetime.now(timezone.utc),
    ))


def transition(
    request: Request,
    new_status: RequestStatus,
    volunteer_id: str | None = None,
) -> TransitionResult[Request]:
    """Move a request to a new status following the transition table.

    Pure function.

    Moving a pending request to in-progress is an assignment and needs
    ``volunteer_id``. Cancelling clears any assignment; resolving keeps it.

    Args:
        request: Request to transition
        new_status: Target status (``assigned`` is read as ``in-progress``)
        volunteer_id: Volunteer, required for pending -> in-progress

    Returns:
        TransitionResult with the new request or an error
    """
    if is_terminal(request):
        return _terminal_error(request)

    current = canonical_status(request.status)
    target = canonical_status(new_status)

    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        return TransitionResult(
            entity=request,
            error=invalid_transition(
                f"Cannot move request {request.id} from "
                f"{current.value} to {target.value}"
            ),
        )

    if target is RequestStatus.IN_PROGRESS:
        return assign_volunteer(request, volunteer_id or "")

    if target is RequestStatus.CANCELLED:
        return TransitionResult(entity=replace(
            request,
            status=RequestStatus.CANCELLED,
            assigned_volunteer_id=None,
            assigned_at=None,
        ))

    return TransitionResult(entity=replace(request, status=target))


def unassign(request: Request) -> TransitionResult[Request]:
    """Return an in-progress request to the pending pool.

    Pure function. Used when a volunteer declines before acting.

    Args:
        request: Request to release

    Returns:
        TransitionResult with the pending request or an error
    """
    if is_terminal(request):
        return _terminal_error(request)

    if canonical_status(request.status) is not RequestStatus.IN_PROGRESS:
        return TransitionResult(
            entity=request,
            error=invalid_transition(
                f"Request {request.id} is {request.status.value}; "
                "only in-progress requests can be unassigned"
            ),
        )

    return TransitionResult(entity=replace(
        request,
        status=RequestStatus.PENDING,
        assigned_volunteer_id=None,
        assigned_at=None,
    ))
