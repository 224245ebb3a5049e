"""Role-based request views and triage ordering - Pure functions.

Each portal role sees a different slice of the request set. The slice
is chosen from a table of filter functions keyed by role name.
"""

from typing import Callable, Iterable

from reliefengine.core.lifecycle import canonical_status
from reliefengine.core.models import Request, RequestStatus, Urgency


URGENCY_RANK = {
    Urgency.CRITICAL: 0,
    Urgency.HIGH: 1,
    Urgency.MEDIUM: 2,
    Urgency.LOW: 3,
}


def _admin_can_see(request: Request, user_id: str) -> bool:
    return True


def _volunteer_can_see(request: Request, user_id: str) -> bool:
    if request.assigned_volunteer_id == user_id:
        return True
    return canonical_status(request.status) in (
        RequestStatus.PENDING,
        RequestStatus.IN_PROGRESS,
    )


def _requester_can_see(request: Request, user_id: str) -> bool:
    return request.requester_id == user_id


ROLE_FILTERS: dict[str, Callable[[Request, str], bool]] = {
    "admin": _admin_can_see,
    "volunteer": _volunteer_can_see,
    "requester": _requester_can_see,
}


def visible_requests(
    requests: Iterable[Request],
    role: str,
    user_id: str,
) -> list[Request]:
    """Filter requests to those a user may see.

    Pure function. Unknown roles get the requester view.

    Args:
        requests: All requests
        role: 'admin', 'volunteer' or 'requester'
        user_id: ID of the viewing user

    Returns:
        Visible requests in input order
    """
    can_see = ROLE_FILTERS.get(role, _requester_can_see)
    return [r for r in requests if can_see(r, user_id)]


def _created_sort_key(request: Request) -> tuple[int, object]:
    # Requests without a timestamp go last within their urgency band
    if request.created_at is None:
        return (1, 0)
    return (0, request.created_at)


def prioritize_requests(requests: Iterable[Request]) -> list[Request]:
    """Order requests for dispatch.

    Pure function. Panic requests first, then by urgency (critical
    first), then oldest first. Stable for equal keys.
    """
    return sorted(
        requests,
        key=lambda r: (
            not r.panic,
            URGENCY_RANK[r.urgency],
            _created_sort_key(r),
        ),
    )
