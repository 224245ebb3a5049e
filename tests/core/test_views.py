"""Tests for role-based request views and triage ordering."""

from reliefengine.core.models import Category, Request, RequestStatus, Urgency
from reliefengine.core.views import prioritize_requests, visible_requests


def make_request(request_id, status=RequestStatus.PENDING, volunteer=None,
                 requester=None, urgency=Urgency.MEDIUM, created_at=None,
                 panic=False):
    return Request(
        id=request_id,
        category=Category.FOOD,
        urgency=urgency,
        status=status,
        assigned_volunteer_id=volunteer,
        requester_id=requester,
        created_at=created_at,
        panic=panic,
    )


ALL_REQUESTS = [
    make_request("open", requester="U1"),
    make_request("mine", RequestStatus.IN_PROGRESS, volunteer="V1", requester="U2"),
    make_request("theirs", RequestStatus.IN_PROGRESS, volunteer="V2", requester="U1"),
    make_request("legacy", RequestStatus.ASSIGNED, volunteer="V3", requester="U2"),
    make_request("done_by_me", RequestStatus.RESOLVED, volunteer="V1", requester="U1"),
    make_request("done_by_other", RequestStatus.RESOLVED, volunteer="V2", requester="U2"),
    make_request("cancelled", RequestStatus.CANCELLED, requester="U1"),
]


def ids(requests):
    return [r.id for r in requests]


class TestVisibleRequests:
    """Tests for visible_requests()."""

    def test_admin_sees_everything(self):
        assert ids(visible_requests(ALL_REQUESTS, "admin", "A1")) == ids(ALL_REQUESTS)

    def test_volunteer_sees_active_and_own(self):
        result = visible_requests(ALL_REQUESTS, "volunteer", "V1")

        assert ids(result) == ["open", "mine", "theirs", "legacy", "done_by_me"]

    def test_requester_sees_own(self):
        result = visible_requests(ALL_REQUESTS, "requester", "U1")

        assert ids(result) == ["open", "theirs", "done_by_me", "cancelled"]

    def test_unknown_role_gets_requester_view(self):
        result = visible_requests(ALL_REQUESTS, "guest", "U2")

        assert ids(result) == ["mine", "legacy", "done_by_other"]


class TestPrioritizeRequests:
    """Tests for prioritize_requests()."""

    def test_panic_first(self):
        requests = [
            make_request("critical", urgency=Urgency.CRITICAL),
            make_request("panic", urgency=Urgency.LOW, panic=True),
        ]

        assert ids(prioritize_requests(requests)) == ["panic", "critical"]

    def test_urgency_order(self):
        requests = [
            make_request("low", urgency=Urgency.LOW),
            make_request("critical", urgency=Urgency.CRITICAL),
            make_request("medium", urgency=Urgency.MEDIUM),
            make_request("high", urgency=Urgency.HIGH),
        ]

        assert ids(prioritize_requests(requests)) == ["critical", "high", "medium", "low"]

    def test_oldest_first_within_urgency(self):
        requests = [
            make_request("newer", created_at=200),
            make_request("undated"),
            make_request("older", created_at=100),
        ]

        assert ids(prioritize_requests(requests)) == ["older", "newer", "undated"]

    def test_stable_for_equal_keys(self):
        requests = [make_request("first"), make_request("second")]

        assert ids(prioritize_requests(requests)) == ["first", "second"]
