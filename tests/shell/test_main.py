"""Tests for the HTTP Cloud Function entry point."""

from unittest.mock import Mock, patch

import pytest

from reliefengine import main
from reliefengine.coordinator import Coordinator
from reliefengine.core.config import EngineConfig
from reliefengine.shell.store import InMemoryStore


@pytest.fixture
def store():
    store = InMemoryStore()
    store.put("requests", "r1", {"category": "food", "urgency": "low", "status": "pending"})
    store.put("donations", "d1", {"category": "food", "status": "available"})
    store.put("asked_donations", "a1", {"category": "food", "status": "pending"})
    store.put("shelters", "s1", {"capacity": 10, "occupied": 8})
    store.put("shelter_requests", "b1", {"shelterId": "s1", "numberOfPeople": 2,
                                         "estimatedDuration": 3})
    return store


@pytest.fixture
def coordinator(store):
    coordinator = Coordinator(EngineConfig(), store=store, sleep=Mock())
    with patch.object(main, "_get_coordinator", return_value=coordinator):
        yield coordinator


def call(payload):
    request = Mock()
    request.get_json.return_value = payload
    return main.relief_engine(request)


class TestReliefEngine:
    """Tests for the relief_engine() HTTP handler."""

    def test_assign(self, coordinator, store):
        body, status = call({"action": "assign", "request_id": "r1", "volunteer_id": "V1"})

        assert status == 200
        assert body["status"] == "success"
        assert body["entity"]["status"] == "in-progress"
        assert body["entity"]["assigned_volunteer_id"] == "V1"
        assert isinstance(body["entity"]["assigned_at"], str)

    def test_invalid_transition_is_409(self, coordinator):
        body, status = call({"action": "transition", "request_id": "r1", "status": "resolved"})

        assert status == 409
        assert body["error"] == "invalid_transition"

    def test_missing_request_is_404(self, coordinator):
        body, status = call({"action": "unassign", "request_id": "ghost"})

        assert status == 404
        assert body["error"] == "not_found"

    def test_match(self, coordinator, store):
        body, status = call({"action": "match", "donation_id": "d1", "ask_ids": ["a1"]})

        assert status == 200
        assert body["entity"]["donation"]["linked_ask_id"] == "a1"
        assert store.get("asked_donations", "a1")["status"] == "matched"

    def test_occupancy(self, coordinator, store):
        body, status = call({"action": "occupancy", "shelter_id": "s1", "delta": "5"})

        assert status == 200
        assert body["entity"]["occupied"] == 10
        assert body["entity"]["status"] == "full"

    def test_whole_float_delta(self, coordinator, store):
        _, status = call({"action": "occupancy", "shelter_id": "s1", "delta": -3.0})

        assert status == 200
        assert store.get("shelters", "s1")["occupied"] == 5

    @pytest.mark.parametrize("delta", [1.7, "1.7", True, None, "two"])
    def test_fractional_or_non_numeric_delta_is_400(self, coordinator, store, delta):
        body, status = call({"action": "occupancy", "shelter_id": "s1", "delta": delta})

        assert status == 400
        assert "delta" in body["message"].lower()
        assert store.get("shelters", "s1")["occupied"] == 8

    def test_claim(self, coordinator, store):
        body, status = call({"action": "claim", "donation_id": "d1", "requester_id": "U1"})

        assert status == 200
        assert body["entity"]["claimed_by"] == "U1"
        assert store.get("donations", "d1")["status"] == "claimed"

    def test_claim_twice_is_409(self, coordinator):
        call({"action": "claim", "donation_id": "d1", "requester_id": "U1"})

        body, status = call({"action": "claim", "donation_id": "d1", "requester_id": "U2"})

        assert status == 409
        assert body["error"] == "terminal_state_violation"

    def test_approve_booking(self, coordinator, store):
        body, status = call({"action": "approve_booking", "booking_id": "b1",
                             "volunteer_id": "V1", "notes": "Hall B"})

        assert status == 200
        assert body["entity"]["status"] == "approved"
        assert store.get("shelter_requests", "b1")["responseNotes"] == "Hall B"

    def test_booking_lifecycle(self, coordinator, store):
        call({"action": "reject_booking", "booking_id": "b1", "volunteer_id": "V1"})

        body, status = call({"action": "cancel_booking", "booking_id": "b1"})

        assert status == 409
        assert body["error"] == "terminal_state_violation"
        assert store.get("shelter_requests", "b1")["status"] == "rejected"

    def test_complete_booking(self, coordinator, store):
        call({"action": "approve_booking", "booking_id": "b1", "volunteer_id": "V1"})

        _, status = call({"action": "complete_booking", "booking_id": "b1"})

        assert status == 200
        assert store.get("shelter_requests", "b1")["status"] == "completed"

    def test_missing_field_is_400(self, coordinator):
        body, status = call({"action": "assign", "request_id": "r1"})

        assert status == 400
        assert "volunteer_id" in body["message"]

    def test_unknown_action_is_400(self, coordinator):
        body, status = call({"action": "teleport"})

        assert status == 400
        assert "teleport" in body["message"]

    def test_unknown_status_is_400(self, coordinator):
        _, status = call({"action": "transition", "request_id": "r1", "status": "done"})

        assert status == 400

    def test_non_object_body_is_400(self, coordinator):
        _, status = call(["assign"])

        assert status == 400

    def test_unexpected_error_is_500(self, coordinator):
        with patch.object(coordinator, "assign_volunteer", side_effect=RuntimeError("boom")):
            body, status = call({"action": "assign", "request_id": "r1", "volunteer_id": "V1"})

        assert status == 500
        assert body["message"] == "boom"
