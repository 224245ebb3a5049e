"""Tests for the snapshot projection."""

import threading
from datetime import datetime, timezone

import pytest

from reliefengine.core.models import (
    AskStatus,
    AskedDonation,
    BookingStatus,
    Category,
    Donation,
    DonationStatus,
    Location,
    Request,
    RequestStatus,
    Shelter,
    ShelterBooking,
    ShelterStatus,
    Urgency,
)
from reliefengine.core.projection import (
    ASKS,
    BOOKINGS,
    DONATIONS,
    REQUESTS,
    SHELTERS,
    DonationStats,
    Projection,
    Snapshot,
    donation_stats,
    find_link_inconsistencies,
)


SF = Location(lat=37.7749, lng=-122.4194)
OAKLAND = Location(lat=37.8044, lng=-122.2712)


def make_request(request_id, status=RequestStatus.PENDING, location=SF):
    return Request(
        id=request_id,
        category=Category.MEDICAL,
        urgency=Urgency.HIGH,
        status=status,
        location=location,
    )


@pytest.fixture
def projection():
    return Projection()


class TestApply:
    """Tests for Projection.apply()."""

    def test_snapshot_replaces_working_set(self, projection):
        """A new batch replaces the previous one; nothing is merged."""
        projection.apply(Snapshot(REQUESTS, (make_request("r1"), make_request("r2")), 1))
        projection.apply(Snapshot(REQUESTS, (make_request("r3"),), 2))

        assert [r.id for r in projection.entities(REQUESTS)] == ["r3"]

    def test_empty_snapshot_clears_set(self, projection):
        projection.apply(Snapshot(REQUESTS, (make_request("r1"),), 1))
        projection.apply(Snapshot(REQUESTS, (), 2))

        assert projection.entities(REQUESTS) == []

    def test_stale_sequence_dropped(self, projection):
        assert projection.apply(Snapshot(REQUESTS, (make_request("new"),), 5)) is True
        assert projection.apply(Snapshot(REQUESTS, (make_request("old"),), 4)) is False
        assert projection.apply(Snapshot(REQUESTS, (make_request("dup"),), 5)) is False

        assert [r.id for r in projection.entities(REQUESTS)] == ["new"]
        assert projection.last_sequence(REQUESTS) == 5

    def test_read_times_as_sequences(self, projection):
        """Snapshot read times from the store order batches too."""
        earlier = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
        later = datetime(2024, 3, 1, 12, 0, 1, tzinfo=timezone.utc)

        projection.apply(Snapshot(REQUESTS, (make_request("new"),), later))
        applied = projection.apply(Snapshot(REQUESTS, (make_request("old"),), earlier))

        assert applied is False
        assert [r.id for r in projection.entities(REQUESTS)] == ["new"]
        assert projection.last_sequence(REQUESTS) == later

    def test_collections_are_independent(self, projection):
        projection.apply(Snapshot(REQUESTS, (make_request("r1"),), 10))
        applied = projection.apply(Snapshot(SHELTERS, (Shelter(id="s1", capacity=5),), 1))

        assert applied is True
        assert len(projection.entities(REQUESTS)) == 1
        assert len(projection.entities(SHELTERS)) == 1

    def test_unknown_collection_is_empty(self, projection):
        assert projection.entities(DONATIONS) == []
        assert projection.last_sequence(DONATIONS) is None

    def test_concurrent_applies_keep_latest(self, projection):
        """Batches applied from several threads settle on the highest sequence."""
        def worker(start):
            for seq in range(start, 200, 4):
                projection.apply(Snapshot(REQUESTS, (make_request(f"r{seq}"),), seq))

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert projection.last_sequence(REQUESTS) == 199
        assert [r.id for r in projection.entities(REQUESTS)] == ["r199"]


class TestDerivedViews:
    """Tests for views computed from the working sets."""

    def test_pending_requests_near(self, projection):
        projection.apply(Snapshot(REQUESTS, (
            make_request("far_taken", RequestStatus.IN_PROGRESS),
            make_request("oakland", location=OAKLAND),
            make_request("here"),
        ), 1))

        result = projection.pending_requests_near(SF)

        assert [r.entity.id for r in result] == ["here", "oakland"]
        assert result[0].distance_km == 0.0

    def test_open_shelters_near(self, projection):
        projection.apply(Snapshot(SHELTERS, (
            Shelter(id="full", capacity=2, occupied=2, status=ShelterStatus.FULL, location=SF),
            Shelter(id="open", capacity=2, location=SF),
        ), 1))

        assert [r.entity.id for r in projection.open_shelters_near(SF)] == ["open"]

    def test_views_recomputed_after_new_snapshot(self, projection):
        projection.apply(Snapshot(REQUESTS, (make_request("r1"),), 1))
        assert len(projection.pending_requests_near(SF)) == 1

        projection.apply(Snapshot(REQUESTS, (make_request("r1", RequestStatus.RESOLVED),), 2))

        assert projection.pending_requests_near(SF) == []

    def test_available_donations_by_category(self, projection):
        projection.apply(Snapshot(DONATIONS, (
            Donation(id="d1", category=Category.FOOD),
            Donation(id="d2", category=Category.MEDICAL),
            Donation(id="d3", category=Category.FOOD, status=DonationStatus.MATCHED,
                     linked_ask_id="a1"),
        ), 1))

        assert [d.id for d in projection.available_donations()] == ["d1", "d2"]
        assert [d.id for d in projection.available_donations(Category.FOOD)] == ["d1"]

    def test_pending_asks_by_category(self, projection):
        projection.apply(Snapshot(ASKS, (
            AskedDonation(id="a1", category=Category.FOOD),
            AskedDonation(id="a2", category=Category.FOOD, status=AskStatus.CANCELLED),
            AskedDonation(id="a3", category=Category.SHELTER),
        ), 1))

        assert [a.id for a in projection.pending_asks(Category.FOOD)] == ["a1"]
        assert [a.id for a in projection.pending_asks()] == ["a1", "a3"]

    def test_pending_bookings_by_shelter(self, projection):
        projection.apply(Snapshot(BOOKINGS, (
            ShelterBooking(id="b1", shelter_id="s1"),
            ShelterBooking(id="b2", shelter_id="s2"),
            ShelterBooking(id="b3", shelter_id="s1", status=BookingStatus.APPROVED),
        ), 1))

        assert [b.id for b in projection.pending_bookings()] == ["b1", "b2"]
        assert [b.id for b in projection.pending_bookings("s1")] == ["b1"]

    def test_donation_stats(self, projection):
        projection.apply(Snapshot(DONATIONS, (
            Donation(id="d1", category=Category.FOOD, quantity=5),
            Donation(id="d2", category=Category.FOOD, quantity=3,
                     status=DonationStatus.CLAIMED, claimed_by="U1"),
            Donation(id="d3", category=Category.MEDICAL, quantity=1,
                     status=DonationStatus.MATCHED, linked_ask_id="a1"),
        ), 1))

        assert projection.donation_stats() == DonationStats(
            total=3,
            total_quantity=9,
            by_status={"available": 1, "claimed": 1, "matched": 1},
            by_category={"food": 2, "medical": 1},
        )

    def test_donation_stats_empty(self):
        assert donation_stats([]) == DonationStats(0, 0, {}, {})

    def test_custom_decimals(self):
        projection = Projection(decimals=3)
        projection.apply(Snapshot(REQUESTS, (make_request("oakland", location=OAKLAND),), 1))

        distance = projection.pending_requests_near(SF)[0].distance_km

        assert distance == round(distance, 3)


class TestLinkInconsistencies:
    """Tests for find_link_inconsistencies()."""

    def test_consistent_links(self):
        donations = [Donation(id="d1", category=Category.FOOD,
                              status=DonationStatus.MATCHED, linked_ask_id="a1")]
        asks = [AskedDonation(id="a1", category=Category.FOOD,
                              status=AskStatus.MATCHED, matched_donation_id="d1")]

        assert find_link_inconsistencies(donations, asks) == []

    def test_donation_links_to_missing_ask(self):
        donations = [Donation(id="d1", category=Category.FOOD,
                              status=DonationStatus.MATCHED, linked_ask_id="gone")]

        problems = find_link_inconsistencies(donations, [])

        assert len(problems) == 1
        assert problems[0].donation_id == "d1"
        assert problems[0].ask_id == "gone"

    def test_ask_not_linking_back(self):
        donations = [Donation(id="d1", category=Category.FOOD,
                              status=DonationStatus.MATCHED, linked_ask_id="a1")]
        asks = [AskedDonation(id="a1", category=Category.FOOD)]

        problems = find_link_inconsistencies(donations, asks)

        assert [(p.donation_id, p.ask_id) for p in problems] == [("d1", "a1")]

    def test_ask_links_to_missing_donation(self):
        asks = [AskedDonation(id="a1", category=Category.FOOD,
                              status=AskStatus.MATCHED, matched_donation_id="d9")]

        problems = find_link_inconsistencies([], asks)

        assert [(p.donation_id, p.ask_id) for p in problems] == [("d9", "a1")]

    def test_projection_checks_current_sets(self, projection):
        """Links arriving in separate batches are checked against the latest sets."""
        projection.apply(Snapshot(DONATIONS, (
            Donation(id="d1", category=Category.FOOD,
                     status=DonationStatus.MATCHED, linked_ask_id="a1"),
        ), 1))
        assert len(projection.link_inconsistencies()) == 1

        projection.apply(Snapshot(ASKS, (
            AskedDonation(id="a1", category=Category.FOOD,
                          status=AskStatus.MATCHED, matched_donation_id="d1"),
        ), 1))

        assert projection.link_inconsistencies() == []
