"""Coordinator - Wires Functional Core and Imperative Shell.

This module coordinates the flow of data between the pure functional
core and the store adapter. Every write follows the same loop:

1. Read the current documents from the store
2. Evaluate the pure transition / match / occupancy function
3. Commit the result with compare-and-swap preconditions
4. On a lost race, re-read and re-evaluate (bounded, with backoff)

It also owns the live subscriptions that feed the projection.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from reliefengine.core.booking import (
    approve_booking,
    cancel_booking,
    complete_booking,
    reject_booking,
)
from reliefengine.core.config import EngineConfig
from reliefengine.core.errors import EngineError, ErrorKind, TransitionResult
from reliefengine.core.geo import Ranked
from reliefengine.core.lifecycle import assign_volunteer, transition, unassign
from reliefengine.core.matching import (
    build_match_decision,
    claim_donation,
    get_policy,
    match,
)
from reliefengine.core.models import (
    AskedDonation,
    Location,
    Request,
    RequestStatus,
    Shelter,
    ShelterBooking,
    ask_to_dict,
    booking_to_dict,
    donation_to_dict,
    parse_ask,
    parse_booking,
    parse_donation,
    parse_request,
    parse_shelter,
    request_to_dict,
    shelter_to_dict,
)
from reliefengine.core.projection import (
    ASKS,
    BOOKINGS,
    DONATIONS,
    REQUESTS,
    SHELTERS,
    DonationStats,
    LinkInconsistency,
    Projection,
    Snapshot,
)
from reliefengine.core.shelter import apply_occupancy_change, normalize_shelter
from reliefengine.shell.firestore_client import FirestoreClient, FirestoreConfig
from reliefengine.shell.store import (
    ConflictError,
    DocumentStore,
    NotFoundError,
    Unsubscribe,
    WriteOp,
)


logger = logging.getLogger(__name__)


@dataclass
class OperationResult:
    """Result of a coordinated read-evaluate-commit operation.

    Attributes:
        entity: Committed entity (or MatchDecision); on failure the last
            state read, if any
        error: Error if the operation failed
        attempts: Commit attempts made
    """
    entity: Any = None
    error: EngineError | None = None
    attempts: int = 0

    @property
    def success(self) -> bool:
        """Returns True if the operation committed (or had nothing to do)."""
        return self.error is None


@dataclass
class _Plan:
    """Outcome of evaluating one attempt against freshly read state."""
    entity: Any
    error: EngineError | None = None
    ops: list[WriteOp] = field(default_factory=list)


class Coordinator:
    """Coordinates engine decisions with the store of record.

    This class wires together:
    - Store adapter (reads, subscriptions, transactional commits)
    - Core functions (lifecycle, matching, occupancy, proximity)
    - Projection (derived views fed by live subscriptions)
    """

    def __init__(
        self,
        config: EngineConfig,
        store: DocumentStore | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize coordinator with configuration.

        Args:
            config: Application configuration
            store: Store adapter (Firestore if not provided)
            sleep: Backoff sleep function
        """
        self.config = config
        self.store = store or FirestoreClient(
            FirestoreConfig(
                project_id=config.firestore_project,
                database=config.firestore_database,
            )
        )
        self.policy = get_policy(config.match_policy)
        self.projection = Projection(decimals=config.proximity.distance_decimals)
        self._sleep = sleep
        self._unsubscribes: list[Unsubscribe] = []

    # ----- Commit loop -----

    def _run(self, name: str, attempt: Callable[[], _Plan]) -> OperationResult:
        """Run read-evaluate-commit attempts until one wins or gives up."""
        max_attempts = self.config.retry.max_attempts
        last_entity = None

        for attempt_number in range(1, max_attempts + 1):
            try:
                plan = attempt()
            except NotFoundError as e:
                logger.warning("%s failed: %s", name, e)
                return OperationResult(
                    entity=last_entity,
                    error=EngineError(ErrorKind.NOT_FOUND, str(e)),
                    attempts=attempt_number,
                )

            last_entity = plan.entity

            if plan.error is not None:
                logger.info("%s rejected: %s", name, plan.error.message)
                return OperationResult(
                    entity=plan.entity,
                    error=plan.error,
                    attempts=attempt_number,
                )

            if not plan.ops:
                return OperationResult(entity=plan.entity, attempts=attempt_number)

            try:
                self.store.commit(plan.ops)
            except ConflictError as e:
                logger.warning(
                    "%s lost a race (attempt %d/%d): %s",
                    name,
                    attempt_number,
                    max_attempts,
                    e,
                )
                if attempt_number < max_attempts:
                    self._sleep(self.config.retry.backoff_seconds * 2 ** (attempt_number - 1))
                continue
            except NotFoundError as e:
                logger.warning("%s failed: %s", name, e)
                return OperationResult(
                    entity=plan.entity,
                    error=EngineError(ErrorKind.NOT_FOUND, str(e)),
                    attempts=attempt_number,
                )

            logger.info("%s committed after %d attempt(s)", name, attempt_number)
            return OperationResult(entity=plan.entity, attempts=attempt_number)

        return OperationResult(
            entity=last_entity,
            error=EngineError(
                ErrorKind.CONFLICT,
                f"{name} conflicted {max_attempts} times; re-read and try again",
            ),
            attempts=max_attempts,
        )

    # ----- Reads -----

    def _read(
        self,
        collection: str,
        doc_id: str,
        parser: Callable[[str, dict[str, Any]], Any],
    ) -> tuple[Any, dict[str, Any]]:
        data = self.store.get(collection, doc_id)
        entity = parser(doc_id, data)
        if entity is None:
            # A document the engine cannot parse is as good as missing
            raise NotFoundError(collection, doc_id)
        return entity, data

    def get_request(self, request_id: str) -> Request:
        """Fetch and parse one request.

        Raises:
            NotFoundError: If the request is missing or malformed
        """
        request, _ = self._read(self.config.collections.requests, request_id, parse_request)
        return request

    # ----- Request lifecycle -----

    def _request_plan(
        self,
        request_id: str,
        step: Callable[[Request], TransitionResult[Request]],
    ) -> _Plan:
        collection = self.config.collections.requests
        request, raw = self._read(collection, request_id, parse_request)
        result = step(request)
        if not result.success:
            return _Plan(entity=request, error=result.error)
        return _Plan(
            entity=result.entity,
            ops=[WriteOp(
                collection=collection,
                doc_id=request_id,
                data=request_to_dict(result.entity),
                expected={"status": raw.get("status")},
            )],
        )

    def assign_volunteer(self, request_id: str, volunteer_id: str) -> OperationResult:
        """Assign a volunteer to a pending request."""
        return self._run(
            f"assign {volunteer_id} to request {request_id}",
            lambda: self._request_plan(
                request_id, lambda r: assign_volunteer(r, volunteer_id)
            ),
        )

    def transition_request(
        self,
        request_id: str,
        new_status: RequestStatus,
        volunteer_id: str | None = None,
    ) -> OperationResult:
        """Move a request to a new lifecycle status."""
        return self._run(
            f"move request {request_id} to {new_status.value}",
            lambda: self._request_plan(
                request_id, lambda r: transition(r, new_status, volunteer_id)
            ),
        )

    def unassign(self, request_id: str) -> OperationResult:
        """Release an in-progress request back to the pending pool."""
        return self._run(
            f"unassign request {request_id}",
            lambda: self._request_plan(request_id, unassign),
        )

    # ----- Donation matching -----

    def _fresh_asks(self, ask_ids: list[str]) -> dict[str, tuple[AskedDonation, dict[str, Any]]]:
        """Re-read candidate asks, skipping ones that have disappeared."""
        asks = {}
        for ask_id in ask_ids:
            try:
                asks[ask_id] = self._read(
                    self.config.collections.asked_donations, ask_id, parse_ask
                )
            except NotFoundError:
                logger.debug("Ask %s vanished before matching", ask_id)
        return asks

    def _match_plan(self, donation_id: str, ask_ids: list[str] | None) -> _Plan:
        collections = self.config.collections
        donation, raw_donation = self._read(collections.donations, donation_id, parse_donation)

        if ask_ids is None:
            ask_ids = [a.id for a in self.projection.pending_asks(donation.category)]

        fresh = self._fresh_asks(ask_ids)
        ask = match(donation, [ask for ask, _ in fresh.values()], self.policy)
        if ask is None:
            logger.info("No pending ask matches donation %s", donation_id)
            return _Plan(entity=None)

        raw_ask = fresh[ask.id][1]
        decision = build_match_decision(donation, ask)
        return _Plan(
            entity=decision,
            ops=[
                WriteOp(
                    collection=collections.donations,
                    doc_id=donation.id,
                    data=donation_to_dict(decision.donation),
                    expected={
                        "status": raw_donation.get("status"),
                        "linkedAskId": raw_donation.get("linkedAskId"),
                    },
                ),
                WriteOp(
                    collection=collections.asked_donations,
                    doc_id=ask.id,
                    data=ask_to_dict(decision.ask),
                    expected={
                        "status": raw_ask.get("status"),
                        "matchedDonationId": raw_ask.get("matchedDonationId"),
                    },
                ),
            ],
        )

    def match_donation(
        self,
        donation_id: str,
        ask_ids: list[str] | None = None,
    ) -> OperationResult:
        """Match a donation to an outstanding ask and commit both sides.

        Args:
            donation_id: Donation to place
            ask_ids: Candidate asks; defaults to the projection's pending
                asks in the donation's category

        Returns:
            OperationResult whose entity is the committed MatchDecision,
            or None when no ask qualified
        """
        return self._run(
            f"match donation {donation_id}",
            lambda: self._match_plan(donation_id, ask_ids),
        )

    def _claim_plan(self, donation_id: str, requester_id: str) -> _Plan:
        collection = self.config.collections.donations
        donation, raw = self._read(collection, donation_id, parse_donation)
        result = claim_donation(donation, requester_id)
        if not result.success:
            return _Plan(entity=donation, error=result.error)
        return _Plan(
            entity=result.entity,
            ops=[WriteOp(
                collection=collection,
                doc_id=donation_id,
                data=donation_to_dict(result.entity),
                expected={
                    "status": raw.get("status"),
                    "linkedAskId": raw.get("linkedAskId"),
                },
            )],
        )

    def claim_donation(self, donation_id: str, requester_id: str) -> OperationResult:
        """Let a requester take an available donation directly."""
        return self._run(
            f"claim donation {donation_id} for {requester_id}",
            lambda: self._claim_plan(donation_id, requester_id),
        )

    # ----- Shelter occupancy -----

    def _occupancy_plan(self, shelter_id: str, delta: int) -> _Plan:
        collection = self.config.collections.shelters
        shelter, raw = self._read(collection, shelter_id, parse_shelter)
        updated = apply_occupancy_change(
            shelter, delta, self.config.shelter.limited_threshold
        )
        return _Plan(
            entity=updated,
            ops=[WriteOp(
                collection=collection,
                doc_id=shelter_id,
                data=shelter_to_dict(updated),
                expected={"occupied": raw.get("occupied", 0)},
            )],
        )

    def change_occupancy(self, shelter_id: str, delta: int) -> OperationResult:
        """Apply a clamped occupancy change to a shelter."""
        return self._run(
            f"change occupancy of shelter {shelter_id} by {delta:+d}",
            lambda: self._occupancy_plan(shelter_id, delta),
        )

    # ----- Shelter bookings -----

    def _booking_plan(
        self,
        booking_id: str,
        step: Callable[[ShelterBooking], TransitionResult[ShelterBooking]],
    ) -> _Plan:
        collection = self.config.collections.shelter_requests
        booking, raw = self._read(collection, booking_id, parse_booking)
        result = step(booking)
        if not result.success:
            return _Plan(entity=booking, error=result.error)
        return _Plan(
            entity=result.entity,
            ops=[WriteOp(
                collection=collection,
                doc_id=booking_id,
                data=booking_to_dict(result.entity),
                expected={"status": raw.get("status")},
            )],
        )

    def approve_booking(
        self,
        booking_id: str,
        volunteer_id: str,
        notes: str | None = None,
    ) -> OperationResult:
        """Approve a pending shelter booking on behalf of a volunteer."""
        return self._run(
            f"approve booking {booking_id}",
            lambda: self._booking_plan(
                booking_id, lambda b: approve_booking(b, volunteer_id, notes)
            ),
        )

    def reject_booking(
        self,
        booking_id: str,
        volunteer_id: str,
        notes: str | None = None,
    ) -> OperationResult:
        """Reject a pending shelter booking on behalf of a volunteer."""
        return self._run(
            f"reject booking {booking_id}",
            lambda: self._booking_plan(
                booking_id, lambda b: reject_booking(b, volunteer_id, notes)
            ),
        )

    def complete_booking(self, booking_id: str) -> OperationResult:
        return self._run(
            f"complete booking {booking_id}",
            lambda: self._booking_plan(booking_id, complete_booking),
        )

    def cancel_booking(self, booking_id: str) -> OperationResult:
        return self._run(
            f"cancel booking {booking_id}",
            lambda: self._booking_plan(booking_id, cancel_booking),
        )

    # ----- Live projection -----

    def _parse_normalized_shelter(self, doc_id: str, data: dict[str, Any]) -> Shelter | None:
        # Stored status can lag behind occupied/capacity; re-derive it
        shelter = parse_shelter(doc_id, data)
        if shelter is None:
            return None
        return normalize_shelter(shelter, self.config.shelter.limited_threshold)

    def _snapshot_handler(
        self,
        logical_name: str,
        parser: Callable[[str, dict[str, Any]], Any],
    ) -> Callable[[list[tuple[str, dict[str, Any]]], Any], None]:
        def handle(docs: list[tuple[str, dict[str, Any]]], read_stamp: Any) -> None:
            entities = []
            for doc_id, data in docs:
                entity = parser(doc_id, data)
                if entity is None:
                    logger.warning("Skipping malformed %s document %s", logical_name, doc_id)
                    continue
                entities.append(entity)
            self.projection.apply(Snapshot(
                collection=logical_name,
                entities=tuple(entities),
                sequence=read_stamp,
            ))

        return handle

    def start_sync(self) -> None:
        """Subscribe the projection to every monitored collection."""
        if self._unsubscribes:
            logger.info("Sync already running")
            return

        collections = self.config.collections
        feeds = [
            (collections.requests, REQUESTS, parse_request),
            (collections.donations, DONATIONS, parse_donation),
            (collections.asked_donations, ASKS, parse_ask),
            (collections.shelters, SHELTERS, self._parse_normalized_shelter),
            (collections.shelter_requests, BOOKINGS, parse_booking),
        ]
        for collection, logical_name, parser in feeds:
            self._unsubscribes.append(self.store.subscribe(
                collection,
                None,
                self._snapshot_handler(logical_name, parser),
            ))

        logger.info("Started sync for %d collections", len(feeds))

    def stop_sync(self) -> None:
        """Detach every subscription started by ``start_sync``."""
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        logger.info("Stopped sync for %d collections", len(self._unsubscribes))
        self._unsubscribes = []

    def nearby_requests(
        self,
        observer: Location,
        radius_km: float | None = None,
    ) -> list[Ranked[Request]]:
        """Pending requests near a volunteer, nearest first."""
        if radius_km is None:
            radius_km = self.config.proximity.request_radius_km
        return self.projection.pending_requests_near(observer, radius_km)

    def nearby_shelters(
        self,
        observer: Location,
        radius_km: float | None = None,
    ) -> list[Ranked[Shelter]]:
        """Shelters with room near a person, nearest first."""
        if radius_km is None:
            radius_km = self.config.proximity.shelter_radius_km
        return self.projection.open_shelters_near(observer, radius_km)

    def pending_bookings(self, shelter_id: str | None = None) -> list[ShelterBooking]:
        """Shelter bookings still awaiting a volunteer's decision."""
        return self.projection.pending_bookings(shelter_id)

    def donation_stats(self) -> DonationStats:
        return self.projection.donation_stats()

    def link_inconsistencies(self) -> list[LinkInconsistency]:
        """Donation/ask links that currently disagree."""
        problems = self.projection.link_inconsistencies()
        for problem in problems:
            logger.warning("Link inconsistency: %s", problem.message)
        return problems
