"""Donation-to-ask matching - Pure functions.

Matching runs in two stages, filter then score/select, and each stage is
a plain function. A MatchPolicy bundles one function per stage and
policies are looked up by name, so a deployment can switch weighting
without touching the caller.

The matcher only decides. Committing both sides of a match (donation
and ask) is the caller's job and must happen in one transaction.

A requester can also claim an available donation directly, which takes
it out of matching for good.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable

from reliefengine.core.errors import (
    TransitionResult,
    invalid_transition,
    terminal_state_violation,
)
from reliefengine.core.models import (
    AskStatus,
    AskedDonation,
    Donation,
    DonationStatus,
)


FilterFn = Callable[[Donation, list[AskedDonation]], list[AskedDonation]]
ScoreFn = Callable[[Donation, AskedDonation], float]
SelectFn = Callable[[list[tuple[AskedDonation, float]]], AskedDonation | None]


@dataclass(frozen=True)
class MatchPolicy:
    """A named combination of filter, score and select functions.

    Attributes:
        name: Policy identifier used in configuration
        filter: Keeps the asks eligible for a donation
        score: Scores one eligible ask (higher wins)
        select: Picks the winner from scored asks
    """
    name: str
    filter: FilterFn
    score: ScoreFn
    select: SelectFn


@dataclass(frozen=True)
class MatchDecision:
    """Both sides of a match, ready to be committed together.

    Attributes:
        donation: Donation marked matched and linked to the ask
        ask: Ask marked matched and linked to the donation
    """
    donation: Donation
    ask: AskedDonation


def filter_by_category(donation: Donation, asks: list[AskedDonation]) -> list[AskedDonation]:
    """Keep pending asks in the donation's category.

    Pure function. Input order is preserved.
    """
    return [
        ask for ask in asks
        if ask.status is AskStatus.PENDING and ask.category == donation.category
    ]


def constant_score(donation: Donation, ask: AskedDonation) -> float:
    """Score every eligible ask equally."""
    return 1.0


def wait_time_score(donation: Donation, ask: AskedDonation) -> float:
    """Score older asks higher.

    Pure function. Asks without a creation time score lowest. Creation
    times only need to be comparable; datetimes are scored by epoch
    seconds and numbers are used directly. Any other value (an ISO
    string, say) scores like a missing time.
    """
    created = ask.created_at
    if hasattr(created, "timestamp"):
        created = created.timestamp()
    if isinstance(created, bool) or not isinstance(created, (int, float)):
        return float("-inf")
    return -float(created)


def select_highest(scored: list[tuple[AskedDonation, float]]) -> AskedDonation | None:
    """Pick the highest-scoring ask.

    Pure function. The sort is stable, so ties go to the ask seen first.
    """
    if not scored:
        return None
    ranked = sorted(scored, key=lambda pair: pair[1], reverse=True)
    return ranked[0][0]


CATEGORY_MATCH = MatchPolicy(
    name="category_match",
    filter=filter_by_category,
    score=constant_score,
    select=select_highest,
)

WAIT_TIME = MatchPolicy(
    name="wait_time",
    filter=filter_by_category,
    score=wait_time_score,
    select=select_highest,
)

POLICIES: dict[str, MatchPolicy] = {
    CATEGORY_MATCH.name: CATEGORY_MATCH,
    WAIT_TIME.name: WAIT_TIME,
}


def get_policy(name: str) -> MatchPolicy:
    """Look up a match policy by name.

    Raises:
        KeyError: If no policy has that name
    """
    return POLICIES[name]


def match(
    donation: Donation,
    asks: list[AskedDonation],
    policy: MatchPolicy = CATEGORY_MATCH,
) -> AskedDonation | None:
    """Choose the ask an incoming donation should fill.

    Pure function. Deterministic for a given input order.

    Args:
        donation: Donation being offered
        asks: Outstanding asks
        policy: Filter/score/select policy

    Returns:
        The selected ask, or None if the donation is not available or
        no ask passes the filter
    """
    if donation.status is not DonationStatus.AVAILABLE:
        return None

    candidates = policy.filter(donation, asks)
    if not candidates:
        return None

    scored = [(ask, policy.score(donation, ask)) for ask in candidates]
    return policy.select(scored)


def build_match_decision(donation: Donation, ask: AskedDonation) -> MatchDecision:
    """Compute both updated records for a match.

    Pure function.
    """
    return MatchDecision(
        donation=replace(
            donation,
            status=DonationStatus.MATCHED,
            linked_ask_id=ask.id,
        ),
        ask=replace(
            ask,
            status=AskStatus.MATCHED,
            matched_donation_id=donation.id,
        ),
    )


def claim_donation(
    donation: Donation,
    requester_id: str,
    claimed_at: Any = None,
) -> TransitionResult[Donation]:
    """Let a requester claim an available donation.

    Pure function (apart from defaulting ``claimed_at`` to now).

    Args:
        donation: Donation being claimed
        requester_id: Requester taking it
        claimed_at: Timestamp to stamp; current UTC time if None

    Returns:
        TransitionResult with the claimed donation. Claimed and matched
        donations are final (TERMINAL_STATE_VIOLATION); a missing
        requester is an INVALID_TRANSITION.
    """
    if donation.status is not DonationStatus.AVAILABLE:
        return TransitionResult(
            entity=donation,
            error=terminal_state_violation(
                f"Donation {donation.id} is {donation.status.value} and cannot be claimed"
            ),
        )

    if not requester_id:
        return TransitionResult(
            entity=donation,
            error=invalid_transition("Requester ID is required to claim a donation"),
        )

    return TransitionResult(entity=replace(
        donation,
        status=DonationStatus.CLAIMED,
        claimed_by=requester_id,
        claimed_at=claimed_at if claimed_at is not None else datetime.now(timezone.utc),
    ))
