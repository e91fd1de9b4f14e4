"""
Claim eligibility derived from vote tallies.

All functions are pure: they only look at the claim snapshot and the
vote requirement passed in.
"""
from typing import Optional

from .models import Claim, ClaimPhase, Eligibility, VoteRequirement


def has_all_votes(claim: Optional[Claim], req: VoteRequirement) -> bool:
    if claim is None:
        return False
    return len(claim.approve) + len(claim.decline) >= req.vote_threshold


def is_accepted(claim: Optional[Claim], req: VoteRequirement) -> bool:
    if claim is None:
        return False
    return len(claim.approve) - len(claim.decline) >= req.positive_votes_needed


def can_submit_claim(claim: Optional[Claim], req: VoteRequirement) -> bool:
    return (
        claim is not None
        and has_all_votes(claim, req)
        and is_accepted(claim, req)
        and not claim.complete
    )


def is_rejected(claim: Optional[Claim], req: VoteRequirement) -> bool:
    """All votes are in but the claim was not accepted"""
    return claim is not None and has_all_votes(claim, req) and not is_accepted(claim, req)


def evaluate(claim: Optional[Claim], req: VoteRequirement) -> Eligibility:
    """
    Derive every eligibility flag at once.

    Args:
        claim: Claim snapshot, or None if the claim was never requested
        req: Current vote requirement

    Returns:
        Eligibility flags
    """
    return Eligibility(
        exists=claim is not None,
        has_all_votes=has_all_votes(claim, req),
        is_accepted=is_accepted(claim, req),
        can_submit_claim=can_submit_claim(claim, req),
        is_rejected=is_rejected(claim, req),
    )


def derive_phase(claim: Optional[Claim], req: Optional[VoteRequirement]) -> ClaimPhase:
    """
    Phase of a claim as seen from chain state alone.

    Without a vote requirement the votes cannot be judged, so an
    existing incomplete claim is reported as pending.
    """
    if claim is None:
        return ClaimPhase.NOT_REQUESTED
    if claim.complete:
        return ClaimPhase.CLAIMED
    if req is None or not has_all_votes(claim, req):
        return ClaimPhase.VOTES_PENDING
    if is_accepted(claim, req):
        return ClaimPhase.ELIGIBLE
    return ClaimPhase.REJECTED
