"""Client-side checks that run before anything touches the network."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from .constants import (
    MAX_ARBITERS,
    MAX_ESCROW_DURATION,
    MAX_MILESTONES,
    MIN_ESCROW_DURATION,
    MIN_MILESTONE_DESCRIPTION_LENGTH,
)
from .exceptions import ValidationError
from .types import Milestone, MilestoneInput, MilestoneStatus
from .utils import is_account_address, require_address, require_u32

MIN_RATING = 1
MAX_RATING = 5


def validate_signer_address(address: Any) -> str:
    if not address:
        raise ValidationError("A connected wallet address is required", field="signer_address")
    if not is_account_address(address):
        raise ValidationError(
            "Signer must be a Stellar account address", field="signer_address", value=address
        )
    return address


def _milestone_pair(item: Any, position: int) -> tuple[int, str]:
    if isinstance(item, MilestoneInput):
        return item.as_tuple()
    try:
        amount, description = item
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            "Each milestone must be an (amount, description) pair",
            field=f"milestones[{position}]",
            value=item,
        ) from exc
    return amount, description


def validate_create_escrow(
    *,
    depositor: str,
    beneficiary: str | None,
    arbiters: Sequence[str],
    required_confirmations: int,
    milestones: Sequence[MilestoneInput | tuple[int, str]],
    token: str | None,
    total_amount: int,
    duration: int,
    project_title: str,
    project_description: str,
) -> list[Any]:
    """Validate a create_escrow request and return its positional contract arguments."""

    depositor = validate_signer_address(depositor)
    if beneficiary:
        require_address(beneficiary, field="beneficiary")
    if token:
        require_address(token, field="token")

    arbiter_list = [require_address(arbiter, field="arbiters") for arbiter in arbiters]
    if len(arbiter_list) > MAX_ARBITERS:
        raise ValidationError(
            f"At most {MAX_ARBITERS} arbiters are allowed",
            field="arbiters",
            value=len(arbiter_list),
        )
    confirmations = require_u32(required_confirmations, field="required_confirmations")
    if confirmations > len(arbiter_list):
        raise ValidationError(
            "Required confirmations cannot exceed the number of arbiters",
            field="required_confirmations",
            value=confirmations,
        )

    if not milestones:
        raise ValidationError("At least one milestone is required", field="milestones")
    if len(milestones) > MAX_MILESTONES:
        raise ValidationError(
            f"At most {MAX_MILESTONES} milestones are allowed",
            field="milestones",
            value=len(milestones),
        )

    pairs = [_milestone_pair(item, position) for position, item in enumerate(milestones)]
    for position, (amount, description) in enumerate(pairs):
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError(
                "Milestone amounts must be positive integers (stroops)",
                field=f"milestones[{position}].amount",
                value=amount,
            )
        if (
            not isinstance(description, str)
            or len(description.strip()) < MIN_MILESTONE_DESCRIPTION_LENGTH
        ):
            raise ValidationError(
                f"Milestone descriptions need at least {MIN_MILESTONE_DESCRIPTION_LENGTH} "
                "characters",
                field=f"milestones[{position}].description",
                value=description,
            )

    if isinstance(total_amount, bool) or not isinstance(total_amount, int) or total_amount <= 0:
        raise ValidationError(
            "Total amount must be a positive integer (stroops)",
            field="total_amount",
            value=total_amount,
        )
    milestone_sum = sum(amount for amount, _ in pairs)
    if milestone_sum != total_amount:
        raise ValidationError(
            "Milestone amounts must add up to the total amount",
            field="milestones",
            value=milestone_sum,
            details={"total_amount": total_amount},
        )

    duration = require_u32(duration, field="duration")
    if not MIN_ESCROW_DURATION <= duration <= MAX_ESCROW_DURATION:
        raise ValidationError(
            "Duration must be between 1 hour and 365 days", field="duration", value=duration
        )

    if not project_title or not project_title.strip():
        raise ValidationError("Project title is required", field="project_title")

    return [
        depositor,
        beneficiary or None,
        arbiter_list,
        confirmations,
        [MilestoneInput(amount, description) for amount, description in pairs],
        token or None,
        total_amount,
        duration,
        project_title,
        project_description or "",
    ]


def require_reason(reason: Any, *, field: str = "reason") -> str:
    if not isinstance(reason, str) or not reason.strip():
        raise ValidationError("A reason is required", field=field, value=reason)
    return reason


def require_rating(rating: Any) -> int:
    value = require_u32(rating, field="rating")
    if not MIN_RATING <= value <= MAX_RATING:
        raise ValidationError(
            f"Rating must be between {MIN_RATING} and {MAX_RATING}", field="rating", value=rating
        )
    return value


# ----------------------------------------------------------------------
# Milestone guards
# ----------------------------------------------------------------------
def _milestone_at(milestones: Sequence[Milestone], index: int) -> Milestone:
    index = require_u32(index, field="milestone_index")
    if index >= len(milestones):
        raise ValidationError(
            f"Milestone {index} does not exist",
            field="milestone_index",
            value=index,
            details={"milestone_count": len(milestones)},
        )
    return milestones[index]


def _require_status(
    milestone: Milestone,
    index: int,
    allowed: tuple[MilestoneStatus, ...],
    action: str,
) -> None:
    if milestone.status not in allowed:
        raise ValidationError(
            f"Cannot {action} milestone {index} while it is {milestone.status.value}",
            field="milestone_index",
            value=index,
            details={"status": milestone.status.value},
        )


def expected_next_submission(milestones: Sequence[Milestone]) -> int | None:
    """Index of the milestone the freelancer may submit next, or None.

    Milestones are worked in order: every earlier one must be settled
    (Approved or Resolved) and nothing may be awaiting review.
    """

    for index, milestone in enumerate(milestones):
        if milestone.status in (MilestoneStatus.APPROVED, MilestoneStatus.RESOLVED):
            continue
        if milestone.status is MilestoneStatus.NOT_STARTED:
            return index
        return None
    return None


def guard_submit(milestones: Sequence[Milestone], index: int) -> None:
    _milestone_at(milestones, index)
    expected = expected_next_submission(milestones)
    if expected != index:
        raise ValidationError(
            f"Milestone {index} cannot be submitted yet",
            field="milestone_index",
            value=index,
            details={"expected": expected},
        )


def guard_resubmit(milestones: Sequence[Milestone], index: int) -> None:
    milestone = _milestone_at(milestones, index)
    _require_status(milestone, index, (MilestoneStatus.REJECTED,), "resubmit")


def guard_review(milestones: Sequence[Milestone], index: int, action: str) -> None:
    """Approve and reject apply only to a Submitted milestone."""

    milestone = _milestone_at(milestones, index)
    _require_status(milestone, index, (MilestoneStatus.SUBMITTED,), action)


def guard_dispute(milestones: Sequence[Milestone], index: int) -> None:
    milestone = _milestone_at(milestones, index)
    _require_status(
        milestone, index, (MilestoneStatus.SUBMITTED, MilestoneStatus.APPROVED), "dispute"
    )
