"""Type definitions and data models for the DeCentPay escrow orchestration layer."""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any


class SubmissionStatus(str, Enum):
    """Normalised terminal and non-terminal submission states."""

    SUCCESS = "SUCCESS"
    PENDING = "PENDING"
    ERROR = "ERROR"


class EscrowStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    RELEASED = "Released"
    REFUNDED = "Refunded"
    DISPUTED = "Disputed"
    EXPIRED = "Expired"


class MilestoneStatus(str, Enum):
    NOT_STARTED = "NotStarted"
    SUBMITTED = "Submitted"
    APPROVED = "Approved"
    DISPUTED = "Disputed"
    RESOLVED = "Resolved"
    REJECTED = "Rejected"


class Badge(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"
    EXPERT = "Expert"


Address = str  # Stellar strkey (G... account or C... contract)
Stroops = int  # 1 XLM = 10_000_000 stroops


@dataclass
class AccountHandle:
    """Source account state used to build one envelope."""

    address: str
    sequence: int
    balance: Decimal | None = None
    fetched_at: float = field(default_factory=time.time)


@dataclass
class SimulationResult:
    """Tagged dry-run outcome; callers branch on ``ok`` only."""

    ok: bool
    required_auth: list[str] = field(default_factory=list)
    return_value_xdr: str | None = None
    resource_fee: int = 0
    transaction_data: str | None = None
    error: str | None = None
    raw: Any = None
    latest_ledger: int | None = None

    @classmethod
    def success(
        cls,
        *,
        required_auth: list[str] | None = None,
        return_value_xdr: str | None = None,
        resource_fee: int = 0,
        transaction_data: str | None = None,
        raw: Any = None,
        latest_ledger: int | None = None,
    ) -> SimulationResult:
        return cls(
            ok=True,
            required_auth=list(required_auth or []),
            return_value_xdr=return_value_xdr,
            resource_fee=resource_fee,
            transaction_data=transaction_data,
            raw=raw,
            latest_ledger=latest_ledger,
        )

    @classmethod
    def failure(cls, error: str, raw: Any = None) -> SimulationResult:
        return cls(ok=False, error=error, raw=raw)


@dataclass
class SubmissionReceipt:
    """Result of submitting an envelope or polling its status."""

    tx_hash: str | None
    status: SubmissionStatus
    error_payload: Any = None
    attempts: int = 0
    timed_out: bool = False
    ledger: int | None = None
    result_meta_xdr: str | None = None
    diagnostic_events: list[str] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status is not SubmissionStatus.PENDING


@dataclass
class PendingInvocation:
    """Working state of one call intent as it moves through the pipeline."""

    method: str
    args: list[Any]
    signer_address: str | None = None
    unsigned_envelope: Any = None
    simulation: SimulationResult | None = None
    required_auth: list[str] = field(default_factory=list)
    signed_auth: list[str] = field(default_factory=list)
    final_envelope: Any = None
    signed_envelope_xdr: str | None = None
    tx_hash: str | None = None


@dataclass
class InvocationResult:
    """Classified outcome surfaced to UI callers."""

    success: bool
    method: str
    tx_hash: str | None = None
    return_value: Any = None
    error_kind: str | None = None
    title: str | None = None
    description: str | None = None
    attempts: int = 0


# ----------------------------------------------------------------------
# Contract value types
# ----------------------------------------------------------------------
def _enum_tag(value: Any) -> str:
    """Return the variant name of a unit enum decoded from a contract value."""

    if isinstance(value, list | tuple) and value:
        value = value[0]
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    return str(value)


def _optional(value: Any) -> Any:
    return None if value in (None, "") else value


@dataclass
class Milestone:
    description: str
    amount: int
    status: MilestoneStatus = MilestoneStatus.NOT_STARTED
    submitted_at: int = 0
    approved_at: int = 0
    disputed_at: int = 0
    disputed_by: str | None = None
    dispute_reason: str | None = None
    rejection_reason: str | None = None

    @classmethod
    def from_native(cls, data: Mapping[str, Any]) -> Milestone:
        return cls(
            description=str(data.get("description", "")),
            amount=int(data.get("amount", 0)),
            status=MilestoneStatus(_enum_tag(data.get("status", "NotStarted"))),
            submitted_at=int(data.get("submitted_at", 0)),
            approved_at=int(data.get("approved_at", 0)),
            disputed_at=int(data.get("disputed_at", 0)),
            disputed_by=_optional(data.get("disputed_by")),
            dispute_reason=_optional(data.get("dispute_reason")),
            rejection_reason=_optional(data.get("rejection_reason")),
        )


@dataclass
class Application:
    freelancer: str
    cover_letter: str
    proposed_timeline: int
    applied_at: int = 0

    @classmethod
    def from_native(cls, data: Mapping[str, Any]) -> Application:
        return cls(
            freelancer=str(data["freelancer"]),
            cover_letter=str(data.get("cover_letter", "")),
            proposed_timeline=int(data.get("proposed_timeline", 0)),
            applied_at=int(data.get("applied_at", 0)),
        )


@dataclass
class Rating:
    escrow_id: int
    freelancer: str
    client: str
    rating: int
    review: str
    rated_at: int = 0

    @classmethod
    def from_native(cls, data: Mapping[str, Any]) -> Rating:
        return cls(
            escrow_id=int(data["escrow_id"]),
            freelancer=str(data["freelancer"]),
            client=str(data["client"]),
            rating=int(data["rating"]),
            review=str(data.get("review", "")),
            rated_at=int(data.get("rated_at", 0)),
        )


@dataclass
class EscrowData:
    depositor: str
    beneficiary: str | None
    arbiters: list[str]
    required_confirmations: int
    token: str | None
    total_amount: int
    paid_amount: int
    platform_fee: int
    deadline: int
    status: EscrowStatus
    work_started: bool
    created_at: int
    milestone_count: int
    is_open_job: bool
    project_title: str
    project_description: str

    @classmethod
    def from_native(cls, data: Mapping[str, Any]) -> EscrowData:
        return cls(
            depositor=str(data["depositor"]),
            beneficiary=_optional(data.get("beneficiary")),
            arbiters=[str(item) for item in data.get("arbiters") or []],
            required_confirmations=int(data.get("required_confirmations", 0)),
            token=_optional(data.get("token")),
            total_amount=int(data.get("total_amount", 0)),
            paid_amount=int(data.get("paid_amount", 0)),
            platform_fee=int(data.get("platform_fee", 0)),
            deadline=int(data.get("deadline", 0)),
            status=EscrowStatus(_enum_tag(data.get("status", "Pending"))),
            work_started=bool(data.get("work_started", False)),
            created_at=int(data.get("created_at", 0)),
            milestone_count=int(data.get("milestone_count", 0)),
            is_open_job=bool(data.get("is_open_job", False)),
            project_title=str(data.get("project_title", "")),
            project_description=str(data.get("project_description", "")),
        )


@dataclass
class MilestoneInput:
    """One milestone of a create_escrow request: amount in stroops plus description."""

    amount: int
    description: str

    def as_tuple(self) -> tuple[int, str]:
        return (self.amount, self.description)
