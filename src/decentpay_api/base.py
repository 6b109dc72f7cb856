"""DeCentPay escrow API base interface."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from .types import (
    Application,
    Badge,
    EscrowData,
    InvocationResult,
    Milestone,
    MilestoneInput,
    Rating,
)


class EscrowAPIBase(ABC):
    """DeCentPay escrow contract interface."""

    @abstractmethod
    async def invoke(
        self, method: str, args: Sequence[Any], signer_address: str
    ) -> InvocationResult:
        pass

    @abstractmethod
    async def read(self, method: str, args: Sequence[Any], source: str | None = None) -> Any:
        pass

    # Escrow lifecycle
    @abstractmethod
    async def create_escrow(
        self,
        signer_address: str,
        *,
        milestones: Sequence[MilestoneInput | tuple[int, str]],
        total_amount: int,
        duration: int,
        project_title: str,
        project_description: str = "",
        beneficiary: str | None = None,
        arbiters: Sequence[str] = (),
        required_confirmations: int = 0,
        token: str | None = None,
    ) -> InvocationResult:
        pass

    @abstractmethod
    async def start_work(self, signer_address: str, escrow_id: int) -> InvocationResult:
        pass

    @abstractmethod
    async def submit_milestone(
        self,
        signer_address: str,
        escrow_id: int,
        milestone_index: int,
        description: str,
        *,
        milestones: Sequence[Milestone] | None = None,
    ) -> InvocationResult:
        pass

    @abstractmethod
    async def resubmit_milestone(
        self,
        signer_address: str,
        escrow_id: int,
        milestone_index: int,
        description: str,
        *,
        milestones: Sequence[Milestone] | None = None,
    ) -> InvocationResult:
        pass

    @abstractmethod
    async def approve_milestone(
        self,
        signer_address: str,
        escrow_id: int,
        milestone_index: int,
        *,
        milestones: Sequence[Milestone] | None = None,
    ) -> InvocationResult:
        pass

    @abstractmethod
    async def reject_milestone(
        self,
        signer_address: str,
        escrow_id: int,
        milestone_index: int,
        reason: str,
        *,
        milestones: Sequence[Milestone] | None = None,
    ) -> InvocationResult:
        pass

    @abstractmethod
    async def dispute_milestone(
        self,
        signer_address: str,
        escrow_id: int,
        milestone_index: int,
        reason: str,
        *,
        milestones: Sequence[Milestone] | None = None,
    ) -> InvocationResult:
        pass

    @abstractmethod
    async def apply_to_job(
        self, signer_address: str, escrow_id: int, cover_letter: str, proposed_timeline: int
    ) -> InvocationResult:
        pass

    @abstractmethod
    async def accept_freelancer(
        self, signer_address: str, escrow_id: int, freelancer: str
    ) -> InvocationResult:
        pass

    @abstractmethod
    async def refund_escrow(self, signer_address: str, escrow_id: int) -> InvocationResult:
        pass

    @abstractmethod
    async def emergency_refund_after_deadline(
        self, signer_address: str, escrow_id: int
    ) -> InvocationResult:
        pass

    @abstractmethod
    async def extend_deadline(
        self, signer_address: str, escrow_id: int, extra_seconds: int
    ) -> InvocationResult:
        pass

    @abstractmethod
    async def submit_rating(
        self, signer_address: str, escrow_id: int, rating: int, review: str
    ) -> InvocationResult:
        pass

    # Administration
    @abstractmethod
    async def initialize(
        self, signer_address: str, owner: str, fee_collector: str, platform_fee_bp: int
    ) -> InvocationResult:
        pass

    @abstractmethod
    async def set_platform_fee_bp(self, signer_address: str, fee_bp: int) -> InvocationResult:
        pass

    @abstractmethod
    async def set_fee_collector(
        self, signer_address: str, fee_collector: str
    ) -> InvocationResult:
        pass

    @abstractmethod
    async def set_owner(self, signer_address: str, new_owner: str) -> InvocationResult:
        pass

    @abstractmethod
    async def whitelist_token(self, signer_address: str, token: str) -> InvocationResult:
        pass

    @abstractmethod
    async def authorize_arbiter(self, signer_address: str, arbiter: str) -> InvocationResult:
        pass

    @abstractmethod
    async def pause_job_creation(self, signer_address: str) -> InvocationResult:
        pass

    @abstractmethod
    async def unpause_job_creation(self, signer_address: str) -> InvocationResult:
        pass

    # Reads
    @abstractmethod
    async def get_escrow(self, escrow_id: int) -> EscrowData | None:
        pass

    @abstractmethod
    async def get_user_escrows(self, user: str) -> list[int]:
        pass

    @abstractmethod
    async def get_reputation(self, user: str) -> int:
        pass

    @abstractmethod
    async def get_completed_escrows(self, user: str) -> int:
        pass

    @abstractmethod
    async def is_job_creation_paused(self) -> bool:
        pass

    @abstractmethod
    async def get_owner(self) -> str:
        pass

    @abstractmethod
    async def has_applied(self, escrow_id: int, freelancer: str) -> bool:
        pass

    @abstractmethod
    async def get_application(self, escrow_id: int, freelancer: str) -> Application | None:
        pass

    @abstractmethod
    async def get_applications(self, escrow_id: int) -> list[Application]:
        pass

    @abstractmethod
    async def get_milestone(self, escrow_id: int, milestone_index: int) -> Milestone | None:
        pass

    @abstractmethod
    async def get_milestones(self, escrow_id: int) -> list[Milestone]:
        pass

    @abstractmethod
    async def get_rating(self, escrow_id: int) -> Rating | None:
        pass

    @abstractmethod
    async def get_average_rating(self, freelancer: str) -> tuple[int, int]:
        pass

    @abstractmethod
    async def get_badge(self, freelancer: str) -> Badge:
        pass

    @abstractmethod
    async def is_authorized_arbiter(self, arbiter: str) -> bool:
        pass
