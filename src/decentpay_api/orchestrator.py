"""Drive one call intent from build to confirmation and classify the outcome."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from decimal import Decimal
from typing import Any

from stellar_sdk import Account, TransactionEnvelope

from .assembler import TransactionAssembler
from .auth import AuthorizationResolver
from .base import EscrowAPIBase
from .classifier import ErrorKind, classify, describe_failure, extract_error_message
from .constants import ZERO_ACCOUNT
from .events import Event, EventBus, EventKind
from .exceptions import (
    ContractExecutionError,
    NetworkError,
    SigningError,
    SimulationError,
    SubmissionTimeoutError,
    ValidationError,
)
from .methods import decode_return_value, get_method
from .poller import ConfirmationPoller
from .session import Session
from .signer import AUTH_VALIDITY_LEDGERS, Signer, SignerBridge
from .types import (
    Application,
    Badge,
    EscrowData,
    InvocationResult,
    Milestone,
    MilestoneInput,
    PendingInvocation,
    Rating,
    SimulationResult,
    SubmissionReceipt,
    SubmissionStatus,
)
from .utils import require_address, require_u32, shorten_address
from .validation import (
    guard_dispute,
    guard_resubmit,
    guard_review,
    guard_submit,
    require_rating,
    require_reason,
    validate_create_escrow,
    validate_signer_address,
)

logger = logging.getLogger(__name__)

Precheck = Callable[[], Awaitable[None]]


def _require_mode(method: str, *, mutates: bool) -> None:
    spec = get_method(method)
    if spec is None or spec.mutates == mutates:
        return
    if mutates:
        message = f"{method} is read-only; use read() instead of invoke()"
    else:
        message = f"{method} changes contract state; use invoke() instead of read()"
    raise ValidationError(message, field="method", value=method)


class EscrowOrchestrator(EscrowAPIBase):
    """Typed DeCentPay escrow API on top of one Session and one signing agent."""

    def __init__(
        self,
        session: Session,
        signer: Signer,
        events: EventBus | None = None,
        *,
        poller: ConfirmationPoller | None = None,
        refresh_balance_after_submit: bool = True,
    ) -> None:
        self.session = session
        self.config = session.config
        self.events = events or EventBus()
        self.assembler = TransactionAssembler(self.config)
        self.resolver = AuthorizationResolver()
        self.signer = SignerBridge(signer)
        self.poller = poller or ConfirmationPoller(session.connector, self.config.polling)
        self._refresh_balance_after_submit = refresh_balance_after_submit

    @property
    def connector(self) -> Any:
        return self.session.connector

    # ------------------------------------------------------------------
    # Generic surface
    # ------------------------------------------------------------------
    async def invoke(
        self, method: str, args: Sequence[Any], signer_address: str
    ) -> InvocationResult:
        """Run a state-changing call and return its classified outcome; never raises."""

        return await self._run(PendingInvocation(method, list(args), signer_address))

    async def read(self, method: str, args: Sequence[Any], source: str | None = None) -> Any:
        """Simulate a read-only call and return its decoded value.

        No account is fetched; the placeholder account is used as the source
        unless ``source`` is given. State-changing methods are refused with
        ``ValidationError``; use :meth:`invoke` for those.
        """

        _require_mode(method, mutates=False)
        if source is not None:
            require_address(source, field="source")
        envelope = self.assembler.build(method, list(args), Account(source or ZERO_ACCOUNT, 0))
        simulation = await self.connector.simulate(envelope)
        if not simulation.ok:
            raise SimulationError(simulation.error or "Read simulation failed", method=method)
        return decode_return_value(method, simulation.return_value_xdr)

    async def refresh_balance(self, address: str) -> Decimal | None:
        """Best effort native balance refresh; the cached value survives failures."""

        previous = self.session.cached_balance(address)
        balance = await self.session.refresh_balance(address)
        if balance is not None and balance != previous:
            self.events.publish(
                Event(
                    EventKind.BALANCE_UPDATED,
                    address=address,
                    data={"balance": balance, "previous": previous},
                )
            )
        return balance

    def cached_balance(self, address: str) -> Decimal | None:
        return self.session.cached_balance(address)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    async def _run(
        self, pending: PendingInvocation, precheck: Precheck | None = None
    ) -> InvocationResult:
        try:
            _require_mode(pending.method, mutates=True)
            validate_signer_address(pending.signer_address)
            if precheck is not None:
                await precheck()
            receipt, value = await self._execute(pending)
        except Exception as exc:
            return self._failure(pending, exc)

        logger.info(
            "%s confirmed hash=%s after %s poll(s)",
            pending.method,
            receipt.tx_hash,
            receipt.attempts,
        )
        self._publish_success(pending, receipt, value)
        if self._refresh_balance_after_submit and pending.signer_address:
            try:
                await self.refresh_balance(pending.signer_address)
            except Exception as exc:
                # The call is already confirmed; a stale balance is not a failure.
                logger.warning(
                    "Balance refresh after %s failed for %s: %s",
                    pending.method,
                    shorten_address(pending.signer_address),
                    exc,
                )
        return InvocationResult(
            success=True,
            method=pending.method,
            tx_hash=receipt.tx_hash,
            return_value=value,
            attempts=receipt.attempts,
        )

    async def _execute(self, pending: PendingInvocation) -> tuple[SubmissionReceipt, Any]:
        method = pending.method
        address = validate_signer_address(pending.signer_address)
        self.assembler.encode_arguments(method, pending.args)

        async with self.session.lock_for(address):
            handle = await self.session.fresh_account(address)
            unsigned = self.assembler.build(method, pending.args, Account(address, handle.sequence))
            pending.unsigned_envelope = unsigned

            simulation = await self.connector.simulate(unsigned)
            pending.simulation = simulation
            if not simulation.ok:
                raise SimulationError(simulation.error or "Simulation failed", method=method)
            value = decode_return_value(method, simulation.return_value_xdr)

            pending.required_auth = self.resolver.extract_required_auth(simulation)
            final = await self._authorize(pending, unsigned, simulation)
            pending.final_envelope = final

            signed_xdr = await self.signer.sign_transaction(
                final.to_xdr(), address, self.config.network
            )
            self._check_signed_envelope(pending, signed_xdr)
            pending.signed_envelope_xdr = signed_xdr

            logger.info("Submitting %s for %s", method, shorten_address(address))
            receipt = await self.poller.submit_and_confirm(signed_xdr)
            pending.tx_hash = receipt.tx_hash
            if receipt.tx_hash:
                self.session.record_submission(address, final.transaction.sequence)

        self._check_receipt(receipt)
        return receipt, value

    async def _authorize(
        self,
        pending: PendingInvocation,
        unsigned: TransactionEnvelope,
        simulation: SimulationResult,
    ) -> TransactionEnvelope:
        """Return the prepared envelope, signing address-credential auth entries first.

        Signed entries change the resource footprint and fee, so an envelope
        carrying them is simulated again and prepared from that second run.
        """

        to_sign = [
            entry for entry in pending.required_auth if self.resolver.requires_signature(entry)
        ]
        if not to_sign:
            return self.assembler.prepare(unsigned, simulation)

        signed = await self.signer.sign_auth_entries(
            to_sign,
            pending.signer_address or "",
            self.config.network,
            valid_until_ledger=(simulation.latest_ledger or 0) + AUTH_VALIDITY_LEDGERS,
        )
        signed_by_entry = dict(zip(to_sign, signed, strict=True))
        pending.signed_auth = [signed_by_entry.get(entry, entry) for entry in pending.required_auth]
        authorized = self.resolver.attach_signed(
            unsigned, pending.required_auth, pending.signed_auth
        )

        resimulation = await self.connector.simulate(authorized)
        pending.simulation = resimulation
        if not resimulation.ok:
            raise SimulationError(
                resimulation.error or "Simulation with signed authorization failed",
                method=pending.method,
            )
        return self.assembler.prepare(authorized, resimulation)

    def _check_signed_envelope(self, pending: PendingInvocation, signed_xdr: str) -> None:
        try:
            signed = TransactionEnvelope.from_xdr(
                signed_xdr, self.config.network.network_passphrase
            )
        except Exception as exc:
            raise SigningError(
                "Signer returned an envelope that could not be decoded",
                address=pending.signer_address,
            ) from exc

        expected = pending.final_envelope
        if (
            self.assembler.invoked_function(signed) != pending.method
            or signed.transaction.sequence != expected.transaction.sequence
        ):
            raise SigningError(
                "Signed envelope does not match the requested call",
                address=pending.signer_address,
            )

    @staticmethod
    def _check_receipt(receipt: SubmissionReceipt) -> None:
        if receipt.timed_out:
            raise SubmissionTimeoutError(
                "Transaction was not confirmed in time",
                tx_hash=receipt.tx_hash,
                attempts=receipt.attempts,
            )
        if receipt.status is SubmissionStatus.ERROR:
            reason, code = describe_failure(receipt.error_payload, receipt.diagnostic_events)
            raise ContractExecutionError(
                reason,
                tx_hash=receipt.tx_hash,
                reason=reason,
                code=code,
                details={"payload": receipt.error_payload},
            )
        if receipt.status is not SubmissionStatus.SUCCESS:
            raise NetworkError("Submission returned no transaction hash")

    def _failure(self, pending: PendingInvocation, exc: Exception) -> InvocationResult:
        classified = classify(exc)
        if classified.kind is ErrorKind.UNKNOWN:
            logger.exception("Unexpected failure during %s", pending.method)
        elif classified.kind in (ErrorKind.USER_REJECTED, ErrorKind.VALIDATION_FAILED):
            logger.info("%s stopped: %s", pending.method, classified.description)
        else:
            logger.warning(
                "%s failed (%s): %s",
                pending.method,
                classified.kind.value,
                extract_error_message(exc),
            )

        self.events.publish(
            Event(
                EventKind.TRANSACTION_FAILED,
                method=pending.method,
                tx_hash=pending.tx_hash,
                address=pending.signer_address,
                data={"kind": classified.kind.value, "title": classified.title},
            )
        )
        return InvocationResult(
            success=False,
            method=pending.method,
            tx_hash=pending.tx_hash,
            error_kind=classified.kind,
            title=classified.title,
            description=classified.description,
            attempts=getattr(exc, "attempts", 0),
        )

    def _publish_success(
        self, pending: PendingInvocation, receipt: SubmissionReceipt, value: Any
    ) -> None:
        spec = get_method(pending.method)
        named: dict[str, Any] = {}
        if spec is not None:
            named = dict(zip(spec.param_names, pending.args, strict=False))

        escrow_id = value if pending.method == "create_escrow" else named.get("escrow_id")
        common = {
            "method": pending.method,
            "tx_hash": receipt.tx_hash,
            "escrow_id": escrow_id,
            "milestone_index": named.get("milestone_index"),
            "address": pending.signer_address,
        }
        if spec is not None and spec.event is not None:
            self.events.publish(Event(spec.event, data={"return_value": value}, **common))
        self.events.publish(
            Event(EventKind.TRANSACTION_CONFIRMED, data={"ledger": receipt.ledger}, **common)
        )

    async def _milestones(
        self, escrow_id: int, snapshot: Sequence[Milestone] | None
    ) -> Sequence[Milestone]:
        if snapshot is not None:
            return snapshot
        return await self.get_milestones(escrow_id)

    # ------------------------------------------------------------------
    # Escrow lifecycle
    # ------------------------------------------------------------------
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
        """Create an escrow; an empty ``beneficiary`` opens the job to applications.

        Amounts are in stroops and the milestone amounts must add up to
        ``total_amount``. The confirmed result carries the new escrow id.
        """

        pending = PendingInvocation("create_escrow", [], signer_address)

        async def precheck() -> None:
            pending.args = validate_create_escrow(
                depositor=signer_address,
                beneficiary=beneficiary,
                arbiters=arbiters,
                required_confirmations=required_confirmations,
                milestones=milestones,
                token=token,
                total_amount=total_amount,
                duration=duration,
                project_title=project_title,
                project_description=project_description,
            )

        return await self._run(pending, precheck)

    async def start_work(self, signer_address: str, escrow_id: int) -> InvocationResult:
        return await self.invoke("start_work", [escrow_id, signer_address], signer_address)

    async def submit_milestone(
        self,
        signer_address: str,
        escrow_id: int,
        milestone_index: int,
        description: str,
        *,
        milestones: Sequence[Milestone] | None = None,
    ) -> InvocationResult:
        """Submit work for the next milestone in order.

        Without a ``milestones`` snapshot the status guard first runs
        ``read("get_milestones")``, one simulation through the assembler.
        """

        async def precheck() -> None:
            guard_submit(await self._milestones(escrow_id, milestones), milestone_index)

        pending = PendingInvocation(
            "submit_milestone",
            [escrow_id, milestone_index, description, signer_address],
            signer_address,
        )
        return await self._run(pending, precheck)

    async def resubmit_milestone(
        self,
        signer_address: str,
        escrow_id: int,
        milestone_index: int,
        description: str,
        *,
        milestones: Sequence[Milestone] | None = None,
    ) -> InvocationResult:
        """Resubmit work for a REJECTED milestone.

        Without a ``milestones`` snapshot the status guard first runs
        ``read("get_milestones")``, one simulation through the assembler.
        """

        async def precheck() -> None:
            require_reason(description, field="description")
            guard_resubmit(await self._milestones(escrow_id, milestones), milestone_index)

        pending = PendingInvocation(
            "resubmit_milestone",
            [escrow_id, milestone_index, description, signer_address],
            signer_address,
        )
        return await self._run(pending, precheck)

    async def approve_milestone(
        self,
        signer_address: str,
        escrow_id: int,
        milestone_index: int,
        *,
        milestones: Sequence[Milestone] | None = None,
    ) -> InvocationResult:
        """Approve a SUBMITTED milestone and release its amount.

        Without a ``milestones`` snapshot the status guard first runs
        ``read("get_milestones")``, one simulation through the assembler.
        """

        async def precheck() -> None:
            guard_review(await self._milestones(escrow_id, milestones), milestone_index, "approve")

        pending = PendingInvocation(
            "approve_milestone", [escrow_id, milestone_index, signer_address], signer_address
        )
        return await self._run(pending, precheck)

    async def reject_milestone(
        self,
        signer_address: str,
        escrow_id: int,
        milestone_index: int,
        reason: str,
        *,
        milestones: Sequence[Milestone] | None = None,
    ) -> InvocationResult:
        """Reject a SUBMITTED milestone with a reason.

        Without a ``milestones`` snapshot the status guard first runs
        ``read("get_milestones")``, one simulation through the assembler.
        """

        async def precheck() -> None:
            require_reason(reason)
            guard_review(await self._milestones(escrow_id, milestones), milestone_index, "reject")

        pending = PendingInvocation(
            "reject_milestone",
            [escrow_id, milestone_index, reason, signer_address],
            signer_address,
        )
        return await self._run(pending, precheck)

    async def dispute_milestone(
        self,
        signer_address: str,
        escrow_id: int,
        milestone_index: int,
        reason: str,
        *,
        milestones: Sequence[Milestone] | None = None,
    ) -> InvocationResult:
        """Open a dispute on a SUBMITTED or APPROVED milestone.

        Without a ``milestones`` snapshot the status guard first runs
        ``read("get_milestones")``, one simulation through the assembler.
        """

        async def precheck() -> None:
            require_reason(reason)
            guard_dispute(await self._milestones(escrow_id, milestones), milestone_index)

        pending = PendingInvocation(
            "dispute_milestone",
            [escrow_id, milestone_index, reason, signer_address],
            signer_address,
        )
        return await self._run(pending, precheck)

    async def apply_to_job(
        self, signer_address: str, escrow_id: int, cover_letter: str, proposed_timeline: int
    ) -> InvocationResult:
        async def precheck() -> None:
            require_reason(cover_letter, field="cover_letter")

        pending = PendingInvocation(
            "apply_to_job",
            [escrow_id, cover_letter, proposed_timeline, signer_address],
            signer_address,
        )
        return await self._run(pending, precheck)

    async def accept_freelancer(
        self, signer_address: str, escrow_id: int, freelancer: str
    ) -> InvocationResult:
        return await self.invoke(
            "accept_freelancer", [escrow_id, freelancer, signer_address], signer_address
        )

    async def refund_escrow(self, signer_address: str, escrow_id: int) -> InvocationResult:
        return await self.invoke("refund_escrow", [escrow_id, signer_address], signer_address)

    async def emergency_refund_after_deadline(
        self, signer_address: str, escrow_id: int
    ) -> InvocationResult:
        return await self.invoke(
            "emergency_refund_after_deadline", [escrow_id, signer_address], signer_address
        )

    async def extend_deadline(
        self, signer_address: str, escrow_id: int, extra_seconds: int
    ) -> InvocationResult:
        async def precheck() -> None:
            if require_u32(extra_seconds, field="extra_seconds") == 0:
                raise ValidationError(
                    "Extension must be longer than zero seconds",
                    field="extra_seconds",
                    value=extra_seconds,
                )

        pending = PendingInvocation(
            "extend_deadline", [escrow_id, extra_seconds, signer_address], signer_address
        )
        return await self._run(pending, precheck)

    async def submit_rating(
        self, signer_address: str, escrow_id: int, rating: int, review: str
    ) -> InvocationResult:
        async def precheck() -> None:
            require_rating(rating)

        pending = PendingInvocation(
            "submit_rating", [escrow_id, rating, review, signer_address], signer_address
        )
        return await self._run(pending, precheck)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------
    async def initialize(
        self, signer_address: str, owner: str, fee_collector: str, platform_fee_bp: int
    ) -> InvocationResult:
        return await self.invoke(
            "initialize", [owner, fee_collector, platform_fee_bp], signer_address
        )

    async def set_platform_fee_bp(self, signer_address: str, fee_bp: int) -> InvocationResult:
        return await self.invoke("set_platform_fee_bp", [fee_bp], signer_address)

    async def set_fee_collector(
        self, signer_address: str, fee_collector: str
    ) -> InvocationResult:
        return await self.invoke("set_fee_collector", [fee_collector], signer_address)

    async def set_owner(self, signer_address: str, new_owner: str) -> InvocationResult:
        return await self.invoke("set_owner", [new_owner], signer_address)

    async def whitelist_token(self, signer_address: str, token: str) -> InvocationResult:
        return await self.invoke("whitelist_token", [token], signer_address)

    async def authorize_arbiter(self, signer_address: str, arbiter: str) -> InvocationResult:
        return await self.invoke("authorize_arbiter", [arbiter], signer_address)

    async def pause_job_creation(self, signer_address: str) -> InvocationResult:
        return await self.invoke("pause_job_creation", [], signer_address)

    async def unpause_job_creation(self, signer_address: str) -> InvocationResult:
        return await self.invoke("unpause_job_creation", [], signer_address)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def get_escrow(self, escrow_id: int) -> EscrowData | None:
        return await self.read("get_escrow", [escrow_id])

    async def get_user_escrows(self, user: str) -> list[int]:
        return await self.read("get_user_escrows", [user])

    async def get_reputation(self, user: str) -> int:
        return await self.read("get_reputation", [user])

    async def get_completed_escrows(self, user: str) -> int:
        return await self.read("get_completed_escrows", [user])

    async def is_job_creation_paused(self) -> bool:
        return await self.read("is_job_creation_paused", [])

    async def get_owner(self) -> str:
        return await self.read("get_owner", [])

    async def has_applied(self, escrow_id: int, freelancer: str) -> bool:
        return await self.read("has_applied", [escrow_id, freelancer])

    async def get_application(self, escrow_id: int, freelancer: str) -> Application | None:
        return await self.read("get_application", [escrow_id, freelancer])

    async def get_applications(self, escrow_id: int) -> list[Application]:
        return await self.read("get_applications", [escrow_id])

    async def get_milestone(self, escrow_id: int, milestone_index: int) -> Milestone | None:
        return await self.read("get_milestone", [escrow_id, milestone_index])

    async def get_milestones(self, escrow_id: int) -> list[Milestone]:
        return await self.read("get_milestones", [escrow_id])

    async def get_rating(self, escrow_id: int) -> Rating | None:
        return await self.read("get_rating", [escrow_id])

    async def get_average_rating(self, freelancer: str) -> tuple[int, int]:
        return await self.read("get_average_rating", [freelancer])

    async def get_badge(self, freelancer: str) -> Badge:
        return await self.read("get_badge", [freelancer])

    async def is_authorized_arbiter(self, arbiter: str) -> bool:
        return await self.read("is_authorized_arbiter", [arbiter])
