"""End-to-end invocation flow against offline connector and signer stand-ins."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any

import pytest
from stellar_sdk import Keypair, TransactionEnvelope, scval, xdr
from stellar_sdk.operation import InvokeHostFunction

from decentpay_api.classifier import ErrorKind
from decentpay_api.events import EventBus, EventKind
from decentpay_api.exceptions import NetworkError, ValidationError
from decentpay_api.methods import METHODS, ArgKind, MethodSpec, mutating_methods, read_methods
from decentpay_api.types import (
    Badge,
    Milestone,
    MilestoneInput,
    MilestoneStatus,
    SimulationResult,
    SubmissionStatus,
)
from stubs import (
    OWNER,
    RecordingSigner,
    SleepRecorder,
    StubConnector,
    address_auth_entry,
    invoked_method,
    make_orchestrator,
)

CREATE_ESCROW_ARGS = {
    "milestones": [MilestoneInput(40, "Design the landing page"), (60, "Build the backend API")],
    "total_amount": 100,
    "duration": 7 * 24 * 3600,
    "project_title": "Website rebuild",
    "project_description": "Two milestone website project",
}


def _sample(kind: ArgKind, signer: str) -> Any:
    return {
        ArgKind.ADDRESS: signer,
        ArgKind.OPTION_ADDRESS: None,
        ArgKind.VEC_ADDRESS: [],
        ArgKind.U32: 1,
        ArgKind.I128: 100,
        ArgKind.STRING: "a long enough description",
        ArgKind.BOOL: True,
        ArgKind.MILESTONES: [(100, "single milestone")],
    }[kind]


def _sample_args(spec: MethodSpec, signer: str) -> list[Any]:
    return [_sample(param.kind, signer) for param in spec.params]


def _milestones(*statuses: MilestoneStatus) -> list[Milestone]:
    return [
        Milestone(description=f"milestone number {index}", amount=10, status=status)
        for index, status in enumerate(statuses)
    ]


@pytest.mark.parametrize("method", mutating_methods())
def test_every_mutating_method_submits_one_envelope(method: str) -> None:
    keypair = Keypair.random()
    connector = StubConnector()
    signer = RecordingSigner(keypair)
    orchestrator = make_orchestrator(connector, signer)

    args = _sample_args(METHODS[method], keypair.public_key)
    result = asyncio.run(orchestrator.invoke(method, args, keypair.public_key))

    assert result.success, result.description
    assert result.method == method
    envelopes = connector.submitted_envelopes()
    assert len(envelopes) == 1
    operations = envelopes[0].transaction.operations
    assert len(operations) == 1
    assert isinstance(operations[0], InvokeHostFunction)
    assert invoked_method(envelopes[0]) == method
    assert len(operations[0].host_function.invoke_contract.args) == len(args)
    assert envelopes[0].signatures
    assert result.tx_hash == envelopes[0].hash_hex()


@pytest.mark.parametrize("method", read_methods())
def test_every_read_method_simulates_without_submitting(method: str) -> None:
    keypair = Keypair.random()
    connector = StubConnector()
    orchestrator = make_orchestrator(connector, RecordingSigner(keypair))

    asyncio.run(orchestrator.read(method, _sample_args(METHODS[method], keypair.public_key)))

    assert connector.simulated == [method]
    assert connector.calls == ["simulate"]
    assert connector.submitted == []


def test_typed_reads_decode_results() -> None:
    connector = StubConnector()
    orchestrator = make_orchestrator(connector, RecordingSigner(Keypair.random()))
    user = Keypair.random().public_key

    async def scenario() -> dict[str, Any]:
        return {
            "escrows": await orchestrator.get_user_escrows(user),
            "paused": await orchestrator.is_job_creation_paused(),
            "rating": await orchestrator.get_average_rating(user),
            "badge": await orchestrator.get_badge(user),
            "owner": await orchestrator.get_owner(),
            "escrow": await orchestrator.get_escrow(3),
        }

    values = asyncio.run(scenario())

    assert values["escrows"] == [1, 2]
    assert values["paused"] is True
    assert values["rating"] == (9, 2)
    assert values["badge"] is Badge.EXPERT
    assert values["owner"] == OWNER
    assert values["escrow"] is None


def test_empty_required_auth_skips_entry_signing() -> None:
    keypair = Keypair.random()
    connector = StubConnector(required_auth=[])
    signer = RecordingSigner(keypair)
    orchestrator = make_orchestrator(connector, signer)

    result = asyncio.run(orchestrator.start_work(keypair.public_key, 4))

    assert result.success
    assert signer.auth_requests == 0
    assert signer.transaction_requests == 1


def test_required_auth_is_signed_and_attached() -> None:
    keypair = Keypair.random()
    entry = address_auth_entry(keypair.public_key, "approve_milestone")
    connector = StubConnector(required_auth=[entry])
    signer = RecordingSigner(keypair)
    orchestrator = make_orchestrator(connector, signer)

    result = asyncio.run(
        orchestrator.approve_milestone(
            keypair.public_key, 1, 0, milestones=_milestones(MilestoneStatus.SUBMITTED)
        )
    )

    assert result.success, result.description
    assert signer.auth_requests == 1
    (envelope,) = connector.submitted_envelopes()
    (attached,) = envelope.transaction.operations[0].auth
    assert attached.to_xdr() != entry
    credentials = attached.credentials.address
    assert credentials.signature.type != xdr.SCValType.SCV_VOID
    assert credentials.signature_expiration_ledger.uint32 == 1_000 + 100
    assert connector.simulated == ["approve_milestone", "approve_milestone"]


class ScriptedSimulationConnector(StubConnector):
    """Answers the second simulation of a call from ``second``."""

    def __init__(self, second: SimulationResult, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.second = second
        self.envelopes: list[TransactionEnvelope] = []

    async def simulate(self, envelope: TransactionEnvelope) -> SimulationResult:
        first = await super().simulate(envelope)
        self.envelopes.append(envelope)
        return first if len(self.envelopes) == 1 else self.second


def test_signed_auth_is_simulated_again_before_envelope_signing() -> None:
    keypair = Keypair.random()
    entry = address_auth_entry(keypair.public_key, "start_work")
    connector = ScriptedSimulationConnector(
        SimulationResult.success(
            required_auth=[entry],
            return_value_xdr=scval.to_void().to_xdr(),
            resource_fee=9_000,
            latest_ledger=1_001,
        ),
        required_auth=[entry],
    )
    signer = RecordingSigner(keypair)
    orchestrator = make_orchestrator(connector, signer)

    result = asyncio.run(orchestrator.start_work(keypair.public_key, 4))

    assert result.success, result.description
    first, second = connector.envelopes
    assert not first.transaction.operations[0].auth
    (sent_auth,) = second.transaction.operations[0].auth
    assert sent_auth.credentials.address.signature.type != xdr.SCValType.SCV_VOID
    (envelope,) = connector.submitted_envelopes()
    assert envelope.transaction.fee == 100 + 9_000
    assert envelope.transaction.operations[0].auth[0].to_xdr() == sent_auth.to_xdr()
    assert signer.transaction_requests == 1


def test_failed_simulation_with_signed_auth_stops_before_envelope_signing() -> None:
    keypair = Keypair.random()
    entry = address_auth_entry(keypair.public_key, "start_work")
    connector = ScriptedSimulationConnector(
        SimulationResult.failure("HostError: Error(Auth, InvalidAction)"),
        required_auth=[entry],
    )
    signer = RecordingSigner(keypair)
    orchestrator = make_orchestrator(connector, signer)

    result = asyncio.run(orchestrator.start_work(keypair.public_key, 4))

    assert result.error_kind == ErrorKind.SIMULATION_FAILED
    assert signer.auth_requests == 1
    assert signer.transaction_requests == 0
    assert connector.submitted == []


def test_prepared_envelope_carries_resource_fee() -> None:
    keypair = Keypair.random()
    connector = StubConnector()
    orchestrator = make_orchestrator(connector, RecordingSigner(keypair))

    asyncio.run(orchestrator.refund_escrow(keypair.public_key, 2))

    (envelope,) = connector.submitted_envelopes()
    assert envelope.transaction.fee == 100 + 5_000
    assert envelope.transaction.sequence == 101


@pytest.mark.parametrize("stage", ["transaction", "auth"])
def test_rejection_is_terminal_and_never_submits(stage: str) -> None:
    keypair = Keypair.random()
    entry = address_auth_entry(keypair.public_key, "start_work")
    connector = StubConnector(required_auth=[entry])
    signer = RecordingSigner(
        keypair,
        reject_transaction=stage == "transaction",
        reject_auth=stage == "auth",
    )
    events = EventBus()
    failures: list[Any] = []
    events.subscribe(EventKind.TRANSACTION_FAILED, failures.append)
    orchestrator = make_orchestrator(connector, signer, events=events)

    result = asyncio.run(orchestrator.start_work(keypair.public_key, 4))

    assert not result.success
    assert result.error_kind == ErrorKind.USER_REJECTED
    assert connector.submitted == []
    assert "submit" not in connector.calls
    assert len(failures) == 1
    assert failures[0].data["kind"] == "USER_REJECTED"


def test_always_pending_times_out_after_thirty_polls() -> None:
    keypair = Keypair.random()
    connector = StubConnector(always_pending=True)
    sleep = SleepRecorder()
    orchestrator = make_orchestrator(connector, RecordingSigner(keypair), sleep=sleep)

    result = asyncio.run(orchestrator.start_work(keypair.public_key, 4))

    assert not result.success
    assert result.error_kind == ErrorKind.SUBMISSION_TIMED_OUT
    assert connector.status_checks == 30
    assert sleep.calls == [1.0] * 30
    assert result.attempts == 30
    assert result.tx_hash is not None
    assert len(connector.submitted) == 1


def test_contract_failure_maps_error_code() -> None:
    keypair = Keypair.random()
    connector = StubConnector(
        statuses=[SubmissionStatus.PENDING, SubmissionStatus.ERROR],
        status_payload={"message": "HostError: Error(Contract, #1402)"},
    )
    orchestrator = make_orchestrator(connector, RecordingSigner(keypair))

    result = asyncio.run(orchestrator.start_work(keypair.public_key, 4))

    assert result.error_kind == ErrorKind.CONTRACT_EXECUTION_FAILED
    assert result.description == "The milestone has not been submitted"
    assert connector.status_checks == 2


def test_simulation_failure_never_reaches_signer() -> None:
    keypair = Keypair.random()
    connector = StubConnector(simulation_error="HostError: Error(Contract, #1200)")
    signer = RecordingSigner(keypair)
    orchestrator = make_orchestrator(connector, signer)

    result = asyncio.run(orchestrator.start_work(keypair.public_key, 4))

    assert result.error_kind == ErrorKind.SIMULATION_FAILED
    assert result.description == "Job creation is currently paused"
    assert signer.transaction_requests == 0
    assert connector.submitted == []


def test_create_escrow_builds_ten_arguments_and_returns_id() -> None:
    keypair = Keypair.random()
    connector = StubConnector()
    events = EventBus()
    created: list[Any] = []
    events.subscribe(EventKind.ESCROW_CREATED, created.append)
    orchestrator = make_orchestrator(connector, RecordingSigner(keypair), events=events)

    result = asyncio.run(orchestrator.create_escrow(keypair.public_key, **CREATE_ESCROW_ARGS))

    assert result.success, result.description
    assert result.return_value == 7
    (envelope,) = connector.submitted_envelopes()
    (operation,) = envelope.transaction.operations
    args = operation.host_function.invoke_contract.args
    assert len(args) == 10
    milestones = scval.to_native(args[4])
    assert [item[0] for item in milestones] == [40, 60]
    assert scval.to_native(args[6]) == 100
    assert created[0].escrow_id == 7


def test_create_escrow_sum_mismatch_fails_without_network() -> None:
    keypair = Keypair.random()
    connector = StubConnector()
    signer = RecordingSigner(keypair)
    orchestrator = make_orchestrator(connector, signer)

    request = dict(CREATE_ESCROW_ARGS, total_amount=90)
    result = asyncio.run(orchestrator.create_escrow(keypair.public_key, **request))

    assert not result.success
    assert result.error_kind == ErrorKind.VALIDATION_FAILED
    assert connector.calls == []
    assert signer.transaction_requests == 0


def test_approve_on_approved_milestone_is_rejected_before_build(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    keypair = Keypair.random()
    connector = StubConnector()
    orchestrator = make_orchestrator(connector, RecordingSigner(keypair))

    def fail_build(*args: Any, **kwargs: Any) -> None:
        raise AssertionError("assembler must not be reached")

    monkeypatch.setattr(orchestrator.assembler, "build", fail_build)

    result = asyncio.run(
        orchestrator.approve_milestone(
            keypair.public_key,
            1,
            0,
            milestones=_milestones(MilestoneStatus.APPROVED),
        )
    )

    assert result.error_kind == ErrorKind.VALIDATION_FAILED
    assert "Approved" in (result.description or "")
    assert connector.calls == []


def test_missing_wallet_address_is_a_validation_failure() -> None:
    connector = StubConnector()
    orchestrator = make_orchestrator(connector, RecordingSigner(Keypair.random()))

    result = asyncio.run(orchestrator.invoke("start_work", [1, OWNER], ""))

    assert result.error_kind == ErrorKind.VALIDATION_FAILED
    assert connector.calls == []


@pytest.mark.parametrize("method", ["get_owner", "get_reputation", "is_job_creation_paused"])
def test_invoke_refuses_read_only_methods(method: str) -> None:
    keypair = Keypair.random()
    connector = StubConnector()
    signer = RecordingSigner(keypair)
    orchestrator = make_orchestrator(connector, signer)

    args = _sample_args(METHODS[method], keypair.public_key)
    result = asyncio.run(orchestrator.invoke(method, args, keypair.public_key))

    assert not result.success
    assert result.error_kind == ErrorKind.VALIDATION_FAILED
    assert "read-only" in (result.description or "")
    assert connector.calls == []
    assert signer.transaction_requests == 0


@pytest.mark.parametrize("method", ["start_work", "refund_escrow", "pause_job_creation"])
def test_read_refuses_state_changing_methods(method: str) -> None:
    keypair = Keypair.random()
    connector = StubConnector()
    orchestrator = make_orchestrator(connector, RecordingSigner(keypair))

    with pytest.raises(ValidationError) as excinfo:
        asyncio.run(orchestrator.read(method, _sample_args(METHODS[method], keypair.public_key)))

    assert excinfo.value.field == "method"
    assert connector.calls == []


def test_unlisted_method_is_allowed_through_invoke() -> None:
    keypair = Keypair.random()
    connector = StubConnector()
    orchestrator = make_orchestrator(connector, RecordingSigner(keypair))

    result = asyncio.run(orchestrator.invoke("custom_method", ["hello", 5], keypair.public_key))

    assert result.success, result.description
    assert connector.simulated == ["custom_method"]


def test_submissions_for_one_address_are_serialised() -> None:
    keypair = Keypair.random()
    connector = StubConnector()
    orchestrator = make_orchestrator(connector, RecordingSigner(keypair))

    async def scenario() -> list[Any]:
        return list(
            await asyncio.gather(
                orchestrator.start_work(keypair.public_key, 1),
                orchestrator.start_work(keypair.public_key, 2),
            )
        )

    results = asyncio.run(scenario())

    assert all(result.success for result in results)
    block = ["get_account", "simulate", "submit", "get_status"]
    assert connector.calls == block + block
    sequences = [envelope.transaction.sequence for envelope in connector.submitted_envelopes()]
    assert sequences == [101, 102]


def test_success_publishes_typed_events() -> None:
    keypair = Keypair.random()
    connector = StubConnector()
    events = EventBus()
    seen: list[Any] = []
    events.subscribe(EventKind.MILESTONE_DISPUTED, seen.append)
    events.subscribe(EventKind.TRANSACTION_CONFIRMED, seen.append)
    orchestrator = make_orchestrator(connector, RecordingSigner(keypair), events=events)

    result = asyncio.run(
        orchestrator.dispute_milestone(
            keypair.public_key,
            9,
            1,
            "work does not match the brief",
            milestones=_milestones(MilestoneStatus.APPROVED, MilestoneStatus.SUBMITTED),
        )
    )

    assert result.success
    assert [event.kind for event in seen] == [
        EventKind.MILESTONE_DISPUTED,
        EventKind.TRANSACTION_CONFIRMED,
    ]
    assert seen[0].escrow_id == 9
    assert seen[0].milestone_index == 1
    assert seen[0].address == keypair.public_key


def test_milestone_guard_fetches_snapshot_when_missing() -> None:
    keypair = Keypair.random()
    connector = StubConnector()
    orchestrator = make_orchestrator(connector, RecordingSigner(keypair))

    result = asyncio.run(
        orchestrator.submit_milestone(keypair.public_key, 3, 0, "first deliverable done")
    )

    assert result.error_kind == ErrorKind.VALIDATION_FAILED
    assert connector.calls == ["simulate"]
    assert connector.simulated == ["get_milestones"]
    assert connector.submitted == []


def test_balance_refresh_after_success_publishes_update() -> None:
    keypair = Keypair.random()
    connector = StubConnector()
    events = EventBus()
    updates: list[Any] = []
    events.subscribe(EventKind.BALANCE_UPDATED, updates.append)
    orchestrator = make_orchestrator(connector, RecordingSigner(keypair), events=events)

    async def scenario() -> None:
        await orchestrator.start_work(keypair.public_key, 1)
        connector.balance = Decimal("12.5")
        await orchestrator.refresh_balance(keypair.public_key)
        await orchestrator.refresh_balance(keypair.public_key)

    asyncio.run(scenario())

    assert [event.data["balance"] for event in updates] == [Decimal("50"), Decimal("12.5")]
    assert updates[1].data["previous"] == Decimal("50")
    assert orchestrator.cached_balance(keypair.public_key) == Decimal("12.5")


@pytest.mark.parametrize(
    "error", [TypeError("'NoneType' object is not iterable"), NetworkError("Horizon down")]
)
def test_failed_balance_refresh_keeps_confirmed_result(error: Exception) -> None:
    keypair = Keypair.random()
    connector = StubConnector()
    connector.balance_error = error
    events = EventBus()
    confirmed: list[Any] = []
    events.subscribe(EventKind.TRANSACTION_CONFIRMED, confirmed.append)
    orchestrator = make_orchestrator(connector, RecordingSigner(keypair), events=events)

    result = asyncio.run(orchestrator.start_work(keypair.public_key, 1))

    assert result.success, result.description
    assert result.tx_hash == connector.submitted_envelopes()[0].hash_hex()
    assert len(confirmed) == 1
