"""Offline stand-ins for the network connector and signing agent used across tests."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any

from stellar_sdk import Address, Keypair, TransactionEnvelope, scval, xdr

from decentpay_api.assembler import TransactionAssembler
from decentpay_api.config import ClientConfig, PollingConfig
from decentpay_api.events import EventBus
from decentpay_api.orchestrator import EscrowOrchestrator
from decentpay_api.poller import ConfirmationPoller
from decentpay_api.session import Session
from decentpay_api.signer import KeypairSigner
from decentpay_api.types import (
    AccountHandle,
    SimulationResult,
    SubmissionReceipt,
    SubmissionStatus,
)

CONFIG = ClientConfig()
PASSPHRASE = CONFIG.network.network_passphrase
OWNER = Keypair.random().public_key

READ_RETURNS: dict[str, xdr.SCVal] = {
    "get_escrow": scval.to_void(),
    "get_user_escrows": scval.to_vec([scval.to_uint32(1), scval.to_uint32(2)]),
    "get_reputation": scval.to_uint32(5),
    "get_completed_escrows": scval.to_uint32(3),
    "is_job_creation_paused": scval.to_bool(True),
    "has_applied": scval.to_bool(True),
    "is_authorized_arbiter": scval.to_bool(False),
    "get_application": scval.to_void(),
    "get_applications": scval.to_vec([]),
    "get_milestone": scval.to_void(),
    "get_milestones": scval.to_vec([]),
    "get_rating": scval.to_void(),
    "get_average_rating": scval.to_vec([scval.to_uint32(9), scval.to_uint32(2)]),
    "get_badge": scval.to_vec([scval.to_symbol("Expert")]),
    "get_owner": scval.to_address(OWNER),
    "create_escrow": scval.to_uint32(7),
}


def address_auth_entry(address: str, method: str, *, nonce: int = 42) -> str:
    """Unsigned address-credential authorization entry for ``method``."""

    entry = xdr.SorobanAuthorizationEntry(
        credentials=xdr.SorobanCredentials(
            type=xdr.SorobanCredentialsType.SOROBAN_CREDENTIALS_ADDRESS,
            address=xdr.SorobanAddressCredentials(
                address=Address(address).to_xdr_sc_address(),
                nonce=xdr.Int64(nonce),
                signature_expiration_ledger=xdr.Uint32(0),
                signature=scval.to_void(),
            ),
        ),
        root_invocation=xdr.SorobanAuthorizedInvocation(
            function=xdr.SorobanAuthorizedFunction(
                type=xdr.SorobanAuthorizedFunctionType.SOROBAN_AUTHORIZED_FUNCTION_TYPE_CONTRACT_FN,
                contract_fn=xdr.InvokeContractArgs(
                    contract_address=Address(CONFIG.contract_id).to_xdr_sc_address(),
                    function_name=xdr.SCSymbol(method.encode()),
                    args=[],
                ),
            ),
            sub_invocations=[],
        ),
    )
    return entry.to_xdr()


def invoked_method(envelope: TransactionEnvelope) -> str:
    return TransactionAssembler(CONFIG).invoked_function(envelope)


class StubConnector:
    """Records every network-facing call; statuses are scripted per test."""

    def __init__(
        self,
        *,
        sequence: int = 100,
        required_auth: list[str] | None = None,
        simulation_error: str | None = None,
        statuses: list[SubmissionStatus] | None = None,
        always_pending: bool = False,
        status_payload: Any = None,
    ) -> None:
        self.sequence = sequence
        self.required_auth = list(required_auth or [])
        self.simulation_error = simulation_error
        self.statuses = list(statuses or [])
        self.always_pending = always_pending
        self.status_payload = status_payload
        self.calls: list[str] = []
        self.simulated: list[str] = []
        self.submitted: list[str] = []
        self.status_checks = 0
        self.balance: Decimal | None = Decimal("50")
        self.balance_error: Exception | None = None
        self._balances: dict[str, Decimal] = {}
        self._connected = True

    # Lifecycle
    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    def is_connected(self) -> bool:
        return self._connected

    # RPC
    async def get_account(self, address: str) -> AccountHandle:
        self.calls.append("get_account")
        await asyncio.sleep(0)
        return AccountHandle(address=address, sequence=self.sequence)

    async def simulate(self, envelope: TransactionEnvelope) -> SimulationResult:
        method = invoked_method(envelope)
        self.calls.append("simulate")
        self.simulated.append(method)
        await asyncio.sleep(0)
        if self.simulation_error:
            return SimulationResult.failure(self.simulation_error)
        value = READ_RETURNS.get(method, scval.to_void())
        return SimulationResult.success(
            required_auth=self.required_auth,
            return_value_xdr=value.to_xdr(),
            resource_fee=5_000,
            latest_ledger=1_000,
        )

    async def submit(self, signed_envelope_xdr: str) -> SubmissionReceipt:
        self.calls.append("submit")
        self.submitted.append(signed_envelope_xdr)
        envelope = TransactionEnvelope.from_xdr(signed_envelope_xdr, PASSPHRASE)
        self.sequence = envelope.transaction.sequence
        return SubmissionReceipt(tx_hash=envelope.hash_hex(), status=SubmissionStatus.PENDING)

    async def get_status(self, tx_hash: str) -> SubmissionReceipt:
        self.calls.append("get_status")
        self.status_checks += 1
        if self.always_pending:
            status = SubmissionStatus.PENDING
        elif self.statuses:
            status = self.statuses.pop(0)
        else:
            status = SubmissionStatus.SUCCESS
        payload = self.status_payload if status is SubmissionStatus.ERROR else None
        return SubmissionReceipt(tx_hash=tx_hash, status=status, error_payload=payload, ledger=7)

    # Horizon
    async def refresh_balance(self, address: str) -> Decimal | None:
        if self.balance_error is not None:
            raise self.balance_error
        if self.balance is None:
            return self._balances.get(address)
        self._balances[address] = self.balance
        return self.balance

    def cached_balance(self, address: str) -> Decimal | None:
        return self._balances.get(address)

    def submitted_envelopes(self) -> list[TransactionEnvelope]:
        return [TransactionEnvelope.from_xdr(item, PASSPHRASE) for item in self.submitted]


class RecordingSigner(KeypairSigner):
    """Keypair signer that counts requests and can reject on demand."""

    def __init__(
        self,
        keypair: Keypair,
        *,
        reject_transaction: bool = False,
        reject_auth: bool = False,
    ) -> None:
        super().__init__(keypair)
        self.reject_transaction = reject_transaction
        self.reject_auth = reject_auth
        self.transaction_requests = 0
        self.auth_requests = 0

    async def sign_transaction(
        self, envelope_xdr: str, *, address: str, network_passphrase: str
    ) -> str:
        self.transaction_requests += 1
        if self.reject_transaction:
            raise RuntimeError("User declined the request")
        return await super().sign_transaction(
            envelope_xdr, address=address, network_passphrase=network_passphrase
        )

    async def sign_auth_entry(
        self,
        entry_xdr: str,
        *,
        address: str,
        network_passphrase: str,
        valid_until_ledger: int,
    ) -> str:
        self.auth_requests += 1
        if self.reject_auth:
            raise RuntimeError("Request rejected by user")
        return await super().sign_auth_entry(
            entry_xdr,
            address=address,
            network_passphrase=network_passphrase,
            valid_until_ledger=valid_until_ledger,
        )


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_orchestrator(
    connector: StubConnector,
    signer: Any,
    *,
    events: EventBus | None = None,
    sleep: SleepRecorder | None = None,
) -> EscrowOrchestrator:
    session = Session(CONFIG, connector=connector)
    poller = ConfirmationPoller(connector, PollingConfig(), sleep=sleep or SleepRecorder())
    return EscrowOrchestrator(session, signer, events, poller=poller)
