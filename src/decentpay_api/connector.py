"""Soroban RPC and Horizon access for the escrow orchestration layer."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any

import requests
from stellar_sdk import SorobanServerAsync, TransactionEnvelope, xdr
from stellar_sdk.client.aiohttp_client import AiohttpClient
from stellar_sdk.exceptions import AccountNotFoundException

from .config import ClientConfig
from .exceptions import NetworkError
from .types import AccountHandle, SimulationResult, SubmissionReceipt, SubmissionStatus
from .utils import shorten_address

logger = logging.getLogger(__name__)

_PENDING_SEND_STATUSES = frozenset({"PENDING", "DUPLICATE", "TRY_AGAIN_LATER"})


def _status_name(status: Any) -> str:
    return str(getattr(status, "value", status)).upper()


def _result_code(result_xdr: str | None) -> str | None:
    """Return the symbolic transaction result code (e.g. ``txFAILED``) for ``result_xdr``."""

    if not result_xdr:
        return None
    try:
        result = xdr.TransactionResult.from_xdr(result_xdr)
    except Exception:  # pragma: no cover - defensive
        return None
    return result.result.code.name


class NetworkConnector:
    """Own the Soroban RPC client, the Horizon session and the balance cache."""

    def __init__(
        self,
        config: ClientConfig,
        *,
        http_session: requests.Session | None = None,
    ) -> None:
        self.config = config
        self._server: SorobanServerAsync | None = None
        self._http = http_session or requests.Session()
        self._balances: dict[str, Decimal] = {}
        self._connected = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def connect(self) -> None:
        """Open the RPC client and confirm the endpoint reports healthy."""

        client = AiohttpClient(request_timeout=self.config.request_timeout)
        server = SorobanServerAsync(self.config.network.rpc_url, client=client)
        try:
            health = await server.get_health()
        except Exception as exc:
            await server.close()
            raise NetworkError(
                "Failed to reach Soroban RPC",
                endpoint=self.config.network.rpc_url,
                details={"error": str(exc)},
            ) from exc

        self._server = server
        self._connected = True
        logger.info(
            "Connected to Soroban RPC at %s (network=%s, health=%s)",
            self.config.network.rpc_url,
            self.config.network.name,
            getattr(health, "status", "unknown"),
        )

    async def disconnect(self) -> None:
        server = self._server
        self._server = None
        self._connected = False
        if server is not None:
            await server.close()

    def is_connected(self) -> bool:
        return self._connected and self._server is not None

    def ensure_connected(self) -> None:
        if not self.is_connected():
            raise NetworkError(
                "Soroban connector is not connected", endpoint=self.config.network.rpc_url
            )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def server(self) -> SorobanServerAsync:
        if self._server is None:
            raise NetworkError(
                "Soroban RPC client not available; call connect() first",
                endpoint=self.config.network.rpc_url,
            )
        return self._server

    def cached_balance(self, address: str) -> Decimal | None:
        return self._balances.get(address)

    # ------------------------------------------------------------------
    # RPC operations
    # ------------------------------------------------------------------
    async def get_account(self, address: str) -> AccountHandle:
        """Fetch the current sequence number of ``address``."""

        server = self.server
        try:
            account = await server.load_account(address)
        except AccountNotFoundException as exc:
            raise NetworkError(
                f"Account {shorten_address(address)} was not found on the network",
                endpoint=self.config.network.rpc_url,
                status_code=404,
                details={"address": address},
            ) from exc
        except Exception as exc:
            raise NetworkError(
                "Failed to load account",
                endpoint=self.config.network.rpc_url,
                details={"address": address, "error": str(exc)},
            ) from exc

        return AccountHandle(
            address=address,
            sequence=account.sequence,
            balance=self._balances.get(address),
        )

    async def simulate(self, envelope: TransactionEnvelope) -> SimulationResult:
        """Dry-run ``envelope``; contract-level failures come back as ``ok=False``."""

        server = self.server
        try:
            response = await server.simulate_transaction(envelope)
        except Exception as exc:
            raise NetworkError(
                "Simulation request failed",
                endpoint=self.config.network.rpc_url,
                details={"error": str(exc)},
            ) from exc

        if response.error:
            logger.debug("Simulation reported error: %s", response.error)
            return SimulationResult.failure(response.error, raw=response)

        if getattr(response, "restore_preamble", None):
            return SimulationResult.failure(
                "Contract state is archived and must be restored before this call",
                raw=response,
            )

        results = response.results or []
        required_auth = [entry for result in results for entry in (result.auth or [])]
        return SimulationResult.success(
            required_auth=required_auth,
            return_value_xdr=results[0].xdr if results else None,
            resource_fee=int(response.min_resource_fee or 0),
            transaction_data=response.transaction_data,
            raw=response,
            latest_ledger=response.latest_ledger,
        )

    async def submit(self, signed_envelope_xdr: str) -> SubmissionReceipt:
        server = self.server
        envelope = TransactionEnvelope.from_xdr(
            signed_envelope_xdr, self.config.network.network_passphrase
        )
        try:
            response = await server.send_transaction(envelope)
        except Exception as exc:
            raise NetworkError(
                "Failed to submit transaction",
                endpoint=self.config.network.rpc_url,
                details={"error": str(exc)},
            ) from exc

        status = _status_name(response.status)
        events = list(getattr(response, "diagnostic_events_xdr", None) or [])
        if status in _PENDING_SEND_STATUSES:
            if status != "PENDING":
                logger.info("Submission answered %s for %s; polling", status, response.hash)
            return SubmissionReceipt(
                tx_hash=response.hash,
                status=SubmissionStatus.PENDING,
                diagnostic_events=events,
            )

        code = _result_code(response.error_result_xdr)
        return SubmissionReceipt(
            tx_hash=response.hash,
            status=SubmissionStatus.ERROR,
            error_payload={
                "message": code or "Transaction rejected by the network",
                "result_xdr": response.error_result_xdr,
            },
            diagnostic_events=events,
        )

    async def get_status(self, tx_hash: str) -> SubmissionReceipt:
        server = self.server
        try:
            response = await server.get_transaction(tx_hash)
        except Exception as exc:
            raise NetworkError(
                "Failed to fetch transaction status",
                endpoint=self.config.network.rpc_url,
                details={"hash": tx_hash, "error": str(exc)},
            ) from exc

        status = _status_name(response.status)
        if status == "SUCCESS":
            return SubmissionReceipt(
                tx_hash=tx_hash,
                status=SubmissionStatus.SUCCESS,
                ledger=response.ledger,
                result_meta_xdr=response.result_meta_xdr,
            )
        if status == "FAILED":
            code = _result_code(response.result_xdr)
            return SubmissionReceipt(
                tx_hash=tx_hash,
                status=SubmissionStatus.ERROR,
                error_payload={
                    "message": code or "Transaction failed",
                    "result_xdr": response.result_xdr,
                },
                ledger=response.ledger,
                result_meta_xdr=response.result_meta_xdr,
                diagnostic_events=list(getattr(response, "diagnostic_events_xdr", None) or []),
            )
        return SubmissionReceipt(tx_hash=tx_hash, status=SubmissionStatus.PENDING)

    # ------------------------------------------------------------------
    # Horizon
    # ------------------------------------------------------------------
    def _fetch_native_balance(self, address: str) -> Decimal:
        horizon_url = self.config.network.horizon_url
        if not horizon_url:
            raise NetworkError("No Horizon endpoint configured for balance reads")

        endpoint = f"{horizon_url.rstrip('/')}/accounts/{address}"
        response = self._http.get(endpoint, timeout=self.config.request_timeout)
        if response.status_code != 200:
            raise NetworkError(
                "Horizon account lookup failed",
                endpoint=endpoint,
                status_code=response.status_code,
            )

        payload = response.json()
        balances = payload.get("balances") if isinstance(payload, Mapping) else None
        if not isinstance(balances, list):
            raise NetworkError("Horizon returned an unexpected account payload", endpoint=endpoint)

        for balance in balances:
            if isinstance(balance, Mapping) and balance.get("asset_type") == "native":
                return Decimal(str(balance["balance"]))
        raise NetworkError("Account has no native balance entry", endpoint=endpoint)

    async def refresh_balance(self, address: str) -> Decimal | None:
        """Refresh the cached native balance; a failure keeps the previous value."""

        previous = self._balances.get(address)
        try:
            balance = await asyncio.to_thread(self._fetch_native_balance, address)
        except (
            NetworkError,
            requests.RequestException,
            ValueError,
            KeyError,
            InvalidOperation,
        ) as exc:
            logger.warning(
                "Balance refresh failed for %s; keeping last known value: %s",
                shorten_address(address),
                exc,
            )
            return previous

        self._balances[address] = balance
        return balance
