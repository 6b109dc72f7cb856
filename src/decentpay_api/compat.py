"""Legacy ``call``/``send`` surface kept for older callers.

Every request is routed through the orchestrator and therefore through the
single table-driven assembler; this module only translates legacy names and
argument shapes.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from .exceptions import EscrowProtocolError, MethodNotSupportedError, ValidationError
from .orchestrator import EscrowOrchestrator
from .types import InvocationResult

logger = logging.getLogger(__name__)

# Reported when the escrow counter cannot be read; 1 means "no escrows yet".
DEFAULT_NEXT_ESCROW_ID = 1

READ_ALIASES = {
    "owner": "get_owner",
    "paused": "is_job_creation_paused",
    "job_creation_paused": "is_job_creation_paused",
}
PAUSE_CHECKS = frozenset({"paused", "is_job_creation_paused", "job_creation_paused"})

# Contract function names are Soroban symbols
_FUNCTION_NAME = re.compile(r"^[A-Za-z0-9_]{1,32}$")


class LegacyContractShim:
    """Adapt ``call(method, *args)`` and ``send(method, *args)`` onto the orchestrator."""

    def __init__(self, orchestrator: EscrowOrchestrator, signer_address: str | None = None):
        self._orchestrator = orchestrator
        self._signer_address = signer_address

    @property
    def signer_address(self) -> str | None:
        return self._signer_address

    def use_signer(self, signer_address: str | None) -> None:
        self._signer_address = signer_address

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def call(self, method: str, *args: Any) -> Any:
        """Read-only call with the legacy fallbacks for the escrow counter and pause flag."""

        _check_name(method)

        if method == "next_escrow_id":
            logger.warning(
                "next_escrow_id is not exposed by the contract; returning %s",
                DEFAULT_NEXT_ESCROW_ID,
            )
            return DEFAULT_NEXT_ESCROW_ID

        target = READ_ALIASES.get(method, method)
        if method in PAUSE_CHECKS:
            try:
                return bool(await self._orchestrator.read(target, list(args), self._signer_address))
            except EscrowProtocolError as exc:
                logger.warning("Pause status read failed; assuming not paused: %s", exc.message)
                return False

        return await self._orchestrator.read(target, list(args), self._signer_address)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def send(self, method: str, *args: Any, signer_address: str | None = None) -> str:
        """Submit a state-changing call and return its transaction hash.

        Failures are raised as ``EscrowProtocolError`` carrying the classified
        kind and title in ``details``.
        """

        result = await self.send_for_result(method, *args, signer_address=signer_address)
        if not result.success:
            raise EscrowProtocolError(
                result.description or result.title or f"{method} failed",
                details={
                    "kind": result.error_kind,
                    "title": result.title,
                    "tx_hash": result.tx_hash,
                },
            )
        return result.tx_hash or ""

    async def send_for_result(
        self, method: str, *args: Any, signer_address: str | None = None
    ) -> InvocationResult:
        _check_name(method)

        address = signer_address or self._signer_address
        target, arguments = self._translate(method, list(args))
        if target != method:
            logger.debug("Legacy %s mapped to %s", method, target)
        return await self._orchestrator.invoke(target, arguments, address or "")

    @staticmethod
    def _translate(method: str, args: list[Any]) -> tuple[str, list[Any]]:
        if method == "set_job_creation_paused":
            if len(args) != 1 or not isinstance(args[0], bool):
                raise ValidationError(
                    "set_job_creation_paused expects one boolean", field="paused", value=args
                )
            return ("pause_job_creation" if args[0] else "unpause_job_creation"), []
        return method, args


def _check_name(method: str) -> None:
    if not isinstance(method, str) or not _FUNCTION_NAME.match(method):
        raise MethodNotSupportedError(str(method))
