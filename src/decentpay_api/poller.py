"""Submit signed envelopes and poll until the network reaches a verdict."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from .config import PollingConfig
from .exceptions import NetworkError
from .types import SubmissionReceipt, SubmissionStatus

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from .connector import NetworkConnector

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class ConfirmationPoller:
    """Constant-interval confirmation polling with a fixed attempt ceiling."""

    def __init__(
        self,
        connector: NetworkConnector,
        polling: PollingConfig | None = None,
        *,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._connector = connector
        self._polling = polling or PollingConfig()
        self._sleep = sleep

    async def submit_and_confirm(self, signed_envelope_xdr: str) -> SubmissionReceipt:
        receipt = await self._connector.submit(signed_envelope_xdr)
        if receipt.status is not SubmissionStatus.PENDING:
            logger.info("Submission finished immediately status=%s", receipt.status.value)
            return receipt
        if not receipt.tx_hash:
            return receipt
        logger.info("Transaction submitted hash=%s; awaiting confirmation", receipt.tx_hash)
        return await self.confirm(receipt.tx_hash)

    async def confirm(self, tx_hash: str) -> SubmissionReceipt:
        """Poll ``tx_hash`` until SUCCESS or ERROR, or until the ceiling is reached.

        A failed status request counts as an attempt. Reaching the ceiling yields
        a PENDING receipt flagged ``timed_out``; the outcome is then unknown.
        """

        max_attempts = self._polling.max_attempts
        for attempt in range(1, max_attempts + 1):
            await self._sleep(self._polling.interval)
            try:
                receipt = await self._connector.get_status(tx_hash)
            except NetworkError as exc:
                logger.warning(
                    "Status check failed for %s (attempt %s/%s): %s",
                    tx_hash,
                    attempt,
                    max_attempts,
                    exc.message,
                )
                continue

            if receipt.is_terminal:
                receipt.attempts = attempt
                logger.info(
                    "Transaction %s finished status=%s after %s poll(s)",
                    tx_hash,
                    receipt.status.value,
                    attempt,
                )
                return receipt

            logger.debug("Transaction %s pending (attempt %s/%s)", tx_hash, attempt, max_attempts)

        logger.warning("Transaction %s still pending after %s polls", tx_hash, max_attempts)
        return SubmissionReceipt(
            tx_hash=tx_hash,
            status=SubmissionStatus.PENDING,
            attempts=max_attempts,
            timed_out=True,
        )
