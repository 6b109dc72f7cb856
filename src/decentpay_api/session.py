"""Explicit connection state shared by one user's escrow calls."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Any

from .config import ClientConfig
from .connector import NetworkConnector
from .types import AccountHandle
from .utils import shorten_address

logger = logging.getLogger(__name__)


class Session:
    """Own the connector, cached account handles and per-address submit locks.

    Submissions for the same address are serialised by holding
    ``lock_for(address)`` from build through confirmation; different
    addresses proceed concurrently.
    """

    def __init__(self, config: ClientConfig | None = None, connector: Any = None) -> None:
        self.config = config or ClientConfig()
        self.connector = connector or NetworkConnector(self.config)
        self._accounts: dict[str, AccountHandle] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    async def __aenter__(self) -> Session:
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def open(self) -> None:
        if not self.connector.is_connected():
            await self.connector.connect()

    async def close(self) -> None:
        if self.connector.is_connected():
            await self.connector.disconnect()
        self._accounts.clear()
        # Locks still held belong to calls in flight; drop the rest.
        self._locks = {address: lock for address, lock in self._locks.items() if lock.locked()}

    def is_open(self) -> bool:
        return self.connector.is_connected()

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------
    def lock_for(self, address: str) -> asyncio.Lock:
        lock = self._locks.get(address)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[address] = lock
        return lock

    async def fresh_account(self, address: str) -> AccountHandle:
        """Fetch the sequence number of ``address`` right before a build."""

        handle = await self.connector.get_account(address)
        cached = self._accounts.get(address)
        if handle.balance is None and cached is not None:
            handle.balance = cached.balance
        self._accounts[address] = handle
        logger.debug("Loaded %s sequence=%s", shorten_address(address), handle.sequence)
        return handle

    def cached_account(self, address: str) -> AccountHandle | None:
        return self._accounts.get(address)

    def record_submission(self, address: str, sequence: int) -> None:
        """Remember the sequence consumed by an accepted envelope."""

        handle = self._accounts.get(address)
        if handle is not None and sequence > handle.sequence:
            handle.sequence = sequence

    async def refresh_balance(self, address: str) -> Decimal | None:
        balance = await self.connector.refresh_balance(address)
        handle = self._accounts.get(address)
        if handle is not None and balance is not None:
            handle.balance = balance
        return balance

    def cached_balance(self, address: str) -> Decimal | None:
        handle = self._accounts.get(address)
        if handle is not None and handle.balance is not None:
            return handle.balance
        return self.connector.cached_balance(address)
