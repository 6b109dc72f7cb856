"""Typed event bus replacing broadcast-style refresh triggers."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    ESCROW_CREATED = "escrow_created"
    ESCROW_UPDATED = "escrow_updated"
    WORK_STARTED = "work_started"
    MILESTONE_SUBMITTED = "milestone_submitted"
    MILESTONE_APPROVED = "milestone_approved"
    MILESTONE_REJECTED = "milestone_rejected"
    MILESTONE_DISPUTED = "milestone_disputed"
    APPLICATION_SUBMITTED = "application_submitted"
    FREELANCER_ACCEPTED = "freelancer_accepted"
    ESCROW_REFUNDED = "escrow_refunded"
    RATING_SUBMITTED = "rating_submitted"
    JOB_CREATION_PAUSED = "job_creation_paused"
    JOB_CREATION_UNPAUSED = "job_creation_unpaused"
    BALANCE_UPDATED = "balance_updated"
    TRANSACTION_CONFIRMED = "transaction_confirmed"
    TRANSACTION_FAILED = "transaction_failed"


@dataclass(frozen=True)
class Event:
    """Payload delivered to subscribers; unused fields stay None."""

    kind: EventKind
    method: str | None = None
    tx_hash: str | None = None
    escrow_id: int | None = None
    milestone_index: int | None = None
    address: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


EventCallback = Callable[[Event], None]


class EventBus:
    """Synchronous publish/subscribe keyed by EventKind."""

    def __init__(self) -> None:
        self._subscribers: dict[EventKind, list[EventCallback]] = defaultdict(list)

    def subscribe(self, kind: EventKind, callback: EventCallback) -> Callable[[], None]:
        """Register ``callback`` for ``kind`` and return an unsubscribe handle."""

        self._subscribers[kind].append(callback)

        def _unsubscribe() -> None:
            self.unsubscribe(kind, callback)

        return _unsubscribe

    def unsubscribe(self, kind: EventKind, callback: EventCallback) -> None:
        callbacks = self._subscribers.get(kind)
        if callbacks and callback in callbacks:
            callbacks.remove(callback)

    def publish(self, event: Event) -> int:
        """Deliver ``event`` to every subscriber; returns how many were called."""

        delivered = 0
        for callback in list(self._subscribers.get(event.kind, ())):
            try:
                callback(event)
            except Exception:
                logger.exception("Event subscriber failed for %s", event.kind.value)
                continue
            delivered += 1
        logger.debug("Published %s to %s subscriber(s)", event.kind.value, delivered)
        return delivered

    def subscriber_count(self, kind: EventKind) -> int:
        return len(self._subscribers.get(kind, ()))
