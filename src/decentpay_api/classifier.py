"""Map raw failures onto a small set of user-facing error kinds."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from stellar_sdk import scval, xdr

from .constants import describe_contract_error
from .exceptions import (
    ContractExecutionError,
    EscrowProtocolError,
    NetworkError,
    SigningError,
    SigningRejectedError,
    SimulationError,
    SubmissionTimeoutError,
    ValidationError,
)
from .methods import normalise_native

logger = logging.getLogger(__name__)

CONTRACT_ERROR_PATTERN = re.compile(r"Error\(Contract, #(\d+)\)")
REJECTION_PHRASES = ("rejected", "denied", "declined", "cancelled", "canceled")
REJECTION_CODES = frozenset({-4, 4001})
UNKNOWN_ERROR = "Unknown error"

_DEFAULT_REPR = re.compile(r"^<.* object at 0x[0-9a-fA-F]+>$")


class ErrorKind(str, Enum):
    USER_REJECTED = "USER_REJECTED"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    SIMULATION_FAILED = "SIMULATION_FAILED"
    NETWORK_UNAVAILABLE = "NETWORK_UNAVAILABLE"
    SUBMISSION_TIMED_OUT = "SUBMISSION_TIMED_OUT"
    CONTRACT_EXECUTION_FAILED = "CONTRACT_EXECUTION_FAILED"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class ClassifiedError:
    kind: ErrorKind
    title: str
    description: str
    raw: Any = None


# ----------------------------------------------------------------------
# Message extraction
# ----------------------------------------------------------------------
def _non_empty(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _has_custom_str(payload: Any) -> bool:
    return type(payload).__str__ is not object.__str__


def _event_error_text(event: Any) -> str | None:
    if isinstance(event, Mapping):
        topics = event.get("topics") or []
        data = event.get("data")
    else:
        parsed = (
            event if isinstance(event, xdr.DiagnosticEvent) else xdr.DiagnosticEvent.from_xdr(event)
        )
        body = parsed.event.body.v0
        topics = [normalise_native(scval.to_native(topic)) for topic in body.topics]
        data = normalise_native(scval.to_native(body.data))

    if "error" not in [str(topic).lower() for topic in topics]:
        return None
    if isinstance(data, list):
        strings = [item for item in data if isinstance(item, str) and item]
        return strings[0] if strings else None
    return _non_empty(data)


def scan_diagnostic_events(events: Iterable[Any] | None) -> str | None:
    """Return the first error message carried by a diagnostic event."""

    for event in events or []:
        try:
            text = _event_error_text(event)
        except Exception as exc:  # pragma: no cover - defensive
            logger.debug("Skipping undecodable diagnostic event: %s", exc)
            continue
        if text:
            return text
    return None


def extract_error_message(payload: Any, diagnostic_events: Iterable[Any] | None = None) -> str:
    """Normalise an error payload of unknown shape into one message.

    Tried in order: direct string, callable ``value()`` accessor, ``value``
    property, ``message``, an object with its own ``__str__``, diagnostic
    events, and finally raw serialisation. The first non-empty answer wins.
    """

    direct = _non_empty(payload)
    if direct:
        return direct

    accessor = getattr(payload, "value", None)
    if callable(accessor):
        try:
            text = _non_empty(accessor())
        except Exception as exc:  # pragma: no cover - defensive
            logger.debug("Error payload value() accessor failed: %s", exc)
            text = None
        if text:
            return text
    else:
        text = _non_empty(accessor)
        if text:
            return text

    if isinstance(payload, Mapping):
        message = payload.get("message")
    else:
        message = getattr(payload, "message", None)
    text = _non_empty(message)
    if text:
        return text

    if payload is not None and _has_custom_str(payload):
        text = _non_empty(str(payload))
        if text and not _DEFAULT_REPR.match(text):
            return text

    text = scan_diagnostic_events(diagnostic_events)
    if text:
        return text

    if payload is None:
        return UNKNOWN_ERROR
    try:
        return json.dumps(payload, default=str)
    except (TypeError, ValueError):
        return repr(payload)


def contract_error_code(*texts: str | None) -> int | None:
    """Return the first ``Error(Contract, #N)`` code found in ``texts``."""

    for text in texts:
        if not text:
            continue
        match = CONTRACT_ERROR_PATTERN.search(text)
        if match:
            return int(match.group(1))
    return None


def describe_failure(
    payload: Any, diagnostic_events: Iterable[Any] | None = None
) -> tuple[str, int | None]:
    """Return a reason string and contract error code (if any) for a failed transaction."""

    events = list(diagnostic_events or [])
    reason = extract_error_message(payload, events)
    code = contract_error_code(reason, scan_diagnostic_events(events))
    return reason, code


def looks_like_rejection(message: str | None, code: Any = None) -> bool:
    """Return True when a signer error reads as a deliberate user rejection."""

    if code is not None:
        try:
            if int(code) in REJECTION_CODES:
                return True
        except (TypeError, ValueError):
            pass
    lowered = (message or "").lower()
    return any(phrase in lowered for phrase in REJECTION_PHRASES)


# ----------------------------------------------------------------------
# Classification
# ----------------------------------------------------------------------
def _contract_description(code: int | None, fallback: str) -> str:
    if code is not None:
        described = describe_contract_error(code)
        if described:
            return described
        return f"Contract error #{code}"
    return fallback


def classify(exc: BaseException) -> ClassifiedError:
    """Classify ``exc`` into an ErrorKind with a short title and description."""

    if isinstance(exc, SigningRejectedError):
        return ClassifiedError(
            ErrorKind.USER_REJECTED,
            "Request rejected",
            "The signing request was rejected in your wallet.",
            exc,
        )

    if isinstance(exc, ValidationError):
        return ClassifiedError(ErrorKind.VALIDATION_FAILED, "Invalid input", exc.message, exc)

    if isinstance(exc, SimulationError):
        code = contract_error_code(exc.message)
        return ClassifiedError(
            ErrorKind.SIMULATION_FAILED,
            "Transaction would fail",
            _contract_description(code, exc.message),
            exc,
        )

    if isinstance(exc, SubmissionTimeoutError):
        subject = f"Transaction {exc.tx_hash}" if exc.tx_hash else "The transaction"
        return ClassifiedError(
            ErrorKind.SUBMISSION_TIMED_OUT,
            "Confirmation timed out",
            f"{subject} was not confirmed after {exc.attempts} checks; "
            "it may still succeed or may have failed.",
            exc,
        )

    if isinstance(exc, ContractExecutionError):
        code = exc.code if exc.code is not None else contract_error_code(exc.reason, exc.message)
        return ClassifiedError(
            ErrorKind.CONTRACT_EXECUTION_FAILED,
            "Transaction failed",
            _contract_description(code, exc.reason or exc.message),
            exc,
        )

    if isinstance(exc, NetworkError):
        return ClassifiedError(
            ErrorKind.NETWORK_UNAVAILABLE,
            "Network unavailable",
            exc.message,
            exc,
        )

    message = exc.message if isinstance(exc, EscrowProtocolError) else extract_error_message(exc)
    if isinstance(exc, SigningError):
        # Only signer-origin failures may read as a wallet rejection.
        if looks_like_rejection(message, getattr(exc, "code", None)):
            return ClassifiedError(
                ErrorKind.USER_REJECTED,
                "Request rejected",
                "The signing request was rejected in your wallet.",
                exc,
            )
        return ClassifiedError(ErrorKind.UNKNOWN, "Signing failed", message, exc)

    return ClassifiedError(ErrorKind.UNKNOWN, "Something went wrong", message, exc)
