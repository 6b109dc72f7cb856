"""Exception hierarchy for the DeCentPay escrow orchestration layer."""

from typing import Any


class EscrowProtocolError(Exception):
    """Base exception for all escrow orchestration errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(EscrowProtocolError):
    """Raised when input validation fails before any network call."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.field = field
        self.value = value


class NetworkError(EscrowProtocolError):
    """Raised when network/connection issues occur."""

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.endpoint = endpoint
        self.status_code = status_code


class SimulationError(EscrowProtocolError):
    """Raised when a dry run reports that the call would fail."""

    def __init__(self, message: str, method: str | None = None, details: dict | None = None):
        super().__init__(message, details)
        self.method = method


class SigningError(EscrowProtocolError):
    """Raised when the external signer fails without an explicit rejection."""

    def __init__(self, message: str, address: str | None = None, details: dict | None = None):
        super().__init__(message, details)
        self.address = address


class SigningRejectedError(SigningError):
    """Raised when the human operator rejects a signing request."""


class SubmissionTimeoutError(EscrowProtocolError):
    """Raised when confirmation polling exhausts its ceiling while still pending."""

    def __init__(
        self,
        message: str,
        tx_hash: str | None = None,
        attempts: int = 0,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.tx_hash = tx_hash
        self.attempts = attempts


class ContractExecutionError(EscrowProtocolError):
    """Raised when the network accepted the envelope but execution failed."""

    def __init__(
        self,
        message: str,
        tx_hash: str | None = None,
        reason: str | None = None,
        code: int | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.tx_hash = tx_hash
        self.reason = reason
        self.code = code


class MethodNotSupportedError(EscrowProtocolError):
    """Raised when a legacy method name has no mapping at all."""

    def __init__(self, method_name: str):
        super().__init__(f"Method '{method_name}' is not supported by the escrow contract")
        self.method_name = method_name
