"""Utility functions for the DeCentPay escrow API."""

from decimal import ROUND_DOWN, Decimal, InvalidOperation

from stellar_sdk import StrKey

from .constants import I128_MAX, STROOPS_PER_XLM, U32_MAX
from .exceptions import ValidationError


def to_stroops(value: float | Decimal | int | str, *, field: str = "amount") -> int:
    """Convert an XLM-denominated amount to integer stroops (7 decimals, truncated)."""
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError("Amount must be numeric", field=field, value=value) from exc

    if not amount.is_finite():
        raise ValidationError("Amount must be finite", field=field, value=value)
    if amount < 0:
        raise ValidationError("Amount cannot be negative", field=field, value=value)

    stroops = int((amount * STROOPS_PER_XLM).quantize(Decimal(1), rounding=ROUND_DOWN))
    if stroops > I128_MAX:
        raise ValidationError("Amount exceeds i128 maximum", field=field, value=value)
    return stroops


def from_stroops(stroops: int) -> Decimal:
    """Convert integer stroops back to an XLM Decimal."""
    return Decimal(stroops) / Decimal(STROOPS_PER_XLM)


def require_u32(value: object, *, field: str) -> int:
    """Return ``value`` as an int in the u32 range, raising ValidationError otherwise."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", field=field, value=value)
    try:
        number = int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be an integer", field=field, value=value) from exc
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(f"{field} must be a whole number", field=field, value=value)
    if number < 0 or number > U32_MAX:
        raise ValidationError(f"{field} must fit in u32", field=field, value=value)
    return number


def is_account_address(value: object) -> bool:
    """Return True for a valid G... account strkey."""
    return isinstance(value, str) and StrKey.is_valid_ed25519_public_key(value)


def is_contract_address(value: object) -> bool:
    """Return True for a valid C... contract strkey."""
    return isinstance(value, str) and StrKey.is_valid_contract(value)


def is_address(value: object) -> bool:
    return is_account_address(value) or is_contract_address(value)


def require_address(value: object, *, field: str) -> str:
    """Return ``value`` if it is an account or contract address."""
    if not is_address(value):
        raise ValidationError(f"{field} must be a Stellar address", field=field, value=value)
    return value  # type: ignore[return-value]


def shorten_address(address: str | None) -> str:
    """Abbreviate an address for log lines."""
    if not address:
        return "<none>"
    if len(address) <= 12:
        return address
    return f"{address[:5]}...{address[-4:]}"
