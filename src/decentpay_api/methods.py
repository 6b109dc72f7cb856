"""Method catalogue for the DeCentPay escrow contract.

Each entry names the contract function, its positional parameters with their
Soroban types, how to decode its return value, and which event (if any) a
confirmed call should publish. The assembler encodes arguments from this
table; methods missing from it fall through to the generic encoding policy.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from stellar_sdk import Address, scval, xdr

from .events import EventKind
from .types import Application, Badge, EscrowData, Milestone, Rating


class ArgKind(str, Enum):
    ADDRESS = "address"
    OPTION_ADDRESS = "option<address>"
    VEC_ADDRESS = "vec<address>"
    U32 = "u32"
    I128 = "i128"
    STRING = "string"
    BOOL = "bool"
    MILESTONES = "vec<(i128, string)>"


@dataclass(frozen=True)
class ParamSpec:
    name: str
    kind: ArgKind


@dataclass(frozen=True)
class MethodSpec:
    name: str
    params: tuple[ParamSpec, ...]
    decode: Callable[[Any], Any]
    mutates: bool = True
    event: EventKind | None = None

    @property
    def arity(self) -> int:
        return len(self.params)

    @property
    def param_names(self) -> tuple[str, ...]:
        return tuple(param.name for param in self.params)


# ----------------------------------------------------------------------
# Result decoders (input is the normalised native value)
# ----------------------------------------------------------------------
def _void(value: Any) -> None:
    return None


def _u32(value: Any) -> int:
    return int(value)


def _bool(value: Any) -> bool:
    return bool(value)


def _address(value: Any) -> str:
    return str(value)


def _u32_list(value: Any) -> list[int]:
    return [int(item) for item in value or []]


def _optional(factory: Callable[[Any], Any]) -> Callable[[Any], Any]:
    def _decode(value: Any) -> Any:
        if value is None:
            return None
        return factory(value)

    return _decode


def _list_of(factory: Callable[[Any], Any]) -> Callable[[Any], Any]:
    def _decode(value: Any) -> list[Any]:
        return [factory(item) for item in value or []]

    return _decode


def _rating_pair(value: Any) -> tuple[int, int]:
    total, count = value
    return int(total), int(count)


def _badge(value: Any) -> Badge:
    if isinstance(value, list | tuple) and value:
        value = value[0]
    return Badge(str(value))


def _p(name: str, kind: ArgKind) -> ParamSpec:
    return ParamSpec(name, kind)


ESCROW_ID = _p("escrow_id", ArgKind.U32)
MILESTONE_INDEX = _p("milestone_index", ArgKind.U32)

_SPECS: tuple[MethodSpec, ...] = (
    # Administration
    MethodSpec(
        "initialize",
        (
            _p("owner", ArgKind.ADDRESS),
            _p("fee_collector", ArgKind.ADDRESS),
            _p("platform_fee_bp", ArgKind.U32),
        ),
        _void,
    ),
    MethodSpec("set_platform_fee_bp", (_p("fee_bp", ArgKind.U32),), _void),
    MethodSpec("set_fee_collector", (_p("fee_collector", ArgKind.ADDRESS),), _void),
    MethodSpec("set_owner", (_p("new_owner", ArgKind.ADDRESS),), _void),
    MethodSpec("whitelist_token", (_p("token", ArgKind.ADDRESS),), _void),
    MethodSpec("authorize_arbiter", (_p("arbiter", ArgKind.ADDRESS),), _void),
    MethodSpec("pause_job_creation", (), _void, event=EventKind.JOB_CREATION_PAUSED),
    MethodSpec("unpause_job_creation", (), _void, event=EventKind.JOB_CREATION_UNPAUSED),
    # Escrow lifecycle
    MethodSpec(
        "create_escrow",
        (
            _p("depositor", ArgKind.ADDRESS),
            _p("beneficiary", ArgKind.OPTION_ADDRESS),
            _p("arbiters", ArgKind.VEC_ADDRESS),
            _p("required_confirmations", ArgKind.U32),
            _p("milestones", ArgKind.MILESTONES),
            _p("token", ArgKind.OPTION_ADDRESS),
            _p("total_amount", ArgKind.I128),
            _p("duration", ArgKind.U32),
            _p("project_title", ArgKind.STRING),
            _p("project_description", ArgKind.STRING),
        ),
        _u32,
        event=EventKind.ESCROW_CREATED,
    ),
    MethodSpec(
        "start_work",
        (ESCROW_ID, _p("beneficiary", ArgKind.ADDRESS)),
        _void,
        event=EventKind.WORK_STARTED,
    ),
    MethodSpec(
        "submit_milestone",
        (
            ESCROW_ID,
            MILESTONE_INDEX,
            _p("description", ArgKind.STRING),
            _p("beneficiary", ArgKind.ADDRESS),
        ),
        _void,
        event=EventKind.MILESTONE_SUBMITTED,
    ),
    MethodSpec(
        "resubmit_milestone",
        (
            ESCROW_ID,
            MILESTONE_INDEX,
            _p("description", ArgKind.STRING),
            _p("beneficiary", ArgKind.ADDRESS),
        ),
        _void,
        event=EventKind.MILESTONE_SUBMITTED,
    ),
    MethodSpec(
        "approve_milestone",
        (ESCROW_ID, MILESTONE_INDEX, _p("depositor", ArgKind.ADDRESS)),
        _void,
        event=EventKind.MILESTONE_APPROVED,
    ),
    MethodSpec(
        "reject_milestone",
        (
            ESCROW_ID,
            MILESTONE_INDEX,
            _p("reason", ArgKind.STRING),
            _p("depositor", ArgKind.ADDRESS),
        ),
        _void,
        event=EventKind.MILESTONE_REJECTED,
    ),
    MethodSpec(
        "dispute_milestone",
        (
            ESCROW_ID,
            MILESTONE_INDEX,
            _p("reason", ArgKind.STRING),
            _p("disputer", ArgKind.ADDRESS),
        ),
        _void,
        event=EventKind.MILESTONE_DISPUTED,
    ),
    MethodSpec(
        "apply_to_job",
        (
            ESCROW_ID,
            _p("cover_letter", ArgKind.STRING),
            _p("proposed_timeline", ArgKind.U32),
            _p("freelancer", ArgKind.ADDRESS),
        ),
        _void,
        event=EventKind.APPLICATION_SUBMITTED,
    ),
    MethodSpec(
        "accept_freelancer",
        (ESCROW_ID, _p("freelancer", ArgKind.ADDRESS), _p("depositor", ArgKind.ADDRESS)),
        _void,
        event=EventKind.FREELANCER_ACCEPTED,
    ),
    MethodSpec(
        "refund_escrow",
        (ESCROW_ID, _p("depositor", ArgKind.ADDRESS)),
        _void,
        event=EventKind.ESCROW_REFUNDED,
    ),
    MethodSpec(
        "emergency_refund_after_deadline",
        (ESCROW_ID, _p("depositor", ArgKind.ADDRESS)),
        _void,
        event=EventKind.ESCROW_REFUNDED,
    ),
    MethodSpec(
        "extend_deadline",
        (ESCROW_ID, _p("extra_seconds", ArgKind.U32), _p("depositor", ArgKind.ADDRESS)),
        _void,
        event=EventKind.ESCROW_UPDATED,
    ),
    MethodSpec(
        "submit_rating",
        (
            ESCROW_ID,
            _p("rating", ArgKind.U32),
            _p("review", ArgKind.STRING),
            _p("client", ArgKind.ADDRESS),
        ),
        _void,
        event=EventKind.RATING_SUBMITTED,
    ),
    # Reads
    MethodSpec("get_escrow", (ESCROW_ID,), _optional(EscrowData.from_native), mutates=False),
    MethodSpec("get_user_escrows", (_p("user", ArgKind.ADDRESS),), _u32_list, mutates=False),
    MethodSpec("get_reputation", (_p("user", ArgKind.ADDRESS),), _u32, mutates=False),
    MethodSpec("get_completed_escrows", (_p("user", ArgKind.ADDRESS),), _u32, mutates=False),
    MethodSpec("is_job_creation_paused", (), _bool, mutates=False),
    MethodSpec("get_owner", (), _address, mutates=False),
    MethodSpec(
        "has_applied",
        (ESCROW_ID, _p("freelancer", ArgKind.ADDRESS)),
        _bool,
        mutates=False,
    ),
    MethodSpec(
        "get_application",
        (ESCROW_ID, _p("freelancer", ArgKind.ADDRESS)),
        _optional(Application.from_native),
        mutates=False,
    ),
    MethodSpec(
        "get_applications", (ESCROW_ID,), _list_of(Application.from_native), mutates=False
    ),
    MethodSpec(
        "get_milestone",
        (ESCROW_ID, MILESTONE_INDEX),
        _optional(Milestone.from_native),
        mutates=False,
    ),
    MethodSpec("get_milestones", (ESCROW_ID,), _list_of(Milestone.from_native), mutates=False),
    MethodSpec("get_rating", (ESCROW_ID,), _optional(Rating.from_native), mutates=False),
    MethodSpec(
        "get_average_rating", (_p("freelancer", ArgKind.ADDRESS),), _rating_pair, mutates=False
    ),
    MethodSpec("get_badge", (_p("freelancer", ArgKind.ADDRESS),), _badge, mutates=False),
    MethodSpec(
        "is_authorized_arbiter", (_p("arbiter", ArgKind.ADDRESS),), _bool, mutates=False
    ),
)

METHODS: dict[str, MethodSpec] = {spec.name: spec for spec in _SPECS}


def get_method(name: str) -> MethodSpec | None:
    """Return the table entry for ``name`` or None when it is not catalogued."""
    return METHODS.get(name)


def mutating_methods() -> list[str]:
    return [spec.name for spec in _SPECS if spec.mutates]


def read_methods() -> list[str]:
    return [spec.name for spec in _SPECS if not spec.mutates]


def normalise_native(value: Any) -> Any:
    """Convert ``scval.to_native`` output into plain Python values.

    Byte strings and ``Address`` objects are turned into ``str``
    recursively; text the SDK already decoded passes through unchanged.
    """

    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Address):
        return value.address
    if isinstance(value, dict):
        return {normalise_native(key): normalise_native(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [normalise_native(item) for item in value]
    return value


def decode_return_value(method: str, return_value_xdr: str | None) -> Any:
    """Decode a simulated return value using the table entry for ``method``."""

    if not return_value_xdr:
        return None

    native = normalise_native(scval.to_native(xdr.SCVal.from_xdr(return_value_xdr)))
    spec = get_method(method)
    if spec is None:
        return native
    return spec.decode(native)
