"""Build and finalise single-operation contract invocation envelopes."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from stellar_sdk import Account, Address, TransactionBuilder, TransactionEnvelope, scval, xdr
from stellar_sdk.operation import InvokeHostFunction

from .config import ClientConfig
from .constants import I128_MAX, I128_MIN
from .exceptions import SimulationError, ValidationError
from .methods import ArgKind, MethodSpec, get_method
from .types import MilestoneInput, SimulationResult
from .utils import is_address, require_address, require_u32

logger = logging.getLogger(__name__)


def _require_i128(value: Any, *, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer", field=field, value=value)
    if value < I128_MIN or value > I128_MAX:
        raise ValidationError(f"{field} must fit in i128", field=field, value=value)
    return value


def _require_str(value: Any, *, field: str) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field, value=value)
    return value


def encode_argument(kind: ArgKind, value: Any, *, field: str) -> xdr.SCVal:
    """Encode ``value`` as the Soroban type described by ``kind``."""

    if kind is ArgKind.ADDRESS:
        return scval.to_address(require_address(value, field=field))
    if kind is ArgKind.OPTION_ADDRESS:
        if value is None or value == "":
            return scval.to_void()
        return scval.to_address(require_address(value, field=field))
    if kind is ArgKind.VEC_ADDRESS:
        if isinstance(value, str) or not isinstance(value, Sequence):
            raise ValidationError(f"{field} must be a list of addresses", field=field, value=value)
        return scval.to_vec(
            [scval.to_address(require_address(item, field=field)) for item in value]
        )
    if kind is ArgKind.U32:
        return scval.to_uint32(require_u32(value, field=field))
    if kind is ArgKind.I128:
        return scval.to_int128(_require_i128(value, field=field))
    if kind is ArgKind.STRING:
        return scval.to_string(_require_str(value, field=field))
    if kind is ArgKind.BOOL:
        if not isinstance(value, bool):
            raise ValidationError(f"{field} must be a boolean", field=field, value=value)
        return scval.to_bool(value)
    if kind is ArgKind.MILESTONES:
        return _encode_milestones(value, field=field)
    raise ValidationError(f"Unsupported argument kind {kind}", field=field, value=value)


def _encode_milestones(value: Any, *, field: str) -> xdr.SCVal:
    if isinstance(value, str) or not isinstance(value, Sequence):
        raise ValidationError(f"{field} must be a list of milestones", field=field, value=value)

    encoded: list[xdr.SCVal] = []
    for item in value:
        if isinstance(item, MilestoneInput):
            amount, description = item.as_tuple()
        else:
            try:
                amount, description = item
            except (TypeError, ValueError) as exc:
                raise ValidationError(
                    "Each milestone must be an (amount, description) pair",
                    field=field,
                    value=item,
                ) from exc
        encoded.append(
            scval.to_vec(
                [
                    scval.to_int128(_require_i128(amount, field=f"{field}.amount")),
                    scval.to_string(_require_str(description, field=f"{field}.description")),
                ]
            )
        )
    return scval.to_vec(encoded)


def encode_generic(value: Any) -> xdr.SCVal:
    """Encode an argument for a method outside the table.

    Strings are tried as an address first and fall back to a string scalar;
    ints become i128, bools bool, lists vectors and None void.
    """

    if isinstance(value, xdr.SCVal):
        return value
    if isinstance(value, bool):
        return scval.to_bool(value)
    if isinstance(value, str):
        if is_address(value):
            return scval.to_address(value)
        return scval.to_string(value)
    if isinstance(value, int):
        return scval.to_int128(_require_i128(value, field="argument"))
    if isinstance(value, list | tuple):
        return scval.to_vec([encode_generic(item) for item in value])
    if value is None:
        return scval.to_void()
    raise ValidationError(
        f"Cannot encode argument of type {type(value).__name__}", field="argument", value=value
    )


class TransactionAssembler:
    """Turn a method name plus arguments into a contract call envelope."""

    def __init__(self, config: ClientConfig):
        self.config = config

    @property
    def network_passphrase(self) -> str:
        return self.config.network.network_passphrase

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------
    def encode_arguments(self, method: str, args: Sequence[Any]) -> list[xdr.SCVal]:
        """Encode ``args`` for ``method``; raises ValidationError before any network use."""

        spec = get_method(method)
        if spec is None:
            logger.debug("Method %s not in table; using generic encoding", method)
            return [encode_generic(value) for value in args]
        return self._encode_with_spec(spec, args)

    def _encode_with_spec(self, spec: MethodSpec, args: Sequence[Any]) -> list[xdr.SCVal]:
        if len(args) != spec.arity:
            raise ValidationError(
                f"{spec.name} expects {spec.arity} argument(s), got {len(args)}",
                field="args",
                value=list(args),
                details={"parameters": list(spec.param_names)},
            )
        return [
            encode_argument(param.kind, value, field=param.name)
            for param, value in zip(spec.params, args, strict=True)
        ]

    # ------------------------------------------------------------------
    # Envelopes
    # ------------------------------------------------------------------
    def build(
        self,
        method: str,
        args: Sequence[Any],
        account: Account,
        *,
        fee: int | None = None,
        timeout: int | None = None,
    ) -> TransactionEnvelope:
        """Return an unsigned envelope with one invokeHostFunction operation.

        ``TransactionBuilder.build`` increments the account's sequence number.
        """

        parameters = self.encode_arguments(method, args)
        envelope = (
            TransactionBuilder(
                account,
                self.network_passphrase,
                base_fee=fee if fee is not None else self.config.base_fee,
            )
            .set_timeout(timeout if timeout is not None else self.config.tx_timeout)
            .append_invoke_contract_function_op(
                contract_id=self.config.contract_id,
                function_name=method,
                parameters=parameters,
            )
            .build()
        )
        logger.debug(
            "Built %s envelope source=%s sequence=%s",
            method,
            envelope.transaction.source.account_id,
            envelope.transaction.sequence,
        )
        return envelope

    def prepare(
        self, envelope: TransactionEnvelope, simulation: SimulationResult
    ) -> TransactionEnvelope:
        """Return a new envelope carrying the simulated resource fee and footprint."""

        if not simulation.ok:
            raise SimulationError(
                simulation.error or "Cannot prepare a failed simulation",
                method=self.invoked_function(envelope),
            )

        prepared = self.copy(envelope)
        transaction = prepared.transaction
        transaction.fee = transaction.fee + int(simulation.resource_fee)
        if simulation.transaction_data:
            transaction.soroban_data = xdr.SorobanTransactionData.from_xdr(
                simulation.transaction_data
            )

        operation = self._operation(prepared)
        if not operation.auth and simulation.required_auth:
            operation.auth = [
                xdr.SorobanAuthorizationEntry.from_xdr(entry) for entry in simulation.required_auth
            ]
        logger.debug(
            "Prepared envelope fee=%s resource_fee=%s", transaction.fee, simulation.resource_fee
        )
        return prepared

    def copy(self, envelope: TransactionEnvelope) -> TransactionEnvelope:
        return TransactionEnvelope.from_xdr(envelope.to_xdr(), self.network_passphrase)

    def invoked_function(self, envelope: TransactionEnvelope) -> str:
        """Return the contract function named by the envelope's single operation."""

        invoke = self._operation(envelope).host_function.invoke_contract
        if invoke is None:
            raise ValidationError("Envelope does not invoke a contract function")
        return invoke.function_name.sc_symbol.decode("utf-8")

    def invoked_contract(self, envelope: TransactionEnvelope) -> str:
        invoke = self._operation(envelope).host_function.invoke_contract
        if invoke is None:
            raise ValidationError("Envelope does not invoke a contract function")
        return Address.from_xdr_sc_address(invoke.contract_address).address

    @staticmethod
    def _operation(envelope: TransactionEnvelope) -> InvokeHostFunction:
        operations = envelope.transaction.operations
        if len(operations) != 1 or not isinstance(operations[0], InvokeHostFunction):
            raise ValidationError(
                "Envelope must contain exactly one invokeHostFunction operation",
                field="operations",
                value=len(operations),
            )
        return operations[0]
