"""Discover and attach per-invocation authorization entries."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from stellar_sdk import TransactionEnvelope, xdr
from stellar_sdk.operation import InvokeHostFunction

from .exceptions import SigningError, ValidationError
from .types import SimulationResult

logger = logging.getLogger(__name__)


def _entry(value: str | xdr.SorobanAuthorizationEntry) -> xdr.SorobanAuthorizationEntry:
    if isinstance(value, xdr.SorobanAuthorizationEntry):
        return value
    return xdr.SorobanAuthorizationEntry.from_xdr(value)


def _entry_xdr(value: str | xdr.SorobanAuthorizationEntry) -> str:
    if isinstance(value, xdr.SorobanAuthorizationEntry):
        return value.to_xdr()
    return value


class AuthorizationResolver:
    """Read required authorization from simulations and bind signed entries."""

    def extract_required_auth(self, simulation: SimulationResult) -> list[str]:
        """Return every authorization entry the simulation asks for, de-duplicated.

        Both the top-level ``auth`` field of the raw response and the ``auth`` of
        each per-result entry are inspected; order of first appearance is kept.
        """

        if not simulation.ok:
            return []

        candidates: list[str] = list(simulation.required_auth)
        raw = simulation.raw
        if raw is not None:
            candidates.extend(getattr(raw, "auth", None) or [])
            for result in getattr(raw, "results", None) or []:
                candidates.extend(getattr(result, "auth", None) or [])

        seen: set[str] = set()
        entries: list[str] = []
        for candidate in candidates:
            encoded = _entry_xdr(candidate)
            if encoded in seen:
                continue
            seen.add(encoded)
            entries.append(encoded)

        logger.debug("Simulation requires %s authorization entries", len(entries))
        return entries

    @staticmethod
    def requires_signature(entry: str | xdr.SorobanAuthorizationEntry) -> bool:
        """Address credentials need a signature; source-account credentials ride on the envelope."""

        credentials = _entry(entry).credentials
        return credentials.type == xdr.SorobanCredentialsType.SOROBAN_CREDENTIALS_ADDRESS

    def attach_signed(
        self,
        envelope: TransactionEnvelope,
        unsigned: Sequence[str],
        signed: Sequence[str],
    ) -> TransactionEnvelope:
        """Return a new envelope whose single operation carries ``signed``."""

        if len(unsigned) != len(signed):
            raise SigningError(
                "Signer returned a different number of authorization entries",
                details={"expected": len(unsigned), "received": len(signed)},
            )

        for before, after in zip(unsigned, signed, strict=True):
            if not after:
                raise SigningError("Signer returned an empty authorization entry")
            if after == before and self.requires_signature(before):
                raise SigningError("Signer returned an authorization entry without a signature")

        updated = TransactionEnvelope.from_xdr(envelope.to_xdr(), envelope.network_passphrase)
        operations = updated.transaction.operations
        if len(operations) != 1 or not isinstance(operations[0], InvokeHostFunction):
            raise ValidationError(
                "Envelope must contain exactly one invokeHostFunction operation",
                field="operations",
                value=len(operations),
            )
        operations[0].auth = [_entry(item) for item in signed]
        logger.debug("Attached %s signed authorization entries", len(signed))
        return updated
