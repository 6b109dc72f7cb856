"""Bridge to the external signing agent that holds the user's keys."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from stellar_sdk import Keypair, TransactionEnvelope
from stellar_sdk.auth import authorize_entry

from .classifier import extract_error_message, looks_like_rejection
from .config import NetworkProfile
from .exceptions import SigningError, SigningRejectedError
from .utils import shorten_address

logger = logging.getLogger(__name__)

# Ledgers an address-credential signature stays valid after the simulated ledger
AUTH_VALIDITY_LEDGERS = 100

_SIGNED_KEYS = ("signedTxXdr", "signedAuthEntry", "signed_xdr", "xdr")


@runtime_checkable
class Signer(Protocol):
    """External agent that signs base64 XDR payloads on behalf of ``address``."""

    async def sign_transaction(
        self, envelope_xdr: str, *, address: str, network_passphrase: str
    ) -> Any: ...

    async def sign_auth_entry(
        self,
        entry_xdr: str,
        *,
        address: str,
        network_passphrase: str,
        valid_until_ledger: int,
    ) -> Any: ...


class KeypairSigner:
    """Local signing agent backed by a secret key, for development and scripts."""

    def __init__(self, keypair: Keypair):
        if not keypair.can_sign():
            raise SigningError("Keypair has no secret key", address=keypair.public_key)
        self._keypair = keypair

    @classmethod
    def from_secret(cls, secret: str) -> KeypairSigner:
        return cls(Keypair.from_secret(secret))

    @property
    def address(self) -> str:
        return self._keypair.public_key

    def _check_address(self, address: str) -> None:
        if address != self._keypair.public_key:
            raise SigningError(
                "Signer does not hold the key for this address",
                address=address,
            )

    async def sign_transaction(
        self, envelope_xdr: str, *, address: str, network_passphrase: str
    ) -> str:
        self._check_address(address)
        envelope = TransactionEnvelope.from_xdr(envelope_xdr, network_passphrase)
        envelope.sign(self._keypair)
        return envelope.to_xdr()

    async def sign_auth_entry(
        self,
        entry_xdr: str,
        *,
        address: str,
        network_passphrase: str,
        valid_until_ledger: int,
    ) -> str:
        self._check_address(address)
        signed = authorize_entry(entry_xdr, self._keypair, valid_until_ledger, network_passphrase)
        return signed.to_xdr()


class SignerBridge:
    """Dispatch signing requests and normalise the agent's answers."""

    def __init__(self, signer: Signer):
        self._signer = signer

    async def sign_auth_entries(
        self,
        entries: Sequence[str],
        signer_address: str,
        network: NetworkProfile,
        *,
        valid_until_ledger: int,
    ) -> list[str]:
        """Sign every entry concurrently; all must succeed before returning."""

        if not entries:
            return []

        logger.info(
            "Requesting %s authorization signature(s) from %s",
            len(entries),
            shorten_address(signer_address),
        )
        tasks = [
            self._call(
                "authorization entry",
                signer_address,
                self._signer.sign_auth_entry(
                    entry,
                    address=signer_address,
                    network_passphrase=network.network_passphrase,
                    valid_until_ledger=valid_until_ledger,
                ),
            )
            for entry in entries
        ]
        return list(await asyncio.gather(*tasks))

    async def sign_transaction(
        self, envelope_xdr: str, signer_address: str, network: NetworkProfile
    ) -> str:
        logger.info(
            "Requesting envelope signature from %s (%s bytes)",
            shorten_address(signer_address),
            len(envelope_xdr),
        )
        return await self._call(
            "transaction",
            signer_address,
            self._signer.sign_transaction(
                envelope_xdr,
                address=signer_address,
                network_passphrase=network.network_passphrase,
            ),
        )

    async def _call(self, what: str, address: str, request: Any) -> str:
        try:
            response = await request
        except SigningError:
            raise
        except Exception as exc:
            message = extract_error_message(exc)
            if looks_like_rejection(message, getattr(exc, "code", None)):
                logger.info("Signing of %s rejected by %s", what, shorten_address(address))
                raise SigningRejectedError(message, address=address) from exc
            raise SigningError(
                f"Signer failed to sign {what}",
                address=address,
                details={"error": message},
            ) from exc

        signed = self._unwrap(what, address, response)
        logger.debug("Signer returned %s (%s bytes)", what, len(signed))
        return signed

    @staticmethod
    def _unwrap(what: str, address: str, response: Any) -> str:
        if isinstance(response, Mapping):
            error = response.get("error")
            if error:
                message = extract_error_message(error)
                code = error.get("code") if isinstance(error, Mapping) else None
                if looks_like_rejection(message, code):
                    raise SigningRejectedError(message, address=address)
                raise SigningError(
                    f"Signer failed to sign {what}",
                    address=address,
                    details={"error": message},
                )
            response = next((response[key] for key in _SIGNED_KEYS if response.get(key)), None)

        if not isinstance(response, str) or not response.strip():
            raise SigningError(f"Signer returned an empty {what}", address=address)
        return response.strip()
