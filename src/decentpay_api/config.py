"""Configuration containers for the DeCentPay escrow client."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace

from .constants import DEFAULT_CONTRACT_ID, NetworkName
from .exceptions import ValidationError

DEFAULT_BASE_FEE = 100
DEFAULT_TX_TIMEOUT = 30
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_MAX_POLLS = 30


@dataclass(frozen=True)
class NetworkProfile:
    """One RPC endpoint plus the network identifier it serves."""

    name: str
    rpc_url: str
    network_passphrase: str
    horizon_url: str | None = None
    default_fee: int = DEFAULT_BASE_FEE
    default_timeout: int = DEFAULT_TX_TIMEOUT

    @property
    def is_mainnet(self) -> bool:
        return self.network_passphrase.startswith("Public")


NETWORK_PROFILES: dict[str, NetworkProfile] = {
    NetworkName.TESTNET.value: NetworkProfile(
        name=NetworkName.TESTNET.value,
        rpc_url="https://soroban-testnet.stellar.org:443",
        network_passphrase="Test SDF Network ; September 2015",
        horizon_url="https://horizon-testnet.stellar.org",
    ),
    NetworkName.MAINNET.value: NetworkProfile(
        name=NetworkName.MAINNET.value,
        rpc_url="https://soroban-mainnet.stellar.org:443",
        network_passphrase="Public Global Stellar Network ; September 2015",
        horizon_url="https://horizon.stellar.org",
    ),
    NetworkName.LOCAL.value: NetworkProfile(
        name=NetworkName.LOCAL.value,
        rpc_url="http://localhost:8000/soroban/rpc",
        network_passphrase="Standalone Network ; February 2017",
        horizon_url="http://localhost:8000",
    ),
}


def get_network_profile(name: str) -> NetworkProfile:
    """Return a named network profile, raising ValidationError for unknown names."""

    try:
        return NETWORK_PROFILES[name.lower()]
    except KeyError as exc:
        raise ValidationError(
            f"Unknown network '{name}'",
            field="network",
            value=name,
            details={"known": sorted(NETWORK_PROFILES)},
        ) from exc


@dataclass(frozen=True)
class PollingConfig:
    """Confirmation polling bounds: constant interval, fixed ceiling."""

    interval: float = DEFAULT_POLL_INTERVAL
    max_attempts: int = DEFAULT_MAX_POLLS


@dataclass(frozen=True)
class ClientConfig:
    """Aggregated configuration used to construct an escrow session."""

    network: NetworkProfile = field(default_factory=lambda: NETWORK_PROFILES["testnet"])
    contract_id: str = DEFAULT_CONTRACT_ID
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    polling: PollingConfig = PollingConfig()

    @property
    def base_fee(self) -> int:
        return self.network.default_fee

    @property
    def tx_timeout(self) -> int:
        return self.network.default_timeout

    def with_overrides(
        self,
        *,
        rpc_url: str | None = None,
        horizon_url: str | None = None,
    ) -> ClientConfig:
        """Return a copy whose network profile points at different endpoints."""

        network = self.network
        if rpc_url:
            network = replace(network, rpc_url=rpc_url.rstrip("/"))
        if horizon_url:
            network = replace(network, horizon_url=horizon_url.rstrip("/"))
        return replace(self, network=network)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> ClientConfig:
        """Build a configuration from DECENTPAY_* environment variables."""

        env = os.environ if environ is None else environ
        network = get_network_profile(env.get("DECENTPAY_NETWORK", NetworkName.TESTNET.value))

        raw_timeout = env.get("DECENTPAY_REQUEST_TIMEOUT")
        try:
            request_timeout = float(raw_timeout) if raw_timeout else DEFAULT_REQUEST_TIMEOUT
        except ValueError as exc:
            raise ValidationError(
                "Request timeout must be numeric",
                field="DECENTPAY_REQUEST_TIMEOUT",
                value=raw_timeout,
            ) from exc

        config = cls(
            network=network,
            contract_id=env.get("DECENTPAY_CONTRACT_ID") or DEFAULT_CONTRACT_ID,
            request_timeout=request_timeout,
        )
        return config.with_overrides(
            rpc_url=env.get("DECENTPAY_RPC_URL"),
            horizon_url=env.get("DECENTPAY_HORIZON_URL"),
        )
