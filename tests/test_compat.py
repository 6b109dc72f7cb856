"""Tests for the legacy call/send shim."""

from __future__ import annotations

import asyncio

import pytest
from stellar_sdk import Keypair

from decentpay_api.compat import DEFAULT_NEXT_ESCROW_ID, LegacyContractShim
from decentpay_api.exceptions import EscrowProtocolError, MethodNotSupportedError, ValidationError
from stubs import OWNER, RecordingSigner, StubConnector, invoked_method, make_orchestrator


def _shim(connector: StubConnector, **signer_flags) -> tuple[LegacyContractShim, RecordingSigner]:
    signer = RecordingSigner(Keypair.random(), **signer_flags)
    orchestrator = make_orchestrator(connector, signer)
    return LegacyContractShim(orchestrator, signer.address), signer


class TestCall:
    def test_next_escrow_id_fallback(self) -> None:
        connector = StubConnector()
        shim, _ = _shim(connector)

        assert asyncio.run(shim.call("next_escrow_id")) == DEFAULT_NEXT_ESCROW_ID
        assert connector.calls == []

    def test_aliases(self) -> None:
        connector = StubConnector()
        shim, _ = _shim(connector)

        assert asyncio.run(shim.call("owner")) == OWNER
        assert asyncio.run(shim.call("paused")) is True
        assert connector.simulated == ["get_owner", "is_job_creation_paused"]

    def test_pause_read_failure_reads_as_not_paused(self) -> None:
        shim, _ = _shim(StubConnector(simulation_error="HostError: storage unavailable"))

        assert asyncio.run(shim.call("is_job_creation_paused")) is False

    def test_other_read_failures_propagate(self) -> None:
        shim, _ = _shim(StubConnector(simulation_error="HostError: Error(Contract, #1100)"))

        with pytest.raises(EscrowProtocolError):
            asyncio.run(shim.call("get_reputation", Keypair.random().public_key))

    def test_invalid_name(self) -> None:
        shim, _ = _shim(StubConnector())

        with pytest.raises(MethodNotSupportedError):
            asyncio.run(shim.call("get escrow"))


class TestSend:
    def test_send_returns_transaction_hash(self) -> None:
        connector = StubConnector()
        shim, signer = _shim(connector)

        tx_hash = asyncio.run(shim.send("start_work", 4, Keypair.random().public_key))

        envelope = connector.submitted_envelopes()[0]
        assert tx_hash == envelope.hash_hex()
        assert invoked_method(envelope) == "start_work"
        assert signer.transaction_requests == 1

    def test_boolean_pause_is_translated(self) -> None:
        connector = StubConnector()
        shim, _ = _shim(connector)

        asyncio.run(shim.send("set_job_creation_paused", True))
        asyncio.run(shim.send("set_job_creation_paused", False))

        methods = [invoked_method(envelope) for envelope in connector.submitted_envelopes()]
        assert methods == ["pause_job_creation", "unpause_job_creation"]

    def test_pause_translation_needs_a_boolean(self) -> None:
        shim, _ = _shim(StubConnector())

        with pytest.raises(ValidationError):
            asyncio.run(shim.send("set_job_creation_paused", "yes"))

    def test_unknown_method_uses_generic_encoding(self) -> None:
        connector = StubConnector()
        shim, _ = _shim(connector)

        asyncio.run(shim.send("custom_method", "hello", 5))

        assert invoked_method(connector.submitted_envelopes()[0]) == "custom_method"

    def test_failure_raises_with_classification(self) -> None:
        connector = StubConnector()
        shim, _ = _shim(connector, reject_transaction=True)

        with pytest.raises(EscrowProtocolError) as excinfo:
            asyncio.run(shim.send("start_work", 4, Keypair.random().public_key))

        assert excinfo.value.details["kind"] == "USER_REJECTED"
        assert connector.submitted == []

    def test_missing_signer_is_a_validation_failure(self) -> None:
        connector = StubConnector()
        shim, _ = _shim(connector)
        shim.use_signer(None)

        result = asyncio.run(shim.send_for_result("pause_job_creation"))

        assert not result.success
        assert result.error_kind == "VALIDATION_FAILED"
        assert connector.calls == []
