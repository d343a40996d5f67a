"""
Test cases for the proof orchestrator and the simulated proving backend.
"""

import asyncio

import pytest

from zkface.constants import DEFAULT_COMMITMENT_CIRCUIT, DEFAULT_EQUALITY_CIRCUIT
from zkface.data_models import FAILED_PROOF, Proof, ProofResult
from zkface.exceptions import CircuitExecutionError, ProofBackendError
from zkface.proving import (
    ProofOrchestrator,
    SimulatedProvingBackend,
    simulated_commitment,
    wrap_records,
)

from conftest import FakeProvingBackend


def _orchestrator(backend, timeout_seconds=0):
    return ProofOrchestrator(
        backend,
        equality_circuit=DEFAULT_EQUALITY_CIRCUIT,
        commitment_circuit=DEFAULT_COMMITMENT_CIRCUIT,
        timeout_seconds=timeout_seconds,
    )


def test_wrap_records_uses_single_field_records():
    assert wrap_records([1, -2]) == [{"x": 1}, {"x": -2}]


def test_prove_equality_builds_paired_inputs():
    """The equality circuit receives the candidate and registered sequences."""
    backend = FakeProvingBackend()
    result = asyncio.run(_orchestrator(backend).prove_equality([1, 2], [3, 4]))

    assert result == ProofResult(valid=True, public_commitment="0xfeedbeef")
    inputs = backend.calls_for(DEFAULT_EQUALITY_CIRCUIT)[0]
    assert inputs == {
        "x": [{"x": 1}, {"x": 2}],
        "registered": [{"x": 3}, {"x": 4}],
    }


def test_compute_commitment_builds_single_input():
    backend = FakeProvingBackend(commitment="0xabc")
    commitment = asyncio.run(_orchestrator(backend).compute_commitment([5, 6, 7]))

    assert commitment == "0xabc"
    assert backend.calls_for(DEFAULT_COMMITMENT_CIRCUIT) == [
        {"x": [{"x": 5}, {"x": 6}, {"x": 7}]}
    ]


@pytest.mark.parametrize("stage", ["execute", "generate", "verify"])
def test_prove_equality_fails_closed_on_backend_error(stage):
    """A backend error at any stage yields (False, "") instead of raising."""
    backend = FakeProvingBackend(fail_stage=stage)
    result = asyncio.run(_orchestrator(backend).prove_equality([1], [1]))

    assert result == FAILED_PROOF
    assert result.valid is False
    assert result.public_commitment == ""


@pytest.mark.parametrize("stage", ["execute", "generate", "verify"])
def test_compute_commitment_fails_closed_on_backend_error(stage):
    backend = FakeProvingBackend(fail_stage=stage)
    assert asyncio.run(_orchestrator(backend).compute_commitment([1])) == ""


def test_invalid_proof_discards_public_output():
    backend = FakeProvingBackend(valid=False)
    result = asyncio.run(_orchestrator(backend).prove_equality([1], [1]))

    assert result == FAILED_PROOF


def test_proof_timeout_fails_closed_and_lets_computation_finish():
    backend = FakeProvingBackend(delay=0.2)
    orchestrator = _orchestrator(backend, timeout_seconds=0.05)

    async def scenario():
        result = await orchestrator.prove_equality([1], [1])
        finished_before = backend.completed
        await asyncio.sleep(0.4)
        return result, finished_before, backend.completed

    result, finished_before, finished_after = asyncio.run(scenario())

    assert result == FAILED_PROOF
    assert finished_before == 0
    assert finished_after == 1


def test_orchestrator_defaults_to_configured_circuits():
    from zkface import config

    orchestrator = ProofOrchestrator(FakeProvingBackend())
    assert orchestrator.equality_circuit == config.EQUALITY_CIRCUIT
    assert orchestrator.commitment_circuit == config.COMMITMENT_CIRCUIT
    assert orchestrator.timeout_seconds == config.PROOF_TIMEOUT_SECONDS


class TestSimulatedProvingBackend:
    """Tests for the in-process proving backend."""

    def _backend(self, **kwargs):
        return SimulatedProvingBackend(
            equality_circuit=DEFAULT_EQUALITY_CIRCUIT,
            commitment_circuit=DEFAULT_COMMITMENT_CIRCUIT,
            delay_seconds=0,
            key=b"test-key",
            **kwargs,
        )

    def test_equal_inputs_prove_valid(self):
        orchestrator = _orchestrator(self._backend())
        registered = [6554, -13107, 19661]

        result = asyncio.run(orchestrator.prove_equality(registered, registered))

        assert result.valid is True
        assert result.public_commitment == simulated_commitment(registered)

    def test_distance_beyond_tolerance_fails_closed(self):
        orchestrator = _orchestrator(self._backend(tolerance=100))

        result = asyncio.run(orchestrator.prove_equality([0, 0], [10, 0]))

        assert result == FAILED_PROOF

    def test_length_mismatch_fails_closed(self):
        orchestrator = _orchestrator(self._backend())
        assert asyncio.run(orchestrator.prove_equality([1, 2], [1])) == FAILED_PROOF

    def test_commitment_matches_equality_public_output(self):
        """The equality proof exposes the commitment of the registered vector."""
        orchestrator = _orchestrator(self._backend())
        registered = [1, 2, 3]

        async def scenario():
            commitment = await orchestrator.compute_commitment(registered)
            proof = await orchestrator.prove_equality([1, 2, 4], registered)
            return commitment, proof

        commitment, proof = asyncio.run(scenario())
        assert proof.valid
        assert commitment == proof.public_commitment

    def test_malformed_records_are_rejected(self):
        backend = self._backend()
        bad_inputs = {"x": [{"y": 1}], "registered": [{"x": 1}]}

        with pytest.raises(CircuitExecutionError):
            asyncio.run(backend.execute(DEFAULT_EQUALITY_CIRCUIT, bad_inputs))

    def test_non_integer_values_are_rejected(self):
        backend = self._backend()

        with pytest.raises(CircuitExecutionError):
            asyncio.run(backend.execute(DEFAULT_COMMITMENT_CIRCUIT, {"x": [{"x": 0.5}]}))

    def test_unknown_circuit_is_rejected(self):
        backend = self._backend()

        with pytest.raises(ProofBackendError):
            asyncio.run(backend.execute("face_unknown", {"x": []}))

    def test_tampered_proof_does_not_verify(self):
        backend = self._backend()

        async def scenario():
            witness = await backend.execute(
                DEFAULT_COMMITMENT_CIRCUIT, {"x": wrap_records([1, 2])}
            )
            proof = await backend.generate_proof(witness)
            forged = Proof(
                circuit_id=proof.circuit_id,
                proof=proof.proof,
                public_inputs=["0xforged"],
            )
            return await backend.verify_proof(proof), await backend.verify_proof(forged)

        genuine_ok, forged_ok = asyncio.run(scenario())
        assert genuine_ok is True
        assert forged_ok is False

    def test_proofs_from_another_key_do_not_verify(self):
        prover = self._backend()
        verifier = SimulatedProvingBackend(
            equality_circuit=DEFAULT_EQUALITY_CIRCUIT,
            commitment_circuit=DEFAULT_COMMITMENT_CIRCUIT,
            delay_seconds=0,
            key=b"other-key",
        )

        async def scenario():
            witness = await prover.execute(
                DEFAULT_COMMITMENT_CIRCUIT, {"x": wrap_records([3])}
            )
            return await verifier.verify_proof(await prover.generate_proof(witness))

        assert asyncio.run(scenario()) is False


class _DictProofBackend(FakeProvingBackend):
    """Returns a proof without the expected attributes but verifies it anyway."""

    async def generate_proof(self, witness):
        return {"publicInputs": [self.commitment]}

    async def verify_proof(self, proof):
        return True


def test_malformed_proof_fails_closed():
    """A verified proof with an unreadable public output is still a failure."""
    orchestrator = _orchestrator(_DictProofBackend())

    assert asyncio.run(orchestrator.prove_equality([1, 2], [1, 2])) == FAILED_PROOF
    assert asyncio.run(orchestrator.compute_commitment([1, 2])) == ""
