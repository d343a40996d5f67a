"""
Zero-knowledge proof orchestration for the zkface system.

This module drives an external proving engine through its three steps
(execute the circuit into a witness, generate a proof, verify the proof)
for the two circuits the match protocol uses:

- the equality circuit, which takes the candidate and the registered
  quantized vectors and succeeds only when they are within tolerance;
- the commitment circuit, which takes one quantized vector and exposes a
  public commitment to it.

Every element is wrapped in a single-field record ``{"x": value}``, which
is the input shape the circuit artifacts declare.

The orchestrator fails closed: any backend error, invalid proof or missed
deadline yields ``ProofResult(valid=False, public_commitment="")``.
"""

import asyncio
import hashlib
import hmac
import json
import secrets
from typing import Any, Dict, List, Optional, Protocol, Sequence

import structlog

from . import config
from .constants import (
    CIRCUIT_FIELD_NAME,
    COMMITMENT_INPUT,
    EQUALITY_CANDIDATE_INPUT,
    EQUALITY_REGISTERED_INPUT,
    MATCH_THRESHOLD,
)
from .data_models import FAILED_PROOF, Proof, ProofResult, Witness
from .exceptions import CircuitExecutionError, ProofBackendError
from .utils import async_timer, short_hash

# Initialize structured logger
logger = structlog.get_logger(__name__)


class ProvingBackend(Protocol):
    """Capability interface of the external zero-knowledge proving engine."""

    async def execute(self, circuit_id: str, inputs: Dict[str, Any]) -> Witness:
        ...

    async def generate_proof(self, witness: Witness) -> Proof:
        ...

    async def verify_proof(self, proof: Proof) -> bool:
        ...


def wrap_records(vector: Sequence[int]) -> List[Dict[str, int]]:
    """Wrap each quantized element in the circuit's single-field record."""
    return [{CIRCUIT_FIELD_NAME: int(value)} for value in vector]


class ProofOrchestrator:
    """
    Runs equality and commitment proofs through one proving backend.

    Both operations share a single adapter that is parameterised by circuit
    identity and input arity. Neither operation raises on backend failure.

    Parameters
    ----------
    backend : ProvingBackend
        External proving capability.
    equality_circuit : str, optional
        Identity of the equality circuit. Defaults to config.EQUALITY_CIRCUIT.
    commitment_circuit : str, optional
        Identity of the commitment circuit. Defaults to
        config.COMMITMENT_CIRCUIT.
    timeout_seconds : float, optional
        Deadline for one proof request; 0 disables it. Defaults to
        config.PROOF_TIMEOUT_SECONDS.

    Examples
    --------
    >>> orchestrator = ProofOrchestrator(SimulatedProvingBackend())
    >>> result = await orchestrator.prove_equality([1, 2], [1, 2])
    >>> result.valid
    True
    """

    def __init__(
        self,
        backend: ProvingBackend,
        equality_circuit: Optional[str] = None,
        commitment_circuit: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self.backend = backend
        self.equality_circuit = equality_circuit or config.EQUALITY_CIRCUIT
        self.commitment_circuit = commitment_circuit or config.COMMITMENT_CIRCUIT
        self.timeout_seconds = (
            config.PROOF_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
        )

        # Proof computations abandoned after a missed deadline
        self._abandoned: set = set()

        logger.info(
            "ProofOrchestrator initialized",
            backend=type(backend).__name__,
            equality_circuit=self.equality_circuit,
            commitment_circuit=self.commitment_circuit,
            timeout_seconds=self.timeout_seconds,
        )

    async def prove_equality(
        self, candidate: Sequence[int], registered: Sequence[int]
    ) -> ProofResult:
        """
        Prove that a candidate vector matches the registered one.

        Parameters
        ----------
        candidate : Sequence[int]
            Freshly quantized vector.
        registered : Sequence[int]
            Quantized vector of the registered template.

        Returns
        -------
        ProofResult
            ``(True, commitment)`` for a verified proof, ``(False, "")``
            otherwise.
        """
        inputs = {
            EQUALITY_CANDIDATE_INPUT: wrap_records(candidate),
            EQUALITY_REGISTERED_INPUT: wrap_records(registered),
        }
        return await self._run_circuit(self.equality_circuit, inputs)

    async def compute_commitment(self, vector: Sequence[int]) -> str:
        """
        Derive the public commitment of a quantized vector.

        Returns
        -------
        str
            The commitment, or an empty string if the proof failed.
        """
        inputs = {COMMITMENT_INPUT: wrap_records(vector)}
        result = await self._run_circuit(self.commitment_circuit, inputs)
        return result.public_commitment

    async def _run_circuit(self, circuit_id: str, inputs: Dict[str, Any]) -> ProofResult:
        """Run one proof request, racing it against the deadline if set."""
        if not self.timeout_seconds:
            return await self._execute_and_verify(circuit_id, inputs)

        task = asyncio.ensure_future(self._execute_and_verify(circuit_id, inputs))
        try:
            return await asyncio.wait_for(asyncio.shield(task), self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(
                "Proof request timed out, failing closed",
                circuit_id=circuit_id,
                timeout_seconds=self.timeout_seconds,
            )
            # The computation runs to completion; its result is discarded
            self._abandoned.add(task)
            task.add_done_callback(self._abandoned.discard)
            return FAILED_PROOF

    @async_timer
    async def _execute_and_verify(
        self, circuit_id: str, inputs: Dict[str, Any]
    ) -> ProofResult:
        logger.debug(
            "Starting proof request",
            circuit_id=circuit_id,
            inputs={name: len(records) for name, records in inputs.items()},
        )

        try:
            witness = await self.backend.execute(circuit_id, inputs)
            proof = await self.backend.generate_proof(witness)
            valid = bool(await self.backend.verify_proof(proof))
            if not valid:
                logger.warning("Proof verification failed", circuit_id=circuit_id)
                return FAILED_PROOF

            public_inputs = proof.public_inputs
            commitment = str(public_inputs[0]) if public_inputs else ""
        except Exception as e:
            logger.error(
                "Proof request failed, failing closed",
                circuit_id=circuit_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return FAILED_PROOF

        logger.info(
            "Proof verified",
            circuit_id=circuit_id,
            public_commitment=short_hash(commitment),
        )
        return ProofResult(valid=True, public_commitment=commitment)


def simulated_commitment(values: Sequence[int]) -> str:
    """Commitment exposed by the simulated circuits (hex SHA-256 digest)."""
    payload = ",".join(str(int(v)) for v in values).encode()
    return "0x" + hashlib.sha256(payload).hexdigest()


class SimulatedProvingBackend:
    """
    In-process stand-in for the external proving engine.

    The simulated equality circuit enforces the same constraint a deployed
    circuit would: equal lengths and a squared distance below ``tolerance``.
    Execution fails otherwise, like a failed circuit assertion. Proofs are
    HMAC tags over the public inputs, so tampering is caught by
    verify_proof().

    Parameters
    ----------
    equality_circuit : str, optional
        Circuit identity treated as the equality circuit.
    commitment_circuit : str, optional
        Circuit identity treated as the commitment circuit.
    tolerance : int, default=MATCH_THRESHOLD
        Exclusive bound on the squared distance inside the equality circuit.
    delay_seconds : float, optional
        Artificial proving latency. Defaults to
        config.SIMULATED_PROOF_DELAY_SECONDS.
    key : bytes, optional
        Tagging key. Defaults to config.SIMULATED_BACKEND_KEY or a random key.
    """

    def __init__(
        self,
        equality_circuit: Optional[str] = None,
        commitment_circuit: Optional[str] = None,
        tolerance: int = MATCH_THRESHOLD,
        delay_seconds: Optional[float] = None,
        key: Optional[bytes] = None,
    ) -> None:
        self.equality_circuit = equality_circuit or config.EQUALITY_CIRCUIT
        self.commitment_circuit = commitment_circuit or config.COMMITMENT_CIRCUIT
        self.tolerance = tolerance
        self.delay_seconds = (
            config.SIMULATED_PROOF_DELAY_SECONDS
            if delay_seconds is None
            else delay_seconds
        )

        if key is None and config.SIMULATED_BACKEND_KEY:
            key = config.SIMULATED_BACKEND_KEY.encode()
        self._key = key or secrets.token_bytes(32)

    def _unwrap(self, circuit_id: str, inputs: Dict[str, Any], name: str) -> List[int]:
        records = inputs.get(name)
        if not isinstance(records, list):
            raise CircuitExecutionError(f"Missing circuit input '{name}'", circuit_id)

        values = []
        for record in records:
            if not isinstance(record, dict) or set(record) != {CIRCUIT_FIELD_NAME}:
                raise CircuitExecutionError(
                    f"Malformed record in input '{name}'", circuit_id
                )
            value = record[CIRCUIT_FIELD_NAME]
            if isinstance(value, bool) or not isinstance(value, int):
                raise CircuitExecutionError(
                    f"Non-integer value in input '{name}'", circuit_id
                )
            values.append(value)
        return values

    async def execute(self, circuit_id: str, inputs: Dict[str, Any]) -> Witness:
        if circuit_id == self.equality_circuit:
            candidate = self._unwrap(circuit_id, inputs, EQUALITY_CANDIDATE_INPUT)
            registered = self._unwrap(circuit_id, inputs, EQUALITY_REGISTERED_INPUT)

            if len(candidate) != len(registered):
                raise CircuitExecutionError("Input length mismatch", circuit_id)

            distance = sum((c - r) ** 2 for c, r in zip(candidate, registered))
            if distance >= self.tolerance:
                raise CircuitExecutionError(
                    "Failed constraint: distance exceeds tolerance", circuit_id
                )
            public_inputs = [simulated_commitment(registered)]

        elif circuit_id == self.commitment_circuit:
            values = self._unwrap(circuit_id, inputs, COMMITMENT_INPUT)
            public_inputs = [simulated_commitment(values)]

        else:
            raise ProofBackendError(
                f"Unknown circuit '{circuit_id}'", circuit_id=circuit_id, stage="execute"
            )

        return Witness(circuit_id=circuit_id, data={"public_inputs": public_inputs})

    def _tag(self, circuit_id: str, public_inputs: List[str]) -> bytes:
        message = json.dumps(
            {"circuit_id": circuit_id, "public_inputs": public_inputs}, sort_keys=True
        ).encode()
        return hmac.new(self._key, message, hashlib.sha256).digest()

    async def generate_proof(self, witness: Witness) -> Proof:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        public_inputs = list(witness.data["public_inputs"])
        return Proof(
            circuit_id=witness.circuit_id,
            proof=self._tag(witness.circuit_id, public_inputs),
            public_inputs=public_inputs,
        )

    async def verify_proof(self, proof: Proof) -> bool:
        expected = self._tag(proof.circuit_id, list(proof.public_inputs))
        return hmac.compare_digest(expected, proof.proof)
