"""
Shared fixtures and fakes for the zkface test suite.
"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from zkface.constants import DEFAULT_EQUALITY_CIRCUIT
from zkface.data_models import Proof, Witness
from zkface.exceptions import CircuitExecutionError, ProofBackendError


class FakeProvingBackend:
    """
    Scriptable proving backend.

    ``fail_stage`` forces an exception at execute/generate/verify for the
    circuits in ``fail_circuits`` (all circuits when None). ``gate`` blocks
    equality-circuit execution until the event is set.
    """

    def __init__(
        self,
        valid: bool = True,
        fail_stage: Optional[str] = None,
        fail_circuits: Optional[set] = None,
        commitment: str = "0xfeedbeef",
        gate: Optional[asyncio.Event] = None,
        delay: float = 0.0,
    ) -> None:
        self.valid = valid
        self.fail_stage = fail_stage
        self.fail_circuits = fail_circuits
        self.commitment = commitment
        self.gate = gate
        self.delay = delay

        self.calls: List[tuple] = []
        self.active = 0
        self.max_active = 0
        self.completed = 0

    def _should_fail(self, stage: str, circuit_id: str) -> bool:
        if self.fail_stage != stage:
            return False
        return self.fail_circuits is None or circuit_id in self.fail_circuits

    def calls_for(self, circuit_id: str) -> List[Dict[str, Any]]:
        return [inputs for cid, inputs in self.calls if cid == circuit_id]

    async def execute(self, circuit_id: str, inputs: Dict[str, Any]) -> Witness:
        self.calls.append((circuit_id, inputs))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None and circuit_id == DEFAULT_EQUALITY_CIRCUIT:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            if self._should_fail("execute", circuit_id):
                raise CircuitExecutionError("forced failure", circuit_id)
        finally:
            self.active -= 1
        return Witness(circuit_id=circuit_id, data=inputs)

    async def generate_proof(self, witness: Witness) -> Proof:
        if self._should_fail("generate", witness.circuit_id):
            raise ProofBackendError("backend crashed", circuit_id=witness.circuit_id)
        return Proof(
            circuit_id=witness.circuit_id,
            proof=b"proof",
            public_inputs=[self.commitment],
        )

    async def verify_proof(self, proof: Proof) -> bool:
        if self._should_fail("verify", proof.circuit_id):
            raise RuntimeError("verifier unavailable")
        self.completed += 1
        return self.valid


class ListFrameSource:
    """Frame source returning placeholder frames (None once exhausted if finite)."""

    def __init__(self, frames: Optional[list] = None) -> None:
        self.frames = list(frames) if frames is not None else None
        self.reads = 0

    async def read(self):
        self.reads += 1
        if self.frames is None:
            return f"frame-{self.reads}"
        return self.frames.pop(0) if self.frames else None


class ScriptedDetector:
    """Detector returning queued results; exceptions in the queue are raised."""

    def __init__(self, results: list) -> None:
        self.results = list(results)
        self.frames_seen: list = []

    async def detect(self, frame):
        self.frames_seen.append(frame)
        result = self.results.pop(0) if self.results else None
        if isinstance(result, Exception):
            raise result
        return result


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Yield to the event loop until predicate() is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


@pytest.fixture
def sample_features():
    return [0.1, -0.2, 0.3]


@pytest.fixture
def face_embedding():
    """A 128-dimensional embedding shaped like a face_recognition encoding."""
    return [((i % 17) - 8) / 40.0 for i in range(128)]
