"""
Data models for the zkface system.

This module defines the core data structures shared by the proof
orchestrator and the match session. All models use dataclasses (or a
NamedTuple where a plain pair is the natural return value).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional

from .constants import STATUS_MESSAGES


class MatchStatus(str, Enum):
    """Externally observable phase of a match session."""

    IDLE = "idle"
    REGISTERED = "registered"
    PENDING = "pending"
    MATCHED = "matched"
    NOT_MATCHED = "not_matched"

    @property
    def message(self) -> str:
        """Human-readable status line."""
        return STATUS_MESSAGES[self.value]


@dataclass
class RegisteredTemplate:
    """
    The quantized vector currently enrolled in a session.

    Parameters
    ----------
    vector : List[int]
        Quantized feature vector.
    commitment_hash : Optional[str], default=None
        Public commitment derived from the vector, or None when the
        commitment proof failed.
    registered_at : datetime
        Time of registration (UTC).
    """

    vector: List[int]
    commitment_hash: Optional[str] = None
    registered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if not self.vector:
            raise ValueError("Registered template vector cannot be empty")

    @property
    def dimension(self) -> int:
        return len(self.vector)


@dataclass
class RecognitionResult:
    """
    Outcome of one recognition attempt.

    ``commitment_matches`` compares the recognized and registered hashes for
    display and audit only; the accept decision is ``status``.
    """

    status: MatchStatus
    distance: int
    within_threshold: bool
    proof_valid: bool
    recognized_hash: Optional[str] = None
    commitment_matches: Optional[bool] = None
    duration_seconds: float = 0.0
    completed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def matched(self) -> bool:
        return self.status is MatchStatus.MATCHED

    def to_dict(self) -> Dict[str, Any]:
        """Convert the result to a JSON-serialisable dictionary."""
        return {
            "status": self.status.value,
            "matched": self.matched,
            "distance": self.distance,
            "within_threshold": self.within_threshold,
            "proof_valid": self.proof_valid,
            "recognized_hash": self.recognized_hash,
            "commitment_matches": self.commitment_matches,
            "duration_seconds": self.duration_seconds,
            "completed_at": self.completed_at.isoformat(),
        }


@dataclass
class Witness:
    """Opaque witness produced by executing a circuit."""

    circuit_id: str
    data: Any


@dataclass
class Proof:
    """
    A proof produced by the proving engine.

    Parameters
    ----------
    circuit_id : str
        Circuit the proof was generated for.
    proof : bytes
        Serialized proof artifact.
    public_inputs : List[str]
        Public outputs exposed by the circuit, in declaration order.
    """

    circuit_id: str
    proof: bytes
    public_inputs: List[str] = field(default_factory=list)


class ProofResult(NamedTuple):
    """Validity flag and public commitment of a proof request."""

    valid: bool
    public_commitment: str


# Result returned whenever a proof request fails for any reason
FAILED_PROOF = ProofResult(valid=False, public_commitment="")
