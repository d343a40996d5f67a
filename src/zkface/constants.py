"""
Protocol constants for the zkface match protocol.

These values form a contract with the zero-knowledge circuit artifacts:
the fixed-point scale, the acceptance threshold and the input record shape
must agree with whatever circuit is deployed. Changing SCALE requires
recalibrating MATCH_THRESHOLD.
"""

from typing import Final

# =============================================================================
# Fixed-Point Quantization
# =============================================================================

# Scale factor applied to every feature before rounding (2^16)
SCALE: Final[int] = 2**16

# Supported rounding rules for quantization
ROUNDING_HALF_AWAY_FROM_ZERO: Final[str] = "half_away_from_zero"
ROUNDING_HALF_EVEN: Final[str] = "half_even"
ROUNDING_TRUNCATE: Final[str] = "truncate"

ROUNDING_MODES: Final[tuple] = (
    ROUNDING_HALF_AWAY_FROM_ZERO,
    ROUNDING_HALF_EVEN,
    ROUNDING_TRUNCATE,
)

# =============================================================================
# Matching
# =============================================================================

# Squared distance between quantized vectors must be strictly below this
MATCH_THRESHOLD: Final[int] = 1_500_000_000

# Face encoding dimension (face_recognition library standard)
FACE_FEATURE_DIM: Final[int] = 128

# =============================================================================
# Circuit Input Shape
# =============================================================================

# Each quantized element is wrapped in a single-field record {"x": value}
CIRCUIT_FIELD_NAME: Final[str] = "x"

# Named inputs of the equality circuit
EQUALITY_CANDIDATE_INPUT: Final[str] = "x"
EQUALITY_REGISTERED_INPUT: Final[str] = "registered"

# Named input of the commitment circuit
COMMITMENT_INPUT: Final[str] = "x"

# Default circuit identities
DEFAULT_EQUALITY_CIRCUIT: Final[str] = "face_eq"
DEFAULT_COMMITMENT_CIRCUIT: Final[str] = "face_hash"

# =============================================================================
# Timing Defaults
# =============================================================================

# Interval between live detection probes (milliseconds)
DEFAULT_SCAN_INTERVAL_MS: Final[int] = 1000

# Allowed range for the scan interval (milliseconds)
MIN_SCAN_INTERVAL_MS: Final[int] = 100
MAX_SCAN_INTERVAL_MS: Final[int] = 5000

# Time spent in the matched state before scanning resumes (seconds)
DEFAULT_COOLDOWN_SECONDS: Final[float] = 3.0

# Deadline for a single proof request (seconds, 0 disables)
DEFAULT_PROOF_TIMEOUT_SECONDS: Final[float] = 120.0

# =============================================================================
# Status Messages
# =============================================================================

STATUS_MESSAGES: Final[dict] = {
    "idle": "Register a face",
    "registered": "Face registered",
    "pending": "Generating ZK proof, please wait...",
    "matched": "Match",
    "not_matched": "No match",
}

# Number of hash characters shown in logs
HASH_LOG_PREFIX: Final[int] = 12
