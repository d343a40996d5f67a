"""
Configuration management for the zkface system.

This module handles all configuration loading from environment variables
and .env files. Fixed protocol parameters live in constants.py; everything
here is a deployment setting that can change without touching the circuit
contract.
"""

import os
from typing import Optional
from dotenv import load_dotenv

from .constants import (
    DEFAULT_COMMITMENT_CIRCUIT,
    DEFAULT_COOLDOWN_SECONDS,
    DEFAULT_EQUALITY_CIRCUIT,
    DEFAULT_PROOF_TIMEOUT_SECONDS,
    DEFAULT_SCAN_INTERVAL_MS,
    MAX_SCAN_INTERVAL_MS,
    MIN_SCAN_INTERVAL_MS,
    ROUNDING_HALF_AWAY_FROM_ZERO,
    ROUNDING_MODES,
)
from .exceptions import ConfigurationError

# Load environment variables from .env file if it exists
load_dotenv()

# =============================================================================
# Logging Configuration
# =============================================================================
# Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# Render log events as JSON lines instead of the console format
STRUCTURED_LOGGING: bool = os.getenv("STRUCTURED_LOGGING", "false").lower() == "true"

# =============================================================================
# Session Timing Configuration
# =============================================================================
# Interval between live detection probes of the scan loop
SCAN_INTERVAL_MS: int = int(os.getenv("SCAN_INTERVAL_MS", str(DEFAULT_SCAN_INTERVAL_MS)))

# Time spent in the matched state before scanning resumes
COOLDOWN_SECONDS: float = float(
    os.getenv("COOLDOWN_SECONDS", str(DEFAULT_COOLDOWN_SECONDS))
)

# Deadline for a single proof request (0 disables the deadline)
PROOF_TIMEOUT_SECONDS: float = float(
    os.getenv("PROOF_TIMEOUT_SECONDS", str(DEFAULT_PROOF_TIMEOUT_SECONDS))
)

# =============================================================================
# Circuit Configuration
# =============================================================================
# Circuit proving that two quantized vectors are within tolerance
EQUALITY_CIRCUIT: str = os.getenv("EQUALITY_CIRCUIT", DEFAULT_EQUALITY_CIRCUIT)

# Circuit deriving the public commitment of one quantized vector
COMMITMENT_CIRCUIT: str = os.getenv("COMMITMENT_CIRCUIT", DEFAULT_COMMITMENT_CIRCUIT)

# Rounding rule used by the quantizer; must match the deployed circuit
QUANTIZATION_ROUNDING: str = os.getenv(
    "QUANTIZATION_ROUNDING", ROUNDING_HALF_AWAY_FROM_ZERO
).lower()

# Artificial latency of the simulated proving backend
SIMULATED_PROOF_DELAY_SECONDS: float = float(
    os.getenv("SIMULATED_PROOF_DELAY_SECONDS", "0.5")
)

# =============================================================================
# Capture Configuration
# =============================================================================
# OpenCV camera index used by the live capture
CAMERA_INDEX: int = int(os.getenv("CAMERA_INDEX", "0"))

# Secret used to tag simulated proofs (random per process when unset)
SIMULATED_BACKEND_KEY: Optional[str] = os.getenv("SIMULATED_BACKEND_KEY")

# =============================================================================
# Development and Debugging Configuration
# =============================================================================
# Enable debug mode (skips validation on import)
DEBUG_MODE: bool = os.getenv("DEBUG_MODE", "false").lower() == "true"


# =============================================================================
# Configuration Validation
# =============================================================================
def validate_configuration() -> bool:
    """
    Validate the current configuration settings.

    Returns
    -------
    bool
        True if configuration is valid.

    Raises
    ------
    ConfigurationError
        If any configuration parameter is invalid.
    """
    errors = []

    if not MIN_SCAN_INTERVAL_MS <= SCAN_INTERVAL_MS <= MAX_SCAN_INTERVAL_MS:
        errors.append(
            f"SCAN_INTERVAL_MS must be between {MIN_SCAN_INTERVAL_MS} "
            f"and {MAX_SCAN_INTERVAL_MS}"
        )

    if COOLDOWN_SECONDS < 0:
        errors.append("COOLDOWN_SECONDS cannot be negative")

    if PROOF_TIMEOUT_SECONDS < 0:
        errors.append("PROOF_TIMEOUT_SECONDS cannot be negative")

    if SIMULATED_PROOF_DELAY_SECONDS < 0:
        errors.append("SIMULATED_PROOF_DELAY_SECONDS cannot be negative")

    if QUANTIZATION_ROUNDING not in ROUNDING_MODES:
        errors.append(f"QUANTIZATION_ROUNDING must be one of {list(ROUNDING_MODES)}")

    if not EQUALITY_CIRCUIT or not COMMITMENT_CIRCUIT:
        errors.append("EQUALITY_CIRCUIT and COMMITMENT_CIRCUIT cannot be empty")

    if CAMERA_INDEX < 0:
        errors.append("CAMERA_INDEX cannot be negative")

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if LOG_LEVEL not in valid_log_levels:
        errors.append(f"LOG_LEVEL must be one of {valid_log_levels}")

    if errors:
        raise ConfigurationError(
            "Configuration validation failed:\n"
            + "\n".join(f"- {error}" for error in errors)
        )

    return True


def get_config_summary() -> dict:
    """
    Get a summary of the current configuration.

    Returns
    -------
    dict
        Dictionary containing key configuration parameters.
    """
    return {
        "session": {
            "scan_interval_ms": SCAN_INTERVAL_MS,
            "cooldown_seconds": COOLDOWN_SECONDS,
            "proof_timeout_seconds": PROOF_TIMEOUT_SECONDS,
        },
        "circuits": {
            "equality": EQUALITY_CIRCUIT,
            "commitment": COMMITMENT_CIRCUIT,
            "quantization_rounding": QUANTIZATION_ROUNDING,
            "simulated_proof_delay_seconds": SIMULATED_PROOF_DELAY_SECONDS,
        },
        "capture": {
            "camera_index": CAMERA_INDEX,
        },
        "logging": {
            "level": LOG_LEVEL,
            "structured": STRUCTURED_LOGGING,
        },
        "debug_mode": DEBUG_MODE,
    }


# Validate configuration on import
if not DEBUG_MODE:
    validate_configuration()
