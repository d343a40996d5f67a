"""
Custom exception classes for the zkface system.

Every failure of the match protocol is reported through a typed exception
derived from ZkFaceError. All of them are recoverable from the session's
point of view: the session stays usable after any of them.
"""

from typing import Optional, Dict, Any


class ZkFaceError(Exception):
    """
    Base exception class for all zkface related errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    context : dict, optional
        Additional context information about the error.
    error_code : str, optional
        Unique error code for programmatic handling.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message = message
        self.context = context or {}
        self.error_code = error_code
        super().__init__(self.message)

    def __str__(self) -> str:
        """Return a formatted string representation of the error."""
        parts = [self.message]

        if self.error_code:
            parts.append(f"[Error Code: {self.error_code}]")

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"[Context: {context_str}]")

        return " ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the exception to a dictionary for structured logging.

        Returns
        -------
        dict
            Dictionary representation of the exception.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
        }


class MatchProtocolError(ZkFaceError):
    """
    Exception raised when a register or recognize request cannot proceed.

    These errors reject a single request; the session keeps its state.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        **kwargs,
    ) -> None:
        context = kwargs.get("context", {})
        if operation:
            context["operation"] = operation

        super().__init__(message, context, kwargs.get("error_code"))


class NoFaceDetectedError(MatchProtocolError):
    """Exception raised when detection yields no feature vector."""

    def __init__(self, message: str = "No face detected", **kwargs) -> None:
        super().__init__(
            message,
            operation=kwargs.get("operation"),
            error_code="MATCH_001",
        )


class LengthMismatchError(MatchProtocolError):
    """Exception raised when two quantized vectors differ in length."""

    def __init__(self, left_length: int, right_length: int) -> None:
        message = f"Mismatched lengths: {left_length} != {right_length}"
        context = {"left_length": left_length, "right_length": right_length}
        super().__init__(message, context=context, error_code="MATCH_002")


class NotRegisteredError(MatchProtocolError):
    """Exception raised when recognition is requested before registration."""

    def __init__(self, message: str = "Register a face first") -> None:
        super().__init__(message, operation="recognize", error_code="MATCH_003")


class ProofInProgressError(MatchProtocolError):
    """Exception raised when a second proof is requested while one is pending."""

    def __init__(self, message: str = "A proof is already in progress") -> None:
        super().__init__(message, operation="recognize", error_code="MATCH_004")


class RegistrationLockedError(MatchProtocolError):
    """Exception raised when registration is attempted while a proof is pending."""

    def __init__(
        self, message: str = "Registration is locked while a proof is pending"
    ) -> None:
        super().__init__(message, operation="register", error_code="MATCH_005")


class InvalidFeatureVectorError(MatchProtocolError):
    """Exception raised when a feature vector is empty, malformed or non-finite."""

    def __init__(self, message: str, vector_shape: tuple = (), **kwargs) -> None:
        context = {"vector_shape": vector_shape}
        super().__init__(message, context=context, error_code="MATCH_006")


class ProofBackendError(ZkFaceError):
    """
    Exception raised by a proving backend.

    The proof orchestrator never lets this escape: it is logged and turned
    into an invalid proof result, so a backend fault can never read as a
    match.
    """

    def __init__(
        self,
        message: str,
        circuit_id: Optional[str] = None,
        stage: Optional[str] = None,
        **kwargs,
    ) -> None:
        context = kwargs.get("context", {})
        if circuit_id:
            context["circuit_id"] = circuit_id
        if stage:
            context["stage"] = stage

        super().__init__(message, context, kwargs.get("error_code", "PROOF_001"))


class CircuitExecutionError(ProofBackendError):
    """Exception raised when circuit inputs do not satisfy its constraints."""

    def __init__(self, message: str, circuit_id: str, **kwargs) -> None:
        super().__init__(
            message,
            circuit_id=circuit_id,
            stage="execute",
            error_code="PROOF_002",
        )


class CaptureSourceError(ZkFaceError):
    """Exception raised when a camera or image source cannot be opened."""

    def __init__(self, message: str, source: Optional[str] = None) -> None:
        context = {}
        if source is not None:
            context["source"] = source
        super().__init__(message, context, error_code="CAPTURE_001")


class ConfigurationError(ZkFaceError):
    """
    Exception raised for configuration-related errors.

    This includes invalid configuration values and unsupported settings
    such as an unknown rounding mode.
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[str] = None,
        **kwargs,
    ) -> None:
        context = kwargs.get("context", {})
        if config_key:
            context["config_key"] = config_key
        if config_value:
            context["config_value"] = config_value

        super().__init__(message, context, kwargs.get("error_code", "CONFIG_001"))
