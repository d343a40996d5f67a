"""
Match session state machine for the zkface system.

A MatchSession owns the registered template, the in-flight proof flag and
the externally visible status, and sequences the protocol:

    IDLE --register--> REGISTERED --recognize--> PENDING
    PENDING --proof resolved--> MATCHED | NOT_MATCHED
    MATCHED --cooldown--> REGISTERED
    MATCHED | NOT_MATCHED | REGISTERED --recognize--> PENDING

The session also drives its scan loop: the loop is suspended exactly while
the session is PENDING or MATCHED and resumed in every other state.

Accept rule: a recognition is MATCHED only if the plaintext squared
distance is below the threshold AND the zero-knowledge proof verifies.
decide_match() is the single place this rule is expressed.
"""

import asyncio
import time
from contextlib import contextmanager
from typing import Iterator, Optional, Type

import structlog

from . import config
from .capture import FaceCapture
from .constants import MATCH_THRESHOLD
from .data_models import (
    FAILED_PROOF,
    MatchStatus,
    RecognitionResult,
    RegisteredTemplate,
)
from .distance import is_within_threshold, squared_distance
from .exceptions import (
    MatchProtocolError,
    NoFaceDetectedError,
    NotRegisteredError,
    ProofInProgressError,
    RegistrationLockedError,
    ZkFaceError,
)
from .proving import ProofOrchestrator
from .quantization import FeatureVector, quantize, validate_feature_vector
from .scan_loop import ScanLoop, TickFunction
from .utils import generate_session_id, short_hash

# Initialize structured logger
logger = structlog.get_logger(__name__)

# States during which live scanning is paused
_SUSPENDED_STATES = (MatchStatus.PENDING, MatchStatus.MATCHED)


def decide_match(
    distance: int, proof_valid: bool, threshold: int = MATCH_THRESHOLD
) -> bool:
    """
    Apply the accept rule of the match protocol.

    Both checks must pass independently; the plaintext distance alone is
    never sufficient because it does not cross the trust boundary.
    """
    return is_within_threshold(distance, threshold) and proof_valid


class MatchSession:
    """
    Single-user biometric match session.

    Parameters
    ----------
    orchestrator : ProofOrchestrator
        Proof orchestrator bound to the proving backend.
    capture : FaceCapture, optional
        Capture used by register() and recognize(); required only for those
        two methods. Its probe() is the default scan tick.
    threshold : int, default=MATCH_THRESHOLD
        Exclusive bound on the squared distance.
    cooldown_seconds : float, optional
        Time spent MATCHED before returning to REGISTERED. Defaults to
        config.COOLDOWN_SECONDS.
    scan_interval_seconds : float, optional
        Scan loop interval. Defaults to config.SCAN_INTERVAL_MS.
    scan_tick : Callable, optional
        Overrides the scan tick (defaults to capture.probe).
    rounding : str, optional
        Quantization rounding rule. Defaults to config.QUANTIZATION_ROUNDING.

    Examples
    --------
    >>> session = MatchSession(ProofOrchestrator(SimulatedProvingBackend()))
    >>> await session.register_features(embedding)
    >>> status = await session.recognize_features(embedding)
    >>> status
    <MatchStatus.MATCHED: 'matched'>
    """

    def __init__(
        self,
        orchestrator: ProofOrchestrator,
        capture: Optional[FaceCapture] = None,
        threshold: int = MATCH_THRESHOLD,
        cooldown_seconds: Optional[float] = None,
        scan_interval_seconds: Optional[float] = None,
        scan_tick: Optional[TickFunction] = None,
        rounding: Optional[str] = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.capture = capture
        self.threshold = threshold
        self.cooldown_seconds = (
            config.COOLDOWN_SECONDS if cooldown_seconds is None else cooldown_seconds
        )
        self.rounding = rounding or config.QUANTIZATION_ROUNDING

        self.session_id = generate_session_id()
        self._log = logger.bind(session_id=self.session_id[:8])

        self.template: Optional[RegisteredTemplate] = None
        self.last_distance: Optional[int] = None
        self.recognized_hash: Optional[str] = None
        self.last_result: Optional[RecognitionResult] = None

        self._status = MatchStatus.IDLE
        self._notice: Optional[str] = None
        self._proof_in_flight = False
        self._cooldown_task: Optional[asyncio.Task] = None

        if scan_tick is None and capture is not None:
            scan_tick = capture.probe
        if scan_interval_seconds is None:
            scan_interval_seconds = config.SCAN_INTERVAL_MS / 1000
        self.scan_loop = ScanLoop(
            scan_tick,
            interval_seconds=scan_interval_seconds,
            should_scan=self.scanning_allowed,
        )

        self._log.info(
            "Match session created",
            threshold=threshold,
            cooldown_seconds=self.cooldown_seconds,
            rounding=self.rounding,
        )

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def current_status(self) -> MatchStatus:
        return self._status

    @property
    def status_message(self) -> str:
        """Current status line, or the last recoverable error if newer."""
        return self._notice or self._status.message

    @property
    def registered_hash(self) -> Optional[str]:
        return self.template.commitment_hash if self.template else None

    @property
    def is_registered(self) -> bool:
        return self.template is not None

    @property
    def proof_in_flight(self) -> bool:
        return self._proof_in_flight

    def scanning_allowed(self) -> bool:
        return self._status not in _SUSPENDED_STATES

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start live scanning."""
        self.scan_loop.start()

    async def close(self) -> None:
        """Stop live scanning and drop a pending cooldown."""
        self._cancel_cooldown()
        await self.scan_loop.stop()
        self._log.info("Match session closed", status=self._status.value)

    async def __aenter__(self) -> "MatchSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def wait_for_cooldown(self) -> None:
        """Wait until a running cooldown has returned the session to REGISTERED."""
        task = self._cooldown_task
        if task is not None:
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise

    # ------------------------------------------------------------------
    # Register
    # ------------------------------------------------------------------

    async def register(self) -> Optional[str]:
        """
        Capture a face and register it as the session template.

        Returns
        -------
        Optional[str]
            Commitment hash of the new template (None if the commitment
            proof failed).

        Raises
        ------
        RegistrationLockedError
            If a proof is in flight.
        NoFaceDetectedError
            If no face was found in the captured frame.
        """
        capture = self._require_capture()
        with self._exclusive(RegistrationLockedError):
            features = await self._capture(capture, "register")
            return await self._register(features)

    async def register_features(self, features: Optional[FeatureVector]) -> Optional[str]:
        """Register an already extracted feature vector (None means no face)."""
        with self._exclusive(RegistrationLockedError):
            return await self._register(features)

    async def _register(self, features: Optional[FeatureVector]) -> Optional[str]:
        vector = self._validate(features, "register")
        quantized = quantize(vector, self.rounding)

        self._cancel_cooldown()
        commitment = await self.orchestrator.compute_commitment(quantized)
        if not commitment:
            self._log.warning("Commitment proof failed, registering without hash")

        self.template = RegisteredTemplate(
            vector=quantized, commitment_hash=commitment or None
        )
        self.last_distance = None
        self.recognized_hash = None
        self.last_result = None
        self._set_status(MatchStatus.REGISTERED)

        self._log.info(
            "Face registered",
            dimension=self.template.dimension,
            registered_hash=short_hash(self.template.commitment_hash),
        )
        return self.template.commitment_hash

    # ------------------------------------------------------------------
    # Recognize
    # ------------------------------------------------------------------

    async def recognize(self) -> MatchStatus:
        """
        Capture a face and prove it matches the registered template.

        Returns
        -------
        MatchStatus
            MATCHED or NOT_MATCHED.

        Raises
        ------
        NotRegisteredError
            If no template is registered.
        ProofInProgressError
            If a proof is already in flight.
        NoFaceDetectedError
            If no face was found in the captured frame.
        LengthMismatchError
            If the candidate and template differ in length.
        """
        capture = self._require_capture()
        self._require_template()
        with self._exclusive(ProofInProgressError):
            features = await self._capture(capture, "recognize")
            return await self._recognize(features)

    async def recognize_features(self, features: Optional[FeatureVector]) -> MatchStatus:
        """Recognize an already extracted feature vector (None means no face)."""
        self._require_template()
        with self._exclusive(ProofInProgressError):
            return await self._recognize(features)

    async def _recognize(self, features: Optional[FeatureVector]) -> MatchStatus:
        template = self._require_template()
        vector = self._validate(features, "recognize")
        candidate = quantize(vector, self.rounding)

        try:
            distance = squared_distance(candidate, template.vector)
        except ZkFaceError as e:
            self._notice = e.message
            raise

        self._cancel_cooldown()
        self.last_distance = distance
        self.recognized_hash = None
        self._set_status(MatchStatus.PENDING)

        start_time = time.perf_counter()
        try:
            proof = await self.orchestrator.prove_equality(candidate, template.vector)
        except asyncio.CancelledError:
            self._set_status(MatchStatus.NOT_MATCHED)
            raise
        except Exception as e:
            self._log.error(
                "Equality proof raised, treating as invalid",
                error=str(e),
                error_type=type(e).__name__,
            )
            proof = FAILED_PROOF

        matched = decide_match(distance, proof.valid, self.threshold)
        recognized_hash = proof.public_commitment or None

        commitment_matches = None
        if recognized_hash and template.commitment_hash:
            commitment_matches = recognized_hash == template.commitment_hash

        status = MatchStatus.MATCHED if matched else MatchStatus.NOT_MATCHED
        self.recognized_hash = recognized_hash
        self.last_result = RecognitionResult(
            status=status,
            distance=distance,
            within_threshold=is_within_threshold(distance, self.threshold),
            proof_valid=proof.valid,
            recognized_hash=recognized_hash,
            commitment_matches=commitment_matches,
            duration_seconds=time.perf_counter() - start_time,
        )
        self._set_status(status)

        if matched:
            self._schedule_cooldown()

        self._log.info(
            "Recognition resolved",
            status=status.value,
            distance=distance,
            proof_valid=proof.valid,
            commitment_matches=commitment_matches,
            duration_seconds=round(self.last_result.duration_seconds, 3),
        )
        return status

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @contextmanager
    def _exclusive(self, error: Type[MatchProtocolError]) -> Iterator[None]:
        """Hold the session's single in-flight slot for one operation."""
        if self._proof_in_flight:
            self._log.warning("Operation rejected, proof in flight", error=error.__name__)
            raise error()

        self._proof_in_flight = True
        try:
            yield
        finally:
            self._proof_in_flight = False

    def _require_capture(self) -> FaceCapture:
        if self.capture is None:
            raise ZkFaceError("Match session has no capture attached")
        return self.capture

    def _require_template(self) -> RegisteredTemplate:
        if self.template is None:
            error = NotRegisteredError()
            self._notice = error.message
            raise error
        return self.template

    async def _capture(self, capture: FaceCapture, operation: str):
        try:
            return await capture.capture_features()
        except NoFaceDetectedError:
            self._notice = "No face detected"
            self._log.info("No face detected", operation=operation)
            raise

    def _validate(self, features: Optional[FeatureVector], operation: str):
        if features is None:
            self._notice = "No face detected"
            raise NoFaceDetectedError(operation=operation)

        try:
            return validate_feature_vector(features)
        except ZkFaceError as e:
            self._notice = e.message
            raise

    def _set_status(self, status: MatchStatus) -> None:
        previous = self._status
        self._status = status
        self._notice = None

        if status in _SUSPENDED_STATES:
            self.scan_loop.suspend()
        else:
            self.scan_loop.resume()

        if previous is not status:
            self._log.debug(
                "Status changed", previous=previous.value, current=status.value
            )

    def _schedule_cooldown(self) -> None:
        self._cancel_cooldown()
        self._cooldown_task = asyncio.get_running_loop().create_task(self._cooldown())

    def _cancel_cooldown(self) -> None:
        if self._cooldown_task is not None and not self._cooldown_task.done():
            self._cooldown_task.cancel()
        self._cooldown_task = None

    async def _cooldown(self) -> None:
        await asyncio.sleep(self.cooldown_seconds)
        if self._status is MatchStatus.MATCHED:
            self._log.info("Cooldown elapsed, resuming scan")
            self._set_status(MatchStatus.REGISTERED)
