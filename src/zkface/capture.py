"""
Capture and detection interfaces for the zkface system.

The match protocol only needs two capabilities from the vision side: a
frame source and a detector that turns a frame into a feature vector (or
nothing). FaceCapture combines them and serialises access to the capture
device, which the scan loop, registration and recognition all share.
"""

import asyncio
from typing import Any, Optional, Protocol

import numpy as np
import structlog

from .exceptions import NoFaceDetectedError

# Initialize structured logger
logger = structlog.get_logger(__name__)


class FrameSource(Protocol):
    """Produces frames from a camera, a file or a test fixture."""

    async def read(self) -> Optional[Any]:
        ...


class Detector(Protocol):
    """Extracts a feature vector from a frame, or None when no face is found."""

    async def detect(self, frame: Any) -> Optional[np.ndarray]:
        ...


class FaceCapture:
    """
    Serialised capture-and-detect over one frame source.

    Detector exceptions are treated as transient and reported as "no face".
    Frame source failures (CaptureSourceError) propagate.

    Parameters
    ----------
    source : FrameSource
        Frame producer.
    detector : Detector
        Feature extraction capability.
    """

    def __init__(self, source: FrameSource, detector: Detector) -> None:
        self.source = source
        self.detector = detector
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def _detect_once(self) -> Optional[np.ndarray]:
        frame = await self.source.read()
        if frame is None:
            logger.debug("Frame source returned no frame")
            return None

        try:
            return await self.detector.detect(frame)
        except Exception as e:
            logger.warning(
                "Detection failed, treating as no face",
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    async def capture_features(self) -> np.ndarray:
        """
        Capture one frame and extract its feature vector.

        Raises
        ------
        NoFaceDetectedError
            If no face could be found in the captured frame.
        """
        async with self._lock:
            features = await self._detect_once()

        if features is None:
            raise NoFaceDetectedError(operation="capture")
        return features

    async def probe(self) -> bool:
        """Run one detection for live feedback; returns whether a face was seen."""
        async with self._lock:
            features = await self._detect_once()
        return features is not None
