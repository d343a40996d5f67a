"""
Face detection and frame sources backed by face_recognition and OpenCV.

These adapters implement the Detector and FrameSource interfaces of
capture.py. face_recognition produces the 128-dimensional encodings used as
feature vectors; OpenCV reads webcam frames and draws detection boxes.
Blocking calls run in a worker thread so the event loop stays responsive.
"""

import asyncio
from pathlib import Path
from typing import Callable, Optional, Tuple

import cv2
import face_recognition
import numpy as np
import structlog

from . import config
from .constants import FACE_FEATURE_DIM
from .exceptions import CaptureSourceError, InvalidFeatureVectorError

# Initialize structured logger
logger = structlog.get_logger(__name__)

# (top, right, bottom, left) as returned by face_recognition
FaceLocation = Tuple[int, int, int, int]


def draw_detection(
    frame: np.ndarray,
    location: FaceLocation,
    color: Tuple[int, int, int] = (0, 255, 0),
    thickness: int = 2,
) -> np.ndarray:
    """Draw a bounding box for one face onto a copy of the frame."""
    top, right, bottom, left = location
    annotated = frame.copy()
    cv2.rectangle(annotated, (left, top), (right, bottom), color, thickness)
    return annotated


def save_frame(path, frame: np.ndarray) -> Path:
    """Write an RGB frame to disk as an image file."""
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    if not cv2.imwrite(str(output), cv2.cvtColor(frame, cv2.COLOR_RGB2BGR)):
        raise CaptureSourceError(f"Failed to write image: {output}", source=str(output))
    return output


class FaceRecognitionDetector:
    """
    Detector producing face_recognition encodings.

    When several faces are present the first one is used, as in batch
    extraction. With ``annotate`` enabled the detector keeps the last frame
    with its bounding box drawn, for live feedback.

    Parameters
    ----------
    model : str, default="hog"
        face_recognition location model ("hog" or "cnn").
    annotate : bool, default=False
        Keep an annotated copy of the last frame with a detected face.
    on_detection : Callable, optional
        Called with (frame, location) after every successful detection.
    """

    def __init__(
        self,
        model: str = "hog",
        annotate: bool = False,
        on_detection: Optional[Callable[[np.ndarray, FaceLocation], None]] = None,
    ) -> None:
        self.model = model
        self.annotate = annotate
        self.on_detection = on_detection
        self.last_location: Optional[FaceLocation] = None
        self.last_annotated_frame: Optional[np.ndarray] = None

    async def detect(self, frame: np.ndarray) -> Optional[np.ndarray]:
        return await asyncio.to_thread(self._detect_sync, frame)

    def _detect_sync(self, frame: np.ndarray) -> Optional[np.ndarray]:
        face_locations = face_recognition.face_locations(frame, model=self.model)

        if len(face_locations) == 0:
            self.last_location = None
            return None

        if len(face_locations) > 1:
            logger.warning(
                "Multiple faces detected, using the first face",
                faces_detected=len(face_locations),
            )

        location = face_locations[0]
        face_encodings = face_recognition.face_encodings(frame, [location])

        if len(face_encodings) == 0:
            logger.debug("Face found but encoding failed")
            self.last_location = None
            return None

        encoding = np.asarray(face_encodings[0], dtype=np.float64)

        if encoding.shape != (FACE_FEATURE_DIM,):
            raise InvalidFeatureVectorError(
                f"Unexpected face encoding dimension: {encoding.shape}. "
                f"Expected: ({FACE_FEATURE_DIM},)",
                vector_shape=encoding.shape,
            )

        self.last_location = location
        if self.annotate:
            self.last_annotated_frame = draw_detection(frame, location)
        if self.on_detection is not None:
            self.on_detection(frame, location)

        logger.debug("Face detected", location=location)
        return encoding


class CameraFrameSource:
    """
    Webcam frame source using cv2.VideoCapture.

    Frames are converted from OpenCV's BGR order to the RGB order
    face_recognition expects.

    Parameters
    ----------
    camera_index : int, optional
        OpenCV device index. Defaults to config.CAMERA_INDEX.
    """

    def __init__(self, camera_index: Optional[int] = None) -> None:
        self.camera_index = (
            config.CAMERA_INDEX if camera_index is None else camera_index
        )
        self._capture: Optional[cv2.VideoCapture] = None

    def open(self) -> None:
        if self._capture is not None:
            return

        capture = cv2.VideoCapture(self.camera_index)
        if not capture.isOpened():
            capture.release()
            raise CaptureSourceError(
                "Camera access error", source=f"camera:{self.camera_index}"
            )

        self._capture = capture
        logger.info("Camera opened", camera_index=self.camera_index)

    def close(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info("Camera released", camera_index=self.camera_index)

    def __enter__(self) -> "CameraFrameSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def read(self) -> Optional[np.ndarray]:
        self.open()
        ok, frame = await asyncio.to_thread(self._capture.read)
        if not ok or frame is None:
            logger.debug("Camera returned no frame")
            return None
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)


class ImageFileFrameSource:
    """
    Frame source serving one still image on every read.

    Parameters
    ----------
    image_path : str or Path
        Path to the image file.

    Raises
    ------
    CaptureSourceError
        If the image file does not exist.
    """

    def __init__(self, image_path) -> None:
        self.image_path = Path(image_path)
        if not self.image_path.exists():
            raise CaptureSourceError(
                f"Image file not found: {self.image_path}", source=str(self.image_path)
            )
        self._image: Optional[np.ndarray] = None

    async def read(self) -> np.ndarray:
        if self._image is None:
            self._image = await asyncio.to_thread(
                face_recognition.load_image_file, str(self.image_path)
            )
            logger.debug(
                "Image loaded", image_path=str(self.image_path), shape=self._image.shape
            )
        return self._image
