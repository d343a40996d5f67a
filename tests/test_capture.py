"""
Test cases for serialised capture and detection.
"""

import asyncio

import pytest

from zkface.capture import FaceCapture
from zkface.exceptions import CaptureSourceError, NoFaceDetectedError

from conftest import ListFrameSource, ScriptedDetector


def test_capture_features_returns_detected_vector(sample_features):
    capture = FaceCapture(ListFrameSource(), ScriptedDetector([sample_features]))
    assert asyncio.run(capture.capture_features()) == sample_features


def test_capture_features_without_face():
    capture = FaceCapture(ListFrameSource(), ScriptedDetector([None]))

    with pytest.raises(NoFaceDetectedError) as exc_info:
        asyncio.run(capture.capture_features())

    assert exc_info.value.error_code == "MATCH_001"


def test_missing_frame_is_treated_as_no_face():
    detector = ScriptedDetector([[0.1]])
    capture = FaceCapture(ListFrameSource(frames=[]), detector)

    assert asyncio.run(capture.probe()) is False
    assert detector.frames_seen == []


def test_detector_exception_is_treated_as_no_face():
    capture = FaceCapture(ListFrameSource(), ScriptedDetector([ValueError("bad frame")]))
    assert asyncio.run(capture.probe()) is False


def test_frame_source_errors_propagate():
    class BrokenSource:
        async def read(self):
            raise CaptureSourceError("Camera access error", source="camera:0")

    capture = FaceCapture(BrokenSource(), ScriptedDetector([]))

    with pytest.raises(CaptureSourceError):
        asyncio.run(capture.capture_features())


def test_capture_access_is_serialised(sample_features):
    """Concurrent probes never overlap inside the detector."""
    state = {"active": 0, "max_active": 0}

    class SlowDetector:
        async def detect(self, frame):
            state["active"] += 1
            state["max_active"] = max(state["max_active"], state["active"])
            await asyncio.sleep(0.01)
            state["active"] -= 1
            return sample_features

    capture = FaceCapture(ListFrameSource(), SlowDetector())

    async def scenario():
        return await asyncio.gather(*(capture.probe() for _ in range(4)))

    assert asyncio.run(scenario()) == [True] * 4
    assert state["max_active"] == 1
