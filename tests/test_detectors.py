from types import SimpleNamespace

import numpy as np
import pytest

from smartform.common.frames import PoseLandmark as L
from smartform.counter.detectors import MediaPipePoseDetector, hand_frame_from_landmarks, pose_frame_from_landmarks

from builders import pinch_hand


def lm(x, y, visibility=None, z=0.0):
    if visibility is None:
        return SimpleNamespace(x=x, y=y, z=z)
    return SimpleNamespace(x=x, y=y, z=z, visibility=visibility)


def test_pose_landmarks_scaled_to_pixels():
    marks = [lm(0.0, 0.0, 0.1)] * 33
    marks[L.RIGHT_ELBOW] = lm(0.5, 0.25, 0.8)
    frame = pose_frame_from_landmarks(marks, 640, 480, mirrored=True)
    elbow = frame.get(L.RIGHT_ELBOW)
    assert (elbow.x, elbow.y, elbow.confidence) == (320.0, 120.0, 0.8)
    assert frame.mirrored and len(frame.points) == 33


def test_missing_visibility_means_fully_visible():
    frame = pose_frame_from_landmarks([lm(0.1, 0.1)], 100, 100)
    assert frame.get(0).confidence == 1.0


def test_hand_landmarks_keep_normalized_coords():
    hand = pinch_hand()
    marks = [[lm(p.x, p.y, z=-0.02) for p in hand.landmarks]]
    cls = [SimpleNamespace(label="Left", score=0.93)]
    frame = hand_frame_from_landmarks(marks, cls, 640, 480, timestamp_ms=1234)
    assert frame.timestamp_ms == 1234
    (h,) = frame.hands
    assert h.handedness == "Left" and h.score == 0.93
    assert h.complete
    assert h.landmarks[4].x == hand.landmarks[4].x
    assert h.landmarks[4].z == -0.02


class _FakePose:
    def __init__(self, result=None, error=None):
        self.result, self.error = result, error

    def process(self, rgb):
        if self.error:
            raise self.error
        return self.result


def _detector(fake):
    det = MediaPipePoseDetector.__new__(MediaPipePoseDetector)
    det.pose = fake
    det.mirrored = False
    return det


def test_pose_detector_failures_become_missing_frames():
    pytest.importorskip("cv2")
    img = np.zeros((48, 64, 3), dtype=np.uint8)
    assert _detector(_FakePose(error=RuntimeError("graph died"))).process(img) is None
    assert _detector(_FakePose(SimpleNamespace(pose_landmarks=None))).process(img) is None

    res = SimpleNamespace(pose_landmarks=SimpleNamespace(landmark=[lm(0.5, 0.5, 0.9)]))
    frame = _detector(_FakePose(res)).process(img)
    assert (frame.image_width, frame.image_height) == (64, 48)
    assert frame.get(0).x == 32.0
