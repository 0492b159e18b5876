from __future__ import annotations
import logging
from typing import Any, Optional, Sequence

import numpy as np

from smartform.common.frames import Hand, HandFrame, HandPoint, Keypoint, PoseFrame, Rect

logger = logging.getLogger(__name__)


def pose_frame_from_landmarks(
    landmarks: Sequence[Any],
    width: int,
    height: int,
    crop_rect: Optional[Rect] = None,
    rotation_degrees: int = 0,
    mirrored: bool = False,
) -> PoseFrame:
    """Normalized pose landmarks (x, y, visibility) → pixel-space PoseFrame."""
    points = {}
    for idx, lm in enumerate(landmarks):
        points[idx] = Keypoint(
            x=float(lm.x) * width,
            y=float(lm.y) * height,
            confidence=float(getattr(lm, "visibility", 1.0)),
        )
    return PoseFrame(
        image_width=width,
        image_height=height,
        points=points,
        crop_rect=crop_rect,
        rotation_degrees=rotation_degrees,
        mirrored=mirrored,
    )


def hand_frame_from_landmarks(
    hand_landmarks: Sequence[Sequence[Any]],
    handedness: Sequence[Any],
    width: int,
    height: int,
    timestamp_ms: int,
    mirrored: bool = False,
) -> HandFrame:
    """Per-hand normalized landmark lists plus (label, score) classifications → HandFrame."""
    hands = []
    for lms, cls in zip(hand_landmarks, handedness):
        hands.append(Hand(
            handedness=str(getattr(cls, "label", "Unknown")),
            score=float(getattr(cls, "score", 0.0)),
            landmarks=tuple(HandPoint(float(p.x), float(p.y), float(getattr(p, "z", 0.0))) for p in lms),
        ))
    return HandFrame(
        image_width=width,
        image_height=height,
        timestamp_ms=timestamp_ms,
        hands=hands,
        mirrored=mirrored,
    )


class MediaPipePoseDetector:
    """Wraps mp.solutions.pose; a failing or empty detection is just a missing frame."""

    def __init__(self, min_detection_confidence: float = 0.5, min_tracking_confidence: float = 0.5, mirrored: bool = False):
        import mediapipe as mp

        self.mirrored = mirrored
        self.pose = mp.solutions.pose.Pose(
            static_image_mode=False,
            model_complexity=1,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )

    def process(self, frame_bgr: np.ndarray) -> Optional[PoseFrame]:
        import cv2

        try:
            h, w = frame_bgr.shape[:2]
            res = self.pose.process(cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB))
        except Exception as e:
            logger.warning("pose detector failed: %s", e)
            return None
        if not res.pose_landmarks:
            return None
        return pose_frame_from_landmarks(res.pose_landmarks.landmark, w, h, mirrored=self.mirrored)

    def close(self) -> None:
        self.pose.close()


class MediaPipeHandDetector:
    """Wraps mp.solutions.hands, up to two hands per frame."""

    def __init__(self, min_detection_confidence: float = 0.5, min_tracking_confidence: float = 0.5, mirrored: bool = False):
        import mediapipe as mp

        self.mirrored = mirrored
        self.hands = mp.solutions.hands.Hands(
            static_image_mode=False,
            max_num_hands=2,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )

    def process(self, frame_bgr: np.ndarray, timestamp_ms: int) -> Optional[HandFrame]:
        import cv2

        try:
            h, w = frame_bgr.shape[:2]
            res = self.hands.process(cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB))
        except Exception as e:
            logger.warning("hand detector failed: %s", e)
            return None
        if not res.multi_hand_landmarks:
            return None
        handedness = [h.classification[0] for h in (res.multi_handedness or [])]
        return hand_frame_from_landmarks(
            [hl.landmark for hl in res.multi_hand_landmarks], handedness, w, h, timestamp_ms, mirrored=self.mirrored,
        )

    def close(self) -> None:
        self.hands.close()
