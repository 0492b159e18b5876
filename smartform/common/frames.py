from __future__ import annotations
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional, Tuple

# (left, top, right, bottom) in image pixels
Rect = Tuple[int, int, int, int]

HAND_LANDMARK_COUNT = 21


class PoseLandmark(IntEnum):
    """33-point pose numbering shared by MediaPipe Pose and ML Kit."""
    NOSE = 0
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28


class HandLandmark(IntEnum):
    WRIST = 0
    THUMB_TIP = 4
    INDEX_TIP = 8
    MIDDLE_MCP = 9
    MIDDLE_TIP = 12
    RING_TIP = 16
    PINKY_TIP = 20


@dataclass(frozen=True)
class Keypoint:
    x: float
    y: float
    confidence: float = 1.0


@dataclass(frozen=True)
class PoseFrame:
    image_width: int
    image_height: int
    points: Dict[int, Keypoint] = field(default_factory=dict)
    crop_rect: Optional[Rect] = None
    rotation_degrees: int = 0
    mirrored: bool = False

    def get(self, joint: int) -> Optional[Keypoint]:
        return self.points.get(int(joint))


@dataclass(frozen=True)
class HandPoint:
    x: float
    y: float
    z: float = 0.0


@dataclass(frozen=True)
class Hand:
    handedness: str
    score: float
    landmarks: Tuple[HandPoint, ...]

    @property
    def complete(self) -> bool:
        return len(self.landmarks) == HAND_LANDMARK_COUNT


@dataclass(frozen=True)
class HandFrame:
    image_width: int
    image_height: int
    timestamp_ms: int
    hands: List[Hand] = field(default_factory=list)
    crop_rect: Optional[Rect] = None
    rotation_degrees: int = 0
    mirrored: bool = False
