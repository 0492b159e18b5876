from __future__ import annotations
import math
from typing import Optional, Tuple, Union

from smartform.common.events import ExerciseMode
from smartform.common.frames import Keypoint, PoseFrame, PoseLandmark

PointLike = Union[Keypoint, Tuple[float, float]]

# Anything shorter than this is treated as a collapsed limb segment.
MIN_RAY_LENGTH = 1e-6
DEGENERATE_ANGLE = 180.0
DEFAULT_MIN_CONFIDENCE = 0.45

# Utility math

def _xy(p: PointLike) -> Tuple[float, float]:
    if isinstance(p, Keypoint):
        return p.x, p.y
    return float(p[0]), float(p[1])


def angle_3pt(a: PointLike, b: PointLike, c: PointLike) -> float:
    """Return angle ABC in degrees with B as vertex, in [0, 180]."""
    ax, ay = _xy(a)
    bx, by = _xy(b)
    cx, cy = _xy(c)
    abx, aby = ax - bx, ay - by
    cbx, cby = cx - bx, cy - by

    ab = math.hypot(abx, aby)
    cb = math.hypot(cbx, cby)
    if ab < MIN_RAY_LENGTH or cb < MIN_RAY_LENGTH:
        return DEGENERATE_ANGLE

    cos = (abx * cbx + aby * cby) / (ab * cb)
    cos = max(-1.0, min(1.0, cos))
    return math.degrees(math.acos(cos))


def joint_angle(
    frame: PoseFrame,
    a: int,
    b: int,
    c: int,
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
) -> Optional[float]:
    pa, pb, pc = frame.get(a), frame.get(b), frame.get(c)
    if pa is None or pb is None or pc is None:
        return None
    if min(pa.confidence, pb.confidence, pc.confidence) < min_confidence:
        return None
    if not all(math.isfinite(v) for p in (pa, pb, pc) for v in (p.x, p.y, p.confidence)):
        return None
    return angle_3pt(pa, pb, pc)


def elbow_angle(frame: PoseFrame, right: bool, min_confidence: float = DEFAULT_MIN_CONFIDENCE) -> Optional[float]:
    if right:
        return joint_angle(frame, PoseLandmark.RIGHT_SHOULDER, PoseLandmark.RIGHT_ELBOW,
                           PoseLandmark.RIGHT_WRIST, min_confidence)
    return joint_angle(frame, PoseLandmark.LEFT_SHOULDER, PoseLandmark.LEFT_ELBOW,
                       PoseLandmark.LEFT_WRIST, min_confidence)


def knee_angle(frame: PoseFrame, right: bool, min_confidence: float = DEFAULT_MIN_CONFIDENCE) -> Optional[float]:
    if right:
        return joint_angle(frame, PoseLandmark.RIGHT_HIP, PoseLandmark.RIGHT_KNEE,
                           PoseLandmark.RIGHT_ANKLE, min_confidence)
    return joint_angle(frame, PoseLandmark.LEFT_HIP, PoseLandmark.LEFT_KNEE,
                       PoseLandmark.LEFT_ANKLE, min_confidence)


def first_available(a: Optional[float], b: Optional[float]) -> Optional[float]:
    return a if a is not None else b


def average_available(a: Optional[float], b: Optional[float]) -> Optional[float]:
    if a is None:
        return b
    if b is None:
        return a
    return (a + b) / 2.0


def primary_angle(
    mode: ExerciseMode,
    frame: Optional[PoseFrame],
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
) -> Optional[float]:
    """Tracked angle for ``mode``, or None when neither side is usable.

    Curls follow one arm (right first) so a single-arm curl with the other arm
    resting is not diluted; squats and push-ups average both sides.
    """
    if frame is None:
        return None
    if mode is ExerciseMode.CURL:
        return first_available(elbow_angle(frame, True, min_confidence),
                               elbow_angle(frame, False, min_confidence))
    if mode is ExerciseMode.SQUAT:
        return average_available(knee_angle(frame, True, min_confidence),
                                 knee_angle(frame, False, min_confidence))
    if mode is ExerciseMode.PUSHUP:
        return average_available(elbow_angle(frame, True, min_confidence),
                                 elbow_angle(frame, False, min_confidence))
    raise ValueError(f"unknown exercise mode: {mode!r}")
