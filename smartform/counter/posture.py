from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Optional

from smartform.common.frames import PoseFrame, PoseLandmark

SHOULDER_TILT_MAX = 0.08
HIP_TILT_MAX = 0.10
TORSO_LEAN_MAX_RAD = 0.20
GOOD_POSTURE_SCORE = 80


@dataclass(frozen=True)
class PostureFeedback:
    status: str
    details: str
    score: int

    @property
    def ok(self) -> bool:
        return self.score >= GOOD_POSTURE_SCORE


def evaluate(frame: Optional[PoseFrame]) -> PostureFeedback:
    if frame is None:
        return PostureFeedback("Detecting...", "Hold still for a moment", 0)

    ls = frame.get(PoseLandmark.LEFT_SHOULDER)
    rs = frame.get(PoseLandmark.RIGHT_SHOULDER)
    if ls is None or rs is None:
        return PostureFeedback("Detecting...", "Need shoulders", 0)
    lh = frame.get(PoseLandmark.LEFT_HIP)
    rh = frame.get(PoseLandmark.RIGHT_HIP)
    if lh is None or rh is None:
        return PostureFeedback("Detecting...", "Need hips", 0)

    # tilt normalised by body width so distance to camera doesn't matter
    shoulder_tilt = (ls.y - rs.y) / max(abs(ls.x - rs.x), 1.0)
    hip_tilt = (lh.y - rh.y) / max(abs(lh.x - rh.x), 1.0)

    mid_shoulder = ((ls.x + rs.x) / 2.0, (ls.y + rs.y) / 2.0)
    mid_hip = ((lh.x + rh.x) / 2.0, (lh.y + rh.y) / 2.0)
    torso = math.atan2(mid_hip[1] - mid_shoulder[1], mid_hip[0] - mid_shoulder[0])
    lean = abs(torso - math.pi / 2.0)

    issues = []
    if abs(shoulder_tilt) > SHOULDER_TILT_MAX:
        issues.append("Right shoulder higher" if shoulder_tilt > 0 else "Left shoulder higher")
    if abs(hip_tilt) > HIP_TILT_MAX:
        issues.append("Right hip higher" if hip_tilt > 0 else "Left hip higher")
    if lean > TORSO_LEAN_MAX_RAD:
        issues.append("Torso leaning")

    score = {0: 95, 1: 80, 2: 65}.get(len(issues), 50)
    if not issues:
        return PostureFeedback("Good form", "Keep it steady", score)
    return PostureFeedback("Adjust form", " • ".join(issues), score)
