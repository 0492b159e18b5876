from __future__ import annotations
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Optional, Tuple

from smartform.common.events import ExerciseMode
from smartform.counter.pipeline import CalibrationProfile, RepThresholds

logger = logging.getLogger(__name__)

MIN_RANGE_DEG = 15.0
MARGIN_FRACTION = 0.15

# (up range, down range) each as (lo, hi) degrees
_CLAMPS: Dict[ExerciseMode, Tuple[Tuple[float, float], Tuple[float, float]]] = {
    ExerciseMode.CURL: ((20.0, 140.0), (80.0, 180.0)),
    ExerciseMode.SQUAT: ((80.0, 180.0), (40.0, 160.0)),
    ExerciseMode.PUSHUP: ((80.0, 180.0), (40.0, 160.0)),
}


class CalibrationStep(str, Enum):
    BASELINE_UP = "BASELINE_UP"       # standing / plank-top / arm-curled
    BASELINE_DOWN = "BASELINE_DOWN"   # squat-bottom / pushup-bottom / arm-extended


@dataclass(frozen=True)
class CalibrationState:
    active: bool = False
    mode: ExerciseMode = ExerciseMode.SQUAT
    step: CalibrationStep = CalibrationStep.BASELINE_UP
    captured_up_angle: Optional[float] = None
    captured_down_angle: Optional[float] = None
    message: str = ""


def _clamp(v: float, bounds: Tuple[float, float]) -> float:
    return max(bounds[0], min(bounds[1], v))


def derive_thresholds(mode: ExerciseMode, up: float, down: float) -> RepThresholds:
    """Pull both thresholds inward from the captured extremes by a margin."""
    hi, lo = max(up, down), min(up, down)
    margin = max(MIN_RANGE_DEG, hi - lo) * MARGIN_FRACTION
    up_bounds, down_bounds = _CLAMPS[mode]
    if mode is ExerciseMode.CURL:
        # curl: UP is the flexed (small) end
        down_thresh = _clamp(hi - margin, down_bounds)
        up_thresh = _clamp(lo + margin, up_bounds)
        ordered = down_thresh > up_thresh
    else:
        down_thresh = _clamp(lo + margin, down_bounds)
        up_thresh = _clamp(hi - margin, up_bounds)
        ordered = up_thresh > down_thresh
    if not ordered:
        raise ValueError(f"captured range too small: up={up:.1f} down={down:.1f}")
    return RepThresholds(down_thresh=down_thresh, up_thresh=up_thresh)


def build_calibrated_profile(existing: CalibrationProfile, mode: ExerciseMode, up: float, down: float) -> CalibrationProfile:
    return existing.with_mode(mode, derive_thresholds(mode, up, down))


class CalibrationSession:
    """Two-step capture wizard: UP pose, then DOWN pose, each on a confirmed pinch."""

    def __init__(self):
        self.state = CalibrationState()

    @property
    def active(self) -> bool:
        return self.state.active

    def start(self, mode: ExerciseMode) -> CalibrationState:
        self.state = CalibrationState(
            active=True,
            mode=mode,
            step=CalibrationStep.BASELINE_UP,
            message=f"Do UP pose for {mode.label} and pinch-hold to capture.",
        )
        logger.info("calibration started for %s", mode.value)
        return self.state

    def cancel(self, message: str = "Calibration cancelled.") -> CalibrationState:
        self.state = replace(self.state, active=False, message=message)
        return self.state

    def capture(self, angle: Optional[float], profile: CalibrationProfile) -> Optional[CalibrationProfile]:
        """Feed one capture attempt; returns the new profile once both poses are in."""
        s = self.state
        if not s.active:
            return None
        if angle is None:
            self.state = replace(s, message="No angle detected (ensure joints visible). Pinch-hold to retry.")
            return None

        if s.step is CalibrationStep.BASELINE_UP:
            self.state = replace(
                s,
                step=CalibrationStep.BASELINE_DOWN,
                captured_up_angle=angle,
                message=f"Captured UP ({angle:.0f}°). Now do DOWN pose and pinch-hold.",
            )
            logger.info("calibration %s: UP captured at %.1f°", s.mode.value, angle)
            return None

        up = s.captured_up_angle
        if up is None:
            self.state = replace(s, active=False, message="Missing UP capture, restart calibration.")
            return None
        try:
            new_profile = build_calibrated_profile(profile, s.mode, up, angle)
        except ValueError as e:
            logger.info("calibration %s: %s", s.mode.value, e)
            self.state = replace(s, message="Range too small. Go deeper and pinch-hold to retry.")
            return None
        t = new_profile.for_mode(s.mode)
        self.state = replace(
            s,
            active=False,
            captured_down_angle=angle,
            message=f"Saved calibration: UP={up:.0f}°, DOWN={angle:.0f}°",
        )
        logger.info("calibration %s: down=%.1f up=%.1f", s.mode.value, t.down_thresh, t.up_thresh)
        return new_profile
