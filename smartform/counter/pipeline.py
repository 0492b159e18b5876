from __future__ import annotations
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Optional

from smartform.common.events import ExerciseMode, Phase
from smartform.common.frames import PoseFrame
from smartform.counter.pose_core import DEFAULT_MIN_CONFIDENCE, primary_angle
from smartform.counter.smoothing import DEFAULT_ALPHA, Ema

logger = logging.getLogger(__name__)


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


@dataclass(frozen=True)
class RepThresholds:
    # CURL: down = extended (large angle), up = flexed (small angle)
    # SQUAT/PUSHUP: down = bent (small angle), up = extended (large angle)
    down_thresh: float
    up_thresh: float

    def __post_init__(self):
        if abs(self.down_thresh - self.up_thresh) < 1e-9:
            raise ValueError(f"thresholds must differ, got {self.down_thresh} for both")


@dataclass(frozen=True)
class CalibrationProfile:
    curl: RepThresholds = RepThresholds(down_thresh=150.0, up_thresh=70.0)
    squat: RepThresholds = RepThresholds(down_thresh=115.0, up_thresh=165.0)
    pushup: RepThresholds = RepThresholds(down_thresh=100.0, up_thresh=165.0)

    def for_mode(self, mode: ExerciseMode) -> RepThresholds:
        if mode is ExerciseMode.CURL:
            return self.curl
        if mode is ExerciseMode.SQUAT:
            return self.squat
        if mode is ExerciseMode.PUSHUP:
            return self.pushup
        raise ValueError(f"unknown exercise mode: {mode!r}")

    def with_mode(self, mode: ExerciseMode, thresholds: RepThresholds) -> "CalibrationProfile":
        if mode is ExerciseMode.CURL:
            return replace(self, curl=thresholds)
        if mode is ExerciseMode.SQUAT:
            return replace(self, squat=thresholds)
        if mode is ExerciseMode.PUSHUP:
            return replace(self, pushup=thresholds)
        raise ValueError(f"unknown exercise mode: {mode!r}")


@dataclass
class RepConfig:
    ema_alpha: float = DEFAULT_ALPHA
    min_gap_ms: int = 450         # fastest accepted DOWN<->UP flip
    confirm_frames: int = 3       # consecutive qualifying frames per transition
    enter_pad: float = 6.0        # deg beyond down_thresh to enter DOWN
    exit_pad: float = 6.0         # deg of slack on up_thresh to return UP
    min_confidence: float = DEFAULT_MIN_CONFIDENCE


@dataclass
class RepCounterState:
    reps: int = 0
    phase: Phase = Phase.IDLE
    in_down: bool = False
    ema: Ema = field(default_factory=Ema)
    last_transition_ms: Optional[int] = None
    streak: int = 0


@dataclass
class RepResult:
    reps: int
    phase: Phase
    angle: Optional[float] = None         # EMA-smoothed primary angle
    raw_angle: Optional[float] = None
    want_down: Optional[bool] = None
    want_up: Optional[bool] = None
    down_thresh: Optional[float] = None
    up_thresh: Optional[float] = None
    down_enter: Optional[float] = None    # down_thresh with hysteresis applied
    up_exit: Optional[float] = None       # up_thresh with hysteresis applied
    in_down: bool = False
    streak: int = 0
    can_move: Optional[bool] = None
    rep_completed: bool = False
    debug: str = ""

    @property
    def has_data(self) -> bool:
        return self.angle is not None


def hysteresis_bounds(mode: ExerciseMode, thresholds: RepThresholds, cfg: RepConfig):
    """Return (down_enter, up_exit) for ``mode``.

    Entering DOWN needs a bit more than down_thresh; returning UP is allowed
    a bit short of up_thresh.
    """
    if mode is ExerciseMode.CURL:
        return thresholds.down_thresh + cfg.enter_pad, thresholds.up_thresh + cfg.exit_pad
    return thresholds.down_thresh - cfg.enter_pad, thresholds.up_thresh - cfg.exit_pad


def is_beyond_down(mode: ExerciseMode, angle: float, down_enter: float) -> bool:
    return angle > down_enter if mode is ExerciseMode.CURL else angle < down_enter


def is_beyond_up(mode: ExerciseMode, angle: float, up_exit: float) -> bool:
    return angle < up_exit if mode is ExerciseMode.CURL else angle > up_exit


class RepCounter:
    """
    Per-mode hysteresis rep counter:
      IDLE → UP ⇄ DOWN, rep++ on a confirmed DOWN→UP while running.
    Every transition needs `confirm_frames` consecutive qualifying frames and
    at least `min_gap_ms` since the previous accepted transition.
    """

    def __init__(self, cfg: Optional[RepConfig] = None, debug_cb: Optional[Callable[[str], None]] = None):
        self.cfg = cfg or RepConfig()
        self._dbg = debug_cb or (lambda *_: None)
        self._states: Dict[ExerciseMode, RepCounterState] = {}

    def state_for(self, mode: ExerciseMode) -> RepCounterState:
        s = self._states.get(mode)
        if s is None:
            s = RepCounterState(ema=Ema(self.cfg.ema_alpha))
            self._states[mode] = s
        return s

    def reset(self, mode: Optional[ExerciseMode] = None) -> None:
        if mode is None:
            self._states.clear()
        else:
            self._states.pop(mode, None)

    def reps(self, mode: ExerciseMode) -> int:
        s = self._states.get(mode)
        return s.reps if s else 0

    def current_primary_angle(self, mode: ExerciseMode, frame: Optional[PoseFrame]) -> Optional[float]:
        return primary_angle(mode, frame, self.cfg.min_confidence)

    def _enter_phase(self, mode: ExerciseMode, s: RepCounterState, phase: Phase):
        if phase != s.phase:
            s.phase = phase
            self._dbg(f"{mode.value}: state→{phase.value}")

    def update(
        self,
        mode: ExerciseMode,
        frame: Optional[PoseFrame],
        running: bool,
        profile: CalibrationProfile,
        now_ms: Optional[int] = None,
    ) -> RepResult:
        s = self.state_for(mode)

        if frame is None:
            return RepResult(reps=s.reps, phase=s.phase, in_down=s.in_down, streak=s.streak, debug="no-frame")

        thresholds = profile.for_mode(mode)
        down_enter, up_exit = hysteresis_bounds(mode, thresholds, self.cfg)

        raw = self.current_primary_angle(mode, frame)
        if raw is None:
            # data gap: no smoothing, no streak progress, phase carries over
            return RepResult(
                reps=s.reps,
                phase=s.phase,
                down_thresh=thresholds.down_thresh,
                up_thresh=thresholds.up_thresh,
                down_enter=down_enter,
                up_exit=up_exit,
                in_down=s.in_down,
                streak=s.streak,
                debug="missing-joints",
            )

        ema = s.ema.update(raw)
        now = monotonic_ms() if now_ms is None else int(now_ms)
        can_move = s.last_transition_ms is None or (now - s.last_transition_ms) >= self.cfg.min_gap_ms

        want_down = (not s.in_down) and is_beyond_down(mode, ema, down_enter)
        want_up = s.in_down and is_beyond_up(mode, ema, up_exit)
        completed = False

        if not s.in_down:
            if want_down and can_move:
                s.streak += 1
                if s.streak >= self.cfg.confirm_frames:
                    s.in_down = True
                    s.last_transition_ms = now
                    s.streak = 0
                    self._enter_phase(mode, s, Phase.DOWN)
                    logger.debug("%s: DOWN at %.1f° (enter=%.1f)", mode.value, ema, down_enter)
            else:
                s.streak = 0
            if s.phase is Phase.IDLE:
                self._enter_phase(mode, s, Phase.UP)
        else:
            if want_up and can_move:
                s.streak += 1
                if s.streak >= self.cfg.confirm_frames:
                    s.in_down = False
                    s.last_transition_ms = now
                    s.streak = 0
                    self._enter_phase(mode, s, Phase.UP)
                    if running:
                        s.reps += 1
                        completed = True
                        self._dbg(f"{mode.value}: rep++ → {s.reps}")
                        logger.info("%s: rep %d counted", mode.value, s.reps)
                    else:
                        logger.debug("%s: UP while paused, rep not credited", mode.value)
            else:
                s.streak = 0

        gap = "never" if s.last_transition_ms is None else f"{now - s.last_transition_ms}ms"
        return RepResult(
            reps=s.reps,
            phase=s.phase,
            angle=ema,
            raw_angle=raw,
            want_down=want_down,
            want_up=want_up,
            down_thresh=thresholds.down_thresh,
            up_thresh=thresholds.up_thresh,
            down_enter=down_enter,
            up_exit=up_exit,
            in_down=s.in_down,
            streak=s.streak,
            can_move=can_move,
            rep_completed=completed,
            debug=f"raw={raw:.0f} ema={ema:.0f} gap={gap} downEnter={down_enter:.0f} upExit={up_exit:.0f}",
        )
