from __future__ import annotations
import logging
import sqlite3
import threading
from dataclasses import asdict, dataclass
from typing import Callable, Optional

from smartform.calibration.session import CalibrationSession, CalibrationState
from smartform.common.config import Settings, load_settings
from smartform.common.events import (
    Action, CalibrationEvent, EventType, ExerciseMode, Gesture, GestureEvent, Phase, RepEvent, SessionEvent,
)
from smartform.common.frames import HandFrame, PoseFrame
from smartform.counter import posture
from smartform.counter.pipeline import CalibrationProfile, RepConfig, RepCounter, RepResult, monotonic_ms
from smartform.counter.quality import RepQuality, SessionQualityStats, evaluate
from smartform.data.db import CalibrationStore
from smartform.gesture import detector
from smartform.gesture.fsm import GestureConfig, GestureFSM

logger = logging.getLogger(__name__)


@dataclass
class SessionStatus:
    mode: ExerciseMode
    running: bool
    reps: int
    phase: Phase
    calibrating: bool
    calibration_message: str
    avg_score: int
    good: int
    shallow: int
    fast: int
    last_quality: Optional[RepQuality] = None


@dataclass
class CommandResult:
    gesture: Gesture
    action: Action
    profile: Optional[CalibrationProfile] = None   # set when a calibration just completed
    label: str = ""


class SessionController:
    """
    Explicit session context: run state, mode, profile and the three reducers.

    Pose and hand streams may be driven from different threads; everything that
    touches shared session state runs under one lock.
    """

    def __init__(
        self,
        store: Optional[CalibrationStore] = None,
        settings: Optional[Settings] = None,
        rep_cfg: Optional[RepConfig] = None,
        gesture_cfg: Optional[GestureConfig] = None,
        clock: Callable[[], int] = monotonic_ms,
    ):
        self.settings = settings or load_settings()
        self.store = store
        self.clock = clock
        self.profile = store.load() if store is not None else CalibrationProfile()

        self.running = False
        self.mode = ExerciseMode.CURL
        self.counter = RepCounter(rep_cfg, debug_cb=self._trace)
        self.gestures = GestureFSM(gesture_cfg, debug_cb=self._trace)
        self.calibration = CalibrationSession()

        self.last_result = RepResult(reps=0, phase=Phase.IDLE)
        self.last_posture = posture.evaluate(None)
        self.last_quality: Optional[RepQuality] = None
        self.stats = SessionQualityStats()
        self._last_pose_frame: Optional[PoseFrame] = None
        self._last_pose_ms: Optional[int] = None
        self._rep_angle_min: Optional[float] = None
        self._last_rep_ms: Optional[int] = None

        self._lock = threading.RLock()
        self._event_sink: Optional[Callable[[dict], None]] = None

    def set_event_sink(self, sink: Optional[Callable[[dict], None]]):
        self._event_sink = sink

    def _emit(self, event) -> None:
        if self._event_sink is None:
            return
        payload = event if isinstance(event, dict) else asdict(event)
        try:
            self._event_sink(payload)
        except Exception:
            logger.debug("event sink failed for %s", payload.get("type"), exc_info=True)

    def _trace(self, msg: str) -> None:
        self._emit({"type": "trace", "msg": msg})

    def _now(self, now_ms: Optional[int]) -> int:
        return self.clock() if now_ms is None else int(now_ms)

    # ----- pose stream -----

    def on_pose_frame(self, frame: Optional[PoseFrame], now_ms: Optional[int] = None) -> RepResult:
        with self._lock:
            now = self._now(now_ms)
            self._last_pose_frame = frame
            self._last_pose_ms = now
            self.last_posture = posture.evaluate(frame)

            credit = self.running
            if self.settings.require_good_posture and not self.last_posture.ok:
                credit = False

            result = self.counter.update(self.mode, frame, credit, self.profile, now)
            if self.running and result.angle is not None:
                a = result.angle
                self._rep_angle_min = a if self._rep_angle_min is None else min(self._rep_angle_min, a)

            if result.rep_completed:
                self._score_rep(result, now)
            self.last_result = result
            return result

    def _score_rep(self, result: RepResult, now: int) -> None:
        tempo = 0 if self._last_rep_ms is None else now - self._last_rep_ms
        self._last_rep_ms = now
        q = evaluate(self.mode, self._rep_angle_min, self.profile.for_mode(self.mode), tempo)
        self.last_quality = q
        self.stats.add(q)
        self._rep_angle_min = None
        logger.info("%s rep %d: %s score=%d depth=%d%% tempo=%dms",
                    self.mode.value, result.reps, q.verdict, q.score, q.depth_pct, q.tempo_ms)
        self._emit(RepEvent(
            type=EventType.REP, mode=self.mode, ts_ms=now, rep_count=result.reps,
            depth_pct=q.depth_pct, tempo_ms=q.tempo_ms, score=q.score, verdict=q.verdict, tips=q.tips,
        ))

    # ----- hand stream -----

    def on_hand_frame(self, frame: Optional[HandFrame], now_ms: Optional[int] = None) -> CommandResult:
        with self._lock:
            now = self._now(now_ms)
            fresh = frame if detector.is_fresh(frame, now, self.settings.hand_max_age_ms) else None
            gesture = detector.detect(
                fresh,
                min_hand_score=self.settings.min_hand_score,
                min_palm_area=self.settings.min_palm_area,
            )
            action = self.gestures.step(gesture, now, self.running, self.calibration.active)
            return self._apply(gesture, action, now)

    def _apply(self, gesture: Gesture, action: Action, now: int) -> CommandResult:
        if action is Action.NONE:
            return CommandResult(gesture=gesture, action=action)

        profile = None
        if action is Action.TOGGLE_RUN:
            self.toggle_running(now)
            label = f"Pinch → {'Start' if self.running else 'Stop'}"
        elif action is Action.SWITCH_MODE:
            self._switch_mode(now)
            label = f"Palm → {self.mode.label}"
        elif action is Action.CAPTURE:
            profile = self._capture(now)
            label = "Pinch → Capture"
        else:
            raise ValueError(f"unhandled action: {action!r}")

        self._emit(GestureEvent(type=EventType.GESTURE, ts_ms=now, gesture=gesture, action=action, label=label))
        return CommandResult(gesture=gesture, action=action, profile=profile, label=label)

    # ----- commands -----

    def toggle_running(self, now_ms: Optional[int] = None) -> bool:
        with self._lock:
            now = self._now(now_ms)
            self.running = not self.running
            if self.running:
                # tempo restarts after a pause
                self._last_rep_ms = None
                self._rep_angle_min = None
                if self.calibration.active:
                    self.calibration.cancel("Calibration cancelled: session started.")
            logger.info("session %s", "running" if self.running else "paused")
            self._emit(SessionEvent(
                type=EventType.SESSION_STARTED if self.running else EventType.SESSION_PAUSED,
                mode=self.mode, ts_ms=now, running=self.running, count=self.counter.reps(self.mode),
            ))
            return self.running

    def switch_mode(self, mode: Optional[ExerciseMode] = None, now_ms: Optional[int] = None) -> bool:
        """Advance (or jump) to another exercise; refused while running or calibrating."""
        with self._lock:
            if self.running or self.calibration.active:
                return False
            self._switch_mode(self._now(now_ms), mode)
            return True

    def _switch_mode(self, now: int, mode: Optional[ExerciseMode] = None) -> None:
        self.mode = mode or self.mode.next()
        self._reset_tracking()
        logger.info("mode switched to %s", self.mode.value)
        self._emit(SessionEvent(type=EventType.MODE_SWITCHED, mode=self.mode, ts_ms=now, running=self.running))

    def reset(self) -> None:
        with self._lock:
            self._reset_tracking()

    def _reset_tracking(self) -> None:
        self.counter.reset()
        self.last_result = RepResult(reps=0, phase=Phase.IDLE)
        self.last_quality = None
        self.stats = SessionQualityStats()
        self._rep_angle_min = None
        self._last_rep_ms = None

    # ----- calibration -----

    def start_calibration(self) -> CalibrationState:
        with self._lock:
            if self.running:
                return self.calibration.state
            state = self.calibration.start(self.mode)
            self._emit_calibration(self._now(None))
            return state

    def cancel_calibration(self) -> CalibrationState:
        with self._lock:
            return self.calibration.cancel()

    def reset_calibration(self) -> CalibrationProfile:
        with self._lock:
            if self.store is not None:
                try:
                    self.store.reset_to_defaults()
                except sqlite3.Error:
                    logger.exception("could not reset stored calibration")
            self.profile = CalibrationProfile()
            self.calibration.cancel("Reset calibration to defaults.")
            return self.profile

    def _capture(self, now: int) -> Optional[CalibrationProfile]:
        mode = self.calibration.state.mode
        frame = self._last_pose_frame
        if self._last_pose_ms is None or (now - self._last_pose_ms) >= self.settings.pose_max_age_ms:
            frame = None
        angle = self.counter.current_primary_angle(mode, frame)
        new_profile = self.calibration.capture(angle, self.profile)
        if new_profile is not None:
            self.profile = new_profile
            if self.store is not None:
                try:
                    self.store.save(new_profile)
                except sqlite3.Error:
                    logger.exception("could not persist calibration, keeping it for this session only")
        self._emit_calibration(now)
        return new_profile

    def _emit_calibration(self, now: int) -> None:
        s = self.calibration.state
        t = self.profile.for_mode(s.mode)
        self._emit(CalibrationEvent(
            type=EventType.CALIBRATION, ts_ms=now, mode=s.mode, step=s.step.value, message=s.message,
            up_thresh=t.up_thresh, down_thresh=t.down_thresh,
        ))

    def status(self) -> SessionStatus:
        with self._lock:
            return SessionStatus(
                mode=self.mode,
                running=self.running,
                reps=self.counter.reps(self.mode),
                phase=self.last_result.phase,
                calibrating=self.calibration.active,
                calibration_message=self.calibration.state.message,
                avg_score=self.stats.avg_score,
                good=self.stats.good,
                shallow=self.stats.shallow,
                fast=self.stats.fast,
                last_quality=self.last_quality,
            )
