from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ExerciseMode(str, Enum):
    CURL = "curl"
    SQUAT = "squat"
    PUSHUP = "pushup"

    def next(self) -> "ExerciseMode":
        order = list(ExerciseMode)
        return order[(order.index(self) + 1) % len(order)]

    @property
    def label(self) -> str:
        return {
            ExerciseMode.CURL: "Curl",
            ExerciseMode.SQUAT: "Squat",
            ExerciseMode.PUSHUP: "Push-up",
        }[self]


class Phase(str, Enum):
    IDLE = "IDLE"
    UP = "UP"
    DOWN = "DOWN"


class Gesture(str, Enum):
    NONE = "none"
    PINCH = "pinch"
    OPEN_PALM = "open_palm"


class Action(str, Enum):
    NONE = "none"
    TOGGLE_RUN = "toggle_run"
    SWITCH_MODE = "switch_mode"
    CAPTURE = "capture"


class EventType(str, Enum):
    SESSION_STARTED = "session_started"
    SESSION_PAUSED = "session_paused"
    MODE_SWITCHED = "mode_switched"
    REP = "rep"
    CALIBRATION = "calibration"
    GESTURE = "gesture"


@dataclass
class SessionEvent:
    type: EventType
    mode: ExerciseMode
    ts_ms: int
    running: bool
    count: int = 0


@dataclass
class RepEvent:
    type: EventType
    mode: ExerciseMode
    ts_ms: int
    rep_count: int
    depth_pct: int
    tempo_ms: int
    score: int
    verdict: str
    tips: str = ""


@dataclass
class GestureEvent:
    type: EventType
    ts_ms: int
    gesture: Gesture
    action: Action
    label: str = ""


@dataclass
class CalibrationEvent:
    type: EventType
    ts_ms: int
    mode: ExerciseMode
    step: str
    message: str
    up_thresh: Optional[float] = None
    down_thresh: Optional[float] = None
