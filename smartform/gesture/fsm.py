from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from smartform.common.events import Action, Gesture

logger = logging.getLogger(__name__)


@dataclass
class GestureConfig:
    pinch_hold_ms: int = 1000   # pinch doubles as toggle and capture, so it needs a longer hold
    palm_hold_ms: int = 750
    cooldown_ms: int = 1000     # global, shared by every fired action


@dataclass
class HoldTimer:
    active: bool = False
    start_ms: int = 0

    def arm(self, now_ms: int) -> None:
        self.active = True
        self.start_ms = now_ms

    def disarm(self) -> None:
        self.active = False

    def held_for(self, now_ms: int) -> int:
        return now_ms - self.start_ms if self.active else 0


@dataclass
class GestureDebounceState:
    pinch: HoldTimer = field(default_factory=HoldTimer)
    palm: HoldTimer = field(default_factory=HoldTimer)
    last_action_ms: Optional[int] = None
    streaks: Dict[Gesture, int] = field(default_factory=lambda: {g: 0 for g in Gesture})
    last_gesture: Gesture = Gesture.NONE

    @property
    def armed(self) -> bool:
        return self.pinch.active or self.palm.active


class GestureFSM:
    """
    Turns a flickery per-frame gesture stream into one action per deliberate hold.

    A gesture arms on its first frame once the cooldown has cleared and fires
    when it is still showing `hold_ms` later. Seeing the other gesture, no
    gesture, or an uncleared cooldown disarms it.
    """

    def __init__(self, cfg: Optional[GestureConfig] = None, debug_cb: Optional[Callable[[str], None]] = None):
        self.cfg = cfg or GestureConfig()
        self.state = GestureDebounceState()
        self._dbg = debug_cb or (lambda *_: None)

    def cooldown_clear(self, now_ms: int) -> bool:
        last = self.state.last_action_ms
        return last is None or (now_ms - last) >= self.cfg.cooldown_ms

    def _track_streak(self, gesture: Gesture) -> None:
        s = self.state
        for g in s.streaks:
            s.streaks[g] = s.streaks[g] + 1 if g is gesture else 0
        s.last_gesture = gesture

    def _hold(self, timer: HoldTimer, hold_ms: int, now_ms: int) -> bool:
        if not timer.active:
            timer.arm(now_ms)
            return False
        return timer.held_for(now_ms) >= hold_ms

    def _fire(self, timer: HoldTimer, action: Action, now_ms: int) -> Action:
        timer.disarm()
        self.state.last_action_ms = now_ms
        self._dbg(f"gesture→{action.value}")
        logger.info("gesture action fired: %s", action.value)
        return action

    def step(self, gesture: Gesture, now_ms: int, running: bool, calibrating: bool) -> Action:
        s = self.state
        self._track_streak(gesture)

        if gesture is Gesture.PINCH:
            s.palm.disarm()
            if not self.cooldown_clear(now_ms):
                s.pinch.disarm()
                return Action.NONE
            if self._hold(s.pinch, self.cfg.pinch_hold_ms, now_ms):
                return self._fire(s.pinch, Action.CAPTURE if calibrating else Action.TOGGLE_RUN, now_ms)
            return Action.NONE

        if gesture is Gesture.OPEN_PALM:
            s.pinch.disarm()
            # mode switching is only allowed while idle
            if running or calibrating or not self.cooldown_clear(now_ms):
                s.palm.disarm()
                return Action.NONE
            if self._hold(s.palm, self.cfg.palm_hold_ms, now_ms):
                return self._fire(s.palm, Action.SWITCH_MODE, now_ms)
            return Action.NONE

        s.pinch.disarm()
        s.palm.disarm()
        return Action.NONE
