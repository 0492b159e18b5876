from __future__ import annotations
from typing import Optional, Sequence

import numpy as np

from smartform.common.events import Gesture
from smartform.common.frames import Hand, HandFrame, HandLandmark, HandPoint

PINCH_RATIO = 0.32        # thumb-index gap / palm size
OPEN_PALM_RATIO = 1.45    # mean tip-to-wrist / palm size
SPREAD_RATIO = 1.10       # index-pinky gap / palm size
MIN_HAND_SCORE = 0.55
MIN_PALM_AREA = 0.016     # bbox area, normalized image units
DEFAULT_MAX_AGE_MS = 200

FINGER_TIPS = (HandLandmark.INDEX_TIP, HandLandmark.MIDDLE_TIP, HandLandmark.RING_TIP, HandLandmark.PINKY_TIP)


def _xy(points: Sequence[HandPoint]) -> np.ndarray:
    return np.array([(p.x, p.y) for p in points], dtype=np.float64)


def _dist(pts: np.ndarray, i: int, j: int) -> float:
    return float(np.linalg.norm(pts[i] - pts[j]))


def bbox_area(pts: np.ndarray) -> float:
    w, h = np.maximum(pts.max(axis=0) - pts.min(axis=0), 0.0)
    return float(w * h)


def select_hand(frame: Optional[HandFrame], min_hand_score: float = MIN_HAND_SCORE) -> Optional[Hand]:
    if frame is None:
        return None
    eligible = [h for h in frame.hands if h.complete and h.score >= min_hand_score]
    if not eligible:
        return None
    return max(eligible, key=lambda h: h.score)


def is_fresh(frame: Optional[HandFrame], now_ms: int, max_age_ms: int = DEFAULT_MAX_AGE_MS) -> bool:
    return frame is not None and (now_ms - frame.timestamp_ms) < max_age_ms


def classify_hand(
    hand: Hand,
    min_palm_area: float = MIN_PALM_AREA,
    pinch_ratio: float = PINCH_RATIO,
    open_palm_ratio: float = OPEN_PALM_RATIO,
    spread_ratio: float = SPREAD_RATIO,
) -> Gesture:
    pts = _xy(hand.landmarks)
    palm = max(_dist(pts, HandLandmark.WRIST, HandLandmark.MIDDLE_MCP), 1e-6)

    # Pinch is permissive and wins outright.
    if _dist(pts, HandLandmark.THUMB_TIP, HandLandmark.INDEX_TIP) / palm < pinch_ratio:
        return Gesture.PINCH

    # Open palm is strict: big enough, fingers extended and spread.
    if bbox_area(pts) < min_palm_area:
        return Gesture.NONE
    tip_dists = np.linalg.norm(pts[list(FINGER_TIPS)] - pts[HandLandmark.WRIST], axis=1)
    extended = float(tip_dists.mean()) / palm
    spread = _dist(pts, HandLandmark.INDEX_TIP, HandLandmark.PINKY_TIP) / palm
    if extended > open_palm_ratio and spread > spread_ratio:
        return Gesture.OPEN_PALM
    return Gesture.NONE


def detect(
    frame: Optional[HandFrame],
    min_hand_score: float = MIN_HAND_SCORE,
    min_palm_area: float = MIN_PALM_AREA,
    pinch_ratio: float = PINCH_RATIO,
    open_palm_ratio: float = OPEN_PALM_RATIO,
    spread_ratio: float = SPREAD_RATIO,
) -> Gesture:
    hand = select_hand(frame, min_hand_score)
    if hand is None:
        return Gesture.NONE
    return classify_hand(hand, min_palm_area, pinch_ratio, open_palm_ratio, spread_ratio)
