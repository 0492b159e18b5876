from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Optional

from smartform.common.events import ExerciseMode
from smartform.counter.pipeline import RepThresholds

SHALLOW_BELOW_PCT = 70
EXCELLENT_FROM_PCT = 90
DEPTH_BONUS = 5

NO_DATA = "NO DATA"
TOO_FAST_SHALLOW = "TOO FAST + SHALLOW"
TOO_FAST = "TOO FAST"
SHALLOW = "SHALLOW"
EXCELLENT = "EXCELLENT"
GOOD = "GOOD"

TEMPO_OK = "OK"
TEMPO_FAST = "FAST"
TEMPO_SLOW = "SLOW"

_TIPS = {
    NO_DATA: "Keep more joints in frame.",
    TOO_FAST_SHALLOW: "Slow down and go deeper.",
    TOO_FAST: "Slow the tempo a bit.",
    SHALLOW: "Go deeper for a full rep.",
    EXCELLENT: "Great depth, keep it consistent.",
    GOOD: "Nice rep.",
}


@dataclass(frozen=True)
class TempoPolicy:
    min_good_tempo_ms: int
    max_good_tempo_ms: int
    tempo_penalty: int = 20    # any tempo outside the band
    fast_penalty: int = 10     # extra, on top of tempo_penalty
    slow_penalty: int = 5      # extra, on top of tempo_penalty


TEMPO_POLICIES: Dict[ExerciseMode, TempoPolicy] = {
    ExerciseMode.CURL: TempoPolicy(min_good_tempo_ms=1100, max_good_tempo_ms=6000),
    ExerciseMode.SQUAT: TempoPolicy(min_good_tempo_ms=1500, max_good_tempo_ms=7000),
    ExerciseMode.PUSHUP: TempoPolicy(min_good_tempo_ms=1500, max_good_tempo_ms=7000),
}


@dataclass(frozen=True)
class RepQuality:
    depth_pct: int
    tempo_ms: int       # time since the previous rep, 0 for the first one
    score: int
    verdict: str
    tips: str


def depth_pct(rep_angle_min: Optional[float], thresholds: RepThresholds) -> int:
    """Where the deepest (smallest) angle of the rep sits between the two thresholds.

    The larger threshold maps to 0 % and the smaller one to 100 %, which for
    squats and push-ups is up_thresh → down_thresh.
    """
    if rep_angle_min is None:
        return 0
    hi = max(thresholds.up_thresh, thresholds.down_thresh)
    lo = min(thresholds.up_thresh, thresholds.down_thresh)
    denom = max(hi - lo, 1.0)
    pct = (hi - rep_angle_min) / denom * 100.0
    return int(max(0.0, min(100.0, pct)))


def classify_tempo(tempo_ms: int, policy: TempoPolicy) -> str:
    if tempo_ms <= 0:
        return TEMPO_OK
    if tempo_ms < policy.min_good_tempo_ms:
        return TEMPO_FAST
    if tempo_ms > policy.max_good_tempo_ms:
        return TEMPO_SLOW
    return TEMPO_OK


def build_score(depth: int, tempo: str, policy: TempoPolicy) -> int:
    s = depth
    if tempo != TEMPO_OK:
        s -= policy.tempo_penalty
        s -= policy.fast_penalty if tempo == TEMPO_FAST else policy.slow_penalty
    elif depth >= EXCELLENT_FROM_PCT:
        s += DEPTH_BONUS
    return max(0, min(100, s))


def evaluate(
    mode: ExerciseMode,
    rep_angle_min: Optional[float],
    thresholds: RepThresholds,
    tempo_ms: int,
    policy: Optional[TempoPolicy] = None,
) -> RepQuality:
    policy = policy or TEMPO_POLICIES[mode]
    tempo_ms = max(0, int(tempo_ms))

    depth = depth_pct(rep_angle_min, thresholds)
    tempo = classify_tempo(tempo_ms, policy)
    too_fast = tempo == TEMPO_FAST
    deep_enough = depth >= SHALLOW_BELOW_PCT

    if rep_angle_min is None:
        verdict = NO_DATA
    elif too_fast and not deep_enough:
        verdict = TOO_FAST_SHALLOW
    elif too_fast:
        verdict = TOO_FAST
    elif not deep_enough:
        verdict = SHALLOW
    elif depth >= EXCELLENT_FROM_PCT and tempo == TEMPO_OK:
        verdict = EXCELLENT
    else:
        verdict = GOOD

    score = 0 if verdict == NO_DATA else build_score(depth, tempo, policy)
    tips = _TIPS[verdict]
    if verdict == GOOD and tempo == TEMPO_SLOW:
        tips = "Keep a steady tempo."
    return RepQuality(depth_pct=depth, tempo_ms=tempo_ms, score=score, verdict=verdict, tips=tips)


@dataclass
class SessionQualityStats:
    reps: int = 0
    good: int = 0
    shallow: int = 0
    fast: int = 0
    score_sum: int = 0

    def add(self, q: RepQuality) -> None:
        self.reps += 1
        self.score_sum += q.score
        if q.verdict in (GOOD, EXCELLENT):
            self.good += 1
        elif q.verdict == SHALLOW:
            self.shallow += 1
        elif q.verdict == TOO_FAST:
            self.fast += 1
        elif q.verdict == TOO_FAST_SHALLOW:
            self.fast += 1
            self.shallow += 1

    @property
    def avg_score(self) -> int:
        return self.score_sum // self.reps if self.reps else 0
