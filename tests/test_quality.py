import pytest

from smartform.common.events import ExerciseMode
from smartform.counter.pipeline import CalibrationProfile, RepThresholds
from smartform.counter import quality
from smartform.counter.quality import (
    EXCELLENT, GOOD, NO_DATA, SHALLOW, TOO_FAST, TOO_FAST_SHALLOW, SessionQualityStats, TempoPolicy,
    classify_tempo, depth_pct, evaluate,
)

SQUAT = CalibrationProfile().squat   # down=115, up=165
CURL = CalibrationProfile().curl     # down=150, up=70


def test_depth_interpolates_between_thresholds():
    assert depth_pct(165.0, SQUAT) == 0
    assert depth_pct(115.0, SQUAT) == 100
    assert depth_pct(140.0, SQUAT) == 50
    assert depth_pct(180.0, SQUAT) == 0
    assert depth_pct(60.0, SQUAT) == 100
    assert depth_pct(None, SQUAT) == 0


def test_curl_depth_measures_flexion():
    assert depth_pct(70.0, CURL) == 100
    assert depth_pct(150.0, CURL) == 0


def test_depth_denominator_floor():
    t = RepThresholds(down_thresh=100.0, up_thresh=100.5)
    assert 0 <= depth_pct(100.2, t) <= 100


def test_tempo_classification():
    policy = quality.TEMPO_POLICIES[ExerciseMode.SQUAT]
    assert classify_tempo(0, policy) == quality.TEMPO_OK
    assert classify_tempo(900, policy) == quality.TEMPO_FAST
    assert classify_tempo(2000, policy) == quality.TEMPO_OK
    assert classify_tempo(9000, policy) == quality.TEMPO_SLOW


def test_too_fast_beats_excellent_depth():
    fast = evaluate(ExerciseMode.SQUAT, 117.0, SQUAT, tempo_ms=800)
    steady = evaluate(ExerciseMode.SQUAT, 117.0, SQUAT, tempo_ms=2000)
    assert fast.depth_pct >= 90
    assert fast.verdict == TOO_FAST
    assert steady.verdict == EXCELLENT
    assert fast.score < steady.score
    assert fast.score < fast.depth_pct


def test_verdict_priority():
    assert evaluate(ExerciseMode.SQUAT, None, SQUAT, 800).verdict == NO_DATA
    assert evaluate(ExerciseMode.SQUAT, 150.0, SQUAT, 800).verdict == TOO_FAST_SHALLOW
    assert evaluate(ExerciseMode.SQUAT, 150.0, SQUAT, 2000).verdict == SHALLOW
    assert evaluate(ExerciseMode.SQUAT, 128.0, SQUAT, 2000).verdict == GOOD
    assert evaluate(ExerciseMode.SQUAT, 115.0, SQUAT, 0).verdict == EXCELLENT


def test_first_rep_has_no_tempo_effect():
    q = evaluate(ExerciseMode.PUSHUP, 100.0, CalibrationProfile().pushup, tempo_ms=0)
    assert q.tempo_ms == 0
    assert q.verdict == EXCELLENT
    assert q.score == 100


def test_slow_rep_is_penalised_but_not_excellent():
    q = evaluate(ExerciseMode.SQUAT, 115.0, SQUAT, tempo_ms=10_000)
    assert q.verdict == GOOD
    assert q.score < 100


def test_score_stays_in_range():
    for angle in (None, 20.0, 90.0, 115.0, 130.0, 165.0, 200.0):
        for tempo in (0, 1, 300, 1499, 1500, 6999, 50_000):
            q = evaluate(ExerciseMode.SQUAT, angle, SQUAT, tempo)
            assert 0 <= q.score <= 100
            assert q.tips


def test_custom_policy_table():
    lenient = TempoPolicy(min_good_tempo_ms=500, max_good_tempo_ms=10_000)
    assert evaluate(ExerciseMode.SQUAT, 115.0, SQUAT, 800, policy=lenient).verdict == EXCELLENT


def test_session_stats():
    stats = SessionQualityStats()
    stats.add(evaluate(ExerciseMode.SQUAT, 115.0, SQUAT, 0))
    stats.add(evaluate(ExerciseMode.SQUAT, 150.0, SQUAT, 800))
    stats.add(evaluate(ExerciseMode.SQUAT, 150.0, SQUAT, 2000))
    assert stats.reps == 3
    assert stats.good == 1
    assert stats.shallow == 2
    assert stats.fast == 1
    assert stats.avg_score == pytest.approx(stats.score_sum // 3)
