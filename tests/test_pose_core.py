import pytest

from smartform.common.events import ExerciseMode
from smartform.common.frames import Keypoint, PoseFrame, PoseLandmark as L
from smartform.counter.pose_core import angle_3pt, elbow_angle, joint_angle, primary_angle

from builders import arm_frame, leg_frame


def test_right_angle():
    assert angle_3pt((0, 10), (0, 0), (10, 0)) == pytest.approx(90.0)


def test_straight_and_folded():
    assert angle_3pt((-5, 0), (0, 0), (5, 0)) == pytest.approx(180.0)
    assert angle_3pt((5, 0), (0, 0), (9, 0)) == pytest.approx(0.0, abs=1e-6)


def test_accepts_keypoints():
    a, b, c = Keypoint(0, 1, 0.9), Keypoint(0, 0, 0.9), Keypoint(1, 1, 0.9)
    assert angle_3pt(a, b, c) == pytest.approx(45.0)


def test_degenerate_vertex_returns_180_exactly():
    assert angle_3pt((3, 4), (3, 4), (10, 0)) == 180.0
    assert angle_3pt((0, 10), (3, 4), (3, 4)) == 180.0


@pytest.mark.parametrize("angle", [30.0, 75.0, 120.0, 165.0])
def test_builder_angles_round_trip(angle):
    assert elbow_angle(arm_frame(angle), right=True) == pytest.approx(angle)


def test_visibility_gate_is_strict():
    pts = {
        L.RIGHT_SHOULDER: Keypoint(0, 0, 0.9),
        L.RIGHT_ELBOW: Keypoint(0, 10, 0.44),
        L.RIGHT_WRIST: Keypoint(10, 10, 0.9),
    }
    frame = PoseFrame(640, 480, pts)
    assert joint_angle(frame, L.RIGHT_SHOULDER, L.RIGHT_ELBOW, L.RIGHT_WRIST) is None
    assert joint_angle(frame, L.RIGHT_SHOULDER, L.RIGHT_ELBOW, L.RIGHT_WRIST, min_confidence=0.4) == pytest.approx(90.0)


def test_missing_joint_is_unavailable():
    frame = PoseFrame(640, 480, {L.RIGHT_ELBOW: Keypoint(0, 0, 1.0)})
    assert joint_angle(frame, L.RIGHT_SHOULDER, L.RIGHT_ELBOW, L.RIGHT_WRIST) is None


def test_curl_uses_first_available_side():
    assert primary_angle(ExerciseMode.CURL, arm_frame(60.0, 140.0)) == pytest.approx(60.0)
    assert primary_angle(ExerciseMode.CURL, arm_frame(None, 140.0)) == pytest.approx(140.0)


def test_squat_and_pushup_average_both_sides():
    assert primary_angle(ExerciseMode.SQUAT, leg_frame(100.0, 120.0)) == pytest.approx(110.0)
    assert primary_angle(ExerciseMode.PUSHUP, arm_frame(80.0, 100.0)) == pytest.approx(90.0)
    assert primary_angle(ExerciseMode.SQUAT, leg_frame(None, 120.0)) == pytest.approx(120.0)


def test_no_side_available():
    assert primary_angle(ExerciseMode.PUSHUP, arm_frame(None, None)) is None
    assert primary_angle(ExerciseMode.CURL, arm_frame(90.0, 90.0, conf=0.2)) is None
    assert primary_angle(ExerciseMode.SQUAT, None) is None


def test_non_finite_coordinates_are_unavailable():
    nan = float("nan")
    pts = {
        L.RIGHT_SHOULDER: Keypoint(nan, 0.0, 0.9),
        L.RIGHT_ELBOW: Keypoint(0.0, 10.0, 0.9),
        L.RIGHT_WRIST: Keypoint(10.0, 10.0, 0.9),
    }
    frame = PoseFrame(640, 480, pts)
    assert joint_angle(frame, L.RIGHT_SHOULDER, L.RIGHT_ELBOW, L.RIGHT_WRIST) is None

    frame = leg_frame(100.0, 120.0)
    pts = dict(frame.points)
    pts[L.RIGHT_KNEE] = Keypoint(float("inf"), 550.0, 0.9)
    assert primary_angle(ExerciseMode.SQUAT, PoseFrame(640, 720, pts)) == pytest.approx(120.0)
