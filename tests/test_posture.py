from smartform.common.frames import Keypoint, PoseFrame, PoseLandmark as L
from smartform.counter import posture

from builders import arm_frame


def torso(ls, rs, lh=(380.0, 450.0), rh=(220.0, 450.0)):
    pts = {
        L.LEFT_SHOULDER: Keypoint(*ls),
        L.RIGHT_SHOULDER: Keypoint(*rs),
        L.LEFT_HIP: Keypoint(*lh),
        L.RIGHT_HIP: Keypoint(*rh),
    }
    return PoseFrame(640, 480, pts)


def test_upright_is_good():
    fb = posture.evaluate(arm_frame(120.0))
    assert fb.status == "Good form"
    assert fb.score == 95 and fb.ok


def test_single_issue():
    fb = posture.evaluate(torso((400.0, 230.0), (200.0, 200.0)))
    assert fb.details == "Right shoulder higher"
    assert fb.score == 80 and fb.ok


def test_lean_and_tilt():
    fb = posture.evaluate(torso((550.0, 230.0), (350.0, 200.0)))
    assert "Torso leaning" in fb.details
    assert fb.score == 65 and not fb.ok


def test_three_issues_floor():
    fb = posture.evaluate(torso((550.0, 200.0), (350.0, 230.0), lh=(380.0, 420.0), rh=(220.0, 450.0)))
    assert fb.score == 50
    assert "Left shoulder higher" in fb.details and "Left hip higher" in fb.details


def test_missing_landmarks():
    assert posture.evaluate(None).score == 0
    only_hips = PoseFrame(640, 480, {L.LEFT_HIP: Keypoint(1, 1), L.RIGHT_HIP: Keypoint(2, 1)})
    assert posture.evaluate(only_hips).details == "Need shoulders"
