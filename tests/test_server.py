import pytest
from fastapi.testclient import TestClient

from smartform.common.config import Settings
from smartform.counter.session import SessionController
from smartform.runtime.server import create_app

from builders import arm_frame, pinch_hand


@pytest.fixture
def client():
    ctl = SessionController(settings=Settings())
    return TestClient(create_app(ctl))


def pose_message(frame):
    marks = [{"x": 0.0, "y": 0.0, "visibility": 0.0} for _ in range(33)]
    for idx, kp in frame.points.items():
        marks[idx] = {"x": kp.x / frame.image_width, "y": kp.y / frame.image_height, "visibility": kp.confidence}
    return {"type": "pose", "width": frame.image_width, "height": frame.image_height, "landmarks": marks}


def test_current_session(client):
    body = client.get("/sessions/current").json()
    assert body["mode"] == "curl"
    assert body["running"] is False
    assert body["reps"] == 0
    assert body["phase"] == "IDLE"


def test_toggle_and_mode_switch(client):
    assert client.post("/session/toggle").json() == {"running": True}
    r = client.post("/session/mode", json={}).json()
    assert r == {"switched": False, "mode": "curl"}

    client.post("/session/toggle")
    assert client.post("/session/mode", json={}).json()["mode"] == "squat"
    assert client.post("/session/mode", json={"mode": "pushup"}).json()["mode"] == "pushup"


def test_bad_mode_rejected(client):
    assert client.post("/session/mode", json={"mode": "lunge"}).status_code == 422


def test_calibration_routes(client):
    started = client.post("/calibration/start").json()
    assert started["active"] is True
    assert started["step"] == "BASELINE_UP"
    assert client.get("/sessions/current").json()["calibrating"] is True
    assert client.post("/calibration/cancel").json()["active"] is False

    profile = client.post("/calibration/reset").json()
    assert profile["squat"] == {"down_thresh": 115.0, "up_thresh": 165.0}


def test_ws_pose_frames(client):
    with client.websocket_connect("/ws/frames") as ws:
        ws.send_json(pose_message(arm_frame(120.0)))
        reply = ws.receive_json()
        assert reply["type"] == "rep_result"
        assert reply["phase"] == "UP"
        assert reply["angle"] == pytest.approx(120.0, abs=0.5)

        ws.send_json({"type": "pose", "width": 640, "height": 480, "landmarks": None})
        assert ws.receive_json()["debug"] == "no-frame"


def test_ws_skips_garbage_and_reads_hands(client):
    hand = pinch_hand()
    msg = {
        "type": "hand",
        "width": 640,
        "height": 480,
        "hands": [{
            "handedness": {"label": "Right", "score": 0.9},
            "landmarks": [{"x": p.x, "y": p.y} for p in hand.landmarks],
        }],
    }
    with client.websocket_connect("/ws/frames") as ws:
        ws.send_text("not json")
        ws.send_json({"type": "pose", "width": -1, "height": 480})
        ws.send_json({"type": "unknown"})
        ws.send_json(msg)
        reply = ws.receive_json()
        assert reply == {"type": "gesture", "gesture": "pinch", "action": "none", "label": ""}


def test_ws_rejects_non_finite_coordinates(client):
    nan_pose = '{"type": "pose", "width": 640, "height": 480, "landmarks": [{"x": NaN, "y": 0.5}]}'
    with client.websocket_connect("/ws/frames") as ws:
        ws.send_text(nan_pose)
        ws.send_json({"type": "pose", "width": 640, "height": 480, "landmarks": None})
        assert ws.receive_json()["debug"] == "no-frame"
