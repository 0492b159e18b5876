from __future__ import annotations
import asyncio
import json
import logging
from dataclasses import asdict
from typing import List, Literal, Optional, Set

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from smartform.common.config import configure_logging, load_settings
from smartform.common.events import ExerciseMode
from smartform.counter.detectors import hand_frame_from_landmarks, pose_frame_from_landmarks
from smartform.counter.session import SessionController
from smartform.data.db import CalibrationStore

logger = logging.getLogger(__name__)


class LandmarkIn(BaseModel):
    x: float = Field(..., allow_inf_nan=False)
    y: float = Field(..., allow_inf_nan=False)
    z: float = Field(0.0, allow_inf_nan=False)
    visibility: float = Field(1.0, ge=0.0, le=1.0, allow_inf_nan=False)


class HandednessIn(BaseModel):
    label: str = "Unknown"
    score: float = Field(0.0, ge=0.0, le=1.0)


class HandIn(BaseModel):
    handedness: HandednessIn = HandednessIn()
    landmarks: List[LandmarkIn]


class PoseMessage(BaseModel):
    type: Literal["pose"]
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    mirrored: bool = False
    landmarks: Optional[List[LandmarkIn]] = None   # None = nothing detected this tick


class HandMessage(BaseModel):
    type: Literal["hand"]
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    mirrored: bool = False
    hands: List[HandIn] = []


class ModeArgs(BaseModel):
    mode: Optional[ExerciseMode] = Field(None, description="Target mode; default advances to the next one")


def create_app(controller: Optional[SessionController] = None) -> FastAPI:
    app = FastAPI(title="SmartForm")
    clients: Set[WebSocket] = set()
    holder = {"controller": controller}

    def active_controller() -> SessionController:
        if holder["controller"] is None:
            settings = load_settings()
            configure_logging(settings)
            holder["controller"] = SessionController(store=CalibrationStore(settings.db_path), settings=settings)
            holder["controller"].set_event_sink(_sink)
        return holder["controller"]

    async def broadcast(obj: dict):
        dead = []
        for ws in list(clients):
            try:
                await ws.send_text(json.dumps(obj))
            except Exception:
                dead.append(ws)
        for d in dead:
            clients.discard(d)

    def _sink(ev: dict):
        if not clients:
            return
        try:
            asyncio.get_running_loop().create_task(broadcast(ev))
        except RuntimeError:
            logger.debug("no running loop for event %s", ev.get("type"))

    if controller is not None:
        controller.set_event_sink(_sink)

    def _status_payload() -> dict:
        st = active_controller().status()
        return asdict(st)

    @app.get("/sessions/current")
    async def current():
        return JSONResponse(_status_payload())

    @app.post("/session/toggle")
    async def toggle():
        running = active_controller().toggle_running()
        return {"running": running}

    @app.post("/session/mode")
    async def mode(args: ModeArgs):
        m = active_controller()
        switched = m.switch_mode(args.mode)
        return {"switched": switched, "mode": m.mode}

    @app.post("/calibration/start")
    async def calibration_start():
        return asdict(active_controller().start_calibration())

    @app.post("/calibration/cancel")
    async def calibration_cancel():
        return asdict(active_controller().cancel_calibration())

    @app.post("/calibration/reset")
    async def calibration_reset():
        return asdict(active_controller().reset_calibration())

    def handle_message(raw: str) -> Optional[dict]:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.info("ws: dropping non-JSON frame")
            return None
        kind = data.get("type") if isinstance(data, dict) else None
        m = active_controller()
        try:
            if kind == "pose":
                msg = PoseMessage.model_validate(data)
                frame = None
                if msg.landmarks:
                    frame = pose_frame_from_landmarks(msg.landmarks, msg.width, msg.height, mirrored=msg.mirrored)
                res = m.on_pose_frame(frame)
                return {"type": "rep_result", **asdict(res)}
            if kind == "hand":
                msg = HandMessage.model_validate(data)
                frame = hand_frame_from_landmarks(
                    [h.landmarks for h in msg.hands],
                    [h.handedness for h in msg.hands],
                    msg.width, msg.height, m.clock(), mirrored=msg.mirrored,
                )
                out = m.on_hand_frame(frame)
                return {"type": "gesture", "gesture": out.gesture, "action": out.action, "label": out.label}
        except ValidationError as e:
            logger.info("ws: invalid %s payload: %s", kind, e.errors()[:1])
            return None
        return None

    @app.websocket("/ws/frames")
    async def ws_frames(ws: WebSocket):
        await ws.accept()
        clients.add(ws)
        logger.info("ws: client connected")
        try:
            while True:
                raw = await ws.receive_text()
                reply = handle_message(raw)
                if reply is not None:
                    await ws.send_text(json.dumps(reply))
        except WebSocketDisconnect:
            pass
        finally:
            clients.discard(ws)
            logger.info("ws: client closed")

    return app


app = create_app()
