from __future__ import annotations

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from posecapture.server.logging_utils import configure_logging
from posecapture.server.models.schemas import (
    CameraSwitchRequest,
    MessageResponse,
    ResetSessionRequest,
    SessionStartResponse,
    SessionStatusResponse,
    SessionStopResponse,
    StartSessionRequest,
)
from posecapture.server.session import (
    SessionAlreadyRunningError,
    SessionConfig,
    SessionNotRunningError,
    session_manager,
)
from posecapture.utils.config import load_runtime_config
from posecapture.utils.structures import Stage

app = FastAPI(title="Guided Pose Capture", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def on_startup() -> None:
    level = "INFO"
    config_path = session_manager.runtime_config_path
    if config_path.exists():
        level = str(load_runtime_config(str(config_path)).logging.get("level", level))
    configure_logging(level)


@app.post("/api/session/start", response_model=SessionStartResponse)
async def start_session(request: StartSessionRequest) -> SessionStartResponse:
    config = SessionConfig(
        camera_index=request.camera_index,
        camera_source=request.camera_source,
        camera_type=request.camera_type,
        stream_frames=request.stream_frames,
        enable_voice=request.enable_voice,
    )
    try:
        await session_manager.start(config)
    except SessionAlreadyRunningError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return SessionStartResponse(status="running", camera_type=config.camera_type)


@app.post("/api/session/stop", response_model=SessionStopResponse)
async def stop_session() -> SessionStopResponse:
    try:
        await session_manager.stop()
    except SessionNotRunningError:
        return SessionStopResponse(status="idle")
    return SessionStopResponse(status="stopped")


@app.post("/api/session/reset", response_model=MessageResponse)
async def reset_session(request: ResetSessionRequest) -> MessageResponse:
    try:
        session_manager.reset(Stage(request.stage))
    except SessionNotRunningError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return MessageResponse(message=f"Session reset to {request.stage} pose")


@app.post("/api/session/camera", response_model=MessageResponse)
async def switch_camera(request: CameraSwitchRequest) -> MessageResponse:
    try:
        session_manager.switch_camera(request.camera_type)
    except SessionNotRunningError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return MessageResponse(message=f"Switching to {request.camera_type} camera")


@app.get("/api/session/status", response_model=SessionStatusResponse)
async def session_status() -> SessionStatusResponse:
    payload = session_manager.get_status()
    return SessionStatusResponse(**payload)


@app.websocket("/ws/stream")
async def stream(websocket: WebSocket) -> None:
    await websocket.accept()
    try:
        async for payload in session_manager.event_generator():
            await websocket.send_json(payload)
    except SessionNotRunningError:
        await websocket.send_json({"running": False})
    except WebSocketDisconnect:  # pragma: no cover - client initiated
        return
    except Exception as exc:  # pragma: no cover - runtime guard
        await websocket.send_json({"running": False, "error": str(exc)})
