from __future__ import annotations

import asyncio
import base64
import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncGenerator, Dict, Optional

import cv2
import numpy as np
from loguru import logger

from posecapture.logic.capture_machine import CaptureMachine
from posecapture.logic.controller import CaptureController
from posecapture.logic.gate import BodyPositionGate, overlay_accuracy
from posecapture.server.models.schemas import BothCapturedPayload, GuidancePayload, StatusPayload
from posecapture.ui.overlay import FrameOverlay
from posecapture.ui.voice_feedback import VoiceFeedback
from posecapture.utils.camera import enumerate_cameras, open_camera
from posecapture.utils.config import RuntimeConfig, load_runtime_config
from posecapture.utils.image_store import ImageStore
from posecapture.utils.profiler import FPSMeter
from posecapture.utils.structures import (
    BothCaptured,
    CaptureStatus,
    GateResult,
    Stage,
    StatusEvent,
)

DEFAULT_RUNTIME_CONFIG = Path("configs/capture.yaml")
FRAME_BACKLOG = 2


@dataclass
class SessionConfig:
    camera_index: int = -1
    camera_source: Optional[str] = None
    camera_type: str = "front"
    stream_frames: bool = True
    enable_voice: bool = True


class SessionAlreadyRunningError(RuntimeError):
    pass


class SessionNotRunningError(RuntimeError):
    pass


def serialize_guidance(stage: Stage, result: GateResult) -> Dict[str, object]:
    return GuidancePayload(
        stage=stage.value,
        isValid=result.is_valid,
        feedbackMessage=result.feedback,
        guidanceByJoint={joint.value: text for joint, text in result.guidance.items()},
    ).model_dump()


def serialize_status(event: StatusEvent) -> Dict[str, object]:
    return StatusPayload(status=event.status.value, message=event.message).model_dump()


def serialize_both_captured(payload: BothCaptured) -> Dict[str, object]:
    return BothCapturedPayload(
        imageUri=f"file://{payload.front_image_ref}",
        sideImageUri=f"file://{payload.side_image_ref}",
    ).model_dump()


class CaptureSession:
    """Runs the camera/pose pipeline on a worker thread and streams events through an asyncio queue."""

    def __init__(self, runtime_config_path: Path | str = DEFAULT_RUNTIME_CONFIG) -> None:
        self.runtime_config_path = Path(runtime_config_path)
        self._async_lock = asyncio.Lock()
        self._thread_lock = threading.RLock()
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._event_queue: Optional[asyncio.Queue[Dict[str, object]]] = None
        self._stop_event = threading.Event()
        self._camera_switch: Optional[str] = None
        self._controller: Optional[CaptureController] = None
        self._status: Dict[str, object] = {"running": False, "message": "idle"}
        self._fps: Optional[float] = None

    async def start(self, config: SessionConfig) -> None:
        async with self._async_lock:
            if self.is_running():
                raise SessionAlreadyRunningError("A capture session is already running")
            if config.camera_type not in {"front", "back"}:
                raise ValueError(f"Unsupported camera type: {config.camera_type}")
            self._stop_event.clear()
            self._event_queue = asyncio.Queue()
            self._loop = asyncio.get_running_loop()
            self._camera_switch = None
            with self._thread_lock:
                self._thread = threading.Thread(
                    target=self._run_loop,
                    name="capture-session",
                    args=(self._loop, config),
                    daemon=True,
                )
                self._thread.start()
            logger.info("Capture session started camera={} type={}", config.camera_index, config.camera_type)

    async def stop(self) -> None:
        async with self._async_lock:
            if not self.is_running():
                raise SessionNotRunningError("No active session")
            self._stop_event.set()
            with self._thread_lock:
                thread = self._thread
            if thread:
                thread.join(timeout=5)
            logger.info("Capture session stop requested")
            self._thread = None

    def reset(self, stage: Stage = Stage.FRONT_POSE) -> None:
        controller = self._controller
        if controller is None or not self.is_running():
            raise SessionNotRunningError("No active session")
        controller.reset(stage)

    def switch_camera(self, camera_type: str) -> None:
        if camera_type not in {"front", "back"}:
            raise ValueError(f"Unsupported camera type: {camera_type}")
        if not self.is_running():
            raise SessionNotRunningError("No active session")
        self._camera_switch = camera_type

    def is_running(self) -> bool:
        with self._thread_lock:
            thread = self._thread
        return thread is not None and thread.is_alive() and not self._stop_event.is_set()

    def get_status(self) -> Dict[str, object]:
        status = dict(self._status)
        controller = self._controller
        if controller is not None:
            state = controller.state
            status["stage"] = state.stage.value
            status["phase"] = state.phase.value
            status["countdown"] = state.countdown_value
            status["isCountingDown"] = state.is_counting_down
        if self._fps is not None:
            status["fps"] = self._fps
        return status

    async def event_generator(self) -> AsyncGenerator[Dict[str, object], None]:
        queue = self._event_queue
        if queue is None:
            raise SessionNotRunningError("No streaming session")
        while True:
            payload = await queue.get()
            yield payload
            if not payload.get("running", True):
                break

    def _publish(self, loop: asyncio.AbstractEventLoop, payload: Dict[str, object], droppable: bool = False) -> None:
        queue = self._event_queue
        if queue is None:
            return
        if droppable and queue.qsize() >= FRAME_BACKLOG:
            return
        try:
            asyncio.run_coroutine_threadsafe(queue.put(payload), loop)
        except RuntimeError:
            logger.warning("Unable to push payload; consumer likely disconnected")

    def _build_controller(
        self,
        loop: asyncio.AbstractEventLoop,
        runtime_cfg: RuntimeConfig,
        store: ImageStore,
        voice: Optional[VoiceFeedback],
    ) -> CaptureController:
        def on_status(event: StatusEvent) -> None:
            self._status["message"] = event.message
            self._status["lastStatus"] = event.status.value
            if voice is not None and event.status in {
                CaptureStatus.FRONT_POSE_CAPTURED,
                CaptureStatus.BOTH_POSES_CAPTURED,
            }:
                voice.shutter()
            self._publish(loop, serialize_status(event))

        return CaptureController(
            capturer=store,
            machine=CaptureMachine(BodyPositionGate(runtime_cfg.build_reference_pose())),
            timing=runtime_cfg.build_timing(),
            voice=voice,
            on_status=on_status,
            on_guidance=lambda stage, result: self._publish(loop, serialize_guidance(stage, result), droppable=True),
            on_both_captured=lambda payload: self._publish(loop, serialize_both_captured(payload)),
            log_every_n_frames=int(runtime_cfg.logging.get("log_every_n_frames", 10)),
        )

    def _run_loop(self, loop: asyncio.AbstractEventLoop, config: SessionConfig) -> None:
        cap: Optional[cv2.VideoCapture] = None
        pose_estimator = None
        voice: Optional[VoiceFeedback] = None
        controller: Optional[CaptureController] = None
        try:
            runtime_cfg = load_runtime_config(str(self.runtime_config_path))
            audio_cfg = runtime_cfg.audio
            if config.enable_voice:
                voice = VoiceFeedback(
                    enable_tts=bool(audio_cfg.get("enable_tts", True)),
                    enable_beep=bool(audio_cfg.get("enable_beep", True)),
                    voice_rate=int(audio_cfg.get("voice_rate", 175)),
                    beep_volume=float(audio_cfg.get("beep_volume", 0.8)),
                    min_repeat_interval=float(audio_cfg.get("min_repeat_interval", 3.0)),
                )
            store = ImageStore(
                runtime_cfg.capture.get("output_dir", "captures"),
                jpeg_quality=int(runtime_cfg.capture.get("jpeg_quality", 65)),
            )
            controller = self._build_controller(loop, runtime_cfg, store, voice)
            self._controller = controller
            from posecapture.pose.mediapipe_pose import MediaPipePoseEstimator

            pose_estimator = MediaPipePoseEstimator(
                model_complexity=int(runtime_cfg.mediapipe.get("model_complexity", 1)),
                smooth_landmarks=bool(runtime_cfg.mediapipe.get("smooth_landmarks", True)),
                enable_segmentation=bool(runtime_cfg.mediapipe.get("enable_segmentation", False)),
                min_detection_confidence=float(runtime_cfg.mediapipe.get("min_detection_confidence", 0.5)),
                min_tracking_confidence=float(runtime_cfg.mediapipe.get("min_tracking_confidence", 0.5)),
            )
            overlay = FrameOverlay(
                font_scale=float(runtime_cfg.display.get("font_scale", 0.7)),
                thickness=int(runtime_cfg.display.get("skeleton_thickness", 3)),
            )
            fps_meter = FPSMeter()
            camera_type = config.camera_type
            camera_target = self._resolve_camera_target(config)
            cap = open_camera(camera_target, runtime_cfg.frame)
            if cap is None:
                controller.notify(CaptureStatus.ERROR, "Camera not available")
                self._status = {"running": False, "message": f"error: camera '{camera_target}' not available"}
                return
            controller.notify(CaptureStatus.CAMERA_STARTED, "Camera started and ready!")
            self._status = {"running": True, "message": "session running", "cameraType": camera_type}
            last_result: Optional[GateResult] = None
            while not self._stop_event.is_set():
                requested = self._camera_switch
                if requested is not None:
                    self._camera_switch = None
                    if requested != camera_type:
                        camera_type = requested
                        self._status["cameraType"] = camera_type
                        store.clear()
                        fps_meter.reset()
                    controller.reset(controller.state.stage)
                ret, frame = cap.read()
                if not ret:
                    break
                mirrored = camera_type == "front"
                if mirrored:
                    frame = cv2.flip(frame, 1)
                store.update_frame(frame)
                snapshot = pose_estimator.estimate(frame, mirrored=mirrored)
                result = controller.handle_frame(snapshot)
                if result is not None:
                    last_result = result
                fps_meter.tick()
                self._fps = fps_meter.get_fps()
                if config.stream_frames:
                    state = controller.state
                    accuracy = overlay_accuracy(state.stage, snapshot) if snapshot is not None else None
                    annotated = overlay.draw(frame, snapshot, state, last_result, accuracy)
                    self._publish(
                        loop,
                        {"type": "frame", "timestamp": time.time(), "frame": self._encode_frame(annotated)},
                        droppable=True,
                    )
            logger.info("Capture loop completed")
        except Exception as exc:
            logger.exception("Session loop error: {}", exc)
            self._status = {"running": False, "message": f"error: {exc}"}
            if controller is not None:
                controller.notify(CaptureStatus.ERROR, str(exc))
        finally:
            if cap is not None:
                cap.release()
            if pose_estimator is not None:
                pose_estimator.close()
            if controller is not None:
                controller.close()
            if voice is not None:
                voice.stop()
            self._stop_event.clear()
            self._thread = None
            self._controller = None
            self._status["running"] = False
            self._status.setdefault("message", "session finished")
            self._publish(loop, {"running": False, "message": self._status.get("message", "finished")})

    @staticmethod
    def _resolve_camera_target(config: SessionConfig) -> int | str:
        camera_source = config.camera_source or os.getenv("CAMERA_SOURCE")
        if camera_source:
            return camera_source
        if config.camera_index >= 0:
            return config.camera_index
        available = enumerate_cameras()
        return available[0] if available else 0

    @staticmethod
    def _encode_frame(frame: np.ndarray) -> str:
        success, buffer = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), 80])
        if not success:
            raise RuntimeError("failed to encode frame")
        return base64.b64encode(buffer.tobytes()).decode("ascii")


session_manager = CaptureSession()
