from __future__ import annotations

import argparse
import os
import warnings
from pathlib import Path
from typing import List, Optional

os.environ.setdefault("TF_CPP_MIN_LOG_LEVEL", "2")
warnings.filterwarnings("ignore", message=r"SymbolDatabase\.GetPrototype\(\) is deprecated", category=UserWarning)

import cv2
from loguru import logger

from posecapture.logic.capture_machine import CaptureMachine
from posecapture.logic.controller import CaptureController
from posecapture.logic.gate import BodyPositionGate, overlay_accuracy
from posecapture.pose.mediapipe_pose import MediaPipePoseEstimator
from posecapture.server.logging_utils import configure_logging
from posecapture.ui.overlay import FrameOverlay
from posecapture.ui.voice_feedback import VoiceFeedback
from posecapture.utils.camera import enumerate_cameras, open_camera
from posecapture.utils.config import RuntimeConfig, load_runtime_config
from posecapture.utils.image_store import ImageStore
from posecapture.utils.profiler import FPSMeter
from posecapture.utils.structures import BothCaptured, CaptureStatus, GateResult, Stage, StatusEvent

WINDOW_NAME = "Pose Capture"


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Guided front and side full-body photo capture")
    parser.add_argument("--config", type=Path, default=Path("configs/capture.yaml"), help="Runtime configuration")
    parser.add_argument("--camera", type=int, default=-1, help="Preferred camera index (-1 for auto)")
    parser.add_argument("--camera-type", type=str, default=None, choices=["front", "back"], help="Front cameras are mirrored")
    parser.add_argument("--output-dir", type=Path, default=None, help="Override the capture output directory")
    parser.add_argument("--headless", action="store_true", help="Disable window display")
    parser.add_argument("--no-voice", action="store_true", help="Disable spoken guidance")
    parser.add_argument("--log-level", type=str, default=None, help="Override the configured log level")
    return parser.parse_args()


def build_voice(runtime_cfg: RuntimeConfig) -> Optional[VoiceFeedback]:
    audio_cfg = runtime_cfg.audio
    enable_tts = bool(audio_cfg.get("enable_tts", True))
    enable_beep = bool(audio_cfg.get("enable_beep", True))
    if not (enable_tts or enable_beep):
        return None
    return VoiceFeedback(
        enable_tts=enable_tts,
        enable_beep=enable_beep,
        voice_rate=int(audio_cfg.get("voice_rate", 175)),
        beep_volume=float(audio_cfg.get("beep_volume", 0.8)),
        min_repeat_interval=float(audio_cfg.get("min_repeat_interval", 3.0)),
    )


def main() -> None:
    args = parse_args()
    runtime_cfg = load_runtime_config(str(args.config))
    configure_logging(args.log_level or str(runtime_cfg.logging.get("level", "INFO")), runtime_cfg.logging.get("file"))

    camera_type = args.camera_type or str(runtime_cfg.frame.get("camera_type", "front"))
    mirrored = camera_type == "front"
    available_cameras: List[int] = enumerate_cameras()
    camera_index = args.camera if args.camera >= 0 else (available_cameras[0] if available_cameras else 0)

    voice = None if args.no_voice else build_voice(runtime_cfg)
    store = ImageStore(
        args.output_dir or runtime_cfg.capture.get("output_dir", "captures"),
        jpeg_quality=int(runtime_cfg.capture.get("jpeg_quality", 65)),
    )
    captured: List[BothCaptured] = []

    def on_status(event: StatusEvent) -> None:
        print(f"[{event.status.value}] {event.message}")
        if voice is not None and event.status in {CaptureStatus.FRONT_POSE_CAPTURED, CaptureStatus.BOTH_POSES_CAPTURED}:
            voice.shutter()

    def on_both_captured(payload: BothCaptured) -> None:
        captured.append(payload)
        print(f"Front image: {payload.front_image_ref}")
        print(f"Side image:  {payload.side_image_ref}")

    controller = CaptureController(
        capturer=store,
        machine=CaptureMachine(BodyPositionGate(runtime_cfg.build_reference_pose())),
        timing=runtime_cfg.build_timing(),
        voice=voice,
        on_status=on_status,
        on_both_captured=on_both_captured,
        log_every_n_frames=int(runtime_cfg.logging.get("log_every_n_frames", 10)),
    )
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

    cap = open_camera(camera_index, runtime_cfg.frame)
    if cap is None:
        controller.notify(CaptureStatus.ERROR, "Camera not available")
        available_msg = f" Available cameras: {available_cameras}" if available_cameras else ""
        raise RuntimeError(f"Failed to open camera index {camera_index}.{available_msg}")
    controller.notify(CaptureStatus.CAMERA_STARTED, "Camera started and ready!")

    last_result: Optional[GateResult] = None
    try:
        while True:
            ret, frame = cap.read()
            if not ret:
                logger.warning("Camera returned no frame; stopping")
                break
            if mirrored:
                frame = cv2.flip(frame, 1)
            store.update_frame(frame)
            snapshot = pose_estimator.estimate(frame, mirrored=mirrored)
            result = controller.handle_frame(snapshot)
            if result is not None:
                last_result = result
            fps_meter.tick()

            if args.headless:
                if captured:
                    break
                continue

            state = controller.state
            accuracy = overlay_accuracy(state.stage, snapshot) if snapshot is not None else None
            annotated = overlay.draw(frame, snapshot, state, last_result, accuracy)
            cv2.putText(
                annotated,
                f"FPS: {fps_meter.get_fps():.1f}",
                (annotated.shape[1] - 140, 30),
                cv2.FONT_HERSHEY_SIMPLEX,
                0.6,
                (255, 255, 0),
                2,
            )
            cv2.imshow(WINDOW_NAME, annotated)
            key = cv2.waitKey(1) & 0xFF
            if key == ord("q"):
                break
            if key == ord("r"):
                controller.reset(Stage.FRONT_POSE)
            if key == ord("c"):
                mirrored = not mirrored
                store.clear()
                controller.reset(controller.state.stage)
                print(f"Switched to {'front' if mirrored else 'back'} camera mode")
    finally:
        cap.release()
        pose_estimator.close()
        controller.close()
        cv2.destroyAllWindows()
        if voice is not None:
            voice.stop()


if __name__ == "__main__":
    main()
