from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Optional

import cv2
import numpy as np
from loguru import logger

from posecapture.utils.structures import Stage


class CaptureError(RuntimeError):
    pass


class ImageStore:
    """Keeps the most recent camera frame and persists it as JPEG on request."""

    def __init__(self, output_dir: Path | str, jpeg_quality: int = 65) -> None:
        self.output_dir = Path(output_dir)
        self.jpeg_quality = int(max(1, min(100, jpeg_quality)))
        self._lock = threading.Lock()
        self._latest_frame: Optional[np.ndarray] = None

    def update_frame(self, frame: np.ndarray) -> None:
        with self._lock:
            self._latest_frame = frame

    def clear(self) -> None:
        with self._lock:
            self._latest_frame = None

    def capture(self, stage: Stage) -> str:
        with self._lock:
            frame = self._latest_frame
        if frame is None:
            raise CaptureError("No frame available for capture")
        try:
            success, buffer = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), self.jpeg_quality])
        except cv2.error as exc:
            raise CaptureError(f"failed to encode frame: {exc}") from exc
        if not success:
            raise CaptureError("failed to encode frame")
        prefix = "front_pose" if stage is Stage.FRONT_POSE else "side_pose"
        path = self.output_dir / f"{prefix}_{time.time():.3f}.jpg"
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(buffer.tobytes())
        except OSError as exc:
            raise CaptureError(f"Failed to write {path}: {exc}") from exc
        logger.info("Saved {} image to {}", stage.value, path)
        return str(path)

    @staticmethod
    def exists(image_ref: Optional[str]) -> bool:
        return bool(image_ref) and Path(image_ref).is_file()
