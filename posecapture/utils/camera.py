from __future__ import annotations

from typing import Any, List, Mapping, Optional

import cv2
from loguru import logger


def enumerate_cameras(max_devices: int = 6) -> List[int]:
    indices: List[int] = []
    for idx in range(max_devices):
        cap = cv2.VideoCapture(idx, cv2.CAP_DSHOW)
        if cap.isOpened():
            indices.append(idx)
        cap.release()
    return indices


def open_camera(target: int | str, frame_cfg: Mapping[str, Any]) -> Optional[cv2.VideoCapture]:
    """Open and configure a capture device, returning ``None`` when it is unavailable."""
    cap = cv2.VideoCapture(target)
    if not cap.isOpened():
        logger.error("Unable to access camera source '{}'", target)
        cap.release()
        return None
    target_width = int(frame_cfg.get("target_width", 720))
    target_height = int(frame_cfg.get("target_height", int(target_width * 0.75)))
    cap.set(cv2.CAP_PROP_FRAME_WIDTH, target_width)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, target_height)
    cap.set(cv2.CAP_PROP_FPS, 30)
    return cap
