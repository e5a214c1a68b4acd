from __future__ import annotations

from typing import Optional

import cv2
import mediapipe as mp
import numpy as np
from loguru import logger

from posecapture.utils.structures import LandmarkSnapshot


class MediaPipePoseEstimator:
    """Wraps MediaPipe Pose and turns each detection into a pixel-space ``LandmarkSnapshot``."""

    def __init__(
        self,
        model_complexity: int = 1,
        smooth_landmarks: bool = True,
        enable_segmentation: bool = False,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
    ) -> None:
        self.pose = mp.solutions.pose.Pose(
            static_image_mode=False,
            model_complexity=model_complexity,
            smooth_landmarks=smooth_landmarks,
            enable_segmentation=enable_segmentation,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )
        self._missed = 0
        logger.info("MediaPipe pose ready (complexity={})", model_complexity)

    def estimate(self, frame: np.ndarray, mirrored: bool = True) -> Optional[LandmarkSnapshot]:
        """Detect the body in a BGR frame; ``None`` when nobody is found."""
        frame_h, frame_w = frame.shape[:2]
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        rgb.flags.writeable = False
        detection = self.pose.process(rgb)
        if detection.pose_landmarks is None:
            self._missed += 1
            if self._missed == 1:
                logger.debug("No person detected")
            return None
        self._missed = 0
        return LandmarkSnapshot.from_array(
            self._to_pixels(detection.pose_landmarks.landmark, frame_w, frame_h),
            image_size=(frame_w, frame_h),
            mirrored=mirrored,
        )

    @staticmethod
    def _to_pixels(landmarks, width: int, height: int) -> np.ndarray:
        # MediaPipe reports normalised coordinates; rows follow POSE_LANDMARKS.
        rows = np.empty((len(landmarks), 4), dtype=np.float32)
        for idx, lm in enumerate(landmarks):
            rows[idx] = (lm.x * width, lm.y * height, lm.z * width, lm.visibility)
        return rows

    def close(self) -> None:
        self.pose.close()
