from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Tuple

import cv2
import numpy as np

from posecapture.logic.capture_machine import CaptureState, Phase
from posecapture.logic.geometry import Joint
from posecapture.logic.reference import PostureAccuracy
from posecapture.utils.structures import GateResult, LandmarkSnapshot, Stage


POSE_CONNECTIONS = [
    (Joint.LEFT_SHOULDER, Joint.RIGHT_SHOULDER),
    (Joint.LEFT_SHOULDER, Joint.LEFT_ELBOW),
    (Joint.LEFT_ELBOW, Joint.LEFT_WRIST),
    (Joint.RIGHT_SHOULDER, Joint.RIGHT_ELBOW),
    (Joint.RIGHT_ELBOW, Joint.RIGHT_WRIST),
    (Joint.LEFT_SHOULDER, Joint.LEFT_HIP),
    (Joint.RIGHT_SHOULDER, Joint.RIGHT_HIP),
    (Joint.LEFT_HIP, Joint.RIGHT_HIP),
    (Joint.LEFT_HIP, Joint.LEFT_KNEE),
    (Joint.LEFT_KNEE, Joint.LEFT_ANKLE),
    (Joint.RIGHT_HIP, Joint.RIGHT_KNEE),
    (Joint.RIGHT_KNEE, Joint.RIGHT_ANKLE),
    (Joint.NOSE, Joint.NECK),
]

# Joint -> accuracy flag that decides its colour.
ACCURACY_GROUPS: Dict[Joint, str] = {
    Joint.LEFT_SHOULDER: "shoulder_left",
    Joint.RIGHT_SHOULDER: "shoulder_right",
    Joint.LEFT_ELBOW: "elbow_left",
    Joint.RIGHT_ELBOW: "elbow_right",
    Joint.LEFT_WRIST: "elbow_left",
    Joint.RIGHT_WRIST: "elbow_right",
    Joint.NECK: "spine",
    Joint.LEFT_HIP: "hip_left",
    Joint.RIGHT_HIP: "hip_right",
    Joint.LEFT_KNEE: "hip_left",
    Joint.RIGHT_KNEE: "hip_right",
}

GOOD_COLOR = (80, 220, 100)
WARN_COLOR = (0, 165, 255)
GUIDANCE_COLOR = (0, 0, 255)
NEUTRAL_COLOR = (200, 200, 200)
MIN_DRAW_CONFIDENCE = 0.3


class FrameOverlay:
    def __init__(self, font_scale: float = 0.7, thickness: int = 3, margin: int = 16) -> None:
        self.font = cv2.FONT_HERSHEY_SIMPLEX
        self.font_scale = font_scale
        self.thickness = max(1, thickness)
        self.margin = margin

    def draw(
        self,
        frame: np.ndarray,
        snapshot: Optional[LandmarkSnapshot],
        state: CaptureState,
        result: Optional[GateResult] = None,
        accuracy: Optional[PostureAccuracy] = None,
    ) -> np.ndarray:
        canvas = frame.copy()
        guidance: Mapping[Joint, str] = result.guidance if result is not None else {}
        if snapshot is not None:
            self._draw_skeleton(canvas, snapshot, accuracy, guidance)
        stage_label = "Front pose" if state.stage is Stage.FRONT_POSE else "Side pose"
        lines = [stage_label]
        if result is not None:
            lines.append(result.feedback)
        lines.extend(f"- {msg}" for msg in dict.fromkeys(guidance.values()))
        self._draw_text_block(canvas, lines, self.margin, self.margin)
        if state.phase is Phase.COUNTING_DOWN:
            self._draw_countdown(canvas, state.countdown_value)
        return canvas

    def _joint_color(
        self,
        joint: Joint,
        accuracy: Optional[PostureAccuracy],
        guidance: Mapping[Joint, str],
    ) -> Tuple[int, int, int]:
        if joint in guidance:
            return GUIDANCE_COLOR
        group = ACCURACY_GROUPS.get(joint)
        if accuracy is None or group is None:
            return NEUTRAL_COLOR
        return GOOD_COLOR if getattr(accuracy, group) else WARN_COLOR

    def _draw_skeleton(
        self,
        frame: np.ndarray,
        snapshot: LandmarkSnapshot,
        accuracy: Optional[PostureAccuracy],
        guidance: Mapping[Joint, str],
    ) -> None:
        for start_joint, end_joint in POSE_CONNECTIONS:
            start = snapshot.get(start_joint)
            end = snapshot.get(end_joint)
            if start is None or end is None:
                continue
            if start.confidence < MIN_DRAW_CONFIDENCE or end.confidence < MIN_DRAW_CONFIDENCE:
                continue
            if start_joint in guidance or end_joint in guidance:
                color = GUIDANCE_COLOR
            else:
                color = self._joint_color(end_joint, accuracy, guidance)
            cv2.line(frame, (int(start.x), int(start.y)), (int(end.x), int(end.y)), color, self.thickness)
        for joint, point in snapshot.points.items():
            if point.confidence < MIN_DRAW_CONFIDENCE:
                continue
            color = self._joint_color(joint, accuracy, guidance)
            radius = 6 if joint in ACCURACY_GROUPS else 3
            cv2.circle(frame, (int(point.x), int(point.y)), radius, color, -1)

    def _draw_countdown(self, frame: np.ndarray, value: int) -> None:
        text = str(value)
        scale = self.font_scale * 6
        (width, height), _ = cv2.getTextSize(text, self.font, scale, 8)
        origin = ((frame.shape[1] - width) // 2, (frame.shape[0] + height) // 2)
        cv2.putText(frame, text, origin, self.font, scale, (255, 255, 255), 8, cv2.LINE_AA)

    def _draw_text_block(self, frame: np.ndarray, lines: List[str], x: int, y: int) -> None:
        if not lines:
            return
        line_height = self._line_height(self.font_scale)
        max_width = 0
        for line in lines:
            width, _ = cv2.getTextSize(line, self.font, self.font_scale, 2)[0]
            max_width = max(max_width, width)
        bottom = y + line_height * len(lines) + 12
        right = x + max_width + 24
        bg = frame.copy()
        cv2.rectangle(bg, (x - 12, y - 8), (right, bottom), (10, 16, 30), -1)
        cv2.addWeighted(bg, 0.45, frame, 0.55, 0, frame)
        for idx, line in enumerate(lines):
            baseline = y + 12 + idx * line_height
            cv2.putText(frame, line, (x, baseline), self.font, self.font_scale, (255, 255, 255), 2, cv2.LINE_AA)

    def _line_height(self, scale: float) -> int:
        return max(18, int(26 * scale))
