from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

import numpy as np

from posecapture.logic.geometry import POSE_LANDMARKS, Joint, midpoint


@dataclass(frozen=True)
class LandmarkPoint:
    x: float
    y: float
    confidence: float

    @property
    def location(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass(frozen=True)
class LandmarkSnapshot:
    """One frame's detected joints, in pixel space of that frame."""

    points: Mapping[Joint, LandmarkPoint]
    image_size: Tuple[int, int]
    mirrored: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "points", MappingProxyType(dict(self.points)))

    def get(self, joint: Joint) -> Optional[LandmarkPoint]:
        return self.points.get(joint)

    def confidence(self, joint: Joint) -> float:
        point = self.points.get(joint)
        return point.confidence if point is not None else 0.0

    def has(self, *joints: Joint) -> bool:
        return all(joint in self.points for joint in joints)

    @property
    def width(self) -> int:
        return self.image_size[0]

    @property
    def height(self) -> int:
        return self.image_size[1]

    @classmethod
    def from_points(
        cls,
        points: Mapping[Joint, LandmarkPoint],
        image_size: Tuple[int, int],
        mirrored: bool = True,
    ) -> "LandmarkSnapshot":
        """Build a snapshot and derive ``neck`` when both shoulders are present."""
        merged: Dict[Joint, LandmarkPoint] = dict(points)
        left = merged.get(Joint.LEFT_SHOULDER)
        right = merged.get(Joint.RIGHT_SHOULDER)
        if left is not None and right is not None:
            neck_x, neck_y = midpoint(left.location, right.location)
            merged[Joint.NECK] = LandmarkPoint(neck_x, neck_y, min(left.confidence, right.confidence))
        return cls(points=merged, image_size=image_size, mirrored=mirrored)

    @classmethod
    def from_array(
        cls,
        landmarks: np.ndarray,
        image_size: Tuple[int, int],
        mirrored: bool = True,
    ) -> "LandmarkSnapshot":
        # shape: (33, 4) -> x, y, z, visibility
        points = {
            joint: LandmarkPoint(float(landmarks[idx][0]), float(landmarks[idx][1]), float(landmarks[idx][3]))
            for joint, idx in POSE_LANDMARKS.items()
            if idx < landmarks.shape[0]
        }
        return cls.from_points(points, image_size, mirrored)


class Stage(str, Enum):
    FRONT_POSE = "front"
    SIDE_POSE = "side"


class CaptureStatus(str, Enum):
    CAMERA_STARTED = "camera_started"
    READY_TO_CAPTURE = "ready_to_capture"
    READY_TO_CAPTURE_SIDE = "ready_to_capture_side"
    CAPTURE_CANCELLED = "capture_cancelled"
    FRONT_POSE_CAPTURED = "front_pose_captured"
    BOTH_POSES_CAPTURED = "both_poses_captured"
    CAPTURE_INCOMPLETE = "capture_incomplete"
    ERROR = "error"


@dataclass(frozen=True)
class StatusEvent:
    status: CaptureStatus
    message: str


@dataclass(frozen=True)
class GateResult:
    is_valid: bool
    feedback: str
    guidance: Mapping[Joint, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "guidance", MappingProxyType(dict(self.guidance)))


@dataclass(frozen=True)
class BothCaptured:
    front_image_ref: str
    side_image_ref: str
