from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Optional, Tuple

from posecapture.logic.geometry import Joint, angle_between, inclination_from_horizontal, midpoint
from posecapture.utils.structures import LandmarkSnapshot

METRIC_JOINTS: Tuple[Joint, ...] = (
    Joint.LEFT_SHOULDER,
    Joint.RIGHT_SHOULDER,
    Joint.LEFT_ELBOW,
    Joint.RIGHT_ELBOW,
    Joint.LEFT_WRIST,
    Joint.RIGHT_WRIST,
    Joint.LEFT_HIP,
    Joint.RIGHT_HIP,
    Joint.LEFT_KNEE,
    Joint.RIGHT_KNEE,
    Joint.NECK,
)

SKELETON_JOINTS: Tuple[Joint, ...] = (
    Joint.NOSE,
    Joint.LEFT_SHOULDER,
    Joint.RIGHT_SHOULDER,
    Joint.LEFT_ELBOW,
    Joint.RIGHT_ELBOW,
    Joint.LEFT_WRIST,
    Joint.RIGHT_WRIST,
    Joint.LEFT_HIP,
    Joint.RIGHT_HIP,
    Joint.LEFT_KNEE,
    Joint.RIGHT_KNEE,
    Joint.LEFT_ANKLE,
    Joint.RIGHT_ANKLE,
)

SKELETON_CONFIDENCE = 0.3


@dataclass(frozen=True)
class PostureMetrics:
    shoulder_angle_left: float
    shoulder_angle_right: float
    elbow_angle_left: float
    elbow_angle_right: float
    spine_angle: float
    hip_angle_left: float
    hip_angle_right: float
    shoulder_level_diff: float
    leg_separation_angle: float

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


def calculate_posture_metrics(snapshot: LandmarkSnapshot) -> Optional[PostureMetrics]:
    """Return the posture metrics, or ``None`` when any required joint is missing."""
    if not snapshot.has(*METRIC_JOINTS):
        return None
    lm = {joint: snapshot.points[joint].location for joint in METRIC_JOINTS}
    hip_center = midpoint(lm[Joint.LEFT_HIP], lm[Joint.RIGHT_HIP])
    return PostureMetrics(
        shoulder_angle_left=angle_between(lm[Joint.LEFT_HIP], lm[Joint.LEFT_SHOULDER], lm[Joint.LEFT_ELBOW]),
        shoulder_angle_right=angle_between(lm[Joint.RIGHT_HIP], lm[Joint.RIGHT_SHOULDER], lm[Joint.RIGHT_ELBOW]),
        elbow_angle_left=angle_between(lm[Joint.LEFT_SHOULDER], lm[Joint.LEFT_ELBOW], lm[Joint.LEFT_WRIST]),
        elbow_angle_right=angle_between(lm[Joint.RIGHT_SHOULDER], lm[Joint.RIGHT_ELBOW], lm[Joint.RIGHT_WRIST]),
        spine_angle=inclination_from_horizontal(lm[Joint.NECK], hip_center),
        hip_angle_left=angle_between(lm[Joint.LEFT_SHOULDER], lm[Joint.LEFT_HIP], lm[Joint.LEFT_KNEE]),
        hip_angle_right=angle_between(lm[Joint.RIGHT_SHOULDER], lm[Joint.RIGHT_HIP], lm[Joint.RIGHT_KNEE]),
        shoulder_level_diff=abs(lm[Joint.LEFT_SHOULDER][1] - lm[Joint.RIGHT_SHOULDER][1]),
        leg_separation_angle=angle_between(lm[Joint.LEFT_KNEE], hip_center, lm[Joint.RIGHT_KNEE]),
    )


def is_skeleton_valid(snapshot: LandmarkSnapshot, threshold: float = SKELETON_CONFIDENCE) -> bool:
    return all(snapshot.confidence(joint) > threshold for joint in SKELETON_JOINTS)


def feet_in_frame(snapshot: LandmarkSnapshot, min_confidence: float = 0.5) -> bool:
    width, height = snapshot.image_size
    for joint in (Joint.LEFT_ANKLE, Joint.RIGHT_ANKLE):
        point = snapshot.get(joint)
        if point is None or point.confidence < min_confidence:
            return False
        if point.x < 0 or point.y < 0 or point.x > width or point.y > height:
            return False
    return True
