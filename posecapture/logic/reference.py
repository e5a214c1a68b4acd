from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional

from posecapture.logic.metrics import PostureMetrics


@dataclass(frozen=True)
class ReferencePose:
    """Target angles and tolerances describing a correct front capture pose.

    Angles are in degrees. ``shoulder_level_tolerance`` is in pixels,
    the two ``min_*`` ratios and the wrist ratios are unitless.
    """

    shoulder_angle: float = 90.0
    shoulder_tolerance: float = 30.0
    elbow_angle: float = 180.0
    elbow_tolerance: float = 20.0
    spine_angle: float = 0.0
    spine_tolerance: float = 10.0
    hip_angle: float = 180.0
    hip_tolerance: float = 15.0
    shoulder_level_tolerance: float = 30.0
    leg_separation_angle: float = 45.0
    leg_separation_tolerance: float = 15.0
    min_arm_spread_ratio: float = 0.55
    min_feet_separation_ratio: float = 0.15
    wrist_low_ratio: float = 0.45
    wrist_high_ratio: float = -0.30

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "ReferencePose":
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown reference_pose keys: {sorted(unknown)}")
        return replace(cls(), **{key: float(value) for key, value in data.items()})


@dataclass(frozen=True)
class PostureAccuracy:
    shoulder_left: bool
    shoulder_right: bool
    elbow_left: bool
    elbow_right: bool
    spine: bool
    hip_left: bool
    hip_right: bool

    @classmethod
    def all_false(cls) -> "PostureAccuracy":
        return cls(False, False, False, False, False, False, False)

    def is_accurate(self) -> bool:
        return all(getattr(self, f.name) for f in fields(self))


def _within(value: float, target: float, tolerance: float) -> bool:
    return abs(value - target) <= tolerance


def compare_with_reference(metrics: PostureMetrics, reference: ReferencePose) -> PostureAccuracy:
    return PostureAccuracy(
        shoulder_left=_within(metrics.shoulder_angle_left, reference.shoulder_angle, reference.shoulder_tolerance),
        shoulder_right=_within(metrics.shoulder_angle_right, reference.shoulder_angle, reference.shoulder_tolerance),
        elbow_left=_within(metrics.elbow_angle_left, reference.elbow_angle, reference.elbow_tolerance),
        elbow_right=_within(metrics.elbow_angle_right, reference.elbow_angle, reference.elbow_tolerance),
        # Spine angle is non-negative by construction, only an upper bound applies.
        spine=metrics.spine_angle <= reference.spine_tolerance,
        hip_left=_within(metrics.hip_angle_left, reference.hip_angle, reference.hip_tolerance),
        hip_right=_within(metrics.hip_angle_right, reference.hip_angle, reference.hip_tolerance),
    )
