from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from posecapture.logic.geometry import Joint, describe_side, horizontal_distance
from posecapture.logic.metrics import feet_in_frame, is_skeleton_valid
from posecapture.utils.structures import GateResult, LandmarkSnapshot

SHOULDER_OVERLAP_TOLERANCE = 0.08
LIMB_ALIGNMENT_TOLERANCE = 0.12

MOVE_INTO_FRAME = "Please move into the frame"
KEEP_FEET_IN_FRAME = "Keep your feet in the frame"
ROTATE_RIGHT = "Rotate slightly to your right"
ROTATE_LEFT = "Rotate slightly to your left"
ROTATE_SHOULDER_BEHIND = "Rotate so one shoulder is behind the other"
ALIGN_ARMS = "Bring your arms in line with your shoulders"
ALIGN_LEGS = "Align your legs sideways"
SIDE_POSE_READY = "Perfect! Hold still..."


@dataclass(frozen=True)
class SideOrientation:
    sideways: bool
    arms_sideways: bool
    legs_sideways: bool

    @property
    def is_valid(self) -> bool:
        return self.sideways and self.arms_sideways and self.legs_sideways


def is_sideways(snapshot: LandmarkSnapshot, tolerance: float = SHOULDER_OVERLAP_TOLERANCE) -> bool:
    left = snapshot.get(Joint.LEFT_SHOULDER)
    right = snapshot.get(Joint.RIGHT_SHOULDER)
    if left is None or right is None:
        return False
    return horizontal_distance(left.location, right.location, snapshot.width) < tolerance


def _pairs_aligned(snapshot: LandmarkSnapshot, pairs, tolerance: float) -> bool:
    for moving, anchor in pairs:
        a = snapshot.get(moving)
        b = snapshot.get(anchor)
        if a is None or b is None:
            return False
        if horizontal_distance(a.location, b.location, snapshot.width) >= tolerance:
            return False
    return True


def are_arms_sideways(snapshot: LandmarkSnapshot, tolerance: float = LIMB_ALIGNMENT_TOLERANCE) -> bool:
    return _pairs_aligned(
        snapshot,
        ((Joint.LEFT_WRIST, Joint.LEFT_SHOULDER), (Joint.RIGHT_WRIST, Joint.RIGHT_SHOULDER)),
        tolerance,
    )


def are_legs_sideways(snapshot: LandmarkSnapshot, tolerance: float = LIMB_ALIGNMENT_TOLERANCE) -> bool:
    return _pairs_aligned(
        snapshot,
        ((Joint.LEFT_ANKLE, Joint.LEFT_HIP), (Joint.RIGHT_ANKLE, Joint.RIGHT_HIP)),
        tolerance,
    )


def classify_side_pose(snapshot: LandmarkSnapshot) -> SideOrientation:
    return SideOrientation(
        sideways=is_sideways(snapshot),
        arms_sideways=are_arms_sideways(snapshot),
        legs_sideways=are_legs_sideways(snapshot),
    )


def is_valid_side_pose(snapshot: LandmarkSnapshot) -> bool:
    return classify_side_pose(snapshot).is_valid


def is_side_ready(snapshot: LandmarkSnapshot) -> bool:
    """Entry and re-validation check used by the side-stage countdown."""
    return is_skeleton_valid(snapshot) and feet_in_frame(snapshot) and is_valid_side_pose(snapshot)


def side_guidance(snapshot: LandmarkSnapshot, orientation: SideOrientation) -> Dict[Joint, str]:
    guidance: Dict[Joint, str] = {}
    if not orientation.sideways:
        left = snapshot.get(Joint.LEFT_SHOULDER)
        right = snapshot.get(Joint.RIGHT_SHOULDER)
        if left is not None and right is not None:
            # Turn toward the detector side whose shoulder sits further left in the image.
            toward = "left" if left.x - right.x < 0 else "right"
            guidance[Joint.NECK] = ROTATE_RIGHT if describe_side(toward, snapshot.mirrored) == "Right" else ROTATE_LEFT
        else:
            guidance[Joint.NECK] = ROTATE_SHOULDER_BEHIND
    if not orientation.arms_sideways:
        guidance[Joint.LEFT_ELBOW] = ALIGN_ARMS
        guidance[Joint.RIGHT_ELBOW] = ALIGN_ARMS
    if not orientation.legs_sideways:
        guidance[Joint.LEFT_HIP] = ALIGN_LEGS
        guidance[Joint.RIGHT_HIP] = ALIGN_LEGS
    return guidance


def evaluate_side(snapshot: LandmarkSnapshot) -> GateResult:
    """Side-stage counterpart of the front gate: one message, plus per-joint hints."""
    if not is_skeleton_valid(snapshot):
        return GateResult(False, MOVE_INTO_FRAME)
    if not feet_in_frame(snapshot):
        return GateResult(False, KEEP_FEET_IN_FRAME)
    orientation = classify_side_pose(snapshot)
    if orientation.is_valid:
        return GateResult(True, SIDE_POSE_READY)
    guidance = side_guidance(snapshot, orientation)
    if not orientation.sideways:
        feedback = guidance[Joint.NECK]
    elif not orientation.arms_sideways:
        feedback = ALIGN_ARMS
    else:
        feedback = ALIGN_LEGS
    return GateResult(False, feedback, guidance)
