from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from loguru import logger

from posecapture.logic.geometry import Joint, describe_side, distance, horizontal_distance
from posecapture.logic.metrics import (
    PostureMetrics,
    calculate_posture_metrics,
    feet_in_frame,
    is_skeleton_valid,
)
from posecapture.logic.reference import PostureAccuracy, ReferencePose, compare_with_reference
from posecapture.logic.side_pose import classify_side_pose, is_sideways
from posecapture.utils.structures import GateResult, LandmarkSnapshot, Stage

FRAMING_CONFIDENCE = 0.4

STEP_INTO_FRAME = "Please step into the frame"
HEAD_NOT_VISIBLE = "Move back so your head is visible"
FEET_NOT_VISIBLE = "Move back so both your feet are visible"
STEP_BACK = "Step back so your whole body is visible"
STAND_IN_FRONT = "Stand in front of the camera so your full body is visible"
CANNOT_READ_POSE = "Cannot read your pose. Make sure the lighting is good"
KEEP_LEGS_STRAIGHT = "Keep both legs straight"
SPREAD_FEET = "Spread your feet shoulder-width apart"
POSE_PERFECT = "Perfect! Hold still..."


class ArmIssue(Enum):
    # Declaration order is the reporting priority.
    SPREAD = ("Extend your {side} arm out to the side", "Extend your arms out to the side")
    TOO_LOW = ("Raise your {side} arm up to shoulder height", "Raise your arms up to shoulder height")
    TOO_HIGH = ("Lower your {side} arm down to shoulder height", "Lower your arms down to shoulder height")
    ELBOW_BENT = ("Straighten your {side} arm", "Straighten your arms")
    ABDUCTION_LOW = (
        "Lift your {side} arm further away from your body",
        "Lift your arms further away from your body",
    )
    ABDUCTION_HIGH = (
        "Bring your {side} arm slightly closer to your body",
        "Bring your arms slightly closer to your body",
    )

    def __init__(self, single: str, both: str) -> None:
        self.single = single
        self.both = both

    def message(self, side_label: str) -> str:
        return self.single.format(side=side_label)

    def both_message(self) -> str:
        return f"Both arms: {self.both.lower()}"


ARM_JOINTS: Dict[str, Tuple[Joint, Joint, Joint, Joint]] = {
    "left": (Joint.LEFT_SHOULDER, Joint.LEFT_ELBOW, Joint.LEFT_WRIST, Joint.LEFT_HIP),
    "right": (Joint.RIGHT_SHOULDER, Joint.RIGHT_ELBOW, Joint.RIGHT_WRIST, Joint.RIGHT_HIP),
}


def _catalogue() -> FrozenSet[str]:
    messages = {
        STEP_INTO_FRAME,
        HEAD_NOT_VISIBLE,
        FEET_NOT_VISIBLE,
        STEP_BACK,
        STAND_IN_FRONT,
        CANNOT_READ_POSE,
        KEEP_LEGS_STRAIGHT,
        SPREAD_FEET,
        POSE_PERFECT,
    }
    for issue in ArmIssue:
        messages.add(issue.both_message())
        for label in ("Right", "Left"):
            messages.add(issue.message(label))
    return frozenset(messages)


FEEDBACK_CATALOGUE = _catalogue()


@dataclass(frozen=True)
class ArmCheck:
    side: str
    issue: Optional[ArmIssue]
    spread_ratio: float
    vertical_ratio: float

    @property
    def is_accurate(self) -> bool:
        return self.issue is None


def check_arm(
    snapshot: LandmarkSnapshot,
    metrics: PostureMetrics,
    side: str,
    reference: ReferencePose,
) -> ArmCheck:
    shoulder_joint, elbow_joint, wrist_joint, _ = ARM_JOINTS[side]
    shoulder = snapshot.points[shoulder_joint].location
    elbow = snapshot.points[elbow_joint].location
    wrist = snapshot.points[wrist_joint].location
    elbow_angle = metrics.elbow_angle_left if side == "left" else metrics.elbow_angle_right
    abduction = metrics.shoulder_angle_left if side == "left" else metrics.shoulder_angle_right

    arm_length = distance(shoulder, elbow) + distance(elbow, wrist)
    if arm_length <= 0:
        return ArmCheck(side, ArmIssue.SPREAD, 0.0, 0.0)
    spread_ratio = abs(wrist[0] - shoulder[0]) / arm_length
    vertical_ratio = (wrist[1] - shoulder[1]) / arm_length

    if spread_ratio < reference.min_arm_spread_ratio:
        issue: Optional[ArmIssue] = ArmIssue.SPREAD
    elif vertical_ratio > reference.wrist_low_ratio:
        issue = ArmIssue.TOO_LOW
    elif vertical_ratio < reference.wrist_high_ratio:
        issue = ArmIssue.TOO_HIGH
    elif elbow_angle < reference.elbow_angle - reference.elbow_tolerance:
        issue = ArmIssue.ELBOW_BENT
    elif abduction < reference.shoulder_angle - reference.shoulder_tolerance:
        issue = ArmIssue.ABDUCTION_LOW
    elif abduction > reference.shoulder_angle + reference.shoulder_tolerance:
        issue = ArmIssue.ABDUCTION_HIGH
    else:
        issue = None
    return ArmCheck(side, issue, spread_ratio, vertical_ratio)


class BodyPositionGate:
    """Front-stage validation cascade producing a single corrective message per frame."""

    def __init__(self, reference: Optional[ReferencePose] = None) -> None:
        self.reference = reference or ReferencePose()

    def evaluate(self, snapshot: LandmarkSnapshot) -> GateResult:
        framing = self._check_framing(snapshot)
        if framing is not None:
            return GateResult(False, framing)

        if not is_skeleton_valid(snapshot):
            return GateResult(False, STAND_IN_FRONT)

        metrics = calculate_posture_metrics(snapshot)
        if metrics is None:
            return GateResult(False, CANNOT_READ_POSE)
        accuracy = compare_with_reference(metrics, self.reference)

        if not accuracy.hip_left or not accuracy.hip_right:
            return GateResult(
                False,
                KEEP_LEGS_STRAIGHT,
                {
                    Joint.LEFT_HIP: "Keep legs straight",
                    Joint.RIGHT_HIP: "Keep legs straight",
                    Joint.LEFT_KNEE: "Straighten",
                    Joint.RIGHT_KNEE: "Straighten",
                },
            )

        left_ankle = snapshot.points[Joint.LEFT_ANKLE].location
        right_ankle = snapshot.points[Joint.RIGHT_ANKLE].location
        if horizontal_distance(left_ankle, right_ankle, snapshot.width) < self.reference.min_feet_separation_ratio:
            return GateResult(
                False,
                SPREAD_FEET,
                {Joint.LEFT_ANKLE: "Spread feet apart", Joint.RIGHT_ANKLE: "Spread feet apart"},
            )

        left_arm = check_arm(snapshot, metrics, "left", self.reference)
        right_arm = check_arm(snapshot, metrics, "right", self.reference)
        if left_arm.is_accurate and right_arm.is_accurate:
            return GateResult(True, POSE_PERFECT)
        return self._arm_result(snapshot, left_arm, right_arm)

    def is_front_ready(self, snapshot: LandmarkSnapshot) -> bool:
        """Entry and re-validation check used by the front-stage countdown."""
        return self.evaluate(snapshot).is_valid and feet_in_frame(snapshot)

    @staticmethod
    def _check_framing(snapshot: LandmarkSnapshot) -> Optional[str]:
        head_visible = snapshot.confidence(Joint.NOSE) > FRAMING_CONFIDENCE
        left_foot = snapshot.confidence(Joint.LEFT_ANKLE) > FRAMING_CONFIDENCE
        right_foot = snapshot.confidence(Joint.RIGHT_ANKLE) > FRAMING_CONFIDENCE
        if head_visible and left_foot and right_foot:
            return None
        if not head_visible and not (left_foot or right_foot):
            return STEP_INTO_FRAME
        if not head_visible:
            return HEAD_NOT_VISIBLE
        knees_visible = (
            snapshot.confidence(Joint.LEFT_KNEE) > FRAMING_CONFIDENCE
            or snapshot.confidence(Joint.RIGHT_KNEE) > FRAMING_CONFIDENCE
        )
        if knees_visible:
            return FEET_NOT_VISIBLE
        return STEP_BACK

    @staticmethod
    def _arm_result(snapshot: LandmarkSnapshot, left_arm: ArmCheck, right_arm: ArmCheck) -> GateResult:
        guidance: Dict[Joint, str] = {}
        messages: Dict[str, str] = {}
        for arm in (left_arm, right_arm):
            if arm.issue is None:
                continue
            text = arm.issue.message(describe_side(arm.side, snapshot.mirrored))
            messages[arm.side] = text
            shoulder, elbow, wrist, _ = ARM_JOINTS[arm.side]
            guidance.update({shoulder: text, elbow: text, wrist: text})

        if left_arm.issue is not None and left_arm.issue is right_arm.issue:
            feedback = left_arm.issue.both_message()
        elif "left" in messages:
            feedback = messages["left"]
        else:
            feedback = messages["right"]
        logger.debug("Arm check failed: {}", feedback)
        return GateResult(False, feedback, guidance)


def overlay_accuracy(
    stage: Stage,
    snapshot: LandmarkSnapshot,
    reference: Optional[ReferencePose] = None,
) -> Optional[PostureAccuracy]:
    """Per-joint-group flags used to colour the skeleton overlay."""
    if stage is Stage.FRONT_POSE:
        if is_sideways(snapshot):
            return PostureAccuracy.all_false()
        metrics = calculate_posture_metrics(snapshot)
        if metrics is None:
            return None
        return compare_with_reference(metrics, reference or ReferencePose())
    orientation = classify_side_pose(snapshot)
    upper = orientation.sideways and orientation.arms_sideways
    return PostureAccuracy(
        shoulder_left=upper,
        shoulder_right=upper,
        elbow_left=True,
        elbow_right=True,
        spine=orientation.sideways,
        hip_left=orientation.legs_sideways,
        hip_right=orientation.legs_sideways,
    )
