from __future__ import annotations

import math
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from posecapture.logic.geometry import Joint
from posecapture.utils.image_store import CaptureError
from posecapture.utils.structures import LandmarkPoint, LandmarkSnapshot, Stage

IMAGE_SIZE = (720, 1280)
UPPER_ARM = 120.0
FOREARM = 110.0
ARM_LENGTH = UPPER_ARM + FOREARM

# Vertical torso: shoulders directly above hips, detector-left on the image right.
FRONT_BODY: Dict[Joint, Tuple[float, float]] = {
    Joint.NOSE: (360.0, 200.0),
    Joint.LEFT_SHOULDER: (400.0, 320.0),
    Joint.RIGHT_SHOULDER: (320.0, 320.0),
    Joint.LEFT_HIP: (400.0, 640.0),
    Joint.RIGHT_HIP: (320.0, 640.0),
    Joint.LEFT_KNEE: (430.0, 880.0),
    Joint.RIGHT_KNEE: (290.0, 880.0),
    Joint.LEFT_ANKLE: (460.0, 1120.0),
    Joint.RIGHT_ANKLE: (260.0, 1120.0),
}

SIDE_BODY: Dict[Joint, Tuple[float, float]] = {
    Joint.NOSE: (380.0, 200.0),
    Joint.LEFT_SHOULDER: (365.0, 320.0),
    Joint.RIGHT_SHOULDER: (355.0, 320.0),
    Joint.LEFT_ELBOW: (367.0, 460.0),
    Joint.RIGHT_ELBOW: (357.0, 460.0),
    Joint.LEFT_WRIST: (370.0, 600.0),
    Joint.RIGHT_WRIST: (360.0, 600.0),
    Joint.LEFT_HIP: (362.0, 640.0),
    Joint.RIGHT_HIP: (358.0, 640.0),
    Joint.LEFT_KNEE: (363.0, 880.0),
    Joint.RIGHT_KNEE: (357.0, 880.0),
    Joint.LEFT_ANKLE: (365.0, 1120.0),
    Joint.RIGHT_ANKLE: (355.0, 1120.0),
}


def arm_points(
    side: str,
    abduction: float = 80.0,
    elbow_bend: float = 0.0,
) -> Dict[Joint, Tuple[float, float]]:
    """Elbow and wrist for an arm raised ``abduction`` degrees away from a vertical torso.

    ``elbow_bend`` folds the forearm upwards, so the elbow angle becomes ``180 - elbow_bend``.
    """
    outward = 1.0 if side == "left" else -1.0
    shoulder = FRONT_BODY[Joint.LEFT_SHOULDER if side == "left" else Joint.RIGHT_SHOULDER]
    upper_dir = math.radians(90.0 - abduction)
    fore_dir = upper_dir - math.radians(elbow_bend)
    elbow = (
        shoulder[0] + outward * UPPER_ARM * math.cos(upper_dir),
        shoulder[1] + UPPER_ARM * math.sin(upper_dir),
    )
    wrist = (
        elbow[0] + outward * FOREARM * math.cos(fore_dir),
        elbow[1] + FOREARM * math.sin(fore_dir),
    )
    if side == "left":
        return {Joint.LEFT_ELBOW: elbow, Joint.LEFT_WRIST: wrist}
    return {Joint.RIGHT_ELBOW: elbow, Joint.RIGHT_WRIST: wrist}


def straight_arm(side: str, dx: float, dy: float) -> Dict[Joint, Tuple[float, float]]:
    """Straight arm whose wrist sits ``(dx, dy)`` arm-lengths from the shoulder (dx outward)."""
    norm = math.hypot(dx, dy)
    abduction = math.degrees(math.atan2(dx / norm, dy / norm))
    return arm_points(side, abduction=abduction)


def front_pose_points(
    left_abduction: float = 80.0,
    right_abduction: float = 80.0,
) -> Dict[Joint, Tuple[float, float]]:
    points = dict(FRONT_BODY)
    points.update(arm_points("left", left_abduction))
    points.update(arm_points("right", right_abduction))
    return points


def make_snapshot(
    points: Dict[Joint, Tuple[float, float]],
    confidence: float = 0.9,
    overrides: Optional[Dict[Joint, float]] = None,
    mirrored: bool = True,
    image_size: Tuple[int, int] = IMAGE_SIZE,
) -> LandmarkSnapshot:
    overrides = overrides or {}
    landmarks = {
        joint: LandmarkPoint(x, y, overrides.get(joint, confidence)) for joint, (x, y) in points.items()
    }
    return LandmarkSnapshot.from_points(landmarks, image_size, mirrored=mirrored)


def front_snapshot(**kwargs) -> LandmarkSnapshot:
    return make_snapshot(front_pose_points(), **kwargs)


def side_snapshot(**kwargs) -> LandmarkSnapshot:
    return make_snapshot(dict(SIDE_BODY), **kwargs)


def with_points(base: Dict[Joint, Tuple[float, float]], **updates: Tuple[float, float]) -> Dict[Joint, Tuple[float, float]]:
    points = dict(base)
    for name, value in updates.items():
        points[Joint(name)] = value
    return points


def without(base: Dict[Joint, Tuple[float, float]], joints: Iterable[Joint]) -> Dict[Joint, Tuple[float, float]]:
    dropped = set(joints)
    return {joint: value for joint, value in base.items() if joint not in dropped}


class ManualTimer:
    def __init__(self, callback: Callable[[], None], repeating: bool, interval: float) -> None:
        self.callback = callback
        self.repeating = repeating
        self.interval = interval
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Test scheduler: timers only fire when the test says so."""

    def __init__(self) -> None:
        self.timers: List[ManualTimer] = []

    def call_every(self, interval: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(callback, True, interval)
        self.timers.append(timer)
        return timer

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(callback, False, delay)
        self.timers.append(timer)
        return timer

    def active(self, repeating: bool) -> List[ManualTimer]:
        return [t for t in self.timers if t.repeating is repeating and not t.cancelled]

    def tick(self) -> None:
        """Fire every live repeating timer once."""
        for timer in self.active(True):
            if not timer.cancelled:
                timer.callback()

    def run_pending(self) -> None:
        """Fire every live one-shot timer."""
        for timer in self.active(False):
            if not timer.cancelled:
                timer.cancelled = True
                timer.callback()


class FakeCapturer:
    def __init__(self) -> None:
        self.saved: List[str] = []
        self.fail_stages: Set[Stage] = set()
        self.missing: Set[str] = set()
        self.fail_with: Optional[Exception] = None

    def capture(self, stage: Stage) -> str:
        if self.fail_with is not None:
            raise self.fail_with
        if stage in self.fail_stages:
            raise CaptureError(f"no frame for {stage.value}")
        ref = f"/captures/{stage.value}_pose_{len(self.saved)}.jpg"
        self.saved.append(ref)
        return ref

    def exists(self, image_ref: Optional[str]) -> bool:
        return bool(image_ref) and image_ref in self.saved and image_ref not in self.missing


class RecordingVoice:
    def __init__(self) -> None:
        self.spoken: List[str] = []

    def provide_feedback(self, text: str) -> bool:
        self.spoken.append(text)
        return True
