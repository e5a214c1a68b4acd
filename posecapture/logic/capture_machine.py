"""Countdown and capture state machine for the two-stage pose capture.

Every transition is a pure function of ``(state, event)`` returning the next
state and the effects the caller has to carry out (status events, timers,
capture requests, voice prompts). The controller owns the state and executes
the effects; nothing in here touches threads, clocks or files.
"""
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, List, Mapping, Optional, Tuple, Union

from posecapture.logic.gate import BodyPositionGate
from posecapture.logic.metrics import feet_in_frame
from posecapture.logic.side_pose import evaluate_side
from posecapture.utils.structures import (
    BothCaptured,
    CaptureStatus,
    GateResult,
    LandmarkSnapshot,
    Stage,
    StatusEvent,
)

COUNTDOWN_START = 3


@dataclass(frozen=True)
class CaptureTiming:
    tick_interval: float = 2.0
    dwell_delay: float = 0.7

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "CaptureTiming":
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        return replace(cls(), **{k: float(v) for k, v in data.items() if k in known})


class Phase(str, Enum):
    SEEKING = "seeking"
    COUNTING_DOWN = "counting_down"
    DWELLING = "dwelling"
    CAPTURING = "capturing"


@dataclass(frozen=True)
class CaptureState:
    stage: Stage = Stage.FRONT_POSE
    phase: Phase = Phase.SEEKING
    countdown_value: int = COUNTDOWN_START
    front_image_ref: Optional[str] = None
    side_image_ref: Optional[str] = None
    # Bumped whenever a countdown starts or the session resets; timer callbacks
    # carrying an older epoch are ignored.
    epoch: int = 0

    @property
    def is_counting_down(self) -> bool:
        return self.phase is not Phase.SEEKING

    @property
    def is_capturing(self) -> bool:
        return self.phase is Phase.CAPTURING


@dataclass(frozen=True)
class Assessment:
    stage: Stage
    result: GateResult
    ready: bool


# Events


@dataclass(frozen=True)
class FrameObserved:
    snapshot: LandmarkSnapshot
    assessment: Optional[Assessment] = None


@dataclass(frozen=True)
class CountdownTick:
    epoch: int
    snapshot: Optional[LandmarkSnapshot]


@dataclass(frozen=True)
class DwellElapsed:
    epoch: int


@dataclass(frozen=True)
class CaptureSucceeded:
    stage: Stage
    image_ref: str


@dataclass(frozen=True)
class CaptureFailed:
    stage: Stage
    reason: str


@dataclass(frozen=True)
class DeliveryConfirmed:
    pass


@dataclass(frozen=True)
class DeliveryFailed:
    front_ok: bool
    side_ok: bool


@dataclass(frozen=True)
class SessionReset:
    stage: Stage = Stage.FRONT_POSE


Event = Union[
    FrameObserved,
    CountdownTick,
    DwellElapsed,
    CaptureSucceeded,
    CaptureFailed,
    DeliveryConfirmed,
    DeliveryFailed,
    SessionReset,
]


# Effects


@dataclass(frozen=True)
class EmitStatus:
    event: StatusEvent


@dataclass(frozen=True)
class Speak:
    text: str


@dataclass(frozen=True)
class StartCountdownTimer:
    epoch: int


@dataclass(frozen=True)
class StopCountdownTimer:
    pass


@dataclass(frozen=True)
class ScheduleDwell:
    epoch: int


@dataclass(frozen=True)
class CancelDwell:
    pass


@dataclass(frozen=True)
class RequestCapture:
    stage: Stage


@dataclass(frozen=True)
class VerifyCaptures:
    front_image_ref: Optional[str]
    side_image_ref: Optional[str]


@dataclass(frozen=True)
class EmitBothCaptured:
    payload: BothCaptured


Effect = Union[
    EmitStatus,
    Speak,
    StartCountdownTimer,
    StopCountdownTimer,
    ScheduleDwell,
    CancelDwell,
    RequestCapture,
    VerifyCaptures,
    EmitBothCaptured,
]

READY_MESSAGES = {
    Stage.FRONT_POSE: (CaptureStatus.READY_TO_CAPTURE, "Ready to capture front pose!", "Capturing in 3 seconds"),
    Stage.SIDE_POSE: (
        CaptureStatus.READY_TO_CAPTURE_SIDE,
        "Ready to capture side pose!",
        "Capturing side pose in 3 seconds",
    ),
}
POSE_LOST = "Hold your pose steady"
IMAGES_NOT_SAVED = "Images not saved, please retake"


def _status(status: CaptureStatus, message: str) -> EmitStatus:
    return EmitStatus(StatusEvent(status, message))


class CaptureMachine:
    def __init__(self, gate: Optional[BodyPositionGate] = None) -> None:
        self.gate = gate or BodyPositionGate()

    def assess(self, stage: Stage, snapshot: LandmarkSnapshot) -> Assessment:
        """Stage-appropriate check, shared by countdown entry and tick re-validation."""
        if stage is Stage.FRONT_POSE:
            result = self.gate.evaluate(snapshot)
            return Assessment(stage, result, result.is_valid and feet_in_frame(snapshot))
        result = evaluate_side(snapshot)
        return Assessment(stage, result, result.is_valid)

    def transition(self, state: CaptureState, event: Event) -> Tuple[CaptureState, List[Effect]]:
        if isinstance(event, FrameObserved):
            return self._on_frame(state, event)
        if isinstance(event, CountdownTick):
            return self._on_tick(state, event)
        if isinstance(event, DwellElapsed):
            if state.phase is not Phase.DWELLING or event.epoch != state.epoch:
                return state, []
            return replace(state, phase=Phase.CAPTURING), [RequestCapture(state.stage)]
        if isinstance(event, CaptureSucceeded):
            return self._on_captured(state, event)
        if isinstance(event, CaptureFailed):
            if not state.is_capturing:
                return state, []
            return (
                replace(state, phase=Phase.SEEKING, countdown_value=COUNTDOWN_START),
                [_status(CaptureStatus.CAPTURE_INCOMPLETE, IMAGES_NOT_SAVED)],
            )
        if isinstance(event, DeliveryConfirmed):
            return self._on_delivered(state)
        if isinstance(event, DeliveryFailed):
            return self._on_delivery_failed(state, event)
        if isinstance(event, SessionReset):
            front_ref = state.front_image_ref if event.stage is Stage.SIDE_POSE else None
            fresh = CaptureState(stage=event.stage, front_image_ref=front_ref, epoch=state.epoch + 1)
            return fresh, [StopCountdownTimer(), CancelDwell()]
        raise TypeError(f"Unsupported event: {event!r}")

    def _on_frame(self, state: CaptureState, event: FrameObserved) -> Tuple[CaptureState, List[Effect]]:
        if state.phase is not Phase.SEEKING:
            return state, []
        assessment = event.assessment
        if assessment is None or assessment.stage is not state.stage:
            assessment = self.assess(state.stage, event.snapshot)
        if not assessment.ready:
            return state, [Speak(assessment.result.feedback)]
        status, message, prompt = READY_MESSAGES[state.stage]
        epoch = state.epoch + 1
        counting = replace(state, phase=Phase.COUNTING_DOWN, countdown_value=COUNTDOWN_START, epoch=epoch)
        return counting, [
            _status(status, message),
            Speak(prompt),
            StartCountdownTimer(epoch),
            Speak(str(COUNTDOWN_START)),
        ]

    def _on_tick(self, state: CaptureState, event: CountdownTick) -> Tuple[CaptureState, List[Effect]]:
        if state.phase is not Phase.COUNTING_DOWN or event.epoch != state.epoch:
            return state, []
        still_valid = event.snapshot is not None and self.assess(state.stage, event.snapshot).ready
        if not still_valid:
            cancelled = replace(state, phase=Phase.SEEKING, countdown_value=COUNTDOWN_START)
            return cancelled, [
                StopCountdownTimer(),
                _status(CaptureStatus.CAPTURE_CANCELLED, POSE_LOST),
                Speak(POSE_LOST),
            ]
        value = state.countdown_value - 1
        if value > 0:
            return replace(state, countdown_value=value), [Speak(str(value))]
        return replace(state, phase=Phase.DWELLING, countdown_value=0), [
            StopCountdownTimer(),
            ScheduleDwell(state.epoch),
        ]

    def _on_captured(self, state: CaptureState, event: CaptureSucceeded) -> Tuple[CaptureState, List[Effect]]:
        if not state.is_capturing or event.stage is not state.stage:
            return state, []
        if state.stage is Stage.FRONT_POSE:
            side_state = replace(
                state,
                stage=Stage.SIDE_POSE,
                phase=Phase.SEEKING,
                countdown_value=COUNTDOWN_START,
                front_image_ref=event.image_ref,
            )
            return side_state, [
                _status(CaptureStatus.FRONT_POSE_CAPTURED, "Front pose captured! Turn sideways..."),
                Speak("Front pose captured"),
            ]
        done = replace(state, side_image_ref=event.image_ref)
        return done, [
            _status(CaptureStatus.BOTH_POSES_CAPTURED, "Both poses captured! Processing..."),
            VerifyCaptures(done.front_image_ref, done.side_image_ref),
        ]

    def _on_delivered(self, state: CaptureState) -> Tuple[CaptureState, List[Effect]]:
        if not state.is_capturing or state.front_image_ref is None or state.side_image_ref is None:
            return state, []
        payload = BothCaptured(state.front_image_ref, state.side_image_ref)
        return CaptureState(epoch=state.epoch + 1), [EmitBothCaptured(payload)]

    def _on_delivery_failed(
        self, state: CaptureState, event: DeliveryFailed
    ) -> Tuple[CaptureState, List[Effect]]:
        if not state.is_capturing:
            return state, []
        retry = CaptureState(
            stage=Stage.SIDE_POSE if event.front_ok else Stage.FRONT_POSE,
            front_image_ref=state.front_image_ref if event.front_ok else None,
            side_image_ref=state.side_image_ref if event.side_ok else None,
            epoch=state.epoch + 1,
        )
        return retry, [_status(CaptureStatus.CAPTURE_INCOMPLETE, IMAGES_NOT_SAVED)]
