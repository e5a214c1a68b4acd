from __future__ import annotations

import threading
from functools import partial
from typing import Callable, List, Optional, Protocol

from loguru import logger

from posecapture.logic.capture_machine import (
    CancelDwell,
    CaptureFailed,
    CaptureMachine,
    CaptureState,
    CaptureSucceeded,
    CaptureTiming,
    CountdownTick,
    DeliveryConfirmed,
    DeliveryFailed,
    DwellElapsed,
    Effect,
    EmitBothCaptured,
    EmitStatus,
    Event,
    FrameObserved,
    RequestCapture,
    ScheduleDwell,
    SessionReset,
    Speak,
    StartCountdownTimer,
    StopCountdownTimer,
    VerifyCaptures,
)
from posecapture.logic.geometry import Joint
from posecapture.utils.scheduler import Scheduler, ThreadingScheduler, TimerHandle
from posecapture.utils.structures import (
    BothCaptured,
    CaptureStatus,
    GateResult,
    LandmarkSnapshot,
    Stage,
    StatusEvent,
)

LANDMARK_LOG_JOINTS = (
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


class FrameCapturer(Protocol):
    def capture(self, stage: Stage) -> str: ...

    def exists(self, image_ref: Optional[str]) -> bool: ...


class VoicePrompter(Protocol):
    def provide_feedback(self, text: str) -> bool: ...


class LatestSnapshot:
    """Single-slot cell holding the newest snapshot; older ones are simply replaced."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot: Optional[LandmarkSnapshot] = None

    def publish(self, snapshot: Optional[LandmarkSnapshot]) -> None:
        with self._lock:
            self._snapshot = snapshot

    def read(self) -> Optional[LandmarkSnapshot]:
        with self._lock:
            return self._snapshot


StatusListener = Callable[[StatusEvent], None]
GuidanceListener = Callable[[Stage, GateResult], None]
CapturedListener = Callable[[BothCaptured], None]


class CaptureController:
    """Owns the capture state and serialises frame and timer events onto the state machine."""

    def __init__(
        self,
        capturer: FrameCapturer,
        machine: Optional[CaptureMachine] = None,
        timing: Optional[CaptureTiming] = None,
        scheduler: Optional[Scheduler] = None,
        voice: Optional[VoicePrompter] = None,
        on_status: Optional[StatusListener] = None,
        on_guidance: Optional[GuidanceListener] = None,
        on_both_captured: Optional[CapturedListener] = None,
        log_every_n_frames: int = 10,
    ) -> None:
        self.capturer = capturer
        self.machine = machine or CaptureMachine()
        self.timing = timing or CaptureTiming()
        self.scheduler = scheduler or ThreadingScheduler()
        self.voice = voice
        self._status_listeners: List[StatusListener] = [on_status] if on_status else []
        self._guidance_listeners: List[GuidanceListener] = [on_guidance] if on_guidance else []
        self._captured_listeners: List[CapturedListener] = [on_both_captured] if on_both_captured else []
        self.log_every_n_frames = max(1, log_every_n_frames)
        self._lock = threading.RLock()
        self._state = CaptureState()
        self._latest = LatestSnapshot()
        self._countdown_timer: Optional[TimerHandle] = None
        self._dwell_timer: Optional[TimerHandle] = None
        self._frame_counter = 0

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def latest_snapshot(self) -> Optional[LandmarkSnapshot]:
        return self._latest.read()

    def add_status_listener(self, listener: StatusListener) -> None:
        self._status_listeners.append(listener)

    def add_guidance_listener(self, listener: GuidanceListener) -> None:
        self._guidance_listeners.append(listener)

    def add_captured_listener(self, listener: CapturedListener) -> None:
        self._captured_listeners.append(listener)

    def handle_frame(self, snapshot: Optional[LandmarkSnapshot]) -> Optional[GateResult]:
        """Process one landmark frame; ``None`` means no person was detected."""
        self._latest.publish(snapshot)
        if snapshot is None:
            return None
        self._log_landmarks(snapshot)
        stage = self._state.stage
        assessment = self.machine.assess(stage, snapshot)
        for listener in self._guidance_listeners:
            listener(stage, assessment.result)
        if not self._lock.acquire(blocking=False):
            logger.debug("Dropping frame while a transition is in progress")
            return assessment.result
        try:
            self._dispatch(FrameObserved(snapshot, assessment))
        finally:
            self._lock.release()
        return assessment.result

    def reset(self, stage: Stage = Stage.FRONT_POSE) -> None:
        with self._lock:
            logger.info("Session reset to {} stage", stage.value)
            self._dispatch(SessionReset(stage))

    def notify(self, status: CaptureStatus, message: str) -> None:
        self._emit_status(StatusEvent(status, message))

    def close(self) -> None:
        with self._lock:
            self._cancel_countdown_timer()
            self._cancel_dwell_timer()

    def _on_tick(self, epoch: int) -> None:
        with self._lock:
            self._dispatch(CountdownTick(epoch, self._latest.read()))

    def _on_dwell(self, epoch: int) -> None:
        with self._lock:
            self._dispatch(DwellElapsed(epoch))

    def _dispatch(self, event: Event) -> None:
        previous = self._state
        self._state, effects = self.machine.transition(previous, event)
        if self._state.phase is not previous.phase or self._state.stage is not previous.stage:
            logger.info(
                "Capture state {}/{} -> {}/{} (countdown={})",
                previous.stage.value,
                previous.phase.value,
                self._state.stage.value,
                self._state.phase.value,
                self._state.countdown_value,
            )
        for effect in effects:
            self._execute(effect)

    def _execute(self, effect: Effect) -> None:
        if isinstance(effect, EmitStatus):
            self._emit_status(effect.event)
        elif isinstance(effect, Speak):
            if self.voice is not None:
                self.voice.provide_feedback(effect.text)
        elif isinstance(effect, StartCountdownTimer):
            self._cancel_countdown_timer()
            self._countdown_timer = self.scheduler.call_every(
                self.timing.tick_interval, partial(self._on_tick, effect.epoch)
            )
        elif isinstance(effect, StopCountdownTimer):
            self._cancel_countdown_timer()
        elif isinstance(effect, ScheduleDwell):
            self._cancel_dwell_timer()
            self._dwell_timer = self.scheduler.call_later(self.timing.dwell_delay, partial(self._on_dwell, effect.epoch))
        elif isinstance(effect, CancelDwell):
            self._cancel_dwell_timer()
        elif isinstance(effect, RequestCapture):
            self._dwell_timer = None
            self._capture(effect.stage)
        elif isinstance(effect, VerifyCaptures):
            self._verify(effect)
        elif isinstance(effect, EmitBothCaptured):
            logger.info(
                "Both poses captured: front={} side={}",
                effect.payload.front_image_ref,
                effect.payload.side_image_ref,
            )
            for listener in self._captured_listeners:
                listener(effect.payload)
        else:
            raise TypeError(f"Unsupported effect: {effect!r}")

    def _capture(self, stage: Stage) -> None:
        try:
            image_ref = self.capturer.capture(stage)
        except Exception as exc:
            logger.exception("Capture failed for {} stage: {}", stage.value, exc)
            self._dispatch(CaptureFailed(stage, str(exc)))
            return
        self._dispatch(CaptureSucceeded(stage, image_ref))

    def _verify(self, effect: VerifyCaptures) -> None:
        front_ok = self.capturer.exists(effect.front_image_ref)
        side_ok = self.capturer.exists(effect.side_image_ref)
        if front_ok and side_ok:
            self._dispatch(DeliveryConfirmed())
            return
        logger.error(
            "Image files missing on disk: front={} ({}) side={} ({})",
            effect.front_image_ref,
            front_ok,
            effect.side_image_ref,
            side_ok,
        )
        self._dispatch(DeliveryFailed(front_ok=front_ok, side_ok=side_ok))

    def _emit_status(self, event: StatusEvent) -> None:
        logger.info("Status {}: {}", event.status.value, event.message)
        for listener in self._status_listeners:
            listener(event)

    def _cancel_countdown_timer(self) -> None:
        if self._countdown_timer is not None:
            self._countdown_timer.cancel()
            self._countdown_timer = None

    def _cancel_dwell_timer(self) -> None:
        if self._dwell_timer is not None:
            self._dwell_timer.cancel()
            self._dwell_timer = None

    def _log_landmarks(self, snapshot: LandmarkSnapshot) -> None:
        self._frame_counter += 1
        if self._frame_counter % self.log_every_n_frames != 0:
            return
        summary = []
        for joint in LANDMARK_LOG_JOINTS:
            point = snapshot.get(joint)
            if point is None:
                summary.append(f"{joint.value}: missing")
            else:
                summary.append(f"{joint.value}: ({int(point.x)}, {int(point.y)}) conf={point.confidence:.2f}")
        logger.debug("Landmarks [frame #{}]: {}", self._frame_counter, "; ".join(summary))
