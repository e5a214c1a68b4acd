import threading
import unittest

from helpers import FakeCapturer, ManualScheduler, RecordingVoice, front_snapshot, side_snapshot
from posecapture.logic.capture_machine import Phase
from posecapture.logic.controller import CaptureController
from posecapture.utils.structures import CaptureStatus, Stage


class CaptureControllerTest(unittest.TestCase):
    def setUp(self):
        self.capturer = FakeCapturer()
        self.scheduler = ManualScheduler()
        self.voice = RecordingVoice()
        self.events = []
        self.guidance = []
        self.captured = []
        self.controller = CaptureController(
            capturer=self.capturer,
            scheduler=self.scheduler,
            voice=self.voice,
            on_status=self.events.append,
            on_guidance=lambda stage, result: self.guidance.append((stage, result)),
            on_both_captured=self.captured.append,
        )

    def tearDown(self):
        self.controller.close()

    def statuses(self):
        return [event.status for event in self.events]

    def _run_countdown(self):
        for _ in range(3):
            self.scheduler.tick()
        self.assertEqual(self.controller.state.phase, Phase.DWELLING)
        self.scheduler.run_pending()

    def test_front_then_side_capture(self):
        self.controller.handle_frame(front_snapshot())
        self.assertEqual(self.controller.state.phase, Phase.COUNTING_DOWN)
        self._run_countdown()
        self.assertEqual(self.controller.state.stage, Stage.SIDE_POSE)
        self.assertEqual(self.capturer.saved, ["/captures/front_pose_0.jpg"])

        self.controller.handle_frame(side_snapshot())
        self._run_countdown()

        self.assertEqual(
            self.statuses(),
            [
                CaptureStatus.READY_TO_CAPTURE,
                CaptureStatus.FRONT_POSE_CAPTURED,
                CaptureStatus.READY_TO_CAPTURE_SIDE,
                CaptureStatus.BOTH_POSES_CAPTURED,
            ],
        )
        self.assertEqual(len(self.captured), 1)
        self.assertEqual(self.captured[0].front_image_ref, "/captures/front_pose_0.jpg")
        self.assertEqual(self.captured[0].side_image_ref, "/captures/side_pose_1.jpg")
        self.assertEqual(self.controller.state.stage, Stage.FRONT_POSE)
        self.assertEqual(self.controller.state.phase, Phase.SEEKING)
        self.assertIn("3", self.voice.spoken)
        self.assertIn("1", self.voice.spoken)

    def test_guidance_is_published_for_every_frame(self):
        self.controller.handle_frame(front_snapshot())
        self.controller.handle_frame(front_snapshot())
        self.assertEqual(len(self.guidance), 2)
        self.assertTrue(all(stage is Stage.FRONT_POSE for stage, _ in self.guidance))

    def test_no_person_is_not_an_error(self):
        self.assertIsNone(self.controller.handle_frame(None))
        self.assertIsNone(self.controller.latest_snapshot)
        self.assertEqual(self.controller.state.phase, Phase.SEEKING)

    def test_countdown_cancels_when_person_leaves(self):
        self.controller.handle_frame(front_snapshot())
        self.controller.handle_frame(None)
        self.scheduler.tick()
        self.assertEqual(self.controller.state.phase, Phase.SEEKING)
        self.assertEqual(self.statuses()[-1], CaptureStatus.CAPTURE_CANCELLED)
        self.assertEqual(self.scheduler.active(True), [])

    def test_capture_failure_reports_incomplete(self):
        self.capturer.fail_stages.add(Stage.FRONT_POSE)
        self.controller.handle_frame(front_snapshot())
        self._run_countdown()
        self.assertEqual(self.statuses()[-1], CaptureStatus.CAPTURE_INCOMPLETE)
        self.assertEqual(self.controller.state.stage, Stage.FRONT_POSE)
        self.assertEqual(self.controller.state.phase, Phase.SEEKING)

    def test_unexpected_capture_error_allows_retry(self):
        self.capturer.fail_with = OSError("disk full")
        self.controller.handle_frame(front_snapshot())
        self._run_countdown()
        self.assertEqual(self.controller.state.phase, Phase.SEEKING)
        self.assertEqual(self.statuses()[-1], CaptureStatus.CAPTURE_INCOMPLETE)
        self.assertEqual(self.capturer.saved, [])

        self.capturer.fail_with = None
        self.controller.handle_frame(front_snapshot())
        self.assertEqual(self.controller.state.phase, Phase.COUNTING_DOWN)
        self._run_countdown()
        self.assertEqual(self.capturer.saved, ["/captures/front_pose_0.jpg"])
        self.assertEqual(self.controller.state.stage, Stage.SIDE_POSE)

    def test_missing_file_after_capture(self):
        self.controller.handle_frame(front_snapshot())
        self._run_countdown()
        self.capturer.missing.add("/captures/front_pose_0.jpg")
        self.controller.handle_frame(side_snapshot())
        self._run_countdown()
        self.assertEqual(self.statuses()[-1], CaptureStatus.CAPTURE_INCOMPLETE)
        self.assertEqual(self.captured, [])
        self.assertEqual(self.controller.state.stage, Stage.FRONT_POSE)

    def test_reset_stops_countdown(self):
        self.controller.handle_frame(front_snapshot())
        self.controller.reset(Stage.FRONT_POSE)
        self.assertEqual(self.controller.state.phase, Phase.SEEKING)
        self.assertEqual(self.scheduler.active(True), [])
        self.scheduler.tick()
        self.assertEqual(self.statuses(), [CaptureStatus.READY_TO_CAPTURE])

    def test_frame_dropped_while_transition_in_progress(self):
        held = threading.Event()
        release = threading.Event()

        def hold_lock():
            with self.controller._lock:
                held.set()
                release.wait(2)

        worker = threading.Thread(target=hold_lock)
        worker.start()
        held.wait(2)
        try:
            result = self.controller.handle_frame(front_snapshot())
        finally:
            release.set()
            worker.join()
        self.assertTrue(result.is_valid)
        self.assertEqual(self.controller.state.phase, Phase.SEEKING)
        self.assertEqual(self.events, [])

    def test_notify_reaches_listeners(self):
        self.controller.notify(CaptureStatus.CAMERA_STARTED, "Camera started and ready!")
        self.assertEqual(self.events[0].message, "Camera started and ready!")
