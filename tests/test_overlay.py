import unittest

import numpy as np

from helpers import front_pose_points, front_snapshot, make_snapshot, straight_arm
from posecapture.logic.capture_machine import CaptureState, Phase
from posecapture.logic.gate import BodyPositionGate, overlay_accuracy
from posecapture.logic.geometry import Joint
from posecapture.ui.overlay import GUIDANCE_COLOR, FrameOverlay
from posecapture.utils.structures import Stage


class FrameOverlayTest(unittest.TestCase):
    def setUp(self):
        self.frame = np.zeros((1280, 720, 3), dtype=np.uint8)
        self.overlay = FrameOverlay()

    def test_guided_joint_is_drawn_red(self):
        points = front_pose_points()
        points.update(straight_arm("left", 0.8, 0.6))
        snapshot = make_snapshot(points)
        result = BodyPositionGate().evaluate(snapshot)
        accuracy = overlay_accuracy(Stage.FRONT_POSE, snapshot)
        canvas = self.overlay.draw(self.frame, snapshot, CaptureState(), result, accuracy)
        wrist = snapshot.get(Joint.LEFT_WRIST)
        self.assertEqual(tuple(canvas[int(wrist.y), int(wrist.x)]), GUIDANCE_COLOR)
        self.assertEqual(canvas.shape, self.frame.shape)
        self.assertEqual(int(self.frame.sum()), 0)

    def test_draws_without_snapshot(self):
        state = CaptureState(phase=Phase.COUNTING_DOWN, countdown_value=2)
        canvas = self.overlay.draw(self.frame, None, state)
        self.assertGreater(int(canvas.sum()), 0)

    def test_side_stage(self):
        canvas = self.overlay.draw(self.frame, front_snapshot(), CaptureState(stage=Stage.SIDE_POSE))
        self.assertEqual(canvas.shape, self.frame.shape)
