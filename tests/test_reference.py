import unittest
from dataclasses import replace

from helpers import front_snapshot
from posecapture.logic.metrics import calculate_posture_metrics
from posecapture.logic.reference import PostureAccuracy, ReferencePose, compare_with_reference


class ReferencePoseTest(unittest.TestCase):
    def test_defaults(self):
        reference = ReferencePose()
        self.assertEqual(reference.shoulder_angle, 90.0)
        self.assertEqual(reference.elbow_angle, 180.0)
        self.assertEqual(reference.hip_tolerance, 15.0)

    def test_from_dict_overrides_known_keys(self):
        reference = ReferencePose.from_dict({"shoulder_angle": 45, "shoulder_tolerance": 30})
        self.assertEqual(reference.shoulder_angle, 45.0)
        self.assertEqual(reference.elbow_angle, 180.0)

    def test_from_dict_rejects_unknown_keys(self):
        with self.assertRaises(ValueError):
            ReferencePose.from_dict({"shoulder_angel": 45})

    def test_from_empty_dict(self):
        self.assertEqual(ReferencePose.from_dict(None), ReferencePose())


class CompareWithReferenceTest(unittest.TestCase):
    def setUp(self):
        self.metrics = calculate_posture_metrics(front_snapshot())

    def test_front_pose_joint_flags(self):
        accuracy = compare_with_reference(self.metrics, ReferencePose())
        self.assertTrue(accuracy.shoulder_left)
        self.assertTrue(accuracy.elbow_right)
        self.assertTrue(accuracy.hip_left)
        # Upright spine measures ~90 degrees from horizontal.
        self.assertFalse(accuracy.spine)
        self.assertFalse(accuracy.is_accurate())

    def test_bounds_are_inclusive(self):
        metrics = replace(self.metrics, shoulder_angle_left=120.0, shoulder_angle_right=121.0)
        accuracy = compare_with_reference(metrics, ReferencePose())
        self.assertTrue(accuracy.shoulder_left)
        self.assertFalse(accuracy.shoulder_right)

    def test_spine_has_only_an_upper_bound(self):
        metrics = replace(self.metrics, spine_angle=0.0)
        self.assertTrue(compare_with_reference(metrics, ReferencePose()).spine)
        metrics = replace(self.metrics, spine_angle=10.5)
        self.assertFalse(compare_with_reference(metrics, ReferencePose()).spine)

    def test_all_false(self):
        self.assertFalse(PostureAccuracy.all_false().hip_right)
