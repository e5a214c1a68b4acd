import tempfile
import unittest
from pathlib import Path

from posecapture.logic.reference import ReferencePose
from posecapture.utils.config import load_runtime_config, parse_runtime_config

REPO_CONFIG = Path(__file__).resolve().parents[1] / "configs" / "capture.yaml"


class RuntimeConfigTest(unittest.TestCase):
    def test_missing_sections_default_to_empty(self):
        config = parse_runtime_config(None)
        self.assertEqual(config.frame, {})
        self.assertEqual(config.build_reference_pose(), ReferencePose())
        self.assertEqual(config.build_timing().tick_interval, 2.0)

    def test_load_from_yaml(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "capture.yaml"
            path.write_text(
                "countdown:\n  tick_interval: 1.5\n  dwell_delay: 0.2\n"
                "reference_pose:\n  shoulder_angle: 45\n",
                encoding="utf-8",
            )
            config = load_runtime_config(str(path))
        self.assertEqual(config.build_timing().tick_interval, 1.5)
        self.assertEqual(config.build_timing().dwell_delay, 0.2)
        self.assertEqual(config.build_reference_pose().shoulder_angle, 45.0)
        self.assertEqual(config.capture, {})

    def test_unknown_reference_key_is_rejected(self):
        config = parse_runtime_config({"reference_pose": {"spine_tilt": 3}})
        with self.assertRaises(ValueError):
            config.build_reference_pose()

    def test_shipped_config_matches_defaults(self):
        config = load_runtime_config(str(REPO_CONFIG))
        self.assertEqual(config.build_reference_pose(), ReferencePose())
        self.assertEqual(config.capture["jpeg_quality"], 65)
        self.assertEqual(config.logging["log_every_n_frames"], 10)
