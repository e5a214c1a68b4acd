import tempfile
import unittest
from pathlib import Path

import numpy as np

from posecapture.utils.image_store import CaptureError, ImageStore
from posecapture.utils.structures import Stage


class ImageStoreTest(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.output_dir = Path(self._tmp.name) / "captures"
        self.store = ImageStore(self.output_dir, jpeg_quality=65)

    def tearDown(self):
        self._tmp.cleanup()

    def test_capture_without_frame_fails(self):
        with self.assertRaises(CaptureError):
            self.store.capture(Stage.FRONT_POSE)

    def test_capture_writes_jpeg(self):
        self.store.update_frame(np.full((64, 48, 3), 127, dtype=np.uint8))
        ref = self.store.capture(Stage.SIDE_POSE)
        path = Path(ref)
        self.assertTrue(path.name.startswith("side_pose_"))
        self.assertEqual(path.suffix, ".jpg")
        self.assertTrue(ImageStore.exists(ref))
        self.assertEqual(path.read_bytes()[:2], b"\xff\xd8")

    def test_clear_drops_frame(self):
        self.store.update_frame(np.zeros((8, 8, 3), dtype=np.uint8))
        self.store.clear()
        with self.assertRaises(CaptureError):
            self.store.capture(Stage.FRONT_POSE)

    def test_unencodable_frame_raises_capture_error(self):
        self.store.update_frame(np.zeros((0, 0, 3), dtype=np.uint8))
        with self.assertRaises(CaptureError):
            self.store.capture(Stage.FRONT_POSE)
        self.assertFalse(self.output_dir.exists())

    def test_exists(self):
        self.assertFalse(ImageStore.exists(None))
        self.assertFalse(ImageStore.exists(str(self.output_dir / "nope.jpg")))
