import unittest

from posecapture.ui.voice_feedback import VoiceFeedback


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class VoiceFeedbackTest(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.voice = VoiceFeedback(enable_tts=False, enable_beep=False, min_repeat_interval=3.0, clock=self.clock)

    def tearDown(self):
        self.voice.stop()

    def test_repeat_inside_window_is_suppressed(self):
        self.assertTrue(self.voice.provide_feedback("Straighten your Right arm"))
        self.clock.now += 1.0
        self.assertFalse(self.voice.provide_feedback("Straighten your Right arm"))
        self.clock.now += 2.5
        self.assertTrue(self.voice.provide_feedback("Straighten your Right arm"))

    def test_new_phrase_is_spoken_immediately(self):
        self.assertTrue(self.voice.provide_feedback("3"))
        self.assertTrue(self.voice.provide_feedback("2"))
        self.assertTrue(self.voice.provide_feedback("3"))

    def test_empty_text_is_ignored(self):
        self.assertFalse(self.voice.provide_feedback(""))

    def test_disabled_tts_queues_nothing(self):
        self.voice.provide_feedback("Hold your pose steady")
        self.voice.shutter()
        self.assertTrue(self.voice.queue.empty())
