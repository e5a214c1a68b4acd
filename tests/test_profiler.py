import unittest

from posecapture.utils.profiler import FPSMeter


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class FPSMeterTest(unittest.TestCase):
    def test_rolling_average(self):
        clock = FakeClock()
        meter = FPSMeter(window=4, clock=clock)
        self.assertEqual(meter.get_fps(), 0.0)
        for _ in range(4):
            clock.now += 0.05
            meter.tick()
        self.assertAlmostEqual(meter.get_fps(), 20.0)

    def test_reset(self):
        clock = FakeClock()
        meter = FPSMeter(clock=clock)
        clock.now += 0.1
        meter.tick()
        meter.reset()
        self.assertEqual(meter.get_fps(), 0.0)
