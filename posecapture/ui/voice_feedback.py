from __future__ import annotations

import queue
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Union

import numpy as np
from loguru import logger

try:
    import simpleaudio as sa
except Exception:  # pragma: no cover - optional dependency in headless deployments
    sa = None  # type: ignore[assignment]

try:
    import pyttsx3
except ImportError:  # pragma: no cover
    pyttsx3 = None  # type: ignore[assignment]

SAMPLE_RATE = 44100


@dataclass(frozen=True)
class Phrase:
    text: str


@dataclass(frozen=True)
class Tone:
    frequency: int
    duration: float


SHUTTER_TONE = Tone(frequency=880, duration=0.15)
AudioItem = Union[Phrase, Tone]


class VoiceFeedback:
    """Queues spoken prompts on a worker thread, suppressing quick repeats of the same phrase."""

    def __init__(
        self,
        enable_tts: bool = True,
        enable_beep: bool = True,
        voice_rate: int = 175,
        beep_volume: float = 0.8,
        min_repeat_interval: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.enable_tts = enable_tts and pyttsx3 is not None
        self.enable_beep = enable_beep and sa is not None
        self.beep_volume = float(max(0.0, min(1.0, beep_volume)))
        self.min_repeat_interval = max(0.0, min_repeat_interval)
        self._clock = clock
        self._last_spoken: Dict[str, float] = {}
        self._last_text: Optional[str] = None
        # ``None`` is the shutdown sentinel.
        self.queue: "queue.Queue[Optional[AudioItem]]" = queue.Queue()
        self.tts_engine = None
        if self.enable_tts:
            self.tts_engine = pyttsx3.init()
            self.tts_engine.setProperty("rate", voice_rate)
        self.worker = threading.Thread(target=self._run, name="voice-feedback", daemon=True)
        self.worker.start()

    def provide_feedback(self, text: str) -> bool:
        """Queue ``text`` unless it was the last phrase and is still inside the repeat window."""
        if not text:
            return False
        now = self._clock()
        last = self._last_spoken.get(text)
        if text == self._last_text and last is not None and now - last < self.min_repeat_interval:
            return False
        self._last_spoken[text] = now
        self._last_text = text
        if self.enable_tts:
            self.queue.put(Phrase(text))
        return True

    def shutter(self) -> None:
        if self.enable_beep:
            self.queue.put(SHUTTER_TONE)

    def stop(self) -> None:
        self.queue.put(None)
        self.worker.join(timeout=2)
        if self.tts_engine is not None:
            self.tts_engine.stop()  # type: ignore[call-arg]

    def _run(self) -> None:
        while True:
            item = self.queue.get()
            if item is None:
                return
            try:
                if isinstance(item, Phrase):
                    self._speak(item)
                else:
                    self._play(item)
            except RuntimeError as exc:
                logger.warning("Audio playback failed: {}", exc)

    def _speak(self, phrase: Phrase) -> None:
        if self.tts_engine is None:
            return
        self.tts_engine.say(phrase.text)
        self.tts_engine.runAndWait()

    def _play(self, tone: Tone) -> None:
        if tone.duration <= 0 or tone.frequency <= 0 or sa is None:
            return
        t = np.linspace(0, tone.duration, int(SAMPLE_RATE * tone.duration), False)
        samples = np.sin(tone.frequency * 2 * np.pi * t) * (32767 * self.beep_volume)
        sa.play_buffer(samples.astype(np.int16), 1, 2, SAMPLE_RATE)
