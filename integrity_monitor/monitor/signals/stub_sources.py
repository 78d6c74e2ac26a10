"""
Stub Presence Sources - Deterministic and randomized stand-ins

ScriptedPresenceSource replays a fixed sequence of readings (tests, demos).
RandomPresenceSource reproduces the browser prototype's stand-in signal:
face present with probability 0.9, gaze on screen with probability 0.85.
"""

import logging
import random
from typing import Any, Iterable, List, Optional, Tuple, Union

from ..events import PresenceReading
from .base import PresenceSource

logger = logging.getLogger(__name__)


class ScriptedPresenceSource(PresenceSource):
    """Returns readings from a script, then repeats the final one (or None)"""

    name = "scripted"

    def __init__(
        self,
        readings: Iterable[Union[PresenceReading, Tuple[bool, bool]]],
        repeat_last: bool = True
    ):
        self.readings: List[PresenceReading] = [
            r if isinstance(r, PresenceReading) else PresenceReading(*r)
            for r in readings
        ]
        self.repeat_last = repeat_last
        self._index = 0

    def read(self, handle: Any = None) -> Optional[PresenceReading]:
        if self._index < len(self.readings):
            reading = self.readings[self._index]
            self._index += 1
            return reading
        if self.repeat_last and self.readings:
            return self.readings[-1]
        return None

    def reset(self):
        self._index = 0


class RandomPresenceSource(PresenceSource):
    """Randomized heuristic stand-in, seedable for reproducible runs"""

    name = "random"

    def __init__(
        self,
        presence_probability: float = 0.9,
        gaze_probability: float = 0.85,
        seed: Optional[int] = None
    ):
        self.presence_probability = presence_probability
        self.gaze_probability = gaze_probability
        self.seed = seed
        self._rng = random.Random(seed)

    def read(self, handle: Any = None) -> Optional[PresenceReading]:
        presence = self._rng.random() < self.presence_probability
        gaze = self._rng.random() < self.gaze_probability
        return PresenceReading(presence=presence, gaze=gaze)

    def reset(self):
        # Same seed -> same sequence for every run of a session
        if self.seed is not None:
            self._rng = random.Random(self.seed)
