"""
Tremor evaluator.

Linear acceleration is high-pass filtered per axis and appended to a trailing
window. Every ``eval_interval_ms`` the window casts one vote: a hit when the
high-pass energy is high enough and the x axis crosses zero at a rate inside
the tremor band, a miss otherwise. Votes feed a leaky counter, so a brief
dropout inside an ongoing episode costs one step instead of starting over.
When the counter reaches ``sustained_windows`` a tremor is reported and the
evaluator forgets the episode.
"""

from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional

import structlog

from fallguard.core.config import TremorConfig
from .signal import HighPassFilter, magnitude, rms, zero_crossings

logger = structlog.get_logger(__name__)

@dataclass(frozen=True)
class WindowEntry:
    t_ms: int
    hp_x: float
    hp_magnitude: float

@dataclass(frozen=True)
class TremorVerdict:
    """Figures from the evaluation cycle that completed a tremor episode."""
    rms: float
    zero_crossings: int
    hits: int
    window_samples: int

class TremorWindow:
    """Time-bounded trailing window; the oldest entry is never older than ``length_ms``."""

    def __init__(self, length_ms: int):
        self.length_ms = length_ms
        self._entries: Deque[WindowEntry] = deque()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def append(self, entry: WindowEntry) -> None:
        self._entries.append(entry)
        self.prune(entry.t_ms)

    def prune(self, now_ms: int) -> None:
        while self._entries and now_ms - self._entries[0].t_ms > self.length_ms:
            self._entries.popleft()

    def clear(self) -> None:
        self._entries.clear()

    @property
    def oldest_ms(self) -> Optional[int]:
        return self._entries[0].t_ms if self._entries else None

class TremorEvaluator:
    def __init__(self, config: TremorConfig, highpass_alpha: float):
        self.config = config
        self.highpass = HighPassFilter(highpass_alpha)
        self.window = TremorWindow(config.window_ms)
        self.hits = 0
        self.last_eval_ms: Optional[int] = None

    def update(self, lx: float, ly: float, lz: float, now_ms: int) -> Optional[TremorVerdict]:
        """Add one linear-acceleration sample; returns a verdict when a tremor is confirmed."""
        hp_x, hp_y, hp_z = self.highpass.update(lx, ly, lz)
        self.window.append(WindowEntry(now_ms, hp_x, magnitude(hp_x, hp_y, hp_z)))

        if self.last_eval_ms is not None and now_ms - self.last_eval_ms < self.config.eval_interval_ms:
            return None
        self.last_eval_ms = now_ms
        return self._evaluate()

    def _evaluate(self) -> Optional[TremorVerdict]:
        cfg = self.config
        if len(self.window) < cfg.min_active_samples:
            self._miss()
            return None

        energy = rms(entry.hp_magnitude for entry in self.window)
        crossings = zero_crossings([entry.hp_x for entry in self.window], cfg.deadzone)
        rhythmic = cfg.min_zero_cross <= crossings <= cfg.max_zero_cross
        severe = energy >= cfg.min_rms

        if rhythmic and severe:
            self.hits += 1
        else:
            self._miss()
        logger.debug("Tremor evaluation", rms=round(energy, 2), zero_crossings=crossings,
                     hits=self.hits, samples=len(self.window))

        if self.hits < cfg.sustained_windows:
            return None

        verdict = TremorVerdict(
            rms=energy,
            zero_crossings=crossings,
            hits=self.hits,
            window_samples=len(self.window),
        )
        # Forget the episode so the same shaking cannot trigger again
        self.hits = 0
        self.window.clear()
        return verdict

    def _miss(self) -> None:
        self.hits = max(0, self.hits - 1)

    def reset(self) -> None:
        self.hits = 0
        self.window.clear()
        self.last_eval_ms = None
