"""
Fall state machine: free-fall -> impact -> stillness.

Each stage on its own is a poor fall signal. A dropped phone free-falls,
running and jumping produce impacts. What separates a fall is the sequence,
and in particular that the person stays down afterwards: voluntary movement
keeps linear-acceleration energy above the stillness limits.

Stages::

    IDLE --|a| <= free-fall threshold--> FREE_FALL_CANDIDATE
    FREE_FALL_CANDIDATE --|a| recovers--> IDLE
    FREE_FALL_CANDIDATE --held for free_fall_min_ms--> FREE_FALL_CONFIRMED
    FREE_FALL_CONFIRMED --|a| >= impact threshold within window--> POST_IMPACT
    FREE_FALL_CONFIRMED --impact window elapses--> IDLE
    POST_IMPACT --stillness window elapses--> verdict, then IDLE

The smoothed raw magnitude drives the first three stages. The stillness stage
accumulates linear-acceleration magnitude.
"""

from dataclasses import dataclass
from enum import Enum, auto
from math import inf, sqrt
from typing import Optional, Union

import structlog

from fallguard.core.config import FallConfig

logger = structlog.get_logger(__name__)

class FallStage(Enum):
    IDLE = auto()
    FREE_FALL_CANDIDATE = auto()
    FREE_FALL_CONFIRMED = auto()
    POST_IMPACT = auto()

@dataclass(frozen=True)
class Idle:
    stage = FallStage.IDLE

@dataclass(frozen=True)
class FreeFallCandidate:
    start_ms: int
    stage = FallStage.FREE_FALL_CANDIDATE

@dataclass(frozen=True)
class FreeFallConfirmed:
    start_ms: int
    at_ms: int
    stage = FallStage.FREE_FALL_CONFIRMED

@dataclass
class PostImpact:
    """Impact seen; accumulating linear motion to judge stillness."""
    at_ms: int
    sample_count: int = 0
    energy_sum: float = 0.0
    peak: float = 0.0
    stage = FallStage.POST_IMPACT

    def accumulate(self, linear_mag: float) -> None:
        self.sample_count += 1
        self.energy_sum += linear_mag * linear_mag
        self.peak = max(self.peak, linear_mag)

    @property
    def rms(self) -> float:
        # No samples means nothing proves stillness
        if self.sample_count == 0:
            return inf
        return sqrt(self.energy_sum / self.sample_count)

FallState = Union[Idle, FreeFallCandidate, FreeFallConfirmed, PostImpact]

@dataclass(frozen=True)
class StillnessVerdict:
    """Outcome of the single-shot stillness evaluation."""
    is_fall: bool
    impact_ms: int
    peak: float
    rms: float
    sample_count: int

class FallStateMachine:
    """
    Staged fall classifier.

    Feed it the low-passed raw magnitude through ``update_magnitude`` and the
    linear-acceleration magnitude through ``update_linear``. Either call
    returns a ``StillnessVerdict`` when the stillness window closes, and the
    machine is back in IDLE afterwards whatever the verdict.
    """

    def __init__(self, config: FallConfig):
        self.config = config
        self.state: FallState = Idle()

    @property
    def stage(self) -> FallStage:
        return self.state.stage

    def update_magnitude(self, magnitude: float, now_ms: int) -> Optional[StillnessVerdict]:
        """Advance the free-fall and impact stages with a smoothed raw magnitude."""
        cfg = self.config
        state = self.state

        if isinstance(state, PostImpact):
            # Raw spikes after impact are irrelevant; only time matters here.
            # A linear sample at the boundary instant closes the window itself,
            # so this path only fires once the window is strictly past.
            if now_ms - state.at_ms > cfg.stillness_window_ms:
                return self._evaluate(state)
            return None

        if isinstance(state, FreeFallConfirmed):
            age = now_ms - state.at_ms
            if magnitude >= cfg.impact_threshold and age <= cfg.impact_window_ms:
                self.state = PostImpact(at_ms=now_ms)
                logger.debug("Impact detected", magnitude=round(magnitude, 2),
                             since_confirm_ms=age)
            elif age > cfg.impact_window_ms:
                logger.debug("Impact window elapsed without impact")
                self.reset()
            return None

        if magnitude > cfg.free_fall_threshold:
            if isinstance(state, FreeFallCandidate):
                logger.debug("Free-fall candidate abandoned",
                             duration_ms=now_ms - state.start_ms)
                self.reset()
            return None

        if isinstance(state, Idle):
            self.state = FreeFallCandidate(start_ms=now_ms)
            logger.debug("Free-fall candidate started", magnitude=round(magnitude, 2))
        elif now_ms - state.start_ms >= cfg.free_fall_min_ms:
            self.state = FreeFallConfirmed(start_ms=state.start_ms, at_ms=now_ms)
            logger.debug("Free-fall confirmed", duration_ms=now_ms - state.start_ms)
        return None

    def update_linear(self, linear_mag: float, now_ms: int) -> Optional[StillnessVerdict]:
        """Accumulate post-impact linear motion and evaluate once the window closes."""
        state = self.state
        if not isinstance(state, PostImpact):
            return None

        state.accumulate(linear_mag)
        if now_ms - state.at_ms < self.config.stillness_window_ms:
            return None
        return self._evaluate(state)

    def _evaluate(self, state: PostImpact) -> StillnessVerdict:
        cfg = self.config
        rms = state.rms
        verdict = StillnessVerdict(
            is_fall=state.peak <= cfg.stillness_max_linear and rms <= cfg.stillness_rms_linear,
            impact_ms=state.at_ms,
            peak=state.peak,
            rms=rms,
            sample_count=state.sample_count,
        )
        logger.debug("Stillness check", is_still=verdict.is_fall,
                     peak=round(verdict.peak, 2), rms=round(rms, 2),
                     samples=state.sample_count)
        self.reset()
        return verdict

    def reset(self) -> None:
        """Drop every stage timestamp and accumulator."""
        self.state = Idle()

    # --- Accessors -----------------------------------------------------------

    @property
    def free_fall_start_ms(self) -> Optional[int]:
        if isinstance(self.state, (FreeFallCandidate, FreeFallConfirmed)):
            return self.state.start_ms
        return None

    @property
    def free_fall_confirmed_ms(self) -> Optional[int]:
        if isinstance(self.state, FreeFallConfirmed):
            return self.state.at_ms
        return None

    @property
    def impact_ms(self) -> Optional[int]:
        if isinstance(self.state, PostImpact):
            return self.state.at_ms
        return None

    @property
    def stillness_start_ms(self) -> Optional[int]:
        # Stillness accumulation starts at the impact sample
        return self.impact_ms

    @property
    def stillness_sample_count(self) -> int:
        return self.state.sample_count if isinstance(self.state, PostImpact) else 0

    @property
    def stillness_energy(self) -> float:
        return self.state.energy_sum if isinstance(self.state, PostImpact) else 0.0

    @property
    def stillness_peak(self) -> float:
        return self.state.peak if isinstance(self.state, PostImpact) else 0.0
