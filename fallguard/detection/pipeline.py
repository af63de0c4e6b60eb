"""
Detection pipeline.

One ``DetectionPipeline`` is built per monitoring session and owns every
filter and state machine. Samples are processed synchronously, one at a time:

    sample -> validation -> gravity estimator
           -> raw magnitude low-pass -> fall state machine
           -> linear magnitude -> stillness accumulation + tremor evaluator
           -> alert gate -> sink

Three sample kinds are accepted. RAW samples drive the fall stages and, unless
a dedicated linear-acceleration sensor is in use, are turned into linear
samples by subtracting the gravity estimate. GRAVITY samples replace the
gravity estimate. LINEAR samples come from a dedicated sensor and are only
accepted when the pipeline was built for one; feeding both a dedicated and a
derived linear stream would count every movement twice.
"""

from dataclasses import dataclass, field
from enum import Enum
from math import isfinite
from typing import Any, Callable, Dict, List, Optional

import structlog

from fallguard.core.config import ApplicationConfig
from .fall import FallStateMachine, StillnessVerdict
from .gate import AlertGate
from .gravity import GravityEstimator
from .signal import LowPassFilter, magnitude
from .tremor import TremorEvaluator, TremorVerdict

logger = structlog.get_logger(__name__)

class SampleKind(str, Enum):
    RAW = "raw"
    GRAVITY = "gravity"
    LINEAR = "linear"

class Trigger(str, Enum):
    FALL = "fall"
    TREMOR = "tremor"

@dataclass(frozen=True)
class Sample:
    """One timestamped 3-axis reading; ``t_ms`` is a monotonic clock in milliseconds."""
    kind: SampleKind
    ax: float
    ay: float
    az: float
    t_ms: int

@dataclass(frozen=True)
class EmergencyEvent:
    trigger: Trigger
    timestamp_ms: int
    details: Dict[str, Any] = field(default_factory=dict)

EmergencySink = Callable[[EmergencyEvent], None]

class DetectionPipeline:
    """
    Fall and tremor detection over a stream of samples.

    Args:
        config: Application configuration holding every threshold
        sink: Optional callable receiving each emitted event
        dedicated_linear: Whether LINEAR samples come from a dedicated sensor.
            Defaults to ``config.service.dedicated_linear_sensor``.
    """

    def __init__(self,
                 config: ApplicationConfig,
                 sink: Optional[EmergencySink] = None,
                 dedicated_linear: Optional[bool] = None):
        self.config = config
        self.sink = sink
        if dedicated_linear is None:
            dedicated_linear = config.service.dedicated_linear_sensor
        self.dedicated_linear = dedicated_linear

        filters = config.filters
        self.gravity = GravityEstimator(filters.gravity_alpha, filters.standard_gravity)
        self.raw_magnitude = LowPassFilter(filters.raw_magnitude_alpha, filters.standard_gravity)
        self.fall = FallStateMachine(config.fall)
        self.tremor = TremorEvaluator(config.tremor, filters.tremor_highpass_alpha)
        self.gate = AlertGate(config.alert.cooldown_ms)

        self.last_linear_magnitude = 0.0
        self.last_sample_ms: Optional[int] = None
        self.processed_samples = 0
        self.rejected_samples = 0

    def process(self, sample: Sample) -> List[EmergencyEvent]:
        """
        Run one sample through the pipeline.

        Returns:
            The events that passed the alert gate for this sample, usually none
        """
        reason = self._rejection_reason(sample)
        if reason is not None:
            self.rejected_samples += 1
            logger.debug("Sample rejected", reason=reason, kind=sample.kind.value, t_ms=sample.t_ms)
            return []

        self.last_sample_ms = sample.t_ms
        self.processed_samples += 1
        emitted: List[EmergencyEvent] = []

        if sample.kind is SampleKind.GRAVITY:
            self.gravity.set_sensor_gravity(sample.ax, sample.ay, sample.az)
        elif sample.kind is SampleKind.LINEAR:
            self._handle_linear(sample.ax, sample.ay, sample.az, sample.t_ms, emitted)
        else:
            self._handle_raw(sample, emitted)

        return emitted

    def _rejection_reason(self, sample: Sample) -> Optional[str]:
        # Non-finite values would poison every EMA for the rest of the session
        values = (sample.ax, sample.ay, sample.az)
        if not all(isfinite(v) for v in values):
            return "non_finite"
        limit = self.config.filters.max_abs_acceleration
        if any(abs(v) > limit for v in values):
            return "out_of_range"
        if self.last_sample_ms is not None and sample.t_ms < self.last_sample_ms:
            return "time_went_backwards"
        if sample.kind is SampleKind.LINEAR and not self.dedicated_linear:
            return "linear_source_conflict"
        return None

    def _handle_raw(self, sample: Sample, emitted: List[EmergencyEvent]) -> None:
        smoothed = self.raw_magnitude.update(magnitude(sample.ax, sample.ay, sample.az))
        verdict = self.fall.update_magnitude(smoothed, sample.t_ms)
        if verdict is not None:
            self._on_stillness_verdict(verdict, sample.t_ms, emitted)

        if not self.dedicated_linear:
            lx, ly, lz = self.gravity.linear(sample.ax, sample.ay, sample.az)
            self._handle_linear(lx, ly, lz, sample.t_ms, emitted)

    def _handle_linear(self, lx: float, ly: float, lz: float, now_ms: int,
                       emitted: List[EmergencyEvent]) -> None:
        self.last_linear_magnitude = magnitude(lx, ly, lz)

        verdict = self.fall.update_linear(self.last_linear_magnitude, now_ms)
        if verdict is not None:
            self._on_stillness_verdict(verdict, now_ms, emitted)

        tremor = self.tremor.update(lx, ly, lz, now_ms)
        if tremor is not None:
            self._on_tremor(tremor, now_ms, emitted)

    def _on_stillness_verdict(self, verdict: StillnessVerdict, now_ms: int,
                              emitted: List[EmergencyEvent]) -> None:
        if not verdict.is_fall:
            return
        self._emit(Trigger.FALL, now_ms, {
            'impact_ms': verdict.impact_ms,
            'peak': verdict.peak,
            'rms': verdict.rms,
            'samples': verdict.sample_count,
        }, emitted)

    def _on_tremor(self, verdict: TremorVerdict, now_ms: int, emitted: List[EmergencyEvent]) -> None:
        self._emit(Trigger.TREMOR, now_ms, {
            'rms': verdict.rms,
            'zero_crossings': verdict.zero_crossings,
            'hits': verdict.hits,
            'samples': verdict.window_samples,
        }, emitted)

    def _emit(self, trigger: Trigger, now_ms: int, details: Dict[str, Any],
              emitted: List[EmergencyEvent]) -> None:
        if not self.gate.try_acquire(now_ms, trigger.value):
            return

        event = EmergencyEvent(trigger=trigger, timestamp_ms=now_ms, details=details)
        logger.info("Emergency trigger emitted", trigger=trigger.value, t_ms=now_ms)
        emitted.append(event)

        if self.sink is not None:
            try:
                self.sink(event)
            except Exception:
                # Delivery is fire-and-forget; a broken sink must not stop detection
                logger.exception("Emergency sink failed", trigger=trigger.value)

    def reset_fall(self) -> None:
        self.fall.reset()

    def reset_tremor(self) -> None:
        self.tremor.reset()
