"""
Detection pipeline for falls and tremors.

The pipeline does no I/O: it takes samples in and hands events out, and
runs the same inside the detection service and the replay tool.
"""

from .signal import magnitude, zero_crossings, rms
from .fall import FallStage, FallStateMachine, StillnessVerdict
from .tremor import TremorEvaluator, TremorVerdict, TremorWindow
from .gate import AlertGate
from .gravity import GravityEstimator
from .pipeline import DetectionPipeline, EmergencyEvent, Sample, SampleKind, Trigger

__all__ = [
    'magnitude',
    'zero_crossings',
    'rms',
    'FallStage',
    'FallStateMachine',
    'StillnessVerdict',
    'TremorEvaluator',
    'TremorVerdict',
    'TremorWindow',
    'AlertGate',
    'GravityEstimator',
    'DetectionPipeline',
    'EmergencyEvent',
    'Sample',
    'SampleKind',
    'Trigger',
]
