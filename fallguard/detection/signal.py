"""
Signal helpers shared by the fall and tremor detectors.

Everything here is plain arithmetic on floats. The filters are single-pole
exponential moving averages of the form ``state += alpha * (x - state)``.
"""

from math import sqrt
from typing import Iterable, Sequence, Tuple

import numpy as np

Vector = Tuple[float, float, float]

def magnitude(x: float, y: float, z: float) -> float:
    """Euclidean norm of a 3-axis reading."""
    return sqrt(x * x + y * y + z * z)

class LowPassFilter:
    """Single-pole low-pass (exponential moving average) over a scalar."""

    def __init__(self, alpha: float, initial: float = 0.0):
        self.alpha = alpha
        self.value = initial

    def update(self, x: float) -> float:
        self.value += self.alpha * (x - self.value)
        return self.value

class VectorLowPassFilter:
    """Per-axis low-pass filter over a 3-axis reading."""

    def __init__(self, alpha: float, initial: Vector = (0.0, 0.0, 0.0)):
        self.alpha = alpha
        self.x, self.y, self.z = initial

    @property
    def value(self) -> Vector:
        return (self.x, self.y, self.z)

    def set(self, x: float, y: float, z: float) -> None:
        self.x, self.y, self.z = x, y, z

    def update(self, x: float, y: float, z: float) -> Vector:
        self.x += self.alpha * (x - self.x)
        self.y += self.alpha * (y - self.y)
        self.z += self.alpha * (z - self.z)
        return self.value

class HighPassFilter:
    """
    Per-axis high-pass built from a low-pass: ``hp = x - lpf(x)``.

    A large alpha makes the inner low-pass track the input closely, so only
    the fast-changing part of the signal survives the subtraction.
    """

    def __init__(self, alpha: float):
        self._lpf = VectorLowPassFilter(alpha)

    def update(self, x: float, y: float, z: float) -> Vector:
        lx, ly, lz = self._lpf.update(x, y, z)
        return (x - lx, y - ly, z - lz)

def rms(values: Iterable[float]) -> float:
    """Root mean square of a series; 0.0 for an empty series."""
    arr = np.fromiter(values, dtype=float)
    if arr.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(arr * arr)))

def zero_crossings(values: Sequence[float], deadzone: float) -> int:
    """
    Count sign reversals in a series.

    Samples with ``|v| < deadzone`` are skipped entirely: they neither count
    as a crossing nor reset the sign being tracked, so noise around zero
    cannot fake a rhythm.
    """
    count = 0
    prev_sign = 0
    for v in values:
        if abs(v) < deadzone:
            continue
        sign = 1 if v > 0 else -1
        if prev_sign != 0 and sign != prev_sign:
            count += 1
        prev_sign = sign
    return count
