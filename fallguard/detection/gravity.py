"""
Gravity estimation and linear-acceleration derivation.

A phone at rest measures only gravity, so a slow low-pass over the raw
accelerometer converges on the gravity vector; whatever is left after
subtracting it is the linear (motion) part. When the platform exposes a
dedicated gravity sensor its readings replace the estimate.
"""

from .signal import Vector, VectorLowPassFilter

class GravityEstimator:
    """Tracks the gravity vector and derives linear acceleration from raw samples."""

    def __init__(self, alpha: float, standard_gravity: float = 9.81):
        # Assume the device starts upright until told otherwise
        self._filter = VectorLowPassFilter(alpha, (0.0, 0.0, standard_gravity))
        self.has_sensor_reading = False

    @property
    def gravity(self) -> Vector:
        return self._filter.value

    def set_sensor_gravity(self, x: float, y: float, z: float) -> None:
        """Adopt a reading from a dedicated gravity sensor."""
        self._filter.set(x, y, z)
        self.has_sensor_reading = True

    def linear(self, ax: float, ay: float, az: float) -> Vector:
        """
        Update the estimate with a raw sample and return raw minus gravity.

        Once a dedicated gravity reading has arrived the low-pass update is
        skipped and the sensor value is used as is.
        """
        if not self.has_sensor_reading:
            self._filter.update(ax, ay, az)
        gx, gy, gz = self._filter.value
        return (ax - gx, ay - gy, az - gz)
