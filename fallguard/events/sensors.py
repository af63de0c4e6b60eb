"""
Sensor events for fallguard.

This module defines the event that carries accelerometer readings from the
acquisition layer to the detection service.
"""

from typing import Literal
from pydantic import Field
from fallguard.core.events import BaseEvent, EventType

class SensorSampleEvent(BaseEvent):
    """
    Event published for every sensor reading.

    ``kind`` tells the pipeline whether the reading is raw acceleration,
    a gravity vector, or linear acceleration from a dedicated sensor.
    """
    type: Literal[EventType.SENSOR_SAMPLE] = EventType.SENSOR_SAMPLE
    kind: Literal["raw", "gravity", "linear"] = "raw"
    x: float  # m/s^2
    y: float  # m/s^2
    z: float  # m/s^2
    t_ms: int = Field(ge=0)  # Monotonic clock, milliseconds
