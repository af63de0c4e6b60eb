"""
Detection events for fallguard.

This module defines the event emitted when the pipeline classifies a fall or
a tremor. It is the only output of the system; the notification layer that
consumes it can rely on the alert cooldown having been applied already.
"""

from typing import Any, Dict, Literal
from pydantic import Field
from fallguard.core.events import BaseEvent, EventType

class EmergencyDetectedEvent(BaseEvent):
    """
    Event published when a fall or tremor passes the alert gate.
    """
    type: Literal[EventType.EMERGENCY_DETECTED] = EventType.EMERGENCY_DETECTED
    trigger: Literal["fall", "tremor"]
    detected_at_ms: int  # Sample clock of the triggering sample
    details: Dict[str, Any] = Field(default_factory=dict)  # Evaluation figures (peak, rms, zero_crossings, ...)
