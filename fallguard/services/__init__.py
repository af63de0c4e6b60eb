"""
Service implementations for fallguard.

Services wrap the detection pipeline with a lifecycle and connect it to the
event bus: sensor samples come in as events, emergencies go out as events.
"""

from .detection_service import DetectionService

__all__ = ['DetectionService']
