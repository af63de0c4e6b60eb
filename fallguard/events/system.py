"""
System events for fallguard.

This module defines events related to application lifecycle and service state.
"""

from typing import Optional, Literal
from fallguard.core.events import BaseEvent, EventType

class ApplicationStartupCompletedEvent(BaseEvent):
    """
    Event published when application startup has completed.

    This event signals that all core services have been initialized
    and the application is ready to accept sensor samples.
    """
    type: Literal[EventType.APPLICATION_STARTUP_COMPLETED] = EventType.APPLICATION_STARTUP_COMPLETED

class ServiceStateChangedEvent(BaseEvent):
    """
    Event published when a service changes state.

    This event is used to communicate service lifecycle changes
    (started, stopping, stopped).
    """
    type: Literal[EventType.SERVICE_STATE_CHANGED] = EventType.SERVICE_STATE_CHANGED
    service_name: str
    state: str  # 'started', 'stopping', 'stopped', 'error'
    error: Optional[str] = None  # Present only if state is 'error'

