"""
Event tracing system for fallguard.

This module keeps a bounded record of the events flowing over the bus so a
session can be inspected after the fact: which emergencies were emitted, how
many samples arrived, and at what rate.
"""

import time
import logging
from typing import Dict, List, Optional, Any, Deque
from collections import deque
from .events import BaseEvent

class EventTracer:
    """
    Traces event flow through the system for debugging and observability.

    This tracer records events as they're published, maintaining a buffer of
    recent events for analysis.
    """

    def __init__(self, max_events: int = 1000):
        """
        Initialize the event tracer.

        Args:
            max_events: Maximum number of events to keep in the buffer
        """
        self.max_events = max_events
        self.events: Deque[Dict[str, Any]] = deque(maxlen=max_events)
        self.logger = logging.getLogger(__name__)

    def record_event(self, event: BaseEvent) -> None:
        """
        Record an event in the trace buffer.

        Args:
            event: The event to record
        """
        self.events.append({
            'timestamp': time.time(),
            'trace_id': event.trace_id,
            'type': event.type,
            'producer': event.producer_name,
            'event_data': event.model_dump(exclude={'trace_id', 'type', 'producer_name'})
        })
        self.logger.debug(f"Recorded event {event.type} from {event.producer_name}")

    def get_trace(self, trace_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Get all events for a specific trace ID.

        Args:
            trace_id: The trace ID to filter by, or None for all events

        Returns:
            List of events matching the trace ID
        """
        if trace_id is None:
            return list(self.events)
        return [e for e in self.events if e['trace_id'] == trace_id]

    def get_events_by_type(self, event_type: str) -> List[Dict[str, Any]]:
        """Get all recorded events of a specific type."""
        return [e for e in self.events if e['type'] == event_type]

    def get_event_count(self) -> int:
        return len(self.events)

    def clear(self) -> None:
        """Clear all recorded events."""
        self.events.clear()

    def get_event_stats(self) -> Dict[str, Any]:
        """
        Get statistics about recorded events.

        Returns:
            Dictionary with total count and per-type / per-producer counts
        """
        event_types: Dict[str, int] = {}
        producers: Dict[str, int] = {}
        for event in self.events:
            event_types[event['type']] = event_types.get(event['type'], 0) + 1
            producers[event['producer']] = producers.get(event['producer'], 0) + 1

        return {
            'total_events': len(self.events),
            'event_types': event_types,
            'producers': producers,
        }
