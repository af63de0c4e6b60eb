"""
Detection service.

Consumes sensor sample events, runs them through a DetectionPipeline and
publishes an EmergencyDetectedEvent for every fall or tremor that passes the
alert gate. Each start() begins a new monitoring session with fresh filters
and state machines.
"""

from typing import Optional

from fallguard.core.config import ApplicationConfig, get_config
from fallguard.core.events import BaseEvent, EventType
from fallguard.core.service import BaseService
from fallguard.detection import DetectionPipeline, Sample, SampleKind
from fallguard.events.detection import EmergencyDetectedEvent
from fallguard.events.sensors import SensorSampleEvent

class DetectionService(BaseService):
    """Service running the fall and tremor pipeline over bus-delivered samples."""

    PRODUCES_EVENTS = {
        EventType.EMERGENCY_DETECTED: {
            'schema': EmergencyDetectedEvent,
            'description': "A fall or tremor was detected and passed the alert cooldown",
        },
    }

    CONSUMES_EVENTS = {
        EventType.SENSOR_SAMPLE: 'handle_event',
    }

    def __init__(self, event_bus, service_registry, name: Optional[str] = None,
                 config: Optional[ApplicationConfig] = None):
        super().__init__(event_bus, service_registry, name=name, config=config or get_config())
        # Samples are produced outside this package, so the schema is declared here
        event_bus.registry.register_event(
            EventType.SENSOR_SAMPLE,
            SensorSampleEvent,
            "One timestamped accelerometer, gravity or linear-acceleration reading",
        )
        self.pipeline: Optional[DetectionPipeline] = None

    async def on_start(self) -> None:
        self.pipeline = DetectionPipeline(self.config)
        self.logger.info("Monitoring session started",
                         dedicated_linear=self.pipeline.dedicated_linear)

    async def on_stop(self) -> None:
        if self.pipeline is not None:
            self.logger.info("Monitoring session ended",
                             processed=self.pipeline.processed_samples,
                             rejected=self.pipeline.rejected_samples,
                             alerts=self.pipeline.gate.accepted,
                             suppressed=self.pipeline.gate.suppressed)
        self.pipeline = None

    async def handle_event(self, event: BaseEvent) -> None:
        if event.type != EventType.SENSOR_SAMPLE or self.pipeline is None:
            return

        sample = Sample(
            kind=SampleKind(event.kind),
            ax=event.x,
            ay=event.y,
            az=event.z,
            t_ms=event.t_ms,
        )
        for emergency in self.pipeline.process(sample):
            await self.publish(EmergencyDetectedEvent(
                producer_name=self.name,
                trigger=emergency.trigger.value,
                detected_at_ms=emergency.timestamp_ms,
                details=emergency.details,
            ))
