"""
Unit tests for the DetectionService.

The service runs on a real EventBus; samples go in as SensorSampleEvents and
emergencies are captured by a bus subscriber.
"""

import unittest

from fallguard.core import EventBus, EventRegistry, EventTracer, EventType, ServiceRegistry
from fallguard.core.config import ApplicationConfig, ServiceConfig
from fallguard.events.sensors import SensorSampleEvent
from fallguard.services import DetectionService
from synthetic import TraceBuilder

def to_event(sample):
    return SensorSampleEvent(
        kind=sample.kind.value,
        x=sample.ax,
        y=sample.ay,
        z=sample.az,
        t_ms=sample.t_ms,
    )

class TestDetectionService(unittest.IsolatedAsyncioTestCase):
    """Test cases for the DetectionService class."""

    def setUp(self):
        """Set up a bus, registries and a service with a dedicated linear sensor."""
        self.event_registry = EventRegistry()
        self.service_registry = ServiceRegistry()
        self.tracer = EventTracer(max_events=100)
        self.event_bus = EventBus(self.event_registry, self.tracer)

        self.config = ApplicationConfig(service=ServiceConfig(dedicated_linear_sensor=True))
        self.service = DetectionService(self.event_bus, self.service_registry, config=self.config)

        self.emergencies = []
        self.event_bus.subscribe(EventType.EMERGENCY_DETECTED, self._capture, "test")

    async def _capture(self, event):
        self.emergencies.append(event)

    async def _publish_trace(self, trace):
        for sample in trace.samples:
            await self.event_bus.publish(to_event(sample), "sensor")

    async def test_start_and_stop(self):
        """Service state follows the lifecycle and the pipeline lives only while running."""
        self.assertEqual(self.service_registry.get_service_state("DetectionService"), "registered")

        await self.service.start()
        self.assertTrue(self.service.running)
        self.assertIsNotNone(self.service.pipeline)
        self.assertTrue(self.service.pipeline.dedicated_linear)
        self.assertEqual(self.service_registry.get_service_state("DetectionService"), "running")

        await self.service.stop()
        self.assertFalse(self.service.running)
        self.assertIsNone(self.service.pipeline)
        self.assertEqual(self.service_registry.get_service_state("DetectionService"), "stopped")

    async def test_fall_trace_publishes_one_emergency(self):
        """A complete fall produces exactly one EmergencyDetectedEvent."""
        await self.service.start()
        await self._publish_trace(TraceBuilder().fall())

        self.assertEqual(len(self.emergencies), 1)
        event = self.emergencies[0]
        self.assertEqual(event.trigger, "fall")
        self.assertEqual(event.producer_name, "DetectionService")
        self.assertEqual(event.detected_at_ms - event.details['impact_ms'], 5000)

    async def test_quiet_trace_publishes_nothing(self):
        await self.service.start()
        trace = TraceBuilder().raw((0.0, 0.0, 9.81), 200, linear=(0.05, 0.05, 0.05))
        await self._publish_trace(trace)
        self.assertEqual(self.emergencies, [])
        self.assertEqual(self.service.pipeline.processed_samples, 400)

    async def test_stopped_service_ignores_samples(self):
        await self.service.start()
        await self.service.stop()
        await self._publish_trace(TraceBuilder().fall())
        self.assertEqual(self.emergencies, [])

    async def test_restart_begins_new_session(self):
        await self.service.start()
        await self._publish_trace(TraceBuilder().fall())
        await self.service.stop()

        # Sample clock restarts with the session; the previous cooldown is gone
        await self.service.start()
        await self._publish_trace(TraceBuilder().fall())
        self.assertEqual(len(self.emergencies), 2)

    async def test_service_registers_event_flow(self):
        await self.service.start()
        flow = self.event_registry.get_event_flow(EventType.SENSOR_SAMPLE)
        self.assertIn("DetectionService", flow['consumers'])
        flow = self.event_registry.get_event_flow(EventType.EMERGENCY_DETECTED)
        self.assertIn("DetectionService", flow['producers'])

    async def test_lifecycle_events_are_traced(self):
        await self.service.start()
        await self.service.stop()
        states = [
            e['event_data']['state']
            for e in self.tracer.get_events_by_type(EventType.SERVICE_STATE_CHANGED)
        ]
        self.assertEqual(states, ['started', 'stopping', 'stopped'])

class DependentService(DetectionService):
    REQUIRED_SERVICES = {"DetectionService"}

class TestServiceDependencies(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.service_registry = ServiceRegistry()
        self.event_bus = EventBus(EventRegistry())
        config = ApplicationConfig()
        self.upstream = DetectionService(self.event_bus, self.service_registry, config=config)
        self.dependent = DependentService(self.event_bus, self.service_registry,
                                          name="Dependent", config=config)

    def test_dependencies_are_registered(self):
        self.assertEqual(self.service_registry.get_dependencies("Dependent"), {"DetectionService"})
        self.assertEqual(self.service_registry.get_dependencies("DetectionService"), set())

    async def test_start_requires_running_dependency(self):
        with self.assertRaises(RuntimeError):
            await self.dependent.start()
        self.assertFalse(self.dependent.running)

        await self.upstream.start()
        await self.dependent.start()
        self.assertTrue(self.dependent.running)

if __name__ == "__main__":
    unittest.main()
