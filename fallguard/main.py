"""
Main entry point for fallguard.

This module initializes the core components of the system and starts the application.
It handles signal management, logging setup, and system lifecycle.
"""

import asyncio
import logging
import signal
import sys
import structlog
from typing import Dict, Optional

from fallguard.core import (
    BaseEvent, EventRegistry, EventType, ServiceRegistry, EventBus, EventTracer, get_config
)
from fallguard.core.config import ApplicationConfig
from fallguard.core.service import BaseService
from fallguard.events.system import ApplicationStartupCompletedEvent
from fallguard.services import DetectionService

def setup_logging(level: str = "INFO", stream=None):
    """Configure structured logging for the application; logs go to stdout unless a stream is given."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level),
        stream=stream or sys.stdout,
    )

class FallguardApplication:
    """
    Main application class for fallguard.

    Owns the event system and the detection service. Sensor acquisition runs
    outside this package and publishes SensorSampleEvents on ``event_bus``;
    emergencies are published back on the same bus.
    """

    def __init__(self, config: Optional[ApplicationConfig] = None):
        """Initialize the fallguard application."""
        self.logger = structlog.get_logger(app="fallguard")
        self.config = config or get_config()

        self.event_registry = EventRegistry()
        self.service_registry = ServiceRegistry()

        if self.config.event.tracing_enabled:
            self.event_tracer = EventTracer(max_events=self.config.event.max_trace_events)
        else:
            self.event_tracer = None

        self.event_bus = EventBus(self.event_registry, self.event_tracer)
        self.event_registry.register_event(
            EventType.APPLICATION_STARTUP_COMPLETED,
            ApplicationStartupCompletedEvent,
            "All services are running"
        )

        self.services: Dict[str, BaseService] = {}
        self._running = True

    async def initialize(self):
        """Initialize all services and start the application."""
        self.logger.info("Initializing fallguard")

        try:
            self.services["detection"] = await self._init_service(DetectionService)
            self.event_bus.subscribe(
                EventType.EMERGENCY_DETECTED, self._log_emergency, "application"
            )

            await self.event_bus.publish(
                ApplicationStartupCompletedEvent(producer_name="fallguard"),
                "fallguard"
            )

            self.logger.info("fallguard initialization complete")

        except Exception as e:
            self.logger.error("Failed to initialize application", error=str(e), exc_info=True)
            raise

    async def _init_service(self, service_class, **kwargs):
        """
        Initialize and start a service.

        Args:
            service_class: The service class to initialize
            **kwargs: Additional arguments to pass to the service constructor

        Returns:
            The initialized service instance
        """
        service_name = service_class.__name__
        self.logger.info(f"Initializing service: {service_name}")

        service = service_class(
            event_bus=self.event_bus,
            service_registry=self.service_registry,
            config=self.config,
            **kwargs
        )

        try:
            await service.start()
            return service
        except Exception as e:
            self.logger.error(f"Failed to start service: {service_name}",
                              error=str(e), exc_info=True)
            raise

    async def _log_emergency(self, event: BaseEvent) -> None:
        self.logger.warning("Emergency detected", trigger=event.trigger,
                            detected_at_ms=event.detected_at_ms)

    async def run(self):
        """Run the application main loop."""
        try:
            while self._running:
                await asyncio.sleep(1)

        except asyncio.CancelledError:
            self.logger.info("Application task cancelled")

        finally:
            await self.shutdown()

    async def shutdown(self):
        """Shut down all services and clean up resources."""
        if not self.services:
            return

        self._running = False
        self.logger.info("Shutting down fallguard")

        for name, service in reversed(list(self.services.items())):
            try:
                self.logger.info(f"Stopping service: {name}")
                await service.stop()
            except Exception as e:
                self.logger.error(f"Error stopping service {name}: {e}")
        self.services.clear()

        self.logger.info("fallguard shutdown complete")

    def handle_signal(self, sig):
        """
        Handle termination signals.

        Args:
            sig: The signal received
        """
        self.logger.info(f"Received signal {sig.name}, shutting down")
        self._running = False

async def main():
    """Application entry point."""
    config = get_config()
    setup_logging(config.log_level.value)

    app = FallguardApplication(config)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(
            sig, lambda s=sig: app.handle_signal(s))

    await app.initialize()
    await app.run()

def cli():
    try:
        asyncio.run(main())
    except Exception as e:
        logging.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)

if __name__ == "__main__":
    cli()
