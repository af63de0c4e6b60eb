"""Alert gate: one global cooldown shared by every trigger type."""

from typing import Optional

import structlog

logger = structlog.get_logger(__name__)

class AlertGate:
    """
    Admits an alert only if ``cooldown_ms`` has passed since the last admitted one.

    Suppressed requests are dropped; nothing is queued or retried.
    """

    def __init__(self, cooldown_ms: int):
        self.cooldown_ms = cooldown_ms
        self.last_alert_ms: Optional[int] = None
        self.accepted = 0
        self.suppressed = 0

    def try_acquire(self, now_ms: int, trigger: str = "") -> bool:
        if self.last_alert_ms is not None and now_ms - self.last_alert_ms < self.cooldown_ms:
            self.suppressed += 1
            logger.debug("Alert suppressed by cooldown", trigger=trigger,
                         since_last_ms=now_ms - self.last_alert_ms)
            return False
        self.last_alert_ms = now_ms
        self.accepted += 1
        return True
