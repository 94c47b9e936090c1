"""
Suspicious Activity Detector

Loads the recent event window once, runs every registered detector over it
and records each detected pattern as a SUSPICIOUS_ACTIVITY event. A
detector that raises is logged and skipped; the others still run.
"""
from datetime import timedelta
from typing import List, Optional

from ..utils.logger import setup_logger
from ..utils.timeutils import utcnow
from .detectors import ActivityDetector, SuspiciousActivityPattern, default_detectors
from .event_store import SecurityEventStore
from .security_logger import SecurityLogger

logger = setup_logger(__name__)


class SuspiciousActivityDetector:
    """Runs a pluggable set of detectors over the event store"""

    def __init__(
        self,
        store: SecurityEventStore,
        security_logger: SecurityLogger,
        detectors: Optional[List[ActivityDetector]] = None
    ):
        self.store = store
        self.security_logger = security_logger
        self.detectors = detectors if detectors is not None else default_detectors()

    def register(self, detector: ActivityDetector) -> None:
        self.detectors.append(detector)

    async def detect_suspicious_activity(self, time_window_minutes: int = 60) -> List[SuspiciousActivityPattern]:
        """
        Analyze the last ``time_window_minutes`` of events.

        Raises:
            BackendUnavailableError: the event window could not be loaded
        """
        cutoff = utcnow() - timedelta(minutes=time_window_minutes)
        events = await self.store.events_since(cutoff)

        patterns: List[SuspiciousActivityPattern] = []
        for detector in self.detectors:
            try:
                found = detector.detect(events)
            except Exception as e:
                logger.error(f"[Detector] {detector.name} failed: {e}", exc_info=True)
                continue
            if found:
                logger.info(f"[Detector] {detector.name} found {len(found)} pattern(s)")
            patterns.extend(found)

        for pattern in patterns:
            await self.security_logger.log_suspicious_activity(
                pattern.description,
                pattern.severity,
                ip_address=pattern.ip_address,
                user_agent="Security Monitor",
                user_id=pattern.user_id,
                email=pattern.email,
                details={
                    "patternType": pattern.type.value,
                    "count": pattern.count,
                    "timeWindow": pattern.time_window,
                    **pattern.details,
                },
            )

        logger.info(
            f"[Detector] Analyzed {len(events)} events from the last {time_window_minutes} minutes, "
            f"{len(patterns)} suspicious pattern(s)"
        )
        return patterns
