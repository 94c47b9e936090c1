"""
Monitoring Scheduler

Background asyncio loop that runs detection and then the alert threshold
check every ``interval_minutes``. Once a day of cycles it also applies the
event retention policy.

Cycles never overlap: scheduled runs and run_now() share one lock. Stopping
wakes the sleeping loop and waits for an in-flight cycle to finish rather
than cancelling it.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from ..utils.logger import setup_logger
from ..utils.timeutils import utcnow
from .alerts import AlertEngine
from .detector import SuspiciousActivityDetector
from .event_store import SecurityEventStore

logger = setup_logger(__name__)

DEFAULT_INTERVAL_MINUTES = 5
RETENTION_CHECK_INTERVAL = timedelta(days=1)


@dataclass
class MonitoringCycleResult:
    started_at: datetime
    finished_at: Optional[datetime] = None
    patterns_detected: int = 0
    alerts_triggered: int = 0
    events_cleaned_up: Optional[int] = None
    errors: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "patterns_detected": self.patterns_detected,
            "alerts_triggered": self.alerts_triggered,
            "events_cleaned_up": self.events_cleaned_up,
            "errors": self.errors,
            "succeeded": self.succeeded,
        }


class MonitoringScheduler:
    """
    Periodic detection + alerting.

    Args:
        detector: Suspicious activity detector
        alert_engine: Threshold evaluation
        event_store: Enables retention cleanup when given
        detection_window_minutes: Event window passed to the detector
        retention_days: Events older than this are deleted (None disables)
    """

    def __init__(
        self,
        detector: SuspiciousActivityDetector,
        alert_engine: AlertEngine,
        event_store: Optional[SecurityEventStore] = None,
        detection_window_minutes: int = 60,
        retention_days: Optional[int] = None
    ):
        self.detector = detector
        self.alert_engine = alert_engine
        self.event_store = event_store
        self.detection_window_minutes = detection_window_minutes
        self.retention_days = retention_days

        self.is_running = False
        self.interval_minutes: float = DEFAULT_INTERVAL_MINUTES
        self.next_run_time: Optional[datetime] = None
        self.last_run_at: Optional[datetime] = None
        self.last_result: Optional[MonitoringCycleResult] = None
        self.cycles_completed = 0

        self._task: Optional[asyncio.Task] = None
        self._generation = 0
        self._stop_event: Optional[asyncio.Event] = None
        self._cycle_lock = asyncio.Lock()
        self._last_cleanup_at: Optional[datetime] = None

    async def start(self, interval_minutes: float = DEFAULT_INTERVAL_MINUTES) -> bool:
        """
        Run one cycle now, then every ``interval_minutes``.

        Returns:
            False if the scheduler was already running (nothing changes)
        """
        if self.is_running:
            logger.warning("[MonitoringScheduler] Security monitoring scheduler is already running")
            return False
        if interval_minutes <= 0:
            raise ValueError("interval_minutes must be positive")

        self.interval_minutes = interval_minutes
        self.is_running = True
        self._generation += 1
        generation = self._generation
        self._stop_event = asyncio.Event()
        logger.info(f"[MonitoringScheduler] Starting with {interval_minutes} minute intervals")

        await self.run_cycle()

        # A stop() and start() during the first cycle leave only the newest loop
        if self.is_running and generation == self._generation and self._task is None:
            self._task = asyncio.create_task(self._run_loop(self._stop_event))
        return True

    async def stop(self) -> bool:
        """
        Halt future cycles. An in-flight cycle is allowed to finish.

        Returns:
            False if the scheduler was not running
        """
        if not self.is_running:
            return False

        self.is_running = False
        if self._stop_event is not None:
            self._stop_event.set()
        task, self._task = self._task, None
        if task is not None:
            await task
        self.next_run_time = None
        logger.info("[MonitoringScheduler] Security monitoring scheduler stopped")
        return True

    async def _run_loop(self, stop_event: asyncio.Event) -> None:
        while self.is_running:
            self.next_run_time = utcnow() + timedelta(minutes=self.interval_minutes)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval_minutes * 60)
                break
            except asyncio.TimeoutError:
                pass
            if not self.is_running:
                break
            self.next_run_time = None
            await self.run_cycle()
        if stop_event is self._stop_event:
            self.next_run_time = None

    async def run_now(self) -> MonitoringCycleResult:
        """Run one cycle immediately, whether or not the loop is running."""
        logger.info("[MonitoringScheduler] Running security monitoring cycle on demand")
        return await self.run_cycle()

    async def run_cycle(self) -> MonitoringCycleResult:
        """
        Detection, then alert thresholds, then (daily) retention cleanup.

        Each step is isolated: a failure is logged and recorded in the
        result, and the next step still runs.
        """
        async with self._cycle_lock:
            result = MonitoringCycleResult(started_at=utcnow())
            logger.info("[MonitoringScheduler] Starting security monitoring cycle")

            try:
                patterns = await self.detector.detect_suspicious_activity(self.detection_window_minutes)
                result.patterns_detected = len(patterns)
            except Exception as e:
                logger.error(f"[MonitoringScheduler] Suspicious activity detection failed: {e}")
                result.errors.append(f"detection: {e}")

            try:
                alerts = await self.alert_engine.check_alert_thresholds()
                result.alerts_triggered = len(alerts)
            except Exception as e:
                logger.error(f"[MonitoringScheduler] Alert threshold check failed: {e}")
                result.errors.append(f"alerts: {e}")

            if self._cleanup_due(result.started_at):
                try:
                    result.events_cleaned_up = await self.event_store.cleanup_older_than(self.retention_days)
                    self._last_cleanup_at = result.started_at
                except Exception as e:
                    logger.error(f"[MonitoringScheduler] Event retention cleanup failed: {e}")
                    result.errors.append(f"cleanup: {e}")

            result.finished_at = utcnow()
            self.last_run_at = result.finished_at
            self.last_result = result
            self.cycles_completed += 1

            if result.succeeded:
                logger.info(
                    f"[MonitoringScheduler] Cycle completed: {result.patterns_detected} pattern(s), "
                    f"{result.alerts_triggered} alert(s)"
                )
            return result

    def _cleanup_due(self, now: datetime) -> bool:
        if self.event_store is None or not self.retention_days:
            return False
        return self._last_cleanup_at is None or now - self._last_cleanup_at >= RETENTION_CHECK_INTERVAL

    def get_status(self) -> Dict[str, Any]:
        return {
            "is_running": self.is_running,
            "interval_minutes": self.interval_minutes,
            "next_run_time": self.next_run_time.isoformat() if self.is_running and self.next_run_time else None,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "cycles_completed": self.cycles_completed,
            "last_result": self.last_result.to_dict() if self.last_result else None,
        }
