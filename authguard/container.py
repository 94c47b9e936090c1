"""
Service container

Builds every AuthGuard component from a Config and owns their lifetime.
The API lifespan and the CLI both go through here, so there are no
module-level singletons: tests build their own container.
"""
from dataclasses import dataclass
from typing import Optional

from .auth import LockoutManager, LoginAttemptTracker, RateLimiter
from .cache import CounterStore
from .database import Database
from .monitoring import (
    AlertEngine,
    MonitoringScheduler,
    NotificationSender,
    SecurityEventStore,
    SecurityLogger,
    SuspiciousActivityDetector,
    create_notification_sender,
)
from .utils.config import Config
from .utils.logger import setup_logger

logger = setup_logger(__name__)


@dataclass
class SecurityServices:
    config: Config
    counter_store: CounterStore
    database: Database
    event_store: SecurityEventStore
    security_logger: SecurityLogger
    rate_limiter: RateLimiter
    login_attempts: LoginAttemptTracker
    lockouts: LockoutManager
    notifier: NotificationSender
    detector: SuspiciousActivityDetector
    alert_engine: AlertEngine
    scheduler: MonitoringScheduler

    async def startup(self, start_scheduler: Optional[bool] = None) -> None:
        """Create tables and, if configured, start the monitoring loop."""
        await self.database.init()
        health = await self.counter_store.health_check()
        if health["status"] != "healthy":
            logger.warning(
                f"[Services] Counter store is {health['status']}, inline checks will fail open",
                errors=health["errors"],
            )

        if start_scheduler is None:
            start_scheduler = self.config.monitoring.autostart
        if start_scheduler:
            await self.scheduler.start(self.config.monitoring.interval_minutes)
        logger.info("[OK] AuthGuard services started")

    async def shutdown(self) -> None:
        await self.scheduler.stop()
        await self.notifier.close()
        await self.counter_store.close()
        await self.database.dispose()
        logger.info("[OK] AuthGuard services stopped")


def build_services(
    config: Config,
    counter_store: Optional[CounterStore] = None,
    notifier: Optional[NotificationSender] = None
) -> SecurityServices:
    """Wire all components from configuration."""
    counter_store = counter_store or CounterStore.from_url(
        config.redis.url,
        key_prefix=config.redis.key_prefix,
        timeout_seconds=config.redis.operation_timeout_seconds,
    )
    database = Database(config.database.url, echo=config.database.echo)
    event_store = SecurityEventStore(database, timeout_seconds=config.database.operation_timeout_seconds)
    security_logger = SecurityLogger(event_store)
    notifier = notifier or create_notification_sender(config.monitoring.webhook_url)

    login_attempts = LoginAttemptTracker(counter_store, config.lockout.attempt_window_minutes)
    lockouts = LockoutManager(
        counter_store,
        login_attempts,
        config=config.lockout,
        security_logger=security_logger,
        notifier=notifier,
    )
    detector = SuspiciousActivityDetector(event_store, security_logger)
    alert_engine = AlertEngine(
        event_store,
        notifier,
        admin_emails=config.monitoring.admin_emails,
        max_active_alerts=config.monitoring.max_active_alerts,
        source_name=config.monitoring.source_name,
    )
    scheduler = MonitoringScheduler(
        detector,
        alert_engine,
        event_store=event_store,
        detection_window_minutes=config.monitoring.detection_window_minutes,
        retention_days=config.monitoring.event_retention_days,
    )

    return SecurityServices(
        config=config,
        counter_store=counter_store,
        database=database,
        event_store=event_store,
        security_logger=security_logger,
        rate_limiter=RateLimiter(counter_store, config.rate_limits.rules),
        login_attempts=login_attempts,
        lockouts=lockouts,
        notifier=notifier,
        detector=detector,
        alert_engine=alert_engine,
        scheduler=scheduler,
    )
