"""
Alert Engine

Evaluates named thresholds over recent event counts, keeps raised alerts
in a bounded in-memory store and notifies the configured admins.

Alerts live only in process memory and are lost on restart. The store
holds at most ``max_active_alerts``; when full, the oldest acknowledged
alert is evicted first, then the oldest alert overall.
"""
import asyncio
import math
import uuid
from collections import OrderedDict
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

from ..exceptions import ConfigurationError
from ..utils.logger import setup_logger
from ..utils.timeutils import utcnow
from .event_store import SecurityEventStore
from .events import SecurityEventFilter, SecurityEventType, Severity
from .notifications import NotificationSender

logger = setup_logger(__name__)


class AlertCondition(str, Enum):
    COUNT_EXCEEDS = "count_exceeds"
    RATE_EXCEEDS = "rate_exceeds"


@dataclass
class AlertThreshold:
    """A named rule over event counts in a trailing window"""
    name: str
    event_type: Optional[SecurityEventType]
    condition: AlertCondition
    threshold: float
    time_window_minutes: int
    severity: Severity
    enabled: bool = True
    success: Optional[bool] = None  # restrict to successful / failed events

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "event_type": self.event_type.value if self.event_type else None,
            "condition": self.condition.value,
            "threshold": self.threshold,
            "time_window_minutes": self.time_window_minutes,
            "severity": self.severity.value,
            "enabled": self.enabled,
            "success": self.success,
        }


@dataclass
class SecurityAlert:
    id: str
    type: str
    severity: Severity
    title: str
    description: str
    count: int
    detected_at: datetime = field(default_factory=utcnow)
    ip_address: Optional[str] = None
    user_id: Optional[str] = None
    email: Optional[str] = None
    acknowledged: bool = False
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["severity"] = self.severity.value
        data["detected_at"] = self.detected_at.isoformat()
        data["acknowledged_at"] = self.acknowledged_at.isoformat() if self.acknowledged_at else None
        return data


def default_thresholds() -> List[AlertThreshold]:
    return [
        AlertThreshold(
            name="brute_force_detection",
            event_type=SecurityEventType.LOGIN_ATTEMPT,
            condition=AlertCondition.COUNT_EXCEEDS,
            threshold=10,
            time_window_minutes=15,
            severity=Severity.HIGH,
            success=False,
        ),
        AlertThreshold(
            name="password_reset_abuse",
            event_type=SecurityEventType.PASSWORD_RESET_REQUEST,
            condition=AlertCondition.COUNT_EXCEEDS,
            threshold=5,
            time_window_minutes=60,
            severity=Severity.MEDIUM,
        ),
        AlertThreshold(
            name="rapid_registration",
            event_type=SecurityEventType.REGISTRATION,
            condition=AlertCondition.RATE_EXCEEDS,
            threshold=10,
            time_window_minutes=60,
            severity=Severity.MEDIUM,
        ),
        AlertThreshold(
            name="account_lockout_spike",
            event_type=SecurityEventType.ACCOUNT_LOCKOUT,
            condition=AlertCondition.COUNT_EXCEEDS,
            threshold=5,
            time_window_minutes=30,
            severity=Severity.HIGH,
        ),
        AlertThreshold(
            name="suspicious_activity_spike",
            event_type=SecurityEventType.SUSPICIOUS_ACTIVITY,
            condition=AlertCondition.COUNT_EXCEEDS,
            threshold=3,
            time_window_minutes=15,
            severity=Severity.CRITICAL,
        ),
        AlertThreshold(
            name="token_abuse_detection",
            event_type=SecurityEventType.TOKEN_USED,
            condition=AlertCondition.COUNT_EXCEEDS,
            threshold=20,
            time_window_minutes=60,
            severity=Severity.MEDIUM,
        ),
    ]


ALERT_TITLES = {
    "brute_force_detection": "Brute Force Attack Detected",
    "password_reset_abuse": "Password Reset Abuse Detected",
    "rapid_registration": "Rapid Registration Activity",
    "account_lockout_spike": "Account Lockout Spike",
    "suspicious_activity_spike": "Suspicious Activity Spike",
    "token_abuse_detection": "Token Abuse Detected",
}

# Noun used in count_exceeds descriptions
ALERT_SUBJECTS = {
    "brute_force_detection": "failed login attempts",
    "password_reset_abuse": "password reset requests",
    "rapid_registration": "registrations",
    "account_lockout_spike": "account lockouts",
    "suspicious_activity_spike": "suspicious activities",
    "token_abuse_detection": "token events",
}


def alert_title(name: str) -> str:
    return ALERT_TITLES.get(name, "Security Alert")


def alert_description(threshold: AlertThreshold, details: Dict[str, Any]) -> str:
    if threshold.condition == AlertCondition.RATE_EXCEEDS:
        subject = ALERT_SUBJECTS.get(threshold.name, "events")
        return (
            f"{details['eventsPerMinute']:.1f} {subject} per minute detected, "
            f"exceeding threshold of {threshold.threshold}"
        )
    if threshold.name in ALERT_SUBJECTS:
        return (
            f"{details['eventCount']} {ALERT_SUBJECTS[threshold.name]} detected in {details['timeWindow']}, "
            f"exceeding threshold of {threshold.threshold}"
        )
    return f"Security threshold exceeded: {details['eventCount']} events in {details['timeWindow']}"


def _coerce_threshold_field(key: str, value: Any) -> Any:
    """Validate one threshold update and return the value to store."""
    if key in ("event_type", "success"):
        if value is None:
            return None
        if key == "event_type":
            return SecurityEventType(value)
    elif value is None:
        raise ValueError(f"{key} cannot be null")

    if key in ("enabled", "success"):
        if not isinstance(value, bool):
            raise TypeError(f"{key} must be a boolean")
        return value
    if key == "condition":
        return AlertCondition(value)
    if key == "severity":
        return Severity(value)
    if isinstance(value, bool):
        raise TypeError(f"{key} must be a number")
    if key == "threshold":
        number = float(value)
        if not math.isfinite(number) or number < 0:
            raise ValueError("threshold must be a finite number >= 0")
        return number
    if key == "time_window_minutes":
        minutes = float(value)
        if minutes <= 0 or not minutes.is_integer():
            raise ValueError("time_window_minutes must be a positive whole number")
        return int(minutes)
    return value


class ActiveAlertStore:
    """Bounded, insertion-ordered map of alert id to SecurityAlert"""

    def __init__(self, max_alerts: int = 1000):
        self.max_alerts = max_alerts
        self._alerts: "OrderedDict[str, SecurityAlert]" = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._alerts)

    def get(self, alert_id: str) -> Optional[SecurityAlert]:
        return self._alerts.get(alert_id)

    def snapshot(self, include_acknowledged: bool = True) -> List[SecurityAlert]:
        return [
            alert for alert in self._alerts.values()
            if include_acknowledged or not alert.acknowledged
        ]

    async def add(self, alert: SecurityAlert) -> None:
        async with self._lock:
            while self._alerts and len(self._alerts) >= self.max_alerts:
                self._evict_one()
            self._alerts[alert.id] = alert

    def _evict_one(self) -> None:
        victim = next((a.id for a in self._alerts.values() if a.acknowledged), None)
        if victim is None:
            victim = next(iter(self._alerts))
        evicted = self._alerts.pop(victim)
        logger.warning(
            f"[AlertEngine] Active alert store full ({self.max_alerts}), evicted {evicted.id}",
            acknowledged=evicted.acknowledged,
        )

    async def acknowledge(self, alert_id: str, acknowledged_by: str) -> Optional[SecurityAlert]:
        async with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None:
                return None
            alert.acknowledged = True
            alert.acknowledged_by = acknowledged_by
            alert.acknowledged_at = utcnow()
            return alert

    async def remove(self, alert_id: str) -> bool:
        async with self._lock:
            return self._alerts.pop(alert_id, None) is not None

    async def remove_acknowledged(self) -> int:
        async with self._lock:
            stale = [alert_id for alert_id, alert in self._alerts.items() if alert.acknowledged]
            for alert_id in stale:
                del self._alerts[alert_id]
            return len(stale)


class AlertEngine:
    """
    Threshold evaluation, active alert tracking and admin notification.

    Args:
        store: Security event store queried for counts
        notifier: Delivers alerts to admins
        admin_emails: Alert recipients
        thresholds: Initial thresholds (defaults to default_thresholds())
        max_active_alerts: Active alert store bound
        source_name: Sender label passed to the notifier
    """

    def __init__(
        self,
        store: SecurityEventStore,
        notifier: NotificationSender,
        admin_emails: Optional[List[str]] = None,
        thresholds: Optional[List[AlertThreshold]] = None,
        max_active_alerts: int = 1000,
        source_name: str = "Security System"
    ):
        self.store = store
        self.notifier = notifier
        self.admin_emails = list(admin_emails or [])
        self.source_name = source_name
        self._thresholds: Dict[str, AlertThreshold] = {
            t.name: t for t in (thresholds if thresholds is not None else default_thresholds())
        }
        self.active_alerts = ActiveAlertStore(max_active_alerts)

    async def check_alert_thresholds(self) -> List[SecurityAlert]:
        """
        Evaluate every enabled threshold once.

        A threshold whose query fails is logged and skipped.

        Returns:
            Alerts raised in this pass
        """
        triggered: List[SecurityAlert] = []
        for threshold in list(self._thresholds.values()):
            if not threshold.enabled:
                continue
            try:
                alert = await self._evaluate(threshold)
            except Exception as e:
                logger.error(f"[AlertEngine] Failed to check alert threshold {threshold.name}: {e}")
                continue
            if alert is None:
                continue

            await self.active_alerts.add(alert)
            triggered.append(alert)
            await self._send_alert_notification(alert)

        return triggered

    async def _evaluate(self, threshold: AlertThreshold) -> Optional[SecurityAlert]:
        now = utcnow()
        count = await self.store.count(SecurityEventFilter(
            event_type=threshold.event_type,
            success=threshold.success,
            start_date=now - timedelta(minutes=threshold.time_window_minutes),
        ))
        time_window = f"{threshold.time_window_minutes} minutes"

        if threshold.condition == AlertCondition.COUNT_EXCEEDS:
            if count <= threshold.threshold:
                return None
            details = {
                "eventCount": count,
                "threshold": threshold.threshold,
                "timeWindow": time_window,
            }
        else:
            rate = count / threshold.time_window_minutes
            if rate <= threshold.threshold:
                return None
            details = {
                "eventsPerMinute": round(rate, 3),
                "threshold": threshold.threshold,
                "totalEvents": count,
                "timeWindow": time_window,
            }

        return SecurityAlert(
            id=f"alert_{threshold.name}_{uuid.uuid4().hex[:12]}",
            type=threshold.name,
            severity=threshold.severity,
            title=alert_title(threshold.name),
            description=alert_description(threshold, details),
            count=count,
            detected_at=now,
            details=details,
        )

    async def _send_alert_notification(self, alert: SecurityAlert) -> None:
        logger.warning(
            f"[AlertEngine] Security alert triggered: {alert.title}",
            alert_id=alert.id,
            alert_type=alert.type,
            severity=alert.severity.value,
            count=alert.count,
        )
        for admin_email in self.admin_emails:
            try:
                result = await self.notifier.send_security_alert(
                    admin_email,
                    alert.title,
                    alert.description,
                    alert.ip_address or "unknown",
                    self.source_name,
                )
                if not result.success:
                    logger.error(f"[AlertEngine] Alert {alert.id} not delivered to {admin_email}: {result.error}")
            except Exception as e:
                logger.error(f"[AlertEngine] Alert {alert.id} not delivered to {admin_email}: {e}")

    def get_active_alerts(self, include_acknowledged: bool = True) -> List[SecurityAlert]:
        return self.active_alerts.snapshot(include_acknowledged)

    def get_alert(self, alert_id: str) -> Optional[SecurityAlert]:
        return self.active_alerts.get(alert_id)

    async def acknowledge_alert(self, alert_id: str, acknowledged_by: str) -> bool:
        """Returns False if the alert id is unknown."""
        alert = await self.active_alerts.acknowledge(alert_id, acknowledged_by)
        if alert is None:
            return False
        logger.info(f"[AlertEngine] Security alert acknowledged: {alert.title}", alert_id=alert_id, by=acknowledged_by)
        return True

    async def clear_alert(self, alert_id: str) -> bool:
        return await self.active_alerts.remove(alert_id)

    async def clear_acknowledged(self) -> int:
        return await self.active_alerts.remove_acknowledged()

    def get_alert_thresholds(self) -> List[AlertThreshold]:
        """Copies of the current thresholds"""
        return [replace(threshold) for threshold in self._thresholds.values()]

    def update_alert_threshold(self, name: str, updates: Dict[str, Any]) -> bool:
        """
        Apply a partial update to a named threshold.

        Returns:
            False if no threshold has that name

        Raises:
            ConfigurationError: unknown field, renamed threshold or invalid value
        """
        threshold = self._thresholds.get(name)
        if threshold is None:
            return False

        allowed = {f.name for f in fields(AlertThreshold)} - {"name"}
        unknown = set(updates) - allowed
        if unknown:
            raise ConfigurationError(f"Unknown threshold field(s): {', '.join(sorted(unknown))}")

        try:
            values = {key: _coerce_threshold_field(key, value) for key, value in updates.items()}
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid update for threshold {name}: {e}") from e

        self._thresholds[name] = replace(threshold, **values)
        logger.info(f"[AlertEngine] Threshold {name} updated", changes=sorted(values))
        return True
