"""
Security event logging, suspicious activity detection and alerting
"""
from .alerts import ActiveAlertStore, AlertCondition, AlertEngine, AlertThreshold, SecurityAlert, default_thresholds
from .detector import SuspiciousActivityDetector
from .detectors import ActivityDetector, PatternType, SuspiciousActivityPattern, default_detectors
from .event_store import SecurityEventStore
from .events import SecurityEventData, SecurityEventFilter, SecurityEventType, Severity
from .notifications import (
    LoggingNotificationSender,
    NotificationResult,
    NotificationSender,
    WebhookNotificationSender,
    create_notification_sender,
)
from .scheduler import MonitoringCycleResult, MonitoringScheduler
from .security_logger import SecurityLogger

__all__ = [
    'ActiveAlertStore',
    'ActivityDetector',
    'AlertCondition',
    'AlertEngine',
    'AlertThreshold',
    'LoggingNotificationSender',
    'MonitoringCycleResult',
    'MonitoringScheduler',
    'NotificationResult',
    'NotificationSender',
    'PatternType',
    'SecurityAlert',
    'SecurityEventData',
    'SecurityEventFilter',
    'SecurityEventStore',
    'SecurityEventType',
    'SecurityLogger',
    'Severity',
    'SuspiciousActivityDetector',
    'SuspiciousActivityPattern',
    'WebhookNotificationSender',
    'create_notification_sender',
    'default_detectors',
    'default_thresholds',
]
