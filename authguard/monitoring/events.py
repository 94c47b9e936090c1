"""
Security event types and value objects shared by the event store,
the detectors and the alert engine.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from ..utils.timeutils import utcnow


class SecurityEventType(str, Enum):
    """Auth-relevant events recorded in the security event store"""
    LOGIN_ATTEMPT = "LOGIN_ATTEMPT"
    REGISTRATION = "REGISTRATION"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"
    PASSWORD_RESET_REQUEST = "PASSWORD_RESET_REQUEST"
    PASSWORD_RESET_COMPLETE = "PASSWORD_RESET_COMPLETE"
    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"
    ACCOUNT_LOCKOUT = "ACCOUNT_LOCKOUT"
    ACCOUNT_UNLOCK = "ACCOUNT_UNLOCK"
    SUSPICIOUS_ACTIVITY = "SUSPICIOUS_ACTIVITY"
    SESSION_CREATED = "SESSION_CREATED"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    TOKEN_GENERATED = "TOKEN_GENERATED"
    TOKEN_USED = "TOKEN_USED"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass
class SecurityEventData:
    """
    One append-only security event.

    ``id`` is assigned by the store on insert.
    """
    event_type: SecurityEventType
    success: bool
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    email: Optional[str] = None
    user_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "email": self.email,
            "event_type": self.event_type.value,
            "success": self.success,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class SecurityEventFilter:
    """Query filters; ``limit=None`` returns every match."""
    user_id: Optional[str] = None
    email: Optional[str] = None
    event_type: Optional[SecurityEventType] = None
    success: Optional[bool] = None
    ip_address: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    limit: Optional[int] = 100
    offset: int = 0
