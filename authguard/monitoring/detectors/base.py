"""
Detector interface and shared helpers.

A detector is a pure function over a window of security events: it never
touches storage, so detectors can be unit tested with plain lists and
composed freely by SuspiciousActivityDetector.
"""
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from ...utils.timeutils import minutes_between
from ..events import SecurityEventData, SecurityEventType, Severity


class PatternType(str, Enum):
    BRUTE_FORCE = "brute_force"
    CREDENTIAL_STUFFING = "credential_stuffing"
    PASSWORD_SPRAY = "password_spray"
    ACCOUNT_ENUMERATION = "account_enumeration"
    RAPID_REGISTRATION = "rapid_registration"
    TOKEN_ABUSE = "token_abuse"


@dataclass
class SuspiciousActivityPattern:
    """One detected attack pattern"""
    type: PatternType
    severity: Severity
    description: str
    count: int
    time_window: str
    ip_address: Optional[str] = None
    user_id: Optional[str] = None
    email: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "description": self.description,
            "count": self.count,
            "time_window": self.time_window,
            "ip_address": self.ip_address,
            "user_id": self.user_id,
            "email": self.email,
            "details": self.details,
        }


class ActivityDetector(ABC):
    """Base class for all suspicious activity detectors."""

    name: str = "detector"

    @abstractmethod
    def detect(self, events: Sequence[SecurityEventData]) -> List[SuspiciousActivityPattern]:
        """
        Analyze a window of events.

        Args:
            events: Events from the detection window, in any order

        Returns:
            Detected patterns (empty when nothing is suspicious)
        """
        raise NotImplementedError("Subclasses must implement detect()")


def select_events(
    events: Iterable[SecurityEventData],
    event_type: SecurityEventType,
    success: Optional[bool] = None
) -> List[SecurityEventData]:
    return [
        event for event in events
        if event.event_type == event_type and (success is None or event.success == success)
    ]


def group_by_ip(events: Iterable[SecurityEventData]) -> Dict[str, List[SecurityEventData]]:
    """Group events by source IP; events without an IP are not attributable."""
    groups: Dict[str, List[SecurityEventData]] = defaultdict(list)
    for event in events:
        if event.ip_address:
            groups[event.ip_address].append(event)
    return dict(groups)


def unique_emails(events: Iterable[SecurityEventData]) -> Set[str]:
    return {event.email.lower() for event in events if event.email}


def span_minutes(events: Sequence[SecurityEventData]) -> float:
    """Minutes between the first and last event"""
    if len(events) < 2:
        return 0.0
    timestamps = [event.timestamp for event in events]
    return minutes_between(min(timestamps), max(timestamps))


def per_minute(count: int, minutes: float) -> float:
    """Rate over a span; bursts inside one minute count as one minute."""
    return count / max(minutes, 1.0)


def format_window(minutes: float) -> str:
    return f"{round(minutes)} minutes"
