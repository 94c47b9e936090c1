"""
Rapid registration detector: scripted sign-ups from one IP.
"""
from dataclasses import dataclass
from typing import List, Sequence

from ..events import SecurityEventData, SecurityEventType, Severity
from .base import (
    ActivityDetector,
    PatternType,
    SuspiciousActivityPattern,
    format_window,
    group_by_ip,
    per_minute,
    select_events,
    span_minutes,
    unique_emails,
)


@dataclass
class RapidRegistrationDetector(ActivityDetector):
    min_registrations: int = 10
    min_per_minute: float = 2
    high_per_minute: float = 10
    name: str = "rapid_registration"

    def detect(self, events: Sequence[SecurityEventData]) -> List[SuspiciousActivityPattern]:
        registrations = select_events(events, SecurityEventType.REGISTRATION)
        patterns: List[SuspiciousActivityPattern] = []

        for ip, ip_events in group_by_ip(registrations).items():
            if len(ip_events) < self.min_registrations:
                continue
            span = span_minutes(ip_events)
            rate = per_minute(len(ip_events), span)
            if rate <= self.min_per_minute:
                continue

            severity = Severity.HIGH if rate > self.high_per_minute else Severity.MEDIUM
            patterns.append(SuspiciousActivityPattern(
                type=PatternType.RAPID_REGISTRATION,
                severity=severity,
                description=(
                    f"Rapid registration detected: {len(ip_events)} registrations "
                    f"at {rate:.1f} per minute from IP {ip}"
                ),
                count=len(ip_events),
                time_window=format_window(span),
                ip_address=ip,
                details={
                    "registrationsPerMinute": round(rate, 2),
                    "uniqueEmails": len(unique_emails(ip_events)),
                    "successfulRegistrations": sum(1 for event in ip_events if event.success),
                },
            ))

        return patterns
