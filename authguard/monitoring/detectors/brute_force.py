"""
Brute force detector: many failed logins from one IP.
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
class BruteForceDetector(ActivityDetector):
    """Flag IPs with at least ``min_attempts`` failed logins in the window."""

    min_attempts: int = 10
    high_attempts: int = 25
    critical_attempts: int = 50
    name: str = "brute_force"

    def _severity(self, count: int) -> Severity:
        if count >= self.critical_attempts:
            return Severity.CRITICAL
        if count >= self.high_attempts:
            return Severity.HIGH
        return Severity.MEDIUM

    def detect(self, events: Sequence[SecurityEventData]) -> List[SuspiciousActivityPattern]:
        failures = select_events(events, SecurityEventType.LOGIN_ATTEMPT, success=False)
        patterns: List[SuspiciousActivityPattern] = []

        for ip, ip_events in group_by_ip(failures).items():
            if len(ip_events) < self.min_attempts:
                continue

            span = span_minutes(ip_events)
            timestamps = sorted(event.timestamp for event in ip_events)
            patterns.append(SuspiciousActivityPattern(
                type=PatternType.BRUTE_FORCE,
                severity=self._severity(len(ip_events)),
                description=(
                    f"Brute force attack detected: {len(ip_events)} failed login attempts from IP {ip}"
                ),
                count=len(ip_events),
                time_window=format_window(span),
                ip_address=ip,
                details={
                    "uniqueEmailsTargeted": len(unique_emails(ip_events)),
                    "averageAttemptsPerMinute": round(per_minute(len(ip_events), span), 2),
                    "firstAttempt": timestamps[0].isoformat(),
                    "lastAttempt": timestamps[-1].isoformat(),
                },
            ))

        return patterns
