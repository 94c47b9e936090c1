"""
Password spray detector: one IP trying a common password against many
accounts, slowly enough to stay under per-account lockout.
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
class PasswordSprayDetector(ActivityDetector):
    min_unique_emails: int = 20
    max_attempts_per_email: float = 2
    min_span_minutes: float = 30
    max_attempts_per_minute: float = 1.0
    high_unique_emails: int = 50
    name: str = "password_spray"

    def detect(self, events: Sequence[SecurityEventData]) -> List[SuspiciousActivityPattern]:
        failures = select_events(events, SecurityEventType.LOGIN_ATTEMPT, success=False)
        patterns: List[SuspiciousActivityPattern] = []

        for ip, ip_events in group_by_ip(failures).items():
            emails = unique_emails(ip_events)
            if len(emails) < self.min_unique_emails:
                continue
            attempts_per_email = len(ip_events) / len(emails)
            span = span_minutes(ip_events)
            rate = per_minute(len(ip_events), span)
            if (attempts_per_email > self.max_attempts_per_email
                    or span <= self.min_span_minutes
                    or rate > self.max_attempts_per_minute):
                continue

            severity = Severity.HIGH if len(emails) >= self.high_unique_emails else Severity.MEDIUM
            patterns.append(SuspiciousActivityPattern(
                type=PatternType.PASSWORD_SPRAY,
                severity=severity,
                description=(
                    f"Password spray attack detected: {len(emails)} accounts targeted "
                    f"with low-frequency attempts from IP {ip}"
                ),
                count=len(ip_events),
                time_window=format_window(span),
                ip_address=ip,
                details={
                    "uniqueEmailsTargeted": len(emails),
                    "averageAttemptsPerEmail": round(attempts_per_email, 2),
                    "attemptsPerMinute": round(rate, 3),
                },
            ))

        return patterns
