"""
Account enumeration detector: probing which accounts exist through the
password reset and registration flows.
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
    select_events,
    span_minutes,
    unique_emails,
)


@dataclass
class AccountEnumerationDetector(ActivityDetector):
    min_reset_emails: int = 25
    min_registration_attempts: int = 15
    high_reset_emails: int = 100
    name: str = "account_enumeration"

    def detect(self, events: Sequence[SecurityEventData]) -> List[SuspiciousActivityPattern]:
        patterns: List[SuspiciousActivityPattern] = []

        resets = select_events(events, SecurityEventType.PASSWORD_RESET_REQUEST, success=True)
        for ip, ip_events in group_by_ip(resets).items():
            emails = unique_emails(ip_events)
            if len(emails) < self.min_reset_emails:
                continue
            severity = Severity.HIGH if len(emails) >= self.high_reset_emails else Severity.MEDIUM
            patterns.append(SuspiciousActivityPattern(
                type=PatternType.ACCOUNT_ENUMERATION,
                severity=severity,
                description=(
                    f"Account enumeration detected: {len(ip_events)} password reset requests from IP {ip}"
                ),
                count=len(ip_events),
                time_window=format_window(span_minutes(ip_events)),
                ip_address=ip,
                details={
                    "method": "password_reset_enumeration",
                    "uniqueEmailsTargeted": len(emails),
                },
            ))

        registrations = select_events(events, SecurityEventType.REGISTRATION)
        for ip, ip_events in group_by_ip(registrations).items():
            if len(ip_events) < self.min_registration_attempts:
                continue
            patterns.append(SuspiciousActivityPattern(
                type=PatternType.ACCOUNT_ENUMERATION,
                severity=Severity.MEDIUM,
                description=(
                    f"Account enumeration detected: {len(ip_events)} registration attempts from IP {ip}"
                ),
                count=len(ip_events),
                time_window=format_window(span_minutes(ip_events)),
                ip_address=ip,
                details={
                    "method": "registration_enumeration",
                    "uniqueEmailsTargeted": len(unique_emails(ip_events)),
                    "failedAttempts": sum(1 for event in ip_events if not event.success),
                },
            ))

        return patterns
