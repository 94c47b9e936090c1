"""
Credential stuffing detector: one IP trying leaked credentials across many
accounts, a few attempts per account.
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
class CredentialStuffingDetector(ActivityDetector):
    min_unique_emails: int = 40
    max_attempts_per_email: float = 3
    high_unique_emails: int = 100
    name: str = "credential_stuffing"

    def detect(self, events: Sequence[SecurityEventData]) -> List[SuspiciousActivityPattern]:
        failures = select_events(events, SecurityEventType.LOGIN_ATTEMPT, success=False)
        patterns: List[SuspiciousActivityPattern] = []

        for ip, ip_events in group_by_ip(failures).items():
            emails = unique_emails(ip_events)
            if len(emails) < self.min_unique_emails:
                continue
            attempts_per_email = len(ip_events) / len(emails)
            if attempts_per_email > self.max_attempts_per_email:
                continue

            severity = Severity.CRITICAL if len(emails) >= self.high_unique_emails else Severity.HIGH
            patterns.append(SuspiciousActivityPattern(
                type=PatternType.CREDENTIAL_STUFFING,
                severity=severity,
                description=(
                    f"Credential stuffing attack detected: {len(emails)} unique emails targeted from IP {ip}"
                ),
                count=len(ip_events),
                time_window=format_window(span_minutes(ip_events)),
                ip_address=ip,
                details={
                    "uniqueEmailsTargeted": len(emails),
                    "totalAttempts": len(ip_events),
                    "averageAttemptsPerEmail": round(attempts_per_email, 2),
                },
            ))

        return patterns
