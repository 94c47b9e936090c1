"""
Token abuse detector: mass token generation and repeated invalid token use.
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
class TokenAbuseDetector(ActivityDetector):
    min_tokens_generated: int = 60
    high_tokens_generated: int = 200
    min_failed_token_uses: int = 20
    name: str = "token_abuse"

    def detect(self, events: Sequence[SecurityEventData]) -> List[SuspiciousActivityPattern]:
        patterns: List[SuspiciousActivityPattern] = []
        used_by_ip = group_by_ip(select_events(events, SecurityEventType.TOKEN_USED))

        generated = select_events(events, SecurityEventType.TOKEN_GENERATED)
        for ip, ip_events in group_by_ip(generated).items():
            if len(ip_events) < self.min_tokens_generated:
                continue
            severity = Severity.HIGH if len(ip_events) >= self.high_tokens_generated else Severity.MEDIUM
            patterns.append(SuspiciousActivityPattern(
                type=PatternType.TOKEN_ABUSE,
                severity=severity,
                description=f"Token abuse detected: {len(ip_events)} tokens generated from IP {ip}",
                count=len(ip_events),
                time_window=format_window(span_minutes(ip_events)),
                ip_address=ip,
                details={
                    "abuseType": "excessive_generation",
                    "tokensGenerated": len(ip_events),
                    "tokensUsed": len(used_by_ip.get(ip, [])),
                    "uniqueEmails": len(unique_emails(ip_events)),
                },
            ))

        for ip, ip_events in used_by_ip.items():
            failed = [event for event in ip_events if not event.success]
            if len(failed) < self.min_failed_token_uses:
                continue
            patterns.append(SuspiciousActivityPattern(
                type=PatternType.TOKEN_ABUSE,
                severity=Severity.HIGH,
                description=f"Token abuse detected: {len(failed)} failed token uses from IP {ip}",
                count=len(failed),
                time_window=format_window(span_minutes(failed)),
                ip_address=ip,
                details={
                    "abuseType": "failed_token_usage",
                    "failedAttempts": len(failed),
                    "totalAttempts": len(ip_events),
                },
            ))

        return patterns
