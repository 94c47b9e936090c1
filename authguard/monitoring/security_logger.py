"""
Security Logger

Typed helpers that build SecurityEventData for each auth flow and hand it
to the event store. Every helper is safe to await inline: the store never
raises, and the structured application log always receives a line even
when persistence is down.
"""
from datetime import timedelta
from typing import Any, Dict, Optional

from ..utils.logger import setup_logger
from ..utils.timeutils import utcnow
from .event_store import SecurityEventStore
from .events import SecurityEventData, SecurityEventType, Severity

logger = setup_logger(__name__)


class SecurityLogger:
    """Records auth security events through a SecurityEventStore"""

    def __init__(self, store: SecurityEventStore):
        self.store = store

    async def log_event(
        self,
        event_type: SecurityEventType,
        success: bool,
        email: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        user_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> Optional[SecurityEventData]:
        """
        Record one event.

        Returns:
            The stored event, or None if it was dropped
        """
        event = SecurityEventData(
            event_type=event_type,
            success=success,
            email=email,
            ip_address=ip_address,
            user_agent=user_agent,
            user_id=user_id,
            details=details or {},
        )
        return await self.store.record(event)

    async def log_authentication_attempt(
        self,
        email: str,
        success: bool,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        user_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> Optional[SecurityEventData]:
        logger.info(
            f"[SecurityLogger] Login attempt for {email}",
            success=success,
            ip_address=ip_address,
        )
        return await self.log_event(
            SecurityEventType.LOGIN_ATTEMPT, success, email, ip_address, user_agent, user_id, details
        )

    async def log_registration(
        self,
        email: str,
        success: bool,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        user_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> Optional[SecurityEventData]:
        return await self.log_event(
            SecurityEventType.REGISTRATION, success, email, ip_address, user_agent, user_id, details
        )

    async def log_password_change(
        self,
        email: Optional[str],
        success: bool,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        user_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> Optional[SecurityEventData]:
        logger.info(
            f"[SecurityLogger] Password change for user {user_id}",
            success=success,
            severity=Severity.LOW.value if success else Severity.MEDIUM.value,
        )
        return await self.log_event(
            SecurityEventType.PASSWORD_CHANGE, success, email, ip_address, user_agent, user_id, details
        )

    async def log_password_reset_request(
        self,
        email: str,
        success: bool,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        user_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> Optional[SecurityEventData]:
        return await self.log_event(
            SecurityEventType.PASSWORD_RESET_REQUEST, success, email, ip_address, user_agent, user_id, details
        )

    async def log_password_reset_complete(
        self,
        email: Optional[str],
        success: bool,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        user_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> Optional[SecurityEventData]:
        return await self.log_event(
            SecurityEventType.PASSWORD_RESET_COMPLETE, success, email, ip_address, user_agent, user_id, details
        )

    async def log_email_verification(
        self,
        email: Optional[str],
        success: bool,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        user_id: Optional[str] = None,
        resend: bool = False,
        details: Optional[Dict[str, Any]] = None
    ) -> Optional[SecurityEventData]:
        details = dict(details or {})
        if resend:
            details.setdefault("action", "resend")
        return await self.log_event(
            SecurityEventType.EMAIL_VERIFICATION, success, email, ip_address, user_agent, user_id, details
        )

    async def log_account_lockout(
        self,
        email: str,
        reason: str,
        duration_seconds: int,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        user_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> Optional[SecurityEventData]:
        """Lockouts are recorded with success=True: the protective action worked."""
        now = utcnow()
        payload = {
            "reason": reason,
            "duration": duration_seconds,
            "lockoutTime": now.isoformat(),
            "unlockTime": (now + timedelta(seconds=duration_seconds)).isoformat(),
        }
        payload.update(details or {})
        logger.warning(
            f"[SecurityLogger] Account lockout for {email}: {reason}",
            severity=Severity.HIGH.value,
            duration_seconds=duration_seconds,
            ip_address=ip_address,
        )
        return await self.log_event(
            SecurityEventType.ACCOUNT_LOCKOUT, True, email, ip_address, user_agent, user_id, payload
        )

    async def log_account_unlock(
        self,
        email: str,
        method: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        user_id: Optional[str] = None,
        admin_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> Optional[SecurityEventData]:
        payload = {
            "method": method,
            "adminId": admin_id,
            "unlockTime": utcnow().isoformat(),
        }
        payload.update(details or {})
        logger.info(f"[SecurityLogger] Account unlock for {email} ({method})")
        return await self.log_event(
            SecurityEventType.ACCOUNT_UNLOCK, True, email, ip_address, user_agent, user_id, payload
        )

    async def log_suspicious_activity(
        self,
        description: str,
        severity: Severity,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        user_id: Optional[str] = None,
        email: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> Optional[SecurityEventData]:
        """Suspicious activity is always recorded with success=False."""
        severity = Severity(severity)
        payload = {
            "description": description,
            "severity": severity.value,
            "detectedAt": utcnow().isoformat(),
        }
        payload.update(details or {})
        logger.warning(
            f"[SecurityLogger] Suspicious activity detected: {description}",
            severity=severity.value,
            ip_address=ip_address,
            email=email,
        )
        return await self.log_event(
            SecurityEventType.SUSPICIOUS_ACTIVITY, False, email, ip_address, user_agent, user_id, payload
        )

    async def log_session_created(
        self,
        user_id: str,
        session_id: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> Optional[SecurityEventData]:
        payload = {"sessionId": session_id, "createdAt": utcnow().isoformat()}
        payload.update(details or {})
        return await self.log_event(
            SecurityEventType.SESSION_CREATED, True, None, ip_address, user_agent, user_id, payload
        )

    async def log_session_expired(
        self,
        user_id: str,
        session_id: str,
        reason: str = "timeout",
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> Optional[SecurityEventData]:
        payload = {"sessionId": session_id, "reason": reason, "expiredAt": utcnow().isoformat()}
        payload.update(details or {})
        return await self.log_event(
            SecurityEventType.SESSION_EXPIRED, True, None, ip_address, user_agent, user_id, payload
        )

    async def log_token_generated(
        self,
        token_type: str,
        email: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        user_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> Optional[SecurityEventData]:
        payload = {"tokenType": token_type, "generatedAt": utcnow().isoformat()}
        payload.update(details or {})
        return await self.log_event(
            SecurityEventType.TOKEN_GENERATED, True, email,
            ip_address or "system", user_agent or "system", user_id, payload
        )

    async def log_token_used(
        self,
        token_type: str,
        success: bool,
        email: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        user_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> Optional[SecurityEventData]:
        payload = {"tokenType": token_type, "usedAt": utcnow().isoformat()}
        payload.update(details or {})
        return await self.log_event(
            SecurityEventType.TOKEN_USED, success, email, ip_address, user_agent, user_id, payload
        )
