"""
Account Lockout Manager

Time-bounded lockout records on the counter store. A record is
{lockoutUntil, reason, lockedAt} with a TTL equal to the remaining lockout,
and expiry is lazy: ``is_locked`` compares lockoutUntil with the current
time, so a stale record that is still cached reads as unlocked.

Lockout duration grows with repeated failures:
    minutes = min(base * multiplier ** floor((attempts - max) / max), cap)
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from ..cache import CounterStore
from ..monitoring.notifications import NotificationSender
from ..monitoring.security_logger import SecurityLogger
from ..utils.config import LockoutConfig
from ..utils.logger import setup_logger
from ..utils.timeutils import utcnow
from .constants import (
    LOCKOUT_REASON_FAILED_ATTEMPTS,
    UNLOCK_METHOD_ADMIN,
    UNLOCK_METHOD_PASSWORD_RESET,
    lockout_key,
    normalize_email,
)
from .login_attempts import LoginAttemptTracker

logger = setup_logger(__name__)


@dataclass
class LockoutStatus:
    """Result of a lockout check or a failed-attempt registration"""
    locked: bool
    lockout_until: Optional[datetime] = None
    reason: Optional[str] = None
    locked_at: Optional[datetime] = None
    failed_attempts: int = 0

    @property
    def retry_after_seconds(self) -> int:
        if not self.locked or self.lockout_until is None:
            return 0
        return max(0, math.ceil((self.lockout_until - utcnow()).total_seconds()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "locked": self.locked,
            "lockout_until": self.lockout_until.isoformat() if self.lockout_until else None,
            "reason": self.reason,
            "locked_at": self.locked_at.isoformat() if self.locked_at else None,
            "failed_attempts": self.failed_attempts,
            "retry_after_seconds": self.retry_after_seconds,
        }


class LockoutManager:
    """
    Locks identities after repeated failed logins.

    Args:
        store: Counter store holding lockout records
        tracker: Failed login counters
        config: Lockout policy
        security_logger: Records ACCOUNT_LOCKOUT / ACCOUNT_UNLOCK events
        notifier: Sends the lockout notice to the account holder
    """

    def __init__(
        self,
        store: CounterStore,
        tracker: LoginAttemptTracker,
        config: Optional[LockoutConfig] = None,
        security_logger: Optional[SecurityLogger] = None,
        notifier: Optional[NotificationSender] = None
    ):
        self.store = store
        self.tracker = tracker
        self.config = config or LockoutConfig()
        self.security_logger = security_logger
        self.notifier = notifier

    def calculate_lockout_minutes(self, failed_attempts: int) -> int:
        """Backoff duration for the given failure count, capped at the maximum."""
        max_attempts = self.config.max_failed_attempts
        lockout_count = max(0, (failed_attempts - max_attempts) // max_attempts)
        minutes = self.config.base_lockout_minutes * (self.config.backoff_multiplier ** lockout_count)
        return int(min(minutes, self.config.max_lockout_minutes))

    async def set_account_lockout(
        self,
        email: str,
        lockout_until: datetime,
        reason: str = LOCKOUT_REASON_FAILED_ATTEMPTS,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        user_id: Optional[str] = None,
        user_name: Optional[str] = None,
        notify: bool = True
    ) -> bool:
        """
        Store a lockout record that expires at ``lockout_until``.

        A lockout_until that is not in the future is ignored.

        Returns:
            True if the record was written
        """
        locked_at = utcnow()
        ttl_seconds = math.ceil((lockout_until - locked_at).total_seconds())
        if ttl_seconds <= 0:
            logger.debug(f"[Lockout] Ignoring lockout for {email}: lockout_until is not in the future")
            return False

        record = {
            "lockoutUntil": lockout_until.isoformat(),
            "reason": reason,
            "lockedAt": locked_at.isoformat(),
        }
        stored = await self.store.set_json(lockout_key(email), record, ttl_seconds)
        logger.warning(
            f"[Lockout] Account {email} locked until {lockout_until.isoformat()}",
            reason=reason,
            stored=stored,
        )

        if self.security_logger is not None:
            await self.security_logger.log_account_lockout(
                normalize_email(email), reason, ttl_seconds,
                ip_address=ip_address, user_agent=user_agent, user_id=user_id,
            )

        if notify and self.notifier is not None:
            await self._send_lockout_notice(email, reason, math.ceil(ttl_seconds / 60), user_name)

        return stored

    async def _send_lockout_notice(
        self,
        email: str,
        reason: str,
        lockout_minutes: int,
        user_name: Optional[str]
    ) -> None:
        try:
            result = await self.notifier.send_account_lockout(email, reason, lockout_minutes, user_name)
            if not result.success:
                logger.warning(f"[Lockout] Lockout notice to {email} failed: {result.error}")
        except Exception as e:
            logger.error(f"[Lockout] Lockout notice to {email} failed: {e}")

    async def is_locked(self, email: str) -> LockoutStatus:
        """
        Check whether an identity is currently locked.

        Unavailable store, missing record or an elapsed lockoutUntil all
        read as unlocked.
        """
        record = await self.store.get_json(lockout_key(email))
        if not record:
            return LockoutStatus(locked=False)

        try:
            lockout_until = datetime.fromisoformat(record["lockoutUntil"])
            locked_at = datetime.fromisoformat(record["lockedAt"]) if record.get("lockedAt") else None
        except (KeyError, TypeError, ValueError):
            logger.warning(f"[Lockout] Malformed lockout record for {email}: {record!r}")
            return LockoutStatus(locked=False)

        if lockout_until <= utcnow():
            return LockoutStatus(locked=False)

        return LockoutStatus(
            locked=True,
            lockout_until=lockout_until,
            reason=record.get("reason"),
            locked_at=locked_at,
        )

    async def register_failed_attempt(
        self,
        email: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        user_id: Optional[str] = None,
        user_name: Optional[str] = None
    ) -> LockoutStatus:
        """
        Count a failed login and lock the identity once the limit is reached.

        Returns:
            Lockout status including the current attempt count
        """
        attempts = await self.tracker.increment_login_attempts(email, self.config.attempt_window_minutes)
        if attempts < self.config.max_failed_attempts:
            return LockoutStatus(locked=False, failed_attempts=attempts)

        minutes = self.calculate_lockout_minutes(attempts)
        lockout_until = utcnow() + timedelta(minutes=minutes)
        await self.set_account_lockout(
            email,
            lockout_until,
            reason=LOCKOUT_REASON_FAILED_ATTEMPTS,
            ip_address=ip_address,
            user_agent=user_agent,
            user_id=user_id,
            user_name=user_name,
        )
        return LockoutStatus(
            locked=True,
            lockout_until=lockout_until,
            reason=LOCKOUT_REASON_FAILED_ATTEMPTS,
            locked_at=utcnow(),
            failed_attempts=attempts,
        )

    async def register_successful_login(self, email: str) -> None:
        """Successful authentication resets the failure counter."""
        await self.tracker.reset_login_attempts(email)

    async def clear_lockout(
        self,
        email: str,
        admin_id: Optional[str] = None,
        method: str = UNLOCK_METHOD_ADMIN,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> bool:
        """
        Remove a lockout and reset the failure counter.

        Returns:
            True if the identity was locked before the call
        """
        status = await self.is_locked(email)
        await self.store.reset(lockout_key(email))
        await self.tracker.reset_login_attempts(email)

        if status.locked:
            logger.info(f"[Lockout] Lockout cleared for {email} ({method})")
            if self.security_logger is not None:
                await self.security_logger.log_account_unlock(
                    normalize_email(email), method,
                    ip_address=ip_address, user_agent=user_agent, admin_id=admin_id,
                )
        return status.locked

    async def on_password_reset(self, email: str) -> bool:
        """A completed password reset lifts any lockout."""
        return await self.clear_lockout(email, method=UNLOCK_METHOD_PASSWORD_RESET)
