"""
Fixed-Window Rate Limiter

Counts requests per (subject, action) in fixed windows on the counter store.

Known tradeoff: a fixed window resets entirely at its boundary, so a client
can send up to 2x the limit across a window edge (limit at the end of one
window, limit again at the start of the next). Swap in a sliding-window or
token-bucket implementation behind ``check_rate_limit`` if that matters.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Optional

from ..cache import CounterStore
from ..utils.config import RateLimitRule, default_rate_limit_rules
from ..utils.logger import setup_logger
from ..utils.timeutils import utcnow
from .constants import rate_limit_key

logger = setup_logger(__name__)


@dataclass
class RateLimitState:
    """Outcome of one rate limit check"""
    subject: str
    action: str
    count: int
    limit: int
    reset_time: datetime
    blocked: bool
    degraded: bool = False
    checked_at: datetime = field(default_factory=utcnow)

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)

    @property
    def retry_after_seconds(self) -> int:
        if not self.blocked:
            return 0
        return max(0, int((self.reset_time - self.checked_at).total_seconds()))

    def to_dict(self) -> Dict:
        return {
            "count": self.count,
            "limit": self.limit,
            "remaining": self.remaining,
            "reset_time": self.reset_time.isoformat(),
            "blocked": self.blocked,
            "retry_after_seconds": self.retry_after_seconds,
        }


class RateLimiter:
    """
    Fixed-window rate limiter.

    Features:
    - Atomic per-window counting on the counter store
    - Named rules per auth action (login, registration, password_reset...)
    - Fails open when the counter store is unavailable
    """

    def __init__(
        self,
        store: CounterStore,
        rules: Optional[Dict[str, RateLimitRule]] = None
    ):
        self.store = store
        self.rules = rules if rules is not None else default_rate_limit_rules()

    async def check_rate_limit(
        self,
        subject: str,
        action: str,
        limit: int,
        window_seconds: int
    ) -> RateLimitState:
        """
        Count this request and decide whether it is allowed.

        Args:
            subject: Who is being limited (IP, email, user id)
            action: What is being limited (login, registration...)
            limit: Maximum requests allowed in the window
            window_seconds: Window length, applied on the first request

        Returns:
            RateLimitState with blocked = count > limit
        """
        key = rate_limit_key(subject, action)
        count = await self.store.increment(key, window_seconds)
        now = utcnow()

        if count == 0:
            # Counter store unavailable
            return RateLimitState(
                subject=subject,
                action=action,
                count=0,
                limit=limit,
                reset_time=now + timedelta(seconds=window_seconds),
                blocked=False,
                degraded=True,
                checked_at=now,
            )

        ttl = await self.store.ttl_seconds(key)
        if ttl > 0:
            reset_time = now + timedelta(seconds=ttl)
        else:
            # Key expired (or TTL lookup failed) between INCR and TTL
            reset_time = now + timedelta(seconds=window_seconds)

        blocked = count > limit
        if blocked:
            logger.warning(
                f"[RateLimiter] Blocked {action} from {subject}: {count}/{limit} in {window_seconds}s window"
            )

        return RateLimitState(
            subject=subject,
            action=action,
            count=count,
            limit=limit,
            reset_time=reset_time,
            blocked=blocked,
            checked_at=now,
        )

    async def check_action(self, subject: str, action: str) -> RateLimitState:
        """Check using the configured rule for an action."""
        rule = self.rules.get(action)
        if rule is None:
            raise KeyError(f"No rate limit rule configured for action '{action}'")
        return await self.check_rate_limit(subject, action, rule.limit, rule.window_seconds)

    async def reset(self, subject: str, action: str) -> bool:
        """Clear a subject's current window (admin function)."""
        logger.info(f"[RateLimiter] Resetting {action} window for {subject}")
        return await self.store.reset(rate_limit_key(subject, action))
