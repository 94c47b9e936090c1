"""
Login Attempt Tracker

Per-identity failed login counters on the counter store. The window starts
at the first failure and the counter disappears when it expires.
"""
from ..cache import CounterStore
from ..utils.logger import setup_logger
from .constants import ATTEMPT_WINDOW_MINUTES, login_attempts_key

logger = setup_logger(__name__)


class LoginAttemptTracker:
    """Failed login attempt counting per email"""

    def __init__(self, store: CounterStore, window_minutes: int = ATTEMPT_WINDOW_MINUTES):
        self.store = store
        self.window_minutes = window_minutes

    async def increment_login_attempts(self, email: str, window_minutes: int = None) -> int:
        """
        Record one failed attempt.

        Args:
            email: Identity that failed to authenticate
            window_minutes: Counter lifetime (defaults to the tracker's window)

        Returns:
            Attempt count in the current window. When the counter store is
            unavailable this is 1, i.e. treated as the first attempt.
        """
        window = window_minutes or self.window_minutes
        count = await self.store.increment(login_attempts_key(email), window * 60, default=1)
        logger.info(f"[LoginAttempts] Failed attempt #{count} for {email}")
        return count

    async def get_login_attempts(self, email: str) -> int:
        return await self.store.get(login_attempts_key(email))

    async def reset_login_attempts(self, email: str) -> bool:
        """Called on successful login or password reset."""
        return await self.store.reset(login_attempts_key(email))
