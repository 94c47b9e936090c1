"""
Inline auth-path protections: rate limiting, failed login tracking, lockouts
"""
from .lockout import LockoutManager, LockoutStatus
from .login_attempts import LoginAttemptTracker
from .rate_limiter import RateLimiter, RateLimitState

__all__ = [
    'LockoutManager',
    'LockoutStatus',
    'LoginAttemptTracker',
    'RateLimiter',
    'RateLimitState',
]
