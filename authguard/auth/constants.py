"""
Auth Module Constants

Centralized constants and counter-store key layout for the inline auth path.
"""

# ============================================================================
# Failed Login Tracking
# ============================================================================
ATTEMPT_WINDOW_MINUTES = 15  # Failed-attempt counter lifetime

# ============================================================================
# Lockout Reasons / Unlock Methods
# ============================================================================
LOCKOUT_REASON_FAILED_ATTEMPTS = "failed_attempts"
UNLOCK_METHOD_ADMIN = "admin"
UNLOCK_METHOD_PASSWORD_RESET = "password_reset"

# ============================================================================
# Counter Store Keys
# ============================================================================


def rate_limit_key(subject: str, action: str) -> str:
    """Fixed-window counter for one subject (usually an IP) and action"""
    return f"ratelimit:{subject}:{action}"


def login_attempts_key(email: str) -> str:
    """Failed login counter for one identity"""
    return f"login_attempts:{normalize_email(email)}"


def lockout_key(email: str) -> str:
    """Lockout record for one identity"""
    return f"lockout:{normalize_email(email)}"


def normalize_email(email: str) -> str:
    return email.strip().lower()
