"""
AuthGuard exceptions

Backends raise these; the inline auth-path wrappers catch them and degrade.
"""


class AuthGuardError(Exception):
    """Base class for all AuthGuard errors"""


class BackendUnavailableError(AuthGuardError):
    """The cache or event database could not be reached (or timed out)"""

    def __init__(self, backend: str, operation: str, cause: Exception = None):
        self.backend = backend
        self.operation = operation
        self.cause = cause
        message = f"{backend} unavailable during {operation}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class ConfigurationError(AuthGuardError):
    """Invalid configuration file or invalid threshold values"""
