"""
AuthGuard - authentication security core

Failed-attempt tracking, account lockout, fixed-window rate limiting and
suspicious-activity detection with alerting for login/registration flows.
"""

__version__ = "0.1.0"
