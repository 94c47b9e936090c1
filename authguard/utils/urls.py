"""
Centralized URL Constants

Single source of truth for the connection URLs AuthGuard talks to.
Everything falls back to localhost for development and can be overridden
through environment variables in production.
"""
import os


class URLs:
    """
    Centralized URL constants for the backing services.

    Usage:
        from authguard.utils.urls import URLs

        redis_url = URLs.REDIS
    """

    REDIS: str = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
    DATABASE: str = os.getenv('DATABASE_URL', 'sqlite:///./authguard.db')
