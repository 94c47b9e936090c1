"""
Security event persistence (SQLAlchemy, async)
"""
from .async_database import Database, to_async_url
from .models import Base, SecurityEvent

__all__ = [
    'Base',
    'Database',
    'SecurityEvent',
    'to_async_url',
]
