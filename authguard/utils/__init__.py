"""
Shared utilities: logging, configuration, URLs and time helpers
"""
from .logger import setup_logger
from .timeutils import utcnow

__all__ = [
    'setup_logger',
    'utcnow',
]
