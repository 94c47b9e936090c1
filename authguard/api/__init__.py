"""
Admin HTTP API for AuthGuard
"""
from .app import create_app

__all__ = ['create_app']
