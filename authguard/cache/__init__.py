"""
Counter store - keyed counters with TTL over Redis or process memory
"""
from .counter_store import (
    CounterBackend,
    CounterStore,
    InMemoryCounterBackend,
    RedisCounterBackend,
    TTL_MISSING,
    TTL_NO_EXPIRY,
)

__all__ = [
    'CounterBackend',
    'CounterStore',
    'InMemoryCounterBackend',
    'RedisCounterBackend',
    'TTL_MISSING',
    'TTL_NO_EXPIRY',
]
