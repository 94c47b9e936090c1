"""
Pytest configuration and fixtures
"""
from datetime import timedelta
from typing import Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from authguard.cache import CounterStore, InMemoryCounterBackend
from authguard.database import Database
from authguard.monitoring import (
    NotificationResult,
    NotificationSender,
    SecurityEventData,
    SecurityEventStore,
    SecurityEventType,
    SecurityLogger,
)
from authguard.utils.timeutils import utcnow


class FakeClock:
    """Manually advanced monotonic clock for the in-memory backend"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def counter_store(clock):
    """In-memory counter store on a controllable clock"""
    return CounterStore(InMemoryCounterBackend(clock=clock), key_prefix="test", timeout_seconds=1.0)


@pytest_asyncio.fixture
async def database(tmp_path):
    """Security event database on a temporary SQLite file"""
    db = Database(f"sqlite:///{tmp_path}/events.db")
    await db.init()
    yield db
    await db.dispose()


@pytest.fixture
def event_store(database):
    return SecurityEventStore(database, timeout_seconds=5.0)


@pytest.fixture
def security_logger(event_store):
    return SecurityLogger(event_store)


@pytest.fixture
def notifier():
    """Notification sender double that always succeeds"""
    sender = AsyncMock(spec=NotificationSender)
    sender.send_security_alert.return_value = NotificationResult(success=True)
    sender.send_account_lockout.return_value = NotificationResult(success=True)
    return sender


def make_event(
    event_type: SecurityEventType = SecurityEventType.LOGIN_ATTEMPT,
    success: bool = False,
    email: Optional[str] = "victim@example.com",
    ip_address: Optional[str] = "203.0.113.7",
    minutes_ago: float = 0,
    **kwargs
) -> SecurityEventData:
    """Build an event timestamped ``minutes_ago`` before now"""
    return SecurityEventData(
        event_type=event_type,
        success=success,
        email=email,
        ip_address=ip_address,
        user_agent=kwargs.pop("user_agent", "pytest"),
        timestamp=utcnow() - timedelta(minutes=minutes_ago),
        **kwargs
    )


async def seed_events(store: SecurityEventStore, events) -> None:
    for event in events:
        stored = await store.record(event)
        assert stored is not None
