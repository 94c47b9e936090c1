"""
Security Event Store and Security Logger Tests
"""
from datetime import timedelta, timezone

import pytest

from authguard.database import Database
from authguard.exceptions import BackendUnavailableError
from authguard.monitoring import SecurityEventFilter, SecurityEventStore, SecurityEventType, Severity
from authguard.utils.timeutils import utcnow
from conftest import make_event, seed_events


class TestSecurityEventStore:
    """Tests for recording and querying events"""

    @pytest.mark.asyncio
    async def test_record_assigns_id(self, event_store):
        stored = await event_store.record(make_event())

        assert stored is not None
        assert stored.id is not None

    @pytest.mark.asyncio
    async def test_query_newest_first_with_filters(self, event_store):
        await seed_events(event_store, [
            make_event(email="a@example.com", minutes_ago=10),
            make_event(email="a@example.com", success=True, minutes_ago=5),
            make_event(email="b@example.com", minutes_ago=1),
            make_event(SecurityEventType.REGISTRATION, email="c@example.com", minutes_ago=2),
        ])

        logins = await event_store.query(SecurityEventFilter(event_type=SecurityEventType.LOGIN_ATTEMPT))
        assert [e.email for e in logins] == ["b@example.com", "a@example.com", "a@example.com"]

        failed_a = await event_store.query(SecurityEventFilter(email="a@example.com", success=False))
        assert len(failed_a) == 1

        recent = await event_store.query(SecurityEventFilter(start_date=utcnow() - timedelta(minutes=3)))
        assert {e.email for e in recent} == {"b@example.com", "c@example.com"}

    @pytest.mark.asyncio
    async def test_limit_and_offset(self, event_store):
        await seed_events(event_store, [make_event(minutes_ago=i) for i in range(5)])

        page = await event_store.query(SecurityEventFilter(limit=2, offset=1))

        assert len(page) == 2
        assert page[0].timestamp > page[1].timestamp

    @pytest.mark.asyncio
    async def test_default_limit_is_100(self, event_store):
        await seed_events(event_store, [make_event() for _ in range(105)])

        assert len(await event_store.query()) == 100
        assert await event_store.count() == 105

    @pytest.mark.asyncio
    async def test_details_round_trip(self, event_store):
        await event_store.record(make_event(details={"reason": "bad_password", "attempt": 3}))

        [event] = await event_store.query()
        assert event.details == {"reason": "bad_password", "attempt": 3}

    @pytest.mark.asyncio
    async def test_timezone_aware_filter_dates(self, event_store):
        """Offsets are honoured; stored timestamps are naive UTC"""
        await event_store.record(make_event(minutes_ago=30))
        plus_five = timezone(timedelta(hours=5))
        now_local = utcnow().replace(tzinfo=timezone.utc).astimezone(plus_five)

        recent = await event_store.query(SecurityEventFilter(start_date=now_local - timedelta(hours=1)))
        older = await event_store.query(SecurityEventFilter(end_date=now_local - timedelta(hours=1)))

        assert len(recent) == 1
        assert older == []

    @pytest.mark.asyncio
    async def test_oversized_client_fields_are_truncated(self, event_store):
        """A huge user agent or email must not cost the event"""
        stored = await event_store.record(make_event(
            email="x" * 300 + "@example.com",
            user_agent="A" * 5000,
            ip_address="9" * 100,
        ))

        assert stored is not None
        [event] = await event_store.query()
        assert len(event.user_agent) == 500
        assert len(event.email) == 255
        assert len(event.ip_address) == 45
        assert event.email == stored.email

    @pytest.mark.asyncio
    async def test_aware_event_timestamp_stored_as_utc(self, event_store):
        event = make_event(minutes_ago=10)
        event.timestamp = event.timestamp.replace(tzinfo=timezone.utc).astimezone(timezone(timedelta(hours=-7)))
        await event_store.record(event)

        [event] = await event_store.query()
        assert event.timestamp.tzinfo is None
        assert abs((utcnow() - event.timestamp) - timedelta(minutes=10)) < timedelta(minutes=1)

    @pytest.mark.asyncio
    async def test_record_failure_is_swallowed(self, tmp_path):
        """A broken database drops the event instead of raising"""
        broken = Database(f"sqlite:///{tmp_path}/missing-dir/events.db")
        store = SecurityEventStore(broken, timeout_seconds=2.0)

        assert await store.record(make_event()) is None
        await broken.dispose()

    @pytest.mark.asyncio
    async def test_query_failure_raises_backend_unavailable(self, tmp_path):
        broken = Database(f"sqlite:///{tmp_path}/missing-dir/events.db")
        store = SecurityEventStore(broken)

        with pytest.raises(BackendUnavailableError):
            await store.query()
        await broken.dispose()

    @pytest.mark.asyncio
    async def test_cleanup_older_than(self, event_store):
        await seed_events(event_store, [
            make_event(minutes_ago=91 * 24 * 60),
            make_event(minutes_ago=100 * 24 * 60),
            make_event(minutes_ago=5),
        ])

        assert await event_store.cleanup_older_than(90) == 2
        assert await event_store.count() == 1

    @pytest.mark.asyncio
    async def test_generate_report(self, event_store):
        await seed_events(event_store, [
            make_event(ip_address="203.0.113.1"),
            make_event(ip_address="203.0.113.1"),
            make_event(success=True, ip_address="203.0.113.2"),
            make_event(SecurityEventType.REGISTRATION, success=True, ip_address="203.0.113.1"),
        ])
        end = utcnow()
        report = await event_store.generate_report(end - timedelta(days=1), end)

        assert report["total_events"] == 4
        assert report["successful_events"] == 2
        assert report["failed_events"] == 2
        assert report["events_by_type"] == {"LOGIN_ATTEMPT": 3, "REGISTRATION": 1}
        assert report["top_ip_addresses"][0] == {"ip_address": "203.0.113.1", "count": 3}
        assert sum(report["events_by_hour"].values()) == 4


class TestSecurityLogger:
    """Tests for the typed event helpers"""

    @pytest.mark.asyncio
    async def test_authentication_attempt(self, security_logger, event_store):
        await security_logger.log_authentication_attempt(
            "a@example.com", False, ip_address="203.0.113.5", user_agent="curl/8"
        )

        [event] = await event_store.query()
        assert event.event_type == SecurityEventType.LOGIN_ATTEMPT
        assert event.success is False
        assert event.user_agent == "curl/8"

    @pytest.mark.asyncio
    async def test_account_lockout_is_successful_event(self, security_logger, event_store):
        await security_logger.log_account_lockout("a@example.com", "failed_attempts", 1800)

        [event] = await event_store.query()
        assert event.event_type == SecurityEventType.ACCOUNT_LOCKOUT
        assert event.success is True
        assert event.details["duration"] == 1800
        assert "unlockTime" in event.details

    @pytest.mark.asyncio
    async def test_suspicious_activity_is_failed_event(self, security_logger, event_store):
        await security_logger.log_suspicious_activity(
            "Brute force", Severity.HIGH, ip_address="203.0.113.5", details={"count": 12}
        )

        [event] = await event_store.query()
        assert event.event_type == SecurityEventType.SUSPICIOUS_ACTIVITY
        assert event.success is False
        assert event.details["severity"] == "HIGH"
        assert event.details["description"] == "Brute force"
        assert event.details["count"] == 12

    @pytest.mark.asyncio
    async def test_token_generated_defaults_to_system_origin(self, security_logger, event_store):
        await security_logger.log_token_generated("password_reset", email="a@example.com")

        [event] = await event_store.query()
        assert event.ip_address == "system"
        assert event.details["tokenType"] == "password_reset"

    @pytest.mark.asyncio
    async def test_email_verification_resend(self, security_logger, event_store):
        await security_logger.log_email_verification("a@example.com", True, resend=True)

        [event] = await event_store.query()
        assert event.details["action"] == "resend"
