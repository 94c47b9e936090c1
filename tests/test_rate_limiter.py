"""
Rate Limiter Tests
Tests for fixed-window counting, window reset and degraded mode
"""
from unittest.mock import AsyncMock

import pytest

from authguard.auth import RateLimiter
from authguard.cache import CounterStore
from authguard.utils.config import RateLimitRule


class TestRateLimiter:
    """Tests for RateLimiter.check_rate_limit"""

    @pytest.mark.asyncio
    async def test_request_over_limit_is_blocked(self, counter_store):
        """With limit 5 the 6th request in a window is blocked"""
        limiter = RateLimiter(counter_store)

        states = [
            await limiter.check_rate_limit("198.51.100.1", "login", 5, 900)
            for _ in range(6)
        ]

        assert [s.count for s in states] == [1, 2, 3, 4, 5, 6]
        assert [s.blocked for s in states] == [False] * 5 + [True]
        assert states[4].remaining == 0
        assert states[5].retry_after_seconds > 0

    @pytest.mark.asyncio
    async def test_window_reset_allows_requests_again(self, counter_store, clock):
        limiter = RateLimiter(counter_store)
        for _ in range(6):
            state = await limiter.check_rate_limit("198.51.100.1", "login", 5, 60)
        assert state.blocked

        clock.advance(61)
        state = await limiter.check_rate_limit("198.51.100.1", "login", 5, 60)

        assert state.count == 1
        assert not state.blocked

    @pytest.mark.asyncio
    async def test_reset_time_follows_counter_ttl(self, counter_store, clock):
        limiter = RateLimiter(counter_store)
        first = await limiter.check_rate_limit("s", "login", 5, 60)
        clock.advance(20)
        second = await limiter.check_rate_limit("s", "login", 5, 60)

        remaining = (second.reset_time - second.checked_at).total_seconds()
        assert 39 <= remaining <= 41
        assert first.reset_time > first.checked_at

    @pytest.mark.asyncio
    async def test_subjects_and_actions_are_independent(self, counter_store):
        limiter = RateLimiter(counter_store)
        for _ in range(3):
            await limiter.check_rate_limit("a", "login", 2, 60)

        other_subject = await limiter.check_rate_limit("b", "login", 2, 60)
        other_action = await limiter.check_rate_limit("a", "registration", 2, 60)

        assert other_subject.count == 1 and not other_subject.blocked
        assert other_action.count == 1 and not other_action.blocked

    @pytest.mark.asyncio
    async def test_degraded_store_allows_request(self):
        """Counter store outage fails open"""
        store = AsyncMock(spec=CounterStore)
        store.increment.return_value = 0
        limiter = RateLimiter(store)

        state = await limiter.check_rate_limit("a", "login", 5, 900)

        assert state.blocked is False
        assert state.degraded is True
        assert state.count == 0
        store.ttl_seconds.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("ttl", [-2, -1])
    async def test_missing_ttl_after_increment_uses_full_window(self, ttl):
        """Key gone or without expiry after INCR: reset time falls back to now + window"""
        store = AsyncMock(spec=CounterStore)
        store.increment.return_value = 3
        store.ttl_seconds.return_value = ttl
        limiter = RateLimiter(store)

        state = await limiter.check_rate_limit("a", "login", 5, 900)

        assert (state.reset_time - state.checked_at).total_seconds() == 900
        assert state.count == 3
        assert state.blocked is False
        assert state.degraded is False

    @pytest.mark.asyncio
    async def test_check_action_uses_configured_rule(self, counter_store):
        limiter = RateLimiter(counter_store, {"password_reset": RateLimitRule(limit=1, window_seconds=3600)})

        assert not (await limiter.check_action("a", "password_reset")).blocked
        assert (await limiter.check_action("a", "password_reset")).blocked

        with pytest.raises(KeyError):
            await limiter.check_action("a", "unknown_action")

    @pytest.mark.asyncio
    async def test_default_rules(self, counter_store):
        limiter = RateLimiter(counter_store)

        assert limiter.rules["login"].limit == 5
        assert limiter.rules["login"].window_seconds == 900
        assert limiter.rules["registration"].limit == 3

    @pytest.mark.asyncio
    async def test_reset_clears_window(self, counter_store):
        limiter = RateLimiter(counter_store)
        for _ in range(3):
            await limiter.check_rate_limit("a", "login", 2, 60)

        assert await limiter.reset("a", "login") is True
        state = await limiter.check_rate_limit("a", "login", 2, 60)
        assert state.count == 1

    @pytest.mark.asyncio
    async def test_state_to_dict(self, counter_store):
        limiter = RateLimiter(counter_store)
        state = await limiter.check_rate_limit("a", "login", 5, 60)

        data = state.to_dict()
        assert data["count"] == 1
        assert data["remaining"] == 4
        assert data["blocked"] is False
        assert data["retry_after_seconds"] == 0
