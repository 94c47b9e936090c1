"""
Monitoring Scheduler Tests
"""
import asyncio
from unittest.mock import AsyncMock

import pytest

from authguard.exceptions import BackendUnavailableError
from authguard.monitoring import (
    AlertEngine,
    MonitoringScheduler,
    SecurityEventStore,
    SuspiciousActivityDetector,
)


@pytest.fixture
def detector():
    mock = AsyncMock(spec=SuspiciousActivityDetector)
    mock.detect_suspicious_activity.return_value = []
    return mock


@pytest.fixture
def alert_engine():
    mock = AsyncMock(spec=AlertEngine)
    mock.check_alert_thresholds.return_value = []
    return mock


@pytest.fixture
def scheduler(detector, alert_engine):
    return MonitoringScheduler(detector, alert_engine, detection_window_minutes=30)


class TestSchedulerLifecycle:
    """Tests for start / stop / status"""

    @pytest.mark.asyncio
    async def test_start_runs_immediately(self, scheduler, detector, alert_engine):
        assert await scheduler.start(interval_minutes=10) is True
        try:
            detector.detect_suspicious_activity.assert_awaited_once_with(30)
            alert_engine.check_alert_thresholds.assert_awaited_once()

            status = scheduler.get_status()
            assert status["is_running"] is True
            assert status["interval_minutes"] == 10
            assert status["cycles_completed"] == 1
            assert status["last_run_at"] is not None
            assert status["last_result"]["succeeded"] is True
        finally:
            await scheduler.stop()

    @pytest.mark.asyncio
    async def test_second_start_is_noop(self, scheduler, detector):
        await scheduler.start(interval_minutes=10)
        try:
            assert await scheduler.start(interval_minutes=1) is False
            assert scheduler.interval_minutes == 10
            assert detector.detect_suspicious_activity.await_count == 1
        finally:
            await scheduler.stop()

    @pytest.mark.asyncio
    async def test_stop(self, scheduler):
        assert await scheduler.stop() is False

        await scheduler.start(interval_minutes=10)
        assert await scheduler.stop() is True

        status = scheduler.get_status()
        assert status["is_running"] is False
        assert status["next_run_time"] is None

    @pytest.mark.asyncio
    async def test_invalid_interval(self, scheduler):
        with pytest.raises(ValueError):
            await scheduler.start(interval_minutes=0)
        assert scheduler.is_running is False

    @pytest.mark.asyncio
    async def test_loop_repeats(self, scheduler, detector):
        await scheduler.start(interval_minutes=0.001)
        await asyncio.sleep(0.3)
        await scheduler.stop()

        assert scheduler.cycles_completed >= 2
        assert detector.detect_suspicious_activity.await_count == scheduler.cycles_completed

    @pytest.mark.asyncio
    async def test_stop_waits_for_inflight_cycle(self, scheduler, detector):
        entered = asyncio.Event()
        finished = []

        async def detect(window_minutes):
            if detector.detect_suspicious_activity.await_count == 2:
                entered.set()
                await asyncio.sleep(0.1)
                finished.append(True)
            return []

        detector.detect_suspicious_activity.side_effect = detect

        await scheduler.start(interval_minutes=0.001)
        await asyncio.wait_for(entered.wait(), timeout=2)
        await scheduler.stop()

        assert finished == [True]
        assert scheduler.cycles_completed == 2

    @pytest.mark.asyncio
    async def test_restart_during_first_cycle_keeps_one_loop(self, scheduler, detector):
        release = asyncio.Event()

        async def detect(window_minutes):
            if detector.detect_suspicious_activity.await_count == 1:
                await release.wait()
            return []

        detector.detect_suspicious_activity.side_effect = detect

        first = asyncio.create_task(scheduler.start(interval_minutes=10))
        while detector.detect_suspicious_activity.await_count == 0:
            await asyncio.sleep(0)
        assert await scheduler.stop() is True
        second = asyncio.create_task(scheduler.start(interval_minutes=10))
        await asyncio.sleep(0)
        release.set()

        assert await first is True
        assert await second is True
        loops = [
            task for task in asyncio.all_tasks()
            if task.get_coro().__qualname__ == "MonitoringScheduler._run_loop"
        ]
        assert len(loops) == 1
        assert scheduler.is_running is True

        await scheduler.stop()
        assert loops[0].done()

    @pytest.mark.asyncio
    async def test_next_run_time_cleared_while_cycle_runs(self, scheduler, detector):
        seen = []

        async def detect(window_minutes):
            seen.append(scheduler.get_status()["next_run_time"])
            return []

        detector.detect_suspicious_activity.side_effect = detect

        await scheduler.start(interval_minutes=0.001)
        await asyncio.sleep(0.3)
        await scheduler.stop()

        assert len(seen) >= 2
        assert seen == [None] * len(seen)


class TestMonitoringCycle:
    """Tests for run_cycle / run_now"""

    @pytest.mark.asyncio
    async def test_detection_failure_still_checks_alerts(self, scheduler, detector, alert_engine):
        detector.detect_suspicious_activity.side_effect = BackendUnavailableError("database", "query")

        result = await scheduler.run_now()

        alert_engine.check_alert_thresholds.assert_awaited_once()
        assert result.succeeded is False
        assert len(result.errors) == 1
        assert result.errors[0].startswith("detection")

    @pytest.mark.asyncio
    async def test_counts_reported(self, scheduler, detector, alert_engine):
        detector.detect_suspicious_activity.return_value = [object(), object()]
        alert_engine.check_alert_thresholds.return_value = [object()]

        result = await scheduler.run_now()

        assert result.patterns_detected == 2
        assert result.alerts_triggered == 1
        assert result.finished_at >= result.started_at
        assert scheduler.is_running is False

    @pytest.mark.asyncio
    async def test_retention_cleanup_runs_daily(self, detector, alert_engine):
        event_store = AsyncMock(spec=SecurityEventStore)
        event_store.cleanup_older_than.return_value = 3
        scheduler = MonitoringScheduler(detector, alert_engine, event_store=event_store, retention_days=90)

        first = await scheduler.run_cycle()
        second = await scheduler.run_cycle()

        event_store.cleanup_older_than.assert_awaited_once_with(90)
        assert first.events_cleaned_up == 3
        assert second.events_cleaned_up is None

    @pytest.mark.asyncio
    async def test_cleanup_failure_is_recorded(self, detector, alert_engine):
        event_store = AsyncMock(spec=SecurityEventStore)
        event_store.cleanup_older_than.side_effect = BackendUnavailableError("database", "cleanup")
        scheduler = MonitoringScheduler(detector, alert_engine, event_store=event_store, retention_days=90)

        result = await scheduler.run_cycle()

        assert [e.split(":")[0] for e in result.errors] == ["cleanup"]
