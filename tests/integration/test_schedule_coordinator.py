"""
Integration tests for the payout schedule coordinator.

The runner is mocked where only the state machine is under test.
"""

from datetime import UTC, date, datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from payout_engine.models.enums import SchedulerStatus, TriggerSource
from payout_engine.repositories import ROISettingsRepository
from payout_engine.services.payout import RunSummary
from payout_engine.services.scheduler.coordinator import (
    PayoutScheduleCoordinator,
    RecoveryAction,
    RunOutcome,
)
from payout_engine.services.settings_service import SettingsService
from payout_engine.utils.datetime_utils import ensure_aware
from payout_engine.utils.exceptions import InvalidStateError, StaleSettingsError

MORNING = datetime(2026, 5, 1, 8, 0, tzinfo=UTC)
TRIGGER = datetime(2026, 5, 1, 10, 0, tzinfo=UTC)


@pytest.fixture
def runner():
    """Runner double returning an empty summary."""
    mock = AsyncMock()
    mock.run.return_value = RunSummary(
        for_date=date(2026, 4, 30), trigger=TriggerSource.SCHEDULED
    )
    return mock


@pytest.fixture
def coordinator(session_maker, runner):
    """Coordinator firing at 10:00 UTC with a one hour backoff."""
    return PayoutScheduleCoordinator(
        session_maker,
        runner=runner,
        trigger_hour=10,
        tz=UTC,
        retry_delay=timedelta(hours=1),
    )


@pytest.fixture
async def active_roi(roi_settings):
    """Active 1% x 30 plan."""
    return await roi_settings(percentage=1, duration=30)


class TestStartStop:
    """Arming and disarming."""

    @pytest.mark.asyncio
    async def test_start_arms_next_trigger(self, coordinator, active_roi):
        """Start records the next trigger and the settings version."""
        state = await coordinator.start(MORNING)

        stored = await coordinator.get_state()
        assert state.is_running
        assert stored.status == SchedulerStatus.SCHEDULED.value
        assert ensure_aware(stored.next_run) == TRIGGER
        assert stored.settings_version == active_roi.settings_version

    @pytest.mark.asyncio
    async def test_start_requires_active_roi(self, coordinator, roi_settings):
        """Paused ROI cannot be scheduled."""
        await roi_settings(status="paused")

        with pytest.raises(InvalidStateError):
            await coordinator.start(MORNING)

    @pytest.mark.asyncio
    async def test_start_without_settings(self, coordinator):
        """Missing settings cannot be scheduled."""
        with pytest.raises(InvalidStateError):
            await coordinator.start(MORNING)

    @pytest.mark.asyncio
    async def test_stop(self, coordinator, active_roi):
        """Stop returns to idle with no next run."""
        await coordinator.start(MORNING)

        await coordinator.stop("maintenance")

        state = await coordinator.get_state()
        assert not state.is_running
        assert state.status == SchedulerStatus.IDLE.value
        assert state.next_run is None


class TestRunScheduled:
    """Timer-driven runs."""

    @pytest.mark.asyncio
    async def test_completed_run_rearms(self, coordinator, runner, active_roi):
        """Success pays yesterday and schedules tomorrow."""
        await coordinator.start(MORNING)

        result = await coordinator.run_scheduled(TRIGGER)

        state = await coordinator.get_state()
        assert result.outcome is RunOutcome.COMPLETED
        assert result.next_run == datetime(2026, 5, 2, 10, tzinfo=UTC)
        assert state.status == SchedulerStatus.SCHEDULED.value
        assert ensure_aware(state.last_run) == TRIGGER
        runner.run.assert_awaited_once_with(
            for_date=date(2026, 4, 30),
            expected_version=active_roi.settings_version,
            trigger=TriggerSource.SCHEDULED,
        )

    @pytest.mark.asyncio
    async def test_not_running(self, coordinator, runner, active_roi):
        """A stopped scheduler ignores its timer."""
        result = await coordinator.run_scheduled(TRIGGER)

        assert result.outcome is RunOutcome.NOT_RUNNING
        runner.run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_settings_changed_before_run(
        self, coordinator, runner, roi_settings, active_roi
    ):
        """A newer settings version stops the schedule without running."""
        await coordinator.start(MORNING)
        await roi_settings(percentage=2, duration=30)

        result = await coordinator.run_scheduled(TRIGGER)

        state = await coordinator.get_state()
        assert result.outcome is RunOutcome.STALE
        assert not state.is_running
        runner.run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_settings_changed_during_run(self, coordinator, runner, active_roi):
        """A stale abort from the runner stops the schedule."""
        runner.run.side_effect = StaleSettingsError("settings version changed")
        await coordinator.start(MORNING)

        result = await coordinator.run_scheduled(TRIGGER)

        state = await coordinator.get_state()
        assert result.outcome is RunOutcome.STALE
        assert state.status == SchedulerStatus.IDLE.value

    @pytest.mark.asyncio
    async def test_transient_failure_backs_off(
        self, db_session, coordinator, runner, active_roi
    ):
        """Storage failures retry after the backoff delay."""
        runner.run.side_effect = OperationalError(
            "SELECT", {}, Exception("connection reset")
        )
        await coordinator.start(MORNING)

        result = await coordinator.run_scheduled(TRIGGER)

        state = await coordinator.get_state()
        db_session.expire_all()
        roi = await ROISettingsRepository(db_session).get_current()
        assert result.outcome is RunOutcome.RETRY
        assert result.next_run == TRIGGER + timedelta(hours=1)
        assert state.is_running
        assert state.status == SchedulerStatus.RETRY_BACKOFF.value
        assert "connection reset" in state.last_error
        assert "connection reset" in roi.last_error

    @pytest.mark.asyncio
    async def test_retry_after_backoff_succeeds(self, coordinator, runner, active_roi):
        """The retry timer runs the payout again."""
        runner.run.side_effect = [
            OperationalError("SELECT", {}, Exception("connection reset")),
            RunSummary(for_date=date(2026, 4, 30), trigger=TriggerSource.SCHEDULED),
        ]
        await coordinator.start(MORNING)

        await coordinator.run_scheduled(TRIGGER)
        result = await coordinator.run_scheduled(TRIGGER + timedelta(hours=1))

        assert result.outcome is RunOutcome.COMPLETED
        assert runner.run.await_count == 2

    @pytest.mark.asyncio
    async def test_non_transient_error_propagates(self, coordinator, runner, active_roi):
        """Programming errors are not swallowed."""
        runner.run.side_effect = ValueError("bug")
        await coordinator.start(MORNING)

        with pytest.raises(ValueError):
            await coordinator.run_scheduled(TRIGGER)

    @pytest.mark.asyncio
    async def test_manual_run_leaves_state(self, coordinator, runner, active_roi):
        """Manual runs pay yesterday without touching the schedule."""
        await coordinator.run_manual(TRIGGER)

        state = await coordinator.get_state()
        assert not state.is_running
        runner.run.assert_awaited_once_with(
            for_date=date(2026, 4, 30), trigger=TriggerSource.MANUAL
        )


class TestRecover:
    """Restart recovery."""

    @pytest.mark.asyncio
    async def test_idle(self, coordinator, active_roi):
        """Nothing armed, nothing to do."""
        decision = await coordinator.recover(MORNING)

        assert decision.action is RecoveryAction.IDLE

    @pytest.mark.asyncio
    async def test_resume_future_trigger(self, coordinator, runner, active_roi):
        """A trigger still ahead is simply re-armed."""
        await coordinator.start(MORNING)

        decision = await coordinator.recover(MORNING + timedelta(minutes=30))

        assert decision.action is RecoveryAction.RESUME
        assert decision.next_run == TRIGGER
        runner.run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_restart_missed_trigger(self, coordinator, runner, active_roi):
        """A missed trigger runs immediately as a recovery run."""
        await coordinator.start(MORNING)

        decision = await coordinator.recover(TRIGGER + timedelta(hours=2))

        assert decision.action is RecoveryAction.RESTART
        assert decision.run_result.outcome is RunOutcome.COMPLETED
        assert runner.run.await_args.kwargs["trigger"] is TriggerSource.RECOVERY

    @pytest.mark.asyncio
    async def test_stale_after_settings_change(
        self, coordinator, runner, roi_settings, active_roi
    ):
        """Settings saved while the process was down stop the schedule."""
        await coordinator.start(MORNING)
        await roi_settings(percentage=2, duration=30)

        decision = await coordinator.recover(TRIGGER)

        state = await coordinator.get_state()
        assert decision.action is RecoveryAction.STALE
        assert not state.is_running
        runner.run.assert_not_awaited()


class TestSettingsChanged:
    """Reaction to admin saves."""

    @pytest.mark.asyncio
    async def test_rearms_with_new_version(self, coordinator, roi_settings, active_roi):
        """A running schedule adopts the new version."""
        await coordinator.start(MORNING)
        updated = await roi_settings(percentage=2, duration=30)

        state = await coordinator.on_settings_changed(MORNING)

        assert state.is_running
        assert state.settings_version == updated.settings_version

    @pytest.mark.asyncio
    async def test_pause_stops(self, db_session, coordinator, active_roi):
        """Pausing ROI stops a running schedule."""
        await coordinator.start(MORNING)
        await SettingsService(db_session).set_roi_status("paused")

        state = await coordinator.on_settings_changed(MORNING)

        assert not state.is_running

    @pytest.mark.asyncio
    async def test_idle_stays_idle(self, coordinator, active_roi):
        """Saving settings never starts the scheduler."""
        state = await coordinator.on_settings_changed(MORNING)

        assert not state.is_running


class TestHeartbeat:
    """Liveness marks."""

    @pytest.mark.asyncio
    async def test_heartbeat_when_running(self, db_session, coordinator, active_roi):
        """The settings row gets a heartbeat timestamp."""
        await coordinator.start(MORNING)

        assert await coordinator.heartbeat(MORNING) is True

        db_session.expire_all()
        roi = await ROISettingsRepository(db_session).get_current()
        assert ensure_aware(roi.scheduler_heartbeat) == MORNING

    @pytest.mark.asyncio
    async def test_heartbeat_when_idle(self, coordinator, active_roi):
        """No heartbeat while stopped."""
        assert await coordinator.heartbeat(MORNING) is False
