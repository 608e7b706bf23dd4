"""Tests for the OperationalProfiling component and FederatedLearningService."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from brave_federated.config import OperationalProfilingFeatures
from brave_federated.constants import (
    ADS_ENABLED_PREF,
    COLLECTION_ID_EXPIRATION_PREF,
    COLLECTION_ID_PREF,
    LAST_CHECKED_SLOT_PREF,
    P3A_ENABLED_PREF,
)
from brave_federated.operational_profiling import OperationalProfiling, SchedulerError
from brave_federated.operational_profiling.scheduler import SchedulerState
from brave_federated.prefs import PrefService
from brave_federated.service import FederatedLearningService

CLIENT_PATH = "brave_federated.operational_profiling.uploader.httpx.AsyncClient"


def _client_with(post) -> AsyncMock:
    """Mocked AsyncClient whose post() runs the given coroutine function."""
    client = AsyncMock()
    client.post = AsyncMock(side_effect=post)
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    return client


@pytest.fixture()
def profiling(prefs: PrefService, features: OperationalProfilingFeatures, clock):
    component = OperationalProfiling(prefs, features, platform="winx64", clock=clock)
    yield component
    component.close()


# =====================================================================
# Lifecycle
# =====================================================================


class TestLifecycle:
    async def test_start_arms_scheduler(self, profiling) -> None:
        profiling.start()

        assert profiling.is_running
        assert profiling.scheduler.training_step_timer.is_running
        assert profiling.scheduler.slot_start_timer.is_running

    async def test_timer_delays_follow_features(self, prefs, clock) -> None:
        features = OperationalProfilingFeatures(
            enabled=True, slot_size_minutes=30, simulate_duration_minutes=4
        )
        component = OperationalProfiling(prefs, features, platform="linux", clock=clock)

        assert component.scheduler.training_step_timer.delay == 240
        assert component.scheduler.slot_start_timer.period == 900

    async def test_start_rotates_missing_collection_id(self, profiling, prefs, clock) -> None:
        profiling.start()

        assert prefs.get_string(COLLECTION_ID_PREF) != ""
        assert prefs.get_time(COLLECTION_ID_EXPIRATION_PREF) == clock.now + timedelta(days=1)

    async def test_start_loads_persisted_cursor(self, prefs, features, clock) -> None:
        prefs.set_integer(LAST_CHECKED_SLOT_PREF, 17)
        prefs.set_string(COLLECTION_ID_PREF, "KEEPME")
        prefs.set_time(COLLECTION_ID_EXPIRATION_PREF, clock.now + timedelta(hours=2))
        component = OperationalProfiling(prefs, features, platform="linux", clock=clock)

        component.start()

        assert component.uploader.last_checked_slot == 17
        assert component.collection_ids.collection_id == "KEEPME"
        component.close()

    async def test_double_start_raises(self, profiling) -> None:
        profiling.start()

        with pytest.raises(SchedulerError):
            profiling.start()

    async def test_restart_after_stop(self, profiling) -> None:
        profiling.start()
        profiling.stop()

        profiling.start()

        assert profiling.is_running

    async def test_start_after_close_raises(self, profiling) -> None:
        profiling.close()

        with pytest.raises(SchedulerError):
            profiling.start()

    def test_stop_before_start(self, profiling) -> None:
        profiling.stop()

        assert profiling.scheduler.state is SchedulerState.STOPPED
        assert not profiling.scheduler.training_step_timer.is_running
        assert not profiling.scheduler.slot_start_timer.is_running

    async def test_stop_twice(self, profiling) -> None:
        profiling.start()
        profiling.stop()
        profiling.stop()

        assert not profiling.is_running
        assert not profiling.scheduler.training_step_timer.is_running
        assert not profiling.scheduler.slot_start_timer.is_running

    async def test_close_saves_prefs_after_start(self, profiling) -> None:
        profiling.start()

        with patch.object(profiling, "save_prefs") as save:
            profiling.close()

        save.assert_called_once_with()

    def test_close_without_start_does_not_save(self, profiling) -> None:
        with patch.object(profiling, "save_prefs") as save:
            profiling.close()

        save.assert_not_called()

    async def test_close_writes_all_three(self, features, clock, tmp_path: Path) -> None:
        path = tmp_path / "Local State"
        file_prefs = PrefService(path)
        FederatedLearningService.register_local_state_prefs(file_prefs)
        component = OperationalProfiling(file_prefs, features, platform="linux", clock=clock)
        component.start()
        component.uploader.on_upload_complete(9, 200)
        component.close()

        reloaded = PrefService(path)
        FederatedLearningService.register_local_state_prefs(reloaded)
        ids = component.collection_ids
        assert reloaded.get_integer(LAST_CHECKED_SLOT_PREF) == 9
        assert reloaded.get_string(COLLECTION_ID_PREF) == ids.collection_id
        assert reloaded.get_time(COLLECTION_ID_EXPIRATION_PREF) == ids.expiration


# =====================================================================
# Enablement signal
# =====================================================================


class TestPreferenceObserver:
    async def test_p3a_disabled_stops(self, profiling, prefs) -> None:
        profiling.start()

        prefs.set_boolean(P3A_ENABLED_PREF, False)

        assert not profiling.is_running
        assert not profiling.scheduler.training_step_timer.is_running

    async def test_p3a_reenabled_does_not_restart(self, profiling, prefs) -> None:
        profiling.start()
        prefs.set_boolean(P3A_ENABLED_PREF, False)

        prefs.set_boolean(P3A_ENABLED_PREF, True)

        assert not profiling.is_running

    async def test_feature_disabled_stops_while_p3a_enabled(self, prefs, clock) -> None:
        features = OperationalProfilingFeatures(enabled=False)
        component = OperationalProfiling(prefs, features, platform="linux", clock=clock)
        component.start()

        component._on_preference_changed(P3A_ENABLED_PREF)

        assert prefs.get_boolean(P3A_ENABLED_PREF) is True
        assert not component.is_running
        component.close()

    async def test_close_detaches_observer(self, profiling, prefs) -> None:
        profiling.start()
        profiling.close()

        with patch.object(profiling, "stop") as stop:
            prefs.set_boolean(P3A_ENABLED_PREF, False)

        stop.assert_not_called()


# =====================================================================
# End-to-end through the timers
# =====================================================================


class TestTimerDrivenUpload:
    async def test_training_step_sends_and_persists(self, prefs, clock, make_http_client) -> None:
        features = OperationalProfilingFeatures(
            enabled=True, slot_size_minutes=60, simulate_duration_minutes=0
        )
        component = OperationalProfiling(prefs, features, platform="winx64", clock=clock)
        client = make_http_client(200)

        with patch(CLIENT_PATH, return_value=client):
            component.start()
            await asyncio.sleep(0.05)

        client.post.assert_awaited_once()
        assert prefs.get_integer(LAST_CHECKED_SLOT_PREF) == 0
        component.close()

    async def test_repeated_fires_in_one_slot_send_once(
        self, prefs, clock, make_http_client
    ) -> None:
        features = OperationalProfilingFeatures(
            enabled=True, slot_size_minutes=60, simulate_duration_minutes=0
        )
        component = OperationalProfiling(prefs, features, platform="winx64", clock=clock)
        client = make_http_client(200)

        with patch(CLIENT_PATH, return_value=client):
            component.start()
            await asyncio.sleep(0.02)
            for _ in range(3):
                component.scheduler._on_slot_start_timer_fired()
                await asyncio.sleep(0.02)

        client.post.assert_awaited_once()
        component.close()

    async def test_next_slot_fire_sends_again(self, prefs, clock, make_http_client) -> None:
        features = OperationalProfilingFeatures(
            enabled=True, slot_size_minutes=60, simulate_duration_minutes=0
        )
        component = OperationalProfiling(prefs, features, platform="winx64", clock=clock)
        client = make_http_client(200)

        with patch(CLIENT_PATH, return_value=client):
            component.start()
            await asyncio.sleep(0.02)
            clock.now = datetime(2026, 3, 1, 1, 5)
            component.scheduler._on_slot_start_timer_fired()
            await asyncio.sleep(0.02)

        assert client.post.await_count == 2
        assert prefs.get_integer(LAST_CHECKED_SLOT_PREF) == 1
        component.close()

    async def test_stop_lets_in_flight_request_finish(self, prefs, clock) -> None:
        release = asyncio.Event()

        async def slow_post(*args, **kwargs):
            await release.wait()
            return httpx.Response(200)

        features = OperationalProfilingFeatures(
            enabled=True, slot_size_minutes=60, simulate_duration_minutes=0
        )
        component = OperationalProfiling(prefs, features, platform="winx64", clock=clock)

        with patch(CLIENT_PATH, return_value=_client_with(slow_post)):
            component.start()
            await asyncio.sleep(0.02)
            task = component.uploader.in_flight
            component.stop()
            release.set()
            assert await task is True

        assert prefs.get_integer(LAST_CHECKED_SLOT_PREF) == 0
        component.close()

    async def test_close_cancels_in_flight_request(self, prefs, clock) -> None:
        async def never_answers(*args, **kwargs):
            await asyncio.Event().wait()

        features = OperationalProfilingFeatures(
            enabled=True, slot_size_minutes=60, simulate_duration_minutes=0
        )
        component = OperationalProfiling(prefs, features, platform="winx64", clock=clock)

        with patch(CLIENT_PATH, return_value=_client_with(never_answers)):
            component.start()
            await asyncio.sleep(0.02)
            task = component.uploader.in_flight
            assert task is not None
            component.close()
            await asyncio.sleep(0.01)

        assert task.cancelled()
        assert prefs.get_integer(LAST_CHECKED_SLOT_PREF) == -1


# =====================================================================
# FederatedLearningService
# =====================================================================


class TestFederatedLearningService:
    def test_registers_every_pref(self) -> None:
        prefs = PrefService()
        FederatedLearningService.register_local_state_prefs(prefs)

        for name in (
            P3A_ENABLED_PREF,
            ADS_ENABLED_PREF,
            LAST_CHECKED_SLOT_PREF,
            COLLECTION_ID_PREF,
            COLLECTION_ID_EXPIRATION_PREF,
        ):
            assert prefs.is_registered(name)
        assert prefs.get_boolean(P3A_ENABLED_PREF) is True
        assert prefs.get_boolean(ADS_ENABLED_PREF) is False
        assert prefs.get_integer(LAST_CHECKED_SLOT_PREF) == -1

    async def test_starts_when_everything_enabled(self, prefs, features, clock) -> None:
        service = FederatedLearningService(prefs, features, platform="linux", clock=clock)

        assert service.start() is True
        assert service.operational_profiling is not None
        assert service.operational_profiling.is_running
        service.close()

    @pytest.mark.parametrize(
        ("p3a", "ads", "feature"),
        [(False, True, True), (True, False, True), (True, True, False)],
    )
    def test_does_not_start_unless_all_enabled(self, prefs, clock, p3a, ads, feature) -> None:
        prefs.set_boolean(P3A_ENABLED_PREF, p3a)
        prefs.set_boolean(ADS_ENABLED_PREF, ads)
        service = FederatedLearningService(
            prefs, OperationalProfilingFeatures(enabled=feature), platform="linux", clock=clock
        )

        assert service.start() is False
        assert service.operational_profiling is None

    async def test_start_twice_is_harmless(self, prefs, features, clock) -> None:
        service = FederatedLearningService(prefs, features, platform="linux", clock=clock)
        service.start()

        assert service.start() is True
        service.close()

    async def test_owner_restarts_after_p3a_toggle(self, prefs, features, clock) -> None:
        service = FederatedLearningService(prefs, features, platform="linux", clock=clock)
        service.start()
        prefs.set_boolean(P3A_ENABLED_PREF, False)
        assert not service.operational_profiling.is_running

        prefs.set_boolean(P3A_ENABLED_PREF, True)
        assert service.start() is True
        assert service.operational_profiling.is_running
        service.close()

    def test_stop_and_close_without_start(self, prefs, features) -> None:
        service = FederatedLearningService(prefs, features, platform="linux")
        service.stop()
        service.close()
        assert service.operational_profiling is None
