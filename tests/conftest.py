"""Shared fixtures for the federated learning client tests."""

from __future__ import annotations

from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import httpx
import pytest

from brave_federated.config import OperationalProfilingFeatures
from brave_federated.prefs import PrefService
from brave_federated.service import FederatedLearningService


class FakeClock:
    """Callable clock whose local time is set by the test."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture()
def clock() -> FakeClock:
    """Local time 2026-03-01 00:15, i.e. slot 0 for 60-minute slots."""
    return FakeClock(datetime(2026, 3, 1, 0, 15))


@pytest.fixture()
def features() -> OperationalProfilingFeatures:
    return OperationalProfilingFeatures(
        enabled=True,
        slot_size_minutes=60,
        simulate_duration_minutes=5,
        collection_id_lifetime_days=1,
    )


@pytest.fixture()
def prefs() -> PrefService:
    """Memory-only local state with every pref registered, P3A and ads opted in."""
    service_prefs = PrefService()
    FederatedLearningService.register_local_state_prefs(
        service_prefs, p3a_enabled=True, ads_enabled=True
    )
    return service_prefs


def _mock_http_client(
    status: int = 200,
    error: Exception | None = None,
) -> AsyncMock:
    """An AsyncMock standing in for ``httpx.AsyncClient`` used as a context manager."""
    client = AsyncMock()
    if error is not None:
        client.post = AsyncMock(side_effect=error)
    else:
        client.post = AsyncMock(return_value=httpx.Response(status))
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    return client


@pytest.fixture()
def make_http_client():
    """Factory for mocked ``httpx.AsyncClient`` instances."""
    return _mock_http_client
