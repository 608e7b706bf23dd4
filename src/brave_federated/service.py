"""Federated learning service: decides whether operational profiling runs."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime

from brave_federated.config import OperationalProfilingFeatures
from brave_federated.constants import (
    ADS_ENABLED_PREF,
    FEDERATED_LEARNING_URL,
    P3A_ENABLED_PREF,
    REQUEST_TIMEOUT_SECONDS,
)
from brave_federated.logging import get_logger
from brave_federated.operational_profiling.profiling import OperationalProfiling
from brave_federated.prefs import PrefService

log = get_logger("brave_federated.service")


class FederatedLearningService:
    """Starts operational profiling when P3A, ads and the feature are all enabled."""

    def __init__(
        self,
        prefs: PrefService,
        features: OperationalProfilingFeatures,
        platform: str | None = None,
        endpoint: str = FEDERATED_LEARNING_URL,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = datetime.now,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._prefs = prefs
        self._features = features
        self._platform = platform
        self._endpoint = endpoint
        self._timeout = timeout
        self._clock = clock
        self._loop = loop
        self._operational_profiling: OperationalProfiling | None = None

    @staticmethod
    def register_local_state_prefs(
        prefs: PrefService,
        p3a_enabled: bool = True,
        ads_enabled: bool = False,
    ) -> None:
        """Register every pref the service reads, with the given opt-in defaults."""
        prefs.register_boolean_pref(P3A_ENABLED_PREF, p3a_enabled)
        prefs.register_boolean_pref(ADS_ENABLED_PREF, ads_enabled)
        OperationalProfiling.register_local_state_prefs(prefs)

    @property
    def operational_profiling(self) -> OperationalProfiling | None:
        return self._operational_profiling

    def is_p3a_enabled(self) -> bool:
        return self._prefs.get_boolean(P3A_ENABLED_PREF)

    def is_ads_enabled(self) -> bool:
        return self._prefs.get_boolean(ADS_ENABLED_PREF)

    def is_operational_profiling_enabled(self) -> bool:
        return self._features.enabled

    def start(self) -> bool:
        """Start operational profiling if allowed.  Returns True if it is running."""
        if not (
            self.is_p3a_enabled()
            and self.is_ads_enabled()
            and self.is_operational_profiling_enabled()
        ):
            log.info(
                "operational_profiling_not_allowed",
                p3a_enabled=self.is_p3a_enabled(),
                ads_enabled=self.is_ads_enabled(),
                feature_enabled=self.is_operational_profiling_enabled(),
            )
            return False

        if self._operational_profiling is None:
            self._operational_profiling = OperationalProfiling(
                prefs=self._prefs,
                features=self._features,
                platform=self._platform,
                endpoint=self._endpoint,
                timeout=self._timeout,
                clock=self._clock,
                loop=self._loop,
            )
        if not self._operational_profiling.is_running:
            self._operational_profiling.start()
        return True

    def stop(self) -> None:
        if self._operational_profiling is not None:
            self._operational_profiling.stop()

    def close(self) -> None:
        if self._operational_profiling is not None:
            self._operational_profiling.close()
            self._operational_profiling = None
