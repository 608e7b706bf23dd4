"""Operational profiling component.

Owns the collection id manager, the slot scheduler and the uploader,
and the three local-state prefs they share:

- ``brave.federated.last_checked_slot`` (int, -1 until a slot is reported)
- ``brave.federated.collection_id`` (str, empty until first use)
- ``brave.federated.collection_id_expiration`` (time, null until first use)

It also watches the P3A opt-in and stops itself when reporting is no
longer allowed.  Restarting is left to the owner.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime

from brave_federated.config import OperationalProfilingFeatures
from brave_federated.constants import (
    COLLECTION_ID_EXPIRATION_PREF,
    COLLECTION_ID_PREF,
    FEDERATED_LEARNING_URL,
    LAST_CHECKED_SLOT_PREF,
    NO_SLOT_REPORTED,
    P3A_ENABLED_PREF,
    REQUEST_TIMEOUT_SECONDS,
)
from brave_federated.logging import get_logger
from brave_federated.operational_profiling.collection_id import CollectionIdManager
from brave_federated.operational_profiling.scheduler import SlotScheduler
from brave_federated.operational_profiling.uploader import CollectionSlotUploader
from brave_federated.platform import get_platform_identifier
from brave_federated.prefs import PrefChangeRegistrar, PrefService

log = get_logger("brave_federated.operational_profiling.profiling")


class OperationalProfiling:
    """Periodic collection slot reporting for one profile."""

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
        self._clock = clock
        self._registrar = PrefChangeRegistrar()
        self._prefs_loaded = False
        self.collection_ids = CollectionIdManager(prefs, features.collection_id_lifetime_days)
        self.uploader = CollectionSlotUploader(
            prefs=prefs,
            features=features,
            collection_ids=self.collection_ids,
            platform=platform or get_platform_identifier(),
            endpoint=endpoint,
            timeout=timeout,
            clock=clock,
        )
        self.scheduler = SlotScheduler(
            training_step_delay=features.training_step_delay_seconds,
            slot_timer_period=features.slot_timer_period_seconds,
            on_training_step=self._on_training_step,
            loop=loop,
        )

    @staticmethod
    def register_local_state_prefs(prefs: PrefService) -> None:
        prefs.register_integer_pref(LAST_CHECKED_SLOT_PREF, NO_SLOT_REPORTED)
        prefs.register_string_pref(COLLECTION_ID_PREF, "")
        prefs.register_time_pref(COLLECTION_ID_EXPIRATION_PREF, None)

    @property
    def is_running(self) -> bool:
        return self.scheduler.is_running

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Load state, watch the P3A opt-in, rotate a stale id and arm the timers.

        Raises SchedulerError if already running or closed.
        """
        self.scheduler.check_can_start()

        self.load_prefs()
        self._init_pref_change_registrar()
        self.collection_ids.ensure_fresh_id(self._clock())
        self.scheduler.start()
        log.info(
            "operational_profiling_started",
            last_checked_slot=self.uploader.last_checked_slot,
            slot_size_minutes=self._features.slot_size_minutes,
        )

    def stop(self) -> None:
        """Disarm the timers.  A request already in flight still completes."""
        was_running = self.scheduler.is_running
        self.scheduler.stop()
        if was_running:
            log.info("operational_profiling_stopped")

    def close(self) -> None:
        """Stop for good: disarm timers, cancel any pending request, drop observers.

        State loaded by an earlier start is written back to local state.
        """
        self.scheduler.close()
        self.uploader.cancel()
        self._registrar.remove_all()
        if self._prefs_loaded:
            self.save_prefs()

    # ------------------------------------------------------------------
    # Persisted cursor
    # ------------------------------------------------------------------

    def load_prefs(self) -> None:
        self.uploader.load()
        self.collection_ids.load()
        self._prefs_loaded = True

    def save_prefs(self) -> None:
        self._prefs.set_integer(LAST_CHECKED_SLOT_PREF, self.uploader.last_checked_slot)
        self.collection_ids.save()

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def _init_pref_change_registrar(self) -> None:
        self._registrar.init(self._prefs)
        self._registrar.add(P3A_ENABLED_PREF, self._on_preference_changed)

    def _on_preference_changed(self, name: str) -> None:
        p3a_enabled = self._prefs.get_boolean(P3A_ENABLED_PREF)
        if not p3a_enabled or not self._features.enabled:
            log.info("operational_profiling_disabled", pref=name, p3a_enabled=p3a_enabled)
            self.stop()

    def _on_training_step(self) -> None:
        self.uploader.attempt_upload()
