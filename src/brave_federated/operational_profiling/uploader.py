"""Collection slot uploader.

Builds the ``collection_slot`` payload and POSTs it to the federated
learning endpoint, at most once per slot.  Only the status code of the
response is looked at: 200 advances the persisted cursor, anything else
(including a transport failure) is dropped without retry.  The next slot
is the retry.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime

import httpx

from brave_federated.config import OperationalProfilingFeatures
from brave_federated.constants import (
    FEDERATED_LEARNING_URL,
    LAST_CHECKED_SLOT_PREF,
    NO_SLOT_REPORTED,
    OPERATIONAL_PROFILE_HEADER,
    OPERATIONAL_PROFILE_HEADER_VALUE,
    REQUEST_TIMEOUT_SECONDS,
)
from brave_federated.logging import get_logger
from brave_federated.operational_profiling.collection_id import CollectionIdManager
from brave_federated.operational_profiling.models import CollectionSlotPayload
from brave_federated.operational_profiling.slots import get_current_collection_slot
from brave_federated.prefs import PrefService

log = get_logger("brave_federated.operational_profiling.uploader")

# Status recorded when no response headers were received
NO_RESPONSE = 0


class CollectionSlotUploader:
    """Sends one ``collection_slot`` ping per distinct slot index."""

    def __init__(
        self,
        prefs: PrefService,
        features: OperationalProfilingFeatures,
        collection_ids: CollectionIdManager,
        platform: str,
        endpoint: str = FEDERATED_LEARNING_URL,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._prefs = prefs
        self._features = features
        self._collection_ids = collection_ids
        self._platform = platform
        self._endpoint = endpoint
        self._timeout = timeout
        self._clock = clock
        self._last_checked_slot = NO_SLOT_REPORTED
        self._in_flight: asyncio.Task[bool] | None = None
        self._in_flight_slot: int | None = None

    @property
    def last_checked_slot(self) -> int:
        return self._last_checked_slot

    @property
    def in_flight(self) -> asyncio.Task[bool] | None:
        """The pending upload task, if any."""
        if self._in_flight is not None and self._in_flight.done():
            return None
        return self._in_flight

    def load(self) -> None:
        self._last_checked_slot = self._prefs.get_integer(LAST_CHECKED_SLOT_PREF)

    def current_collection_slot(self) -> int:
        return get_current_collection_slot(self._clock(), self._features.slot_size_minutes)

    def build_payload(self, slot: int) -> CollectionSlotPayload:
        return CollectionSlotPayload(
            collection_id=self._collection_ids.collection_id,
            platform=self._platform,
            collection_slot=slot,
        )

    # ------------------------------------------------------------------
    # Attempt
    # ------------------------------------------------------------------

    def attempt_upload(self) -> asyncio.Task[bool] | None:
        """Start an upload for the current slot unless it is not needed.

        Returns the task carrying the request, or None when the slot was
        already reported or a request for it is still pending.  A pending
        request for an older slot is cancelled first.  Must be called from
        the running event loop.
        """
        slot = self.current_collection_slot()
        # Equality, not ordering: a clock moved back into a reported slot skips,
        # a month rollover onto a reported index also skips.
        if slot == self._last_checked_slot:
            return None

        pending = self.in_flight
        if pending is not None:
            if self._in_flight_slot == slot:
                log.debug("collection_slot_already_in_flight", slot=slot)
                return None
            # At most one pending request; the older slot's answer is never handled
            log.debug("collection_slot_superseded", slot=self._in_flight_slot, new_slot=slot)
            pending.cancel()

        self._collection_ids.ensure_fresh_id(self._clock())
        payload = self.build_payload(slot)

        task = asyncio.get_running_loop().create_task(self._upload(payload))
        task.add_done_callback(self._on_task_done)
        self._in_flight = task
        self._in_flight_slot = slot
        return task

    async def send_collection_slot(self) -> bool:
        """Attempt an upload and wait for its outcome.

        Returns True only when a request was made and answered with 200.
        """
        task = self.attempt_upload()
        if task is None:
            return False
        return await task

    def cancel(self) -> None:
        """Cancel a pending request; its response will never be handled."""
        if self._in_flight is not None and not self._in_flight.done():
            self._in_flight.cancel()
        self._in_flight = None
        self._in_flight_slot = None

    def _on_task_done(self, task: asyncio.Task[bool]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("collection_slot_task_failed", exc_info=exc)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _upload(self, payload: CollectionSlotPayload) -> bool:
        status = await self._post(payload)
        return self.on_upload_complete(payload.collection_slot, status)

    async def _post(self, payload: CollectionSlotPayload) -> int:
        """POST *payload* and return the HTTP status, or 0 on transport failure."""
        try:
            # Fresh client per request: empty cookie jar; no netrc or env credentials
            async with httpx.AsyncClient(timeout=self._timeout, trust_env=False) as client:
                resp = await client.post(
                    self._endpoint,
                    content=payload.to_json(),
                    headers={
                        "Content-Type": "application/json",
                        OPERATIONAL_PROFILE_HEADER: OPERATIONAL_PROFILE_HEADER_VALUE,
                    },
                )
            return resp.status_code
        except httpx.RequestError as exc:
            log.warning("collection_slot_send_failed", error=str(exc))
            return NO_RESPONSE

    def on_upload_complete(self, slot: int, status: int) -> bool:
        """Advance and persist the cursor iff *status* is 200."""
        if status != 200:
            log.debug("collection_slot_rejected", slot=slot, status=status)
            return False

        self._last_checked_slot = slot
        self._prefs.set_integer(LAST_CHECKED_SLOT_PREF, slot)
        log.info("collection_slot_sent", slot=slot)
        return True
