"""Rotating anonymous collection id."""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timedelta

from brave_federated.constants import COLLECTION_ID_EXPIRATION_PREF, COLLECTION_ID_PREF
from brave_federated.logging import get_logger
from brave_federated.prefs import PrefService

log = get_logger("brave_federated.operational_profiling.collection_id")


def generate_collection_id() -> str:
    """Render 128 bits from the system CSPRNG as 32 upper-case hex characters."""
    return uuid.UUID(bytes=secrets.token_bytes(16)).hex.upper()


class CollectionIdManager:
    """Owns the persisted collection id and its expiration.

    The id is regenerated when it is empty or when a non-null expiration
    has passed.  A null expiration never expires a non-empty id.
    """

    def __init__(self, prefs: PrefService, lifetime_days: int) -> None:
        self._prefs = prefs
        self._lifetime = timedelta(days=lifetime_days)
        self._collection_id = ""
        self._expiration: datetime | None = None

    @property
    def collection_id(self) -> str:
        return self._collection_id

    @property
    def expiration(self) -> datetime | None:
        return self._expiration

    def load(self) -> None:
        """Read the id and its expiration from local state."""
        self._collection_id = self._prefs.get_string(COLLECTION_ID_PREF)
        self._expiration = self._prefs.get_time(COLLECTION_ID_EXPIRATION_PREF)

    def save(self) -> None:
        self._prefs.set_string(COLLECTION_ID_PREF, self._collection_id)
        self._prefs.set_time(COLLECTION_ID_EXPIRATION_PREF, self._expiration)

    def is_stale(self, now: datetime) -> bool:
        if not self._collection_id:
            return True
        return self._expiration is not None and now > self._expiration

    def ensure_fresh_id(self, now: datetime) -> str:
        """Return the current id, rotating and persisting a new one if stale."""
        if not self.is_stale(now):
            return self._collection_id

        self._collection_id = generate_collection_id()
        self._expiration = now + self._lifetime
        self.save()
        log.info("collection_id_rotated", expires=self._expiration.isoformat())
        return self._collection_id
