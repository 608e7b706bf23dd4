"""Local-state preference storage.

A small typed key/value store in the style of the browser's local state:
prefs must be registered with a default before use, every write is
flushed to a JSON file (when one is configured), and observers can be
notified when a value changes.
"""

from __future__ import annotations

import json
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

from brave_federated.logging import get_logger

log = get_logger("brave_federated.prefs")

PrefObserver = Callable[[str], None]

_TYPES: dict[str, tuple[type, ...]] = {
    "integer": (int,),
    "string": (str,),
    "boolean": (bool,),
    "time": (datetime, type(None)),
}


class PrefError(Exception):
    """Raised on access to an unregistered pref or with the wrong type."""


class PrefService:
    """Typed, registered, observable preferences backed by a JSON file.

    Time prefs are stored as ISO-8601 strings; ``None`` is the null time.
    A missing or unreadable file loads as defaults.  Write failures are
    logged and not retried.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path is not None else None
        self._defaults: dict[str, Any] = {}
        self._kinds: dict[str, str] = {}
        self._values: dict[str, Any] = {}
        self._observers: defaultdict[str, list[PrefObserver]] = defaultdict(list)
        self._stored = self._load_file()

    @property
    def path(self) -> Path | None:
        return self._path

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_integer_pref(self, name: str, default: int) -> None:
        self._register(name, "integer", default)

    def register_string_pref(self, name: str, default: str = "") -> None:
        self._register(name, "string", default)

    def register_boolean_pref(self, name: str, default: bool) -> None:
        self._register(name, "boolean", default)

    def register_time_pref(self, name: str, default: datetime | None = None) -> None:
        self._register(name, "time", default)

    def is_registered(self, name: str) -> bool:
        return name in self._kinds

    def _register(self, name: str, kind: str, default: Any) -> None:
        if self.is_registered(name):
            raise PrefError(f"pref already registered: {name}")
        self._check_type(name, kind, default)
        self._kinds[name] = kind
        self._defaults[name] = default
        if name in self._stored:
            try:
                self._values[name] = self._decode(kind, self._stored[name])
            except (TypeError, ValueError):
                log.warning("pref_value_discarded", pref=name)

    # ------------------------------------------------------------------
    # Typed access
    # ------------------------------------------------------------------

    def get_integer(self, name: str) -> int:
        return int(self._get(name, "integer"))

    def get_string(self, name: str) -> str:
        return str(self._get(name, "string"))

    def get_boolean(self, name: str) -> bool:
        return bool(self._get(name, "boolean"))

    def get_time(self, name: str) -> datetime | None:
        value: datetime | None = self._get(name, "time")
        return value

    def set_integer(self, name: str, value: int) -> None:
        self._set(name, "integer", value)

    def set_string(self, name: str, value: str) -> None:
        self._set(name, "string", value)

    def set_boolean(self, name: str, value: bool) -> None:
        self._set(name, "boolean", value)

    def set_time(self, name: str, value: datetime | None) -> None:
        self._set(name, "time", value)

    def _get(self, name: str, kind: str) -> Any:
        self._require(name, kind)
        return self._values.get(name, self._defaults[name])

    def _set(self, name: str, kind: str, value: Any) -> None:
        self._require(name, kind)
        self._check_type(name, kind, value)
        old = self._values.get(name, self._defaults[name])
        self._values[name] = value
        self._save_file()
        if old != value:
            for observer in list(self._observers[name]):
                observer(name)

    def _require(self, name: str, kind: str) -> None:
        registered = self._kinds.get(name)
        if registered is None:
            raise PrefError(f"pref not registered: {name}")
        if registered != kind:
            raise PrefError(f"pref {name} is {registered}, not {kind}")

    @staticmethod
    def _check_type(name: str, kind: str, value: Any) -> None:
        # bool is an int subclass; keep integer and boolean prefs apart
        if kind == "integer" and isinstance(value, bool):
            raise PrefError(f"pref {name} expects integer, got bool")
        if not isinstance(value, _TYPES[kind]):
            raise PrefError(f"pref {name} expects {kind}, got {type(value).__name__}")

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def add_observer(self, name: str, observer: PrefObserver) -> None:
        if name not in self._kinds:
            raise PrefError(f"pref not registered: {name}")
        self._observers[name].append(observer)

    def remove_observer(self, name: str, observer: PrefObserver) -> None:
        observers = self._observers.get(name, [])
        if observer in observers:
            observers.remove(observer)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @staticmethod
    def _encode(kind: str, value: Any) -> Any:
        if kind == "time":
            return value.isoformat() if value is not None else None
        return value

    @staticmethod
    def _decode(kind: str, raw: Any) -> Any:
        if kind == "time":
            return datetime.fromisoformat(raw) if raw else None
        if not isinstance(raw, _TYPES[kind]) or (kind == "integer" and isinstance(raw, bool)):
            raise TypeError(f"stored value is not {kind}")
        return raw

    def _load_file(self) -> dict[str, Any]:
        if self._path is None or not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            log.warning("local_state_load_failed", path=str(self._path))
            return {}
        if not isinstance(data, dict):
            log.warning("local_state_not_an_object", path=str(self._path))
            return {}
        return data

    def _save_file(self) -> None:
        if self._path is None:
            return
        # Keep values for prefs this process never registered
        data = dict(self._stored)
        for name, value in self._values.items():
            data[name] = self._encode(self._kinds[name], value)
        self._stored = data
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".tmp")
            tmp_path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError:
            log.exception("local_state_save_failed", path=str(self._path))


class PrefChangeRegistrar:
    """Tracks observers added on behalf of one owner so they can be removed together."""

    def __init__(self) -> None:
        self._prefs: PrefService | None = None
        self._registered: list[tuple[str, PrefObserver]] = []

    def init(self, prefs: PrefService) -> None:
        self.remove_all()
        self._prefs = prefs

    def add(self, name: str, observer: PrefObserver) -> None:
        if self._prefs is None:
            raise PrefError("registrar used before init()")
        self._prefs.add_observer(name, observer)
        self._registered.append((name, observer))

    def remove_all(self) -> None:
        if self._prefs is not None:
            for name, observer in self._registered:
                self._prefs.remove_observer(name, observer)
        self._registered.clear()
