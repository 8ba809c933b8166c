"""JSON-based settings persistence for the time scheduler."""

import json
import logging
import os

logger = logging.getLogger(__name__)

TIMEZONES_KEY = "timescheduler_timezones"


def settings_path() -> str:
    return os.environ.get("TIMESCHEDULER_SETTINGS") or os.path.join(
        os.path.expanduser("~"), ".timescheduler-settings.json")


_DEFAULTS = {
    "touch_mode": False,
    "window_width": None,
    "window_height": None,
    "work_hour_start": 8,
    "work_hour_end": 17,
}


class KeyValueStore:
    """String key-value store backed by one JSON file (survives restarts).

    Mirrors a browser's localStorage: values are strings, a missing file is
    an empty store, and every ``set`` writes through to disk.
    """

    def __init__(self, path: str | None = None) -> None:
        self.path = path or settings_path()

    def _read(self) -> dict:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
            logger.warning("Ignoring unreadable settings file %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring settings file %s: not a JSON object", self.path)
            return {}
        return data

    def _write(self, data: dict) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def get(self, key: str, default=None):
        return self._read().get(key, default)

    def set(self, key: str, value) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def update(self, values: dict) -> None:
        data = self._read()
        data.update(values)
        self._write(data)

    def all(self) -> dict:
        return self._read()


# ------------------------------------------------------------------
# Tracked timezones
# ------------------------------------------------------------------
def load_timezones(store: KeyValueStore) -> list[dict]:
    """Return ``[{"id", "name", "timezone"}, ...]``; corrupt data yields []."""
    raw = store.get(TIMEZONES_KEY)
    if raw is None:
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Malformed persisted timezone list, starting empty: %s", e)
            return []
    if not isinstance(raw, list):
        logger.warning("Malformed persisted timezone list (%s), starting empty",
                       type(raw).__name__)
        return []

    entries: list[dict] = []
    for item in raw:
        if not isinstance(item, dict):
            logger.warning("Skipping persisted timezone entry %r", item)
            continue
        tz_id, name, tz = item.get("id"), item.get("name"), item.get("timezone")
        if not all(isinstance(v, str) and v for v in (tz_id, name, tz)):
            logger.warning("Skipping incomplete persisted timezone entry %r", item)
            continue
        entries.append({"id": tz_id, "name": name, "timezone": tz})
    return entries


def save_timezones(store: KeyValueStore, entries: list[dict]) -> None:
    payload = [{"id": e["id"], "name": e["name"], "timezone": e["timezone"]}
               for e in entries]
    store.set(TIMEZONES_KEY, json.dumps(payload))


# ------------------------------------------------------------------
# App settings
# ------------------------------------------------------------------
def load_settings(store: KeyValueStore | None = None) -> dict:
    """Load settings from disk, returning defaults for missing keys."""
    settings = dict(_DEFAULTS)
    stored = (store or KeyValueStore()).all()
    for key in ("touch_mode",):
        if key in stored and isinstance(stored[key], bool):
            settings[key] = stored[key]
    for key in ("window_width", "window_height"):
        if key in stored and isinstance(stored[key], int):
            settings[key] = stored[key]
    start, end = stored.get("work_hour_start"), stored.get("work_hour_end")
    if valid_work_hours(start, end):
        settings["work_hour_start"] = start
        settings["work_hour_end"] = end
    elif start is not None or end is not None:
        logger.warning("Ignoring invalid work hours %r-%r", start, end)
    return settings


def save_settings(settings: dict, store: KeyValueStore | None = None) -> None:
    """Persist app settings, leaving other keys (the timezone list) untouched."""
    (store or KeyValueStore()).update(
        {key: settings[key] for key in _DEFAULTS if key in settings})


def valid_work_hours(start, end) -> bool:
    return (isinstance(start, int) and isinstance(end, int)
            and not isinstance(start, bool) and not isinstance(end, bool)
            and 0 <= start < end <= 24)
