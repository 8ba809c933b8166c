"""Single source of truth for tracked timezones, the selected date and slot."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Callable

from settings import (
    KeyValueStore,
    load_settings,
    load_timezones,
    save_settings,
    save_timezones,
    valid_work_hours,
)
from url_state import UrlLocation, UrlState

logger = logging.getLogger(__name__)

MINUTE_BUCKETS = (0, 15, 30, 45)


class OutOfRange(IndexError):
    """Reorder index outside ``[0, len(timezones))``."""


@dataclass(frozen=True)
class TrackedTimezone:
    id: str
    display_name: str
    timezone_id: str

    def to_record(self) -> dict:
        return {"id": self.id, "name": self.display_name, "timezone": self.timezone_id}


@dataclass(frozen=True)
class Slot:
    timezone_index: int
    hour: int
    minute_bucket: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.hour <= 23:
            raise ValueError(f"hour out of range: {self.hour}")
        if self.minute_bucket not in MINUTE_BUCKETS:
            raise ValueError(f"minute bucket must be one of {MINUTE_BUCKETS}")


@dataclass(frozen=True)
class SchedulerState:
    timezones: tuple[TrackedTimezone, ...] = ()
    selected_date: date = field(default_factory=date.today)
    work_hour_start: int = 8
    work_hour_end: int = 17
    selected_slot: Slot | None = None

    @property
    def reference(self) -> TrackedTimezone | None:
        return self.timezones[0] if self.timezones else None


Listener = Callable[[SchedulerState], None]


def new_timezone_id() -> str:
    return f"tz-{uuid.uuid4().hex[:12]}"


class AppState:
    """Owns the one :class:`SchedulerState` and notifies subscribers.

    Every mutation replaces the immutable snapshot, runs the persistence
    hooks and then notifies each listener exactly once, synchronously.
    """

    def __init__(self, state: SchedulerState | None = None,
                 store: KeyValueStore | None = None,
                 location: UrlLocation | None = None,
                 today: Callable[[], date] = date.today) -> None:
        self._state = state or SchedulerState(selected_date=today())
        self._listeners: list[Listener] = []
        self._store = store
        self._location = location
        self._today = today

    @classmethod
    def from_sources(cls, store: KeyValueStore | None = None,
                     location: UrlLocation | None = None,
                     today: Callable[[], date] = date.today) -> "AppState":
        """Build the initial state: URL ``tz`` list overrides storage entirely."""
        url = location.state() if location is not None else UrlState(None, None)
        if url.timezones is not None:
            timezones = tuple(TrackedTimezone(new_timezone_id(), name, tz)
                              for name, tz in url.timezones)
        elif store is not None:
            timezones = tuple(TrackedTimezone(e["id"], e["name"], e["timezone"])
                              for e in load_timezones(store))
        else:
            timezones = ()

        work_start, work_end = 8, 17
        if store is not None:
            settings = load_settings(store)
            work_start, work_end = settings["work_hour_start"], settings["work_hour_end"]

        state = SchedulerState(
            timezones=timezones,
            selected_date=url.date or today(),
            work_hour_start=work_start,
            work_hour_end=work_end,
        )
        app = cls(state, store=store, location=location, today=today)
        if location is not None:
            # Reflect the loaded list in the address; storage is left untouched.
            location.set_timezones([(t.display_name, t.timezone_id) for t in timezones],
                                   state.selected_date, today())
        logger.debug("Loaded %d timezone(s) for %s", len(timezones), state.selected_date)
        return app

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------
    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def location(self) -> UrlLocation | None:
        return self._location

    def today(self) -> date:
        return self._today()

    # ------------------------------------------------------------------
    # Subscribe / notify
    # ------------------------------------------------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _commit(self, new_state: SchedulerState) -> None:
        self._state = new_state
        # Snapshot so listeners may (un)subscribe or mutate during notify.
        for listener in list(self._listeners):
            listener(new_state)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def add_timezone(self, display_name: str, timezone_id: str) -> TrackedTimezone:
        if not display_name or not timezone_id:
            raise ValueError("display name and timezone id must be non-empty")
        entry = TrackedTimezone(new_timezone_id(), display_name, timezone_id)
        logger.debug("Adding %s (%s)", display_name, timezone_id)
        self._state = replace(self._state, timezones=self._state.timezones + (entry,))
        self._persist_timezones()
        self._commit(self._state)
        return entry

    def remove_timezone(self, entry_id: str) -> None:
        remaining = tuple(t for t in self._state.timezones if t.id != entry_id)
        if len(remaining) == len(self._state.timezones):
            return
        logger.debug("Removing %s", entry_id)
        self._state = replace(self._state, timezones=remaining,
                              selected_slot=None)
        self._persist_timezones()
        self._commit(self._state)

    def move_timezone(self, from_index: int, to_index: int) -> None:
        """Remove the entry at *from_index* and reinsert it at *to_index*."""
        items = list(self._state.timezones)
        n = len(items)
        if not (0 <= from_index < n and 0 <= to_index < n):
            raise OutOfRange(f"cannot move {from_index} -> {to_index} in {n} timezones")
        entry = items.pop(from_index)
        items.insert(to_index, entry)
        logger.debug("Moving %s from %d to %d", entry.display_name, from_index, to_index)
        self._state = replace(self._state, timezones=tuple(items),
                              selected_slot=None)
        self._persist_timezones()
        self._commit(self._state)

    def set_selected_date(self, selected: date) -> None:
        self._state = replace(self._state, selected_date=selected, selected_slot=None)
        if self._location is not None:
            self._location.set_date(selected, self._today())
        self._commit(self._state)

    def set_selected_slot(self, slot: Slot | None) -> None:
        if slot is not None and not 0 <= slot.timezone_index < len(self._state.timezones):
            raise OutOfRange(f"no timezone at index {slot.timezone_index}")
        self._commit(replace(self._state, selected_slot=slot))

    def set_work_hours(self, start: int, end: int) -> None:
        if not valid_work_hours(start, end):
            raise ValueError(f"work hours must satisfy 0 <= start < end <= 24, got {start}-{end}")
        self._state = replace(self._state, work_hour_start=start, work_hour_end=end)
        if self._store is not None:
            try:
                save_settings({"work_hour_start": start, "work_hour_end": end}, self._store)
            except OSError as e:
                logger.error("Could not save work hours to %s: %s", self._store.path, e)
        self._commit(self._state)

    # ------------------------------------------------------------------
    # Persistence hooks
    # ------------------------------------------------------------------
    def _persist_timezones(self) -> None:
        records = [t.to_record() for t in self._state.timezones]
        if self._store is not None:
            try:
                save_timezones(self._store, records)
            except OSError as e:
                logger.error("Could not save timezones to %s: %s", self._store.path, e)
        if self._location is not None:
            self._location.set_timezones(
                [(t.display_name, t.timezone_id) for t in self._state.timezones],
                self._state.selected_date, self._today())
