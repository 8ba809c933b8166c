import json
from datetime import date

import pytest

from app_state import AppState, OutOfRange, SchedulerState, Slot, TrackedTimezone
from settings import TIMEZONES_KEY, load_timezones, save_timezones
from url_state import UrlLocation


def _names(app: AppState) -> list[str]:
    return [t.display_name for t in app.state.timezones]


def _app_with(*names: str) -> AppState:
    app = AppState(today=lambda: date(2026, 10, 19))
    for name in names:
        app.add_timezone(name, "UTC")
    return app


def test_add_appends_with_unique_ids():
    app = _app_with("A", "B", "A")
    assert _names(app) == ["A", "B", "A"]
    ids = [t.id for t in app.state.timezones]
    assert len(set(ids)) == 3
    assert all(i.startswith("tz-") for i in ids)


def test_add_rejects_empty_identifiers():
    app = _app_with()
    with pytest.raises(ValueError):
        app.add_timezone("", "UTC")
    with pytest.raises(ValueError):
        app.add_timezone("Nowhere", "")
    assert app.state.timezones == ()


def test_remove_unknown_id_is_a_silent_noop():
    app = _app_with("A")
    calls = []
    app.subscribe(calls.append)
    app.remove_timezone("tz-missing")
    assert _names(app) == ["A"]
    assert calls == []


def test_removing_reference_promotes_next_entry():
    app = _app_with("New York", "Tokyo")
    app.remove_timezone(app.state.timezones[0].id)
    assert app.state.reference.display_name == "Tokyo"


@pytest.mark.parametrize("src,dst,expected", [
    (0, 2, ["B", "C", "A", "D"]),   # forward: lands at the final index
    (0, 1, ["B", "A", "C", "D"]),
    (3, 0, ["D", "A", "B", "C"]),   # backward
    (2, 1, ["A", "C", "B", "D"]),
    (1, 1, ["A", "B", "C", "D"]),
    (0, 3, ["B", "C", "D", "A"]),
])
def test_move_is_remove_then_insert(src, dst, expected):
    app = _app_with("A", "B", "C", "D")
    moved = app.state.timezones[src]
    app.move_timezone(src, dst)
    assert _names(app) == expected
    assert app.state.timezones[dst] == moved
    assert app.state.timezones.count(moved) == 1
    assert sorted(_names(app)) == ["A", "B", "C", "D"]


@pytest.mark.parametrize("src,dst", [(-1, 0), (0, -1), (3, 0), (0, 3), (5, 5)])
def test_move_out_of_range_does_not_mutate(src, dst):
    app = _app_with("A", "B", "C")
    before = app.state
    calls = []
    app.subscribe(calls.append)
    with pytest.raises(OutOfRange):
        app.move_timezone(src, dst)
    assert app.state is before
    assert calls == []


def test_each_mutation_notifies_exactly_once_with_snapshot():
    app = _app_with()
    seen: list[SchedulerState] = []
    app.subscribe(seen.append)
    app.add_timezone("A", "UTC")
    app.add_timezone("B", "UTC")
    app.set_selected_date(date(2026, 12, 25))
    app.set_selected_slot(Slot(0, 9, 15))
    app.set_selected_slot(None)
    assert len(seen) == 5
    assert [len(s.timezones) for s in seen[:2]] == [1, 2]
    assert seen[2].selected_date == date(2026, 12, 25)
    assert seen[3].selected_slot == Slot(0, 9, 15)
    assert seen[4].selected_slot is None


def test_unsubscribe_stops_notifications():
    app = _app_with()
    calls = []
    unsubscribe = app.subscribe(calls.append)
    app.add_timezone("A", "UTC")
    unsubscribe()
    unsubscribe()
    app.add_timezone("B", "UTC")
    assert len(calls) == 1


def test_mutation_from_inside_a_listener_runs_a_full_cycle():
    app = _app_with()
    late_calls = []
    order = []

    def first(state):
        order.append(("first", len(state.timezones)))
        if len(state.timezones) == 1:
            app.subscribe(late_calls.append)
            app.add_timezone("Nested", "UTC")

    def second(state):
        order.append(("second", len(state.timezones)))

    app.subscribe(first)
    app.subscribe(second)
    app.add_timezone("Outer", "UTC")

    # The nested add notified everyone (including the new subscriber) once.
    assert ("first", 2) in order and ("second", 2) in order
    assert len(late_calls) == 1
    assert _names(app) == ["Outer", "Nested"]


def test_selected_slot_must_point_at_a_row():
    app = _app_with("A")
    with pytest.raises(OutOfRange):
        app.set_selected_slot(Slot(3, 0, 0))


def test_slot_rejects_bad_buckets():
    with pytest.raises(ValueError):
        Slot(0, 9, 10)
    with pytest.raises(ValueError):
        Slot(0, 24, 0)


def test_remove_and_move_close_the_open_summary():
    app = _app_with("A", "B")
    app.set_selected_slot(Slot(1, 9, 0))
    app.move_timezone(1, 0)
    assert app.state.selected_slot is None


def test_work_hours_are_validated_and_saved(store):
    app = AppState(store=store)
    app.set_work_hours(9, 18)
    assert (app.state.work_hour_start, app.state.work_hour_end) == (9, 18)
    assert store.get("work_hour_start") == 9
    for start, end in [(10, 10), (-1, 5), (5, 25), (18, 9)]:
        with pytest.raises(ValueError):
            app.set_work_hours(start, end)


# ------------------------------------------------------------------
# Persistence write-back
# ------------------------------------------------------------------
def test_list_mutations_write_store_and_url(store, today):
    location = UrlLocation()
    app = AppState(store=store, location=location, today=lambda: today)
    app.add_timezone("New York", "America/New_York")
    app.add_timezone("Tokyo", "Asia/Tokyo")

    raw = store.get(TIMEZONES_KEY)
    assert isinstance(raw, str)
    records = json.loads(raw)
    assert [set(r) for r in records] == [{"id", "name", "timezone"}] * 2
    assert records[0]["name"] == "New York"
    assert location.query == "tz=New%20York:America/New_York&tz=Tokyo:Asia/Tokyo"

    app.move_timezone(1, 0)
    assert [e["name"] for e in load_timezones(store)] == ["Tokyo", "New York"]
    assert location.query.startswith("tz=Tokyo:")

    app.remove_timezone(app.state.timezones[0].id)
    assert [e["name"] for e in load_timezones(store)] == ["New York"]
    assert "Tokyo" not in location.query


def test_date_and_slot_only_touch_the_url(store, today):
    location = UrlLocation()
    app = AppState(store=store, location=location, today=lambda: today)
    app.add_timezone("London", "Europe/London")
    before = store.all()

    app.set_selected_date(date(2026, 12, 25))
    app.set_selected_slot(Slot(0, 9, 0))
    assert store.all() == before
    assert "date=2026-12-25" in location.query
    assert "tz=London:Europe/London" in location.query

    app.set_selected_date(today)
    assert "date=" not in location.query


# ------------------------------------------------------------------
# Load precedence
# ------------------------------------------------------------------
def test_empty_sources_give_empty_list_and_today(today):
    app = AppState.from_sources(today=lambda: today)
    assert app.state.timezones == ()
    assert app.state.selected_date == today


def test_persisted_list_used_without_url(store, today):
    save_timezones(store, [{"id": "tz-1", "name": "Sydney", "timezone": "Australia/Sydney"}])
    app = AppState.from_sources(store=store, location=UrlLocation(""), today=lambda: today)
    assert app.state.timezones == (TrackedTimezone("tz-1", "Sydney", "Australia/Sydney"),)
    assert app.state.selected_date == today


def test_url_list_overrides_persisted_list(store, today):
    save_timezones(store, [{"id": "tz-1", "name": "Tokyo", "timezone": "Asia/Tokyo"}])
    app = AppState.from_sources(store=store, location=UrlLocation("?tz=London:Europe/London"),
                                today=lambda: today)
    assert [(t.display_name, t.timezone_id) for t in app.state.timezones] == [
        ("London", "Europe/London")]
    # Loading is not a mutation: storage keeps its list until the next edit.
    assert [e["name"] for e in load_timezones(store)] == ["Tokyo"]


def test_date_only_url_keeps_persisted_list(store, today):
    save_timezones(store, [{"id": "tz-1", "name": "London", "timezone": "Europe/London"}])
    app = AppState.from_sources(store=store, location=UrlLocation("?date=2026-12-25"),
                                today=lambda: today)
    assert _names(app) == ["London"]
    assert app.state.selected_date == date(2026, 12, 25)


def test_url_with_list_and_date(store, today):
    app = AppState.from_sources(
        store=store, location=UrlLocation("?tz=London:Europe/London&date=2026-12-25"),
        today=lambda: today)
    assert _names(app) == ["London"]
    assert app.state.selected_date == date(2026, 12, 25)


def test_corrupt_store_starts_empty(store, today):
    store.set(TIMEZONES_KEY, "{not json")
    app = AppState.from_sources(store=store, today=lambda: today)
    assert app.state.timezones == ()


def test_today_is_recomputed_per_load(store):
    first = AppState.from_sources(store=store, today=lambda: date(2026, 10, 19))
    second = AppState.from_sources(store=store, today=lambda: date(2026, 10, 20))
    assert first.state.selected_date == date(2026, 10, 19)
    assert second.state.selected_date == date(2026, 10, 20)


def test_stored_work_hours_are_loaded(store, today):
    store.update({"work_hour_start": 7, "work_hour_end": 15})
    app = AppState.from_sources(store=store, today=lambda: today)
    assert (app.state.work_hour_start, app.state.work_hour_end) == (7, 15)
