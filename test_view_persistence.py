"""
Persistence across restarts: the tracked list and the app settings are
written to the JSON store and read back by a fresh store on the same file.
"""

import json

from settings import (
    TIMEZONES_KEY,
    KeyValueStore,
    load_settings,
    load_timezones,
    save_settings,
    save_timezones,
    settings_path,
)

ENTRIES = [
    {"id": "tz-1", "name": "New York", "timezone": "America/New_York"},
    {"id": "tz-2", "name": "Tokyo", "timezone": "Asia/Tokyo"},
]


def test_settings_path_honours_environment(store):
    assert settings_path() == store.path


def test_missing_file_is_an_empty_store(tmp_path):
    store = KeyValueStore(str(tmp_path / "absent.json"))
    assert store.all() == {}
    assert load_timezones(store) == []


def test_timezones_survive_restart(store):
    save_timezones(store, ENTRIES)
    restarted = KeyValueStore(store.path)
    assert load_timezones(restarted) == ENTRIES


def test_stored_value_is_a_json_string_with_external_field_names(store):
    save_timezones(store, ENTRIES)
    with open(store.path, encoding="utf-8") as f:
        raw = json.load(f)[TIMEZONES_KEY]
    assert isinstance(raw, str)
    assert [sorted(e) for e in json.loads(raw)] == [["id", "name", "timezone"]] * 2


def test_corrupt_timezone_json_starts_empty(store, caplog):
    store.set(TIMEZONES_KEY, "[{\"id\": ")
    assert load_timezones(store) == []
    assert "Malformed" in caplog.text


def test_corrupt_file_is_ignored(store):
    with open(store.path, "w", encoding="utf-8") as f:
        f.write("not json at all")
    assert store.all() == {}
    assert load_settings(store)["work_hour_start"] == 8


def test_incomplete_entries_are_skipped(store):
    store.set(TIMEZONES_KEY, json.dumps([
        {"id": "tz-1", "name": "London", "timezone": "Europe/London"},
        {"id": "tz-2", "name": "No zone"},
        "junk",
        {"id": "tz-3", "name": "", "timezone": "Asia/Tokyo"},
    ]))
    assert [e["id"] for e in load_timezones(store)] == ["tz-1"]


def test_settings_defaults(store):
    settings = load_settings(store)
    assert settings == {
        "touch_mode": False,
        "window_width": None,
        "window_height": None,
        "work_hour_start": 8,
        "work_hour_end": 17,
    }


def test_window_size_and_touch_mode_survive_restart(store):
    save_settings({"window_width": 900, "window_height": 520, "touch_mode": True}, store)
    restarted = load_settings(KeyValueStore(store.path))
    assert (restarted["window_width"], restarted["window_height"]) == (900, 520)
    assert restarted["touch_mode"] is True


def test_saving_settings_keeps_the_timezone_list(store):
    save_timezones(store, ENTRIES)
    save_settings({"work_hour_start": 9, "work_hour_end": 18}, store)
    assert load_timezones(store) == ENTRIES
    assert load_settings(store)["work_hour_end"] == 18


def test_invalid_values_fall_back_to_defaults(store):
    store.update({"work_hour_start": 18, "work_hour_end": 9,
                  "touch_mode": "yes", "window_width": "wide"})
    settings = load_settings(store)
    assert (settings["work_hour_start"], settings["work_hour_end"]) == (8, 17)
    assert settings["touch_mode"] is False
    assert settings["window_width"] is None
