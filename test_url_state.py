from datetime import date

import pytest

from url_state import (
    DEFAULT_BASE,
    MalformedUrlParameter,
    UrlLocation,
    build_query,
    escape_markup,
    parse_query,
    parse_tz_param,
)

TODAY = date(2026, 10, 19)


@pytest.mark.parametrize("query", [
    "?tz=New%20York:America/New_York",
    "?tz=New+York:America/New_York",
    "?tz=New York:America/New_York",
    "tz=New%20York:America/New_York",
])
def test_space_spellings_decode_alike(query):
    assert parse_query(query).timezones == [("New York", "America/New_York")]


def test_order_and_duplicates_are_kept():
    state = parse_query("?tz=B:Asia/Tokyo&tz=A:UTC&tz=B:Asia/Tokyo")
    assert state.timezones == [("B", "Asia/Tokyo"), ("A", "UTC"), ("B", "Asia/Tokyo")]


def test_malformed_tz_entries_are_skipped():
    state = parse_query("?tz=London:Europe/London&tz=nocolon&tz=:Europe/Paris&tz=Paris:")
    assert state.timezones == [("London", "Europe/London")]


def test_only_malformed_entries_means_no_list():
    assert parse_query("?tz=nocolon&tz=").timezones is None


def test_absent_parameters():
    state = parse_query("")
    assert state.timezones is None
    assert state.date is None


def test_date_parameter():
    state = parse_query("?date=2026-12-25")
    assert state.timezones is None
    assert state.date == date(2026, 12, 25)
    assert parse_query("?date=2026-13-40").date is None
    assert parse_query("?date=tomorrow").date is None


def test_display_names_may_contain_colons():
    assert parse_tz_param("Team: Ops:Europe/Berlin") == ("Team: Ops", "Europe/Berlin")
    with pytest.raises(MalformedUrlParameter):
        parse_tz_param("Europe/Berlin")


def test_full_urls_are_accepted():
    state = parse_query("https://example.com/app?tz=Tokyo:Asia/Tokyo&date=2026-01-15#top")
    assert state.timezones == [("Tokyo", "Asia/Tokyo")]
    assert state.date == date(2026, 1, 15)


def test_build_query_encodes_spaces_and_omits_today():
    tzs = [("New York", "America/New_York"), ("Tokyo", "Asia/Tokyo")]
    assert build_query(tzs, TODAY, today=TODAY) == \
        "tz=New%20York:America/New_York&tz=Tokyo:Asia/Tokyo"
    assert build_query(tzs, date(2026, 12, 25), today=TODAY).endswith("&date=2026-12-25")
    assert build_query([], date(2026, 12, 25), today=TODAY) == "date=2026-12-25"


def test_built_query_reads_back():
    tzs = [("Team: Ops", "Europe/Berlin"), ("São Paulo", "America/Sao_Paulo")]
    state = parse_query(build_query(tzs, date(2027, 2, 1), today=TODAY))
    assert state.timezones == tzs
    assert state.date == date(2027, 2, 1)


def test_hostile_display_name_is_escaped_not_executed():
    state = parse_query("?tz=%3Cimg%20src=x%20onerror=alert(1)%3E:Europe/London")
    [(name, tz)] = state.timezones
    assert name == "<img src=x onerror=alert(1)>"
    assert tz == "Europe/London"
    escaped = escape_markup(name)
    assert "<" not in escaped and ">" not in escaped
    assert escaped == "&lt;img src=x onerror=alert(1)&gt;"


def test_location_tracks_query_and_url():
    location = UrlLocation("timescheduler:///?tz=Tokyo:Asia/Tokyo")
    assert location.query == "tz=Tokyo:Asia/Tokyo"
    assert location.url == DEFAULT_BASE + "?tz=Tokyo:Asia/Tokyo"

    location.set_date(date(2026, 12, 25), today=TODAY)
    assert location.query == "tz=Tokyo:Asia/Tokyo&date=2026-12-25"
    location.set_date(TODAY, today=TODAY)
    assert location.query == "tz=Tokyo:Asia/Tokyo"

    location.set_timezones([], TODAY, today=TODAY)
    assert location.query == ""
    assert location.url == DEFAULT_BASE
