"""Query-string codec for shareable scheduler links (``?tz=Name:Zone&date=...``)."""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from datetime import date
from urllib.parse import parse_qsl, quote, urlsplit

logger = logging.getLogger(__name__)

DEFAULT_BASE = "timescheduler:///"


class MalformedUrlParameter(ValueError):
    """A single ``tz`` or ``date`` value that cannot be parsed."""


@dataclass(frozen=True)
class UrlState:
    timezones: list[tuple[str, str]] | None
    date: date | None


def _query_part(url_or_query: str) -> str:
    text = (url_or_query or "").strip()
    if "?" in text or "://" in text:
        return urlsplit(text).query
    return text.split("#", 1)[0]


def parse_tz_param(value: str) -> tuple[str, str]:
    """'New York:America/New_York' -> ('New York', 'America/New_York').

    Splits at the last colon so display names may contain colons.
    """
    name, sep, tz = value.rpartition(":")
    name, tz = name.strip(), tz.strip()
    if not sep or not name or not tz:
        raise MalformedUrlParameter(f"bad tz parameter {value!r}")
    return name, tz


def parse_date_param(value: str) -> date:
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise MalformedUrlParameter(f"bad date parameter {value!r}") from None


def parse_query(url_or_query: str) -> UrlState:
    """Decode ``tz`` (repeatable) and ``date``; bad entries are skipped.

    ``parse_qsl`` already treats ``+`` and ``%20`` as spaces; literal spaces
    survive untouched, so all three spellings decode the same way.
    """
    timezones: list[tuple[str, str]] | None = None
    selected: date | None = None
    for key, value in parse_qsl(_query_part(url_or_query), keep_blank_values=True):
        if key == "tz":
            if timezones is None:
                timezones = []
            try:
                timezones.append(parse_tz_param(value))
            except MalformedUrlParameter as e:
                logger.warning("Skipping URL parameter: %s", e)
        elif key == "date":
            try:
                selected = parse_date_param(value)
            except MalformedUrlParameter as e:
                logger.warning("Ignoring URL parameter: %s", e)
    if timezones is not None and not timezones:
        # Only malformed tz entries: fall back to the persisted list.
        timezones = None
    return UrlState(timezones=timezones, date=selected)


def build_query(timezones: list[tuple[str, str]], selected_date: date | None,
                today: date | None = None) -> str:
    """Encode the tracked list in order; ``date`` is omitted when it is today."""
    parts = [f"tz={quote(f'{name}:{tz}', safe=':/')}" for name, tz in timezones]
    if selected_date is not None and selected_date != (today or date.today()):
        parts.append(f"date={selected_date.isoformat()}")
    return "&".join(parts)


def escape_markup(text: str) -> str:
    """HTML-escape a display name before it is embedded in any markup."""
    return html.escape(text, quote=True)


class UrlLocation:
    """The app's current shareable address (its "address bar")."""

    def __init__(self, url: str = "", base: str = DEFAULT_BASE) -> None:
        self.base = base
        self.query = _query_part(url)

    @property
    def url(self) -> str:
        return f"{self.base}?{self.query}" if self.query else self.base

    def state(self) -> UrlState:
        return parse_query(self.query)

    def set_timezones(self, timezones: list[tuple[str, str]],
                      selected_date: date | None, today: date | None = None) -> None:
        self.query = build_query(timezones, selected_date, today)

    def set_date(self, selected_date: date | None, today: date | None = None) -> None:
        current = self.state().timezones or []
        self.query = build_query(current, selected_date, today)
