"""Autocomplete index over IANA timezone identifiers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from zoneinfo import available_timezones

from time_service import TimeService, UnknownTimezoneError

# Common abbreviations -> representative zones, checked before name matching.
ABBREVIATIONS: dict[str, list[str]] = {
    "PST": ["America/Los_Angeles"], "PDT": ["America/Los_Angeles"],
    "MST": ["America/Denver", "America/Phoenix"], "MDT": ["America/Denver"],
    "CST": ["America/Chicago", "Asia/Shanghai"], "CDT": ["America/Chicago"],
    "EST": ["America/New_York"], "EDT": ["America/New_York"],
    "AKST": ["America/Anchorage"], "HST": ["Pacific/Honolulu"],
    "GMT": ["Europe/London"], "BST": ["Europe/London"], "UTC": ["UTC"],
    "CET": ["Europe/Paris", "Europe/Berlin"], "CEST": ["Europe/Paris", "Europe/Berlin"],
    "EET": ["Europe/Athens", "Europe/Helsinki"], "MSK": ["Europe/Moscow"],
    "IST": ["Asia/Kolkata"], "JST": ["Asia/Tokyo"], "KST": ["Asia/Seoul"],
    "SGT": ["Asia/Singapore"], "HKT": ["Asia/Hong_Kong"],
    "AEST": ["Australia/Sydney"], "AEDT": ["Australia/Sydney"],
    "NZST": ["Pacific/Auckland"], "NZDT": ["Pacific/Auckland"],
}

_SKIP_PREFIXES = ("Etc/", "SystemV/", "posix/", "right/")


@dataclass(frozen=True)
class SearchResult:
    display_name: str
    timezone_id: str
    current_time: str
    abbreviation: str


def display_name_for(timezone_id: str) -> str:
    """'America/New_York' -> 'New York'; 'America/Argentina/Buenos_Aires' -> 'Buenos Aires'."""
    return timezone_id.rsplit("/", 1)[-1].replace("_", " ")


class TimezoneIndex:
    """Case-insensitive prefix/substring search over zone names."""

    def __init__(self, time_service: TimeService, zone_ids=None) -> None:
        self._time = time_service
        ids = zone_ids if zone_ids is not None else available_timezones()
        self._entries: list[tuple[str, str, str]] = sorted(
            (display_name_for(z).lower(), z.lower(), z)
            for z in ids
            if "/" in z and not z.startswith(_SKIP_PREFIXES)
            and time_service.is_known(z)
        )
        if zone_ids is None or "UTC" in zone_ids:
            self._entries.append(("utc", "utc", "UTC"))

    def search(self, query: str, limit: int = 8,
               now: datetime | None = None) -> list[SearchResult]:
        q = (query or "").strip().lower()
        if not q:
            return []
        now = now or datetime.now(timezone.utc)

        ranked: list[str] = []
        for zone_id in ABBREVIATIONS.get(q.upper(), []):
            if zone_id not in ranked:
                ranked.append(zone_id)

        prefix: list[str] = []
        substring: list[str] = []
        for city, full, zone_id in self._entries:
            if city.startswith(q) or full.startswith(q):
                prefix.append(zone_id)
            elif q in city or q in full:
                substring.append(zone_id)
        for zone_id in prefix + substring:
            if zone_id not in ranked:
                ranked.append(zone_id)

        results: list[SearchResult] = []
        for zone_id in ranked:
            try:
                clock = self._time.wall_clock(zone_id, now)
            except UnknownTimezoneError:
                continue
            results.append(SearchResult(
                display_name=display_name_for(zone_id),
                timezone_id=zone_id,
                current_time=f"{clock.hour:02d}:{clock.minute:02d}",
                abbreviation=clock.abbreviation,
            ))
            if len(results) >= limit:
                break
        return results
