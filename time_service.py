"""Wall-clock lookups for IANA timezones; no UI dependencies."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_UTC_ALIASES = {"utc", "z", "gmt", "etc/utc", "etc/gmt", "universal", "zulu"}


class UnknownTimezoneError(ValueError):
    """Raised when a timezone identifier cannot be resolved."""

    def __init__(self, timezone_id: str) -> None:
        super().__init__(f"Unknown timezone: {timezone_id!r}")
        self.timezone_id = timezone_id


@dataclass(frozen=True)
class WallClock:
    """Local calendar/clock fields of an instant in one timezone."""

    year: int
    month: int
    day: int
    hour: int
    minute: int
    weekday: int
    offset_minutes: int
    abbreviation: str

    @property
    def date(self) -> date:
        return date(self.year, self.month, self.day)


class TimeService:
    """Resolve timezone identifiers and convert instants to local fields.

    Resolved zones are cached per identifier; the service is otherwise
    stateless, so one instance can be shared by every component.
    """

    def __init__(self) -> None:
        self._zones: dict[str, ZoneInfo | timezone] = {}

    def zone(self, timezone_id: str):
        cached = self._zones.get(timezone_id)
        if cached is not None:
            return cached
        key = (timezone_id or "").strip()
        if not key:
            raise UnknownTimezoneError(timezone_id)
        if key.lower() in _UTC_ALIASES:
            tz = timezone.utc
        else:
            try:
                tz = ZoneInfo(key)
            except (ZoneInfoNotFoundError, ValueError, OSError):
                raise UnknownTimezoneError(timezone_id) from None
        self._zones[timezone_id] = tz
        return tz

    def is_known(self, timezone_id: str) -> bool:
        try:
            self.zone(timezone_id)
        except UnknownTimezoneError:
            return False
        return True

    def local(self, timezone_id: str, instant: datetime) -> datetime:
        """Return *instant* as an aware datetime in the given zone."""
        return _as_utc(instant).astimezone(self.zone(timezone_id))

    def wall_clock(self, timezone_id: str, instant: datetime) -> WallClock:
        loc = self.local(timezone_id, instant)
        offset = loc.utcoffset() or timedelta(0)
        return WallClock(
            year=loc.year,
            month=loc.month,
            day=loc.day,
            hour=loc.hour,
            minute=loc.minute,
            weekday=loc.weekday(),
            offset_minutes=int(offset.total_seconds() // 60),
            abbreviation=_abbreviation(loc),
        )

    def local_midnight(self, timezone_id: str, day: date) -> datetime:
        """Return the UTC instant at which *day* starts in the given zone."""
        tz = self.zone(timezone_id)
        return datetime.combine(day, time(0, 0), tzinfo=tz).astimezone(timezone.utc)


def _as_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def _abbreviation(loc: datetime) -> str:
    """Short zone name; numeric names like '+0530' become 'GMT+5:30'."""
    name = loc.tzname() or ""
    if name and name[0] in "+-":
        offset = loc.utcoffset() or timedelta(0)
        total = int(offset.total_seconds() // 60)
        sign = "+" if total >= 0 else "-"
        hours, minutes = divmod(abs(total), 60)
        return f"GMT{sign}{hours}" + (f":{minutes:02d}" if minutes else "")
    return name
