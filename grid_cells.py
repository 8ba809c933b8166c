"""Derive per-timezone hour cells from a scheduler snapshot; no UI dependencies."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from app_state import SchedulerState, Slot, TrackedTimezone
from grid_geometry import HOURS
from time_service import TimeService, UnknownTimezoneError, WallClock
from url_state import escape_markup

logger = logging.getLogger(__name__)

DAY_ABBR = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
MONTH_ABBR = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


@dataclass(frozen=True)
class GridCell:
    timezone_index: int
    hour_index: int
    instant: datetime
    local_hour_label: str
    is_work_hour: bool
    date_label: str | None
    title: str


@dataclass(frozen=True)
class TimezoneRow:
    index: int
    timezone: TrackedTimezone
    abbreviation: str
    offset_label: str
    current_time: str
    cells: tuple[GridCell, ...]
    error: str | None = None

    @property
    def is_reference(self) -> bool:
        return self.index == 0


@dataclass(frozen=True)
class GridModel:
    rows: tuple[TimezoneRow, ...]
    anchor: datetime
    now_position: tuple[int, int] | None

    @property
    def is_empty(self) -> bool:
        return not self.rows


@dataclass(frozen=True)
class TimeSummary:
    instant: datetime
    heading: str
    lines: tuple[str, ...]

    @property
    def text(self) -> str:
        return "\n".join((self.heading,) + self.lines)

    @property
    def html(self) -> str:
        """Markup for pasting into mail or chat; display names are escaped."""
        body = "<br>\n".join(escape_markup(line) for line in self.lines)
        return f"<p><strong>{escape_markup(self.heading)}</strong><br>\n{body}</p>"


# ------------------------------------------------------------------
# Formatting helpers
# ------------------------------------------------------------------
def format_offset(minutes: int) -> str:
    """Relative offset in hours: '±0', '+9', '-5', '+5.5', '+5.75'."""
    if minutes == 0:
        return "±0"
    sign = "+" if minutes > 0 else "-"
    hours = abs(minutes) / 60
    text = f"{hours:.2f}".rstrip("0").rstrip(".")
    return f"{sign}{text}"


def format_day(d: date) -> str:
    return f"{DAY_ABBR[d.weekday()]} {d.day} {MONTH_ABBR[d.month - 1]} {d.year}"


def format_clock(clock: WallClock) -> str:
    return f"{clock.hour:02d}:{clock.minute:02d}"


def ms_until_next_minute(now: datetime) -> int:
    """Delay to the next whole minute, always in ``[0, 60000)``."""
    elapsed = now.second * 1000 + now.microsecond // 1000
    return (60000 - elapsed) % 60000


# ------------------------------------------------------------------
# Derivation
# ------------------------------------------------------------------
def grid_anchor(state: SchedulerState, time_service: TimeService) -> datetime:
    """Instant of hour 0: midnight of the selected date in the reference zone.

    Falls back to UTC midnight when the reference zone cannot be resolved.
    """
    ref = state.reference
    if ref is not None:
        try:
            return time_service.local_midnight(ref.timezone_id, state.selected_date)
        except UnknownTimezoneError:
            pass
    return datetime.combine(state.selected_date, datetime.min.time(), tzinfo=timezone.utc)


def _reference_clock(state: SchedulerState, time_service: TimeService,
                     instant: datetime) -> WallClock:
    ref = state.reference
    try:
        if ref is not None:
            return time_service.wall_clock(ref.timezone_id, instant)
    except UnknownTimezoneError:
        pass
    return time_service.wall_clock("UTC", instant)


def derive_grid(state: SchedulerState, time_service: TimeService,
                now: datetime | None = None) -> GridModel:
    """Build every row's 24 cells; an unresolvable zone yields an error row."""
    now = now or datetime.now(timezone.utc)
    anchor = grid_anchor(state, time_service)
    instants = [anchor + timedelta(hours=h) for h in range(HOURS)]
    ref_dates = [_reference_clock(state, time_service, i).date for i in instants]
    midday = anchor + timedelta(hours=12)
    ref_offset = _reference_clock(state, time_service, midday).offset_minutes

    rows: list[TimezoneRow] = []
    for index, tracked in enumerate(state.timezones):
        try:
            rows.append(_derive_row(state, time_service, index, tracked,
                                    instants, ref_dates, ref_offset, midday, now))
        except UnknownTimezoneError as e:
            logger.warning("Row %d (%s): %s", index, tracked.display_name, e)
            rows.append(TimezoneRow(
                index=index, timezone=tracked, abbreviation="?",
                offset_label="?", current_time="--:--", cells=(), error=str(e),
            ))
    return GridModel(rows=tuple(rows), anchor=anchor,
                     now_position=now_position(state, time_service, now))


def _derive_row(state: SchedulerState, time_service: TimeService, index: int,
                tracked: TrackedTimezone, instants: list[datetime],
                ref_dates: list[date], ref_offset: int, midday: datetime,
                now: datetime) -> TimezoneRow:
    tz_id = tracked.timezone_id
    noon_clock = time_service.wall_clock(tz_id, midday)
    relative = 0 if index == 0 else noon_clock.offset_minutes - ref_offset
    cells: list[GridCell] = []
    for hour, instant in enumerate(instants):
        clock = time_service.wall_clock(tz_id, instant)
        local_day = clock.date
        differs = local_day != ref_dates[hour]
        label = f"{clock.hour:02d}" if clock.minute == 0 else format_clock(clock)
        cells.append(GridCell(
            timezone_index=index,
            hour_index=hour,
            instant=instant,
            local_hour_label=label,
            is_work_hour=state.work_hour_start <= clock.hour < state.work_hour_end,
            date_label=f"{DAY_ABBR[local_day.weekday()]} {local_day.day}" if differs else None,
            title=f"{format_day(local_day)}, {format_clock(clock)} {clock.abbreviation}",
        ))
    return TimezoneRow(
        index=index,
        timezone=tracked,
        abbreviation=noon_clock.abbreviation,
        offset_label=format_offset(relative),
        current_time=format_clock(time_service.wall_clock(tz_id, now)),
        cells=tuple(cells),
    )


def now_position(state: SchedulerState, time_service: TimeService,
                 now: datetime) -> tuple[int, int] | None:
    """``(hour_index, minute)`` of *now* on the grid, or None unless the
    selected date is today in the reference zone's calendar."""
    if not state.timezones:
        return None
    if _reference_clock(state, time_service, now).date != state.selected_date:
        return None
    elapsed = (now - grid_anchor(state, time_service)).total_seconds() // 60
    # A fall-back day has a 25th hour; it stays pinned to the last cell.
    elapsed = min(max(0, int(elapsed)), HOURS * 60 - 1)
    hour, minute = divmod(elapsed, 60)
    return hour, minute


def slot_instant(state: SchedulerState, time_service: TimeService,
                 hour: int, minute: int) -> datetime:
    return grid_anchor(state, time_service) + timedelta(hours=hour, minutes=minute)


def hover_label(state: SchedulerState, time_service: TimeService,
                timezone_index: int, hour: int, minute: int) -> str:
    """Tooltip text naming the hovered zone and the snapped local time."""
    tracked = state.timezones[timezone_index]
    instant = slot_instant(state, time_service, hour, minute)
    try:
        clock = time_service.wall_clock(tracked.timezone_id, instant)
    except UnknownTimezoneError:
        return f"{tracked.display_name} · unknown timezone"
    return (f"{tracked.display_name} · {format_clock(clock)} {clock.abbreviation}"
            f" ({DAY_ABBR[clock.weekday]} {clock.day} {MONTH_ABBR[clock.month - 1]})")


def summarize_slot(state: SchedulerState, time_service: TimeService,
                   slot: Slot) -> TimeSummary:
    """The selected instant rendered in every tracked timezone."""
    instant = slot_instant(state, time_service, slot.hour, slot.minute_bucket)
    lines: list[str] = []
    heading = ""
    for index, tracked in enumerate(state.timezones):
        try:
            clock = time_service.wall_clock(tracked.timezone_id, instant)
        except UnknownTimezoneError:
            lines.append(f"{tracked.display_name}: unknown timezone")
            continue
        when = f"{format_day(clock.date)}, {format_clock(clock)} {clock.abbreviation}"
        lines.append(f"{tracked.display_name}: {when}")
        if index == slot.timezone_index:
            heading = f"{format_clock(clock)} in {tracked.display_name}"
    if not heading:
        heading = instant.strftime("%H:%M UTC")
    return TimeSummary(instant=instant, heading=heading, lines=tuple(lines))
