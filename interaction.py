"""Pointer, touch and keyboard state machine for the hour grid.

Raw input events come in as plain coordinates; the controller decides what
they mean (hover preview, slot selection, drag-reorder, scroll) using
:mod:`grid_geometry`, and reports UI-only changes to a view through two
callbacks. Slot selection and reordering go straight to :class:`AppState`.

Timers (touch hold, resize debounce, minute ticks) run through an injected
:class:`Scheduler` so the whole machine can be driven by a fake clock.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Protocol

from app_state import AppState, OutOfRange, Slot
from grid_cells import hover_label, ms_until_next_minute
from grid_geometry import (
    HOURS,
    Orientation,
    cell_for_position,
    cross_axis,
    grid_pixel_width,
    insertion_index,
    long_axis,
    orientation_for,
    row_for_position,
)
from time_service import TimeService

logger = logging.getLogger(__name__)

HOLD_THRESHOLD_MS = 300
SWIPE_THRESHOLD_PX = 10
CLICK_SLOP_PX = 4
RESIZE_DEBOUNCE_MS = 200


class Scheduler(Protocol):
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> Any: ...

    def cancel(self, handle: Any) -> None: ...


class InteractionState(Enum):
    IDLE = "idle"
    HOVERING = "hovering"
    DRAGGING_REORDER = "dragging-reorder"
    TOUCH_ARMED = "touch-armed"
    HOLDING_TOUCH = "holding-touch"
    TOUCH_SCROLLING = "touch-scrolling"


@dataclass
class GridLayout:
    """Where the hour cells currently sit, in container coordinates."""

    orientation: Orientation
    origin: tuple[float, float]
    cell_size: float
    row_size: float
    row_count: int


@dataclass(frozen=True)
class HoverState:
    timezone_index: int
    hour: int
    minute_bucket: int
    position: tuple[float, float]
    label: str


@dataclass(frozen=True)
class DragState:
    source_index: int
    candidate_index: int
    pointer: tuple[float, float]


class _Timer:
    """One cancelable pending callback; re-arming invalidates the previous one."""

    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self._handle: Any = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def start(self, delay_ms: int, callback: Callable[[], None]) -> None:
        self.cancel()

        def fire() -> None:
            self._handle = None
            callback()
        self._handle = self._scheduler.call_later(delay_ms, fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._scheduler.cancel(self._handle)
            self._handle = None


class InteractionController:
    def __init__(self, app: AppState, time_service: TimeService,
                 layout: GridLayout, scheduler: Scheduler,
                 on_hover: Callable[[HoverState | None], None] | None = None,
                 on_drag: Callable[[DragState | None], None] | None = None,
                 on_orientation: Callable[[Orientation], None] | None = None) -> None:
        self.app = app
        self.time_service = time_service
        self.layout = layout
        self.state = InteractionState.IDLE
        self.hover: HoverState | None = None
        self.drag: DragState | None = None
        self._on_hover = on_hover or (lambda _h: None)
        self._on_drag = on_drag or (lambda _d: None)
        self._on_orientation = on_orientation or (lambda _o: None)
        self._hold_timer = _Timer(scheduler)
        self._resize_timer = _Timer(scheduler)
        self._press_at: tuple[float, float] | None = None
        self._touch_start: tuple[float, float] | None = None
        self._handle_centers: list[float] = []
        self._cursor: tuple[int, int, int] | None = None

    @property
    def orientation(self) -> Orientation:
        return self.layout.orientation

    # ------------------------------------------------------------------
    # Hit testing
    # ------------------------------------------------------------------
    def slot_at(self, x: float, y: float) -> Slot | None:
        lay = self.layout
        row = row_for_position(lay.orientation, lay.origin, (x, y),
                               lay.row_size, lay.row_count)
        if row is None:
            return None
        along = long_axis(lay.orientation, (x, y)) - long_axis(lay.orientation, lay.origin)
        if not 0 <= along < grid_pixel_width(lay.cell_size):
            return None
        cell = cell_for_position(lay.orientation, lay.origin, (x, y), lay.cell_size)
        return Slot(row, cell.hour_index, cell.minute_bucket)

    def _show_hover(self, slot: Slot, position: tuple[float, float]) -> None:
        self.hover = HoverState(
            timezone_index=slot.timezone_index,
            hour=slot.hour,
            minute_bucket=slot.minute_bucket,
            position=position,
            label=hover_label(self.app.state, self.time_service,
                              slot.timezone_index, slot.hour, slot.minute_bucket),
        )
        self._on_hover(self.hover)

    def _hide_hover(self) -> None:
        if self.hover is not None:
            self.hover = None
            self._on_hover(None)

    def _select(self, slot: Slot | None) -> None:
        if slot is None:
            return
        try:
            self.app.set_selected_slot(slot)
        except OutOfRange:
            logger.debug("Ignoring selection of vanished row %d", slot.timezone_index)

    def _to_idle(self) -> None:
        self._hold_timer.cancel()
        self._hide_hover()
        self._press_at = None
        self._touch_start = None
        self.state = InteractionState.IDLE

    # ------------------------------------------------------------------
    # Mouse
    # ------------------------------------------------------------------
    def pointer_move(self, x: float, y: float) -> None:
        if self.state is InteractionState.DRAGGING_REORDER:
            self.drag_move(x, y)
            return
        if self.state not in (InteractionState.IDLE, InteractionState.HOVERING):
            return
        slot = self.slot_at(x, y)
        if slot is None:
            self.pointer_leave()
            return
        self.state = InteractionState.HOVERING
        self._show_hover(slot, (x, y))

    def pointer_leave(self) -> None:
        if self.state is InteractionState.HOVERING:
            self._hide_hover()
            self.state = InteractionState.IDLE

    def pointer_press(self, x: float, y: float) -> None:
        if self.state in (InteractionState.IDLE, InteractionState.HOVERING):
            self._press_at = (x, y)

    def pointer_release(self, x: float, y: float) -> None:
        """A press and release without travel is a click: open the summary."""
        press, self._press_at = self._press_at, None
        if press is None or self.state is InteractionState.DRAGGING_REORDER:
            return
        if math.hypot(x - press[0], y - press[1]) > CLICK_SLOP_PX:
            return
        slot = self.slot_at(x, y)
        if slot is None:
            self.dismiss()
        else:
            self._select(slot)

    def dismiss(self) -> None:
        if self.app.state.selected_slot is not None:
            self.app.set_selected_slot(None)

    # ------------------------------------------------------------------
    # Drag-reorder (handles only; never drives the hover line)
    # ------------------------------------------------------------------
    def drag_start(self, source_index: int, handle_centers: list[float],
                   x: float, y: float) -> None:
        self._hold_timer.cancel()
        self._hide_hover()
        self._press_at = None
        self._handle_centers = list(handle_centers)
        self.state = InteractionState.DRAGGING_REORDER
        self.drag = DragState(source_index, source_index, (x, y))
        self._on_drag(self.drag)

    def drag_move(self, x: float, y: float) -> None:
        if self.drag is None:
            return
        pointer = cross_axis(self.orientation, (x, y))
        candidate = insertion_index(pointer, self._handle_centers, self.drag.source_index)
        self.drag = DragState(self.drag.source_index, candidate, (x, y))
        self._on_drag(self.drag)

    def drag_end(self, x: float, y: float) -> None:
        if self.drag is None:
            return
        self.drag_move(x, y)
        source, target = self.drag.source_index, self.drag.candidate_index
        self.drag_cancel()
        if source == target:
            return
        try:
            self.app.move_timezone(source, target)
        except OutOfRange as e:
            logger.debug("Drop ignored: %s", e)

    def drag_cancel(self) -> None:
        self.drag = None
        self._handle_centers = []
        self.state = InteractionState.IDLE
        self._on_drag(None)

    # ------------------------------------------------------------------
    # Touch: hold-to-preview vs swipe
    # ------------------------------------------------------------------
    def touch_start(self, x: float, y: float) -> None:
        self._to_idle()
        self._touch_start = (x, y)
        self.state = InteractionState.TOUCH_ARMED
        self._hold_timer.start(HOLD_THRESHOLD_MS, self._on_hold)

    def _on_hold(self) -> None:
        if self.state is not InteractionState.TOUCH_ARMED or self._touch_start is None:
            return
        self.state = InteractionState.HOLDING_TOUCH
        slot = self.slot_at(*self._touch_start)
        if slot is not None:
            self._show_hover(slot, self._touch_start)

    def touch_move(self, x: float, y: float) -> bool:
        """Return True when the gesture is consumed, False to let it scroll."""
        if self.state is InteractionState.TOUCH_ARMED and self._touch_start is not None:
            travel = abs(long_axis(self.orientation, (x, y))
                         - long_axis(self.orientation, self._touch_start))
            if travel > SWIPE_THRESHOLD_PX:
                self._hold_timer.cancel()
                self.state = InteractionState.TOUCH_SCROLLING
                return False
            return True
        if self.state is InteractionState.HOLDING_TOUCH:
            slot = self.slot_at(x, y)
            if slot is None:
                self._hide_hover()
            else:
                self._show_hover(slot, (x, y))
            return True
        return self.state is not InteractionState.TOUCH_SCROLLING

    def touch_end(self, x: float, y: float) -> None:
        if self.state is InteractionState.HOLDING_TOUCH:
            hover = self.hover
            self._to_idle()
            if hover is not None:
                self._select(Slot(hover.timezone_index, hover.hour, hover.minute_bucket))
            return
        if self.state is InteractionState.TOUCH_ARMED:
            # Tap released before the hold fired: same as a click.
            self._to_idle()
            self._select(self.slot_at(x, y))
            return
        self._to_idle()

    def touch_cancel(self) -> None:
        self._to_idle()

    # ------------------------------------------------------------------
    # Keyboard
    # ------------------------------------------------------------------
    def key(self, name: str) -> bool:
        """Handle a key by Tk keysym; return True when consumed."""
        rows = len(self.app.state.timezones)
        if name == "Escape":
            if self.app.state.selected_slot is not None:
                self.app.set_selected_slot(None)
                return True
            if self.hover is not None:
                self._to_idle()
                self._cursor = None
                return True
            return False
        if rows == 0:
            return False

        vertical = self.orientation is Orientation.VERTICAL
        along = {"Down": 1, "Up": -1} if vertical else {"Right": 1, "Left": -1}
        across = {"Right": 1, "Left": -1} if vertical else {"Down": 1, "Up": -1}

        if self._cursor is None:
            self._cursor = self._initial_cursor()
        row, hour, minute = self._cursor
        # Rows may have been removed since the cursor last moved.
        row = min(row, rows - 1)
        if name in ("Return", "KP_Enter", "space"):
            self._select(Slot(row, hour, minute))
            return True
        if name in along:
            total = (hour * 60 + minute + 15 * along[name]) % (HOURS * 60)
            hour, minute = divmod(total, 60)
        elif name in across:
            row = (row + across[name]) % rows
        else:
            return False
        self._cursor = (row, hour, minute)
        self.state = InteractionState.HOVERING
        self._show_hover(Slot(row, hour, minute), self._cursor_position())
        return True

    def _initial_cursor(self) -> tuple[int, int, int]:
        slot = self.app.state.selected_slot
        if slot is not None:
            return slot.timezone_index, slot.hour, slot.minute_bucket
        if self.hover is not None:
            return self.hover.timezone_index, self.hover.hour, self.hover.minute_bucket
        return 0, self.app.state.work_hour_start, 0

    def _cursor_position(self) -> tuple[float, float]:
        row, hour, minute = self._cursor or (0, 0, 0)
        lay = self.layout
        along = lay.cell_size * (hour + minute / 60)
        across = lay.row_size * (row + 0.5)
        if lay.orientation is Orientation.HORIZONTAL:
            return lay.origin[0] + along, lay.origin[1] + across
        return lay.origin[0] + across, lay.origin[1] + along

    # ------------------------------------------------------------------
    # Viewport
    # ------------------------------------------------------------------
    def viewport_resized(self, width: float, height: float) -> None:
        """Debounced: only the last resize in a burst is applied."""
        self._resize_timer.start(RESIZE_DEBOUNCE_MS,
                                 lambda: self._apply_resize(width, height))

    def _apply_resize(self, width: float, height: float) -> None:
        orientation = orientation_for(width, height)
        if orientation is not self.layout.orientation:
            logger.debug("Orientation %s -> %s at %sx%s",
                         self.layout.orientation.value, orientation.value, width, height)
            self._to_idle()
            self.layout.orientation = orientation
            self._on_orientation(orientation)

    @property
    def resize_pending(self) -> bool:
        return self._resize_timer.pending


class MinuteTicker:
    """Calls *callback* at each upcoming whole minute, then reschedules itself.

    Starting exactly on a boundary fires at once (delay 0). A tick never
    fires twice for the same minute: rescheduling from the boundary just
    handled waits for the following one.
    """

    def __init__(self, scheduler: Scheduler, callback: Callable[[], None],
                 clock: Callable[[], datetime] | None = None) -> None:
        self._timer = _Timer(scheduler)
        self._callback = callback
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._fired_minute: datetime | None = None
        self.last_delay: int | None = None

    def start(self) -> None:
        now = self._clock()
        self.last_delay = ms_until_next_minute(now)
        if self.last_delay == 0 and _minute_of(now) == self._fired_minute:
            self.last_delay = ms_until_next_minute(now + timedelta(milliseconds=1)) + 1
        self._timer.start(self.last_delay, self._tick)

    def _tick(self) -> None:
        self._fired_minute = _minute_of(self._clock())
        self._callback()
        self.start()

    def stop(self) -> None:
        self._timer.cancel()

    @property
    def running(self) -> bool:
        return self._timer.pending


def _minute_of(instant: datetime) -> datetime:
    return instant.replace(second=0, microsecond=0)
