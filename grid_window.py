"""Timezone comparison window (tkinter): hour grid, hover line, time summary."""

import ctypes
import logging
from datetime import date, timedelta
from tkinter import font as tkfont
import tkinter as tk

from app_state import AppState, SchedulerState
from grid_cells import GridModel, derive_grid, summarize_slot
from grid_geometry import (
    HOURS,
    Orientation,
    cell_size_for,
    grid_pixel_width,
    orientation_for,
    pixels_for_slot,
    sticky_header_top,
)
from interaction import (
    DragState,
    GridLayout,
    HoverState,
    InteractionController,
    InteractionState,
    MinuteTicker,
)
from settings import KeyValueStore, load_settings, save_settings, valid_work_hours
from time_service import TimeService
from timezone_search import SearchResult, TimezoneIndex

logger = logging.getLogger(__name__)

# Colours
ACCENT = "#0078D4"
HEADER_BG = "#F3F3F3"
GRID_BG = "white"
WORK_BG = "#DFF3E3"
LINE_FG = "#E0E0E0"
NOW_FG = "#E81123"
ERROR_BG = "#FDE7E9"
DATE_FG = "#8A5A00"
MUTED_FG = "#666666"

# Layout (pixels)
ROW_H = 44
COL_W = 104
HEADER_H = 66
INFO_W = 240


class _ToolTip:
    """Lightweight shared tooltip for the hover line."""

    __slots__ = ("_root", "_tw", "_label")

    def __init__(self, root: tk.Tk) -> None:
        self._root = root
        self._tw: tk.Toplevel | None = None
        self._label: tk.Label | None = None

    def show_at(self, x_root: int, y_root: int, text: str) -> None:
        if self._tw is None:
            tw = tk.Toplevel(self._root)
            tw.wm_overrideredirect(True)
            tw.wm_attributes("-topmost", True)
            self._label = tk.Label(
                tw, bg="#FFFFE0", fg="black",
                relief="solid", borderwidth=1, padx=6, pady=3, justify="left",
            )
            self._label.pack()
            self._tw = tw
        self._label.configure(text=text)
        self._tw.wm_geometry(f"+{x_root + 14}+{y_root + 18}")

    def hide(self) -> None:
        if self._tw:
            self._tw.destroy()
            self._tw = None
            self._label = None


class TkScheduler:
    """``Scheduler`` over ``Tk.after`` / ``after_cancel``."""

    def __init__(self, root: tk.Misc) -> None:
        self._root = root

    def call_later(self, delay_ms: int, callback):
        return self._root.after(delay_ms, callback)

    def cancel(self, handle) -> None:
        self._root.after_cancel(handle)


def layout_for(orientation: Orientation, row_count: int) -> GridLayout:
    cell = cell_size_for(orientation)
    if orientation is Orientation.HORIZONTAL:
        return GridLayout(orientation, (0, 0), cell, ROW_H, row_count)
    return GridLayout(orientation, (0, HEADER_H), cell, COL_W, row_count)


class SchedulerWindow:
    """Timezone rows (or columns) on a shared 24-hour scroll surface."""

    def __init__(self, app: AppState, time_service: TimeService,
                 search_index: TimezoneIndex | None = None,
                 store: KeyValueStore | None = None) -> None:
        self.app = app
        self.time_service = time_service
        self.search_index = search_index or TimezoneIndex(time_service)
        self._store = store

        self.root = tk.Tk()
        self.root.title("Time Scheduler")
        self.root.resizable(True, True)
        self.root.configure(bg=GRID_BG)
        self._setup_fonts()

        settings = load_settings(store)
        self._touch_mode: bool = settings["touch_mode"]
        self._saved_width: int | None = settings["window_width"]
        self._saved_height: int | None = settings["window_height"]

        self._model: GridModel | None = None
        self._search_results: list[SearchResult] = []
        self._summary_win: tk.Toplevel | None = None
        self._summary_label: tk.Label | None = None
        self._tooltip = _ToolTip(self.root)
        self._scheduler = TkScheduler(self.root)

        orientation = orientation_for(self._saved_width or 1100, self._saved_height or 520)
        self.controller = InteractionController(
            app, time_service,
            layout_for(orientation, len(app.state.timezones)),
            self._scheduler,
            on_hover=self._show_hover,
            on_drag=self._show_drag,
            on_orientation=self._on_orientation,
        )

        self._build_shell()
        self._bind_grid_events()
        self._ticker = MinuteTicker(self._scheduler, self._on_minute)
        self._unsubscribe = app.subscribe(self._on_state)
        self._on_state(app.state)
        self._ticker.start()

        self.root.bind("<Escape>", self._on_escape)
        self.root.bind("<Button-1>", self._on_root_click, add="+")
        for key in ("<Left>", "<Right>", "<Up>", "<Down>", "<Return>", "<KP_Enter>", "<space>"):
            self.root.bind(key, self._on_key)
        self.root.bind("<Configure>", self._on_configure)
        self.root.protocol("WM_DELETE_WINDOW", self.hide)
        self.root.withdraw()

    # ------------------------------------------------------------------
    # Fonts
    # ------------------------------------------------------------------
    def _setup_fonts(self) -> None:
        families = tkfont.families(self.root)
        base = "Segoe UI" if "Segoe UI" in families else "TkDefaultFont"
        self.font_normal = tkfont.Font(family=base, size=9)
        self.font_bold = tkfont.Font(family=base, size=9, weight="bold")
        self.font_header = tkfont.Font(family=base, size=10, weight="bold")
        self.font_nav = tkfont.Font(family=base, size=12, weight="bold")
        self.font_small = tkfont.Font(family=base, size=7)
        self.font_footer = tkfont.Font(family=base, size=8)

    @property
    def orientation(self) -> Orientation:
        return self.controller.layout.orientation

    # ------------------------------------------------------------------
    # Build shell (once): toolbar, grid area, footer
    # ------------------------------------------------------------------
    def _build_shell(self) -> None:
        self._outer = tk.Frame(self.root, bg=GRID_BG)
        self._outer.pack(fill="both", expand=True, padx=6, pady=4)

        bar = tk.Frame(self._outer, bg=GRID_BG)
        bar.pack(fill="x", pady=(0, 4))

        self._search_var = tk.StringVar()
        self._search_entry = tk.Entry(bar, textvariable=self._search_var,
                                      font=self.font_normal, width=32)
        self._search_entry.pack(side="left", padx=(0, 8))
        self._search_var.trace_add("write", lambda *_a: self._on_search_change())
        self._search_entry.bind("<Down>", self._focus_dropdown)
        self._search_entry.bind("<Return>", lambda _e: self._commit_search(0))
        self._search_entry.bind("<Escape>", self._clear_search)

        self._dropdown = tk.Listbox(self._outer, font=self.font_normal, height=8,
                                    activestyle="dotbox", exportselection=False)
        self._dropdown.bind("<ButtonRelease-1>", self._on_dropdown_click)
        self._dropdown.bind("<Return>", self._on_dropdown_click)
        self._dropdown.bind("<Escape>", self._clear_search)

        btn_prev = tk.Label(bar, text="◀", font=self.font_nav, bg=GRID_BG, cursor="hand2")
        btn_prev.pack(side="left", padx=4)
        btn_prev.bind("<Button-1>", lambda _e: self._navigate(-1))

        self._date_var = tk.StringVar()
        date_entry = tk.Entry(bar, textvariable=self._date_var, font=self.font_normal, width=11)
        date_entry.pack(side="left")
        date_entry.bind("<Return>", self._on_date_entry)
        date_entry.bind("<FocusOut>", self._on_date_entry)

        btn_next = tk.Label(bar, text="▶", font=self.font_nav, bg=GRID_BG, cursor="hand2")
        btn_next.pack(side="left", padx=4)
        btn_next.bind("<Button-1>", lambda _e: self._navigate(1))

        btn_today = tk.Label(bar, text="Today", font=self.font_bold, bg=GRID_BG,
                             fg=ACCENT, cursor="hand2")
        btn_today.pack(side="left", padx=6)
        btn_today.bind("<Button-1>", lambda _e: self.app.set_selected_date(self.app.today()))

        btn_settings = tk.Label(bar, text="⚙", font=self.font_nav, bg=GRID_BG, cursor="hand2")
        btn_settings.pack(side="right", padx=6)
        btn_settings.bind("<Button-1>", lambda _e: self.open_settings())

        btn_link = tk.Label(bar, text="Copy link", font=self.font_bold, bg=GRID_BG,
                            fg=ACCENT, cursor="hand2")
        btn_link.pack(side="right", padx=6)
        btn_link.bind("<Button-1>", lambda _e: self.copy_link())

        self._empty_label = tk.Label(
            self._outer, text="No timezones added yet", font=self.font_header,
            bg=GRID_BG, fg=MUTED_FG, pady=40,
        )

        # One scroll surface for every timezone; the info column only follows it vertically.
        self._grid_area = tk.Frame(self._outer, bg=GRID_BG)
        self._grid_area.rowconfigure(0, weight=1)
        self._grid_area.columnconfigure(1, weight=1)
        self._info = tk.Canvas(self._grid_area, width=INFO_W, bg=HEADER_BG,
                               highlightthickness=0, borderwidth=0)
        self._grid = tk.Canvas(self._grid_area, bg=GRID_BG, highlightthickness=0,
                               borderwidth=0, takefocus=True)
        self._ysb = tk.Scrollbar(self._grid_area, orient="vertical", command=self._yview)
        self._xsb = tk.Scrollbar(self._grid_area, orient="horizontal", command=self._grid.xview)
        self._grid.configure(yscrollcommand=self._on_yscroll, xscrollcommand=self._xsb.set)
        self._info.grid(row=0, column=0, sticky="ns")
        self._grid.grid(row=0, column=1, sticky="nsew")
        self._ysb.grid(row=0, column=2, sticky="ns")
        self._xsb.grid(row=1, column=1, sticky="we")

        self._footer_label = tk.Label(self._outer, font=self.font_footer, bg=GRID_BG,
                                      fg=MUTED_FG, anchor="w")
        self._footer_label.pack(side="bottom", fill="x", pady=(4, 0))

    # ------------------------------------------------------------------
    # Scrolling
    # ------------------------------------------------------------------
    def _yview(self, *args) -> None:
        self._grid.yview(*args)

    def _on_yscroll(self, first: str, last: str) -> None:
        self._ysb.set(first, last)
        self._info.yview_moveto(first)
        self._update_sticky()

    def _on_wheel(self, event: tk.Event) -> None:
        if getattr(event, "num", None) in (4, 5):
            steps = -1 if event.num == 4 else 1
        else:
            steps = -1 if event.delta > 0 else 1
        if event.state & 0x0001:  # Shift
            self._grid.xview_scroll(steps, "units")
        else:
            self._grid.yview_scroll(steps, "units")

    # ------------------------------------------------------------------
    # State -> paint
    # ------------------------------------------------------------------
    def _on_state(self, state: SchedulerState) -> None:
        self._model = derive_grid(state, self.time_service)
        self.controller.layout.row_count = len(state.timezones)
        self._date_var.set(state.selected_date.isoformat())
        if self.app.location is not None:
            self._footer_label.configure(text=self.app.location.url)

        if self._model.is_empty:
            self._grid_area.pack_forget()
            self._empty_label.pack(fill="both", expand=True)
        else:
            self._empty_label.pack_forget()
            self._grid_area.pack(fill="both", expand=True)
        self._paint()
        self._sync_summary(state)

    def _on_minute(self) -> None:
        self._model = derive_grid(self.app.state, self.time_service)
        self._paint()

    def _cell_box(self, row: int, hour: int) -> tuple[float, float, float, float]:
        lay = self.controller.layout
        if lay.orientation is Orientation.HORIZONTAL:
            x0, y0 = hour * lay.cell_size, row * ROW_H
            return x0, y0, x0 + lay.cell_size, y0 + ROW_H
        x0, y0 = row * COL_W, HEADER_H + hour * lay.cell_size
        return x0, y0, x0 + COL_W, y0 + lay.cell_size

    def _content_size(self) -> tuple[float, float]:
        lay = self.controller.layout
        rows = lay.row_count
        if lay.orientation is Orientation.HORIZONTAL:
            return grid_pixel_width(lay.cell_size), rows * ROW_H
        return rows * COL_W, HEADER_H + grid_pixel_width(lay.cell_size)

    def _paint(self) -> None:
        model = self._model
        self._grid.delete("all")
        self._info.delete("all")
        if model is None or model.is_empty:
            return

        width, height = self._content_size()
        # Fixed-size content: a wide window scrolls nothing and never stretches cells.
        self._grid.configure(scrollregion=(0, 0, width, height))
        if self.orientation is Orientation.HORIZONTAL:
            self._info.grid()
            self._info.configure(scrollregion=(0, 0, INFO_W, height))
            for row in model.rows:
                y0 = row.index * ROW_H
                self._draw_info(self._info, row, 0, y0, INFO_W, y0 + ROW_H,
                                tag="info", interactive=True)
        else:
            self._info.grid_remove()
            for row in model.rows:
                x0 = row.index * COL_W
                self._draw_info(self._grid, row, x0, 0, x0 + COL_W, HEADER_H,
                                tag="header", interactive=True)

        for row in model.rows:
            if row.error:
                self._draw_error_row(row.index, row.error)
                continue
            for cell in row.cells:
                x0, y0, x1, y1 = self._cell_box(row.index, cell.hour_index)
                fill = WORK_BG if cell.is_work_hour else GRID_BG
                self._grid.create_rectangle(x0, y0, x1, y1, fill=fill, outline=LINE_FG,
                                            tags=("cell",))
                self._grid.create_text((x0 + x1) / 2, (y0 + y1) / 2,
                                       text=cell.local_hour_label, font=self.font_normal,
                                       tags=("cell",))
                if cell.date_label:
                    self._grid.create_text(x0 + 3, y0 + 2, text=cell.date_label, anchor="nw",
                                           font=self.font_small, fill=DATE_FG, tags=("cell",))

        self._paint_selection()
        self._paint_now()
        self._show_hover(self.controller.hover)
        self._update_sticky()

    def _draw_info(self, canvas: tk.Canvas, row, x0: float, y0: float,
                   x1: float, y1: float, tag: str, interactive: bool) -> None:
        """Name, abbreviation, relative offset and current time for one timezone.

        Names go through canvas text items, which never interpret markup.
        """
        tags = (tag,)
        canvas.create_rectangle(x0, y0, x1, y1, fill=HEADER_BG, outline=LINE_FG, tags=tags)
        handle_tags = tags + ("handle", f"handle{row.index}") if interactive else tags
        remove_tags = tags + ("remove", f"remove{row.index}") if interactive else tags
        canvas.create_text(x0 + 10, (y0 + y1) / 2, text="⠿", font=self.font_header,
                           fill=MUTED_FG, tags=handle_tags)
        font = self.font_bold if row.is_reference else self.font_normal
        canvas.create_text(x0 + 22, y0 + 6, text=row.timezone.display_name, anchor="nw",
                           font=font, tags=tags, width=max(10, x1 - x0 - 40))
        detail = f"{row.abbreviation}  {row.offset_label}  {row.current_time}"
        canvas.create_text(x0 + 22, y1 - 6, text=detail, anchor="sw", font=self.font_small,
                           fill=MUTED_FG, tags=tags)
        canvas.create_text(x1 - 8, y0 + 6, text="×", anchor="ne", font=self.font_header,
                           fill=MUTED_FG, tags=remove_tags)

    def _draw_error_row(self, index: int, message: str) -> None:
        x0, y0, _x1, _y1 = self._cell_box(index, 0)
        _a, _b, x1, y1 = self._cell_box(index, HOURS - 1)
        self._grid.create_rectangle(x0, y0, x1, y1, fill=ERROR_BG, outline=NOW_FG,
                                    tags=("cell", "error"))
        self._grid.create_text((x0 + x1) / 2, (y0 + y1) / 2, text=f"⚠ {message}",
                               fill=NOW_FG, font=self.font_bold, tags=("cell", "error"),
                               width=max(40, min(x1 - x0, y1 - y0 + COL_W) - 8))

    def _hour_line(self, hour: int, minute: int, tag: str, fill: str, width: int) -> None:
        lay = self.controller.layout
        along = pixels_for_slot(lay.orientation, hour, minute, lay.cell_size)
        span_w, span_h = self._content_size()
        if lay.orientation is Orientation.HORIZONTAL:
            x = lay.origin[0] + along
            self._grid.create_line(x, 0, x, span_h, fill=fill, width=width, tags=(tag,))
        else:
            y = lay.origin[1] + along
            self._grid.create_line(0, y, span_w, y, fill=fill, width=width, tags=(tag,))

    def _paint_now(self) -> None:
        self._grid.delete("now")
        if self._model is None or self._model.now_position is None:
            return
        hour, minute = self._model.now_position
        self._hour_line(hour, minute, "now", NOW_FG, 2)

    def _paint_selection(self) -> None:
        slot = self.app.state.selected_slot
        if slot is None or slot.timezone_index >= self.controller.layout.row_count:
            return
        x0, y0, x1, y1 = self._cell_box(slot.timezone_index, slot.hour)
        self._grid.create_rectangle(x0, y0, x1, y1, outline=ACCENT, width=2,
                                    tags=("selected",))
        self._hour_line(slot.hour, slot.minute_bucket, "selected", ACCENT, 1)

    def _scroll_to_now(self) -> None:
        if self._model is None or self._model.now_position is None:
            return
        hour, _minute = self._model.now_position
        width, height = self._content_size()
        x0, y0, _x1, _y1 = self._cell_box(0, max(0, hour - 2))
        if self.orientation is Orientation.HORIZONTAL and width:
            self._grid.xview_moveto(x0 / width)
        elif height:
            self._grid.yview_moveto(y0 / height)

    # ------------------------------------------------------------------
    # Sticky header (vertical layout only has a header band)
    # ------------------------------------------------------------------
    def _update_sticky(self) -> None:
        self._grid.delete("sticky")
        if self.orientation is not Orientation.VERTICAL or self._model is None:
            return
        _w, height = self._content_size()
        top = sticky_header_top(self._grid.canvasy(0), 0, HEADER_H, height)
        if top is None:
            return
        # Clone carries no "handle"/"remove" tags, so it has no bindings of its own.
        for row in self._model.rows:
            x0 = row.index * COL_W
            self._draw_info(self._grid, row, x0, top, x0 + COL_W, top + HEADER_H,
                            tag="sticky", interactive=False)
        self._grid.tag_raise("sticky")

    # ------------------------------------------------------------------
    # Hover line + tooltip
    # ------------------------------------------------------------------
    def _show_hover(self, hover: HoverState | None) -> None:
        self._grid.delete("hover")
        if hover is None or self._model is None:
            self._tooltip.hide()
            return
        self._hour_line(hover.hour, hover.minute_bucket, "hover", ACCENT, 1)
        text = hover.label
        row = self._model.rows[hover.timezone_index] if hover.timezone_index < len(
            self._model.rows) else None
        if row is not None and row.cells:
            text = f"{text}\n{row.cells[hover.hour].title}"
        x = self._grid.winfo_rootx() + int(hover.position[0] - self._grid.canvasx(0))
        y = self._grid.winfo_rooty() + int(hover.position[1] - self._grid.canvasy(0))
        self._tooltip.show_at(x, y, text)

    # ------------------------------------------------------------------
    # Drag-reorder
    # ------------------------------------------------------------------
    def _handle_centers(self) -> list[float]:
        size = ROW_H if self.orientation is Orientation.HORIZONTAL else COL_W
        return [i * size + size / 2 for i in range(self.controller.layout.row_count)]

    def _drag_canvas(self) -> tk.Canvas:
        return self._info if self.orientation is Orientation.HORIZONTAL else self._grid

    def _show_drag(self, drag: DragState | None) -> None:
        canvas = self._drag_canvas()
        canvas.delete("dropmark")
        if drag is None:
            return
        i = drag.candidate_index
        if self.orientation is Orientation.HORIZONTAL:
            box = (1, i * ROW_H + 1, INFO_W - 1, (i + 1) * ROW_H - 1)
        else:
            box = (i * COL_W + 1, 1, (i + 1) * COL_W - 1, HEADER_H - 1)
        canvas.create_rectangle(*box, outline=ACCENT, width=2, dash=(4, 2), tags=("dropmark",))

    def _tagged_index(self, canvas: tk.Canvas, prefix: str) -> int | None:
        for tag in canvas.gettags("current"):
            if tag.startswith(prefix) and tag[len(prefix):].isdigit():
                return int(tag[len(prefix):])
        return None

    def _on_handle_press(self, event: tk.Event) -> None:
        canvas = event.widget
        index = self._tagged_index(canvas, "handle")
        if index is None:
            return
        x, y = canvas.canvasx(event.x), canvas.canvasy(event.y)
        self.controller.drag_start(index, self._handle_centers(), x, y)

    def _on_remove_press(self, event: tk.Event) -> None:
        index = self._tagged_index(event.widget, "remove")
        timezones = self.app.state.timezones
        if index is not None and index < len(timezones):
            self.app.remove_timezone(timezones[index].id)

    # ------------------------------------------------------------------
    # Grid input bindings
    # ------------------------------------------------------------------
    def _bind_grid_events(self) -> None:
        for canvas in (self._grid, self._info):
            canvas.tag_bind("handle", "<ButtonPress-1>", self._on_handle_press)
            canvas.tag_bind("remove", "<ButtonPress-1>", self._on_remove_press)
            canvas.tag_bind("handle", "<Enter>", lambda _e, c=canvas: c.configure(cursor="fleur"))
            canvas.tag_bind("handle", "<Leave>", lambda _e, c=canvas: c.configure(cursor=""))
            canvas.bind("<MouseWheel>", self._on_wheel)
            canvas.bind("<Button-4>", self._on_wheel)
            canvas.bind("<Button-5>", self._on_wheel)
        self._info.bind("<B1-Motion>", self._on_info_motion)
        self._info.bind("<ButtonRelease-1>", self._on_info_release)
        self._grid.bind("<Motion>", self._on_grid_motion)
        self._grid.bind("<B1-Motion>", self._on_grid_drag_motion)
        self._grid.bind("<ButtonPress-1>", self._on_grid_press)
        self._grid.bind("<ButtonRelease-1>", self._on_grid_release)
        self._grid.bind("<Leave>", self._on_grid_leave)

    def _canvas_point(self, event: tk.Event) -> tuple[float, float]:
        canvas = event.widget
        return canvas.canvasx(event.x), canvas.canvasy(event.y)

    def _dragging(self) -> bool:
        return self.controller.state is InteractionState.DRAGGING_REORDER

    def _on_info_motion(self, event: tk.Event) -> None:
        if self._dragging():
            self.controller.drag_move(*self._canvas_point(event))

    def _on_info_release(self, event: tk.Event) -> None:
        if self._dragging():
            self.controller.drag_end(*self._canvas_point(event))

    def _on_grid_motion(self, event: tk.Event) -> None:
        if not self._touch_mode:
            self.controller.pointer_move(*self._canvas_point(event))

    def _on_grid_drag_motion(self, event: tk.Event) -> None:
        point = self._canvas_point(event)
        if self._dragging():
            self.controller.drag_move(*point)
        elif self._touch_mode:
            if not self.controller.touch_move(*point):
                self._grid.scan_dragto(event.x, event.y, gain=1)
        else:
            self.controller.pointer_move(*point)

    def _on_grid_press(self, event: tk.Event) -> None:
        self._grid.focus_set()
        if self._dragging():
            return
        point = self._canvas_point(event)
        if self._touch_mode:
            self._grid.scan_mark(event.x, event.y)
            self.controller.touch_start(*point)
        else:
            self.controller.pointer_press(*point)

    def _on_grid_release(self, event: tk.Event) -> None:
        point = self._canvas_point(event)
        if self._dragging():
            self.controller.drag_end(*point)
        elif self._touch_mode:
            self.controller.touch_end(*point)
        else:
            self.controller.pointer_release(*point)

    def _on_grid_leave(self, _event: tk.Event) -> None:
        if not self._dragging() and not self._touch_mode:
            self.controller.pointer_leave()

    # ------------------------------------------------------------------
    # Keyboard
    # ------------------------------------------------------------------
    def _on_key(self, event: tk.Event) -> None:
        if isinstance(self.root.focus_get(), (tk.Entry, tk.Listbox)):
            return
        self.controller.key(event.keysym)

    def _on_root_click(self, event: tk.Event) -> None:
        """A click anywhere outside the grid closes the summary."""
        if event.widget in (self._grid, self._info):
            return
        self.controller.dismiss()

    def _on_escape(self, _event: tk.Event) -> None:
        """ESC closes the summary first, then clears search, then hides."""
        if self.controller.key("Escape"):
            return
        if self._search_var.get():
            self._clear_search()
        else:
            self.hide()

    # ------------------------------------------------------------------
    # Search / autocomplete
    # ------------------------------------------------------------------
    def _on_search_change(self) -> None:
        self._search_results = self.search_index.search(self._search_var.get())
        self._dropdown.delete(0, "end")
        if not self._search_results:
            self._dropdown.place_forget()
            return
        for r in self._search_results:
            self._dropdown.insert(
                "end", f"{r.display_name}  ·  {r.timezone_id}   {r.current_time} {r.abbreviation}")
        self._dropdown.configure(height=len(self._search_results))
        self._dropdown.place(in_=self._search_entry, x=0, rely=1.0, relwidth=1.6)
        self._dropdown.lift()

    def _focus_dropdown(self, _event: tk.Event) -> str:
        if self._search_results:
            self._dropdown.focus_set()
            self._dropdown.selection_clear(0, "end")
            self._dropdown.selection_set(0)
            self._dropdown.activate(0)
        return "break"

    def _on_dropdown_click(self, _event: tk.Event) -> None:
        selection = self._dropdown.curselection()
        if selection:
            self._commit_search(selection[0])

    def _commit_search(self, index: int) -> None:
        if not 0 <= index < len(self._search_results):
            return
        result = self._search_results[index]
        self._clear_search()
        pair = (result.display_name, result.timezone_id)
        if any((t.display_name, t.timezone_id) == pair for t in self.app.state.timezones):
            logger.info("%s (%s) is already tracked", *pair)
            return
        self.app.add_timezone(*pair)

    def _clear_search(self, _event: tk.Event | None = None) -> str:
        self._search_var.set("")
        self._dropdown.place_forget()
        self._search_results = []
        return "break"

    # ------------------------------------------------------------------
    # Date navigation
    # ------------------------------------------------------------------
    def _navigate(self, days: int) -> None:
        self.app.set_selected_date(self.app.state.selected_date + timedelta(days=days))

    def _on_date_entry(self, _event: tk.Event) -> None:
        text = self._date_var.get().strip()
        try:
            selected = date.fromisoformat(text)
        except ValueError:
            self._date_var.set(self.app.state.selected_date.isoformat())
            return
        if selected != self.app.state.selected_date:
            self.app.set_selected_date(selected)

    def copy_link(self) -> None:
        if self.app.location is None:
            return
        self.root.clipboard_clear()
        self.root.clipboard_append(self.app.location.url)

    # ------------------------------------------------------------------
    # Time summary
    # ------------------------------------------------------------------
    def _sync_summary(self, state: SchedulerState) -> None:
        if state.selected_slot is None:
            if self._summary_win is not None:
                self._summary_win.destroy()
                self._summary_win = None
                self._summary_label = None
            return
        summary = summarize_slot(state, self.time_service, state.selected_slot)
        if self._summary_win is None:
            win = tk.Toplevel(self.root)
            win.title("Time summary")
            win.resizable(False, False)
            win.attributes("-topmost", True)
            win.transient(self.root)
            frame = tk.Frame(win, padx=12, pady=8)
            frame.pack()
            self._summary_label = tk.Label(frame, font=self.font_normal, justify="left")
            self._summary_label.pack(anchor="w")
            btns = tk.Frame(frame)
            btns.pack(pady=(8, 0))
            tk.Button(btns, text="Copy", width=8,
                      command=lambda: self._copy_summary()).pack(side="left", padx=4)
            tk.Button(btns, text="Copy HTML", width=10,
                      command=lambda: self._copy_summary(as_html=True)).pack(side="left", padx=4)
            tk.Button(btns, text="Close", width=8,
                      command=lambda: self.app.set_selected_slot(None)).pack(side="left", padx=4)
            win.protocol("WM_DELETE_WINDOW", lambda: self.app.set_selected_slot(None))
            win.bind("<Escape>", lambda _e: self.app.set_selected_slot(None))
            self._summary_win = win
        self._summary_label.configure(text=summary.text)

    def _copy_summary(self, as_html: bool = False) -> None:
        slot = self.app.state.selected_slot
        if slot is None:
            return
        self.root.clipboard_clear()
        summary = summarize_slot(self.app.state, self.time_service, slot)
        self.root.clipboard_append(summary.html if as_html else summary.text)

    # ------------------------------------------------------------------
    # Settings dialog
    # ------------------------------------------------------------------
    def open_settings(self) -> None:
        dlg = tk.Toplevel(self.root)
        dlg.title("Settings")
        dlg.resizable(False, False)
        dlg.attributes("-topmost", True)
        dlg.grab_set()

        frame = tk.Frame(dlg, padx=12, pady=8)
        frame.pack()

        state = self.app.state
        tk.Label(frame, text="Work hours start:", font=self.font_normal).grid(
            row=0, column=0, sticky="w", pady=4,
        )
        spin_start = tk.Spinbox(frame, from_=0, to=23, width=4, font=self.font_normal)
        spin_start.delete(0, "end")
        spin_start.insert(0, str(state.work_hour_start))
        spin_start.grid(row=0, column=1, padx=(8, 0), pady=4)

        tk.Label(frame, text="Work hours end:", font=self.font_normal).grid(
            row=1, column=0, sticky="w", pady=4,
        )
        spin_end = tk.Spinbox(frame, from_=1, to=24, width=4, font=self.font_normal)
        spin_end.delete(0, "end")
        spin_end.insert(0, str(state.work_hour_end))
        spin_end.grid(row=1, column=1, padx=(8, 0), pady=4)

        touch_var = tk.BooleanVar(value=self._touch_mode)
        tk.Checkbutton(
            frame, text="Touch screen (hold to preview)", variable=touch_var,
            font=self.font_normal,
        ).grid(row=2, column=0, columnspan=2, sticky="w", pady=4)

        btn_frame = tk.Frame(frame)
        btn_frame.grid(row=3, column=0, columnspan=2, pady=(8, 0))

        def on_ok() -> None:
            try:
                start = int(spin_start.get())
                end = int(spin_end.get())
            except ValueError:
                return
            if not valid_work_hours(start, end):
                return
            self._touch_mode = touch_var.get()
            self.controller.touch_cancel()
            save_settings({"touch_mode": self._touch_mode}, self._store)
            dlg.destroy()
            if (start, end) != (state.work_hour_start, state.work_hour_end):
                self.app.set_work_hours(start, end)

        tk.Button(btn_frame, text="OK", width=8, command=on_ok).pack(side="left", padx=4)
        tk.Button(btn_frame, text="Cancel", width=8, command=dlg.destroy).pack(side="left", padx=4)

    # ------------------------------------------------------------------
    # Resize handling: orientation follows the window shape
    # ------------------------------------------------------------------
    def _on_configure(self, event: tk.Event) -> None:
        if event.widget is not self.root:
            return
        # Track size (persisted on hide)
        self._saved_width = self.root.winfo_width()
        self._saved_height = self.root.winfo_height()
        self.controller.viewport_resized(self._saved_width, self._saved_height)

    def _on_orientation(self, orientation: Orientation) -> None:
        self.controller.layout = layout_for(orientation, len(self.app.state.timezones))
        self._grid.xview_moveto(0)
        self._grid.yview_moveto(0)
        self._paint()
        self._scroll_to_now()

    # ------------------------------------------------------------------
    # Persist window size
    # ------------------------------------------------------------------
    def _persist_size(self) -> None:
        try:
            save_settings({"window_width": self._saved_width,
                           "window_height": self._saved_height}, self._store)
        except OSError as e:
            logger.error("Could not save window size: %s", e)

    # ------------------------------------------------------------------
    # Show / Hide / Toggle
    # ------------------------------------------------------------------
    def toggle(self) -> None:
        if self.root.state() == "withdrawn" or not self.root.winfo_viewable():
            self.show()
        else:
            self.hide()

    def show(self) -> None:
        self.root.deiconify()
        self.root.update_idletasks()
        if self._saved_width is not None and self._saved_height is not None:
            self._position_window(override_size=(self._saved_width, self._saved_height))
        else:
            self._position_window()
        self._scroll_to_now()
        self.root.lift()
        self.root.focus_force()

    def hide(self) -> None:
        self.controller.touch_cancel()
        self._tooltip.hide()
        if self._saved_width is not None and self._saved_height is not None:
            self._persist_size()
        self.root.withdraw()

    def close(self) -> None:
        self._ticker.stop()
        self._unsubscribe()
        self.root.destroy()

    # ------------------------------------------------------------------
    # Position bottom-right above taskbar
    # ------------------------------------------------------------------
    def _work_area(self) -> tuple[int, int]:
        windll = getattr(ctypes, "windll", None)
        if windll is not None:
            import ctypes.wintypes
            rect = ctypes.wintypes.RECT()
            windll.user32.SystemParametersInfoW(0x0030, 0, ctypes.byref(rect), 0)
            return rect.right, rect.bottom
        return self.root.winfo_screenwidth(), self.root.winfo_screenheight()

    def _position_window(self, override_size: tuple[int, int] | None = None) -> None:
        self.root.update_idletasks()
        work_right, work_bottom = self._work_area()

        if override_size:
            win_w, win_h = override_size
        else:
            win_w = min(1100, work_right - 24)
            win_h = min(520, work_bottom - 24)

        x = max(0, work_right - win_w - 12)
        y = max(0, work_bottom - win_h - 12)
        self.root.geometry(f"{win_w}x{win_h}+{x}+{y}")
