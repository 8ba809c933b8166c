"""Entry point: pystray runs on a daemon thread, tkinter on the main thread."""

import argparse
import ctypes
import logging
import os
import sys
import threading
from datetime import datetime, timezone

from app_state import AppState
from grid_window import SchedulerWindow, TkScheduler
from icon_gen import create_icon_image
from interaction import MinuteTicker
from settings import KeyValueStore
from time_service import TimeService, UnknownTimezoneError
from tray_icon import create_tray, refresh_tray, tray_title
from url_state import UrlLocation

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="timescheduler",
        description="Compare timezones on a 24-hour grid.",
    )
    parser.add_argument(
        "url", nargs="?", default="",
        help="shared link or query string, e.g. '?tz=London:Europe/London&date=2026-12-25'",
    )
    parser.add_argument("--no-tray", action="store_true",
                        help="open the window directly instead of starting in the tray")
    parser.add_argument("--log-level", default=os.environ.get("TIMESCHEDULER_LOG_LEVEL", "WARNING"),
                        help="logging level (default: %(default)s)")
    return parser.parse_args(argv)


def _tray_face(app: AppState, time_service: TimeService):
    """Icon image and hover text for the reference timezone's current time."""
    ref = app.state.reference
    if ref is None:
        return create_icon_image(), tray_title(None, None)
    try:
        clock = time_service.wall_clock(ref.timezone_id, datetime.now(timezone.utc))
    except UnknownTimezoneError:
        return create_icon_image(), tray_title(ref.display_name, None)
    return (create_icon_image(clock.hour, clock.minute),
            tray_title(ref.display_name, f"{clock.hour:02d}:{clock.minute:02d}"))


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[logging.StreamHandler(stream=sys.stderr)],
    )

    # DPI awareness so positions / fonts are crisp on Hi-DPI monitors
    windll = getattr(ctypes, "windll", None)
    if windll is not None:
        try:
            windll.shcore.SetProcessDpiAwareness(1)
        except (AttributeError, OSError):
            logger.debug("DPI awareness not available")

    store = KeyValueStore()
    location = UrlLocation(args.url)
    app = AppState.from_sources(store=store, location=location)
    time_service = TimeService()
    win = SchedulerWindow(app, time_service, store=store)

    if args.no_tray:
        win.root.protocol("WM_DELETE_WINDOW", win.close)
        win.show()
        win.root.mainloop()
        return

    icon_image, title = _tray_face(app, time_service)

    # Callbacks marshalled onto the tkinter main thread
    def on_show() -> None:
        win.root.after(0, win.toggle)

    def on_exit() -> None:
        def _quit() -> None:
            ticker.stop()
            tray.stop()
            win.close()
        win.root.after(0, _quit)

    def on_settings() -> None:
        win.root.after(0, win.open_settings)

    def on_copy_link() -> None:
        win.root.after(0, win.copy_link)

    tray = create_tray(icon_image, on_show, on_exit,
                       on_settings=on_settings, on_copy_link=on_copy_link,
                       title=title)

    # Run pystray in a daemon thread so it doesn't block tkinter
    tray_thread = threading.Thread(target=tray.run, daemon=True)
    tray_thread.start()

    # Keep the clock face current; a tracked-list change swaps the reference zone.
    def update_tray(*_args) -> None:
        refresh_tray(tray, *_tray_face(app, time_service))

    ticker = MinuteTicker(TkScheduler(win.root), update_tray)
    ticker.start()
    app.subscribe(update_tray)

    if args.url:
        win.show()
    # tkinter main loop on the main thread
    win.root.mainloop()


if __name__ == "__main__":
    main()
