"""System-tray icon setup via pystray."""

from typing import Callable

import pystray
from PIL import Image
from pystray import MenuItem, Menu


def create_tray(
    icon_image: Image.Image,
    on_show: Callable[[], None],
    on_exit: Callable[[], None],
    on_settings: Callable[[], None] | None = None,
    on_copy_link: Callable[[], None] | None = None,
    title: str = "Time Scheduler",
) -> pystray.Icon:
    """Build and return a pystray Icon (not yet started)."""
    items: list[MenuItem | Menu] = [
        MenuItem("Show Scheduler", lambda _icon, _item: on_show(), default=True),
    ]
    if on_copy_link is not None:
        items.append(MenuItem("Copy Link", lambda _icon, _item: on_copy_link()))
    if on_settings is not None:
        items.append(MenuItem("Settings", lambda _icon, _item: on_settings()))
    items.append(Menu.SEPARATOR)
    items.append(MenuItem("Exit", lambda _icon, _item: on_exit()))
    menu = Menu(*items)
    return pystray.Icon("time-scheduler", icon_image, title, menu)


def tray_title(reference_name: str | None, current_time: str | None) -> str:
    """Hover text: the reference timezone's current time, when there is one."""
    if not reference_name or not current_time:
        return "Time Scheduler"
    return f"Time Scheduler – {reference_name} {current_time}"


def refresh_tray(icon: pystray.Icon, image: Image.Image, title: str) -> None:
    """Swap the face and hover text of a running icon."""
    icon.icon = image
    icon.title = title
