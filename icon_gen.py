"""Generate the system-tray icon (64×64 PIL Image, in-memory)."""

import math

from PIL import Image, ImageDraw

SIZE = 64
RING = "#0078D4"


def _hand(draw: ImageDraw.ImageDraw, fraction: float, length: float, width: int) -> None:
    centre = SIZE / 2
    angle = 2 * math.pi * fraction - math.pi / 2
    end = (centre + length * math.cos(angle), centre + length * math.sin(angle))
    draw.line((centre, centre) + end, fill="black", width=width)


def create_icon_image(hour: int | None = None, minute: int = 0) -> Image.Image:
    """Return a 64×64 RGBA clock face showing the reference zone's time.

    Without an hour (no timezone tracked yet) the face has no hands.
    """
    img = Image.new("RGBA", (SIZE, SIZE), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    draw.ellipse((1, 1, SIZE - 2, SIZE - 2), fill="white", outline=RING, width=5)

    # Quarter-hour ticks
    for quarter in range(4):
        angle = quarter * math.pi / 2
        x = SIZE / 2 + 22 * math.cos(angle)
        y = SIZE / 2 + 22 * math.sin(angle)
        draw.ellipse((x - 2, y - 2, x + 2, y + 2), fill=RING)

    if hour is not None:
        _hand(draw, ((hour % 12) + minute / 60) / 12, 14, 5)
        _hand(draw, minute / 60, 22, 3)
    draw.ellipse((SIZE / 2 - 3, SIZE / 2 - 3, SIZE / 2 + 3, SIZE / 2 + 3), fill="black")
    return img
