"""
Signature capture.
Strokes are rendered with Pillow and emitted as a PNG data URL after each stroke.
"""
import base64
import binascii
import io
from typing import Callable, List, Optional, Tuple

import structlog
from PIL import Image, ImageDraw, UnidentifiedImageError


logger = structlog.get_logger(__name__)

DATA_URL_PREFIX = "data:image/png;base64,"
INK = (30, 41, 59)
PEN_WIDTH = 2

Point = Tuple[float, float]


def decode_data_url(value: str) -> Optional[Image.Image]:
    """Decode a data URL (or bare base64) into an RGB image; None if unreadable."""
    if not value:
        return None
    raw = value.split(",", 1)[1] if value.startswith("data:") else value
    try:
        img = Image.open(io.BytesIO(base64.b64decode(raw)))
        img.load()
    except (binascii.Error, ValueError, UnidentifiedImageError, OSError) as e:
        logger.warning("signature_decode_failed", error=str(e))
        return None
    if img.mode in ("RGBA", "LA", "P"):
        img = img.convert("RGBA")
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[-1])
        return background
    return img.convert("RGB")


def encode_png(img: Image.Image) -> str:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return DATA_URL_PREFIX + base64.b64encode(buf.getvalue()).decode("ascii")


class SignaturePad:
    def __init__(
        self,
        on_change: Callable[[str], None],
        value: str = "",
        width: int = 400,
        height: int = 150,
    ):
        self.on_change = on_change
        self.width = width
        self.height = height
        self.strokes: List[List[Point]] = []
        self._current: Optional[List[Point]] = None
        # an existing signature becomes the background; it is not re-editable
        self._seed = decode_data_url(value)

    @property
    def drawing(self) -> bool:
        return self._current is not None

    @property
    def is_empty(self) -> bool:
        return self._seed is None and not self.strokes and not self._current

    def press(self, x: float, y: float) -> None:
        self._current = [(x, y)]

    def move(self, x: float, y: float) -> None:
        if self._current is None:
            return
        self._current.append((x, y))

    def release(self) -> None:
        if self._current is None:
            return
        self.strokes.append(self._current)
        self._current = None
        self.on_change(self.to_data_url())

    def clear(self) -> None:
        self.strokes = []
        self._current = None
        self._seed = None
        self.on_change("")

    def render(self) -> Image.Image:
        img = Image.new("RGB", (self.width, self.height), (255, 255, 255))
        if self._seed is not None:
            img.paste(self._seed.resize((self.width, self.height)))
        draw = ImageDraw.Draw(img)
        for stroke in self.strokes:
            if len(stroke) == 1:
                x, y = stroke[0]
                r = PEN_WIDTH / 2
                draw.ellipse([x - r, y - r, x + r, y + r], fill=INK)
            else:
                draw.line(stroke, fill=INK, width=PEN_WIDTH, joint="curve")
        return img

    def to_data_url(self) -> str:
        if self.is_empty:
            return ""
        return encode_png(self.render())
