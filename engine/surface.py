import math
from contextlib import contextmanager

import numpy as np
import skia


class SnapshotError(RuntimeError):
    """A pixel snapshot could not be read from or written to the surface."""


def parse_color(value) -> int:
    """Accept ``#rgb``, ``#rrggbb``, ``#rrggbbaa`` or a skia color int."""
    if isinstance(value, int):
        return value
    if not isinstance(value, str) or not value.startswith("#"):
        raise ValueError(f"Unsupported color value: {value!r}")

    digits = value[1:]
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    if len(digits) == 6:
        digits += "ff"
    if len(digits) != 8:
        raise ValueError(f"Unsupported color value: {value!r}")
    try:
        r, g, b, a = (int(digits[i:i + 2], 16) for i in range(0, 8, 2))
    except ValueError as e:
        raise ValueError(f"Unsupported color value: {value!r}") from e
    return skia.Color(r, g, b, a)


class SkiaSurface:
    """Immediate-mode 2D surface over a raster ``skia.Surface``.

    Skia has no global alpha, so it is tracked here and saved/restored
    together with the canvas matrix.
    """

    SNAPSHOT_COLOR_TYPE = skia.kRGBA_8888_ColorType
    SNAPSHOT_ALPHA_TYPE = skia.kPremul_AlphaType

    def __init__(self, width: int, height: int):
        self.skia = None
        self.canvas = None
        self._alpha = 1.0
        self._alpha_stack = []
        self.resize(width, height)

    @classmethod
    def wrap(cls, surface: skia.Surface) -> "SkiaSurface":
        wrapped = cls.__new__(cls)
        wrapped._alpha = 1.0
        wrapped._alpha_stack = []
        wrapped.skia = surface
        wrapped.canvas = surface.getCanvas()
        return wrapped

    @property
    def width(self) -> int:
        return self.skia.width()

    @property
    def height(self) -> int:
        return self.skia.height()

    @property
    def alpha(self) -> float:
        return self._alpha

    def resize(self, width: int, height: int):
        if width <= 0 or height <= 0:
            raise ValueError(f"Surface size must be positive, got {width}x{height}")
        self.skia = skia.Surface.MakeRasterN32Premul(width, height)
        self.canvas = self.skia.getCanvas()
        self._alpha = 1.0
        self._alpha_stack = []

    # --- state ---

    def save(self):
        self.canvas.save()
        self._alpha_stack.append(self._alpha)

    def restore(self):
        self.canvas.restore()
        if self._alpha_stack:
            self._alpha = self._alpha_stack.pop()

    @contextmanager
    def scoped(self):
        self.save()
        try:
            yield self
        finally:
            self.restore()

    def translate(self, dx: float, dy: float):
        self.canvas.translate(dx, dy)

    def rotate(self, radians: float):
        self.canvas.rotate(math.degrees(radians))

    def scale(self, sx: float, sy: float):
        self.canvas.scale(sx, sy)

    def set_alpha(self, alpha: float):
        self._alpha = max(0.0, min(1.0, alpha))

    # --- drawing ---

    def fill(self, color):
        self.canvas.save()
        self.canvas.resetMatrix()
        self.canvas.clear(parse_color(color))
        self.canvas.restore()

    def fill_rect(self, x: float, y: float, w: float, h: float, color):
        col = skia.Color4f.FromColor(parse_color(color))
        col.fA = col.fA * self._alpha
        paint = skia.Paint(Color4f=col, Style=skia.Paint.kFill_Style, AntiAlias=True)
        self.canvas.drawRect(skia.Rect.MakeXYWH(x, y, w, h), paint)

    def draw_image(self, image: skia.Image, x: float = 0.0, y: float = 0.0):
        paint = skia.Paint(AntiAlias=True)
        paint.setAlphaf(self._alpha)
        self.canvas.drawImage(image, x, y, skia.SamplingOptions(), paint)

    # --- pixels ---

    def read_snapshot(self) -> np.ndarray:
        try:
            pixels = self.skia.toarray(
                colorType=self.SNAPSHOT_COLOR_TYPE, alphaType=self.SNAPSHOT_ALPHA_TYPE
            )
        except (RuntimeError, ValueError) as e:
            raise SnapshotError(f"Snapshot read failed: {e}") from e
        if pixels is None or pixels.shape[:2] != (self.height, self.width):
            raise SnapshotError("Snapshot read returned an unexpected pixel buffer")
        return pixels

    def write_snapshot(self, pixels: np.ndarray, x: int = 0, y: int = 0):
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise SnapshotError(f"Snapshot has unexpected shape {pixels.shape}")
        h, w = pixels.shape[:2]
        if (w, h) != (self.width, self.height):
            raise SnapshotError(
                f"Snapshot is {w}x{h} but the surface is {self.width}x{self.height}"
            )
        info = skia.ImageInfo.Make(w, h, self.SNAPSHOT_COLOR_TYPE, self.SNAPSHOT_ALPHA_TYPE)
        data = np.ascontiguousarray(pixels, dtype=np.uint8)
        if not self.canvas.writePixels(info, data, w * 4, x, y):
            raise SnapshotError("Snapshot write was rejected by the canvas")

    def to_bytes(self) -> bytes:
        return self.read_snapshot().tobytes()

    def __repr__(self):
        return f"SkiaSurface({self.width}x{self.height})"
