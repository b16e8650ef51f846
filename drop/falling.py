from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from engine.animation import lerp, now_ms, progress
from engine.component import EventChannel

# Opacity while airborne; reaches 1.0 at rest
START_ALPHA = 0.5


@dataclass(frozen=True)
class FallTransform:
    fraction: float
    scale: float
    width: float
    height: float
    rotation: float
    alpha: float


class FallingObject:
    """One image dropping onto the surface.

    Idle -> Falling on ``start()``; Falling -> Landed the first time
    ``advance()`` (or ``draw()``) sees the fall duration elapsed. Landing is
    terminal and notifies ``on_landed`` subscribers exactly once.
    """

    def __init__(
        self,
        image,
        x_pos: float = 0.0,
        y_pos: float = 0.0,
        end_rotation: float = 0.0,
        scale_fraction: float = 0.5,
        fall_duration_ms: float = 3000,
        start_width: Optional[float] = None,
        start_height: Optional[float] = None,
        has_border: bool = True,
        border_color="#ffffff",
        border_width: float = 15,
        auto_start: bool = True,
        clock: Callable[[], float] = now_ms,
    ):
        self.image = image
        self.x_pos = x_pos
        self.y_pos = y_pos
        self.end_rotation = end_rotation
        self.scale_fraction = scale_fraction
        self.fall_duration_ms = fall_duration_ms
        self.start_width = image.width() if start_width is None else start_width
        self.start_height = image.height() if start_height is None else start_height
        self.has_border = has_border
        self.border_color = border_color
        self.border_width = border_width
        self.clock = clock

        self.started = False
        self.landed = False
        self.started_at: Optional[float] = None
        self.landing_order: Optional[int] = None
        self.landed_channel = EventChannel("landed")

        if auto_start:
            self.start()

    @property
    def is_moving(self) -> bool:
        return self.started and not self.landed

    def start(self, now: Optional[float] = None):
        if self.started:
            return
        self.started = True
        self.started_at = self.clock() if now is None else now

    def on_landed(self, callback: Callable[[], None]) -> Callable[[], None]:
        return self.landed_channel.subscribe(callback)

    def elapsed(self, now: Optional[float] = None) -> float:
        if not self.started:
            return 0.0
        return (self.clock() if now is None else now) - self.started_at

    def fraction(self, now: Optional[float] = None) -> float:
        if not self.started:
            return 0.0
        return progress(self.elapsed(now), self.fall_duration_ms)

    def transform(self, now: Optional[float] = None) -> FallTransform:
        f = self.fraction(now)
        scale = lerp(1.0, 1.0 - self.scale_fraction, f)
        return FallTransform(
            fraction=f,
            scale=scale,
            width=self.start_width * scale,
            height=self.start_height * scale,
            rotation=lerp(0.0, self.end_rotation, f),
            alpha=lerp(START_ALPHA, 1.0, f),
        )

    def advance(self, now: Optional[float] = None) -> bool:
        """Land if the fall is over. True only on the call that lands it."""
        if not self.is_moving:
            return False
        if self.elapsed(now) < self.fall_duration_ms:
            return False
        self.landed = True
        self.landed_channel.publish()
        return True

    def border_rects(self) -> List[Tuple[float, float, float, float]]:
        """Frame strips in image-local coordinates: left, right, top, bottom.

        Drawn as four separate fills so translucent corners are not blended twice.
        """
        bw, w, h = self.border_width, self.start_width, self.start_height
        return [
            (-bw, -bw, bw, h + 2 * bw),
            (w, -bw, bw, h + 2 * bw),
            (0, -bw, w, bw),
            (0, h, w, bw),
        ]

    def draw(self, surface, now: Optional[float] = None):
        if not self.started:
            return
        now = self.clock() if now is None else now
        self.advance(now)
        t = self.transform(now)

        with surface.scoped():
            surface.set_alpha(t.alpha)
            surface.translate(self.x_pos, self.y_pos)
            surface.rotate(t.rotation)
            surface.translate(-t.width / 2, -t.height / 2)
            surface.scale(t.scale, t.scale)

            if self.has_border:
                for x, y, w, h in self.border_rects():
                    surface.fill_rect(x, y, w, h, self.border_color)

            surface.draw_image(self.image, 0, 0)

    def __repr__(self):
        state = "landed" if self.landed else "falling" if self.started else "idle"
        return f"FallingObject({state} at {self.x_pos:.0f},{self.y_pos:.0f})"
