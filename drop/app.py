import random
from typing import Callable, Optional

import skia

from drop.config import DropConfig
from drop.director import SceneDirector
from drop.errors import ConfigurationError, PhotoDropError
from drop.falling import FallingObject
from engine.animation import now_ms
from engine.assets import ImageLoader
from engine.component import Component, EventChannel, EventType
from engine.surface import SkiaSurface
from lib import tlog

SURFACE_METHODS = ("fill", "fill_rect", "save", "restore", "scoped", "translate", "rotate",
                   "scale", "set_alpha", "draw_image", "read_snapshot", "write_snapshot")


def resolve_surface(handle):
    if handle is None:
        raise ConfigurationError("A drawing surface is required (surface=...)")
    if isinstance(handle, skia.Surface):
        return SkiaSurface.wrap(handle)
    missing = [m for m in SURFACE_METHODS if not hasattr(handle, m)]
    if missing:
        raise ConfigurationError(
            f"{type(handle).__name__} is not a drawing surface (missing {', '.join(missing)})"
        )
    return handle


class PhotoDrop(Component):
    """Drops preloaded images onto a surface, one every spawn interval.

    Setup validates the configuration and starts preloading. Nothing is
    spawned until every image has resolved; ``on_ready`` callbacks then fire
    once with this instance. Mount it on a ``CoreEngine`` (or call
    ``on_update`` yourself) to deliver clock pulses.
    """

    def __init__(
        self,
        config,
        clock: Callable[[], float] = now_ms,
        rng: Optional[random.Random] = None,
        loader: Optional[ImageLoader] = None,
    ):
        super().__init__("PhotoDrop")
        if isinstance(config, dict):
            config = DropConfig.from_mapping(config)
        if config.log_path:
            tlog.init(config.log_path)

        with tlog.Span("photodrop_setup"):
            self.config = config.validate()
            self.surface = resolve_surface(config.surface)
            self.clock = clock
            self.rng = rng or random.Random()
            self.director: Optional[SceneDirector] = None
            self.running = False
            self._start_requested = False
            self.ready_channel = EventChannel("ready")

            self.loader = loader or ImageLoader(
                config.images, timeout_ms=config.load_timeout_ms, policy=config.asset_policy
            )
            self.loader.ready.subscribe(self._on_images_ready, once=True)
            self.loader.start()

    @property
    def is_ready(self) -> bool:
        return self.director is not None

    def on_ready(self, callback: Callable[["PhotoDrop"], None]):
        if self.is_ready:
            callback(self)
        else:
            self.ready_channel.subscribe(callback, once=True)

    def _on_images_ready(self, images):
        self.director = SceneDirector(images, self.surface, self.config, clock=self.clock, rng=self.rng)
        tlog.info(f"PhotoDrop: ready with {len(images)} images")
        self.ready_channel.publish(self)
        if self._start_requested and not self.running:
            self.start()

    def start(self):
        if self.running:
            return
        if not self.is_ready:
            tlog.info("PhotoDrop: start requested before images are ready, deferring")
            self._start_requested = True
            return
        self.director.start()
        self.running = True

    def stop(self):
        tlog.info("PhotoDrop: stop() is a no-op; halt the clock pulses to stop")

    def add_object(self, **overrides) -> FallingObject:
        if not self.is_ready:
            raise PhotoDropError("Images are still loading; add objects from an on_ready callback")
        return self.director.add_object(**overrides)

    def poll(self):
        if not self.is_ready:
            self.loader.poll()

    def tick(self, now: Optional[float] = None):
        if self.running:
            self.director.tick(now)

    def on_update(self, dt: float):
        self.poll()
        self.tick()

    def on_event(self, event) -> bool:
        if event.type == EventType.RESIZE and self.director is not None:
            self.director.on_resize()
        return False
