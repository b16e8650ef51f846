import math
import random
from dataclasses import dataclass
from typing import Callable, List, Optional

from drop.config import DropConfig
from drop.errors import ConfigurationError, SnapshotError
from drop.falling import FallingObject
from drop.registry import ObjectRegistry
from engine.animation import now_ms
from lib import tlog

MAX_END_ROTATION = math.pi / 4


class SpawnPolicy:
    """Chooses which image the next spawn uses.

    Random order picks uniformly; otherwise a round-robin cursor starts at 0
    and wraps at ``count``.
    """

    def __init__(self, count: int, randomize: bool, rng: random.Random):
        if count <= 0:
            raise ConfigurationError("SpawnPolicy needs at least one image")
        self.count = count
        self.randomize = randomize
        self.rng = rng
        self.cursor = 0

    def next_index(self) -> int:
        if self.randomize:
            return self.rng.randrange(self.count)
        index = self.cursor
        self.cursor = (self.cursor + 1) % self.count
        return index


@dataclass
class DirectorStats:
    ticks: int = 0
    spawns: int = 0
    landings: int = 0
    key_frames: int = 0
    object_draws: int = 0
    settled_redraws: int = 0
    degraded: bool = False


class SceneDirector:
    """Owns the scene: spawning, the per-tick redraw and the key-frame cache.

    Each tick the settled layer is either replayed from the key-frame (cache
    on) or redrawn object by object in landing order (cache off), then the
    moving objects are drawn on top in registry order. The key-frame is
    captured right after objects landing this tick are drawn at rest, so it
    never contains anything still in motion and both modes produce the same
    pixels.
    """

    def __init__(
        self,
        images: List,
        surface,
        config: DropConfig,
        clock: Callable[[], float] = now_ms,
        rng: Optional[random.Random] = None,
    ):
        if surface is None:
            raise ConfigurationError("SceneDirector needs a drawing surface")
        if not images:
            raise ConfigurationError("SceneDirector needs at least one loaded image")

        self.images = list(images)
        self.surface = surface
        self.config = config
        self.clock = clock
        self.rng = rng or random.Random()
        self.policy = SpawnPolicy(len(self.images), config.randomize_order, self.rng)

        self.objects = ObjectRegistry()
        self.objects.on_landing(self._on_landing)

        self.key_frames_enabled = config.key_frames_enabled
        self.key_frame = None
        self.pending_snapshot = False
        self._rebuild_key_frame = False
        self._key_frame_order = 0

        self.last_spawn_at = self.clock()
        self.stats = DirectorStats()
        self._ticking = False
        self._deferred: List[FallingObject] = []

    def start(self):
        self.last_spawn_at = self.clock()
        self.surface.fill(self.config.background_color)
        tlog.info(
            f"SceneDirector: started | images={len(self.images)} "
            f"interval={self.config.spawn_interval_ms}ms key_frames={self.key_frames_enabled}"
        )

    # --- spawning ---

    def spawn(self, now: Optional[float] = None, **overrides) -> FallingObject:
        now = self.clock() if now is None else now
        margin = self.config.spawn_margin
        params = {
            "image": self.images[self.policy.next_index()],
            "end_rotation": self.rng.uniform(-MAX_END_ROTATION, MAX_END_ROTATION),
            "x_pos": self._random_coord(self.surface.width, margin),
            "y_pos": self._random_coord(self.surface.height, margin),
            "fall_duration_ms": self.config.fall_duration_ms,
        }
        params.update(overrides)
        auto_start = params.pop("auto_start", True)
        obj = FallingObject(clock=self.clock, auto_start=False, **params)
        if auto_start:
            obj.start(now)
        self.objects.add(obj)
        self.last_spawn_at = now
        self.stats.spawns += 1
        tlog.debug(f"SceneDirector: spawned {obj!r} rot={obj.end_rotation:.2f}")
        return obj

    def _random_coord(self, extent: float, margin: float) -> float:
        if extent <= 2 * margin:
            return extent / 2
        return self.rng.uniform(margin, extent - margin)

    def add_object(self, **overrides) -> FallingObject:
        """Inject an object outside the spawn policy.

        Unset attributes fall back to spawn defaults. ``image_index`` selects
        one of the loaded images. Called during a tick, the object joins the
        registry at the start of the next one.
        """
        if "image_index" in overrides:
            overrides["image"] = self.images[overrides.pop("image_index") % len(self.images)]
        overrides.setdefault("image", self.images[0])
        overrides.setdefault("x_pos", self.surface.width / 2)
        overrides.setdefault("y_pos", self.surface.height / 2)
        overrides.setdefault("fall_duration_ms", self.config.fall_duration_ms)
        overrides.setdefault("clock", self.clock)
        obj = FallingObject(**overrides)
        if self._ticking:
            self._deferred.append(obj)
        else:
            self.objects.add(obj)
        return obj

    def _flush_deferred(self):
        deferred, self._deferred = self._deferred, []
        for obj in deferred:
            self.objects.add(obj)

    # --- frame loop ---

    def _on_landing(self):
        self.stats.landings += 1
        if self.key_frames_enabled:
            self.pending_snapshot = True

    def on_resize(self):
        if self.key_frame is not None:
            tlog.info("SceneDirector: surface resized, rebuilding key-frame")
        self.key_frame = None
        self._rebuild_key_frame = self.key_frames_enabled

    def tick(self, now: Optional[float] = None):
        now = self.clock() if now is None else now
        self._ticking = True
        try:
            self._flush_deferred()
            if now - self.last_spawn_at > self.config.spawn_interval_ms:
                self.spawn(now)

            for obj in self.objects.advance(now):
                tlog.info(f"SceneDirector: {obj!r} landed")
            self._compose_settled(now)
            self._draw_all(self.objects.get_moving(), now)
            self.stats.ticks += 1
        finally:
            self._ticking = False

    def _compose_settled(self, now: float):
        settled = self.objects.get_settled()
        if self.key_frames_enabled:
            if self._key_frame_stale():
                self.on_resize()
            if self._rebuild_key_frame:
                self._rebuild_key_frame = False
                self.surface.fill(self.config.background_color)
                self._draw_all(settled, now)
                if self._take_key_frame(settled):
                    return
            elif self._replay_key_frame():
                if not self.pending_snapshot:
                    return
                fresh = [obj for obj in settled if obj.landing_order > self._key_frame_order]
                self._draw_all(fresh, now)
                if self._take_key_frame(settled):
                    return

        self.surface.fill(self.config.background_color)
        self.stats.settled_redraws += len(settled)
        self._draw_all(settled, now)

    def _key_frame_stale(self) -> bool:
        """True when the surface was resized without an on_resize() call."""
        if self.key_frame is None:
            return False
        return tuple(self.key_frame.shape[:2]) != (self.surface.height, self.surface.width)

    def _replay_key_frame(self) -> bool:
        if self.key_frame is None:
            self.surface.fill(self.config.background_color)
            return True
        try:
            self.surface.write_snapshot(self.key_frame, 0, 0)
        except SnapshotError as e:
            self._degrade(f"key-frame replay failed: {e}")
            return False
        return True

    def _take_key_frame(self, settled: List[FallingObject]) -> bool:
        with tlog.Span("key_frame"):
            try:
                self.key_frame = self.surface.read_snapshot()
            except SnapshotError as e:
                self._degrade(f"key-frame capture failed: {e}")
                return False
        self.pending_snapshot = False
        self._key_frame_order = max((obj.landing_order for obj in settled), default=0)
        self.stats.key_frames += 1
        tlog.debug(f"SceneDirector: key-frame holds {len(settled)} settled objects")
        return True

    def _degrade(self, reason: str):
        tlog.err(f"SceneDirector: {reason}; falling back to full redraws")
        self.key_frames_enabled = False
        self.key_frame = None
        self.pending_snapshot = False
        self._rebuild_key_frame = False
        self._key_frame_order = 0
        self.stats.degraded = True

    def _draw_all(self, objects: List[FallingObject], now: float):
        for obj in objects:
            with self.surface.scoped():
                obj.draw(self.surface, now)
            self.stats.object_draws += 1
