from dataclasses import dataclass, field, fields
from typing import Any, List, Optional

from drop.errors import ConfigurationError
from engine.assets import ImageLoader, is_remote
from engine.surface import parse_color
from lib import tlog

# Original option spellings, accepted by DropConfig.from_mapping
ALIASES = {
    "imageUrls": "images",
    "canvasId": "surface",
    "surfaceId": "surface",
    "surfaceHandle": "surface",
    "randomize": "randomize_order",
    "randomizeOrder": "randomize_order",
    "interval": "spawn_interval_ms",
    "spawnIntervalMs": "spawn_interval_ms",
    "fallDuration": "fall_duration_ms",
    "fallDurationMs": "fall_duration_ms",
    "backgroundColor": "background_color",
    "constrain": "constrain_to_surface",
    "constrainToSurface": "constrain_to_surface",
    "fillBody": "fill_to_window",
    "fillToWindow": "fill_to_window",
    "useKeyFrames": "use_key_frames",
    "useKeyFrameCache": "use_key_frames",
}


@dataclass
class DropConfig:
    images: List[str] = field(default_factory=list)
    surface: Any = None
    randomize_order: bool = True
    spawn_interval_ms: float = 4000
    fall_duration_ms: float = 3000
    background_color: Any = "#000000"
    # Reserved: spawn positions are always inset by spawn_margin
    constrain_to_surface: bool = True
    fill_to_window: bool = False
    use_key_frames: bool = True

    spawn_margin: float = 50
    tick_interval_ms: float = 50
    load_timeout_ms: float = 10000
    asset_policy: str = "fail"
    log_path: Optional[str] = None

    def __post_init__(self):
        self.images = list(self.images or [])
        # Derived once; pixels of remote images must not be read back
        self.key_frames_enabled = self.use_key_frames and not any(is_remote(s) for s in self.images)

    @classmethod
    def from_mapping(cls, options: dict) -> "DropConfig":
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in options.items():
            name = ALIASES.get(key, key)
            if name not in known:
                raise ConfigurationError(f"Unknown option '{key}'")
            kwargs[name] = value
        return cls(**kwargs)

    def validate(self) -> "DropConfig":
        if self.surface is None:
            raise ConfigurationError("A drawing surface is required (surface=...)")
        if not self.images:
            raise ConfigurationError("At least one image source is required (images=[...])")
        for name in ("spawn_interval_ms", "fall_duration_ms", "tick_interval_ms", "load_timeout_ms"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive number, got {value!r}")
        if self.spawn_margin < 0:
            raise ConfigurationError(f"spawn_margin must not be negative, got {self.spawn_margin!r}")
        if self.asset_policy not in ImageLoader.POLICIES:
            raise ConfigurationError(
                f"asset_policy must be one of {ImageLoader.POLICIES}, got {self.asset_policy!r}"
            )
        try:
            parse_color(self.background_color)
        except ValueError as e:
            raise ConfigurationError(f"background_color: {e}") from e

        if self.use_key_frames and not self.key_frames_enabled:
            tlog.warn("Config: Remote image sources found, key-frame cache disabled for this session")
        return self
