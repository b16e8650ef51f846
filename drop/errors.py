from engine.assets import AssetLoadError
from engine.surface import SnapshotError


class PhotoDropError(Exception):
    pass


class ConfigurationError(PhotoDropError, ValueError):
    """Raised at setup for a missing surface, no images, or a bad option."""


__all__ = ["PhotoDropError", "ConfigurationError", "AssetLoadError", "SnapshotError"]
