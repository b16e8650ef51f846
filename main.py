import sys

from drop.app import PhotoDrop
from drop.config import DropConfig
from drop.errors import AssetLoadError
from engine.engine import CoreEngine
from lib import tlog


def main(argv=None):
    sources = list(argv if argv is not None else sys.argv[1:])
    if not sources:
        print("usage: python main.py IMAGE [IMAGE ...]", file=sys.stderr)
        return 2

    config = DropConfig(images=sources, randomize_order=True)

    # The engine owns the window and the raster surface
    engine = CoreEngine(width=1280, height=720, title="photodrop", fill_to_window=config.fill_to_window)
    config.surface = engine.surface

    drop = PhotoDrop(config)
    drop.on_ready(lambda d: d.start())
    engine.add_component(drop)

    try:
        engine.run(tick_interval_ms=config.tick_interval_ms)
    except AssetLoadError as e:
        tlog.err(f"Fatal: {e}")
        print(f"photodrop: {e}", file=sys.stderr)
        return 1
    finally:
        tlog.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
