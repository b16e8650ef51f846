import random

import pytest
import skia

from drop.app import PhotoDrop, resolve_surface
from drop.config import DropConfig
from drop.errors import AssetLoadError, ConfigurationError, PhotoDropError
from engine.assets import ImageLoader
from engine.component import Event, EventType
from engine.surface import SkiaSurface
from tests.fakes import GatedFetch, fake_decode, poll_until


def make_drop(surface, clock, fetch=None, policy="fail", **options):
    sources = options.pop("images", ["a", "b"])
    fetch = fetch or GatedFetch()
    loader = ImageLoader(sources, fetch=fetch, decode=fake_decode, policy=policy)
    config = DropConfig(images=sources, surface=surface, **options)
    return PhotoDrop(config, clock=clock, rng=random.Random(0), loader=loader), fetch


def wait_ready(drop):
    poll_until(drop.loader, lambda: drop.is_ready)


def test_ready_callbacks_fire_once_with_the_instance(surface, clock):
    drop, fetch = make_drop(surface, clock)
    seen = []
    drop.on_ready(seen.append)
    assert not drop.is_ready

    fetch.release("a", "b")
    wait_ready(drop)
    drop.poll()

    assert seen == [drop]
    late = []
    drop.on_ready(late.append)
    assert late == [drop]


def test_start_before_ready_is_deferred(surface, clock):
    drop, fetch = make_drop(surface, clock, spawn_interval_ms=100)
    drop.start()
    assert not drop.running

    drop.on_update(0.05)
    assert not drop.running

    fetch.release("a", "b")
    wait_ready(drop)
    assert drop.running

    clock.t = 150
    drop.on_update(0.05)
    assert drop.director.stats.spawns == 1


def test_add_object_requires_ready(surface, clock):
    drop, fetch = make_drop(surface, clock)
    with pytest.raises(PhotoDropError):
        drop.add_object()

    fetch.release("a", "b")
    wait_ready(drop)
    obj = drop.add_object(image_index=1, x_pos=12, y_pos=34, end_rotation=0.2,
                          scale_fraction=0.25, fall_duration_ms=500, border_width=4,
                          border_color="#00ff00", has_border=False)
    assert obj.image.name == "b"
    assert (obj.x_pos, obj.y_pos, obj.end_rotation) == (12, 34, 0.2)
    assert obj.scale_fraction == 0.25 and obj.fall_duration_ms == 500
    assert obj in drop.director.objects


def test_ticks_only_after_start(surface, clock):
    drop, fetch = make_drop(surface, clock)
    fetch.release("a", "b")
    wait_ready(drop)

    drop.tick()
    assert drop.director.stats.ticks == 0
    drop.start()
    drop.tick()
    assert drop.director.stats.ticks == 1


def test_stop_is_a_no_op(surface, clock):
    drop, fetch = make_drop(surface, clock)
    fetch.release("a", "b")
    wait_ready(drop)
    drop.start()
    drop.stop()
    assert drop.running


def test_asset_failure_is_fatal(surface, clock):
    drop, fetch = make_drop(surface, clock, fetch=GatedFetch(fail={"b"}))
    fetch.release("a", "b")
    with pytest.raises(AssetLoadError):
        wait_ready(drop)
    assert not drop.is_ready


def test_resize_event_reaches_director(surface, clock):
    drop, fetch = make_drop(surface, clock)
    fetch.release("a", "b")
    wait_ready(drop)
    drop.director.key_frame = object()

    consumed = drop.on_event(Event(EventType.RESIZE, width=10, height=10))

    assert consumed is False
    assert drop.director.key_frame is None


def test_missing_surface_rejected(clock):
    with pytest.raises(ConfigurationError):
        PhotoDrop(DropConfig(images=["a"]), clock=clock)


def test_empty_images_rejected(surface, clock):
    with pytest.raises(ConfigurationError):
        PhotoDrop({"imageUrls": [], "canvasId": surface}, clock=clock)


def test_resolve_surface():
    raw = skia.Surface.MakeRasterN32Premul(10, 10)
    assert isinstance(resolve_surface(raw), SkiaSurface)
    ready = SkiaSurface(4, 4)
    assert resolve_surface(ready) is ready
    with pytest.raises(ConfigurationError, match="missing"):
        resolve_surface(object())
