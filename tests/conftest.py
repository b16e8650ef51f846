import pytest

from drop.config import DropConfig
from tests.fakes import FakeImage, ManualClock, RecordingSurface


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def surface():
    return RecordingSurface()


@pytest.fixture
def images():
    return [FakeImage("A"), FakeImage("B"), FakeImage("C")]


@pytest.fixture
def make_config(surface):
    def _make(**kwargs):
        kwargs.setdefault("images", ["a.png", "b.png", "c.png"])
        kwargs.setdefault("surface", surface)
        return DropConfig(**kwargs)

    return _make
