import pytest

from engine.component import Component, Event, EventType
from engine.engine import CoreEngine


class Recorder(Component):
    def __init__(self, name, log, consume=False):
        super().__init__(name)
        self.log = log
        self.consume = consume

    def on_init(self, ctx, canvas):
        self.log.append((self.name, "init", canvas))

    def on_event(self, event):
        self.log.append((self.name, "event", event.type))
        return self.consume

    def on_update(self, dt):
        self.log.append((self.name, "update", dt))

    def on_render_ui(self, canvas):
        self.log.append((self.name, "render"))

    def on_destroy(self):
        self.log.append((self.name, "destroy"))


@pytest.fixture
def engine():
    return CoreEngine(width=64, height=48, headless=True, log_path=None)


def test_headless_engine_has_a_surface_and_no_window(engine):
    assert (engine.surface.width, engine.surface.height) == (64, 48)
    assert engine.window is None
    with pytest.raises(RuntimeError):
        engine.run()


def test_component_lifecycle(engine):
    log = []
    comp = Recorder("a", log)
    engine.add_component(comp)
    engine.pulse(0.05)
    engine.remove_component(comp)
    engine.remove_component(comp)
    engine.pulse(0.05)

    assert log == [
        ("a", "init", engine.surface),
        ("a", "update", 0.05),
        ("a", "render"),
        ("a", "destroy"),
    ]
    assert engine.pulses == 2


def test_disabled_components_skip_the_pulse(engine):
    log = []
    comp = Recorder("a", log)
    engine.add_component(comp)
    comp.enabled = False
    engine.pulse(0.05)
    assert log == [("a", "init", engine.surface)]


def test_events_go_newest_first_until_consumed(engine):
    log = []
    engine.add_component(Recorder("old", log))
    engine.add_component(Recorder("new", log, consume=True))
    log.clear()

    engine._dispatch_event(Event(EventType.RESIZE, width=10, height=10))

    assert log == [("new", "event", EventType.RESIZE)]
