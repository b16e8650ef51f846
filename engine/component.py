from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, List


class EventType(Enum):
    RESIZE = auto()
    KEY_PRESS = auto()


@dataclass
class Event:
    type: EventType
    key: int = 0
    width: int = 0
    height: int = 0


class EventChannel:
    """Synchronous publish/subscribe channel.

    Subscribers are called in registration order. A subscriber registered
    with ``once=True`` is removed before it is invoked, so it is delivered
    at most one event even if it publishes on the same channel.
    """

    def __init__(self, name="channel"):
        self.name = name
        self._subscribers: List[list] = []

    def subscribe(self, callback: Callable, once: bool = False) -> Callable[[], None]:
        entry = [callback, once]
        self._subscribers.append(entry)

        def unsubscribe():
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    def publish(self, *args, **kwargs):
        for entry in list(self._subscribers):
            callback, once = entry
            if once:
                if entry not in self._subscribers:
                    continue
                self._subscribers.remove(entry)
            callback(*args, **kwargs)

    def __len__(self):
        return len(self._subscribers)


class Latch:
    """Count-down gate. ``opened`` fires exactly once when the count hits zero."""

    def __init__(self, count: int):
        if count < 0:
            raise ValueError("Latch count must be non-negative")
        self.remaining = count
        self.is_open = False
        self.opened = EventChannel("latch")

    def count_down(self):
        if self.is_open:
            return
        self.remaining = max(0, self.remaining - 1)
        if self.remaining == 0:
            self._open()

    def check(self):
        """Open a latch created with a zero count."""
        if not self.is_open and self.remaining == 0:
            self._open()

    def _open(self):
        self.is_open = True
        self.opened.publish()


class Component:
    def __init__(self, name="Component"):
        self.name = name
        self.enabled = True

    def on_init(self, ctx, canvas):
        """Called when the component is added to the engine."""
        pass

    def on_event(self, event: Event) -> bool:
        """Handle engine events. Return True to consume the event."""
        return False

    def on_update(self, dt: float):
        """One clock pulse."""
        pass

    def on_render_ui(self, canvas):
        """Skia 2D rendering outside the pulse."""
        pass

    def on_destroy(self):
        """Called when component is removed."""
        pass
