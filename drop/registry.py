from typing import Callable, Iterator, List, Optional

from drop.falling import FallingObject
from engine.component import EventChannel
from lib import tlog


class ObjectRegistry:
    """Insertion-ordered collection of falling objects; order is draw order.

    Every member's landing is re-published on ``on_landing`` subscribers,
    once per landing.
    """

    def __init__(self):
        self._objects: List[FallingObject] = []
        self._members = set()
        self._landings = 0
        self.landing_channel = EventChannel("registry_landing")

    def add(self, obj: FallingObject):
        if id(obj) in self._members:
            tlog.warn(f"ObjectRegistry: {obj!r} already registered, ignoring")
            return
        self._objects.append(obj)
        self._members.add(id(obj))
        if obj.landed:
            self._forward_landing(obj)
        else:
            obj.on_landed(lambda: self._forward_landing(obj))

    def _forward_landing(self, obj: FallingObject):
        self._landings += 1
        obj.landing_order = self._landings
        self.landing_channel.publish()

    def on_landing(self, callback: Callable[[], None]) -> Callable[[], None]:
        return self.landing_channel.subscribe(callback)

    def select(self, predicate: Callable[[FallingObject], bool]) -> List[FallingObject]:
        return [obj for obj in list(self._objects) if predicate(obj)]

    def get_moving(self) -> List[FallingObject]:
        return self.select(lambda obj: obj.started and not obj.landed)

    def get_stopped(self) -> List[FallingObject]:
        return self.select(lambda obj: obj.landed)

    def get_settled(self) -> List[FallingObject]:
        """Landed objects in the order they landed."""
        return sorted(self.get_stopped(), key=lambda obj: obj.landing_order)

    def for_each(self, fn: Callable[[FallingObject], None]):
        for obj in list(self._objects):
            fn(obj)

    def advance(self, now: Optional[float] = None) -> List[FallingObject]:
        """Run every member's landing check; return those that landed now."""
        return self.select(lambda obj: obj.advance(now))

    def __len__(self):
        return len(self._objects)

    def __iter__(self) -> Iterator[FallingObject]:
        return iter(list(self._objects))

    def __contains__(self, obj):
        return id(obj) in self._members
