import threading
import time
from contextlib import contextmanager

import numpy as np

from engine.surface import SnapshotError


class FakeImage:
    def __init__(self, name, w=100, h=80):
        self.name = name
        self._w, self._h = w, h

    def width(self):
        return self._w

    def height(self):
        return self._h

    def __repr__(self):
        return f"FakeImage({self.name})"


class ManualClock:
    def __init__(self, t=0.0):
        self.t = t

    def __call__(self):
        return self.t

    def advance(self, ms):
        self.t += ms
        return self.t


class RecordingSurface:
    """Surface double that records every call instead of drawing."""

    def __init__(self, width=800, height=600, fail_reads=False, fail_writes=False):
        self.width = width
        self.height = height
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.ops = []
        self.depth = 0
        self.alpha = 1.0
        self._alpha_stack = []

    def save(self):
        self.ops.append(("save",))
        self._alpha_stack.append(self.alpha)
        self.depth += 1

    def restore(self):
        self.ops.append(("restore",))
        self.alpha = self._alpha_stack.pop()
        self.depth -= 1

    @contextmanager
    def scoped(self):
        self.save()
        try:
            yield self
        finally:
            self.restore()

    def translate(self, dx, dy):
        self.ops.append(("translate", dx, dy))

    def rotate(self, radians):
        self.ops.append(("rotate", radians))

    def scale(self, sx, sy):
        self.ops.append(("scale", sx, sy))

    def set_alpha(self, alpha):
        self.alpha = alpha
        self.ops.append(("alpha", alpha))

    def fill(self, color):
        self.ops.append(("fill", color))

    def fill_rect(self, x, y, w, h, color):
        self.ops.append(("fill_rect", x, y, w, h, color))

    def draw_image(self, image, x=0.0, y=0.0):
        self.ops.append(("draw_image", image, x, y, self.alpha))

    def read_snapshot(self):
        if self.fail_reads:
            raise SnapshotError("read refused")
        self.ops.append(("read_snapshot",))
        return np.zeros((self.height, self.width, 4), dtype=np.uint8)

    def write_snapshot(self, pixels, x=0, y=0):
        if self.fail_writes:
            raise SnapshotError("write refused")
        if pixels.shape[:2] != (self.height, self.width):
            raise SnapshotError("size mismatch")
        self.ops.append(("write_snapshot", x, y))

    # helpers for assertions

    def drawn_images(self):
        return [op[1] for op in self.ops if op[0] == "draw_image"]

    def names(self):
        return [op[0] for op in self.ops]

    def reset(self):
        self.ops.clear()


class GatedFetch:
    """fetch() stand-in whose loads complete only when released."""

    def __init__(self, fail=()):
        self.gates = {}
        self.fail = set(fail)

    def gate(self, source):
        return self.gates.setdefault(source, threading.Event())

    def release(self, *sources):
        for source in sources:
            self.gate(source).set()

    def __call__(self, source, timeout_s):
        self.gate(source).wait(5)
        if source in self.fail:
            raise OSError(f"cannot read {source}")
        return source.encode()


def fake_decode(raw):
    return FakeImage(raw.decode())


def poll_until(loader, predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        loader.poll()
        if time.monotonic() > deadline:
            raise AssertionError("loader did not reach the expected state")
        time.sleep(0.005)
