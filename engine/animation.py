import time


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def linear(t): return t


def progress(elapsed: float, duration: float) -> float:
    """Fraction of ``duration`` covered by ``elapsed``, clamped to [0, 1]."""
    if duration <= 0:
        return 1.0
    return clamp(elapsed / duration, 0.0, 1.0)


def lerp(start: float, end: float, t: float, curve=linear) -> float:
    return start + (end - start) * curve(t)


def now_ms() -> float:
    """Monotonic clock in milliseconds."""
    return time.perf_counter() * 1000.0
