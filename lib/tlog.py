import os
import random
import sys
import threading
import time
from enum import Enum
from queue import Empty, Full, Queue


class Level(Enum):
    INFO = 0
    WARN = 1
    ERR = 2
    DBUG = 3


# Verbosity rank, lower is more important
_RANK = {Level.ERR: 0, Level.WARN: 1, Level.INFO: 2, Level.DBUG: 3}


class Context(threading.local):
    def __init__(self):
        super().__init__()
        self.trace_id = 0
        self.span_id = 0
        self.tags = ""
        self.sample = True


ctx = Context()


def gen_id():
    return random.getrandbits(64)


class Logger:
    _instance = None
    _lock = threading.Lock()

    @classmethod
    def get(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = Logger()
        return cls._instance

    def __init__(self):
        self.buffer = Queue(maxsize=8192)
        self.running = True
        self.file = None
        self.echo = False
        self.sample_rate = 1.0
        self.level = Level.__members__.get(os.environ.get("TLOG_LEVEL", "DBUG"), Level.DBUG)
        self.dropped = 0
        self.worker = threading.Thread(target=self.process, name="tlog-writer", daemon=True)
        self.worker.start()

    def process(self):
        while self.running:
            try:
                line = self.buffer.get(timeout=0.1)
            except Empty:
                continue
            self._emit(line)
            self.buffer.task_done()

        while True:
            try:
                line = self.buffer.get_nowait()
            except Empty:
                break
            self._emit(line)
            self.buffer.task_done()

    def _emit(self, line):
        if self.echo:
            sys.stderr.write(line)
        if self.file:
            try:
                self.file.write(line)
                if self.buffer.empty():
                    self.file.flush()
            except OSError as e:
                sys.stderr.write(f"tlog: write failed, closing log file: {e}\n")
                self.file = None

    def open(self, path, echo=False):
        if self.file:
            self.file.close()
        self.file = open(path, "a")
        self.echo = echo

    def set_sampling(self, rate):
        self.sample_rate = max(0.0, min(1.0, rate))

    def set_level(self, level):
        self.level = level

    def should_sample(self):
        return random.random() <= self.sample_rate

    def enabled(self, level):
        return _RANK[level] <= _RANK[self.level]

    def write(self, level, msg):
        if not self.enabled(level):
            return
        if not getattr(ctx, "sample", True) and level != Level.ERR:
            return
        if not self.file and not self.echo:
            return

        trace_id = getattr(ctx, "trace_id", 0)
        span_id = getattr(ctx, "span_id", 0)
        tags = getattr(ctx, "tags", "") or "-"

        now = int(time.time() * 1e9)
        log_line = f"{now:016x} {trace_id:016x} {span_id:016x} {level.value} [{tags}] {msg}\n"

        try:
            self.buffer.put_nowait(log_line)
        except Full:
            self.dropped += 1

    def close(self):
        self.running = False
        self.worker.join()
        if self.file:
            self.file.close()
            self.file = None


class Span:
    def __init__(self, name):
        self.name = name
        self.started = 0.0
        self.prev_trace_id = getattr(ctx, "trace_id", 0)
        self.prev_span_id = getattr(ctx, "span_id", 0)
        self.prev_tags = getattr(ctx, "tags", "")
        self.prev_sample = getattr(ctx, "sample", True)

    def __enter__(self):
        if getattr(ctx, "trace_id", 0) == 0:
            ctx.trace_id = gen_id()
            ctx.sample = Logger.get().should_sample()
        ctx.span_id = gen_id()
        self.started = time.perf_counter()
        Logger.get().write(Level.DBUG, f"> {self.name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed_ms = (time.perf_counter() - self.started) * 1000.0
        if exc_type is not None:
            Logger.get().write(Level.ERR, f"< {self.name} ({elapsed_ms:.1f}ms) raised {exc_type.__name__}: {exc_val}")
        else:
            Logger.get().write(Level.DBUG, f"< {self.name} ({elapsed_ms:.1f}ms)")
        ctx.trace_id = self.prev_trace_id
        ctx.span_id = self.prev_span_id
        ctx.tags = self.prev_tags
        ctx.sample = self.prev_sample
        return False


def add_tag(key, value):
    k = str(key).replace(" ", "_").replace(":", "_")
    v = str(value).replace(" ", "_").replace(":", "_")
    ctx.tags = getattr(ctx, "tags", "") + f"{k}:{v};"


def init(path, echo=False):
    Logger.get().open(path, echo)


def sample(rate):
    Logger.get().set_sampling(rate)


def set_level(level):
    Logger.get().set_level(level)


def info(msg):
    Logger.get().write(Level.INFO, msg)


def warn(msg):
    Logger.get().write(Level.WARN, msg)


def err(msg):
    Logger.get().write(Level.ERR, msg)


def debug(msg):
    Logger.get().write(Level.DBUG, msg)


def tag(k, v):
    add_tag(k, v)


def close():
    with Logger._lock:
        logger, Logger._instance = Logger._instance, None
    if logger is not None:
        logger.close()
