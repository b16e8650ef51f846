import os
import sys
import threading
import time
from dataclasses import dataclass
from queue import Empty, Queue
from typing import Callable, List, Optional
from urllib.parse import urlparse

import requests
import skia

from engine.component import EventChannel, Latch
from lib import tlog

REMOTE_SCHEMES = ("http", "https", "ftp")
FETCH_SCHEMES = ("http", "https")


class AssetLoadError(RuntimeError):
    pass


def resource_path(relative_path):
    """Get absolute path to resource, works for dev and for PyInstaller"""
    base_path = getattr(sys, "_MEIPASS", os.path.abspath("."))
    return os.path.join(base_path, relative_path)


def is_remote(source: str) -> bool:
    return urlparse(str(source)).scheme.lower() in REMOTE_SCHEMES


def read_source(source: str, timeout_s: float) -> bytes:
    parsed = urlparse(str(source))
    scheme = parsed.scheme.lower()
    if scheme in FETCH_SCHEMES:
        resp = requests.get(source, timeout=timeout_s)
        resp.raise_for_status()
        return resp.content
    if scheme in REMOTE_SCHEMES:
        raise AssetLoadError(f"Cannot fetch {scheme}:// sources")
    path = parsed.path if scheme == "file" else str(source)
    if not os.path.isabs(path):
        path = resource_path(path)
    with open(path, "rb") as f:
        return f.read()


def decode_image(raw: bytes) -> skia.Image:
    image = skia.Image.MakeFromEncoded(skia.Data.MakeWithCopy(raw))
    if image is None:
        raise AssetLoadError("not a decodable image")
    return image


@dataclass
class LoadResult:
    index: int
    source: str
    image: Optional[skia.Image] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.image is not None


class ImageLoader:
    """Preloads a list of image sources off the main thread.

    Each source is fetched and decoded by its own worker. Results are only
    delivered on the thread calling ``poll()``, in completion order. The
    ``ready`` channel fires once, after the last outstanding load resolves,
    with the loaded images in request order.

    Failure policy: ``"fail"`` raises ``AssetLoadError`` from ``poll()``;
    ``"skip"`` drops the failed source and carries on. Loads still pending
    after ``timeout_ms`` count as failures.
    """

    POLICIES = ("fail", "skip")

    def __init__(
        self,
        sources: List[str],
        timeout_ms: float = 10000,
        policy: str = "fail",
        clock: Callable[[], float] = time.perf_counter,
        fetch: Callable[[str, float], bytes] = read_source,
        decode: Callable[[bytes], skia.Image] = decode_image,
    ):
        if policy not in self.POLICIES:
            raise ValueError(f"Unknown asset policy '{policy}', expected one of {self.POLICIES}")
        self.sources = list(sources)
        self.timeout_ms = timeout_ms
        self.policy = policy
        self.clock = clock
        self.fetch = fetch
        self.decode = decode

        self.results: List[Optional[LoadResult]] = [None] * len(self.sources)
        self.images: List[skia.Image] = []
        self.failures: List[LoadResult] = []
        self.loaded = EventChannel("image_loaded")
        self.ready = EventChannel("images_ready")

        self._queue: Queue = Queue()
        self._latch = Latch(len(self.sources))
        self._latch.opened.subscribe(self._on_all_resolved, once=True)
        self._started_at = None
        self._workers: List[threading.Thread] = []

    @property
    def is_ready(self) -> bool:
        return self._latch.is_open

    @property
    def pending(self) -> int:
        return self._latch.remaining

    def start(self):
        if self._started_at is not None:
            return
        self._started_at = self.clock()
        tlog.info(f"ImageLoader: requesting {len(self.sources)} images (policy={self.policy})")
        for i, source in enumerate(self.sources):
            worker = threading.Thread(
                target=self._load, args=(i, source), name=f"image-load-{i}", daemon=True
            )
            self._workers.append(worker)
            worker.start()
        self._latch.check()

    def _load(self, index: int, source: str):
        try:
            raw = self.fetch(source, self.timeout_ms / 1000.0)
            image = self.decode(raw)
            self._queue.put(LoadResult(index, source, image=image))
        except (OSError, ValueError, AssetLoadError, requests.RequestException) as e:
            self._queue.put(LoadResult(index, source, error=f"{type(e).__name__}: {e}"))

    def poll(self):
        """Deliver finished loads. Must be called from the owning thread."""
        if self._started_at is None or self.is_ready:
            return
        while True:
            try:
                result = self._queue.get_nowait()
            except Empty:
                break
            self._resolve(result)

        if not self.is_ready and (self.clock() - self._started_at) * 1000.0 >= self.timeout_ms:
            for i, source in enumerate(self.sources):
                if self.results[i] is None:
                    self._resolve(LoadResult(i, source, error=f"timed out after {self.timeout_ms}ms"))

    def _resolve(self, result: LoadResult):
        if self.results[result.index] is not None:
            return
        self.results[result.index] = result
        if result.ok:
            tlog.info(
                f"ImageLoader: Loaded '{result.source}' "
                f"({result.image.width()}x{result.image.height()})"
            )
            self.loaded.publish(result)
        else:
            self.failures.append(result)
            tlog.err(f"ImageLoader: Failed to load '{result.source}': {result.error}")
            if self.policy == "fail":
                raise AssetLoadError(f"Image '{result.source}' failed to load: {result.error}")
            tlog.warn(f"ImageLoader: Skipping '{result.source}'")
        self._latch.count_down()

    def _on_all_resolved(self):
        self.images = [r.image for r in self.results if r is not None and r.ok]
        if not self.images:
            raise AssetLoadError(f"None of the {len(self.sources)} images could be loaded")
        tlog.info(
            f"ImageLoader: {len(self.images)}/{len(self.sources)} images ready "
            f"in {(self.clock() - self._started_at) * 1000.0:.0f}ms"
        )
        self.ready.publish(self.images)
