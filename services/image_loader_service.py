from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Dict, Iterable, List

from dotenv import load_dotenv

from models.errors import DecodeError
from models.image import Image
from repositories.image_repository import ImageRepository

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class ImageLoaderService:
    """
    Resolves locators to decoded Images and memoises them by exact URL.

    • Same URL ⇒ same Image instance until invalidate()/clear().
    • Concurrent loads of one uncached URL share a single in-flight decode;
      the other callers block on the same Future.
    • Failed decodes are not cached, the next load retries.
    • No TTL and no size bound.
    """

    def __init__(self, image_repository: ImageRepository | None = None):
        self.image_repository = image_repository if image_repository is not None else ImageRepository()
        self.preload_workers = int(os.getenv("PRELOAD_WORKERS", "4"))
        self._cache: Dict[str, Image] = {}
        self._in_flight: Dict[str, Future] = {}
        self._lock = threading.Lock()

    # ─── Public API ────────────────────────────────────────────────
    def load(self, url: str) -> Image:
        with self._lock:
            cached = self._cache.get(url)
            if cached is not None:
                return cached
            pending = self._in_flight.get(url)
            if pending is None:
                pending = Future()
                self._in_flight[url] = pending
                owner = True
            else:
                owner = False

        if not owner:
            return pending.result()

        try:
            img = self.image_repository.load(url)
        except Exception as err:
            with self._lock:
                self._in_flight.pop(url, None)
            pending.set_exception(err)
            raise

        with self._lock:
            self._cache[url] = img
            self._in_flight.pop(url, None)
        pending.set_result(img)
        logger.debug(f"Decoded {img.width}x{img.height} image from {url[:60]}")
        return img

    def preload(self, urls: Iterable[str]) -> List[str]:
        """
        Warm the cache for *urls*. Returns the URLs that failed to decode;
        a failure never stops the other loads.
        """
        urls = list(dict.fromkeys(urls))
        failed: List[str] = []
        if not urls:
            return failed

        with ThreadPoolExecutor(max_workers=max(1, self.preload_workers)) as pool:
            futures = {url: pool.submit(self.load, url) for url in urls}
            for url, future in futures.items():
                try:
                    future.result()
                except DecodeError as err:
                    logger.warning(f"Preload skipped {url[:60]}: {err}")
                    failed.append(url)
        return failed

    def is_cached(self, url: str) -> bool:
        with self._lock:
            return url in self._cache

    def invalidate(self, url: str) -> bool:
        with self._lock:
            return self._cache.pop(url, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)
