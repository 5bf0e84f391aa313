import threading
import time
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest
from PIL import Image as PILImage

from models.errors import DecodeError
from repositories.byte_store_repository import InMemoryByteStore
from repositories.image_repository import ImageRepository
from services.color_analysis_service import ColorAnalysisService
from services.image_enhancement_service import ImageEnhancementService
from services.image_loader_service import ImageLoaderService
from services.transform_service import TransformService


class CountingRepository(ImageRepository):
    """Counts fetches and makes each one slow enough to overlap."""

    def __init__(self, delay: float = 0.0, **kwargs):
        super().__init__(**kwargs)
        self.delay = delay
        self.fetches = 0
        self._count_lock = threading.Lock()

    def fetch_bytes(self, url: str) -> bytes:
        with self._count_lock:
            self.fetches += 1
        time.sleep(self.delay)
        return super().fetch_bytes(url)


def test_same_url_returns_same_instance(png_ref):
    repo = CountingRepository()
    loader = ImageLoaderService(repo)
    ref = png_ref(np.zeros((2, 2, 3), np.uint8))
    assert loader.load(ref) is loader.load(ref)
    assert repo.fetches == 1


def test_decoded_pixels_are_read_only(png_ref):
    img = ImageLoaderService().load(png_ref(np.zeros((2, 3, 3), np.uint8)))
    assert (img.width, img.height) == (3, 2)
    assert img.pixels.shape == (2, 3, 4)
    assert not img.pixels.flags.writeable


def test_concurrent_loads_decode_once(png_ref):
    repo = CountingRepository(delay=0.2)
    loader = ImageLoaderService(repo)
    ref = png_ref(np.full((4, 4, 3), 9, np.uint8))

    with ThreadPoolExecutor(max_workers=8) as pool:
        images = list(pool.map(lambda _: loader.load(ref), range(8)))

    assert repo.fetches == 1
    assert all(img is images[0] for img in images)


def test_concurrent_failure_reaches_every_waiter():
    repo = CountingRepository(delay=0.2)
    loader = ImageLoaderService(repo)
    ref = "data:image/png;base64,AAAA"

    def attempt(_):
        try:
            loader.load(ref)
        except DecodeError:
            return "failed"
        return "loaded"

    with ThreadPoolExecutor(max_workers=4) as pool:
        outcomes = list(pool.map(attempt, range(4)))

    assert outcomes == ["failed"] * 4
    assert repo.fetches == 1


def test_failed_decode_is_retried():
    repo = CountingRepository()
    loader = ImageLoaderService(repo)
    for _ in range(2):
        with pytest.raises(DecodeError):
            loader.load("data:image/png;base64,AAAA")
    assert repo.fetches == 2
    assert len(loader) == 0


def test_invalidate_forces_redecode(png_ref):
    repo = CountingRepository()
    loader = ImageLoaderService(repo)
    ref = png_ref(np.zeros((2, 2, 3), np.uint8))
    first = loader.load(ref)
    assert loader.invalidate(ref)
    assert not loader.is_cached(ref)
    assert loader.load(ref) is not first
    assert repo.fetches == 2


def test_clear_empties_cache(png_ref):
    loader = ImageLoaderService()
    loader.load(png_ref(np.zeros((2, 2, 3), np.uint8)))
    loader.clear()
    assert len(loader) == 0


def test_preload_reports_failures(png_ref):
    loader = ImageLoaderService()
    good = png_ref(np.zeros((2, 2, 3), np.uint8))
    bad = "data:image/png;base64,AAAA"
    assert loader.preload([good, bad, good]) == [bad]
    assert loader.is_cached(good)


def test_loads_plain_path_and_file_url(tmp_path):
    path = tmp_path / "pic.png"
    PILImage.fromarray(np.full((3, 5, 3), 200, np.uint8)).save(path)
    loader = ImageLoaderService()
    assert loader.load(str(path)).pixels[0, 0].tolist() == [200, 200, 200, 255]
    assert loader.load(path.as_uri()).width == 5


def test_malformed_data_url_is_decode_error():
    with pytest.raises(DecodeError):
        ImageLoaderService().load("data:image/png;base64")


class FakeResponse:
    def __init__(self, content: bytes):
        self.content = content

    def raise_for_status(self):
        return None


def test_remote_fetch_writes_and_reads_byte_store(monkeypatch, tmp_path):
    path = tmp_path / "remote.png"
    PILImage.fromarray(np.full((2, 2, 3), 33, np.uint8)).save(path)
    payload = path.read_bytes()
    calls = []

    def fake_get(url, timeout):
        calls.append(url)
        return FakeResponse(payload)

    monkeypatch.setattr("repositories.image_repository.requests.get", fake_get)
    store = InMemoryByteStore()
    url = "https://example.com/shirt.png"

    first = ImageLoaderService(ImageRepository(byte_store=store)).load(url)
    second = ImageLoaderService(ImageRepository(byte_store=store)).load(url)

    assert calls == [url]
    assert store.get(url) == payload
    np.testing.assert_array_equal(first.pixels, second.pixels)


def test_remote_failure_is_decode_error(monkeypatch):
    import requests

    def fake_get(url, timeout):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr("repositories.image_repository.requests.get", fake_get)
    with pytest.raises(DecodeError):
        ImageLoaderService().load("http://example.com/x.png")


def test_oversized_image_is_decode_error(bomb_ref):
    with pytest.raises(DecodeError):
        ImageLoaderService().load(bomb_ref)


def test_services_keep_an_empty_loader():
    loader = ImageLoaderService()
    assert len(loader) == 0
    assert ImageEnhancementService(loader=loader).loader is loader
    assert ColorAnalysisService(loader=loader).loader is loader
    assert TransformService(loader=loader).loader is loader
