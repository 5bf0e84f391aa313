import base64
import struct
import zlib
from io import BytesIO

import numpy as np
import pytest
from PIL import Image as PILImage

from models.image import Image
from models.pixel_buffer import PixelBuffer
from services.image_engine import ImageEngine


def _rgba(pixels: np.ndarray) -> np.ndarray:
    pixels = np.asarray(pixels, dtype=np.uint8)
    if pixels.shape[-1] == 3:
        alpha = np.full(pixels.shape[:2] + (1,), 255, dtype=np.uint8)
        pixels = np.concatenate([pixels, alpha], axis=-1)
    return pixels


@pytest.fixture
def png_ref():
    """Encode an (H, W, 3|4) uint8 array as a lossless PNG data: URL."""
    def _make(pixels) -> str:
        out = BytesIO()
        PILImage.fromarray(_rgba(pixels)).save(out, format="PNG")
        return "data:image/png;base64," + base64.b64encode(out.getvalue()).decode("utf-8")
    return _make


@pytest.fixture
def decode_ref():
    """Decode a data: URL back into an RGBA array."""
    def _decode(data_url: str) -> np.ndarray:
        _, _, payload = data_url.partition(",")
        with PILImage.open(BytesIO(base64.b64decode(payload))) as img:
            return np.asarray(img.convert("RGBA"))
    return _decode


@pytest.fixture
def make_image():
    def _make(pixels) -> Image:
        return Image.from_pixels(_rgba(pixels), source="test")
    return _make


@pytest.fixture
def make_buffer():
    def _make(pixels) -> PixelBuffer:
        return PixelBuffer(pixels=_rgba(pixels).copy())
    return _make


@pytest.fixture
def random_pixels():
    def _make(h=16, w=16, low=0, high=256, seed=0) -> np.ndarray:
        rng = np.random.default_rng(seed)
        return rng.integers(low, high, size=(h, w, 3), dtype=np.uint8)
    return _make


@pytest.fixture
def engine():
    """Software-only engine (hardware forced absent)."""
    with ImageEngine(hardware_device="none") as eng:
        yield eng


@pytest.fixture
def hw_engine():
    """Engine whose shader program runs on the torch CPU device."""
    with ImageEngine(hardware_device="cpu") as eng:
        yield eng


@pytest.fixture
def bomb_ref():
    """A 1x1 PNG whose IHDR claims 20000x20000 pixels."""
    out = BytesIO()
    PILImage.fromarray(np.zeros((1, 1, 3), np.uint8)).save(out, format="PNG")
    data = bytearray(out.getvalue())
    # signature (8) + length (4) + b"IHDR" (4), then width and height
    data[16:24] = struct.pack(">II", 20000, 20000)
    ihdr = bytes(data[12:29])
    data[29:33] = struct.pack(">I", zlib.crc32(ihdr) & 0xFFFFFFFF)
    return "data:image/png;base64," + base64.b64encode(bytes(data)).decode("utf-8")
