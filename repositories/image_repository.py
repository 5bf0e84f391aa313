from __future__ import annotations

import base64
import binascii
import logging
import os
from io import BytesIO
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

import numpy as np
import requests
from PIL import Image as PILImage, UnidentifiedImageError
from PIL.Image import DecompressionBombError
from dotenv import load_dotenv

from models.errors import DecodeError
from models.image import Image
from models.pixel_buffer import PixelBuffer
from repositories.byte_store_repository import ByteStore

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class ImageRepository:
    """
    Handles locator I/O and codec work for Image entities.

    • fetch_bytes: data: URL, http(s)://, file:// or a plain path → raw bytes
    • decode:      raw bytes → RGBA Image
    • encode:      PixelBuffer → data: URL
    """
    def __init__(self, byte_store: Optional[ByteStore] = None):
        self.byte_store = byte_store
        self.fetch_timeout = float(os.getenv("FETCH_TIMEOUT_SECONDS", "10"))
        self.jpeg_quality = int(os.getenv("JPEG_QUALITY", "95"))

    # ─── Fetch ─────────────────────────────────────────────────────
    def fetch_bytes(self, url: str) -> bytes:
        if url.startswith("data:"):
            return self._read_data_url(url)

        scheme = urlparse(url).scheme.lower()
        if scheme in ("http", "https"):
            return self._read_remote(url)
        if scheme == "file":
            return self._read_file(Path(unquote(urlparse(url).path)))
        return self._read_file(Path(url))

    @staticmethod
    def _read_data_url(url: str) -> bytes:
        header, sep, payload = url.partition(",")
        if not sep:
            raise DecodeError("Malformed data URL: missing ',' separator")
        try:
            if header.endswith(";base64"):
                return base64.b64decode(payload, validate=True)
            return unquote(payload).encode("latin-1")
        except (binascii.Error, ValueError) as err:
            raise DecodeError(f"Malformed data URL payload: {err}") from err

    def _read_remote(self, url: str) -> bytes:
        if self.byte_store is not None:
            stored = self.byte_store.get(url)
            if stored is not None:
                logger.debug(f"Byte store hit: {url}")
                return stored
        try:
            response = requests.get(url, timeout=self.fetch_timeout)
            response.raise_for_status()
        except requests.RequestException as err:
            raise DecodeError(f"Fetching {url} failed: {err}") from err

        data = response.content
        if self.byte_store is not None:
            self.byte_store.put(url, data)
        return data

    @staticmethod
    def _read_file(path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as err:
            raise DecodeError(f"Image not found or unreadable: {path}") from err

    # ─── Codec ─────────────────────────────────────────────────────
    @staticmethod
    def decode(data: bytes, source: str | None = None) -> Image:
        if not data:
            raise DecodeError(f"Empty image data: {source}")
        try:
            with PILImage.open(BytesIO(data)) as pil_img:
                rgba = np.asarray(pil_img.convert("RGBA"), dtype=np.uint8)
        except (UnidentifiedImageError, DecompressionBombError, OSError, ValueError) as err:
            raise DecodeError(f"Cannot decode image {source}: {err}") from err
        return Image.from_pixels(rgba, source)

    def load(self, url: str) -> Image:
        return self.decode(self.fetch_bytes(url), source=url)

    def encode(self, buffer: PixelBuffer, fmt: str = "JPEG", quality: int | None = None) -> str:
        """
        Serialise *buffer* to a data: URL. JPEG drops the alpha channel;
        PNG and WEBP keep it.
        """
        fmt = fmt.upper()
        if fmt == "JPG":
            fmt = "JPEG"
        pil_image = PILImage.fromarray(np.ascontiguousarray(buffer.pixels))
        if fmt == "JPEG":
            pil_image = pil_image.convert("RGB")

        out = BytesIO()
        params = {}
        if fmt in ("JPEG", "WEBP"):
            params["quality"] = self.jpeg_quality if quality is None else int(quality)
        pil_image.save(out, format=fmt, **params)

        payload = base64.b64encode(out.getvalue()).decode("utf-8")
        return f"data:image/{fmt.lower()};base64,{payload}"
