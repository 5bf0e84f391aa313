from __future__ import annotations

import logging
import math
import os

import cv2
import numpy as np
from dotenv import load_dotenv

from models.errors import FilterError
from models.image import Image
from models.pixel_buffer import PixelBuffer
from repositories.image_repository import ImageRepository
from services.image_loader_service import ImageLoaderService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class TransformService:
    """
    Geometry and alpha helpers that sit outside the enhancement pipeline.
    Errors propagate to the caller (no best-effort fallback here).
    """

    def __init__(self,
                 loader: ImageLoaderService | None = None,
                 image_repository: ImageRepository | None = None):
        self.loader = loader if loader is not None else ImageLoaderService()
        self.image_repository = (image_repository if image_repository is not None
                                 else self.loader.image_repository)
        self.background_threshold = float(os.getenv("BACKGROUND_DISTANCE_THRESHOLD", "50"))

    # ─── Pixel-level API ───────────────────────────────────────────
    @staticmethod
    def resize_pixels(img: Image, width: int, height: int) -> PixelBuffer:
        if width < 1 or height < 1:
            raise FilterError(f"Invalid target size {width}x{height}")
        interpolation = (
            cv2.INTER_CUBIC if width >= img.width and height >= img.height else cv2.INTER_AREA
        )
        resized = cv2.resize(np.array(img.pixels), (width, height),
                             interpolation=interpolation)
        return PixelBuffer(pixels=resized)

    def upscale_pixels(self, img: Image, factor: float) -> PixelBuffer:
        """Bicubic resample to (width·factor, height·factor). No sharpening."""
        if not math.isfinite(factor) or factor <= 0:
            raise FilterError(f"Upscale factor must be a positive number, got {factor}")
        width = max(1, int(round(img.width * factor)))
        height = max(1, int(round(img.height * factor)))
        resized = cv2.resize(np.array(img.pixels), (width, height),
                             interpolation=cv2.INTER_CUBIC)
        return PixelBuffer(pixels=resized)

    def remove_background_pixels(self, img: Image) -> PixelBuffer:
        """
        Corner-colour keying, not segmentation: the top-left pixel is taken
        as the background and every pixel within `background_threshold`
        (Euclidean RGB distance, strict) becomes fully transparent.
        """
        buffer = PixelBuffer.from_image(img)
        if buffer.width == 0 or buffer.height == 0:
            return buffer

        rgb = buffer.rgb.astype(np.float64)
        corner = rgb[0, 0]
        distance = np.sqrt(np.square(rgb - corner).sum(axis=-1))
        buffer.alpha[distance < self.background_threshold] = 0
        return buffer

    # ─── Locator API ───────────────────────────────────────────────
    def upscale(self, image_ref: str, factor: float) -> str:
        buffer = self.upscale_pixels(self.loader.load(image_ref), factor)
        return self.image_repository.encode(buffer, "JPEG")

    def resize(self, image_ref: str, width: int, height: int) -> str:
        buffer = self.resize_pixels(self.loader.load(image_ref), width, height)
        return self.image_repository.encode(buffer, "JPEG")

    def remove_background(self, image_ref: str) -> str:
        buffer = self.remove_background_pixels(self.loader.load(image_ref))
        return self.image_repository.encode(buffer, "PNG")

    def optimize(self, image_ref: str, quality: int = 80, fmt: str = "JPEG") -> str:
        """Re-encode at a chosen quality/format."""
        if not 1 <= quality <= 100:
            raise FilterError(f"Quality must be within 1..100, got {quality}")
        buffer = PixelBuffer.from_image(self.loader.load(image_ref))
        return self.image_repository.encode(buffer, fmt, quality=quality)
