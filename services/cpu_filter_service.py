from __future__ import annotations

import logging
import math
import os

import cv2
import numpy as np
from dotenv import load_dotenv

from models.enhancement_config import ColorCorrection
from models.errors import FilterError
from models.pixel_buffer import PixelBuffer

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# ITU-R BT.601 luma weights
LUMA = np.array([0.299, 0.587, 0.114], dtype=np.float64)


def _require_finite(name: str, value: float) -> float:
    value = float(value)
    if not math.isfinite(value):
        raise FilterError(f"{name} must be finite, got {value}")
    return value


def _require_intensity(name: str, value: float) -> float:
    value = _require_finite(name, value)
    if value < 0:
        raise FilterError(f"{name} must be >= 0, got {value}")
    return value


class CpuFilterService:
    """
    Software backend: every enhancement as an explicit array operation
    over a PixelBuffer. Alpha is never touched.

    Pointwise filters (brightness, contrast, saturation, colour correction)
    edit the buffer in place. Convolutions (sharpen, denoise) read from a
    copy of the whole buffer so no output depends on an already-updated
    neighbour.
    """

    def __init__(self, max_denoise_radius: int | None = None):
        if max_denoise_radius is None:
            max_denoise_radius = int(os.getenv("MAX_DENOISE_RADIUS", "8"))
        self.max_denoise_radius = max(0, max_denoise_radius)

    # ─── Pointwise ─────────────────────────────────────────────────
    @staticmethod
    def brightness(buffer: PixelBuffer, factor: float) -> None:
        factor = _require_finite("brightness", factor)
        buffer.store_rgb(buffer.rgb.astype(np.float64) * factor)

    @staticmethod
    def contrast(buffer: PixelBuffer, factor: float) -> None:
        factor = _require_finite("contrast", factor)
        buffer.store_rgb((buffer.rgb.astype(np.float64) - 128.0) * factor + 128.0)

    @staticmethod
    def saturation(buffer: PixelBuffer, factor: float) -> None:
        """
        Blend every pixel with its own luma: 0 → grayscale, 1 → unchanged.
        """
        factor = _require_finite("saturation", factor)
        rgb = buffer.rgb.astype(np.float64)
        gray = (rgb @ LUMA)[:, :, np.newaxis]
        buffer.store_rgb(gray + factor * (rgb - gray))

    @staticmethod
    def color_correction(buffer: PixelBuffer, correction: ColorCorrection) -> None:
        gains = np.array([_require_finite("gain", g) for g in correction.gains])
        offsets = np.array([_require_finite("offset", o) for o in correction.offsets])
        buffer.store_rgb(buffer.rgb.astype(np.float64) * gains + offsets)

    # ─── Convolutions ──────────────────────────────────────────────
    @staticmethod
    def sharpen_kernel(intensity: float) -> np.ndarray:
        k = intensity
        return np.array([
            [0.0,        -k, 0.0],
            [-k, 1 + 4 * k,  -k],
            [0.0,        -k, 0.0],
        ], dtype=np.float64)

    def sharpen(self, buffer: PixelBuffer, intensity: float) -> None:
        """
        3x3 Laplacian sharpen. The outer 1-pixel ring keeps its source
        values; only interior pixels are convolved.
        """
        intensity = _require_intensity("sharpness", intensity)
        h, w = buffer.height, buffer.width
        if h < 3 or w < 3:
            return

        src = buffer.rgb.astype(np.float64)
        out = cv2.filter2D(src, cv2.CV_64F, self.sharpen_kernel(intensity),
                           borderType=cv2.BORDER_REPLICATE)
        result = src.copy()
        result[1:-1, 1:-1] = out[1:-1, 1:-1]
        buffer.store_rgb(result)

    def denoise_radius(self, intensity: float) -> int:
        radius = int(math.floor(3 * intensity))
        if radius > self.max_denoise_radius:
            logger.info(f"Denoise radius {radius} capped at {self.max_denoise_radius}")
            radius = self.max_denoise_radius
        return radius

    def denoise(self, buffer: PixelBuffer, intensity: float) -> None:
        """
        Bilateral filter, per channel.

        radius = floor(3k) (capped), sigma_color = sigma_space = 50k.
        weight = exp(-d_space² / 2σs²) · exp(-d_color² / 2σc²)
        Windows reaching past the border reuse the nearest edge pixel.

        Cost is O(W·H·radius²); this is the slowest stage by far.
        """
        intensity = _require_intensity("denoise", intensity)
        if intensity == 0:
            return

        radius = self.denoise_radius(intensity)
        if radius == 0:
            return
        sigma = 50.0 * intensity
        two_sigma_sq = 2.0 * sigma * sigma

        src = buffer.rgb.astype(np.float64)
        h, w = src.shape[:2]
        padded = np.pad(src, ((radius, radius), (radius, radius), (0, 0)), mode="edge")

        value_sum = np.zeros_like(src)
        weight_sum = np.zeros_like(src)
        for dy in range(-radius, radius + 1):
            for dx in range(-radius, radius + 1):
                neighbour = padded[radius + dy:radius + dy + h, radius + dx:radius + dx + w]
                spatial = math.exp(-(dx * dx + dy * dy) / two_sigma_sq)
                weight = spatial * np.exp(-np.square(neighbour - src) / two_sigma_sq)
                value_sum += weight * neighbour
                weight_sum += weight

        buffer.store_rgb(value_sum / weight_sum)
