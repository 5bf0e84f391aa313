from __future__ import annotations

import logging
import os
from typing import List, Tuple

import numpy as np
from dotenv import load_dotenv

from models.color_palette import RGB, ColorPalette
from models.errors import ColorAnalysisError
from models.image import Image
from services.color_space import analogous, complementary
from services.image_loader_service import ImageLoaderService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class ColorAnalysisService:
    """
    Dominant-colour extraction by quantised histogram.

    • Samples every `stride`-th pixel (row-major).
    • Ignores pixels with alpha <= 128.
    • Rounds each channel down to a multiple of 32 → 8³ buckets.
    • Ranks buckets by count; equal counts keep first-seen order.
    """

    QUANT_STEP = 32
    ALPHA_CUTOFF = 128

    def __init__(self, loader: ImageLoaderService | None = None, stride: int | None = None):
        self.loader = loader if loader is not None else ImageLoaderService()
        if stride is None:
            stride = int(os.getenv("PALETTE_SAMPLE_STRIDE", "4"))
        self.stride = max(1, stride)

    # ─── Public API ────────────────────────────────────────────────
    def analyze(self, image_ref: str, num_colors: int = 5) -> ColorPalette:
        """
        Decode *image_ref* (through the loader cache) and build its palette.
        DecodeError propagates; an image with nothing to count raises
        ColorAnalysisError.
        """
        return self.analyze_image(self.loader.load(image_ref), num_colors)

    def analyze_image(self, img: Image, num_colors: int = 5) -> ColorPalette:
        if num_colors < 1:
            raise ColorAnalysisError(f"num_colors must be >= 1, got {num_colors}")

        ranked = self.dominant_colors(img.pixels, num_colors)
        colors = [rgb for rgb, _ in ranked]
        dominant = colors[0]
        return ColorPalette(
            dominant=dominant,
            palette=colors,
            complementary=[complementary(dominant)],
            analogous=analogous(dominant),
            counts=[count for _, count in ranked],
        )

    # ─── Internal helpers ──────────────────────────────────────────
    def dominant_colors(self, pixels: np.ndarray, num_colors: int) -> List[Tuple[RGB, int]]:
        flat = pixels.reshape(-1, 4)
        if flat.shape[0] == 0:
            raise ColorAnalysisError("Image has no pixels")

        sampled = flat[::self.stride]
        opaque = sampled[sampled[:, 3] > self.ALPHA_CUTOFF]
        if opaque.shape[0] == 0:
            raise ColorAnalysisError("Image has no opaque pixels to analyse")

        q = (opaque[:, :3] // self.QUANT_STEP).astype(np.int32)
        codes = (q[:, 0] << 6) | (q[:, 1] << 3) | q[:, 2]

        buckets, first_seen, counts = np.unique(codes, return_index=True, return_counts=True)
        # primary key: count desc, secondary: first occurrence asc
        order = np.lexsort((first_seen, -counts))[:num_colors]

        ranked: List[Tuple[RGB, int]] = []
        for i in order:
            code = int(buckets[i])
            rgb = (
                ((code >> 6) & 7) * self.QUANT_STEP,
                ((code >> 3) & 7) * self.QUANT_STEP,
                (code & 7) * self.QUANT_STEP,
            )
            ranked.append((rgb, int(counts[i])))
        logger.debug(f"Palette from {opaque.shape[0]} samples, {len(buckets)} buckets")
        return ranked
