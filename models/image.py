from __future__ import annotations
from dataclasses import dataclass
import numpy as np


@dataclass(frozen=True, eq=False)
class Image:
    """
    Decoded raster: RGBA pixels (+ the locator it was decoded from).
    Pixels are read-only; copy them into a PixelBuffer to edit.
    """
    pixels: np.ndarray # Shape (H, W, 4), dtype uint8, RGBA order.
    source: str | None = None # Locator the image was decoded from.

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @classmethod
    def from_pixels(cls, pixels: np.ndarray, source: str | None = None) -> "Image":
        frozen = np.array(pixels, dtype=np.uint8, copy=True)
        frozen.setflags(write=False)
        return cls(pixels=frozen, source=source)
