from __future__ import annotations
from dataclasses import dataclass
import numpy as np

from models.image import Image


@dataclass
class PixelBuffer:
    """
    Mutable RGBA raster shared by both enhancement backends.

    • pixels: (H, W, 4) uint8, row-major, RGBA.
    • Always a private copy; never aliases a cached Image.
    """
    pixels: np.ndarray

    @classmethod
    def from_image(cls, img: Image) -> "PixelBuffer":
        return cls(pixels=np.array(img.pixels, dtype=np.uint8, copy=True))

    @classmethod
    def blank(cls, width: int, height: int) -> "PixelBuffer":
        return cls(pixels=np.zeros((height, width, 4), dtype=np.uint8))

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def rgb(self) -> np.ndarray:
        """Writable view on the colour channels."""
        return self.pixels[:, :, :3]

    @property
    def alpha(self) -> np.ndarray:
        """Writable view on the alpha channel."""
        return self.pixels[:, :, 3]

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(pixels=self.pixels.copy())

    def store_rgb(self, values: np.ndarray) -> None:
        """
        Write float RGB values back as 8-bit: clamp to [0, 255] and round
        half to even, the same way a canvas pixel store does.
        """
        self.pixels[:, :, :3] = np.rint(np.clip(values, 0, 255)).astype(np.uint8)

    def to_image(self, source: str | None = None) -> Image:
        return Image.from_pixels(self.pixels, source)
