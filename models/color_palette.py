from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

RGB = Tuple[int, int, int]
HSL = Tuple[float, float, float]


def to_hex(rgb: RGB) -> str:
    r, g, b = rgb
    return f"#{r:02x}{g:02x}{b:02x}"


@dataclass(frozen=True)
class ColorPalette:
    dominant: RGB
    palette: List[RGB]                          # most frequent first
    complementary: List[RGB]                    # exactly one entry
    analogous: List[RGB]                        # hue +30, -30, +60, -60
    counts: List[int] = field(default_factory=list)  # sample count per palette entry

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dominant": list(self.dominant),
            "palette": [list(c) for c in self.palette],
            "complementary": [list(c) for c in self.complementary],
            "analogous": [list(c) for c in self.analogous],
            "swatches": [
                {"rgb": list(c), "hex": to_hex(c), "count": n}
                for c, n in zip(self.palette, self.counts)
            ],
        }
