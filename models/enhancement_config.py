from __future__ import annotations
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from models.errors import FilterError


class Backend(str, Enum):
    PREFER_HARDWARE = "prefer-hardware"
    FORCE_SOFTWARE = "force-software"


def _pick(options: Dict[str, Any], camel: str, snake: str, default: Any) -> Any:
    if camel in options:
        return options[camel]
    return options.get(snake, default)


def _number(options: Dict[str, Any], camel: str, snake: str, default: float) -> float:
    value = _pick(options, camel, snake, default)
    # bool is an int subclass; "true" is not a gain
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise FilterError(f"{camel} must be a number, got {value!r}")
    return float(value)


def _mapping(value: Any, name: str) -> Mapping:
    if not isinstance(value, Mapping):
        raise FilterError(f"{name} must be an object, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class ColorCorrection:
    """
    Per-channel linear correction: out = clamp(in * gain + offset, 0, 255).
    """
    red_gain: float = 1.0
    red_offset: float = 0.0
    green_gain: float = 1.0
    green_offset: float = 0.0
    blue_gain: float = 1.0
    blue_offset: float = 0.0

    @property
    def gains(self):
        return (self.red_gain, self.green_gain, self.blue_gain)

    @property
    def offsets(self):
        return (self.red_offset, self.green_offset, self.blue_offset)

    def is_identity(self) -> bool:
        return self.gains == (1.0, 1.0, 1.0) and self.offsets == (0.0, 0.0, 0.0)

    @classmethod
    def from_dict(cls, options: Dict[str, Any]) -> "ColorCorrection":
        """Raises FilterError when *options* is not a mapping of numbers."""
        options = _mapping(options, "colorCorrection")
        return cls(
            red_gain=_number(options, "redGain", "red_gain", 1.0),
            red_offset=_number(options, "redOffset", "red_offset", 0.0),
            green_gain=_number(options, "greenGain", "green_gain", 1.0),
            green_offset=_number(options, "greenOffset", "green_offset", 0.0),
            blue_gain=_number(options, "blueGain", "blue_gain", 1.0),
            blue_offset=_number(options, "blueOffset", "blue_offset", 0.0),
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            "redGain": self.red_gain, "redOffset": self.red_offset,
            "greenGain": self.green_gain, "greenOffset": self.green_offset,
            "blueGain": self.blue_gain, "blueOffset": self.blue_offset,
        }


@dataclass(frozen=True)
class EnhancementConfig:
    """
    Value-object holding one enhancement request.

    brightness / contrast / saturation are multiplicative (neutral 1.0),
    sharpness / denoise are intensities (neutral 0.0). Nothing is clamped
    here; each filter clamps its own output.
    """
    brightness: float = 1.0
    contrast:   float = 1.0
    saturation: float = 1.0
    sharpness:  float = 0.0
    denoise:    float = 0.0
    color_correction: Optional[ColorCorrection] = None
    backend: Backend = field(default=Backend.FORCE_SOFTWARE)

    # ── Helpers ──────────────────────────────────────────────────────
    @property
    def use_hardware(self) -> bool:
        return self.backend is Backend.PREFER_HARDWARE

    def is_identity(self) -> bool:
        return (
            self.brightness == 1.0 and self.contrast == 1.0
            and self.saturation == 1.0 and self.sharpness == 0.0
            and self.denoise == 0.0
            and (self.color_correction is None or self.color_correction.is_identity())
        )

    @classmethod
    def from_dict(cls, options: Dict[str, Any] | None) -> "EnhancementConfig":
        """
        Build a config from the public option names (camelCase, as sent by
        the front-end) or their snake_case equivalents.

        Raises FilterError on a non-mapping payload or a non-numeric value.
        """
        options = _mapping(options if options is not None else {}, "config")
        correction = _pick(options, "colorCorrection", "color_correction", None)
        use_hw = bool(_pick(options, "useHardware", "use_hardware", False))
        return cls(
            brightness=_number(options, "brightness", "brightness", 1.0),
            contrast=_number(options, "contrast", "contrast", 1.0),
            saturation=_number(options, "saturation", "saturation", 1.0),
            sharpness=_number(options, "sharpness", "sharpness", 0.0),
            denoise=_number(options, "denoise", "denoise", 0.0),
            color_correction=(
                ColorCorrection.from_dict(correction) if correction is not None else None
            ),
            backend=Backend.PREFER_HARDWARE if use_hw else Backend.FORCE_SOFTWARE,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "brightness": self.brightness,
            "contrast": self.contrast,
            "saturation": self.saturation,
            "sharpness": self.sharpness,
            "denoise": self.denoise,
            "useHardware": self.use_hardware,
            "colorCorrection": (
                self.color_correction.to_dict() if self.color_correction else None
            ),
        }
