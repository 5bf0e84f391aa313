from __future__ import annotations
from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class HardwareAvailable:
    """Probe succeeded: the shader program runs on *device*."""
    device: str


@dataclass(frozen=True)
class HardwareUnavailable:
    """Probe failed; *reason* says why (no device, program failed, forced off)."""
    reason: str


HardwareCapability = Union[HardwareAvailable, HardwareUnavailable]
