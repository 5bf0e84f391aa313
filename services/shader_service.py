from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass

import numpy as np
import torch
from dotenv import load_dotenv

from models.errors import BackendUnavailable
from models.hardware import HardwareAvailable, HardwareCapability, HardwareUnavailable
from models.pixel_buffer import PixelBuffer

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

LUMA = (0.299, 0.587, 0.114)


@dataclass(frozen=True)
class ShaderUniforms:
    brightness: float = 1.0
    contrast: float = 1.0
    saturation: float = 1.0


class FragmentProgram:
    """
    Per-fragment colour program, evaluated for every texel in one pass.

    Works in normalised [0, 1] space: brightness multiplies, contrast
    pivots at 0.5, saturation mixes luma with the colour. Values are only
    clamped once, on emit. Alpha passes through.
    """

    def __init__(self, device: torch.device):
        self.device = device
        self.luma = torch.tensor(LUMA, dtype=torch.float32, device=device)

    def __call__(self, texture: torch.Tensor, uniforms: ShaderUniforms) -> torch.Tensor:
        # texture: (H, W, 4) float32 in [0, 1]
        color = texture[..., :3] * uniforms.brightness
        color = (color - 0.5) * uniforms.contrast + 0.5
        gray = (color * self.luma).sum(dim=-1, keepdim=True)
        color = torch.lerp(gray.expand_as(color), color, uniforms.saturation)
        color = color.clamp(0.0, 1.0)
        return torch.cat([color, texture[..., 3:]], dim=-1)


class ShaderService:
    """
    Hardware backend for the linear enhancements (brightness, contrast,
    saturation), run as one fused pass on a torch accelerator.

    • initialize() probes the device once and validates the program with a
      single-texel draw; the outcome is returned as a HardwareCapability
      value, never raised.
    • The context is exclusive: render() serialises callers on a lock.
    • Sharpen, denoise and colour correction have no program here.

    Device selection ("device" arg or HARDWARE_DEVICE env):
        auto → cuda, then mps, else unavailable
        none → always unavailable
        cpu / cuda / cuda:N / mps → that torch device
    """

    SUPPORTED_STAGES = ("brightness", "contrast", "saturation")

    def __init__(self, device: str | None = None):
        self.requested_device = (device or os.getenv("HARDWARE_DEVICE", "auto")).lower()
        self._capability: HardwareCapability | None = None
        self._program: FragmentProgram | None = None
        self._lock = threading.Lock()

    # ─── Capability probe ──────────────────────────────────────────
    def _resolve_device(self) -> torch.device | str:
        """Returns a torch.device, or a reason string when none is usable."""
        requested = self.requested_device
        if requested == "none":
            return "hardware acceleration disabled"
        if requested == "auto":
            if torch.cuda.is_available():
                return torch.device("cuda")
            if hasattr(torch.backends, "mps") and torch.backends.mps.is_available():
                return torch.device("mps")
            return "no CUDA or MPS device available"
        if requested.startswith("cuda") and not torch.cuda.is_available():
            return "CUDA requested but not available"
        if requested == "mps" and not (
            hasattr(torch.backends, "mps") and torch.backends.mps.is_available()
        ):
            return "MPS requested but not available"
        try:
            return torch.device(requested)
        except (RuntimeError, ValueError) as err:
            return f"invalid device {requested!r}: {err}"

    def initialize(self) -> HardwareCapability:
        with self._lock:
            if self._capability is not None:
                return self._capability

            device = self._resolve_device()
            if isinstance(device, str):
                self._capability = HardwareUnavailable(device)
            else:
                self._capability = self._build_program(device)

            if isinstance(self._capability, HardwareAvailable):
                logger.info(f"Shader backend ready on {self._capability.device}")
            else:
                logger.info(f"Shader backend unavailable: {self._capability.reason}")
            return self._capability

    def _build_program(self, device: torch.device) -> HardwareCapability:
        try:
            program = FragmentProgram(device)
            probe = torch.tensor([[[0.25, 0.5, 0.75, 1.0]]], dtype=torch.float32, device=device)
            out = program(probe, ShaderUniforms())
            if not torch.allclose(out.cpu(), probe.cpu(), atol=1e-6):
                return HardwareUnavailable("shader program failed validation draw")
        except (RuntimeError, TypeError, ValueError) as err:
            return HardwareUnavailable(f"shader program setup failed on {device}: {err}")
        self._program = program
        return HardwareAvailable(str(device))

    @property
    def capability(self) -> HardwareCapability | None:
        return self._capability

    # ─── Draw ──────────────────────────────────────────────────────
    def render(self, buffer: PixelBuffer, uniforms: ShaderUniforms) -> None:
        """
        Upload *buffer* as a texture, run the program over a viewport of the
        same size and read the framebuffer back into *buffer*.

        The quad covers the viewport 1:1, so each fragment samples exactly
        its own texel.
        """
        capability = self.initialize()
        if not isinstance(capability, HardwareAvailable):
            raise BackendUnavailable(capability.reason)

        with self._lock:
            program = self._program
            if program is None:
                raise BackendUnavailable("shader program was disposed")
            with torch.inference_mode():
                texture = torch.from_numpy(np.ascontiguousarray(buffer.pixels)).to(
                    program.device, dtype=torch.float32
                ) / 255.0
                framebuffer = program(texture, uniforms)
                out = torch.round(framebuffer * 255.0).to(torch.uint8).cpu().numpy()

        buffer.pixels[...] = out

    def dispose(self) -> None:
        with self._lock:
            self._program = None
            self._capability = None
