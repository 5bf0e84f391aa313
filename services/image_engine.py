from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List

from models.color_palette import ColorPalette
from models.enhancement_config import EnhancementConfig
from models.enhancement_result import EnhancementResult
from models.errors import FilterError
from models.hardware import HardwareAvailable, HardwareCapability
from repositories.byte_store_repository import ByteStore
from repositories.image_repository import ImageRepository
from services.color_analysis_service import ColorAnalysisService
from services.cpu_filter_service import CpuFilterService
from services.image_enhancement_service import ImageEnhancementService
from services.image_loader_service import ImageLoaderService
from services.shader_service import ShaderService
from services.transform_service import TransformService

logger = logging.getLogger(__name__)


class ImageEngine:
    """
    One engine = one decode cache + one hardware context.

    Construct it once, hand it to whoever needs it, and dispose() it (or use
    it as a context manager) when done. All services share the same loader,
    so an image decoded for enhancement is reused by colour analysis.
    """

    def __init__(self,
                 *,
                 hardware_device: str | None = None,
                 byte_store: ByteStore | None = None,
                 max_denoise_radius: int | None = None):
        self.image_repository = ImageRepository(byte_store=byte_store)
        self.loader = ImageLoaderService(self.image_repository)
        self.shader = ShaderService(device=hardware_device)
        self.enhancement = ImageEnhancementService(
            loader=self.loader,
            cpu_filters=CpuFilterService(max_denoise_radius=max_denoise_radius),
            shader=self.shader,
            image_repository=self.image_repository,
        )
        self.colors = ColorAnalysisService(loader=self.loader)
        self.transforms = TransformService(loader=self.loader,
                                           image_repository=self.image_repository)
        self._disposed = False

    # ─── Lifecycle ─────────────────────────────────────────────────
    def __enter__(self) -> "ImageEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        self.dispose()

    def dispose(self) -> None:
        if self._disposed:
            return
        self.loader.clear()
        self.shader.dispose()
        self._disposed = True
        logger.info("Image engine disposed")

    # ─── Facade ────────────────────────────────────────────────────
    def enhance(self, image_ref: str, config: EnhancementConfig | Dict[str, Any] | None = None) -> str:
        return self.enhance_with_result(image_ref, config).image_ref

    def enhance_with_result(self, image_ref: str,
                            config: EnhancementConfig | Dict[str, Any] | None = None
                            ) -> EnhancementResult:
        if not isinstance(config, EnhancementConfig):
            try:
                config = EnhancementConfig.from_dict(config)
            except FilterError as err:
                logger.warning(f"Enhancement skipped, invalid config: {err}")
                return EnhancementResult(image_ref=image_ref, enhanced=False, error=str(err))
        return self.enhancement.enhance_with_result(image_ref, config)

    def analyze(self, image_ref: str, num_colors: int = 5) -> ColorPalette:
        return self.colors.analyze(image_ref, num_colors)

    def upscale(self, image_ref: str, factor: float) -> str:
        return self.transforms.upscale(image_ref, factor)

    def resize(self, image_ref: str, width: int, height: int) -> str:
        return self.transforms.resize(image_ref, width, height)

    def remove_background(self, image_ref: str) -> str:
        return self.transforms.remove_background(image_ref)

    def optimize(self, image_ref: str, quality: int = 80, fmt: str = "JPEG") -> str:
        return self.transforms.optimize(image_ref, quality, fmt)

    def preload(self, urls: Iterable[str]) -> List[str]:
        return self.loader.preload(urls)

    def probe_hardware(self) -> HardwareCapability:
        return self.shader.initialize()

    def capabilities(self) -> Dict[str, Any]:
        capability = self.probe_hardware()
        hardware = isinstance(capability, HardwareAvailable)
        return {
            "hardware": hardware,
            "device": capability.device if hardware else None,
            "reason": None if hardware else capability.reason,
            "hardware_stages": list(ShaderService.SUPPORTED_STAGES),
            "cached_images": len(self.loader),
        }
