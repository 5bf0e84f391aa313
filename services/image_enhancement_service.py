from __future__ import annotations

import logging
import math
from typing import List, Tuple

from dotenv import load_dotenv

from models.enhancement_config import EnhancementConfig
from models.enhancement_result import EnhancementResult
from models.errors import BackendUnavailable, DecodeError, FilterError
from models.hardware import HardwareAvailable
from models.image import Image
from models.pixel_buffer import PixelBuffer
from repositories.image_repository import ImageRepository
from services.cpu_filter_service import CpuFilterService
from services.image_loader_service import ImageLoaderService
from services.shader_service import ShaderService, ShaderUniforms

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

SOFTWARE = "software"
HARDWARE = "hardware"


class ImageEnhancementService:
    """
    Runs an EnhancementConfig over one image and re-encodes the result.

    *   Best effort: if the source cannot be decoded or a stage fails, the
        caller gets its original reference back, never an exception.
    *   Hardware is used only when asked for *and* the shader probe
        succeeded; otherwise the CPU filters run.
    *   Software order is fixed: brightness → contrast → saturation →
        sharpen → denoise → colour correction. Identity stages are skipped.
    """

    def __init__(self,
                 loader: ImageLoaderService | None = None,
                 cpu_filters: CpuFilterService | None = None,
                 shader: ShaderService | None = None,
                 image_repository: ImageRepository | None = None):
        self.loader = loader if loader is not None else ImageLoaderService()
        self.cpu_filters = cpu_filters if cpu_filters is not None else CpuFilterService()
        self.shader = shader if shader is not None else ShaderService()
        self.image_repository = (image_repository if image_repository is not None
                                 else self.loader.image_repository)

    # ─── Public API ────────────────────────────────────────────────
    def enhance(self, image_ref: str, config: EnhancementConfig) -> str:
        return self.enhance_with_result(image_ref, config).image_ref

    def enhance_with_result(self, image_ref: str, config: EnhancementConfig) -> EnhancementResult:
        try:
            img = self.loader.load(image_ref)
        except DecodeError as err:
            logger.warning(f"Enhancement skipped, source not decodable: {err}")
            return EnhancementResult(image_ref=image_ref, enhanced=False, error=str(err))

        try:
            buffer, backend, skipped = self.enhance_pixels(img, config)
            encoded = self.image_repository.encode(buffer, "JPEG")
        except Exception as err:
            logger.exception(f"Enhancement failed, returning original image: {err}")
            return EnhancementResult(image_ref=image_ref, enhanced=False, error=str(err))

        return EnhancementResult(image_ref=encoded, enhanced=True,
                                 backend=backend, skipped=skipped)

    def enhance_pixels(self, img: Image, config: EnhancementConfig
                       ) -> Tuple[PixelBuffer, str, List[str]]:
        """
        Pixel-level pipeline. Returns (buffer, backend name, skipped stages).
        Raises FilterError on a bad parameter.
        """
        buffer = PixelBuffer.from_image(img)
        backend = self.select_backend(config)

        if backend == HARDWARE:
            try:
                return buffer, HARDWARE, self._run_hardware(buffer, config)
            except BackendUnavailable as err:
                logger.warning(f"Hardware pass failed, using software: {err}")
                buffer = PixelBuffer.from_image(img)

        self._run_software(buffer, config)
        return buffer, SOFTWARE, []

    def select_backend(self, config: EnhancementConfig) -> str:
        if not config.use_hardware:
            return SOFTWARE
        capability = self.shader.initialize()
        if isinstance(capability, HardwareAvailable):
            return HARDWARE
        logger.info(f"Falling back to software backend: {capability.reason}")
        return SOFTWARE

    # ─── Internal helpers ──────────────────────────────────────────
    def _run_software(self, buffer: PixelBuffer, config: EnhancementConfig) -> None:
        f = self.cpu_filters
        if config.brightness != 1:
            f.brightness(buffer, config.brightness)
        if config.contrast != 1:
            f.contrast(buffer, config.contrast)
        if config.saturation != 1:
            f.saturation(buffer, config.saturation)
        if config.sharpness != 0:
            f.sharpen(buffer, config.sharpness)
        if config.denoise != 0:
            f.denoise(buffer, config.denoise)
        if config.color_correction is not None and not config.color_correction.is_identity():
            f.color_correction(buffer, config.color_correction)

    def _run_hardware(self, buffer: PixelBuffer, config: EnhancementConfig) -> List[str]:
        for name in ("brightness", "contrast", "saturation"):
            value = getattr(config, name)
            if not math.isfinite(value):
                raise FilterError(f"{name} must be finite, got {value}")

        if (config.brightness, config.contrast, config.saturation) != (1, 1, 1):
            self.shader.render(buffer, ShaderUniforms(
                brightness=config.brightness,
                contrast=config.contrast,
                saturation=config.saturation,
            ))

        skipped = []
        if config.sharpness != 0:
            skipped.append("sharpen")
        if config.denoise != 0:
            skipped.append("denoise")
        if config.color_correction is not None and not config.color_correction.is_identity():
            skipped.append("color_correction")
        if skipped:
            logger.info(f"Hardware backend has no program for: {', '.join(skipped)}")
        return skipped
