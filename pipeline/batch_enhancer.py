"""
Batch Enhancer Pipeline
Runs one EnhancementConfig over a list of image references and reports
which ones were actually enhanced.
"""

import logging
from typing import List, Sequence

from tqdm import tqdm

from models.enhancement_config import EnhancementConfig
from models.enhancement_result import EnhancementResult
from services.image_engine import ImageEngine

logger = logging.getLogger(__name__)


def enhance_batch(
    image_refs: Sequence[str],
    config: EnhancementConfig,
    *,
    engine: ImageEngine,
    preload: bool = True,
    progress: bool = True,
) -> List[EnhancementResult]:
    """
    Enhance every reference in *image_refs*.

    1. Optionally warms the decode cache for all sources up front
    2. Enhances each image in order (one failure never stops the batch)
    3. Returns one EnhancementResult per input, same order

    Args:
        image_refs: Locators to enhance
        config: Enhancement settings applied to every image
        engine: Engine owning the cache and hardware context
        preload: Decode all sources before the first enhancement
        progress: Show a tqdm progress bar

    Returns:
        List[EnhancementResult]: results aligned with *image_refs*
    """
    if not image_refs:
        logger.info("No images to enhance.")
        return []

    if preload:
        failed = engine.preload(image_refs)
        if failed:
            logger.warning(f"{len(failed)} of {len(image_refs)} sources could not be decoded")

    results = []
    for ref in tqdm(image_refs, desc="enhance", ncols=70, disable=not progress):
        results.append(engine.enhance_with_result(ref, config))
    return results


def log_batch_results(image_refs: Sequence[str], results: Sequence[EnhancementResult]) -> None:
    """
    Log a one-line summary per image plus totals.
    """
    if not results:
        logger.info("No enhancement results to display.")
        return

    for i, (ref, result) in enumerate(zip(image_refs, results), 1):
        status = f"enhanced ({result.backend})" if result.enhanced else f"unchanged: {result.error}"
        skipped = f" | skipped: {', '.join(result.skipped)}" if result.skipped else ""
        logger.info(f"{i}. {ref[:60]} | {status}{skipped}")

    done = sum(1 for r in results if r.enhanced)
    logger.info(f"Enhanced {done}/{len(results)} images")
