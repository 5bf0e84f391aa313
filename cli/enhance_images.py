import argparse
import base64
import logging
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)

from models.enhancement_config import Backend, ColorCorrection, EnhancementConfig
from models.errors import EngineError
from pipeline.batch_enhancer import enhance_batch, log_batch_results
from services.image_engine import ImageEngine

logger = logging.getLogger(__name__)

VALID_EXTS = {
    ext.strip().lower()
    for ext in os.getenv("VALID_IMAGE_EXTENSIONS", ".jpg,.jpeg,.png,.bmp,.webp").split(",")
}


def collect_inputs(paths: List[str], recursive: bool) -> List[Path]:
    files: List[Path] = []
    for raw in paths:
        p = Path(raw)
        if p.is_dir():
            pattern = "**/*" if recursive else "*"
            files.extend(sorted(f for f in p.glob(pattern)
                                if f.is_file() and f.suffix.lower() in VALID_EXTS))
        else:
            files.append(p)
    return files


def write_data_url(data_url: str, target: Path) -> None:
    _, _, payload = data_url.partition(",")
    target.write_bytes(base64.b64decode(payload))


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Enhance images and write JPEG results.")
    ap.add_argument("inputs", nargs="+", help="Image files or directories")
    ap.add_argument("--out-dir", default=os.getenv("ENHANCED_DIR_PATH", "data/enhanced"))
    ap.add_argument("--recursive", action="store_true")
    ap.add_argument("--brightness", type=float, default=1.0)
    ap.add_argument("--contrast", type=float, default=1.0)
    ap.add_argument("--saturation", type=float, default=1.0)
    ap.add_argument("--sharpness", type=float, default=0.0)
    ap.add_argument("--denoise", type=float, default=0.0)
    ap.add_argument("--gain", type=float, nargs=3, metavar=("R", "G", "B"),
                    help="Per-channel colour-correction gains")
    ap.add_argument("--offset", type=float, nargs=3, metavar=("R", "G", "B"),
                    help="Per-channel colour-correction offsets")
    ap.add_argument("--hardware", action="store_true", help="Prefer the hardware backend")
    ap.add_argument("--palette", type=int, default=0,
                    help="Also log an N-colour palette per input")
    return ap


def config_from_args(args: argparse.Namespace) -> EnhancementConfig:
    correction = None
    if args.gain or args.offset:
        gains = args.gain or (1.0, 1.0, 1.0)
        offsets = args.offset or (0.0, 0.0, 0.0)
        correction = ColorCorrection(
            red_gain=gains[0], red_offset=offsets[0],
            green_gain=gains[1], green_offset=offsets[1],
            blue_gain=gains[2], blue_offset=offsets[2],
        )
    return EnhancementConfig(
        brightness=args.brightness,
        contrast=args.contrast,
        saturation=args.saturation,
        sharpness=args.sharpness,
        denoise=args.denoise,
        color_correction=correction,
        backend=Backend.PREFER_HARDWARE if args.hardware else Backend.FORCE_SOFTWARE,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    files = collect_inputs(args.inputs, args.recursive)
    if not files:
        logger.error("No input images found")
        return 1

    out_dir = Path(args.out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    refs = [str(f) for f in files]

    with ImageEngine() as engine:
        results = enhance_batch(refs, config_from_args(args), engine=engine)
        for src, result in zip(files, results):
            if result.enhanced:
                write_data_url(result.image_ref, out_dir / f"{src.stem}_enhanced.jpg")
        log_batch_results(refs, results)

        if args.palette > 0:
            for ref in refs:
                try:
                    palette = engine.analyze(ref, args.palette)
                except EngineError as err:
                    logger.warning(f"Palette failed for {ref}: {err}")
                    continue
                swatches = " ".join(s["hex"] for s in palette.to_dict()["swatches"])
                logger.info(f"Palette {Path(ref).name}: {swatches}")

    return 0 if any(r.enhanced for r in results) else 2


if __name__ == "__main__":
    raise SystemExit(main())
