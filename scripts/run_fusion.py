"""
Run detection post-processing and fusion on one slide.
Usage:
    python scripts/run_fusion.py --response reply.json [--secondary ocr.json | --image slide.png]
        [--out fused.json] [--overlay fusion.png] [--mask mask.png]
        [--confidence 0.6] [--iou 0.3] [--keep-primary-boxes] [--hybrid]
"""

import argparse
import json
import logging
from pathlib import Path

from PIL import Image

from slidefuse import (
    FusionConfig,
    TextElement,
    draw_fusion_debug,
    render_inpaint_mask,
    run_detection,
    text_boxes,
)

log = logging.getLogger("slidefuse.run_fusion")


def load_secondary(path: Path) -> list[TextElement]:
    """Load a JSON list of text elements in the editor's element shape."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("elements", [])
    return [TextElement.from_dict(d) for d in data]


def build_config(args: argparse.Namespace) -> FusionConfig:
    overrides = {}
    if args.confidence is not None:
        overrides["confidence_threshold"] = args.confidence
    if args.iou is not None:
        overrides["fusion_iou_threshold"] = args.iou
    if args.keep_primary_boxes:
        overrides["prefer_client_boxes"] = False
    if args.hybrid or args.secondary is not None:
        overrides["enable_hybrid_detection"] = True
    return FusionConfig(**overrides)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Filter, deduplicate and fuse slide layout detections"
    )
    parser.add_argument(
        "--response", type=Path, required=True, help="Raw vision-model reply (text/JSON)"
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--secondary", type=Path, help="JSON list of secondary text elements"
    )
    source.add_argument("--image", type=Path, help="Slide image to OCR")
    parser.add_argument("--out", type=Path, help="Write fused elements JSON here")
    parser.add_argument("--overlay", type=Path, help="Write a fusion debug PNG here")
    parser.add_argument("--mask", type=Path, help="Write a text inpainting mask here")
    parser.add_argument("--confidence", type=float, help="Confidence threshold (0-1)")
    parser.add_argument("--iou", type=float, help="Fusion IoU threshold (0-1)")
    parser.add_argument(
        "--keep-primary-boxes",
        action="store_true",
        help="Keep vision-model boxes for matched text",
    )
    parser.add_argument(
        "--hybrid", action="store_true", help="Enable hybrid (vision + OCR) detection"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cfg = build_config(args)
    response = args.response.read_text(encoding="utf-8")
    secondary = load_secondary(args.secondary) if args.secondary else None
    image = Image.open(args.image) if args.image else None

    result = run_detection(response, cfg, image=image, secondary=secondary)
    print(json.dumps(result.to_summary_dict(), indent=2))

    if args.out:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")
        log.info("wrote %d elements to %s", len(result.elements), args.out)

    width, height = image.size if image is not None else (1600, 900)

    if args.overlay:
        draw_fusion_debug(result, width, height, args.overlay, background=image)

    if args.mask:
        mask = render_inpaint_mask(
            text_boxes(result.elements), width, height, cfg.inpaint_padding
        )
        args.mask.parent.mkdir(parents=True, exist_ok=True)
        mask.save(str(args.mask))
        log.info("wrote inpainting mask to %s", args.mask)


if __name__ == "__main__":
    main()
