"""Upload a local image, segment it and print the resulting mask URLs."""

from __future__ import annotations

import argparse
import asyncio
import mimetypes
from pathlib import Path
from typing import Iterable, Sequence

from segmentation_sdk import MaskArtifact, SegmentationClient, SegmentationError
from segmentation_sdk.monitoring.logging import configure_logging


def _format_mask(mask: MaskArtifact) -> str:
    score = "-" if mask.score is None else f"{mask.score:.3f}"
    return f"#{mask.mask_index} score={score} {mask.url}"


def print_masks(masks: Iterable[MaskArtifact]) -> None:
    for mask in masks:
        print(_format_mask(mask))


async def run(image: Path, prompts: Sequence[str], threshold: float | None) -> int:
    content_type = mimetypes.guess_type(image.name)[0] or "application/octet-stream"
    try:
        async with SegmentationClient.from_settings() as client:
            result = await client.upload_and_segment(
                prompts,
                image.read_bytes(),
                content_type,
                threshold=threshold,
            )
    except SegmentationError as exc:
        print(f"❌ {exc.operation}: {exc}")
        return 1

    print(f"✅ job {result.job_id}: {result.num_instances} instance(s) at {result.output_url}")
    print_masks(result.masks)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("image", type=Path)
    parser.add_argument("prompts", nargs="+")
    parser.add_argument("--threshold", type=float, default=None)
    args = parser.parse_args()

    configure_logging()
    raise SystemExit(asyncio.run(run(args.image, args.prompts, args.threshold)))


if __name__ == "__main__":
    main()
