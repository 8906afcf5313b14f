"""Mask artifact addressing and normalization of mask-like payloads."""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Callable, Mapping, Sequence

from segmentation_sdk.config.settings import DEFAULT_ASSETS_BASE_URL
from segmentation_sdk.errors import ValidationIssue, response_error
from segmentation_sdk.normalize.fields import resolve_named
from segmentation_sdk.types import Box, DecodedMask, MaskArtifact, MaskArtifactContext, VideoFrameMasks

logger = logging.getLogger(__name__)


def trim_segment(value: str) -> str:
    return value.strip().strip("/")


def build_asset_url(key: str, base_url: str = DEFAULT_ASSETS_BASE_URL) -> str:
    """Join a storage-relative key onto the public asset host."""

    return f"{base_url.rstrip('/')}/{key.lstrip('/')}"


def build_mask_artifact_key(context: MaskArtifactContext, mask_index: int) -> str:
    """Return ``outputs/{user}/{job}/{task}/mask_{index}.png`` for a task."""

    account = trim_segment(context.user_id)
    job = trim_segment(context.job_id)
    task = trim_segment(context.task_id)
    return f"outputs/{account}/{job}/{task}/mask_{mask_index}.png"


def build_mask_artifact_url(key: str, base_url: str = DEFAULT_ASSETS_BASE_URL) -> str:
    return build_asset_url(key, base_url)


def build_frames_key(context: MaskArtifactContext) -> str:
    """Key of the gzipped NDJSON frame index written for video tasks."""

    account = trim_segment(context.user_id)
    job = trim_segment(context.job_id)
    task = trim_segment(context.task_id)
    return f"outputs/{account}/{job}/{task}/frames.ndjson.gz"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _as_index(value: Any, fallback: int) -> int:
    if isinstance(value, str) and value.strip():
        try:
            value = float(value)
        except ValueError:
            return fallback
    if not _is_number(value):
        return fallback
    return max(0, math.floor(value))


def _as_score(value: Any, path: str, operation: str) -> float | None:
    if value is None:
        return None
    if not _is_number(value):
        raise response_error(
            operation,
            issues=[ValidationIssue(path=path, message="Expected a finite number or null.", code="invalid_type")],
        )
    return value


def _as_box(value: Any, path: str, operation: str) -> Box | None:
    if value is None:
        return None
    if isinstance(value, (list, tuple)) and len(value) == 4 and all(_is_number(entry) for entry in value):
        return tuple(value)  # type: ignore[return-value]
    raise response_error(
        operation,
        issues=[ValidationIssue(path=path, message="Expected 4 finite numbers or null.", code="invalid_box")],
    )


def normalize_mask_artifacts(
    result: Any,
    context: MaskArtifactContext | None = None,
    *,
    assets_base_url: str = DEFAULT_ASSETS_BASE_URL,
    operation: str = "normalizeMaskArtifacts",
) -> list[MaskArtifact]:
    """Build a sorted mask list from a ``masks`` array or a bare list.

    Entries without an explicit storage key get one derived from ``context``;
    when neither is available the entry is dropped. A malformed ``box`` or
    ``score`` raises a response ``ValidationError``.
    """

    if isinstance(result, list):
        entries: Sequence[Any] = result
    elif isinstance(result, Mapping) and isinstance(result.get("masks"), list):
        entries = result["masks"]
    else:
        return []

    artifacts: list[MaskArtifact] = []
    for position, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            continue
        mask_index = _as_index(resolve_named(entry, "mask_index"), position)
        explicit_key = resolve_named(entry, "mask_key")
        if isinstance(explicit_key, str) and explicit_key.strip():
            key = explicit_key
        elif context is not None:
            key = build_mask_artifact_key(context, mask_index)
        else:
            logger.debug("Dropping mask %s without a storage key", position)
            continue
        artifacts.append(
            MaskArtifact(
                mask_index=mask_index,
                key=key,
                url=build_mask_artifact_url(key, assets_base_url),
                score=_as_score(resolve_named(entry, "score"), f"masks.{position}.score", operation),
                box=_as_box(entry.get("box"), f"masks.{position}.box", operation),
            )
        )
    return sorted(artifacts, key=lambda artifact: artifact.mask_index)


def _rows_from_ndjson(content: str) -> list[Any]:
    rows = []
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        try:
            rows.append(json.loads(stripped))
        except json.JSONDecodeError:
            logger.debug("Skipping undecodable NDJSON frame row")
    return rows


def _rows_from_list(content: list[Any]) -> list[Any]:
    return content


def _rows_from_wrapper(content: Mapping[str, Any]) -> list[Any]:
    return content["frames"]


_FRAME_DECODERS: dict[str, Callable[[Any], list[Any]]] = {
    "ndjson": _rows_from_ndjson,
    "rows": _rows_from_list,
    "wrapped": _rows_from_wrapper,
}


def _frame_payload_kind(result: Any) -> str | None:
    if isinstance(result, str):
        return "ndjson"
    if isinstance(result, list):
        return "rows"
    if isinstance(result, Mapping) and isinstance(result.get("frames"), list):
        return "wrapped"
    return None


def _frame_index(value: Any) -> int | None:
    if not _is_number(value) or value < 0:
        return None
    return math.floor(value)


def _artifact_from_frame_object(
    entry: Mapping[str, Any],
    position: int,
    path: str,
    context: MaskArtifactContext,
    assets_base_url: str,
    operation: str,
) -> MaskArtifact:
    mask_index = _as_index(resolve_named(entry, "object_id"), position)
    key = build_mask_artifact_key(context, mask_index)
    raw_url = resolve_named(entry, "mask_url")
    url = raw_url if isinstance(raw_url, str) and raw_url.strip() else build_mask_artifact_url(key, assets_base_url)
    rle = entry.get("rle")
    return MaskArtifact(
        mask_index=mask_index,
        key=key,
        url=url,
        score=_as_score(resolve_named(entry, "score"), f"{path}.score", operation),
        box=_as_box(entry.get("box"), f"{path}.box", operation),
        rle=rle if isinstance(rle, Mapping) else None,
    )


def normalize_video_frame_masks(
    result: Any,
    context: MaskArtifactContext,
    *,
    assets_base_url: str = DEFAULT_ASSETS_BASE_URL,
    operation: str = "normalizeVideoFrameMasks",
) -> VideoFrameMasks:
    """Map frame index to sorted masks from rows, NDJSON text or ``{"frames": [...]}``.

    Payloads matching none of the three shapes yield an empty mapping.
    """

    kind = _frame_payload_kind(result)
    if kind is None:
        return {}

    frame_masks: VideoFrameMasks = {}
    for row_position, row in enumerate(_FRAME_DECODERS[kind](result)):
        if not isinstance(row, Mapping):
            continue
        frame_index = _frame_index(resolve_named(row, "frame_idx"))
        objects = row.get("objects")
        if frame_index is None or not isinstance(objects, list):
            continue
        masks = [
            _artifact_from_frame_object(
                entry,
                position,
                f"frames.{row_position}.objects.{position}",
                context,
                assets_base_url,
                operation,
            )
            for position, entry in enumerate(objects)
            if isinstance(entry, Mapping)
        ]
        if masks:
            frame_masks[frame_index] = sorted(masks, key=lambda artifact: artifact.mask_index)
    return frame_masks


def _counts_from_string(encoded: str) -> list[int]:
    """Decode the COCO compressed RLE string (6-bit chunks offset by 48)."""

    counts: list[int] = []
    position = 0
    while position < len(encoded):
        value = 0
        shift = 0
        more = True
        while more:
            chunk = ord(encoded[position]) - 48
            value |= (chunk & 0x1F) << (5 * shift)
            more = bool(chunk & 0x20)
            position += 1
            shift += 1
            if not more and chunk & 0x10:
                value |= -1 << (5 * shift)
        if len(counts) > 2:
            value += counts[-2]
        counts.append(value)
    return counts


def decode_coco_rle_mask(rle: Mapping[str, Any]) -> DecodedMask:
    """Expand a COCO RLE (``size=[height, width]``) into a row-major binary mask."""

    size = rle.get("size")
    if not isinstance(size, (list, tuple)) or len(size) != 2:
        raise ValueError("RLE size must be [height, width].")
    height, width = int(size[0]), int(size[1])

    raw_counts = rle.get("counts")
    if isinstance(raw_counts, str):
        counts = _counts_from_string(raw_counts)
    elif isinstance(raw_counts, (list, tuple)):
        counts = [int(value) for value in raw_counts]
    else:
        raise ValueError("RLE counts must be a list of integers or a compressed string.")

    total = height * width
    if sum(counts) != total or any(value < 0 for value in counts):
        raise ValueError(f"RLE counts cover {sum(counts)} pixels, expected {total}.")

    column_major = bytearray(total)
    offset = 0
    for run_index, run in enumerate(counts):
        if run_index % 2 == 1:
            column_major[offset : offset + run] = b"\x01" * run
        offset += run

    row_major = bytearray(total)
    for column in range(width):
        for row in range(height):
            row_major[row * width + column] = column_major[column * height + row]
    return DecodedMask(width=width, height=height, data=bytes(row_major))
