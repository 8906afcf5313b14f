"""Lookup of canonical fields across historical wire spellings."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from pydantic import AliasChoices

# Ordered candidates per canonical field; the first present key wins.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "request_id": ("requestId", "request_id"),
    "job_id": ("jobId", "job_id"),
    "task_id": ("taskId", "task_id"),
    "type": ("type",),
    "status": ("status",),
    "total_items": ("totalItems", "total_items"),
    "queued_items": ("queuedItems", "queued_items"),
    "processing_items": ("processingItems", "processing_items"),
    "success_items": ("successItems", "success_items"),
    "failed_items": ("failedItems", "failed_items"),
    "poll_path": ("pollPath", "poll_path"),
    "output_folder": ("outputFolder", "output_folder"),
    "output_prefix": ("outputPrefix", "output_prefix"),
    "num_instances": ("numInstances", "num_instances"),
    "input_s3_key": ("inputS3Key", "input_s3_key"),
    "storage_key": ("inputS3Key", "taskId", "storageKey", "key"),
    "upload_url": ("uploadUrl", "upload_url"),
    "expires_in": ("expiresIn", "expires_in"),
    "error_code": ("errorCode", "error_code"),
    "manifest_url": ("manifestUrl", "manifest_url"),
    "frames_url": ("framesUrl", "frames_url"),
    "output_s3_prefix": ("outputS3Prefix", "output_s3_prefix"),
    "mask_encoding": ("maskEncoding", "mask_encoding"),
    "frames_processed": ("framesProcessed", "frames_processed"),
    "frames_with_masks": ("framesWithMasks", "frames_with_masks"),
    "total_masks": ("totalMasks", "total_masks"),
    "mask_index": ("maskIndex", "mask_index"),
    "mask_key": ("key", "storageKey", "storage_key"),
    "mask_url": ("maskUrl", "mask_url"),
    "score": ("score", "confidence"),
    "object_id": ("objectId", "object_id"),
    "frame_idx": ("frameIdx", "frame_idx"),
}


def _lookup(payload: Any, path: str) -> tuple[bool, Any]:
    current = payload
    for segment in path.split("."):
        if not isinstance(current, Mapping) or segment not in current:
            return False, None
        current = current[segment]
    return True, current


def resolve_field(payload: Any, candidates: Iterable[str], default: Any = None) -> Any:
    """Return the value at the first candidate path that holds a non-null value.

    Candidates are dotted paths (``"output.manifest_url"``), tried in order.
    A key that is present but ``None`` counts as absent so that a newer
    spelling set to null does not hide an older one.
    """

    for path in candidates:
        found, value = _lookup(payload, path)
        if found and value is not None:
            return value
    return default


def resolve_named(payload: Any, field: str, default: Any = None) -> Any:
    """Resolve a canonical field using its registered spellings."""

    return resolve_field(payload, FIELD_ALIASES[field], default)


def aliases(field: str) -> AliasChoices:
    """Expose the registered spellings to pydantic wire models."""

    return AliasChoices(*FIELD_ALIASES[field])
