"""Helpers for the per-job output manifest written next to mask artifacts."""

from __future__ import annotations

from typing import Any, Mapping

from segmentation_sdk.config.settings import DEFAULT_ASSETS_BASE_URL
from segmentation_sdk.normalize.fields import resolve_named
from segmentation_sdk.normalize.masks import build_asset_url, trim_segment
from segmentation_sdk.types import JobStatusResult


def build_output_manifest_key(user_id: str, job_id: str, output_folder: str | None = None) -> str:
    """Return ``outputs/{user}/{output_folder or job}/output_manifest.json``."""

    account = trim_segment(user_id)
    folder = trim_segment(output_folder) if output_folder else ""
    base_key = f"outputs/{account}/{folder or trim_segment(job_id)}"
    return f"{base_key}/output_manifest.json"


def build_output_manifest_url(
    user_id: str,
    job_id: str,
    output_folder: str | None = None,
    *,
    base_url: str = DEFAULT_ASSETS_BASE_URL,
) -> str:
    return build_asset_url(build_output_manifest_key(user_id, job_id, output_folder), base_url)


def resolve_output_folder(status: JobStatusResult) -> str | None:
    """Return the job's explicit output folder when the server reported one."""

    output_folder = resolve_named(status.raw, "output_folder")
    if isinstance(output_folder, str) and output_folder.strip():
        return output_folder
    return None


def resolve_manifest_result_for_task(manifest: Any, task_id: str) -> Any:
    """Pick ``items[task_id].result`` when present, else the manifest's root ``result``."""

    if not isinstance(manifest, Mapping):
        return None

    items = manifest.get("items")
    if isinstance(items, Mapping):
        entry = items.get(task_id)
        if isinstance(entry, Mapping) and "result" in entry:
            return entry["result"]

    return manifest.get("result")
