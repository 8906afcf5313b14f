"""Python client for the segmentation API."""

from .api.client import SegmentationClient
from .errors import (
    NetworkError,
    SegmentationApiError,
    SegmentationError,
    UploadError,
    ValidationError,
    ValidationIssue,
)
from .normalize.manifest import (
    build_output_manifest_key,
    build_output_manifest_url,
    resolve_manifest_result_for_task,
    resolve_output_folder,
)
from .normalize.masks import (
    build_frames_key,
    build_mask_artifact_key,
    build_mask_artifact_url,
    decode_coco_rle_mask,
    normalize_mask_artifacts,
    normalize_video_frame_masks,
)
from .types import (
    ApiProfile,
    ItemResult,
    JobAcceptedResult,
    JobRequestStatus,
    JobStatusResult,
    JobTaskStatus,
    JobType,
    MaskArtifact,
    MaskArtifactContext,
    SegmentResult,
    SegmentVideoResult,
    UploadFile,
    UploadTicket,
)
from .validation import BoxPrompt, PointPrompt

__all__ = [
    "ApiProfile",
    "BoxPrompt",
    "ItemResult",
    "JobAcceptedResult",
    "JobRequestStatus",
    "JobStatusResult",
    "JobTaskStatus",
    "JobType",
    "MaskArtifact",
    "MaskArtifactContext",
    "NetworkError",
    "PointPrompt",
    "SegmentResult",
    "SegmentVideoResult",
    "SegmentationApiError",
    "SegmentationClient",
    "SegmentationError",
    "UploadError",
    "UploadFile",
    "UploadTicket",
    "ValidationError",
    "ValidationIssue",
    "build_frames_key",
    "build_mask_artifact_key",
    "build_mask_artifact_url",
    "build_output_manifest_key",
    "build_output_manifest_url",
    "decode_coco_rle_mask",
    "normalize_mask_artifacts",
    "normalize_video_frame_masks",
    "resolve_manifest_result_for_task",
    "resolve_output_folder",
]
