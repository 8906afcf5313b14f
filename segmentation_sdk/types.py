"""Canonical result types returned by the segmentation client."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import IO, Any, Awaitable, Callable, Mapping, Union

BinaryData = Union[bytes, bytearray, memoryview, IO[bytes]]
Box = tuple[float, float, float, float]
ProgressCallback = Callable[[int, int], Union[None, Awaitable[None]]]


class ApiProfile(str, Enum):
    """Wire-protocol generation spoken by the client."""

    LEGACY = "legacy"  # /segment/batch, /segment/video, snake_case payloads
    JOBS = "jobs"  # /jobs, camelCase payloads, manifest-based outputs


class CredentialKind(str, Enum):
    API_KEY = "api_key"
    BEARER = "bearer"


class JobType(str, Enum):
    IMAGE_SYNC = "image_sync"
    IMAGE_BATCH = "image_batch"
    VIDEO = "video"


class JobRequestStatus(str, Enum):
    """Lifecycle of a submitted job as a whole."""

    QUEUED = "queued"
    PROCESSING = "processing"
    SUCCESS = "success"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self not in (JobRequestStatus.QUEUED, JobRequestStatus.PROCESSING)


class JobTaskStatus(str, Enum):
    """Lifecycle of one task (image or video) inside a job."""

    QUEUED = "queued"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class Credential:
    """Exactly one of an API key or a bearer token."""

    kind: CredentialKind
    value: str

    @property
    def headers(self) -> dict[str, str]:
        if self.kind is CredentialKind.API_KEY:
            return {"x-api-key": self.value}
        return {"authorization": f"Bearer {self.value}"}


@dataclass(slots=True, frozen=True)
class MaskArtifactContext:
    """Identifiers that address a task's artifacts in the asset bucket."""

    user_id: str
    job_id: str
    task_id: str


@dataclass(slots=True, frozen=True)
class MaskArtifact:
    mask_index: int
    key: str
    url: str | None
    score: float | None
    box: Box | None
    rle: Mapping[str, Any] | None = None


VideoFrameMasks = dict[int, list[MaskArtifact]]


@dataclass(slots=True, frozen=True)
class DecodedMask:
    """Binary mask in row-major order, one byte (0 or 1) per pixel."""

    width: int
    height: int
    data: bytes


@dataclass(slots=True, frozen=True)
class UploadFile:
    """One file for ``upload_and_create_job``."""

    data: BinaryData
    content_type: str


@dataclass(slots=True, frozen=True)
class UploadTicket:
    upload_url: str
    storage_key: str
    bucket: str
    expires_in: float
    raw: Mapping[str, Any] = field(repr=False)


@dataclass(slots=True, frozen=True)
class SegmentResult:
    request_id: str
    job_id: str
    num_instances: int
    output_prefix: str
    output_url: str
    masks: list[MaskArtifact]
    raw: Mapping[str, Any] = field(repr=False)


@dataclass(slots=True, frozen=True)
class SegmentVideoOutput:
    manifest_url: str
    frames_url: str
    output_s3_prefix: str
    mask_encoding: str


@dataclass(slots=True, frozen=True)
class SegmentVideoCounts:
    frames_processed: int
    frames_with_masks: int
    total_masks: int


@dataclass(slots=True, frozen=True)
class SegmentVideoResult:
    """Synchronous video segmentation outcome (legacy generation)."""

    request_id: str
    status: str
    output: SegmentVideoOutput
    counts: SegmentVideoCounts
    raw: Mapping[str, Any] = field(repr=False)


@dataclass(slots=True, frozen=True)
class JobAcceptedResult:
    request_id: str
    job_id: str
    type: JobType
    status: JobRequestStatus
    total_items: int
    poll_path: str | None
    raw: Mapping[str, Any] = field(repr=False)


@dataclass(slots=True, frozen=True)
class ItemResult:
    """Per-task status; fields a wire generation does not send stay ``None``."""

    status: JobTaskStatus
    task_id: str | None = None
    index: int | None = None
    input_s3_key: str | None = None
    output_prefix: str | None = None
    num_instances: int | None = None
    masks: list[MaskArtifact] | None = None
    error: str | None = None
    error_code: str | None = None


@dataclass(slots=True, frozen=True)
class VideoTaskStatus:
    status: JobTaskStatus
    job_id: str | None = None
    input_s3_key: str | None = None
    output: SegmentVideoOutput | None = None
    counts: SegmentVideoCounts | None = None
    error: str | None = None
    error_code: str | None = None


@dataclass(slots=True, frozen=True)
class JobStatusResult:
    request_id: str
    job_id: str
    type: JobType
    status: JobRequestStatus
    total_items: int
    queued_items: int
    processing_items: int
    success_items: int
    failed_items: int
    items: list[ItemResult]
    raw: Mapping[str, Any] = field(repr=False)
    video: VideoTaskStatus | None = None
    output_folder: str | None = None
    error: str | None = None
    error_code: str | None = None
