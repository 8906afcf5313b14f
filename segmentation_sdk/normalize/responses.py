"""Map raw API payloads from either wire generation onto canonical results."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Mapping, TypeVar

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
)

from segmentation_sdk.config.settings import DEFAULT_ASSETS_BASE_URL
from segmentation_sdk.errors import response_error
from segmentation_sdk.normalize.fields import aliases
from segmentation_sdk.normalize.masks import build_asset_url, normalize_mask_artifacts
from segmentation_sdk.types import (
    ItemResult,
    JobAcceptedResult,
    JobRequestStatus,
    JobStatusResult,
    JobTaskStatus,
    JobType,
    SegmentResult,
    SegmentVideoCounts,
    SegmentVideoOutput,
    SegmentVideoResult,
    UploadTicket,
    VideoTaskStatus,
)
from segmentation_sdk.validation import AbsoluteUrl, FiniteFloat, NonBlankStr

# The jobs generation reports in-flight tasks as "running".
_TASK_STATUS_SYNONYMS = {"running": "processing"}


def _task_status(value: Any) -> Any:
    if isinstance(value, str):
        return _TASK_STATUS_SYNONYMS.get(value, value)
    return value


def _list_or_empty(value: Any) -> Any:
    return value if isinstance(value, list) else []


TaskStatus = Annotated[JobTaskStatus, BeforeValidator(_task_status)]
MaskList = Annotated[list[Any], BeforeValidator(_list_or_empty)]
Count = Annotated[int, Field(ge=0)]


def _field(name: str, default: Any = ...) -> Any:
    return Field(default, validation_alias=aliases(name))


class _Wire(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class PresignedUploadWire(_Wire):
    upload_url: AbsoluteUrl = _field("upload_url")
    storage_key: NonBlankStr = _field("storage_key")
    bucket: str
    expires_in: FiniteFloat = _field("expires_in")


class SegmentWire(_Wire):
    request_id: str | None = _field("request_id", None)
    job_id: NonBlankStr = _field("job_id")
    num_instances: Count = _field("num_instances")
    output_prefix: str = _field("output_prefix")
    masks: MaskList = Field(default_factory=list)


class VideoOutputWire(_Wire):
    manifest_url: str = _field("manifest_url")
    frames_url: str = _field("frames_url")
    output_s3_prefix: str = _field("output_s3_prefix")
    mask_encoding: str = _field("mask_encoding")

    def to_result(self) -> SegmentVideoOutput:
        return SegmentVideoOutput(
            manifest_url=self.manifest_url,
            frames_url=self.frames_url,
            output_s3_prefix=self.output_s3_prefix,
            mask_encoding=self.mask_encoding,
        )


class VideoCountsWire(_Wire):
    frames_processed: Count = _field("frames_processed")
    frames_with_masks: Count = _field("frames_with_masks")
    total_masks: Count = _field("total_masks")

    def to_result(self) -> SegmentVideoCounts:
        return SegmentVideoCounts(
            frames_processed=self.frames_processed,
            frames_with_masks=self.frames_with_masks,
            total_masks=self.total_masks,
        )


class SegmentVideoWire(_Wire):
    request_id: str | None = _field("request_id", None)
    status: NonBlankStr
    output: VideoOutputWire
    counts: VideoCountsWire


class JobAcceptedWire(_Wire):
    request_id: str | None = _field("request_id", None)
    job_id: NonBlankStr = _field("job_id")
    type: JobType | None = None
    status: Literal["queued"]
    total_items: Count = _field("total_items")
    poll_path: str | None = _field("poll_path", None)


class ItemWire(_Wire):
    status: TaskStatus
    task_id: str | None = _field("task_id", None)
    index: Count | None = None
    input_s3_key: str | None = _field("input_s3_key", None)
    output_prefix: str | None = _field("output_prefix", None)
    num_instances: Count | None = _field("num_instances", None)
    masks: list[Any] | None = None
    error: str | None = None
    error_code: str | None = _field("error_code", None)


class VideoStatusWire(_Wire):
    status: TaskStatus
    job_id: str | None = _field("job_id", None)
    input_s3_key: str | None = _field("input_s3_key", None)
    output: VideoOutputWire | None = None
    counts: VideoCountsWire | None = None
    error: str | None = None
    error_code: str | None = _field("error_code", None)


class JobStatusWire(_Wire):
    request_id: str | None = _field("request_id", None)
    job_id: NonBlankStr = _field("job_id")
    type: JobType | None = None
    status: JobRequestStatus
    total_items: Count = _field("total_items")
    queued_items: Count = _field("queued_items")
    processing_items: Count = _field("processing_items")
    success_items: Count = _field("success_items")
    failed_items: Count = _field("failed_items")
    items: list[ItemWire] | None = None
    video: VideoStatusWire | None = None
    output_folder: str | None = _field("output_folder", None)
    error: str | None = None
    error_code: str | None = _field("error_code", None)


WireModel = TypeVar("WireModel", bound=BaseModel)


def parse_response(model: type[WireModel], payload: Any, operation: str) -> WireModel:
    """Validate a decoded body or raise a response ``ValidationError``."""

    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        raise response_error(operation, exc) from exc


def normalize_presigned_upload(payload: Any, operation: str) -> UploadTicket:
    wire = parse_response(PresignedUploadWire, payload, operation)
    return UploadTicket(
        upload_url=wire.upload_url,
        storage_key=wire.storage_key,
        bucket=wire.bucket,
        expires_in=wire.expires_in,
        raw=payload,
    )


def normalize_segment(payload: Any, operation: str, assets_base_url: str = DEFAULT_ASSETS_BASE_URL) -> SegmentResult:
    wire = parse_response(SegmentWire, payload, operation)
    return SegmentResult(
        request_id=wire.request_id or "",
        job_id=wire.job_id,
        num_instances=wire.num_instances,
        output_prefix=wire.output_prefix,
        output_url=build_asset_url(wire.output_prefix, assets_base_url),
        masks=normalize_mask_artifacts(wire.masks, assets_base_url=assets_base_url, operation=operation),
        raw=payload,
    )


def normalize_segment_video(payload: Any, operation: str) -> SegmentVideoResult:
    wire = parse_response(SegmentVideoWire, payload, operation)
    return SegmentVideoResult(
        request_id=wire.request_id or "",
        status=wire.status,
        output=wire.output.to_result(),
        counts=wire.counts.to_result(),
        raw=payload,
    )


def normalize_job_accepted(payload: Any, operation: str, default_type: JobType) -> JobAcceptedResult:
    wire = parse_response(JobAcceptedWire, payload, operation)
    return JobAcceptedResult(
        request_id=wire.request_id or "",
        job_id=wire.job_id,
        type=wire.type or default_type,
        status=JobRequestStatus.QUEUED,
        total_items=wire.total_items,
        poll_path=wire.poll_path,
        raw=payload,
    )


def _item_result(item: ItemWire, operation: str, assets_base_url: str) -> ItemResult:
    masks = None
    if item.masks is not None:
        masks = normalize_mask_artifacts(item.masks, assets_base_url=assets_base_url, operation=operation)
    return ItemResult(
        status=item.status,
        task_id=item.task_id,
        index=item.index,
        input_s3_key=item.input_s3_key,
        output_prefix=item.output_prefix,
        num_instances=item.num_instances,
        masks=masks,
        error=item.error,
        error_code=item.error_code,
    )


def _video_status(video: VideoStatusWire) -> VideoTaskStatus:
    return VideoTaskStatus(
        status=video.status,
        job_id=video.job_id,
        input_s3_key=video.input_s3_key,
        output=video.output.to_result() if video.output else None,
        counts=video.counts.to_result() if video.counts else None,
        error=video.error,
        error_code=video.error_code,
    )


def normalize_job_status(
    payload: Mapping[str, Any],
    operation: str,
    default_type: JobType,
    assets_base_url: str = DEFAULT_ASSETS_BASE_URL,
) -> JobStatusResult:
    """Build a ``JobStatusResult``; the server's item counters are passed through as-is."""

    wire = parse_response(JobStatusWire, payload, operation)
    return JobStatusResult(
        request_id=wire.request_id or "",
        job_id=wire.job_id,
        type=wire.type or default_type,
        status=wire.status,
        total_items=wire.total_items,
        queued_items=wire.queued_items,
        processing_items=wire.processing_items,
        success_items=wire.success_items,
        failed_items=wire.failed_items,
        items=[_item_result(item, operation, assets_base_url) for item in wire.items or []],
        video=_video_status(wire.video) if wire.video else None,
        output_folder=wire.output_folder,
        error=wire.error,
        error_code=wire.error_code,
        raw=payload,
    )
