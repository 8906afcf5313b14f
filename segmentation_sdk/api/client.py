"""Async facade over the segmentation HTTP API."""

from __future__ import annotations

import gzip
import logging
from typing import Any, Mapping, Sequence
from urllib.parse import quote

import httpx

from segmentation_sdk.api.orchestrator import UploadOrchestrator, report_progress
from segmentation_sdk.api.transport import (
    DEFAULT_CONTENT_TYPE,
    HttpTransport,
    compact_json,
    infer_content_type,
    infer_filename,
    read_binary,
)
from segmentation_sdk.config.settings import (
    DEFAULT_API_BASE_URL,
    DEFAULT_ASSETS_BASE_URL,
    SegmentationSettings,
    get_settings,
)
from segmentation_sdk.errors import ValidationIssue, response_error
from segmentation_sdk.normalize.manifest import build_output_manifest_url
from segmentation_sdk.normalize.masks import build_asset_url, build_frames_key, normalize_video_frame_masks
from segmentation_sdk.normalize.responses import (
    normalize_job_accepted,
    normalize_job_status,
    normalize_presigned_upload,
    normalize_segment,
    normalize_segment_video,
)
from segmentation_sdk.types import (
    ApiProfile,
    BinaryData,
    Box,
    Credential,
    CredentialKind,
    JobAcceptedResult,
    JobStatusResult,
    JobType,
    MaskArtifactContext,
    ProgressCallback,
    SegmentResult,
    SegmentVideoResult,
    UploadFile,
    UploadTicket,
    VideoFrameMasks,
)
from segmentation_sdk.validation import (
    ArtifactContextInput,
    BoxPrompt,
    ClientOptionsInput,
    CreateBatchSegmentJobInput,
    CreateJobInput,
    CreatePresignedUploadInput,
    GetJobInput,
    OutputManifestInput,
    PointPrompt,
    SegmentInput,
    SegmentVideoInput,
    UploadAndCreateJobInput,
    UploadAndSegmentInput,
    UploadImageInput,
    parse_input,
)

GZIP_MAGIC = b"\x1f\x8b"

logger = logging.getLogger(__name__)


def _job_type_value(value: Any) -> Any:
    return value.value if isinstance(value, JobType) else value


def _upload_file_value(value: Any) -> Any:
    if isinstance(value, UploadFile):
        return {"data": value.data, "content_type": value.content_type}
    return value


def _wire_prompts(prompts: Sequence[BoxPrompt | PointPrompt] | None) -> list[dict[str, Any]] | None:
    if prompts is None:
        return None
    return [prompt.to_wire() for prompt in prompts]


class SegmentationClient:
    """Turns segmentation operations into HTTP calls and canonical results.

    Exactly one credential is accepted: ``api_key`` talks to ``/v1`` with an
    ``x-api-key`` header, ``jwt`` talks to ``/v1/jwt`` with a bearer token.
    ``profile`` picks the wire generation used where the two disagree; today
    that is only ``segment_video``. An injected ``http_client`` stays owned by
    the caller and is not closed by :meth:`close`.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        jwt: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        profile: ApiProfile | str = ApiProfile.JOBS,
        base_url: str | None = None,
        assets_base_url: str | None = None,
        timeout: float = 60.0,
    ) -> None:
        options = parse_input(
            ClientOptionsInput,
            "SegmentationClient.constructor",
            api_key=api_key,
            jwt=jwt,
            profile=profile,
            timeout=timeout,
        )
        if options.api_key is not None:
            credential = Credential(CredentialKind.API_KEY, options.api_key)
            api_root = f"{(base_url or DEFAULT_API_BASE_URL).rstrip('/')}/v1"
        else:
            credential = Credential(CredentialKind.BEARER, options.jwt or "")
            api_root = f"{(base_url or DEFAULT_API_BASE_URL).rstrip('/')}/v1/jwt"

        self._profile = options.profile
        self._assets_base_url = (assets_base_url or DEFAULT_ASSETS_BASE_URL).rstrip("/")
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=options.timeout)
        self._transport = HttpTransport(self._http_client, credential, api_root)
        self._uploads = UploadOrchestrator(self._presign, self._put_bytes)

    @classmethod
    def from_settings(
        cls,
        settings: SegmentationSettings | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> "SegmentationClient":
        """Build a client from ``SEGMENTATION_*`` environment settings."""

        settings = settings or get_settings()
        return cls(
            api_key=settings.api_key or None,
            jwt=settings.jwt or None,
            http_client=http_client,
            profile=settings.api_profile,
            base_url=settings.api_base_url,
            assets_base_url=settings.assets_base_url,
            timeout=settings.request_timeout,
        )

    @property
    def profile(self) -> ApiProfile:
        return self._profile

    async def close(self) -> None:
        """Close the underlying HTTP client when this instance created it."""

        if self._owns_http_client:
            await self._http_client.aclose()

    async def __aenter__(self) -> "SegmentationClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _presign(self, content_type: str, operation: str) -> UploadTicket:
        raw = await self._transport.request_api(
            "POST",
            "/uploads/presign",
            operation=operation,
            headers={"content-type": content_type},
        )
        return normalize_presigned_upload(raw, operation)

    async def _put_bytes(self, ticket: UploadTicket, data: BinaryData, content_type: str, operation: str) -> None:
        await self._transport.put_object(
            ticket.upload_url,
            read_binary(data),
            content_type=content_type,
            operation=operation,
        )

    async def create_presigned_upload(self, content_type: str) -> UploadTicket:
        """Reserve a storage key and a short-lived upload URL."""

        request = parse_input(CreatePresignedUploadInput, "createPresignedUpload", content_type=content_type)
        return await self._presign(request.content_type, "createPresignedUpload")

    async def upload_image(self, upload_url: str, data: BinaryData, content_type: str | None = None) -> None:
        """PUT raw bytes to a presigned URL; the content type falls back to the file name."""

        request = parse_input(
            UploadImageInput,
            "uploadImage",
            upload_url=upload_url,
            data=data,
            content_type=content_type,
        )
        await self._transport.put_object(
            request.upload_url,
            read_binary(request.data),
            content_type=request.content_type or infer_content_type(request.data) or DEFAULT_CONTENT_TYPE,
            operation="uploadImage",
        )

    async def segment(
        self,
        prompts: Sequence[str],
        input_s3_key: str,
        *,
        threshold: float | None = None,
        mask_threshold: float | None = None,
    ) -> SegmentResult:
        """Run synchronous image segmentation on an already uploaded asset."""

        request = parse_input(
            SegmentInput,
            "segment",
            prompts=prompts,
            input_s3_key=input_s3_key,
            threshold=threshold,
            mask_threshold=mask_threshold,
        )
        return await self._segment(
            request.prompts,
            request.input_s3_key,
            request.threshold,
            request.mask_threshold,
            "segment",
        )

    async def _segment(
        self,
        prompts: list[str],
        input_s3_key: str,
        threshold: float | None,
        mask_threshold: float | None,
        operation: str,
    ) -> SegmentResult:
        raw = await self._transport.request_api(
            "POST",
            "/segment",
            operation=operation,
            json_body={
                "prompts": prompts,
                "inputS3Key": input_s3_key,
                "threshold": threshold,
                "mask_threshold": mask_threshold,
            },
        )
        return normalize_segment(raw, operation, self._assets_base_url)

    async def upload_and_segment(
        self,
        prompts: Sequence[str],
        data: BinaryData,
        content_type: str,
        *,
        threshold: float | None = None,
        mask_threshold: float | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> SegmentResult:
        """Presign, upload ``data`` and segment it in one call."""

        request = parse_input(
            UploadAndSegmentInput,
            "uploadAndSegment",
            prompts=prompts,
            data=data,
            content_type=content_type,
            threshold=threshold,
            mask_threshold=mask_threshold,
        )
        keys = await self._uploads.upload_all(
            [UploadFile(request.data, request.content_type)],
            operation="uploadAndSegment",
            on_progress=on_progress,
        )
        return await self._segment(
            request.prompts,
            keys[0],
            request.threshold,
            request.mask_threshold,
            "uploadAndSegment",
        )

    async def segment_video(
        self,
        file: BinaryData,
        *,
        content_type: str | None = None,
        prompts: Sequence[str] | None = None,
        points: Sequence[Sequence[float]] | None = None,
        point_labels: Sequence[int] | None = None,
        point_object_ids: Sequence[int | str] | None = None,
        boxes: Sequence[Box | Sequence[float]] | None = None,
        box_object_ids: Sequence[int | str] | None = None,
        fps: float | None = None,
        num_frames: int | None = None,
        max_frames: int | None = None,
        frame_idx: int | None = None,
        clear_old_inputs: bool | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> SegmentVideoResult | JobAcceptedResult:
        """Segment a video file.

        The legacy profile posts the file inline to ``/segment/video`` and
        returns a ``SegmentVideoResult``; the file travels with the request, so
        ``on_progress(1, 1)`` fires once that request succeeds. The jobs profile
        uploads the file first and queues a ``video`` job, returning a
        ``JobAcceptedResult``.
        """

        request = parse_input(
            SegmentVideoInput,
            "segmentVideo",
            file=file,
            content_type=content_type,
            prompts=prompts,
            points=points,
            point_labels=point_labels,
            point_object_ids=point_object_ids,
            boxes=boxes,
            box_object_ids=box_object_ids,
            fps=fps,
            num_frames=num_frames,
            max_frames=max_frames,
            frame_idx=frame_idx,
            clear_old_inputs=clear_old_inputs,
        )
        resolved_type = request.content_type or infer_content_type(request.file) or DEFAULT_CONTENT_TYPE
        if self._profile is ApiProfile.LEGACY:
            result = await self._segment_video_inline(request, resolved_type)
            await report_progress(on_progress, 1, 1)
            return result
        return await self._segment_video_job(request, resolved_type, on_progress)

    async def _segment_video_inline(self, request: SegmentVideoInput, content_type: str) -> SegmentVideoResult:
        fields: dict[str, str] = {}
        if request.fps is not None:
            fields["fps"] = compact_json(request.fps)
        if request.num_frames is not None:
            fields["num_frames"] = compact_json(request.num_frames)
        if request.max_frames is not None:
            fields["max_frames"] = compact_json(request.max_frames)
        if request.prompts is not None:
            fields["prompts"] = compact_json(request.prompts)

        if request.points is not None:
            fields["points"] = compact_json(request.points)
            if request.point_labels is not None:
                fields["point_labels"] = compact_json(request.point_labels)
            if request.point_object_ids is not None:
                fields["point_obj_ids"] = compact_json(request.point_object_ids)
        elif request.boxes is not None:
            fields["boxes"] = compact_json(request.boxes)
            if request.box_object_ids is not None:
                fields["box_obj_ids"] = compact_json(request.box_object_ids)

        fields["frame_idx"] = compact_json(request.frame_idx if request.frame_idx is not None else 0)
        clear_old_inputs = True if request.clear_old_inputs is None else request.clear_old_inputs
        fields["clear_old_inputs"] = "true" if clear_old_inputs else "false"

        payload = read_binary(request.file)
        raw = await self._transport.request_api(
            "POST",
            "/segment/video",
            operation="segmentVideo",
            data=fields,
            files={"file": (infer_filename(request.file, "file.bin"), payload, content_type)},
        )
        return normalize_segment_video(raw, "segmentVideo")

    async def _segment_video_job(
        self,
        request: SegmentVideoInput,
        content_type: str,
        on_progress: ProgressCallback | None,
    ) -> JobAcceptedResult:
        points = None
        if request.points is not None:
            labels = request.point_labels or [1] * len(request.points)
            object_ids = request.point_object_ids or [None] * len(request.points)
            points = [
                PointPrompt(
                    coordinates=point,
                    is_positive=label != 0,
                    object_id=None if object_id is None else str(object_id),
                )
                for point, label, object_id in zip(request.points, labels, object_ids)
            ]
        boxes = None
        if request.boxes is not None:
            object_ids = request.box_object_ids or [None] * len(request.boxes)
            boxes = [
                BoxPrompt(coordinates=box, object_id=None if object_id is None else str(object_id))
                for box, object_id in zip(request.boxes, object_ids)
            ]

        keys = await self._uploads.upload_all(
            [UploadFile(request.file, content_type)],
            operation="segmentVideo",
            on_progress=on_progress,
        )
        raw = await self._transport.request_api(
            "POST",
            "/jobs",
            operation="segmentVideo",
            json_body={
                "type": JobType.VIDEO.value,
                "prompts": request.prompts,
                "points": _wire_prompts(points),
                "boxes": _wire_prompts(boxes),
                "fps": request.fps,
                "numFrames": request.num_frames,
                "maxFrames": request.max_frames,
                "frameIdx": request.frame_idx,
                "clearOldInputs": request.clear_old_inputs,
                "items": [{"taskId": key} for key in keys],
            },
        )
        return normalize_job_accepted(raw, "segmentVideo", JobType.VIDEO)

    async def create_batch_segment_job(
        self,
        prompts: Sequence[str],
        items: Sequence[str],
        *,
        threshold: float | None = None,
        mask_threshold: float | None = None,
    ) -> JobAcceptedResult:
        """Queue text-prompted segmentation over uploaded images (``/segment/batch``)."""

        request = parse_input(
            CreateBatchSegmentJobInput,
            "createBatchSegmentJob",
            prompts=prompts,
            items=items,
            threshold=threshold,
            mask_threshold=mask_threshold,
        )
        raw = await self._transport.request_api(
            "POST",
            "/segment/batch",
            operation="createBatchSegmentJob",
            json_body={
                "prompts": request.prompts,
                "threshold": request.threshold,
                "mask_threshold": request.mask_threshold,
                "items": [{"inputS3Key": key} for key in request.items],
            },
        )
        return normalize_job_accepted(raw, "createBatchSegmentJob", JobType.IMAGE_BATCH)

    async def get_batch_segment_job(self, job_id: str) -> JobStatusResult:
        request = parse_input(GetJobInput, "getBatchSegmentJob", job_id=job_id)
        raw = await self._transport.request_api(
            "GET",
            f"/segment/batch/{quote(request.job_id, safe='')}",
            operation="getBatchSegmentJob",
        )
        return normalize_job_status(raw, "getBatchSegmentJob", JobType.IMAGE_BATCH, self._assets_base_url)

    async def create_job(
        self,
        type: JobType | str,
        items: Sequence[str],
        *,
        prompts: Sequence[str] | None = None,
        boxes: Sequence[BoxPrompt | Mapping[str, Any] | Sequence[float]] | None = None,
        points: Sequence[PointPrompt | Mapping[str, Any] | Sequence[float]] | None = None,
        threshold: float | None = None,
        mask_threshold: float | None = None,
    ) -> JobAcceptedResult:
        """Queue a job over storage keys returned by earlier presigned uploads."""

        request = parse_input(
            CreateJobInput,
            "createJob",
            type=_job_type_value(type),
            items=items,
            prompts=prompts,
            boxes=boxes,
            points=points,
            threshold=threshold,
            mask_threshold=mask_threshold,
        )
        return await self._submit_job(request, request.items, "createJob")

    async def upload_and_create_job(
        self,
        type: JobType | str,
        files: Sequence[UploadFile | Mapping[str, Any]],
        *,
        prompts: Sequence[str] | None = None,
        boxes: Sequence[BoxPrompt | Mapping[str, Any] | Sequence[float]] | None = None,
        points: Sequence[PointPrompt | Mapping[str, Any] | Sequence[float]] | None = None,
        threshold: float | None = None,
        mask_threshold: float | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> JobAcceptedResult:
        """Upload every file in order, then queue one job over the collected keys.

        ``on_progress(completed, total)`` fires once per finished upload. Any
        failure aborts before the job is submitted.
        """

        request = parse_input(
            UploadAndCreateJobInput,
            "uploadAndCreateJob",
            type=_job_type_value(type),
            files=[_upload_file_value(file) for file in files],
            prompts=prompts,
            boxes=boxes,
            points=points,
            threshold=threshold,
            mask_threshold=mask_threshold,
        )
        keys = await self._uploads.upload_all(
            [UploadFile(file.data, file.content_type) for file in request.files],
            operation="uploadAndCreateJob",
            on_progress=on_progress,
        )
        return await self._submit_job(request, keys, "uploadAndCreateJob")

    async def _submit_job(
        self,
        request: CreateJobInput | UploadAndCreateJobInput,
        keys: Sequence[str],
        operation: str,
    ) -> JobAcceptedResult:
        raw = await self._transport.request_api(
            "POST",
            "/jobs",
            operation=operation,
            json_body={
                "type": request.type,
                "prompts": request.prompts,
                "boxes": _wire_prompts(request.boxes),
                "points": _wire_prompts(request.points),
                "threshold": request.threshold,
                "maskThreshold": request.mask_threshold,
                "items": [{"taskId": key} for key in keys],
            },
        )
        return normalize_job_accepted(raw, operation, JobType(request.type))

    async def get_segment_job(self, job_id: str) -> JobStatusResult:
        request = parse_input(GetJobInput, "getSegmentJob", job_id=job_id)
        raw = await self._transport.request_api(
            "GET",
            f"/jobs/{quote(request.job_id, safe='')}",
            operation="getSegmentJob",
        )
        return normalize_job_status(raw, "getSegmentJob", JobType.IMAGE_BATCH, self._assets_base_url)

    async def get_output_manifest(
        self,
        user_id: str,
        job_id: str,
        output_folder: str | None = None,
    ) -> dict[str, Any]:
        """Download the ``output_manifest.json`` written for a finished job."""

        request = parse_input(
            OutputManifestInput,
            "getOutputManifest",
            user_id=user_id,
            job_id=job_id,
            output_folder=output_folder,
        )
        url = build_output_manifest_url(
            request.user_id,
            request.job_id,
            request.output_folder,
            base_url=self._assets_base_url,
        )
        response = await self._transport.get_asset(url, operation="getOutputManifest")
        try:
            manifest = response.json()
        except ValueError as exc:
            raise response_error(
                "getOutputManifest",
                issues=[ValidationIssue(path="<root>", message="Manifest is not valid JSON.", code="invalid_json")],
            ) from exc
        if not isinstance(manifest, dict):
            raise response_error(
                "getOutputManifest",
                issues=[ValidationIssue(path="<root>", message="Expected a JSON object.", code="invalid_type")],
            )
        return manifest

    async def load_video_frame_masks(
        self,
        context: MaskArtifactContext,
        result: Any = None,
    ) -> VideoFrameMasks:
        """Return per-frame masks for a video task.

        Frames already present in ``result`` (typically the task's manifest
        entry) are used as-is; otherwise the task's gzipped NDJSON frame index
        is downloaded from the asset host.
        """

        operation = "loadVideoFrameMasks"
        checked = parse_input(
            ArtifactContextInput,
            operation,
            user_id=context.user_id,
            job_id=context.job_id,
            task_id=context.task_id,
        )
        context = MaskArtifactContext(checked.user_id, checked.job_id, checked.task_id)
        if result is not None:
            frames = normalize_video_frame_masks(
                result, context, assets_base_url=self._assets_base_url, operation=operation
            )
            if frames:
                return frames

        url = build_asset_url(build_frames_key(context), self._assets_base_url)
        response = await self._transport.get_asset(url, operation=operation)
        payload = response.content
        try:
            if payload.startswith(GZIP_MAGIC):
                payload = gzip.decompress(payload)
            text = payload.decode("utf-8")
        except (OSError, EOFError, UnicodeDecodeError) as exc:
            raise response_error(
                operation,
                issues=[ValidationIssue(path="<root>", message=f"Unreadable frame index: {exc}", code="invalid_frames")],
            ) from exc

        logger.debug("Loaded frame index for task %s (%d bytes)", context.task_id, len(payload))
        return normalize_video_frame_masks(text, context, assets_base_url=self._assets_base_url, operation=operation)
