"""Input contracts checked before any request leaves the client."""

from __future__ import annotations

import io
from typing import Annotated, Any, Literal, TypeVar

import httpx
from pydantic import (
    AfterValidator,
    BaseModel,
    AllowInfNan,
    ConfigDict,
    Field,
    Strict,
    StrictBool,
    StrictInt,
    ValidationError as PydanticValidationError,
    model_validator,
)

from segmentation_sdk.errors import input_error
from segmentation_sdk.types import ApiProfile

MAX_JOB_ITEMS = 100


def _non_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("Expected a non-empty string.")
    return value


def _absolute_url(value: str) -> str:
    try:
        url = httpx.URL(value)
    except httpx.InvalidURL as exc:
        raise ValueError(f"Invalid URL: {exc}") from exc
    if url.scheme not in ("http", "https") or not url.host:
        raise ValueError("Expected an absolute http(s) URL.")
    return value


def _binary(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return value
    if isinstance(value, io.TextIOBase):
        raise ValueError("Expected a binary file object, got a text stream.")
    if callable(getattr(value, "read", None)):
        return value
    raise ValueError("Expected bytes, bytearray, memoryview or a readable binary file object.")


NonBlankStr = Annotated[str, AfterValidator(_non_blank)]
AbsoluteUrl = Annotated[str, AfterValidator(_absolute_url)]
FiniteFloat = Annotated[float, Field(allow_inf_nan=False)]
FiniteNumber = Annotated[float, Strict(), AllowInfNan(False)]
BinaryInput = Annotated[Any, AfterValidator(_binary)]
Point = tuple[FiniteNumber, FiniteNumber]
BoxCoordinates = tuple[FiniteNumber, FiniteNumber, FiniteNumber, FiniteNumber]
ObjectId = StrictInt | NonBlankStr
Prompts = Annotated[list[NonBlankStr], Field(min_length=1)]


class _Input(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class _VisualPrompt(_Input):
    @model_validator(mode="before")
    @classmethod
    def _from_coordinates(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return {"coordinates": value}
        return value


class BoxPrompt(_VisualPrompt):
    """Box prompt; a bare ``[x0, y0, x1, y1]`` is accepted as a positive box."""

    coordinates: BoxCoordinates
    is_positive: StrictBool = True
    object_id: NonBlankStr | None = None

    def to_wire(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"coordinates": list(self.coordinates), "isPositive": self.is_positive}
        if self.object_id is not None:
            payload["objectId"] = self.object_id
        return payload


class PointPrompt(_VisualPrompt):
    """Click prompt; a bare ``[x, y]`` is accepted as a positive point."""

    coordinates: Point
    is_positive: StrictBool = True
    object_id: NonBlankStr | None = None

    def to_wire(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"coordinates": list(self.coordinates), "isPositive": self.is_positive}
        if self.object_id is not None:
            payload["objectId"] = self.object_id
        return payload


class ClientOptionsInput(_Input):
    api_key: NonBlankStr | None = None
    jwt: NonBlankStr | None = None
    profile: ApiProfile = ApiProfile.JOBS
    timeout: Annotated[FiniteNumber, Field(gt=0)] = 60.0

    @model_validator(mode="after")
    def _one_credential(self) -> "ClientOptionsInput":
        if self.api_key is None and self.jwt is None:
            raise ValueError("Provide either `api_key` or `jwt`.")
        if self.api_key is not None and self.jwt is not None:
            raise ValueError("Provide only one credential: `api_key` or `jwt`, not both.")
        return self


class CreatePresignedUploadInput(_Input):
    content_type: NonBlankStr


class UploadImageInput(_Input):
    upload_url: AbsoluteUrl
    data: BinaryInput
    content_type: NonBlankStr | None = None


class SegmentInput(_Input):
    prompts: Prompts
    input_s3_key: NonBlankStr
    threshold: FiniteNumber | None = None
    mask_threshold: FiniteNumber | None = None


class UploadAndSegmentInput(_Input):
    prompts: Prompts
    data: BinaryInput
    content_type: NonBlankStr
    threshold: FiniteNumber | None = None
    mask_threshold: FiniteNumber | None = None


class SegmentVideoInput(_Input):
    file: BinaryInput
    content_type: NonBlankStr | None = None
    prompts: Prompts | None = None
    points: Annotated[list[Point], Field(min_length=1)] | None = None
    point_labels: list[StrictInt] | None = None
    point_object_ids: list[ObjectId] | None = None
    boxes: Annotated[list[BoxCoordinates], Field(min_length=1)] | None = None
    box_object_ids: list[ObjectId] | None = None
    fps: Annotated[FiniteNumber, Field(gt=0)] | None = None
    num_frames: Annotated[StrictInt, Field(ge=1)] | None = None
    max_frames: Annotated[StrictInt, Field(ge=1)] | None = None
    frame_idx: Annotated[StrictInt, Field(ge=0)] | None = None
    clear_old_inputs: StrictBool | None = None

    @model_validator(mode="after")
    def _check_combinations(self) -> "SegmentVideoInput":
        if (self.points is None) == (self.boxes is None):
            raise ValueError("Provide exactly one visual prompt mode: `points` or `boxes`.")
        if self.fps is not None and self.num_frames is not None:
            raise ValueError("Provide only one sampling selector: `fps` or `num_frames`.")
        if self.points is None and (self.point_labels is not None or self.point_object_ids is not None):
            raise ValueError("`point_labels` and `point_object_ids` require `points`.")
        if self.boxes is None and self.box_object_ids is not None:
            raise ValueError("`box_object_ids` requires `boxes`.")
        if self.points is not None:
            for name in ("point_labels", "point_object_ids"):
                values = getattr(self, name)
                if values is not None and len(values) != len(self.points):
                    raise ValueError(f"`{name}` must have one entry per point ({len(self.points)}).")
        if self.boxes is not None and self.box_object_ids is not None:
            if len(self.box_object_ids) != len(self.boxes):
                raise ValueError(f"`box_object_ids` must have one entry per box ({len(self.boxes)}).")
        return self


class CreateBatchSegmentJobInput(_Input):
    prompts: Prompts
    items: Annotated[list[NonBlankStr], Field(min_length=1)]
    threshold: FiniteNumber | None = None
    mask_threshold: FiniteNumber | None = None


class _JobPromptsInput(_Input):
    type: Literal["image_batch", "video"]
    prompts: Prompts | None = None
    boxes: Annotated[list[BoxPrompt], Field(min_length=1)] | None = None
    points: Annotated[list[PointPrompt], Field(min_length=1)] | None = None
    threshold: FiniteNumber | None = None
    mask_threshold: FiniteNumber | None = None

    @model_validator(mode="after")
    def _require_prompt(self) -> "_JobPromptsInput":
        if self.prompts is None and self.boxes is None and self.points is None:
            raise ValueError("Provide at least one of `prompts`, `boxes` or `points`.")
        if self.type == "image_batch" and self.points is not None:
            raise ValueError("Point prompts are only supported for video jobs.")
        return self


class CreateJobInput(_JobPromptsInput):
    items: Annotated[list[NonBlankStr], Field(min_length=1, max_length=MAX_JOB_ITEMS)]


class UploadFileInput(_Input):
    data: BinaryInput
    content_type: NonBlankStr


class UploadAndCreateJobInput(_JobPromptsInput):
    files: Annotated[list[UploadFileInput], Field(min_length=1, max_length=MAX_JOB_ITEMS)]


class GetJobInput(_Input):
    job_id: NonBlankStr


class OutputManifestInput(_Input):
    user_id: NonBlankStr
    job_id: NonBlankStr
    output_folder: str | None = None


class ArtifactContextInput(_Input):
    user_id: NonBlankStr
    job_id: NonBlankStr
    task_id: NonBlankStr


InputModel = TypeVar("InputModel", bound=BaseModel)


def parse_input(model: type[InputModel], operation: str, **values: Any) -> InputModel:
    """Validate keyword arguments against ``model`` or raise an input ``ValidationError``."""

    try:
        return model.model_validate(values)
    except PydanticValidationError as exc:
        raise input_error(operation, exc) from exc
