"""Typed failures raised by the segmentation client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

import httpx
from pydantic import ValidationError as PydanticValidationError

from segmentation_sdk.normalize.fields import resolve_named

ValidationDirection = Literal["input", "response"]
NetworkContext = Literal["api", "upload", "assets"]
ResponseBody = dict[str, Any] | str | None


@dataclass(slots=True, frozen=True)
class ValidationIssue:
    """Single failed check, addressed by a dotted path inside the payload."""

    path: str
    message: str
    code: str


class SegmentationError(RuntimeError):
    """Base class for every error raised by the client."""

    direction: str | None = None

    def __init__(self, message: str, *, operation: str) -> None:
        self.operation = operation
        super().__init__(message)


class ValidationError(SegmentationError):
    """Raised when caller input or a server response breaks its contract."""

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        direction: ValidationDirection,
        issues: list[ValidationIssue] | None = None,
    ) -> None:
        super().__init__(message, operation=operation)
        self.direction = direction
        self.issues = list(issues or [])


class NetworkError(SegmentationError):
    """Raised when the HTTP call itself failed (DNS, connect, TLS, timeout)."""

    direction = "network"

    def __init__(self, message: str, *, operation: str, context: NetworkContext) -> None:
        super().__init__(message, operation=operation)
        self.context = context


class UploadError(SegmentationError):
    """Raised when object storage rejects a presigned upload."""

    direction = "upload"

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        status: int,
        url: str,
        body: ResponseBody,
    ) -> None:
        super().__init__(message, operation=operation)
        self.status = status
        self.url = url
        self.body = body


class SegmentationApiError(SegmentationError):
    """Raised when the segmentation API responds with a non-2xx status."""

    direction = "api"

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        status: int,
        body: ResponseBody,
        request_id: str | None = None,
    ) -> None:
        super().__init__(message, operation=operation)
        self.status = status
        self.body = body
        self.request_id = request_id


def issues_from_pydantic(exc: PydanticValidationError) -> list[ValidationIssue]:
    """Flatten pydantic error entries into ``ValidationIssue`` records."""

    issues = []
    for error in exc.errors():
        location = error.get("loc") or ()
        path = ".".join(str(segment) for segment in location) or "<root>"
        issues.append(
            ValidationIssue(path=path, message=error.get("msg", ""), code=error.get("type", "invalid"))
        )
    return issues


def input_error(
    operation: str,
    exc: PydanticValidationError | None = None,
    *,
    issues: list[ValidationIssue] | None = None,
) -> ValidationError:
    if exc is not None:
        issues = issues_from_pydantic(exc)
    return ValidationError(
        f"Invalid input for {operation}.",
        operation=operation,
        direction="input",
        issues=issues,
    )


def response_error(
    operation: str,
    exc: PydanticValidationError | None = None,
    *,
    issues: list[ValidationIssue] | None = None,
) -> ValidationError:
    if exc is not None:
        issues = issues_from_pydantic(exc)
    return ValidationError(
        f"Invalid response for {operation}.",
        operation=operation,
        direction="response",
        issues=issues,
    )


def network_error(operation: str, context: NetworkContext, exc: Exception) -> NetworkError:
    """Wrap a transport exception; the caller chains it with ``raise ... from``."""

    target = {"api": "API request", "upload": "Upload", "assets": "Asset download"}[context]
    return NetworkError(
        f"{target} failed due to a network error: {exc.__class__.__name__}.",
        operation=operation,
        context=context,
    )


def api_error(operation: str, response: httpx.Response, body: ResponseBody) -> SegmentationApiError:
    return SegmentationApiError(
        f"API request failed with status {response.status_code}.",
        operation=operation,
        status=response.status_code,
        body=body,
        request_id=extract_request_id(response, body),
    )


def upload_error(operation: str, response: httpx.Response, url: str, body: ResponseBody) -> UploadError:
    return UploadError(
        f"Upload failed with status {response.status_code}.",
        operation=operation,
        status=response.status_code,
        url=url,
        body=body,
    )


def extract_request_id(response: httpx.Response, body: ResponseBody) -> str | None:
    """Prefer the gateway request-id headers, then the error body fields."""

    header_value = response.headers.get("x-request-id") or response.headers.get("x-amzn-requestid")
    if header_value:
        return header_value
    if isinstance(body, dict):
        value = resolve_named(body, "request_id")
        if isinstance(value, str):
            return value
    return None
