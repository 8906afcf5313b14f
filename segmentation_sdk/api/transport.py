"""Single-call HTTP transport shared by every client operation."""

from __future__ import annotations

import json
import logging
import mimetypes
from pathlib import Path
from typing import Any, Mapping

import httpx

from segmentation_sdk.errors import ResponseBody, api_error, network_error, upload_error
from segmentation_sdk.types import BinaryData, Credential

DEFAULT_CONTENT_TYPE = "application/octet-stream"

logger = logging.getLogger(__name__)


def read_binary(data: BinaryData) -> bytes:
    """Return the payload bytes of a bytes-like object or binary file object."""

    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    return data.read()


def infer_filename(data: BinaryData, fallback: str) -> str:
    name = getattr(data, "name", None)
    if isinstance(name, str) and name:
        return Path(name).name
    return fallback


def infer_content_type(data: BinaryData) -> str | None:
    name = getattr(data, "name", None)
    if isinstance(name, str) and name:
        guessed, _ = mimetypes.guess_type(name)
        return guessed
    return None


def _plain_numbers(value: Any) -> Any:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, (list, tuple)):
        return [_plain_numbers(entry) for entry in value]
    return value


def compact_json(value: Any) -> str:
    """Serialize multipart field values the way the API parses them (``[[10,20],[30,40]]``).

    Integral floats are written without a fractional part.
    """

    return json.dumps(_plain_numbers(value), separators=(",", ":"))


def drop_none(payload: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in payload.items() if value is not None}


async def read_body(response: httpx.Response) -> ResponseBody:
    """Decode a JSON object body, falling back to the raw text."""

    await response.aread()
    text = response.text
    if not text:
        return None
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return text
    return parsed if isinstance(parsed, dict) else text


class HttpTransport:
    """Performs exactly one HTTP call per method invocation and never retries."""

    def __init__(self, client: httpx.AsyncClient, credential: Credential, base_url: str) -> None:
        self._client = client
        self._credential = credential
        self._base_url = base_url.rstrip("/")

    def api_url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    async def request_api(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        json_body: Mapping[str, Any] | None = None,
        data: Mapping[str, str] | None = None,
        files: Mapping[str, tuple[str, bytes, str]] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> ResponseBody:
        """Call the segmentation API with the configured credential attached."""

        request_headers = dict(headers or {})
        request_headers.update(self._credential.headers)
        content = None
        if json_body is not None:
            request_headers["content-type"] = "application/json"
            content = json.dumps(drop_none(json_body), separators=(",", ":")).encode("utf-8")

        url = self.api_url(path)
        try:
            response = await self._client.request(
                method,
                url,
                content=content,
                data=data,
                files=files,
                headers=request_headers,
            )
        except Exception as exc:
            raise network_error(operation, "api", exc) from exc

        body = await read_body(response)
        logger.debug("%s %s -> %s (%s)", method, url, response.status_code, operation)
        if not response.is_success:
            raise api_error(operation, response, body)
        return body

    async def put_object(self, url: str, payload: bytes, *, content_type: str, operation: str) -> None:
        """Upload bytes to a presigned URL; only the HTTP status is meaningful."""

        try:
            response = await self._client.put(url, content=payload, headers={"content-type": content_type})
        except Exception as exc:
            raise network_error(operation, "upload", exc) from exc

        logger.debug("PUT %s -> %s (%s, %d bytes)", url, response.status_code, operation, len(payload))
        if not response.is_success:
            raise upload_error(operation, response, url, await read_body(response))

    async def get_asset(self, url: str, *, operation: str) -> httpx.Response:
        """Fetch a public asset; asset URLs carry no credential."""

        try:
            response = await self._client.get(url)
        except Exception as exc:
            raise network_error(operation, "assets", exc) from exc

        logger.debug("GET %s -> %s (%s)", url, response.status_code, operation)
        if not response.is_success:
            raise api_error(operation, response, await read_body(response))
        return response
