"""Presign-then-upload sequencing for one or many assets."""

from __future__ import annotations

import inspect
import logging
from typing import Awaitable, Callable, Sequence

from segmentation_sdk.types import BinaryData, ProgressCallback, UploadFile, UploadTicket

PresignStep = Callable[[str, str], Awaitable[UploadTicket]]
UploadStep = Callable[[UploadTicket, BinaryData, str, str], Awaitable[None]]

logger = logging.getLogger(__name__)


async def report_progress(on_progress: ProgressCallback | None, completed: int, total: int) -> None:
    """Call a sync or async progress sink, if one was given."""

    if on_progress is None:
        return
    outcome = on_progress(completed, total)
    if inspect.isawaitable(outcome):
        await outcome


class UploadOrchestrator:
    """Runs presign and upload strictly in order and stops at the first failure.

    ``presign(content_type, operation)`` returns a ticket and
    ``upload(ticket, data, content_type, operation)`` stores the bytes. Both
    raise the client's typed errors, which propagate untouched so nothing
    after a failed step is attempted.
    """

    def __init__(self, presign: PresignStep, upload: UploadStep) -> None:
        self._presign = presign
        self._upload = upload

    async def upload_one(self, data: BinaryData, content_type: str, *, operation: str) -> str:
        """Upload one asset and return its storage key."""

        ticket = await self._presign(content_type, operation)
        await self._upload(ticket, data, content_type, operation)
        return ticket.storage_key

    async def upload_all(
        self,
        files: Sequence[UploadFile],
        *,
        operation: str,
        on_progress: ProgressCallback | None = None,
    ) -> list[str]:
        """Upload ``files`` in input order, reporting ``(completed, total)`` after each one."""

        total = len(files)
        keys: list[str] = []
        for file in files:
            keys.append(await self.upload_one(file.data, file.content_type, operation=operation))
            logger.debug("Uploaded %d/%d for %s", len(keys), total, operation)
            await report_progress(on_progress, len(keys), total)
        return keys
