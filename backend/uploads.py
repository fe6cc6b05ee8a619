"""
Per-file upload state machine.

Each submitted file gets an UploadAttempt that only moves forward:
pending -> uploading -> completed | error
Failed attempts keep the original payload (FailedUploadRecord) so they can be retried.
"""
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Optional

import httpx

from file_client import FileClient, format_file_size
from models import FailedUploadRecord, LocalFile, UploadAttempt, UploadStatus

if TYPE_CHECKING:
    from file_manager import FileRegistry

logger = logging.getLogger(__name__)

COMPLETED_DISPLAY_DELAY = 2.0  # seconds a completed attempt stays visible

TRANSITIONS: dict[str, set[str]] = {
    "pending": {"uploading"},
    "uploading": {"completed", "error"},
    "completed": set(),
    "error": set(),
}


class InvalidTransition(ValueError):
    pass


def advance(attempt: UploadAttempt, status: UploadStatus, **changes) -> UploadAttempt:
    """Return a copy of attempt moved to status. Raises InvalidTransition on a backwards move."""
    if status not in TRANSITIONS[attempt.status]:
        raise InvalidTransition(f"{attempt.id}: cannot go from {attempt.status} to {status}")
    return attempt.model_copy(update={"status": status, **changes})


def new_upload_id(file_name: str) -> str:
    return f"{file_name}-{uuid.uuid4().hex}"


class UploadOrchestrator:
    def __init__(
        self,
        client: FileClient,
        registry: FileRegistry,
        completed_display_delay: float = COMPLETED_DISPLAY_DELAY,
    ):
        self.client = client
        self.registry = registry
        self.completed_display_delay = completed_display_delay

    async def submit(self, file: LocalFile) -> UploadAttempt:
        """Upload one file, keeping the registry updated. Returns the final attempt."""
        attempt = UploadAttempt(id=new_upload_id(file.name), file_name=file.name)
        self.registry.track(attempt)

        attempt = advance(attempt, "uploading")
        self.registry.track(attempt)

        def on_progress(percent: int) -> None:
            self.registry.set_progress(attempt.id, percent)

        try:
            result = await self.client.upload(file, on_progress)
        except httpx.HTTPError as e:
            logger.warning(f"Upload of {file.name} raised: {e!r}")
            return self._fail(attempt.id, file, "Upload failed")

        if result.success and result.file:
            current = self.registry.uploads[attempt.id]
            completed = advance(current, "completed", progress=100)
            self.registry.track(completed)
            self.registry.add_file(result.file)
            self.registry.schedule_removal(completed.id, self.completed_display_delay)
            logger.info(f"Uploaded {file.name} ({format_file_size(file.size)})")
            return completed

        return self._fail(attempt.id, file, result.error or "Upload failed")

    def _fail(self, upload_id: str, file: LocalFile, message: str) -> UploadAttempt:
        current = self.registry.uploads[upload_id]
        failed = advance(current, "error", error=message)
        self.registry.track(failed)
        self.registry.record_failure(
            FailedUploadRecord(upload_id=upload_id, file=file, attempt=failed)
        )
        logger.warning(f"Upload of {file.name} failed: {message}")
        return failed

    async def retry(self, upload_id: str) -> Optional[UploadAttempt]:
        """Resubmit a failed upload with its original payload. No-op for unknown ids."""
        record = self.registry.failed_uploads.get(upload_id)
        if record is None:
            return None

        self.registry.discard_upload(upload_id)
        return await self.submit(record.file)

    def dismiss(self, upload_id: str) -> None:
        """Drop a failed upload without retrying. No-op for unknown ids."""
        if upload_id in self.registry.failed_uploads:
            self.registry.discard_upload(upload_id)
