"""
Client for the file storage endpoints (/api/files).

validate_file checks a file against the upload limits before any request is made.
FileClient wraps a single httpx.AsyncClient; construct it where it is needed and
close it when done (or use it as an async context manager).
"""
import io
import logging
import os
from pathlib import Path
from typing import Callable, Optional

import httpx
from dotenv import load_dotenv

from models import (
    ALLOWED_FILE_TYPES,
    MAX_FILE_SIZE,
    DeleteResponse,
    FileListResponse,
    LocalFile,
    StoredFile,
    UploadResponse,
    ValidationResult,
)

load_dotenv()

logger = logging.getLogger(__name__)

API_BASE_URL = os.getenv("FILE_API_BASE_URL", "http://localhost:8000/api")
REQUEST_TIMEOUT = 30.0  # seconds, applied to every request

ProgressCallback = Callable[[int], None]


def validate_file(file: LocalFile) -> ValidationResult:
    if file.size > MAX_FILE_SIZE:
        return ValidationResult(
            valid=False,
            error=f"File size exceeds {MAX_FILE_SIZE // 1024 // 1024}MB limit",
        )

    if file.content_type not in ALLOWED_FILE_TYPES:
        return ValidationResult(
            valid=False,
            error="File type not allowed. Please upload PDF, DOC, DOCX, TXT, or images.",
        )

    return ValidationResult(valid=True)


def format_file_size(size: int) -> str:
    """Format a byte count for display, e.g. 1536 -> '1.5 KB'."""
    if size == 0:
        return "0 Bytes"

    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {units[i]}"


def _error_message(response: httpx.Response, fallback: str) -> str:
    """Pick the server-provided message out of an error body, if there is one."""
    try:
        data = response.json()
    except ValueError:
        return fallback

    if isinstance(data, dict):
        message = data.get("message") or data.get("error") or data.get("detail")
        if isinstance(message, str) and message:
            return message
    return fallback


class _ProgressStream(httpx.AsyncByteStream):
    """Wraps a request body and reports how much of it has been sent."""

    def __init__(self, stream, total: int, on_progress: ProgressCallback):
        self._stream = stream
        self._total = total
        self._on_progress = on_progress
        self.last_percent = 0

    async def __aiter__(self):
        sent = 0
        async for chunk in self._stream:
            sent += len(chunk)
            if self._total:
                self._report(min(100, round(sent * 100 / self._total)))
            yield chunk

    def _report(self, percent: int) -> None:
        # Never report a value lower than one already reported
        if percent > self.last_percent:
            self.last_percent = percent
            self._on_progress(percent)

    def finish(self) -> None:
        self._report(100)


class FileClient:
    def __init__(
        self,
        base_url: str = API_BASE_URL,
        timeout: float = REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def __aenter__(self) -> "FileClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def upload(
        self, file: LocalFile, on_progress: Optional[ProgressCallback] = None
    ) -> UploadResponse:
        """
        Upload a file as multipart form data.

        on_progress receives non-decreasing percentages while the body is sent,
        ending with 100 when the server accepted the file.
        Never raises for transport or server failures; those come back as
        UploadResponse(success=False, error=...).
        """
        validation = validate_file(file)
        if not validation.valid:
            return UploadResponse(success=False, error=validation.error)

        request = self.client.build_request(
            "POST",
            "/files/upload",
            data={
                "fileName": file.name,
                "fileType": file.content_type,
                "fileSize": str(file.size),
            },
            files={"file": (file.name, io.BytesIO(file.content), file.content_type)},
        )
        progress = None
        if on_progress:
            total = int(request.headers.get("Content-Length", 0))
            progress = _ProgressStream(request.stream, total, on_progress)
            request.stream = progress

        try:
            response = await self.client.send(request)
        except httpx.HTTPError as e:
            logger.warning(f"Upload of {file.name} failed: {e!r}")
            return UploadResponse(success=False, error="Upload failed")

        if response.is_error:
            return UploadResponse(
                success=False, error=_error_message(response, "Upload failed")
            )

        try:
            result = UploadResponse.model_validate(response.json())
        except ValueError:
            logger.warning(f"Upload of {file.name} returned an unreadable response")
            return UploadResponse(success=False, error="Upload failed")

        if not result.success or result.file is None:
            return UploadResponse(
                success=False,
                error=result.error or result.message or "Upload failed",
            )

        if progress is not None:
            progress.finish()
        return result

    async def list_files(self) -> list[StoredFile]:
        """
        Fetch every stored file.
        Transport failures return an empty list so a flaky read does not block callers.
        """
        try:
            response = await self.client.get("/files")
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Error fetching files: {e!r}")
            return []
        return FileListResponse.model_validate(response.json()).files

    async def delete(self, file_id: str) -> DeleteResponse:
        try:
            response = await self.client.delete(f"/files/{file_id}")
        except httpx.HTTPError as e:
            logger.warning(f"Delete of {file_id} failed: {e!r}")
            return DeleteResponse(success=False, error="Delete failed")

        if response.is_error:
            return DeleteResponse(
                success=False, error=_error_message(response, "Delete failed")
            )
        return DeleteResponse.model_validate(response.json())

    async def fetch_bytes(self, file_id: str) -> bytes:
        """Raw content of a stored file. Raises httpx.HTTPError on failure."""
        response = await self.client.get(f"/files/{file_id}/download")
        response.raise_for_status()
        return response.content

    async def download(self, file_id: str, destination) -> Path:
        """Save a stored file to destination and return the written path."""
        destination = Path(destination)
        destination.write_bytes(await self.fetch_bytes(file_id))
        return destination
