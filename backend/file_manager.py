"""
View model for the file manager: stored files plus in-flight and failed uploads.

FileRegistry owns all of that state. Collections are swapped for updated copies
on every change, so a reader holding a reference never sees a half-applied update.
"""
import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional

import httpx

from file_client import FileClient, validate_file
from models import FailedUploadRecord, LocalFile, StoredFile, UploadAttempt
from uploads import COMPLETED_DISPLAY_DELAY, UploadOrchestrator

logger = logging.getLogger(__name__)

MAX_FILES = 10

FilesObserver = Callable[[list[StoredFile]], None]
ConfirmCallback = Callable[[str], bool]


def confirm_on_stdin(display_name: str) -> bool:
    answer = input(f"Delete {display_name}? [y/N] ")
    return answer.strip().lower() in ("y", "yes")


class FileRegistry:
    def __init__(
        self,
        client: FileClient,
        on_files_change: Optional[FilesObserver] = None,
        max_files: int = MAX_FILES,
        confirm: ConfirmCallback = confirm_on_stdin,
        completed_display_delay: float = COMPLETED_DISPLAY_DELAY,
    ):
        self.client = client
        self.on_files_change = on_files_change
        self.max_files = max_files
        self.confirm = confirm
        self.orchestrator = UploadOrchestrator(client, self, completed_display_delay)

        self.files: list[StoredFile] = []
        self.uploads: dict[str, UploadAttempt] = {}
        self.failed_uploads: dict[str, FailedUploadRecord] = {}
        self.error = ""
        self.is_loading = False
        self._removal_timers: dict[str, asyncio.TimerHandle] = {}

    # Stored files

    async def load_all(self) -> None:
        self.is_loading = True
        try:
            files = await self.client.list_files()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to load files: {e!r}")
            self.error = "Failed to load files"
            return
        finally:
            self.is_loading = False

        self.files = list(files)
        self._notify()

    def add_file(self, stored: StoredFile) -> None:
        if any(f.id == stored.id for f in self.files):
            return
        self.files = [*self.files, stored]
        self._notify()

    async def delete(self, file_id: str, display_name: str) -> bool:
        """Delete a stored file after confirmation. Returns True if it was removed."""
        # confirm may block on stdin
        if not await asyncio.to_thread(self.confirm, display_name):
            return False

        try:
            result = await self.client.delete(file_id)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error deleting {display_name}: {e!r}")
            self.error = "Failed to delete file"
            return False

        if not result.success:
            self.error = result.error or "Failed to delete file"
            return False

        self.files = [f for f in self.files if f.id != file_id]
        self._notify()
        logger.info(f"Deleted {display_name}")
        return True

    async def download(self, file_id: str, display_name: str, directory=".") -> Optional[Path]:
        try:
            # Only the final component of the name, so a stored name cannot escape directory
            destination = Path(directory) / Path(display_name).name
            return await self.client.download(file_id, destination)
        except (httpx.HTTPError, OSError) as e:
            logger.error(f"Error downloading {display_name}: {e!r}")
            self.error = "Failed to download file"
            return None

    # Uploads

    async def add_files(self, new_files: list[LocalFile]) -> list[UploadAttempt]:
        """
        Upload a batch of files.
        The whole batch is refused if it would push the total past max_files.
        Files failing validation are reported in self.error and never uploaded.
        Returns the final attempt of every file that was submitted.
        """
        self.error = ""

        if len(self.files) + len(new_files) > self.max_files:
            self.error = f"Maximum {self.max_files} files allowed"
            return []

        accepted = []
        rejected = []
        for file in new_files:
            validation = validate_file(file)
            if validation.valid:
                accepted.append(file)
            else:
                rejected.append(f"{file.name}: {validation.error}")
        if rejected:
            self.error = "\n".join(rejected)

        return list(await asyncio.gather(*(self.orchestrator.submit(f) for f in accepted)))

    async def retry(self, upload_id: str) -> Optional[UploadAttempt]:
        return await self.orchestrator.retry(upload_id)

    def dismiss(self, upload_id: str) -> None:
        self.orchestrator.dismiss(upload_id)

    def track(self, attempt: UploadAttempt) -> None:
        self.uploads = {**self.uploads, attempt.id: attempt}

    def set_progress(self, upload_id: str, percent: int) -> None:
        attempt = self.uploads.get(upload_id)
        if attempt is None or attempt.status != "uploading":
            return
        percent = max(attempt.progress, min(100, max(0, int(percent))))
        if percent != attempt.progress:
            self.track(attempt.model_copy(update={"progress": percent}))

    def record_failure(self, record: FailedUploadRecord) -> None:
        self.failed_uploads = {**self.failed_uploads, record.upload_id: record}

    def discard_upload(self, upload_id: str) -> None:
        self.failed_uploads = {k: v for k, v in self.failed_uploads.items() if k != upload_id}
        self.uploads = {k: v for k, v in self.uploads.items() if k != upload_id}

    def schedule_removal(self, upload_id: str, delay: float) -> None:
        loop = asyncio.get_running_loop()
        self._removal_timers[upload_id] = loop.call_later(delay, self._expire, upload_id)

    def _expire(self, upload_id: str) -> None:
        self._removal_timers.pop(upload_id, None)
        self.discard_upload(upload_id)

    def clear_error(self) -> None:
        self.error = ""

    def close(self) -> None:
        """Cancel pending removals of completed uploads."""
        for handle in self._removal_timers.values():
            handle.cancel()
        self._removal_timers = {}

    def _notify(self) -> None:
        if self.on_files_change:
            self.on_files_change(list(self.files))
