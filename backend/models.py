import mimetypes
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
ALLOWED_FILE_TYPES = (
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
    "image/jpeg",
    "image/png",
    "image/gif",
)


# Files

class StoredFile(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    name: str
    size: int
    type: str
    url: str
    uploaded_at: str = Field(alias="uploadedAt")  # ISO format datetime string

class UploadResponse(BaseModel):
    success: bool
    file: Optional[StoredFile] = None
    error: Optional[str] = None
    message: Optional[str] = None

class DeleteResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None

class FileListResponse(BaseModel):
    files: list[StoredFile] = []

class ValidationResult(BaseModel):
    valid: bool
    error: Optional[str] = None

class LocalFile(BaseModel):
    """A file picked on the client side, not yet uploaded."""
    model_config = ConfigDict(frozen=True)

    name: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_path(cls, path) -> "LocalFile":
        path = Path(path)
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            content_type=content_type or "application/octet-stream",
            content=path.read_bytes(),
        )


# Uploads

UploadStatus = Literal["pending", "uploading", "completed", "error"]

class UploadAttempt(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    file_name: str
    progress: int = 0  # 0-100
    status: UploadStatus = "pending"
    error: Optional[str] = None

class FailedUploadRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    upload_id: str
    file: LocalFile
    attempt: UploadAttempt


# Tasks

class Task(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    title: str
    description: str = ""
    estimated_duration: int = Field(30, alias="estimatedDuration")  # minutes
    priority: Literal["high", "medium", "low"] = "medium"
    deadline: Optional[str] = None  # ISO format or None
    subject: Optional[str] = None
    difficulty: Optional[Literal["easy", "medium", "hard"]] = None

class ExtractRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str = ""
    user_context: Optional[str] = Field(None, alias="userContext")

class FileAnalysis(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subject: Optional[str] = None
    difficulty: Optional[Literal["easy", "medium", "hard"]] = None
    topics: list[str] = []
    estimated_study_time: int = Field(0, alias="estimatedStudyTime")  # minutes


class ScheduleRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tasks: list[dict[str, Any]] = []
    start_time: str = Field("09:00", alias="startTime")
    end_time: str = Field("17:00", alias="endTime")
    strategy: Literal["balanced", "deadline", "priority", "quick-wins"] = "balanced"
    break_duration: int = Field(15, alias="breakDuration")  # minutes

class TimeBlock(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start_time: str = Field(alias="startTime")  # HH:MM
    end_time: str = Field(alias="endTime")  # HH:MM
    task: dict[str, Any]
    reason: str = ""

class ScheduleResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    schedule: list[TimeBlock] = []
    unscheduled_tasks: list[dict[str, Any]] = Field([], alias="unscheduledTasks")
    optimization_strategy: str = Field("", alias="optimizationStrategy")
