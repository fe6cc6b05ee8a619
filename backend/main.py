from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from typing import Optional
from urllib.parse import quote
import asyncio
import json
import logging
import os
import uuid
import anthropic
from dotenv import load_dotenv

import assistant
from models import (
    ALLOWED_FILE_TYPES,
    MAX_FILE_SIZE,
    DeleteResponse,
    ExtractRequest,
    FileListResponse,
    ScheduleRequest,
    UploadResponse,
)
from database import (
    init_db,
    create_file_db,
    get_all_files,
    get_file_content_db,
    delete_file_db,
)

load_dotenv()

logger = logging.getLogger(__name__)

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
MAX_ANALYSIS_FILES = 5


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    init_db()
    if ANTHROPIC_API_KEY and ANTHROPIC_API_KEY != "your-api-key-here":
        app.state.llm_client = anthropic.AsyncAnthropic(api_key=ANTHROPIC_API_KEY)
    else:
        logger.warning("ANTHROPIC_API_KEY not configured; task assistant endpoints disabled")
        app.state.llm_client = None
    yield
    # Shutdown
    if app.state.llm_client is not None:
        await app.state.llm_client.close()

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_llm_client(request: Request) -> anthropic.AsyncAnthropic:
    client = getattr(request.app.state, "llm_client", None)
    if client is None:
        raise HTTPException(status_code=503, detail="API key not configured")
    return client


def upload_error(status_code: int, message: str) -> JSONResponse:
    body = UploadResponse(success=False, error=message, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def assistant_error(error: str, exc: Exception) -> JSONResponse:
    logger.exception(error)
    return JSONResponse(status_code=500, content={"error": error, "details": str(exc)})


@app.get("/api")
def status() -> dict:
    return {"status": "API is running"}


# Files

@app.post("/api/files/upload", response_model=UploadResponse, response_model_exclude_none=True)
async def upload_file(
    file: UploadFile = File(...),
    fileName: Optional[str] = Form(None),
    fileType: Optional[str] = Form(None),
    fileSize: Optional[int] = Form(None),
):
    """Store an uploaded file. fileSize is informational; the stored size is the received length."""
    content = await file.read()
    name = fileName or file.filename or "untitled"
    file_type = fileType or file.content_type or "application/octet-stream"

    if len(content) > MAX_FILE_SIZE:
        return upload_error(413, f"File size exceeds {MAX_FILE_SIZE // 1024 // 1024}MB limit")
    if file_type not in ALLOWED_FILE_TYPES:
        return upload_error(400, f"File type {file_type} is not allowed")
    if not content:
        return upload_error(400, "File is empty")
    if fileSize is not None and fileSize != len(content):
        logger.warning(f"Declared size {fileSize} for {name} does not match received {len(content)}")

    stored = create_file_db(str(uuid.uuid4()), name, file_type, content)
    logger.info(f"Stored {stored.name} ({stored.size} bytes) as {stored.id}")
    return UploadResponse(success=True, file=stored, message="File uploaded successfully")


@app.get("/api/files", response_model=FileListResponse)
def list_files():
    return FileListResponse(files=get_all_files())


@app.delete("/api/files/{file_id}", response_model=DeleteResponse, response_model_exclude_none=True)
def delete_file(file_id: str):
    if not delete_file_db(file_id):
        body = DeleteResponse(success=False, error="File not found", message="File not found")
        return JSONResponse(status_code=404, content=body.model_dump(exclude_none=True))
    logger.info(f"Deleted file {file_id}")
    return DeleteResponse(success=True, message="File deleted successfully")


@app.get("/api/files/{file_id}/download")
def download_file(file_id: str) -> Response:
    found = get_file_content_db(file_id)
    if not found:
        raise HTTPException(status_code=404, detail="File not found")
    stored, content = found
    return Response(
        content=content,
        media_type=stored.type,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(stored.name)}"},
    )


# Task assistant

@app.post("/api/tasks/extract")
async def extract_tasks(
    extract_request: ExtractRequest,
    client: anthropic.AsyncAnthropic = Depends(get_llm_client),
) -> dict:
    """Extract structured tasks from speech or typed text."""
    if not extract_request.text.strip():
        raise HTTPException(status_code=400, detail="Text input is required")

    try:
        tasks = await assistant.extract_tasks(client, extract_request.text, extract_request.user_context)
    except (anthropic.APIError, ValueError) as e:
        return assistant_error("Failed to extract tasks", e)

    return {
        "tasks": [task.model_dump(by_alias=True) for task in tasks],
        "extractedCount": len(tasks),
    }


@app.post("/api/tasks/analyze-files")
async def analyze_files(
    files: Optional[list[UploadFile]] = File(None),
    tasks: str = Form("[]"),
    client: anthropic.AsyncAnthropic = Depends(get_llm_client),
) -> dict:
    """Rate course material and fold difficulty and study time into matching tasks."""
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded")
    if len(files) > MAX_ANALYSIS_FILES:
        raise HTTPException(status_code=400, detail=f"At most {MAX_ANALYSIS_FILES} files allowed")

    # Tasks pass through untouched apart from the fields the analysis fills in
    try:
        parsed_tasks = json.loads(tasks)
    except ValueError:
        parsed_tasks = None
    if not isinstance(parsed_tasks, list) or not all(isinstance(t, dict) for t in parsed_tasks):
        raise HTTPException(status_code=400, detail="tasks must be a JSON array of tasks")

    names = [upload.filename or "untitled" for upload in files]
    contents = [await upload.read() for upload in files]
    try:
        results = await asyncio.gather(*(
            assistant.analyze_file(client, name, content)
            for name, content in zip(names, contents)
        ))
    except (anthropic.APIError, ValueError) as e:
        return assistant_error("Failed to analyze files", e)

    analyses = list(zip(names, results))
    return {
        "tasks": assistant.apply_file_analyses(parsed_tasks, analyses),
        "fileAnalyses": [
            {"fileName": name, "analysis": analysis.model_dump(by_alias=True)}
            for name, analysis in analyses
        ],
    }


@app.post("/api/schedule/optimize")
async def optimize_schedule(
    schedule_request: ScheduleRequest,
    client: anthropic.AsyncAnthropic = Depends(get_llm_client),
) -> dict:
    """Ask the model for a daily schedule of the given tasks."""
    if not schedule_request.tasks:
        raise HTTPException(status_code=400, detail="Tasks array is required")

    try:
        schedule = await assistant.optimize_schedule(client, schedule_request)
    except (anthropic.APIError, ValueError) as e:
        return assistant_error("Failed to optimize schedule", e)

    return schedule.model_dump(by_alias=True)


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    uvicorn.run(app, host="0.0.0.0", port=8000)
