"""
Shared pytest fixtures for backend tests.
Server tests use a temp-file SQLite database; client tests talk to an
in-process fake of the file endpoints through httpx.MockTransport.
"""
import json
import re
import pytest
import pytest_asyncio
import sqlite3
import sys
import os
from types import SimpleNamespace

import httpx

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database
from file_client import FileClient

BASE_URL = "http://files.test/api"


@pytest.fixture
def test_db(monkeypatch, tmp_path):
    """
    Create an isolated test database for each test.
    Uses a temp file (not :memory:) because database.py opens new connections per operation.
    """
    db_path = str(tmp_path / "test.db")
    monkeypatch.setattr(database, "DATABASE_PATH", db_path)
    monkeypatch.setattr(database, "init_db", lambda: None)

    # Create tables directly (skip alembic for tests)
    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE files (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            size INTEGER NOT NULL,
            type TEXT NOT NULL,
            content BLOB NOT NULL,
            uploaded_at TEXT NOT NULL
        );
    """)
    conn.commit()
    conn.close()

    yield db_path


@pytest.fixture
def app_client(test_db, monkeypatch):
    """
    Create a test client for the FastAPI app with no LLM client configured.
    Mocks init_db to skip alembic migrations.
    """
    from fastapi.testclient import TestClient
    import main

    monkeypatch.setattr(main, "init_db", lambda: None)
    monkeypatch.setattr(main, "ANTHROPIC_API_KEY", None)

    with TestClient(main.app) as client:
        yield client


class FakeMessages:
    """Stands in for AsyncAnthropic.messages; replies are queued text or exceptions."""

    def __init__(self):
        self.replies = []
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if not isinstance(reply, str):
            reply = json.dumps(reply)
        return SimpleNamespace(content=[SimpleNamespace(text=reply)])


@pytest.fixture
def fake_llm():
    return SimpleNamespace(messages=FakeMessages())


@pytest.fixture
def assistant_client(app_client, fake_llm):
    """Test client whose task assistant endpoints use fake_llm."""
    import main

    main.app.dependency_overrides[main.get_llm_client] = lambda: fake_llm
    yield app_client
    main.app.dependency_overrides.clear()


def _form_field(body: bytes, name: str) -> str:
    match = re.search(rb'name="' + name.encode() + rb'"\r\n\r\n([^\r]*)\r\n', body)
    return match.group(1).decode() if match else ""


class FakeFileServer:
    """
    In-memory stand-in for the /api/files endpoints.
    Queue messages in upload_failures to make the next uploads fail with them.
    """

    def __init__(self):
        self.files = {}
        self.contents = {}
        self.requests = []
        self.upload_failures = []
        self.list_down = False
        self._next_id = 1

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def uploads(self) -> list:
        return [r for r in self.requests if r.url.path == "/api/files/upload"]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "POST" and path == "/api/files/upload":
            if self.upload_failures:
                message = self.upload_failures.pop(0)
                return httpx.Response(422, json={"success": False, "error": message, "message": message})
            file_id = f"file-{self._next_id}"
            self._next_id += 1
            stored = {
                "id": file_id,
                "name": _form_field(request.content, "fileName"),
                "size": int(_form_field(request.content, "fileSize")),
                "type": _form_field(request.content, "fileType"),
                "url": f"/api/files/{file_id}/download",
                "uploadedAt": "2026-10-19T09:00:00",
            }
            self.files[file_id] = stored
            self.contents[file_id] = b"stored content"
            return httpx.Response(200, json={"success": True, "file": stored})

        if request.method == "GET" and path == "/api/files":
            if self.list_down:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"files": list(self.files.values())})

        match = re.fullmatch(r"/api/files/([^/]+)(/download)?", path)
        if match:
            file_id = match.group(1)
            if file_id not in self.files:
                return httpx.Response(404, json={"success": False, "message": "File not found"})
            if request.method == "DELETE":
                del self.files[file_id]
                return httpx.Response(200, json={"success": True, "message": "File deleted successfully"})
            if request.method == "GET" and match.group(2):
                return httpx.Response(200, content=self.contents[file_id])

        return httpx.Response(404, json={"detail": "Not Found"})


@pytest.fixture
def file_server():
    return FakeFileServer()


@pytest_asyncio.fixture
async def file_client(file_server):
    client = FileClient(base_url=BASE_URL, transport=file_server.transport())
    yield client
    await client.aclose()
