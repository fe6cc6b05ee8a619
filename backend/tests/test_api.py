"""
Tests for the file endpoints in main.py.
The task assistant endpoints are covered in test_assistant.py.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import create_file_db
from models import MAX_FILE_SIZE


def upload(client, name="notes.txt", content=b"x" * 500, content_type="text/plain", **fields):
    data = {"fileName": name, "fileType": content_type, "fileSize": str(len(content))}
    data.update(fields)
    return client.post(
        "/api/files/upload",
        files={"file": (name, content, content_type)},
        data=data,
    )


class TestStatusEndpoint:

    def test_status(self, app_client):
        response = app_client.get("/api")
        assert response.status_code == 200
        assert response.json() == {"status": "API is running"}


class TestUploadEndpoint:
    """Tests for POST /api/files/upload."""

    def test_upload(self, app_client):
        """Upload returns the stored file in wire format."""
        response = upload(app_client)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert "error" not in body

        stored = body["file"]
        assert stored["name"] == "notes.txt"
        assert stored["size"] == 500
        assert stored["type"] == "text/plain"
        assert stored["url"] == f"/api/files/{stored['id']}/download"
        assert "uploadedAt" in stored

    def test_upload_without_form_fields(self, app_client):
        """Name and type fall back to the multipart part's own headers."""
        response = app_client.post(
            "/api/files/upload",
            files={"file": ("photo.png", b"\x89PNG", "image/png")},
        )
        assert response.status_code == 200
        assert response.json()["file"]["name"] == "photo.png"
        assert response.json()["file"]["type"] == "image/png"

    def test_upload_too_large(self, app_client):
        response = upload(app_client, content=b"x" * (MAX_FILE_SIZE + 1))
        assert response.status_code == 413
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "File size exceeds 10MB limit"

    def test_upload_disallowed_type(self, app_client):
        response = upload(app_client, name="run.sh", content_type="application/x-sh")
        assert response.status_code == 400
        assert response.json()["success"] is False
        assert "not allowed" in response.json()["error"]

    def test_upload_empty(self, app_client):
        response = upload(app_client, content=b"")
        assert response.status_code == 400
        assert response.json()["error"] == "File is empty"

    def test_upload_uses_received_size(self, app_client):
        """A wrong declared fileSize does not change the stored size."""
        response = upload(app_client, fileSize="999")
        assert response.json()["file"]["size"] == 500


class TestFileEndpoints:
    """Tests for listing, deleting and downloading files."""

    def test_list_empty(self, app_client):
        response = app_client.get("/api/files")
        assert response.status_code == 200
        assert response.json() == {"files": []}

    def test_list_files(self, test_db, app_client):
        create_file_db("id-1", "a.txt", "text/plain", b"a")
        create_file_db("id-2", "b.pdf", "application/pdf", b"bb")

        files = app_client.get("/api/files").json()["files"]
        assert [f["id"] for f in files] == ["id-1", "id-2"]
        assert files[1]["size"] == 2
        assert "content" not in files[0]

    def test_uploaded_file_is_listed(self, app_client):
        file_id = upload(app_client).json()["file"]["id"]

        files = app_client.get("/api/files").json()["files"]
        assert [f["id"] for f in files] == [file_id]

    def test_delete(self, test_db, app_client):
        create_file_db("id-1", "a.txt", "text/plain", b"a")

        response = app_client.delete("/api/files/id-1")
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "File deleted successfully"}
        assert app_client.get("/api/files").json()["files"] == []

    def test_delete_not_found(self, app_client):
        response = app_client.delete("/api/files/missing")
        assert response.status_code == 404
        assert response.json()["success"] is False
        assert response.json()["message"] == "File not found"

    def test_download(self, test_db, app_client):
        create_file_db("id-1", "résumé.pdf", "application/pdf", b"%PDF-1.4")

        response = app_client.get("/api/files/id-1/download")
        assert response.status_code == 200
        assert response.content == b"%PDF-1.4"
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["content-disposition"] == "attachment; filename*=UTF-8''r%C3%A9sum%C3%A9.pdf"

    def test_download_not_found(self, app_client):
        response = app_client.get("/api/files/missing/download")
        assert response.status_code == 404
