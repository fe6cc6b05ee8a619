import os
import sqlite3
from datetime import datetime
from typing import Optional
from contextlib import contextmanager

from models import StoredFile

BACKEND_DIR = os.path.dirname(os.path.abspath(__file__))
DATABASE_PATH = os.path.join(BACKEND_DIR, "taskdesk.db")

@contextmanager
def get_db():
    """Context manager for database connections."""
    conn = sqlite3.connect(DATABASE_PATH)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()

def init_db():
    """Initialize database by running Alembic migrations."""
    import subprocess

    # Run alembic upgrade from the backend directory
    subprocess.run(
        ["alembic", "upgrade", "head"],
        cwd=BACKEND_DIR,
        check=True
    )

def download_url(file_id: str) -> str:
    return f"/api/files/{file_id}/download"

def _row_to_file(row) -> StoredFile:
    """Convert a database row to a StoredFile model."""
    return StoredFile(
        id=row["id"],
        name=row["name"],
        size=row["size"],
        type=row["type"],
        url=download_url(row["id"]),
        uploaded_at=row["uploaded_at"],
    )

def create_file_db(file_id: str, name: str, file_type: str, content: bytes) -> StoredFile:
    """Store a file and its content. size is taken from the content."""
    uploaded_at = datetime.now().isoformat()
    with get_db() as conn:
        conn.execute(
            """INSERT INTO files (id, name, size, type, content, uploaded_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (file_id, name, len(content), file_type, content, uploaded_at)
        )
        conn.commit()

    return StoredFile(
        id=file_id,
        name=name,
        size=len(content),
        type=file_type,
        url=download_url(file_id),
        uploaded_at=uploaded_at,
    )

def get_all_files() -> list[StoredFile]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT id, name, size, type, uploaded_at FROM files ORDER BY uploaded_at, rowid"
        ).fetchall()
        return [_row_to_file(row) for row in rows]

def get_file_db(file_id: str) -> Optional[StoredFile]:
    with get_db() as conn:
        row = conn.execute(
            "SELECT id, name, size, type, uploaded_at FROM files WHERE id = ?",
            (file_id,)
        ).fetchone()
        if row:
            return _row_to_file(row)
    return None

def get_file_content_db(file_id: str) -> Optional[tuple[StoredFile, bytes]]:
    """Fetch a file's metadata together with its content."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM files WHERE id = ?", (file_id,)).fetchone()
        if row:
            return _row_to_file(row), bytes(row["content"])
    return None

def delete_file_db(file_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM files WHERE id = ?", (file_id,))
        conn.commit()
        return cursor.rowcount > 0
