"""SQLite database for the library and per-book reading position records."""

from __future__ import annotations

import sqlite3
import threading
import time
from pathlib import Path
from typing import Optional

from .models import Book

_SCHEMA = """
CREATE TABLE IF NOT EXISTS books (
    id TEXT PRIMARY KEY,
    file_path TEXT UNIQUE NOT NULL,
    title TEXT NOT NULL,
    author TEXT DEFAULT 'Unknown',
    format TEXT DEFAULT '',
    file_size INTEGER DEFAULT 0,
    total_chapters INTEGER DEFAULT 0,
    added_at REAL NOT NULL,
    last_read_at REAL
);

CREATE TABLE IF NOT EXISTS reading_progress (
    book_id TEXT PRIMARY KEY,
    record TEXT NOT NULL,
    updated_at REAL NOT NULL
);
"""


class Database:
    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()

    def _init_schema(self) -> None:
        with self._lock:
            self._conn.executescript(_SCHEMA)
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ── Books ──────────────────────────────────────────────

    def add_book(self, book: Book) -> None:
        with self._lock:
            self._conn.execute(
                """INSERT OR REPLACE INTO books
                   (id, file_path, title, author, format, file_size, total_chapters, added_at, last_read_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    book.id,
                    book.file_path,
                    book.title,
                    book.author,
                    book.format,
                    book.file_size,
                    book.total_chapters,
                    book.added_at,
                    book.last_read_at,
                ),
            )
            self._conn.commit()

    def remove_book(self, book_id: str) -> None:
        """Delete a book along with its saved reading position."""
        with self._lock:
            self._conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
            self._conn.execute(
                "DELETE FROM reading_progress WHERE book_id = ?", (book_id,)
            )
            self._conn.commit()

    def get_book_by_path(self, file_path: str) -> Optional[Book]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM books WHERE file_path = ?", (file_path,)
            ).fetchone()
        return self._row_to_book(row) if row else None

    def list_books(self) -> list[Book]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM books ORDER BY last_read_at DESC NULLS LAST"
            ).fetchall()
        return [self._row_to_book(r) for r in rows]

    def update_last_read(self, book_id: str) -> None:
        with self._lock:
            self._conn.execute(
                "UPDATE books SET last_read_at = ? WHERE id = ?",
                (time.time(), book_id),
            )
            self._conn.commit()

    @staticmethod
    def _row_to_book(row: sqlite3.Row) -> Book:
        return Book(
            id=row["id"],
            file_path=row["file_path"],
            title=row["title"],
            author=row["author"],
            format=row["format"],
            file_size=row["file_size"],
            total_chapters=row["total_chapters"],
            added_at=row["added_at"],
            last_read_at=row["last_read_at"],
        )

    # ── Reading Progress ───────────────────────────────────

    def put_progress_record(self, book_id: str, record: str) -> None:
        with self._lock:
            self._conn.execute(
                """INSERT OR REPLACE INTO reading_progress
                   (book_id, record, updated_at)
                   VALUES (?, ?, ?)""",
                (book_id, record, time.time()),
            )
            self._conn.commit()

    def get_progress_record(self, book_id: str) -> Optional[str]:
        with self._lock:
            row = self._conn.execute(
                "SELECT record FROM reading_progress WHERE book_id = ?",
                (book_id,),
            ).fetchone()
        return row["record"] if row else None
