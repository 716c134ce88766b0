"""Shared fixtures for tests."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

import pytest

from readmark.config import AppConfig, PositionTimings
from readmark.library.database import Database
from readmark.library.models import BookStats
from readmark.library.store import ProgressStore
from readmark.position.addressing import character_count
from readmark.position.errors import StoreWriteFailure


@pytest.fixture(autouse=True)
def _clean_env():
    # load_dotenv writes straight into os.environ
    before = {k for k in os.environ if k.startswith("READMARK_")}
    yield
    for key in [k for k in os.environ if k.startswith("READMARK_")]:
        if key not in before:
            del os.environ[key]


@pytest.fixture
def db(tmp_path: Path) -> Database:
    db_path = tmp_path / "test.db"
    database = Database(db_path)
    yield database
    database.close()


@pytest.fixture
def store(db: Database) -> ProgressStore:
    return ProgressStore(db)


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        data_dir=tmp_path / "data",
        config_dir=tmp_path / "config",
    )


@pytest.fixture
def fast_timings() -> PositionTimings:
    return PositionTimings(
        save_debounce=0.05,
        restore_max_attempts=5,
        restore_backoff=0.001,
        restore_initial_delay=0.0,
        ready_delay=0.0,
        settle_delay=0.0,
        chapter_change_delay=0.0,
    )


class MemoryStore:
    """In-memory stand-in for ProgressStore that records every write."""

    def __init__(self) -> None:
        self.data: dict[str, dict[str, Any]] = {}
        self.writes: list[dict[str, Any]] = []
        self.fail = False

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        return self.data.get(key)

    async def set(self, key: str, value: dict[str, Any]) -> None:
        if self.fail:
            raise StoreWriteFailure("disk full")
        self.data[key] = dict(value)
        self.writes.append(dict(value))


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


def make_chapters(
    count: int = 3, paragraphs: int = 10, separator: str = ""
) -> list[str]:
    """Chapters of short one-line paragraphs joined by ``separator``."""
    return [
        separator.join(f"<p>Line {i} of chapter {c}.</p>" for i in range(paragraphs))
        for c in range(count)
    ]


def stats_for(chapters: list[str]) -> BookStats:
    return BookStats([character_count(html) for html in chapters])
