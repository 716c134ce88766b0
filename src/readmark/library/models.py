"""Data models for the book library and reading positions."""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

log = logging.getLogger(__name__)

# Version tag written into persisted position records. Records without a tag
# predate versioning and are migrated on read.
RECORD_VERSION = 1

SIGNATURE_TEXT_LENGTH = 20


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class Book:
    id: str  # SHA256 of file path
    file_path: str
    title: str
    author: str = "Unknown"
    format: str = ""  # epub, txt
    file_size: int = 0
    total_chapters: int = 0
    added_at: float = field(default_factory=time.time)
    last_read_at: Optional[float] = None

    @staticmethod
    def make_id(file_path: str) -> str:
        return hashlib.sha256(file_path.encode()).hexdigest()[:16]


@dataclass
class BookStats:
    """Per-chapter character counts over the furigana-stable text stream."""

    chapter_lengths: list[int] = field(default_factory=list)
    total_length: int = field(init=False)

    def __post_init__(self) -> None:
        self.total_length = sum(self.chapter_lengths)

    @property
    def chapter_count(self) -> int:
        return len(self.chapter_lengths)


@dataclass
class Chapter:
    """Parsed chapter content."""

    index: int
    title: str
    html: str = ""  # sanitized body markup, ruby annotations kept


@dataclass
class BookContent:
    """Full parsed book structure."""

    metadata: Book
    chapters: list[Chapter] = field(default_factory=list)
    toc: list[tuple[int, str]] = field(default_factory=list)  # (chapter_index, title)
    stats: BookStats = field(default_factory=BookStats)

    def chapter_title(self, index: int) -> str:
        """Title of the TOC entry covering a chapter, else the chapter's own."""
        best: Optional[tuple[int, str]] = None
        for entry_index, entry_title in self.toc:
            if not entry_title or entry_index > index:
                continue
            if best is None or entry_index > best[0]:
                best = (entry_index, entry_title)
        if best is not None:
            return best[1]
        if 0 <= index < len(self.chapters):
            return self.chapters[index].title
        return "?"


@dataclass
class ReadingPosition:
    """Render-mode independent address of where the reader is."""

    chapter_index: int
    chapter_char_offset: int = 0
    total_chars_read: int = 0
    sentence_text: str = ""
    chapter_progress: float = 0.0  # 0 - 100
    total_progress: float = 0.0  # 0 - 100
    page_index: Optional[int] = None
    timestamp: int = field(default_factory=now_ms)

    @property
    def signature(self) -> tuple[int, int, str]:
        return (
            self.chapter_index,
            self.chapter_char_offset,
            self.sentence_text[:SIGNATURE_TEXT_LENGTH],
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "version": RECORD_VERSION,
            "chapterIndex": self.chapter_index,
            "pageNumber": self.page_index,
            "chapterCharOffset": self.chapter_char_offset,
            "totalCharsRead": self.total_chars_read,
            "sentenceText": self.sentence_text,
            "chapterProgress": self.chapter_progress,
            "totalProgress": self.total_progress,
            "lastRead": self.timestamp,
        }

    @classmethod
    def from_record(cls, data: Any) -> Optional[ReadingPosition]:
        """Build a position from a stored record, or None if it is unusable."""
        if not isinstance(data, dict):
            return None
        version = data.get("version", 0)
        if not isinstance(version, int):
            return None
        if version > RECORD_VERSION:
            log.warning(
                "Progress record version %s is newer than %s, reading known fields",
                version,
                RECORD_VERSION,
            )

        chapter_index = data.get("chapterIndex")
        if (
            not isinstance(chapter_index, int)
            or isinstance(chapter_index, bool)
            or chapter_index < 0
        ):
            return None

        page = data.get("pageNumber")
        return cls(
            chapter_index=chapter_index,
            page_index=page if isinstance(page, int) and page >= 0 else None,
            chapter_char_offset=_non_negative_int(data.get("chapterCharOffset")),
            total_chars_read=_non_negative_int(data.get("totalCharsRead")),
            sentence_text=_text(data.get("sentenceText")),
            chapter_progress=_percent(data.get("chapterProgress")),
            total_progress=_percent(data.get("totalProgress")),
            timestamp=_non_negative_int(data.get("lastRead")),
        )


def _non_negative_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)) and value > 0:
        return int(value)
    return 0


def _percent(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(min(100.0, max(0.0, value)))


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""
