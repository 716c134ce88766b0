"""Base parser interface for all ebook formats."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from readmark.library.models import BookContent, BookStats, Chapter
from readmark.position.addressing import character_count


class BaseParser(ABC):
    """Abstract base for format-specific parsers."""

    SUPPORTED_EXTENSIONS: tuple[str, ...] = ()

    @abstractmethod
    def parse(self, file_path: Path) -> BookContent:
        """Parse a file and return structured book content."""

    @classmethod
    def can_handle(cls, file_path: Path) -> bool:
        return file_path.suffix.lower() in cls.SUPPORTED_EXTENSIONS

    @staticmethod
    def compute_stats(chapters: list[Chapter]) -> BookStats:
        """Count each chapter's characters the way reading offsets count them."""
        return BookStats([character_count(ch.html) for ch in chapters])


def get_parser(file_path: Path) -> BaseParser:
    """Return the appropriate parser for a file."""
    from readmark.parsers.epub_parser import EpubParser
    from readmark.parsers.txt_parser import TxtParser

    parsers: list[type[BaseParser]] = [
        EpubParser,
        TxtParser,
    ]
    for parser_cls in parsers:
        if parser_cls.can_handle(file_path):
            return parser_cls()

    supported = []
    for p in parsers:
        supported.extend(p.SUPPORTED_EXTENSIONS)
    raise ValueError(
        f"Unsupported format: {file_path.suffix}. Supported: {', '.join(supported)}"
    )
