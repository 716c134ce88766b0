"""Whole-book progress from a chapter-local position."""

from __future__ import annotations

import math
from typing import NamedTuple

from readmark.library.models import BookStats


class TotalProgress(NamedTuple):
    total_chars_read: int
    total_progress: float


def calculate_total_progress(
    chapter_index: int, chapter_progress: float, stats: BookStats
) -> TotalProgress:
    """Convert a chapter percentage into characters read and a book percentage.

    Chapters missing from ``stats`` count as empty.
    """
    if stats.total_length == 0:
        return TotalProgress(0, 0.0)

    lengths = stats.chapter_lengths
    chars_before = sum(lengths[: max(0, chapter_index)])
    chapter_length = lengths[chapter_index] if 0 <= chapter_index < len(lengths) else 0
    pct = min(100.0, max(0.0, chapter_progress))
    chars_in_chapter = math.floor(chapter_length * (pct / 100))

    total_chars_read = chars_before + chars_in_chapter
    total_progress = total_chars_read / stats.total_length * 100
    return TotalProgress(total_chars_read, min(100.0, max(0.0, total_progress)))
