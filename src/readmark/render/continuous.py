"""Continuous-scroll renderer: every chapter in one stream of lines."""

from __future__ import annotations

from typing import Optional

from bs4 import NavigableString

from .base import (
    LineRenderer,
    PaginationMode,
    ReaderLayout,
    Size,
    chapter_at,
    chapter_starts,
)
from .layout import Line

CHAPTER_GAP = 2


class ContinuousRenderer(LineRenderer):
    mode = PaginationMode.CONTINUOUS

    def __init__(
        self,
        chapters: list[str],
        viewport: Size,
        layout: ReaderLayout,
        initial_chapter: int = 0,
    ) -> None:
        super().__init__(chapters, viewport, layout)
        self._starts: list[tuple[int, int]] = []
        self._spans: dict[int, tuple[int, int]] = {}
        self.relayout()
        self.scroll_to_chapter_boundary(initial_chapter)

    def relayout(self) -> None:
        lines: list[Line] = []
        for i in range(self.chapter_count):
            lines.extend(self._layout_chapter(i))
            if i < self.chapter_count - 1:
                lines.extend(Line(i) for _ in range(CHAPTER_GAP))
        self.lines = lines or [Line(0)]
        self._starts = chapter_starts(self.lines)
        self._spans = {}
        bounds = [s for s, _ in self._starts] + [len(self.lines)]
        for n, (start, chapter) in enumerate(self._starts):
            self._spans[chapter] = (start, bounds[n + 1])
        self._index_lines()
        self.top = min(self.top, self.max_top)

    @property
    def max_top(self) -> int:
        return max(0, len(self.lines) - self.block_extent)

    @property
    def current_chapter(self) -> int:
        for line in self.visible_lines():
            if not line.is_blank:
                return line.chapter_index
        return chapter_at(self._starts, self.top)

    @property
    def page_index(self) -> Optional[int]:
        return None

    @property
    def total_pages(self) -> Optional[int]:
        return None

    def scroll_to_line(self, index: int) -> bool:
        target = max(0, min(index, self.max_top))
        moved = target != self.top
        self.top = target
        return moved

    def scroll_by(self, delta: int) -> bool:
        return self.scroll_to_line(self.top + delta)

    def page_down(self) -> bool:
        return self.scroll_by(max(1, self.block_extent - 1))

    def page_up(self) -> bool:
        return self.scroll_by(-max(1, self.block_extent - 1))

    def get_chapter_progress_percent(self) -> float:
        span = self._spans.get(self.current_chapter)
        if span is None:
            return 0.0
        start, end = span
        scrollable = min(end - 1, self.max_top) - start
        if scrollable <= 0:
            return 0.0
        return min(100.0, max(0.0, (self.top - start) / scrollable * 100))

    def scroll_to_anchor(self, node: NavigableString, offset: int) -> bool:
        line = self._line_of(node, offset)
        if line is None:
            return False
        self.scroll_to_line(line)
        return True

    def scroll_to_chapter_boundary(self, chapter_index: int) -> None:
        span = self._spans.get(chapter_index)
        if span is not None:
            self.scroll_to_line(span[0])
