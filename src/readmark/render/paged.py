"""Paginated renderer: one chapter at a time, cut into fixed-size pages."""

from __future__ import annotations

import math
from typing import Optional

from bs4 import NavigableString

from readmark.position.addressing import ChapterRoot

from .base import LineRenderer, PaginationMode, ReaderLayout, Size
from .layout import Line


class PagedRenderer(LineRenderer):
    mode = PaginationMode.PAGINATED

    def __init__(
        self,
        chapters: list[str],
        viewport: Size,
        layout: ReaderLayout,
        initial_chapter: int = 0,
        initial_page: int = 0,
    ) -> None:
        super().__init__(chapters, viewport, layout)
        self._chapter = max(0, min(initial_chapter, self.chapter_count - 1))
        self._page = 0
        self.relayout()
        self.go_to_page(initial_page)

    def relayout(self) -> None:
        if self.chapter_count:
            self.lines = self._layout_chapter(self._chapter)
        else:
            self.lines = [Line(0)]
        self._index_lines()
        self.go_to_page(self._page)

    @property
    def current_chapter(self) -> int:
        return self._chapter

    @property
    def page_index(self) -> Optional[int]:
        return self._page

    @property
    def total_pages(self) -> Optional[int]:
        return max(1, math.ceil(len(self.lines) / self.block_extent))

    def go_to_page(self, page: int) -> bool:
        target = max(0, min(page, self.total_pages - 1))
        moved = target != self._page
        self._page = target
        self.top = target * self.block_extent
        return moved

    def next_page(self) -> bool:
        return self.go_to_page(self._page + 1)

    def prev_page(self) -> bool:
        return self.go_to_page(self._page - 1)

    def load_chapter(self, chapter_index: int, page: int = 0) -> bool:
        """Show another chapter. A negative ``page`` counts from the end."""
        if not 0 <= chapter_index < self.chapter_count:
            return False
        self._chapter = chapter_index
        self._page = 0
        self.relayout()
        self.go_to_page(page if page >= 0 else self.total_pages + page)
        return True

    def get_chapter_root(self, chapter_index: int) -> Optional[ChapterRoot]:
        if chapter_index != self._chapter:
            return None
        return super().get_chapter_root(chapter_index)

    def get_chapter_progress_percent(self) -> float:
        total = self.total_pages
        if total <= 1:
            return 0.0
        return (self._page + 1) / total * 100

    def scroll_to_anchor(self, node: NavigableString, offset: int) -> bool:
        line = self._line_of(node, offset)
        if line is None:
            return False
        self.go_to_page(line // self.block_extent)
        return True

    def scroll_to_chapter_boundary(self, chapter_index: int) -> None:
        if chapter_index != self._chapter:
            self.load_chapter(chapter_index)
        else:
            self.go_to_page(0)
