"""Turn what is on screen into a ReadingPosition."""

from __future__ import annotations

import logging
from typing import Optional

from readmark.library.models import BookStats, ReadingPosition
from readmark.render.base import Direction, PaginationMode, ProbePoint, Renderer, Size

from .addressing import offset_of, sentence_context
from .errors import AddressingMiss
from .progress import calculate_total_progress

log = logging.getLogger(__name__)


def probe_point(viewport: Size, direction: Direction) -> ProbePoint:
    """Point at the start of the leading line, where reading resumes."""
    if direction is Direction.VERTICAL_RTL:
        return ProbePoint(max(0, viewport.width - 1), 0)
    return ProbePoint(0, 0)


class PositionSampler:
    def __init__(
        self, renderer: Renderer, stats: BookStats, context_length: int = 80
    ) -> None:
        self._renderer = renderer
        self._stats = stats
        self._context_length = context_length

    def chapter_progress(
        self, page_index: Optional[int], total_pages: Optional[int]
    ) -> float:
        if (
            self._renderer.mode is PaginationMode.PAGINATED
            and total_pages is not None
            and total_pages > 1
        ):
            return ((page_index or 0) + 1) / total_pages * 100
        return self._renderer.get_chapter_progress_percent()

    def sample(
        self,
        chapter_index: int,
        page_index: Optional[int] = None,
        total_pages: Optional[int] = None,
    ) -> Optional[ReadingPosition]:
        """Capture the current position, or None while there is nothing to keep."""
        renderer = self._renderer
        chapter_progress = self.chapter_progress(page_index, total_pages)
        totals = calculate_total_progress(chapter_index, chapter_progress, self._stats)

        sentence_text = ""
        chapter_char_offset = 0
        anchor = renderer.get_focal_anchor(
            probe_point(renderer.viewport, renderer.direction)
        )
        root = renderer.get_chapter_root(chapter_index)
        if anchor is not None and root is not None:
            node, offset = anchor
            try:
                chapter_char_offset = offset_of(root, node, offset)
            except AddressingMiss:
                log.debug("Focal text is outside chapter %d", chapter_index)
            else:
                sentence_text = sentence_context(
                    root, chapter_char_offset, self._context_length
                )

        if not sentence_text and totals.total_progress == 0:
            return None

        return ReadingPosition(
            chapter_index=chapter_index,
            page_index=page_index,
            chapter_char_offset=chapter_char_offset,
            total_chars_read=totals.total_chars_read,
            sentence_text=sentence_text,
            chapter_progress=chapter_progress,
            total_progress=totals.total_progress,
        )
