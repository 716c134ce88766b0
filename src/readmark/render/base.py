"""Renderer contract consumed by the reading position engine."""

from __future__ import annotations

import bisect
import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Optional, Protocol

from bs4 import NavigableString

from readmark.position.addressing import (
    ChapterRoot,
    Point,
    iter_text_nodes,
    offset_of,
    parse_chapter,
    point_at_offset,
)

from .layout import Line, char_width, layout_chapter, pad_to_width

# Cells taken by one column in vertical writing.
COLUMN_WIDTH = 2


class PaginationMode(str, enum.Enum):
    CONTINUOUS = "continuous"
    PAGINATED = "paginated"


class Direction(str, enum.Enum):
    HORIZONTAL = "horizontal"
    VERTICAL_RTL = "vertical-rtl"
    VERTICAL_LTR = "vertical-ltr"

    @property
    def is_vertical(self) -> bool:
        return self is not Direction.HORIZONTAL


@dataclass(frozen=True)
class ReaderLayout:
    mode: PaginationMode = PaginationMode.CONTINUOUS
    direction: Direction = Direction.HORIZONTAL
    show_furigana: bool = True
    line_spacing: int = 1

    def requires_remount(self, other: ReaderLayout) -> bool:
        return self.mode is not other.mode or self.direction is not other.direction

    def with_mode(self, mode: PaginationMode) -> ReaderLayout:
        return replace(self, mode=mode)

    def with_direction(self, direction: Direction) -> ReaderLayout:
        return replace(self, direction=direction)


@dataclass(frozen=True)
class Size:
    width: int
    height: int


@dataclass(frozen=True)
class ProbePoint:
    x: int
    y: int


class Renderer(Protocol):
    mode: PaginationMode
    direction: Direction

    @property
    def viewport(self) -> Size: ...

    @property
    def current_chapter(self) -> int: ...

    @property
    def page_index(self) -> Optional[int]: ...

    @property
    def total_pages(self) -> Optional[int]: ...

    def get_focal_anchor(self, probe: ProbePoint) -> Optional[Point]: ...

    def get_chapter_root(self, chapter_index: int) -> Optional[ChapterRoot]: ...

    def get_chapter_progress_percent(self) -> float: ...

    def scroll_to_anchor(self, node: NavigableString, offset: int) -> bool: ...

    def scroll_to_chapter_boundary(self, chapter_index: int) -> None: ...


class LineRenderer(ABC):
    """Shared line bookkeeping for the continuous and paged renderers.

    Lines run along the block axis: rows in horizontal writing, columns in
    vertical writing. ``top`` is the index of the first visible line.
    """

    mode: PaginationMode

    def __init__(
        self,
        chapters: list[str],
        viewport: Size,
        layout: ReaderLayout,
    ) -> None:
        self._roots: list[ChapterRoot] = [parse_chapter(html) for html in chapters]
        self._viewport = viewport
        self._layout = layout
        self.direction = layout.direction
        self.lines: list[Line] = []
        self.top = 0
        self._node_lines: dict[int, list[int]] = {}

    # ── Geometry ───────────────────────────────────

    @property
    def viewport(self) -> Size:
        return self._viewport

    @property
    def layout(self) -> ReaderLayout:
        return self._layout

    @property
    def chapter_count(self) -> int:
        return len(self._roots)

    @property
    def inline_extent(self) -> int:
        if self.direction.is_vertical:
            return max(1, self._viewport.height)
        return max(1, self._viewport.width)

    @property
    def block_extent(self) -> int:
        if self.direction.is_vertical:
            return max(1, self._viewport.width // COLUMN_WIDTH)
        return max(1, self._viewport.height)

    def resize(self, viewport: Size) -> None:
        self._viewport = viewport
        self._relayout_keeping_anchor()

    def set_show_furigana(self, show: bool) -> None:
        self._layout = replace(self._layout, show_furigana=show)
        self._relayout_keeping_anchor()

    def _relayout_keeping_anchor(self) -> None:
        anchor = None
        for line in self.visible_lines():
            if not line.is_blank:
                anchor = (line.segments[0], self._roots[line.chapter_index])
                break
        self.relayout()
        if anchor is None:
            return
        seg, root = anchor
        if self.scroll_to_anchor(seg.node, seg.start):
            return
        # The anchor was a gloss that is no longer shown.
        point = point_at_offset(root, offset_of(root, seg.node, seg.start))
        if point is not None:
            self.scroll_to_anchor(*point)

    @abstractmethod
    def relayout(self) -> None:
        """Rebuild ``lines`` for the current viewport and layout."""

    @abstractmethod
    def scroll_to_anchor(self, node: NavigableString, offset: int) -> bool: ...

    def _layout_chapter(self, index: int) -> list[Line]:
        return layout_chapter(
            self._roots[index],
            index,
            self.inline_extent,
            vertical=self.direction.is_vertical,
            show_furigana=self._layout.show_furigana,
            line_spacing=self._layout.line_spacing,
        )

    def _index_lines(self) -> None:
        self._node_lines = {}
        for i, line in enumerate(self.lines):
            for seg in line.segments:
                self._node_lines.setdefault(id(seg.node), []).append(i)

    def _line_of(self, node: NavigableString, offset: int) -> Optional[int]:
        candidates = self._node_lines.get(id(node))
        if not candidates:
            return self._line_after_hidden(node)
        fallback = None
        for i in candidates:
            for seg in self.lines[i].segments:
                if seg.node is not node:
                    continue
                if seg.start <= offset < seg.end:
                    return i
                if seg.start <= offset:
                    fallback = i
        if fallback is None:
            return candidates[0]
        line = self.lines[fallback]
        if offset >= len(node) and line.segments[-1].node is node:
            # A point at the end of a line-final unit reads as the next line.
            for j in range(fallback + 1, len(self.lines)):
                following = self.lines[j]
                if following.chapter_index != line.chapter_index:
                    break
                if not following.is_blank:
                    return j
        return fallback

    def _line_after_hidden(self, node: NavigableString) -> Optional[int]:
        """Line of the next laid-out unit after one layout dropped.

        Whitespace between blocks has no line of its own. Falls back to the
        last laid-out unit before it at the end of a chapter.
        """
        root = self._root_holding(node)
        if root is None:
            return None
        seen = False
        before: Optional[int] = None
        for current in iter_text_nodes(root):
            if current is node:
                seen = True
                continue
            lines = self._node_lines.get(id(current))
            if not lines:
                continue
            if seen:
                return lines[0]
            before = lines[-1]
        return before if seen else None

    def _root_holding(self, node: NavigableString) -> Optional[ChapterRoot]:
        for parent in node.parents:
            for root in self._roots:
                if parent is root:
                    return root
        return None

    # ── Anchors ────────────────────────────────────

    def _probe_to_cell(self, probe: ProbePoint) -> tuple[int, int]:
        """Map a viewport point to (line offset from top, inline cell)."""
        if self.direction is Direction.VERTICAL_RTL:
            column = (self._viewport.width - 1 - probe.x) // COLUMN_WIDTH
            return max(0, column), probe.y
        if self.direction is Direction.VERTICAL_LTR:
            return max(0, probe.x // COLUMN_WIDTH), probe.y
        return max(0, probe.y), probe.x

    def get_focal_anchor(self, probe: ProbePoint) -> Optional[Point]:
        line_offset, cell = self._probe_to_cell(probe)
        first = self.top + line_offset
        last = min(len(self.lines), self.top + self.block_extent)
        for i in range(first, last):
            line = self.lines[i]
            if line.is_blank:
                continue
            return self._cell_in_line(line, cell)
        return None

    def _cell_in_line(self, line: Line, cell: int) -> Point:
        measure = (lambda ch: 1) if self.direction.is_vertical else char_width
        position = 0
        last = line.segments[-1]
        for seg in line.segments:
            for k, ch in enumerate(seg.text):
                position += measure(ch)
                if position > cell:
                    return seg.node, seg.start + k
        return last.node, last.end - 1

    def get_chapter_root(self, chapter_index: int) -> Optional[ChapterRoot]:
        if 0 <= chapter_index < len(self._roots):
            return self._roots[chapter_index]
        return None

    # ── Drawing ────────────────────────────────────

    def visible_lines(self) -> list[Line]:
        return self.lines[self.top : self.top + self.block_extent]

    def render_rows(self) -> list[str]:
        """Return the viewport as text rows."""
        visible = self.visible_lines()
        if not self.direction.is_vertical:
            rows = [line.text for line in visible]
            return rows + [""] * max(0, self._viewport.height - len(rows))

        columns = [line.text for line in visible]
        if self.direction is Direction.VERTICAL_RTL:
            columns = list(reversed(columns))
            columns = [""] * max(0, self.block_extent - len(columns)) + columns
        rows: list[str] = []
        for y in range(self._viewport.height):
            cells = [col[y] if y < len(col) else "" for col in columns]
            rows.append("".join(pad_to_width(ch, COLUMN_WIDTH) for ch in cells))
        return rows


def chapter_starts(lines: list[Line]) -> list[tuple[int, int]]:
    """Return ``(first_line, chapter_index)`` for each chapter run in ``lines``."""
    starts: list[tuple[int, int]] = []
    for i, line in enumerate(lines):
        if not starts or starts[-1][1] != line.chapter_index:
            starts.append((i, line.chapter_index))
    return starts


def chapter_at(starts: list[tuple[int, int]], line_index: int) -> int:
    if not starts:
        return 0
    pos = bisect.bisect_right([s for s, _ in starts], line_index) - 1
    return starts[max(0, pos)][1]
