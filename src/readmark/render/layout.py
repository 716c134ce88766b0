"""Wrap chapter trees into display lines that remember their source text."""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass, field
from typing import Callable, Optional

from bs4 import NavigableString, Tag

from readmark.position.addressing import ChapterRoot, iter_all_text

BLOCK_TAGS = frozenset(
    [
        "p",
        "div",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "li",
        "blockquote",
        "pre",
        "section",
        "article",
        "figure",
        "figcaption",
        "tr",
    ]
)


def char_width(ch: str) -> int:
    """Display width accounting for CJK double-width characters."""
    return 2 if unicodedata.east_asian_width(ch) in ("F", "W") else 1


def display_width(text: str) -> int:
    return sum(char_width(ch) for ch in text)


def pad_to_width(text: str, width: int) -> str:
    """Pad text with spaces to reach target display width."""
    return text + " " * max(0, width - display_width(text))


@dataclass(frozen=True)
class Segment:
    """A contiguous run ``node[start:end]`` shown on one line."""

    node: NavigableString
    start: int
    end: int

    @property
    def text(self) -> str:
        return "".join(
            " " if ch.isspace() else ch for ch in str(self.node)[self.start : self.end]
        )


@dataclass
class Line:
    chapter_index: int
    segments: list[Segment] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(seg.text for seg in self.segments)

    @property
    def is_blank(self) -> bool:
        return not self.segments


@dataclass(frozen=True)
class _Cell:
    node: NavigableString
    index: int
    ch: str


def _block_of(node: NavigableString, root: ChapterRoot) -> Optional[Tag]:
    for parent in node.parents:
        if parent is root:
            return None
        if parent.name in BLOCK_TAGS:
            return parent
    return None


def _paragraphs(root: ChapterRoot, show_furigana: bool) -> list[list[_Cell]]:
    paragraphs: list[list[_Cell]] = []
    current: list[_Cell] = []
    current_block: object = object()

    for node, gloss in iter_all_text(root):
        if gloss and not show_furigana:
            continue
        block = _block_of(node, root)
        if block is not current_block:
            if current:
                paragraphs.append(current)
            current = []
            current_block = block
        for i, ch in enumerate(str(node)):
            if ch.isspace():
                # Collapse whitespace runs the way HTML rendering does.
                if not current or current[-1].ch.isspace():
                    continue
                ch = " "
            current.append(_Cell(node, i, ch))

    if current:
        paragraphs.append(current)
    return [p for p in paragraphs if any(not c.ch.isspace() for c in p)]


def _break_point(current: list[_Cell], incoming: _Cell) -> int:
    if incoming.ch.isspace() or not incoming.ch.isascii():
        return len(current)
    for i in range(len(current) - 1, 0, -1):
        if current[i].ch == " ":
            return i + 1
    return len(current)


def _wrap(
    cells: list[_Cell], width: int, measure: Callable[[str], int]
) -> list[list[_Cell]]:
    lines: list[list[_Cell]] = []
    current: list[_Cell] = []
    current_w = 0
    for cell in cells:
        w = measure(cell.ch)
        if current and current_w + w > width:
            cut = _break_point(current, cell)
            lines.append(current[:cut])
            current = current[cut:]
            while current and current[0].ch == " ":
                current.pop(0)
            current_w = sum(measure(c.ch) for c in current)
            if cell.ch == " " and not current:
                continue  # skip leading space on new line
        current.append(cell)
        current_w += w
    if current:
        lines.append(current)
    return lines


def _to_segments(cells: list[_Cell]) -> list[Segment]:
    segments: list[Segment] = []
    run_start: Optional[_Cell] = None
    prev: Optional[_Cell] = None
    for cell in cells:
        if prev is not None and (cell.node is not prev.node or cell.index != prev.index + 1):
            segments.append(Segment(run_start.node, run_start.index, prev.index + 1))
            run_start = None
        if run_start is None:
            run_start = cell
        prev = cell
    if run_start is not None and prev is not None:
        segments.append(Segment(run_start.node, run_start.index, prev.index + 1))
    return segments


def layout_chapter(
    root: ChapterRoot,
    chapter_index: int,
    width: int,
    *,
    vertical: bool = False,
    show_furigana: bool = True,
    line_spacing: int = 1,
) -> list[Line]:
    """Lay out one chapter into lines of at most ``width`` cells.

    In vertical writing every character takes one cell along the line.
    """
    measure = (lambda ch: 1) if vertical else char_width
    width = max(1, width)
    lines: list[Line] = []
    paragraphs = _paragraphs(root, show_furigana)
    for i, cells in enumerate(paragraphs):
        for wrapped in _wrap(cells, width, measure):
            lines.append(Line(chapter_index, _to_segments(wrapped)))
        if i < len(paragraphs) - 1:
            lines.extend(Line(chapter_index) for _ in range(line_spacing))
    if not lines:
        lines.append(Line(chapter_index))
    return lines
