"""Character addressing over a chapter's furigana-stable text stream.

A chapter is a BeautifulSoup tree. Its text stream is the concatenation of
its text nodes in document order, leaving out pronunciation glosses (text
inside ``<rt>`` and ``<rp>``), so offsets do not move when furigana display
is toggled. ``offset_of`` and ``point_at_offset`` walk the same node
sequence and are exact inverses for an unchanged tree.
"""

from __future__ import annotations

import warnings
from typing import Iterator, Optional, Union

from bs4 import (
    BeautifulSoup,
    CData,
    Comment,
    Declaration,
    Doctype,
    NavigableString,
    ProcessingInstruction,
    Tag,
    XMLParsedAsHTMLWarning,
)

from .errors import AddressingMiss

warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)

GLOSS_TAGS = frozenset(["rt", "rp"])
HIDDEN_TAGS = frozenset(["script", "style", "head", "title"])
SENTENCE_LEAD = 20
SENTENCE_SEARCH_LENGTH = 30
SENTENCE_MIN_LENGTH = 5

_NON_TEXT = (Comment, CData, Declaration, Doctype, ProcessingInstruction)

ChapterRoot = Union[BeautifulSoup, Tag]
Point = tuple[NavigableString, int]


def parse_chapter(html: str) -> ChapterRoot:
    """Parse chapter markup and return the element holding its content."""
    soup = BeautifulSoup(html or "", "lxml")
    return soup.body or soup


def _is_text(node: object) -> bool:
    return isinstance(node, NavigableString) and not isinstance(node, _NON_TEXT)


def _inside(node: NavigableString, root: ChapterRoot, names: frozenset[str]) -> bool:
    for parent in node.parents:
        if parent is root:
            return False
        if parent.name in names:
            return True
    return False


def is_gloss(node: NavigableString, root: ChapterRoot) -> bool:
    return _inside(node, root, GLOSS_TAGS)


def iter_all_text(root: ChapterRoot) -> Iterator[tuple[NavigableString, bool]]:
    """Yield every visible text node with a flag telling whether it is a gloss."""
    for node in root.descendants:
        if not _is_text(node) or _inside(node, root, HIDDEN_TAGS):
            continue
        yield node, is_gloss(node, root)


def iter_text_nodes(root: ChapterRoot) -> Iterator[NavigableString]:
    """Yield the text units of the furigana-stable stream."""
    for node, gloss in iter_all_text(root):
        if not gloss:
            yield node


def chapter_text(root: ChapterRoot) -> str:
    return "".join(iter_text_nodes(root))


def character_count(html: str) -> int:
    return len(chapter_text(parse_chapter(html)))


def offset_of(root: ChapterRoot, node: NavigableString, point_offset: int) -> int:
    """Return the stream offset of ``point_offset`` inside ``node``.

    Gloss nodes have no width: any point inside one maps to the offset where
    the gloss sits.
    """
    total = 0
    for current, gloss in iter_all_text(root):
        if current is node:
            if gloss:
                return total
            return total + max(0, min(point_offset, len(current)))
        if not gloss:
            total += len(current)
    raise AddressingMiss("text node is not part of this chapter")


def point_at_offset(root: ChapterRoot, target: int) -> Optional[Point]:
    """Return the text unit and in-node offset at stream offset ``target``."""
    if target < 0:
        return None
    total = 0
    for current in iter_text_nodes(root):
        length = len(current)
        if total + length >= target:
            return current, target - total
        total += length
    return None


def sentence_context(root: ChapterRoot, offset: int, length: int = 80) -> str:
    """Return a snippet of the stream starting a little before ``offset``."""
    text = chapter_text(root)
    start = max(0, offset - SENTENCE_LEAD)
    return text[start : offset + length].strip()


def find_sentence(root: ChapterRoot, sentence_text: str) -> Optional[int]:
    """Return the stream offset where a saved snippet occurs, if it does."""
    needle = (sentence_text or "").strip()[:SENTENCE_SEARCH_LENGTH]
    if len(needle) < SENTENCE_MIN_LENGTH:
        return None
    index = chapter_text(root).find(needle)
    return index if index >= 0 else None
