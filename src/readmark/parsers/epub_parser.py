"""EPUB parser using ebooklib."""

from __future__ import annotations

import warnings
from pathlib import Path

import ebooklib
from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning
from ebooklib import epub

warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)

from readmark.library.models import Book, BookContent, Chapter

from .base import BaseParser

# Markup dropped from chapter bodies. Ruby (rt/rp) is kept: reading offsets
# skip it, and the renderer can show it.
_STRIP_TAGS = ["script", "style", "sup", "img", "svg", "image", "link", "meta"]


class EpubParser(BaseParser):
    SUPPORTED_EXTENSIONS = (".epub",)

    def parse(self, file_path: Path) -> BookContent:
        book = epub.read_epub(str(file_path), options={"ignore_ncx": False})

        # Extract metadata
        title = self._get_meta(book, "title") or file_path.stem
        author = self._get_meta(book, "creator") or "Unknown"

        meta = Book(
            id=Book.make_id(str(file_path)),
            file_path=str(file_path),
            title=title,
            author=author,
            format="epub",
            file_size=file_path.stat().st_size,
        )

        chapters: list[Chapter] = []
        toc: list[tuple[int, str]] = []

        spine_items = list(book.get_items_of_type(ebooklib.ITEM_DOCUMENT))
        # Use spine order
        spine_ids = [item_id for item_id, _ in book.spine]
        id_to_item = {item.get_id(): item for item in spine_items}

        ordered_items = []
        for sid in spine_ids:
            if sid in id_to_item:
                ordered_items.append(id_to_item[sid])
        # Fall back to all document items if spine is empty
        if not ordered_items:
            ordered_items = spine_items

        # spine item name -> chapter index, for mapping the TOC
        item_chapters: dict[str, int] = {}
        for item in ordered_items:
            content = item.get_content().decode("utf-8", errors="replace")
            body = self._clean_body(content)
            if not body.strip():
                continue

            ch_title = self._extract_title(content) or f"Chapter {len(chapters) + 1}"
            chapter = Chapter(index=len(chapters), title=ch_title, html=body)
            item_chapters[item.get_name()] = chapter.index
            chapters.append(chapter)
            toc.append((chapter.index, ch_title))

        # Override TOC from book's table of contents if available
        book_toc = self._extract_toc(book, item_chapters)
        if book_toc:
            toc = book_toc

        meta.total_chapters = len(chapters)
        return BookContent(
            metadata=meta,
            chapters=chapters,
            toc=toc,
            stats=self.compute_stats(chapters),
        )

    def _clean_body(self, html: str) -> str:
        """Return the chapter body markup, or "" when it holds no text."""
        soup = BeautifulSoup(html, "lxml")
        for tag in soup.find_all(_STRIP_TAGS):
            tag.decompose()
        body = soup.body or soup
        if not body.get_text(strip=True):
            return ""
        return body.decode_contents()

    def _extract_title(self, html: str) -> str:
        """Try to extract a title from heading tags."""
        soup = BeautifulSoup(html, "lxml")
        for rt in soup.find_all(["rt", "rp"]):
            rt.decompose()
        for level in ["h1", "h2", "h3", "title"]:
            tag = soup.find(level)
            if tag:
                text = tag.get_text(strip=True)
                if text and len(text) < 200:
                    return text
        return ""

    def _extract_toc(
        self,
        book: epub.EpubBook,
        item_chapters: dict[str, int],
    ) -> list[tuple[int, str]]:
        """Extract TOC from epub's navigation."""
        toc_entries: list[tuple[int, str]] = []

        def _flatten_toc(toc_list: list) -> None:
            for entry in toc_list:
                if isinstance(entry, tuple):
                    # Section with sub-entries
                    _flatten_toc(list(entry))
                elif isinstance(entry, epub.Link):
                    href = entry.href.split("#")[0] if entry.href else ""
                    title = entry.title or ""
                    if title and href:
                        for name, idx in item_chapters.items():
                            if (
                                name == href
                                or href.endswith(name)
                                or name.endswith(href)
                            ):
                                toc_entries.append((idx, title))
                                break
                elif isinstance(entry, list):
                    _flatten_toc(entry)

        _flatten_toc(book.toc)
        return toc_entries

    @staticmethod
    def _get_meta(book: epub.EpubBook, field: str) -> str:
        values = book.get_metadata("DC", field)
        if values:
            val = values[0]
            if isinstance(val, tuple):
                return str(val[0]) if val[0] else ""
            return str(val)
        return ""
