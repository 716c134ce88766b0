"""Plain text parser."""

from __future__ import annotations

import html
import re
from pathlib import Path

from readmark.library.models import Book, BookContent, Chapter

from .base import BaseParser

# Aozora Bunko ruby: ｜漢字《かんじ》, or a kanji run directly before 《》.
_RUBY_PATTERN = re.compile(r"[｜|]([^｜|《》\n]+)《([^》\n]+)》|([一-鿿々〆ヶ]+)《([^》\n]+)》")


def _ruby_to_html(text: str) -> str:
    parts: list[str] = []
    pos = 0
    for m in _RUBY_PATTERN.finditer(text):
        parts.append(html.escape(text[pos : m.start()]))
        base = m.group(1) or m.group(3)
        reading = m.group(2) or m.group(4)
        parts.append(
            f"<ruby>{html.escape(base)}<rp>(</rp><rt>{html.escape(reading)}</rt><rp>)</rp></ruby>"
        )
        pos = m.end()
    parts.append(html.escape(text[pos:]))
    return "".join(parts)


class TxtParser(BaseParser):
    SUPPORTED_EXTENSIONS = (".txt", ".text")

    def parse(self, file_path: Path) -> BookContent:
        text = file_path.read_text(encoding="utf-8", errors="replace")

        meta = Book(
            id=Book.make_id(str(file_path)),
            file_path=str(file_path),
            title=file_path.stem,
            author="Unknown",
            format="txt",
            file_size=file_path.stat().st_size,
        )

        # Try to detect chapter breaks
        chapters: list[Chapter] = []
        toc: list[tuple[int, str]] = []

        # Common chapter patterns
        chapter_pattern = re.compile(
            r"(?m)^(?:Chapter|CHAPTER|第.{1,10}[章节話回]|Part|PART)\s*.{0,100}$"
        )

        parts = chapter_pattern.split(text)
        titles = chapter_pattern.findall(text)

        if len(titles) >= 2:
            preamble = self._text_to_paragraphs(parts[0])
            if preamble:
                chapters.append(self._make_chapter(0, "Preamble", preamble))
                toc.append((0, "Preamble"))

            for title, content in zip(titles, parts[1:]):
                paras = self._text_to_paragraphs(content)
                if paras:
                    ch = self._make_chapter(
                        len(chapters), title.strip(), paras, heading=title.strip()
                    )
                    chapters.append(ch)
                    toc.append((ch.index, ch.title))
        else:
            # No chapter structure: split into chunks
            all_paras = self._text_to_paragraphs(text)
            chunk_size = 50  # paragraphs per chunk
            for i in range(0, max(1, len(all_paras)), chunk_size):
                chunk = all_paras[i : i + chunk_size]
                if chunk:
                    ch_title = f"Section {len(chapters) + 1}"
                    ch = self._make_chapter(len(chapters), ch_title, chunk)
                    chapters.append(ch)
                    toc.append((ch.index, ch_title))

        meta.total_chapters = len(chapters)
        return BookContent(
            metadata=meta,
            chapters=chapters,
            toc=toc,
            stats=self.compute_stats(chapters),
        )

    @staticmethod
    def _make_chapter(
        index: int, title: str, paragraphs: list[str], heading: str = ""
    ) -> Chapter:
        body = [f"<h2>{_ruby_to_html(heading)}</h2>"] if heading else []
        body.extend(f"<p>{_ruby_to_html(p)}</p>" for p in paragraphs)
        return Chapter(index=index, title=title, html="".join(body))

    def _text_to_paragraphs(self, text: str) -> list[str]:
        paragraphs: list[str] = []
        for para in re.split(r"\n\s*\n", text):
            cleaned = re.sub(r"\s+", " ", para).strip()
            if cleaned:
                paragraphs.append(cleaned)
        return paragraphs
