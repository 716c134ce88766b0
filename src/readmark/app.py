"""Readmark - terminal reader that remembers where you stopped."""

from __future__ import annotations

import logging
import sys
import time
from pathlib import Path

from textual.app import App

from readmark.config import AppConfig, load_config
from readmark.library.database import Database
from readmark.library.models import Book
from readmark.library.store import ProgressStore
from readmark.parsers.base import get_parser
from readmark.ui.screens.reader_screen import ReaderScreen
from readmark.ui.themes import APP_CSS

log = logging.getLogger(__name__)


class ReadmarkApp(App):
    """Open one book and keep its reading position across sessions."""

    TITLE = "Readmark"
    CSS = APP_CSS

    def __init__(
        self, config: AppConfig | None = None, open_file: str | None = None
    ) -> None:
        super().__init__()
        self.config = config or load_config()
        self.db = Database(self.config.db_path)
        self.store = ProgressStore(self.db)
        self._open_file = open_file

    def on_mount(self) -> None:
        book: Book | None = None
        if self._open_file:
            book = self._import_file(self._open_file)
        else:
            books = self.db.list_books()
            book = books[0] if books else None

        if book is None:
            self.exit(message="Usage: readmark <book.epub|book.txt>")
            return
        self.open_book(book)

    def _import_file(self, file_path_str: str) -> Book | None:
        file_path = Path(file_path_str).expanduser().resolve()
        if not file_path.exists():
            self.notify(f"File not found: {file_path}", severity="error")
            return None

        existing = self.db.get_book_by_path(str(file_path))
        if existing:
            return existing

        try:
            parser = get_parser(file_path)
            content = parser.parse(file_path)
        except Exception as e:
            log.exception("Import failed for %s", file_path)
            self.notify(f"Error importing: {e}", severity="error")
            return None

        book = content.metadata
        book.added_at = time.time()
        self.db.add_book(book)
        return book

    def open_book(self, book: Book) -> None:
        self.push_screen(ReaderScreen(book))

    async def action_quit(self) -> None:
        for screen in self.screen_stack:
            if isinstance(screen, ReaderScreen):
                await screen.close_reader()
        self.db.close()
        self.exit()


def _setup_logging(config: AppConfig) -> None:
    handler = logging.FileHandler(config.log_path, encoding="utf-8")
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    root = logging.getLogger("readmark")
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)


def main() -> None:
    config = load_config()
    _setup_logging(config)

    open_file: str | None = None
    if len(sys.argv) > 1:
        open_file = sys.argv[1]

    app = ReadmarkApp(config=config, open_file=open_file)
    app.run()


if __name__ == "__main__":
    main()
