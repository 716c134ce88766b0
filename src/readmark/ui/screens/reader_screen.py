from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.screen import Screen
from textual.widgets import Footer, Static

from readmark.library.models import Book, BookContent, ReadingPosition
from readmark.parsers.base import get_parser
from readmark.position.coordinator import ModeSwitchCoordinator
from readmark.position.engine import ReadingPositionEngine, load_saved_position
from readmark.position.restore import RestorationState
from readmark.render.base import Direction, PaginationMode, ReaderLayout, Size
from readmark.render.continuous import ContinuousRenderer
from readmark.render.paged import PagedRenderer

if TYPE_CHECKING:
    from readmark.app import ReadmarkApp

log = logging.getLogger(__name__)

# Matches the padding of #content-text in APP_CSS.
_PAD_X = 4
_PAD_Y = 1

_DIRECTION_CYCLE = [
    Direction.HORIZONTAL,
    Direction.VERTICAL_RTL,
    Direction.VERTICAL_LTR,
]


class ReaderScreen(Screen):
    BINDINGS = [
        Binding("escape", "go_back", "Back"),
        Binding("left", "page_left", "←"),
        Binding("right", "page_right", "→"),
        Binding("space,pagedown", "next_page", "Next", show=False),
        Binding("pageup", "prev_page", "Prev", show=False),
        Binding("down,j", "line_forward", "Down", show=False),
        Binding("up,k", "line_back", "Up", show=False),
        Binding("comma", "prev_chapter", "<Ch"),
        Binding("full_stop", "next_chapter", "Ch>"),
        Binding("p", "toggle_pagination", "Mode"),
        Binding("v", "cycle_direction", "Dir"),
        Binding("f", "toggle_furigana", "Ruby"),
        Binding("s", "save_position", "Save"),
    ]

    def __init__(self, book: Book) -> None:
        super().__init__()
        self._book = book
        self._content: BookContent | None = None
        self._coordinator: ModeSwitchCoordinator | None = None
        self._renderer: Union[ContinuousRenderer, PagedRenderer, None] = None
        self._engine: ReadingPositionEngine | None = None
        self._layout = ReaderLayout()
        self._loaded = False

    @property
    def rm(self) -> ReadmarkApp:
        return self.app  # type: ignore[return-value]

    @property
    def engine(self) -> ReadingPositionEngine | None:
        return self._engine

    def compose(self) -> ComposeResult:
        yield Static("", id="reader-header", markup=False)
        yield Static("Loading...", id="content-text", markup=False)
        yield Footer()

    def on_mount(self) -> None:
        config = self.rm.config
        self._layout = ReaderLayout(
            mode=PaginationMode(config.default_pagination_mode),
            direction=Direction(config.default_reading_direction),
            show_furigana=config.show_furigana,
            line_spacing=config.default_line_spacing,
        )
        self._load_book()

    @work(thread=True)
    def _load_book(self) -> None:
        file_path = Path(self._book.file_path)
        try:
            parser = get_parser(file_path)
            content = parser.parse(file_path)
        except Exception as e:
            log.exception("Failed to load %s", file_path)
            self.app.call_from_thread(
                self.notify, f"Error loading book: {e}", severity="error"
            )
            return

        self._content = content
        self.app.call_from_thread(self._after_load)

    def _after_load(self) -> None:
        if not self._content:
            return
        self.run_worker(self._start_reading(), exclusive=True, group="reader")

    async def _start_reading(self) -> None:
        saved = await load_saved_position(self.rm.store, self._book.id)
        self.rm.db.update_last_read(self._book.id)
        self._coordinator = ModeSwitchCoordinator(
            self, self._layout, settle_delay=self.rm.config.timings.settle_delay
        )
        await self._coordinator.start(saved)
        self._loaded = True
        self._render()

    # ── Reader host ────────────────────────────────

    def show_placeholder(self) -> None:
        self.query_one("#content-text", Static).update("")
        self.query_one("#content-text", Static).add_class("switching")
        self.query_one("#reader-header", Static).update(f" {self._book.title}")

    async def unmount_reader(self) -> None:
        engine = self._engine
        self._engine = None
        self._renderer = None
        if engine is not None:
            await engine.unmount()

    async def mount_reader(
        self,
        layout: ReaderLayout,
        seed: Optional[ReadingPosition],
        remount_key: int,
    ) -> ReadingPositionEngine:
        if self._content is None:
            raise RuntimeError("No book content to mount")
        chapters = [ch.html for ch in self._content.chapters]
        viewport = self._viewport_size()
        chapter = 0
        if seed is not None and chapters:
            chapter = min(seed.chapter_index, len(chapters) - 1)

        if layout.mode is PaginationMode.PAGINATED:
            page = seed.page_index if seed and seed.page_index is not None else 0
            renderer = PagedRenderer(chapters, viewport, layout, chapter, page)
        else:
            renderer = ContinuousRenderer(chapters, viewport, layout, chapter)

        engine = ReadingPositionEngine(
            self._book.id,
            self._content.stats,
            self.rm.store,
            renderer,
            chapter_count=len(chapters),
            initial_chapter=renderer.current_chapter,
            initial_page=renderer.page_index,
            saved=seed,
            timings=self.rm.config.timings,
            on_restore_complete=self._on_restore_complete,
        )
        self._layout = layout
        self._renderer = renderer
        self._engine = engine
        log.info("Mounted %s reader #%d", layout.mode.value, remount_key)
        await engine.mount()
        self.query_one("#content-text", Static).remove_class("switching")
        self._render()
        return engine

    def _on_restore_complete(self, state: RestorationState) -> None:
        if state is RestorationState.DEGRADED:
            self.notify("Could not find the exact reading position", severity="warning")
        self._render()

    async def close_reader(self) -> None:
        if self._coordinator is not None:
            await self._coordinator.shutdown()
            self._coordinator = None

    # ── Drawing ────────────────────────────────────

    def _viewport_size(self) -> Size:
        try:
            widget = self.query_one("#content-text", Static)
            w = widget.size.width - 2 * _PAD_X
            h = widget.size.height - 2 * _PAD_Y
            if w < 10 or h < 3:
                return Size(72, 20)
            return Size(w, h)
        except Exception:
            return Size(72, 20)

    def _render(self) -> None:
        renderer = self._renderer
        if renderer is None:
            return
        self.query_one("#content-text", Static).update("\n".join(renderer.render_rows()))
        self._update_header()

    def _update_header(self) -> None:
        renderer, engine = self._renderer, self._engine
        if not self._content or renderer is None or engine is None:
            return

        total_ch = len(self._content.chapters)
        ch_idx = renderer.current_chapter
        ch_name = self._content.chapter_title(ch_idx)
        parts = [
            f" {self._book.title}",
            f"Ch {ch_idx + 1}/{total_ch}: {ch_name}",
        ]
        if renderer.total_pages is not None:
            parts.append(f"P {renderer.page_index + 1}/{renderer.total_pages}")
        parts.append(f"{engine.current_progress:.1f}%")
        parts.append(self._layout.mode.value)
        parts.append(self._layout.direction.value)
        if not engine.restoration_done:
            parts.append("Restoring…")

        header = "  │  ".join(parts)
        self.query_one("#reader-header", Static).update(header)

    # ── Movement ───────────────────────────────────

    def _active(self) -> bool:
        return (
            self._loaded
            and self._renderer is not None
            and self._engine is not None
            and not (self._coordinator and self._coordinator.switching)
        )

    async def _after_move(self) -> None:
        renderer, engine = self._renderer, self._engine
        if renderer is None or engine is None:
            return
        self._render()
        chapter = renderer.current_chapter
        if chapter != engine.chapter_index:
            await engine.report_chapter_change(chapter, renderer.page_index)
        elif isinstance(renderer, PagedRenderer):
            engine.report_page_change(renderer.page_index, renderer.total_pages)
        else:
            engine.report_scroll()
        self._update_header()

    def _forward_page(self) -> bool:
        renderer = self._renderer
        if isinstance(renderer, PagedRenderer):
            if renderer.next_page():
                return True
            return renderer.load_chapter(renderer.current_chapter + 1)
        return renderer.page_down() if renderer else False

    def _back_page(self) -> bool:
        renderer = self._renderer
        if isinstance(renderer, PagedRenderer):
            if renderer.prev_page():
                return True
            return renderer.load_chapter(renderer.current_chapter - 1, page=-1)
        return renderer.page_up() if renderer else False

    async def action_next_page(self) -> None:
        if self._active() and self._forward_page():
            await self._after_move()

    async def action_prev_page(self) -> None:
        if self._active() and self._back_page():
            await self._after_move()

    async def action_page_left(self) -> None:
        if self._layout.direction is Direction.VERTICAL_RTL:
            await self.action_next_page()
        else:
            await self.action_prev_page()

    async def action_page_right(self) -> None:
        if self._layout.direction is Direction.VERTICAL_RTL:
            await self.action_prev_page()
        else:
            await self.action_next_page()

    async def action_line_forward(self) -> None:
        if not self._active():
            return
        if isinstance(self._renderer, ContinuousRenderer):
            if self._renderer.scroll_by(1):
                await self._after_move()
        else:
            await self.action_next_page()

    async def action_line_back(self) -> None:
        if not self._active():
            return
        if isinstance(self._renderer, ContinuousRenderer):
            if self._renderer.scroll_by(-1):
                await self._after_move()
        else:
            await self.action_prev_page()

    async def _jump_chapter(self, step: int) -> None:
        renderer = self._renderer
        if not self._active() or renderer is None:
            return
        target = renderer.current_chapter + step
        if not 0 <= target < renderer.chapter_count:
            return
        renderer.scroll_to_chapter_boundary(target)
        await self._after_move()
        if self._content is not None:
            self.notify(self._content.chapter_title(target), timeout=2)

    async def action_next_chapter(self) -> None:
        await self._jump_chapter(1)

    async def action_prev_chapter(self) -> None:
        await self._jump_chapter(-1)

    # ── Layout changes ─────────────────────────────

    async def _apply_layout(self, layout: ReaderLayout) -> None:
        if self._coordinator is None or not self._loaded:
            return
        remounted = await self._coordinator.apply_layout(layout)
        final = self._coordinator.layout
        renderer = self._renderer
        if renderer is not None and renderer.layout.show_furigana != final.show_furigana:
            renderer.set_show_furigana(final.show_furigana)
            if self._engine is not None:
                self._engine.report_scroll()
        self._layout = final
        if remounted:
            self.notify(f"{final.mode.value}, {final.direction.value}")
        self._render()

    async def action_toggle_pagination(self) -> None:
        mode = (
            PaginationMode.CONTINUOUS
            if self._layout.mode is PaginationMode.PAGINATED
            else PaginationMode.PAGINATED
        )
        await self._apply_layout(self._layout.with_mode(mode))

    async def action_cycle_direction(self) -> None:
        i = _DIRECTION_CYCLE.index(self._layout.direction)
        direction = _DIRECTION_CYCLE[(i + 1) % len(_DIRECTION_CYCLE)]
        await self._apply_layout(self._layout.with_direction(direction))

    async def action_toggle_furigana(self) -> None:
        await self._apply_layout(
            replace(self._layout, show_furigana=not self._layout.show_furigana)
        )

    def on_resize(self) -> None:
        renderer = self._renderer
        if renderer is None:
            return
        renderer.resize(self._viewport_size())
        if self._engine is not None:
            self._engine.report_scroll()
        self._render()

    # ── Saving ─────────────────────────────────────

    async def action_save_position(self) -> None:
        if self._engine is not None:
            await self._engine.save_now()
            self.notify("Position saved")

    async def on_screen_suspend(self) -> None:
        if self._engine is not None:
            await self._engine.on_hidden()

    async def on_unmount(self) -> None:
        await self.close_reader()

    async def action_go_back(self) -> None:
        await self.rm.action_quit()
