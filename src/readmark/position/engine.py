"""Reading position engine: the interface a reader view talks to.

One engine is bound to one mounted renderer. It samples the renderer when
the view reports movement, hands positions to the persistence scheduler and
restores the saved position once the view is ready.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from readmark.config import PositionTimings
from readmark.library.models import BookStats, ReadingPosition
from readmark.render.base import PaginationMode, Renderer

from .restore import RestorationResolver, RestorationState
from .sampler import PositionSampler
from .scheduler import KeyValueStore, PersistenceScheduler

log = logging.getLogger(__name__)


async def load_saved_position(
    store: KeyValueStore, book_id: str
) -> Optional[ReadingPosition]:
    """Read the saved position for a book; unusable records count as none."""
    record = await store.get(book_id)
    if record is None:
        return None
    position = ReadingPosition.from_record(record)
    if position is None:
        log.warning("Ignoring malformed progress record for %s", book_id)
    return position


class ReadingPositionEngine:
    def __init__(
        self,
        book_id: str,
        stats: Optional[BookStats],
        store: KeyValueStore,
        renderer: Renderer,
        *,
        chapter_count: int,
        initial_chapter: int = 0,
        initial_page: Optional[int] = None,
        saved: Optional[ReadingPosition] = None,
        timings: Optional[PositionTimings] = None,
        on_position_update: Optional[Callable[[ReadingPosition], None]] = None,
        on_restore_complete: Optional[Callable[[RestorationState], None]] = None,
    ) -> None:
        self._book_id = book_id
        self._stats = stats
        self._renderer = renderer
        self._chapter_count = chapter_count
        self._timings = timings or PositionTimings()
        self._saved = saved
        self._on_position_update = on_position_update
        self._on_restore_complete = on_restore_complete

        self._chapter = initial_chapter
        self._page = initial_page
        self._total_pages = renderer.total_pages
        self._mounted = False
        self._settled = False
        self._current: Optional[ReadingPosition] = None
        self._restore_task: Optional[asyncio.Task] = None

        self.scheduler = PersistenceScheduler(
            store, book_id, debounce=self._timings.save_debounce
        )
        self._sampler = (
            PositionSampler(renderer, stats, self._timings.sentence_context_length)
            if stats is not None
            else None
        )
        self.resolver: Optional[RestorationResolver] = None
        if saved is not None:
            self.resolver = RestorationResolver(
                renderer,
                saved,
                max_attempts=self._timings.restore_max_attempts,
                backoff=self._timings.restore_backoff,
                on_complete=self._restore_finished,
            )

    # ── State ──────────────────────────────────────

    @property
    def book_id(self) -> str:
        return self._book_id

    @property
    def renderer(self) -> Renderer:
        return self._renderer

    @property
    def is_mounted(self) -> bool:
        return self._mounted

    @property
    def is_ready(self) -> bool:
        if not (self._mounted and self._settled):
            return False
        if self._stats is None or self._chapter_count == 0:
            return False
        if self._renderer.mode is PaginationMode.PAGINATED:
            return bool(self._total_pages)
        return True

    @property
    def chapter_index(self) -> int:
        return self._chapter

    @property
    def page_index(self) -> Optional[int]:
        return self._page

    @property
    def current_position(self) -> Optional[ReadingPosition]:
        return self._current

    @property
    def current_progress(self) -> float:
        return self._current.total_progress if self._current else 0.0

    @property
    def last_known_position(self) -> Optional[ReadingPosition]:
        """Newest sampled position, or the seed when nothing was sampled.

        The seed stays authoritative until restoration has finished.
        """
        if not self.restoration_done:
            return self._saved
        return self._current or self.scheduler.pending or self._saved

    @property
    def restoration_done(self) -> bool:
        return self.resolver is None or self.resolver.done

    # ── Lifecycle ──────────────────────────────────

    async def mount(self) -> None:
        self._mounted = True
        if self._renderer.mode is PaginationMode.CONTINUOUS:
            # Let the first layout pass settle before trusting scroll ratios.
            await asyncio.sleep(self._timings.ready_delay)
        if not self._mounted:
            return
        self._settled = True
        self._total_pages = self._renderer.total_pages
        if self.is_ready and self.resolver is not None and not self.resolver.done:
            self._restore_task = asyncio.ensure_future(
                self.resolver.run(
                    lambda: self._mounted, self._timings.restore_initial_delay
                )
            )

    async def unmount(self) -> None:
        if not self._mounted:
            return
        self._mounted = False
        self.scheduler.cancel()
        if self._restore_task is not None and not self._restore_task.done():
            self._restore_task.cancel()
        await self.scheduler.force_flush_now()
        await self.scheduler.drain()

    async def wait_restored(self) -> Optional[RestorationState]:
        if self._restore_task is None:
            return None
        try:
            return await self._restore_task
        except asyncio.CancelledError:
            return None

    # ── Sampling ───────────────────────────────────

    def _update_position(self) -> Optional[ReadingPosition]:
        if not self.is_ready or self._sampler is None:
            return None
        if not self.restoration_done:
            # The view still sits at the seeded chapter boundary.
            return None
        position = self._sampler.sample(self._chapter, self._page, self._total_pages)
        if position is None:
            return None
        self._current = position
        if self._on_position_update is not None:
            self._on_position_update(position)
        return position

    def report_scroll(self) -> None:
        if not self.is_ready:
            return
        position = self._update_position()
        if position is not None:
            self.scheduler.schedule(position)

    async def report_chapter_change(
        self, chapter_index: int, page_index: Optional[int] = None
    ) -> None:
        if not self.is_ready:
            return
        previous = self._chapter
        if chapter_index != previous:
            await self.scheduler.force_flush_now()
        if page_index is None and self._renderer.mode is PaginationMode.PAGINATED:
            page_index = 0
        self._chapter = chapter_index
        self._page = page_index
        self._total_pages = self._renderer.total_pages

        await asyncio.sleep(self._timings.chapter_change_delay)
        if not self._mounted:
            return
        position = self._update_position()
        if position is not None:
            self.scheduler.schedule(position)

    def report_page_change(
        self, page_index: int, total_pages: Optional[int] = None
    ) -> None:
        if not self.is_ready:
            return
        self._page = page_index
        if total_pages is not None:
            self._total_pages = total_pages
        position = self._update_position()
        if position is not None:
            self.scheduler.schedule(position)

    async def save_now(self) -> None:
        self.scheduler.cancel()
        if self.scheduler.pending is None:
            position = self._update_position()
            if position is not None:
                self.scheduler.stage(position)
        await self.scheduler.force_flush_now()

    async def on_hidden(self) -> None:
        await self.save_now()

    # ── Restoration ────────────────────────────────

    def restore_position(self) -> bool:
        """Run one restoration pass; True once the saved anchor is in view."""
        if self.resolver is None or not self._mounted:
            return False
        return self.resolver.attempt()

    def _restore_finished(self, state: RestorationState) -> None:
        # Restoration may have scrolled to another chapter or page.
        self._chapter = self._renderer.current_chapter
        self._page = self._renderer.page_index
        self._total_pages = self._renderer.total_pages
        if self._on_restore_complete is not None:
            self._on_restore_complete(state)
