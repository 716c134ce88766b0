"""Debounced, deduplicated writes of reading positions."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Protocol

from readmark.library.models import ReadingPosition

from .errors import StoreWriteFailure

log = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[dict[str, Any]]: ...

    async def set(self, key: str, value: dict[str, Any]) -> None: ...


class PersistenceScheduler:
    """Hold the newest position and write it once the reader settles.

    ``schedule`` restarts the debounce timer; ``force_flush_now`` writes
    immediately. A write is skipped when its signature matches the last
    successful one, or when it has no sentence text to restore from.
    """

    def __init__(
        self, store: KeyValueStore, book_id: str, debounce: float = 3.0
    ) -> None:
        self._store = store
        self._book_id = book_id
        self._debounce = debounce
        self._pending: Optional[ReadingPosition] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._inflight: set[asyncio.Task] = set()
        self._last_signature: Optional[tuple[int, int, str]] = None
        self.writes = 0

    @property
    def pending(self) -> Optional[ReadingPosition]:
        return self._pending

    @property
    def timer_active(self) -> bool:
        return self._timer is not None

    def stage(self, position: ReadingPosition) -> None:
        """Replace the pending position without touching the timer."""
        self._pending = position

    def schedule(self, position: ReadingPosition) -> None:
        self._pending = position
        self.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._debounce, self._fire)

    def _fire(self) -> None:
        self._timer = None
        pending = self._pending
        if pending is None:
            return
        task = asyncio.ensure_future(self.flush(pending))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def force_flush_now(self) -> None:
        """Write the pending position now, after any timer write in progress."""
        self.cancel()
        await self.drain()
        if self._pending is not None:
            await self.flush(self._pending)

    async def drain(self) -> None:
        """Wait for writes started by the debounce timer."""
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

    async def flush(self, position: ReadingPosition) -> bool:
        """Write ``position`` unless it is degenerate or already saved."""
        if not position.sentence_text:
            return False
        signature = position.signature
        if signature == self._last_signature:
            return False
        try:
            await self._store.set(self._book_id, position.to_record())
        except StoreWriteFailure as e:
            log.error("Progress save failed: %s", e)
            return False
        self._last_signature = signature
        self.writes += 1
        log.debug(
            "Saved chapter %d offset %d (%.1f%%): %s...",
            position.chapter_index,
            position.chapter_char_offset,
            position.total_progress,
            position.sentence_text[:30],
        )
        return True
