"""Resolve a saved ReadingPosition back to an anchor on a fresh renderer."""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Callable, Optional

from readmark.library.models import ReadingPosition
from readmark.render.base import Renderer

from .addressing import find_sentence, point_at_offset

log = logging.getLogger(__name__)


class RestoreOutcome(enum.Enum):
    EXACT = "exact"  # character offset resolved
    SENTENCE = "sentence"  # saved snippet found
    BOUNDARY = "boundary"  # chapter start only
    MISSING = "missing"  # chapter not available

    @property
    def succeeded(self) -> bool:
        return self in (RestoreOutcome.EXACT, RestoreOutcome.SENTENCE)


class RestorationState(enum.Enum):
    PENDING = "pending"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    DEGRADED = "degraded"

    @property
    def terminal(self) -> bool:
        return self in (RestorationState.SUCCEEDED, RestorationState.DEGRADED)


def resolve_position(renderer: Renderer, saved: ReadingPosition) -> RestoreOutcome:
    """Run the fallback chain once: offset, then sentence, then chapter start."""
    root = renderer.get_chapter_root(saved.chapter_index)
    if root is None:
        return RestoreOutcome.MISSING

    if saved.chapter_char_offset > 0:
        point = point_at_offset(root, saved.chapter_char_offset)
        if point is not None and renderer.scroll_to_anchor(*point):
            return RestoreOutcome.EXACT

    if saved.sentence_text:
        found = find_sentence(root, saved.sentence_text)
        if found is not None:
            point = point_at_offset(root, found)
            if point is not None and renderer.scroll_to_anchor(*point):
                return RestoreOutcome.SENTENCE

    renderer.scroll_to_chapter_boundary(saved.chapter_index)
    return RestoreOutcome.BOUNDARY


class RestorationResolver:
    """Bounded retry loop around ``resolve_position``.

    Moves from PENDING through ATTEMPTING to SUCCEEDED, or to DEGRADED once
    ``max_attempts`` passes have failed. Terminal states never run again.
    """

    def __init__(
        self,
        renderer: Renderer,
        saved: ReadingPosition,
        *,
        max_attempts: int = 5,
        backoff: float = 0.1,
        on_complete: Optional[Callable[[RestorationState], None]] = None,
    ) -> None:
        self._renderer = renderer
        self._saved = saved
        self._max_attempts = max(1, max_attempts)
        self._backoff = backoff
        self._on_complete = on_complete
        self.state = RestorationState.PENDING
        self.attempts = 0
        self.last_outcome: Optional[RestoreOutcome] = None

    @property
    def done(self) -> bool:
        return self.state.terminal

    def attempt(self) -> bool:
        if self.done:
            return self.state is RestorationState.SUCCEEDED

        self.state = RestorationState.ATTEMPTING
        outcome = resolve_position(self._renderer, self._saved)
        self.last_outcome = outcome
        if outcome.succeeded:
            log.info(
                "Restored chapter %d by %s",
                self._saved.chapter_index,
                outcome.value,
            )
            self._finish(RestorationState.SUCCEEDED)
            return True

        self.attempts += 1
        if self.attempts >= self._max_attempts:
            log.warning(
                "Giving up restoring chapter %d after %d attempts (%s)",
                self._saved.chapter_index,
                self.attempts,
                outcome.value,
            )
            self._finish(RestorationState.DEGRADED)
        return False

    def _finish(self, state: RestorationState) -> None:
        self.state = state
        if self._on_complete is not None:
            self._on_complete(state)

    async def run(
        self, is_mounted: Callable[[], bool], initial_delay: float = 0.15
    ) -> RestorationState:
        """Attempt until terminal, backing off linearly between passes."""
        await asyncio.sleep(initial_delay)
        while not self.done:
            if not is_mounted():
                return self.state
            if self.attempt() or self.done:
                break
            await asyncio.sleep(self._backoff * self.attempts)
        return self.state
