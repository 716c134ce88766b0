"""Switch between renderers without losing the reader's place."""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from readmark.library.models import ReadingPosition
from readmark.render.base import ReaderLayout

from .engine import ReadingPositionEngine

log = logging.getLogger(__name__)


class SwitchState(enum.Enum):
    STABLE = "stable"
    FLUSHING = "flushing"
    REMOUNTING = "remounting"


@dataclass(frozen=True)
class HandOff:
    """Position carried from an unmounting renderer to its replacement."""

    position: Optional[ReadingPosition]
    layout: ReaderLayout
    remount_key: int


class ReaderHost(Protocol):
    def show_placeholder(self) -> None: ...

    async def unmount_reader(self) -> None: ...

    async def mount_reader(
        self,
        layout: ReaderLayout,
        seed: Optional[ReadingPosition],
        remount_key: int,
    ) -> ReadingPositionEngine: ...


class ModeSwitchCoordinator:
    """Own the active engine and run STABLE -> FLUSHING -> REMOUNTING -> STABLE."""

    def __init__(
        self, host: ReaderHost, layout: ReaderLayout, settle_delay: float = 0.05
    ) -> None:
        self._host = host
        self._layout = layout
        self._settle_delay = settle_delay
        self._engine: Optional[ReadingPositionEngine] = None
        self._queued: Optional[ReaderLayout] = None
        self.state = SwitchState.STABLE
        self.remount_key = 0
        self.last_handoff: Optional[HandOff] = None

    @property
    def engine(self) -> Optional[ReadingPositionEngine]:
        return self._engine

    @property
    def layout(self) -> ReaderLayout:
        return self._layout

    @property
    def switching(self) -> bool:
        return self.state is not SwitchState.STABLE

    async def start(self, seed: Optional[ReadingPosition]) -> ReadingPositionEngine:
        self._engine = await self._host.mount_reader(
            self._layout, seed, self.remount_key
        )
        return self._engine

    async def apply_layout(self, layout: ReaderLayout) -> bool:
        """Adopt a new layout; returns True when it needed a remount."""
        if self.switching:
            self._queued = layout
            return layout.requires_remount(self._layout)
        if not layout.requires_remount(self._layout):
            self._layout = layout
            return False

        while True:
            await self._switch(layout)
            queued, self._queued = self._queued, None
            if queued is None or not queued.requires_remount(self._layout):
                if queued is not None:
                    self._layout = queued
                return True
            layout = queued

    async def _switch(self, layout: ReaderLayout) -> None:
        log.info(
            "Switching reader %s/%s -> %s/%s",
            self._layout.mode.value,
            self._layout.direction.value,
            layout.mode.value,
            layout.direction.value,
        )
        self.state = SwitchState.FLUSHING
        self._host.show_placeholder()
        handoff = await self._flush(layout)

        self.state = SwitchState.REMOUNTING
        try:
            await self._host.unmount_reader()
            self._engine = None
            self._layout = layout
            self.remount_key = handoff.remount_key
            self._engine = await self._host.mount_reader(
                layout, handoff.position, handoff.remount_key
            )
        finally:
            self.state = SwitchState.STABLE

    async def _flush(self, layout: ReaderLayout) -> HandOff:
        engine = self._engine
        position = None
        if engine is not None:
            await engine.save_now()
            await asyncio.sleep(self._settle_delay)
            position = engine.last_known_position
        handoff = HandOff(position, layout, self.remount_key + 1)
        self.last_handoff = handoff
        return handoff

    async def shutdown(self) -> None:
        if self._engine is not None:
            await self._host.unmount_reader()
            self._engine = None
