"""Tests for the reading position engine."""

from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest

from conftest import MemoryStore, make_chapters, stats_for
from readmark.config import PositionTimings
from readmark.library.models import ReadingPosition
from readmark.position.engine import ReadingPositionEngine, load_saved_position
from readmark.position.restore import RestorationState
from readmark.render.base import ReaderLayout, Size
from readmark.render.continuous import ContinuousRenderer
from readmark.render.paged import PagedRenderer

FLAT = ReaderLayout(line_spacing=0)
CHAPTERS = make_chapters()


def _engine(
    store: MemoryStore,
    timings: PositionTimings,
    renderer=None,
    saved: ReadingPosition | None = None,
    **kwargs,
) -> ReadingPositionEngine:
    renderer = renderer or ContinuousRenderer(CHAPTERS, Size(40, 5), FLAT)
    return ReadingPositionEngine(
        "book1",
        stats_for(CHAPTERS),
        store,
        renderer,
        chapter_count=len(CHAPTERS),
        initial_chapter=renderer.current_chapter,
        initial_page=renderer.page_index,
        saved=saved,
        timings=timings,
        **kwargs,
    )


async def _settle(timings: PositionTimings) -> None:
    await asyncio.sleep(timings.save_debounce * 3)


class TestLoadSavedPosition:
    @pytest.mark.asyncio
    async def test_missing(self, memory_store):
        assert await load_saved_position(memory_store, "book1") is None

    @pytest.mark.asyncio
    async def test_valid(self, memory_store):
        memory_store.data["book1"] = ReadingPosition(2, 40, sentence_text="x").to_record()
        position = await load_saved_position(memory_store, "book1")
        assert position.chapter_index == 2
        assert position.chapter_char_offset == 40

    @pytest.mark.asyncio
    async def test_malformed(self, memory_store):
        memory_store.data["book1"] = {"chapterIndex": "three"}
        assert await load_saved_position(memory_store, "book1") is None


class TestReadiness:
    @pytest.mark.asyncio
    async def test_not_ready_before_mount(self, memory_store, fast_timings):
        engine = _engine(memory_store, fast_timings)
        assert not engine.is_ready
        engine.report_scroll()
        assert engine.scheduler.pending is None

    @pytest.mark.asyncio
    async def test_ready_after_mount(self, memory_store, fast_timings):
        engine = _engine(memory_store, fast_timings)
        await engine.mount()
        assert engine.is_mounted
        assert engine.is_ready
        assert engine.restoration_done

    @pytest.mark.asyncio
    async def test_not_ready_without_stats(self, memory_store, fast_timings):
        renderer = ContinuousRenderer(CHAPTERS, Size(40, 5), FLAT)
        engine = ReadingPositionEngine(
            "book1", None, memory_store, renderer, chapter_count=3, timings=fast_timings
        )
        await engine.mount()
        assert not engine.is_ready

    @pytest.mark.asyncio
    async def test_not_ready_without_chapters(self, memory_store, fast_timings):
        renderer = ContinuousRenderer(CHAPTERS, Size(40, 5), FLAT)
        engine = ReadingPositionEngine(
            "book1",
            stats_for(CHAPTERS),
            memory_store,
            renderer,
            chapter_count=0,
            timings=fast_timings,
        )
        await engine.mount()
        assert not engine.is_ready


class TestSampling:
    @pytest.mark.asyncio
    async def test_scroll_is_saved_after_debounce(self, memory_store, fast_timings):
        engine = _engine(memory_store, fast_timings)
        await engine.mount()
        engine.renderer.scroll_to_line(3)
        engine.report_scroll()
        assert engine.current_position.chapter_char_offset == 60
        assert memory_store.writes == []

        await _settle(fast_timings)
        await engine.scheduler.drain()
        assert len(memory_store.writes) == 1
        assert memory_store.writes[0]["chapterCharOffset"] == 60

    @pytest.mark.asyncio
    async def test_position_callback(self, memory_store, fast_timings):
        seen = []
        engine = _engine(memory_store, fast_timings, on_position_update=seen.append)
        await engine.mount()
        engine.report_scroll()
        assert [p.chapter_char_offset for p in seen] == [0]
        assert engine.current_progress == 0.0

    @pytest.mark.asyncio
    async def test_chapter_change_flushes_previous(self, memory_store, fast_timings):
        engine = _engine(memory_store, replace(fast_timings, save_debounce=10.0))
        await engine.mount()
        engine.renderer.scroll_to_line(4)
        engine.report_scroll()

        engine.renderer.scroll_to_chapter_boundary(1)
        await engine.report_chapter_change(1)
        assert [w["chapterIndex"] for w in memory_store.writes] == [0]
        assert engine.chapter_index == 1
        assert engine.scheduler.pending.chapter_index == 1
        assert engine.scheduler.timer_active
        await engine.unmount()
        assert [w["chapterIndex"] for w in memory_store.writes] == [0, 1]

    @pytest.mark.asyncio
    async def test_page_change(self, memory_store, fast_timings):
        renderer = PagedRenderer(CHAPTERS, Size(40, 4), FLAT, initial_chapter=1)
        engine = _engine(memory_store, fast_timings, renderer=renderer)
        await engine.mount()
        renderer.go_to_page(2)
        engine.report_page_change(2, renderer.total_pages)
        position = engine.current_position
        assert position.page_index == 2
        assert position.chapter_progress == 100.0
        assert position.chapter_char_offset == 160
        await engine.save_now()
        assert memory_store.writes[-1]["pageNumber"] == 2


class TestSaving:
    @pytest.mark.asyncio
    async def test_unmount_flushes_pending(self, memory_store, fast_timings):
        engine = _engine(memory_store, replace(fast_timings, save_debounce=10.0))
        await engine.mount()
        engine.renderer.scroll_to_line(2)
        engine.report_scroll()
        await engine.unmount()
        assert len(memory_store.writes) == 1
        assert not engine.is_mounted
        assert not engine.scheduler.timer_active

    @pytest.mark.asyncio
    async def test_save_now_samples(self, memory_store, fast_timings):
        engine = _engine(memory_store, fast_timings)
        await engine.mount()
        engine.renderer.scroll_to_line(5)
        await engine.save_now()
        assert memory_store.writes[0]["chapterCharOffset"] == 100

    @pytest.mark.asyncio
    async def test_hidden_saves(self, memory_store, fast_timings):
        engine = _engine(memory_store, replace(fast_timings, save_debounce=10.0))
        await engine.mount()
        engine.report_scroll()
        await engine.on_hidden()
        assert len(memory_store.writes) == 1

    @pytest.mark.asyncio
    async def test_write_failure_does_not_raise(self, memory_store, fast_timings):
        engine = _engine(memory_store, fast_timings)
        await engine.mount()
        memory_store.fail = True
        await engine.save_now()
        assert memory_store.writes == []

    @pytest.mark.asyncio
    async def test_last_known_position(self, memory_store, fast_timings):
        saved = ReadingPosition(2, 0, sentence_text="Line 0 of chapter 2.")
        engine = _engine(memory_store, fast_timings, saved=saved)
        assert engine.last_known_position is saved
        await engine.mount()
        await engine.wait_restored()
        engine.report_scroll()
        assert engine.last_known_position is engine.current_position
        assert engine.last_known_position.chapter_index == 2


class TestRestoration:
    @pytest.mark.asyncio
    async def test_restores_on_mount(self, memory_store, fast_timings):
        finished = []
        saved = ReadingPosition(1, 120, sentence_text="Line 6 of chapter 1.")
        engine = _engine(
            memory_store, fast_timings, saved=saved, on_restore_complete=finished.append
        )
        assert not engine.restoration_done
        await engine.mount()
        assert await engine.wait_restored() is RestorationState.SUCCEEDED
        assert engine.restoration_done
        assert finished == [RestorationState.SUCCEEDED]
        # chapter 1 starts at line 12
        assert engine.renderer.top == 18

        engine.report_scroll()
        assert engine.current_position.chapter_char_offset == 120

    @pytest.mark.asyncio
    async def test_unrestorable_degrades(self, memory_store, fast_timings):
        saved = ReadingPosition(1, 9000, sentence_text="Text that is gone now")
        engine = _engine(memory_store, fast_timings, saved=saved)
        await engine.mount()
        assert await engine.wait_restored() is RestorationState.DEGRADED
        assert engine.resolver.attempts == fast_timings.restore_max_attempts
        assert engine.renderer.top == 12
        assert engine.restore_position() is False

    @pytest.mark.asyncio
    async def test_manual_pass(self, memory_store, fast_timings):
        saved = ReadingPosition(1, 120, sentence_text="Line 6 of chapter 1.")
        slow = replace(fast_timings, restore_initial_delay=10.0)
        engine = _engine(memory_store, slow, saved=saved)
        assert engine.restore_position() is False
        await engine.mount()
        assert engine.restore_position() is True
        assert engine.chapter_index == 1
        await engine.unmount()

    @pytest.mark.asyncio
    async def test_no_sampling_while_restoring(self, memory_store, fast_timings):
        saved = ReadingPosition(1, 120, sentence_text="Line 6 of chapter 1.")
        slow = replace(fast_timings, restore_initial_delay=10.0)
        engine = _engine(memory_store, slow, saved=saved)
        await engine.mount()
        assert not engine.restoration_done
        engine.report_scroll()
        await engine.save_now()
        assert engine.current_position is None
        assert memory_store.writes == []
        assert engine.last_known_position is saved
        await engine.unmount()
        assert memory_store.writes == []

    @pytest.mark.asyncio
    async def test_unmount_stops_restoration(self, memory_store, fast_timings):
        saved = ReadingPosition(1, 9000, sentence_text="Text that is gone now")
        slow = replace(fast_timings, restore_initial_delay=10.0)
        engine = _engine(memory_store, slow, saved=saved)
        await engine.mount()
        await engine.unmount()
        assert await engine.wait_restored() is None
        assert engine.resolver.attempts == 0
