"""Tests for sampling the on-screen position."""

from __future__ import annotations

import pytest

from conftest import make_chapters, stats_for
from readmark.position.addressing import iter_text_nodes, parse_chapter
from readmark.position.sampler import PositionSampler, probe_point
from readmark.render.base import Direction, ProbePoint, ReaderLayout, Size
from readmark.render.continuous import ContinuousRenderer
from readmark.render.paged import PagedRenderer

FLAT = ReaderLayout(line_spacing=0)
CHAPTERS = make_chapters()


class TestProbePoint:
    def test_horizontal(self):
        assert probe_point(Size(80, 24), Direction.HORIZONTAL) == ProbePoint(0, 0)

    def test_vertical_ltr(self):
        assert probe_point(Size(80, 24), Direction.VERTICAL_LTR) == ProbePoint(0, 0)

    def test_vertical_rtl(self):
        assert probe_point(Size(80, 24), Direction.VERTICAL_RTL) == ProbePoint(79, 0)


class TestContinuousSampling:
    def _sampler(self, renderer) -> PositionSampler:
        return PositionSampler(renderer, stats_for(CHAPTERS))

    def test_chapter_start(self):
        renderer = ContinuousRenderer(CHAPTERS, Size(40, 5), FLAT, initial_chapter=1)
        position = self._sampler(renderer).sample(1)
        assert position is not None
        assert position.chapter_index == 1
        assert position.chapter_char_offset == 0
        assert position.sentence_text == (
            "Line 0 of chapter 1.Line 1 of chapter 1."
            "Line 2 of chapter 1.Line 3 of chapter 1."
        )
        assert position.total_chars_read == 200
        assert position.total_progress == pytest.approx(100 / 3)
        assert position.page_index is None

    def test_mid_chapter(self):
        renderer = ContinuousRenderer(CHAPTERS, Size(40, 5), FLAT, initial_chapter=1)
        renderer.scroll_to_line(15)
        position = self._sampler(renderer).sample(1)
        assert position.chapter_char_offset == 60
        assert position.sentence_text.startswith("Line 2 of chapter 1.Line 3")
        assert len(position.sentence_text) == 100
        assert position.chapter_progress == pytest.approx(300 / 11)

    def test_context_length(self):
        renderer = ContinuousRenderer(CHAPTERS, Size(40, 5), FLAT)
        sampler = PositionSampler(renderer, stats_for(CHAPTERS), context_length=10)
        assert sampler.sample(0).sentence_text == "Line 0 of"

    def test_nothing_to_save(self):
        chapters = ["", "<p>Only text.</p>"]
        renderer = ContinuousRenderer(chapters, Size(40, 5), FLAT)
        renderer.scroll_to_chapter_boundary(0)
        sampler = PositionSampler(renderer, stats_for(chapters))
        assert sampler.sample(0) is None

    def test_foreign_anchor_keeps_progress(self, monkeypatch):
        renderer = ContinuousRenderer(CHAPTERS, Size(40, 5), FLAT, initial_chapter=1)
        foreign = next(iter_text_nodes(parse_chapter("<p>elsewhere</p>")))
        monkeypatch.setattr(renderer, "get_focal_anchor", lambda probe: (foreign, 0))
        position = self._sampler(renderer).sample(1)
        assert position is not None
        assert position.sentence_text == ""
        assert position.chapter_char_offset == 0
        assert position.total_chars_read == 200


class TestPagedSampling:
    def test_page_progress(self):
        renderer = PagedRenderer(
            CHAPTERS, Size(40, 4), FLAT, initial_chapter=1, initial_page=1
        )
        sampler = PositionSampler(renderer, stats_for(CHAPTERS))
        position = sampler.sample(1, page_index=1, total_pages=3)
        assert position.page_index == 1
        assert position.chapter_progress == pytest.approx(200 / 3)
        assert position.chapter_char_offset == 80
        assert position.total_chars_read == 200 + 133

    def test_single_page_uses_renderer(self):
        renderer = PagedRenderer(["<p>short chapter</p>"], Size(40, 4), FLAT)
        sampler = PositionSampler(renderer, stats_for(["<p>short chapter</p>"]))
        position = sampler.sample(0, page_index=0, total_pages=1)
        assert position.chapter_progress == 0.0
        assert position.sentence_text == "short chapter"
