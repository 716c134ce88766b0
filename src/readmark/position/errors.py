"""Errors raised inside the reading position engine.

None of these reach the reader: each one is recovered where it is caught,
and the worst outcome is opening at a less precise location.
"""

from __future__ import annotations


class PositionError(Exception):
    """Base class for reading position failures."""


class AddressingMiss(PositionError):
    """A text unit could not be located inside a chapter tree."""


class StoreWriteFailure(PositionError):
    """The progress store rejected a write."""
