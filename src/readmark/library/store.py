"""Async key/value store for reading position records."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from typing import Any, Optional

from readmark.position.errors import StoreWriteFailure

from .database import Database
from .models import now_ms

log = logging.getLogger(__name__)


class ProgressStore:
    """Per-book blob store keyed by book id.

    Writes are atomic per key and carry no other transactional guarantee.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        try:
            raw = await asyncio.to_thread(self._db.get_progress_record, key)
        except sqlite3.Error as e:
            log.warning("Reading progress for %s failed: %s", key, e)
            return None
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            log.warning("Discarding unreadable progress record for %s", key)
            return None
        return data if isinstance(data, dict) else None

    async def set(self, key: str, value: dict[str, Any]) -> None:
        record = dict(value)
        record["lastRead"] = now_ms()
        try:
            payload = json.dumps(record, ensure_ascii=False)
            await asyncio.to_thread(self._db.put_progress_record, key, payload)
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise StoreWriteFailure(f"Saving progress for {key} failed: {e}") from e
