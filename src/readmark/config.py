"""Configuration management via .env file."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

log = logging.getLogger(__name__)

PAGINATION_MODES = ("continuous", "paginated")
READING_DIRECTIONS = ("horizontal", "vertical-rtl", "vertical-ltr")


def _xdg_data_home() -> Path:
    return Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))


def _xdg_config_home() -> Path:
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


@dataclass(frozen=True)
class PositionTimings:
    """Delays and limits used by the reading position engine (seconds)."""

    save_debounce: float = 3.0
    restore_max_attempts: int = 5
    restore_backoff: float = 0.1
    restore_initial_delay: float = 0.15
    ready_delay: float = 0.2
    settle_delay: float = 0.05
    chapter_change_delay: float = 0.1
    sentence_context_length: int = 80


@dataclass
class AppConfig:
    # Paths
    data_dir: Path = field(default_factory=lambda: _xdg_data_home() / "readmark")
    config_dir: Path = field(default_factory=lambda: _xdg_config_home() / "readmark")
    db_path: Path = field(init=False)

    # Reading defaults
    default_pagination_mode: str = "continuous"
    default_reading_direction: str = "horizontal"
    default_line_spacing: int = 1  # blank lines between paragraphs, 0-3
    show_furigana: bool = True

    timings: PositionTimings = field(default_factory=PositionTimings)

    log_path: Path = field(init=False)

    def __post_init__(self) -> None:
        self.db_path = self.data_dir / "readmark.db"
        self.log_path = self.data_dir / "readmark.log"
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.config_dir.mkdir(parents=True, exist_ok=True)


def _env_choice(name: str, choices: tuple[str, ...], default: str) -> str:
    value = os.getenv(name, default).strip().lower()
    if value not in choices:
        log.warning("Ignoring %s=%r, expected one of %s", name, value, choices)
        return default
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning("Ignoring %s=%r, not an integer", name, raw)
        return default


def _env_ms(name: str, default: float) -> float:
    return _env_int(name, int(round(default * 1000))) / 1000


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_config(env_path: Optional[Path] = None) -> AppConfig:
    """Load config from .env file. Searches CWD then config dir."""
    search_paths = [
        env_path,
        Path.cwd() / ".env",
        _xdg_config_home() / "readmark" / ".env",
        Path.home() / ".env",
    ]
    for p in search_paths:
        if p and p.exists():
            load_dotenv(p)
            break

    base = PositionTimings()
    timings = PositionTimings(
        save_debounce=_env_ms("READMARK_SAVE_DEBOUNCE_MS", base.save_debounce),
        restore_max_attempts=max(
            1, _env_int("READMARK_RESTORE_MAX_ATTEMPTS", base.restore_max_attempts)
        ),
        restore_backoff=_env_ms("READMARK_RESTORE_BACKOFF_MS", base.restore_backoff),
        restore_initial_delay=_env_ms(
            "READMARK_RESTORE_INITIAL_DELAY_MS", base.restore_initial_delay
        ),
        ready_delay=_env_ms("READMARK_READY_DELAY_MS", base.ready_delay),
        settle_delay=_env_ms("READMARK_SETTLE_DELAY_MS", base.settle_delay),
        chapter_change_delay=_env_ms(
            "READMARK_CHAPTER_CHANGE_DELAY_MS", base.chapter_change_delay
        ),
        sentence_context_length=_env_int(
            "READMARK_SENTENCE_CONTEXT_LENGTH", base.sentence_context_length
        ),
    )

    kwargs = {}
    if os.getenv("READMARK_DATA_DIR"):
        kwargs["data_dir"] = Path(os.environ["READMARK_DATA_DIR"]).expanduser()

    defaults = AppConfig(**kwargs)
    return AppConfig(
        **kwargs,
        default_pagination_mode=_env_choice(
            "READMARK_PAGINATION_MODE",
            PAGINATION_MODES,
            defaults.default_pagination_mode,
        ),
        default_reading_direction=_env_choice(
            "READMARK_READING_DIRECTION",
            READING_DIRECTIONS,
            defaults.default_reading_direction,
        ),
        default_line_spacing=min(
            3,
            max(0, _env_int("READMARK_LINE_SPACING", defaults.default_line_spacing)),
        ),
        show_furigana=_env_bool("READMARK_SHOW_FURIGANA", defaults.show_furigana),
        timings=timings,
    )
