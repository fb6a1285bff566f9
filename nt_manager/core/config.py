from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

TIME_WINDOWS = ("today", "last24h", "all")


def _env_number(name: str, default: float, cast: type = float):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return cast(default)
    try:
        return cast(raw)
    except ValueError:
        logger.warning("invalid %s=%r, using %s", name, raw, default)
        return cast(default)


@dataclass(frozen=True)
class EngineConfig:
    timeline_limit: int = 30
    timeline_window: str = "all"
    highlight_seconds: float = 45.0
    batch_timeout_seconds: float = 5.0
    tick_seconds: float = 60.0
    settings_path: Path | None = None
    user_id: str = "default"

    @classmethod
    def from_env(cls) -> "EngineConfig":
        window = (os.getenv("NT_MANAGER_TIMELINE_WINDOW") or "all").strip()
        if window not in TIME_WINDOWS:
            logger.warning("unknown timeline window %r, falling back to 'all'", window)
            window = "all"
        settings_path = os.getenv("NT_MANAGER_SETTINGS_PATH")
        return cls(
            timeline_limit=_env_number("NT_MANAGER_TIMELINE_LIMIT", 30, int),
            timeline_window=window,
            highlight_seconds=_env_number("NT_MANAGER_HIGHLIGHT_SECONDS", 45.0),
            batch_timeout_seconds=_env_number("NT_MANAGER_BATCH_TIMEOUT_SECONDS", 5.0),
            tick_seconds=_env_number("NT_MANAGER_TICK_SECONDS", 60.0),
            settings_path=Path(settings_path).expanduser().resolve() if settings_path else None,
            user_id=os.getenv("NT_MANAGER_USER_ID") or "default",
        )
