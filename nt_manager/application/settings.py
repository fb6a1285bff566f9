"""Per-user notification and audio preferences."""
from __future__ import annotations

import json
import logging

from pydantic import ValidationError

from nt_manager.core.schema import AudioConfig
from nt_manager.infrastructure import KeyValueStore

logger = logging.getLogger(__name__)


class SettingsService:
    """Owns the preferences of one session, persisted through a key-value store."""

    def __init__(self, store: KeyValueStore, user_id: str = "default") -> None:
        self._store = store
        self._user_id = user_id
        self._notifications_enabled = self._load_enabled()
        self._audio = self._load_audio()

    @property
    def user_id(self) -> str:
        return self._user_id

    def _key(self, prefix: str) -> str:
        return f"{prefix}_{self._user_id}"

    def _load_enabled(self) -> bool:
        saved = self._store.get(self._key("notifications_enabled"))
        if saved is None:
            return True
        return saved == "true"

    def _load_audio(self) -> AudioConfig:
        saved = self._store.get(self._key("audio_config"))
        if not saved:
            return AudioConfig()
        try:
            return AudioConfig.model_validate({**AudioConfig().model_dump(), **json.loads(saved)})
        except (json.JSONDecodeError, TypeError, ValidationError):
            logger.warning("stored audio config for %s is invalid, using defaults", self._user_id)
            return AudioConfig()

    @property
    def notifications_enabled(self) -> bool:
        return self._notifications_enabled

    def set_notifications_enabled(self, enabled: bool) -> None:
        self._notifications_enabled = enabled
        self._store.set(self._key("notifications_enabled"), "true" if enabled else "false")

    @property
    def audio(self) -> AudioConfig:
        return self._audio

    def set_audio(self, config: AudioConfig) -> None:
        self._audio = config
        self._store.set(self._key("audio_config"), config.model_dump_json())

    def snapshot(self) -> dict[str, object]:
        return {
            "user_id": self._user_id,
            "notifications_enabled": self._notifications_enabled,
            "audio": self._audio.model_dump(),
        }
