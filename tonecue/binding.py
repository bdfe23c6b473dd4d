"""Adapters between a SoundEngine and the application's UI and settings store."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field

from .catalog import SoundEventId
from .engine import SoundEngine

_LOGGER = logging.getLogger("tonecue.binding")


class SettingsSnapshot(BaseModel):
    """The sound-related slice of the application's settings store."""

    sound_enabled: bool = True
    effects_volume: int = Field(default=80, ge=0, le=100)

    model_config = ConfigDict(frozen=True, extra="forbid")


def apply_settings(engine: SoundEngine, snapshot: SettingsSnapshot) -> None:
    """Push a settings snapshot into the engine; call it whenever settings change."""
    engine.set_volume(snapshot.effects_volume / 100)
    engine.set_muted(not snapshot.sound_enabled)


class SoundControls:
    """What the presentation layer sees: play, volume, mute and readiness."""

    def __init__(self, engine: SoundEngine) -> None:
        self._engine = engine

    @property
    def initialized(self) -> bool:
        return self._engine.initialized

    def initialize(self) -> bool:
        error = self._engine.initialize()
        if error is not None:
            _LOGGER.info("Sound controls unavailable: %s", error)
        return error is None

    def play(self, event_id: SoundEventId) -> None:
        self._engine.play(event_id)

    @property
    def volume(self) -> float:
        return self._engine.get_volume()

    def set_volume(self, level: float) -> None:
        self._engine.set_volume(level)

    @property
    def muted(self) -> bool:
        return self._engine.is_muted()

    def set_muted(self, muted: bool) -> None:
        self._engine.set_muted(muted)

    def toggle_muted(self) -> bool:
        return self._engine.toggle_muted()


_LEGACY_SOUNDS: Mapping[str, SoundEventId] = MappingProxyType(
    {
        "pop": "letter_reveal",
        "success": "correct_answer",
        "error": "wrong_answer",
        "whoosh": "skip",
        "tick": "time_warning",
        "fanfare": "win",
        "click": "button_click",
    }
)


class LegacySoundService:
    """Older facade: volume as 0-100 and an on/off switch mirrored from settings.

    Changes made through the facade are reported to ``on_settings_change`` so
    the caller can write them back to its settings store.
    """

    def __init__(
        self,
        engine: SoundEngine,
        settings: SettingsSnapshot | None = None,
        *,
        on_settings_change: Callable[[SettingsSnapshot], None] | None = None,
    ) -> None:
        self._engine = engine
        self._on_settings_change = on_settings_change
        self._settings = settings or SettingsSnapshot(
            sound_enabled=not engine.is_muted(),
            effects_volume=round(engine.get_volume() * 100),
        )
        if settings is not None:
            apply_settings(engine, settings)

    @property
    def settings(self) -> SettingsSnapshot:
        return self._settings

    def sync(self, snapshot: SettingsSnapshot) -> None:
        self._settings = snapshot
        apply_settings(self._engine, snapshot)

    def _update(self, **changes: object) -> None:
        self.sync(self._settings.model_copy(update=changes))
        if self._on_settings_change is not None:
            self._on_settings_change(self._settings)

    def set_enabled(self, enabled: bool) -> None:
        self._update(sound_enabled=bool(enabled))

    def get_enabled(self) -> bool:
        return self._settings.sound_enabled

    def toggle(self) -> None:
        self.set_enabled(not self._settings.sound_enabled)

    def set_volume(self, volume: float) -> None:
        self._update(effects_volume=round(min(max(volume, 0), 100)))

    def get_volume(self) -> int:
        return round(self._engine.get_volume() * 100)

    def resume(self) -> None:
        error = self._engine.resume()
        if error is not None:
            _LOGGER.warning("Failed to resume audio: %s", error)

    def play(self, name: str) -> None:
        event_id = _LEGACY_SOUNDS.get(name)
        if event_id is None:
            _LOGGER.error("Unknown legacy sound: %s", name)
            return
        self._engine.play(event_id)

    def play_pop(self) -> None:
        self.play("pop")

    def play_success(self) -> None:
        self.play("success")

    def play_error(self) -> None:
        self.play("error")

    def play_whoosh(self) -> None:
        self.play("whoosh")

    def play_tick(self) -> None:
        self.play("tick")

    def play_fanfare(self) -> None:
        self.play("fanfare")

    def play_click(self) -> None:
        self.play("click")
