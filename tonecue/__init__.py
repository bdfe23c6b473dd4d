from __future__ import annotations

from .audio import SAMPLE_RATE, write_wav
from .binding import LegacySoundService, SettingsSnapshot, SoundControls, apply_settings
from .catalog import SOUND_CATALOG, SOUND_EVENT_IDS, SoundEventId, get_recipe, is_sound_event
from .config import (
    EngineConfig,
    EngineSettings,
    EnvelopeParams,
    FilterKind,
    FilterSpec,
    Note,
    SoundRecipe,
    WaveformKind,
)
from .context import AudioBackend, OfflineAudioContext, load_backend, offline_backend
from .engine import SoundEngine
from .envelopes import ENVELOPE_PRESETS, apply_envelope, create_envelope
from .errors import (
    CatalogMissError,
    ContextSuspendedError,
    EngineError,
    InvalidConfigError,
    InvalidScheduleError,
    PersistenceError,
    ToneCueError,
    UnsupportedPlatformError,
)
from .logging_utils import configure_logging as _configure_logging
from .playback import render_sound, schedule_recipe
from .primitives import NOTE_FREQUENCIES, make_filter, make_gain, make_noise, make_oscillator
from .storage import JsonFileStore, KeyValueStore, MemoryStore

__version__ = "0.1.0"

__all__ = [
    "ENVELOPE_PRESETS",
    "NOTE_FREQUENCIES",
    "SAMPLE_RATE",
    "SOUND_CATALOG",
    "SOUND_EVENT_IDS",
    "AudioBackend",
    "CatalogMissError",
    "ContextSuspendedError",
    "EngineConfig",
    "EngineError",
    "EngineSettings",
    "EnvelopeParams",
    "FilterKind",
    "FilterSpec",
    "InvalidConfigError",
    "InvalidScheduleError",
    "JsonFileStore",
    "KeyValueStore",
    "LegacySoundService",
    "MemoryStore",
    "Note",
    "OfflineAudioContext",
    "PersistenceError",
    "SettingsSnapshot",
    "SoundControls",
    "SoundEngine",
    "SoundEventId",
    "SoundRecipe",
    "ToneCueError",
    "UnsupportedPlatformError",
    "WaveformKind",
    "apply_envelope",
    "apply_settings",
    "create_envelope",
    "get_recipe",
    "is_sound_event",
    "load_backend",
    "make_filter",
    "make_gain",
    "make_noise",
    "make_oscillator",
    "offline_backend",
    "render_sound",
    "schedule_recipe",
    "write_wav",
]

_configure_logging()
del _configure_logging
