from __future__ import annotations

import logging
import math
from types import TracebackType

from .catalog import get_recipe
from .config import EngineConfig, EngineSettings
from .context import AudioBackend, BaseAudioContext, resolve_backend
from .errors import (
    CatalogMissError,
    ContextSuspendedError,
    EngineError,
    InvalidConfigError,
    PersistenceError,
    UnsupportedPlatformError,
)
from .graph import GainNode
from .logging_utils import log_exception
from .playback import Voice, schedule_recipe
from .primitives import make_gain
from .storage import KeyValueStore, MemoryStore, load_engine_config, save_engine_config

_LOGGER = logging.getLogger("tonecue.engine")


class SoundEngine:
    """Owns the output context, the master gain and the persisted volume/mute state.

    Construct one per application and hand it to whatever needs sound. Audio
    problems never escape: helpers return an ``EngineError`` (or ``None``) and
    the public methods log it and carry on silently.
    """

    def __init__(
        self,
        store: KeyValueStore | None = None,
        *,
        backend: AudioBackend | None = None,
        settings: EngineSettings | None = None,
    ) -> None:
        self._settings = settings if settings is not None else _settings_from_env()
        self._store: KeyValueStore = store if store is not None else MemoryStore()
        self._backend = backend
        self._context: BaseAudioContext | None = None
        self._master: GainNode | None = None
        self._unsupported: UnsupportedPlatformError | None = None
        self._last_voices: tuple[Voice, ...] = ()
        self._config = self._load_config()

    def __enter__(self) -> SoundEngine:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.dispose()

    # ------------------------------------------------------------------
    # state
    # ------------------------------------------------------------------

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def context(self) -> BaseAudioContext | None:
        return self._context

    @property
    def initialized(self) -> bool:
        return self._context is not None and self._master is not None

    @property
    def last_voices(self) -> tuple[Voice, ...]:
        return self._last_voices

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> EngineError | None:
        """Open the output context and wire the master gain; no-op once done."""
        if self.initialized:
            return None
        if self._unsupported is not None:
            return self._unsupported

        backend = self._backend
        if backend is None:
            try:
                backend = resolve_backend(self._settings)
            except UnsupportedPlatformError as exc:
                _LOGGER.warning("Sound disabled: %s", exc)
                self._unsupported = exc
                return exc
            self._backend = backend

        try:
            context = backend.create_context()
        except Exception as exc:
            return self._open_failed(backend, exc)
        try:
            master = make_gain(context, self._config.effective_volume)
            master.connect(context.destination)
        except Exception as exc:
            try:
                context.close()
            except Exception as close_exc:
                _LOGGER.warning("Failed to close output context: %s", close_exc, exc_info=True)
            return self._open_failed(backend, exc)

        self._context, self._master = context, master
        _LOGGER.info(
            "Sound engine ready (%s, %d Hz, %s)", backend.name, context.sample_rate, context.state
        )
        return None

    def resume(self) -> EngineError | None:
        """Initialize if needed and make sure the context is running."""
        error = self.initialize()
        if error is not None:
            return error
        context = self._context
        assert context is not None
        match context.state:
            case "running":
                return None
            case "closed":
                return ContextSuspendedError("Output context is closed")
            case _:
                pass
        try:
            context.resume()
        except Exception as exc:
            error = ContextSuspendedError(f"Could not resume output context: {exc}")
            error.__cause__ = exc
            _LOGGER.warning("%s", error, exc_info=True)
            return error
        if context.state != "running":
            return ContextSuspendedError(f"Output context is still {context.state}")
        return None

    def dispose(self) -> None:
        context, self._context = self._context, None
        self._master = None
        self._unsupported = None
        self._last_voices = ()
        if context is None:
            return
        try:
            context.close()
        except Exception as exc:
            _LOGGER.warning("Failed to close output context: %s", exc, exc_info=True)
        _LOGGER.debug("Sound engine disposed")

    # ------------------------------------------------------------------
    # playback
    # ------------------------------------------------------------------

    def play(self, event_id: str) -> None:
        if self._config.muted:
            return
        try:
            recipe = get_recipe(event_id)
        except CatalogMissError as exc:
            if self._settings.strict:
                raise
            _LOGGER.error("%s", exc)
            return

        error = self.resume()
        if error is not None:
            _LOGGER.debug("Skipping %s: %s", event_id, error)
            return
        context, master = self._context, self._master
        assert context is not None and master is not None

        try:
            voices = schedule_recipe(context, master, recipe, context.current_time)
        except Exception as exc:
            _LOGGER.warning("Failed to play %s: %s", event_id, exc, exc_info=True)
            log_exception(f"play {event_id}", exc)
            return
        self._last_voices = tuple(voices)

    # ------------------------------------------------------------------
    # volume / mute
    # ------------------------------------------------------------------

    def get_volume(self) -> float:
        return self._config.master_volume

    def set_volume(self, level: float) -> None:
        level = float(level)
        if math.isnan(level):
            _LOGGER.warning("Ignoring NaN volume")
            return
        clamped = min(max(level, 0.0), 1.0)
        self._config = self._config.model_copy(update={"master_volume": clamped})
        self._apply_master_level()
        self._report(self._persist())

    def is_muted(self) -> bool:
        return self._config.muted

    def set_muted(self, muted: bool) -> None:
        self._config = self._config.model_copy(update={"muted": bool(muted)})
        self._apply_master_level()
        self._report(self._persist())

    def toggle_muted(self) -> bool:
        self.set_muted(not self._config.muted)
        return self._config.muted

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _apply_master_level(self) -> None:
        if self._master is not None:
            self._master.gain.value = self._config.effective_volume

    def _load_config(self) -> EngineConfig:
        try:
            return load_engine_config(self._store)
        except PersistenceError as exc:
            _LOGGER.warning("Using default sound settings: %s", exc, exc_info=True)
            return EngineConfig()

    def _persist(self) -> PersistenceError | None:
        try:
            save_engine_config(self._store, self._config)
        except PersistenceError as exc:
            return exc
        return None

    @staticmethod
    def _open_failed(backend: AudioBackend, exc: Exception) -> UnsupportedPlatformError:
        error = UnsupportedPlatformError(f"Could not open audio output via {backend.name}: {exc}")
        error.__cause__ = exc
        _LOGGER.warning("%s", error, exc_info=True)
        log_exception("initialize", exc)
        return error

    @staticmethod
    def _report(error: EngineError | None) -> None:
        if error is not None:
            _LOGGER.warning("%s", error, exc_info=error)


def _settings_from_env() -> EngineSettings:
    try:
        return EngineSettings.from_env()
    except InvalidConfigError as exc:
        _LOGGER.warning("Ignoring TONECUE_* settings: %s", exc)
        return EngineSettings()
