"""Durable key-value storage for the listener's volume and mute preference."""

from __future__ import annotations

import json
import logging
import math
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol, runtime_checkable

from .config import DEFAULT_MASTER_VOLUME, DEFAULT_MUTED, EngineConfig
from .errors import PersistenceError

_LOGGER = logging.getLogger("tonecue.storage")

VOLUME_KEY = "tonecue-volume"
MUTED_KEY = "tonecue-muted"


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


@runtime_checkable
class BatchKeyValueStore(KeyValueStore, Protocol):
    """A store that can write several keys as one unit."""

    def set_many(self, values: Mapping[str, str]) -> None: ...


class MemoryStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def set_many(self, values: Mapping[str, str]) -> None:
        self._values.update(values)

    def snapshot(self) -> dict[str, str]:
        return dict(self._values)


class JsonFileStore:
    """String values in a single JSON object on disk, rewritten atomically."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    def _read(self) -> dict[str, str]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            _LOGGER.warning("Ignoring unreadable state file %s: %s", self.path, exc)
            return {}
        match data:
            case dict():
                return {str(key): str(value) for key, value in data.items()}
            case _:
                _LOGGER.warning("Ignoring state file %s: not a JSON object", self.path)
                return {}

    def get(self, key: str) -> str | None:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def set_many(self, values: Mapping[str, str]) -> None:
        """Merge ``values`` into the file with a single atomic rewrite."""
        data = self._read()
        data.update(values)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(data, indent=2, sort_keys=True) + "\n"
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def parse_volume(raw: str | None) -> float | None:
    if raw is None:
        return None
    try:
        value = float(raw.strip())
    except ValueError:
        return None
    if not math.isfinite(value) or not 0.0 <= value <= 1.0:
        return None
    return value


def parse_muted(raw: str | None) -> bool | None:
    if raw is None:
        return None
    match raw.strip().lower():
        case "true":
            return True
        case "false":
            return False
        case _:
            return None


def load_engine_config(store: KeyValueStore) -> EngineConfig:
    """Read the persisted config; each missing or corrupt key falls back to its default.

    Raises:
        PersistenceError: the store itself could not be read.
    """
    try:
        raw_volume = store.get(VOLUME_KEY)
        raw_muted = store.get(MUTED_KEY)
    except Exception as exc:
        raise PersistenceError(f"Could not read sound settings: {exc}") from exc

    volume = parse_volume(raw_volume)
    if volume is None:
        if raw_volume is not None:
            _LOGGER.warning("Ignoring corrupt stored volume %r", raw_volume)
        volume = DEFAULT_MASTER_VOLUME
    muted = parse_muted(raw_muted)
    if muted is None:
        if raw_muted is not None:
            _LOGGER.warning("Ignoring corrupt stored mute flag %r", raw_muted)
        muted = DEFAULT_MUTED
    return EngineConfig(master_volume=volume, muted=muted)


def save_engine_config(store: KeyValueStore, config: EngineConfig) -> None:
    values = {
        VOLUME_KEY: str(config.master_volume),
        MUTED_KEY: "true" if config.muted else "false",
    }
    try:
        if isinstance(store, BatchKeyValueStore):
            store.set_many(values)
        else:
            for key, value in values.items():
                store.set(key, value)
    except Exception as exc:
        raise PersistenceError(f"Could not save sound settings: {exc}") from exc
