from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .audio import SAMPLE_RATE
from .errors import InvalidConfigError

_LOGGER = logging.getLogger("tonecue.config")

WaveformKind = Literal["sine", "square", "sawtooth", "triangle"]
FilterKind = Literal["lowpass", "highpass", "bandpass", "notch"]
LatencyHint = Literal["low", "high"]

DEFAULT_MASTER_VOLUME = 0.7
DEFAULT_MUTED = False

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off", ""})


class EnvelopeParams(BaseModel):
    """Attack/decay/release in seconds, sustain as a fraction of peak."""

    attack: float = Field(ge=0.0)
    decay: float = Field(ge=0.0)
    sustain: float = Field(ge=0.0, le=1.0)
    release: float = Field(ge=0.0)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def minimum_duration(self) -> float:
        """Shortest sound that still gets a sustain plateau of zero length."""
        return self.attack + self.decay + self.release


class Note(BaseModel):
    frequency: float = Field(gt=0.0)
    duration: float = Field(gt=0.0)
    delay: float = Field(default=0.0, ge=0.0)

    model_config = ConfigDict(frozen=True, extra="forbid")


class FilterSpec(BaseModel):
    """Filter stage for noise recipes; sweeps exponentially when end_frequency is set."""

    kind: FilterKind
    start_frequency: float = Field(gt=0.0)
    end_frequency: float | None = Field(default=None, gt=0.0)
    resonance: float = Field(default=1.0, ge=0.0)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def sweeps(self) -> bool:
        return self.end_frequency is not None


Tone = Union[float, tuple[Note, ...]]


class SoundRecipe(BaseModel):
    """Everything needed to synthesize one sound event."""

    waveform: WaveformKind = "sine"
    tone: Tone | None = None
    duration: float = Field(gt=0.0)
    envelope: EnvelopeParams
    uses_noise: bool = False
    filter: FilterSpec | None = None
    description: str = ""

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="after")
    def _check_sources(self) -> "SoundRecipe":
        if self.uses_noise:
            if self.filter is None:
                raise ValueError("noise recipes require a filter")
            return self
        if self.filter is not None:
            raise ValueError("filter is only applied to noise recipes")
        match self.tone:
            case None:
                raise ValueError("tone recipes require a frequency or notes")
            case tuple() as notes if not notes:
                raise ValueError("melody must contain at least one note")
            case float() | int() as frequency if frequency <= 0:
                raise ValueError("tone frequency must be positive")
            case _:
                return self

    @property
    def is_melody(self) -> bool:
        return not self.uses_noise and isinstance(self.tone, tuple)

    @property
    def notes(self) -> tuple[Note, ...]:
        if isinstance(self.tone, tuple):
            return self.tone
        return ()


class EngineConfig(BaseModel):
    """Persisted listener preferences."""

    master_volume: float = Field(default=DEFAULT_MASTER_VOLUME, ge=0.0, le=1.0)
    muted: bool = DEFAULT_MUTED

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def effective_volume(self) -> float:
        return 0.0 if self.muted else self.master_volume


def _default_state_path() -> Path:
    return Path.home() / ".config" / "tonecue" / "state.json"


class EngineSettings(BaseModel):
    sample_rate: int = Field(default=SAMPLE_RATE, gt=0)
    blocksize: int = Field(default=256, gt=0)
    latency: LatencyHint = "low"
    strict: bool = False
    state_path: Path = Field(default_factory=_default_state_path)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def from_env(cls) -> "EngineSettings":
        """Build settings from TONECUE_* environment variables."""
        values: dict[str, object] = {}
        if raw := os.environ.get("TONECUE_SAMPLE_RATE"):
            values["sample_rate"] = raw
        if raw := os.environ.get("TONECUE_BLOCKSIZE"):
            values["blocksize"] = raw
        if raw := os.environ.get("TONECUE_LATENCY"):
            values["latency"] = raw.strip().lower()
        if (raw := os.environ.get("TONECUE_STRICT")) is not None:
            values["strict"] = _parse_flag("TONECUE_STRICT", raw)
        if raw := os.environ.get("TONECUE_STATE_PATH"):
            values["state_path"] = Path(raw).expanduser()
        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            _LOGGER.debug("Rejected environment settings: %s", exc)
            raise InvalidConfigError(f"Invalid TONECUE_* settings: {exc}") from exc


def _parse_flag(name: str, raw: str) -> bool:
    normalized = raw.strip().lower()
    if normalized in _TRUTHY:
        return True
    if normalized in _FALSY:
        return False
    raise InvalidConfigError(f"{name} must be a boolean flag, got {raw!r}")
