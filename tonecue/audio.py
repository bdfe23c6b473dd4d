from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any

import numpy as np
import soundfile as sf  # type: ignore[import]
from numpy.typing import NDArray

from .errors import InvalidConfigError

FloatArray = NDArray[np.float32]
AudioNumbers = NDArray[np.floating[Any]] | Sequence[float] | FloatArray

SAMPLE_RATE = 44_100
# Web Audio renders in quanta of 128 frames; automation is sampled at that rate.
RENDER_QUANTUM = 128


def ensure_audio_contract(audio: AudioNumbers, *, check_peak: bool = True) -> FloatArray:
    """Normalize dtype/range/shape to mono float32 in [-1, 1]."""

    mono: FloatArray = np.asarray(audio, dtype=np.float32).reshape(-1)
    if mono.size == 0 or not check_peak:
        return mono
    peak = float(np.max(np.abs(mono)))
    if peak > 1.0:
        mono = mono / peak
    return mono


def seconds_to_frames(seconds: float, sample_rate: int = SAMPLE_RATE) -> int:
    return max(0, int(round(seconds * sample_rate)))


def write_wav(
    path: str | Path,
    audio: AudioNumbers,
    *,
    sample_rate: int = SAMPLE_RATE,
) -> Path:
    """Write a rendered buffer to a mono wav file."""

    target = Path(path)
    match audio:
        case np.ndarray():
            samples: FloatArray = np.asarray(audio, dtype=np.float32)
        case str() | bytes():
            raise InvalidConfigError("audio must be a sequence of samples")
        case Sequence():
            samples = np.asarray(audio, dtype=np.float32)
        case _:
            raise InvalidConfigError("audio must be a sequence of samples")
    if samples.ndim != 1:
        raise InvalidConfigError(f"expected mono samples, got shape {samples.shape}")

    target.parent.mkdir(parents=True, exist_ok=True)
    sf.write(target, ensure_audio_contract(samples), sample_rate, subtype="FLOAT")
    return target
