"""Factories for the raw, unshaped nodes every sound is built from."""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

import numpy as np

from .config import FilterKind, WaveformKind
from .context import BaseAudioContext
from .graph import BiquadFilterNode, BufferSourceNode, GainNode, OscillatorNode

# Equal temperament, A4 = 440 Hz
NOTE_FREQUENCIES: Mapping[str, float] = MappingProxyType(
    {
        "C4": 261.63,
        "D4": 293.66,
        "E4": 329.63,
        "F4": 349.23,
        "G4": 392.00,
        "A4": 440.00,
        "B4": 493.88,
        "C5": 523.25,
        "D5": 587.33,
        "E5": 659.25,
        "F5": 698.46,
        "G5": 783.99,
        "A5": 880.00,
        "B5": 987.77,
        "C6": 1046.50,
        "D6": 1174.66,
        "E6": 1318.51,
    }
)


def note_frequency(name: str) -> float:
    """Get the frequency of a named note such as ``"C5"``."""
    key = name.strip().upper()
    if key not in NOTE_FREQUENCIES:
        raise ValueError(f"Unknown note: {name}. Valid: {list(NOTE_FREQUENCIES.keys())}")
    return NOTE_FREQUENCIES[key]


def make_oscillator(
    ctx: BaseAudioContext, waveform: WaveformKind, frequency_hz: float
) -> OscillatorNode:
    """Periodic generator, configured but not started."""
    oscillator = ctx.create_oscillator()
    oscillator.type = waveform
    oscillator.frequency.value = frequency_hz
    return oscillator


def make_noise(
    ctx: BaseAudioContext,
    duration_seconds: float,
    rng: np.random.Generator | None = None,
) -> BufferSourceNode:
    """One-shot white noise: independent uniform samples in [-1, 1]."""
    generator = rng if rng is not None else np.random.default_rng()
    frames = max(0, int(ctx.sample_rate * duration_seconds))
    source = ctx.create_buffer_source()
    source.buffer = ctx.create_buffer(generator.uniform(-1.0, 1.0, frames))
    return source


def make_filter(
    ctx: BaseAudioContext,
    kind: FilterKind,
    center_frequency_hz: float,
    resonance: float = 1.0,
) -> BiquadFilterNode:
    """Frequency-selective stage; sweeps are scheduled by the caller on ``frequency``."""
    biquad = ctx.create_biquad_filter()
    biquad.type = kind
    biquad.frequency.value = center_frequency_hz
    biquad.q.value = resonance
    return biquad


def make_gain(ctx: BaseAudioContext, initial_level: float = 1.0) -> GainNode:
    gain = ctx.create_gain()
    gain.gain.value = initial_level
    return gain
