"""
Turn a recipe into scheduled graph nodes.

Each call builds private nodes for one playback and wraps them in voices:

- single tone:     oscillator -> envelope gain -> output
- melody:          one oscillator/gain pair per note, offset by note.delay
- filtered noise:  noise -> filter (optionally swept) -> envelope gain -> output

A voice goes idle -> scheduled -> playing -> finished and disconnects its
nodes when its source ends.
"""

from __future__ import annotations

import logging
from typing import Literal

import numpy as np

from .audio import SAMPLE_RATE, FloatArray, seconds_to_frames
from .catalog import get_recipe
from .config import EnvelopeParams, SoundRecipe, WaveformKind
from .context import BaseAudioContext, OfflineAudioContext
from .envelopes import apply_envelope
from .graph import AudioNode, BiquadFilterNode, ScheduledSourceNode
from .primitives import make_filter, make_gain, make_noise, make_oscillator

_LOGGER = logging.getLogger("tonecue.playback")

VoiceState = Literal["idle", "scheduled", "playing", "finished"]
VoiceKind = Literal["tone", "noise"]


class Voice:
    """Nodes for one tone or noise burst, plus its playback state."""

    def __init__(
        self,
        kind: VoiceKind,
        source: ScheduledSourceNode,
        nodes: tuple[AudioNode, ...],
        *,
        start_time: float,
        duration: float,
        frequency: float | None = None,
        filter_node: BiquadFilterNode | None = None,
    ) -> None:
        self.kind = kind
        self.source = source
        self.nodes = nodes
        self.start_time = start_time
        self.duration = duration
        self.frequency = frequency
        self.filter_node = filter_node
        self._state: VoiceState = "idle"

    def __repr__(self) -> str:
        return (
            f"Voice({self.kind}, start={self.start_time:.3f}, "
            f"duration={self.duration:.3f}, state={self.state})"
        )

    @property
    def stop_time(self) -> float:
        return self.start_time + self.duration

    @property
    def state(self) -> VoiceState:
        if self._state == "scheduled" and self.source.context.current_time >= self.start_time:
            return "playing"
        return self._state

    def _schedule(self) -> None:
        if self._state != "idle":
            return
        self.source.on_ended(lambda _source: self._finish())
        self.source.start(self.start_time)
        self.source.stop(self.stop_time)
        self._state = "scheduled"

    def _finish(self) -> None:
        for node in self.nodes:
            node.disconnect()
        self._state = "finished"


def schedule_recipe(
    ctx: BaseAudioContext,
    output: AudioNode,
    recipe: SoundRecipe,
    start_time: float | None = None,
    *,
    peak: float = 1.0,
    rng: np.random.Generator | None = None,
) -> list[Voice]:
    """Build and start the nodes for ``recipe``; returns one voice per source."""
    t0 = ctx.current_time if start_time is None else start_time
    if recipe.uses_noise:
        return [_schedule_noise(ctx, output, recipe, t0, peak=peak, rng=rng)]
    if recipe.is_melody:
        return [
            _schedule_tone(
                ctx,
                output,
                recipe.waveform,
                note.frequency,
                recipe.envelope,
                t0 + note.delay,
                note.duration,
                peak=peak,
            )
            for note in recipe.notes
        ]
    assert isinstance(recipe.tone, (int, float))
    return [
        _schedule_tone(
            ctx,
            output,
            recipe.waveform,
            float(recipe.tone),
            recipe.envelope,
            t0,
            recipe.duration,
            peak=peak,
        )
    ]


def _schedule_tone(
    ctx: BaseAudioContext,
    output: AudioNode,
    waveform: WaveformKind,
    frequency: float,
    envelope: EnvelopeParams,
    start_time: float,
    duration: float,
    *,
    peak: float,
) -> Voice:
    oscillator = make_oscillator(ctx, waveform, frequency)
    gain = make_gain(ctx, 0.0)
    apply_envelope(gain, envelope, start_time, duration, peak)
    oscillator.connect(gain)
    gain.connect(output)
    voice = Voice(
        "tone",
        oscillator,
        (oscillator, gain),
        start_time=start_time,
        duration=duration,
        frequency=frequency,
    )
    voice._schedule()
    return voice


def _schedule_noise(
    ctx: BaseAudioContext,
    output: AudioNode,
    recipe: SoundRecipe,
    start_time: float,
    *,
    peak: float,
    rng: np.random.Generator | None,
) -> Voice:
    spec = recipe.filter
    assert spec is not None
    noise = make_noise(ctx, recipe.duration, rng)
    biquad = make_filter(ctx, spec.kind, spec.start_frequency, spec.resonance)
    if spec.end_frequency is not None:
        biquad.frequency.set_value_at_time(spec.start_frequency, start_time)
        biquad.frequency.exponential_ramp_to_value_at_time(
            spec.end_frequency, start_time + recipe.duration
        )
    gain = make_gain(ctx, 0.0)
    apply_envelope(gain, recipe.envelope, start_time, recipe.duration, peak)
    noise.connect(biquad)
    biquad.connect(gain)
    gain.connect(output)
    voice = Voice(
        "noise",
        noise,
        (noise, biquad, gain),
        start_time=start_time,
        duration=recipe.duration,
        filter_node=biquad,
    )
    voice._schedule()
    return voice


def sound_span(recipe: SoundRecipe) -> float:
    """Seconds from the first start to the last source stop."""
    if recipe.is_melody:
        return max(recipe.duration, max(note.delay + note.duration for note in recipe.notes))
    return recipe.duration


def render_sound(
    sound: str | SoundRecipe,
    *,
    sample_rate: int = SAMPLE_RATE,
    volume: float = 1.0,
    tail: float = 0.05,
    rng: np.random.Generator | None = None,
) -> FloatArray:
    """Render a catalog sound (or any recipe) offline into a mono buffer."""
    recipe = get_recipe(sound) if isinstance(sound, str) else sound
    ctx = OfflineAudioContext(sample_rate)
    master = make_gain(ctx, min(max(volume, 0.0), 1.0))
    master.connect(ctx.destination)
    voices = schedule_recipe(ctx, master, recipe, 0.0, rng=rng)
    audio = ctx.render(seconds_to_frames(sound_span(recipe) + tail, sample_rate))
    ctx.close()
    _LOGGER.debug("Rendered %d voices into %d samples", len(voices), audio.size)
    return audio
