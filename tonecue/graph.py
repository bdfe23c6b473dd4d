# pyright: reportUnknownVariableType=false
# pyright: reportUnknownMemberType=false
# pyright: reportUnknownArgumentType=false

"""
Pull-based audio graph.

Nodes are rendered block by block against absolute context time: a node mixes
its inputs, processes the block, and hands it to whoever pulled it. Parameters
carry an automation timeline so envelopes and sweeps are declared up front and
evaluated by the rendering thread.
"""

from __future__ import annotations

import bisect
import logging
import math
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import TYPE_CHECKING, Callable, Literal, TypeAlias

import numpy as np
from numpy.typing import NDArray
from scipy.signal import lfilter  # type: ignore[import]

from .audio import RENDER_QUANTUM
from .config import FilterKind, WaveformKind
from .errors import InvalidScheduleError

if TYPE_CHECKING:
    from .context import BaseAudioContext

_LOGGER = logging.getLogger("tonecue.graph")

Signal: TypeAlias = NDArray[np.float64]
WaveFn: TypeAlias = Callable[[Signal, Signal], Signal]
EventKind = Literal["set", "linear", "exponential"]


# =============================================================================
# PARAMETERS
# =============================================================================


@dataclass(frozen=True, slots=True)
class ParamEvent:
    kind: EventKind
    time: float
    value: float


class AudioParam:
    """A scalar whose value can be scheduled along the context timeline."""

    def __init__(self, name: str, default: float) -> None:
        self.name = name
        self._default = float(default)
        self._events: list[ParamEvent] = []
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"AudioParam({self.name!r}, default={self._default}, events={len(self._events)})"

    @property
    def value(self) -> float:
        return self._default

    @value.setter
    def value(self, level: float) -> None:
        """Set the level immediately, dropping any scheduled automation."""
        with self._lock:
            self._events.clear()
            self._default = float(level)

    @property
    def events(self) -> tuple[ParamEvent, ...]:
        with self._lock:
            return tuple(self._events)

    def set_value_at_time(self, value: float, time: float) -> AudioParam:
        return self._insert(ParamEvent("set", _check_time(time), float(value)))

    def linear_ramp_to_value_at_time(self, value: float, end_time: float) -> AudioParam:
        return self._insert(ParamEvent("linear", _check_time(end_time), float(value)))

    def exponential_ramp_to_value_at_time(self, value: float, end_time: float) -> AudioParam:
        if not value > 0.0:
            raise InvalidScheduleError(
                f"{self.name}: exponential ramps need a positive target, got {value}"
            )
        return self._insert(ParamEvent("exponential", _check_time(end_time), float(value)))

    def cancel_scheduled_values(self, start_time: float) -> AudioParam:
        with self._lock:
            self._events = [event for event in self._events if event.time < start_time]
        return self

    def _insert(self, event: ParamEvent) -> AudioParam:
        with self._lock:
            bisect.insort(self._events, event, key=lambda item: item.time)
        return self

    def value_at(self, time: float) -> float:
        return float(self.values(np.array([time], dtype=np.float64))[0])

    def values(self, times: Signal) -> Signal:
        """Evaluate the automation curve at each of the given times."""
        with self._lock:
            events = tuple(self._events)
            default = self._default
        out = np.full(times.shape, default, dtype=np.float64)
        prev_time, prev_value = 0.0, default
        for event in events:
            if event.kind != "set":
                ramp = (times >= prev_time) & (times < event.time)
                span = event.time - prev_time
                if span > 0.0 and np.any(ramp):
                    frac = (times[ramp] - prev_time) / span
                    out[ramp] = _interpolate(event.kind, prev_value, event.value, frac)
            out[times >= event.time] = event.value
            prev_time, prev_value = event.time, event.value
        return out


def _check_time(time: float) -> float:
    if not math.isfinite(time) or time < 0.0:
        raise InvalidScheduleError(f"automation time must be finite and >= 0, got {time}")
    return float(time)


def _interpolate(kind: EventKind, start: float, end: float, frac: Signal) -> Signal:
    if kind == "linear":
        return start + (end - start) * frac
    if start <= 0.0:
        # Exponential curves cannot leave zero; hold until the ramp lands.
        return np.full(frac.shape, start, dtype=np.float64)
    return start * np.power(end / start, frac)


# =============================================================================
# WAVEFORMS
# =============================================================================


def _poly_blep(phase: Signal, dt: Signal) -> Signal:
    """Two-sample PolyBLEP residual for a unit step at phase 0."""
    correction = np.zeros_like(phase)

    m1 = phase < dt
    t1 = phase[m1] / dt[m1]
    correction[m1] = t1 + t1 - t1 * t1 - 1.0

    m2 = phase > 1.0 - dt
    t2 = (phase[m2] - 1.0) / dt[m2]
    correction[m2] = t2 * t2 + t2 + t2 + 1.0
    return correction


def sine_wave(phase: Signal, dt: Signal) -> Signal:
    _ = dt
    return np.sin(2.0 * np.pi * phase)


def triangle_wave(phase: Signal, dt: Signal) -> Signal:
    _ = dt
    return 2.0 * np.abs(2.0 * (phase - np.floor(phase + 0.5))) - 1.0


def sawtooth_wave(phase: Signal, dt: Signal) -> Signal:
    """Band-limited sawtooth; safe to evaluate block by block."""
    return 2.0 * phase - 1.0 - _poly_blep(phase, dt)


def square_wave(phase: Signal, dt: Signal) -> Signal:
    """Band-limited square with edges at phase 0 and 0.5."""
    naive = np.where(phase < 0.5, 1.0, -1.0)
    return naive + _poly_blep(phase, dt) - _poly_blep((phase + 0.5) % 1.0, dt)


WAVEFORMS: Mapping[WaveformKind, WaveFn] = MappingProxyType(
    {
        "sine": sine_wave,
        "square": square_wave,
        "sawtooth": sawtooth_wave,
        "triangle": triangle_wave,
    }
)


# =============================================================================
# NODES
# =============================================================================


class AudioNode:
    def __init__(self, context: BaseAudioContext) -> None:
        self.context = context
        self._inputs: list[AudioNode] = []
        self._outputs: list[AudioNode] = []
        self._cache_key: tuple[float, int] | None = None
        self._cache: Signal | None = None

    @property
    def inputs(self) -> tuple[AudioNode, ...]:
        return tuple(self._inputs)

    @property
    def outputs(self) -> tuple[AudioNode, ...]:
        return tuple(self._outputs)

    def connect(self, destination: AudioNode) -> AudioNode:
        if destination.context is not self.context:
            raise InvalidScheduleError("cannot connect nodes from different contexts")
        with self.context.graph_lock:
            if destination not in self._outputs:
                self._outputs.append(destination)
                destination._inputs.append(self)
        return destination

    def disconnect(self) -> None:
        with self.context.graph_lock:
            for destination in self._outputs:
                if self in destination._inputs:
                    destination._inputs.remove(self)
            self._outputs.clear()

    def render(self, times: Signal) -> Signal:
        # A node feeding several outputs must only advance its state once per block.
        key = (float(times[0]), len(times)) if len(times) else (0.0, 0)
        if self._cache_key == key and self._cache is not None:
            return self._cache
        block = self._process(self._mix_inputs(times), times)
        self._cache_key, self._cache = key, block
        return block

    def _mix_inputs(self, times: Signal) -> Signal:
        mixed = np.zeros(times.shape, dtype=np.float64)
        for node in tuple(self._inputs):
            mixed += node.render(times)
        return mixed

    def _process(self, block: Signal, times: Signal) -> Signal:
        _ = times
        return block


class DestinationNode(AudioNode):
    """Terminal node whose mix is what the context hands to the device."""


class GainNode(AudioNode):
    def __init__(self, context: BaseAudioContext, level: float = 1.0) -> None:
        super().__init__(context)
        self.gain = AudioParam("gain", level)

    def _process(self, block: Signal, times: Signal) -> Signal:
        return block * self.gain.values(times)


class ScheduledSourceNode(AudioNode):
    """Base for nodes that generate audio between start() and stop()."""

    def __init__(self, context: BaseAudioContext) -> None:
        super().__init__(context)
        self._start_time: float | None = None
        self._stop_time = math.inf
        self._ended = False
        self._ended_callbacks: list[Callable[[ScheduledSourceNode], None]] = []

    @property
    def start_time(self) -> float | None:
        return self._start_time

    @property
    def stop_time(self) -> float:
        return self._stop_time

    @property
    def ended(self) -> bool:
        return self._ended

    @property
    def end_time(self) -> float:
        """Context time after which this source produces nothing more."""
        if self._start_time is None:
            return math.inf
        return self._stop_time

    def start(self, when: float = 0.0) -> None:
        if self._start_time is not None:
            raise InvalidScheduleError(f"{type(self).__name__} can only be started once")
        self._start_time = _check_time(when)
        self._stop_time = max(self._stop_time, self._start_time)
        self.context.register_source(self)

    def stop(self, when: float = 0.0) -> None:
        if self._start_time is None:
            raise InvalidScheduleError(f"{type(self).__name__} must be started before stop()")
        self._stop_time = max(_check_time(when), self._start_time)

    def on_ended(self, callback: Callable[[ScheduledSourceNode], None]) -> None:
        self._ended_callbacks.append(callback)

    def finish(self) -> None:
        """Fire end callbacks once; called by the context when end_time passes."""
        if self._ended:
            return
        self._ended = True
        for callback in tuple(self._ended_callbacks):
            try:
                callback(self)
            except Exception as exc:
                _LOGGER.warning("on_ended callback failed: %s", exc, exc_info=True)

    def _active_mask(self, times: Signal) -> NDArray[np.bool_]:
        if self._start_time is None or self._ended:
            return np.zeros(times.shape, dtype=np.bool_)
        return (times >= self._start_time) & (times < self._stop_time)

    def _process(self, block: Signal, times: Signal) -> Signal:
        _ = block
        out = np.zeros(times.shape, dtype=np.float64)
        active = self._active_mask(times)
        if np.any(active):
            out[active] = self._generate(times[active])
        return out

    def _generate(self, times: Signal) -> Signal:
        raise NotImplementedError


class OscillatorNode(ScheduledSourceNode):
    def __init__(self, context: BaseAudioContext) -> None:
        super().__init__(context)
        self.type: WaveformKind = "sine"
        self.frequency = AudioParam("frequency", 440.0)
        self._phase = 0.0

    def _generate(self, times: Signal) -> Signal:
        # Integrate frequency so automated pitch stays phase-continuous across blocks.
        sr = float(self.context.sample_rate)
        increments = np.maximum(self.frequency.values(times), 0.0) / sr
        phase = (self._phase + np.cumsum(increments) - increments) % 1.0
        self._phase = float((phase[-1] + increments[-1]) % 1.0)
        dt = np.clip(increments, 1e-9, 0.5)
        return WAVEFORMS[self.type](phase, dt)


@dataclass(frozen=True, slots=True)
class AudioBuffer:
    samples: NDArray[np.float32]
    sample_rate: int

    @property
    def duration(self) -> float:
        return len(self.samples) / self.sample_rate

    def __len__(self) -> int:
        return len(self.samples)


class BufferSourceNode(ScheduledSourceNode):
    def __init__(self, context: BaseAudioContext) -> None:
        super().__init__(context)
        self.buffer: AudioBuffer | None = None

    @property
    def end_time(self) -> float:
        if self._start_time is None:
            return math.inf
        length = self.buffer.duration if self.buffer is not None else 0.0
        return min(self._stop_time, self._start_time + length)

    def _generate(self, times: Signal) -> Signal:
        if self.buffer is None or self._start_time is None:
            return np.zeros(times.shape, dtype=np.float64)
        index = np.round((times - self._start_time) * self.buffer.sample_rate).astype(np.int64)
        out = np.zeros(times.shape, dtype=np.float64)
        valid = (index >= 0) & (index < len(self.buffer))
        out[valid] = self.buffer.samples[index[valid]]
        return out


def _quantize(value: float, step: float) -> float:
    return round(value / step) * step


@lru_cache(maxsize=512)
def _biquad_cached(kind: FilterKind, w0: float, q: float) -> tuple[Signal, Signal]:
    """RBJ cookbook coefficients, normalized so a[0] == 1."""
    cos_w0 = math.cos(w0)
    alpha = math.sin(w0) / (2.0 * q)
    match kind:
        case "lowpass":
            b = ((1.0 - cos_w0) / 2.0, 1.0 - cos_w0, (1.0 - cos_w0) / 2.0)
        case "highpass":
            b = ((1.0 + cos_w0) / 2.0, -(1.0 + cos_w0), (1.0 + cos_w0) / 2.0)
        case "bandpass":
            b = (alpha, 0.0, -alpha)
        case "notch":
            b = (1.0, -2.0 * cos_w0, 1.0)
        case _:
            raise InvalidScheduleError(f"Unknown filter type: {kind}")
    a = (1.0 + alpha, -2.0 * cos_w0, 1.0 - alpha)
    b_arr = np.asarray(b, dtype=np.float64) / a[0]
    a_arr = np.asarray(a, dtype=np.float64) / a[0]
    return b_arr, a_arr


class BiquadFilterNode(AudioNode):
    """Second-order filter whose cutoff is re-read every render quantum."""

    MIN_FREQUENCY = 10.0
    MIN_Q = 1e-4

    def __init__(self, context: BaseAudioContext) -> None:
        super().__init__(context)
        self.type: FilterKind = "lowpass"
        self.frequency = AudioParam("frequency", 350.0)
        self.q = AudioParam("q", 1.0)
        self._zi = np.zeros(2, dtype=np.float64)

    def coefficients(self, time: float) -> tuple[Signal, Signal]:
        sr = float(self.context.sample_rate)
        nyquist = sr / 2.0
        cutoff = min(max(self.frequency.value_at(time), self.MIN_FREQUENCY), nyquist * 0.999)
        q = max(self.q.value_at(time), self.MIN_Q)
        w0 = _quantize(2.0 * math.pi * cutoff / sr, 1e-5)
        return _biquad_cached(self.type, w0, _quantize(q, 1e-4) or self.MIN_Q)

    def _process(self, block: Signal, times: Signal) -> Signal:
        out = np.empty_like(block)
        for offset in range(0, len(block), RENDER_QUANTUM):
            chunk = slice(offset, offset + RENDER_QUANTUM)
            b, a = self.coefficients(float(times[offset]))
            filtered, self._zi = lfilter(b, a, block[chunk], zi=self._zi)
            out[chunk] = filtered
        return out
