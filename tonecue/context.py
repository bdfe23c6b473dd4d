from __future__ import annotations

import logging
import threading
from collections import Counter
from typing import Any, Callable, Literal, TypeVar

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict

from .audio import SAMPLE_RATE, FloatArray, seconds_to_frames
from .config import EngineSettings
from .errors import InvalidScheduleError, UnsupportedPlatformError
from .graph import (
    AudioBuffer,
    AudioNode,
    BiquadFilterNode,
    BufferSourceNode,
    DestinationNode,
    GainNode,
    OscillatorNode,
    ScheduledSourceNode,
)

_LOGGER = logging.getLogger("tonecue.context")

ContextState = Literal["suspended", "running", "closed"]
_NodeT = TypeVar("_NodeT", bound=AudioNode)


class BaseAudioContext:
    """Owns the clock, the destination node and every live source."""

    def __init__(self, sample_rate: int = SAMPLE_RATE, *, state: ContextState = "suspended") -> None:
        if sample_rate <= 0:
            raise InvalidScheduleError(f"sample_rate must be positive, got {sample_rate}")
        self.sample_rate = sample_rate
        self.nodes_created: Counter[str] = Counter()
        self._state: ContextState = state
        self._frame = 0
        self._lock = threading.RLock()
        self._sources: list[ScheduledSourceNode] = []
        self.destination = DestinationNode(self)

    @property
    def current_time(self) -> float:
        return self._frame / self.sample_rate

    @property
    def state(self) -> ContextState:
        return self._state

    @property
    def graph_lock(self) -> threading.RLock:
        return self._lock

    @property
    def active_sources(self) -> tuple[ScheduledSourceNode, ...]:
        with self._lock:
            return tuple(self._sources)

    def create_oscillator(self) -> OscillatorNode:
        return self._track(OscillatorNode(self))

    def create_gain(self) -> GainNode:
        return self._track(GainNode(self))

    def create_biquad_filter(self) -> BiquadFilterNode:
        return self._track(BiquadFilterNode(self))

    def create_buffer_source(self) -> BufferSourceNode:
        return self._track(BufferSourceNode(self))

    def create_buffer(self, samples: NDArray[np.floating[Any]]) -> AudioBuffer:
        self._ensure_open()
        return AudioBuffer(np.asarray(samples, dtype=np.float32).reshape(-1), self.sample_rate)

    def _track(self, node: _NodeT) -> _NodeT:
        self._ensure_open()
        self.nodes_created[type(node).__name__] += 1
        return node

    def _ensure_open(self) -> None:
        if self._state == "closed":
            raise InvalidScheduleError("audio context is closed")

    def register_source(self, source: ScheduledSourceNode) -> None:
        with self._lock:
            self._ensure_open()
            self._sources.append(source)

    def resume(self) -> None:
        self._ensure_open()
        self._state = "running"

    def suspend(self) -> None:
        self._ensure_open()
        self._state = "suspended"

    def close(self) -> None:
        with self._lock:
            self._state = "closed"
            sources, self._sources = self._sources, []
        for source in sources:
            source.finish()

    def render(self, frames: int) -> FloatArray:
        """Render the next block and advance the clock; silence unless running."""
        if frames <= 0:
            return np.zeros(0, dtype=np.float32)
        with self._lock:
            if self._state != "running":
                return np.zeros(frames, dtype=np.float32)
            times = (self._frame + np.arange(frames, dtype=np.float64)) / self.sample_rate
            block = self.destination.render(times)
            self._frame += frames
            self._reap_sources()
        return np.clip(block, -1.0, 1.0).astype(np.float32)

    def _reap_sources(self) -> None:
        now = self.current_time
        finished = [source for source in self._sources if source.end_time <= now]
        if not finished:
            return
        self._sources = [source for source in self._sources if source.end_time > now]
        for source in finished:
            source.finish()


class OfflineAudioContext(BaseAudioContext):
    """Context whose clock only moves when asked to render."""

    def __init__(self, sample_rate: int = SAMPLE_RATE, *, state: ContextState = "running") -> None:
        super().__init__(sample_rate, state=state)

    def render_seconds(self, seconds: float) -> FloatArray:
        return self.render(seconds_to_frames(seconds, self.sample_rate))


class DeviceAudioContext(BaseAudioContext):
    """Context rendered by a sounddevice output stream on the audio thread."""

    def __init__(
        self,
        sd: Any,
        *,
        sample_rate: int = SAMPLE_RATE,
        blocksize: int = 256,
        latency: str = "low",
    ) -> None:
        super().__init__(sample_rate, state="suspended")
        self._sd = sd
        self._blocksize = blocksize
        self._latency = latency
        self._stream: Any = None
        self.status_flags = 0

    def resume(self) -> None:
        self._ensure_open()
        if self._stream is None:
            self._stream = self._sd.OutputStream(
                samplerate=self.sample_rate,
                channels=1,
                dtype="float32",
                blocksize=self._blocksize,
                latency=self._latency,
                callback=self._callback,
            )
        # Flip state first so the first callback already renders.
        self._state = "running"
        try:
            self._stream.start()
        except Exception:
            self._state = "suspended"
            raise

    def suspend(self) -> None:
        self._ensure_open()
        if self._stream is not None:
            self._stream.stop()
        self._state = "suspended"

    def close(self) -> None:
        stream, self._stream = self._stream, None
        super().close()
        if stream is not None:
            stream.stop()
            stream.close()
        if self.status_flags:
            _LOGGER.debug("Output stream reported %d underflow/overflow blocks", self.status_flags)

    def _callback(self, outdata: Any, frames: int, time_info: Any, status: Any) -> None:
        _ = time_info
        # Runs on the PortAudio thread: no logging or allocation beyond the render.
        if status:
            self.status_flags += 1
        outdata[:, 0] = self.render(frames)


class AudioBackend(BaseModel):
    name: str
    create_context: Callable[[], BaseAudioContext]

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        arbitrary_types_allowed=True,
    )


def offline_backend(sample_rate: int = SAMPLE_RATE) -> AudioBackend:
    def _create() -> BaseAudioContext:
        return OfflineAudioContext(sample_rate)

    return AudioBackend(name="offline", create_context=_create)


def load_backend(settings: EngineSettings | None = None) -> AudioBackend | None:
    return _load_sounddevice(settings or EngineSettings())


def resolve_backend(settings: EngineSettings | None = None) -> AudioBackend:
    backend = load_backend(settings)
    if backend is None:
        raise UnsupportedPlatformError(
            "Audio output requires sounddevice with a PortAudio output device."
        )
    return backend


def _load_sounddevice(settings: EngineSettings) -> AudioBackend | None:
    try:
        import sounddevice as sd_module  # type: ignore[import]
    except (ImportError, OSError) as exc:
        # OSError: the wheel imports but the PortAudio library is missing.
        _LOGGER.info("sounddevice not available: %s", exc, exc_info=True)
        return None
    sd: Any = sd_module
    try:
        sd.query_devices(kind="output")
    except (ValueError, sd.PortAudioError) as exc:
        _LOGGER.info("No audio output device: %s", exc, exc_info=True)
        return None

    def _create() -> BaseAudioContext:
        return DeviceAudioContext(
            sd,
            sample_rate=settings.sample_rate,
            blocksize=settings.blocksize,
            latency=settings.latency,
        )

    return AudioBackend(name="sounddevice", create_context=_create)

