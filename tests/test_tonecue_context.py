import logging
import sys
from types import SimpleNamespace
from typing import Any

import numpy as np
import pytest

from tonecue.config import EngineSettings
from tonecue.context import (
    DeviceAudioContext,
    OfflineAudioContext,
    _load_sounddevice,
    offline_backend,
    resolve_backend,
)
from tonecue.errors import InvalidScheduleError, UnsupportedPlatformError


class _FakeStream:
    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.calls: list[str] = []

    def start(self) -> None:
        self.calls.append("start")

    def stop(self) -> None:
        self.calls.append("stop")

    def close(self) -> None:
        self.calls.append("close")


class _FakePortAudioError(Exception):
    pass


def _fake_sounddevice(*, has_output: bool = True) -> SimpleNamespace:
    streams: list[_FakeStream] = []

    def output_stream(**kwargs: Any) -> _FakeStream:
        stream = _FakeStream(**kwargs)
        streams.append(stream)
        return stream

    def query_devices(kind: str | None = None) -> dict[str, Any]:
        if not has_output:
            raise _FakePortAudioError("no default output device")
        return {"name": "fake", "kind": kind}

    return SimpleNamespace(
        OutputStream=output_stream,
        query_devices=query_devices,
        PortAudioError=_FakePortAudioError,
        streams=streams,
    )


def test_offline_clock_advances_only_while_running() -> None:
    ctx = OfflineAudioContext(44_100)
    ctx.render(441)
    assert ctx.current_time == pytest.approx(0.01)

    ctx.suspend()
    silent = ctx.render(441)
    assert np.allclose(silent, 0.0)
    assert ctx.current_time == pytest.approx(0.01)


def test_nodes_created_counts_factories() -> None:
    ctx = OfflineAudioContext(8000)
    ctx.create_oscillator()
    ctx.create_gain()
    ctx.create_gain()
    ctx.create_biquad_filter()

    assert ctx.nodes_created == {"OscillatorNode": 1, "GainNode": 2, "BiquadFilterNode": 1}


def test_close_finishes_sources_and_rejects_new_nodes() -> None:
    ctx = OfflineAudioContext(8000)
    osc = ctx.create_oscillator()
    osc.start(0.0)

    ctx.close()

    assert ctx.state == "closed"
    assert osc.ended
    with pytest.raises(InvalidScheduleError):
        ctx.create_gain()


def test_offline_backend_builds_running_context() -> None:
    backend = offline_backend(22_050)
    ctx = backend.create_context()
    assert backend.name == "offline"
    assert ctx.sample_rate == 22_050
    assert ctx.state == "running"


def test_resolve_backend_raises_without_sounddevice(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("tonecue.context._load_sounddevice", lambda settings: None)
    with pytest.raises(UnsupportedPlatformError):
        resolve_backend(EngineSettings())


def test_load_sounddevice_handles_missing_module(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setitem(sys.modules, "sounddevice", None)
    assert _load_sounddevice(EngineSettings()) is None


def test_load_sounddevice_handles_missing_output(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setitem(sys.modules, "sounddevice", _fake_sounddevice(has_output=False))
    assert _load_sounddevice(EngineSettings()) is None


def test_sounddevice_backend_creates_suspended_device_context(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    fake = _fake_sounddevice()
    monkeypatch.setitem(sys.modules, "sounddevice", fake)

    backend = _load_sounddevice(EngineSettings(sample_rate=48_000, blocksize=128))
    assert backend is not None
    assert backend.name == "sounddevice"

    ctx = backend.create_context()
    assert isinstance(ctx, DeviceAudioContext)
    assert ctx.state == "suspended"
    assert fake.streams == []


def test_device_context_drives_stream() -> None:
    fake = _fake_sounddevice()
    ctx = DeviceAudioContext(fake, sample_rate=8000, blocksize=64, latency="low")

    ctx.resume()
    assert ctx.state == "running"
    (stream,) = fake.streams
    assert stream.kwargs["samplerate"] == 8000
    assert stream.kwargs["blocksize"] == 64
    assert stream.kwargs["channels"] == 1
    assert stream.calls == ["start"]

    outdata = np.ones((64, 1), dtype=np.float32)
    stream.kwargs["callback"](outdata, 64, None, None)
    assert np.allclose(outdata, 0.0)
    assert ctx.current_time == pytest.approx(64 / 8000)

    ctx.close()
    assert ctx.state == "closed"
    assert stream.calls == ["start", "stop", "close"]


def test_device_callback_counts_status_without_logging(caplog: pytest.LogCaptureFixture) -> None:
    fake = _fake_sounddevice()
    ctx = DeviceAudioContext(fake, sample_rate=8000, blocksize=32)
    ctx.resume()
    (stream,) = fake.streams

    with caplog.at_level(logging.DEBUG, logger="tonecue"):
        stream.kwargs["callback"](np.zeros((32, 1), dtype=np.float32), 32, None, "output underflow")
        stream.kwargs["callback"](np.zeros((32, 1), dtype=np.float32), 32, None, None)
        assert caplog.records == []

        ctx.close()

    assert ctx.status_flags == 1
    assert "1 underflow/overflow blocks" in caplog.text
