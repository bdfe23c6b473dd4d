from pathlib import Path

import numpy as np
import pytest
import soundfile as sf

from tonecue.audio import ensure_audio_contract, seconds_to_frames, write_wav
from tonecue.errors import InvalidConfigError


def test_write_wav_accepts_sequence(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "seq.wav"
    samples = [0.0, 0.1, -0.1, 0.0]

    write_wav(target, samples, sample_rate=22_050)

    data, sample_rate = sf.read(target, dtype="float32")
    assert sample_rate == 22_050
    assert np.allclose(data, samples)


def test_write_wav_rejects_text_and_stereo(tmp_path: Path) -> None:
    with pytest.raises(InvalidConfigError):
        write_wav(tmp_path / "bad.wav", "0.1, 0.2")  # type: ignore[arg-type]
    with pytest.raises(InvalidConfigError):
        write_wav(tmp_path / "bad.wav", np.zeros((4, 2)))


def test_ensure_audio_contract_normalizes_peak() -> None:
    out = ensure_audio_contract(np.array([2.0, -1.0], dtype=np.float64))
    assert out.dtype == np.float32
    assert np.allclose(out, [1.0, -0.5])


def test_ensure_audio_contract_skip_peak() -> None:
    audio = np.array([2.0, -2.0], dtype=np.float32)
    out = ensure_audio_contract(audio, check_peak=False)
    assert np.allclose(out, audio)


def test_seconds_to_frames() -> None:
    assert seconds_to_frames(0.5, 44_100) == 22_050
    assert seconds_to_frames(-1.0, 44_100) == 0
