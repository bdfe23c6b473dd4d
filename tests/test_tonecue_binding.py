import logging

import pytest
from pydantic import ValidationError

from tonecue.binding import (
    LegacySoundService,
    SettingsSnapshot,
    SoundControls,
    apply_settings,
)
from tonecue.config import EngineSettings
from tonecue.context import AudioBackend, BaseAudioContext, OfflineAudioContext, offline_backend
from tonecue.engine import SoundEngine
from tonecue.storage import MemoryStore


def _engine() -> SoundEngine:
    return SoundEngine(
        MemoryStore(),
        backend=offline_backend(8000),
        settings=EngineSettings(sample_rate=8000),
    )


def test_apply_settings_pushes_volume_and_mute() -> None:
    engine = _engine()

    apply_settings(engine, SettingsSnapshot(sound_enabled=False, effects_volume=35))

    assert engine.get_volume() == pytest.approx(0.35)
    assert engine.is_muted() is True


def test_settings_snapshot_validates_range() -> None:
    with pytest.raises(ValidationError):
        SettingsSnapshot(effects_volume=150)
    assert SettingsSnapshot() == SettingsSnapshot(sound_enabled=True, effects_volume=80)


def test_sound_controls_delegate_to_engine() -> None:
    engine = _engine()
    controls = SoundControls(engine)

    assert not controls.initialized
    assert controls.initialize() is True
    assert controls.initialized

    controls.set_volume(0.25)
    assert controls.volume == pytest.approx(0.25)
    assert controls.toggle_muted() is True
    assert controls.muted is True
    controls.set_muted(False)

    controls.play("correct_answer")
    assert len(engine.last_voices) == 4


def test_sound_controls_report_unavailable_output() -> None:
    def _create() -> BaseAudioContext:
        raise OSError("no device")

    engine = SoundEngine(
        backend=AudioBackend(name="broken", create_context=_create),
        settings=EngineSettings(sample_rate=8000),
    )
    controls = SoundControls(engine)

    assert controls.initialize() is False
    assert not controls.initialized


def test_legacy_service_mirrors_initial_settings() -> None:
    engine = _engine()
    service = LegacySoundService(engine, SettingsSnapshot(sound_enabled=True, effects_volume=50))

    assert engine.get_volume() == pytest.approx(0.5)
    assert service.get_volume() == 50
    assert service.get_enabled() is True


def test_legacy_service_derives_settings_from_engine() -> None:
    service = LegacySoundService(_engine())
    assert service.settings == SettingsSnapshot(sound_enabled=True, effects_volume=70)


def test_legacy_service_reports_changes() -> None:
    engine = _engine()
    changes: list[SettingsSnapshot] = []
    service = LegacySoundService(engine, on_settings_change=changes.append)

    service.set_volume(150)
    service.toggle()

    assert engine.get_volume() == 1.0
    assert engine.is_muted() is True
    assert service.get_enabled() is False
    assert changes == [
        SettingsSnapshot(sound_enabled=True, effects_volume=100),
        SettingsSnapshot(sound_enabled=False, effects_volume=100),
    ]


def test_legacy_sync_does_not_echo_changes() -> None:
    engine = _engine()
    changes: list[SettingsSnapshot] = []
    service = LegacySoundService(engine, on_settings_change=changes.append)

    service.sync(SettingsSnapshot(sound_enabled=False, effects_volume=10))

    assert engine.get_volume() == pytest.approx(0.1)
    assert engine.is_muted() is True
    assert changes == []


@pytest.mark.parametrize(
    ("helper", "voices"),
    [
        ("play_pop", 1),
        ("play_success", 4),
        ("play_error", 1),
        ("play_whoosh", 1),
        ("play_tick", 1),
        ("play_fanfare", 6),
        ("play_click", 1),
    ],
)
def test_legacy_named_helpers(helper: str, voices: int) -> None:
    engine = _engine()
    service = LegacySoundService(engine)

    getattr(service, helper)()

    assert len(engine.last_voices) == voices


def test_legacy_resume_starts_context() -> None:
    engine = _engine()
    service = LegacySoundService(engine)

    service.resume()

    assert isinstance(engine.context, OfflineAudioContext)
    assert engine.context.state == "running"


def test_legacy_unknown_sound_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    engine = _engine()
    service = LegacySoundService(engine)

    with caplog.at_level(logging.ERROR):
        service.play("kazoo")

    assert "Unknown legacy sound" in caplog.text
    assert engine.last_voices == ()
