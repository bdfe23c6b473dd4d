import pytest
from pydantic import ValidationError

from tonecue.catalog import (
    SOUND_CATALOG,
    SOUND_EVENT_IDS,
    get_recipe,
    is_sound_event,
)
from tonecue.config import FilterSpec, Note, SoundRecipe
from tonecue.envelopes import ENVELOPE_PRESETS
from tonecue.errors import CatalogMissError


@pytest.mark.parametrize("event_id", SOUND_EVENT_IDS)
def test_every_event_has_a_valid_recipe(event_id: str) -> None:
    recipe = get_recipe(event_id)

    assert recipe.duration > 0
    assert 0.0 <= recipe.envelope.sustain <= 1.0
    if recipe.uses_noise:
        assert recipe.filter is not None
    assert recipe.description


def test_catalog_is_total() -> None:
    assert set(SOUND_CATALOG) == set(SOUND_EVENT_IDS)
    assert len(SOUND_EVENT_IDS) == 7


def test_unknown_event_raises_catalog_miss() -> None:
    with pytest.raises(CatalogMissError) as excinfo:
        get_recipe("fireworks")
    assert isinstance(excinfo.value, KeyError)
    assert "fireworks" in str(excinfo.value)
    assert not is_sound_event("fireworks")
    assert is_sound_event("skip")


def test_correct_answer_is_a_c_major_arpeggio() -> None:
    recipe = get_recipe("correct_answer")

    assert recipe.waveform == "square"
    assert recipe.is_melody
    assert [note.frequency for note in recipe.notes] == pytest.approx(
        [523.25, 659.25, 783.99, 1046.50]
    )
    assert [note.delay for note in recipe.notes] == pytest.approx([0.0, 0.2, 0.4, 0.6])
    assert [note.duration for note in recipe.notes] == pytest.approx([0.25, 0.25, 0.25, 0.3])


def test_skip_is_a_falling_noise_sweep() -> None:
    recipe = get_recipe("skip")

    assert recipe.uses_noise
    assert recipe.filter == FilterSpec(
        kind="lowpass", start_frequency=2000.0, end_frequency=200.0, resonance=1.0
    )
    assert recipe.filter.sweeps
    assert recipe.duration == pytest.approx(0.2)


def test_noise_recipe_requires_filter() -> None:
    with pytest.raises(ValidationError):
        SoundRecipe(duration=0.2, envelope=ENVELOPE_PRESETS["whoosh"], uses_noise=True)


def test_tone_recipe_rejects_filter_and_missing_tone() -> None:
    envelope = ENVELOPE_PRESETS["pop"]
    with pytest.raises(ValidationError):
        SoundRecipe(
            tone=440.0,
            duration=0.1,
            envelope=envelope,
            filter=FilterSpec(kind="lowpass", start_frequency=1000.0),
        )
    with pytest.raises(ValidationError):
        SoundRecipe(duration=0.1, envelope=envelope)
    with pytest.raises(ValidationError):
        SoundRecipe(tone=(), duration=0.1, envelope=envelope)


def test_note_rejects_non_positive_frequency() -> None:
    with pytest.raises(ValidationError):
        Note(frequency=0.0, duration=0.1)
