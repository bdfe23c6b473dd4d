from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Literal, TypeGuard, get_args

from .config import FilterSpec, Note, SoundRecipe
from .envelopes import ENVELOPE_PRESETS
from .errors import CatalogMissError
from .primitives import NOTE_FREQUENCIES as N

SoundEventId = Literal[
    "letter_reveal",
    "correct_answer",
    "wrong_answer",
    "skip",
    "time_warning",
    "win",
    "button_click",
]
SOUND_EVENT_IDS: tuple[SoundEventId, ...] = get_args(SoundEventId)


SOUND_CATALOG: Mapping[SoundEventId, SoundRecipe] = MappingProxyType(
    {
        "letter_reveal": SoundRecipe(
            waveform="sine",
            tone=440.0,
            duration=0.1,
            envelope=ENVELOPE_PRESETS["pop"],
            description="Quick pop when revealing a letter",
        ),
        # C major arpeggio
        "correct_answer": SoundRecipe(
            waveform="square",
            tone=(
                Note(frequency=N["C5"], duration=0.25, delay=0.0),
                Note(frequency=N["E5"], duration=0.25, delay=0.2),
                Note(frequency=N["G5"], duration=0.25, delay=0.4),
                Note(frequency=N["C6"], duration=0.3, delay=0.6),
            ),
            duration=1.0,
            envelope=ENVELOPE_PRESETS["musical"],
            description="Musical jingle for correct answers",
        ),
        "wrong_answer": SoundRecipe(
            waveform="sawtooth",
            tone=200.0,
            duration=0.3,
            envelope=ENVELOPE_PRESETS["error"],
            description="Error buzz for wrong answers",
        ),
        "skip": SoundRecipe(
            duration=0.2,
            envelope=ENVELOPE_PRESETS["whoosh"],
            uses_noise=True,
            filter=FilterSpec(
                kind="lowpass",
                start_frequency=2000.0,
                end_frequency=200.0,
                resonance=1.0,
            ),
            description="Whoosh when skipping a word",
        ),
        # ticks once a second during the last ten seconds
        "time_warning": SoundRecipe(
            waveform="square",
            tone=880.0,
            duration=0.05,
            envelope=ENVELOPE_PRESETS["click"],
            description="Tick during the final seconds",
        ),
        "win": SoundRecipe(
            waveform="triangle",
            tone=(
                Note(frequency=N["C4"], duration=0.25, delay=0.0),
                Note(frequency=N["E4"], duration=0.25, delay=0.2),
                Note(frequency=N["G4"], duration=0.25, delay=0.4),
                Note(frequency=N["C5"], duration=0.25, delay=0.6),
                Note(frequency=N["E5"], duration=0.25, delay=0.8),
                Note(frequency=N["G5"], duration=0.5, delay=1.0),
            ),
            duration=1.5,
            envelope=ENVELOPE_PRESETS["fanfare"],
            description="Triumphant fanfare when winning",
        ),
        "button_click": SoundRecipe(
            waveform="sine",
            tone=1000.0,
            duration=0.05,
            envelope=ENVELOPE_PRESETS["click"],
            description="Click feedback for buttons",
        ),
    }
)

assert set(SOUND_CATALOG) == set(SOUND_EVENT_IDS), "catalog must cover every sound event"


def is_sound_event(value: object) -> TypeGuard[SoundEventId]:
    return isinstance(value, str) and value in SOUND_CATALOG


def get_recipe(event_id: str) -> SoundRecipe:
    if not is_sound_event(event_id):
        raise CatalogMissError(
            f"Unknown sound event: {event_id!r}. Valid: {list(SOUND_EVENT_IDS)}"
        )
    return SOUND_CATALOG[event_id]
