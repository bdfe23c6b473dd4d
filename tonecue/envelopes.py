r"""
ADSR envelopes scheduled onto gain parameters.

    level
    peak  |   /\
          |  /  \________
    sus   | /            \
          |/              \
        0 +--+--+--------+--+--> time
          t0 a  d       hold release

The hold ends at ``t0 + duration - release`` and the release lands exactly on
``t0 + duration``, where the source stops. When the sound is shorter than
``attack + decay + release`` all three phases are scaled down by the same
factor so they fit; the plateau then has zero length.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from .config import EnvelopeParams
from .graph import GainNode


@dataclass(frozen=True, slots=True)
class EnvelopePoint:
    time: float
    level: float


def envelope_points(
    envelope: EnvelopeParams,
    start_time: float,
    duration: float,
    peak: float = 1.0,
) -> tuple[EnvelopePoint, ...]:
    """Breakpoints of the amplitude curve, with non-decreasing times."""
    attack, decay, release = envelope.attack, envelope.decay, envelope.release
    total = envelope.minimum_duration
    if total > duration:
        scale = max(duration, 0.0) / total
        attack, decay, release = attack * scale, decay * scale, release * scale
    end_time = start_time + max(duration, 0.0)

    attack_end = start_time + attack
    decay_end = attack_end + decay
    sustain_level = peak * envelope.sustain
    hold_end = max(decay_end, end_time - release)
    release_end = max(hold_end, end_time)
    return (
        EnvelopePoint(start_time, 0.0),
        EnvelopePoint(attack_end, peak),
        EnvelopePoint(decay_end, sustain_level),
        EnvelopePoint(hold_end, sustain_level),
        EnvelopePoint(release_end, 0.0),
    )


def apply_envelope(
    gain: GainNode,
    envelope: EnvelopeParams,
    start_time: float,
    duration: float,
    peak: float = 1.0,
) -> tuple[EnvelopePoint, ...]:
    """Schedule the ADSR curve on ``gain.gain`` and return its breakpoints."""
    start, attack, decay, hold, release = envelope_points(envelope, start_time, duration, peak)
    param = gain.gain
    param.set_value_at_time(start.level, start.time)
    param.linear_ramp_to_value_at_time(attack.level, attack.time)
    param.linear_ramp_to_value_at_time(decay.level, decay.time)
    param.set_value_at_time(hold.level, hold.time)
    param.linear_ramp_to_value_at_time(release.level, release.time)
    return (start, attack, decay, hold, release)


ENVELOPE_PRESETS: Mapping[str, EnvelopeParams] = MappingProxyType(
    {
        # quick pop (letter reveal)
        "pop": EnvelopeParams(attack=0.01, decay=0.05, sustain=0.3, release=0.04),
        # medium sustain for jingles
        "musical": EnvelopeParams(attack=0.05, decay=0.1, sustain=0.7, release=0.3),
        # sharp buzz
        "error": EnvelopeParams(attack=0.01, decay=0.1, sustain=0.5, release=0.15),
        "whoosh": EnvelopeParams(attack=0.02, decay=0.05, sustain=0.6, release=0.1),
        # button and timer ticks
        "click": EnvelopeParams(attack=0.005, decay=0.01, sustain=0.2, release=0.02),
        "fanfare": EnvelopeParams(attack=0.1, decay=0.2, sustain=0.8, release=0.5),
    }
)

_DEFAULT_ENVELOPE = EnvelopeParams(attack=0.01, decay=0.1, sustain=0.7, release=0.1)


def create_envelope(**overrides: float) -> EnvelopeParams:
    """Default envelope with selected phases overridden; validated like any EnvelopeParams."""
    return EnvelopeParams.model_validate({**_DEFAULT_ENVELOPE.model_dump(), **overrides})
