"""MIDI pitch helpers.

Pitch names use scientific notation with C4 = 60.  Parsing accepts the
accidental before or after the octave (``"C#4"``, ``"C4#"``), flats
(``"Db4"``) and a bare letter, which means octave 4 (``"C"`` → 60).
Formatting always produces sharps before the octave (``"C#4"``).
"""
from __future__ import annotations

import re

_NOTE_TO_SEMITONE: dict[str, int] = {
    "C": 0,
    "D": 2,
    "E": 4,
    "F": 5,
    "G": 7,
    "A": 9,
    "B": 11,
}

_SEMITONE_TO_NAME: list[str] = [
    "C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"
]

# Black keys within one octave
_SEMITONE_CLASSES = frozenset({1, 3, 6, 8, 10})

# Key signature implied by a transposition of 0..11 semitones
_TRANSPOSITION_KEYS: list[str] = [
    "Ab", "A", "Bb", "B", "C", "Db", "D", "Eb", "E", "F", "Gb", "G"
]

_DEFAULT_OCTAVE = 4

_NAME_RE = re.compile(r"^([A-Ga-g])([#b]?)(-?\d+)?([#b]?)$")


def name_to_midi_pitch(name: str) -> int:
    """Convert a pitch name such as ``"C4"``, ``"C#4"`` or ``"C4#"`` to a MIDI number.

    Raises:
        ValueError: If ``name`` is not a recognisable pitch name.
    """
    match = _NAME_RE.match(name.strip())
    if match is None:
        raise ValueError(f"Invalid note name: {name!r}")
    letter, leading, octave_str, trailing = match.groups()
    if leading and trailing:
        raise ValueError(f"Invalid note name: {name!r} (two accidentals)")
    octave = int(octave_str) if octave_str is not None else _DEFAULT_OCTAVE
    pitch = _NOTE_TO_SEMITONE[letter.upper()] + 12 * (octave + 1)
    accidental = leading or trailing
    if accidental == "#":
        pitch += 1
    elif accidental == "b":
        pitch -= 1
    return pitch


def midi_pitch_to_name(pitch: int) -> str:
    """Format a MIDI number as ``"C#4"``-style name."""
    octave = pitch // 12 - 1
    return f"{_SEMITONE_TO_NAME[pitch % 12]}{octave}"


def is_semitone(pitch: int) -> bool:
    """True for pitches on black keys."""
    return pitch % 12 in _SEMITONE_CLASSES


def get_transposition_estimated_key(offset: int) -> str:
    """Key signature that a piece in C ends up in after shifting by ``-offset``.

    ``get_transposition_estimated_key(0) == "C"``.
    """
    return _TRANSPOSITION_KEYS[(4 - offset) % 12]


def pitch_value(pitch: str | int) -> int:
    """Accept either a MIDI number or a pitch name."""
    if isinstance(pitch, int):
        return pitch
    return name_to_midi_pitch(pitch)
