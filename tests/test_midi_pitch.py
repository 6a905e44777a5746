"""Tests for MIDI pitch name parsing and formatting."""
from __future__ import annotations

import pytest

from musicbox.core.midi_pitch import (
    get_transposition_estimated_key,
    is_semitone,
    midi_pitch_to_name,
    name_to_midi_pitch,
    pitch_value,
)


class TestNameToMidiPitch:
    """name_to_midi_pitch."""

    def test_naturals(self) -> None:
        assert name_to_midi_pitch("C4") == 60
        assert name_to_midi_pitch("A0") == 21
        assert name_to_midi_pitch("C8") == 108
        assert name_to_midi_pitch("B5") == 83

    def test_accidental_before_or_after_octave(self) -> None:
        assert name_to_midi_pitch("C#4") == 61
        assert name_to_midi_pitch("C4#") == 61

    def test_flats(self) -> None:
        assert name_to_midi_pitch("Db4") == 61
        assert name_to_midi_pitch("Cb4") == 59

    def test_bare_letter_is_octave_four(self) -> None:
        assert name_to_midi_pitch("C") == 60
        assert name_to_midi_pitch("a") == 69

    def test_negative_octave(self) -> None:
        assert name_to_midi_pitch("C-1") == 0

    @pytest.mark.parametrize("name", ["", "H4", "C##4", "C#4#", "4C", "C 4 x"])
    def test_invalid_names(self, name: str) -> None:
        with pytest.raises(ValueError):
            name_to_midi_pitch(name)


class TestMidiPitchToName:
    """midi_pitch_to_name."""

    def test_formats_sharps(self) -> None:
        assert midi_pitch_to_name(60) == "C4"
        assert midi_pitch_to_name(61) == "C#4"
        assert midi_pitch_to_name(21) == "A0"

    def test_parses_back(self) -> None:
        for pitch in range(0, 128):
            assert name_to_midi_pitch(midi_pitch_to_name(pitch)) == pitch


class TestHelpers:
    """is_semitone, pitch_value and the transposition key."""

    def test_is_semitone(self) -> None:
        assert [p for p in range(60, 72) if is_semitone(p)] == [61, 63, 66, 68, 70]

    def test_pitch_value_accepts_both(self) -> None:
        assert pitch_value(64) == 64
        assert pitch_value("E4") == 64

    def test_transposition_key(self) -> None:
        assert get_transposition_estimated_key(0) == "C"
        assert get_transposition_estimated_key(1) == "B"
        assert get_transposition_estimated_key(-1) == "Db"
        assert get_transposition_estimated_key(12) == "C"
