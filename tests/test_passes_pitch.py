"""Tests for pitch passes: offset, legalization, key mapping and offset inference."""
from __future__ import annotations

import pytest

from conftest import make_timeline, values
from musicbox.core.errors import ConversionError
from musicbox.core.layout import LayoutDescription
from musicbox.core.profile import KeyProfile
from musicbox.passes import (
    InferBestPitchOffsetPass,
    LegalizeTargetNoteRangePass,
    NoteToKeyPass,
    PitchOffsetPass,
    SemitoneRoundingMode,
)


def _legalize(profile: KeyProfile, mode: SemitoneRoundingMode = SemitoneRoundingMode.FLOOR, **kwargs) -> LegalizeTargetNoteRangePass:
    return LegalizeTargetNoteRangePass(profile=profile, semitone_rounding_mode=mode, **kwargs)


class TestPitchOffsetPass:
    """PitchOffsetPass."""

    def test_adds_offset(self) -> None:
        result = PitchOffsetPass(offset=-12).run(make_timeline((60, 0), (72, 10)))
        assert values(result) == [48, 60]


class TestLegalizeOutOfRange:
    """Octave wrapping and out-of-range drops."""

    def test_wrap_lower_boundary(self, white_key_profile: KeyProfile) -> None:
        """47 is more than an octave below 60 and is dropped; 55 moves up one octave."""
        pass_ = _legalize(white_key_profile, wrap_lower_octave=1)
        result = pass_.run(make_timeline((47, 0), (55, 100)))
        assert values(result) == [67]
        stats = pass_.get_statistics()
        assert stats["underflowed_note_count"] == 1
        assert stats["wrapped_lower_note_count"] == 1

    def test_no_wrap_drops_everything_outside(self, white_key_profile: KeyProfile) -> None:
        pass_ = _legalize(white_key_profile)
        result = pass_.run(make_timeline((59, 0), (60, 10), (72, 20), (74, 30)))
        assert values(result) == [60, 72]
        stats = pass_.get_statistics()
        assert stats["underflowed_note_count"] == 1
        assert stats["overflowed_note_count"] == 1

    def test_wrap_higher_then_round(self, white_key_profile: KeyProfile) -> None:
        """80 wraps down to 68 (G#4), which floors to 67."""
        pass_ = _legalize(white_key_profile, wrap_higher_octave=1)
        result = pass_.run(make_timeline((80, 0), (85, 10)))
        assert values(result) == [67]
        stats = pass_.get_statistics()
        assert stats["wrapped_higher_note_count"] == 1
        assert stats["overflowed_note_count"] == 1
        assert stats["rounded_note_count"] == 1


class TestSemitoneRounding:
    """In-range pitches without a key follow the rounding mode."""

    @pytest.mark.parametrize(
        "mode, expected",
        [
            (SemitoneRoundingMode.FLOOR, [60, 62]),
            (SemitoneRoundingMode.CEIL, [62, 64]),
            (SemitoneRoundingMode.DROP, []),
            (SemitoneRoundingMode.NONE, [61, 63]),
            (SemitoneRoundingMode.BOTH, [60, 62, 62, 64]),
        ],
    )
    def test_modes(self, white_key_profile: KeyProfile, mode: SemitoneRoundingMode, expected: list[int]) -> None:
        result = _legalize(white_key_profile, mode).run(make_timeline((61, 0), (63, 100)))
        assert values(result) == expected

    def test_both_copies_attributes(self, white_key_profile: KeyProfile) -> None:
        result = _legalize(white_key_profile, SemitoneRoundingMode.BOTH).run(
            make_timeline((61, 0, {"velocity": 90}))
        )
        assert [e.time for e in result] == [0, 0]
        assert result[1].attrs == {"velocity": 90}
        assert result[1].attrs is not result[0].attrs

    def test_alternating(self, white_key_profile: KeyProfile) -> None:
        result = _legalize(white_key_profile, SemitoneRoundingMode.ALTERNATING).run(
            make_timeline((61, 0), (63, 100), (66, 200))
        )
        assert values(result) == [60, 64, 65]

    def test_alternating_restarts_each_run(self, white_key_profile: KeyProfile) -> None:
        pass_ = _legalize(white_key_profile, SemitoneRoundingMode.ALTERNATING)
        first = values(pass_.run(make_timeline((61, 0), (63, 100), (66, 200))))
        second = values(pass_.run(make_timeline((61, 0), (63, 100), (66, 200))))
        assert first == second

    def test_rounded_count_is_per_note(self, white_key_profile: KeyProfile) -> None:
        pass_ = _legalize(white_key_profile, SemitoneRoundingMode.BOTH)
        pass_.run(make_timeline((61, 0), (63, 100)))
        assert pass_.get_statistics()["rounded_note_count"] == 2

    def test_unplayable_neighbour_is_dropped(self) -> None:
        profile = KeyProfile(LayoutDescription(pitch_range_or_list=(60, 64, 67), rows=1, columns=3))
        pass_ = _legalize(profile)
        result = pass_.run(make_timeline((62, 0), (65, 100)))
        assert values(result) == [64]
        assert pass_.get_statistics()["dropped_semitone_count"] == 1


class TestNoteToKeyPass:
    """Pitches become 0-based key indices."""

    def test_maps_pitches(self, white_key_profile: KeyProfile) -> None:
        data = make_timeline((60, 0, {"lyric": "a"}), (72, 10), (65, 20))
        result = NoteToKeyPass(profile=white_key_profile).run(data)
        assert values(result) == [0, 7, 3]
        assert result[0].attrs is data[0].attrs

    def test_unplayable_pitch_raises(self, white_key_profile: KeyProfile) -> None:
        with pytest.raises(ConversionError) as exc_info:
            NoteToKeyPass(profile=white_key_profile).run(make_timeline((61, 0)))
        assert exc_info.value.pitch == 61


class TestInferBestPitchOffsetPass:
    """Greedy search over octave and semitone offsets."""

    def test_finds_octave(self, white_key_profile: KeyProfile) -> None:
        data = make_timeline((36, 0), (38, 100), (40, 200))
        pass_ = InferBestPitchOffsetPass(profile=white_key_profile)
        result = pass_.run(data)
        assert result is data
        assert values(data) == [36, 38, 40]
        assert pass_.best_pitch_offset == 24
        stats = pass_.get_statistics()
        assert stats["best_octave_offset"] == 2
        assert stats["best_semitone_offset"] == 0
        assert stats["best_underflowed_note_count"] == 0
        assert stats["estimated_key"] == "C"

    def test_finds_semitone(self, white_key_profile: KeyProfile) -> None:
        data = make_timeline((61, 0), (63, 100), (66, 200), (68, 300), (70, 400))
        pass_ = InferBestPitchOffsetPass(profile=white_key_profile)
        pass_.run(data)
        assert pass_.best_octave_offset == 0
        assert pass_.best_semitone_offset == 1
        assert pass_.best_pitch_offset == 1
        assert pass_.get_statistics()["best_rounded_note_count"] == 0
        assert pass_.get_statistics()["estimated_key"] == "B"

    def test_reports_progress(self, white_key_profile: KeyProfile) -> None:
        percents: list[float] = []
        InferBestPitchOffsetPass(profile=white_key_profile).run(
            make_timeline((60, 0)), lambda percent, _: percents.append(percent)
        )
        assert len(percents) == 22
        assert percents == sorted(percents)
        assert percents[-1] < 100
