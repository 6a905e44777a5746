"""Tests for duration passes: fold, split and estimate."""
from __future__ import annotations

from conftest import make_timeline, times, values
from musicbox.contracts.note_types import NO_KEY, NoteAttributes, TimelineEntry
from musicbox.passes import EstimateNoteDurationPass, FoldFrequentSameNotePass, SplitLongNotePass


class TestFoldFrequentSameNotePass:
    """Rapid repeats become one held note."""

    def test_folds_repeats(self) -> None:
        pass_ = FoldFrequentSameNotePass(max_interval=150)
        result = pass_.run(make_timeline((0, 0), (0, 100), (0, 200), (1, 250), (0, 500)))
        assert [(e.value, e.time) for e in result] == [(0, 0), (1, 250), (0, 500)]
        assert result[0].attrs["duration"] == 200
        assert "duration" not in result[2].attrs
        assert pass_.get_statistics() == {"folded_note_count": 2}

    def test_lyrics_are_merged(self) -> None:
        result = FoldFrequentSameNotePass().run(
            make_timeline((0, 0, {"lyric": "la"}), (0, 100, {"lyric": "di"}), (0, 150, {"lyric": "da"}))
        )
        assert len(result) == 1
        assert result[0].attrs["lyric"] == "la\ndi\nda"

    def test_lyric_moves_onto_bare_note(self) -> None:
        result = FoldFrequentSameNotePass().run(make_timeline((0, 0), (0, 100, {"lyric": "oh"})))
        assert result[0].attrs["lyric"] == "oh"

    def test_shared_attributes_are_not_mutated(self) -> None:
        shared = NoteAttributes(velocity=80)
        data = [TimelineEntry(0, 0, shared), TimelineEntry(0, 100), TimelineEntry(1, 300, shared)]
        result = FoldFrequentSameNotePass().run(data)
        assert result[0].attrs["duration"] == 100
        assert result[0].attrs["velocity"] == 80
        assert "duration" not in result[1].attrs

    def test_no_key_is_never_folded(self) -> None:
        result = FoldFrequentSameNotePass().run(make_timeline((NO_KEY, 0), (NO_KEY, 50)))
        assert len(result) == 2


class TestSplitLongNotePass:
    """Held notes become repeated taps."""

    def test_splits_long_note(self) -> None:
        pass_ = SplitLongNotePass(min_duration=500, split_duration=100)
        result = pass_.run(make_timeline((0, 0, {"duration": 500}), (1, 150)))
        assert [(e.value, e.time) for e in result] == [
            (0, 0), (0, 100), (1, 150), (0, 200), (0, 300), (0, 400),
        ]
        assert all(e.attrs["duration"] == 100 for e in result if e.value == 0)
        assert pass_.get_statistics() == {"split_note_count": 1}

    def test_short_and_bare_notes_untouched(self) -> None:
        data = make_timeline((0, 0, {"duration": 499}), (1, 10))
        result = SplitLongNotePass(min_duration=500).run(data)
        assert len(result) == 2
        assert result[0].attrs["duration"] == 499

    def test_taps_do_not_drift(self) -> None:
        result = SplitLongNotePass(min_duration=0, split_duration=0.1).run(make_timeline((0, 1000, {"duration": 1})))
        assert times(result)[-1] == 1000 + 9 * 0.1
        assert len(result) == 10


class TestEstimateNoteDurationPass:
    """Missing durations come from the gap to the next chord."""

    def test_estimates_from_next_chord(self) -> None:
        pass_ = EstimateNoteDurationPass(multiplier=0.75)
        result = pass_.run(make_timeline((0, 0), (1, 0), (2, 400), (3, 1000)))
        assert [e.attrs["duration"] for e in result] == [300, 300, 450, 450]
        assert pass_.get_statistics() == {"estimated_note_count": 4}

    def test_existing_duration_kept(self) -> None:
        result = EstimateNoteDurationPass().run(make_timeline((0, 0, {"duration": 10}), (1, 400)))
        assert result[0].attrs["duration"] == 10
        assert result[1].attrs["duration"] == 300

    def test_single_chord_left_alone(self) -> None:
        pass_ = EstimateNoteDurationPass()
        result = pass_.run(make_timeline((0, 0), (1, 0)))
        assert all("duration" not in e.attrs for e in result)
        assert values(result) == [0, 1]
        assert pass_.get_statistics() == {"estimated_note_count": 0}
