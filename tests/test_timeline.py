"""Tests for timeline helpers: time conversion, staged edits and chord queries."""
from __future__ import annotations

import pytest

from conftest import make_timeline, times, values
from musicbox.contracts.note_types import NoteAttributes, TimelineEntry
from musicbox.core.timeline import (
    TimelineEdit,
    apply_changes,
    chord_iterator,
    chord_ranges,
    clone_timeline,
    find_chord_start_at_time,
    get_transferable_attributes,
    next_chord_start,
    pack_notes,
    sort_by_time,
    to_absolute_time,
    to_relative_time,
)

REFERENCE = (
    (60, 0), (62, 0), (64, 0),
    (65, 500), (67, 500),
    (69, 1000),
    (71, 1500), (72, 1500),
    (74, 2000),
)


class TestRelativeTime:
    """to_relative_time / to_absolute_time."""

    def test_relative_holds_differences(self) -> None:
        entries = to_relative_time(make_timeline((60, 100), (62, 250), (64, 250), (65, 900)))
        assert times(entries) == [100, 150, 0, 650]

    def test_round_trip(self) -> None:
        """Absolute → relative → absolute restores every onset."""
        original = [0.0, 12.5, 12.5, 40.25, 1000.0, 1000.75]
        entries = make_timeline(*((60 + i, t) for i, t in enumerate(original)))
        to_absolute_time(to_relative_time(entries))
        assert times(entries) == pytest.approx(original)

    def test_empty_timeline(self) -> None:
        assert to_relative_time([]) == []
        assert to_absolute_time([]) == []


class TestSortAndClone:
    """sort_by_time is stable; clone_timeline is deep."""

    def test_stable_sort(self) -> None:
        entries = make_timeline((67, 10), (60, 0), (64, 10), (62, 0))
        sort_by_time(entries)
        assert values(entries) == [60, 62, 67, 64]

    def test_entry_unpacks_as_triple(self) -> None:
        value, time, attrs = TimelineEntry(60, 5.0, NoteAttributes(velocity=1))
        assert (value, time, attrs) == (60, 5.0, {"velocity": 1})

    def test_clone_does_not_share_attributes(self) -> None:
        entries = make_timeline((60, 0, {"duration": 100}))
        copied = clone_timeline(entries)
        copied[0].attrs["duration"] = 5
        copied[0].time = 99
        assert entries[0].attrs["duration"] == 100
        assert entries[0].time == 0


class TestTimelineEdit:
    """Staged soft deletion and retiming."""

    def test_nothing_moves_before_commit(self) -> None:
        entries = make_timeline((60, 0), (62, 100), (64, 200))
        edit = TimelineEdit(entries)
        edit.soft_delete(1)
        edit.soft_change_time(2, 50)
        assert len(entries) == 3
        assert entries[2].time == 200
        assert edit.is_deleted(1)
        assert edit.pending
        assert edit.deleted_count == 1

    def test_commit_filters_promotes_and_sorts(self) -> None:
        entries = make_timeline((60, 0), (62, 100), (64, 200))
        edit = TimelineEdit(entries)
        edit.soft_delete(1)
        edit.soft_change_time(2, -5)
        result = edit.commit()
        assert result is entries
        assert values(entries) == [64, 60]
        assert times(entries) == [-5, 0]
        assert not edit.pending

    def test_apply_changes_is_idempotent(self) -> None:
        entries = make_timeline((60, 0), (62, 100), (64, 200))
        edit = TimelineEdit(entries)
        edit.soft_delete(0)
        once = [(e.value, e.time) for e in apply_changes(edit)]
        twice = [(e.value, e.time) for e in apply_changes(edit)]
        assert once == twice == [(62, 100), (64, 200)]


class TestChordQueries:
    """Chord detection uses a 1 ms window from the first member."""

    def test_next_chord_start(self, chord_timeline: list[TimelineEntry]) -> None:
        assert next_chord_start(chord_timeline, 0) == 3
        assert next_chord_start(chord_timeline, 6) == 9

    def test_members_exactly_one_ms_apart_are_separate(self) -> None:
        entries = make_timeline((60, 0), (62, 0.99), (64, 1.0))
        assert list(chord_ranges(entries)) == [(0, 2), (2, 3)]

    def test_chord_iterator(self, chord_timeline: list[TimelineEntry]) -> None:
        chords = list(chord_iterator(chord_timeline))
        assert len(chords) == 3
        assert [values(c) for c in chords] == [[60, 64, 67]] * 3
        assert chords[1][0] is chord_timeline[3]

    def test_pack_notes_moves_lyric_to_first_member(self) -> None:
        entries = make_timeline((60, 0), (64, 0, {"lyric": "la"}), (67, 500))
        packed = pack_notes(entries)
        assert len(packed) == 2
        assert packed[0].values == [60, 64]
        assert packed[0].time == 0
        assert packed[0].attrs[0]["lyric"] == "la"
        assert packed[1].values == [67]


class TestFindChordStartAtTime:
    """Binary search onto the nearest chord start."""

    @pytest.fixture
    def reference(self) -> list[TimelineEntry]:
        return make_timeline(*REFERENCE)

    @pytest.mark.parametrize(
        "time_ms, expected",
        [
            (0, 0),
            (500, 3),
            (1000, 5),
            (200, 0),
            (300, 3),
            (1501, 6),
            (3000, 8),
            (-100, 0),
        ],
    )
    def test_reference_lookups(self, reference: list[TimelineEntry], time_ms: float, expected: int) -> None:
        assert find_chord_start_at_time(reference, time_ms) == expected

    def test_tie_prefers_earlier_chord(self, reference: list[TimelineEntry]) -> None:
        assert find_chord_start_at_time(reference, 250) == 0

    def test_agrees_with_chord_ranges_on_the_boundary(self) -> None:
        """An onset exactly 1 ms after a chord's first member resolves to its own chord."""
        entries = make_timeline((60, 0), (62, 0.99), (64, 1.0))
        assert find_chord_start_at_time(entries, 1.0) == 2
        assert find_chord_start_at_time(entries, 0.99) == 0

    def test_chained_close_onsets_split_like_chord_ranges(self) -> None:
        """Neighbours under 1 ms apart still split where the first member's window ends."""
        entries = make_timeline((60, 0), (62, 0.6), (64, 1.2), (65, 1.8))
        assert list(chord_ranges(entries)) == [(0, 2), (2, 4)]
        assert find_chord_start_at_time(entries, 1.8) == 2
        assert find_chord_start_at_time(entries, 0.6) == 0
        assert find_chord_start_at_time(entries, 50) == 2

    def test_single_entry(self) -> None:
        assert find_chord_start_at_time(make_timeline((60, 100)), 5000) == 0

    def test_empty_raises(self) -> None:
        with pytest.raises(ValueError):
            find_chord_start_at_time([], 0)


class TestTransferableAttributes:
    """Only lyrics move to a replacement entry."""

    def test_lyric_is_transferable(self) -> None:
        entry = TimelineEntry(60, 0, NoteAttributes(lyric="hey", duration=100))
        assert get_transferable_attributes(entry) == {"lyric": "hey"}

    def test_none_when_nothing_to_transfer(self) -> None:
        entry = TimelineEntry(60, 0, NoteAttributes(duration=100, velocity=90))
        assert get_transferable_attributes(entry) is None
