"""Note timeline utilities.

A timeline is a ``list[TimelineEntry]`` sorted ascending by ``time`` whenever
it is handed from one pass to the next.  Helpers here cover:

- ``to_relative_time`` / ``to_absolute_time`` — in-place conversion between
  absolute onsets and successive differences.
- ``TimelineEdit`` — staged soft-delete / soft-retime addressed by entry
  index, committed in one pass followed by a single re-sort.
- Chord queries — ``next_chord_start``, ``chord_iterator``, ``pack_notes``
  and the binary search ``find_chord_start_at_time``.

A chord is a maximal run of entries whose onsets lie less than
``CHORD_EPSILON_MS`` after the first member.
"""
from __future__ import annotations

import copy
import logging
from typing import Iterator, Sequence

from musicbox.contracts.note_types import (
    TRANSFERABLE_ATTRIBUTES,
    NoteAttributes,
    PackedEntry,
    TimelineEntry,
)

logger = logging.getLogger(__name__)

CHORD_EPSILON_MS = 1.0


# ---------------------------------------------------------------------------
# Time representation
# ---------------------------------------------------------------------------


def to_relative_time(entries: list[TimelineEntry]) -> list[TimelineEntry]:
    """Replace every onset with the difference to the previous onset (in place)."""
    last_time = 0.0
    for entry in entries:
        absolute = entry.time
        entry.time = absolute - last_time
        last_time = absolute
    return entries


def to_absolute_time(entries: list[TimelineEntry]) -> list[TimelineEntry]:
    """Inverse of :func:`to_relative_time`: cumulative sum of the gaps (in place)."""
    current = 0.0
    for entry in entries:
        current += entry.time
        entry.time = current
    return entries


def sort_by_time(entries: list[TimelineEntry]) -> list[TimelineEntry]:
    """Stable in-place sort by onset; simultaneous entries keep their order."""
    entries.sort(key=lambda entry: entry.time)
    return entries


def clone_timeline(entries: Sequence[TimelineEntry]) -> list[TimelineEntry]:
    """Deep copy, so trial runs can mutate freely."""
    return copy.deepcopy(list(entries))


# ---------------------------------------------------------------------------
# Staged mutation
# ---------------------------------------------------------------------------


class TimelineEdit:
    """A batch of soft deletions and retimings against one timeline.

    Entries are addressed by their index at staging time.  Nothing moves
    until :meth:`commit`, so indices stay valid while a pass is still
    scanning; the pass must consult :meth:`is_deleted` to keep staged
    deletions out of its own queries.
    """

    def __init__(self, entries: list[TimelineEntry]) -> None:
        self.entries = entries
        self._deleted: set[int] = set()
        self._new_times: dict[int, float] = {}

    def soft_delete(self, index: int) -> None:
        self._deleted.add(index)

    def soft_change_time(self, index: int, time: float) -> None:
        self._new_times[index] = time

    def is_deleted(self, index: int) -> bool:
        return index in self._deleted

    @property
    def pending(self) -> bool:
        return bool(self._deleted or self._new_times)

    @property
    def deleted_count(self) -> int:
        return len(self._deleted)

    def commit(self) -> list[TimelineEntry]:
        """Drop deleted entries, promote staged times, then re-sort once.

        The underlying list is updated in place and returned.  Committing an
        edit with nothing staged only re-sorts, which leaves an already
        sorted timeline untouched.
        """
        kept: list[TimelineEntry] = []
        for index, entry in enumerate(self.entries):
            if index in self._deleted:
                continue
            new_time = self._new_times.get(index)
            if new_time is not None:
                entry.time = new_time
            kept.append(entry)
        self.entries[:] = kept
        self._deleted.clear()
        self._new_times.clear()
        return sort_by_time(self.entries)


def apply_changes(edit: TimelineEdit) -> list[TimelineEntry]:
    """Commit ``edit``; calling it again on the same edit is a no-op."""
    return edit.commit()


# ---------------------------------------------------------------------------
# Chord queries
# ---------------------------------------------------------------------------


def next_chord_start(entries: Sequence[TimelineEntry], index: int) -> int:
    """Return the index of the first entry after the chord starting at ``index``.

    An entry exactly ``CHORD_EPSILON_MS`` after the first member starts a
    new chord.
    """
    threshold = entries[index].time + CHORD_EPSILON_MS
    while index < len(entries) and entries[index].time < threshold:
        index += 1
    return index


def chord_ranges(entries: Sequence[TimelineEntry], start: int = 0) -> Iterator[tuple[int, int]]:
    """Yield ``(start, end)`` half-open index ranges, one per chord from ``start``."""
    index = start
    while index < len(entries):
        next_index = next_chord_start(entries, index)
        yield index, next_index
        index = next_index


def chord_iterator(entries: Sequence[TimelineEntry]) -> Iterator[list[TimelineEntry]]:
    """Lazily yield each chord as a list of the (shared, mutable) member entries."""
    for start, end in chord_ranges(entries):
        yield list(entries[start:end])


def pack_notes(entries: Sequence[TimelineEntry]) -> list[PackedEntry]:
    """Fold every chord into a :class:`PackedEntry`.

    A ``lyric`` carried by any member is copied onto the first member's
    attributes so it is shown once the chord is pressed.
    """
    packed: list[PackedEntry] = []
    for chord in chord_iterator(entries):
        values: list[int] = []
        attributes: list[NoteAttributes] = []
        for entry in chord:
            values.append(entry.value)
            attributes.append(entry.attrs)
            lyric = entry.attrs.get("lyric")
            if lyric is not None:
                attributes[0]["lyric"] = lyric
        packed.append(PackedEntry(values=values, time=chord[0].time, attrs=attributes))
    return packed


def _walk_to_chord_start(entries: Sequence[TimelineEntry], index: int) -> int:
    """Start of the chord ``chord_ranges`` puts ``entries[index]`` in."""
    # A gap of at least CHORD_EPSILON_MS between neighbours is always a chord boundary
    run_start = index
    while run_start > 0 and entries[run_start].time - entries[run_start - 1].time < CHORD_EPSILON_MS:
        run_start -= 1
    for start, end in chord_ranges(entries, run_start):
        if index < end:
            return start
    return index


def find_chord_start_at_time(entries: Sequence[TimelineEntry], time_ms: float) -> int:
    """Return the first index of the chord nearest ``time_ms``.

    Binary search for an exact onset; on a miss the two neighbours of the
    insertion point are compared and the earlier one wins ties.  Times
    before the first chord resolve to 0, times after the last chord
    resolve to the start of the last chord.

    Raises:
        ValueError: If ``entries`` is empty.
    """
    if not entries:
        raise ValueError("Cannot search an empty timeline")

    left, right = 0, len(entries) - 1
    while left <= right:
        mid = (left + right) // 2
        mid_time = entries[mid].time
        if mid_time == time_ms:
            return _walk_to_chord_start(entries, mid)
        if mid_time < time_ms:
            left = mid + 1
        else:
            right = mid - 1

    # ``left`` is now the insertion point
    if left >= len(entries):
        return _walk_to_chord_start(entries, len(entries) - 1)
    if left == 0:
        return 0
    if abs(entries[left - 1].time - time_ms) <= abs(entries[left].time - time_ms):
        left -= 1
    return _walk_to_chord_start(entries, left)


def get_transferable_attributes(entry: TimelineEntry) -> NoteAttributes | None:
    """Attributes that must move to a replacement when ``entry`` is removed.

    Returns ``None`` when the entry carries none of them.
    """
    transferable = NoteAttributes()
    for key in TRANSFERABLE_ATTRIBUTES:
        if key in entry.attrs:
            transferable[key] = entry.attrs[key]  # type: ignore[literal-required]
    if not transferable:
        return None
    return transferable
