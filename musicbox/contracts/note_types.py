"""Canonical type definitions for timeline entries, tracks and gestures.

This module is the **single source of truth for every named data shape** in
musicbox.  Import from here; do not redefine shapes ad hoc.

## Entity catalog

Timeline types:
  NoteAttributes   — documented per-entry attributes (duration, velocity, lyric, original_time)
  TimelineEntry    — one timestamped pitch or key index with its attributes
  PackedEntry      — a resolved chord: several values sharing one onset
  LyricLine        — one timed lyric line to bind onto the timeline

Track-set input (from the format parsers):
  Track            — one parsed track with its timeline
  TrackMetadata    — free-form name/value pair attached to a track set
  TrackSet         — the complete parsed performance

Gesture output (to the execution engine):
  Position         — absolute or normalized (x, y)
  Gesture          — (delay_ms, duration_ms, position) inside one group
  GestureGroup     — (gestures, start_ms) pressed together
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Literal, NamedTuple

from typing_extensions import TypedDict

NO_KEY = -1
"""Sentinel value: the entry has no playable key (dummy slot)."""

DurationType = Literal["none", "native"]
"""Whether a track set carries real note durations (``native``) or only onsets."""


class NoteAttributes(TypedDict, total=False):
    """Attributes attached to a timeline entry.

    All keys are optional.  ``duration`` and ``original_time`` are in
    milliseconds.  ``lyric`` is the only attribute that survives when the
    note carrying it is folded into another one.
    """

    duration: float
    velocity: int
    lyric: str
    original_time: float


TRANSFERABLE_ATTRIBUTES: tuple[str, ...] = ("lyric",)


@dataclass(eq=True)
class TimelineEntry:
    """A timestamped pitch (before key mapping) or key index (after it).

    The same shape is used for both domains; which one is meant depends on
    the pipeline stage.  ``value == NO_KEY`` marks a slot with nothing to
    press.  Iterating yields the ``(value, time, attrs)`` triple.
    """

    value: int
    time: float
    attrs: NoteAttributes = field(default_factory=lambda: NoteAttributes())

    def __iter__(self) -> Iterator[object]:
        yield self.value
        yield self.time
        yield self.attrs


@dataclass
class PackedEntry:
    """A chord folded into one record: every member value plus its attributes."""

    values: list[int]
    time: float
    attrs: list[NoteAttributes]


@dataclass(frozen=True)
class LyricLine:
    """One lyric line at an absolute time in milliseconds."""

    time: float
    text: str


@dataclass
class Track:
    """One parsed track.  ``channel`` 9 is the percussion channel."""

    name: str = ""
    channel: int = 0
    instrument_id: int = -1
    track_index: int = 0
    notes: list[TimelineEntry] = field(default_factory=list)

    @property
    def note_count(self) -> int:
        return len(self.notes)


@dataclass(frozen=True)
class TrackMetadata:
    """Free-form name/value metadata supplied by a format parser."""

    name: str
    value: object


@dataclass
class TrackSet:
    """The complete parsed performance handed to the pipeline."""

    tracks: list[Track]
    multi_track: bool = False
    duration_type: DurationType = "none"
    metadata: list[TrackMetadata] = field(default_factory=list)

    @property
    def track_count(self) -> int:
        return len(self.tracks)

    @property
    def total_note_count(self) -> int:
        return sum(track.note_count for track in self.tracks)


class Position(NamedTuple):
    """A point in normalized ([0, 1]²) or absolute device coordinates."""

    x: float
    y: float


class Gesture(NamedTuple):
    """One touch inside a gesture group."""

    delay_ms: float
    duration_ms: float
    position: Position


class GestureGroup(NamedTuple):
    """Touches dispatched together, starting at ``start_ms`` on the timeline."""

    gestures: list[Gesture]
    start_ms: float
