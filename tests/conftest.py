"""Pytest configuration and fixtures."""
from __future__ import annotations

import logging

import pytest

from musicbox.contracts.note_types import NoteAttributes, TimelineEntry, Track, TrackSet
from musicbox.core.layout import LayoutDescription
from musicbox.core.profile import KeyProfile


def pytest_configure(config):
    """Keep library debug logging out of captured output unless asked for."""
    logging.getLogger("musicbox").setLevel(logging.INFO)


def make_timeline(*notes: tuple) -> list[TimelineEntry]:
    """Build a timeline from ``(value, time)`` or ``(value, time, attrs)`` tuples."""
    entries = []
    for note in notes:
        attrs = NoteAttributes(**note[2]) if len(note) > 2 else NoteAttributes()
        entries.append(TimelineEntry(note[0], note[1], attrs))
    return entries


def values(entries: list[TimelineEntry]) -> list[int]:
    return [e.value for e in entries]


def times(entries: list[TimelineEntry]) -> list[float]:
    return [e.time for e in entries]


@pytest.fixture
def white_key_layout() -> LayoutDescription:
    """One row of eight white keys, C4 (60) to C5 (72)."""
    return LayoutDescription(pitch_range_or_list=("C4", "C5"), rows=1, columns=8)


@pytest.fixture
def white_key_profile(white_key_layout: LayoutDescription) -> KeyProfile:
    """Profile over ``white_key_layout`` with anchors set; keys 0..7 = 60, 62, 64, 65, 67, 69, 71, 72."""
    profile = KeyProfile(white_key_layout)
    profile.set_anchors((0, 0), (700, 100))
    return profile


@pytest.fixture
def chromatic_profile() -> KeyProfile:
    """Profile over the 3x12 chromatic layout (C3..B5, every semitone)."""
    profile = KeyProfile(
        LayoutDescription(
            pitch_range_or_list=("C3", "B5"),
            rows=3,
            columns=12,
            has_semitone=True,
            semitone_width=1,
            semitone_height_offset=0,
        )
    )
    profile.set_anchors((0, 0), (1100, 200))
    return profile


@pytest.fixture
def chord_timeline() -> list[TimelineEntry]:
    """Three chords of three notes at 0, 500 and 1000 ms, onsets spread under 1 ms."""
    return make_timeline(
        (60, 0), (64, 0.4), (67, 0.8),
        (60, 500), (64, 500.4), (67, 500.8),
        (60, 1000), (64, 1000.4), (67, 1000.8),
    )


@pytest.fixture
def two_track_set() -> TrackSet:
    return TrackSet(
        tracks=[
            Track(name="Melody", channel=0, track_index=0, notes=make_timeline((72, 0), (74, 500))),
            Track(name="Bass", channel=1, track_index=1, notes=make_timeline((48, 250), (50, 750))),
        ],
        multi_track=True,
    )
