"""Density passes: keep the key stream within what the input layer can play.

Provides:

- ``SingleKeyFrequencyLimitPass`` — drop repeats of one key that come too fast.
- ``MergeKeyPass`` — snap near-simultaneous keys onto one onset.
- ``ChordNoteCountLimitPass`` — cap the number of keys pressed at once.
- ``NoteFrequencySoftLimitPass`` — smoothly slow down bursts of notes.

All of these expect an absolute-time timeline sorted by onset and return it
sorted again.  ``NO_KEY`` entries never match another entry.
"""
from __future__ import annotations

import logging
import math
from typing import Literal, Optional

from pydantic import Field

from musicbox.config import settings
from musicbox.contracts.note_types import NO_KEY, TimelineEntry
from musicbox.core.errors import ProcessingError
from musicbox.core.prng import HashPRNG, shuffle
from musicbox.core.timeline import TimelineEdit, chord_ranges
from musicbox.passes.base import Pass, PassConfig, ProgressCallback

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Same-key repeat limit
# ---------------------------------------------------------------------------


class SingleKeyFrequencyLimitConfig(PassConfig):
    min_interval: float = Field(ge=0)


class SingleKeyFrequencyLimitPass(Pass):
    """Drop every later press of a key that follows an earlier one within ``min_interval`` ms.

    Dropped entries no longer count as anchors, and the scan for each anchor
    stops at the first entry more than ``min_interval`` after it.
    """

    name = "SingleKeyFrequencyLimitPass"
    description = "Limit the repeat rate of a single key"
    config_class = SingleKeyFrequencyLimitConfig

    def run(self, data: list[TimelineEntry], progress_callback: Optional[ProgressCallback] = None) -> list[TimelineEntry]:
        self._statistics = {"dropped_note_count": 0}
        min_interval = self.config.min_interval
        edit = TimelineEdit(data)
        total = len(data)

        for i, note in enumerate(data):
            if i % 10 == 0:
                self._report(progress_callback, 100 * i / total)
            if note.value == NO_KEY or edit.is_deleted(i):
                continue
            for j in range(i + 1, total):
                if edit.is_deleted(j):
                    continue
                following = data[j]
                gap = following.time - note.time
                if following.value == note.value and gap < min_interval:
                    edit.soft_delete(j)
                    continue
                if gap > min_interval:
                    break

        self._statistics["dropped_note_count"] = edit.deleted_count
        if edit.pending:
            edit.commit()
        self._log_statistics()
        return data


# ---------------------------------------------------------------------------
# Batch merge
# ---------------------------------------------------------------------------


class MergeKeyConfig(PassConfig):
    max_interval: float = Field(ge=0)
    max_batch_size: int = Field(default=19, ge=1)


class MergeKeyPass(Pass):
    """Merge keys pressed close together into one chord.

    A batch opens at the first note not yet merged.  Following notes less
    than ``max_interval`` ms after the batch onset join it (and take its
    onset) until the batch holds ``max_batch_size`` notes.  A key already in
    the batch is dropped instead.

    Raises:
        ProcessingError: If the timeline is empty.
    """

    name = "MergeKeyPass"
    description = "Merge adjacent keys"
    config_class = MergeKeyConfig

    def run(self, data: list[TimelineEntry], progress_callback: Optional[ProgressCallback] = None) -> list[TimelineEntry]:
        self._statistics = {"dropped_same_key_count": 0}
        if not data:
            raise ProcessingError("MergeKeyPass needs at least one note")

        max_interval = self.config.max_interval
        max_batch_size = self.config.max_batch_size
        edit = TimelineEdit(data)

        batch_time = data[0].time
        batch_keys = {data[0].value}
        batch_size = 1
        for i in range(1, len(data)):
            note = data[i]
            if note.time - batch_time < max_interval and batch_size < max_batch_size:
                edit.soft_change_time(i, batch_time)
                if note.value != NO_KEY and note.value in batch_keys:
                    edit.soft_delete(i)
                    continue
                batch_keys.add(note.value)
                batch_size += 1
            else:
                batch_time = note.time
                batch_keys = {note.value}
                batch_size = 1

        self._statistics["dropped_same_key_count"] = edit.deleted_count
        if edit.pending:
            edit.commit()
        self._log_statistics()
        return data


# ---------------------------------------------------------------------------
# Chord size limit
# ---------------------------------------------------------------------------


class ChordNoteCountLimitConfig(PassConfig):
    max_note_count: int = Field(default=settings.max_chord_notes, ge=1)
    limit_mode: Literal["delete", "split"] = "delete"
    split_delay: float = Field(default=5, ge=0)
    select_mode: Literal["high", "low", "random"] = "high"
    random_seed: int = Field(default=settings.random_seed, ge=0, le=0xFFFFFFFF)


class ChordNoteCountLimitPass(Pass):
    """Keep at most ``max_note_count`` keys per chord.

    Members are ranked by ``select_mode`` (``high``: highest value first,
    ``low``: lowest first, ``random``: seeded shuffle).  Members beyond the
    limit are deleted, or in ``split`` mode delayed by ``split_delay`` ms
    per rank past the limit.  The random stream restarts from
    ``random_seed`` on every run.
    """

    name = "ChordNoteCountLimitPass"
    description = "Limit the number of keys pressed at a time"
    config_class = ChordNoteCountLimitConfig

    def _rank(self, data: list[TimelineEntry], indices: list[int], rng: HashPRNG) -> list[int]:
        mode = self.config.select_mode
        if mode == "high":
            return sorted(indices, key=lambda i: data[i].value, reverse=True)
        if mode == "low":
            return sorted(indices, key=lambda i: data[i].value)
        return list(shuffle(indices, rng))

    def run(self, data: list[TimelineEntry], progress_callback: Optional[ProgressCallback] = None) -> list[TimelineEntry]:
        self._statistics = {"limited_note_count": 0}
        max_count = self.config.max_note_count
        rng = HashPRNG(self.config.random_seed)
        edit = TimelineEdit(data)

        for start, end in chord_ranges(data):
            if end - start <= max_count:
                continue
            ranked = self._rank(data, list(range(start, end)), rng)
            for rank, index in enumerate(ranked[max_count:], start=1):
                if self.config.limit_mode == "delete":
                    edit.soft_delete(index)
                else:
                    edit.soft_change_time(index, data[index].time + self.config.split_delay * rank)
                self._statistics["limited_note_count"] += 1

        edit.commit()
        self._log_statistics()
        return data


# ---------------------------------------------------------------------------
# Soft rate limit
# ---------------------------------------------------------------------------


class NoteFrequencySoftLimitConfig(PassConfig):
    min_interval: float = Field(default=150, gt=0)


class NoteFrequencySoftLimitPass(Pass):
    """Compress inter-onset rates with ``cap * tanh(f / cap)``, ``cap = 1000 / min_interval``.

    Slow passages are nearly unchanged; bursts approach one note per
    ``min_interval`` ms without a hard cut-off.  Simultaneous notes are
    spread ``min_interval`` apart.
    """

    name = "NoteFrequencySoftLimitPass"
    description = "Limit note frequencies"
    config_class = NoteFrequencySoftLimitConfig

    def run(self, data: list[TimelineEntry], progress_callback: Optional[ProgressCallback] = None) -> list[TimelineEntry]:
        cap = 1000 / self.config.min_interval
        limited: list[float] = []
        for current, following in zip(data, data[1:]):
            delta = following.time - current.time
            freq = math.inf if delta <= 0 else 1000 / delta
            limited.append(cap * math.tanh(freq / cap))
        for i, freq in enumerate(limited):
            data[i + 1].time = data[i].time + 1000 / freq
        return data
