"""Duration passes: synthesize, split and estimate the ``duration`` attribute."""
from __future__ import annotations

import logging
from typing import Optional

from pydantic import Field

from musicbox.contracts.note_types import NO_KEY, NoteAttributes, TimelineEntry
from musicbox.core.timeline import TimelineEdit, chord_ranges, get_transferable_attributes, sort_by_time
from musicbox.passes.base import Pass, PassConfig, ProgressCallback

logger = logging.getLogger(__name__)


def _merge_lyric(target: NoteAttributes, source: TimelineEntry) -> None:
    transferable = get_transferable_attributes(source)
    if transferable is None or "lyric" not in transferable:
        return
    existing = target.get("lyric")
    target["lyric"] = f"{existing}\n{transferable['lyric']}" if existing else transferable["lyric"]


class FoldFrequentSameNoteConfig(PassConfig):
    max_interval: float = Field(default=150, ge=0)


class FoldFrequentSameNotePass(Pass):
    """Fold rapid repeats of one value into a single held note.

    Starting at a note, every later note of the same value less than
    ``max_interval`` ms after the previous repeat joins the run.  The first
    note survives with ``duration`` spanning first to last onset; lyrics of
    the folded repeats move onto it.
    """

    name = "FoldFrequentSameNotePass"
    description = "Fold rapidly repeated notes into one long note"
    config_class = FoldFrequentSameNoteConfig

    def run(self, data: list[TimelineEntry], progress_callback: Optional[ProgressCallback] = None) -> list[TimelineEntry]:
        self._statistics = {"folded_note_count": 0}
        max_interval = self.config.max_interval
        edit = TimelineEdit(data)
        total = len(data)

        for i, note in enumerate(data):
            if edit.is_deleted(i) or note.value == NO_KEY:
                continue
            members = [i]
            last_time = note.time
            j = i + 1
            while j < total and data[j].time - last_time < max_interval:
                if not edit.is_deleted(j) and data[j].value == note.value:
                    members.append(j)
                    last_time = data[j].time
                j += 1
            if len(members) == 1:
                continue

            note.attrs = NoteAttributes(**note.attrs)
            note.attrs["duration"] = last_time - note.time
            for index in members[1:]:
                _merge_lyric(note.attrs, data[index])
                edit.soft_delete(index)
            self._statistics["folded_note_count"] += len(members) - 1

        edit.commit()
        self._log_statistics()
        return data


class SplitLongNoteConfig(PassConfig):
    min_duration: float = Field(default=500, ge=0)
    split_duration: float = Field(default=100, gt=0)


class SplitLongNotePass(Pass):
    """Replace every note held for ``min_duration`` ms or more by repeated ``split_duration`` taps."""

    name = "SplitLongNotePass"
    description = "Split long notes into repeated short notes"
    config_class = SplitLongNoteConfig

    def run(self, data: list[TimelineEntry], progress_callback: Optional[ProgressCallback] = None) -> list[TimelineEntry]:
        self._statistics = {"split_note_count": 0}
        min_duration = self.config.min_duration
        step = self.config.split_duration

        result: list[TimelineEntry] = []
        for entry in data:
            result.append(entry)
            duration = entry.attrs.get("duration")
            if duration is None or duration < min_duration:
                continue
            end = entry.time + duration
            entry.attrs["duration"] = step
            k = 1
            while entry.time + k * step < end:
                result.append(TimelineEntry(entry.value, entry.time + k * step, NoteAttributes(duration=step)))
                k += 1
            self._statistics["split_note_count"] += 1

        data[:] = sort_by_time(result)
        self._log_statistics()
        return data


class EstimateNoteDurationConfig(PassConfig):
    multiplier: float = Field(default=0.75, gt=0)


class EstimateNoteDurationPass(Pass):
    """Give notes without ``duration`` ``multiplier`` × the time to the next chord.

    The last chord reuses the gap before it.  A timeline with a single chord
    has nothing to measure and is left as is.
    """

    name = "EstimateNoteDurationPass"
    description = "Estimate note durations"
    config_class = EstimateNoteDurationConfig

    def run(self, data: list[TimelineEntry], progress_callback: Optional[ProgressCallback] = None) -> list[TimelineEntry]:
        self._statistics = {"estimated_note_count": 0}
        chords = list(chord_ranges(data))
        previous_gap: float | None = None
        for k, (start, end) in enumerate(chords):
            if k + 1 < len(chords):
                gap = data[chords[k + 1][0]].time - data[start].time
                previous_gap = gap
            elif previous_gap is not None:
                gap = previous_gap
            else:
                break
            for entry in data[start:end]:
                if "duration" not in entry.attrs:
                    entry.attrs["duration"] = gap * self.config.multiplier
                    self._statistics["estimated_note_count"] += 1
        self._log_statistics()
        return data
