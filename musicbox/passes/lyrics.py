"""Bind timed lyric lines onto the nearest chord of a timeline."""
from __future__ import annotations

import logging
from typing import Optional

from musicbox.contracts.note_types import LyricLine, TimelineEntry
from musicbox.core.errors import ProcessingError
from musicbox.core.timeline import find_chord_start_at_time
from musicbox.passes.base import Pass, PassConfig, ProgressCallback

logger = logging.getLogger(__name__)


class BindLyricsConfig(PassConfig):
    lyrics: tuple[LyricLine, ...]
    use_stored_original_time: bool = False
    """Match against ``original_time`` (see StoreCurrentNoteTimePass) instead of the current onset."""


class BindLyricsPass(Pass):
    """Attach each lyric line to the first note of the chord nearest its time.

    Lines landing on the same chord are joined with newlines.  The summed
    absolute distance between lines and their chords is reported as
    ``total_error_ms``.
    """

    name = "BindLyricsPass"
    description = "Bind lyrics to the nearest note"
    config_class = BindLyricsConfig

    def _search_timeline(self, data: list[TimelineEntry]) -> list[TimelineEntry]:
        if not self.config.use_stored_original_time:
            return data
        search: list[TimelineEntry] = []
        for entry in data:
            if "original_time" not in entry.attrs:
                raise ProcessingError("Note has no stored original time; run StoreCurrentNoteTimePass first")
            search.append(TimelineEntry(entry.value, entry.attrs["original_time"], entry.attrs))
        return search

    def run(self, data: list[TimelineEntry], progress_callback: Optional[ProgressCallback] = None) -> list[TimelineEntry]:
        self._statistics = {"total_error_ms": 0.0}
        if not self.config.lyrics:
            return data
        if not data:
            raise ProcessingError("Cannot bind lyrics to an empty timeline")

        search = self._search_timeline(data)
        for line in self.config.lyrics:
            index = find_chord_start_at_time(search, line.time)
            attrs = data[index].attrs
            existing = attrs.get("lyric")
            attrs["lyric"] = f"{existing}\n{line.text}" if existing else line.text
            self._statistics["total_error_ms"] += abs(search[index].time - line.time)

        self._log_statistics()
        return data
