"""Track-level passes: drop empty tracks and flatten a track set into one timeline."""
from __future__ import annotations

import logging
from typing import Optional

from musicbox.config import PERCUSSION_CHANNEL
from musicbox.contracts.note_types import TimelineEntry, TrackSet
from musicbox.core.errors import ProcessingError
from musicbox.core.timeline import sort_by_time
from musicbox.passes.base import Pass, PassConfig, ProgressCallback

logger = logging.getLogger(__name__)


class MergeTracksConfig(PassConfig):
    selected_tracks: Optional[tuple[int, ...]] = None
    """Track indices to merge; ``None`` or empty merges every track."""
    skip_percussion: bool = True


class MergeTracksPass(Pass):
    """Concatenate the notes of the selected tracks and sort them by time."""

    name = "MergeTracksPass"
    description = "Merge tracks"
    config_class = MergeTracksConfig

    def run(self, data: TrackSet, progress_callback: Optional[ProgressCallback] = None) -> list[TimelineEntry]:
        self._statistics = {"merged_note_count": 0}
        if not data.tracks:
            raise ProcessingError("Track set has no tracks")

        if not data.multi_track:
            notes = data.tracks[0].notes
            self._statistics["merged_note_count"] = len(notes)
            return notes

        selected = self.config.selected_tracks or tuple(range(len(data.tracks)))
        merged: list[TimelineEntry] = []
        for index in selected:
            if index < 0 or index >= len(data.tracks):
                logger.warning("⚠️ Track %d does not exist; skipping", index)
                continue
            track = data.tracks[index]
            if self.config.skip_percussion and track.channel == PERCUSSION_CHANNEL:
                logger.debug("Skipping percussion track %d (%s)", index, track.name)
                continue
            merged.extend(track.notes)

        sort_by_time(merged)
        self._statistics["merged_note_count"] = len(merged)
        self._log_statistics()
        return merged


class RemoveEmptyTracksPass(Pass):
    """Drop tracks without notes; a set left with one track becomes single-track."""

    name = "RemoveEmptyTracksPass"
    description = "Remove empty tracks"

    def run(self, data: TrackSet, progress_callback: Optional[ProgressCallback] = None) -> TrackSet:
        self._statistics = {"removed_track_count": 0}
        if not data.multi_track:
            return data
        before = len(data.tracks)
        data.tracks = [track for track in data.tracks if track.note_count > 0]
        self._statistics["removed_track_count"] = before - len(data.tracks)
        if len(data.tracks) == 1:
            data.multi_track = False
        self._log_statistics()
        return data
