"""Timing passes: reshape onsets without touching pitches or keys."""
from __future__ import annotations

import logging
import random
from typing import Optional

from pydantic import Field

from musicbox.contracts.note_types import TimelineEntry
from musicbox.core.errors import ProcessingError
from musicbox.core.humanize import humanize_onsets
from musicbox.core.timeline import to_absolute_time, to_relative_time
from musicbox.passes.base import Pass, PassConfig, ProgressCallback

logger = logging.getLogger(__name__)


class LimitBlankDurationConfig(PassConfig):
    max_blank_duration: float = Field(default=5000, ge=0)


class LimitBlankDurationPass(Pass):
    """Shorten every gap between consecutive onsets to at most ``max_blank_duration`` ms.

    The lead-in before the first note counts as a gap too.
    """

    name = "LimitBlankDurationPass"
    description = "Limit overly long blank stretches"
    config_class = LimitBlankDurationConfig

    def run(self, data: list[TimelineEntry], progress_callback: Optional[ProgressCallback] = None) -> list[TimelineEntry]:
        self._statistics = {"limited_gap_count": 0}
        limit = self.config.max_blank_duration
        to_relative_time(data)
        for entry in data:
            if entry.time > limit:
                entry.time = limit
                self._statistics["limited_gap_count"] += 1
        to_absolute_time(data)
        self._log_statistics()
        return data


class SkipIntroConfig(PassConfig):
    max_intro_time: float = Field(default=2000, ge=0)


class SkipIntroPass(Pass):
    """Shift everything left so the first note starts no later than ``max_intro_time``.

    Raises:
        ProcessingError: If the timeline is empty.
    """

    name = "SkipIntroPass"
    description = "Skip the blank part of the intro"
    config_class = SkipIntroConfig

    def run(self, data: list[TimelineEntry], progress_callback: Optional[ProgressCallback] = None) -> list[TimelineEntry]:
        self._statistics = {"skipped_ms": 0}
        if not data:
            raise ProcessingError("SkipIntroPass needs at least one note")
        intro = data[0].time
        if intro < self.config.max_intro_time:
            return data
        delta = intro - self.config.max_intro_time
        for entry in data:
            entry.time -= delta
        self._statistics["skipped_ms"] = delta
        logger.debug("Skipped %.0f ms of intro", delta)
        return data


class SpeedChangeConfig(PassConfig):
    speed: float = Field(gt=0)


class SpeedChangePass(Pass):
    """Play ``speed`` times faster: divide onsets and durations by ``speed``."""

    name = "SpeedChangePass"
    description = "Change playback speed"
    config_class = SpeedChangeConfig

    def run(self, data: list[TimelineEntry], progress_callback: Optional[ProgressCallback] = None) -> list[TimelineEntry]:
        speed = self.config.speed
        for entry in data:
            entry.time /= speed
            if "duration" in entry.attrs:
                entry.attrs["duration"] /= speed
        return data


class StoreCurrentNoteTimePass(Pass):
    """Remember each onset as ``original_time`` before later passes move it."""

    name = "StoreCurrentNoteTimePass"
    description = "Store each note's current time in its attributes"

    def run(self, data: list[TimelineEntry], progress_callback: Optional[ProgressCallback] = None) -> list[TimelineEntry]:
        for entry in data:
            entry.attrs["original_time"] = entry.time
        return data


class HumanifyConfig(PassConfig):
    note_abs_time_std_dev: float = Field(ge=0)
    random_seed: Optional[int] = None


class HumanifyPass(Pass):
    """Jitter onsets with gaussian noise to imitate a human player."""

    name = "HumanifyPass"
    description = "Imitate manual input"
    config_class = HumanifyConfig

    def run(self, data: list[TimelineEntry], progress_callback: Optional[ProgressCallback] = None) -> list[TimelineEntry]:
        rng = random.Random(self.config.random_seed)
        return humanize_onsets(data, self.config.note_abs_time_std_dev, rng)
