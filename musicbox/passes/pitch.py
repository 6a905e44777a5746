"""Pitch passes: transpose, legalize against a profile, map to keys, and pick a transposition.

Provides:

- ``PitchOffsetPass`` — add a fixed semitone offset.
- ``SemitoneRoundingMode`` — policy for in-range pitches with no key.
- ``LegalizeTargetNoteRangePass`` — octave-wrap or drop out-of-range
  pitches, then resolve unplayable semitones.
- ``NoteToKeyPass`` — pitch → key index; every pitch must be playable.
- ``InferBestPitchOffsetPass`` — greedy search for the transposition that
  loses the fewest notes.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import Field

from musicbox.contracts.note_types import NO_KEY, NoteAttributes, TimelineEntry
from musicbox.core.errors import ConversionError, ProcessingError
from musicbox.core.midi_pitch import get_transposition_estimated_key
from musicbox.core.profile import KeyProfile
from musicbox.core.timeline import clone_timeline
from musicbox.passes.base import Pass, PassConfig, ProgressCallback, SequentialPass

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Offset
# ---------------------------------------------------------------------------


class PitchOffsetConfig(PassConfig):
    offset: int


class PitchOffsetPass(Pass):
    """Add ``offset`` semitones to every pitch."""

    name = "PitchOffsetPass"
    description = "Add an offset to the pitch of each note"
    config_class = PitchOffsetConfig

    def run(self, data: list[TimelineEntry], progress_callback: Optional[ProgressCallback] = None) -> list[TimelineEntry]:
        offset = self.config.offset
        for entry in data:
            entry.value += offset
        return data


# ---------------------------------------------------------------------------
# Legalization
# ---------------------------------------------------------------------------


class SemitoneRoundingMode(str, Enum):
    """What to do with an in-range pitch that has no key."""

    NONE = "none"                # keep it; NoteToKeyPass will reject it
    FLOOR = "floor"              # one semitone down if playable, else drop
    CEIL = "ceil"                # one semitone up if playable, else drop
    DROP = "drop"
    BOTH = "both"                # emit both neighbours that are playable
    ALTERNATING = "alternating"  # floor, ceil, floor, ... across the run


class LegalizeConfig(PassConfig):
    profile: KeyProfile
    semitone_rounding_mode: SemitoneRoundingMode
    wrap_higher_octave: int = Field(default=0, ge=0)
    wrap_lower_octave: int = Field(default=0, ge=0)


class LegalizeTargetNoteRangePass(Pass):
    """Make every pitch playable on the profile, or drop it.

    Out-of-range pitches within ``wrap_lower_octave`` / ``wrap_higher_octave``
    octaves of the range are moved by whole octaves into it; farther ones
    are dropped and counted as underflow/overflow.  In-range pitches
    without a key follow ``semitone_rounding_mode``.

    ``alternating`` keeps its floor/ceil bit on the pass instance and resets
    it at the start of every run, so one configured pass can be reused.
    """

    name = "LegalizeTargetNoteRangePass"
    description = "Handle notes that cannot be played on the target layout"
    config_class = LegalizeConfig

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._last_is_floor = False

    def _wrap(self, pitch: int, low: int, high: int) -> int | None:
        """Octave-wrap ``pitch`` into range; ``None`` means drop it."""
        if pitch < low:
            if pitch >= low - self.config.wrap_lower_octave * 12:
                pitch += 12 * math.ceil((low - pitch) / 12)
                self._statistics["wrapped_lower_note_count"] += 1
            else:
                self._statistics["underflowed_note_count"] += 1
                return None
        if pitch > high:
            if pitch <= high + self.config.wrap_higher_octave * 12:
                pitch -= 12 * math.ceil((pitch - high) / 12)
                self._statistics["wrapped_higher_note_count"] += 1
            else:
                self._statistics["overflowed_note_count"] += 1
                return None
        return pitch

    def _playable(self, pitch: int) -> bool:
        return self.config.profile.get_key_by_pitch(pitch) != NO_KEY

    def _round(self, entry: TimelineEntry, pitch: int) -> list[TimelineEntry]:
        mode = self.config.semitone_rounding_mode
        if mode == SemitoneRoundingMode.NONE:
            entry.value = pitch
            return [entry]
        if mode == SemitoneRoundingMode.DROP:
            return []

        if mode == SemitoneRoundingMode.FLOOR:
            candidates = [pitch - 1]
        elif mode == SemitoneRoundingMode.CEIL:
            candidates = [pitch + 1]
        elif mode == SemitoneRoundingMode.BOTH:
            candidates = [pitch - 1, pitch + 1]
        elif mode == SemitoneRoundingMode.ALTERNATING:
            candidates = [pitch + 1] if self._last_is_floor else [pitch - 1]
        else:
            raise ProcessingError(f"Unknown semitone rounding mode: {mode!r}")

        out: list[TimelineEntry] = []
        for candidate in candidates:
            if not self._playable(candidate):
                continue
            if not out:
                entry.value = candidate
                out.append(entry)
            else:
                out.append(TimelineEntry(candidate, entry.time, NoteAttributes(**entry.attrs)))
        if out and mode == SemitoneRoundingMode.ALTERNATING:
            self._last_is_floor = not self._last_is_floor
        return out

    def run(self, data: list[TimelineEntry], progress_callback: Optional[ProgressCallback] = None) -> list[TimelineEntry]:
        self._statistics = {
            "underflowed_note_count": 0,
            "overflowed_note_count": 0,
            "wrapped_lower_note_count": 0,
            "wrapped_higher_note_count": 0,
            "rounded_note_count": 0,
            "dropped_semitone_count": 0,
        }
        self._last_is_floor = False
        low, high = self.config.profile.get_note_range()

        processed: list[TimelineEntry] = []
        for entry in data:
            pitch = self._wrap(entry.value, low, high)
            if pitch is None:
                continue
            if self._playable(pitch):
                entry.value = pitch
                processed.append(entry)
                continue
            rounded = self._round(entry, pitch)
            if not rounded and self.config.semitone_rounding_mode != SemitoneRoundingMode.NONE:
                self._statistics["dropped_semitone_count"] += 1
            elif self.config.semitone_rounding_mode != SemitoneRoundingMode.NONE:
                self._statistics["rounded_note_count"] += 1
            processed.extend(rounded)

        self._log_statistics()
        return processed


# ---------------------------------------------------------------------------
# Key mapping
# ---------------------------------------------------------------------------


class NoteToKeyConfig(PassConfig):
    profile: KeyProfile


class NoteToKeyPass(Pass):
    """Replace every pitch with its key index on the profile.

    Raises:
        ConversionError: A pitch has no key.  Legalize first.
    """

    name = "NoteToKeyPass"
    description = "Convert notes to keys"
    config_class = NoteToKeyConfig

    def run(self, data: list[TimelineEntry], progress_callback: Optional[ProgressCallback] = None) -> list[TimelineEntry]:
        profile = self.config.profile
        keys: list[TimelineEntry] = []
        for entry in data:
            key = profile.get_key_by_pitch(entry.value)
            if key == NO_KEY:
                raise ConversionError(entry.value)
            keys.append(TimelineEntry(key, entry.time, entry.attrs))
        return keys


# ---------------------------------------------------------------------------
# Transposition search
# ---------------------------------------------------------------------------

_BETTER_RESULT_THRESHOLD = 0.05
_OCTAVE_CANDIDATES = (0, -1, 1, -2, 2)
_SEMITONE_CANDIDATES = (0, 1, -1, 2, -2, 3, -3, 4, -4, 5, 6, 7)
_WORST = 10_000_000


@dataclass(frozen=True)
class TrialResult:
    """Legalization outcome of one candidate transposition."""

    out_of_range_weight: float
    overflowed_note_count: int
    underflowed_note_count: int
    rounded_note_count: int


class InferBestPitchOffsetConfig(PassConfig):
    profile: KeyProfile
    overflowed_note_weight: float = Field(default=5, ge=0)
    """Losing a high note costs more than losing a low one."""


class InferBestPitchOffsetPass(Pass):
    """Find the octave and semitone offset that keeps the most notes playable.

    Three greedy phases: octaves by out-of-range weight, then semitones by
    rounded-note count, then octaves again.  Each candidate runs
    ``PitchOffsetPass`` → ``LegalizeTargetNoteRangePass`` (floor rounding)
    on a deep copy.  A candidate replaces the incumbent only when it
    improves the metric by more than 5% of its own value.  Candidates
    whose trial raises ``ProcessingError`` are rejected.

    The input is returned untouched; read ``best_pitch_offset`` afterwards.
    The ``estimated_key`` statistic names the key the source was probably
    written in, assuming the transposed result sits in C.
    """

    name = "InferBestPitchOffsetPass"
    description = "Infer the best pitch offset"
    config_class = InferBestPitchOffsetConfig

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.best_octave_offset = 0
        self.best_semitone_offset = 0

    @property
    def best_pitch_offset(self) -> int:
        return self.best_octave_offset * 12 + self.best_semitone_offset

    def _evaluate(self, data: list[TimelineEntry], octave: int, semitone: int) -> TrialResult | None:
        trial = SequentialPass([
            PitchOffsetPass(offset=octave * 12 + semitone),
            LegalizeTargetNoteRangePass(
                profile=self.config.profile,
                semitone_rounding_mode=SemitoneRoundingMode.FLOOR,
            ),
        ])
        try:
            trial.run(clone_timeline(data))
        except ProcessingError as exc:
            logger.warning("⚠️ Rejected offset %+d octave(s) %+d semitone(s): %s", octave, semitone, exc)
            self._statistics["rejected_candidate_count"] += 1
            return None
        stats = trial.get_statistics()[LegalizeTargetNoteRangePass.name]
        result = TrialResult(
            out_of_range_weight=(
                stats["overflowed_note_count"] * self.config.overflowed_note_weight
                + stats["underflowed_note_count"]
            ),
            overflowed_note_count=stats["overflowed_note_count"],
            underflowed_note_count=stats["underflowed_note_count"],
            rounded_note_count=stats["rounded_note_count"],
        )
        logger.debug("Offset %+d/%+d: %s", octave, semitone, result)
        return result

    @staticmethod
    def _improves(best: float, candidate: float) -> bool:
        return best - candidate > candidate * _BETTER_RESULT_THRESHOLD

    def run(self, data: list[TimelineEntry], progress_callback: Optional[ProgressCallback] = None) -> list[TimelineEntry]:
        self._statistics = {
            "best_octave_offset": 0,
            "best_semitone_offset": 0,
            "best_overflowed_note_count": 0,
            "best_underflowed_note_count": 0,
            "best_rounded_note_count": 0,
            "rejected_candidate_count": 0,
            "estimated_key": "C",
        }
        self.best_octave_offset = 0
        self.best_semitone_offset = 0
        total = 2 * len(_OCTAVE_CANDIDATES) + len(_SEMITONE_CANDIDATES)
        step = 0

        # Phase 1: octaves, by out-of-range weight
        best: float = _WORST
        for octave in _OCTAVE_CANDIDATES:
            self._report(progress_callback, step / total * 100)
            step += 1
            result = self._evaluate(data, octave, 0)
            if result is not None and self._improves(best, result.out_of_range_weight):
                self.best_octave_offset = octave
                best = result.out_of_range_weight

        # Phase 2: semitones, by rounded-note count
        best = _WORST
        for semitone in _SEMITONE_CANDIDATES:
            self._report(progress_callback, step / total * 100)
            step += 1
            result = self._evaluate(data, self.best_octave_offset, semitone)
            if result is not None and self._improves(best, result.rounded_note_count):
                self.best_semitone_offset = semitone
                best = result.rounded_note_count

        # Phase 3: octaves again, with the chosen semitone
        best = _WORST
        for octave in _OCTAVE_CANDIDATES:
            self._report(progress_callback, step / total * 100)
            step += 1
            result = self._evaluate(data, octave, self.best_semitone_offset)
            if result is not None and self._improves(best, result.out_of_range_weight):
                self.best_octave_offset = octave
                best = result.out_of_range_weight
                self._statistics.update(
                    best_overflowed_note_count=result.overflowed_note_count,
                    best_underflowed_note_count=result.underflowed_note_count,
                    best_rounded_note_count=result.rounded_note_count,
                )

        self._statistics["best_octave_offset"] = self.best_octave_offset
        self._statistics["best_semitone_offset"] = self.best_semitone_offset
        self._statistics["estimated_key"] = get_transposition_estimated_key(self.best_pitch_offset)
        logger.info(
            "✅ Best pitch offset: %+d octave(s), %+d semitone(s), source likely in %s",
            self.best_octave_offset,
            self.best_semitone_offset,
            self._statistics["estimated_key"],
        )
        return data
