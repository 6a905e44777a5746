"""Standard playback pipeline: track set in, gesture groups out.

Order:

    RemoveEmptyTracks → MergeTracks → [SpeedChange] → [Humanify] →
    PitchOffset → LegalizeTargetNoteRange → [SkipIntro] →
    [LimitBlankDuration] → NoteToKey → SingleKeyFrequencyLimit →
    MergeKey → ChordNoteCountLimit → KeyToGesture

Bracketed passes are included only when ``PlaybackOptions`` asks for them.
"""
from __future__ import annotations

import logging
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from musicbox.config import settings
from musicbox.contracts.note_types import GestureGroup, TrackSet
from musicbox.core.profile import KeyProfile
from musicbox.passes import (
    ChordNoteCountLimitPass,
    DurationMode,
    HumanifyPass,
    InferBestPitchOffsetPass,
    KeyToGesturePass,
    LegalizeTargetNoteRangePass,
    LimitBlankDurationPass,
    MergeKeyPass,
    MergeTracksPass,
    NoteToKeyPass,
    Pass,
    PitchOffsetPass,
    ProgressCallback,
    RemoveEmptyTracksPass,
    SemitoneRoundingMode,
    SequentialPass,
    SingleKeyFrequencyLimitPass,
    SkipIntroPass,
    SpeedChangePass,
)

logger = logging.getLogger(__name__)


class PlaybackOptions(BaseModel):
    """Knobs for the standard pipeline.  Defaults come from ``Settings``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Tracks
    selected_tracks: Optional[tuple[int, ...]] = None
    skip_percussion: bool = True

    # Pitch
    pitch_offset: int = 0
    infer_pitch_offset: bool = False
    semitone_rounding_mode: SemitoneRoundingMode = SemitoneRoundingMode.FLOOR
    wrap_octaves: int = Field(default=settings.wrap_octaves, ge=0)

    # Timing
    speed: float = Field(default=1.0, gt=0)
    humanize_std_dev_ms: float = Field(default=0, ge=0)
    humanize_seed: Optional[int] = None
    skip_intro: bool = True
    limit_blank: bool = True
    max_blank_duration_ms: float = Field(default=5000, ge=0)

    # Density
    merge_interval_ms: float = Field(default=settings.merge_interval_ms, ge=0)
    max_chord_notes: int = Field(default=settings.max_chord_notes, ge=1)
    chord_limit_mode: Literal["delete", "split"] = "delete"
    chord_select_mode: Literal["high", "low", "random"] = "high"
    random_seed: int = Field(default=settings.random_seed, ge=0, le=0xFFFFFFFF)

    # Gestures
    duration_mode: Optional[DurationMode] = None
    """``None`` uses the profile variant's duration mode."""
    press_duration_ms: float = Field(default=settings.press_duration_ms, gt=0)
    margin_duration_ms: float = Field(default=settings.margin_duration_ms, ge=0)
    max_gesture_size: int = Field(default=settings.max_gesture_size, ge=1)
    max_gesture_duration_ms: float = Field(default=settings.max_gesture_duration_ms, gt=0)


def build_playback_pipeline(profile: KeyProfile, options: PlaybackOptions | None = None) -> SequentialPass:
    """Assemble the standard pass chain for ``profile``."""
    opts = options or PlaybackOptions()
    passes: list[Pass] = [
        RemoveEmptyTracksPass(),
        MergeTracksPass(selected_tracks=opts.selected_tracks, skip_percussion=opts.skip_percussion),
    ]
    if opts.speed != 1.0:
        passes.append(SpeedChangePass(speed=opts.speed))
    if opts.humanize_std_dev_ms > 0:
        passes.append(HumanifyPass(note_abs_time_std_dev=opts.humanize_std_dev_ms, random_seed=opts.humanize_seed))

    passes += [
        PitchOffsetPass(offset=opts.pitch_offset),
        LegalizeTargetNoteRangePass(
            profile=profile,
            semitone_rounding_mode=opts.semitone_rounding_mode,
            wrap_lower_octave=opts.wrap_octaves,
            wrap_higher_octave=opts.wrap_octaves,
        ),
    ]
    if opts.skip_intro:
        passes.append(SkipIntroPass())
    if opts.limit_blank:
        passes.append(LimitBlankDurationPass(max_blank_duration=opts.max_blank_duration_ms))

    passes += [
        NoteToKeyPass(profile=profile),
        SingleKeyFrequencyLimitPass(min_interval=profile.get_same_key_min_interval()),
        MergeKeyPass(max_interval=opts.merge_interval_ms, max_batch_size=opts.max_gesture_size),
        ChordNoteCountLimitPass(
            max_note_count=opts.max_chord_notes,
            limit_mode=opts.chord_limit_mode,
            select_mode=opts.chord_select_mode,
            random_seed=opts.random_seed,
        ),
        KeyToGesturePass(
            profile=profile,
            duration_mode=opts.duration_mode or profile.get_duration_mode(),
            press_duration=opts.press_duration_ms,
            max_gesture_duration=opts.max_gesture_duration_ms,
            max_gesture_size=opts.max_gesture_size,
            margin_duration=opts.margin_duration_ms,
        ),
    ]
    logger.debug("Built pipeline: %s", " → ".join(p.name for p in passes))
    return SequentialPass(passes)


def infer_pitch_offset(track_set: TrackSet, profile: KeyProfile, options: PlaybackOptions | None = None) -> tuple[int, dict[str, Any]]:
    """Run the transposition search on the merged tracks; returns ``(offset, statistics)``."""
    opts = options or PlaybackOptions()
    merged = SequentialPass([
        RemoveEmptyTracksPass(),
        MergeTracksPass(selected_tracks=opts.selected_tracks, skip_percussion=opts.skip_percussion),
    ]).run(track_set)
    search = InferBestPitchOffsetPass(profile=profile)
    search.run(merged)
    return search.best_pitch_offset, search.get_statistics()


def render_gestures(
    track_set: TrackSet,
    profile: KeyProfile,
    options: PlaybackOptions | None = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> tuple[list[GestureGroup], dict[str, Any]]:
    """Run the standard pipeline; returns the gesture groups and per-pass statistics.

    ``track_set`` is consumed.
    """
    opts = options or PlaybackOptions()
    inferred: dict[str, Any] | None = None
    if opts.infer_pitch_offset:
        offset, inferred = infer_pitch_offset(track_set, profile, opts)
        opts = opts.model_copy(update={"pitch_offset": offset})

    pipeline = build_playback_pipeline(profile, opts)
    gestures = pipeline.run(track_set, progress_callback)
    statistics = pipeline.get_statistics()
    if inferred is not None:
        statistics[InferBestPitchOffsetPass.name] = inferred
    logger.info("✅ Rendered %d gesture groups", len(gestures))
    return gestures, statistics
