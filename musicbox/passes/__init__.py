"""Transformation passes over note/key timelines."""
from musicbox.passes.base import NopPass, Pass, PassConfig, ProgressCallback, SequentialPass
from musicbox.passes.density import (
    ChordNoteCountLimitPass,
    MergeKeyPass,
    NoteFrequencySoftLimitPass,
    SingleKeyFrequencyLimitPass,
)
from musicbox.passes.duration import EstimateNoteDurationPass, FoldFrequentSameNotePass, SplitLongNotePass
from musicbox.passes.gestures import DurationMode, KeyToGesturePass
from musicbox.passes.lyrics import BindLyricsPass
from musicbox.passes.pitch import (
    InferBestPitchOffsetPass,
    LegalizeTargetNoteRangePass,
    NoteToKeyPass,
    PitchOffsetPass,
    SemitoneRoundingMode,
)
from musicbox.passes.timing import (
    HumanifyPass,
    LimitBlankDurationPass,
    SkipIntroPass,
    SpeedChangePass,
    StoreCurrentNoteTimePass,
)
from musicbox.passes.tracks import MergeTracksPass, RemoveEmptyTracksPass

__all__ = [
    "BindLyricsPass",
    "ChordNoteCountLimitPass",
    "DurationMode",
    "EstimateNoteDurationPass",
    "FoldFrequentSameNotePass",
    "HumanifyPass",
    "InferBestPitchOffsetPass",
    "KeyToGesturePass",
    "LegalizeTargetNoteRangePass",
    "LimitBlankDurationPass",
    "MergeKeyPass",
    "MergeTracksPass",
    "NopPass",
    "NoteFrequencySoftLimitPass",
    "NoteToKeyPass",
    "Pass",
    "PassConfig",
    "PitchOffsetPass",
    "ProgressCallback",
    "RemoveEmptyTracksPass",
    "SemitoneRoundingMode",
    "SequentialPass",
    "SingleKeyFrequencyLimitPass",
    "SkipIntroPass",
    "SpeedChangePass",
    "SplitLongNotePass",
    "StoreCurrentNoteTimePass",
]
