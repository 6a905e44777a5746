"""JSON shapes exchanged with the format parsers and the execution engine.

Input (camelCase, as produced by the parsers)::

    {
      "multiTrack": true,
      "trackCount": 2,
      "durationType": "native",
      "tracks": [
        {"name": "Piano", "channel": 0, "instrumentId": 0, "trackIndex": 0,
         "noteCount": 2, "notes": [[60, 0, {"duration": 500}], [64, 250, {}]]}
      ],
      "metadata": [{"name": "title", "value": "..."}]
    }

Output::

    [[[delay_ms, duration_ms, [x, y]], ...], start_ms]   # one per gesture group

``trackCount`` and ``noteCount`` are informational; the counts are derived
from the lists themselves.
"""
from __future__ import annotations

import logging
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from musicbox.contracts.note_types import (
    DurationType,
    GestureGroup,
    LyricLine,
    NoteAttributes,
    TimelineEntry,
    Track,
    TrackMetadata,
    TrackSet,
)
from musicbox.core.errors import ProcessingError

logger = logging.getLogger(__name__)

# wire attribute name → NoteAttributes key
_ATTRIBUTE_NAMES: dict[str, str] = {
    "duration": "duration",
    "velocity": "velocity",
    "lyric": "lyric",
    "originalTime": "original_time",
    "original_time": "original_time",
}


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class TrackWire(_CamelModel):
    name: str = ""
    channel: int = 0
    instrument_id: int = -1
    track_index: int = 0
    note_count: Optional[int] = None
    notes: list[Union[tuple[int, float], tuple[int, float, Optional[dict[str, Any]]]]] = Field(default_factory=list)


class TrackMetadataWire(_CamelModel):
    name: str
    value: Any = None


class TrackSetWire(_CamelModel):
    multi_track: bool = False
    track_count: Optional[int] = None
    duration_type: DurationType = "none"
    tracks: list[TrackWire] = Field(min_length=1)
    metadata: list[TrackMetadataWire] = Field(default_factory=list)


def _note_attributes(raw: Optional[dict[str, Any]]) -> NoteAttributes:
    attrs = NoteAttributes()
    for key, value in (raw or {}).items():
        name = _ATTRIBUTE_NAMES.get(key)
        if name is None:
            logger.debug("Ignoring unknown note attribute %r", key)
            continue
        attrs[name] = value  # type: ignore[literal-required]
    return attrs


def _entry(raw: tuple[Any, ...]) -> TimelineEntry:
    value, time = raw[0], raw[1]
    attrs = raw[2] if len(raw) > 2 else None
    return TimelineEntry(value, time, _note_attributes(attrs))


def track_set_from_dict(data: dict[str, Any]) -> TrackSet:
    """Build a ``TrackSet`` from the parser JSON shape.

    Raises:
        ProcessingError: If the structure does not match.
    """
    try:
        wire = TrackSetWire.model_validate(data)
    except ValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()[:5]
        )
        raise ProcessingError(f"Malformed track set: {details}") from exc

    tracks = []
    for track in wire.tracks:
        notes = [_entry(raw) for raw in track.notes]
        if track.note_count is not None and track.note_count != len(notes):
            logger.warning(
                "⚠️ Track %r declares %d notes but carries %d",
                track.name,
                track.note_count,
                len(notes),
            )
        tracks.append(
            Track(
                name=track.name,
                channel=track.channel,
                instrument_id=track.instrument_id,
                track_index=track.track_index,
                notes=notes,
            )
        )
    return TrackSet(
        tracks=tracks,
        multi_track=wire.multi_track,
        duration_type=wire.duration_type,
        metadata=[TrackMetadata(m.name, m.value) for m in wire.metadata],
    )


def lyrics_from_list(data: list[dict[str, Any]]) -> list[LyricLine]:
    """``[{"time": ms, "text": "..."}]`` → ``LyricLine`` list."""
    try:
        return [LyricLine(float(item["time"]), str(item["text"])) for item in data]
    except (KeyError, TypeError, ValueError) as exc:
        raise ProcessingError(f"Malformed lyrics: {exc}") from exc


def gestures_to_dict(groups: list[GestureGroup]) -> list[list[Any]]:
    """Gesture groups → plain JSON-serialisable lists."""
    return [
        [
            [[g.delay_ms, g.duration_ms, [g.position.x, g.position.y]] for g in group.gestures],
            group.start_ms,
        ]
        for group in groups
    ]
