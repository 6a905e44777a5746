"""Key profile: a layout plus an instrument variant, resolved to key indices.

A ``KeyProfile`` owns the pitch ↔ key-index tables the passes consult.  Key
indices are 0-based over the playable pitches sorted ascending, so they are
only meaningful for the layout/variant they were computed from.

Caches (``cached_key_positions``, ``cached_pitch_key_map``,
``cached_note_range``) are filled lazily and are **only** dropped by
``clear_cache()``; switching layout, variant or anchors does not touch them.
Callers must invalidate after every such change.  Instances are not
thread-safe.
"""
from __future__ import annotations

import logging
import math
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from musicbox.contracts.note_types import NO_KEY, DurationType, Position
from musicbox.core.errors import ConfigurationError, LayoutError
from musicbox.core.layout import LayoutDescription, build_layout_description, generate_layout
from musicbox.core.midi_pitch import name_to_midi_pitch, pitch_value

logger = logging.getLogger(__name__)

NO_DISTANCE = 999999.0


class Variant(BaseModel):
    """Instrument variant of a layout.

    ``replace_note_map`` renames keys before anything else (e.g. an instrument
    whose F key actually plays F#).  ``note_range`` then restricts the
    playable pitches, inclusive on both ends.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = "default"
    note_range: Optional[tuple[Union[int, str], Union[int, str]]] = None
    replace_note_map: dict[str, str] = Field(default_factory=dict)
    duration_mode: DurationType = "none"
    same_key_min_interval: Optional[float] = Field(default=None, ge=0)


def _coerce_variant(variant: Variant | Mapping[str, Any] | None) -> Variant:
    if variant is None:
        return Variant()
    if isinstance(variant, Variant):
        return variant
    try:
        return Variant.model_validate(variant)
    except ValidationError as exc:
        raise ConfigurationError(
            "Invalid variant",
            details=[f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()],
        ) from exc


class KeyProfile:
    """Pitch ↔ key lookups and key positions for one layout and variant."""

    def __init__(
        self,
        layout: LayoutDescription | Mapping[str, Any],
        variant: Variant | Mapping[str, Any] | None = None,
        same_key_min_interval: float = 0,
    ) -> None:
        self.layout = build_layout_description(layout)
        self.variant = _coerce_variant(variant)
        self.same_key_min_interval = same_key_min_interval
        self.anchors: tuple[Position, Position] | None = None

        self.cached_key_positions: list[Position] | None = None
        self.cached_pitch_key_map: dict[int, int] | None = None
        self.cached_note_range: tuple[int, int] | None = None

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_layout(self, layout: LayoutDescription | Mapping[str, Any]) -> None:
        self.layout = build_layout_description(layout)

    def set_variant(self, variant: Variant | Mapping[str, Any] | None) -> None:
        self.variant = _coerce_variant(variant)

    def set_anchors(self, top_left: tuple[float, float], bottom_right: tuple[float, float]) -> None:
        """Store the calibration points that map normalized to absolute coordinates."""
        self.anchors = (Position(*top_left), Position(*bottom_right))

    def check_anchors(self) -> bool:
        """True when both anchors are set and not the all-zero placeholder."""
        if self.anchors is None:
            return False
        top_left, bottom_right = self.anchors
        return any(v != 0 for v in (*top_left, *bottom_right))

    def clear_cache(self) -> None:
        self.cached_key_positions = None
        self.cached_pitch_key_map = None
        self.cached_note_range = None

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _resolve_keys(self) -> list[tuple[int, Position]]:
        """Generate the layout and apply the variant: rename, restrict, sort."""
        by_pitch: dict[int, Position] = {
            name_to_midi_pitch(name): pos for name, pos in generate_layout(self.layout).items()
        }

        for original, replacement in self.variant.replace_note_map.items():
            original_pitch = name_to_midi_pitch(original)
            if original_pitch in by_pitch:
                by_pitch[name_to_midi_pitch(replacement)] = by_pitch.pop(original_pitch)

        if self.variant.note_range is not None:
            low = pitch_value(self.variant.note_range[0])
            high = pitch_value(self.variant.note_range[1])
            by_pitch = {p: pos for p, pos in by_pitch.items() if low <= p <= high}

        if not by_pitch:
            raise LayoutError(
                "Profile has no playable keys",
                details=[f"variant {self.variant.name!r} removed every key"],
            )
        return sorted(by_pitch.items())

    def _to_absolute(self, pos: Position) -> Position:
        assert self.anchors is not None
        top_left, bottom_right = self.anchors
        return Position(
            top_left.x + (bottom_right.x - top_left.x) * pos.x,
            top_left.y + (bottom_right.y - top_left.y) * pos.y,
        )

    def load_layout(self, normalize: bool = False) -> None:
        """(Re)build every cache from the current layout, variant and anchors.

        With ``normalize`` or without usable anchors the cached positions stay
        in ``[0, 1]²``.

        Raises:
            LayoutError: If the layout is invalid or the variant leaves no keys.
        """
        keys = self._resolve_keys()
        positions = [pos for _, pos in keys]
        if not normalize:
            if self.check_anchors():
                positions = [self._to_absolute(pos) for pos in positions]
            else:
                logger.warning("⚠️ Key anchors are not set; using normalized key positions")

        self.cached_key_positions = positions
        self.cached_pitch_key_map = {pitch: index for index, (pitch, _) in enumerate(keys)}
        self.cached_note_range = (keys[0][0], keys[-1][0])
        logger.debug(
            "Loaded layout: %d keys, note range %s, variant %s",
            len(keys),
            self.cached_note_range,
            self.variant.name,
        )

    def _pitch_key_map(self) -> dict[int, int]:
        if self.cached_pitch_key_map is None:
            self.load_layout()
        assert self.cached_pitch_key_map is not None
        return self.cached_pitch_key_map

    def _key_positions(self) -> list[Position]:
        if self.cached_key_positions is None:
            self.load_layout()
        assert self.cached_key_positions is not None
        return self.cached_key_positions

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_key_by_pitch(self, pitch: int) -> int:
        """Key index for ``pitch``, or ``NO_KEY`` when it is not playable."""
        return self._pitch_key_map().get(pitch, NO_KEY)

    def get_pitch_by_key(self, key: int) -> int:
        for pitch, index in self._pitch_key_map().items():
            if index == key:
                return pitch
        return NO_KEY

    def get_key_range(self) -> tuple[int, int]:
        return 0, len(self._pitch_key_map()) - 1

    def get_note_range(self) -> tuple[int, int]:
        """Lowest and highest playable pitch."""
        if self.cached_note_range is None:
            self.load_layout()
        assert self.cached_note_range is not None
        return self.cached_note_range

    def get_key_position(self, key: int) -> Position | None:
        positions = self._key_positions()
        if key < 0 or key >= len(positions):
            return None
        return positions[key]

    def get_all_key_positions(self) -> list[Position]:
        return list(self._key_positions())

    def get_normalized_key_positions(self) -> list[Position]:
        """Positions in ``[0, 1]²`` regardless of anchors; caches are left alone."""
        return [pos for _, pos in self._resolve_keys()]

    def get_physical_closest_keys(self, key: int) -> list[tuple[int, float]]:
        """Every other key with its distance to ``key``, nearest first."""
        positions = self._key_positions()
        if key < 0 or key >= len(positions):
            return []
        origin = positions[key]
        distances = [
            (index, math.dist(origin, pos))
            for index, pos in enumerate(positions)
            if index != key
        ]
        distances.sort(key=lambda item: item[1])
        return distances

    def get_physical_min_key_distance(self) -> float:
        positions = self._key_positions()
        best = NO_DISTANCE
        for i in range(len(positions)):
            for j in range(i + 1, len(positions)):
                best = min(best, math.dist(positions[i], positions[j]))
        return best

    def get_same_key_min_interval(self) -> float:
        if self.variant.same_key_min_interval is not None:
            return self.variant.same_key_min_interval
        return self.same_key_min_interval

    def get_duration_mode(self) -> DurationType:
        return self.variant.duration_mode
