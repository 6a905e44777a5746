"""Key layout generation.

Turns an abstract keyboard description into a mapping from pitch name to a
normalized ``(x, y)`` position in ``[0, 1]²``.  Screen convention: ``x``
grows to the right, ``y`` grows downwards, row 0 is the bottom row and holds
the lowest pitches.

Provides:

- ``LayoutDescription`` — validated, immutable layout parameters.
- ``generate_layout`` — the pure layout function.
- ``TRANSFORM_MATRICES`` — commonly used 3×3 affine transforms.
- ``COMMON_LAYOUTS`` — a handful of generic, reusable descriptions.

Generation steps, in order:

1. Fill the grid row by row with pitches (skipping black keys when the
   layout has none).
2. Insert dummy cells, right-to-left within each row.
3. Lay out baseline x by cumulative spacing and y by row.
4. Normalize x, then center every row.
5. Lift black keys towards the row above.
6. Apply the affine transform.
7. Optionally wrap the grid onto a circular arc.
8. Normalize both axes to ``[0, 1]``.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from musicbox.contracts.note_types import NO_KEY, Position
from musicbox.core.errors import LayoutError
from musicbox.core.midi_pitch import is_semitone, midi_pitch_to_name, pitch_value

logger = logging.getLogger(__name__)

Matrix3 = tuple[
    tuple[float, float, float],
    tuple[float, float, float],
    tuple[float, float, float],
]

IDENTITY_MATRIX: Matrix3 = (
    (1.0, 0.0, 0.0),
    (0.0, 1.0, 0.0),
    (0.0, 0.0, 1.0),
)

TRANSFORM_MATRICES: dict[str, Matrix3] = {
    "identity": IDENTITY_MATRIX,
    "center_flip_y": (
        (1.0, 0.0, 0.0),
        (0.0, -1.0, 1.0),
        (0.0, 0.0, 1.0),
    ),
}


class LayoutDescription(BaseModel):
    """Parameters of one keyboard layout.

    ``pitch_range_or_list`` holding exactly two entries is read as a range
    start (the grid is filled upwards from the first pitch; the second one
    documents the expected top key).  Any other length is an explicit list,
    consumed in grid order.

    ``semitone_width``: 0 squeezes a black key between its white neighbours,
    1 gives it a full slot of its own.  ``semitone_height_offset``: 0 keeps
    black keys on their row, 1 lifts them a whole row.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    pitch_range_or_list: tuple[Union[int, str], ...] = Field(min_length=1)
    rows: int = Field(ge=1)
    columns: int = Field(ge=1)
    row_length_overrides: dict[int, int] = Field(default_factory=dict)
    dummy_keys: tuple[tuple[int, int], ...] = ()
    has_semitone: bool = False
    semitone_width: float = 0.0
    semitone_height_offset: float = 0.5
    transform_matrix: Matrix3 = IDENTITY_MATRIX
    center_angle: float = 0.0
    center_radius: float = 1.0
    mirror_arc: bool = True

    @field_validator("pitch_range_or_list")
    @classmethod
    def _pitches_parse(cls, value: tuple[Union[int, str], ...]) -> tuple[Union[int, str], ...]:
        for pitch in value:
            pitch_value(pitch)
        return value

    @field_validator("row_length_overrides")
    @classmethod
    def _overrides_non_negative(cls, value: dict[int, int]) -> dict[int, int]:
        for row, length in value.items():
            if length < 0:
                raise ValueError(f"row {row} length must be >= 0, got {length}")
        return value

    @property
    def uses_pitch_range(self) -> bool:
        return len(self.pitch_range_or_list) == 2

    def row_length(self, row: int) -> int:
        return self.row_length_overrides.get(row, self.columns)


def build_layout_description(data: LayoutDescription | Mapping[str, Any]) -> LayoutDescription:
    """Coerce a mapping into a ``LayoutDescription``; validation failures become ``LayoutError``."""
    if isinstance(data, LayoutDescription):
        return data
    try:
        return LayoutDescription.model_validate(data)
    except ValidationError as exc:
        raise LayoutError(
            "Invalid layout description",
            details=[f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()],
        ) from exc


@dataclass
class _Cell:
    pitch: int
    x: float = 0.0
    y: float = 0.0


# ---------------------------------------------------------------------------
# Generation steps
# ---------------------------------------------------------------------------


def _fill_rows(desc: LayoutDescription) -> list[list[_Cell]]:
    rows: list[list[_Cell]] = []
    if desc.uses_pitch_range:
        cursor = pitch_value(desc.pitch_range_or_list[0])
        for i in range(desc.rows):
            row: list[_Cell] = []
            for _ in range(desc.row_length(i)):
                row.append(_Cell(cursor))
                # skip the black key that would come next
                if not desc.has_semitone and is_semitone(cursor + 1):
                    cursor += 1
                cursor += 1
            rows.append(row)
        return rows

    pitches = [pitch_value(p) for p in desc.pitch_range_or_list]
    needed = sum(desc.row_length(i) for i in range(desc.rows))
    if len(pitches) < needed:
        raise LayoutError(
            "Pitch list is shorter than the key grid",
            details=[f"grid has {needed} cells, got {len(pitches)} pitches"],
        )
    index = 0
    for i in range(desc.rows):
        row = []
        for _ in range(desc.row_length(i)):
            row.append(_Cell(pitches[index]))
            index += 1
        rows.append(row)
    return rows


def _insert_dummy_keys(rows: list[list[_Cell]], dummy_keys: tuple[tuple[int, int], ...]) -> None:
    for i, row in enumerate(rows):
        columns = sorted((col for r, col in dummy_keys if r == i), reverse=True)
        for col in columns:
            row.insert(col, _Cell(NO_KEY))


def _assign_baseline(rows: list[list[_Cell]], desc: LayoutDescription) -> float:
    """Lay out baseline coordinates; returns the row spacing."""
    row_distance = 1.0 if desc.rows == 1 else 1.0 / (desc.rows - 1)
    col_distance = 1.0 if desc.columns == 1 else 1.0 / (desc.columns - 1)
    for i, row in enumerate(rows):
        cur_x = 0.0
        for j, cell in enumerate(row):
            cell.x = cur_x
            cell.y = 1.0 - row_distance * i
            next_is_semitone = j + 1 < len(row) and is_semitone(row[j + 1].pitch)
            if is_semitone(cell.pitch) or next_is_semitone:
                cur_x += col_distance * (1.0 + desc.semitone_width)
            else:
                cur_x += col_distance * 2.0
    return row_distance


def _normalize(cells: list[_Cell], axis: str, reference: list[_Cell] | None = None) -> None:
    """Rescale ``axis`` of ``cells`` so the ``reference`` cells span [0, 1]."""
    reference = reference or cells
    if not reference:
        return
    values = [getattr(c, axis) for c in reference]
    low, high = min(values), max(values)
    span = high - low
    for cell in cells:
        if span == 0:
            setattr(cell, axis, 0.5)
        else:
            setattr(cell, axis, (getattr(cell, axis) - low) / span)


def _center_rows(rows: list[list[_Cell]]) -> None:
    for row in rows:
        if not row:
            continue
        shift = (row[0].x + row[-1].x) / 2.0 - 0.5
        for cell in row:
            cell.x -= shift


def _apply_affine(cells: list[_Cell], matrix: Matrix3) -> None:
    (a, b, c), (d, e, f), _ = matrix
    for cell in cells:
        x, y = cell.x, cell.y
        cell.x = a * x + b * y + c
        cell.y = d * x + e * y + f


def _apply_arc(rows: list[list[_Cell]], desc: LayoutDescription) -> None:
    radius = desc.center_radius
    center_x, center_y = 0.5, -radius
    start = math.pi / 2 - desc.center_angle / 2
    end = math.pi / 2 + desc.center_angle / 2
    cells = [c for row in rows for c in row]
    for cell in cells:
        angle = start + (end - start) * cell.x
        cell.x, cell.y = (
            center_x + (radius + cell.y) * math.cos(angle),
            center_y + (radius + cell.y) * math.sin(angle),
        )
    _normalize(cells, "x")
    _normalize(cells, "y")
    if desc.mirror_arc:
        # Arc angles grow counter-clockwise; flip each row back to left-to-right
        for row in rows:
            positions = [(c.x, c.y) for c in reversed(row)]
            for cell, (x, y) in zip(row, positions):
                cell.x, cell.y = x, y


def generate_layout(description: LayoutDescription | Mapping[str, Any]) -> dict[str, Position]:
    """Generate the pitch name → normalized position table for ``description``.

    Dummy cells take part in spacing but are left out of the result.  Every
    produced axis spans exactly ``[0, 1]`` unless all keys share one value
    on that axis, in which case it is 0.5.

    Raises:
        LayoutError: If the description is invalid or the pitch list cannot
            fill the grid.
    """
    desc = build_layout_description(description)
    rows = _fill_rows(desc)
    if desc.dummy_keys:
        _insert_dummy_keys(rows, desc.dummy_keys)

    row_distance = _assign_baseline(rows, desc)
    cells = [c for row in rows for c in row]
    if not cells:
        raise LayoutError("Layout has no keys")

    _normalize(cells, "x")
    _center_rows(rows)

    for cell in cells:
        if is_semitone(cell.pitch):
            cell.y -= row_distance * desc.semitone_height_offset

    if desc.transform_matrix != IDENTITY_MATRIX:
        _apply_affine(cells, desc.transform_matrix)

    if desc.center_angle != 0:
        _apply_arc(rows, desc)

    # Dummy cells may sit outside the emitted keys' bounding box
    keys = [c for c in cells if c.pitch != NO_KEY]
    _normalize(cells, "x", keys)
    _normalize(cells, "y", keys)

    layout: dict[str, Position] = {}
    for cell in cells:
        if cell.pitch == NO_KEY:
            continue
        layout[midi_pitch_to_name(cell.pitch)] = Position(cell.x, cell.y)
    logger.debug("Generated layout with %d keys (%d rows)", len(layout), desc.rows)
    return layout


# ---------------------------------------------------------------------------
# Common layouts
# ---------------------------------------------------------------------------

COMMON_LAYOUTS: dict[str, LayoutDescription] = {
    "generic_3x7": LayoutDescription(
        pitch_range_or_list=("C3", "B5"),
        rows=3,
        columns=7,
    ),
    "generic_3x12": LayoutDescription(
        pitch_range_or_list=("C3", "B5"),
        rows=3,
        columns=12,
        has_semitone=True,
        semitone_height_offset=0,
        semitone_width=1,
    ),
    "generic_2x7": LayoutDescription(
        pitch_range_or_list=("C4", "B5"),
        rows=2,
        columns=7,
    ),
    "generic_7_7_8": LayoutDescription(
        pitch_range_or_list=("C3", "C6"),
        rows=3,
        columns=7,
        row_length_overrides={2: 8},
    ),
    "generic_piano88": LayoutDescription(
        pitch_range_or_list=("A0", "C8"),
        rows=1,
        columns=88,
        has_semitone=True,
        semitone_height_offset=1,
    ),
    "curved_3x7": LayoutDescription(
        pitch_range_or_list=("C3", "B5"),
        rows=3,
        columns=7,
        center_angle=math.pi / 40,
        center_radius=100,
    ),
    "sloped_3x7": LayoutDescription(
        pitch_range_or_list=("C3", "B5"),
        rows=3,
        columns=7,
        transform_matrix=(
            (1.0, 0.11, 0.0),
            (0.0, 1.0, 0.0),
            (0.0, 0.0, 1.0),
        ),
    ),
    "flipped_3x5": LayoutDescription(
        pitch_range_or_list=("C3", "C5"),
        rows=3,
        columns=5,
        transform_matrix=TRANSFORM_MATRICES["center_flip_y"],
    ),
}


def get_common_layout(name: str) -> LayoutDescription:
    try:
        return COMMON_LAYOUTS[name]
    except KeyError:
        raise LayoutError(
            f"Unknown layout: {name}",
            details=[f"known layouts: {', '.join(sorted(COMMON_LAYOUTS))}"],
        ) from None
