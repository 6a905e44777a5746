"""Musicbox CLI — Typer application root.

Entry point for the ``musicbox`` console script::

    musicbox render song.json --layout generic_3x7 --anchors 100,200,900,600
    musicbox render song.json --layout generic_3x12 --auto-offset --json
    musicbox layout generic_3x7

``render`` reads a parsed track set (JSON) and prints either a summary or
the gesture groups as JSON.  ``layout`` prints a generated key layout.
"""
from __future__ import annotations

import enum
import json
import logging
import pathlib
from typing import Optional

import typer
from typing_extensions import Annotated

from musicbox.config import configure_logging
from musicbox.core.errors import MusicboxError
from musicbox.core.layout import generate_layout, get_common_layout
from musicbox.core.profile import KeyProfile
from musicbox.passes import SemitoneRoundingMode
from musicbox.pipeline import PlaybackOptions, render_gestures
from musicbox.serialization import gestures_to_dict, track_set_from_dict

logger = logging.getLogger(__name__)


class ExitCode(enum.IntEnum):
    """Standardised CLI exit codes.

    0 — success
    1 — user error (bad arguments, invalid input)
    3 — internal error
    """

    SUCCESS = 0
    USER_ERROR = 1
    INTERNAL_ERROR = 3


cli = typer.Typer(
    name="musicbox",
    help="Musicbox — turn parsed music into timed touch gestures.",
    no_args_is_help=True,
)


def _parse_anchors(raw: str) -> tuple[tuple[float, float], tuple[float, float]]:
    parts = [p.strip() for p in raw.split(",")]
    if len(parts) != 4:
        raise typer.BadParameter("expected four comma-separated numbers: x1,y1,x2,y2")
    try:
        x1, y1, x2, y2 = (float(p) for p in parts)
    except ValueError:
        raise typer.BadParameter(f"not a number in {raw!r}") from None
    return (x1, y1), (x2, y2)


@cli.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log debug output."),
    ] = False,
) -> None:
    configure_logging("DEBUG" if verbose else None)


@cli.command("render")
def render(
    input_path: Annotated[
        pathlib.Path,
        typer.Argument(help="Track-set JSON produced by a format parser.", exists=True, dir_okay=False),
    ],
    layout: Annotated[
        str,
        typer.Option("--layout", "-l", help="Name of a common layout, e.g. generic_3x7."),
    ] = "generic_3x7",
    anchors: Annotated[
        Optional[str],
        typer.Option("--anchors", metavar="X1,Y1,X2,Y2", help="Top-left and bottom-right key positions."),
    ] = None,
    offset: Annotated[
        int,
        typer.Option("--offset", help="Transpose by this many semitones."),
    ] = 0,
    auto_offset: Annotated[
        bool,
        typer.Option("--auto-offset", help="Search for the transposition that keeps the most notes."),
    ] = False,
    rounding: Annotated[
        SemitoneRoundingMode,
        typer.Option("--rounding", help="How to handle pitches without a key."),
    ] = SemitoneRoundingMode.FLOOR,
    speed: Annotated[
        float,
        typer.Option("--speed", help="Playback speed multiplier."),
    ] = 1.0,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Emit the gesture groups as JSON."),
    ] = False,
) -> None:
    """Run the standard pipeline on a parsed track set."""
    try:
        data = json.loads(input_path.read_text(encoding="utf-8"))
        track_set = track_set_from_dict(data)
        note_count = track_set.total_note_count
        profile = KeyProfile(get_common_layout(layout))
        if anchors is not None:
            profile.set_anchors(*_parse_anchors(anchors))
        options = PlaybackOptions(
            pitch_offset=offset,
            infer_pitch_offset=auto_offset,
            semitone_rounding_mode=rounding,
            speed=speed,
        )
        gestures, statistics = render_gestures(track_set, profile, options)
    except typer.BadParameter:
        raise
    except (MusicboxError, json.JSONDecodeError) as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=ExitCode.USER_ERROR)
    except Exception as exc:
        typer.echo(f"❌ musicbox render failed: {exc}")
        logger.error("❌ musicbox render error: %s", exc, exc_info=True)
        raise typer.Exit(code=ExitCode.INTERNAL_ERROR)

    if as_json:
        typer.echo(json.dumps(gestures_to_dict(gestures)))
        return

    touches = sum(len(g.gestures) for g in gestures)
    typer.echo(f"✅ {len(gestures)} gesture groups, {touches} touches from {note_count} notes")
    for pass_name, stats in statistics.items():
        if stats:
            summary = ", ".join(f"{k}={v}" for k, v in stats.items())
            typer.echo(f"  {pass_name}: {summary}")


@cli.command("layout")
def layout_cmd(
    name: Annotated[str, typer.Argument(help="Name of a common layout.")],
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Emit the layout as JSON."),
    ] = False,
) -> None:
    """Print the normalized key positions of a common layout."""
    try:
        positions = generate_layout(get_common_layout(name))
    except MusicboxError as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=ExitCode.USER_ERROR)

    if as_json:
        typer.echo(json.dumps({pitch: [pos.x, pos.y] for pitch, pos in positions.items()}))
        return
    for pitch, pos in positions.items():
        typer.echo(f"{pitch:>4}  {pos.x:.3f}  {pos.y:.3f}")


if __name__ == "__main__":
    cli()
