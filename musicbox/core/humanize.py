"""Onset humanization: jitter note times so playback sounds hand-played."""
from __future__ import annotations

import logging
import random

from musicbox.contracts.note_types import TimelineEntry

logger = logging.getLogger(__name__)

DEFAULT_STD_DEV_MS = 200.0


def humanize_onsets(
    entries: list[TimelineEntry],
    std_dev_ms: float = DEFAULT_STD_DEV_MS,
    rng: random.Random | None = None,
) -> list[TimelineEntry]:
    """Add zero-mean gaussian noise to every onset, clamp at 0 and re-sort.

    Pass a seeded ``random.Random`` for reproducible output.
    """
    rng = rng or random.Random()
    if std_dev_ms <= 0:
        return entries
    for entry in entries:
        entry.time = max(0.0, entry.time + rng.gauss(0.0, std_dev_ms))
    entries.sort(key=lambda entry: entry.time)
    logger.debug("Humanized %d onsets (std dev %.1f ms)", len(entries), std_dev_ms)
    return entries
