"""Gesture emission: turn a key timeline into timed multi-touch gesture groups.

Two duration modes:

``none``
    Every chord becomes one group of simultaneous taps, each
    ``press_duration`` ms long.

``native``
    Keys are held for their ``duration`` attribute.  Presses are packed
    into groups that the input layer dispatches as one multi-touch gesture.
    The layer cannot express a release that coincides with another press,
    so ends are pulled back to leave ``margin_duration`` ms of air.

Group boundaries in ``native`` mode (``n`` = presses in the current group,
``gap`` = next onset minus the current group's latest end):

- ``n >= max_gesture_size``: always split.
- ``n < ceil(size / 3)``: split only when ``gap > margin_duration``, so a
  few overlapping keys stay together.
- ``n > ceil(2 * size / 3)``: split unless the next press starts more than
  ``margin_duration`` before the group ends, so large groups break early.
- otherwise: split when ``gap > 1`` ms.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import Field

from musicbox.config import settings
from musicbox.contracts.note_types import Gesture, GestureGroup, TimelineEntry
from musicbox.core.errors import ProcessingError
from musicbox.core.profile import KeyProfile
from musicbox.core.timeline import chord_iterator
from musicbox.passes.base import Pass, PassConfig, ProgressCallback

logger = logging.getLogger(__name__)

_MID_GROUP_EPSILON_MS = 1


class DurationMode(str, Enum):
    NONE = "none"
    NATIVE = "native"


class KeyToGestureConfig(PassConfig):
    profile: KeyProfile
    duration_mode: DurationMode = DurationMode.NONE
    press_duration: float = Field(default=settings.press_duration_ms, gt=0)
    max_gesture_duration: float = Field(default=settings.max_gesture_duration_ms, gt=0)
    max_gesture_size: int = Field(default=settings.max_gesture_size, ge=1)
    margin_duration: float = Field(default=settings.margin_duration_ms, ge=0)


@dataclass
class _Press:
    key: int
    start: float
    end: float


class KeyToGesturePass(Pass):
    """Convert a key timeline into ``GestureGroup`` records.

    Keys without a position on the profile (including ``NO_KEY``) are
    discarded and counted.  In ``native`` mode a note without ``duration``
    is held for ``press_duration``; a timeline where no note has a duration
    falls back to ``none`` mode.

    Raises:
        ProcessingError: If the timeline is empty.
    """

    name = "KeyToGesturePass"
    description = "Convert keys to gestures"
    config_class = KeyToGestureConfig

    def run(self, data: list[TimelineEntry], progress_callback: Optional[ProgressCallback] = None) -> list[GestureGroup]:
        self._statistics = {
            "directly_truncated_note_count": 0,
            "group_truncated_note_count": 0,
            "same_key_truncated_note_count": 0,
            "removed_short_note_count": 0,
            "discarded_key_count": 0,
        }
        if not data:
            raise ProcessingError("KeyToGesturePass needs at least one key")

        mode = self.config.duration_mode
        if mode == DurationMode.NATIVE and not any("duration" in e.attrs for e in data):
            logger.warning("⚠️ No note carries a duration; emitting fixed-length taps")
            mode = DurationMode.NONE

        if mode == DurationMode.NONE:
            groups = self._tap_groups(data)
        else:
            groups = self._press_groups(self._group_presses(data))

        self._log_statistics()
        return groups

    # ------------------------------------------------------------------
    # none mode
    # ------------------------------------------------------------------

    def _tap_groups(self, data: list[TimelineEntry]) -> list[GestureGroup]:
        profile = self.config.profile
        groups: list[GestureGroup] = []
        for chord in chord_iterator(data):
            gestures: list[Gesture] = []
            for entry in chord:
                position = profile.get_key_position(entry.value)
                if position is None:
                    logger.debug("Key %d has no position; discarded", entry.value)
                    self._statistics["discarded_key_count"] += 1
                    continue
                gestures.append(Gesture(0, self.config.press_duration, position))
            if gestures:
                groups.append(GestureGroup(gestures, chord[0].time))
        return groups

    # ------------------------------------------------------------------
    # native mode
    # ------------------------------------------------------------------

    def _starts_new_group(self, size: int, start: float, group_end: float) -> bool:
        max_size = self.config.max_gesture_size
        margin = self.config.margin_duration
        size_low = math.ceil(max_size / 3)
        size_mid = math.ceil(max_size * 2 / 3)
        gap = start - group_end
        return (
            size >= max_size
            or (size < size_low and gap > margin)
            or (size > size_mid and gap > -margin)
            or (size_low <= size <= size_mid and gap > _MID_GROUP_EPSILON_MS)
        )

    def _pull_back_ends(self, group: list[_Press], start: float) -> None:
        margin = self.config.margin_duration
        for press in group:
            if abs(press.end - start) < margin:
                press.end = start - margin

    def _group_presses(self, data: list[TimelineEntry]) -> list[list[_Press]]:
        cfg = self.config
        groups: list[list[_Press]] = []
        current: list[_Press] = []
        group_end = 0.0

        for entry in data:
            start = entry.time
            duration = entry.attrs.get("duration", cfg.press_duration)
            if duration > cfg.max_gesture_duration:
                duration = cfg.max_gesture_duration
                self._statistics["directly_truncated_note_count"] += 1
            end = start + duration

            if current and self._starts_new_group(len(current), start, group_end):
                for press in current:
                    if press.end > start:
                        press.end = start
                        self._statistics["group_truncated_note_count"] += 1
                self._pull_back_ends(current, start)
                groups.append(current)
                current = []

            if not current:
                current.append(_Press(entry.value, start, end))
                group_end = end
                continue

            for press in current:
                if press.key == entry.value and press.end > start:
                    press.end = start - cfg.margin_duration
                    self._statistics["same_key_truncated_note_count"] += 1
                    break

            self._pull_back_ends(current, start)
            current.append(_Press(entry.value, start, end))
            group_end = max(group_end, end)

        if current:
            groups.append(current)
        return groups

    def _press_groups(self, groups: list[list[_Press]]) -> list[GestureGroup]:
        profile = self.config.profile
        result: list[GestureGroup] = []
        for group in groups:
            group_start = group[0].start
            gestures: list[Gesture] = []
            for press in group:
                duration = press.end - press.start
                if duration < self.config.press_duration:
                    self._statistics["removed_short_note_count"] += 1
                    continue
                position = profile.get_key_position(press.key)
                if position is None:
                    logger.debug("Key %d has no position; discarded", press.key)
                    self._statistics["discarded_key_count"] += 1
                    continue
                gestures.append(Gesture(press.start - group_start, duration, position))
            if gestures:
                result.append(GestureGroup(gestures, group_start))
        return result
