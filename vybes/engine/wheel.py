"""
vybes.engine.wheel — Weighted Segment Selection
================================================

Pure selection logic for the lottery wheel.  The random source is always
passed in so tests can supply a seeded :class:`random.Random`.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from vybes.engine.catalog import WheelSegment


class RandomSource(Protocol):
    def random(self) -> float: ...


def cumulative_boundaries(segments: Sequence[WheelSegment]) -> list[float]:
    """Running sum of segment probabilities, in list order.

    The final boundary is forced to exactly ``1.0`` so the last segment
    stays reachable even when the float sum lands a hair below one.
    """
    boundaries: list[float] = []
    running = 0.0
    for seg in segments:
        running += seg.probability
        boundaries.append(running)
    if boundaries:
        boundaries[-1] = 1.0
    return boundaries


def select_segment(segments: Sequence[WheelSegment], r: float) -> WheelSegment:
    """First segment whose cumulative boundary is ``>= r``.

    *r* is expected in ``[0, 1)``; with the clamped final boundary every such
    value maps to a segment.
    """
    if not segments:
        raise ValueError("Wheel has no segments")
    for seg, boundary in zip(segments, cumulative_boundaries(segments)):
        if boundary >= r:
            return seg
    return segments[-1]


def spin(segments: Sequence[WheelSegment], rng: RandomSource) -> WheelSegment:
    """Draw once from *rng* and return the selected segment."""
    return select_segment(segments, rng.random())
