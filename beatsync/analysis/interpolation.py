"""Timing interpolation: turn sparse anchor times into complete timelines.

Beat runs and segment lists come out of the matchers with gaps wherever no
confident match was found. The functions here fill those gaps by linear
interpolation between anchors and by extrapolation toward the provided (or
transcript-derived) bounds, always producing monotonic, fully-populated
output.
"""

from __future__ import annotations

import bisect
import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..util.types import Cue, SegmentMatch


# Seconds allotted to each unmatched segment when extrapolating
DEFAULT_SEGMENT_GAP_SECONDS = 3.0

# Seconds per beat assumed when there is neither a transcript nor bounds
FALLBACK_SECONDS_PER_BEAT = 2.0


def round_ms(t: float) -> float:
    """Round seconds to millisecond precision, halves rounding up."""
    return math.floor(t * 1000 + 0.5) / 1000


def resolve_bounds(
    cues: Sequence[Cue],
    count: int,
    floor_time: Optional[float] = None,
    ceil_time: Optional[float] = None,
) -> Tuple[float, float]:
    """Pick the floor/ceiling used to anchor interpolation at the edges.

    Explicit bounds win; otherwise the first cue start and last cue end are
    used, and without cues the range is [0, count × 2s]. The ceiling never
    lies below the floor.
    """
    if floor_time is None:
        floor_time = cues[0].start_time if cues else 0.0
    if ceil_time is None:
        ceil_time = cues[-1].end_time if cues else count * FALLBACK_SECONDS_PER_BEAT
    return float(floor_time), float(max(floor_time, ceil_time))


def _neighbors(anchors: List[int], i: int) -> Tuple[Optional[int], Optional[int]]:
    """Nearest anchor positions strictly before and after ``i``."""
    pos = bisect.bisect_left(anchors, i)
    prev_idx = anchors[pos - 1] if pos > 0 else None
    next_idx = anchors[pos] if pos < len(anchors) else None
    return prev_idx, next_idx


def interpolate_beat_times(
    times: Sequence[Optional[float]],
    floor_time: float,
    ceil_time: float,
) -> List[float]:
    """Fill ``None`` entries of a beat time array.

    - No anchors: spread all beats evenly over [floor, ceil]; a single beat
      sits at the midpoint.
    - Between two anchors: linear interpolation by beat position.
    - After the last anchor: even steps toward ``ceil_time``.
    - Before the first anchor: even steps back toward ``floor_time``,
      never below it.

    A ceiling below the floor is raised to the floor. The result is
    non-decreasing and rounded to milliseconds.
    """
    total = len(times)
    if total == 0:
        return []
    ceil_time = max(floor_time, ceil_time)

    anchors = [i for i, t in enumerate(times) if t is not None]

    if not anchors:
        if total == 1:
            values = np.array([(floor_time + ceil_time) / 2])
        else:
            values = np.linspace(floor_time, ceil_time, total)
        return [round_ms(float(v)) for v in values]

    filled: List[float] = [0.0] * total
    for i, t in enumerate(times):
        if t is not None:
            filled[i] = float(t)
            continue

        prev_idx, next_idx = _neighbors(anchors, i)
        if prev_idx is not None and next_idx is not None:
            prev_t = float(times[prev_idx])
            next_t = float(times[next_idx])
            frac = (i - prev_idx) / (next_idx - prev_idx)
            filled[i] = prev_t + frac * (next_t - prev_t)
        elif prev_idx is not None:
            prev_t = float(times[prev_idx])
            unmatched_after = total - 1 - prev_idx
            step = max(0.0, ceil_time - prev_t) / unmatched_after
            filled[i] = prev_t + (i - prev_idx) * step
        else:
            next_t = float(times[next_idx])
            step = max(0.0, next_t - floor_time) / next_idx
            filled[i] = max(floor_time, next_t - (next_idx - i) * step)

    # Anchors come from cue start times, which are not guaranteed sorted
    monotonic = np.maximum.accumulate(np.asarray(filled, dtype=float))
    return [round_ms(float(v)) for v in monotonic]


def subdivide_range(start: float, end: float, count: int) -> List[float]:
    """Spread ``count`` beat times evenly from ``start`` to ``end`` inclusive.

    Zero or one beat yields ``[start]``.
    """
    if count <= 1:
        return [round_ms(start)]
    return [round_ms(float(v)) for v in np.linspace(start, max(start, end), count)]


def interpolate_segment_ranges(
    matches: List[SegmentMatch],
    gap_seconds: float = DEFAULT_SEGMENT_GAP_SECONDS,
) -> List[SegmentMatch]:
    """Give every segment without a time range an interpolated one (in place).

    Segments between two timed neighbors share the gap from the earlier
    neighbor's end to the later neighbor's start in equal consecutive slots.
    Before the first / after the last timed segment each one gets a slot of
    ``gap_seconds`` (squeezed so nothing falls below zero). Slots after the
    last timed segment start right at its end, with no extra gap in between.
    With no timed segment at all, slot i covers [i × gap, (i + 1) × gap].
    """
    anchors = [
        i for i, m in enumerate(matches)
        if m.start_time is not None and m.end_time is not None
    ]

    if not anchors:
        for i, m in enumerate(matches):
            m.start_time = round_ms(i * gap_seconds)
            m.end_time = round_ms((i + 1) * gap_seconds)
        return matches

    for i, m in enumerate(matches):
        if m.start_time is not None and m.end_time is not None:
            continue

        prev_idx, next_idx = _neighbors(anchors, i)
        if prev_idx is not None and next_idx is not None:
            prev_end = matches[prev_idx].end_time
            next_start = matches[next_idx].start_time
            base = min(prev_end, next_start)
            slot = max(0.0, next_start - prev_end) / (next_idx - prev_idx - 1)
            start = base + (i - prev_idx - 1) * slot
        elif prev_idx is not None:
            slot = gap_seconds
            start = matches[prev_idx].end_time + (i - prev_idx - 1) * slot
        else:
            first_start = matches[next_idx].start_time
            slot = min(gap_seconds, max(0.0, first_start) / next_idx)
            start = first_start - (next_idx - i) * slot

        m.start_time = round_ms(start)
        m.end_time = round_ms(start + slot)

    return matches
