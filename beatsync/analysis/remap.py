"""Refine one file's beat times inside its segment's transcript range.

Segment matching only places a file's segment on the timeline; once the beat
texts of that file are known, matching them against the handful of cues
inside the segment's range is far more precise than searching the whole
transcript.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..util.types import Beat, BeatTimingResult, Cue, SegmentMatch
from .beat_alignment import BeatAlignmentConfig, time_beats


logger = logging.getLogger(__name__)

# Cues starting this close outside the segment range are still considered
SEGMENT_BUFFER_SECONDS = 2.0


def cues_in_range(
    cues: Sequence[Cue],
    start_time: float,
    end_time: float,
    buffer_seconds: float = SEGMENT_BUFFER_SECONDS,
) -> List[Cue]:
    """Cues whose start lies within [start - buffer, end + buffer]."""
    lo = start_time - buffer_seconds
    hi = end_time + buffer_seconds
    return [c for c in cues if lo <= c.start_time <= hi]


def remap_beats_to_segment(
    cues: Sequence[Cue],
    beats: Sequence[Beat],
    segment_match: SegmentMatch,
    *,
    buffer_seconds: float = SEGMENT_BUFFER_SECONDS,
    config: Optional[BeatAlignmentConfig] = None,
) -> Optional[BeatTimingResult]:
    """Align beats against only the cues of one segment's time range.

    Returns:
        The refined BeatTimingResult (method "script-match-refined"), or None
        when there is nothing to refine: no beats, no segment range, or no
        cues inside the range.
    """
    if not beats:
        return None
    if segment_match.start_time is None or segment_match.end_time is None:
        return None

    scoped = cues_in_range(cues, segment_match.start_time, segment_match.end_time, buffer_seconds)
    if not scoped:
        logger.info("Segment %s has no cues in range, keeping existing timing", segment_match.num)
        return None

    result = time_beats(
        scoped,
        beats,
        floor_time=segment_match.start_time,
        ceil_time=segment_match.end_time,
        config=config,
    )
    result.method = "script-match-refined"
    return result
