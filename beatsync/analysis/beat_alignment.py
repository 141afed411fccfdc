"""Forward-only alignment of animation beats to transcript cues.

Beats happen in click order and the voiceover follows the same order, so each
beat may only match a cue after the one matched by the previous beat. The
search cursor is threaded explicitly through the loop, which keeps every run
a pure function of its inputs.

Unmatched beats (below threshold, empty text, or silent/data beats that have
no spoken counterpart) are later filled in by the timing interpolator.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..util.types import (
    BEAT_TYPE_LABEL,
    UNSPOKEN_BEAT_TYPES,
    Beat,
    BeatMatch,
    BeatTimingResult,
    Cue,
)
from .interpolation import interpolate_beat_times, resolve_bounds, round_ms
from .normalization import normalize_text
from .similarity import similarity


logger = logging.getLogger(__name__)

SPEECH_THRESHOLD = 0.15
# Short UI labels match weakly but reliably
LABEL_THRESHOLD = 0.08
CONTAINMENT_FLOOR = 0.25
CONTAINMENT_MIN_CHARS = 3
MAX_CUES_PER_BEAT = 3


@dataclass
class BeatAlignmentConfig:
    """Configuration for beat-to-cue matching."""
    speech_threshold: float = SPEECH_THRESHOLD
    label_threshold: float = LABEL_THRESHOLD
    containment_floor: float = CONTAINMENT_FLOOR
    containment_min_chars: int = CONTAINMENT_MIN_CHARS
    max_cues_per_beat: int = MAX_CUES_PER_BEAT  # a beat may span 1..N consecutive cues

    def threshold_for(self, beat_type: Optional[str]) -> float:
        return self.label_threshold if beat_type == BEAT_TYPE_LABEL else self.speech_threshold


def _to_percent(score: float) -> int:
    return int(math.floor(score * 100 + 0.5))


def beats_from_texts(
    texts: Sequence[str],
    types: Optional[Sequence[Optional[str]]] = None,
) -> List[Beat]:
    """Build Beat objects from the detector's parallel text/type lists."""
    beats: List[Beat] = []
    for i, text in enumerate(texts):
        beat_type = types[i] if types is not None and i < len(types) else None
        beats.append(Beat(index=i, text=text or "", type=beat_type))
    return beats


def _window_score(beat_text: str, window_text: str, config: BeatAlignmentConfig) -> float:
    """Score a beat against one candidate window of joined cue texts."""
    score = similarity(beat_text, window_text)
    # Short phrases found verbatim get a guaranteed minimum
    if len(beat_text) >= config.containment_min_chars and beat_text in window_text:
        score = max(score, config.containment_floor)
    return score


def _best_cue(
    beat_text: str,
    cue_texts: Sequence[str],
    search_start: int,
    config: BeatAlignmentConfig,
) -> Tuple[int, float]:
    """Find the best-scoring cue at or after ``search_start``.

    Each cue is scored alone and joined with up to ``max_cues_per_beat - 1``
    following cues; the cue keeps the best of those windows. The first cue
    reaching the maximum wins.

    Returns:
        (cue_index, score), with cue_index -1 when nothing scored above 0
    """
    best_idx = -1
    best_score = 0.0

    for cue_idx in range(search_start, len(cue_texts)):
        score = 0.0
        window = cue_texts[cue_idx]
        for span in range(config.max_cues_per_beat):
            if span > 0:
                if cue_idx + span >= len(cue_texts):
                    break
                window = window + " " + cue_texts[cue_idx + span]
            score = max(score, _window_score(beat_text, window, config))

        if score > best_score:
            best_score = score
            best_idx = cue_idx

    return best_idx, best_score


def align_beats(
    cues: Sequence[Cue],
    beats: Sequence[Beat],
    config: Optional[BeatAlignmentConfig] = None,
) -> List[BeatMatch]:
    """Align beats to cues, strictly forward.

    Args:
        cues: Parsed transcript cues in source order
        beats: Beats in click order
        config: Matching thresholds (defaults to BeatAlignmentConfig())

    Returns:
        One BeatMatch per beat, in beat order. Matched cue indices are
        strictly increasing.
    """
    if config is None:
        config = BeatAlignmentConfig()

    cue_texts = [normalize_text(c.text) for c in cues]
    search_start = 0
    matches: List[BeatMatch] = []

    for beat in beats:
        if beat.type in UNSPOKEN_BEAT_TYPES:
            matches.append(
                BeatMatch(beat_index=beat.index, cue_index=None, score=0,
                          beat_text=beat.text, skipped=beat.type)
            )
            continue

        beat_text = normalize_text(beat.text)
        if not beat_text:
            matches.append(BeatMatch(beat_index=beat.index, cue_index=None, score=0, beat_text=beat.text))
            continue

        best_idx, best_score = _best_cue(beat_text, cue_texts, search_start, config)

        if best_idx >= 0 and best_score >= config.threshold_for(beat.type):
            search_start = best_idx + 1
            cue = cues[best_idx]
            matches.append(
                BeatMatch(
                    beat_index=beat.index,
                    cue_index=best_idx,
                    score=_to_percent(best_score),
                    beat_text=beat.text,
                    cue_text=cue.text,
                    time=cue.start_time,
                    cue_id=cue.index,
                )
            )
        else:
            logger.debug("Beat %d unmatched (best %.3f)", beat.index, best_score)
            matches.append(BeatMatch(beat_index=beat.index, cue_index=None, score=0, beat_text=beat.text))

    return matches


def map_cues_one_to_one(cues: Sequence[Cue], beat_count: int) -> BeatTimingResult:
    """Use each cue's start time as a beat time, in order.

    Used when the beat detector supplied a beat count but no beat texts.
    """
    return BeatTimingResult(
        beat_times=[c.start_time for c in cues],
        matches=[],
        cue_count=len(cues),
        beat_count=beat_count,
        matched_count=0,
        all_matched=len(cues) == beat_count,
        method="one-to-one",
    )


def time_beats(
    cues: Sequence[Cue],
    beats: Sequence[Beat],
    *,
    floor_time: Optional[float] = None,
    ceil_time: Optional[float] = None,
    config: Optional[BeatAlignmentConfig] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> BeatTimingResult:
    """Align beats to cues and produce a complete, monotonic beat time array.

    Args:
        cues: Parsed transcript cues
        beats: Beats in click order
        floor_time: Optional lower bound (e.g. segment start) for extrapolation
        ceil_time: Optional upper bound (e.g. segment end) for extrapolation
        config: Matching thresholds
        metadata: Optional metadata dict to update in place

    Returns:
        BeatTimingResult with one time per beat. With no beats at all, the cue
        start times are returned (method "fallback").
    """
    if metadata is None:
        metadata = {}

    if not beats:
        result = BeatTimingResult(
            beat_times=[c.start_time for c in cues],
            matches=[],
            cue_count=len(cues),
            beat_count=0,
            matched_count=0,
            all_matched=False,
            method="fallback",
        )
        metadata["beat_alignment"] = {"method": result.method, "cue_count": len(cues)}
        return result

    matches = align_beats(cues, beats, config)
    floor_time, ceil_time = resolve_bounds(cues, len(beats), floor_time, ceil_time)
    beat_times = interpolate_beat_times([m.time for m in matches], floor_time, ceil_time)
    matched_count = sum(1 for m in matches if m.matched)

    logger.info("Matched %d of %d beats against %d cues", matched_count, len(beats), len(cues))

    metadata["beat_alignment"] = {
        "method": "text-match",
        "cue_count": len(cues),
        "beat_count": len(beats),
        "matched_count": matched_count,
        "skipped_count": sum(1 for m in matches if m.skipped),
        "floor_time": round_ms(floor_time),
        "ceil_time": round_ms(ceil_time),
    }

    return BeatTimingResult(
        beat_times=beat_times,
        matches=matches,
        cue_count=len(cues),
        beat_count=len(beats),
        matched_count=matched_count,
        all_matched=matched_count == len(beats),
        method="text-match",
    )
