"""Project-level alignment of voiceover segment scripts to transcript windows.

Two passes:

1. Best window per segment, independently. Every start cue is expanded into
   a window of up to ``max_window_cues`` cues, scored with two asymmetric
   coverage measures over content words:

   - srt coverage: share of the window's content words found in the script.
     Scripts mix dialogue with stage directions, so extra script words never
     penalize a window.
   - script coverage: share of the script's content words found in the window.

   ``score = 0.6 * srt_coverage + 0.4 * script_coverage``. Expansion from a
   start stops once ``patience`` additions in a row bring no improvement.

2. Monotonic conflict resolution. Matched segments are visited by descending
   confidence and each keeps its window only if it lies strictly after every
   accepted window of an earlier segment and strictly before every accepted
   window of a later one. Losers become unmatched, so confidence never
   overrides script order.

Unmatched segments then receive interpolated time ranges. A segment placed
wrongly can afterwards be moved by hand with ``rematch_segment``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from ..util.types import Cue, Segment, SegmentAlignmentResult, SegmentMatch
from .interpolation import DEFAULT_SEGMENT_GAP_SECONDS, interpolate_segment_ranges, round_ms
from .normalization import content_words, is_content_word, normalize_text, word_set


logger = logging.getLogger(__name__)

MAX_WINDOW_CUES = 40
NO_IMPROVEMENT_PATIENCE = 10
MIN_SEGMENT_CONFIDENCE = 0.25
SRT_COVERAGE_WEIGHT = 0.6
SCRIPT_COVERAGE_WEIGHT = 0.4
MIN_SCRIPT_CHARS = 10

# Cues starting this long before a segment still count as owned by it
OWNERSHIP_LEAD_SECONDS = 0.5


@dataclass
class SegmentAlignmentConfig:
    """Configuration for segment window matching.

    The window cap and the patience are empirical bounds; changing either
    changes which windows can be found.
    """
    max_window_cues: int = MAX_WINDOW_CUES
    patience: int = NO_IMPROVEMENT_PATIENCE
    min_confidence: float = MIN_SEGMENT_CONFIDENCE
    srt_coverage_weight: float = SRT_COVERAGE_WEIGHT
    script_coverage_weight: float = SCRIPT_COVERAGE_WEIGHT
    min_script_chars: int = MIN_SCRIPT_CHARS
    gap_seconds: float = DEFAULT_SEGMENT_GAP_SECONDS


def _to_percent(score: float) -> int:
    return int(math.floor(score * 100 + 0.5))


def find_best_window(
    script_words: Set[str],
    cue_word_sets: Sequence[Set[str]],
    config: SegmentAlignmentConfig,
) -> Tuple[int, int, float]:
    """Search all windows of consecutive cues for the best match to a script.

    Args:
        script_words: Unique tokens of the normalized script
        cue_word_sets: Unique tokens of each normalized cue, in cue order
        config: Window cap, patience and score weights

    Returns:
        (start, end, score) with ``end`` inclusive; (-1, -1, 0.0) when no
        window has any content word.
    """
    script_content = content_words(script_words)
    best = (-1, -1, 0.0)

    for start in range(len(cue_word_sets)):
        window_words: Set[str] = set()
        window_content = 0
        srt_hits = 0      # window content words present in the script
        script_hits = 0   # script content words present in the window
        peak = 0.0
        stale = 0

        stop = min(len(cue_word_sets), start + config.max_window_cues)
        for end in range(start, stop):
            for w in cue_word_sets[end]:
                if w in window_words:
                    continue
                window_words.add(w)
                if w in script_content:
                    script_hits += 1
                if is_content_word(w):
                    window_content += 1
                    if w in script_words:
                        srt_hits += 1

            if window_content == 0:
                continue

            srt_coverage = srt_hits / window_content
            script_coverage = script_hits / len(script_content) if script_content else 0.0
            score = (config.srt_coverage_weight * srt_coverage
                     + config.script_coverage_weight * script_coverage)

            if score > peak:
                peak = score
                stale = 0
            else:
                stale += 1

            if score > best[2]:
                best = (start, end, score)

            if stale > config.patience:
                break

    return best


def resolve_conflicts(matches: List[SegmentMatch]) -> List[SegmentMatch]:
    """Keep only cue ranges consistent with segment order (in place).

    Candidates are taken by descending confidence (ties keep script order).
    A candidate is accepted only if every already-accepted range of an
    earlier segment ends strictly before it starts and every accepted range
    of a later segment starts strictly after it ends. Rejected candidates are
    demoted to unmatched.
    """
    candidates = sorted(
        (i for i, m in enumerate(matches) if m.matched),
        key=lambda i: -matches[i].confidence,
    )
    assigned: List[Optional[Tuple[int, int]]] = [None] * len(matches)

    for pos in candidates:
        m = matches[pos]
        start, end = m.start_cue_index, m.end_cue_index

        valid = True
        for other, rng in enumerate(assigned):
            if rng is None:
                continue
            if other < pos and rng[1] >= start:
                valid = False
                break
            if other > pos and rng[0] <= end:
                valid = False
                break

        if valid:
            assigned[pos] = (start, end)
        else:
            logger.info(
                "Segment %s window [%d..%d] conflicts with script order, dropping",
                m.num, start, end,
            )
            m.matched = False
            m.start_cue_index = None
            m.end_cue_index = None

    return matches


def align_segments(
    cues: Sequence[Cue],
    segments: Sequence[Segment],
    config: Optional[SegmentAlignmentConfig] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> SegmentAlignmentResult:
    """Align segment scripts to transcript windows and time every segment.

    Args:
        cues: Parsed transcript cues
        segments: Segments in script order
        config: Matching configuration (defaults to SegmentAlignmentConfig())
        metadata: Optional metadata dict to update in place

    Returns:
        SegmentAlignmentResult whose matches all carry start/end times
    """
    if config is None:
        config = SegmentAlignmentConfig()
    if metadata is None:
        metadata = {}

    cue_word_sets = [word_set(normalize_text(c.text)) for c in cues]

    # Pass 1: independent best window per segment
    matches: List[SegmentMatch] = []
    for seg in segments:
        script_norm = normalize_text(seg.script)
        if len(script_norm) < config.min_script_chars:
            matches.append(SegmentMatch(num=seg.num, matched=False, confidence=0,
                                        html_files=list(seg.html_files)))
            continue

        start, end, score = find_best_window(word_set(script_norm), cue_word_sets, config)
        matched = start >= 0 and score >= config.min_confidence
        matches.append(
            SegmentMatch(
                num=seg.num,
                matched=matched,
                confidence=_to_percent(score),
                start_cue_index=start if matched else None,
                end_cue_index=end if matched else None,
                html_files=list(seg.html_files),
            )
        )

    matched_before = sum(1 for m in matches if m.matched)

    # Pass 2: script order beats confidence
    resolve_conflicts(matches)

    for m in matches:
        if m.matched:
            m.start_time = cues[m.start_cue_index].start_time
            m.end_time = max(m.start_time, cues[m.end_cue_index].end_time)

    interpolate_segment_ranges(matches, config.gap_seconds)

    matched_count = sum(1 for m in matches if m.matched)
    logger.info("Matched %d of %d segments against %d cues", matched_count, len(segments), len(cues))

    metadata["segment_alignment"] = {
        "config": config.__dict__.copy(),
        "cue_count": len(cues),
        "total_segments": len(segments),
        "matched_before_conflicts": matched_before,
        "matched_count": matched_count,
        "dropped_by_conflicts": matched_before - matched_count,
    }

    return SegmentAlignmentResult(
        segment_matches=matches,
        matched_count=matched_count,
        total_segments=len(segments),
        cue_count=len(cues),
    )


def cue_ownership(
    cues: Sequence[Cue],
    matches: Sequence[SegmentMatch],
    lead_seconds: float = OWNERSHIP_LEAD_SECONDS,
) -> List[Optional[int]]:
    """For each cue, the num of the first segment whose time range holds it.

    A cue belongs to a segment when
    ``start_time - lead_seconds <= cue.start_time < end_time``.
    """
    owners: List[Optional[int]] = []
    for cue in cues:
        owner = None
        for m in matches:
            if m.start_time is None:
                continue
            end = m.end_time if m.end_time is not None else math.inf
            if m.start_time - lead_seconds <= cue.start_time < end:
                owner = m.num
                break
        owners.append(owner)
    return owners


def nearest_cue_index(cues: Sequence[Cue], time_seconds: float) -> int:
    """Position of the cue whose start is closest to ``time_seconds``.

    The earliest cue wins ties; -1 when there are no cues.
    """
    best = -1
    for i, cue in enumerate(cues):
        if best < 0 or abs(cue.start_time - time_seconds) < abs(cues[best].start_time - time_seconds):
            best = i
    return best


def rematch_segment(
    cues: Sequence[Cue],
    matches: Sequence[SegmentMatch],
    segment_num: int,
    new_start_time: float,
) -> Tuple[Optional[float], Optional[float]]:
    """Move one segment so it starts at the cue nearest ``new_start_time`` (in place).

    The new end is the start of the segment that followed it on the timeline
    (segments ordered by start time, untimed ones last); without such a
    successor the segment keeps its previous duration. The segment is marked
    matched and its cue range follows the new time range.

    Returns:
        (old_start_time, old_end_time)

    Raises:
        ValueError: if no segment has ``segment_num`` or there are no cues
    """
    match = next((m for m in matches if m.num == segment_num), None)
    if match is None:
        raise ValueError(f"Segment {segment_num} not found in segment matches")
    start_idx = nearest_cue_index(cues, new_start_time)
    if start_idx < 0:
        raise ValueError("Cannot rematch a segment against an empty transcript")

    old_start, old_end = match.start_time, match.end_time
    new_start = cues[start_idx].start_time

    timeline = sorted(
        matches,
        key=lambda m: (m.start_time is None, m.start_time if m.start_time is not None else 0.0),
    )
    pos = next(i for i, m in enumerate(timeline) if m is match)
    successor = timeline[pos + 1] if pos + 1 < len(timeline) else None

    if successor is not None and successor.start_time is not None:
        new_end = successor.start_time
    else:
        new_end = new_start + ((old_end or 0.0) - (old_start or 0.0))
    new_end = max(new_start, new_end)

    end_idx = start_idx
    while end_idx + 1 < len(cues) and cues[end_idx + 1].start_time < new_end:
        end_idx += 1

    match.start_time = round_ms(new_start)
    match.end_time = round_ms(new_end)
    match.start_cue_index = start_idx
    match.end_cue_index = end_idx
    match.matched = True

    logger.info(
        "Segment %s moved from %s-%s to %.3f-%.3f",
        segment_num, old_start, old_end, match.start_time, match.end_time,
    )
    return old_start, old_end
