"""Core data types for the beatsync caption alignment engine.

This module defines the fundamental data structures shared by the cue parser,
the beat/segment matchers and the timing interpolator. All of them are plain
computed values created fresh per alignment run.
"""

from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional


# Beat type tags supplied by the beat detector
BEAT_TYPE_SPEECH = "speech"
BEAT_TYPE_LABEL = "label"
BEAT_TYPE_DATA = "data"
BEAT_TYPE_SILENT = "silent"

BEAT_TYPES = (BEAT_TYPE_SPEECH, BEAT_TYPE_LABEL, BEAT_TYPE_DATA, BEAT_TYPE_SILENT)

# Beats of these types have no spoken counterpart and are never searched
UNSPOKEN_BEAT_TYPES = frozenset({BEAT_TYPE_SILENT, BEAT_TYPE_DATA})


@dataclass(frozen=True)
class Cue:
    """One timed caption entry from a subtitle transcript.

    Attributes:
        index: Cue id as given in the source (1-based)
        start_time: Start in seconds
        end_time: End in seconds
        text: Caption text with inline markup removed
    """
    index: int
    start_time: float
    end_time: float
    text: str


@dataclass
class Beat:
    """One click-triggered animation step and the text it reveals.

    Attributes:
        index: 0-based click order
        text: Newly revealed on-screen text (may be empty)
        type: Optional tag, one of BEAT_TYPES
    """
    index: int
    text: str
    type: Optional[str] = None


@dataclass
class BeatMatch:
    """Result of aligning one beat to the cue stream.

    ``cue_index`` is the position in the cue list (not the cue id). A ``None``
    cue index means the beat is unmatched, either because nothing scored
    above threshold or because its type was skipped (``skipped`` holds it).
    """
    beat_index: int
    cue_index: Optional[int]
    score: int
    beat_text: str
    cue_text: Optional[str] = None
    time: Optional[float] = None
    cue_id: Optional[int] = None
    skipped: Optional[str] = None

    @property
    def matched(self) -> bool:
        return self.cue_index is not None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Segment:
    """One voiceover-script unit of a project.

    Attributes:
        num: Stable ordinal of the segment within the project
        script: Free text, may mix dialogue and stage directions
        html_files: Identifiers of the animation files belonging to it
    """
    num: int
    script: str
    html_files: List[str] = field(default_factory=list)


@dataclass
class SegmentMatch:
    """Result of aligning one segment to a contiguous window of cues.

    ``end_cue_index`` is inclusive. Times are filled for every segment once
    interpolation has run; cue indices stay ``None`` for unmatched segments.
    """
    num: int
    matched: bool
    confidence: int
    start_cue_index: Optional[int] = None
    end_cue_index: Optional[int] = None
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    html_files: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BeatTimingResult:
    """Complete beat timing for one file.

    Invariant: len(beat_times) == beat_count whenever method != "fallback"
    """
    beat_times: List[float]
    matches: List[BeatMatch]
    cue_count: int
    beat_count: int
    matched_count: int
    all_matched: bool
    method: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "beat_times": list(self.beat_times),
            "cue_count": self.cue_count,
            "beat_count": self.beat_count,
            "matched_count": self.matched_count,
            "all_matched": self.all_matched,
            "method": self.method,
            "mapping": [m.to_dict() for m in self.matches],
        }


@dataclass
class SegmentAlignmentResult:
    """Project-level alignment of all segments against one transcript."""
    segment_matches: List[SegmentMatch]
    matched_count: int
    total_segments: int
    cue_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matched_count": self.matched_count,
            "total_segments": self.total_segments,
            "cue_count": self.cue_count,
            "segment_matches": [m.to_dict() for m in self.segment_matches],
        }
