"""Tests for segment window matching."""
import pytest

from beatsync.analysis.normalization import normalize_text, word_set
from beatsync.analysis.segment_alignment import (
    SegmentAlignmentConfig,
    align_segments,
    cue_ownership,
    find_best_window,
    nearest_cue_index,
    rematch_segment,
    resolve_conflicts,
)
from beatsync.util.types import Segment, SegmentMatch


def _segments(scripts):
    return [
        Segment(num=i, script=s, html_files=[f"SEGMENTO_{i:04d}/Option1.html"])
        for i, s in enumerate(scripts, start=1)
    ]


def _word_sets(cues):
    return [word_set(normalize_text(c.text)) for c in cues]


class TestFindBestWindow:
    """Tests for the window search."""

    def test_finds_dialogue_among_stage_directions(self, documentary_cues, documentary_scripts):
        script = word_set(normalize_text(documentary_scripts[0]))
        start, end, score = find_best_window(script, _word_sets(documentary_cues), SegmentAlignmentConfig())

        assert (start, end) == (0, 2)
        # every window word is in the script; 11 of 13 script words are spoken
        assert score == pytest.approx(0.6 + 0.4 * 11 / 13)

    def test_no_content_words(self, make_cues):
        cues = make_cues([(0.0, 1.0, "it is"), (1.0, 2.0, "to be")])
        assert find_best_window({"volcano"}, _word_sets(cues), SegmentAlignmentConfig()) == (-1, -1, 0.0)

    def test_window_cap(self, documentary_cues, documentary_scripts):
        script = word_set(normalize_text(documentary_scripts[0]))
        config = SegmentAlignmentConfig(max_window_cues=1)

        start, end, _ = find_best_window(script, _word_sets(documentary_cues), config)
        assert start == end


class TestResolveConflicts:
    """Tests for the monotonic conflict pass."""

    def test_higher_confidence_wins_order_conflict(self):
        matches = [
            SegmentMatch(num=1, matched=True, confidence=40, start_cue_index=5, end_cue_index=8),
            SegmentMatch(num=2, matched=True, confidence=90, start_cue_index=2, end_cue_index=4),
        ]
        resolve_conflicts(matches)

        assert not matches[0].matched
        assert matches[0].start_cue_index is None
        assert matches[1].matched
        assert (matches[1].start_cue_index, matches[1].end_cue_index) == (2, 4)

    def test_shared_boundary_cue_is_a_conflict(self):
        matches = [
            SegmentMatch(num=1, matched=True, confidence=80, start_cue_index=0, end_cue_index=3),
            SegmentMatch(num=2, matched=True, confidence=70, start_cue_index=3, end_cue_index=6),
        ]
        resolve_conflicts(matches)

        assert matches[0].matched
        assert not matches[1].matched

    def test_ties_keep_script_order(self):
        matches = [
            SegmentMatch(num=1, matched=True, confidence=50, start_cue_index=4, end_cue_index=6),
            SegmentMatch(num=2, matched=True, confidence=50, start_cue_index=1, end_cue_index=2),
        ]
        resolve_conflicts(matches)

        assert matches[0].matched
        assert not matches[1].matched

    def test_ordered_matches_untouched(self):
        matches = [
            SegmentMatch(num=1, matched=True, confidence=60, start_cue_index=0, end_cue_index=1),
            SegmentMatch(num=2, matched=False, confidence=10),
            SegmentMatch(num=3, matched=True, confidence=95, start_cue_index=4, end_cue_index=7),
        ]
        resolve_conflicts(matches)
        assert [m.matched for m in matches] == [True, False, True]


class TestAlignSegments:
    """Tests for align_segments."""

    def test_documentary(self, documentary_cues, documentary_scripts):
        metadata = {}
        result = align_segments(documentary_cues, _segments(documentary_scripts), metadata=metadata)
        m1, m2, m3 = result.segment_matches

        assert result.matched_count == 3
        assert (m1.start_cue_index, m1.end_cue_index, m1.confidence) == (0, 2, 94)
        assert (m1.start_time, m1.end_time) == (0.0, 8.5)
        assert (m2.start_cue_index, m2.end_cue_index, m2.confidence) == (3, 4, 100)
        assert (m2.start_time, m2.end_time) == (9.0, 14.5)
        assert (m3.start_cue_index, m3.end_cue_index) == (5, 5)
        assert (m3.start_time, m3.end_time) == (15.0, 17.5)
        assert m2.html_files == ["SEGMENTO_0002/Option1.html"]
        assert metadata["segment_alignment"]["dropped_by_conflicts"] == 0

    def test_short_script_is_interpolated(self, documentary_cues, documentary_scripts):
        scripts = [documentary_scripts[0], "OK.", documentary_scripts[2]]
        result = align_segments(documentary_cues, _segments(scripts))
        middle = result.segment_matches[1]

        assert not middle.matched
        assert middle.confidence == 0
        assert middle.start_cue_index is None
        # the gap between 8.5 and 15.0 goes to the unmatched segment
        assert (middle.start_time, middle.end_time) == (8.5, 15.0)

    def test_demoted_segment_timed_between_neighbors(self, documentary_cues, documentary_scripts):
        """An earlier, weaker window that contradicts script order is dropped."""
        metadata = {}
        weak = "Finally oceans cover most planet. Lots of fish."
        scripts = [documentary_scripts[0], weak, documentary_scripts[1]]

        result = align_segments(documentary_cues, _segments(scripts), metadata=metadata)
        first, demoted, later = result.segment_matches

        # oceans window scores 0.6 + 0.4 * 5/7 but starts after the stronger later window
        assert demoted.confidence == 89
        assert not demoted.matched
        assert demoted.start_cue_index is None
        assert later.matched
        assert (later.start_cue_index, later.end_cue_index) == (3, 4)
        assert (demoted.start_time, demoted.end_time) == (8.5, 9.0)
        assert first.end_time <= demoted.start_time <= demoted.end_time <= later.start_time
        assert metadata["segment_alignment"]["dropped_by_conflicts"] == 1

    def test_unrelated_script_stays_unmatched(self, documentary_cues, documentary_scripts):
        scripts = documentary_scripts + ["Quarterly spreadsheet formulas explained patiently"]
        result = align_segments(documentary_cues, _segments(scripts))
        last = result.segment_matches[-1]

        assert not last.matched
        assert (last.start_time, last.end_time) == (17.5, 20.5)

    def test_matched_ranges_are_ordered(self, documentary_cues, documentary_scripts):
        # The same script twice cannot claim the same cues twice
        scripts = [documentary_scripts[1], documentary_scripts[1], documentary_scripts[2]]
        result = align_segments(documentary_cues, _segments(scripts))

        matched = [m for m in result.segment_matches if m.matched]
        for a, b in zip(matched, matched[1:]):
            assert a.end_cue_index < b.start_cue_index
        assert all(m.start_time is not None for m in result.segment_matches)

    def test_no_cues(self, documentary_scripts):
        result = align_segments([], _segments(documentary_scripts))

        assert result.matched_count == 0
        assert [(m.start_time, m.end_time) for m in result.segment_matches] == [
            (0.0, 3.0), (3.0, 6.0), (6.0, 9.0),
        ]

    def test_to_dict(self, documentary_cues, documentary_scripts):
        data = align_segments(documentary_cues, _segments(documentary_scripts)).to_dict()
        assert data["total_segments"] == 3
        assert data["segment_matches"][0]["num"] == 1


class TestCueOwnership:
    """Tests for assigning cues to timed segments."""

    def test_owners(self, make_cues):
        cues = make_cues([(0.0, 1.0, "a"), (4.6, 5.0, "b"), (9.0, 9.5, "c"), (30.0, 31.0, "d")])
        matches = [
            SegmentMatch(num=1, matched=True, confidence=90, start_time=0.0, end_time=4.0),
            SegmentMatch(num=2, matched=True, confidence=90, start_time=5.0, end_time=10.0),
        ]
        assert cue_ownership(cues, matches) == [1, 2, 2, None]


class TestRematchSegment:
    """Tests for moving one segment by hand."""

    def test_nearest_cue_index(self, fruit_cues):
        assert nearest_cue_index(fruit_cues, 4.4) == 1
        # equidistant: the earlier cue wins
        assert nearest_cue_index(fruit_cues, 1.5) == 0
        assert nearest_cue_index([], 3.0) == -1

    def test_ends_at_next_segment(self, documentary_cues, documentary_scripts):
        matches = align_segments(documentary_cues, _segments(documentary_scripts)).segment_matches

        old = rematch_segment(documentary_cues, matches, 2, 11.0)
        moved = matches[1]

        assert old == (9.0, 14.5)
        assert (moved.start_time, moved.end_time) == (12.0, 15.0)
        assert (moved.start_cue_index, moved.end_cue_index) == (4, 4)
        assert moved.matched

    def test_last_segment_keeps_duration(self, documentary_cues, documentary_scripts):
        matches = align_segments(documentary_cues, _segments(documentary_scripts)).segment_matches

        rematch_segment(documentary_cues, matches, 3, 13.0)

        assert (matches[2].start_time, matches[2].end_time) == (12.0, 14.5)

    def test_untimed_segment_becomes_matched(self, fruit_cues):
        matches = [
            SegmentMatch(num=1, matched=True, confidence=90, start_time=0.0, end_time=5.0),
            SegmentMatch(num=2, matched=False, confidence=0),
        ]

        assert rematch_segment(fruit_cues, matches, 2, 6.1) == (None, None)
        assert matches[1].matched
        assert (matches[1].start_time, matches[1].end_time) == (6.0, 6.0)

    def test_unknown_segment_or_no_cues(self, fruit_cues):
        matches = [SegmentMatch(num=1, matched=True, confidence=90, start_time=0.0, end_time=5.0)]

        with pytest.raises(ValueError):
            rematch_segment(fruit_cues, matches, 7, 1.0)
        with pytest.raises(ValueError):
            rematch_segment([], matches, 1, 1.0)
