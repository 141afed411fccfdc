"""Tests for the project timing pipeline."""
import io
import json

import pytest
from rich.console import Console

from beatsync.analysis.segment_alignment import SegmentAlignmentConfig
from beatsync.data.storage import analysis_path, read_json, timing_path
from beatsync.pipelines import ProjectTimingPipeline, ProjectTimingPipelineConfig, rematch_project_segment


@pytest.fixture
def project_setup(tmp_path, documentary_srt, documentary_scripts):
    project_dir = tmp_path / "project"
    project_dir.mkdir()
    for i, script in enumerate(documentary_scripts, start=1):
        seg = project_dir / f"SEGMENTO_{i:04d}"
        seg.mkdir()
        (seg / "script.txt").write_text(script, encoding="utf-8")
        (seg / "Option1.html").write_text("<html></html>", encoding="utf-8")

    subtitle = tmp_path / "voiceover.srt"
    subtitle.write_text(documentary_srt, encoding="utf-8")

    data_dir = tmp_path / "data"
    data_dir.mkdir()
    analysis_path("SEGMENTO_0001/Option1.html", data_dir).write_text(
        json.dumps({"beatCount": 3}), encoding="utf-8"
    )
    analysis_path("SEGMENTO_0002/Option1.html", data_dir).write_text(
        json.dumps({"beatTexts": ["Discuss glaciers", "Carve valleys"], "beatCount": 2}), encoding="utf-8"
    )
    return project_dir, subtitle, data_dir


def _run(project_setup, **kwargs):
    project_dir, subtitle, data_dir = project_setup
    config = ProjectTimingPipelineConfig(
        project_dir=str(project_dir),
        subtitle_path=str(subtitle),
        data_dir=str(data_dir),
        **kwargs,
    )
    console = Console(file=io.StringIO(), width=120)
    return ProjectTimingPipeline(config, console=console).run()


class TestProjectTimingPipeline:
    """Tests for ProjectTimingPipeline.run."""

    def test_file_timings(self, project_setup):
        result = _run(project_setup)
        files = {f["file_name"]: f for f in result["files"]}

        subdivided = files["SEGMENTO_0001/Option1.html"]
        assert subdivided["method"] == "script-match"
        assert subdivided["beat_times"] == [0.0, 4.25, 8.5]

        refined = files["SEGMENTO_0002/Option1.html"]
        assert refined["method"] == "script-match-refined"
        assert refined["beat_times"] == [9.0, 12.0]
        assert refined["matched_count"] == 2

        # no analysis yet: a single beat at the segment start
        assert files["SEGMENTO_0003/Option1.html"]["beat_times"] == [15.0]

    def test_writes_records(self, project_setup):
        _, _, data_dir = project_setup
        _run(project_setup)

        record = read_json(timing_path("SEGMENTO_0002/Option1.html", data_dir))
        assert record["source"] == "srt-project"
        assert record["beat_times"] == [9.0, 12.0]
        assert record["segment_num"] == 2

        summary = read_json(data_dir / "project.json")
        assert summary["srt_match"]["srt_filename"] == "voiceover.srt"
        assert summary["srt_match"]["matched_count"] == 3
        assert len(summary["segments"]) == 3

    def test_no_write(self, project_setup):
        _, _, data_dir = project_setup
        _run(project_setup, write_records=False)

        assert not (data_dir / "project.json").exists()

    def test_refine_disabled_subdivides(self, project_setup):
        result = _run(project_setup, refine_with_beats=False)
        files = {f["file_name"]: f for f in result["files"]}

        assert files["SEGMENTO_0002/Option1.html"]["method"] == "script-match"
        assert files["SEGMENTO_0002/Option1.html"]["beat_times"] == [9.0, 14.5]

    def test_json_output_file(self, project_setup, tmp_path):
        out = tmp_path / "result.json"
        _run(project_setup, output_format="json", output_file=str(out), write_records=False)

        data = json.loads(out.read_text(encoding="utf-8"))
        assert data["segments"]["total_segments"] == 3
        assert data["metadata"]["pipeline_metadata"]["file_timing"]["refined_files"] == 1

    def test_segment_config_is_applied(self, project_setup):
        result = _run(project_setup, segment_config=SegmentAlignmentConfig(min_confidence=1.01))

        assert result["segments"]["matched_count"] == 0

    def test_missing_subtitle_raises(self, project_setup, tmp_path):
        project_dir, _, data_dir = project_setup
        config = ProjectTimingPipelineConfig(
            project_dir=str(project_dir),
            subtitle_path=str(tmp_path / "missing.srt"),
            data_dir=str(data_dir),
        )
        with pytest.raises(FileNotFoundError):
            ProjectTimingPipeline(config, console=Console(file=io.StringIO())).run()


class TestRematchProjectSegment:
    """Tests for moving one segment of a matched project."""

    def test_moves_segment_and_retimes_files(self, project_setup):
        _, subtitle, data_dir = project_setup
        _run(project_setup)

        result = rematch_project_segment(str(subtitle), 2, 11.0, data_dir=str(data_dir))

        assert (result["old_start_time"], result["old_end_time"]) == (9.0, 14.5)
        assert (result["new_start_time"], result["new_end_time"]) == (12.0, 15.0)
        moved = result["files"][0]
        assert moved["file_name"] == "SEGMENTO_0002/Option1.html"
        assert moved["method"] == "script-match-refined"
        assert moved["beat_times"][0] == 12.0
        assert all(12.0 <= t <= 15.0 for t in moved["beat_times"])

        record = read_json(timing_path("SEGMENTO_0002/Option1.html", data_dir))
        assert record["beat_times"] == moved["beat_times"]

        summary = read_json(data_dir / "project.json")
        stored = summary["srt_match"]["segment_matches"][1]
        assert (stored["start_time"], stored["end_time"]) == (12.0, 15.0)
        assert "rematched_at" in summary["srt_match"]

    def test_other_segments_untouched(self, project_setup):
        _, subtitle, data_dir = project_setup
        _run(project_setup)
        before = read_json(timing_path("SEGMENTO_0001/Option1.html", data_dir))

        rematch_project_segment(str(subtitle), 2, 11.0, data_dir=str(data_dir))

        after = read_json(timing_path("SEGMENTO_0001/Option1.html", data_dir))
        assert after["beat_times"] == before["beat_times"] == [0.0, 4.25, 8.5]

    def test_without_refinement_subdivides(self, project_setup):
        _, subtitle, data_dir = project_setup
        _run(project_setup)

        result = rematch_project_segment(str(subtitle), 2, 11.0, data_dir=str(data_dir), refine_with_beats=False)

        assert result["files"][0]["method"] == "script-match"
        assert result["files"][0]["beat_times"] == [12.0, 15.0]

    def test_missing_project_summary(self, project_setup):
        _, subtitle, data_dir = project_setup
        with pytest.raises(FileNotFoundError):
            rematch_project_segment(str(subtitle), 2, 11.0, data_dir=str(data_dir))

    def test_project_never_matched(self, project_setup):
        _, subtitle, data_dir = project_setup
        (data_dir / "project.json").write_text(json.dumps({"segments": []}), encoding="utf-8")

        with pytest.raises(ValueError):
            rematch_project_segment(str(subtitle), 2, 11.0, data_dir=str(data_dir))

    def test_unknown_segment(self, project_setup):
        _, subtitle, data_dir = project_setup
        _run(project_setup)

        with pytest.raises(ValueError):
            rematch_project_segment(str(subtitle), 9, 11.0, data_dir=str(data_dir))
