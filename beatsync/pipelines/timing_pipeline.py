"""Project timing pipeline.

This pipeline takes a project folder and its voiceover transcript, places
every segment on the transcript timeline, and derives per-file beat times:
refined against the segment's cues when the beat detector has reported beat
texts for the file, or evenly subdivided across the segment otherwise.

``rematch_project_segment`` moves one segment of an already matched project
by hand and re-times only that segment's files.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from ..analysis.beat_alignment import beats_from_texts
from ..analysis.interpolation import subdivide_range
from ..analysis.remap import remap_beats_to_segment
from ..analysis.segment_alignment import SegmentAlignmentConfig, align_segments, rematch_segment
from ..config import DATA_DIR, ensure_data_dirs
from ..data.project import Project, load_project
from ..data.storage import (
    load_beat_analysis,
    load_segment_matches,
    project_path,
    read_json,
    save_timing,
    utc_timestamp,
    write_json,
)
from ..parsers.subtitles import load_cues
from ..util.types import Cue, SegmentAlignmentResult, SegmentMatch


@dataclass
class ProjectTimingPipelineConfig:
    """Configuration for the project timing pipeline."""
    project_dir: str
    subtitle_path: str
    data_dir: Optional[str] = None
    write_records: bool = True
    refine_with_beats: bool = True
    output_format: str = "table"  # json, table
    output_file: Optional[str] = None
    segment_config: SegmentAlignmentConfig = field(default_factory=SegmentAlignmentConfig)


@dataclass
class FileTimingResult:
    """Timing derived for one animation file."""
    file_name: str
    segment_num: int
    beat_times: List[float]
    method: str
    confidence: int
    start_time: float
    end_time: float
    matched_count: Optional[int] = None


def time_segment_files(
    cues: List[Cue],
    match: SegmentMatch,
    data_dir: Path,
    refine_with_beats: bool = True,
) -> List[FileTimingResult]:
    """Beat times for each file of one timed segment.

    Files whose analysis lists beat texts are matched against the segment's
    cues; every other file gets its beats spread evenly over the segment.
    """
    results = []
    for file_name in match.html_files:
        analysis = load_beat_analysis(file_name, data_dir)
        timing = None

        if refine_with_beats and analysis["beat_texts"]:
            beats = beats_from_texts(analysis["beat_texts"], analysis["beat_types"])
            timing = remap_beats_to_segment(cues, beats, match)

        if timing is not None:
            results.append(FileTimingResult(
                file_name=file_name,
                segment_num=match.num,
                beat_times=timing.beat_times,
                method=timing.method,
                confidence=match.confidence,
                start_time=match.start_time,
                end_time=match.end_time,
                matched_count=timing.matched_count,
            ))
        else:
            results.append(FileTimingResult(
                file_name=file_name,
                segment_num=match.num,
                beat_times=subdivide_range(match.start_time, match.end_time, analysis["beat_count"]),
                method="script-match",
                confidence=match.confidence,
                start_time=match.start_time,
                end_time=match.end_time,
            ))
    return results


def save_file_timing(result: FileTimingResult, data_dir: Path) -> Path:
    """Write one file's ``<name>.timing.json`` record."""
    return save_timing(result.file_name, {
        "beat_times": result.beat_times,
        "source": "srt-project",
        "method": result.method,
        "segment_num": result.segment_num,
        "confidence": result.confidence,
        "start_time": result.start_time,
        "end_time": result.end_time,
        "matched_count": result.matched_count,
    }, data_dir)


def rematch_project_segment(
    subtitle_path: str,
    segment_num: int,
    new_start_time: float,
    data_dir: Optional[str] = None,
    refine_with_beats: bool = True,
) -> Dict[str, Any]:
    """Move one segment of a matched project and re-time its files.

    Reads ``project.json`` from the data dir, moves the segment to the cue
    nearest ``new_start_time``, rewrites the timing records of the segment's
    files and saves the updated project summary.

    Raises:
        FileNotFoundError: if no project summary or transcript exists
        ValueError: if the project was never matched or the segment is unknown
    """
    data_path = Path(data_dir) if data_dir else DATA_DIR
    summary_path = project_path(data_path)
    summary = read_json(summary_path)
    if summary is None:
        raise FileNotFoundError(f"No project imported: {summary_path} not found")
    matches = load_segment_matches(summary)
    if matches is None:
        raise ValueError("Project has no transcript match yet; run align-segments first")

    cues = load_cues(Path(subtitle_path))
    old_start, old_end = rematch_segment(cues, matches, segment_num, new_start_time)
    match = next(m for m in matches if m.num == segment_num)

    file_results = time_segment_files(cues, match, data_path, refine_with_beats)
    for r in file_results:
        save_file_timing(r, data_path)

    summary["srt_match"].update({
        "segment_matches": [m.to_dict() for m in matches],
        "matched_count": sum(1 for m in matches if m.matched),
        "rematched_at": utc_timestamp(),
    })
    write_json(summary_path, summary)

    return {
        "segment_num": segment_num,
        "old_start_time": old_start,
        "old_end_time": old_end,
        "new_start_time": match.start_time,
        "new_end_time": match.end_time,
        "files": [r.__dict__.copy() for r in file_results],
    }


class ProjectTimingPipeline:
    """Pipeline for timing every animation file of a project."""

    def __init__(self, config: ProjectTimingPipelineConfig, console: Optional[Console] = None):
        self.config = config
        self.console = console or Console()
        self.data_dir = Path(config.data_dir) if config.data_dir else DATA_DIR
        self.metadata: Dict[str, Any] = {}

    def run(self) -> Dict[str, Any]:
        """Run the complete timing pipeline."""
        start_time = time.time()

        try:
            # Phase 1: Load inputs
            self._log_progress("Loading project and transcript...")
            project = load_project(Path(self.config.project_dir))
            cues = load_cues(Path(self.config.subtitle_path))
            self._log_progress(f"Found {len(project.segments)} segment(s) and {len(cues)} cue(s)")

            # Phase 2: Place segments on the transcript timeline
            self._log_progress("Matching segment scripts to transcript...")
            alignment = align_segments(
                cues, project.segments, self.config.segment_config, self.metadata
            )

            # Phase 3: Per-file beat timing
            self._log_progress("Deriving per-file beat times...")
            file_results = self._time_files(cues, alignment.segment_matches)

            # Phase 4: Persist records
            if self.config.write_records:
                self._write_records(project, alignment, file_results)

            processing_time = time.time() - start_time
            result = self._prepare_output(project, alignment, file_results, processing_time)

            # Phase 5: Output results
            self._output_results(result)

            return result

        except Exception as e:
            self._log_error(f"Pipeline failed: {str(e)}")
            raise

    def _log_progress(self, message: str) -> None:
        """Log progress message."""
        if self.console:
            self.console.print(f"[blue]{message}[/blue]")

    def _log_error(self, message: str) -> None:
        """Log error message."""
        if self.console:
            self.console.print(f"[red]{message}[/red]")

    def _time_files(self, cues: List[Cue], matches: List[SegmentMatch]) -> List[FileTimingResult]:
        """Compute beat times for every file of every segment."""
        results: List[FileTimingResult] = []
        for match in matches:
            results.extend(time_segment_files(cues, match, self.data_dir, self.config.refine_with_beats))
        refined = sum(1 for r in results if r.matched_count is not None)

        self.metadata["file_timing"] = {
            "total_files": len(results),
            "refined_files": refined,
            "subdivided_files": len(results) - refined,
        }

        return results

    def _write_records(
        self,
        project: Project,
        alignment: SegmentAlignmentResult,
        file_results: List[FileTimingResult],
    ) -> None:
        """Write per-file timing records and the project summary."""
        ensure_data_dirs(self.data_dir)

        for r in file_results:
            save_file_timing(r, self.data_dir)

        summary = project.to_dict()
        summary["srt_match"] = {
            "srt_filename": Path(self.config.subtitle_path).name,
            "matched_at": utc_timestamp(),
            **alignment.to_dict(),
        }
        path = write_json(project_path(self.data_dir), summary)
        self._log_progress(f"Wrote {len(file_results)} timing record(s) and {path}")

    def _prepare_output(
        self,
        project: Project,
        alignment: SegmentAlignmentResult,
        file_results: List[FileTimingResult],
        processing_time: float,
    ) -> Dict[str, Any]:
        """Prepare the final output structure."""
        return {
            "project": project.source_path,
            "subtitle": self.config.subtitle_path,
            "segments": alignment.to_dict(),
            "files": [r.__dict__.copy() for r in file_results],
            "metadata": {
                "processing_time": round(processing_time, 3),
                "pipeline_metadata": self.metadata,
            },
        }

    def _output_results(self, result: Dict[str, Any]) -> None:
        """Output results in the specified format."""
        if self.config.output_format == "table":
            self._output_table(result)
        else:
            self._output_json(result)

    def _output_json(self, result: Dict[str, Any]) -> None:
        """Output results as JSON."""
        if self.config.output_file:
            with open(self.config.output_file, "w", encoding="utf-8") as f:
                json.dump(result, f, indent=2, default=str)
            self._log_progress(f"Results written to {self.config.output_file}")
        else:
            print(json.dumps(result, indent=2, default=str))

    def _output_table(self, result: Dict[str, Any]) -> None:
        """Output results as formatted tables."""
        segments = result["segments"]

        table = Table(title=f"Segment Timing ({segments['matched_count']}/{segments['total_segments']} matched)")
        table.add_column("Segment", justify="right")
        table.add_column("Matched")
        table.add_column("Confidence", justify="right")
        table.add_column("Cues")
        table.add_column("Start", justify="right")
        table.add_column("End", justify="right")

        for m in segments["segment_matches"]:
            cue_range = (
                f"[{m['start_cue_index']}..{m['end_cue_index']}]"
                if m["start_cue_index"] is not None else "—"
            )
            table.add_row(
                str(m["num"]),
                "[green]✓[/green]" if m["matched"] else "[yellow]interp[/yellow]",
                str(m["confidence"]),
                cue_range,
                f"{m['start_time']:.3f}",
                f"{m['end_time']:.3f}",
            )
        self.console.print(table)

        if result["files"]:
            file_table = Table(title="Per-file Beat Timing")
            file_table.add_column("File", style="cyan")
            file_table.add_column("Segment", justify="right")
            file_table.add_column("Method")
            file_table.add_column("Beats", justify="right")
            file_table.add_column("First / Last")

            for f in result["files"]:
                times = f["beat_times"]
                file_table.add_row(
                    f["file_name"],
                    str(f["segment_num"]),
                    f["method"],
                    str(len(times)),
                    f"{times[0]:.3f} / {times[-1]:.3f}" if times else "—",
                )
            self.console.print(file_table)
