"""beatsync CLI - Command-line interface for caption alignment and beat timing.

Primary Commands:
  - cues: Parse a transcript and list its cues
  - score: Show the similarity score between two texts
  - align-beats: Time a file's beats against a transcript
  - remap-beats: Time a file's beats against one segment's slice of a transcript
  - align-segments: Time every segment and file of a project folder
  - rematch-segment: Move one matched segment and re-time its files
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import typer
from rich import print
from rich.table import Table

from .analysis.beat_alignment import (
	BeatAlignmentConfig,
	beats_from_texts,
	map_cues_one_to_one,
	time_beats,
)
from .analysis.normalization import normalize_text
from .analysis.segment_alignment import cue_ownership
from .analysis.similarity import bigram_overlap, similarity, word_overlap
from .config import DATA_DIR
from .data.storage import load_segment_matches, project_path, read_json
from .parsers.subtitles import cues_to_srt, load_cues, seconds_to_srt_time
from .util.types import BEAT_TYPES, BeatTimingResult, SegmentMatch


logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = typer.Typer(add_completion=False, no_args_is_help=True)


def _clip(s: Optional[str], width: int = 40) -> str:
	"""Clip text for table display."""
	if s is None:
		return "—"
	s = s.replace("\n", " ")
	return (s[: width - 1] + "…") if len(s) > width else s


def _load_beats_file(path: str) -> Tuple[List[str], Optional[List[str]], int]:
	"""Read beats from JSON: a list of texts, or the beat detector's analysis object."""
	p = Path(path)
	if not p.is_file():
		raise typer.BadParameter(f"Beats file not found: {path}")
	data = json.loads(p.read_text(encoding="utf-8"))

	if isinstance(data, list):
		texts = [str(t or "") for t in data]
		return texts, None, len(texts)
	if isinstance(data, dict):
		texts = [str(t or "") for t in (data.get("beatTexts") or data.get("beat_texts") or [])]
		types = data.get("beatTypes") or data.get("beat_types")
		count = int(data.get("beatCount") or data.get("beat_count") or len(texts))
		return texts, list(types) if types else None, count
	raise typer.BadParameter(f"Unrecognized beats file format: {path}")


def _collect_beats(
	beats_file: Optional[str],
	beat: Optional[List[str]],
	beat_type: Optional[List[str]],
) -> Tuple[List[str], Optional[List[str]], int]:
	if beats_file:
		texts, types, count = _load_beats_file(beats_file)
	else:
		texts, types, count = list(beat or []), None, len(beat or [])
	if beat_type:
		types = list(beat_type)
	if types:
		unknown = sorted({t for t in types if t and t not in BEAT_TYPES})
		if unknown:
			raise typer.BadParameter(f"Unknown beat type(s): {', '.join(unknown)} (expected one of {', '.join(BEAT_TYPES)})")
	return texts, types, count


def _print_beat_result(result: BeatTimingResult, show_mapping: bool) -> None:
	if show_mapping and result.matches:
		tbl = Table(title=f"Beat Mapping ({result.matched_count}/{result.beat_count} matched, method={result.method})")
		tbl.add_column("Beat", justify="right")
		tbl.add_column("Beat text")
		tbl.add_column("Cue", justify="right")
		tbl.add_column("Cue text")
		tbl.add_column("Score", justify="right")
		tbl.add_column("Time", justify="right")
		for m, t in zip(result.matches, result.beat_times):
			cue = str(m.cue_id) if m.cue_index is not None else (f"[dim]{m.skipped}[/dim]" if m.skipped else "—")
			time_cell = f"{t:.3f}" if m.cue_index is not None else f"[yellow]{t:.3f}[/yellow]"
			tbl.add_row(str(m.beat_index), _clip(m.beat_text), cue, _clip(m.cue_text), str(m.score), time_cell)
		print(tbl)
	print({"beat_times": result.beat_times})


def _write_result(output_file: Optional[str], payload: Dict[str, Any]) -> None:
	if not output_file:
		return
	out = Path(output_file)
	out.parent.mkdir(parents=True, exist_ok=True)
	out.write_text(json.dumps(payload, indent=2, ensure_ascii=False, default=str), encoding="utf-8")
	print(f"[green]Wrote timing to[/green] {out}")


@app.command(name="cues")
def cues_cmd(
	subtitle: str = typer.Argument(..., help="Transcript file (.srt/.vtt/.ass)"),
	start: float | None = typer.Option(None, help="Only cues starting at or after this time (s)"),
	end: float | None = typer.Option(None, help="Only cues starting at or before this time (s)"),
	limit: int = typer.Option(50, help="Max rows to show"),
	data_dir: str | None = typer.Option(None, "--data-dir", help="Show segment owners from this data dir's project.json"),
	out: str | None = typer.Option(None, "--out", help="Write the selected cues as SRT"),
) -> None:
	"""Parse a transcript and list its cues."""
	cues = load_cues(Path(subtitle))
	selected = [
		c for c in cues
		if (start is None or c.start_time >= start) and (end is None or c.start_time <= end)
	]

	# Owners are only known once the project has been matched
	matches = load_segment_matches(read_json(project_path(Path(data_dir) if data_dir else DATA_DIR)))
	owners = cue_ownership(selected, matches) if matches else None

	table = Table(title=f"Cues (showing {min(limit, len(selected))} of {len(selected)})")
	columns = ["#", "id", "start", "end"] + (["owner"] if owners is not None else []) + ["text"]
	for col in columns:
		table.add_column(col)
	for pos, c in enumerate(selected[:limit]):
		row = [str(pos), str(c.index), seconds_to_srt_time(c.start_time), seconds_to_srt_time(c.end_time)]
		if owners is not None:
			row.append(str(owners[pos]) if owners[pos] is not None else "—")
		table.add_row(*row, _clip(c.text, 60))
	print(table)

	if out:
		Path(out).write_text(cues_to_srt(selected), encoding="utf-8")
		print(f"[green]Wrote {len(selected)} cues to[/green] {out}")


@app.command(name="score")
def score_cmd(
	text_a: str = typer.Argument(..., help="First text"),
	text_b: str = typer.Argument(..., help="Second text"),
) -> None:
	"""Show the similarity score between two texts."""
	a = normalize_text(text_a)
	b = normalize_text(text_b)
	print({
		"normalized_a": a,
		"normalized_b": b,
		"word_overlap": round(word_overlap(a, b), 3),
		"bigram_overlap": round(bigram_overlap(a, b), 3),
		"score": round(similarity(a, b), 3),
	})


@app.command(name="align-beats")
def align_beats_cmd(
	subtitle: str = typer.Argument(..., help="Transcript file (.srt/.vtt/.ass)"),
	beats_file: str | None = typer.Option(None, "--beats", help="JSON beats: list of texts or analysis object"),
	beat: list[str] | None = typer.Option(None, "--beat", help="Beat text (repeat in click order)"),
	beat_type: list[str] | None = typer.Option(None, "--type", help="Beat type per beat (speech|label|data|silent)"),
	seg_start: float | None = typer.Option(None, help="Lower time bound for unmatched beats (s)"),
	seg_end: float | None = typer.Option(None, help="Upper time bound for unmatched beats (s)"),
	speech_threshold: float = typer.Option(0.15, help="Acceptance threshold for speech beats (0..1)"),
	label_threshold: float = typer.Option(0.08, help="Acceptance threshold for label beats (0..1)"),
	show_mapping: bool = typer.Option(True, help="Show the per-beat mapping table"),
	output_file: str | None = typer.Option(None, "--output-file", help="Write timing JSON here"),
) -> None:
	"""Time a file's beats against a transcript."""
	cues = load_cues(Path(subtitle))
	texts, types, count = _collect_beats(beats_file, beat, beat_type)
	print(f"[green]Loaded:[/green] {len(cues)} cues, {len(texts)} beat texts")

	if not texts and count > 0:
		print("[yellow]No beat texts, mapping cues to beats one-to-one[/yellow]")
		result = map_cues_one_to_one(cues, count)
	else:
		config = BeatAlignmentConfig(speech_threshold=speech_threshold, label_threshold=label_threshold)
		metadata: Dict[str, Any] = {}
		result = time_beats(
			cues,
			beats_from_texts(texts, types),
			floor_time=seg_start,
			ceil_time=seg_end,
			config=config,
			metadata=metadata,
		)

	_print_beat_result(result, show_mapping)
	_write_result(output_file, {"source": "srt", "srt_filename": Path(subtitle).name, **result.to_dict()})


@app.command(name="remap-beats")
def remap_beats_cmd(
	subtitle: str = typer.Argument(..., help="Transcript file (.srt/.vtt/.ass)"),
	start: float = typer.Option(..., help="Segment start time (s)"),
	end: float = typer.Option(..., help="Segment end time (s)"),
	beats_file: str | None = typer.Option(None, "--beats", help="JSON beats: list of texts or analysis object"),
	beat: list[str] | None = typer.Option(None, "--beat", help="Beat text (repeat in click order)"),
	beat_type: list[str] | None = typer.Option(None, "--type", help="Beat type per beat (speech|label|data|silent)"),
	buffer: float = typer.Option(2.0, help="Seconds of slack around the segment range"),
	show_mapping: bool = typer.Option(True, help="Show the per-beat mapping table"),
	output_file: str | None = typer.Option(None, "--output-file", help="Write timing JSON here"),
) -> None:
	"""Time a file's beats against one segment's slice of a transcript."""
	from .analysis.remap import remap_beats_to_segment

	if end < start:
		raise typer.BadParameter("--end must not be before --start")

	cues = load_cues(Path(subtitle))
	texts, types, _ = _collect_beats(beats_file, beat, beat_type)
	segment = SegmentMatch(num=0, matched=True, confidence=100, start_time=start, end_time=end)

	result = remap_beats_to_segment(cues, beats_from_texts(texts, types), segment, buffer_seconds=buffer)
	if result is None:
		print("[yellow]Nothing to remap: no beats or no cues inside the segment range[/yellow]")
		raise typer.Exit(code=1)

	_print_beat_result(result, show_mapping)
	_write_result(output_file, {"source": "srt-project", "start_time": start, "end_time": end, **result.to_dict()})


@app.command(name="align-segments")
def align_segments_cmd(
	project_dir: str = typer.Argument(..., help="Project folder containing SEGMENT_XXXX folders"),
	subtitle: str = typer.Argument(..., help="Voiceover transcript (.srt/.vtt/.ass)"),
	data_dir: str | None = typer.Option(None, "--data-dir", help="Where timing/analysis records live"),
	write: bool = typer.Option(True, help="Write per-file timing records and project.json"),
	refine: bool = typer.Option(True, help="Refine files that have beat texts against their segment's cues"),
	max_window: int = typer.Option(40, help="Max cues in a candidate window"),
	patience: int = typer.Option(10, help="Stop expanding a window after this many non-improving cues"),
	min_confidence: float = typer.Option(0.25, help="Minimum window score to accept a segment (0..1)"),
	output_format: str = typer.Option("table", "--format", help="Output format: table or json"),
	output_file: str | None = typer.Option(None, "--output-file", help="Write the JSON result here"),
) -> None:
	"""Time every segment and file of a project folder."""
	from .analysis.segment_alignment import SegmentAlignmentConfig
	from .pipelines import ProjectTimingPipeline, ProjectTimingPipelineConfig

	if output_format not in ("table", "json"):
		raise typer.BadParameter("--format must be 'table' or 'json'")
	if not Path(project_dir).is_dir():
		raise typer.BadParameter(f"Project path is not a directory: {project_dir}")

	config = ProjectTimingPipelineConfig(
		project_dir=project_dir,
		subtitle_path=subtitle,
		data_dir=data_dir,
		write_records=write,
		refine_with_beats=refine,
		output_format=output_format,
		output_file=output_file,
		segment_config=SegmentAlignmentConfig(
			max_window_cues=max_window,
			patience=patience,
			min_confidence=min_confidence,
		),
	)
	ProjectTimingPipeline(config).run()


@app.command(name="rematch-segment")
def rematch_segment_cmd(
	subtitle: str = typer.Argument(..., help="Voiceover transcript the project was matched against"),
	segment_num: int = typer.Argument(..., help="Segment number to move"),
	new_start: float = typer.Argument(..., help="New start time (s); snapped to the nearest cue"),
	data_dir: str | None = typer.Option(None, "--data-dir", help="Where timing/analysis records live"),
	refine: bool = typer.Option(True, help="Refine files that have beat texts against the moved segment's cues"),
) -> None:
	"""Move one segment of a matched project and re-time its files."""
	from .pipelines import rematch_project_segment

	try:
		result = rematch_project_segment(subtitle, segment_num, new_start, data_dir=data_dir, refine_with_beats=refine)
	except (FileNotFoundError, ValueError) as e:
		raise typer.BadParameter(str(e))

	print(
		f"[green]Segment {segment_num}:[/green] "
		f"{result['old_start_time']} - {result['old_end_time']} -> "
		f"{result['new_start_time']:.3f} - {result['new_end_time']:.3f}"
	)
	tbl = Table(title=f"Re-timed files ({len(result['files'])})")
	tbl.add_column("File", style="cyan")
	tbl.add_column("Method")
	tbl.add_column("Beat times")
	for f in result["files"]:
		tbl.add_row(f["file_name"], f["method"], ", ".join(f"{t:.3f}" for t in f["beat_times"]))
	print(tbl)


def main() -> None:
	app()


if __name__ == "__main__":
	main()
