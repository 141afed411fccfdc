"""Subtitle parsers producing ordered, time-stamped cues (SRT, VTT, ASS).

Parsing is lenient: empty input yields no cues, and a garbled SRT file falls
back to a block-by-block parser in which an unreadable timestamp becomes ``0``
instead of discarding the whole transcript.
"""

from __future__ import annotations

import io
import logging
import math
import re
from datetime import timedelta
from pathlib import Path
from typing import List, Optional, Sequence

import chardet  # type: ignore
import pysubs2
import srt
import webvtt

from ..util.types import Cue


logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ("srt", "vtt", "ass", "ssa")

_TAG_RE = re.compile(r"<[^>]*>")
_BLOCK_SPLIT_RE = re.compile(r"\n[ \t]*\n")


def time_to_seconds(value: Optional[str]) -> float:
	"""Convert ``HH:MM:SS,mmm`` or ``HH:MM:SS.mmm`` to seconds.

	Anything unreadable converts to ``0.0``.
	"""
	if not value:
		return 0.0
	clean = value.strip().replace(",", ".", 1)
	parts = clean.split(":")
	try:
		if len(parts) == 3:
			hours, minutes = int(parts[0]), int(parts[1])
			result = hours * 3600 + minutes * 60 + float(parts[2])
		else:
			result = float(clean)
	except ValueError:
		return 0.0
	# float() also accepts "nan" and "inf"
	return result if math.isfinite(result) else 0.0


def seconds_to_srt_time(seconds: float) -> str:
	"""Format seconds as an SRT timestamp (``HH:MM:SS,mmm``)."""
	return srt.timedelta_to_srt_timestamp(timedelta(seconds=max(0.0, seconds)))


def strip_markup(text: str) -> str:
	"""Remove inline tags such as ``<i>``/``<font ...>`` and flatten line breaks."""
	return _TAG_RE.sub("", text or "").replace("\n", " ").strip()


def decode_subtitle_bytes(data: bytes) -> str:
	"""Decode subtitle bytes, preferring UTF-8 and falling back to chardet."""
	if data.startswith(b"\xef\xbb\xbf"):
		data = data[3:]
	try:
		return data.decode("utf-8")
	except UnicodeDecodeError:
		pass

	detected = chardet.detect(data)
	encoding = detected.get("encoding") or "utf-8"
	logger.warning(
		"Subtitle is not valid UTF-8, detected %s (confidence %.0f%%)",
		encoding,
		(detected.get("confidence") or 0) * 100,
	)
	try:
		return data.decode(encoding)
	except (UnicodeDecodeError, LookupError):
		return data.decode("utf-8", errors="replace")


def parse_srt_text(content: str) -> List[Cue]:
	"""Parse SRT text into cues in source order.

	Both ``,`` and ``.`` are accepted before the milliseconds. When the strict
	parser rejects the file, the lenient block parser is used instead.
	"""
	if content.startswith("\ufeff"):
		content = content[1:]
	if not content.strip():
		return []

	cues: List[Cue] = []
	try:
		for item in srt.parse(content):
			cues.append(
				Cue(
					index=item.index,
					start_time=item.start.total_seconds(),
					end_time=item.end.total_seconds(),
					text=strip_markup(item.content),
				)
			)
	except srt.SRTParseError as e:
		logger.info("Strict SRT parse failed (%s), parsing block by block", e)
		cues = _parse_srt_leniently(content)

	return cues


def _parse_srt_leniently(content: str) -> List[Cue]:
	"""Parse SRT blocks one at a time, keeping every block with a timing line."""
	cues: List[Cue] = []
	content = content.replace("\r\n", "\n").replace("\r", "\n")

	for block in _BLOCK_SPLIT_RE.split(content):
		lines = [line.strip() for line in block.strip().split("\n")]
		timing_pos = next((i for i, line in enumerate(lines) if "-->" in line), None)
		if timing_pos is None:
			continue

		index = len(cues) + 1
		if timing_pos > 0 and lines[timing_pos - 1].isdigit():
			index = int(lines[timing_pos - 1])

		start_str, _, end_str = lines[timing_pos].partition("-->")
		# Drop trailing cue settings such as "X1:40 X2:600"
		end_tokens = end_str.split()
		cues.append(
			Cue(
				index=index,
				start_time=time_to_seconds(start_str),
				end_time=time_to_seconds(end_tokens[0] if end_tokens else ""),
				text=strip_markup("\n".join(lines[timing_pos + 1:])),
			)
		)

	return cues


def parse_vtt_text(content: str) -> List[Cue]:
	"""Parse WebVTT text into cues."""
	if content.startswith("\ufeff"):
		content = content[1:]
	if not content.strip():
		return []

	vtt = webvtt.read_buffer(io.StringIO(content))
	return [
		Cue(
			index=i,
			start_time=time_to_seconds(caption.start),
			end_time=time_to_seconds(caption.end),
			text=strip_markup(caption.text),
		)
		for i, caption in enumerate(vtt, start=1)
	]


def parse_ass_text(content: str) -> List[Cue]:
	"""Parse ASS/SSA text into cues, ignoring comment events."""
	if content.startswith("\ufeff"):
		content = content[1:]
	if not content.strip():
		return []

	subs = pysubs2.SSAFile.from_string(content)
	cues: List[Cue] = []
	for line in subs:
		if line.is_comment:
			continue
		cues.append(
			Cue(
				index=len(cues) + 1,
				# pysubs2 uses milliseconds
				start_time=line.start / 1000.0,
				end_time=line.end / 1000.0,
				text=strip_markup(line.plaintext),
			)
		)
	return cues


def parse_subtitle_text(content: str, ext: str = "srt") -> List[Cue]:
	"""Parse subtitle text of the given extension ('srt'|'vtt'|'ass'|'ssa')."""
	ext = ext.lower().lstrip(".")
	if ext == "srt":
		return parse_srt_text(content)
	if ext == "vtt":
		return parse_vtt_text(content)
	if ext in ("ass", "ssa"):
		return parse_ass_text(content)
	raise ValueError(f"Unsupported subtitle extension: {ext}")


def load_cues(path: Path) -> List[Cue]:
	"""Read a subtitle file and parse it based on its extension."""
	path = Path(path)
	if not path.is_file():
		raise FileNotFoundError(f"Subtitle file not found: {path}")
	ext = path.suffix.lower().lstrip(".")
	if ext not in SUPPORTED_EXTENSIONS:
		raise ValueError(f"Unsupported subtitle extension: {ext}")
	return parse_subtitle_text(decode_subtitle_bytes(path.read_bytes()), ext)


def cues_to_srt(cues: Sequence[Cue]) -> str:
	"""Compose cues back into SRT text, renumbering from 1."""
	items = [
		srt.Subtitle(
			index=i,
			start=timedelta(seconds=c.start_time),
			end=timedelta(seconds=c.end_time),
			content=c.text,
		)
		for i, c in enumerate(cues, start=1)
	]
	return srt.compose(items, reindex=False)
