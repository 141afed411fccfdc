"""JSON records kept under the data directory.

Each animation file has an ``<name>.analysis.json`` written by the beat
detector and an ``<name>.timing.json`` written here. The project summary lives
in ``project.json``.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config import DATA_DIR, PROJECT_FILE_NAME
from ..util.types import SegmentMatch


_unsafe_name_re = re.compile(r"[^A-Za-z0-9._\-]+")


def safe_file_name(name: str, max_len: int = 120) -> str:
	"""Return a filesystem-safe version of a file identifier.

	- Replaces runs of characters outside ``[A-Za-z0-9._-]`` with ``_``
	- Strips leading dots so records never become hidden files
	- Truncates to ``max_len`` characters
	"""
	base = _unsafe_name_re.sub("_", name.strip()).lstrip(".")
	return (base or "untitled")[:max_len]


def timing_path(file_name: str, data_dir: Path = DATA_DIR) -> Path:
	return data_dir / f"{safe_file_name(file_name)}.timing.json"


def analysis_path(file_name: str, data_dir: Path = DATA_DIR) -> Path:
	return data_dir / f"{safe_file_name(file_name)}.analysis.json"


def project_path(data_dir: Path = DATA_DIR) -> Path:
	return data_dir / PROJECT_FILE_NAME


def utc_timestamp() -> str:
	"""Current UTC time as an ISO-8601 string with a ``Z`` suffix."""
	return datetime.now(timezone.utc).replace(tzinfo=None).isoformat(timespec="seconds") + "Z"


def ensure_parent_dir(path: Path) -> None:
	"""Ensure the parent directory for ``path`` exists (idempotent)."""
	path.parent.mkdir(parents=True, exist_ok=True)


def write_json(path: Path, obj: Any) -> Path:
	"""Write ``obj`` as indented UTF-8 JSON, creating parent dirs."""
	ensure_parent_dir(path)
	path.write_text(json.dumps(obj, ensure_ascii=False, indent=2, default=str), encoding="utf-8")
	return path


def read_json(path: Path) -> Optional[Any]:
	"""Read a JSON file, or return None if it does not exist."""
	if not path.is_file():
		return None
	return json.loads(path.read_text(encoding="utf-8"))


def load_beat_analysis(file_name: str, data_dir: Path = DATA_DIR) -> Dict[str, Any]:
	"""Load the beat detector's analysis for a file.

	Returns a dict with ``beat_texts``, ``beat_types`` (or None) and
	``beat_count``; all empty when no analysis has been written yet.
	"""
	raw = read_json(analysis_path(file_name, data_dir)) or {}
	beat_texts: List[str] = list(raw.get("beatTexts") or [])
	beat_types = raw.get("beatTypes")
	return {
		"beat_texts": beat_texts,
		"beat_types": list(beat_types) if beat_types else None,
		"beat_count": int(raw.get("beatCount") or len(beat_texts)),
	}


def save_timing(file_name: str, timing: Dict[str, Any], data_dir: Path = DATA_DIR) -> Path:
	"""Persist a timing record for one animation file, stamping ``saved_at``."""
	record = dict(timing)
	record.setdefault("saved_at", utc_timestamp())
	return write_json(timing_path(file_name, data_dir), record)


def load_segment_matches(summary: Optional[Dict[str, Any]]) -> Optional[List[SegmentMatch]]:
	"""Rebuild the segment matches stored in a project summary's ``srt_match``.

	Returns None when the project has not been matched against a transcript.
	"""
	srt_match = (summary or {}).get("srt_match")
	if not srt_match:
		return None
	return [SegmentMatch(**m) for m in srt_match.get("segment_matches") or []]
