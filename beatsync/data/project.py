"""Import a voiceover project from a folder of segment directories.

Expected layout::

	<project>/
		SEGMENTO_0001/
			script.txt
			Option1.html
			Option2.html
		SEGMENTO_0002/
			...

Folder names are ``SEGMENT_dddd`` or ``SEGMENTO_dddd`` (any case); the four
digits give the segment's stable ``num`` and the segment order. Animation
files are identified as ``<segment folder>/<file name>``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..util.types import Segment


_segment_dir_re = re.compile(r"^SEGMENTO?_(\d{4})$", re.IGNORECASE)
_option_re = re.compile(r"option", re.IGNORECASE)


@dataclass
class Project:
	source_path: str
	segments: List[Segment] = field(default_factory=list)

	def segment_for_file(self, file_name: str) -> Optional[Segment]:
		"""Return the segment that lists ``file_name`` among its files."""
		for seg in self.segments:
			if file_name in seg.html_files:
				return seg
		return None

	def to_dict(self) -> Dict[str, Any]:
		return {
			"source_path": self.source_path,
			"segments": [
				{"num": s.num, "script": s.script, "html_files": list(s.html_files)}
				for s in self.segments
			],
		}


def _read_script(seg_dir: Path) -> str:
	"""Read the first ``.txt`` file of a segment folder, stripped; '' if none."""
	txt_files = sorted(p for p in seg_dir.iterdir() if p.is_file() and p.suffix.lower() == ".txt")
	if not txt_files:
		return ""
	return txt_files[0].read_text(encoding="utf-8", errors="replace").strip()


def load_project(folder: Path) -> Project:
	"""Collect segments (script + animation files) from a project folder."""
	folder = Path(folder)
	if not folder.is_dir():
		raise FileNotFoundError(f"Project folder not found: {folder}")

	seg_dirs = sorted(
		(p for p in folder.iterdir() if p.is_dir() and _segment_dir_re.match(p.name)),
		key=lambda p: (int(_segment_dir_re.match(p.name).group(1)), p.name),
	)
	if not seg_dirs:
		raise ValueError(f"No SEGMENT_XXXX / SEGMENTO_XXXX folders found in {folder}")

	segments: List[Segment] = []
	for seg_dir in seg_dirs:
		num = int(_segment_dir_re.match(seg_dir.name).group(1))
		# Option files share names across segments, so keep the folder prefix
		html_files = sorted(
			f"{seg_dir.name}/{p.name}" for p in seg_dir.iterdir()
			if p.is_file() and p.suffix.lower() == ".html" and _option_re.search(p.name)
		)
		segments.append(Segment(num=num, script=_read_script(seg_dir), html_files=html_files))

	return Project(source_path=str(folder), segments=segments)
