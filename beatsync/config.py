"""Project-level configuration for data locations.

The data directory can be overridden via environment variables:
- BEATSYNC_DATA_DIR: root data dir (defaults to <project>/data)
"""

import os
from pathlib import Path
from typing import Final


def _project_root() -> Path:
	"""Return an approximation of the project root (parent of the package)."""
	return Path(__file__).resolve().parents[1]


DATA_DIR: Final[Path] = Path(os.getenv("BEATSYNC_DATA_DIR", _project_root() / "data"))
PROJECT_FILE_NAME: Final[str] = "project.json"


def ensure_data_dirs(data_dir: Path = DATA_DIR) -> Path:
	"""Create the data directory if it does not already exist."""
	data_dir.mkdir(parents=True, exist_ok=True)
	return data_dir
