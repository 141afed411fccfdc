"""Shared fixtures for the beatsync test suite."""
from typing import List, Sequence, Tuple

import pytest

from beatsync.util.types import Cue


def build_cues(items: Sequence[Tuple[float, float, str]]) -> List[Cue]:
    """Build cues from (start, end, text) tuples, ids from 1."""
    return [Cue(index=i, start_time=s, end_time=e, text=t) for i, (s, e, t) in enumerate(items, start=1)]


def build_srt(items: Sequence[Tuple[str, str, str]]) -> str:
    """Build SRT text from (start, end, text) timestamp strings."""
    blocks = []
    for i, (start, end, text) in enumerate(items, start=1):
        blocks.append(f"{i}\n{start} --> {end}\n{text}\n")
    return "\n".join(blocks)


# Voiceover for a three-segment nature documentary, one cue every 3s
DOCUMENTARY_LINES = [
    "Welcome to the volcano documentary",
    "Volcanoes erupt molten lava",
    "Magma chambers build pressure",
    "Now let us discuss glaciers",
    "Glaciers carve mountain valleys slowly",
    "Finally oceans cover most planet",
]

DOCUMENTARY_SCRIPTS = [
    "Welcome to the volcano documentary. Volcanoes erupt molten lava. "
    "Magma chambers build pressure. [SHOW ERUPTION]",
    "Now let us discuss glaciers. Glaciers carve mountain valleys slowly.",
    "Finally oceans cover most planet.",
]


@pytest.fixture
def fruit_cues() -> List[Cue]:
    return build_cues([
        (0.0, 2.5, "Let's talk apples"),
        (3.0, 5.5, "Now bananas"),
        (6.0, 8.5, "Finally cherries"),
    ])


@pytest.fixture
def documentary_cues() -> List[Cue]:
    return build_cues([(i * 3.0, i * 3.0 + 2.5, text) for i, text in enumerate(DOCUMENTARY_LINES)])


@pytest.fixture
def documentary_srt() -> str:
    def ts(seconds: float) -> str:
        ms = int(round(seconds * 1000))
        return f"00:00:{ms // 1000:02d},{ms % 1000:03d}"

    return build_srt([(ts(i * 3.0), ts(i * 3.0 + 2.5), text) for i, text in enumerate(DOCUMENTARY_LINES)])


@pytest.fixture
def make_cues():
    return build_cues


@pytest.fixture
def documentary_scripts() -> List[str]:
    return list(DOCUMENTARY_SCRIPTS)
