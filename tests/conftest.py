import sys
from pathlib import Path

import pytest

# Ensure root path is available for imports
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from stream_resolver.models import Candidate, TorrentFile  # noqa: E402


@pytest.fixture
def make_candidate():
    def _make(title: str = "Movie.2024.1080p.WEB-DL.x264", **overrides) -> Candidate:
        values = {"provider": "TestIndex", "title": title}
        values.update(overrides)
        return Candidate(**values)

    return _make


@pytest.fixture
def make_file():
    def _make(file_id: int, path: str, size_bytes: int = 0, selected: bool = True):
        return TorrentFile(
            id=file_id, path=path, size_bytes=size_bytes, selected=selected
        )

    return _make
