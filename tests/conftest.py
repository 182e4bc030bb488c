# conftest.py - Pytest configuration and fixtures
from pathlib import Path
from typing import Callable

import pytest

from src.kws.term import KwsTerm


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Return the config directory path."""
    return project_root / "config"


@pytest.fixture
def make_term() -> Callable[..., KwsTerm]:
    """Factory for terms centered on a frame, 20 frames wide by default."""

    def _make(kw_id: str = "KW-1", center: int = 100, utt_id: int = 1, score: float = 0.0, width: int = 20) -> KwsTerm:
        half = width // 2
        return KwsTerm(utt_id=utt_id, kw_id=kw_id, start_time=center - half, end_time=center + half, score=score)

    return _make


@pytest.fixture
def term_files(tmp_path: Path) -> tuple[Path, Path]:
    """Write a small reference/hypothesis pair of term lists."""
    ref = tmp_path / "ref.txt"
    hyp = tmp_path / "hyp.txt"
    ref.write_text(
        "# kw_id utt_id start end\n"
        "KW-1 1 100 150\n"
        "KW-1 1 400 450\n"
        "KW-2 2 200 260\n"
    )
    hyp.write_text(
        "KW-1 1 105 150 0.9\n"
        "KW-1 1 800 850 0.7\n"
        "\n"
        "KW-2 2 210 260 0.3\n"
    )
    return ref, hyp
