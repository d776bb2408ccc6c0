"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

from helpers import FakeWatchService, RecordingCallback


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    """Create a small directory tree with files at several levels.

    Layout::

        root/
            top.txt
            testDir11/
                level2.txt
                testDir21/
            testDir12/
    """
    root = tmp_path / "root"
    (root / "testDir11" / "testDir21").mkdir(parents=True)
    (root / "testDir12").mkdir()
    (root / "top.txt").write_text("top")
    (root / "testDir11" / "level2.txt").write_text("level2")
    return root


@pytest.fixture
def tree_dirs(tree: Path) -> set[Path]:
    """Every directory of the tree fixture, root included."""
    return {
        tree,
        tree / "testDir11",
        tree / "testDir12",
        tree / "testDir11" / "testDir21",
    }


@pytest.fixture
def recorder() -> RecordingCallback:
    """Create a thread-safe recording callback."""
    return RecordingCallback()


@pytest.fixture
def fake_services() -> list[FakeWatchService]:
    """Collect fake watch services created by a watcher."""
    return []


@pytest.fixture
def fake_factory(fake_services: list[FakeWatchService]):
    """Service factory producing fake watch services."""

    def factory() -> FakeWatchService:
        service = FakeWatchService()
        fake_services.append(service)
        return service

    return factory
