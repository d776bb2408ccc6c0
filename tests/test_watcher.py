"""End-to-end watcher tests on a real filesystem."""

from pathlib import Path

import pytest

from dirwatch.types import EventKind
from dirwatch.watcher import DirectoryWatcher
from helpers import RecordingCallback, wait_for

SETTLE_SECONDS = 0.5


@pytest.fixture
def make_watcher(recorder: RecordingCallback):
    """Build watchers reporting to the recorder, stopping them afterwards."""
    watchers: list[DirectoryWatcher] = []

    def factory(root: Path, recursive: bool = True, **kwargs) -> DirectoryWatcher:
        watcher = DirectoryWatcher(root, recursive, callback=recorder, **kwargs)
        watchers.append(watcher)
        return watcher

    yield factory

    for watcher in watchers:
        watcher.stop()


def test_start_reports_existing_directories(
    make_watcher,
    recorder: RecordingCallback,
    tree: Path,
    tree_dirs: set[Path],
) -> None:
    """Every existing directory is reported created exactly once, files are not."""
    watcher = make_watcher(tree)
    watcher.start()

    created = recorder.paths(EventKind.CREATED)
    assert set(created) == tree_dirs
    assert len(created) == len(tree_dirs)
    assert tree / "top.txt" not in created


def test_file_lifecycle(make_watcher, recorder: RecordingCallback, tree: Path) -> None:
    """Creation is reported, deletion is reported as modified then removed."""
    watcher = make_watcher(tree)
    watcher.start()

    target = tree / "testDir11" / "testLevel23.txt"
    target.touch()
    assert wait_for(lambda: EventKind.CREATED in recorder.kinds_for(target))

    target.unlink()
    assert wait_for(lambda: EventKind.REMOVED in recorder.kinds_for(target))

    kinds = recorder.kinds_for(target)
    removed_at = kinds.index(EventKind.REMOVED)
    assert kinds[removed_at - 1] is EventKind.MODIFIED


def test_suffix_filter(make_watcher, recorder: RecordingCallback, tree: Path) -> None:
    """Only files matching a filter suffix are reported."""
    watcher = make_watcher(tree, file_filters=[".png"])
    watcher.start()

    text_file = tree / "testDir11" / "testLevel23.txt"
    image_file = tree / "testDir11" / "testLevel23.png"
    text_file.touch()
    image_file.touch()

    assert wait_for(lambda: EventKind.CREATED in recorder.kinds_for(image_file))
    text_file.unlink()
    image_file.unlink()
    assert wait_for(lambda: EventKind.REMOVED in recorder.kinds_for(image_file))

    assert recorder.kinds_for(text_file) == []
    assert recorder.paths(EventKind.CREATED).count(image_file) == 1
    assert EventKind.MODIFIED in recorder.kinds_for(image_file)


def test_new_subdirectory_is_watched(make_watcher, recorder: RecordingCallback, tree: Path) -> None:
    """Files inside a directory created after start are reported."""
    watcher = make_watcher(tree)
    watcher.start()

    new_dir = tree / "later"
    new_dir.mkdir()
    assert wait_for(lambda: EventKind.CREATED in recorder.kinds_for(new_dir))

    inner = new_dir / "inside.txt"
    inner.touch()
    assert wait_for(lambda: EventKind.CREATED in recorder.kinds_for(inner))


def test_new_subdirectory_at_max_depth_is_not_watched(
    make_watcher,
    recorder: RecordingCallback,
    tree: Path,
) -> None:
    """A directory created at max_depth is reported but its contents are not."""
    watcher = make_watcher(tree, max_depth=1)
    watcher.start()

    new_dir = tree / "later"
    new_dir.mkdir()
    assert wait_for(lambda: EventKind.CREATED in recorder.kinds_for(new_dir))

    inner = new_dir / "inside.txt"
    inner.touch()
    marker = tree / "marker.txt"
    marker.touch()
    assert wait_for(lambda: EventKind.CREATED in recorder.kinds_for(marker))
    assert not wait_for(lambda: bool(recorder.kinds_for(inner)), timeout=SETTLE_SECONDS)


def test_start_stop_cycles(
    make_watcher,
    recorder: RecordingCallback,
    tree: Path,
    tree_dirs: set[Path],
) -> None:
    """The watcher can be restarted without duplicated or missing events."""
    watcher = make_watcher(tree)
    assert not watcher.is_running

    for cycle in range(2):
        recorder.clear()
        watcher.start()
        assert watcher.is_running
        assert sorted(recorder.paths(EventKind.CREATED)) == sorted(tree_dirs)

        target = tree / f"cycle{cycle}.txt"
        target.touch()
        assert wait_for(lambda: EventKind.CREATED in recorder.kinds_for(target))

        watcher.stop()
        assert not watcher.is_running
        assert recorder.paths(EventKind.CREATED).count(target) == 1


def test_double_start_does_not_duplicate_events(
    make_watcher,
    recorder: RecordingCallback,
    tree: Path,
) -> None:
    """Starting twice keeps a single loop, so events arrive once."""
    watcher = make_watcher(tree)
    watcher.start()
    watcher.start()
    assert watcher.is_running

    target = tree / "once.txt"
    target.touch()
    marker = tree / "marker.txt"
    assert wait_for(lambda: EventKind.CREATED in recorder.kinds_for(target))
    marker.touch()
    assert wait_for(lambda: EventKind.CREATED in recorder.kinds_for(marker))

    assert recorder.paths(EventKind.CREATED).count(target) == 1


def test_non_recursive_ignores_subdirectories(
    make_watcher,
    recorder: RecordingCallback,
    tree: Path,
) -> None:
    """Without recursion only entries of the root are reported."""
    watcher = make_watcher(tree, recursive=False)
    watcher.start()
    assert recorder.events == []

    nested = tree / "testDir12" / "nested.txt"
    nested.touch()
    top = tree / "root_level.txt"
    top.touch()

    assert wait_for(lambda: EventKind.CREATED in recorder.kinds_for(top))
    assert recorder.kinds_for(nested) == []


def test_removing_root_stops_watcher(make_watcher, tmp_path: Path) -> None:
    """When the only watched directory disappears the run ends."""
    root = tmp_path / "short_lived"
    root.mkdir()
    watcher = make_watcher(root, recursive=False)
    watcher.start()

    root.rmdir()

    assert wait_for(lambda: not watcher.is_running)
