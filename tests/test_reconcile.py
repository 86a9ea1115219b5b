"""Tests for replacing destination contents with source files."""

import logging
import os
import time

import pytest

from dirmirror.constants import REMOVAL_RETRY_DELAY
from dirmirror.contents import get_source_directory_contents
from dirmirror.core import AccessResult, DiffType
from dirmirror.errors import (
    NotADirectoryRootError,
    PathStillExistsError,
    PendingDeleteError,
    SymlinkRootError,
    UnexpectedAccessError,
)
from dirmirror.paths import AbsolutePath
from dirmirror.reconcile import (
    plan_directory_replacement,
    plan_destination,
    reconcile,
    replace_directory_contents_with_files,
)

from tests.fixtures.trees import (
    CountingFileSystem,
    FailingRemoveFileSystem,
    ScriptedRemovalFileSystem,
    Symlink,
    make_tree,
    read_tree,
    run,
    set_mtime_ns,
)


SOURCE_TREE = {
    "file.txt": "a",
    "unlisted.txt": "not copied",
    "dir": {"nested.txt": "n"},
    "node_modules": {"file.txt": "from source"},
}
SOURCE_FILES = ["file.txt", "dir/nested.txt", "node_modules/file.txt"]
DESTINATION_TREE = {
    "stale.txt": "s",
    "dir": {"old.txt": "o"},
    "node_modules": {"file.txt": "from destination"},
    "node_modules2": {"file.txt": "keep", "file2.txt": "drop"},
}
EXCLUDE = ["node_modules", "node_modules2/file.txt"]


def _replace(source, destinations, files, exclude=(), fs=None):
    return run(replace_directory_contents_with_files(
        AbsolutePath(source, fs),
        [AbsolutePath(d, fs) for d in destinations],
        files,
        exclude,
    ))


def _error_messages(caplog):
    return [r.getMessage() for r in caplog.records if r.levelno == logging.ERROR]


class TestReplaceDirectoryContents:
    """Test the end-to-end replacement of destination contents."""

    def test_destination_matches_listed_files_and_exclusions(self, source_and_destination):
        source, destination = source_and_destination
        make_tree(source, SOURCE_TREE)
        make_tree(destination, DESTINATION_TREE)

        results = _replace(source, [destination], SOURCE_FILES, EXCLUDE)

        assert read_tree(destination) == {
            "dir": {"nested.txt": "n"},
            "file.txt": "a",
            "node_modules": {"file.txt": "from destination"},
            "node_modules2": {"file.txt": "keep"},
        }
        assert len(results) == 1
        assert results[0].destination == str(destination)
        assert results[0].added == 2
        assert results[0].removed == 3

    def test_copies_preserve_modification_time(self, source_and_destination):
        source, destination = source_and_destination
        make_tree(source, {"file.txt": "a", "dir": {"nested.txt": "n"}})
        set_mtime_ns(source / "file.txt", 1_600_000_000_123_456_789)

        _replace(source, [destination], ["file.txt", "dir/nested.txt"])

        for relative_path in ("file.txt", "dir/nested.txt"):
            assert (
                os.lstat(destination / relative_path).st_mtime_ns
                == os.lstat(source / relative_path).st_mtime_ns
            )

    def test_second_run_only_copies_changed_file(self, source_and_destination):
        source, destination = source_and_destination
        make_tree(source, SOURCE_TREE)
        make_tree(destination, DESTINATION_TREE)
        _replace(source, [destination], SOURCE_FILES, EXCLUDE)

        (source / "file.txt").write_text("b")
        fs = CountingFileSystem()
        _replace(source, [destination], SOURCE_FILES, EXCLUDE, fs)

        assert fs.copies == [(str(source / "file.txt"), str(destination / "file.txt"))]
        assert fs.removes == []
        assert (destination / "file.txt").read_text() == "b"

    def test_repeat_run_changes_nothing(self, source_and_destination):
        source, destination = source_and_destination
        make_tree(source, SOURCE_TREE)
        make_tree(destination, DESTINATION_TREE)
        _replace(source, [destination], SOURCE_FILES, EXCLUDE)
        before = read_tree(destination)

        fs = CountingFileSystem()
        results = _replace(source, [destination], SOURCE_FILES, EXCLUDE, fs)

        assert fs.copies == []
        assert fs.removes == []
        assert read_tree(destination) == before
        assert results[0].added == results[0].changed_contents == results[0].removed == 0
        assert results[0].unchanged == 2

    def test_excluded_file_not_overwritten_even_when_listed(self, source_and_destination):
        source, destination = source_and_destination
        make_tree(source, {"config.json": "new"})
        make_tree(destination, {"config.json": "local"})

        _replace(source, [destination], ["config.json"], ["config.json"])

        assert (destination / "config.json").read_text() == "local"

    def test_missing_destination_is_created(self, source_and_destination):
        source, destination = source_and_destination
        make_tree(source, {"a.txt": "a", "empty": {}, "b": {"c.txt": "c"}})

        _replace(source, [destination], ["a.txt", "empty", "b/c.txt"])

        assert read_tree(destination) == {"a.txt": "a", "b": {"c.txt": "c"}, "empty": {}}

    def test_unlisted_source_files_are_removed_from_destination(self, source_and_destination):
        source, destination = source_and_destination
        make_tree(source, {"a.txt": "a", "b.txt": "b"})
        make_tree(destination, {"a.txt": "old a", "b.txt": "old b"})

        _replace(source, [destination], ["a.txt"])

        assert read_tree(destination) == {"a.txt": "a"}

    def test_destination_symlinks_are_left_alone(self, source_and_destination):
        source, destination = source_and_destination
        make_tree(source, {"a.txt": "a"})
        make_tree(destination, {"target.txt": "t", "link.txt": Symlink("target.txt")})

        _replace(source, [destination], ["a.txt"])

        assert read_tree(destination) == {"a.txt": "a", "link.txt": Symlink("target.txt")}


class TestTypeChanges:
    """Test replacing a file with a directory and the reverse."""

    def test_file_replaced_by_directory(self, source_and_destination):
        source, destination = source_and_destination
        make_tree(source, {"x": {"x": "inner"}})
        make_tree(destination, {"x": "was a file"})
        set_mtime_ns(destination / "x", os.lstat(source / "x").st_mtime_ns)

        _replace(source, [destination], ["x/x"])

        assert read_tree(destination) == {"x": {"x": "inner"}}

    def test_directory_replaced_by_file(self, source_and_destination):
        source, destination = source_and_destination
        make_tree(source, {"x": "now a file"})
        make_tree(destination, {"x": {"x": "inner"}})
        set_mtime_ns(destination / "x", os.lstat(source / "x").st_mtime_ns)

        results = _replace(source, [destination], ["x"])

        assert read_tree(destination) == {"x": "now a file"}
        assert results[0].changed_types == 1


class TestVerifiedRemoval:
    """Test removal checks before a type-changed item is copied."""

    def _setup(self, source, destination):
        make_tree(source, {"file.txt": "a"})
        make_tree(destination, {"file.txt": {"nested.txt": "n"}})

    def test_retry_after_pending_delete(self, source_and_destination):
        """Test that EPERM followed by ENOENT counts as removed."""
        source, destination = source_and_destination
        self._setup(source, destination)
        fs = ScriptedRemovalFileSystem([AccessResult.failure("EPERM"), AccessResult.failure("ENOENT")])

        started = time.monotonic()
        _replace(source, [destination], ["file.txt"], fs=fs)
        elapsed = time.monotonic() - started

        assert fs.removes == [str(destination / "file.txt")]
        assert fs.access_calls == [str(destination / "file.txt")] * 2
        assert fs.copies == [(str(source / "file.txt"), str(destination / "file.txt"))]
        # Copy happens only after removal was confirmed
        assert fs.access_calls_before_copy == [2]
        assert elapsed >= REMOVAL_RETRY_DELAY * 0.9

    def test_removed_on_first_check(self, source_and_destination):
        source, destination = source_and_destination
        self._setup(source, destination)
        fs = ScriptedRemovalFileSystem([AccessResult.failure("ENOENT")])

        _replace(source, [destination], ["file.txt"], fs=fs)

        assert len(fs.access_calls) == 1
        assert len(fs.copies) == 1

    def test_persistent_pending_delete(self, source_and_destination, caplog):
        source, destination = source_and_destination
        self._setup(source, destination)
        fs = ScriptedRemovalFileSystem([AccessResult.failure("EPERM")])
        item_path = str(destination / "file.txt")

        with pytest.raises(PendingDeleteError) as exc_info:
            _replace(source, [destination], ["file.txt"], fs=fs)

        assert str(exc_info.value) == (
            f"Path exists {item_path} but received EPERM when accessing it. "
            f"If a remove call has just been made this likely means the item is in a "
            f"'PENDING DELETE' state due to another process still accessing it."
        )
        assert _error_messages(caplog) == [f"Unable to remove item {item_path}"]
        assert fs.copies == []

    def test_path_still_exists(self, source_and_destination, caplog):
        source, destination = source_and_destination
        self._setup(source, destination)
        fs = ScriptedRemovalFileSystem([AccessResult.success()])

        with pytest.raises(PathStillExistsError) as exc_info:
            _replace(source, [destination], ["file.txt"], fs=fs)

        assert str(exc_info.value) == f"Path exists {destination / 'file.txt'}"
        assert len(fs.access_calls) == 2
        assert len(_error_messages(caplog)) == 1

    def test_unexpected_access_code(self, source_and_destination):
        source, destination = source_and_destination
        self._setup(source, destination)
        fs = ScriptedRemovalFileSystem([AccessResult.failure("EIO")])

        with pytest.raises(UnexpectedAccessError) as exc_info:
            _replace(source, [destination], ["file.txt"], fs=fs)

        assert exc_info.value.code == "EIO"
        assert str(exc_info.value) == f"Unexpected error 'EIO' accessing {destination / 'file.txt'}"

    def test_access_denied_is_reported_as_pending_delete(self, source_and_destination, caplog):
        """Test that EACCES, the code Windows reports for a pending delete, gets the diagnostic."""
        source, destination = source_and_destination
        self._setup(source, destination)
        fs = ScriptedRemovalFileSystem([AccessResult.failure("EACCES")])
        item_path = str(destination / "file.txt")

        with pytest.raises(PendingDeleteError) as exc_info:
            _replace(source, [destination], ["file.txt"], fs=fs)

        assert exc_info.value.code == "EACCES"
        assert str(exc_info.value).startswith(f"Path exists {item_path} but received EACCES when accessing it.")
        assert _error_messages(caplog) == [f"Unable to remove item {item_path}"]
        assert fs.copies == []


class TestRemovalFailures:
    def test_failed_removal_is_logged_and_raised(self, source_and_destination, caplog):
        source, destination = source_and_destination
        make_tree(source, {"a.txt": "a"})
        make_tree(destination, {"a.txt": "a", "stale.txt": "s"})

        with pytest.raises(PermissionError):
            _replace(source, [destination], ["a.txt"], fs=FailingRemoveFileSystem())

        assert _error_messages(caplog) == [f"Unable to remove item {destination / 'stale.txt'}"]
        assert (destination / "stale.txt").exists()


class TestRoots:
    """Test validation of source and destination roots."""

    def test_source_is_a_file(self, tmp_path):
        make_tree(tmp_path, {"source": "file", "destination": {}})

        with pytest.raises(NotADirectoryRootError):
            _replace(tmp_path / "source", [tmp_path / "destination"], ["a.txt"])

    def test_destination_is_a_file(self, tmp_path):
        make_tree(tmp_path, {"source": {"a.txt": "a"}, "destination": "file"})

        with pytest.raises(NotADirectoryRootError):
            _replace(tmp_path / "source", [tmp_path / "destination"], ["a.txt"])

    def test_destination_is_a_symlink(self, tmp_path):
        make_tree(tmp_path, {"source": {"a.txt": "a"}, "real": {}, "destination": Symlink("real")})

        with pytest.raises(SymlinkRootError):
            _replace(tmp_path / "source", [tmp_path / "destination"], ["a.txt"])
        assert read_tree(tmp_path / "real") == {}


class TestMultipleDestinations:
    def test_destinations_are_independent(self, tmp_path):
        """Test that exclusions found in one destination do not affect another."""
        source = make_tree(tmp_path / "source", {"node_modules": {"a.txt": "from source"}, "b.txt": "b"})
        first = make_tree(tmp_path / "first", {"node_modules": {"a.txt": "first's own"}})
        second = tmp_path / "second"

        results = _replace(source, [first, second], ["node_modules/a.txt", "b.txt"], ["node_modules"])

        assert read_tree(first) == {"b.txt": "b", "node_modules": {"a.txt": "first's own"}}
        assert read_tree(second) == {"b.txt": "b", "node_modules": {"a.txt": "from source"}}
        assert [r.destination for r in results] == [str(first), str(second)]


class TestPlanning:
    """Test computing plans without applying them."""

    def test_plan_leaves_destination_untouched(self, source_and_destination):
        source, destination = source_and_destination
        make_tree(source, SOURCE_TREE)
        make_tree(destination, DESTINATION_TREE)

        plans = run(plan_directory_replacement(
            AbsolutePath(source), [AbsolutePath(destination)], SOURCE_FILES, EXCLUDE
        ))

        assert read_tree(destination) == DESTINATION_TREE
        plan = plans[0]
        assert sorted(r.path for r in plan.added) == ["dir/nested.txt", "file.txt"]
        assert sorted(r.path for r in plan.removed) == ["dir/old.txt", "node_modules2/file2.txt", "stale.txt"]
        assert not plan.in_sync

    def test_reconcile_applies_diff_results(self, source_and_destination):
        source, destination = source_and_destination
        make_tree(source, {"a.txt": "a", "b": {"c.txt": "c"}})
        make_tree(destination, {"old.txt": "o"})
        source_path, destination_path = AbsolutePath(source), AbsolutePath(destination)

        async def go():
            source_contents = await get_source_directory_contents(source_path, ["a.txt", "b/c.txt"])
            plan = await plan_destination(destination_path, source_path, source_contents, [])
            return await reconcile(source_path, destination_path, plan.added + plan.removed)

        result = run(go())

        assert read_tree(destination) == {"a.txt": "a", "b": {"c.txt": "c"}}
        assert result.added == 2
        assert result.removed == 1

    def test_plan_reports_equal_paths(self, source_and_destination):
        source, destination = source_and_destination
        make_tree(source, {"a.txt": "a"})
        _replace(source, [destination], ["a.txt"])

        plans = run(plan_directory_replacement(AbsolutePath(source), [AbsolutePath(destination)], ["a.txt"]))

        assert plans[0].in_sync
        assert plans[0].equal == ["a.txt"]
        assert plans[0].summary_counts[DiffType.EQUAL] == 1


class TestExclusionInviolability:
    def test_excluded_directory_survives_empty_file_list(self, source_and_destination):
        source, destination = source_and_destination
        make_tree(source, {"file.txt": "a"})
        make_tree(destination, {"node_modules": {"foo.txt": "installed"}, "old.txt": "o"})
        before = os.lstat(destination / "node_modules" / "foo.txt").st_mtime_ns

        _replace(source, [destination], [], ["node_modules"])

        assert read_tree(destination) == {"node_modules": {"foo.txt": "installed"}}
        assert os.lstat(destination / "node_modules" / "foo.txt").st_mtime_ns == before


class TestDestinationSymlinkCollisions:
    """Test listed source paths that land on a symlink in the destination."""

    def test_file_replaces_symlink_without_touching_target(self, tmp_path):
        outside = make_tree(tmp_path / "outside", {"secret.txt": "untouched"})
        source = make_tree(tmp_path / "source", {"link.txt": "from source"})
        destination = make_tree(tmp_path / "destination", {"link.txt": Symlink("../outside/secret.txt")})

        _replace(source, [destination], ["link.txt"])

        assert read_tree(outside) == {"secret.txt": "untouched"}
        assert not (destination / "link.txt").is_symlink()
        assert read_tree(destination) == {"link.txt": "from source"}

        fs = CountingFileSystem()
        _replace(source, [destination], ["link.txt"], fs=fs)
        assert fs.copies == []

    def test_directory_replaces_symlink_without_touching_target(self, tmp_path):
        outside = make_tree(tmp_path / "outside", {"keep.txt": "k"})
        source = make_tree(tmp_path / "source", {"lib": {"a.txt": "a"}})
        destination = make_tree(tmp_path / "destination", {"lib": Symlink("../outside")})

        _replace(source, [destination], ["lib/a.txt"])

        assert read_tree(outside) == {"keep.txt": "k"}
        assert not (destination / "lib").is_symlink()
        assert read_tree(destination) == {"lib": {"a.txt": "a"}}

        fs = CountingFileSystem()
        _replace(source, [destination], ["lib/a.txt"], fs=fs)
        assert fs.copies == []


class TestGlobScope:
    """Test that exclusion globs match whole paths from the destination root."""

    def test_star_does_not_protect_nested_files(self, source_and_destination):
        source, destination = source_and_destination
        source.mkdir()
        make_tree(destination, {"top.txt": "t", "sub": {"old.txt": "o"}})

        _replace(source, [destination], [], ["*.txt"])

        assert read_tree(destination) == {"top.txt": "t"}

    def test_globstar_protects_nested_files(self, source_and_destination):
        source, destination = source_and_destination
        source.mkdir()
        make_tree(destination, {"top.txt": "t", "sub": {"old.txt": "o", "old.log": "l"}})

        _replace(source, [destination], [], ["**/*.txt"])

        assert read_tree(destination) == {"top.txt": "t", "sub": {"old.txt": "o"}}

    def test_brace_alternatives_are_protected(self, source_and_destination):
        source, destination = source_and_destination
        source.mkdir()
        make_tree(destination, {"a.txt": "a", "b.txt": "b", "c.txt": "c"})

        _replace(source, [destination], [], ["{a,b}.txt"])

        assert read_tree(destination) == {"a.txt": "a", "b.txt": "b"}
