import logging
import os
from pathlib import Path

import pathspec
import pytest

from grabfiles import walker
from grabfiles.errors import PatternCompileError
from grabfiles.walker import build_matcher, is_excluded, list_files_walk

from conftest import rels, write


def _symlink(link: Path, target: Path, is_dir: bool = False) -> None:
    try:
        os.symlink(target, link, target_is_directory=is_dir)
    except (OSError, NotImplementedError):
        pytest.skip("symlinks are not supported here")


class TestMatcher:
    def test_vcs_dir_and_default_output_always_seeded(self):
        matcher = build_matcher()
        assert is_excluded(matcher, ".git/HEAD", is_dir=False)
        assert is_excluded(matcher, ".git", is_dir=True)
        assert is_excluded(matcher, "grabfiles.txt", is_dir=False)
        assert is_excluded(matcher, "nested/grabfiles.txt", is_dir=False)
        assert not is_excluded(matcher, "main.py", is_dir=False)

    def test_default_output_override(self):
        matcher = build_matcher(include_default_output=True)
        assert not is_excluded(matcher, "grabfiles.txt", is_dir=False)
        assert is_excluded(matcher, ".git", is_dir=True)

    def test_directory_pattern_matches_contents(self):
        matcher = build_matcher(["subdir/"])
        assert is_excluded(matcher, "subdir", is_dir=True)
        assert is_excluded(matcher, "subdir/deep/file.txt", is_dir=False)
        assert not is_excluded(matcher, "subdir", is_dir=False)

    def test_slashless_pattern_matches_at_any_depth(self):
        matcher = build_matcher(["*.log"])
        assert is_excluded(matcher, "debug.log", is_dir=False)
        assert is_excluded(matcher, "a/b/debug.log", is_dir=False)

    def test_anchored_pattern_matches_only_at_root(self):
        matcher = build_matcher(["docs/*.md"])
        assert is_excluded(matcher, "docs/readme.md", is_dir=False)
        assert not is_excluded(matcher, "src/docs/readme.md", is_dir=False)

    def test_broken_pattern_is_dropped_not_fatal(self, monkeypatch, caplog):
        real = walker._compile_pattern

        def fake(pattern):
            if pattern == "BROKEN[":
                raise ValueError("bad pattern")
            return real(pattern)

        monkeypatch.setattr(walker, "_compile_pattern", fake)
        with caplog.at_level(logging.ERROR, logger="grabfiles.walker"):
            matcher = build_matcher(["BROKEN[", "*.tmp"])
        assert "BROKEN[" in caplog.text
        assert is_excluded(matcher, "x.tmp", is_dir=False)

    def test_matcher_construction_failure_is_fatal(self, monkeypatch):
        class Unbuildable(pathspec.PathSpec):
            def __init__(self, patterns):
                raise TypeError("cannot build")

        monkeypatch.setattr(pathspec, "PathSpec", Unbuildable)
        with pytest.raises(PatternCompileError):
            build_matcher(["*.tmp"])


class TestListFilesWalk:
    def test_scenario_a(self, tree_root: Path):
        files = list_files_walk(tree_root)
        assert rels(files, tree_root) == {"a.txt", "sub/b.txt"}
        assert files == sorted(files)
        assert all(p.is_file() for p in files)
        assert len(files) == len(set(files))

    def test_scenario_d_log_pattern(self, tree_root: Path):
        write(tree_root, "sub/debug.log")
        files = list_files_walk(tree_root, ["*.log"])
        assert rels(files, tree_root) == {"a.txt", "sub/b.txt"}

    def test_directory_pattern_prunes_subtree(self, tree_root: Path, monkeypatch):
        write(tree_root, "build/out/deep.o")
        scanned = []
        real_scandir = os.scandir

        def spy(path):
            scanned.append(Path(path))
            return real_scandir(path)

        monkeypatch.setattr(walker.os, "scandir", spy)
        files = list_files_walk(tree_root, ["build/"])
        assert rels(files, tree_root) == {"a.txt", "sub/b.txt"}
        assert tree_root / "build" not in scanned
        assert tree_root / ".git" not in scanned

    def test_default_output_excluded_unless_overridden(self, tree_root: Path):
        write(tree_root, "grabfiles.txt")
        assert "grabfiles.txt" not in rels(list_files_walk(tree_root), tree_root)
        included = list_files_walk(tree_root, include_default_output=True)
        assert "grabfiles.txt" in rels(included, tree_root)

    def test_duplicate_patterns_are_harmless(self, tree_root: Path):
        write(tree_root, "x.tmp")
        files = list_files_walk(tree_root, ["*.tmp", "*.tmp"])
        assert rels(files, tree_root) == {"a.txt", "sub/b.txt"}

    def test_returns_paths_under_canonical_root(self, tree_root: Path):
        relative = Path(os.path.relpath(tree_root))
        files = list_files_walk(relative)
        assert all(p.is_absolute() for p in files)
        assert rels(files, tree_root) == {"a.txt", "sub/b.txt"}

    def test_symlink_escaping_root_is_skipped(self, tmp_path: Path):
        base = tmp_path.resolve()
        root = base / "root"
        write(root, "keep.txt")
        write(base, "outside/secret.txt")
        write(base, "outside.txt")
        _symlink(root / "escape_dir", base / "outside", is_dir=True)
        _symlink(root / "escape_file", base / "outside.txt")
        files = list_files_walk(root)
        assert rels(files, root) == {"keep.txt"}

    def test_symlink_inside_root_is_followed(self, tmp_path: Path):
        root = tmp_path.resolve()
        write(root, "real/file.txt")
        _symlink(root / "alias", root / "real", is_dir=True)
        _symlink(root / "file_link.txt", root / "real" / "file.txt")
        files = list_files_walk(root)
        assert rels(files, root) == {"real/file.txt", "alias/file.txt", "file_link.txt"}

    def test_symlink_loop_terminates(self, tmp_path: Path):
        root = tmp_path.resolve()
        write(root, "d/file.txt")
        _symlink(root / "d" / "loop", root / "d", is_dir=True)
        files = list_files_walk(root)
        assert rels(files, root) == {"d/file.txt"}

    def test_broken_symlink_is_skipped(self, tmp_path: Path):
        root = tmp_path.resolve()
        write(root, "ok.txt")
        _symlink(root / "dangling", root / "missing.txt")
        assert rels(list_files_walk(root), root) == {"ok.txt"}

    def test_unreadable_directory_is_skipped(self, tmp_path: Path, monkeypatch, caplog):
        root = tmp_path.resolve()
        write(root, "ok.txt")
        write(root, "locked/hidden.txt")
        real_scandir = os.scandir

        def guarded(path):
            if Path(path).name == "locked":
                raise PermissionError(13, "Permission denied", str(path))
            return real_scandir(path)

        monkeypatch.setattr(walker.os, "scandir", guarded)
        with caplog.at_level(logging.WARNING, logger="grabfiles.walker"):
            files = list_files_walk(root)
        assert rels(files, root) == {"ok.txt"}
        assert "locked" in caplog.text
