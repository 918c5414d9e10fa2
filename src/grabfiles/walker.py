"""
Plain directory walking for targets outside a git working tree.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Tuple

import pathspec

from . import DEFAULT_OUTPUT_FILENAME
from .errors import PatternCompileError

log = logging.getLogger(__name__)

VCS_DIR_PATTERN = ".git/"


# Matcher construction
def _compile_pattern(pattern: str) -> list:
    return list(pathspec.PathSpec.from_lines("gitwildmatch", [pattern]).patterns)


def build_matcher(
    exclude_patterns: Iterable[str] = (),
    include_default_output: bool = False,
) -> "pathspec.PathSpec":
    """
    Compile the exclusion matcher used by the walk.

    A pattern that does not compile is logged and left out; only a failure to
    assemble the final ``PathSpec`` is fatal.
    """
    seeds: List[str] = []
    if include_default_output:
        log.info(
            "Default exclusion for '%s' is disabled by configuration.",
            DEFAULT_OUTPUT_FILENAME,
        )
    else:
        seeds.append(DEFAULT_OUTPUT_FILENAME)
    seeds.append(VCS_DIR_PATTERN)

    compiled = []
    seen = set()
    for pattern in [*seeds, *exclude_patterns]:
        if pattern in seen:
            log.debug("Skipping duplicate exclude pattern '%s'", pattern)
            continue
        seen.add(pattern)
        try:
            compiled.extend(_compile_pattern(pattern))
        except (ValueError, TypeError) as e:
            log.error(
                "Failed to add exclude pattern '%s': %s. This pattern will be ignored.",
                pattern,
                e,
            )

    try:
        return pathspec.PathSpec(compiled)
    except (ValueError, TypeError) as e:
        raise PatternCompileError(f"Failed to build glob pattern matcher: {e}") from e


def is_excluded(matcher: "pathspec.PathSpec", rel: str, is_dir: bool) -> bool:
    """True if *rel* (POSIX, relative to the walk root) or any ancestor is matched."""
    parts = PurePosixPath(rel).parts
    for depth in range(1, len(parts)):
        if matcher.match_file("/".join(parts[:depth]) + "/"):
            return True
    return matcher.match_file(rel + "/" if is_dir else rel)


def _inside(path: Path, root: Path) -> bool:
    return path == root or root in path.parents


# Traversal
def list_files_walk(
    root: Path,
    exclude_patterns: Iterable[str] = (),
    include_default_output: bool = False,
) -> List[Path]:
    """
    Walk *root* (following symlinks that stay inside it) and return every
    regular file not matched by the exclusion patterns, sorted.
    """
    root = Path(root).resolve()
    log.debug("Listing files by walking directory: %s", root)
    matcher = build_matcher(exclude_patterns, include_default_output)

    files: List[Path] = []
    # each entry carries the canonical paths of the directories above it, for loop detection
    stack: List[Tuple[Path, Tuple[Path, ...]]] = [(root, (root,))]
    while stack:
        directory, chain = stack.pop()
        try:
            with os.scandir(directory) as it:
                entries = list(it)
        except OSError as e:
            log.warning("Skipping path due to error during walk near %s: %s", directory, e)
            continue

        for entry in entries:
            path = Path(entry.path)
            rel = path.relative_to(root).as_posix()
            try:
                if entry.is_symlink():
                    real = path.resolve(strict=True)
                    if not _inside(real, root):
                        log.debug("Skipping symlink escaping %s: %s -> %s", root, path, real)
                        continue
                is_dir = entry.is_dir()
                is_file = not is_dir and entry.is_file()
                if is_dir:
                    real = path.resolve(strict=True)
            except (OSError, RuntimeError) as e:
                log.warning("Skipping path due to error during walk near %s: %s", path, e)
                continue

            if is_dir:
                if is_excluded(matcher, rel, is_dir=True):
                    log.debug("Pruning excluded directory: %s", path)
                    continue
                if real in chain:
                    log.warning("Skipping filesystem loop at %s (points to %s)", path, real)
                    continue
                stack.append((path, chain + (real,)))
            elif is_file:
                if is_excluded(matcher, rel, is_dir=False):
                    log.debug("Excluding file due to pattern match on path or parent: %s", path)
                    continue
                files.append(path)
            else:
                log.debug("Skipping entry that is neither file nor directory: %s", path)

    files.sort()
    return files
