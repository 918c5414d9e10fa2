"""
Git-aware file discovery.

Two read-only queries are used: ``git rev-parse --show-toplevel`` to find the
working tree root and ``git ls-files -z`` to list tracked (and optionally
untracked, not ignored) files.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from pathlib import Path, PurePath
from typing import Iterable, List, Optional, Set

from . import DEFAULT_OUTPUT_FILENAME
from .errors import GitCommandError, GitExecutionError

log = logging.getLogger(__name__)

_NOT_A_REPO = "not a git repository"
_DUBIOUS_OWNERSHIP = "dubious ownership"
_GLOB_META = re.compile(r"([*?\[\]\\])")


def _run_git(args: List[str], cwd: Path) -> subprocess.CompletedProcess:
    command = " ".join(["git", *args])
    log.debug("Running command: %s in directory: %s", command, cwd)
    try:
        return subprocess.run(
            ["git", *args],
            cwd=str(cwd),
            capture_output=True,
        )
    except OSError as e:
        log.debug("Could not launch '%s': %s", command, e)
        raise GitExecutionError(command, e) from e


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def locate_repo(start_path: Path) -> Optional[Path]:
    """
    Return the canonical root of the git working tree containing *start_path*.

    ``None`` means "plain directory": git is not installed, the path is not
    inside a repository, or git refuses the repository because of an
    ownership mismatch. Any other git failure raises ``GitCommandError``, and
    a launch failure other than a missing executable ``GitExecutionError``.
    """
    args = ["rev-parse", "--show-toplevel"]
    try:
        proc = _run_git(args, start_path)
    except GitExecutionError as e:
        # a missing cwd also surfaces as FileNotFoundError, naming the directory
        if isinstance(e.cause, FileNotFoundError) and e.cause.filename != str(start_path):
            log.info("'git' command not found. Assuming non-git mode.")
            return None
        raise

    if proc.returncode == 0:
        top = os.fsdecode(proc.stdout).strip()
        if not top:
            log.warning(
                "'git %s' succeeded but returned empty output in %s. "
                "Treating as non-git mode.",
                " ".join(args),
                start_path,
            )
            return None
        root = Path(top).resolve()
        log.debug("Detected git repo root: %s", root)
        return root

    stderr = _decode(proc.stderr)
    if _NOT_A_REPO in stderr:
        log.debug("Path is not inside a git repository: %s", start_path)
        return None
    if _DUBIOUS_OWNERSHIP in stderr:
        # never add a safe.directory entry on the user's behalf
        log.warning(
            "git reports dubious ownership for the repository containing %s; "
            "falling back to plain directory mode.",
            start_path,
        )
        return None

    stdout = _decode(proc.stdout)
    log.error(
        "git command 'git %s' failed unexpectedly.\nStderr: %s\nStdout: %s",
        " ".join(args),
        stderr,
        stdout,
    )
    raise GitCommandError("git " + " ".join(args), stdout, stderr)


# Pathspec builders
def _posix(path: PurePath) -> str:
    return "/".join(part for part in path.parts if part not in ("", "."))


def glob_escape(name: str) -> str:
    """Backslash-escape glob metacharacters so *name* matches only itself."""
    return _GLOB_META.sub(r"\\\1", name)


def build_scope_pathspecs(repo_root: Path, scope: Optional[PurePath]) -> List[str]:
    if scope is None:
        return []
    normalized = _posix(PurePath(scope))
    if not normalized:
        return []
    escaped = glob_escape(normalized)
    if (repo_root / normalized).is_dir():
        return [f":(glob){escaped}/**"]
    return [f":(glob){escaped}"]


def git_exclude_patterns(pattern: str) -> List[str]:
    """
    Translate a gitignore-style pattern into git glob pathspec bodies.

    Gitignore excludes everything below a matched directory, so a pattern
    without a trailing ``/`` also gets a ``/**`` form covering the contents
    of a directory it names.
    """
    body = pattern
    directory = body.endswith("/")
    body = body.rstrip("/")
    anchored = body.startswith("/")
    body = body.lstrip("/")
    if not anchored and "/" not in body:
        body = f"**/{body}"
    if directory:
        return [f"{body}/**"]
    return [body, f"{body}/**"]


def build_exclude_pathspecs(
    exclude_patterns: Iterable[str],
    include_default_output: bool = False,
) -> List[str]:
    specs: List[str] = []
    seen: Set[str] = set()

    patterns: List[str] = []
    if include_default_output:
        log.info(
            "Default exclusion for '%s' is disabled by configuration.",
            DEFAULT_OUTPUT_FILENAME,
        )
    else:
        patterns.append(DEFAULT_OUTPUT_FILENAME)
    patterns.extend(exclude_patterns)

    for pattern in patterns:
        if not pattern.strip().strip("/"):
            log.debug("Skipping empty exclude pattern %r", pattern)
            continue
        if pattern in seen:
            log.debug("Skipping duplicate exclude pattern '%s'", pattern)
            continue
        seen.add(pattern)
        specs.extend(f":(glob,exclude){body}" for body in git_exclude_patterns(pattern))
    return specs


def _ls_files(
    repo_root: Path,
    args: List[str],
    phase: str,
    found: Set[Path],
) -> None:
    command = "git " + " ".join(args)
    log.debug("Running git command for %s files: %s", phase, command)
    proc = _run_git(args, repo_root)
    if proc.returncode != 0:
        stdout, stderr = _decode(proc.stdout), _decode(proc.stderr)
        log.error(
            "git ls-files command (%s) failed.\nStderr: %s\nStdout: %s",
            phase,
            stderr,
            stdout,
        )
        raise GitCommandError(command, stdout, stderr)

    # names are raw bytes; fsdecode keeps undecodable ones addressable on disk
    for name in proc.stdout.split(b"\0"):
        if name:
            found.add(repo_root / os.fsdecode(name))


def list_files_git(
    repo_root: Path,
    scope: Optional[PurePath] = None,
    include_untracked: bool = True,
    exclude_patterns: Iterable[str] = (),
    include_default_output: bool = False,
) -> List[Path]:
    """
    List the files git considers part of *repo_root*, restricted to *scope*.

    Tracked files are always listed; untracked files that are not ignored by
    the working tree's ignore rules are added when *include_untracked* is set.
    Paths are absolute, unique and sorted.
    """
    log.debug("Listing files using git in root %s with scope %s", repo_root, scope)

    scope_specs = build_scope_pathspecs(repo_root, scope)
    exclude_specs = build_exclude_pathspecs(exclude_patterns, include_default_output)

    found: Set[Path] = set()
    _ls_files(
        repo_root,
        ["ls-files", "-z", *scope_specs, *exclude_specs],
        "tracked",
        found,
    )
    if include_untracked:
        _ls_files(
            repo_root,
            ["ls-files", "-z", "--others", "--exclude-standard", *scope_specs, *exclude_specs],
            "untracked",
            found,
        )
    else:
        log.debug("Skipping untracked files per configuration.")

    files: List[Path] = []
    for path in sorted(found):
        # deleted-but-staged entries and submodule gitlinks are not regular files
        if path.is_file():
            files.append(path)
        else:
            log.debug("Dropping git entry that is not a regular file: %s", path)
    return files
