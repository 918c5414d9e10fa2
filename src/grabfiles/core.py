"""
Core logic for grabfiles: pick a discovery strategy, list files, assemble the snapshot.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import Iterable, List, Optional

from . import DEFAULT_OUTPUT_FILENAME
from .errors import (
    ConfigFileError,
    GrabIOError,
    OutputError,
    TargetPathNotFoundError,
)
from .repo import glob_escape, list_files_git, locate_repo
from .tree import generate_indented_tree
from .walker import list_files_walk

log = logging.getLogger(__name__)

TREE_HEADER = "---\nDIRECTORY STRUCTURE\n---\n"
CONTENTS_HEADER = "---\nFILE CONTENTS\n---\n\n"


class Strategy(enum.Enum):
    GIT = "git"
    WALK = "walk"


@dataclass
class GrabConfig:
    target_path: Path
    exclude_patterns: List[str] = field(default_factory=list)
    include_untracked: bool = True
    include_default_output: bool = False
    no_git: bool = False
    all_repo: bool = False
    add_headers: bool = True
    include_tree: bool = True
    output_path: Optional[Path] = None


@dataclass
class GrabResult:
    """Which strategy produced ``files`` and the root their display paths are relative to."""

    strategy: Strategy
    files: List[Path]
    display_root: Path
    repo_root: Optional[Path] = None

    def display_path(self, path: Path) -> str:
        try:
            return path.relative_to(self.display_root).as_posix()
        except ValueError:
            return path.as_posix()


# Pattern helpers
def merge_patterns(*groups: Iterable[str]) -> List[str]:
    """Concatenate pattern groups, keeping the first occurrence of each."""
    merged: List[str] = []
    seen = set()
    for group in groups:
        for pattern in group:
            if pattern in seen:
                continue
            seen.add(pattern)
            merged.append(pattern)
    return merged


def load_extra_patterns(config_path: Path) -> List[str]:
    if not config_path.exists():
        raise ConfigFileError(f"Config file '{config_path}' does not exist")
    if not config_path.is_file():
        raise ConfigFileError(f"'{config_path}' is not a file")
    try:
        with config_path.open("r", encoding="utf-8") as fh:
            return [
                ln.strip()
                for ln in fh
                if ln.strip() and not ln.lstrip().startswith("#")
            ]
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigFileError(f"Could not read config file '{config_path}': {e}")


def is_default_output(path: Path) -> bool:
    return path.name.lower() == DEFAULT_OUTPUT_FILENAME


def output_exclusion(
    output_path: Optional[Path],
    scan_root: Path,
    include_default_output: bool = False,
) -> List[str]:
    """Root-anchored pattern that keeps the output file out of its own snapshot."""
    if output_path is None:
        return []
    if include_default_output and is_default_output(output_path):
        return []
    try:
        rel = Path(output_path).resolve().relative_to(scan_root)
    except ValueError:
        # outside the scan root, nothing to exclude
        return []
    except (OSError, RuntimeError) as e:
        log.warning("Could not resolve output path %s: %s", output_path, e)
        return []
    return ["/" + glob_escape(rel.as_posix())]


# Discovery
def _resolve_target(target: Path) -> Path:
    try:
        return Path(target).resolve(strict=True)
    except FileNotFoundError:
        raise TargetPathNotFoundError(Path(target)) from None
    except (OSError, RuntimeError) as e:
        raise GrabIOError(Path(target), e) from e


def grab(config: GrabConfig) -> GrabResult:
    """
    Select the files for a snapshot of ``config.target_path``.

    Inside a usable git working tree (and unless ``no_git`` is set) the
    result comes from ``git ls-files`` scoped to the target; otherwise from a
    filesystem walk of the target directory.
    """
    target = _resolve_target(config.target_path)
    log.debug("Canonical target path: %s", target)
    target_dir = target if target.is_dir() else target.parent

    repo_root = None
    if config.no_git:
        log.info("Operating in plain directory mode (no_git).")
    else:
        repo_root = locate_repo(target_dir)

    if repo_root is not None:
        scope: Optional[PurePath] = None
        if config.all_repo:
            log.info("Git scope set to entire repository.")
        else:
            try:
                scope = target.relative_to(repo_root)
            except ValueError:
                log.warning(
                    "Target %s is not under repository root %s; listing the whole repository.",
                    target,
                    repo_root,
                )
        log.info("Operating in git mode. Repo root: %s, scope: %s", repo_root, scope)
        files = list_files_git(
            repo_root,
            scope,
            include_untracked=config.include_untracked,
            exclude_patterns=merge_patterns(
                config.exclude_patterns,
                output_exclusion(config.output_path, repo_root, config.include_default_output),
            ),
            include_default_output=config.include_default_output,
        )
        result = GrabResult(Strategy.GIT, files, repo_root, repo_root)
    else:
        log.info("Operating in non-git mode. Target path: %s", target_dir)
        files = list_files_walk(
            target_dir,
            exclude_patterns=merge_patterns(
                config.exclude_patterns,
                output_exclusion(config.output_path, target_dir, config.include_default_output),
            ),
            include_default_output=config.include_default_output,
        )
        if target != target_dir:
            files = [f for f in files if f == target]
        result = GrabResult(Strategy.WALK, files, target_dir)

    log.info("Found %d files to process.", len(result.files))
    if not result.files:
        log.warning("No files selected for processing based on current configuration.")
    return result


# Snapshot assembly
def _is_binary(data: bytes) -> bool:
    return b"\0" in data


def _read_text(path: Path) -> Optional[str]:
    try:
        raw = path.read_bytes()
    except OSError as e:
        log.warning("Skipping file due to read error: %s - %s", path, e)
        return None
    if _is_binary(raw):
        log.info("Skipping binary file: %s", path)
        return None
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        log.info("Skipping non-UTF8 file: %s", path)
        return None


def render_contents(result: GrabResult, add_headers: bool = True) -> str:
    chunks: List[str] = []
    for path in result.files:
        text = _read_text(path)
        if text is None:
            continue
        if add_headers:
            chunks.append(f"--- FILE: {result.display_path(path)} ---\n")
        chunks.append(text)
        if not text.endswith("\n"):
            chunks.append("\n")
        chunks.append("\n")
    return "".join(chunks)


def grab_contents(config: GrabConfig) -> str:
    """Return the full snapshot text: optional tree section followed by file contents."""
    result = grab(config)
    if not result.files:
        return ""

    out: List[str] = []
    if config.include_tree:
        out.append(TREE_HEADER)
        out.append(generate_indented_tree(result.files, result.display_root))
        out.append("\n")
        out.append(CONTENTS_HEADER)
    out.append(render_contents(result, config.add_headers))
    return "".join(out)


# Output sink
def write_output(content: str, out_path: Path) -> Path:
    try:
        out_path = out_path.resolve()
    except (OSError, RuntimeError) as e:
        raise OutputError(f"Could not resolve output path '{out_path}': {e}")

    if not out_path.parent.exists():
        try:
            out_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OutputError(f"Could not create directory '{out_path.parent}': {e}")

    try:
        with out_path.open("w", encoding="utf-8", errors="surrogateescape", newline="\n") as out_fh:
            out_fh.write(content)
    except OSError as e:
        raise OutputError(f"Could not write output file '{out_path}': {e}")
    return out_path

