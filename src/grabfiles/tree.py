"""
Indented project-tree renderer.
"""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from typing import Iterable, Set

from .errors import PathRelativizationError

log = logging.getLogger(__name__)


def generate_indented_tree(files: Iterable[Path], display_root: Path) -> str:
    """
    Render *files* as an indented outline relative to *display_root*.

    Every ancestor directory of every file gets exactly one line, so the
    hierarchy is complete even though only files are passed in::

        - a.txt
        - sub/
          - b.txt

    Entries are ordered component by component, which keeps each directory's
    children directly beneath it. Directories are recognised by asking the
    filesystem, and are marked with a trailing ``/``.
    """
    display_root = Path(display_root)
    log.debug("Generating tree relative to %s", display_root)

    relative_paths: Set[str] = set()
    for file_path in files:
        try:
            rel = PurePosixPath(Path(file_path).relative_to(display_root).as_posix())
        except ValueError:
            raise PathRelativizationError(display_root, Path(file_path)) from None

        relative_paths.add(str(rel))
        for parent in rel.parents:
            if str(parent) == ".":
                break
            relative_paths.add(str(parent))

    lines = []
    for rel_str in sorted(relative_paths, key=lambda s: s.split("/")):
        rel = PurePosixPath(rel_str)
        if not rel.name:
            log.debug("Skipping empty path component in tree generation: %r", rel_str)
            continue
        indent = "  " * (len(rel.parts) - 1)
        slash = "/" if (display_root / rel_str).is_dir() else ""
        lines.append(f"{indent}- {rel.name}{slash}\n")

    return "".join(lines)
