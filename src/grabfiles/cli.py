"""
CLI entrypoint for grabfiles package.
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from colorama import Fore, Style, just_fix_windows_console

from . import DEFAULT_OUTPUT_FILENAME, __version__
from .core import (
    GrabConfig,
    grab_contents,
    load_extra_patterns,
    merge_patterns,
    write_output,
)
from .errors import GrabError

log = logging.getLogger("grabfiles")

_LEVEL_COLORS = {
    logging.WARNING: Fore.YELLOW,
    logging.ERROR: Fore.RED,
    logging.CRITICAL: Fore.RED,
}


class _ColorFormatter(logging.Formatter):
    def __init__(self, fmt: str, use_color: bool = True) -> None:
        super().__init__(fmt)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        msg = f"[grabfiles] {super().format(record)}"
        color = _LEVEL_COLORS.get(record.levelno) if self.use_color else None
        return color + msg + Style.RESET_ALL if color else msg


def _setup_logging(verbosity: int) -> None:
    just_fix_windows_console()
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbosity, logging.DEBUG)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_ColorFormatter("%(message)s", use_color=sys.stderr.isatty()))
    log.handlers[:] = [handler]
    log.setLevel(level)


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="grabfiles",
        description=(
            "Concatenate a project's files into one text snapshot, with a directory tree. "
            "Uses 'git ls-files' inside a git repository, otherwise walks the directory."
        ),
    )
    p.add_argument(
        "target",
        nargs="?",
        type=Path,
        default=Path("."),
        help="Directory, repository or file to snapshot (default: current directory)",
    )
    p.add_argument(
        "-o",
        "--output",
        type=Path,
        nargs="?",
        const=Path(DEFAULT_OUTPUT_FILENAME),
        help=f"Write to a file instead of stdout (bare flag: {DEFAULT_OUTPUT_FILENAME})",
    )
    p.add_argument(
        "-e",
        "--exclude",
        action="append",
        default=[],
        metavar="PATTERN",
        help="gitignore-style pattern to exclude; repeatable (e.g. -e '*.log' -e 'build/')",
    )
    p.add_argument(
        "--config",
        type=Path,
        help="Path to a file with extra exclude patterns (one per line)",
    )
    p.add_argument("--no-headers", action="store_true", help="Omit '--- FILE: ... ---' headers")
    p.add_argument("--no-tree", action="store_true", help="Omit the directory tree section")
    p.add_argument(
        "--no-git",
        action="store_true",
        help="Ignore git context and walk the target as a plain directory",
    )
    p.add_argument(
        "--tracked-only",
        action="store_true",
        help="In git mode, list tracked files only",
    )
    p.add_argument(
        "--all-repo",
        action="store_true",
        help="In git mode, snapshot the whole repository even if TARGET is a subdirectory",
    )
    p.add_argument(
        "--include-default-output",
        action="store_true",
        help=f"Do not exclude '{DEFAULT_OUTPUT_FILENAME}'",
    )
    p.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Verbose logging (-v info, -vv debug)",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p.parse_args(argv)


def build_config(ns: argparse.Namespace) -> GrabConfig:
    extra: List[str] = []
    if ns.config:
        extra = load_extra_patterns(ns.config.resolve())
        log.info("Loaded %d extra patterns from %s", len(extra), ns.config)

    return GrabConfig(
        target_path=ns.target,
        exclude_patterns=merge_patterns(ns.exclude, extra),
        include_untracked=not ns.tracked_only,
        include_default_output=ns.include_default_output,
        no_git=ns.no_git,
        all_repo=ns.all_repo,
        add_headers=not ns.no_headers,
        include_tree=not ns.no_tree,
        output_path=ns.output,
    )


def main(argv: Optional[List[str]] = None) -> None:
    try:
        ns = _parse_args(argv)
        _setup_logging(ns.verbose)

        try:
            config = build_config(ns)
            log.info("Scanning %s ...", ns.target)
            content = grab_contents(config)
            if ns.output is not None:
                out_path = write_output(content, ns.output)
                log.info("Done -> %s (%d bytes)", out_path, len(content.encode("utf-8", "surrogateescape")))
            else:
                sys.stdout.write(content)
                sys.stdout.flush()
        except GrabError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
