"""
Exceptions raised by grabfiles.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class GrabError(Exception): ...
class ConfigFileError(GrabError): ...
class OutputError(GrabError): ...
class PatternCompileError(GrabError): ...


class TargetPathNotFoundError(GrabError):
    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Target path not found or not accessible: {path}")


class GrabIOError(GrabError):
    def __init__(self, path: Path, cause: OSError) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"IO error accessing path '{path}': {cause}")


class GitCommandError(GrabError):
    """A git query ran but exited non-zero for an unexpected reason."""

    def __init__(self, command: str, stdout: str, stderr: str) -> None:
        self.command = command
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(
            f"Failed to execute git command: {command!r}\n"
            f"  stderr: {stderr.strip()}\n"
            f"  stdout: {stdout.strip()}"
        )


class GitExecutionError(GrabError):
    """The git executable could not be launched at all."""

    def __init__(self, command: str, cause: Optional[OSError] = None) -> None:
        self.command = command
        self.cause = cause
        super().__init__(f"Failed to run git command '{command}': {cause}")


class PathRelativizationError(GrabError):
    def __init__(self, prefix: Path, path: Path) -> None:
        self.prefix = prefix
        self.path = path
        super().__init__(
            f"Failed to strip prefix '{prefix}' from path '{path}' during tree generation"
        )
