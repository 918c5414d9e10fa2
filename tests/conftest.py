import shutil
import subprocess
from pathlib import Path
from typing import Iterable, Set

import pytest

HAS_GIT = shutil.which("git") is not None

requires_git = pytest.mark.skipif(not HAS_GIT, reason="git is required for repository tests")


def git(repo: Path, *args: str) -> None:
    subprocess.run(["git", *args], cwd=repo, check=True, capture_output=True)


def write(root: Path, rel: str, text: str = "x\n") -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def make_or_skip(root: Path, rel: str, text: str = "x\n") -> Path:
    """Like write(), skipping the test where the filesystem rejects the name."""
    try:
        return write(root, rel, text)
    except (OSError, UnicodeEncodeError) as e:
        pytest.skip(f"filesystem rejects {rel!r}: {e}")


def rels(paths: Iterable[Path], root: Path) -> Set[str]:
    return {p.relative_to(root).as_posix() for p in paths}


@pytest.fixture
def tree_root(tmp_path: Path) -> Path:
    """A plain directory: a.txt, sub/b.txt and a fake .git directory."""
    root = tmp_path.resolve() / "proj"
    write(root, "a.txt", "alpha\n")
    write(root, "sub/b.txt", "beta\n")
    write(root, ".git/HEAD", "ref: refs/heads/main\n")
    return root


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """A git repository with tracked x.rs, README.md, pkg/ and an ignored build/ dir."""
    if not HAS_GIT:
        pytest.skip("git is required for repository tests")
    root = tmp_path.resolve() / "repo"
    root.mkdir()
    git(root, "init", "-q")
    git(root, "config", "user.email", "tests@example.com")
    git(root, "config", "user.name", "Tests")
    write(root, "x.rs", "fn main() {}\n")
    write(root, "README.md", "# readme\n")
    write(root, "pkg/mod.rs", "pub mod a;\n")
    write(root, "pkg/inner/a.rs", "pub fn a() {}\n")
    write(root, ".gitignore", "build/\n")
    git(root, "add", "x.rs", "README.md", "pkg", ".gitignore")
    git(root, "commit", "-q", "-m", "initial")
    write(root, "build/out.o", "\0\0")
    return root
