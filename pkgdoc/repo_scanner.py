"""Collects the Python sources of a working copy."""

from __future__ import annotations

import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterator, List, Sequence, Tuple

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "env",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".tox",
    ".nox",
    "build",
    "dist",
    "docs",
    "site-packages",
}

_TEST_DIRS = {"tests", "test"}

DEFAULT_MAX_DEPTH = 3


@dataclass
class IgnoreRule:
    """Represents an ignore rule parsed from .gitignore."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            if fnmatchcase(rel_path, self.pattern):
                return True
            if self.directory_only and rel_path.startswith(f"{self.pattern}/"):
                return True
            return False

        for part in rel_path.split("/"):
            if fnmatchcase(part, self.pattern):
                return True
        return False


@dataclass(frozen=True)
class SourceSet:
    """Python files of a working copy split into library and test files."""

    root: Path
    sources: Tuple[Path, ...]
    tests: Tuple[Path, ...]

    @property
    def all_files(self) -> Tuple[Path, ...]:
        return self.sources + self.tests


def _build_ignore_rule(pattern: str, negate: bool = False) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def _parse_gitignore(path: Path) -> List[IgnoreRule]:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return []

    rules: List[IgnoreRule] = []
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        rule = _build_ignore_rule(line, negate=negate)
        if rule is not None:
            rules.append(rule)
    return rules


def _should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def is_test_file(rel_path: str) -> bool:
    """Return True when ``rel_path`` names a test module."""
    parts = rel_path.split("/")
    filename = parts[-1]
    if filename == "conftest.py":
        return True
    if filename.startswith("test_") or filename.endswith("_test.py"):
        return True
    return any(part in _TEST_DIRS for part in parts[:-1])


def _iter_python_files(root: Path, rules: Sequence[IgnoreRule], max_depth: int) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        current_dir = Path(dirpath)
        rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""
        depth = len(rel_dir.split("/")) if rel_dir else 0

        if depth >= max_depth:
            dirnames[:] = []
        else:
            kept = []
            for name in dirnames:
                if name in _EXCLUDED_DIRS or name.startswith("."):
                    continue
                rel_path = f"{rel_dir}/{name}" if rel_dir else name
                if _should_ignore(rel_path, True, rules):
                    continue
                kept.append(name)
            dirnames[:] = sorted(kept)

        for filename in sorted(filenames):
            if not filename.endswith(".py"):
                continue
            rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
            if _should_ignore(rel_path, False, rules):
                continue
            yield current_dir / filename


class SourceScanner:
    """Walks a working copy to find the Python files worth documenting."""

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        self.max_depth = max_depth

    def scan(self, root: Path | str) -> SourceSet:
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Working copy not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Working copy is not a directory: {root}")

        rules = _parse_gitignore(root_path / ".gitignore")
        sources: List[Path] = []
        tests: List[Path] = []
        for path in _iter_python_files(root_path, rules, self.max_depth):
            rel_path = path.relative_to(root_path).as_posix()
            if is_test_file(rel_path):
                tests.append(path)
            else:
                sources.append(path)
        return SourceSet(root=root_path, sources=tuple(sources), tests=tuple(tests))


__all__ = ["SourceScanner", "SourceSet", "is_test_file"]
