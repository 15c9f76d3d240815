"""Tests for pkgdoc.repo_scanner."""

from __future__ import annotations

from pathlib import Path

import pytest

from pkgdoc.repo_scanner import SourceScanner, is_test_file


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_scan_splits_sources_and_tests(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()

    _write(repo_root / "widgets" / "__init__.py", "")
    _write(repo_root / "widgets" / "core.py", "print('hi')\n")
    _write(repo_root / "widgets" / "test_core.py", "def test_ok():\n    pass\n")
    _write(repo_root / "tests" / "helpers.py", "")
    _write(repo_root / "conftest.py", "")
    _write(repo_root / "README.md", "# Widgets\n")
    _write(repo_root / ".venv" / "lib" / "should_ignore.py", "print('nope')\n")
    _write(repo_root / "docs" / "conf.py", "")

    sources = SourceScanner().scan(str(repo_root))

    assert sources.root == repo_root.resolve()
    rel = lambda paths: sorted(p.relative_to(sources.root).as_posix() for p in paths)  # noqa: E731
    assert rel(sources.sources) == ["widgets/__init__.py", "widgets/core.py"]
    assert rel(sources.tests) == ["conftest.py", "tests/helpers.py", "widgets/test_core.py"]
    assert len(sources.all_files) == 5


def test_scan_rejects_missing_directory(tmp_path: Path) -> None:
    missing = tmp_path / "missing"

    with pytest.raises(FileNotFoundError) as excinfo:
        SourceScanner().scan(missing)

    assert str(missing) in str(excinfo.value)


def test_scan_rejects_file(tmp_path: Path) -> None:
    target = tmp_path / "file.py"
    _write(target, "")

    with pytest.raises(NotADirectoryError):
        SourceScanner().scan(target)


def test_scan_respects_gitignore(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()

    _write(repo_root / ".gitignore", "generated/\n*_pb2.py\n!keep_pb2.py\n")
    _write(repo_root / "src" / "main.py", "print('ok')\n")
    _write(repo_root / "generated" / "models.py", "")
    _write(repo_root / "src" / "api_pb2.py", "")
    _write(repo_root / "src" / "keep_pb2.py", "")

    sources = SourceScanner().scan(repo_root)
    paths = {p.relative_to(sources.root).as_posix() for p in sources.all_files}

    assert paths == {"src/main.py", "src/keep_pb2.py"}


def test_scan_stops_at_max_depth(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    _write(repo_root / "a.py", "")
    _write(repo_root / "one" / "b.py", "")
    _write(repo_root / "one" / "two" / "c.py", "")

    sources = SourceScanner(max_depth=1).scan(repo_root)
    paths = {p.relative_to(sources.root).as_posix() for p in sources.all_files}

    assert paths == {"a.py", "one/b.py"}


def test_is_test_file() -> None:
    assert is_test_file("test_widgets.py")
    assert is_test_file("pkg/widgets_test.py")
    assert is_test_file("conftest.py")
    assert is_test_file("tests/helpers.py")
    assert is_test_file("pkg/test/fixtures.py")
    assert not is_test_file("pkg/testing.py")
    assert not is_test_file("pkg/contest.py")
