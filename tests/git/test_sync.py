"""Tests for the repository synchronizer."""

from __future__ import annotations

import shutil
import subprocess
import threading
import time
from pathlib import Path

import pytest

from pkgdoc.git.sync import FetchError, GitBackend, Synchronizer, is_up_to_date


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class FakeBackend:
    metadata_dir = ".git"

    def __init__(self, *, changed: bool = True) -> None:
        self.changed = changed
        self.fetches: list[tuple[str, Path]] = []
        self.refreshes: list[Path] = []
        self.error: Exception | None = None

    def fetch(self, clone_location: str, local_path: Path) -> None:
        if self.error is not None:
            raise self.error
        self.fetches.append((clone_location, local_path))
        (local_path / ".git").mkdir(parents=True)

    def refresh(self, local_path: Path) -> bool:
        if self.error is not None:
            raise self.error
        self.refreshes.append(local_path)
        return self.changed


def test_first_sync_clones_and_reports_change(tmp_path: Path) -> None:
    backend = FakeBackend()
    sync = Synchronizer(tmp_path / "scratch", backend, clock=FakeClock())

    result = sync.sync("github.com/acme/widgets", "https://example.com/widgets.git")

    assert result.changed is True
    assert result.local_path == tmp_path / "scratch" / "github.com" / "acme" / "widgets"
    assert backend.fetches == [("https://example.com/widgets.git", result.local_path)]
    assert backend.refreshes == []


def test_sync_within_cooldown_skips_refresh(tmp_path: Path) -> None:
    backend = FakeBackend()
    clock = FakeClock()
    sync = Synchronizer(tmp_path, backend, cooldown=300, clock=clock)

    sync.sync("example.com/pkg", "origin")
    clock.now += 299
    result = sync.sync("example.com/pkg", "origin")

    assert result.changed is False
    assert backend.refreshes == []


def test_sync_after_cooldown_refreshes(tmp_path: Path) -> None:
    backend = FakeBackend(changed=True)
    clock = FakeClock()
    sync = Synchronizer(tmp_path, backend, cooldown=300, clock=clock)

    first = sync.sync("example.com/pkg", "origin")
    clock.now += 301
    result = sync.sync("example.com/pkg", "origin")

    assert result.changed is True
    assert backend.refreshes == [first.local_path]

    backend.changed = False
    clock.now += 301
    assert sync.sync("example.com/pkg", "origin").changed is False


def test_existing_working_copy_is_refreshed_on_first_sight(tmp_path: Path) -> None:
    (tmp_path / "example.com" / "pkg" / ".git").mkdir(parents=True)
    backend = FakeBackend(changed=False)
    sync = Synchronizer(tmp_path, backend, clock=FakeClock())

    result = sync.sync("example.com/pkg", "origin")

    assert result.changed is False
    assert backend.fetches == []
    assert len(backend.refreshes) == 1


def test_forget_resets_cooldown(tmp_path: Path) -> None:
    backend = FakeBackend(changed=False)
    sync = Synchronizer(tmp_path, backend, clock=FakeClock())

    sync.sync("example.com/pkg", "origin")
    sync.forget("example.com/pkg")
    sync.sync("example.com/pkg", "origin")

    assert len(backend.refreshes) == 1


def test_failed_clone_raises_fetch_error(tmp_path: Path) -> None:
    backend = FakeBackend()
    backend.error = subprocess.CalledProcessError(
        128, ["git", "clone", "nowhere"], stderr="fatal: repository 'nowhere' does not exist\n"
    )
    sync = Synchronizer(tmp_path, backend, clock=FakeClock())

    with pytest.raises(FetchError) as excinfo:
        sync.sync("example.com/pkg", "nowhere")

    message = str(excinfo.value)
    assert "git clone nowhere" in message
    assert "status 128" in message
    assert "does not exist" in message


def test_failed_refresh_does_not_restart_cooldown(tmp_path: Path) -> None:
    backend = FakeBackend(changed=False)
    clock = FakeClock()
    sync = Synchronizer(tmp_path, backend, cooldown=300, clock=clock)
    sync.sync("example.com/pkg", "origin")
    clock.now += 301

    backend.error = OSError("git: command not found")
    with pytest.raises(FetchError, match="command not found"):
        sync.sync("example.com/pkg", "origin")

    backend.error = None
    sync.sync("example.com/pkg", "origin")
    assert len(backend.refreshes) == 1


@pytest.mark.parametrize("import_path", ["", "/etc/passwd", "example.com/../escape", "../pkg"])
def test_invalid_import_paths_are_rejected(tmp_path: Path, import_path: str) -> None:
    sync = Synchronizer(tmp_path, FakeBackend(), clock=FakeClock())

    with pytest.raises(FetchError, match="Invalid import path"):
        sync.sync(import_path, "origin")


def test_concurrent_syncs_clone_once(tmp_path: Path) -> None:
    class SlowBackend(FakeBackend):
        def fetch(self, clone_location: str, local_path: Path) -> None:
            time.sleep(0.05)
            super().fetch(clone_location, local_path)

    backend = SlowBackend(changed=False)
    sync = Synchronizer(tmp_path, backend, clock=FakeClock())
    results = []

    def worker() -> None:
        results.append(sync.sync("example.com/pkg", "origin"))

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(backend.fetches) == 1
    assert sorted(result.changed for result in results) == [False, False, False, True]


def test_git_backend_clone_arguments(tmp_path: Path) -> None:
    calls = []

    def runner(args, cwd, env=None, capture_output=False):  # type: ignore[no-untyped-def]
        calls.append((list(args), Path(cwd), env, capture_output))
        return ""

    backend = GitBackend(runner=runner)
    local_path = tmp_path / "scratch" / "example.com" / "pkg"
    backend.fetch("https://example.com/pkg.git", local_path)

    args, cwd, env, _ = calls[0]
    assert args == ["git", "clone", "--quiet", "https://example.com/pkg.git", str(local_path)]
    assert cwd == local_path.parent
    assert cwd.is_dir()
    assert env["LC_ALL"] == "C"


def test_git_backend_refresh_detects_up_to_date(tmp_path: Path) -> None:
    outputs = ["Already up to date.\n", "Updating 1a2b3c..4d5e6f\nFast-forward\n"]
    calls = []

    def runner(args, cwd, env=None, capture_output=False):  # type: ignore[no-untyped-def]
        calls.append(list(args))
        return outputs.pop(0)

    backend = GitBackend(runner=runner, executable="/usr/bin/git")

    assert backend.refresh(tmp_path) is False
    assert backend.refresh(tmp_path) is True
    assert calls[0] == ["/usr/bin/git", "pull", "--ff-only"]


def test_is_up_to_date_accepts_older_wording() -> None:
    assert is_up_to_date("Already up-to-date.\n")
    assert is_up_to_date("  Already up to date.")
    assert not is_up_to_date("Fast-forward\n")
    assert not is_up_to_date("")


def _git(*args: str, cwd: Path) -> None:
    subprocess.run(
        [
            "git",
            "-c",
            "user.name=pkgdoc",
            "-c",
            "user.email=pkgdoc@example.com",
            "-c",
            "commit.gpgsign=false",
            *args,
        ],
        cwd=str(cwd),
        check=True,
        capture_output=True,
    )


@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
def test_sync_against_local_git_repository(tmp_path: Path) -> None:
    origin = tmp_path / "origin"
    origin.mkdir()
    _git("init", "--quiet", cwd=origin)
    (origin / "widgets.py").write_text('"""Widgets."""\n', encoding="utf-8")
    _git("add", "widgets.py", cwd=origin)
    _git("commit", "--quiet", "-m", "initial", cwd=origin)

    sync = Synchronizer(tmp_path / "scratch", cooldown=0)

    first = sync.sync("example.com/widgets", str(origin))
    assert first.changed is True
    assert (first.local_path / "widgets.py").is_file()

    assert sync.sync("example.com/widgets", str(origin)).changed is False

    (origin / "gadgets.py").write_text('"""Gadgets."""\n', encoding="utf-8")
    _git("add", "gadgets.py", cwd=origin)
    _git("commit", "--quiet", "-m", "add gadgets", cwd=origin)

    assert sync.sync("example.com/widgets", str(origin)).changed is True
    assert (first.local_path / "gadgets.py").is_file()
