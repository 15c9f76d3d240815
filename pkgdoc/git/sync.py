"""Keeps local working copies of remote repositories current."""

from __future__ import annotations

import os
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Callable, Dict, Iterable, Protocol

from ..logging import get_logger

DEFAULT_COOLDOWN = 5 * 60.0

_UP_TO_DATE_MARKERS = ("Already up to date", "Already up-to-date")

logger = get_logger("git.sync")


class FetchError(RuntimeError):
    """Raised when a working copy cannot be created or refreshed."""


@dataclass(frozen=True)
class SyncResult:
    """Outcome of a sync: where the working copy lives and whether it moved."""

    local_path: Path
    changed: bool


class VcsBackend(Protocol):
    """Narrow interface over the version-control tool."""

    metadata_dir: str

    def fetch(self, clone_location: str, local_path: Path) -> None:
        """Create a working copy of ``clone_location`` at ``local_path``."""

    def refresh(self, local_path: Path) -> bool:
        """Update ``local_path`` and return True when new revisions arrived."""


class GitBackend:
    """Fetches with ``git clone`` and refreshes with ``git pull``."""

    metadata_dir = ".git"

    def __init__(
        self,
        runner: Callable[..., str] | None = None,
        *,
        executable: str = "git",
    ) -> None:
        self._runner = runner or self._default_runner
        self._executable = executable

    def fetch(self, clone_location: str, local_path: Path) -> None:
        local_path.parent.mkdir(parents=True, exist_ok=True)
        self._run(
            [self._executable, "clone", "--quiet", clone_location, str(local_path)],
            cwd=local_path.parent,
            capture_output=True,
        )

    def refresh(self, local_path: Path) -> bool:
        output = self._run(
            [self._executable, "pull", "--ff-only"],
            cwd=local_path,
            capture_output=True,
        )
        return not is_up_to_date(output)

    def _run(
        self,
        args: Iterable[str],
        *,
        cwd: Path,
        capture_output: bool = False,
    ) -> str:
        env = os.environ.copy()
        # Pin the locale so the up-to-date message is not translated.
        env["LC_ALL"] = "C"
        env.setdefault("GIT_TERMINAL_PROMPT", "0")
        return self._runner(args, cwd=cwd, env=env, capture_output=capture_output)

    @staticmethod
    def _default_runner(
        args: Iterable[str],
        *,
        cwd: Path,
        env: dict[str, str] | None = None,
        capture_output: bool = False,
    ) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            env=env,
            check=True,
            text=True,
            capture_output=capture_output,
        )
        if capture_output:
            return completed.stdout
        return ""


def is_up_to_date(output: str) -> bool:
    """Return True when pull output reports that nothing new was fetched."""
    text = output.strip()
    return any(text.startswith(marker) for marker in _UP_TO_DATE_MARKERS)


class Synchronizer:
    """Clones or refreshes working copies under a shared scratch directory.

    One lock covers a whole :meth:`sync` call, so all fetch activity in the
    process is serialized and no two calls touch the same working copy at once.
    Refreshes of a working copy are skipped while its last successful fetch is
    younger than ``cooldown`` seconds.
    """

    def __init__(
        self,
        scratch_dir: Path | str,
        backend: VcsBackend | None = None,
        *,
        cooldown: float = DEFAULT_COOLDOWN,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.scratch_dir = Path(scratch_dir)
        self.backend = backend or GitBackend()
        self.cooldown = cooldown
        self._clock = clock
        self._lock = threading.Lock()
        self._last_refresh: Dict[Path, float] = {}

    def local_path_for(self, import_path: str) -> Path:
        """Return the deterministic working copy location for ``import_path``."""
        parts = PurePosixPath(import_path.strip()).parts
        if not parts or parts[0] == "/" or any(part in {"..", "."} for part in parts):
            raise FetchError(f"Invalid import path: {import_path!r}")
        return self.scratch_dir.joinpath(*parts)

    def sync(self, import_path: str, clone_location: str) -> SyncResult:
        """Ensure a current working copy exists for the repository."""
        local_path = self.local_path_for(import_path)
        with self._lock:
            try:
                exists = (local_path / self.backend.metadata_dir).is_dir()
            except OSError as exc:
                raise FetchError(f"Cannot inspect {local_path}: {exc}") from exc

            if not exists:
                logger.info("Cloning %s into %s", clone_location, local_path)
                self._call(self.backend.fetch, clone_location, local_path)
                self._last_refresh[local_path] = self._clock()
                return SyncResult(local_path=local_path, changed=True)

            last = self._last_refresh.get(local_path)
            now = self._clock()
            if last is not None and now - last < self.cooldown:
                logger.debug(
                    "Skipping refresh of %s (%.0fs since last fetch)", local_path, now - last
                )
                return SyncResult(local_path=local_path, changed=False)

            logger.info("Refreshing %s", local_path)
            changed = self._call(self.backend.refresh, local_path)
            self._last_refresh[local_path] = self._clock()
            logger.debug("Refresh of %s changed=%s", local_path, changed)
            return SyncResult(local_path=local_path, changed=bool(changed))

    def forget(self, import_path: str) -> None:
        """Drop cooldown bookkeeping so the next sync refreshes immediately."""
        local_path = self.local_path_for(import_path)
        with self._lock:
            self._last_refresh.pop(local_path, None)

    @staticmethod
    def _call(operation: Callable[..., object], *args: object):  # type: ignore[no-untyped-def]
        try:
            return operation(*args)
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or "").strip() if isinstance(exc.stderr, str) else ""
            command = exc.cmd if isinstance(exc.cmd, str) else " ".join(map(str, exc.cmd))
            message = f"{command} exited with status {exc.returncode}"
            if detail:
                message = f"{message}: {detail}"
            raise FetchError(message) from exc
        except OSError as exc:
            raise FetchError(str(exc)) from exc


__all__ = [
    "DEFAULT_COOLDOWN",
    "FetchError",
    "GitBackend",
    "SyncResult",
    "Synchronizer",
    "VcsBackend",
    "is_up_to_date",
]
