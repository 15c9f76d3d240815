"""In-memory cache of built documentation keyed by clone location."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import timedelta
from typing import Callable, Dict, Optional, Set

from ..config import PkgDocConfig
from ..doc.build import build_doc
from ..doc.parser import PackageNotFoundError
from ..git.sync import GitBackend, Synchronizer
from ..logging import get_logger
from ..models import Package
from ..repo_scanner import SourceScanner

Builder = Callable[..., Package]

_TICK = timedelta(microseconds=1)


class DocumentationCache:
    """Memoizes packages per repository until the synchronizer sees a change.

    Entries are replaced, never mutated, and the last commit for a key wins.
    Builds run outside the lock, so readers may see the previous entry while a
    rebuild is in progress. The lock is only held for dictionary access.
    """

    def __init__(
        self,
        synchronizer: Synchronizer,
        *,
        builder: Builder = build_doc,
        scanner: SourceScanner | None = None,
    ) -> None:
        self.synchronizer = synchronizer
        self._builder = builder
        self._scanner = scanner or SourceScanner()
        self._lock = threading.Lock()
        self._entries: Dict[str, Package] = {}
        # Locations whose upstream moved since their entry was built.
        self._stale: Set[str] = set()
        self.logger = get_logger("stores.doc_cache")

    @classmethod
    def from_config(cls, config: PkgDocConfig) -> DocumentationCache:
        """Wire a synchronizer, scanner and cache from loaded settings."""
        synchronizer = Synchronizer(
            config.scratch_dir,
            GitBackend(executable=config.git.executable),
            cooldown=config.cooldown_seconds,
        )
        return cls(synchronizer, scanner=SourceScanner(max_depth=config.scan_depth))

    def load_docs(self, import_path: str, clone_location: str) -> Package:
        """Return documentation for the repository, rebuilding when it changed.

        ``FetchError`` and ``PackageNotFoundError`` propagate and leave any
        cached entry in place. After a refresh that moved the repository, the
        entry is rebuilt on every call until a build succeeds.
        """
        result = self.synchronizer.sync(import_path, clone_location)

        with self._lock:
            if result.changed:
                # Stays set until a rebuild commits, so a failed build is retried.
                self._stale.add(clone_location)
            stale = clone_location in self._stale
            cached = self._entries.get(clone_location)
        if cached is not None and not stale:
            self.logger.debug("Serving cached docs for %s", import_path)
            return cached

        self.logger.info("Parsing %s", import_path)
        try:
            sources = self._scanner.scan(result.local_path)
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise PackageNotFoundError(f"Package {import_path} not found: {exc}") from exc

        package = self._builder(import_path, sources.all_files, root=sources.root)
        return self._commit(clone_location, package)

    def get(self, clone_location: str) -> Optional[Package]:
        with self._lock:
            return self._entries.get(clone_location)

    def invalidate(self, clone_location: str) -> None:
        with self._lock:
            self._entries.pop(clone_location, None)
            self._stale.discard(clone_location)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._stale.clear()

    def __contains__(self, clone_location: object) -> bool:
        with self._lock:
            return clone_location in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _commit(self, clone_location: str, package: Package) -> Package:
        with self._lock:
            previous = self._entries.get(clone_location)
            if previous is not None and package.last_built <= previous.last_built:
                # Coarse clocks can repeat a timestamp; a rebuild must look newer.
                package = replace(package, last_built=previous.last_built + _TICK)
            self._entries[clone_location] = package
            self._stale.discard(clone_location)
        self.logger.debug("Cached docs for %s built at %s", clone_location, package.last_built)
        return package


__all__ = ["DocumentationCache"]
