"""The fixed list of packages a deployment serves."""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, Optional

from .config import PkgDocConfig
from .models import RepositoryRef


def normalize_import_path(import_path: str) -> str:
    """Canonical spelling of an import path: no surrounding blanks or trailing slash."""
    return import_path.strip().rstrip("/")


class PackageRegistry:
    """Looks up configured repositories by import path."""

    def __init__(self, refs: Iterable[RepositoryRef] = ()) -> None:
        self._refs: Dict[str, RepositoryRef] = {}
        for ref in refs:
            if ref.import_path in self._refs:
                raise ValueError(f"Duplicate import path in registry: {ref.import_path}")
            self._refs[ref.import_path] = ref

    @classmethod
    def from_config(cls, config: PkgDocConfig) -> PackageRegistry:
        return cls(config.packages)

    def find(self, import_path: str) -> Optional[RepositoryRef]:
        return self._refs.get(normalize_import_path(import_path))

    def __iter__(self) -> Iterator[RepositoryRef]:
        return iter(self._refs.values())

    def __len__(self) -> int:
        return len(self._refs)


__all__ = ["PackageRegistry", "normalize_import_path"]
