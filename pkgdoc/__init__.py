"""Extract render-ready documentation from remote Python package repositories."""

from .doc import PackageNotFoundError, build_doc
from .git import FetchError, Synchronizer
from .models import Package, RepositoryRef
from .stores import DocumentationCache

__all__ = [
    "DocumentationCache",
    "FetchError",
    "Package",
    "PackageNotFoundError",
    "RepositoryRef",
    "Synchronizer",
    "build_doc",
]
