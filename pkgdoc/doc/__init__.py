"""Parsing, printing and model building for Python package documentation."""

from .build import build_doc
from .parser import PackageNotFoundError
from .printer import DeclPrinter

__all__ = ["DeclPrinter", "PackageNotFoundError", "build_doc"]
