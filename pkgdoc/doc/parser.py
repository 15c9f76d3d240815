"""Parses Python sources and selects the package to document."""

from __future__ import annotations

import ast
import copy
import tokenize
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from ..logging import get_logger
from .annotations import is_exported

MAIN_PACKAGE = "main"
TEST_SUFFIX = "_test"

_SCRIPT_FILENAMES = {"__main__.py", "setup.py"}

logger = get_logger("doc.parser")


class PackageNotFoundError(RuntimeError):
    """Raised when no parseable package exists for an import path."""


@dataclass
class ParsedFile:
    """A successfully parsed source file."""

    path: Path
    source: str
    tree: ast.Module
    package: str


@dataclass
class ParseResult:
    """Parsed files keyed by path plus the error text of files that failed."""

    files: Dict[Path, ParsedFile] = field(default_factory=dict)
    errors: Dict[Path, str] = field(default_factory=dict)


@dataclass
class PackageSource:
    """The files selected as the documented package."""

    name: str
    files: Dict[Path, ParsedFile]

    def sorted_files(self) -> List[ParsedFile]:
        return [self.files[path] for path in sorted(self.files)]


def parse_file(path: Path) -> ParsedFile:
    """Parse one file, honoring its PEP 263 encoding declaration."""
    with tokenize.open(path) as handle:
        source = handle.read()
    tree = ast.parse(source, filename=str(path))
    return ParsedFile(path=path, source=source, tree=tree, package=declared_package(path, tree))


def parse_sources(paths: Iterable[Path | str]) -> ParseResult:
    """Parse every path. Failures are collected, never raised."""
    result = ParseResult()
    for raw in paths:
        path = Path(raw)
        try:
            result.files[path] = parse_file(path)
        except (OSError, UnicodeDecodeError, SyntaxError, ValueError) as exc:
            result.errors[path] = f"{type(exc).__name__}: {exc}"
    return result


def has_main_guard(tree: ast.Module) -> bool:
    """Return True for modules with a top-level ``if __name__ == "__main__":``."""
    for stmt in tree.body:
        if not isinstance(stmt, ast.If) or not isinstance(stmt.test, ast.Compare):
            continue
        test = stmt.test
        operands = [test.left, *test.comparators]
        names = {op.id for op in operands if isinstance(op, ast.Name)}
        values = {op.value for op in operands if isinstance(op, ast.Constant)}
        if "__name__" in names and "__main__" in values:
            return True
    return False


def declared_package(path: Path, tree: ast.Module) -> str:
    """Name of the package a file belongs to.

    Scripts belong to ``main``. Files inside a directory holding an
    ``__init__.py`` belong to that directory; loose modules are their own
    package.
    """
    if path.name in _SCRIPT_FILENAMES or has_main_guard(tree):
        return MAIN_PACKAGE
    if path.name == "__init__.py" or (path.parent / "__init__.py").is_file():
        return path.parent.name
    return path.stem


def imported_packages(tree: ast.Module) -> Set[str]:
    """Top-level package names imported anywhere in ``tree``."""
    names: Set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            names.update(alias.name.split(".")[0] for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module and not node.level:
            names.add(node.module.split(".")[0])
    return names


def owning_package(parsed: ParsedFile, target: str) -> str:
    """Package a test file declares relative to ``target``.

    A test file outside the target that imports it belongs to the
    ``<target>_test`` variant.
    """
    if parsed.package != target and target in imported_packages(parsed.tree):
        return target + TEST_SUFFIX
    return parsed.package


def _matches_import_path(import_path: str, name: str) -> bool:
    normalized = import_path.rstrip("/").replace("-", "_").lower()
    return normalized.endswith(name.lower())


def select_package(import_path: str, parsed: ParseResult) -> PackageSource:
    """Pick the package to document from everything that parsed.

    Preference: a name the import path ends with, then anything but
    ``main``, then whatever is left. Within a rank the package with the most
    files wins, then the alphabetically first name.
    """
    groups: Dict[str, Dict[Path, ParsedFile]] = {}
    for path, parsed_file in parsed.files.items():
        groups.setdefault(parsed_file.package, {})[path] = parsed_file

    ranked = []
    for name, files in groups.items():
        if _matches_import_path(import_path, name):
            score = 3
        elif name != MAIN_PACKAGE:
            score = 2
        else:
            score = 1
        ranked.append((-score, -len(files), name))

    if not ranked:
        raise PackageNotFoundError(f"Package {import_path} not found")

    name = min(ranked)[2]
    logger.debug("Selected package %s for %s out of %s", name, import_path, sorted(groups))
    return PackageSource(name=name, files=groups[name])


def declared_all(tree: ast.Module) -> Optional[Set[str]]:
    """Names listed in a literal ``__all__``, or None when there is none."""
    for stmt in tree.body:
        if isinstance(stmt, ast.Assign):
            targets = stmt.targets
            value = stmt.value
        elif isinstance(stmt, ast.AnnAssign) and stmt.value is not None:
            targets = [stmt.target]
            value = stmt.value
        else:
            continue
        if not any(isinstance(t, ast.Name) and t.id == "__all__" for t in targets):
            continue
        if isinstance(value, (ast.List, ast.Tuple)):
            return {
                elt.value
                for elt in value.elts
                if isinstance(elt, ast.Constant) and isinstance(elt.value, str)
            }
    return None


def assigned_names(stmt: ast.stmt) -> List[str]:
    """Plain names bound by an assignment statement."""
    if isinstance(stmt, ast.AnnAssign):
        targets: List[ast.expr] = [stmt.target]
    elif isinstance(stmt, ast.Assign):
        targets = list(stmt.targets)
    else:
        return []
    names: List[str] = []
    for target in targets:
        if isinstance(target, ast.Name):
            names.append(target.id)
        elif isinstance(target, (ast.Tuple, ast.List)):
            names.extend(elt.id for elt in target.elts if isinstance(elt, ast.Name))
    return names


def is_docstring(stmt: ast.stmt) -> bool:
    return (
        isinstance(stmt, ast.Expr)
        and isinstance(stmt.value, ast.Constant)
        and isinstance(stmt.value.value, str)
    )


def _is_dunder(name: str) -> bool:
    return len(name) > 4 and name.startswith("__") and name.endswith("__")


def _keep_module_stmt(stmt: ast.stmt, public: Optional[Set[str]]) -> bool:
    def visible(name: str) -> bool:
        if public is not None:
            return name in public
        return is_exported(name)

    if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
        return visible(stmt.name)
    names = assigned_names(stmt)
    return any(visible(name) and not _is_dunder(name) for name in names)


def _keep_member(stmt: ast.stmt) -> bool:
    if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
        return is_exported(stmt.name) or _is_dunder(stmt.name)
    return any(is_exported(name) for name in assigned_names(stmt))


def _filter_body(body: List[ast.stmt], keep, *, keep_leading_doc: bool):  # type: ignore[no-untyped-def]
    kept: List[ast.stmt] = []
    previous_kept = False
    for index, stmt in enumerate(body):
        if is_docstring(stmt):
            # Module/class docstrings and attribute docstrings that follow a kept assignment.
            if (index == 0 and keep_leading_doc) or (previous_kept and assigned_names(body[index - 1])):
                kept.append(stmt)
            previous_kept = False
            continue
        previous_kept = keep(stmt)
        if not previous_kept:
            continue
        if isinstance(stmt, ast.ClassDef):
            stmt = filter_class(stmt)
        kept.append(stmt)
    return kept


def filter_class(node: ast.ClassDef) -> ast.ClassDef:
    """Copy of ``node`` without private members."""
    filtered = copy.copy(node)
    filtered.body = _filter_body(node.body, _keep_member, keep_leading_doc=True)
    return filtered


def filter_exports(tree: ast.Module) -> ast.Module:
    """Copy of ``tree`` reduced to its exported declarations.

    The input tree is left untouched.
    """
    public = declared_all(tree)
    keep = lambda stmt: _keep_module_stmt(stmt, public)  # noqa: E731
    body = _filter_body(tree.body, keep, keep_leading_doc=True)
    return ast.Module(body=body, type_ignores=[])


__all__ = [
    "MAIN_PACKAGE",
    "PackageNotFoundError",
    "PackageSource",
    "ParseResult",
    "ParsedFile",
    "declared_package",
    "filter_exports",
    "parse_sources",
    "select_package",
    "owning_package",
]
