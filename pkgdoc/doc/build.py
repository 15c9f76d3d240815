"""Builds the package documentation model from source files."""

from __future__ import annotations

import ast
import inspect
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..logging import get_logger
from ..models import Example, File, Func, Package, Type, Value
from ..repo_scanner import is_test_file
from .examples import collect_examples, examples_for
from .parser import (
    PackageSource,
    assigned_names,
    filter_exports,
    is_docstring,
    owning_package,
    parse_sources,
    select_package,
    TEST_SUFFIX,
)
from .printer import DeclPrinter

logger = get_logger("doc.build")

FuncNode = ast.FunctionDef | ast.AsyncFunctionDef


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _is_const(names: Sequence[str]) -> bool:
    return bool(names) and all(name.isupper() for name in names)


def _type_reference(node: Optional[ast.expr]) -> Optional[str]:
    """Class name referenced by an annotation such as ``T``, ``"T"`` or ``Optional[T]``."""
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        return node.value.strip()
    if isinstance(node, ast.Subscript) and isinstance(node.value, ast.Name):
        if node.value.id == "Optional":
            return _type_reference(node.slice)
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        # ``T | None``
        if isinstance(node.right, ast.Constant) and node.right.value is None:
            return _type_reference(node.left)
    return None


def _value_type(stmt: ast.stmt) -> Optional[str]:
    if isinstance(stmt, ast.AnnAssign):
        return _type_reference(stmt.annotation)
    value = getattr(stmt, "value", None)
    if isinstance(value, ast.Call) and isinstance(value.func, ast.Name):
        return value.func.id
    return None


class _ValueGroups:
    def __init__(self) -> None:
        self.consts: List[Value] = []
        self.vars: List[Value] = []

    def add(self, value: Value, names: Sequence[str]) -> None:
        (self.consts if _is_const(names) else self.vars).append(value)


class _Builder:
    """Holds the state used while building one package."""

    def __init__(self, source: PackageSource, examples: Sequence[Example]) -> None:
        self.source = source
        self.examples = list(examples)
        self.printer = DeclPrinter()
        self.modules = [(parsed, filter_exports(parsed.tree)) for parsed in source.sorted_files()]
        self.type_names: Set[str] = {
            stmt.name
            for _, module in self.modules
            for stmt in module.body
            if isinstance(stmt, ast.ClassDef)
        }

    def package_doc(self) -> str:
        fallback = ""
        for parsed, _ in self.modules:
            doc = ast.get_docstring(parsed.tree) or ""
            if parsed.path.name == "__init__.py" and doc:
                return doc.rstrip()
            fallback = fallback or doc
        return fallback.rstrip()

    def build(self, import_path: str, now: datetime) -> Package:
        top_values = _ValueGroups()
        type_values: Dict[str, _ValueGroups] = {name: _ValueGroups() for name in self.type_names}
        top_funcs: List[Func] = []
        type_funcs: Dict[str, List[Func]] = {name: [] for name in self.type_names}
        classes: List[ast.ClassDef] = []

        for _, module in self.modules:
            body = module.body
            for index, stmt in enumerate(body):
                if isinstance(stmt, ast.ClassDef):
                    classes.append(stmt)
                elif isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
                    func = self.func_doc(stmt, recv="")
                    owner = _type_reference(stmt.returns)
                    if owner in type_funcs:
                        type_funcs[owner].append(func)  # type: ignore[index]
                    else:
                        top_funcs.append(func)
                elif isinstance(stmt, (ast.Assign, ast.AnnAssign)):
                    names = assigned_names(stmt)
                    doc = ""
                    if index + 1 < len(body) and is_docstring(body[index + 1]):
                        doc = inspect.cleandoc(body[index + 1].value.value)  # type: ignore[attr-defined]
                    value = Value(decl=self.printer.print_decl(stmt), doc=doc)
                    owner = _value_type(stmt)
                    target = type_values.get(owner, top_values) if owner else top_values
                    target.add(value, names)

        types = [
            self.type_doc(node, type_values[node.name], type_funcs[node.name])
            for node in sorted(classes, key=lambda node: node.name)
        ]
        return Package(
            import_path=import_path,
            name=self.source.name,
            doc=self.package_doc(),
            last_built=now,
            consts=tuple(top_values.consts),
            funcs=tuple(sorted(top_funcs, key=lambda func: func.name)),
            types=tuple(types),
            vars=tuple(top_values.vars),
            examples=examples_for(self.examples, ""),
            files=tuple(File(name=name) for name in sorted(p.path.name for p, _ in self.modules)),
        )

    def func_doc(self, node: FuncNode, recv: str) -> Func:
        example_name = f"{recv}_{node.name}" if recv else node.name
        return Func(
            decl=self.printer.print_decl(node),
            doc=ast.get_docstring(node) or "",
            name=node.name,
            recv=recv,
            examples=examples_for(self.examples, example_name),
        )

    def type_doc(self, node: ast.ClassDef, values: _ValueGroups, funcs: Sequence[Func]) -> Type:
        methods = [
            self.func_doc(stmt, recv=node.name)
            for stmt in node.body
            if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef))
        ]
        return Type(
            doc=ast.get_docstring(node) or "",
            name=node.name,
            decl=self.printer.print_decl(node),
            consts=tuple(values.consts),
            vars=tuple(values.vars),
            funcs=tuple(sorted(funcs, key=lambda func: func.name)),
            methods=tuple(methods),
            examples=examples_for(self.examples, node.name),
        )


def _split_tests(files: Iterable[Path | str], root: Optional[Path]) -> Tuple[List[Path], List[Path]]:
    sources: List[Path] = []
    tests: List[Path] = []
    for raw in files:
        path = Path(raw)
        if root is not None:
            try:
                rel_path = path.relative_to(root).as_posix()
            except ValueError:
                rel_path = path.name
        else:
            rel_path = "/".join(path.parts[-2:])
        (tests if is_test_file(rel_path) else sources).append(path)
    return sources, tests


def _collect_examples(tests: Sequence[Path], package: str) -> List[Example]:
    parsed = parse_sources(tests)
    for path, error in parsed.errors.items():
        logger.debug("Skipping unparseable test file %s: %s", path, error)
    examples: List[Example] = []
    for path in sorted(parsed.files):
        parsed_file = parsed.files[path]
        if owning_package(parsed_file, package) not in {package, package + TEST_SUFFIX}:
            continue
        examples.extend(collect_examples(parsed_file))
    return examples


def build_doc(
    import_path: str,
    files: Iterable[Path | str],
    *,
    root: Optional[Path] = None,
    clock: Callable[[], datetime] = _utcnow,
) -> Package:
    """Build the documentation model for ``import_path`` from ``files``.

    Test modules among ``files`` only contribute examples. Files that fail to
    parse are logged and left out. Raises ``PackageNotFoundError`` when no
    package could be parsed at all.
    """
    sources, tests = _split_tests(files, root)
    parsed = parse_sources(sources)
    for path, error in parsed.errors.items():
        logger.warning("Skipping %s: %s", path, error)

    source = select_package(import_path, parsed)
    examples = _collect_examples(tests, source.name)
    logger.debug(
        "Building %s from %d files with %d examples", import_path, len(source.files), len(examples)
    )
    return _Builder(source, examples).build(import_path, clock())


__all__ = ["build_doc"]
