"""Collects spans of exported identifier references inside a declaration."""

from __future__ import annotations

import ast
import builtins
from typing import List, Optional, Sequence

from ..models import TypeAnnotation

# Builtins are never declared by the documented package.
_BUILTIN_NAMES = frozenset(vars(builtins))


def is_exported(name: str) -> bool:
    """Return True when ``name`` is visible outside its defining module."""
    return bool(name) and not name.startswith("_")


def line_offsets(text: str) -> List[int]:
    """Byte offset of the start of every line in ``text``."""
    offsets = [0]
    total = 0
    for line in text.encode("utf-8").splitlines(keepends=True):
        total += len(line)
        offsets.append(total)
    return offsets


class AnnotationVisitor(ast.NodeVisitor):
    """Records identifier uses found in type positions of a declaration.

    Only the node kinds with a ``visit_`` method below are special-cased.
    Everything else goes through ``generic_visit`` and is descended unchanged.
    Function bodies are never entered.
    """

    def __init__(self, text: str) -> None:
        self.annotations: List[TypeAnnotation] = []
        self._offsets = line_offsets(text)

    # Declarations -------------------------------------------------------

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        for base in node.bases:
            self.visit(base)
        for keyword in node.keywords:
            self.visit(keyword.value)
        for stmt in node.body:
            if isinstance(stmt, (ast.AnnAssign, ast.Assign, ast.ClassDef, ast.FunctionDef, ast.AsyncFunctionDef)):
                self.visit(stmt)

    def visit_FunctionDef(self, node: ast.FunctionDef | ast.AsyncFunctionDef) -> None:
        self.visit(node.args)
        if node.returns is not None:
            self.visit(node.returns)

    visit_AsyncFunctionDef = visit_FunctionDef

    def visit_arg(self, node: ast.arg) -> None:
        if node.annotation is not None:
            self.visit(node.annotation)

    def visit_Assign(self, node: ast.Assign) -> None:
        # Plain assignments carry no type expression.
        return None

    def visit_AnnAssign(self, node: ast.AnnAssign) -> None:
        self.visit(node.annotation)

    # Expressions --------------------------------------------------------

    def visit_Lambda(self, node: ast.Lambda) -> None:
        self.visit(node.args)

    def visit_Call(self, node: ast.Call) -> None:
        self.visit(node.func)

    def visit_Name(self, node: ast.Name) -> None:
        if is_exported(node.id) and node.id not in _BUILTIN_NAMES:
            self._add(node, "", node.id)

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if not is_exported(node.attr):
            return
        qualifier = _dotted_name(node.value)
        if qualifier is None:
            self.visit(node.value)
            return
        self._add(node, qualifier, node.attr)

    def _add(self, node: ast.expr, qualifier: str, name: str) -> None:
        start = self._offsets[node.lineno - 1] + node.col_offset
        end = self._offsets[node.end_lineno - 1] + node.end_col_offset  # type: ignore[operator]
        self.annotations.append(TypeAnnotation(start, end, qualifier, name))


def _dotted_name(node: ast.expr) -> Optional[str]:
    """``a.b`` for a chain of plain attribute lookups, otherwise None."""
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        prefix = _dotted_name(node.value)
        return None if prefix is None else f"{prefix}.{node.attr}"
    return None


def extract_annotations(tree: ast.AST, text: str) -> List[TypeAnnotation]:
    """Return annotations for ``tree`` (parsed from ``text``) in textual order."""
    visitor = AnnotationVisitor(text)
    visitor.visit(tree)
    return sort_annotations(visitor.annotations)


def sort_annotations(annotations: Sequence[TypeAnnotation]) -> List[TypeAnnotation]:
    return sorted(annotations, key=lambda annotation: annotation.start)


__all__ = ["AnnotationVisitor", "extract_annotations", "is_exported", "line_offsets"]
