"""Renders declarations as normalized source text with annotations."""

from __future__ import annotations

import ast
import copy
from dataclasses import replace
from typing import List

from ..models import Decl
from .annotations import extract_annotations
from .parser import is_docstring

# Prepended before re-parsing so every rendered declaration parses as a module.
_DECL_WRAPPER = "from __future__ import annotations\n"


def _ellipsis() -> ast.stmt:
    return ast.Expr(value=ast.Constant(value=Ellipsis))


def _strip_function(node: ast.FunctionDef | ast.AsyncFunctionDef) -> ast.stmt:
    stripped = copy.copy(node)
    stripped.body = [_ellipsis()]
    return stripped


def _strip_class(node: ast.ClassDef) -> ast.ClassDef:
    """Keep fields and nested classes, drop docstrings and methods."""
    body: List[ast.stmt] = []
    for stmt in node.body:
        if is_docstring(stmt) or isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
            continue
        if isinstance(stmt, ast.ClassDef):
            stmt = _strip_class(stmt)
        body.append(stmt)
    stripped = copy.copy(node)
    stripped.body = body or [_ellipsis()]
    return stripped


def strip_declaration(node: ast.AST) -> ast.AST:
    """Shallow copy of ``node`` with bodies reduced to what documentation shows."""
    if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
        return _strip_function(node)
    if isinstance(node, ast.ClassDef):
        return _strip_class(node)
    return node


class DeclPrinter:
    """Prints declaration nodes with a fixed style (``ast.unparse``)."""

    def print_decl(self, node: ast.AST) -> Decl:
        """Render ``node`` and record exported identifier spans in the result.

        A node that cannot be rendered yields the error text with no
        annotations. Rendered text that does not parse back keeps its text.
        """
        try:
            text = ast.unparse(strip_declaration(node))
        except Exception as exc:  # pragma: no cover - depends on malformed trees
            return Decl(text=f"{type(exc).__name__}: {exc}")

        wrapped = _DECL_WRAPPER + text
        try:
            tree = ast.parse(wrapped)
        except (SyntaxError, ValueError):
            return Decl(text=text)

        shift = len(_DECL_WRAPPER.encode("utf-8"))
        annotations = tuple(
            replace(annotation, start=annotation.start - shift, end=annotation.end - shift)
            for annotation in extract_annotations(tree, wrapped)
        )
        return Decl(text=text, annotations=annotations)

    def print_node(self, node: ast.AST) -> str:
        try:
            return ast.unparse(node)
        except Exception as exc:  # pragma: no cover - depends on malformed trees
            return f"{type(exc).__name__}: {exc}"


__all__ = ["DeclPrinter", "strip_declaration"]
