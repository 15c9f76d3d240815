"""Harvests usage examples from test modules."""

from __future__ import annotations

import ast
import re
import textwrap
from typing import Iterable, List, Sequence, Tuple

from ..models import Example
from .parser import ParsedFile, is_docstring

EXAMPLE_PREFIX = "example"

_OUTPUT_RE = re.compile(r"#[ \t]*output:", re.IGNORECASE)
_SUFFIX_SEPARATOR = "__"


def _is_example(node: ast.stmt) -> bool:
    return isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)) and (
        node.name == EXAMPLE_PREFIX or node.name.startswith(EXAMPLE_PREFIX + "_")
    )


def _is_test(node: ast.stmt) -> bool:
    return isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)) and (
        node.name.startswith("test") or node.name.startswith("Test")
    )


def example_target(name: str) -> str:
    """Strip a lowercase ``__suffix`` so ``Widget__basic`` targets ``Widget``.

    ``example__advanced`` is named ``_advanced`` and documents the package.
    """
    if name.startswith("_") and name[1:2].islower():
        return ""
    head, sep, suffix = name.rpartition(_SUFFIX_SEPARATOR)
    if sep and head and suffix[:1].islower():
        return head
    return name


def _indent_of(line: str) -> int:
    return len(line) - len(line.lstrip())


def _body_lines(source_lines: Sequence[str], node: ast.FunctionDef | ast.AsyncFunctionDef) -> List[str]:
    body = node.body
    if body[0].lineno == node.lineno:
        # One-line definition: `def example(): call()`.
        source = "\n".join(source_lines)
        return [ast.get_source_segment(source, stmt) or "" for stmt in body]
    if is_docstring(body[0]):
        start = body[0].end_lineno + 1  # type: ignore[operator]
    else:
        start = body[0].lineno
        # Pull in comment lines between the header and the first statement.
        while start - 1 > node.lineno and source_lines[start - 2].strip().startswith("#"):
            start -= 1

    end = node.end_lineno or body[-1].lineno
    # Trailing comments (the output block) are not part of the node's span.
    cursor = end
    while cursor < len(source_lines):
        line = source_lines[cursor]
        stripped = line.strip()
        if not stripped:
            cursor += 1
            continue
        if stripped.startswith("#") and _indent_of(line) > node.col_offset:
            cursor += 1
            end = cursor
            continue
        break
    return list(source_lines[start - 1 : end])


def _split_output(code: str) -> Tuple[str, str]:
    match = _OUTPUT_RE.search(code)
    if match is None:
        return code.strip("\n").rstrip(), ""
    lines = code[match.end() :].splitlines()
    output: List[str] = [lines[0].strip()] if lines else []
    for line in lines[1:]:
        stripped = line.strip()
        if stripped.startswith("#"):
            stripped = stripped[1:]
            if stripped.startswith(" "):
                stripped = stripped[1:]
        output.append(stripped)
    return code[: match.start()].strip(), "\n".join(output).strip()


def _whole_file(tree: ast.Module, examples: Sequence[ast.stmt]) -> bool:
    if len(examples) != 1:
        return False
    others = [
        stmt
        for stmt in tree.body
        if stmt is not examples[0]
        and not isinstance(stmt, (ast.Import, ast.ImportFrom))
        and not is_docstring(stmt)
    ]
    if any(_is_test(stmt) for stmt in others):
        return False
    return bool(others)


def collect_examples(parsed: ParsedFile) -> List[Example]:
    """Return every example function defined at the top level of ``parsed``."""
    nodes = [stmt for stmt in parsed.tree.body if _is_example(stmt)]
    whole_file = _whole_file(parsed.tree, nodes)
    source_lines = parsed.source.splitlines()

    examples: List[Example] = []
    for node in nodes:
        name = node.name[len(EXAMPLE_PREFIX) + 1 :]
        doc = ast.get_docstring(node) or ""
        if whole_file:
            # The output comment stays visible in the listing.
            examples.append(Example(name=name, doc=doc, code=parsed.source.strip(), output=""))
            continue
        code = textwrap.dedent("\n".join(_body_lines(source_lines, node)))
        code, output = _split_output(code)
        examples.append(Example(name=name, doc=doc, code=code, output=output))
    return examples


def examples_for(examples: Iterable[Example], name: str) -> Tuple[Example, ...]:
    """Examples whose target is exactly ``name``; ``""`` selects package examples."""
    return tuple(example for example in examples if example_target(example.name) == name)


__all__ = ["EXAMPLE_PREFIX", "collect_examples", "example_target", "examples_for"]
