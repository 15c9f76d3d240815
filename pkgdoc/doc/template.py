"""Formatting helpers for templates that render the documentation model."""

from __future__ import annotations

import re
from typing import Callable, Dict, List, Optional, Tuple

from jinja2 import Environment
from markupsafe import Markup, escape

from ..models import Decl, TypeAnnotation

LinkResolver = Callable[[TypeAnnotation], Optional[str]]

_HEADING_END = re.compile(r"[.,:;!?)\]]$")


def default_link(annotation: TypeAnnotation) -> Optional[str]:
    """Link unqualified names to an anchor on the same page."""
    if annotation.qualifier:
        return None
    return f"#{annotation.name}"


def _is_pre(lines: List[str]) -> bool:
    return all(line[:1].isspace() for line in lines) or lines[0].startswith(">>>")


def _blocks(text: str) -> List[Tuple[str, List[str]]]:
    """Split a docstring into ("p" | "pre", lines) blocks.

    Groups are separated by blank lines. An indented group or a doctest
    session is preformatted; adjacent preformatted groups are merged so blank
    lines inside code survive.
    """
    groups: List[List[str]] = [[]]
    for line in text.splitlines():
        if line.strip():
            groups[-1].append(line.rstrip())
        elif groups[-1]:
            groups.append([])

    blocks: List[Tuple[str, List[str]]] = []
    for lines in groups:
        if not lines:
            continue
        kind = "pre" if _is_pre(lines) else "p"
        if kind == "pre" and blocks and blocks[-1][0] == "pre":
            blocks[-1][1].extend(["", *lines])
        else:
            blocks.append((kind, lines))
    return blocks


def _heading(blocks: List[Tuple[str, List[str]]], index: int) -> bool:
    kind, lines = blocks[index]
    if kind != "p" or len(lines) != 1 or index == 0 or index + 1 >= len(blocks):
        return False
    line = lines[0].strip()
    if blocks[index + 1][0] != "p" or not line[:1].isupper():
        return False
    return not _HEADING_END.search(line)


def _unindent(lines: List[str]) -> List[str]:
    indents = [len(line) - len(line.lstrip()) for line in lines if line.strip()]
    margin = min(indents) if indents else 0
    return [line[margin:] for line in lines]


def comment_html(text: str) -> Markup:
    """Render a docstring as HTML paragraphs, headings and preformatted blocks."""
    blocks = _blocks(text)
    parts: List[Markup] = []
    for index, (kind, lines) in enumerate(blocks):
        if kind == "pre":
            parts.append(Markup("<pre>{}</pre>\n").format("\n".join(_unindent(lines))))
        elif _heading(blocks, index):
            heading = lines[0].strip()
            anchor = "hdr-" + re.sub(r"[^A-Za-z0-9]+", "_", heading).strip("_")
            parts.append(Markup('<h3 id="{}">{}</h3>\n').format(anchor, heading))
        else:
            parts.append(Markup("<p>\n{}\n</p>\n").format("\n".join(lines)))
    return Markup("").join(parts)


def decl_html(decl: Decl, link: LinkResolver = default_link) -> Markup:
    """Escape a declaration and turn its annotation spans into links."""
    data = decl.text.encode("utf-8")
    parts: List[Markup] = []
    cursor = 0
    for annotation in decl.annotations:
        if annotation.start < cursor or annotation.end > len(data):
            continue
        parts.append(escape(data[cursor : annotation.start].decode("utf-8")))
        label = data[annotation.start : annotation.end].decode("utf-8")
        href = link(annotation)
        if href is None:
            parts.append(escape(label))
        else:
            parts.append(Markup('<a href="{}">{}</a>').format(href, label))
        cursor = annotation.end
    parts.append(escape(data[cursor:].decode("utf-8")))
    return Markup("").join(parts)


def command_name(import_path: str) -> str:
    """Short display name: the last segment of an import path."""
    return import_path.rstrip("/").rsplit("/", 1)[-1]


FILTERS: Dict[str, Callable[..., object]] = {
    "comment": comment_html,
    "decl": decl_html,
    "cmd_name": command_name,
}


def register_filters(env: Environment) -> Environment:
    """Install the formatting helpers as filters on ``env``."""
    env.filters.update(FILTERS)
    return env


__all__ = [
    "FILTERS",
    "command_name",
    "comment_html",
    "decl_html",
    "default_link",
    "register_filters",
]
