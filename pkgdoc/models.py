"""Documentation model shared across pkgdoc components."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Tuple


@dataclass(frozen=True)
class RepositoryRef:
    """A fetchable package: its import path and where to clone it from."""

    import_path: str
    clone_location: str
    name: str = ""


@dataclass(frozen=True)
class TypeAnnotation:
    """Reference to an exported identifier inside a declaration's text.

    ``start`` and ``end`` are UTF-8 byte offsets into ``Decl.text``.
    ``qualifier`` is the dotted prefix of a qualified reference (``os.path``
    for ``os.path.PathLike``) and empty otherwise.
    """

    start: int
    end: int
    qualifier: str
    name: str


@dataclass(frozen=True)
class Decl:
    """Normalized source text of a declaration plus its identifier spans."""

    text: str
    annotations: Tuple[TypeAnnotation, ...] = ()


@dataclass(frozen=True)
class Value:
    """A constant or variable assignment."""

    decl: Decl
    doc: str = ""


@dataclass(frozen=True)
class Example:
    """Usage sample harvested from a test file."""

    name: str
    doc: str
    code: str
    output: str = ""


@dataclass(frozen=True)
class Func:
    """A function or method; ``recv`` names the owning class for methods."""

    decl: Decl
    doc: str
    name: str
    recv: str = ""
    examples: Tuple[Example, ...] = ()


@dataclass(frozen=True)
class Type:
    """A class together with the declarations grouped under it."""

    doc: str
    name: str
    decl: Decl
    consts: Tuple[Value, ...] = ()
    vars: Tuple[Value, ...] = ()
    funcs: Tuple[Func, ...] = ()
    methods: Tuple[Func, ...] = ()
    examples: Tuple[Example, ...] = ()


@dataclass(frozen=True)
class File:
    """A non-test source file contributing to the package."""

    name: str


@dataclass(frozen=True)
class Package:
    """Root documentation model. Rebuilding produces a new instance."""

    import_path: str
    name: str
    doc: str
    last_built: datetime
    consts: Tuple[Value, ...] = ()
    funcs: Tuple[Func, ...] = ()
    types: Tuple[Type, ...] = ()
    vars: Tuple[Value, ...] = ()
    examples: Tuple[Example, ...] = ()
    files: Tuple[File, ...] = field(default_factory=tuple)

    @property
    def synopsis(self) -> str:
        """First sentence of the package documentation."""
        text = " ".join(self.doc.split())
        for index, char in enumerate(text):
            if char == "." and (index + 1 == len(text) or text[index + 1] == " "):
                return text[: index + 1]
        return text


__all__ = [
    "Decl",
    "Example",
    "File",
    "Func",
    "Package",
    "RepositoryRef",
    "Type",
    "TypeAnnotation",
    "Value",
]
