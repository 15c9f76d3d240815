"""CLI entrypoints for pkgdoc commands."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any

from .config import ConfigError, PkgDocConfig, load_config
from .doc.parser import PackageNotFoundError
from .git.sync import FetchError
from .logging import configure_logging
from .models import Package
from .registry import PackageRegistry, normalize_import_path
from .stores import DocumentationCache


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_repository_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("import_path", help="Import path of the package, e.g. github.com/org/pkg.")
    parser.add_argument(
        "clone",
        nargs="?",
        default=None,
        help="Clone URL (defaults to the entry configured for the import path).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pkgdoc",
        description="Fetch Python package repositories and extract their documentation.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only report warnings and errors.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write a debug log to this file.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to .pkgdoc.yml or the directory holding it (defaults to the current directory).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser(
        "sync",
        help="Clone or refresh the working copy of a repository.",
    )
    _add_verbose_option(sync_parser, suppress_default=True)
    _add_repository_arguments(sync_parser)

    show_parser = subparsers.add_parser(
        "show",
        help="Print the documentation extracted from a repository.",
    )
    _add_verbose_option(show_parser, suppress_default=True)
    _add_repository_arguments(show_parser)
    show_parser.add_argument(
        "--json",
        action="store_true",
        help="Emit the full documentation model as JSON.",
    )

    list_parser = subparsers.add_parser(
        "list",
        help="List the configured packages.",
    )
    _add_verbose_option(list_parser, suppress_default=True)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for pkgdoc commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    logger = configure_logging(
        verbose=bool(args.verbose), quiet=args.quiet, log_file=args.log_file
    )

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")
    logger.debug("Using %s", _config_summary(config))

    registry = PackageRegistry.from_config(config)

    if args.command == "list":
        for ref in registry:
            print(f"{ref.import_path}\t{ref.name}\t{ref.clone_location}")
        return

    import_path = normalize_import_path(args.import_path)
    clone = args.clone
    if clone is None:
        ref = registry.find(import_path)
        if ref is None:
            parser.exit(1, f"Unknown package {import_path}; pass a clone URL.\n")
        clone = ref.clone_location

    cache = DocumentationCache.from_config(config)

    if args.command == "sync":
        try:
            result = cache.synchronizer.sync(import_path, clone)
        except FetchError as exc:
            parser.exit(1, f"pkgdoc sync failed: {exc}\n")
        state = "changed" if result.changed else "unchanged"
        print(f"{result.local_path} ({state})")
    elif args.command == "show":
        try:
            package = cache.load_docs(import_path, clone)
        except (FetchError, PackageNotFoundError) as exc:
            parser.exit(1, f"pkgdoc show failed: {exc}\nRun with --verbose for more details.\n")
        if args.json:
            print(json.dumps(asdict(package), indent=2, default=_json_default))
        else:
            print(_summary(package))
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _json_default(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _summary(package: Package) -> str:
    lines = [f"package {package.name}  # {package.import_path}"]
    if package.doc:
        lines.extend(["", package.doc])
    sections = (
        ("Constants", [value.decl.text for value in package.consts]),
        ("Variables", [value.decl.text for value in package.vars]),
        ("Functions", [func.decl.text for func in package.funcs]),
        ("Types", [type_.decl.text for type_ in package.types]),
    )
    for title, texts in sections:
        if not texts:
            continue
        lines.extend(["", f"{title}:"])
        for text in texts:
            lines.append("    " + text.replace("\n", "\n    "))
    if package.files:
        lines.extend(["", "Files: " + ", ".join(file.name for file in package.files)])
    return "\n".join(lines)


def _config_summary(config: PkgDocConfig) -> str:
    return f"scratch_dir={config.scratch_dir} cooldown={config.cooldown_seconds:.0f}s"


if __name__ == "__main__":
    main(sys.argv[1:])
