"""Configuration loading for pkgdoc (.pkgdoc.yml)."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .models import RepositoryRef
from .repo_scanner import DEFAULT_MAX_DEPTH
from .git.sync import DEFAULT_COOLDOWN

CONFIG_FILENAME = ".pkgdoc.yml"

ENV_SCRATCH_DIR = "PKGDOC_SCRATCH_DIR"
ENV_COOLDOWN = "PKGDOC_COOLDOWN"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


def _default_scratch_dir() -> Path:
    return Path(tempfile.gettempdir()) / "pkgdoc"


@dataclass
class GitConfig:
    """Settings for the git command line tool."""

    executable: str = "git"


@dataclass
class PkgDocConfig:
    """Represents the settings defined in .pkgdoc.yml."""

    root: Path
    scratch_dir: Path = field(default_factory=_default_scratch_dir)
    cooldown_seconds: float = DEFAULT_COOLDOWN
    scan_depth: int = DEFAULT_MAX_DEPTH
    git: GitConfig = field(default_factory=GitConfig)
    packages: List[RepositoryRef] = field(default_factory=list)


def load_config(
    config_path: Path | None = None, *, environ: Mapping[str, str] | None = None
) -> PkgDocConfig:
    """Load configuration from disk, then apply environment overrides."""
    environ = os.environ if environ is None else environ
    config_file = _resolve_config_path(config_path or Path.cwd())
    root = config_file.parent

    config = PkgDocConfig(root=root)
    if config_file.exists():
        data = _read_config(config_file)
        if not isinstance(data, dict):
            raise ConfigError(f"{config_file.name} must contain a mapping at the root")
        _apply(config, data)

    scratch_env = environ.get(ENV_SCRATCH_DIR)
    if scratch_env:
        config.scratch_dir = Path(scratch_env).expanduser()
    cooldown_env = environ.get(ENV_COOLDOWN)
    if cooldown_env:
        cooldown = _as_float(cooldown_env)
        if cooldown is None or cooldown < 0:
            raise ConfigError(f"{ENV_COOLDOWN} must be a non-negative number of seconds")
        config.cooldown_seconds = cooldown
    return config


def _apply(config: PkgDocConfig, data: Dict[str, Any]) -> None:
    scratch_dir = _as_str(data.get("scratch_dir"))
    if scratch_dir:
        path = Path(scratch_dir).expanduser()
        config.scratch_dir = path if path.is_absolute() else config.root / path

    if "cooldown_seconds" in data:
        cooldown = _as_float(data.get("cooldown_seconds"))
        if cooldown is None or cooldown < 0:
            raise ConfigError("cooldown_seconds must be a non-negative number")
        config.cooldown_seconds = cooldown

    if "scan_depth" in data:
        depth = data.get("scan_depth")
        if not isinstance(depth, int) or isinstance(depth, bool) or depth < 0:
            raise ConfigError("scan_depth must be a non-negative integer")
        config.scan_depth = depth

    git_data = _as_dict(data.get("git"))
    executable = _as_str(git_data.get("executable"))
    if executable:
        config.git = GitConfig(executable=executable)

    packages = data.get("packages") or []
    if not isinstance(packages, list):
        raise ConfigError("packages must be a list")
    config.packages = [_package(entry, index) for index, entry in enumerate(packages)]


def _package(entry: Any, index: int) -> RepositoryRef:
    if not isinstance(entry, dict):
        raise ConfigError(f"packages[{index}] must be a mapping")
    import_path = _as_str(entry.get("import_path"))
    clone = _as_str(entry.get("clone"))
    if not import_path or not clone:
        raise ConfigError(f"packages[{index}] needs both import_path and clone")
    name = _as_str(entry.get("name")) or import_path.rstrip("/").rsplit("/", 1)[-1]
    return RepositoryRef(import_path=import_path, clone_location=clone, name=name)


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


__all__ = ["CONFIG_FILENAME", "ConfigError", "GitConfig", "PkgDocConfig", "load_config"]
