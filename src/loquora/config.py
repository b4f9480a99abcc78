"""Interpreter configuration loaded from ``loquora.yaml`` and the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

CONFIG_FILENAME = "loquora.yaml"
PATH_ENV_VAR = "LOQUORA_PATH"
DEFAULT_SEARCH_PATHS = [".", "./src", "./.loq/std"]
DEFAULT_EXTENSION = ".loq"
BUNDLED_STDLIB_PREFIX = "std"

_KNOWN_KEYS = {"search_paths", "extension", "stdlib", "include_bundled_stdlib"}


class ConfigError(ValueError):
    """Raised for unreadable or malformed configuration."""


def bundled_stdlib_dir() -> Path:
    return Path(__file__).resolve().parent / "stdlib"


def bundled_stdlib(extension: str = DEFAULT_EXTENSION) -> Dict[str, Path]:
    """Map ``std/<name>`` to each module shipped with the package."""
    root = bundled_stdlib_dir()
    if not root.is_dir():
        return {}
    return {
        f"{BUNDLED_STDLIB_PREFIX}/{path.stem}": path
        for path in sorted(root.glob(f"*{extension}"))
    }


@dataclass
class LoquoraConfig:
    """Module search settings for one interpreter session."""

    search_paths: List[Path] = field(default_factory=lambda: [Path(p) for p in DEFAULT_SEARCH_PATHS])
    extension: str = DEFAULT_EXTENSION
    stdlib: Dict[str, Path] = field(default_factory=dict)
    include_bundled_stdlib: bool = True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], base_dir: Optional[Path] = None) -> "LoquoraConfig":
        unknown = set(data) - _KNOWN_KEYS
        if unknown:
            raise ConfigError(f"unknown configuration keys: {', '.join(sorted(unknown))}")

        base = Path(base_dir) if base_dir is not None else Path(".")
        config = cls()

        if "search_paths" in data:
            paths = data["search_paths"]
            if not isinstance(paths, list):
                raise ConfigError("search_paths must be a list")
            config.search_paths = [_resolve(base, p) for p in paths]

        if "extension" in data:
            ext = str(data["extension"])
            config.extension = ext if ext.startswith(".") else f".{ext}"

        if "stdlib" in data:
            entries = data["stdlib"] or {}
            if not isinstance(entries, dict):
                raise ConfigError("stdlib must be a mapping of module path to file")
            config.stdlib = {str(k): _resolve(base, v) for k, v in entries.items()}

        if "include_bundled_stdlib" in data:
            config.include_bundled_stdlib = bool(data["include_bundled_stdlib"])

        return config

    @classmethod
    def load(cls, path: Path | str) -> "LoquoraConfig":
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"config not found: {config_path}")
        try:
            with config_path.open("r", encoding="utf-8") as fp:
                data = yaml.safe_load(fp) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"invalid YAML in {config_path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"{config_path} must contain a mapping")
        return cls.from_dict(data, base_dir=config_path.parent)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "search_paths": [str(p) for p in self.search_paths],
            "extension": self.extension,
            "stdlib": {k: str(v) for k, v in self.stdlib.items()},
            "include_bundled_stdlib": self.include_bundled_stdlib,
        }

    def dump(self, path: Path | str) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("w", encoding="utf-8") as fp:
            yaml.safe_dump(self.to_dict(), fp, sort_keys=False)

    def stdlib_registry(self) -> Dict[str, Path]:
        """Bundled modules overlaid with configured entries."""
        registry: Dict[str, Path] = {}
        if self.include_bundled_stdlib:
            registry.update(bundled_stdlib(self.extension))
        registry.update(self.stdlib)
        return registry


def _resolve(base: Path, value: Any) -> Path:
    path = Path(os.path.expanduser(str(value)))
    if not path.is_absolute():
        path = base / path
    return path


def load_config(path: Path | str | None = None,
                environ: Optional[Mapping[str, str]] = None) -> LoquoraConfig:
    """
    Build the session configuration.

    Reads ``path`` if given, otherwise ``./loquora.yaml`` when present, and
    prepends any directories listed in ``LOQUORA_PATH``.
    """
    env = os.environ if environ is None else environ

    if path is not None:
        config = LoquoraConfig.load(path)
    elif Path(CONFIG_FILENAME).exists():
        config = LoquoraConfig.load(CONFIG_FILENAME)
    else:
        config = LoquoraConfig()

    extra = env.get(PATH_ENV_VAR, "")
    if extra:
        roots = [Path(p) for p in extra.split(os.pathsep) if p]
        config.search_paths = roots + config.search_paths

    return config
