from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

DEFAULT_HOME = "~/.env-forge"
DEFAULT_VERSIONS_URL = "https://raw.githubusercontent.com/pnqphong95/env-forge/master/.versions"


@dataclass(frozen=True)
class EngineConfig:
    """Everything the engine needs to know about its surroundings.

    Built once by the CLI and handed to each component; nothing below the CLI
    reads environment variables.
    """

    home: Path
    state_dir: Path
    tools_dir: Path
    bundles_dir: Path
    log_path: Path
    versions_url: str = DEFAULT_VERSIONS_URL
    remote: str = "origin"
    branch: str = "master"

    @classmethod
    def from_home(cls, home: str | Path) -> "EngineConfig":
        h = Path(home).expanduser()
        return cls(
            home=h,
            state_dir=h / ".state",
            tools_dir=h / "tools",
            bundles_dir=h / "bundles",
            log_path=h / "logs" / "envforge.log",
        )


_PATH_KEYS = ("state_dir", "tools_dir", "bundles_dir", "log_path")
_STR_KEYS = ("versions_url", "remote", "branch")


def load_config(path: Optional[str | Path], *, home: str | Path = DEFAULT_HOME) -> EngineConfig:
    """Defaults for ``home``, overlaid with a YAML mapping if ``path`` is given.

    Relative paths in the file are taken relative to ``home``.
    """

    cfg = EngineConfig.from_home(home)
    if path is None:
        return cfg

    p = Path(path).expanduser()
    if not p.exists():
        raise FileNotFoundError(str(p))
    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ValueError("env-forge config must be YAML")

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {p}: {e}") from e
    if not isinstance(raw, dict):
        raise ValueError(f"{p} must contain a mapping/object")

    unknown = set(raw) - set(_PATH_KEYS) - set(_STR_KEYS)
    if unknown:
        raise ValueError(f"Unknown config keys in {p}: {', '.join(sorted(unknown))}")

    overrides: Dict[str, Any] = {}
    for key in _PATH_KEYS:
        if raw.get(key):
            v = Path(str(raw[key])).expanduser()
            overrides[key] = v if v.is_absolute() else cfg.home / v
    for key in _STR_KEYS:
        if raw.get(key):
            overrides[key] = str(raw[key])

    return replace(cfg, **overrides)
