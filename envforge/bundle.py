from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple

import yaml

from .errors import ParseError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Tool:
    id: str
    depends_on: Tuple[str, ...] = ()
    skip: bool = False


@dataclass(frozen=True)
class Bundle:
    name: str
    description: str
    tools: Tuple[Tool, ...]
    source: Optional[Path] = None

    def tool_ids(self) -> List[str]:
        return [t.id for t in self.tools]

    def get(self, tool_id: str) -> Optional[Tool]:
        for t in self.tools:
            if t.id == tool_id:
                return t
        return None


def _check_plain_name(value: str, *, what: str) -> str:
    # Names become file/dir names under the state root.
    if not value or value in {".", ".."} or "/" in value or "\\" in value or "\x00" in value:
        raise ParseError(f"Invalid {what}: {value!r}")
    return value


def _parse_tool(entry: Any, index: int) -> Tool:
    if isinstance(entry, str):
        return Tool(id=_check_plain_name(entry.strip(), what="tool id"))

    if not isinstance(entry, Mapping):
        raise ParseError(f"tools[{index}] must be a mapping or a string, got {type(entry).__name__}")

    tool_id = entry.get("id")
    if not isinstance(tool_id, str):
        raise ParseError(f"tools[{index}].id must be a string")
    tool_id = _check_plain_name(tool_id.strip(), what="tool id")

    deps_raw = entry.get("depends_on")
    if deps_raw is None:
        deps_raw = []
    if not isinstance(deps_raw, list):
        raise ParseError(f"Tool {tool_id}: depends_on must be a list")

    deps: List[str] = []
    for d in deps_raw:
        if not isinstance(d, str):
            raise ParseError(f"Tool {tool_id}: depends_on entries must be strings, got {d!r}")
        d = d.strip()
        # De-dup while preserving order
        if d not in deps:
            deps.append(d)

    skip = entry.get("skip", False)
    if not isinstance(skip, bool):
        raise ParseError(f"Tool {tool_id}: skip must be true or false")

    return Tool(id=tool_id, depends_on=tuple(deps), skip=skip)


def parse_bundle(raw: Any, *, source: Optional[Path] = None) -> Bundle:
    """Build a Bundle from an already-loaded mapping.

    Referential integrity (unknown ``depends_on`` targets) is checked later by
    the graph builder; this only validates structure.
    """

    where = f" ({source})" if source else ""
    if not isinstance(raw, Mapping):
        raise ParseError(f"Bundle must be a mapping/object{where}")

    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ParseError(f"Bundle is missing required 'name'{where}")
    name = _check_plain_name(name.strip(), what="bundle name")

    description = raw.get("description") or ""
    if not isinstance(description, str):
        raise ParseError(f"Bundle {name}: description must be a string")

    tools_raw = raw.get("tools")
    if not isinstance(tools_raw, list):
        raise ParseError(f"Bundle {name}: 'tools' must be a list")

    tools: List[Tool] = []
    seen: set[str] = set()
    for i, entry in enumerate(tools_raw):
        tool = _parse_tool(entry, i)
        if tool.id in seen:
            raise ParseError(f"Bundle {name}: duplicate tool id {tool.id}")
        seen.add(tool.id)
        tools.append(tool)

    return Bundle(name=name, description=description, tools=tuple(tools), source=source)


def load_bundle(path: str | Path) -> Bundle:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ParseError(f"Bundle file not found: {p}") from e
    except UnicodeDecodeError as e:
        raise ParseError(f"Bundle {p} is not valid UTF-8") from e

    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ParseError(f"Invalid YAML in bundle {p}: {e}") from e

    bundle = parse_bundle(raw, source=p)
    logger.debug("Loaded bundle %s (%d tools) from %s", bundle.name, len(bundle.tools), p)
    return bundle


def resolve_bundle_path(arg: str, bundles_dir: str | Path) -> Path:
    """Locate a bundle file given a CLI argument.

    Tries, in order: absolute path, path relative to cwd, ``bundles_dir/arg``
    and ``bundles_dir/arg.yaml``. Falls back to ``arg`` unchanged so that
    loading reports the missing file.
    """

    p = Path(arg).expanduser()
    if p.is_absolute() or p.is_file():
        return p

    base = Path(bundles_dir)
    for candidate in (base / arg, base / f"{arg}.yaml", base / f"{arg}.yml"):
        if candidate.is_file():
            return candidate
    return p
