from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest

from envforge.bundle import Bundle, parse_bundle
from envforge.config import EngineConfig
from envforge.engine import Engine
from envforge.runtime import CallableToolRuntime, PhaseResult, ToolRegistry
from envforge.state_store import StateStore


def make_bundle(entries: Sequence[tuple], name: str = "test") -> Bundle:
    """make_bundle([("a", []), ("b", ["a"]), ("c", [], True)])"""
    tools = []
    for entry in entries:
        tool_id, deps = entry[0], entry[1]
        skip = entry[2] if len(entry) > 2 else False
        tools.append({"id": tool_id, "depends_on": list(deps), "skip": skip})
    return parse_bundle({"name": name, "description": "", "tools": tools})


class Recorder:
    """Builds callable runtimes that log every phase call."""

    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self.fail: Dict[str, str] = {}

    def runtime(self, tool_id: str) -> CallableToolRuntime:
        def phase(name: str):
            def _fn() -> PhaseResult:
                self.calls.append((tool_id, name))
                if self.fail.get(tool_id) == name:
                    return PhaseResult.failure("boom")
                return PhaseResult.success()

            return _fn

        return CallableToolRuntime(
            tool_id,
            pre_install=phase("pre_install"),
            install=phase("install"),
            post_install=phase("post_install"),
        )

    def registry(self, tool_ids: Sequence[str]) -> ToolRegistry:
        return ToolRegistry(self.runtime(t) for t in tool_ids)

    def installed(self) -> List[str]:
        return [t for t, phase in self.calls if phase == "install"]


@pytest.fixture
def config(tmp_path: Path) -> EngineConfig:
    return EngineConfig.from_home(tmp_path / "home")


@pytest.fixture
def store(config: EngineConfig) -> StateStore:
    return StateStore(config.state_dir)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def make_engine(store: StateStore, recorder: Recorder):
    def _make(tool_ids: Sequence[str], registry: Optional[ToolRegistry] = None) -> Engine:
        return Engine(store, registry if registry is not None else recorder.registry(tool_ids))

    return _make
