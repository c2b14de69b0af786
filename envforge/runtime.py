from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Union

from .errors import ToolNotFoundError
from .lib.command import CmdResult, run_cmd

logger = logging.getLogger(__name__)

PHASES = ("pre_install", "install", "post_install")


@dataclass(frozen=True)
class PhaseResult:
    ok: bool
    reason: str = ""

    @classmethod
    def success(cls) -> "PhaseResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, reason: str) -> "PhaseResult":
        return cls(ok=False, reason=reason)


class ToolRuntime(Protocol):
    """What the engine calls for one tool, phase by phase."""

    tool_id: str

    def pre_install(self) -> PhaseResult:
        ...

    def install(self) -> PhaseResult:
        ...

    def post_install(self) -> PhaseResult:
        ...

    def describe(self) -> str:
        ...


# $0 is a placeholder so a script's "run standalone" guard
# ([[ "${BASH_SOURCE[0]}" == "${0}" ]]) stays false while it is sourced.
_PHASE_SNIPPET = 'source "$1" || exit $?; if declare -F "$2" >/dev/null; then "$2"; fi'


class ScriptToolRuntime:
    """Bash tool script defining pre_install/install/post_install functions.

    Each phase sources the script in a fresh bash and calls the function;
    a phase the script does not define counts as done.

    Phases do not share a shell: top-level code in the script runs once per
    phase, and variables or exports set in one phase are gone in the next.
    Anything a later phase needs must be recomputed or written to disk.
    """

    def __init__(
        self,
        tool_id: str,
        script: str | Path,
        *,
        env: Optional[Mapping[str, str]] = None,
        runner: Callable[..., CmdResult] = run_cmd,
    ) -> None:
        self.tool_id = tool_id
        self.script = Path(script)
        self.env = dict(env or {})
        self.runner = runner

    def _run_phase(self, phase: str) -> PhaseResult:
        env = dict(self.env)
        env["ENVFORGE_TOOL"] = self.tool_id
        r = self.runner(
            ["bash", "-c", _PHASE_SNIPPET, "envforge-phase", str(self.script), phase],
            check=False,
            env=env,
            cwd=str(self.script.parent),
            capture=False,
        )
        if r.returncode != 0:
            return PhaseResult.failure(f"exit status {r.returncode}")
        return PhaseResult.success()

    def pre_install(self) -> PhaseResult:
        return self._run_phase("pre_install")

    def install(self) -> PhaseResult:
        return self._run_phase("install")

    def post_install(self) -> PhaseResult:
        return self._run_phase("post_install")

    def describe(self) -> str:
        return str(self.script)


PhaseFn = Callable[[], Union[PhaseResult, bool, None]]


class CallableToolRuntime:
    """Runtime backed by plain Python callables.

    A callable may return a PhaseResult, a bool, or None (success).
    """

    def __init__(
        self,
        tool_id: str,
        *,
        pre_install: Optional[PhaseFn] = None,
        install: Optional[PhaseFn] = None,
        post_install: Optional[PhaseFn] = None,
    ) -> None:
        self.tool_id = tool_id
        self._phases: Dict[str, Optional[PhaseFn]] = {
            "pre_install": pre_install,
            "install": install,
            "post_install": post_install,
        }

    def _call(self, phase: str) -> PhaseResult:
        fn = self._phases[phase]
        if fn is None:
            return PhaseResult.success()
        out = fn()
        if isinstance(out, PhaseResult):
            return out
        if out is None or out is True:
            return PhaseResult.success()
        return PhaseResult.failure(f"{phase} returned {out!r}")

    def pre_install(self) -> PhaseResult:
        return self._call("pre_install")

    def install(self) -> PhaseResult:
        return self._call("install")

    def post_install(self) -> PhaseResult:
        return self._call("post_install")

    def describe(self) -> str:
        return f"<python:{self.tool_id}>"


_ORDER_PREFIX = re.compile(r"^\d+[-_]")


class ToolRegistry:
    """Tool id -> runtime, built once and handed to the engine."""

    def __init__(self, runtimes: Iterable[ToolRuntime] = ()) -> None:
        self._runtimes: Dict[str, ToolRuntime] = {}
        for rt in runtimes:
            self.register(rt)

    def register(self, runtime: ToolRuntime, *, tool_id: Optional[str] = None) -> None:
        key = tool_id or runtime.tool_id
        existing = self._runtimes.get(key)
        if existing is not None and existing is not runtime:
            raise ValueError(
                f"Tool id {key} registered twice: {existing.describe()} and {runtime.describe()}"
            )
        self._runtimes[key] = runtime

    def get(self, tool_id: str) -> Optional[ToolRuntime]:
        return self._runtimes.get(tool_id)

    def resolve(self, tool_id: str) -> ToolRuntime:
        rt = self._runtimes.get(tool_id)
        if rt is None:
            raise ToolNotFoundError(tool_id)
        return rt

    def ids(self) -> List[str]:
        return sorted(self._runtimes)

    def __contains__(self, tool_id: object) -> bool:
        return tool_id in self._runtimes

    def __len__(self) -> int:
        return len(self._runtimes)

    @classmethod
    def from_directory(
        cls,
        tools_dir: str | Path,
        *,
        env: Optional[Mapping[str, str]] = None,
        runner: Callable[..., CmdResult] = run_cmd,
    ) -> "ToolRegistry":
        """Register every ``*.sh`` in ``tools_dir``.

        ``nvm.sh`` registers ``nvm``; ``10-nvm.sh`` registers both ``10-nvm``
        and ``nvm``.
        """

        reg = cls()
        d = Path(tools_dir)
        if not d.is_dir():
            logger.warning("Tools directory not found: %s", d)
            return reg

        for script in sorted(d.glob("*.sh")):
            if not script.is_file():
                continue
            rt = ScriptToolRuntime(script.stem, script, env=env, runner=runner)
            reg.register(rt)
            short = _ORDER_PREFIX.sub("", script.stem)
            if short and short != script.stem:
                reg.register(rt, tool_id=short)

        logger.debug("Registered %d tool runtimes from %s", len(reg), d)
        return reg
