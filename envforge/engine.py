from __future__ import annotations

import enum
import logging
from contextlib import nullcontext
from dataclasses import dataclass, field
from typing import List, Optional

from .bundle import Bundle
from .config import EngineConfig
from .errors import EnvForgeError, PhaseExecutionError
from .graph import build_graph
from .resolver import ExecutionPlan, resolve_plan
from .runtime import PHASES, ToolRegistry, ToolRuntime
from .state_store import StateStore

logger = logging.getLogger(__name__)


class RunStatus(str, enum.Enum):
    PLANNING = "planning"
    EXECUTING = "executing"
    DONE = "done"
    FAILED = "failed"


class Outcome(str, enum.Enum):
    COMPLETED = "completed"
    ALREADY_COMPLETED = "already_completed"
    DRY_RUN = "dry_run"
    FAILED = "failed"


@dataclass(frozen=True)
class RunOptions:
    force: bool = False
    dry_run: bool = False
    list_only: bool = False
    reset_state: bool = False


@dataclass(frozen=True)
class ToolOutcome:
    tool: str
    outcome: Outcome
    detail: str = ""


@dataclass
class RunReport:
    bundle: str
    status: RunStatus = RunStatus.PLANNING
    plan: Optional[ExecutionPlan] = None
    outcomes: List[ToolOutcome] = field(default_factory=list)
    error: Optional[EnvForgeError] = None

    @property
    def ok(self) -> bool:
        return self.status is RunStatus.DONE

    def tools_with(self, outcome: Outcome) -> List[str]:
        return [o.tool for o in self.outcomes if o.outcome is outcome]

    @property
    def invoked(self) -> List[str]:
        """Tools whose runtime was called, successfully or not."""
        return [o.tool for o in self.outcomes if o.outcome in (Outcome.COMPLETED, Outcome.FAILED)]

    @property
    def already_completed(self) -> List[str]:
        return self.tools_with(Outcome.ALREADY_COMPLETED)

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


class Engine:
    """Plans a bundle and walks the plan, one tool at a time.

    Fail-fast: the first failing phase ends the run. Tools that finished
    before it keep their completion markers, nothing is rolled back, and a
    re-run resumes after them.
    """

    def __init__(self, store: StateStore, registry: ToolRegistry) -> None:
        self.store = store
        self.registry = registry

    @classmethod
    def from_config(cls, config: EngineConfig) -> "Engine":
        env = {"ENVFORGE_HOME": str(config.home)}
        return cls(
            store=StateStore(config.state_dir),
            registry=ToolRegistry.from_directory(config.tools_dir, env=env),
        )

    def plan(self, bundle: Bundle) -> ExecutionPlan:
        return resolve_plan(build_graph(bundle), bundle=bundle.name)

    def run(self, bundle: Bundle, options: RunOptions = RunOptions()) -> RunReport:
        report = RunReport(bundle=bundle.name)

        try:
            logger.info("Resolving bundle: %s", bundle.name)
            report.plan = self.plan(bundle)
        except EnvForgeError as e:
            return self._fail(report, e)

        if not report.plan.order:
            logger.warning("No tools to run in bundle %s", bundle.name)

        if options.list_only:
            report.status = RunStatus.DONE
            return report

        report.status = RunStatus.EXECUTING
        # Dry runs never touch state, so they do not need the lock either.
        guard = nullcontext() if options.dry_run else self.store.lock(bundle.name)
        try:
            with guard:
                if options.reset_state:
                    if options.dry_run:
                        logger.info("DRY RUN: would clear state for bundle %s", bundle.name)
                    else:
                        self.store.reset(bundle.name)

                for tool_id in report.plan.order:
                    report.outcomes.append(self._run_tool(bundle.name, tool_id, options))
        except EnvForgeError as e:
            return self._fail(report, e)

        report.status = RunStatus.DONE
        logger.info("Bundle %s completed", bundle.name)
        return report

    def _run_tool(self, bundle: str, tool_id: str, options: RunOptions) -> ToolOutcome:
        if options.dry_run:
            rt = self.registry.get(tool_id)
            where = rt.describe() if rt is not None else "no runtime registered"
            logger.info(
                "DRY RUN: would run %s (%s): %s", tool_id, where, " -> ".join(PHASES)
            )
            return ToolOutcome(tool_id, Outcome.DRY_RUN, where)

        if (not options.force) and self.store.is_completed(bundle, tool_id):
            logger.info("Skipping %s (already completed)", tool_id)
            return ToolOutcome(tool_id, Outcome.ALREADY_COMPLETED)

        rt = self.registry.resolve(tool_id)
        logger.info("Processing: %s (%s)", tool_id, rt.describe())
        self._run_phases(tool_id, rt)

        self.store.mark_completed(bundle, tool_id)
        logger.info("Completed: %s", tool_id)
        return ToolOutcome(tool_id, Outcome.COMPLETED)

    def _run_phases(self, tool_id: str, rt: ToolRuntime) -> None:
        for phase in PHASES:
            logger.debug("%s: %s", tool_id, phase)
            result = getattr(rt, phase)()
            if not result.ok:
                raise PhaseExecutionError(tool_id, phase, result.reason)

    def _fail(self, report: RunReport, error: EnvForgeError) -> RunReport:
        if isinstance(error, PhaseExecutionError):
            report.outcomes.append(ToolOutcome(error.tool, Outcome.FAILED, error.phase))
        report.status = RunStatus.FAILED
        report.error = error
        logger.error("Bundle %s failed: %s", report.bundle, error)
        return report
