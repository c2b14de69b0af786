from __future__ import annotations

from typing import Sequence


class EnvForgeError(RuntimeError):
    """Base class for every failure that is fatal to a run."""


class ParseError(EnvForgeError, ValueError):
    pass


class MissingDependencyError(EnvForgeError):
    def __init__(self, tool: str, missing: str) -> None:
        super().__init__(f"Tool '{tool}' depends on undeclared tool '{missing}'")
        self.tool = tool
        self.missing = missing


class CycleError(EnvForgeError):
    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = tuple(cycle)
        super().__init__("Dependency cycle detected: " + " -> ".join(self.cycle))


class ToolNotFoundError(EnvForgeError):
    def __init__(self, tool: str) -> None:
        super().__init__(f"No runtime registered for tool: {tool}")
        self.tool = tool


class PhaseExecutionError(EnvForgeError):
    def __init__(self, tool: str, phase: str, reason: str = "") -> None:
        msg = f"Tool '{tool}' failed in {phase}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.tool = tool
        self.phase = phase
        self.reason = reason


class StateLockedError(EnvForgeError):
    def __init__(self, bundle: str) -> None:
        super().__init__(f"Another env-forge run holds the state lock for bundle: {bundle}")
        self.bundle = bundle


class UpgradeResolutionError(EnvForgeError):
    """Upgrade failed. ``kind`` tells the failures apart:

    not_a_repository, fetch_failed, manifest_unreachable, manifest_empty,
    reference_not_found, checkout_blocked
    """

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind
