from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Tuple

from .bundle import Bundle
from .errors import MissingDependencyError


@dataclass(frozen=True)
class DependencyGraph:
    """Tool ids as nodes, edges point from a dependency to its dependents.

    Skipped tools stay in the graph so their dependents resolve; they are
    only left out of the final plan.
    """

    nodes: Tuple[str, ...]
    dependencies: Dict[str, Tuple[str, ...]]
    dependents: Dict[str, Tuple[str, ...]]
    skipped: FrozenSet[str]

    def order_of(self, node: str) -> int:
        return self.nodes.index(node)

    def is_executable(self, node: str) -> bool:
        return node not in self.skipped

    @property
    def edge_count(self) -> int:
        return sum(len(v) for v in self.dependencies.values())


def build_graph(bundle: Bundle) -> DependencyGraph:
    declared = set(bundle.tool_ids())

    dependencies: Dict[str, Tuple[str, ...]] = {}
    dependents: Dict[str, List[str]] = {t.id: [] for t in bundle.tools}

    for tool in bundle.tools:
        for dep in tool.depends_on:
            if dep not in declared:
                raise MissingDependencyError(tool.id, dep)
            dependents[dep].append(tool.id)
        dependencies[tool.id] = tuple(tool.depends_on)

    return DependencyGraph(
        nodes=tuple(bundle.tool_ids()),
        dependencies=dependencies,
        dependents={k: tuple(v) for k, v in dependents.items()},
        skipped=frozenset(t.id for t in bundle.tools if t.skip),
    )
