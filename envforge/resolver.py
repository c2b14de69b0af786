from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Sequence, Set, Tuple

from .bundle import Bundle
from .errors import CycleError
from .graph import DependencyGraph, build_graph

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionPlan:
    bundle: str
    order: Tuple[str, ...]
    skipped: Tuple[str, ...] = ()

    def __iter__(self) -> Iterator[str]:
        return iter(self.order)

    def __len__(self) -> int:
        return len(self.order)

    def position(self, tool_id: str) -> int:
        return self.order.index(tool_id)


def _find_cycle(graph: DependencyGraph, remaining: Set[str]) -> List[str]:
    # Every remaining node still waits on at least one remaining dependency,
    # so following those dependencies must eventually revisit a node.
    start = min(remaining, key=graph.order_of)
    path: List[str] = []
    seen_at: Dict[str, int] = {}
    node = start
    while node not in seen_at:
        seen_at[node] = len(path)
        path.append(node)
        node = next(d for d in graph.dependencies[node] if d in remaining)
    cycle = path[seen_at[node]:]
    cycle.append(node)
    return cycle


def topological_order(graph: DependencyGraph) -> List[str]:
    """Kahn's algorithm; ties go to the earliest-declared node."""

    index = {n: i for i, n in enumerate(graph.nodes)}
    in_degree = {n: len(graph.dependencies[n]) for n in graph.nodes}

    ready = [index[n] for n in graph.nodes if in_degree[n] == 0]
    heapq.heapify(ready)

    order: List[str] = []
    while ready:
        node = graph.nodes[heapq.heappop(ready)]
        order.append(node)
        for child in graph.dependents[node]:
            in_degree[child] -= 1
            if in_degree[child] == 0:
                heapq.heappush(ready, index[child])

    if len(order) != len(graph.nodes):
        remaining = {n for n in graph.nodes if in_degree[n] > 0}
        raise CycleError(_find_cycle(graph, remaining))

    return order


def resolve_plan(graph: DependencyGraph, *, bundle: str = "") -> ExecutionPlan:
    order = topological_order(graph)
    runnable = tuple(n for n in order if graph.is_executable(n))
    skipped = tuple(n for n in order if not graph.is_executable(n))
    if skipped:
        logger.info("Skipping tools marked skip: %s", ", ".join(skipped))
    return ExecutionPlan(bundle=bundle, order=runnable, skipped=skipped)


def resolve_bundle(bundle: Bundle) -> ExecutionPlan:
    return resolve_plan(build_graph(bundle), bundle=bundle.name)


def format_plan(plan: Sequence[str]) -> str:
    return "\n".join(f"{i:>3}. {tool_id}" for i, tool_id in enumerate(plan, start=1))
