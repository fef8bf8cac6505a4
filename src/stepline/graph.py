# graph.py
from __future__ import annotations

from typing import Dict, Iterator, List, Set

from .errors import CyclicDependency


class DependencyGraph:
    """
    Directed graph over string ids: node -> ids it depends on.

    The graph may hold cycles; call is_cyclic() before relying on iterate().
    Edges may point at ids that were never added as nodes (callers check
    referential integrity themselves); iterate() treats those as satisfied.
    """

    def __init__(self) -> None:
        self._nodes: Dict[str, List[str]] = {}

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def add_node(self, node: str) -> None:
        if node not in self._nodes:
            self._nodes[node] = []

    def add_edge(self, frm: str, to: str) -> None:
        """Record that ``frm`` depends on ``to``."""
        deps = self._nodes.setdefault(frm, [])
        if to not in deps:
            deps.append(to)

    def add(self, other: "DependencyGraph", root: str) -> None:
        """Copy the subgraph of ``other`` reachable from ``root`` into this graph."""
        seen: Set[str] = set()

        def visit(node: str) -> None:
            if node in seen:
                return
            seen.add(node)
            self.add_node(node)
            for dep in other.dependencies(node):
                self.add_node(dep)
                self.add_edge(node, dep)
                visit(dep)

        visit(root)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def nodes(self) -> List[str]:
        return list(self._nodes)

    def dependencies(self, node: str) -> List[str]:
        return list(self._nodes.get(node, []))

    def __contains__(self, node: object) -> bool:
        return node in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._nodes))

    def __repr__(self) -> str:
        return f"DependencyGraph({self._nodes!r})"

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def is_cyclic(self) -> bool:
        return self.find_cycle() is not None

    def find_cycle(self) -> List[str] | None:
        """Return one cycle as a list of ids (first id repeated at the end), or None."""
        visited: Set[str] = set()
        rec_stack: Set[str] = set()
        path: List[str] = []

        def dfs(node: str) -> List[str] | None:
            visited.add(node)
            rec_stack.add(node)
            path.append(node)

            for dep in self._nodes.get(node, []):
                if dep not in visited:
                    cycle = dfs(dep)
                    if cycle:
                        return cycle
                elif dep in rec_stack:
                    start = path.index(dep)
                    return path[start:] + [dep]

            path.pop()
            rec_stack.discard(node)
            return None

        # every node is a potential root so disconnected cycles are found too
        for node in self._nodes:
            if node not in visited:
                cycle = dfs(node)
                if cycle:
                    return cycle
        return None

    # ------------------------------------------------------------------
    # Layered iteration
    # ------------------------------------------------------------------

    def iterate(self) -> List[List[str]]:
        """
        Split the graph into topological "fronts".

        Each front holds the nodes whose dependencies all live in earlier
        fronts, so members of one front can run in parallel. The graph itself
        is not modified.

        Raises:
            CyclicDependency: if the remaining nodes can never become ready.
        """
        remaining: Dict[str, Set[str]] = {
            node: {d for d in deps if d in self._nodes}
            for node, deps in self._nodes.items()
        }

        fronts: List[List[str]] = []
        while remaining:
            front = sorted(n for n, deps in remaining.items() if not deps)
            if not front:
                raise CyclicDependency(sorted(remaining))

            for node in front:
                del remaining[node]
            done = set(front)
            for deps in remaining.values():
                deps -= done

            fronts.append(front)

        return fronts
