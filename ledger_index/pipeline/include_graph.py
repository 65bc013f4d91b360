"""
IncludeGraph
============

Directed graph of ``include`` relationships between journal files, kept on
a :class:`networkx.DiGraph`.  The parser records one edge per resolved
include; the workspace scan asks it which files a cached entry depends on,
so that editing an included file invalidates the files that include it.
"""
from __future__ import annotations

from typing import Any, Dict, List, Set, Tuple

import networkx as nx


class IncludeGraph:
    """Tracks which journal files include which."""

    def __init__(self) -> None:
        self._graph = nx.DiGraph()

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_include(self, src: str, dest: str) -> None:
        """Record that *src* includes *dest*."""
        self._graph.add_edge(str(src), str(dest))

    def add_file(self, path: str) -> None:
        self._graph.add_node(str(path))

    def forget_includes_of(self, path: str) -> None:
        """Drop the outgoing edges of *path* before it is re-parsed."""
        path = str(path)
        if path in self._graph:
            self._graph.remove_edges_from(list(self._graph.out_edges(path)))

    def clear(self) -> None:
        self._graph.clear()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def direct_includes(self, path: str) -> Set[str]:
        path = str(path)
        if path not in self._graph:
            return set()
        return set(self._graph.successors(path))

    def all_includes(self, path: str) -> Set[str]:
        """Every file reachable from *path* through includes."""
        path = str(path)
        if path not in self._graph:
            return set()
        return set(nx.descendants(self._graph, path))

    def includers_of(self, path: str) -> Set[str]:
        """Every file that includes *path*, directly or transitively."""
        path = str(path)
        if path not in self._graph:
            return set()
        return set(nx.ancestors(self._graph, path))

    def cycles(self) -> List[List[str]]:
        return [list(c) for c in nx.simple_cycles(self._graph)]

    def vertices(self) -> Set[str]:
        return set(self._graph.nodes)

    def edges(self) -> List[Tuple[str, str]]:
        return sorted(self._graph.edges)

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vertices": sorted(self.vertices()),
            "edges": [{"src": s, "dest": d} for s, d in self.edges()],
            "cycles": sorted(sorted(c) for c in self.cycles()),
        }
