"""
Shortest path on a weighted undirected graph: uniform-cost search and A*.

Input lines:
- S,<id>          start vertex
- D,<id>          goal vertex
- <id>,<cell>     vertex with packed coordinates, x = cell // 10, y = cell % 10
- <u>,<v>,<w>     undirected edge of weight w

Each run reports: found / not found, path, cost, expanded nodes,
queue pushes, max frontier size and runtime.
"""

from __future__ import annotations

import argparse
import heapq
import itertools
import math
import sys
import time
from collections import namedtuple
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from logging_utils import get_logger, set_verbosity

logger = get_logger()

Edge = namedtuple("Edge", "to weight")
Coords = Dict[int, Tuple[int, int]]
Heuristic = Callable[[int, int, Coords], float]

SearchResult = namedtuple("SearchResult", "found path cost expanded pushes max_frontier runtime")


class ParseError(ValueError):
    """Malformed or missing tokens in a pathfinding input."""


# =========================================================
# Graph + input
# =========================================================

class WeightedGraph:
    def __init__(self):
        self.edges: Dict[int, List[Edge]] = {}
        self.vertices: Dict[int, int] = {}  # id -> packed cell
        self.start: Optional[int] = None
        self.goal: Optional[int] = None

    def add_vertex(self, vid: int, cell: int) -> None:
        self.vertices[vid] = cell
        self.edges.setdefault(vid, [])

    def add_edge(self, u: int, v: int, w: int) -> None:
        self.edges.setdefault(u, []).append(Edge(v, w))
        self.edges.setdefault(v, []).append(Edge(u, w))

    def coords(self) -> Coords:
        return {vid: divmod(cell, 10) for vid, cell in self.vertices.items()}


def _int(token: str, lineno: int) -> int:
    try:
        return int(token.strip())
    except ValueError:
        raise ParseError(f"line {lineno}: bad integer {token.strip()!r}") from None


def parse_weighted_graph(text: str) -> WeightedGraph:
    g = WeightedGraph()
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split(",")
        if parts[0].strip() == "S" and len(parts) == 2:
            g.start = _int(parts[1], lineno)
        elif parts[0].strip() == "D" and len(parts) == 2:
            g.goal = _int(parts[1], lineno)
        elif len(parts) == 2:
            g.add_vertex(_int(parts[0], lineno), _int(parts[1], lineno))
        elif len(parts) == 3:
            g.add_edge(_int(parts[0], lineno), _int(parts[1], lineno), _int(parts[2], lineno))
        else:
            raise ParseError(f"line {lineno}: unrecognized statement {line!r}")

    if g.start is None or g.goal is None:
        raise ParseError("input needs both an 'S,<id>' and a 'D,<id>' line")
    return g


def read_weighted_graph(path: Path) -> WeightedGraph:
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Input file not found: {path.resolve()}")
    return parse_weighted_graph(path.read_text(encoding="utf-8"))


# =========================================================
# Heuristics
# =========================================================

def h_zero(n: int, goal: int, coords: Coords) -> float:
    return 0.0


def h_euclidean(n: int, goal: int, coords: Coords) -> float:
    # vertices without a declared cell get no estimate
    if n not in coords or goal not in coords:
        return 0.0
    (x1, y1), (x2, y2) = coords[n], coords[goal]
    return math.hypot(x1 - x2, y1 - y2)


def h_manhattan(n: int, goal: int, coords: Coords) -> float:
    if n not in coords or goal not in coords:
        return 0.0
    (x1, y1), (x2, y2) = coords[n], coords[goal]
    return float(abs(x1 - x2) + abs(y1 - y2))


MODES: List[Tuple[str, Heuristic]] = [
    ("UCS (h=0)", h_zero),
    ("A* Euclidean", h_euclidean),
    ("A* Manhattan", h_manhattan),
]


# =========================================================
# A* search
# =========================================================

def a_star_search(graph: WeightedGraph, start: int, goal: int, heuristic: Heuristic = h_zero) -> SearchResult:
    """
    A* without a closed set: a vertex is pushed again whenever a strictly
    cheaper path to it is found, and stale queue entries are expanded as well.
    With h_zero this is uniform-cost search.
    """
    coords = graph.coords()
    g_cost: Dict[int, float] = {start: 0.0}
    parent: Dict[int, Optional[int]] = {start: None}
    counter = itertools.count()
    frontier: List[Tuple[float, int, int]] = [(0.0, next(counter), start)]

    expanded = 0
    pushes = 0
    max_frontier = 1
    t0 = time.perf_counter()

    while frontier:
        _, _, cur = heapq.heappop(frontier)
        expanded += 1

        if cur == goal:
            return _make_result(True, parent, goal, g_cost[goal], expanded, pushes, max_frontier,
                                time.perf_counter() - t0)

        for edge in graph.edges.get(cur, []):
            new_g = g_cost[cur] + edge.weight
            if new_g < g_cost.get(edge.to, math.inf):
                g_cost[edge.to] = new_g
                parent[edge.to] = cur
                f = new_g + heuristic(edge.to, goal, coords)
                heapq.heappush(frontier, (f, next(counter), edge.to))
                pushes += 1
        max_frontier = max(max_frontier, len(frontier))

    return _make_result(False, parent, goal, None, expanded, pushes, max_frontier, time.perf_counter() - t0)


def _make_result(found, parent, goal, cost, expanded, pushes, max_frontier, runtime) -> SearchResult:
    path = None
    if found:
        path = []
        cur = goal
        while cur is not None:
            path.append(cur)
            cur = parent[cur]
        path.reverse()
    return SearchResult(found, path, cost, expanded, pushes, max_frontier, runtime)


def format_result(result: SearchResult, mode: str) -> List[str]:
    lines = [f"MODE: {mode}"]
    lines.append(f"Optimal cost: {result.cost if result.found else 'NO PATH'}")
    if result.found:
        lines.append(f"Path: {result.path}")
    lines.append(f"Expanded: {result.expanded}")
    lines.append(f"Pushes: {result.pushes}")
    lines.append(f"Max frontier: {result.max_frontier}")
    lines.append(f"Runtime (s): {result.runtime:.6f}")
    return lines


def run_all_modes(graph: WeightedGraph) -> List[Tuple[str, SearchResult]]:
    results = []
    for name, heuristic in MODES:
        result = a_star_search(graph, graph.start, graph.goal, heuristic)
        logger.debug("%s: found=%s expanded=%d", name, result.found, result.expanded)
        results.append((name, result))
    return results


# =========================================================
# Main
# =========================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Shortest path with UCS and A* (Euclidean, Manhattan).")
    parser.add_argument("inputs", nargs="+", type=Path, help="graph files")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    args = parser.parse_args(argv)
    set_verbosity(args.verbose)

    try:
        graphs = [(path, read_weighted_graph(path)) for path in args.inputs]
    except (ParseError, OSError) as e:
        logger.error("%s", e)
        return 1

    for path, graph in graphs:
        print(f"============== {path.stem.upper()} ==============")
        for name, result in run_all_modes(graph):
            print()
            for line in format_result(result, name):
                print(line)
        print()
    return 0


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
