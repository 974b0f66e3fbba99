"""
Graph coloring from a text file: parse, solve, report.

Input format (one statement per line, '#' comments):
    colors=3
    1,2
    2,3
    7        <- a vertex with no edges
"""

from __future__ import annotations

import argparse
import csv
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import matplotlib
import matplotlib.pyplot as plt
import networkx as nx

import csp
from logging_utils import get_logger, set_verbosity

logger = get_logger()


# =========================
# [01] Settings
# =========================

DEFAULT_TRACE_EVENTS = {"ASSIGN", "BACKTRACK", "GOAL"}

FIG_SIZE = (8, 8)
TITLE = "Graph coloring (CSP)"
NODE_SIZE = 600
UNCOLORED = (0.85, 0.85, 0.85, 1.0)


# =========================
# [02] Load
# =========================

def load_graph(path: Path) -> Tuple[csp.ConstraintGraph, int]:
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Input file not found: {path.resolve()}")

    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise csp.ParseError(f"{path}: not valid UTF-8 text ({e.reason} at byte {e.start})") from e

    graph, colors = csp.parse_graph(text)
    logger.info("Loaded %s: %d variables, %d edges, colors=%d",
                path, graph.variable_count(), len(graph.edges()), colors)
    return graph, colors


# =========================
# [03] Solve CSP + trace
# =========================

def solve_graph_coloring(
    graph: csp.ConstraintGraph,
    colors: int,
    use_ac3: bool = True,
    log_events: Optional[set] = None,
    collect_trace: bool = False,
) -> Tuple[Optional[Dict[int, int]], List[Dict[str, Any]]]:
    """The trace is only recorded with collect_trace; otherwise it comes back empty."""
    problem = csp.GraphColoringCSP(colors, graph)
    trace: List[Dict[str, Any]] = []

    solution = csp.backtracking_search(
        problem,
        select_unassigned_variable=csp.mrv,
        order_domain_values=csp.lcv,
        inference=csp.ac3 if use_ac3 else csp.no_inference,
        trace=trace if collect_trace else None,
    )

    if log_events is not None:
        trace = [t for t in trace if t.get("event") in log_events]

    return solution, trace


def format_solution(solution: Optional[Dict[int, int]]) -> List[str]:
    if solution is None:
        return ["failure"]
    return [f"Var {v} -> Color {solution[v]}" for v in sorted(solution)]


def save_trace(trace: List[Dict[str, Any]], json_path: Optional[Path], csv_path: Optional[Path]) -> None:
    if json_path is not None:
        with Path(json_path).open("w", encoding="utf-8") as f:
            json.dump(trace, f, ensure_ascii=False, indent=2)

    if csv_path is not None:
        fieldnames = list(trace[0].keys()) if trace else ["step", "depth", "event", "var", "val", "assignment"]
        with Path(csv_path).open("w", encoding="utf-8", newline="") as f:
            w = csv.DictWriter(f, fieldnames=fieldnames)
            w.writeheader()
            for row in trace:
                w.writerow(row)


# =========================
# [04] Plotting
# =========================

def to_networkx(graph: csp.ConstraintGraph) -> nx.Graph:
    """Constraint graph -> nx.Graph, nodes in ascending id order."""
    G = nx.Graph()
    G.add_nodes_from(graph.variables())
    G.add_edges_from(graph.edges())
    return G


def build_plot_colors(
    variables: Sequence[int],
    colors: int,
    solution: Optional[Dict[int, int]],
) -> Dict[int, Tuple[float, float, float, float]]:
    """variable -> RGBA; gray when there is no solution."""
    color_dict = {v: UNCOLORED for v in variables}
    if solution:
        cmap = matplotlib.colormaps["tab20"].resampled(max(1, colors))
        for v, value in solution.items():
            color_dict[v] = cmap(value - 1)
    return color_dict


def plot_coloring(
    graph: csp.ConstraintGraph,
    color_dict: Dict[int, Tuple[float, float, float, float]],
    title: str = TITLE,
    fig_size: Tuple[int, int] = FIG_SIZE,
    out_path: Optional[Path] = None,
) -> None:
    G = to_networkx(graph)
    pos = nx.circular_layout(G)
    fig, ax = plt.subplots(figsize=fig_size)

    nx.draw_networkx(
        G,
        pos,
        ax=ax,
        node_color=[color_dict[v] for v in G.nodes()],
        node_size=NODE_SIZE,
        edgecolors="black",
        font_size=9,
        width=0.8,
    )

    ax.set_title(title)
    ax.set_aspect("equal")
    ax.set_axis_off()

    if out_path is not None:
        fig.savefig(out_path)
        plt.close(fig)
        logger.info("Saved plot to %s", Path(out_path).resolve())
    else:
        plt.show()


# =========================
# [05] Main
# =========================

def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Color a graph with backtracking search, AC-3, MRV and LCV.")
    parser.add_argument("input", type=Path, help="graph file (colors=K, u,v edge lines)")
    parser.add_argument("--trace-json", type=Path, help="write the search trace as JSON")
    parser.add_argument("--trace-csv", type=Path, help="write the search trace as CSV")
    parser.add_argument("--trace-all", action="store_true",
                        help="keep every trace event, not only ASSIGN/BACKTRACK/GOAL")
    parser.add_argument("--plot", nargs="?", const="", default=None, metavar="PNG",
                        help="draw the colored graph; save to PNG if given, else show a window")
    parser.add_argument("--no-ac3", action="store_true", help="disable arc consistency propagation")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    set_verbosity(args.verbose)

    try:
        graph, colors = load_graph(args.input)
    except (csp.ParseError, OSError) as e:
        logger.error("%s", e)
        return 1

    solution, trace = solve_graph_coloring(
        graph,
        colors,
        use_ac3=not args.no_ac3,
        log_events=None if args.trace_all else DEFAULT_TRACE_EVENTS,
        collect_trace=bool(args.trace_json or args.trace_csv),
    )

    for line in format_solution(solution):
        print(line)

    if args.trace_json or args.trace_csv:
        save_trace(trace, args.trace_json, args.trace_csv)
        logger.info("Saved %d trace events", len(trace))

    if args.plot is not None:
        color_dict = build_plot_colors(graph.variables(), colors, solution)
        plot_coloring(graph, color_dict, out_path=Path(args.plot) if args.plot else None)

    return 0


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
