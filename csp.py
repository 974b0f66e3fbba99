# csp.py: graph coloring CSP (backtracking + AC-3 + MRV/LCV)

from __future__ import annotations

from collections import deque
from typing import Any, Callable, Deque, Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple

from logging_utils import get_logger

logger = get_logger()

Variable = int
Assignment = Dict[Variable, int]
Arc = Tuple[Variable, Variable]


class ParseError(ValueError):
    """Malformed or missing tokens in a graph coloring input."""


# -----------------------------
# Constraint graph
# -----------------------------

class ConstraintGraph:
    """
    Undirected adjacency, built once from vertices and edges.
    Symmetric and irreflexive; never mutated after construction.
    """

    def __init__(self, edges: Iterable[Tuple[Variable, Variable]] = (), vertices: Iterable[Variable] = ()):
        adjacency: Dict[Variable, set] = {}
        for v in vertices:
            adjacency.setdefault(v, set())
        for u, v in edges:
            if u == v:
                raise ValueError(f"Self-loop on variable {u}")
            adjacency.setdefault(u, set()).add(v)
            adjacency.setdefault(v, set()).add(u)

        self._adjacency: Dict[Variable, FrozenSet[Variable]] = {
            v: frozenset(adjacency[v]) for v in sorted(adjacency)
        }

    def variables(self) -> List[Variable]:
        return list(self._adjacency)

    def neighbors(self, v: Variable) -> FrozenSet[Variable]:
        return self._adjacency.get(v, frozenset())

    def variable_count(self) -> int:
        return len(self._adjacency)

    def edges(self) -> List[Tuple[Variable, Variable]]:
        """Each undirected edge once, as (smaller id, larger id)."""
        return [(u, v) for u in self._adjacency for v in sorted(self._adjacency[u]) if u < v]

    def __contains__(self, v: object) -> bool:
        return v in self._adjacency

    def __repr__(self) -> str:
        return f"ConstraintGraph(variables={self.variable_count()}, edges={len(self.edges())})"


# -----------------------------
# Domains
# -----------------------------

class DomainStore:
    """
    Candidate values per variable. Every search branch works on its own clone().

    clone() is copy-on-write: the mapping and the per-variable lists stay shared
    until one side removes a value, and only the touched list is copied.
    domain_of() results are read-only views.
    """

    def __init__(self, domains: Dict[Variable, List[int]]):
        self._domains = domains
        self._owns_mapping = True
        self._owned = set(domains)  # variables whose list only this store references

    @classmethod
    def initial(cls, variables: Iterable[Variable], colors: int) -> "DomainStore":
        return cls({v: list(range(1, colors + 1)) for v in variables})

    def domain_of(self, v: Variable) -> List[int]:
        return self._domains[v]

    def _writable(self, v: Variable) -> List[int]:
        if not self._owns_mapping:
            self._domains = dict(self._domains)
            self._owns_mapping = True
        if v not in self._owned:
            self._domains[v] = list(self._domains[v])
            self._owned.add(v)
        return self._domains[v]

    def remove_value(self, v: Variable, val: int) -> bool:
        if val in self._domains[v]:
            self._writable(v).remove(val)
            return True
        return False

    def is_empty(self, v: Variable) -> bool:
        return not self._domains[v]

    def clone(self) -> "DomainStore":
        # from here on both stores share every list
        self._owns_mapping = False
        self._owned = set()
        copy = DomainStore.__new__(DomainStore)
        copy._domains = self._domains
        copy._owns_mapping = False
        copy._owned = set()
        return copy

    def as_dict(self) -> Dict[Variable, List[int]]:
        return {v: list(d) for v, d in self._domains.items()}

    def __contains__(self, v: object) -> bool:
        return v in self._domains

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DomainStore):
            return NotImplemented
        return self._domains == other._domains

    def __repr__(self) -> str:
        return f"DomainStore({self._domains!r})"


# -----------------------------
# CSP core
# -----------------------------

class CSP:
    """Graph coloring instance: constraint graph + palette size K (colors 1..K)."""

    def __init__(self, graph: ConstraintGraph, colors: int):
        self.graph = graph
        self.colors = colors
        self.nassigns = 0

    @property
    def variables(self) -> List[Variable]:
        return self.graph.variables()

    def initial_domains(self) -> DomainStore:
        return DomainStore.initial(self.graph.variables(), self.colors)

    def assign(self, var: Variable, val: int, assignment: Assignment) -> None:
        assignment[var] = val
        self.nassigns += 1

    def unassign(self, var: Variable, assignment: Assignment) -> None:
        if var in assignment:
            del assignment[var]

    def nconflicts(self, var: Variable, val: int, assignment: Assignment) -> int:
        """How many already-assigned neighbors of var hold val."""
        return sum(1 for n in self.graph.neighbors(var) if assignment.get(n) == val)

    def is_goal(self, assignment: Assignment) -> bool:
        if len(assignment) != self.graph.variable_count():
            return False
        return all(self.nconflicts(v, assignment[v], assignment) == 0 for v in self.graph.variables())


# -----------------------------
# Heuristics
# -----------------------------

def first_unassigned_variable(assignment: Assignment, csp: CSP, domains: DomainStore) -> Variable:
    return next(v for v in csp.graph.variables() if v not in assignment)


def mrv(assignment: Assignment, csp: CSP, domains: DomainStore) -> Variable:
    """
    Minimum remaining values: the unassigned variable with the smallest current domain.
    Ties go to the smallest variable id.
    """
    unassigned = [v for v in csp.graph.variables() if v not in assignment]
    return min(unassigned, key=lambda v: len(domains.domain_of(v)))


def unordered_domain_values(var: Variable, assignment: Assignment, csp: CSP, domains: DomainStore) -> List[int]:
    return list(domains.domain_of(var))


def lcv(var: Variable, assignment: Assignment, csp: CSP, domains: DomainStore) -> List[int]:
    """
    Least constraining value: values that appear in the fewest neighbor domains first.
    sorted() is stable, so ties keep domain order.
    """
    def conflict_count(val: int) -> int:
        return sum(
            1 for n in csp.graph.neighbors(var)
            if n in domains and val in domains.domain_of(n)
        )

    return sorted(domains.domain_of(var), key=conflict_count)


# -----------------------------
# Inference
# -----------------------------

def no_inference(csp: CSP, domains: DomainStore) -> bool:
    return True


def revise(domains: DomainStore, x: Variable, y: Variable) -> bool:
    """
    Drop val from D(x) when every value left in D(y) equals val.
    With unique domain values that is exactly D(y) == [val].
    """
    y_domain = domains.domain_of(y)
    if not y_domain:
        return False
    val = y_domain[0]
    # only a val that every member of D(y) equals can be pruned, i.e. y_domain[0]
    if any(other != val for other in y_domain):
        return False
    return domains.remove_value(x, val)


def ac3(csp: CSP, domains: DomainStore) -> bool:
    """
    AC-3 over every directed arc of the graph, pruning `domains` in place.
    Returns False as soon as some domain becomes empty.
    """
    graph = csp.graph
    queue: Deque[Arc] = deque((x, y) for x in graph.variables() for y in sorted(graph.neighbors(x)))
    revisions = 0

    while queue:
        x, y = queue.popleft()
        if revise(domains, x, y):
            revisions += 1
            if domains.is_empty(x):
                logger.debug("AC-3 wiped out domain of %s after %d revisions", x, revisions)
                return False
            for z in sorted(graph.neighbors(x)):
                if z != y:
                    queue.append((z, x))
    return True


# -----------------------------
# Backtracking search (DFS)
# -----------------------------

SelectFn = Callable[[Assignment, CSP, DomainStore], Variable]
OrderFn = Callable[[Variable, Assignment, CSP, DomainStore], List[int]]
InferenceFn = Callable[[CSP, DomainStore], bool]


class _Frame:
    """One level of the search: variable, remaining ordered values, domains at this node."""

    __slots__ = ("var", "values", "domains", "value")

    def __init__(self, var: Variable, values: Iterable[int], domains: DomainStore):
        self.var = var
        self.values: Iterator[int] = iter(values)
        self.domains = domains
        self.value: Optional[int] = None


def backtracking_search(
    csp: CSP,
    select_unassigned_variable: SelectFn = mrv,
    order_domain_values: OrderFn = lcv,
    inference: InferenceFn = ac3,
    trace: Optional[List[Dict[str, Any]]] = None,
) -> Optional[Assignment]:
    """
    Depth-first backtracking over partial assignments, driven by an explicit
    stack of frames so deep graphs do not hit the recursion limit.
    Each tried value runs inference on a private clone of the current domains,
    so sibling branches never see each other's pruning.

    Returns a complete assignment, or None when the instance is unsatisfiable.
    trace events: TRY, CONFLICT, ASSIGN, INFER_FAIL, BACKTRACK, GOAL
    """

    step = 0
    total = csp.graph.variable_count()

    def log(event: str, assignment: Assignment, var: Optional[Variable] = None, val: Any = None):
        nonlocal step
        step += 1
        logger.debug("%s depth=%d var=%s val=%s", event, len(assignment), var, val)
        if trace is None:
            return
        trace.append({
            "step": step,
            "depth": len(assignment),
            "event": event,
            "var": var,
            "val": val,
            "assignment": dict(assignment),  # snapshot
        })

    assignment: Assignment = {}
    stack: List[_Frame] = []

    def descend(domains: DomainStore) -> Optional[Assignment]:
        """Goal check, otherwise push a frame for the next variable."""
        if len(assignment) == total:
            log("GOAL", assignment)
            return dict(assignment)
        var = select_unassigned_variable(assignment, csp, domains)
        stack.append(_Frame(var, order_domain_values(var, assignment, csp, domains), domains))
        return None

    result = descend(csp.initial_domains())

    while result is None and stack:
        frame = stack[-1]
        var = frame.var

        if var in assignment:
            # the subtree under frame.value was exhausted
            csp.unassign(var, assignment)
            log("BACKTRACK", assignment, var, frame.value)

        value = next(frame.values, None)
        if value is None:
            stack.pop()
            continue
        frame.value = value
        log("TRY", assignment, var, value)

        if csp.nconflicts(var, value, assignment) != 0:
            log("CONFLICT", assignment, var, value)
            continue

        csp.assign(var, value, assignment)
        log("ASSIGN", assignment, var, value)

        local_domains = frame.domains.clone()
        if inference(csp, local_domains):
            result = descend(local_domains)
        else:
            log("INFER_FAIL", assignment, var, value)
            csp.unassign(var, assignment)
            log("BACKTRACK", assignment, var, value)

    if result is not None and not csp.is_goal(result):
        raise AssertionError("Solver returned an invalid assignment.")

    logger.info(
        "Search %s: %d variables, %d colors, %d assignments tried",
        "succeeded" if result is not None else "exhausted",
        total, csp.colors, csp.nassigns,
    )
    return result


# -----------------------------
# Graph coloring input
# -----------------------------

def _parse_int(token: str, lineno: int, line: str) -> int:
    try:
        return int(token.strip())
    except ValueError:
        raise ParseError(f"line {lineno}: bad integer {token.strip()!r} in {line!r}") from None


def parse_graph(text: str) -> Tuple[ConstraintGraph, int]:
    """
    Text -> (constraint graph, number of colors).

        # comment
        colors=3
        1,2
        2,3
        4          <- lone vertex
    """
    colors: Optional[int] = None
    edges: List[Tuple[int, int]] = []
    vertices: List[int] = []

    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue

        if line.startswith("colors="):
            if colors is not None:
                raise ParseError(f"line {lineno}: colors declared twice")
            colors = _parse_int(line.split("=", 1)[1], lineno, line)
            if colors < 0:
                raise ParseError(f"line {lineno}: negative number of colors {colors}")
            continue

        parts = line.split(",")
        if len(parts) == 1:
            vertices.append(_parse_int(parts[0], lineno, line))
        elif len(parts) == 2:
            u = _parse_int(parts[0], lineno, line)
            v = _parse_int(parts[1], lineno, line)
            if u == v:
                raise ParseError(f"line {lineno}: self-loop on variable {u}")
            edges.append((u, v))
        else:
            raise ParseError(f"line {lineno}: expected 'u,v' or a single vertex, got {line!r}")

    if colors is None:
        raise ParseError("missing 'colors=K' line")

    return ConstraintGraph(edges, vertices), colors


def GraphColoringCSP(colors: int, graph: ConstraintGraph | str) -> CSP:
    """
    Build a CSP for graph coloring.
    graph: ConstraintGraph, or edge text without a colors line ("1,2\\n2,3").
    """
    if isinstance(graph, str):
        graph, _ = parse_graph(f"colors={colors}\n{graph}")
    return CSP(graph, colors)
