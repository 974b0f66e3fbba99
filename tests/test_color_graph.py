import csv
import json

import pytest

import color_graph
import csp

TRIANGLE = "colors={k}\n1,2\n2,3\n1,3\n"


@pytest.fixture
def write_input(tmp_path):
    def _write(text, name="graph.txt"):
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path
    return _write


def test_format_solution():
    assert color_graph.format_solution(None) == ["failure"]
    assert color_graph.format_solution({3: 1, 1: 2}) == ["Var 1 -> Color 2", "Var 3 -> Color 1"]


def test_load_graph_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        color_graph.load_graph(tmp_path / "nope.txt")


def test_main_prints_coloring(write_input, capsys):
    assert color_graph.main([str(write_input(TRIANGLE.format(k=3)))]) == 0
    assert capsys.readouterr().out.splitlines() == [
        "Var 1 -> Color 1",
        "Var 2 -> Color 2",
        "Var 3 -> Color 3",
    ]


def test_main_prints_failure(write_input, capsys):
    assert color_graph.main([str(write_input(TRIANGLE.format(k=2)))]) == 0
    assert capsys.readouterr().out == "failure\n"


def test_main_lone_vertex(write_input, capsys):
    assert color_graph.main([str(write_input("colors=1\n4\n"))]) == 0
    assert capsys.readouterr().out == "Var 4 -> Color 1\n"


def test_main_parse_error_prints_nothing(write_input, capsys):
    assert color_graph.main([str(write_input("colors=3\n1,two\n"))]) == 1
    assert capsys.readouterr().out == ""


def test_main_missing_file(tmp_path, capsys):
    assert color_graph.main([str(tmp_path / "missing.txt")]) == 1
    assert capsys.readouterr().out == ""


def test_main_without_ac3(write_input, capsys):
    assert color_graph.main([str(write_input("colors=1\n1,2\n")), "--no-ac3"]) == 0
    assert capsys.readouterr().out == "failure\n"


def test_solve_filters_trace_events():
    graph, colors = csp.parse_graph(TRIANGLE.format(k=3))
    solution, trace = color_graph.solve_graph_coloring(graph, colors, log_events={"GOAL"}, collect_trace=True)
    assert solution == {1: 1, 2: 2, 3: 3}
    assert [t["event"] for t in trace] == ["GOAL"]


def test_solve_keeps_no_trace_by_default(monkeypatch):
    seen = []
    search = csp.backtracking_search

    def spy(problem, **kwargs):
        seen.append(kwargs.get("trace"))
        return search(problem, **kwargs)

    monkeypatch.setattr(csp, "backtracking_search", spy)
    graph, colors = csp.parse_graph(TRIANGLE.format(k=2))
    solution, trace = color_graph.solve_graph_coloring(graph, colors, log_events=color_graph.DEFAULT_TRACE_EVENTS)
    assert solution is None
    assert trace == []
    assert seen == [None]


def test_load_graph_rejects_invalid_utf8(tmp_path):
    path = tmp_path / "binary.txt"
    path.write_bytes(b"colors=2\n1,\xff\xfe\n")
    with pytest.raises(csp.ParseError):
        color_graph.load_graph(path)


def test_main_invalid_utf8_exits_with_error(tmp_path, capsys):
    path = tmp_path / "binary.txt"
    path.write_bytes(b"\xff\xfe\x00colors=2\n")
    assert color_graph.main([str(path)]) == 1
    assert capsys.readouterr().out == ""


def test_main_writes_trace(write_input, tmp_path):
    json_path = tmp_path / "trace.json"
    csv_path = tmp_path / "trace.csv"
    args = [str(write_input(TRIANGLE.format(k=3))), "--trace-json", str(json_path),
            "--trace-csv", str(csv_path), "--trace-all"]
    assert color_graph.main(args) == 0

    events = json.loads(json_path.read_text(encoding="utf-8"))
    assert events[-1]["event"] == "GOAL"
    assert events[-1]["assignment"] == {"1": 1, "2": 2, "3": 3}

    with csv_path.open(encoding="utf-8", newline="") as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == len(events)
    assert rows[0]["event"] == "TRY"


def test_save_empty_trace_csv(tmp_path):
    csv_path = tmp_path / "empty.csv"
    color_graph.save_trace([], None, csv_path)
    assert csv_path.read_text(encoding="utf-8").strip() == "step,depth,event,var,val,assignment"


def test_to_networkx_keeps_nodes_and_edges():
    graph = csp.ConstraintGraph([(2, 1), (2, 3)], vertices=[9])
    G = color_graph.to_networkx(graph)
    assert list(G.nodes()) == [1, 2, 3, 9]
    assert sorted(tuple(sorted(e)) for e in G.edges()) == [(1, 2), (2, 3)]


def test_build_plot_colors():
    colors = color_graph.build_plot_colors([1, 2, 3], 2, {1: 1, 2: 2, 3: 1})
    assert colors[1] == colors[3]
    assert colors[1] != colors[2]
    assert color_graph.build_plot_colors([1], 2, None) == {1: color_graph.UNCOLORED}


def test_main_saves_plot(write_input, tmp_path):
    out = tmp_path / "coloring.png"
    assert color_graph.main([str(write_input(TRIANGLE.format(k=3))), "--plot", str(out)]) == 0
    assert out.is_file() and out.stat().st_size > 0
