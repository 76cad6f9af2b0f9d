import pytest

from aurbuild.modules.graph import CycleError, DependencyGraph
from aurbuild.modules.package import PACMAN


def _graph(make_package, edges, pacman=()):
    """edges: {name: [dependency names]} in insertion order."""
    pkgs = {}
    for name in list(edges) + [d for deps in edges.values() for d in deps]:
        if name not in pkgs:
            pkgs[name] = make_package(name, origin=PACMAN if name in pacman else "aur")
    graph = DependencyGraph(pkgs[next(iter(edges))])
    for name, deps in edges.items():
        graph.add_package(pkgs[name], [pkgs[d] for d in deps])
    return graph


def _assert_valid_order(graph, order):
    position = {p.name: i for i, p in enumerate(order)}
    assert set(position) == set(graph.graph)
    for name, deps in graph.graph.items():
        for dep in deps:
            assert position[dep] < position[name]


def test_topo_sort_dependencies_first(make_package):
    graph = _graph(make_package, {
        "root": ["a", "b"],
        "a": ["c"],
        "b": ["c", "d"],
        "c": [],
        "d": [],
    })
    order = graph.topo_sort()
    _assert_valid_order(graph, order)
    assert order[-1].name == "root"
    assert [p.name for p in order] == ["c", "a", "d", "b", "root"]


def test_topo_sort_is_deterministic(make_package):
    edges = {"root": ["x", "y", "z"], "x": ["z"], "y": [], "z": []}
    first = [p.name for p in _graph(make_package, edges).topo_sort()]
    for _ in range(5):
        assert [p.name for p in _graph(make_package, edges).topo_sort()] == first


def test_topo_sort_cycle(make_package):
    graph = _graph(make_package, {"x": ["y"], "y": ["z"], "z": ["x"]})
    with pytest.raises(CycleError) as exc:
        graph.topo_sort()
    assert exc.value.cycle == ["x", "y", "z", "x"]


def test_self_dependency_is_a_cycle(make_package):
    graph = _graph(make_package, {"x": ["x"]})
    assert graph.detect_cycles() == ["x", "x"]


def test_detect_cycles_none_on_dag(make_package):
    assert _graph(make_package, {"a": ["b"], "b": []}).detect_cycles() is None


def test_validate_rejects_unexpanded_dependency(make_package):
    graph = DependencyGraph()
    graph.add_package(make_package("a"), [make_package("b")])
    with pytest.raises(ValueError):
        graph.topo_sort()


def test_dependencies_keep_declared_order(make_package):
    graph = _graph(make_package, {"root": ["b", "a"], "a": [], "b": []})
    assert [p.name for p in graph.dependencies("root")] == ["b", "a"]
    assert graph.dependencies("a") == []


def test_to_dict(make_package):
    graph = _graph(make_package, {"root": ["cmake"], "cmake": []}, pacman={"cmake"})
    assert graph.to_dict() == {"Aur(root-1.0-1)": ["Pacman(cmake-1.0-1)"], "Pacman(cmake-1.0-1)": []}


def test_export_dot(make_package, tmp_path):
    graph = _graph(make_package, {"root": ["cmake"], "cmake": []}, pacman={"cmake"})
    out = graph.export_dot(str(tmp_path / "deps.dot"))
    text = open(out, encoding="utf-8").read()
    assert text.startswith("digraph dependencies {")
    assert '"root" [shape=box];' in text
    assert '"cmake" [shape=ellipse];' in text
    assert '"root" -> "cmake";' in text
