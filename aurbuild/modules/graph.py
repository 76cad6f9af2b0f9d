# aurbuild/modules/graph.py

from __future__ import annotations
from typing import Dict, List, Optional

from aurbuild.modules.package import Package


class CycleError(Exception):
    def __init__(self, cycle: List[str]):
        super().__init__("Dependency cycle detected: " + " -> ".join(cycle))
        self.cycle = cycle


class DependencyGraph:
    """
    Dependency graph between packages, keyed by package name.
    Used to order builds/installs and to detect cycles.
    """

    def __init__(self, root: Optional[Package] = None):
        self.root = root
        self.nodes: Dict[str, Package] = {}    # {name: Package}
        self.graph: Dict[str, List[str]] = {}  # {name: [dependency names]}
        if root is not None:
            self.nodes[root.name] = root

    def add_package(self, package: Package, dependencies: List[Package]):
        """Record a package and its direct dependencies; the latest node for a name wins."""
        self.nodes[package.name] = package
        for dep in dependencies:
            self.nodes[dep.name] = dep
        self.graph[package.name] = [dep.name for dep in dependencies]

    def dependencies(self, name: str) -> List[Package]:
        return [self.nodes[d] for d in self.graph.get(name, [])]

    def validate(self):
        """Every dependency referenced by an edge must itself be expanded."""
        for name, deps in self.graph.items():
            for dep in deps:
                if dep not in self.graph:
                    raise ValueError(f"Dependency '{dep}' of '{name}' was never expanded")

    def topo_sort(self) -> List[Package]:
        """
        Return packages so that every dependency precedes its dependents.
        Depth-first postorder, visiting keys in insertion order and children
        in declared order, so the result is stable for a given graph.
        """
        self.validate()
        white, gray, black = 0, 1, 2
        state = {name: white for name in self.graph}
        ordered: List[Package] = []

        for start in self.graph:
            if state[start] != white:
                continue
            state[start] = gray
            stack = [(start, iter(self.graph[start]))]
            while stack:
                name, children = stack[-1]
                for child in children:
                    if state[child] == gray:
                        path = [n for n, _ in stack]
                        raise CycleError(path[path.index(child):] + [child])
                    if state[child] == white:
                        state[child] = gray
                        stack.append((child, iter(self.graph[child])))
                        break
                else:
                    stack.pop()
                    state[name] = black
                    ordered.append(self.nodes[name])
        return ordered

    def detect_cycles(self) -> Optional[List[str]]:
        """Return one cycle as a list of names, or None when the graph is a DAG."""
        try:
            self.topo_sort()
        except CycleError as e:
            return e.cycle
        return None

    # ---------------------------
    # Rendering
    # ---------------------------
    def to_dict(self) -> Dict[str, List[str]]:
        return {
            str(self.nodes[name]): [str(self.nodes[d]) for d in deps]
            for name, deps in self.graph.items()
        }

    def to_dot(self) -> str:
        lines = ["digraph dependencies {"]
        for name, deps in self.graph.items():
            shape = "box" if self.nodes[name].is_aur() else "ellipse"
            lines.append(f'  "{name}" [shape={shape}];')
            for d in deps:
                lines.append(f'  "{name}" -> "{d}";')
        lines.append("}")
        return "\n".join(lines) + "\n"

    def export_dot(self, output: str = "deps.dot") -> str:
        with open(output, "w", encoding="utf-8") as fh:
            fh.write(self.to_dot())
        return output
