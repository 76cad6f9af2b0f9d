# aurbuild/modules/resolver.py

from __future__ import annotations
from collections import deque
from typing import Dict, List, Optional, Tuple, Union

from aurbuild.modules import logger as _logger
from aurbuild.modules import pacman as _pacman
from aurbuild.modules import recipe as _recipe
from aurbuild.modules.graph import DependencyGraph
from aurbuild.modules.package import AUR, PACMAN, Package, PackageInfoSource


class ResolutionError(Exception):
    def __init__(self, dependency: str, parent: Optional[str] = None, reason: Optional[str] = None):
        where = f" (required by {parent})" if parent else ""
        message = reason or "not found in either pacman or the AUR"
        super().__init__(f"Dependency '{dependency}'{where}: {message}")
        self.dependency = dependency
        self.parent = parent


class DependencyResolver:
    """
    Expands a package's declared dependencies into a full DependencyGraph.

    Each raw dependency name is classified, in order:
      1. a pacman package with that exact name
      2. a pacman package providing it (first match of `pacman -Ssq ^name$`)
      3. an AUR recipe, which must exist on the recipe host
    """

    def __init__(self, source: PackageInfoSource):
        self.source = source
        self.pacman = source.pacman
        self.host = source.host
        self.log = _logger.Logger("resolver.log")

    def classify(self, dependency: str, parent: Optional[str] = None) -> Tuple[str, str]:
        """Return (resolved name, origin) for a raw dependency name."""
        try:
            if self.pacman.exists(dependency):
                return dependency, PACMAN
            providers = self.pacman.search_providers(dependency)
        except _pacman.PacmanError as e:
            raise ResolutionError(dependency, parent, str(e)) from e

        if providers:
            if len(providers) > 1:
                self.log.warning(f"{dependency} has several providers {providers}, using {providers[0]}")
            self.log.debug(f"{dependency} is provided by {providers[0]}")
            return providers[0], PACMAN

        try:
            found = self.host.exists(dependency)
        except _recipe.UnexpectedResponseError:
            raise
        except _recipe.RecipeError as e:
            raise ResolutionError(dependency, parent, str(e)) from e
        if not found:
            raise ResolutionError(dependency, parent)
        return dependency, AUR

    def _construct(self, name: str, origin: str, parent: Optional[str]) -> Package:
        try:
            return self.source.package(name, origin)
        except _recipe.UnexpectedResponseError:
            raise
        except (_pacman.PacmanError, _recipe.RecipeError) as e:
            raise ResolutionError(name, parent, str(e)) from e

    def resolve(self, root: Union[str, Package]) -> DependencyGraph:
        """Breadth-first expansion starting at `root` (an AUR package)."""
        if isinstance(root, str):
            root = self._construct(root, AUR, None)

        graph = DependencyGraph(root)
        seen: Dict[str, Package] = {root.name: root}
        classified: Dict[str, Tuple[str, str]] = {}
        queue = deque([root])

        while queue:
            package = queue.popleft()
            dependencies: List[Package] = []
            for raw in package.depends:
                if raw not in classified:
                    classified[raw] = self.classify(raw, parent=package.name)
                name, origin = classified[raw]

                node = seen.get(name)
                if node is None:
                    node = self._construct(name, origin, package.name)
                    seen[name] = node
                    queue.append(node)
                if node not in dependencies:
                    dependencies.append(node)
            graph.add_package(package, dependencies)
            if dependencies:
                self.log.debug(f"{package} -> {dependencies}")

        return graph

    def find_missing(self, graph: DependencyGraph) -> List[Package]:
        """Packages of the graph, in install order, whose installed version does not match."""
        return [p for p in graph.topo_sort() if not p.already_installed()]

    @staticmethod
    def find_reverse_dependencies(graph: DependencyGraph, name: str) -> List[str]:
        """Names of the packages that directly depend on `name`."""
        return [parent for parent, deps in graph.graph.items() if name in deps]
