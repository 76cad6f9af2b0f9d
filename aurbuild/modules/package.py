# aurbuild/modules/package.py
"""
Resolved package nodes and the query source that builds them.

A Package is a snapshot taken once, at construction: latest version/arch and
declared dependencies from its origin, plus the installed version (if any)
from the local database. Two packages with the same name are the same node.
"""

from __future__ import annotations
from typing import NamedTuple, Optional, Tuple

from aurbuild.modules import logger as _logger
from aurbuild.modules import pacman as _pacman
from aurbuild.modules import recipe as _recipe
from aurbuild.modules import sandbox as _sandbox

# origins
AUR = "aur"
PACMAN = "pacman"


class PackageInfo(NamedTuple):
    version: str
    arch: str
    depends: Tuple[str, ...] = ()


class InstalledInfo(NamedTuple):
    version: str
    arch: str


class Package:
    def __init__(self,
                 name: str,
                 origin: str,
                 info: PackageInfo,
                 installed: Optional[InstalledInfo] = None):
        if origin not in (AUR, PACMAN):
            raise ValueError(f"Unknown origin: {origin}")
        self.name = name
        self.origin = origin
        self.version = info.version
        self.arch = info.arch
        # pacman resolves its own dependencies
        self.depends = tuple(info.depends) if origin == AUR else ()
        self.installed = installed

    def __repr__(self):
        if self.is_aur():
            return f"Aur({self.name}-{self.version})"
        return f"Pacman({self.name}-{self.version})"

    __str__ = __repr__

    def __eq__(self, other):
        if not isinstance(other, Package):
            return NotImplemented
        return self.name == other.name

    def __hash__(self):
        return hash(self.name)

    def is_aur(self) -> bool:
        return self.origin == AUR

    def already_installed(self) -> bool:
        return self.installed is not None and self.installed.version == self.version

    def artifact_name(self, pkgext: str) -> str:
        return f"{self.name}-{self.version}-{self.arch}{pkgext}"


class PackageInfoSource:
    """Read-only queries against pacman and the recipe host."""

    def __init__(self,
                 pacman: Optional[_pacman.Pacman] = None,
                 host: Optional[_recipe.RecipeHost] = None,
                 sandbox: Optional[_sandbox.RecipeSandbox] = None):
        self.pacman = pacman or _pacman.Pacman()
        self.host = host or _recipe.RecipeHost()
        self.sandbox = sandbox or _sandbox.RecipeSandbox()
        self.log = _logger.Logger("package.log")

    def fetch_latest_info(self, name: str, origin: str) -> PackageInfo:
        if origin == AUR:
            text = self.host.fetch_recipe_text(name)
            data = self.sandbox.evaluate(text, name=name)
            return PackageInfo(data["version"], data["arch"], tuple(data["depends"]))
        if origin == PACMAN:
            data = self.pacman.query_remote(name)
            if data is None:
                raise _pacman.PacmanError(f"Package '{name}' not found in the sync databases")
            return PackageInfo(data["version"], data["arch"], ())
        raise ValueError(f"Unknown origin: {origin}")

    def installed_info(self, name: str) -> Optional[InstalledInfo]:
        data = self.pacman.query_installed(name)
        if data is None:
            return None
        return InstalledInfo(data["version"], data["arch"])

    def package(self, name: str, origin: str) -> Package:
        pkg = Package(name, origin, self.fetch_latest_info(name, origin), self.installed_info(name))
        self.log.debug(f"Constructed {pkg} (installed={pkg.installed.version if pkg.installed else None})")
        return pkg

    def aur(self, name: str) -> Package:
        return self.package(name, AUR)

    def pacman_package(self, name: str) -> Package:
        return self.package(name, PACMAN)
