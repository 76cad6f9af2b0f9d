# aurbuild/modules/build.py
"""
AUR build orchestrator.

Actions (mirroring a configuration-management resource):
 - build:   build the target's package file unless one already exists
 - install: install the target's built package file unless already installed
 - sync:    resolve the full dependency graph and build/install everything
            missing, dependencies first (ensure_installed)

Decisions are taken only from what is on disk and in the pacman database at
the time they are needed:
 - installed  <=> installed version == latest version (exact string match)
 - built      <=> {build_dir}/{name}/{name}-{version}-{arch}{pkgext} exists,
                  or any {name}-*{pkgext} in that directory
"""

from __future__ import annotations
import glob
import os
from typing import Any, Dict, List, Optional

from aurbuild.modules import actions as _actions
from aurbuild.modules import keys as _keys
from aurbuild.modules import logger as _logger
from aurbuild.modules import pacman as _pacman
from aurbuild.modules import runner as _runner
from aurbuild.modules.config import config
from aurbuild.modules.options import BuildOptions
from aurbuild.modules.package import Package, PackageInfoSource
from aurbuild.modules.resolver import DependencyResolver


class BuildError(Exception):
    pass


class InstallError(Exception):
    pass


class BuildManager:
    def __init__(self,
                 options: Optional[BuildOptions] = None,
                 source: Optional[PackageInfoSource] = None,
                 actions: Optional[_actions.ActionExecutor] = None,
                 keys: Optional[_keys.KeyImporter] = None,
                 dry_run: bool = False,
                 pkgext: Optional[str] = None):
        self.options = options or BuildOptions.from_config()
        self.dry_run = dry_run
        self.pkgext = pkgext or config.get("aur", "pkgext", fallback=".pkg.tar.zst")

        runner = _runner.CommandRunner(dry_run=dry_run)
        if source is None:
            source = PackageInfoSource(pacman=_pacman.Pacman(
                runner=runner,
                install_user=self.options.install_user,
                install_group=self.options.install_group,
            ))
        self.source = source
        self.pacman = source.pacman
        self.host = source.host
        self.resolver = DependencyResolver(source)
        self.actions = actions or _actions.ActionExecutor(runner=runner, dry_run=dry_run)
        self.keys = keys or _keys.KeyImporter(runner=runner, keyserver=self.options.keyserver)
        self._keys_imported = False

        self.log = _logger.Logger("build-manager.log")

    # ---------------------------
    # Build state
    # ---------------------------
    def expected_artifact(self, package: Package) -> str:
        return os.path.join(self.options.package_dir(package.name), package.artifact_name(self.pkgext))

    def aurfile_path(self, package: Package) -> str:
        """
        Exact artifact path if present, else the first `{name}-*` package file
        in the package's build directory, else the exact (missing) path.
        """
        exact = self.expected_artifact(package)
        if self.actions.exists(exact):
            return exact
        pattern = os.path.join(self.options.package_dir(package.name),
                               glob.escape(package.name) + "-*" + self.pkgext)
        candidates = sorted(glob.glob(pattern))
        if candidates:
            return candidates[0]
        return exact

    def already_built(self, package: Package) -> bool:
        return self.actions.exists(self.aurfile_path(package))

    # ---------------------------
    # Build / install steps
    # ---------------------------
    def _import_keys(self):
        opts = self.options
        if self._keys_imported or not opts.keys:
            return
        try:
            self.keys.import_keys(opts.keys, user=opts.build_user, group=opts.build_group)
        except _keys.KeyImportError as e:
            raise BuildError(str(e)) from e
        self._keys_imported = True

    def build_aur(self, package: Package) -> str:
        """Build `package` with makepkg and return the path of the produced package file."""
        opts = self.options
        name = package.name
        pkgdir = opts.package_dir(name)
        pkgbuild = opts.pkgbuild_path(name)
        expected = self.expected_artifact(package)
        owner, group = opts.build_user, opts.build_group

        self._import_keys()
        try:
            self.log.debug("Creating build directory")
            self.actions.create_directory(opts.build_dir, owner=owner, group=group, mode=0o755)

            self.log.debug(f"Retrieving source for {name}")
            snapshot = opts.snapshot_path(name)
            self.actions.download(self.host.snapshot_url(name), snapshot, owner=owner, group=group)

            self.log.debug(f"Untarring source package for {name}")
            self.actions.extract(os.path.basename(snapshot), cwd=opts.build_dir, user=owner, group=group)

            override = opts.pkgbuild_overrides.get(name)
            if override:
                self.log.debug(f"Replacing PKGBUILD of {name} with {override}")
                self.actions.overlay(override, pkgbuild, owner=owner, group=group)

            for patch in opts.patches.get(name, []):
                self.log.debug(f"Adding patch {patch} to {name}")
                self.actions.overlay(patch, os.path.join(pkgdir, os.path.basename(patch)),
                                     owner=owner, group=group)

            extra = opts.configure_options.get(name)
            if extra:
                self.log.debug(f"Appending {extra} to configure command of {name}")
                self.actions.append_to_line(pkgbuild, extra)

            command = ["makepkg", "-sf", "--noconfirm"]
            if opts.skippgpcheck:
                command.append("--skippgpcheck")

            self.log.info(f"Building package {name} {package.version}", to_history=True)
            self.actions.run_build(command, cwd=pkgdir, creates=expected, user=owner, group=group,
                                   environment=opts.environment)
        except _actions.ActionError as e:
            raise BuildError(f"Build of {name} failed: {e}") from e

        if self.dry_run:
            return expected
        artifact = self.aurfile_path(package)
        if not self.actions.exists(artifact):
            raise BuildError(f"Build of {name} did not produce {expected}")
        self.log.success(f"Built {artifact}", to_history=True)
        return artifact

    def install_aur(self, package: Package, artifact: str):
        try:
            self.pacman.install_local_file(artifact)
        except _pacman.PacmanError as e:
            raise InstallError(f"Install of {package.name} failed: {e}") from e
        self.log.success(f"Installed {package}", to_history=True)

    def install_pacman(self, package: Package):
        try:
            self.pacman.install_remote(package.name)
        except _pacman.PacmanError as e:
            raise InstallError(f"Install of {package.name} failed: {e}") from e
        self.log.success(f"Installed {package}", to_history=True)

    def _satisfy(self, package: Package, report: Dict[str, List[str]]):
        if package.already_installed():
            self.log.debug(f"{package} already installed")
            return
        if not package.is_aur():
            self.install_pacman(package)
            report["installed"].append(package.name)
            return

        if self.already_built(package):
            artifact = self.aurfile_path(package)
            self.log.debug(f"{package} already built at {artifact}")
        else:
            artifact = self.build_aur(package)
            report["built"].append(package.name)
        self.install_aur(package, artifact)
        report["installed"].append(package.name)

    @staticmethod
    def _result(report: Dict[str, List[str]]) -> Dict[str, Any]:
        built_or_installed = []
        for name in report["built"] + report["installed"]:
            if name not in built_or_installed:
                built_or_installed.append(name)
        return {
            "changed": bool(built_or_installed),
            "built_or_installed": built_or_installed,
            "built": list(report["built"]),
            "installed": list(report["installed"]),
        }

    # ---------------------------
    # Actions
    # ---------------------------
    def build(self, name: str) -> Dict[str, Any]:
        """Build `name` (dependencies are not handled) unless it is already built."""
        target = self.source.aur(name)
        report = {"built": [], "installed": []}
        self.log.debug(f"Checking for {self.aurfile_path(target)}")
        if not self.already_built(target):
            self.build_aur(target)
            report["built"].append(target.name)
        return self._result(report)

    def install(self, name: str) -> Dict[str, Any]:
        """Install the already-built package file of `name` unless installed."""
        target = self.source.aur(name)
        report = {"built": [], "installed": []}
        if not target.already_installed():
            artifact = self.aurfile_path(target)
            if not self.actions.exists(artifact) and not self.dry_run:
                raise InstallError(f"{target.name} is not built yet (expected {artifact})")
            self.install_aur(target, artifact)
            report["installed"].append(target.name)
        return self._result(report)

    def ensure_installed(self, name: str) -> Dict[str, Any]:
        """Resolve, order, then build/install every missing package of the graph rooted at `name`."""
        target = self.source.aur(name)
        report = {"built": [], "installed": []}
        if target.already_installed():
            self.log.info(f"{target} is already installed")
            return self._result(report)

        graph = self.resolver.resolve(target)
        self.log.debug(f"Dependency graph: {graph.to_dict()}")
        order = graph.topo_sort()
        self.log.info(f"Install order: {', '.join(str(p) for p in order)}")

        for package in order:
            if package == target:
                continue
            self.log.debug(f"Installing {package} as a dependency of {target}")
            self._satisfy(package, report)
        self._satisfy(target, report)
        return self._result(report)

    sync = ensure_installed
