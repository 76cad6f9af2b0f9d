# aurbuild/modules/cli.py
"""
Command line interface for aurbuild.
- Uses rich for colored output, tables, trees and spinners.
- Dry-run by default (use --execute to apply), supports --no-color and --quiet.

Usage examples:
  aurbuild sync yay --execute
  aurbuild build foo-git --pkgbuild ./PKGBUILD --execute
  aurbuild deps foo-git --dot foo.dot
  aurbuild info bash --pacman
  aurbuild group install base-devel --execute
"""

from __future__ import annotations
import argparse
import sys
import traceback
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.tree import Tree

from aurbuild.modules import actions as _actions
from aurbuild.modules import logger as _logger
from aurbuild.modules import pacman as _pacman
from aurbuild.modules import recipe as _recipe
from aurbuild.modules import runner as _runner
from aurbuild.modules.build import BuildError, BuildManager, InstallError
from aurbuild.modules.config import config
from aurbuild.modules.graph import CycleError, DependencyGraph
from aurbuild.modules.group import GroupError, GroupManager
from aurbuild.modules.options import BuildOptions, OptionsError
from aurbuild.modules.package import AUR, PACMAN, PackageInfoSource
from aurbuild.modules.resolver import DependencyResolver, ResolutionError

# failures that abort a request with a readable message
EXPECTED_ERRORS = (
    BuildError,
    InstallError,
    ResolutionError,
    CycleError,
    GroupError,
    OptionsError,
    _recipe.RecipeError,
    _pacman.PacmanError,
    _actions.ActionError,
    _runner.CommandError,
)


def make_console(no_color: bool, quiet: bool) -> Console:
    if no_color:
        return Console(color_system=None, force_terminal=False, quiet=quiet)
    return Console(quiet=quiet)


def parse_env(pairs: Optional[List[str]]) -> Dict[str, str]:
    env = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise OptionsError(f"Invalid environment assignment '{pair}', expected KEY=VALUE")
        env[key] = value
    return env


def options_from_args(args: argparse.Namespace) -> BuildOptions:
    opts = BuildOptions.from_config()
    if getattr(args, "options", None):
        opts.load_yaml(args.options)

    overrides: Dict[str, Any] = {
        "build_dir": getattr(args, "build_dir", None),
        "keys": getattr(args, "key", None),
        "environment": parse_env(getattr(args, "env", None)) or None,
    }
    if getattr(args, "skippgpcheck", False):
        overrides["skippgpcheck"] = True
    pkg = args.package
    if getattr(args, "pkgbuild", None):
        overrides["pkgbuild_overrides"] = {pkg: args.pkgbuild}
    if getattr(args, "patch", None):
        overrides["patches"] = {pkg: args.patch}
    if getattr(args, "configure_options", None):
        overrides["configure_options"] = {pkg: args.configure_options}
    return opts.update(overrides)


class CLI:
    def __init__(self, console: Console, log: Optional[_logger.Logger] = None):
        self.console = console
        self.log = log or _logger.Logger("cli.log")

    # -----------------------
    # factories (replaced in tests)
    # -----------------------
    def make_manager(self, options: BuildOptions, execute: bool) -> BuildManager:
        return BuildManager(options=options, dry_run=not execute)

    def make_source(self) -> PackageInfoSource:
        return PackageInfoSource()

    def make_group_manager(self, execute: bool) -> GroupManager:
        runner = _runner.CommandRunner(dry_run=not execute)
        return GroupManager(_pacman.Pacman(runner=runner))

    def _print_result(self, action: str, pkg: str, result: Dict[str, Any], execute: bool):
        lines = [
            f"changed: {'yes' if result['changed'] else 'no'}",
            f"built: {', '.join(result['built']) or '-'}",
            f"installed: {', '.join(result['installed']) or '-'}",
        ]
        if not execute:
            lines.append("[yellow]dry-run: use --execute to apply[/yellow]")
        style = "green" if result["changed"] else "cyan"
        self.console.print(Panel("\n".join(lines), title=f"{action} {pkg}", style=style))

    # -----------------------
    # sync / build / install
    # -----------------------
    def cmd_action(self, args: argparse.Namespace) -> int:
        action = args.command
        options = options_from_args(args)
        mgr = self.make_manager(options, args.execute)
        action_fn = {"sync": mgr.ensure_installed, "build": mgr.build, "install": mgr.install}[action]
        self.console.print(f"[blue]{action} {args.package} (execute={args.execute})[/blue]")
        with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"),
                      console=self.console, transient=True) as p:
            p.add_task(f"{action} {args.package}", total=None)
            result = action_fn(args.package)
        self._print_result(action, args.package, result, args.execute)
        return 0

    # -----------------------
    # deps
    # -----------------------
    def _tree(self, graph: DependencyGraph) -> Tree:
        root = graph.root
        tree = Tree(f"[bold]{root}[/bold]")
        shown = {root.name}
        pending = [(tree, root.name)]
        while pending:
            branch, name = pending.pop(0)
            for dep in graph.dependencies(name):
                label = f"{dep}" + ("" if dep.is_aur() else " [dim](pacman)[/dim]")
                if dep.name in shown:
                    branch.add(label + " [dim](see above)[/dim]")
                    continue
                shown.add(dep.name)
                pending.append((branch.add(label), dep.name))
        return tree

    def cmd_deps(self, args: argparse.Namespace) -> int:
        resolver = DependencyResolver(self.make_source())
        with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"),
                      console=self.console, transient=True) as p:
            p.add_task(f"resolving {args.package}", total=None)
            graph = resolver.resolve(args.package)
        self.console.print(self._tree(graph))

        if args.dot:
            graph.export_dot(args.dot)
            self.console.print(f"[green]Graph exported to {args.dot}[/green]")

        cycle = graph.detect_cycles()
        if cycle:
            self.console.print(f"[red]Dependency cycle: {escape(' -> '.join(cycle))}[/red]")
            return 1

        order = graph.topo_sort()
        table = Table(title=f"Install order for {args.package}")
        table.add_column("#", justify="right")
        table.add_column("Package", style="bold")
        table.add_column("Origin")
        table.add_column("Version")
        table.add_column("Installed")
        table.add_column("Required by", overflow="fold")
        for idx, pkg in enumerate(order, 1):
            if pkg.already_installed():
                installed = "[green]yes[/green]"
            elif pkg.installed:
                installed = f"[yellow]{pkg.installed.version}[/yellow]"
            else:
                installed = "[red]no[/red]"
            table.add_row(str(idx), pkg.name, pkg.origin, pkg.version, installed,
                          ", ".join(resolver.find_reverse_dependencies(graph, pkg.name)) or "-")
        self.console.print(table)
        missing = resolver.find_missing(graph)
        self.console.print(f"{len(missing)} package(s) to build or install")
        return 0

    # -----------------------
    # info
    # -----------------------
    def cmd_info(self, args: argparse.Namespace) -> int:
        origin = PACMAN if args.pacman else AUR
        pkg = self.make_source().package(args.package, origin)
        tbl = Table(title=f"Info: {pkg.name}")
        tbl.add_column("Key", style="bold")
        tbl.add_column("Value", overflow="fold")
        tbl.add_row("origin", pkg.origin)
        tbl.add_row("version", pkg.version)
        tbl.add_row("arch", pkg.arch)
        tbl.add_row("depends", ", ".join(pkg.depends) or "-")
        tbl.add_row("installed", pkg.installed.version if pkg.installed else "-")
        tbl.add_row("up to date", "yes" if pkg.already_installed() else "no")
        self.console.print(tbl)
        return 0

    # -----------------------
    # group
    # -----------------------
    def cmd_group(self, args: argparse.Namespace) -> int:
        mgr = self.make_group_manager(args.execute)
        if args.sub == "install":
            changed = mgr.install(args.name, args.pacman_options)
        else:
            changed = mgr.remove(args.name, args.pacman_options)
        text = f"changed: {'yes' if changed else 'no'}"
        if not args.execute:
            text += "\n[yellow]dry-run: use --execute to apply[/yellow]"
        self.console.print(Panel(text, title=f"group {args.sub} {args.name}",
                                 style="green" if changed else "cyan"))
        return 0


# -----------------------
# CLI wiring and argparse setup
# -----------------------
def _add_build_flags(p: argparse.ArgumentParser):
    p.add_argument("package")
    p.add_argument("--execute", action="store_true", help="Apply changes (default is dry-run)")
    p.add_argument("--options", help="YAML file with build options")
    p.add_argument("--build-dir")
    p.add_argument("--skippgpcheck", action="store_true", help="Pass --skippgpcheck to makepkg")
    p.add_argument("--key", action="append", help="PGP key id to import before building")
    p.add_argument("--env", action="append", help="KEY=VALUE added to the build environment")
    p.add_argument("--pkgbuild", help="Local PKGBUILD replacing the package's own")
    p.add_argument("--patch", action="append", help="Local file copied into the build directory")
    p.add_argument("--configure-options", help="String appended to the ./configure line")


def build_argparser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="aurbuild", description="Build and install AUR packages with their dependencies")
    ap.add_argument("--no-color", action="store_true", help="Disable color output")
    ap.add_argument("--quiet", action="store_true", help="Quiet mode; less output")
    ap.add_argument("--conf", help="Path to aurbuild.conf")
    sub = ap.add_subparsers(dest="command", required=True)

    _add_build_flags(sub.add_parser("sync", help="Build and install a package with all its dependencies"))
    _add_build_flags(sub.add_parser("build", help="Build a package (no dependencies, no install)"))
    _add_build_flags(sub.add_parser("install", help="Install an already built package"))

    p_deps = sub.add_parser("deps", help="Show the dependency graph and install order")
    p_deps.add_argument("package")
    p_deps.add_argument("--dot", help="Write the graph in DOT format to this file")

    p_info = sub.add_parser("info", help="Show package info")
    p_info.add_argument("package")
    p_info.add_argument("--pacman", action="store_true", help="Look the package up in pacman instead of the AUR")

    p_group = sub.add_parser("group", help="Install or remove a pacman group")
    p_group.add_argument("sub", choices=("install", "remove"))
    p_group.add_argument("name")
    p_group.add_argument("--execute", action="store_true")
    p_group.add_argument("--pacman-options", help="Extra options passed to pacman")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    parser = build_argparser()
    args = parser.parse_args(argv)

    console = make_console(args.no_color, args.quiet)
    if args.conf:
        try:
            config.load(args.conf)
        except FileNotFoundError as e:
            console.print(f"[red]{escape(str(e))}[/red]")
            return 2

    cli = CLI(console=console)
    try:
        if args.command in ("sync", "build", "install"):
            return cli.cmd_action(args)
        if args.command == "deps":
            return cli.cmd_deps(args)
        if args.command == "info":
            return cli.cmd_info(args)
        if args.command == "group":
            return cli.cmd_group(args)
        console.print("[red]Unknown command[/red]")
        return 2
    except EXPECTED_ERRORS as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        cli.log.error(str(e))
        return 1
    except Exception as e:
        console.print(f"[red]Unhandled error: {escape(str(e))}[/red]")
        cli.log.error(traceback.format_exc())
        return 3


if __name__ == "__main__":
    raise SystemExit(main())
