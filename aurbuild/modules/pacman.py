# aurbuild/modules/pacman.py
"""
pacman.py - query and install service on top of the system package manager.

Queries (-Si, -Qi, -Ssq, -Qg) are read-only: they run as an unprivileged user
in /tmp, never raise on a non-zero exit (an empty answer means "not found")
and are executed even in dry-run mode. Installs (-S, -U, -R) run as the
install user and raise PacmanError on failure.
"""

from __future__ import annotations
import re
from typing import Dict, List, Optional

from aurbuild.modules import logger as _logger
from aurbuild.modules import runner as _runner
from aurbuild.modules.config import config

VERSION_ARCH_RE = re.compile(r"Version +: ([\w.:+~-]+).+?Architecture +: (\w+)", re.S)

# pacman translates its field labels; queries run in the C locale
QUERY_ENV = {"LC_ALL": "C"}

# POSIX extended regex metacharacters understood by pacman -Ss
_ERE_SPECIAL = set(".[]()*+?{}|^$\\")


class PacmanError(Exception):
    pass


def anchored_pattern(name: str) -> str:
    escaped = "".join("\\" + c if c in _ERE_SPECIAL else c for c in name)
    return f"^{escaped}$"


def parse_version_arch(output: str) -> Optional[Dict[str, str]]:
    """Extract Version/Architecture fields from `pacman -Si/-Qi` output."""
    m = VERSION_ARCH_RE.search(output or "")
    if not m:
        return None
    return {"version": m.group(1), "arch": m.group(2)}


class Pacman:
    def __init__(self,
                 runner: Optional[_runner.CommandRunner] = None,
                 binary: Optional[str] = None,
                 query_user: Optional[str] = None,
                 query_group: Optional[str] = None,
                 install_user: Optional[str] = None,
                 install_group: Optional[str] = None):
        self.runner = runner or _runner.CommandRunner()
        self.binary = binary or config.get("pacman", "binary", fallback="pacman")
        self.query_user = query_user or config.get("pacman", "query_user", fallback="nobody")
        self.query_group = query_group or config.get("pacman", "query_group", fallback="nobody")
        self.install_user = install_user or config.get("build", "install_user", fallback="root")
        self.install_group = install_group or config.get("build", "install_group", fallback="root")
        self.log = _logger.Logger("pacman.log")

    # -----------------------
    # Queries
    # -----------------------
    def _query(self, *args: str) -> str:
        try:
            result = self.runner.run(
                [self.binary] + list(args),
                cwd="/tmp",
                user=self.query_user,
                group=self.query_group,
                check=False,
                mutating=False,
                extra_env=dict(QUERY_ENV),
            )
        except _runner.CommandError as e:
            raise PacmanError(f"pacman query {' '.join(args)} failed: {e}") from e
        if not result.ok():
            return ""
        return result.stdout.strip()

    def query_remote(self, name: str) -> Optional[Dict[str, str]]:
        """Latest version/arch of `name` in the sync databases, None if unknown."""
        return parse_version_arch(self._query("-Si", name))

    def query_installed(self, name: str) -> Optional[Dict[str, str]]:
        """Installed version/arch of `name`, None if not installed."""
        self.log.debug(f"Checking pacman for {name}")
        return parse_version_arch(self._query("-Qi", name))

    def exists(self, name: str) -> bool:
        return len(self._query("-Si", name)) != 0

    def search_providers(self, name: str) -> List[str]:
        """Package names matching `^name$` in the sync databases, in pacman's order."""
        out = self._query("-Ssq", anchored_pattern(name))
        return [line.strip() for line in out.splitlines() if line.strip()]

    def group_members(self, group: str) -> str:
        return self._query("-Qg", group)

    # -----------------------
    # Mutations
    # -----------------------
    def _mutate(self, args: List[str], what: str):
        try:
            return self.runner.run(
                [self.binary] + args,
                user=self.install_user,
                group=self.install_group,
            )
        except _runner.CommandError as e:
            raise PacmanError(f"{what} failed: {e}") from e

    def install_remote(self, *names: str, options: Optional[List[str]] = None):
        if not names:
            return None
        args = ["--sync", "--needed", "--noconfirm", "--noprogressbar"] + list(options or []) + list(names)
        self.log.info(f"Installing from repositories: {' '.join(names)}")
        return self._mutate(args, f"pacman install of {' '.join(names)}")

    def install_local_file(self, path: str):
        self.log.info(f"Installing package file {path}")
        return self._mutate(["--upgrade", "--noconfirm", "--noprogressbar", path],
                            f"pacman install of {path}")

    def sync_group(self, group: str, options: Optional[List[str]] = None):
        args = ["--sync", "--noconfirm", "--noprogressbar"] + list(options or []) + [group]
        return self._mutate(args, f"pacman install of group {group}")

    def remove(self, name: str, options: Optional[List[str]] = None):
        args = ["--remove", "--noconfirm", "--noprogressbar"] + list(options or []) + [name]
        return self._mutate(args, f"pacman removal of {name}")
