# aurbuild/modules/group.py

from __future__ import annotations
import shlex
from typing import Optional

from aurbuild.modules import logger as _logger
from aurbuild.modules import pacman as _pacman


class GroupError(Exception):
    pass


class GroupManager:
    """Install or remove pacman package groups (base-devel, xorg, ...)."""

    def __init__(self, pacman: Optional[_pacman.Pacman] = None):
        self.pacman = pacman or _pacman.Pacman()
        self.log = _logger.Logger("group.log")

    def exists(self, group: str) -> bool:
        self.log.debug(f"Checking pacman for group {group}")
        return group in self.pacman.group_members(group)

    def install(self, group: str, options: Optional[str] = None) -> bool:
        if self.exists(group):
            return False
        try:
            self.pacman.sync_group(group, shlex.split(options or ""))
        except _pacman.PacmanError as e:
            raise GroupError(str(e)) from e
        self.log.success(f"Installed group {group}", to_history=True)
        return True

    def remove(self, group: str, options: Optional[str] = None) -> bool:
        if not self.exists(group):
            return False
        try:
            self.pacman.remove(group, shlex.split(options or ""))
        except _pacman.PacmanError as e:
            raise GroupError(str(e)) from e
        self.log.success(f"Removed group {group}", to_history=True)
        return True
