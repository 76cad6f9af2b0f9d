# aurbuild/modules/actions.py
"""
Filesystem and process actions used to build AUR packages:
directories, snapshot downloads, extraction, PKGBUILD overlays and edits,
and the makepkg invocation itself.

Each action is idempotent where it can be (create-if-missing semantics) and
returns True when it changed something. Dry-run only logs.
"""

from __future__ import annotations
import os
import re
import shutil
import tempfile
import urllib.error
import urllib.request
from typing import Dict, List, Optional

from aurbuild.modules import logger as _logger
from aurbuild.modules import runner as _runner
from aurbuild.modules.config import config

CONFIGURE_LINE = r"(\./configure.+$)"


class ActionError(Exception):
    pass


class ActionExecutor:
    def __init__(self, runner: Optional[_runner.CommandRunner] = None, dry_run: bool = False):
        self.runner = runner or _runner.CommandRunner(dry_run=dry_run)
        self.dry_run = dry_run
        self.http_timeout = config.getfloat("aur", "http_timeout", fallback=15.0)
        self.log = _logger.Logger("actions.log")

    def _chown(self, path: str, owner: Optional[str], group: Optional[str]):
        if os.geteuid() != 0 or not (owner or group):
            return
        try:
            shutil.chown(path, user=owner, group=group)
        except (LookupError, OSError) as e:
            raise ActionError(f"Cannot chown {path} to {owner}:{group}: {e}") from e

    # -------------------------
    # Files and directories
    # -------------------------
    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def create_directory(self, path: str, owner: Optional[str] = None,
                         group: Optional[str] = None, mode: int = 0o755) -> bool:
        if os.path.isdir(path):
            return False
        if self.dry_run:
            self.log.info(f"[DRY-RUN] Would create directory {path}")
            return True
        os.makedirs(path, exist_ok=True)
        os.chmod(path, mode)
        self._chown(path, owner, group)
        self.log.debug(f"Created directory {path}")
        return True

    def download(self, url: str, dest: str, owner: Optional[str] = None,
                 group: Optional[str] = None, mode: int = 0o644) -> bool:
        """Fetch `url` into `dest` unless it is already there."""
        if os.path.exists(dest):
            self.log.debug(f"{dest} already present, not downloading")
            return False
        if self.dry_run:
            self.log.info(f"[DRY-RUN] Would download {url} -> {dest}")
            return True

        self.log.info(f"Downloading {url}")
        fd, tmpname = tempfile.mkstemp(dir=os.path.dirname(dest) or ".", suffix=".part")
        os.close(fd)
        try:
            with urllib.request.urlopen(url, timeout=self.http_timeout) as resp, open(tmpname, "wb") as out:
                shutil.copyfileobj(resp, out)
            os.chmod(tmpname, mode)
            os.replace(tmpname, dest)
        except (urllib.error.URLError, OSError) as e:
            if os.path.exists(tmpname):
                os.remove(tmpname)
            raise ActionError(f"Download of {url} failed: {e}") from e
        self._chown(dest, owner, group)
        return True

    def extract(self, archive: str, cwd: str, user: Optional[str] = None,
                group: Optional[str] = None) -> bool:
        try:
            self.runner.run(["tar", "-xf", archive], cwd=cwd, user=user, group=group)
        except _runner.CommandError as e:
            raise ActionError(f"Extraction of {archive} failed: {e}") from e
        return True

    def overlay(self, src: str, dest: str, owner: Optional[str] = None,
                group: Optional[str] = None, mode: int = 0o644) -> bool:
        """Copy a local file over `dest` (custom PKGBUILD, patches)."""
        if not os.path.isfile(src):
            raise ActionError(f"Overlay source not found: {src}")
        if self.dry_run:
            self.log.info(f"[DRY-RUN] Would copy {src} -> {dest}")
            return True
        os.makedirs(os.path.dirname(dest), exist_ok=True)
        shutil.copyfile(src, dest)
        os.chmod(dest, mode)
        self._chown(dest, owner, group)
        self.log.debug(f"Copied {src} -> {dest}")
        return True

    def append_to_line(self, path: str, suffix: str, pattern: str = CONFIGURE_LINE) -> bool:
        """Append `suffix` to every line matching `pattern` (a regex with one group)."""
        if self.dry_run:
            self.log.info(f"[DRY-RUN] Would append '{suffix}' to /{pattern}/ in {path}")
            return True
        try:
            with open(path, "r", encoding="utf-8") as fh:
                content = fh.read()
        except OSError as e:
            raise ActionError(f"Cannot read {path}: {e}") from e

        updated = re.sub(pattern, lambda m: f"{m.group(1)} {suffix}", content, flags=re.M)
        if updated == content:
            self.log.warning(f"No line matching /{pattern}/ in {path}")
            return False
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(updated)
        return True

    # -------------------------
    # Commands
    # -------------------------
    def run_build(self, command: List[str], cwd: str, creates: str,
                  user: Optional[str] = None, group: Optional[str] = None,
                  environment: Optional[Dict[str, str]] = None) -> bool:
        """Run the build command unless `creates` already exists."""
        if os.path.exists(creates):
            self.log.debug(f"{creates} exists, build skipped")
            return False
        try:
            self.runner.run(command, cwd=cwd, user=user, group=group, extra_env=environment)
        except _runner.CommandError as e:
            raise ActionError(str(e)) from e
        return True
