# aurbuild/modules/runner.py
"""
Shell command execution shared by pacman queries, recipe evaluation,
makepkg builds, key imports and installs.

Every command goes through CommandRunner.run(), which:
  - accepts a list or a shell-style string (split with shlex)
  - runs as another user/group when the process is root
  - enforces an optional timeout
  - returns a CommandResult, raising CommandError on failure when check=True
  - in dry-run mode only logs the command
"""

from __future__ import annotations
import os
import pwd
import shlex
import subprocess
import time
from typing import Dict, List, Optional, Union

from aurbuild.modules import logger as _logger


class CommandError(Exception):
    def __init__(self, message: str, result: Optional["CommandResult"] = None):
        super().__init__(message)
        self.result = result


class CommandTimeout(CommandError):
    pass


def _text(output) -> str:
    # TimeoutExpired carries bytes even in text mode
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


class CommandResult:
    """Outcome of one executed command"""

    def __init__(self, command, returncode, stdout, stderr, duration):
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.duration = duration

    def ok(self):
        return self.returncode == 0


class CommandRunner:
    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run
        self.log = _logger.Logger("runner.log")

    @staticmethod
    def _current_user() -> str:
        try:
            return pwd.getpwuid(os.geteuid()).pw_name
        except KeyError:
            return str(os.geteuid())

    def _identity(self, user: Optional[str], group: Optional[str]) -> Dict[str, str]:
        if not user and not group:
            return {}
        if os.geteuid() != 0:
            if user and user != self._current_user():
                self.log.debug(f"Not root, running as {self._current_user()} instead of {user}")
            return {}
        identity = {}
        if user:
            identity["user"] = user
        if group:
            identity["group"] = group
        return identity

    @staticmethod
    def _environment(identity: Dict[str, str], extra_env: Optional[Dict[str, str]]) -> Dict[str, str]:
        env = os.environ.copy()
        if "user" in identity:
            try:
                entry = pwd.getpwnam(identity["user"])
            except KeyError:
                entry = None
            if entry is not None:
                env.update({"HOME": entry.pw_dir, "USER": entry.pw_name, "LOGNAME": entry.pw_name})
        env.update(extra_env or {})
        return env

    def run(self,
            command: Union[str, List[str]],
            cwd: Optional[str] = None,
            env: Optional[Dict[str, str]] = None,
            user: Optional[str] = None,
            group: Optional[str] = None,
            timeout: Optional[float] = None,
            check: bool = True,
            input: Optional[str] = None,
            mutating: bool = True,
            extra_env: Optional[Dict[str, str]] = None) -> CommandResult:
        """
        Run a command and capture its output.
        `env` replaces the environment entirely; otherwise the current one is
        inherited (with HOME of the target user) and `extra_env` added on top.
        Read-only commands (mutating=False) still execute in dry-run mode.
        """
        if isinstance(command, str):
            command = shlex.split(command)
        printable = " ".join(shlex.quote(c) for c in command)

        if self.dry_run and mutating:
            self.log.info(f"[DRY-RUN] {printable}")
            return CommandResult(command, 0, "", "", 0)

        identity = self._identity(user, group)
        if env is None:
            env = self._environment(identity, extra_env)

        self.log.debug(f"Running: {printable} (cwd={cwd}, user={user})")
        start = time.time()
        try:
            proc = subprocess.run(
                command,
                cwd=cwd,
                env=env,
                input=input,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=timeout,
                **identity,
            )
        except subprocess.TimeoutExpired as e:
            result = CommandResult(command, None, _text(e.stdout), _text(e.stderr), time.time() - start)
            raise CommandTimeout(f"Timed out after {timeout}s: {printable}", result) from e
        except OSError as e:
            raise CommandError(f"Cannot execute {printable}: {e}") from e

        result = CommandResult(command, proc.returncode, proc.stdout, proc.stderr, time.time() - start)
        self.log.debug(f"Exit {result.returncode} after {result.duration:.2f}s: {printable}")
        if check and not result.ok():
            raise CommandError(
                f"Command failed ({result.returncode}): {printable}\n{result.stderr.strip()}",
                result,
            )
        return result
