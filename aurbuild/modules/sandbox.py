# aurbuild/modules/sandbox.py
"""
Isolated evaluation of untrusted PKGBUILD text.

The recipe is fed on stdin to a non-login, non-interactive bash running as an
unprivileged user in /tmp, with a minimal environment and a short deadline.
Only the trailing version/arch/depends lines are read back; nothing else the
recipe prints or does is trusted.
"""

from __future__ import annotations
from typing import Any, Dict, Optional

from aurbuild.modules import logger as _logger
from aurbuild.modules import recipe as _recipe
from aurbuild.modules import runner as _runner
from aurbuild.modules.config import config

PROBE_TRAILER = """
echo
echo version ${pkgver}-${pkgrel}
echo arch ${arch[@]}
echo depends ${depends[@]} ${makedepends[@]}
"""

MINIMAL_ENV = {
    "PATH": "/usr/bin:/bin",
    "HOME": "/tmp",
    "LANG": "C",
}


class RecipeSandbox:
    def __init__(self,
                 runner: Optional[_runner.CommandRunner] = None,
                 user: Optional[str] = None,
                 group: Optional[str] = None,
                 timeout: Optional[float] = None,
                 shell: str = "/bin/bash",
                 workdir: str = "/tmp"):
        self.runner = runner or _runner.CommandRunner()
        self.user = user or config.get("aur", "eval_user", fallback="nobody")
        self.group = group or config.get("aur", "eval_group", fallback="nobody")
        self.timeout = timeout or config.getfloat("aur", "eval_timeout", fallback=5.0)
        self.shell = shell
        self.workdir = workdir
        self.log = _logger.Logger("sandbox.log")

    def script_for(self, recipe_text: str) -> str:
        return recipe_text.rstrip("\n") + "\n" + PROBE_TRAILER

    def evaluate(self, recipe_text: str, name: str = "") -> Dict[str, Any]:
        """Return {"version", "arch", "depends"} declared by the recipe."""
        label = name or "recipe"
        try:
            result = self.runner.run(
                [self.shell, "--noprofile", "--norc", "-s"],
                cwd=self.workdir,
                env=dict(MINIMAL_ENV),
                user=self.user,
                group=self.group,
                timeout=self.timeout,
                check=False,
                input=self.script_for(recipe_text),
                mutating=False,
            )
        except _runner.CommandTimeout as e:
            raise _recipe.RecipeError(f"Evaluation of {label} exceeded {self.timeout}s") from e
        except _runner.CommandError as e:
            raise _recipe.RecipeError(f"Cannot evaluate {label}: {e}") from e

        try:
            info = _recipe.parse_evaluation(result.stdout)
        except _recipe.RecipeError as e:
            stderr = (result.stderr or "").strip()
            raise _recipe.RecipeError(f"{label}: {e}" + (f" ({stderr})" if stderr else "")) from e
        self.log.debug(f"{label}: version={info['version']} arch={info['arch']} depends={info['depends']}")
        return info
