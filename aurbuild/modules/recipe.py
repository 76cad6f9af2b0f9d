# aurbuild/modules/recipe.py
"""
Recipe host access and recipe metadata parsing.

A recipe is an AUR PKGBUILD. The host serves:
  - the raw PKGBUILD text:  {base_url}/cgit/aur.git/plain/PKGBUILD?h=<name>
  - a source snapshot:      {base_url}/cgit/aur.git/snapshot/<name>.tar.gz

The PKGBUILD is never interpreted here; the sandbox module evaluates it and
hands back three lines which parse_evaluation() turns into metadata:

    version <pkgver>-<pkgrel>
    arch <arch...>
    depends <dep> <dep> ...
"""

from __future__ import annotations
import platform
import re
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Dict, List, Optional

from aurbuild.modules import logger as _logger
from aurbuild.modules.config import config

DEFAULT_BASE_URL = "https://aur.archlinux.org"

# bare package name at the start of a dependency string ("foo>=1.2" -> "foo")
DEPENDENCY_NAME_RE = re.compile(r"[a-z0-9@._+-]+")


class RecipeError(Exception):
    pass


class RecipeNotFoundError(RecipeError):
    pass


class UnexpectedResponseError(RecipeError):
    def __init__(self, name: str, status: int):
        super().__init__(f"Unexpected response {status} from recipe host for '{name}'")
        self.name = name
        self.status = status


def default_arch() -> str:
    return platform.machine() or "x86_64"


def strip_constraint(dependency: str) -> str:
    """Drop version constraints from a dependency string."""
    m = DEPENDENCY_NAME_RE.match(dependency.strip())
    if not m:
        raise RecipeError(f"Invalid dependency name: {dependency!r}")
    return m.group(0)


def parse_evaluation(output: str, local_arch: Optional[str] = None) -> Dict[str, Any]:
    """
    Parse the last three lines echoed after sourcing a PKGBUILD.
    Architecture 'any' is kept, every other value becomes the local arch.
    """
    lines = [line.strip() for line in (output or "").strip().splitlines()]
    data = lines[-3:]
    if len(data) != 3:
        raise RecipeError(f"Recipe evaluation returned {len(data)} line(s), expected 3")

    version_line, arch_line, depends_line = data
    if not (version_line.startswith("version") and arch_line.startswith("arch")
            and depends_line.startswith("depends")):
        raise RecipeError(f"Unexpected recipe evaluation output: {data}")

    version_fields = version_line.split()
    if len(version_fields) < 2 or version_fields[1] == "-":
        raise RecipeError("Recipe does not define pkgver/pkgrel")

    arch_fields = arch_line.split()[1:]
    arch = "any" if "any" in arch_fields else (local_arch or default_arch())

    depends: List[str] = []
    for dep in depends_line.split()[1:]:
        name = strip_constraint(dep)
        if name not in depends:
            depends.append(name)

    return {"version": version_fields[1], "arch": arch, "depends": depends}


class RecipeHost:
    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.base_url = (base_url or config.get("aur", "base_url", fallback=DEFAULT_BASE_URL)).rstrip("/")
        self.timeout = timeout or config.getfloat("aur", "http_timeout", fallback=15.0)
        self.log = _logger.Logger("recipe.log")

    # -----------------------
    # URLs
    # -----------------------
    def pkgbuild_url(self, name: str) -> str:
        return f"{self.base_url}/cgit/aur.git/plain/PKGBUILD?h={urllib.parse.quote(name)}"

    def snapshot_url(self, name: str) -> str:
        return f"{self.base_url}/cgit/aur.git/snapshot/{urllib.parse.quote(name)}.tar.gz"

    # -----------------------
    # Requests
    # -----------------------
    def fetch_recipe_text(self, name: str) -> str:
        url = self.pkgbuild_url(name)
        self.log.debug(f"Fetching recipe {url}")
        try:
            with urllib.request.urlopen(url, timeout=self.timeout) as resp:
                return resp.read().decode("utf-8", errors="replace")
        except urllib.error.HTTPError as e:
            if e.code == 404:
                raise RecipeNotFoundError(f"No recipe for '{name}' on {self.base_url}") from e
            raise UnexpectedResponseError(name, e.code) from e
        except (urllib.error.URLError, OSError) as e:
            raise RecipeError(f"Cannot reach recipe host for '{name}': {e}") from e

    def probe_status(self, name: str) -> int:
        req = urllib.request.Request(self.pkgbuild_url(name), method="HEAD")
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                return resp.status
        except urllib.error.HTTPError as e:
            return e.code
        except (urllib.error.URLError, OSError) as e:
            raise RecipeError(f"Cannot reach recipe host for '{name}': {e}") from e

    def exists(self, name: str) -> bool:
        """True on 2xx, False on 404, UnexpectedResponseError otherwise."""
        status = self.probe_status(name)
        if 200 <= status < 300:
            return True
        if status == 404:
            return False
        raise UnexpectedResponseError(name, status)
