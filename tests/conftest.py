"""
Shared test fixtures: quiet logging and in-memory stand-ins for pacman,
the AUR host, the recipe evaluator, the command runner and the action
executor. Nothing here touches the network or the real package database.
"""

import os

import pytest

from aurbuild.modules.config import config

config.set("logging", "log_to_file", "false")
config.set("logging", "log_to_console", "false")

from aurbuild.modules import recipe as _recipe  # noqa: E402
from aurbuild.modules import runner as _runner  # noqa: E402
from aurbuild.modules.options import BuildOptions  # noqa: E402
from aurbuild.modules.package import (  # noqa: E402
    AUR, InstalledInfo, Package, PackageInfo, PackageInfoSource,
)

PKGEXT = ".pkg.tar.zst"


# ── Runner ──────────────────────────────────────────────────────────


class FakeRunner:
    """Records commands; `handler(command, kwargs)` returns (returncode, stdout) or raises."""

    def __init__(self, handler=None, dry_run=False):
        self.handler = handler or (lambda command, kwargs: (0, ""))
        self.dry_run = dry_run
        self.calls = []

    def run(self, command, **kwargs):
        self.calls.append((list(command), kwargs))
        rc, out = self.handler(list(command), kwargs)
        result = _runner.CommandResult(list(command), rc, out, "", 0)
        if kwargs.get("check", True) and rc != 0:
            raise _runner.CommandError(f"Command failed ({rc}): {' '.join(command)}", result)
        return result

    def commands(self):
        return [c for c, _ in self.calls]


# ── Pacman ──────────────────────────────────────────────────────────


class FakePacman:
    def __init__(self):
        self.remote = {}      # name -> {"version", "arch"}
        self.installed = {}   # name -> {"version", "arch"}
        self.providers = {}   # virtual name -> [provider names]
        self.groups = {}      # group -> member listing
        self.install_log = []
        self.fail_install = set()
        self.queries = []

    def query_remote(self, name):
        self.queries.append(("-Si", name))
        return self.remote.get(name)

    def query_installed(self, name):
        self.queries.append(("-Qi", name))
        return self.installed.get(name)

    def exists(self, name):
        self.queries.append(("exists", name))
        return name in self.remote

    def search_providers(self, name):
        self.queries.append(("-Ssq", f"^{name}$"))
        return list(self.providers.get(name, []))

    def group_members(self, group):
        return self.groups.get(group, "")

    def install_remote(self, *names, options=None):
        from aurbuild.modules.pacman import PacmanError
        for name in names:
            if name in self.fail_install:
                raise PacmanError(f"pacman install of {name} failed")
            self.install_log.append(("remote", name))
            self.installed[name] = dict(self.remote[name])

    def install_local_file(self, path):
        from aurbuild.modules.pacman import PacmanError
        base = os.path.basename(path)[:-len(PKGEXT)]
        name, pkgver, pkgrel, arch = base.rsplit("-", 3)
        if name in self.fail_install:
            raise PacmanError(f"pacman install of {path} failed")
        self.install_log.append(("local", path))
        self.installed[name] = {"version": f"{pkgver}-{pkgrel}", "arch": arch}

    def sync_group(self, group, options=None):
        self.install_log.append(("group", group, list(options or [])))
        self.groups[group] = f"{group} member"

    def remove(self, name, options=None):
        self.install_log.append(("remove", name, list(options or [])))
        self.groups.pop(name, None)


# ── AUR host and evaluator ──────────────────────────────────────────


class FakeHost:
    def __init__(self):
        self.recipes = {}    # name -> {"version", "arch", "depends"}
        self.statuses = {}   # name -> forced HTTP status for exists()
        self.fetched = []
        self.probed = []

    def pkgbuild_url(self, name):
        return f"https://aur.example/cgit/aur.git/plain/PKGBUILD?h={name}"

    def snapshot_url(self, name):
        return f"https://aur.example/cgit/aur.git/snapshot/{name}.tar.gz"

    def fetch_recipe_text(self, name):
        self.fetched.append(name)
        if name not in self.recipes:
            raise _recipe.RecipeNotFoundError(f"No recipe for '{name}'")
        return f"# recipe:{name}"

    def exists(self, name):
        self.probed.append(name)
        status = self.statuses.get(name, 200 if name in self.recipes else 404)
        if 200 <= status < 300:
            return True
        if status == 404:
            return False
        raise _recipe.UnexpectedResponseError(name, status)


class FakeSandbox:
    def __init__(self, host):
        self.host = host

    def evaluate(self, recipe_text, name=""):
        data = self.host.recipes[name]
        return {"version": data["version"], "arch": data.get("arch", "x86_64"),
                "depends": list(data.get("depends", []))}


# ── Actions / keys ──────────────────────────────────────────────────


class FakeActions:
    """Records every action; run_build writes the `creates` file like makepkg would."""

    def __init__(self):
        self.calls = []
        self.fail_build = set()
        self.produce = True

    def _record(self, *call):
        self.calls.append(call)

    def names(self):
        return [c[0] for c in self.calls]

    def exists(self, path):
        return os.path.exists(path)

    def create_directory(self, path, owner=None, group=None, mode=0o755):
        self._record("create_directory", path)
        os.makedirs(path, exist_ok=True)
        return True

    def download(self, url, dest, owner=None, group=None, mode=0o644):
        self._record("download", url, dest)
        return True

    def extract(self, archive, cwd, user=None, group=None):
        self._record("extract", archive, cwd)
        return True

    def overlay(self, src, dest, owner=None, group=None, mode=0o644):
        self._record("overlay", src, dest)
        return True

    def append_to_line(self, path, suffix, pattern=None):
        self._record("append_to_line", path, suffix)
        return True

    def run_build(self, command, cwd, creates, user=None, group=None, environment=None):
        self._record("run_build", list(command), cwd, creates, dict(environment or {}))
        name = os.path.basename(cwd)
        if name in self.fail_build:
            from aurbuild.modules.actions import ActionError
            raise ActionError(f"makepkg failed for {name}")
        if self.produce:
            os.makedirs(cwd, exist_ok=True)
            with open(creates, "w", encoding="utf-8") as fh:
                fh.write("pkg")
        return True


class FakeKeys:
    def __init__(self):
        self.imported = []

    def import_keys(self, key_ids, user=None, group=None):
        self.imported.append((list(key_ids), user, group))
        return list(key_ids)


# ── Fixtures ────────────────────────────────────────────────────────


@pytest.fixture
def fake_pacman():
    return FakePacman()


@pytest.fixture
def fake_host():
    return FakeHost()


@pytest.fixture
def source(fake_pacman, fake_host):
    return PackageInfoSource(pacman=fake_pacman, host=fake_host, sandbox=FakeSandbox(fake_host))


@pytest.fixture
def fake_actions():
    return FakeActions()


@pytest.fixture
def fake_keys():
    return FakeKeys()


@pytest.fixture
def build_options(tmp_path):
    return BuildOptions(build_dir=str(tmp_path / "build"), build_user="builder", build_group="builder")


@pytest.fixture
def make_package():
    def _make(name, origin=AUR, version="1.0-1", arch="x86_64", depends=(), installed=None):
        inst = InstalledInfo(installed, arch) if installed else None
        return Package(name, origin, PackageInfo(version, arch, tuple(depends)), inst)
    return _make
