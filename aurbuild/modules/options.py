# aurbuild/modules/options.py
"""
Per-request build options.

Defaults come from the [build] section of aurbuild.conf, can be overlaid by a
YAML options file and finally by explicit keyword overrides (CLI flags):

    build_dir: /var/cache/aurbuild
    build_user: builder
    skippgpcheck: false
    keys: [ABCDEF0123456789]
    environment: {MAKEFLAGS: "-j8"}
    pkgbuild_overrides: {foo-git: ./PKGBUILD.foo}
    patches: {foo-git: [./fix-build.patch]}
    configure_options: {foo-git: "--disable-docs"}
"""

from __future__ import annotations
import os
from typing import Any, Dict, List, Optional

import yaml

from aurbuild.modules.config import config


class OptionsError(Exception):
    pass


class BuildOptions:
    SCALARS = ("build_dir", "build_user", "build_group", "install_user", "install_group", "keyserver")
    MAPPINGS = ("environment", "pkgbuild_overrides", "patches", "configure_options")

    def __init__(self,
                 build_dir: str = "/var/cache/aurbuild",
                 build_user: str = "nobody",
                 build_group: str = "nobody",
                 install_user: str = "root",
                 install_group: str = "root",
                 skippgpcheck: bool = False,
                 keys: Optional[List[str]] = None,
                 keyserver: str = "hkps://keyserver.ubuntu.com",
                 environment: Optional[Dict[str, str]] = None,
                 pkgbuild_overrides: Optional[Dict[str, str]] = None,
                 patches: Optional[Dict[str, List[str]]] = None,
                 configure_options: Optional[Dict[str, str]] = None):
        self.build_dir = os.path.abspath(build_dir)
        self.build_user = build_user
        self.build_group = build_group
        self.install_user = install_user
        self.install_group = install_group
        self.skippgpcheck = skippgpcheck
        self.keys = list(keys or [])
        self.keyserver = keyserver
        self.environment = dict(environment or {})
        self.pkgbuild_overrides = dict(pkgbuild_overrides or {})
        self.patches = {k: list(v) for k, v in (patches or {}).items()}
        self.configure_options = dict(configure_options or {})

    @classmethod
    def from_config(cls, cfg=None) -> "BuildOptions":
        cfg = cfg or config
        return cls(
            build_dir=cfg.get("build", "build_dir", fallback="/var/cache/aurbuild"),
            build_user=cfg.get("build", "build_user", fallback="nobody"),
            build_group=cfg.get("build", "build_group", fallback="nobody"),
            install_user=cfg.get("build", "install_user", fallback="root"),
            install_group=cfg.get("build", "install_group", fallback="root"),
            skippgpcheck=cfg.getboolean("build", "skippgpcheck", fallback=False),
            keys=cfg.getlist("build", "keys"),
            keyserver=cfg.get("build", "keyserver", fallback="hkps://keyserver.ubuntu.com"),
        )

    def update(self, data: Dict[str, Any]) -> "BuildOptions":
        """Overlay a mapping of option values (None values are ignored)."""
        unknown = set(data) - set(self.SCALARS) - set(self.MAPPINGS) - {"skippgpcheck", "keys"}
        if unknown:
            raise OptionsError(f"Unknown build option(s): {sorted(unknown)}")

        for key in self.SCALARS:
            if data.get(key) is not None:
                value = str(data[key])
                setattr(self, key, os.path.abspath(value) if key == "build_dir" else value)
        if data.get("skippgpcheck") is not None:
            self.skippgpcheck = bool(data["skippgpcheck"])
        keys = data.get("keys") or []
        if isinstance(keys, (str, int)) and not isinstance(keys, bool):
            keys = [keys]
        if not isinstance(keys, list):
            raise OptionsError("'keys' must be a key id or a list of key ids")
        for key in keys:
            key = str(key)
            if key not in self.keys:
                self.keys.append(key)

        for key in self.MAPPINGS:
            value = data.get(key)
            if value is None:
                continue
            if not isinstance(value, dict):
                raise OptionsError(f"'{key}' must be a mapping")
            target = getattr(self, key)
            for k, v in value.items():
                if key == "patches":
                    target.setdefault(str(k), []).extend([str(p) for p in (v if isinstance(v, list) else [v])])
                else:
                    target[str(k)] = str(v)
        return self

    def load_yaml(self, path: str) -> "BuildOptions":
        if not os.path.exists(path):
            raise OptionsError(f"Options file not found: {path}")
        with open(path, "r", encoding="utf-8") as fh:
            try:
                data = yaml.safe_load(fh) or {}
            except yaml.YAMLError as e:
                raise OptionsError(f"Invalid options file {path}: {e}") from e
        if not isinstance(data, dict):
            raise OptionsError(f"Options file {path} must contain a mapping")
        base = os.path.dirname(os.path.abspath(path))
        # local files are relative to the options file
        for key in ("pkgbuild_overrides", "patches"):
            if isinstance(data.get(key), dict):
                data[key] = {
                    k: ([os.path.join(base, p) for p in v] if isinstance(v, list) else os.path.join(base, v))
                    for k, v in data[key].items()
                }
        return self.update(data)

    # ---------------------------
    # Paths
    # ---------------------------
    def package_dir(self, name: str) -> str:
        return os.path.join(self.build_dir, name)

    def pkgbuild_path(self, name: str) -> str:
        return os.path.join(self.package_dir(name), "PKGBUILD")

    def snapshot_path(self, name: str) -> str:
        return os.path.join(self.build_dir, f"{name}.tar.gz")
