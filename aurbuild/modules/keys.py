# aurbuild/modules/keys.py

from __future__ import annotations
from typing import Iterable, List, Optional

from aurbuild.modules import logger as _logger
from aurbuild.modules import runner as _runner


class KeyImportError(Exception):
    pass


class KeyImporter:
    """Imports PGP keys into the build user's keyring so makepkg can verify sources."""

    def __init__(self,
                 runner: Optional[_runner.CommandRunner] = None,
                 keyserver: str = "hkps://keyserver.ubuntu.com",
                 gpg: str = "gpg"):
        self.runner = runner or _runner.CommandRunner()
        self.keyserver = keyserver
        self.gpg = gpg
        self.log = _logger.Logger("keys.log")

    def has_key(self, key_id: str, user: Optional[str] = None, group: Optional[str] = None) -> bool:
        result = self.runner.run(
            [self.gpg, "--batch", "--list-keys", key_id],
            user=user, group=group, check=False, mutating=False,
        )
        return result.ok()

    def import_keys(self, key_ids: Iterable[str], user: Optional[str] = None,
                    group: Optional[str] = None) -> List[str]:
        """Receive every missing key; returns the ids actually imported."""
        imported = []
        for key_id in key_ids:
            if self.has_key(key_id, user, group):
                self.log.debug(f"Key {key_id} already present")
                continue
            self.log.info(f"Importing key {key_id} from {self.keyserver}")
            try:
                self.runner.run(
                    [self.gpg, "--batch", "--keyserver", self.keyserver, "--recv-keys", key_id],
                    user=user, group=group,
                )
            except _runner.CommandError as e:
                raise KeyImportError(f"Cannot import key {key_id}: {e}") from e
            imported.append(key_id)
        return imported
