import configparser
import os

DEFAULT_LOCATIONS = [
    "/etc/aurbuild/aurbuild.conf",
    os.path.expanduser("~/.config/aurbuild/aurbuild.conf"),
]


def default_locations():
    env_path = os.environ.get("AURBUILD_CONF")
    if env_path:
        return [env_path] + DEFAULT_LOCATIONS
    return list(DEFAULT_LOCATIONS)


class AurConfig:
    def __init__(self, locations=None):
        self.locations = locations or default_locations()
        self.config = configparser.ConfigParser()
        self.loaded_from = None
        self.reload()

    def reload(self):
        """(Re)load configuration from the first existing file; defaults apply otherwise."""
        self.config = configparser.ConfigParser()
        self.loaded_from = None
        for path in self.locations:
            if os.path.isfile(path):
                self.config.read(path)
                self.loaded_from = path
                return

    def load(self, path):
        """Switch to an explicit config file (--conf)."""
        if not os.path.isfile(path):
            raise FileNotFoundError(f"Config file not found: {path}")
        self.locations = [path]
        self.reload()

    def get(self, section, option, fallback=None):
        try:
            return self.config.get(section, option, fallback=fallback)
        except (configparser.NoSectionError, configparser.NoOptionError):
            return fallback

    def getboolean(self, section, option, fallback=False):
        try:
            return self.config.getboolean(section, option, fallback=fallback)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return fallback

    def getint(self, section, option, fallback=0):
        try:
            return self.config.getint(section, option, fallback=fallback)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return fallback

    def getfloat(self, section, option, fallback=0.0):
        try:
            return self.config.getfloat(section, option, fallback=fallback)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return fallback

    def getlist(self, section, option, fallback=None, delimiter=","):
        raw = self.get(section, option, fallback="")
        if raw:
            return [item.strip() for item in raw.split(delimiter) if item.strip()]
        return fallback or []

    def set(self, section, option, value):
        if not self.config.has_section(section):
            self.config.add_section(section)
        self.config.set(section, option, str(value))

# Shared instance used by the other modules
config = AurConfig()
