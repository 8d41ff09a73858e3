from __future__ import annotations

import logging
import os
from configparser import ConfigParser

NEW_CONFIG = """\
[store]
# The store is a plain text file, one visited directory per line.
data_path = {data_path}
lock_timeout_seconds = 2

[frecency]
# Weight added to a directory on every visit.
increment = 10
# When the total weight of all directories exceeds the ceiling, every weight
# is multiplied by the decay factor.
weight_ceiling = 9000
decay_factor = 0.9

[completion]
# Maximum number of candidates offered to shell completion.
limit = 9

[logging]
# Errors from background recording are written here, never to the shell.
log_path = {log_path}
"""


def _xdg_home(variable: str, fallback: str) -> str:
    """Return an XDG base directory, falling back to the given home relative path."""
    return os.environ.get(variable) or os.path.join(os.path.expanduser("~"), fallback)


def default_config_path() -> str:
    """Return the config path from $DIR_JUMPER_CONFIG or the XDG config home."""
    return os.environ.get("DIR_JUMPER_CONFIG") or os.path.join(
        _xdg_home("XDG_CONFIG_HOME", ".config"), "dir_jumper", "dir_jumper.ini"
    )


def default_data_dir() -> str:
    """Return the directory holding the store and log file by default."""
    data_home = _xdg_home("XDG_DATA_HOME", os.path.join(".local", "share"))
    return os.path.join(data_home, "dir_jumper")


class JumperConfig:
    """Configuration for the Jumper."""

    logger = logging.getLogger("dir_jumper.JumperConfig")

    def __init__(self, filepath: str | None = None) -> None:
        """
        Load the configuration from the given file.

        With no filepath every setting uses its default.

        Raises:
            ValueError: filepath was given but could not be read.
        """
        self._config = ConfigParser()
        self.filepath = filepath

        if filepath is None:
            self.logger.debug("No config file, using defaults")
            return

        success = self._config.read(filepath)

        if not success:
            raise ValueError(f"Could not read config file at {filepath}")

        self.logger.debug("Loaded config from %s", filepath)

    def _get_path(self, section: str, option: str, fallback: str) -> str:
        value = self._config.get(section, option, fallback=fallback)
        return os.path.expandvars(os.path.expanduser(value))

    @property
    def data_path(self) -> str:
        """Return the path to the store file."""
        return self._get_path(
            "store", "data_path", os.path.join(default_data_dir(), "dir_jumper.txt")
        )

    @property
    def lock_timeout_seconds(self) -> float:
        """Return how long to wait for the store lock."""
        return self._config.getfloat("store", "lock_timeout_seconds", fallback=2.0)

    @property
    def increment(self) -> float:
        """Return the weight added on each visit."""
        return self._config.getfloat("frecency", "increment", fallback=10.0)

    @property
    def weight_ceiling(self) -> float:
        """Return the total weight above which weights decay."""
        return self._config.getfloat("frecency", "weight_ceiling", fallback=9000.0)

    @property
    def decay_factor(self) -> float:
        """Return the multiplier applied to every weight on decay."""
        return self._config.getfloat("frecency", "decay_factor", fallback=0.9)

    @property
    def completion_limit(self) -> int:
        """Return the maximum number of completion candidates."""
        return self._config.getint("completion", "limit", fallback=9)

    @property
    def log_path(self) -> str:
        """Return the path of the side log for background recording."""
        return self._get_path(
            "logging", "log_path", os.path.join(default_data_dir(), "dir_jumper.log")
        )


def load_config(filepath: str | None = None) -> JumperConfig:
    """
    Load the given config file, else the default one if it exists, else defaults.

    Raises:
        ValueError: filepath was given but could not be read.
    """
    if filepath:
        return JumperConfig(filepath)

    default_path = default_config_path()
    if os.path.exists(default_path):
        return JumperConfig(default_path)

    return JumperConfig()


def write_new_config(filename: str) -> None:
    """Write a new config file if one does not exist."""
    if os.path.exists(filename):
        return

    data_dir = default_data_dir()
    config = NEW_CONFIG.format(
        data_path=os.path.join(data_dir, "dir_jumper.txt"),
        log_path=os.path.join(data_dir, "dir_jumper.log"),
    )

    directory = os.path.dirname(os.path.abspath(filename))
    os.makedirs(directory, exist_ok=True)

    with open(filename, "w") as config_file:
        config_file.write(config)
