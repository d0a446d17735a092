"""
Store configuration.

Everything the store needs is passed in explicitly through StoreConfig;
nothing is read from module-level state. from_env() is a convenience for
the server entry point:

    PLEXACCESS_DATA_DIR   data directory (default ~/.plexaccess)
    PLEXACCESS_VERBOSE    1/true/yes/on to log lifecycle and token events
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_DIR_NAME = ".plexaccess"
DEFAULT_DB_FILENAME = "plexaccess.db"

# WAL gives readers a snapshot while a writer commits
DEFAULT_PRAGMAS = {
    "journal_mode": "WAL",
    "synchronous": "FULL",
    "temp_store": "MEMORY",
    "foreign_keys": "OFF",
}


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def default_data_dir() -> Path:
    return Path.home() / DEFAULT_DIR_NAME


@dataclass
class StoreConfig:
    """
    Args:
        directory: Data directory owned by the engine.
        verbose: Log lifecycle and token events at INFO.
        db_filename: Engine file inside the directory.
        pragmas: SQLite pragma overrides merged over DEFAULT_PRAGMAS.
    """
    directory: Path
    verbose: bool = False
    db_filename: str = DEFAULT_DB_FILENAME
    pragmas: dict = field(default_factory=dict)

    def __post_init__(self):
        self.directory = Path(self.directory).expanduser()

    @property
    def db_path(self) -> Path:
        return self.directory / self.db_filename

    @classmethod
    def from_env(cls, **overrides) -> "StoreConfig":
        """Build a config from PLEXACCESS_* variables; overrides win."""
        values = {
            "directory": Path(os.environ.get("PLEXACCESS_DATA_DIR") or default_data_dir()),
            "verbose": _env_bool("PLEXACCESS_VERBOSE", False),
        }
        values.update(overrides)
        return cls(**values)
