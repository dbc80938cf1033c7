"""Configuration defaults, env vars, and runtime options for taskbook."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


VERSION = "0.1.0"

DEFAULT_NAMESPACE = "taskbook"
DEFAULT_DUE_SOON_DAYS = 3
DEFAULT_MOST_USED_LIMIT = 5

ENV_DATA_DIR = "TASKBOOK_DATA_DIR"
ENV_USER = "TASKBOOK_USER"


def default_data_dir() -> Path:
    """Return ``$TASKBOOK_DATA_DIR`` or ``~/.taskbook``."""
    override = os.environ.get(ENV_DATA_DIR, "").strip()
    if override:
        return Path(override).expanduser()
    return Path.home() / ".taskbook"


@dataclass
class Config:
    """Runtime configuration assembled from CLI flags and the environment."""

    # Storage
    data_dir: Path | str = ""
    namespace: str = DEFAULT_NAMESPACE
    ephemeral: bool = False

    # Queries
    due_soon_days: int = DEFAULT_DUE_SOON_DAYS
    most_used_limit: int = DEFAULT_MOST_USED_LIMIT

    # Bootstrap
    create_demo_user: bool = True

    # Misc
    verbose: bool = False

    def __post_init__(self) -> None:
        if not self.data_dir:
            self.data_dir = default_data_dir()
        self.data_dir = Path(self.data_dir).expanduser()
        if not self.namespace:
            self.namespace = DEFAULT_NAMESPACE
        if self.due_soon_days < 0:
            self.due_soon_days = 0
        if self.most_used_limit < 1:
            self.most_used_limit = 1

    @property
    def store_dir(self) -> Path:
        """Directory that holds one JSON file per storage key."""
        return Path(self.data_dir) / self.namespace
