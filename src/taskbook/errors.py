"""Error types shared by the entity, repositories, and storage."""

from __future__ import annotations


class TaskbookError(Exception):
    """Base class for all taskbook errors."""


class ValidationError(TaskbookError, ValueError):
    """Structurally invalid input (empty title, missing owner, bad category).

    The message is meant to be shown to the end user unchanged.
    """


class PersistenceError(TaskbookError, OSError):
    """The storage medium rejected a write."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Gagal menyimpan '{key}': {reason}")
        self.key = key
        self.reason = reason
